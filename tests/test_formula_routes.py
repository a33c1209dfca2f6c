"""REST API behaviour for the formulas blueprint."""

import json


def test_requests_without_token_get_json_401(client, seeded_formula):
    response = client.get(f"/formulas/{seeded_formula['id']}")

    assert response.status_code == 401
    assert response.get_json() == {'error': 'Authentication required'}


def test_invalid_token_is_rejected(client, seeded_formula):
    response = client.get(
        f"/formulas/{seeded_formula['id']}",
        headers={'Authorization': 'Bearer not-a-real-token'},
    )
    assert response.status_code == 401


def test_read_formulas_lists_own_formulas(client, api_headers, seeded_formula):
    response = client.get('/formulas/read_formulas', headers=api_headers)

    assert response.status_code == 200
    payload = response.get_json()
    assert [item['id'] for item in payload] == [seeded_formula['id']]


def test_get_formula_payload(client, api_headers, seeded_formula):
    response = client.get(f"/formulas/{seeded_formula['id']}", headers=api_headers)

    assert response.status_code == 200
    payload = response.get_json()
    assert payload['name'] == 'Test Serum'
    assert payload['version'] == 1
    assert len(payload['ingredients']) == 4
    assert payload['ingredients'][0]['ingredient']['inci_name'] == 'Aqua'
    assert [step['order'] for step in payload['steps']] == [1, 2]


def test_private_formula_is_404_for_other_users(client, other_headers, seeded_formula):
    response = client.get(f"/formulas/{seeded_formula['id']}", headers=other_headers)

    assert response.status_code == 404
    assert 'error' in response.get_json()


def test_non_owner_write_is_403(client, api_headers, other_headers, seeded_formula):
    client.put(f"/formulas/{seeded_formula['id']}", headers=api_headers, json={'is_public': True})

    response = client.put(
        f"/formulas/{seeded_formula['id']}", headers=other_headers, json={'name': 'Taken'},
    )
    assert response.status_code == 403


def test_sub_resource_updates(client, api_headers, seeded_formula):
    ids = seeded_formula['ingredient_ids']
    base = f"/formulas/{seeded_formula['id']}"

    assert client.put(base, headers=api_headers, json={'name': 'Serum Two'}).status_code == 200
    assert client.put(f'{base}/ingredients', headers=api_headers, json={'ingredients': [
        {'ingredient_id': ids['Distilled Water'], 'percentage': 95, 'order': 0},
        {'ingredient_id': ids['Niacinamide'], 'percentage': 5, 'order': 1},
    ]}).status_code == 200
    assert client.put(f'{base}/steps', headers=api_headers, json={'steps': [
        {'description': 'Dissolve', 'order': 1},
    ]}).status_code == 200

    payload = client.get(base, headers=api_headers).get_json()
    assert payload['name'] == 'Serum Two'
    assert [row['percentage'] for row in payload['ingredients']] == [95.0, 5.0]
    assert payload['version'] == 4


def test_validation_errors_are_422(client, api_headers, seeded_formula):
    response = client.put(
        f"/formulas/{seeded_formula['id']}/ingredients",
        headers=api_headers,
        json={'ingredients': [{'ingredient_id': seeded_formula['ingredient_ids']['Glycerin'], 'percentage': -1}]},
    )
    assert response.status_code == 422


def test_step_rows_must_be_objects(client, api_headers, seeded_formula):
    response = client.put(
        f"/formulas/{seeded_formula['id']}/steps", headers=api_headers, json={'steps': ['Mix']},
    )

    assert response.status_code == 422
    assert 'must be an object' in response.get_json()['error']


def test_ingredient_order_must_be_numeric(client, api_headers, seeded_formula):
    response = client.put(
        f"/formulas/{seeded_formula['id']}/ingredients",
        headers=api_headers,
        json={'ingredients': [
            {'ingredient_id': seeded_formula['ingredient_ids']['Glycerin'], 'percentage': 5, 'order': 'first'},
        ]},
    )

    assert response.status_code == 422
    assert 'invalid order' in response.get_json()['error']
    payload = client.get(f"/formulas/{seeded_formula['id']}", headers=api_headers).get_json()
    assert len(payload['ingredients']) == 4


def test_is_public_string_false_stays_private(client, api_headers, seeded_formula):
    response = client.put(f"/formulas/{seeded_formula['id']}", headers=api_headers, json={'is_public': 'false'})

    assert response.status_code == 200
    assert client.get(f"/formulas/{seeded_formula['id']}", headers=api_headers).get_json()['is_public'] is False


def test_atomic_save_and_conflict(client, api_headers, seeded_formula):
    ids = seeded_formula['ingredient_ids']
    body = {
        'metadata': {'name': 'Saved Serum', 'total_weight': 50},
        'ingredients': [{'ingredient_id': ids['Distilled Water'], 'percentage': 100, 'order': 0}],
        'steps': [{'description': 'Pour', 'order': 1}],
        'version': 1,
    }
    url = f"/formulas/{seeded_formula['id']}/save"

    response = client.put(url, headers=api_headers, data=json.dumps(body))
    assert response.status_code == 200
    saved = response.get_json()
    assert saved['version'] == 2
    assert saved['total_weight'] == 50.0
    assert len(saved['ingredients']) == 1

    stale = client.put(url, headers=api_headers, json=body)
    assert stale.status_code == 409
    assert stale.get_json()['actual_version'] == 2


def test_duplicate_route(client, api_headers, seeded_formula):
    response = client.post(
        f"/formulas/duplicate/{seeded_formula['id']}", headers=api_headers, json={},
    )

    assert response.status_code == 201
    new_id = response.get_json()['id']
    copy = client.get(f'/formulas/{new_id}', headers=api_headers).get_json()
    assert copy['name'] == 'Test Serum (Copy)'


def test_composition_route(client, api_headers, seeded_formula):
    payload = client.get(f"/formulas/{seeded_formula['id']}/composition", headers=api_headers).get_json()

    assert payload['total_percentage'] == 100.0
    assert payload['balance_status'] == 'balanced'
    assert [group['phase'] for group in payload['phases']] == ['Water Phase', 'Cool Down']


def test_batch_route(client, api_headers, seeded_formula):
    response = client.get(
        f"/formulas/{seeded_formula['id']}/batch?size=250&unit=g", headers=api_headers,
    )

    assert response.status_code == 200
    payload = response.get_json()
    assert payload['scale_factor'] == 2.5
    assert payload['total_amount'] == 250.0
    glycerin = next(row for row in payload['rows'] if row['name'] == 'Glycerin')
    assert glycerin['scaled_amount'] == 12.5


def test_batch_route_rejects_bad_input(client, api_headers, seeded_formula):
    base = f"/formulas/{seeded_formula['id']}/batch"
    assert client.get(f'{base}?size=0', headers=api_headers).status_code == 400
    assert client.get(f'{base}?size=10&unit=gallon', headers=api_headers).status_code == 400


def test_inci_list_route(client, api_headers, seeded_formula):
    payload = client.get(
        f"/formulas/{seeded_formula['id']}/inci-list?highlight_allergens=true", headers=api_headers,
    ).get_json()

    assert payload['inci_list'] == 'Aqua, Niacinamide, Glycerin, Lavandula Angustifolia Oil'
    assert payload['inci_list_with_allergens'].endswith('**Lavandula Angustifolia Oil**')


def test_export_csv_with_query_token(client, test_user, seeded_formula):
    response = client.get(
        f"/formulas/{seeded_formula['id']}/export?format=csv&token={test_user['token']}",
    )

    assert response.status_code == 200
    assert response.mimetype == 'text/csv'
    assert 'attachment; filename="test-serum.csv"' in response.headers['Content-Disposition']
    assert 'Formula Sheet - Test Serum' in response.get_data(as_text=True)


def test_export_print_renders_inline_html(client, api_headers, seeded_formula):
    response = client.get(f"/formulas/{seeded_formula['id']}/export?format=print", headers=api_headers)

    assert response.status_code == 200
    assert response.headers['Content-Disposition'].startswith('inline')
    body = response.get_data(as_text=True)
    assert 'Test Serum' in body
    assert 'Balanced at 100%' in body


def test_export_unknown_format_is_400(client, api_headers, seeded_formula):
    response = client.get(f"/formulas/{seeded_formula['id']}/export?format=docx", headers=api_headers)
    assert response.status_code == 400


def test_health(client):
    assert client.get('/health').get_json()['status'] == 'ok'
