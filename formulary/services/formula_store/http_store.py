"""
HTTP Formula Store

Client for the formula REST API (``/formulas/...``). Implements both the
FormulaStore and ExportService contracts so the engine can run against a
remote server exactly as it runs against the local database.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional
from urllib.parse import urlencode

import requests

from ..formula_engine import (
    ConflictError, ExportFormat, ForbiddenError, Formula, FormulaSaveCommand,
    FormulaStoreError, NotFoundError, StoreValidationError, UnauthorizedError,
)

logger = logging.getLogger(__name__)

_STATUS_ERRORS = {
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConflictError,
    400: StoreValidationError,
    422: StoreValidationError,
}


class HttpFormulaStore:
    """Synchronous ``requests`` client for the formula API.

    ``on_unauthorized`` is invoked before :class:`UnauthorizedError` is
    raised so the owner of the login session can clear it and redirect.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        on_unauthorized: Optional[Callable[[], None]] = None,
        supports_atomic_save: bool = False,
    ):
        if not base_url:
            raise ValueError("A base URL for the formula API is required.")
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()
        self.on_unauthorized = on_unauthorized
        self.supports_atomic_save = supports_atomic_save

    @classmethod
    def from_config(cls, config: Mapping[str, Any], **kwargs) -> "HttpFormulaStore":
        return cls(
            config.get("FORMULA_API_BASE_URL"),
            token=config.get("FORMULA_API_TOKEN"),
            timeout=config.get("FORMULA_API_TIMEOUT_SECONDS", 10.0),
            supports_atomic_save=bool(config.get("FORMULA_API_ATOMIC_SAVE", False)),
            **kwargs,
        )

    # -- FormulaStore ------------------------------------------------------------
    def get_formula(self, formula_id) -> Formula:
        response = self._request("GET", f"/formulas/{formula_id}")
        return Formula.from_dict(response.json())

    def update_formula_metadata(self, formula_id, metadata: Mapping[str, Any]) -> None:
        self._request("PUT", f"/formulas/{formula_id}", json=dict(metadata))

    def update_formula_ingredients(self, formula_id, payload: Mapping[str, Any]) -> None:
        self._request("PUT", f"/formulas/{formula_id}/ingredients", json=dict(payload))

    def update_formula_steps(self, formula_id, payload: Mapping[str, Any]) -> None:
        self._request("PUT", f"/formulas/{formula_id}/steps", json=dict(payload))

    def apply_save(self, command: FormulaSaveCommand) -> None:
        self._request("PUT", f"/formulas/{command.formula_id}/save", json=command.to_dict())

    def duplicate_formula(self, formula_id, new_name: Optional[str] = None) -> Dict[str, Any]:
        response = self._request("POST", f"/formulas/duplicate/{formula_id}", json={"new_name": new_name})
        return response.json()

    # -- ExportService -------------------------------------------------------------
    def export_url(self, formula_id, export_format) -> str:
        """Direct download link, token in the query string as browsers need it."""
        fmt = ExportFormat.parse(export_format)
        params = {"format": fmt.value}
        if self.token:
            params["token"] = self.token
        return f"{self.base_url}/formulas/{formula_id}/export?{urlencode(params)}"

    def export_formula(self, formula_id, export_format) -> None:
        """Ask the server to start producing the export; the body is not read."""
        fmt = ExportFormat.parse(export_format)
        response = self._request(
            "GET", f"/formulas/{formula_id}/export", params={"format": fmt.value}, stream=True,
        )
        response.close()

    # -- Transport -----------------------------------------------------------------
    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        logger.debug("Formula API %s %s", method, url)
        try:
            response = self.session.request(
                method, url, headers=self._headers(), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as exc:
            logger.warning("Formula API %s %s failed: %s", method, url, exc)
            raise FormulaStoreError(
                "No response received from server. Please check your connection.", status_code=503
            ) from exc

        if response.status_code < 400:
            return response

        message = _error_message(response)
        if response.status_code == 401 and self.on_unauthorized:
            self.on_unauthorized()
        error_cls = _STATUS_ERRORS.get(response.status_code, FormulaStoreError)
        logger.warning("Formula API %s %s returned %s: %s", method, url, response.status_code, message)
        if error_cls is FormulaStoreError:
            raise FormulaStoreError(message, status_code=response.status_code)
        raise error_cls(message)


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, Mapping):
        for key in ("detail", "error", "message"):
            if payload.get(key):
                return str(payload[key])
    return f"Error {response.status_code}: {response.reason or 'request failed'}"
