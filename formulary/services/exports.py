from __future__ import annotations

import csv
import io
import json
import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from flask import current_app, has_request_context, render_template, request

from .formula_engine import (
    ExportFormat, Formula, FormulaStoreError, balance_message, group_by_phase,
    parse_or_default, round_amount, total_percentage,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportArtifact:
    content: bytes
    mimetype: str
    filename: str


def _slug(name: str) -> str:
    slug = re.sub(r"[^A-Za-z0-9]+", "-", (name or "").strip()).strip("-").lower()
    return slug or "formula"


def _ordered(formula: Formula):
    return sorted(formula.ingredients, key=lambda e: e.order or 0)


def _line(entry, reference: float) -> Dict[str, Any]:
    pct = parse_or_default(entry.percentage)
    ingredient = entry.ingredient
    return {
        "name": entry.name,
        "inci_name": (ingredient.inci_name if ingredient else None) or "",
        "phase": (ingredient.phase if ingredient else None) or "",
        "percentage": pct,
        "amount_g": round_amount(pct / 100.0 * reference),
    }


def _extract_lines(formula: Formula) -> List[Dict[str, Any]]:
    reference = parse_or_default(formula.total_weight)
    return [_line(entry, reference) for entry in _ordered(formula)]


def _render_html(template_name: str, context: Dict[str, Any]) -> str:
    return render_template(template_name, **context)


class ExportService:
    @staticmethod
    def formula_csv(formula: Formula) -> str:
        out = io.StringIO()
        writer = csv.writer(out, lineterminator="\n")
        writer.writerow([f"Formula Sheet - {formula.name}"])
        writer.writerow(["Type", formula.type])
        writer.writerow(["Total Weight (g)", formula.total_weight])
        writer.writerow([])
        writer.writerow(["Phase", "Ingredient", "INCI Name", "Percentage", "Amount (g)"])
        for ln in _extract_lines(formula):
            writer.writerow([ln["phase"], ln["name"], ln["inci_name"], ln["percentage"], ln["amount_g"]])
        writer.writerow(["", "Total", "", round(total_percentage(formula.ingredients), 1), formula.total_weight])
        writer.writerow([])
        writer.writerow(["Step", "Description"])
        for step in formula.sorted_steps():
            writer.writerow([step.order, (step.description or "").replace("\r", " ").replace("\n", " ")])
        return out.getvalue()

    @staticmethod
    def formula_json(formula: Formula) -> str:
        payload = formula.to_dict()
        payload["total_percentage"] = round(total_percentage(formula.ingredients), 1)
        return json.dumps(payload, indent=2, sort_keys=False)

    @staticmethod
    def _sheet_context(formula: Formula, source: str) -> Dict[str, Any]:
        total = total_percentage(formula.ingredients)
        reference = parse_or_default(formula.total_weight)
        phases = [
            {"phase": phase, "lines": [_line(entry, reference) for entry in entries]}
            for phase, entries in group_by_phase(_ordered(formula)).items()
        ]
        return {
            "formula": formula,
            "phases": phases,
            "steps": formula.sorted_steps(),
            "total_percentage": round(total, 1),
            "balance_message": balance_message(total),
            "source": source,
        }

    @staticmethod
    def formula_print_html(formula: Formula) -> str:
        return _render_html("exports/formula_sheet.html", ExportService._sheet_context(formula, "print"))

    @staticmethod
    def formula_pdf(formula: Formula) -> bytes:
        html = _render_html("exports/formula_sheet.html", ExportService._sheet_context(formula, "pdf"))
        return ExportService._html_to_pdf(html)

    @staticmethod
    def _html_to_pdf(html: str) -> bytes:
        # WeasyPrint pulls in native libraries; only load it when a PDF is requested
        from weasyprint import HTML

        base_url = request.host_url if has_request_context() else None
        return HTML(string=html, base_url=base_url).write_pdf()

    @staticmethod
    def render(formula: Formula, export_format) -> ExportArtifact:
        fmt = ExportFormat.parse(export_format)
        stem = _slug(formula.name)
        if fmt is ExportFormat.SPREADSHEET:
            return ExportArtifact(ExportService.formula_csv(formula).encode("utf-8"), "text/csv", f"{stem}.csv")
        if fmt is ExportFormat.STRUCTURED_DATA:
            return ExportArtifact(ExportService.formula_json(formula).encode("utf-8"), "application/json", f"{stem}.json")
        if fmt is ExportFormat.PRINT_FRIENDLY:
            return ExportArtifact(ExportService.formula_print_html(formula).encode("utf-8"), "text/html", f"{stem}.html")
        return ExportArtifact(ExportService.formula_pdf(formula), "application/pdf", f"{stem}.pdf")


class FileExportService:
    """ExportService collaborator that writes artifacts into a folder.

    Used with the local SQL store, where there is no remote export job.
    """

    def __init__(self, store, folder: Optional[str] = None):
        self.store = store
        self.folder = folder or current_app.config.get("FORMULA_EXPORT_FOLDER") or os.path.join(
            current_app.instance_path, "exports"
        )
        self.last_path: Optional[str] = None

    def export_formula(self, formula_id, export_format) -> None:
        formula = self.store.get_formula(formula_id)
        try:
            artifact = ExportService.render(formula, export_format)
            os.makedirs(self.folder, exist_ok=True)
            path = os.path.join(self.folder, f"{formula.id}-{artifact.filename}")
            with open(path, "wb") as handle:
                handle.write(artifact.content)
        except (OSError, ImportError) as exc:
            logger.error("Export of formula %s into %s failed: %s", formula.id, self.folder, exc)
            raise FormulaStoreError(f"Could not write export: {exc}") from exc
        self.last_path = path
        logger.info("Exported formula %s to %s", formula.id, path)
