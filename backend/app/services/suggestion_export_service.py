"""
Suggestion Export Service

Flattens a filtered suggestion list into CSV or XLSX. Pure formatting: the
rows come from ``SuggestionLifecycleService.list_suggestions``.
"""
import io
from datetime import datetime
from typing import List, Tuple

import pandas as pd
from openpyxl.styles import Font

from app.core.exceptions import BusinessRuleViolationException
from app.models.reorder_suggestion import ReorderSuggestion

EXPORT_COLUMNS = [
    "id",
    "product_id",
    "supplier_id",
    "suggested_quantity",
    "estimated_cost",
    "urgency",
    "confidence_score",
    "reason",
    "lead_time_days",
    "status",
    "created_at",
    "expires_at",
]
CSV_MEDIA_TYPE = "text/csv"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def suggestions_frame(suggestions: List[ReorderSuggestion]) -> pd.DataFrame:
    rows = [
        {
            "id": s.id,
            "product_id": s.product_id,
            "supplier_id": s.supplier_id,
            "suggested_quantity": s.suggested_quantity,
            "estimated_cost": float(s.estimated_cost),
            "urgency": s.urgency,
            "confidence_score": float(s.confidence_score),
            "reason": s.reason,
            "lead_time_days": s.lead_time_days,
            "status": s.status,
            "created_at": s.created_at,
            "expires_at": s.expires_at,
        }
        for s in suggestions
    ]
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def export_suggestions(suggestions: List[ReorderSuggestion], fmt: str = "csv") -> Tuple[bytes, str, str]:
    """Return ``(content, media_type, filename)`` for the requested format."""
    frame = suggestions_frame(suggestions)
    stamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S")

    if fmt == "csv":
        return frame.to_csv(index=False).encode("utf-8"), CSV_MEDIA_TYPE, f"reorder_suggestions_{stamp}.csv"

    if fmt == "excel":
        output = io.BytesIO()
        with pd.ExcelWriter(output, engine="openpyxl") as writer:
            frame.to_excel(writer, index=False, sheet_name="Suggestions")
            sheet = writer.sheets["Suggestions"]
            for cell in sheet[1]:
                cell.font = Font(bold=True)
            sheet.freeze_panes = "A2"
        return output.getvalue(), XLSX_MEDIA_TYPE, f"reorder_suggestions_{stamp}.xlsx"

    raise BusinessRuleViolationException(f"Unsupported export format '{fmt}'", {"allowed": ["csv", "excel"]})
