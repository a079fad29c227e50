"""
Report rendering: JSON records or flat CSV text.

Rendering never recomputes anything; it only formats rows produced by
services.reconciliation.

CSV quoting: free-text columns are wrapped in double quotes so embedded
commas survive, but quotes inside the text are NOT escaped. A name like
'Bob "The Closer"' therefore yields a line most CSV readers will misparse.
This is a known limitation of the export format and is left as is.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel

from slabline.schemas.commission import CommissionRecordResponse, CommissionReportRow
from slabline.services.exceptions import ValidationError


class ReportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"


# (header, attribute, quote-wrapped)
REPORT_COLUMNS: Tuple[Tuple[str, str, bool], ...] = (
    ("Sales Person ID", "id", False),
    ("Sales Person", "name", True),
    ("Sales Person Email", "email", False),
    ("Role", "role", False),
    ("Total Closings", "total_closings", False),
    ("Calculated Commission", "total_calculated_commission", False),
    ("Actual Commission", "total_actual_commission", False),
    ("Total Commission", "total_commission", False),
    ("Commission Source", "commission_source", False),
    ("Commission Rate (%)", "effective_rate", False),
    ("Closed Deals", "closed_deals_count", False),
    ("Manual Commissions", "manual_commissions_count", False),
)

RECORD_COLUMNS: Tuple[Tuple[str, str, bool], ...] = (
    ("Commission ID", "id", False),
    ("Sales Person", "sales_person", True),
    ("Sales Person Email", "sales_person_email", False),
    ("Role", "role", False),
    ("Lead Name", "lead_name", True),
    ("Lead Email", "lead_email", False),
    ("Lead Company", "lead_company", True),
    ("Deal Value", "deal_value", False),
    ("Commission Amount", "commission_amount", False),
    ("Commission Rate (%)", "commission_rate", False),
    ("Commission Date", "created_at", False),
    ("Created By", "created_by", True),
    ("Notes", "notes", True),
)


def parse_format(value: Union[str, ReportFormat, None], default: ReportFormat) -> ReportFormat:
    """
    Raises:
        ValidationError: unknown format name
    """
    if value is None or value == "":
        return default
    if isinstance(value, ReportFormat):
        return value
    try:
        return ReportFormat(str(value).lower())
    except ValueError:
        raise ValidationError(f"Unsupported format: {value}", "format") from None


def format_cell(value: Any, quoted: bool = False) -> str:
    """Format one CSV cell. Numbers come out as plain decimals (no exponent)."""
    if value is None:
        text = ""
    elif isinstance(value, Decimal):
        text = format(value, "f")
    elif isinstance(value, datetime):
        text = value.date().isoformat()
    elif isinstance(value, date):
        text = value.isoformat()
    elif isinstance(value, Enum):
        text = str(value.value)
    else:
        text = str(value)

    if quoted:
        return f'"{text}"'
    return text


def to_csv(items: Sequence[BaseModel], columns: Sequence[Tuple[str, str, bool]]) -> str:
    """Header line plus one line per item, joined with newlines."""
    lines = [",".join(header for header, _, _ in columns)]
    for item in items:
        lines.append(
            ",".join(format_cell(getattr(item, attr), quoted) for _, attr, quoted in columns)
        )
    return "\n".join(lines)


def render(
    rows: Sequence[CommissionReportRow],
    format: Union[str, ReportFormat] = ReportFormat.JSON,
) -> Union[List[dict], str]:
    """Render aggregate report rows as JSON-ready dicts or CSV text."""
    if parse_format(format, ReportFormat.JSON) == ReportFormat.CSV:
        return to_csv(rows, REPORT_COLUMNS)
    return [row.model_dump(mode="json") for row in rows]


def render_commission_records(
    records: Sequence[CommissionRecordResponse],
    format: Union[str, ReportFormat] = ReportFormat.CSV,
) -> Union[List[dict], str]:
    """Render individual manual commission records."""
    if parse_format(format, ReportFormat.CSV) == ReportFormat.CSV:
        return to_csv(records, RECORD_COLUMNS)
    return [record.model_dump(mode="json") for record in records]


def export_filename(prefix: str, today: Optional[date] = None) -> str:
    return f"{prefix}-{(today or date.today()).isoformat()}.csv"
