"""CSV and SpreadsheetML export of report rows already held by the console."""

import json
import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence, Union
from xml.sax.saxutils import escape

logger = logging.getLogger(__name__)

CSV = "csv"
EXCEL = "excel"


def format_csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        value = json.dumps(value, separators=(",", ":"))
    text = str(value)
    if "," in text or '"' in text or "\n" in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def _headers(rows: Sequence[dict], headers: Optional[Sequence[str]]) -> list[str]:
    if headers is not None:
        return list(headers)
    return list(rows[0].keys()) if rows else []


def to_csv(rows: Sequence[dict], headers: Optional[Sequence[str]] = None) -> str:
    """Header line plus one line per row; empty input gives an empty string."""
    if not rows:
        return ""
    columns = _headers(rows, headers)
    lines = [",".join(format_csv_value(column) for column in columns)]
    lines.extend(",".join(format_csv_value(row.get(column)) for column in columns) for row in rows)
    return "\n".join(lines)


def _cell(value: Any) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        kind = "Number"
    else:
        kind = "String"
    text = "" if value is None else (value.isoformat() if isinstance(value, (datetime, date)) else str(value))
    return f'<Cell><Data ss:Type="{kind}">{escape(text)}</Data></Cell>'


def to_excel_xml(rows: Sequence[dict], headers: Optional[Sequence[str]] = None, sheet: str = "Report") -> str:
    if not rows:
        return ""
    columns = _headers(rows, headers)
    header_row = "<Row>" + "".join(_cell(str(column)) for column in columns) + "</Row>"
    body = "\n".join("<Row>" + "".join(_cell(row.get(column)) for column in columns) + "</Row>" for row in rows)
    return (
        '<?xml version="1.0"?>\n'
        '<?mso-application progid="Excel.Sheet"?>\n'
        '<Workbook xmlns="urn:schemas-microsoft-com:office:spreadsheet"\n'
        ' xmlns:ss="urn:schemas-microsoft-com:office:spreadsheet">\n'
        f'<Worksheet ss:Name="{escape(sheet)}">\n'
        "<Table>\n"
        f"{header_row}\n"
        f"{body}\n"
        "</Table>\n"
        "</Worksheet>\n"
        "</Workbook>"
    )


def export_filename(name: str, fmt: str, now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%d_%H%M")
    return f"{name}_{stamp}.{'xls' if fmt == EXCEL else 'csv'}"


def export_report(
    rows: Iterable[dict],
    name: str,
    directory: Union[str, Path] = ".",
    fmt: str = CSV,
    headers: Optional[Sequence[str]] = None,
    now: Optional[datetime] = None,
) -> Optional[Path]:
    """Write ``rows`` to a timestamped file; nothing is written for an empty report."""
    rows = list(rows)
    if not rows:
        return None
    if fmt not in (CSV, EXCEL):
        raise ValueError(f"Unsupported export format: {fmt}")
    content = to_excel_xml(rows, headers) if fmt == EXCEL else to_csv(rows, headers)
    target = Path(directory) / export_filename(name, fmt, now)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    logger.info("Exported %s rows to %s", len(rows), target)
    return target
