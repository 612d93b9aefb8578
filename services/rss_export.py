from __future__ import annotations

import csv
import io
import re
from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional, Sequence

from app.core.logging import get_logger
from app.models.rss import ExportEnvelope, Headline
from services.rss_parser import format_rfc3339
from services.rss_service import RssValidationError

logger = get_logger().bind(module="rss_export")

ExportFormat = Literal["json", "csv"]

EXPORT_FORMATS = ("json", "csv")
CSV_HEADER = ["Title", "Link", "Published_At", "Source"]

# Leading characters a spreadsheet would evaluate as a formula.
_FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")
_FILENAME_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._-]+")

SECURITY_HEADERS: Dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Content-Security-Policy": "default-src 'none'",
}

MEDIA_TYPES: Dict[str, str] = {
    "json": "application/json",
    "csv": "text/csv; charset=utf-8",
}


class ExportError(Exception):
    """Serialization of already-fetched headlines failed."""


def validate_format(raw: Optional[str]) -> ExportFormat:
    if not raw:
        raise RssValidationError("missing format parameter")
    if raw not in EXPORT_FORMATS:
        raise RssValidationError("invalid format parameter: must be 'json' or 'csv'")
    return raw  # type: ignore[return-value]


def sanitize_csv_field(value: str) -> str:
    if value and value.startswith(_FORMULA_PREFIXES):
        return "'" + value
    return value


def export_filename(fmt: str, keyword: str = "", *, now: Optional[datetime] = None) -> str:
    """rss_export_[<filter>_]<YYYYmmdd_HHMMSS>.<fmt>"""
    timestamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d_%H%M%S")
    safe_filter = _FILENAME_UNSAFE_RE.sub("_", keyword).strip("_") if keyword else ""
    if safe_filter:
        return f"rss_export_{safe_filter}_{timestamp}.{fmt}"
    return f"rss_export_{timestamp}.{fmt}"


def attachment_headers(filename: str) -> Dict[str, str]:
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    headers.update(SECURITY_HEADERS)
    return headers


def build_json_export(
    headlines: Sequence[Headline],
    keyword: str = "",
    *,
    now: Optional[datetime] = None,
) -> str:
    envelope = ExportEnvelope(
        export_date=format_rfc3339(now or datetime.now(timezone.utc)),
        total_items=len(headlines),
        filter_applied=keyword or None,
        headlines=list(headlines),
    )
    try:
        return envelope.model_dump_json(by_alias=True, exclude_none=True)
    except (TypeError, ValueError) as exc:
        raise ExportError(f"failed to generate JSON export: {exc}") from exc


def build_csv_export(headlines: Sequence[Headline]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    try:
        writer.writerow(CSV_HEADER)
        for headline in headlines:
            writer.writerow([
                sanitize_csv_field(headline.title),
                sanitize_csv_field(headline.link),
                sanitize_csv_field(headline.published_at),
                sanitize_csv_field(headline.source),
            ])
    except csv.Error as exc:
        raise ExportError(f"failed to generate CSV export: {exc}") from exc
    return buffer.getvalue()


def render_export(fmt: ExportFormat, headlines: List[Headline], keyword: str = "") -> str:
    if fmt == "json":
        body = build_json_export(headlines, keyword)
    else:
        body = build_csv_export(headlines)
    logger.info("rss_export_generated", format=fmt, items=len(headlines), filter=keyword or None)
    return body
