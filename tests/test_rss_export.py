from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timezone

import pytest

from services.rss_export import (
    CSV_HEADER,
    attachment_headers,
    build_csv_export,
    build_json_export,
    export_filename,
    sanitize_csv_field,
    validate_format,
)
from services.rss_service import RssValidationError
from tests.fixtures import make_headline

EXPORT_NOW = datetime(2024, 3, 9, 14, 5, 7, tzinfo=timezone.utc)


@pytest.mark.parametrize("value", ["=SUM(A1:A2)", "+49 Telefon", "-1 Grad", "@cmd", "\tTab", "\rReturn"])
def test_sanitize_csv_field_prefixes_formula_characters(value):
    assert sanitize_csv_field(value) == "'" + value


@pytest.mark.parametrize("value", ["", "Normal headline", "'quoted", " =space first"])
def test_sanitize_csv_field_leaves_safe_values(value):
    assert sanitize_csv_field(value) == value


def test_validate_format_messages():
    assert validate_format("json") == "json"
    assert validate_format("csv") == "csv"

    with pytest.raises(RssValidationError) as missing:
        validate_format(None)
    assert str(missing.value) == "missing format parameter"

    with pytest.raises(RssValidationError) as invalid:
        validate_format("xml")
    assert "invalid format" in str(invalid.value)


def test_export_filename_with_and_without_filter():
    assert export_filename("csv", now=EXPORT_NOW) == "rss_export_20240309_140507.csv"
    assert export_filename("json", "Ukraine", now=EXPORT_NOW) == "rss_export_Ukraine_20240309_140507.json"


def test_export_filename_strips_unsafe_filter_characters():
    name = export_filename("csv", 'a"b/../c d', now=EXPORT_NOW)
    assert name == "rss_export_a_b_.._c_d_20240309_140507.csv"
    assert '"' not in name and "/" not in name


def test_attachment_headers_include_security_headers():
    headers = attachment_headers("rss_export_x.csv")
    assert headers["Content-Disposition"] == 'attachment; filename="rss_export_x.csv"'
    assert headers["X-Content-Type-Options"] == "nosniff"
    assert headers["X-Frame-Options"] == "DENY"
    assert headers["Content-Security-Policy"] == "default-src 'none'"


def test_json_export_envelope():
    headlines = [make_headline(title="A"), make_headline(title="B")]

    payload = json.loads(build_json_export(headlines, "a", now=EXPORT_NOW))

    assert payload["export_date"] == "2024-03-09T14:05:07Z"
    assert payload["total_items"] == 2
    assert payload["filter_applied"] == "a"
    assert payload["headlines"][0] == {
        "title": "A",
        "link": "https://www.spiegel.de/1",
        "publishedAt": "2023-09-24T10:00:00Z",
        "source": "SPIEGEL",
    }


def test_json_export_omits_filter_when_absent():
    payload = json.loads(build_json_export([], now=EXPORT_NOW))
    assert "filter_applied" not in payload
    assert payload["total_items"] == 0
    assert payload["headlines"] == []


def test_csv_export_rows_and_injection_guard():
    headlines = [
        make_headline(title="=HYPERLINK(\"http://evil\")"),
        make_headline(title="Komma, \"Zitat\" und mehr"),
    ]

    rows = list(csv.reader(io.StringIO(build_csv_export(headlines))))

    assert rows[0] == CSV_HEADER
    assert rows[1][0] == "'=HYPERLINK(\"http://evil\")"
    assert rows[2][0] == "Komma, \"Zitat\" und mehr"
    assert rows[2][1:] == ["https://www.spiegel.de/1", "2023-09-24T10:00:00Z", "SPIEGEL"]
    assert len(rows) == 3
