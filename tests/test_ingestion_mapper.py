from __future__ import annotations

import datetime as dt
import io

import httpx
import pytest
from openpyxl import Workbook

from core.errors import ValidationFailed
from core.services import ingestion
from core.services.ingestion import (
    HEADER_MAP,
    NEED_DATA_ERROR,
    NO_ENTRIES_ERROR,
    map_table,
    normalize_date,
    normalize_number,
    parse_google_sheets_url,
)


TODAY = dt.date(2024, 5, 20)


def test_header_map_is_frozen():
    with pytest.raises(TypeError):
        HEADER_MAP["새컬럼"] = "name"  # type: ignore[index]


def test_basic_row_maps_known_columns_and_ignores_unknown():
    rows = [
        ["고객명", "연락처", "판매일", "판매가", "마진", "비고", "판매사"],
        ["홍길동", "010-1111-2222", "2024-05-01", "1,200,000", "150000", "무시됨", " 김직원 "],
    ]
    result = map_table(rows, "shop-1", today=TODAY)
    assert result.errors == []
    [entry] = result.entries
    assert entry["shop_id"] == "shop-1"
    assert entry["name"] == "홍길동"
    assert entry["phone"] == "010-1111-2222"
    assert entry["sale_date"] == "2024-05-01"
    assert entry["amount"] == 1200000
    assert entry["margin"] == 150000
    assert entry["sales_person"] == "김직원"
    assert "비고" not in entry
    # columns the sheet lacks still exist
    assert entry["address"] == ""
    assert entry["plan_name"] is None


def test_header_lookup_is_trimmed_but_case_sensitive():
    rows = [[" 이름 ", "PHONE"], ["홍길동", "010"]]
    [entry] = map_table(rows, "s", today=TODAY).entries
    assert entry["name"] == "홍길동"
    assert entry["phone"] == ""


def test_rows_without_name_and_phone_are_skipped():
    rows = [
        ["이름", "연락처", "상품명"],
        ["", "", "Galaxy"],
        [None, None, None],
        ["", "010-1", ""],
    ]
    result = map_table(rows, "s", today=TODAY)
    assert [e["phone"] for e in result.entries] == ["010-1"]
    assert result.errors == []


def test_no_mappable_rows_reports_single_error():
    rows = [["비고"], ["x"], ["y"]]
    result = map_table(rows, "s", today=TODAY)
    assert result.entries == []
    assert result.errors == [NO_ENTRIES_ERROR]


@pytest.mark.parametrize("rows", [None, [], [["이름", "연락처"]]])
def test_header_only_or_empty_is_an_error(rows):
    result = map_table(rows, "s", today=TODAY)
    assert result.entries == []
    assert result.errors == [NEED_DATA_ERROR]


def test_margin_falls_back_to_face_and_verbal_sum():
    rows = [
        ["이름", "마진", "액면", "구두 A"],
        ["A", 0, 10000, 5000],
        ["B", 7000, 10000, 5000],
    ]
    first, second = map_table(rows, "s", today=TODAY).entries
    assert first["margin"] == 15000
    assert second["margin"] == 7000


def test_empty_sale_date_defaults_to_today():
    rows = [["이름", "판매일"], ["A", ""]]
    [entry] = map_table(rows, "s", today=TODAY).entries
    assert entry["sale_date"] == "2024-05-20"


def test_short_rows_and_non_list_rows_never_raise():
    rows = [["이름", "연락처", "판매가"], ["A"], "garbage", 42, ["B", "010", "abc"]]
    result = map_table(rows, "s", today=TODAY)
    assert [e["name"] for e in result.entries] == ["A", "B"]
    assert result.entries[1]["amount"] == 0


def test_optional_zero_numbers_become_null():
    rows = [["이름", "지원금", "출고가"], ["A", 0, "1,000,000"]]
    [entry] = map_table(rows, "s", today=TODAY).entries
    assert entry["support_amount"] is None
    assert entry["factory_price"] == 1000000


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2024-05-01T00:00:00Z", "2024-05-01"),
        ("2024-05-01", "2024-05-01"),
        ("2024/05/01", "2024-05-01"),
        ("2024.05.01", "2024-05-01"),
        (dt.datetime(2024, 5, 1, 13, 30), "2024-05-01"),
        (dt.date(2024, 5, 1), "2024-05-01"),
        ("", ""),
        (None, ""),
        ("not a date", "not a date"),
    ],
)
def test_normalize_date(raw, expected):
    assert normalize_date(raw) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1,234", 1234),
        ("12.5", 12.5),
        ("15000원", 15000),
        ("abc", 0),
        ("", 0),
        (None, 0),
        (float("nan"), 0),
        (float("inf"), 0),
        (True, 0),
        (7, 7),
    ],
)
def test_normalize_number(raw, expected):
    assert normalize_number(raw) == expected


def _workbook_bytes(rows) -> bytes:
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def test_workbook_rows_read_first_sheet():
    content = _workbook_bytes([["이름", "판매일"], ["A", dt.datetime(2024, 5, 3)]])
    rows = ingestion.read_workbook_rows(content)
    [entry] = map_table(rows, "s", today=TODAY).entries
    assert entry["sale_date"] == "2024-05-03"


def test_unreadable_workbook_is_a_validation_error():
    with pytest.raises(ValidationFailed):
        ingestion.read_workbook_rows(b"not a zip")


def test_csv_rows_skip_blank_lines_and_bom():
    rows = ingestion.parse_csv_rows('\ufeff이름,연락처\n\n"홍, 길동",010\n')
    assert rows == [["이름", "연락처"], ["홍, 길동", "010"]]


@pytest.mark.parametrize(
    "url, sheet_id, gid",
    [
        ("https://docs.google.com/spreadsheets/d/abc_DEF-1/edit#gid=42", "abc_DEF-1", "42"),
        ("https://docs.google.com/spreadsheets/d/abc/edit?usp=sharing", "abc", None),
        ("https://docs.google.com/spreadsheets/d/abc/export?format=csv&gid=7", "abc", "7"),
    ],
)
def test_parse_google_sheets_url(url, sheet_id, gid):
    ref = parse_google_sheets_url(url)
    assert (ref.sheet_id, ref.gid) == (sheet_id, gid)
    assert ref.export_url.startswith(f"https://docs.google.com/spreadsheets/d/{sheet_id}/export?format=csv")


def test_invalid_sheet_url_rejected():
    with pytest.raises(ValidationFailed):
        parse_google_sheets_url("https://example.com/sheet")


def test_fetch_sheet_csv_uses_export_endpoint_and_maps_errors():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        if "gid=9" in str(request.url):
            return httpx.Response(403, text="denied")
        return httpx.Response(200, text="이름\nA\n")

    client = httpx.Client(transport=httpx.MockTransport(handler))
    ref = parse_google_sheets_url("https://docs.google.com/spreadsheets/d/s1/edit#gid=0")
    assert ingestion.fetch_sheet_csv(ref, client=client) == "이름\nA\n"
    assert seen == ["https://docs.google.com/spreadsheets/d/s1/export?format=csv&gid=0"]
    with pytest.raises(ValidationFailed) as exc:
        ingestion.fetch_sheet_csv(parse_google_sheets_url("https://docs.google.com/spreadsheets/d/s1/edit#gid=9"), client=client)
    assert exc.value.code == "sheet_fetch_failed"
