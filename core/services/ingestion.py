"""판매일보 ingestion: tabular rows → report entry dicts.

Both the workbook upload and the Google Sheets import funnel into
``map_table(rows, shop_id)``; the first row is the header. Header cells are
looked up (trimmed, case-sensitive) in ``HEADER_MAP``; unknown columns are
ignored. Mapping never raises on cell content: bad values fall back to
defaults and rows without name and phone are dropped.
"""
from __future__ import annotations

import csv
import datetime as dt
import io
import logging
import math
import re
from dataclasses import dataclass, field
from email.utils import parsedate_to_datetime
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Sequence

import httpx
from openpyxl import load_workbook

from core.errors import ValidationFailed

logger = logging.getLogger("shopdesk.ingestion")

NO_ENTRIES_ERROR = "매핑된 고객 데이터가 없습니다. 첫 행 헤더를 확인해 주세요."
NEED_DATA_ERROR = "헤더와 최소 1행의 데이터가 필요합니다."

HEADER_MAP: Mapping[str, str] = MappingProxyType({
    "이름": "name",
    "고객명": "name",
    "name": "name",
    "연락처": "phone",
    "전화": "phone",
    "휴대폰": "phone",
    "phone": "phone",
    "생년월일": "birth_date",
    "생일": "birth_date",
    "birthDate": "birth_date",
    "주소": "address",
    "address": "address",
    "유입": "path",
    "유입경로": "path",
    "path": "path",
    "통신사": "existing_carrier",
    "기존통신사": "existing_carrier",
    "existingCarrier": "existing_carrier",
    "개통단말기": "product_name",
    "상품": "product_name",
    "상품명": "product_name",
    "기기": "product_name",
    "productName": "product_name",
    "판매일": "sale_date",
    "일자": "sale_date",
    "날짜": "sale_date",
    "saleDate": "sale_date",
    "금액": "amount",
    "판매가": "amount",
    "amount": "amount",
    "마진": "margin",
    "margin": "margin",
    "블랙": "margin",
    "출고가": "factory_price",
    "factoryPrice": "factory_price",
    "공시지원": "official_subsidy",
    "공시": "official_subsidy",
    "officialSubsidy": "official_subsidy",
    "할부원금": "installment_principal",
    "할부 원금": "installment_principal",
    "installmentPrincipal": "installment_principal",
    "할부개월수": "installment_months",
    "할부 개월수": "installment_months",
    "installmentMonths": "installment_months",
    "액면": "face_amount",
    "faceAmount": "face_amount",
    "구두 A": "verbal_a",
    "구두A": "verbal_a",
    "verbalA": "verbal_a",
    "구두 B": "verbal_b",
    "구두B": "verbal_b",
    "verbalB": "verbal_b",
    "구두 C": "verbal_c",
    "구두C": "verbal_c",
    "verbalC": "verbal_c",
    "구두 D": "verbal_d",
    "구두D": "verbal_d",
    "verbalD": "verbal_d",
    "구두 E": "verbal_e",
    "구두E": "verbal_e",
    "verbalE": "verbal_e",
    "구두 F": "verbal_f",
    "구두F": "verbal_f",
    "verbalF": "verbal_f",
    "판매사": "sales_person",
    "담당": "sales_person",
    "salesPerson": "sales_person",
    "요금제": "plan_name",
    "planName": "plan_name",
    "지원금": "support_amount",
    "supportAmount": "support_amount",
    "매장 검수": "inspection_store",
    "매장검수": "inspection_store",
    "inspectionStore": "inspection_store",
    "개통매장": "inspection_store",
    "개통 매장": "inspection_store",
    "사무실 검수": "inspection_office",
    "사무실검수": "inspection_office",
    "inspectionOffice": "inspection_office",
    "복지": "welfare",
    "welfare": "welfare",
    "보험": "insurance",
    "insurance": "insurance",
    "카드": "card",
    "card": "card",
    "결합": "combined",
    "combined": "combined",
    "유무선": "line_type",
    "lineType": "line_type",
    "유형": "sale_type",
    "saleType": "sale_type",
    "일련번호": "serial_number",
    "serialNumber": "serial_number",
    "개통시간": "activation_time",
    "개통 시간": "activation_time",
    "activationTime": "activation_time",
})

DATE_FIELDS = frozenset({"sale_date"})
NUMERIC_FIELDS = frozenset({
    "amount",
    "margin",
    "support_amount",
    "factory_price",
    "official_subsidy",
    "installment_principal",
    "installment_months",
    "face_amount",
    "verbal_a",
    "verbal_b",
    "verbal_c",
    "verbal_d",
    "verbal_e",
    "verbal_f",
})
# Always present on an entry, even when the sheet lacks the column
REQUIRED_TEXT_FIELDS = ("name", "phone", "birth_date", "address", "path", "existing_carrier", "sale_date", "product_name")
# Stored as NULL when blank/zero
OPTIONAL_FIELDS = (
    "sales_person",
    "plan_name",
    "support_amount",
    "factory_price",
    "official_subsidy",
    "installment_principal",
    "installment_months",
    "face_amount",
    "verbal_a",
    "verbal_b",
    "verbal_c",
    "verbal_d",
    "verbal_e",
    "verbal_f",
    "inspection_store",
    "inspection_office",
    "welfare",
    "insurance",
    "card",
    "combined",
    "line_type",
    "sale_type",
    "serial_number",
    "activation_time",
)
MARGIN_PARTS = ("face_amount", "verbal_a", "verbal_b", "verbal_c", "verbal_d", "verbal_e", "verbal_f")
ENTRY_FIELDS = tuple(sorted(set(HEADER_MAP.values())))

_ISO_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")
_FLOAT_PREFIX = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_LOOSE_DATE_FORMATS = ("%Y/%m/%d", "%Y.%m.%d", "%Y. %m. %d", "%Y. %m. %d.", "%Y%m%d", "%m/%d/%Y")


@dataclass
class MappingResult:
    entries: list[dict[str, Any]] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dt.datetime):
        if value.time() == dt.time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, dt.date):
        return value.isoformat()
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    try:
        return str(value).strip()
    except Exception:  # arbitrary objects from third-party readers
        return ""


def normalize_date(value: Any) -> str:
    """Best-effort ``YYYY-MM-DD``; unparseable input comes back trimmed, unchanged."""
    if value is None or value == "":
        return ""
    if isinstance(value, dt.datetime):
        return value.date().isoformat()
    if isinstance(value, dt.date):
        return value.isoformat()
    s = _cell_text(value)
    if _ISO_PREFIX.match(s):
        return s[:10]
    try:
        return dt.datetime.fromisoformat(s).date().isoformat()
    except ValueError:
        pass
    for fmt in _LOOSE_DATE_FORMATS:
        try:
            return dt.datetime.strptime(s, fmt).date().isoformat()
        except ValueError:
            continue
    try:
        return parsedate_to_datetime(s).date().isoformat()
    except (TypeError, ValueError, IndexError, OverflowError):
        pass
    return s


def normalize_number(value: Any) -> float:
    """Commas stripped, leading numeric prefix parsed; anything else is 0."""
    if value is None or value == "" or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else 0
    m = _FLOAT_PREFIX.match(_cell_text(value).replace(",", ""))
    if not m:
        return 0
    try:
        n = float(m.group(0))
    except ValueError:
        return 0
    if not math.isfinite(n):
        return 0
    return int(n) if n.is_integer() else n


def column_fields(header_row: Any) -> list[Optional[str]]:
    if not isinstance(header_row, (list, tuple)):
        return []
    return [HEADER_MAP.get(_cell_text(h)) for h in header_row]


def _blank_record() -> dict[str, Any]:
    return {f: (0 if f in NUMERIC_FIELDS else "") for f in ENTRY_FIELDS}


def _map_row(columns: Sequence[Optional[str]], row: Any) -> dict[str, Any]:
    record = _blank_record()
    if not isinstance(row, (list, tuple)):
        return record
    for idx, key in enumerate(columns):
        if not key:
            continue
        raw = row[idx] if idx < len(row) else None
        if key in DATE_FIELDS:
            record[key] = normalize_date(raw)
        elif key in NUMERIC_FIELDS:
            record[key] = normalize_number(raw)
        else:
            record[key] = _cell_text(raw)
    return record


def _finish(record: dict[str, Any], shop_id: str, today: dt.date) -> dict[str, Any]:
    margin = record["margin"]
    black = sum(record[k] for k in MARGIN_PARTS)
    if not margin and black != 0:
        margin = black
    entry: dict[str, Any] = {"shop_id": shop_id}
    for key in REQUIRED_TEXT_FIELDS:
        entry[key] = record[key]
    entry["sale_date"] = record["sale_date"] or today.isoformat()
    entry["amount"] = record["amount"]
    entry["margin"] = margin
    for key in OPTIONAL_FIELDS:
        entry[key] = record[key] or None
    return entry


def map_rows(
    header_row: Any,
    data_rows: Iterable[Any] | None,
    shop_id: str,
    *,
    today: Optional[dt.date] = None,
) -> MappingResult:
    """Map a header plus data rows into report entries. Never raises on content."""
    result = MappingResult()
    columns = column_fields(header_row)
    day = today or dt.date.today()
    seen = 0
    for row in data_rows or ():
        seen += 1
        record = _map_row(columns, row)
        if not record["name"] and not record["phone"]:
            continue
        result.entries.append(_finish(record, shop_id, day))
    if not result.entries and seen:
        result.errors.append(NO_ENTRIES_ERROR)
    logger.debug("mapped %d of %d rows for shop %s", len(result.entries), seen, shop_id)
    return result


def map_table(rows: Sequence[Any] | None, shop_id: str, *, today: Optional[dt.date] = None) -> MappingResult:
    """First row is the header."""
    if not rows or len(rows) < 2:
        return MappingResult(errors=[NEED_DATA_ERROR])
    return map_rows(rows[0], rows[1:], shop_id, today=today)


# --- sources -----------------------------------------------------------------


def read_workbook_rows(content: bytes) -> list[list[Any]]:
    """All rows of the first worksheet as plain lists."""
    try:
        wb = load_workbook(io.BytesIO(content), data_only=True, read_only=True)
    except Exception as exc:  # openpyxl raises zipfile/KeyError/InvalidFileException for junk input
        raise ValidationFailed("엑셀 파일을 읽을 수 없습니다.", code="invalid_workbook") from exc
    try:
        if not wb.worksheets:
            raise ValidationFailed("시트가 없습니다.", code="invalid_workbook")
        ws = wb.worksheets[0]
        return [list(r) for r in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def parse_csv_rows(text: str) -> list[list[str]]:
    reader = csv.reader(io.StringIO((text or "").lstrip("\ufeff")))
    # blank lines come back as [] (or [""] for a lone quote pair)
    return [row for row in reader if row and row != [""]]


@dataclass(frozen=True)
class SheetRef:
    sheet_id: str
    gid: Optional[str]

    @property
    def export_url(self) -> str:
        url = f"https://docs.google.com/spreadsheets/d/{self.sheet_id}/export?format=csv"
        return f"{url}&gid={self.gid}" if self.gid else url


_SHEET_ID = re.compile(r"docs\.google\.com/spreadsheets/d/([a-zA-Z0-9_-]+)")
_GID = re.compile(r"[?&#]gid=(\d+)")


def parse_google_sheets_url(url: str) -> SheetRef:
    """Accepts edit/view/export links; always fetches through the CSV export endpoint."""
    trimmed = (url or "").strip()
    m = _SHEET_ID.search(trimmed)
    if not m:
        raise ValidationFailed(
            "Invalid Google Sheets URL. Example: https://docs.google.com/spreadsheets/d/SHEET_ID/edit#gid=0",
            code="invalid_sheet_url",
        )
    gid = _GID.search(trimmed)
    return SheetRef(sheet_id=m.group(1), gid=gid.group(1) if gid else None)


def fetch_sheet_csv(ref: SheetRef, *, client: Optional[httpx.Client] = None, timeout: float = 10.0) -> str:
    own = client is None
    http = client or httpx.Client(timeout=timeout, follow_redirects=True)
    try:
        resp = http.get(ref.export_url, headers={"cache-control": "no-cache"})
    except httpx.HTTPError as exc:
        logger.warning("sheet fetch failed for %s: %s", ref.sheet_id, exc)
        raise ValidationFailed(
            "Failed to fetch Google Sheets. Make sure the sheet is shared publicly.", code="sheet_fetch_failed"
        ) from exc
    finally:
        if own:
            http.close()
    if resp.status_code >= 400:
        logger.info("sheet fetch for %s returned %s", ref.sheet_id, resp.status_code)
        raise ValidationFailed(
            "Failed to fetch Google Sheets. Make sure the sheet is shared publicly.", code="sheet_fetch_failed"
        )
    return resp.text
