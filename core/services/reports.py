from __future__ import annotations

import hashlib
import logging
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.errors import Conflict, NotFound, ValidationFailed
from core.models import CrmCustomer, ReportEntry, ReportUpload, utc_now
from core.services import ingestion, scope
from core.services.auth import AuthContext

logger = logging.getLogger("shopdesk.reports")

_TEXT_FIELDS = frozenset(ingestion.REQUIRED_TEXT_FIELDS)
_COLUMNS = frozenset(ingestion.ENTRY_FIELDS)


def serialize(r: ReportEntry) -> dict[str, Any]:
    out: dict[str, Any] = {"id": r.id, "shop_id": r.shop_id}
    for key in ingestion.ENTRY_FIELDS:
        out[key] = getattr(r, key)
    out["uploaded_at"] = r.uploaded_at.isoformat() if r.uploaded_at else None
    return out


def _column_name(key: str) -> Optional[str]:
    """snake_case column, or the camelCase spelling older clients send."""
    if key in _COLUMNS:
        return key
    mapped = ingestion.HEADER_MAP.get(key)
    return mapped if mapped and key[:1].islower() else None


def _coerce(column: str, value: Any) -> Any:
    if column in ingestion.DATE_FIELDS:
        return ingestion.normalize_date(value)
    if column in ingestion.NUMERIC_FIELDS:
        if value is None and column not in ("amount", "margin"):
            return None
        return ingestion.normalize_number(value)
    if value is None:
        return "" if column in _TEXT_FIELDS else None
    return str(value).strip()


def _columns_from(row: Mapping[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for key, value in row.items():
        column = _column_name(key)
        if column:
            values[column] = _coerce(column, value)
    return values


def _row_shop(row: Mapping[str, Any]) -> Optional[str]:
    return row.get("shop_id") or row.get("shopId") or None


def list_reports(session: Session, auth: AuthContext, shop_id: Optional[str]) -> list[ReportEntry]:
    effective = scope.require_scope(session, auth, shop_id)
    q = session.query(ReportEntry)
    if effective:
        q = q.filter(ReportEntry.shop_id == effective)
    return q.order_by(ReportEntry.sale_date.desc(), ReportEntry.uploaded_at.desc()).all()


def _touch_customers(session: Session, rows: Iterable[ReportEntry]) -> None:
    """Roll ledger rows up into crm_customers, keyed by (shop, phone)."""
    now = utc_now()
    for row in rows:
        name = (row.name or "").strip() or "—"
        phone = (row.phone or "").strip()
        existing = None
        if phone:
            existing = (
                session.query(CrmCustomer)
                .filter(CrmCustomer.shop_id == row.shop_id, CrmCustomer.phone == phone)
                .first()
            )
        if existing is not None:
            existing.name = name
            existing.last_seen_at = now
            existing.updated_at = now
        else:
            session.add(CrmCustomer(
                shop_id=row.shop_id,
                name=name,
                phone=phone or None,
                first_seen_at=now,
                last_seen_at=now,
                updated_at=now,
            ))
            session.flush()


def insert_entries(session: Session, shop_id: str, rows: list[Mapping[str, Any]]) -> list[ReportEntry]:
    """Insert already-authorized rows for one shop, then update the customer roll-up."""
    created = []
    for row in rows:
        values = _columns_from(row)
        for key in ingestion.REQUIRED_TEXT_FIELDS:
            values.setdefault(key, "")
        created.append(ReportEntry(shop_id=shop_id, **values))
    session.add_all(created)
    session.commit()
    try:
        _touch_customers(session, created)
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning("crm_customers roll-up skipped for shop %s: %s", shop_id, exc)
    return created


def create_reports(session: Session, auth: AuthContext, rows: list[Mapping[str, Any]]) -> list[ReportEntry]:
    if not rows:
        raise ValidationFailed("reports array is required")
    requested = _row_shop(rows[0])
    if not requested:
        raise ValidationFailed("shop_id is required")
    shop_id = scope.require_shop(session, auth, requested)
    if any((_row_shop(r) or shop_id) != shop_id for r in rows):
        raise ValidationFailed("All rows must have the same shop_id")
    created = insert_entries(session, shop_id, rows)
    logger.info("inserted %d report rows for shop %s", len(created), shop_id)
    return created


def get_visible(session: Session, auth: AuthContext, report_id: str) -> ReportEntry:
    r = session.get(ReportEntry, report_id)
    if r is None:
        raise NotFound("Not found")
    scope.ensure_row_visible(session, auth, r.shop_id, "Not found")
    return r


def update_report(session: Session, auth: AuthContext, report_id: str, changes: Mapping[str, Any]) -> ReportEntry:
    """shop_id never changes through an edit."""
    r = get_visible(session, auth, report_id)
    for column, value in _columns_from(changes).items():
        setattr(r, column, value)
    session.commit()
    return r


def delete_report(session: Session, auth: AuthContext, report_id: str) -> None:
    r = get_visible(session, auth, report_id)
    session.delete(r)
    session.commit()


# --- uploads ----------------------------------------------------------------


def file_hash(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def _upload_seen(session: Session, shop_id: str, digest: str) -> bool:
    return (
        session.query(ReportUpload.id)
        .filter(ReportUpload.shop_id == shop_id, ReportUpload.file_hash == digest)
        .first()
        is not None
    )


def record_upload(session: Session, shop_id: str, digest: str) -> None:
    """Raise Conflict when this shop already uploaded the same file."""
    if _upload_seen(session, shop_id, digest):
        raise Conflict("duplicate upload", code="duplicate")
    session.add(ReportUpload(shop_id=shop_id, file_hash=digest))
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise Conflict("duplicate upload", code="duplicate") from exc


def check_duplicate(session: Session, auth: AuthContext, shop_id: Optional[str], digest: str) -> None:
    if not digest or not shop_id:
        raise ValidationFailed("file_hash and shop_id are required")
    shop_id = scope.require_shop(session, auth, shop_id)
    record_upload(session, shop_id, digest.strip().lower())


def upload_workbook(session: Session, auth: AuthContext, shop_id: Optional[str], content: bytes) -> dict[str, Any]:
    """Parse the first worksheet and insert every mapped row."""
    shop_id = scope.require_shop(session, auth, shop_id)
    if not content:
        raise ValidationFailed("file is required")
    digest = file_hash(content)
    if _upload_seen(session, shop_id, digest):
        raise Conflict("duplicate upload", code="duplicate")
    result = ingestion.map_table(ingestion.read_workbook_rows(content), shop_id)
    inserted = 0
    if result.entries:
        record_upload(session, shop_id, digest)
        inserted = len(insert_entries(session, shop_id, result.entries))
    logger.info("workbook upload for shop %s: %d rows, %d errors", shop_id, inserted, len(result.errors))
    return {"inserted": inserted, "errors": result.errors, "file_hash": digest}


def preview_google_sheet(
    session: Session,
    auth: AuthContext,
    shop_id: Optional[str],
    url: str,
    *,
    client=None,
    timeout: float = 10.0,
) -> dict[str, Any]:
    """Fetch and map a shared sheet; nothing is written."""
    shop_id = scope.require_shop(session, auth, shop_id)
    ref = ingestion.parse_google_sheets_url(url)
    text = ingestion.fetch_sheet_csv(ref, client=client, timeout=timeout)
    rows = ingestion.parse_csv_rows(text)
    result = ingestion.map_table(rows, shop_id)
    return {
        "meta": {
            "sheet_id": ref.sheet_id,
            "gid": ref.gid,
            "export_url": ref.export_url,
            "row_count": max(len(rows) - 1, 0),
        },
        "entries": result.entries,
        "errors": result.errors,
    }


def list_customers(session: Session, auth: AuthContext, shop_id: Optional[str]) -> list[CrmCustomer]:
    effective = scope.require_scope(session, auth, shop_id)
    q = session.query(CrmCustomer)
    if effective:
        q = q.filter(CrmCustomer.shop_id == effective)
    return q.order_by(CrmCustomer.last_seen_at.desc()).all()


def serialize_customer(c: CrmCustomer) -> dict[str, Any]:
    return {
        "id": c.id,
        "shop_id": c.shop_id,
        "name": c.name,
        "phone": c.phone,
        "first_seen_at": c.first_seen_at.isoformat() if c.first_seen_at else None,
        "last_seen_at": c.last_seen_at.isoformat() if c.last_seen_at else None,
    }
