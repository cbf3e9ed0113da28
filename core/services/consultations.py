from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.errors import Conflict, NotFound, StoreFailure, ValidationFailed
from core.models import ACTIVATION_STATUSES, INFLOW_TYPES, Consultation, ReportEntry, utc_now
from core.services import scope
from core.services.auth import AuthContext
from core.utils.dates import require_date

logger = logging.getLogger("shopdesk.crm")


def _status(value: Any) -> str:
    return value if value in ACTIVATION_STATUSES else "X"


def _inflow(value: Any) -> Optional[str]:
    return value if value in INFLOW_TYPES else None


def _opt_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip()


def serialize(c: Consultation) -> dict[str, Any]:
    return {
        "id": c.id,
        "shop_id": c.shop_id,
        "name": c.name,
        "phone": c.phone,
        "product_name": c.product_name,
        "memo": c.memo,
        "consultation_date": c.consultation_date.isoformat() if c.consultation_date else None,
        "sales_person": c.sales_person,
        "activation_status": c.activation_status,
        "inflow_type": c.inflow_type,
        "report_id": c.report_id,
        "created_at": c.created_at.isoformat() if c.created_at else None,
        "updated_at": c.updated_at.isoformat() if c.updated_at else None,
    }


def list_consultations(
    session: Session,
    auth: AuthContext,
    shop_id: Optional[str],
    activation_status: Optional[str] = None,
) -> list[Consultation]:
    effective = scope.require_scope(session, auth, shop_id)
    q = session.query(Consultation)
    if effective:
        q = q.filter(Consultation.shop_id == effective)
    if activation_status in ACTIVATION_STATUSES:
        q = q.filter(Consultation.activation_status == activation_status)
    return q.order_by(Consultation.consultation_date.desc(), Consultation.created_at.desc()).all()


def create_consultation(session: Session, auth: AuthContext, data: dict[str, Any]) -> Consultation:
    shop_id = scope.require_shop(session, auth, data.get("shop_id"))
    name = str(data.get("name") or "").strip()
    if not name:
        raise ValidationFailed("name is required")
    raw_date = data.get("consultation_date")
    c = Consultation(
        shop_id=shop_id,
        name=name,
        phone=_opt_text(data.get("phone")),
        product_name=_opt_text(data.get("product_name")),
        memo=_opt_text(data.get("memo")),
        consultation_date=require_date(raw_date, "consultation_date") if raw_date else dt.date.today(),
        sales_person=_opt_text(data.get("sales_person")),
        activation_status=_status(data.get("activation_status") or "X"),
        inflow_type=_inflow(data.get("inflow_type")),
    )
    session.add(c)
    session.commit()
    return c


def get_visible(session: Session, auth: AuthContext, consultation_id: str) -> Consultation:
    """Missing and out-of-scope look the same to the caller."""
    c = session.get(Consultation, consultation_id)
    if c is None:
        raise NotFound("Not found or forbidden")
    scope.ensure_row_visible(session, auth, c.shop_id, "Not found or forbidden")
    return c


def update_consultation(session: Session, auth: AuthContext, consultation_id: str, changes: dict[str, Any]) -> Consultation:
    """Partial update. Status moves freely among O/△/X, moved or not."""
    c = get_visible(session, auth, consultation_id)
    if "name" in changes:
        name = str(changes["name"] or "").strip()
        if not name:
            raise ValidationFailed("name must not be empty")
        c.name = name
    for key in ("phone", "product_name", "memo", "sales_person"):
        if key in changes:
            setattr(c, key, _opt_text(changes[key]))
    if "consultation_date" in changes:
        c.consultation_date = require_date(changes["consultation_date"], "consultation_date")
    if "activation_status" in changes:
        c.activation_status = _status(changes["activation_status"])
    if "inflow_type" in changes:
        c.inflow_type = _inflow(changes["inflow_type"])
    c.updated_at = utc_now()
    session.commit()
    return c


def delete_consultation(session: Session, auth: AuthContext, consultation_id: str) -> None:
    c = get_visible(session, auth, consultation_id)
    session.delete(c)
    session.commit()


# --- move to report ---------------------------------------------------------


def _report_from(c: Consultation) -> ReportEntry:
    return ReportEntry(
        shop_id=c.shop_id,
        name=c.name,
        phone=c.phone or "",
        birth_date="",
        address="",
        path="",
        existing_carrier="",
        sale_date=(c.consultation_date or dt.date.today()).isoformat(),
        product_name=c.product_name or "",
        amount=0,
        margin=0,
        sales_person=c.sales_person or None,
    )


def _link_report(session: Session, consultation_id: str, report_id: str) -> bool:
    """Set report_id only if still unset. False when another move got there first."""
    result = session.execute(
        update(Consultation)
        .where(Consultation.id == consultation_id, Consultation.report_id.is_(None))
        .values(report_id=report_id, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    session.commit()
    return result.rowcount == 1


def _discard_report(session: Session, report_id: str) -> None:
    try:
        session.query(ReportEntry).filter(ReportEntry.id == report_id).delete(synchronize_session=False)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("compensation failed; report %s is orphaned", report_id)
        raise


def move_to_report(session: Session, auth: AuthContext, consultation_id: str) -> str:
    """Promote a completed consultation into one ledger row.

    Phase 1 inserts the report and commits. Phase 2 links it with a
    conditional update. If phase 2 fails or loses a race, the phase 1 row
    is deleted again.
    """
    c = get_visible(session, auth, consultation_id)
    if c.report_id:
        raise Conflict("Already moved to report", code="already_moved")
    if c.activation_status != "O":
        raise ValidationFailed("Only consultations with status O can be moved to report")

    report = _report_from(c)
    session.add(report)
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("report insert failed for consultation %s", consultation_id)
        raise StoreFailure("Failed to create report row") from exc
    report_id = report.id

    try:
        linked = _link_report(session, consultation_id, report_id)
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("linking report %s to consultation %s failed: %s", report_id, consultation_id, exc)
        _discard_report(session, report_id)
        raise StoreFailure("Failed to link report") from exc
    if not linked:
        _discard_report(session, report_id)
        raise Conflict("Already moved to report", code="already_moved")

    session.refresh(c)
    logger.info("consultation %s moved to report %s", consultation_id, report_id)
    return report_id
