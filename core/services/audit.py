from __future__ import annotations

import json
import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.models import AuditEvent

logger = logging.getLogger("shopdesk.audit")


def record_event(
    db: Session,
    *,
    actor: str,
    action: str,
    resource: str = "",
    shop_id: Optional[str] = None,
    ip: str = "",
    ua: str = "",
    result: str = "ok",
    meta: Optional[dict[str, Any]] = None,
) -> None:
    """Best-effort audit trail entry.

    Written through its own short-lived session so a rollback in the caller
    cannot drop it. If the store is unavailable the event goes to the
    ``shopdesk.audit`` log instead; callers never see an error from here.
    """
    payload = {
        "actor": str(actor or "unknown")[:120],
        "action": str(action or "event")[:80],
        "resource": str(resource or "")[:255],
        "shop_id": shop_id,
        "ip": str(ip or "")[:64],
        "ua": str(ua or "")[:255],
        "result": str(result or "ok")[:40],
        "meta_json": json.dumps(meta or {}, ensure_ascii=False, default=str),
    }
    try:
        from core.db import get_sessionmaker  # lazy: core.db imports models

        s = get_sessionmaker()()
        try:
            s.add(AuditEvent(**payload))
            s.commit()
            return
        except SQLAlchemyError:
            s.rollback()
            raise
        finally:
            s.close()
    except SQLAlchemyError as exc:
        logger.debug("audit session write failed: %s", exc)

    try:
        db.add(AuditEvent(**payload))
        db.commit()
        return
    except SQLAlchemyError:
        db.rollback()

    logger.info(
        "audit_fallback",
        extra={
            "action": payload["action"],
            "actor": payload["actor"],
            "shop_id": shop_id,
            "resource": payload["resource"],
            "result": payload["result"],
        },
    )


def recent_events(db: Session, *, shop_id: Optional[str] = None, limit: int = 50) -> list[AuditEvent]:
    q = db.query(AuditEvent)
    if shop_id is not None:
        q = q.filter(AuditEvent.shop_id == shop_id)
    return q.order_by(AuditEvent.ts.desc()).limit(limit).all()
