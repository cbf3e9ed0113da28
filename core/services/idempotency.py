from __future__ import annotations

import datetime as dt
import hashlib
import json
from typing import Any, Callable, Optional, Tuple

from fastapi import Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.errors import Conflict
from core.models import IdempotencyRecord, utc_now


def compute_body_hash(obj: Any) -> str:
    """Stable SHA256 over canonical JSON (sorted keys, compact)."""
    if obj is None:
        data = b"null"
    elif isinstance(obj, (bytes, bytearray)):
        data = bytes(obj)
    elif isinstance(obj, str):
        data = obj.encode("utf-8")
    else:
        data = json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":"), default=str).encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def _find(db: Session, key: str, method: str, path: str) -> IdempotencyRecord | None:
    return (
        db.query(IdempotencyRecord)
        .filter(
            IdempotencyRecord.key == key,
            IdempotencyRecord.method == method,
            IdempotencyRecord.path == path,
        )
        .first()
    )


def _replay(rec: IdempotencyRecord, body_hash: str) -> Tuple[Any, int]:
    if rec.body_hash != body_hash:
        raise Conflict("idempotency key conflict", code="idempotency_conflict")
    return json.loads(rec.response_json or "null"), int(rec.status_code or 200)


def maybe_idempotent_json(
    db: Session,
    request: Request,
    *,
    shop_id: Optional[str],
    body_hash: str,
    produce: Callable[[], Tuple[Any, int]],
) -> Tuple[Any, int]:
    """At-most-once write keyed by the ``Idempotency-Key`` header.

    Same key and body replays the stored response; same key with a different
    body is a 409. Without the header ``produce`` simply runs.
    """
    key = request.headers.get("Idempotency-Key")
    if not key:
        return produce()
    method = (request.method or "").upper()
    path = request.url.path

    existing = _find(db, key, method, path)
    if existing is not None:
        return _replay(existing, body_hash)

    content, status = produce()
    db.add(IdempotencyRecord(
        key=key,
        method=method,
        path=path,
        body_hash=body_hash,
        shop_id=shop_id,
        status_code=int(status or 200),
        response_json=json.dumps(content, ensure_ascii=False, default=str),
    ))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        again = _find(db, key, method, path)
        if again is None:
            raise
        return _replay(again, body_hash)
    return content, status


def prune(db: Session, *, older_than: dt.timedelta = dt.timedelta(days=7)) -> int:
    cutoff = utc_now() - older_than
    n = db.query(IdempotencyRecord).filter(IdempotencyRecord.created_at < cutoff).delete(synchronize_session=False)
    db.commit()
    return int(n or 0)
