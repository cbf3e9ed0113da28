from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from core.errors import Forbidden, NotFound, ValidationFailed
from core.models import Notice, NoticeComment, utc_now
from core.repositories import profiles as profiles_repo
from core.services.auth import AuthContext

logger = logging.getLogger("shopdesk.notices")

NOTICE_TYPES = ("notice", "post")
NOTICE_AUTHORS = ("super_admin", "region_manager", "tenant_admin")
MODERATORS = ("super_admin", "region_manager", "tenant_admin")


def serialize(n: Notice) -> dict[str, Any]:
    return {
        "id": n.id,
        "title": n.title,
        "body": n.body,
        "type": n.type,
        "pinned": bool(n.pinned),
        "author_id": n.author_id,
        "created_at": n.created_at.isoformat() if n.created_at else None,
        "updated_at": n.updated_at.isoformat() if n.updated_at else None,
    }


def serialize_comment(c: NoticeComment, author_name: Optional[str]) -> dict[str, Any]:
    return {
        "id": c.id,
        "notice_id": c.notice_id,
        "author_id": c.author_id,
        "parent_id": c.parent_id,
        "body": c.body,
        "created_at": c.created_at.isoformat() if c.created_at else None,
        "author_name": author_name,
    }


def list_notices(session: Session) -> list[Notice]:
    """Pinned first, then newest."""
    return session.query(Notice).order_by(Notice.pinned.desc(), Notice.created_at.desc()).all()


def get_notice(session: Session, notice_id: str) -> Notice:
    n = session.get(Notice, notice_id)
    if n is None:
        raise NotFound("Notice not found")
    return n


def create_notice(
    session: Session,
    auth: AuthContext,
    *,
    title: Any,
    body: Any,
    pinned: Any = False,
    type: Any = None,
) -> Notice:
    title_text = str(title or "").strip()
    body_text = str(body or "")
    if not title_text or not body_text:
        raise ValidationFailed("title and body are required")
    kind = str(type or "notice").strip() or "notice"
    if kind not in NOTICE_TYPES:
        raise ValidationFailed("Invalid type")
    # anyone may write a post; notices are for managers
    if kind == "notice" and auth.role not in NOTICE_AUTHORS:
        raise Forbidden("Only super_admin, region_manager, or tenant_admin can create notices")
    n = Notice(title=title_text, body=body_text, pinned=bool(pinned), type=kind, author_id=auth.id)
    session.add(n)
    session.commit()
    return n


def update_notice(session: Session, auth: AuthContext, notice_id: str, changes: dict[str, Any]) -> Notice:
    if not auth.is_super_admin:
        raise Forbidden("Only super_admin can update notices")
    n = get_notice(session, notice_id)
    touched = False
    if changes.get("title") is not None:
        n.title = str(changes["title"]).strip()
        touched = True
    if changes.get("body") is not None:
        n.body = str(changes["body"])
        touched = True
    if changes.get("pinned") is not None:
        n.pinned = bool(changes["pinned"])
        touched = True
    if not touched:
        raise ValidationFailed("At least one of title, body, pinned is required")
    n.updated_at = utc_now()
    session.commit()
    return n


def can_delete_notice(auth: AuthContext, n: Notice) -> bool:
    owner = n.author_id == auth.id
    if auth.role == "super_admin":
        return True
    if auth.role in ("region_manager", "tenant_admin"):
        return owner
    if auth.role == "staff":
        return owner and n.type == "post"
    return False


def delete_notice(session: Session, auth: AuthContext, notice_id: str) -> None:
    n = get_notice(session, notice_id)
    if not can_delete_notice(auth, n):
        raise Forbidden("forbidden")
    session.delete(n)
    session.commit()
    logger.info("notice %s deleted by %s", notice_id, auth.id)


# --- comments ---------------------------------------------------------------


def list_comments(session: Session, notice_id: str) -> list[dict[str, Any]]:
    rows = (
        session.query(NoticeComment)
        .filter(NoticeComment.notice_id == notice_id)
        .order_by(NoticeComment.created_at.asc())
        .all()
    )
    names = profiles_repo.names_by_id(session, {r.author_id for r in rows if r.author_id})
    return [serialize_comment(r, names.get(r.author_id)) for r in rows]


def add_comment(session: Session, auth: AuthContext, notice_id: str, body: Any, parent_id: Any = None) -> dict[str, Any]:
    text = body.strip() if isinstance(body, str) else ""
    if not text:
        raise ValidationFailed("body is required")
    get_notice(session, notice_id)
    c = NoticeComment(
        notice_id=notice_id,
        author_id=auth.id,
        parent_id=str(parent_id) if parent_id not in (None, "") else None,
        body=text,
    )
    session.add(c)
    session.commit()
    return serialize_comment(c, auth.name)


def delete_comment(session: Session, auth: AuthContext, notice_id: str, comment_id: str) -> None:
    c = (
        session.query(NoticeComment)
        .filter(NoticeComment.id == comment_id, NoticeComment.notice_id == notice_id)
        .first()
    )
    if c is None:
        raise NotFound("Comment not found")
    if c.author_id != auth.id and auth.role not in MODERATORS:
        raise Forbidden("forbidden")
    session.delete(c)
    session.commit()
