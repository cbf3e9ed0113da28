from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from core.services import notices
from core.services.auth import AuthContext

from ..deps import get_db, require_auth
from ..schemas import CommentCreate, NoticeCreate, NoticeUpdate, SimpleOkResponse

router = APIRouter(prefix="/notices", tags=["notices"])


@router.get("")
def list_notices(db: Session = Depends(get_db), auth: AuthContext = Depends(require_auth)):
    return [notices.serialize(n) for n in notices.list_notices(db)]


@router.post("", status_code=201)
def create_notice(
    payload: NoticeCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    n = notices.create_notice(db, auth, title=payload.title, body=payload.body, pinned=payload.pinned, type=payload.type)
    return notices.serialize(n)


@router.get("/{notice_id}")
def get_notice(notice_id: str, db: Session = Depends(get_db), auth: AuthContext = Depends(require_auth)):
    return notices.serialize(notices.get_notice(db, notice_id))


@router.patch("/{notice_id}")
def update_notice(
    notice_id: str,
    payload: NoticeUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return notices.serialize(notices.update_notice(db, auth, notice_id, payload.model_dump(exclude_unset=True)))


@router.delete("/{notice_id}", response_model=SimpleOkResponse)
def delete_notice(notice_id: str, db: Session = Depends(get_db), auth: AuthContext = Depends(require_auth)):
    notices.delete_notice(db, auth, notice_id)
    return SimpleOkResponse()


@router.get("/{notice_id}/comments")
def list_comments(notice_id: str, db: Session = Depends(get_db), auth: AuthContext = Depends(require_auth)):
    return notices.list_comments(db, notice_id)


@router.post("/{notice_id}/comments", status_code=201)
def add_comment(
    notice_id: str,
    payload: CommentCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return notices.add_comment(db, auth, notice_id, payload.body, payload.parent_id)


@router.delete("/{notice_id}/comments/{comment_id}", status_code=204)
def delete_comment(
    notice_id: str,
    comment_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    notices.delete_comment(db, auth, notice_id, comment_id)
    return Response(status_code=204)
