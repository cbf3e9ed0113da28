from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from core.services import calendar
from core.services.auth import AuthContext

from ..deps import get_db, require_auth
from ..schemas import LeaveCreate, TodoCreate, TodoUpdate

router = APIRouter(prefix="/calendar", tags=["calendar"])


@router.get("/todos")
def list_todos(
    year: Optional[str] = Query(None),
    month: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return [calendar.serialize_todo(t) for t in calendar.list_todos(db, auth, year, month)]


@router.post("/todos", status_code=201)
def create_todo(payload: TodoCreate, db: Session = Depends(get_db), auth: AuthContext = Depends(require_auth)):
    t = calendar.create_todo(db, auth, payload.todo_date, payload.content, payload.highlight)
    return calendar.serialize_todo(t)


@router.patch("/todos/{todo_id}")
def update_todo(
    todo_id: str,
    payload: TodoUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    t = calendar.update_todo(db, auth, todo_id, payload.model_dump(exclude_unset=True))
    return calendar.serialize_todo(t)


@router.delete("/todos/{todo_id}", status_code=204)
def delete_todo(todo_id: str, db: Session = Depends(get_db), auth: AuthContext = Depends(require_auth)):
    calendar.delete_todo(db, auth, todo_id)
    return Response(status_code=204)


@router.get("/leave")
def list_leave(
    year: Optional[str] = Query(None),
    month: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return [calendar.serialize_leave(r) for r in calendar.list_leave(db, auth, year, month)]


@router.post("/leave", status_code=201)
def set_leave(payload: LeaveCreate, db: Session = Depends(get_db), auth: AuthContext = Depends(require_auth)):
    return calendar.serialize_leave(calendar.set_leave(db, auth, payload.leave_date, payload.label))


@router.delete("/leave", status_code=204)
def remove_leave(
    date: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    calendar.remove_leave(db, auth, date)
    return Response(status_code=204)
