"""Personal calendar: todos and leave days. Rows belong to one profile and are
never visible to anyone else, admins included."""
from __future__ import annotations

import datetime as dt
from typing import Any, Optional

from sqlalchemy.orm import Session

from core.errors import NotFound, ValidationFailed
from core.models import CalendarLeave, CalendarTodo, utc_now
from core.services.auth import AuthContext
from core.utils.dates import month_bounds, require_date

DEFAULT_LEAVE_LABEL = "휴가"


def clamp_highlight(value: Any) -> int:
    try:
        h = int(value or 0)
    except (TypeError, ValueError, OverflowError):
        h = 0
    return min(3, max(0, h))


def _month(year: Any, month: Any, today: Optional[dt.date] = None) -> tuple[dt.date, dt.date]:
    d = today or dt.date.today()
    try:
        y = int(year)
    except (TypeError, ValueError):
        y = d.year
    if not dt.MINYEAR <= y <= dt.MAXYEAR:
        y = d.year
    try:
        m = int(month)
    except (TypeError, ValueError):
        m = d.month
    if not 1 <= m <= 12:
        m = d.month
    return month_bounds(y, m)


def serialize_todo(t: CalendarTodo) -> dict[str, Any]:
    return {
        "id": t.id,
        "profile_id": t.profile_id,
        "todo_date": t.todo_date.isoformat(),
        "content": t.content,
        "highlight": t.highlight,
        "created_at": t.created_at.isoformat() if t.created_at else None,
        "updated_at": t.updated_at.isoformat() if t.updated_at else None,
    }


def serialize_leave(row: CalendarLeave) -> dict[str, Any]:
    return {"id": row.id, "leave_date": row.leave_date.isoformat(), "label": row.label}


def list_todos(session: Session, auth: AuthContext, year: Any = None, month: Any = None) -> list[CalendarTodo]:
    start, end = _month(year, month)
    return (
        session.query(CalendarTodo)
        .filter(
            CalendarTodo.profile_id == auth.id,
            CalendarTodo.todo_date >= start,
            CalendarTodo.todo_date <= end,
        )
        .order_by(CalendarTodo.todo_date.asc(), CalendarTodo.created_at.asc())
        .all()
    )


def create_todo(session: Session, auth: AuthContext, todo_date: Any, content: Any = "", highlight: Any = 0) -> CalendarTodo:
    if not todo_date or not isinstance(todo_date, str):
        raise ValidationFailed("todo_date is required")
    t = CalendarTodo(
        profile_id=auth.id,
        todo_date=require_date(todo_date[:10], "todo_date"),
        content="" if content is None else str(content),
        highlight=clamp_highlight(highlight),
    )
    session.add(t)
    session.commit()
    return t


def _own_todo(session: Session, auth: AuthContext, todo_id: str) -> CalendarTodo:
    t = session.get(CalendarTodo, todo_id)
    if t is None or t.profile_id != auth.id:
        raise NotFound("Not found or forbidden")
    return t


def update_todo(session: Session, auth: AuthContext, todo_id: str, changes: dict[str, Any]) -> CalendarTodo:
    t = _own_todo(session, auth, todo_id)
    if changes.get("content") is not None:
        t.content = str(changes["content"])
    if "highlight" in changes:
        t.highlight = clamp_highlight(changes["highlight"])
    t.updated_at = utc_now()
    session.commit()
    return t


def delete_todo(session: Session, auth: AuthContext, todo_id: str) -> None:
    t = _own_todo(session, auth, todo_id)
    session.delete(t)
    session.commit()


def list_leave(session: Session, auth: AuthContext, year: Any = None, month: Any = None) -> list[CalendarLeave]:
    start, end = _month(year, month)
    return (
        session.query(CalendarLeave)
        .filter(
            CalendarLeave.profile_id == auth.id,
            CalendarLeave.leave_date >= start,
            CalendarLeave.leave_date <= end,
        )
        .order_by(CalendarLeave.leave_date.asc())
        .all()
    )


def set_leave(session: Session, auth: AuthContext, leave_date: Any, label: Any = None) -> CalendarLeave:
    """Upsert on (profile, date)."""
    if not leave_date or not isinstance(leave_date, str):
        raise ValidationFailed("leave_date is required")
    day = require_date(leave_date[:10], "leave_date")
    text = DEFAULT_LEAVE_LABEL if label is None else str(label)
    row = (
        session.query(CalendarLeave)
        .filter(CalendarLeave.profile_id == auth.id, CalendarLeave.leave_date == day)
        .first()
    )
    if row is None:
        row = CalendarLeave(profile_id=auth.id, leave_date=day, label=text)
        session.add(row)
    else:
        row.label = text
    session.commit()
    return row


def remove_leave(session: Session, auth: AuthContext, date_value: Any) -> None:
    raw = str(date_value or "")[:10]
    try:
        day = dt.date.fromisoformat(raw)
    except ValueError:
        raise ValidationFailed("date (YYYY-MM-DD) is required") from None
    (
        session.query(CalendarLeave)
        .filter(CalendarLeave.profile_id == auth.id, CalendarLeave.leave_date == day)
        .delete(synchronize_session=False)
    )
    session.commit()
