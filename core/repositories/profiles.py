from __future__ import annotations

from sqlalchemy.orm import Session

from core.models import Profile


def get_by_id(session: Session, profile_id: str) -> Profile | None:
    return session.get(Profile, profile_id)


def get_by_login_id(session: Session, login_id: str) -> Profile | None:
    return session.query(Profile).filter(Profile.login_id == login_id).first()


def login_id_taken(session: Session, login_id: str) -> bool:
    return session.query(Profile.id).filter(Profile.login_id == login_id).first() is not None


def names_by_id(session: Session, profile_ids: set[str]) -> dict[str, str]:
    if not profile_ids:
        return {}
    rows = session.query(Profile.id, Profile.name).filter(Profile.id.in_(profile_ids)).all()
    return {pid: name for pid, name in rows}
