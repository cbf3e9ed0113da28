"""Shopdesk domain core: settings, persistence, session codec and services."""
from .db import get_sessionmaker, init_database, session_scope
from .errors import ServiceError
from .settings import ShopdeskSettings, get_settings

__all__ = [
    "ServiceError",
    "ShopdeskSettings",
    "get_settings",
    "get_sessionmaker",
    "init_database",
    "session_scope",
]
