from __future__ import annotations

from pathlib import Path

from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

ALEMBIC_INI = Path(__file__).resolve().parent.parent / "alembic.ini"


def _script_directory() -> ScriptDirectory:
    if not ALEMBIC_INI.exists():
        raise RuntimeError(f"Alembic config not found at {ALEMBIC_INI}")
    cfg = Config(str(ALEMBIC_INI))
    cfg.set_main_option("script_location", str(ALEMBIC_INI.parent / "alembic"))
    return ScriptDirectory.from_config(cfg)


def revision_status(engine) -> tuple[set[str], set[str]]:
    """Return ``(current_heads, expected_heads)`` for the given engine."""
    expected = set(_script_directory().get_heads())
    with engine.connect() as conn:
        current = set(MigrationContext.configure(conn).get_current_heads() or [])
    return current, expected


def ensure_up_to_date(engine) -> None:
    """Raise if the database revision is behind the latest Alembic head."""
    current_heads, expected_heads = revision_status(engine)

    if not current_heads:
        raise RuntimeError(
            "Database has no Alembic revision. Run 'alembic upgrade head' before starting the application."
        )

    if current_heads != expected_heads:
        raise RuntimeError(
            f"Alembic migration mismatch. Database heads={current_heads}, expected={expected_heads}. "
            "Apply pending migrations with 'alembic upgrade head'."
        )
