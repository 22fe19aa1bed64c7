"""Database engine setup for Tessera.

A single SQLite database (``tessera.db``) holds components and their
version history.
"""

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

if TYPE_CHECKING:
    from tessera.config import Settings

# Lazy engine initialization - engine created on first use
_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def _enable_foreign_keys(dbapi_conn: object, connection_record: object) -> None:
    """Turn on SQLite foreign keys so version rows follow their component."""
    cursor = dbapi_conn.cursor()  # type: ignore[union-attr]
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _create_registry_engine(db_path: Path) -> Engine:
    """SQLite engine for tessera.db, creating its directory if needed."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        pool_pre_ping=True,
    )
    event.listen(engine, "connect", _enable_foreign_keys)
    return engine


def get_engine(settings: "Settings | None" = None) -> Engine:
    """Get or create the registry engine."""
    global _engine
    if _engine is None:
        if settings is None:
            from tessera.config import get_settings

            settings = get_settings()
        settings.ensure_storage_dir()
        _engine = _create_registry_engine(settings.db_path)
    return _engine


def get_session_factory(settings: "Settings | None" = None) -> sessionmaker[Session]:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(settings), expire_on_commit=False)
    return _session_factory


@contextmanager
def get_session(settings: "Settings | None" = None) -> Generator[Session, None, None]:
    """Yield a registry database session, committing on success."""
    factory = get_session_factory(settings)
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_database(settings: "Settings | None" = None) -> None:
    """Create the registry tables if they don't exist."""
    from tessera.db.models import RegistryBase

    RegistryBase.metadata.create_all(get_engine(settings))


def reset_engine() -> None:
    """Dispose of the cached engine; the next session reconnects."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
        _engine = None
    _session_factory = None
