"""
TaskRank Database Session Management.

init_task_db() is the single entry point for engine setup; session_scope()
wraps a unit of work with commit/rollback.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy.orm import Session, sessionmaker

from taskrank.db.base import Base, engine_registry

TASK_DB = "taskrank"


def init_task_db(
    db_url: str,
    create_tables: bool = False,
    name: str = TASK_DB,
    **engine_kwargs: Any,
) -> sessionmaker:
    """
    Register the task database engine and return its session factory.

    Args:
        db_url:        SQLAlchemy URL.
        create_tables: Run Base.metadata.create_all() (dev and tests only).
        name:          Engine name in the registry.
        engine_kwargs: Passed to EngineRegistry.register (pool options etc).
    """
    engine = engine_registry.register(name, db_url, **engine_kwargs)
    if create_tables:
        Base.metadata.create_all(engine)
    return engine_registry.get_session_factory(name)


def init_task_db_from_config(config: Any = None, create_tables: bool = False) -> sessionmaker:
    """Initialise the task database from the `database` section of taskrank.yaml."""
    if config is None:
        from taskrank.engine.config import get_config
        config = get_config()
    db = config.database
    return init_task_db(
        db.url,
        create_tables=create_tables,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
        pool_pre_ping=db.pool_pre_ping,
    )


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for sessions with auto-commit/rollback.

    Usage:
        with session_scope(factory) as session:
            session.execute(...)
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def close_all_sessions() -> None:
    """Dispose all engines. Used during shutdown and between tests."""
    engine_registry.dispose()
