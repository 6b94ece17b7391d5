"""
Module: rental_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and table creation.
Architecture position: Kernel > DB.  May import from db/base.py.  The
    create_tables() helper imports the ORM registry lazily so every module
    table is known to Base.metadata.

Invariants enforced:
    - PostgreSQL is the production backend (row locks via SELECT ... FOR
      UPDATE, partial unique indexes, READ COMMITTED).
    - SQLite is accepted for development and tests.  In-memory SQLite uses
      a StaticPool so every session, including the scheduler thread's,
      sees the same database.

Failure modes:
    - RuntimeError if get_engine/get_session_factory is called
      before init_engine_from_url().
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from rental_kernel.logging_config import get_logger

logger = get_logger("db.engine")

# Module-level engine and session factory
_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def build_engine(database_url: str, echo: bool = False, pool_size: int = 10) -> Engine:
    """Create an Engine for ``database_url`` without touching module state."""
    if database_url.startswith("sqlite"):
        kwargs: dict = {"echo": echo, "connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url.rstrip("/").endswith(":"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)

    return create_engine(
        database_url,
        echo=echo,
        pool_size=pool_size,
        pool_pre_ping=True,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(database_url: str, echo: bool = False, pool_size: int = 10) -> Engine:
    """
    Initialize the module-level engine and session factory.

    Postconditions: All subsequent get_engine/get_session_factory calls use this
        engine.  A second call replaces the first.
    """
    global _engine, _SessionFactory

    _engine = build_engine(database_url, echo=echo, pool_size=pool_size)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "echo": echo},
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory.

    The scheduler takes this so that each job run opens its own session.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def create_tables(engine: Engine | None = None) -> None:
    """Create every table registered by the rental modules."""
    from rental_kernel.db.base import Base
    from rental_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    Base.metadata.create_all(engine or get_engine())
