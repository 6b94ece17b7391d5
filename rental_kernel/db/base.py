"""
Module: rental_kernel.db.base
Responsibility: Declarative base shared by the leasing, payment and
    termination tables.  Fixes how ids, money, dates and timestamps map to
    columns so every module stores them the same way.
Architecture position: Kernel > DB.  Every ``orm.py`` imports from here;
    this module imports nothing from the rental packages.

Invariants enforced:
    - Ids are uuid4 values stored as 36-char strings, which works the same
      on PostgreSQL and SQLite.
    - ``Decimal`` annotations become ``Numeric(14, 2)``: rent, amounts paid
      and penalties are kept to the cent and never as floats.
    - ``TrackedBase`` tables carry database-assigned created/updated times.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import Date, DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """``uuid.UUID`` in Python, ``VARCHAR(36)`` in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        UUID: UUIDString(),
        Decimal: Numeric(14, 2),
        date: Date,
        datetime: DateTime(timezone=True),
        int: Integer,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """Adds ``created_at`` (set once) and ``updated_at`` (bumped on UPDATE)."""

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
