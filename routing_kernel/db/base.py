"""
Module: routing_kernel.db.base
Responsibility: Declarative base shared by the routing ORM models.
Architecture position: Kernel > DB.  Lowest import target inside the
    kernel; must not import models, services or engines.

Invariants enforced:
    - Every row is keyed by a uuid4 stored as a 36-character string, so the
      same schema runs on PostgreSQL and SQLite.
    - Python ``int`` columns are BIGINT; quota counters never overflow.
    - Timestamps are timezone-aware and set by the database.
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """uuid.UUID in Python, String(36) in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    """Declarative base: uuid4 primary key plus the shared type map."""

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TimestampedBase(Base):
    """
    Abstract base adding created_at / updated_at.

    Both default to the database clock; updated_at moves on every UPDATE,
    so a counter row shows when it last took a reservation.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
