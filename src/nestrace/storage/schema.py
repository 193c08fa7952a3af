"""SQLAlchemy ORM schema for nestrace.

Defines the database tables: events, _nestrace_meta.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, JSON, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all nestrace ORM models."""

    pass


class EventRow(Base):
    """One captured event. ``trace_id`` groups the events of one invocation."""

    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    trace_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    kind: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    phase: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    run_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    parent_run_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    node_name: Mapped[str] = mapped_column(String(255), nullable=False)
    parent_node_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    execution_path_json: Mapped[list] = mapped_column(JSON, nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    metadata_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)


class NestraceMetaRow(Base):
    """Key-value metadata for the nestrace database itself (e.g., schema version)."""

    __tablename__ = "_nestrace_meta"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
