from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text, Uuid, func
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# Hosted tables use JSONB; the generic JSON variant keeps local test databases working.
JsonPayload = JSON().with_variant(JSONB(), "postgresql")
TextList = JSON().with_variant(ARRAY(Text()), "postgresql")


def _new_id() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    pass


class Profile(Base):
    __tablename__ = "profiles"

    # Profiles are provisioned by the hosted auth service; this service only reads them.
    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    is_admin: Mapped[bool | None] = mapped_column(Boolean, nullable=True, default=False)
    role: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class SyncLog(Base):
    __tablename__ = "sync_logs"
    __table_args__ = (
        Index("ix_sync_logs_status_trigger", "status", "trigger_type"),
        Index("ix_sync_logs_run_started", "run_started"),
    )

    # Rows are written by the sync worker and trigger procedures; read here for the job guard and logs view.
    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=_new_id)
    source: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, default="running")
    trigger_type: Mapped[str | None] = mapped_column(String, nullable=True)
    triggered_by: Mapped[str | None] = mapped_column(String, nullable=True)
    run_started: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), server_default=func.now())
    run_finished: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    alerts_fetched: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)
    alerts_inserted: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)
    alerts_updated: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)
    alerts_skipped: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)
    errors: Mapped[list[str] | None] = mapped_column(TextList, nullable=True)
    # "metadata" is reserved on declarative classes.
    run_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JsonPayload, nullable=True, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Alert(Base):
    __tablename__ = "alerts"

    # Owned by the ingestion pipeline; only the columns read here are mapped.
    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=_new_id)
    external_id: Mapped[str] = mapped_column(Text)
    source: Mapped[str] = mapped_column(Text, index=True)
    title: Mapped[str] = mapped_column(Text)
    jurisdiction: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(Text, nullable=True)
    date_published: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class AdminOperation(Base):
    __tablename__ = "admin_operations"

    # Append-only audit trail of operator actions.
    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=_new_id)
    operation_type: Mapped[str] = mapped_column(Text)
    performed_by: Mapped[str | None] = mapped_column(Uuid(as_uuid=False), nullable=True)
    details: Mapped[dict[str, Any]] = mapped_column(JsonPayload, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )


class SearchCacheEntry(Base):
    __tablename__ = "search_cache"
    __table_args__ = (Index("ix_search_cache_expires_at", "expires_at"),)

    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=_new_id)
    # Deterministic key over normalized query + filters; upserts conflict on it intentionally.
    cache_key: Mapped[str] = mapped_column(String(255), unique=True)
    query: Mapped[str] = mapped_column(String(500))
    result_data: Mapped[Any] = mapped_column(JsonPayload)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
