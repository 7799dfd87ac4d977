import enum
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from notaryflow.db import Base


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DocumentStatus(enum.Enum):
    draft = "draft"
    pending_review = "pending_review"
    notarized = "notarized"
    archived = "archived"


class CustodyRequestStatus(enum.Enum):
    pending_approval = "pending_approval"
    approved_pending_pickup = "approved_pending_pickup"
    checked_out = "checked_out"
    returned = "returned"
    rejected = "rejected"
    cancelled = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        CustodyRequestStatus.returned,
        CustodyRequestStatus.rejected,
        CustodyRequestStatus.cancelled,
    }
)
OPEN_STATUSES = frozenset(set(CustodyRequestStatus) - TERMINAL_STATUSES)


class NotificationPriority(enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"


# ---------------------------------------------------------------------------
# Documents (custody projection lives on the document row)
# ---------------------------------------------------------------------------


class Document(Base):
    __tablename__ = "documents"
    __table_args__ = (
        Index("ix_documents_status", "status"),
        Index("ix_documents_current_holder_id", "current_holder_id"),
        CheckConstraint(
            "(is_requested AND active_request_id IS NOT NULL"
            " AND active_requester_id IS NOT NULL AND requested_at IS NOT NULL)"
            " OR (NOT is_requested AND active_request_id IS NULL"
            " AND active_requester_id IS NULL AND requested_at IS NULL)",
            name="ck_documents_custody_projection",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    document_type: Mapped[str | None] = mapped_column(String(255))
    status: Mapped[DocumentStatus] = mapped_column(
        Enum(DocumentStatus), default=DocumentStatus.draft
    )
    storage_path: Mapped[str | None] = mapped_column(String(1024))

    # Denormalized custody state (written only by the custody workflow)
    current_holder_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id")
    )
    current_location: Mapped[str | None] = mapped_column(String(500))
    is_requested: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    active_requester_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id")
    )
    requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    active_request_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey(
            "custody_requests.id",
            use_alter=True,
            name="fk_documents_active_request_id",
        ),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    current_holder = relationship("Person", foreign_keys=[current_holder_id])
    active_requester = relationship("Person", foreign_keys=[active_requester_id])


# ---------------------------------------------------------------------------
# Custody requests, one row per request attempt
# ---------------------------------------------------------------------------

_OPEN_STATUS_SQL = "status IN ({})".format(
    ", ".join(f"'{s.name}'" for s in sorted(OPEN_STATUSES, key=lambda s: s.name))
)


class CustodyRequest(Base):
    __tablename__ = "custody_requests"
    __table_args__ = (
        Index("ix_custody_requests_document_id", "document_id"),
        Index("ix_custody_requests_requester_id", "requester_id"),
        Index("ix_custody_requests_status", "status"),
        Index("ix_custody_requests_request_timestamp", "request_timestamp"),
        # At most one open request per document
        Index(
            "uq_custody_requests_open_document",
            "document_id",
            unique=True,
            postgresql_where=text(_OPEN_STATUS_SQL),
            sqlite_where=text(_OPEN_STATUS_SQL),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id"), nullable=False
    )
    requester_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id"), nullable=False
    )
    created_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id"), nullable=False
    )
    status: Mapped[CustodyRequestStatus] = mapped_column(
        Enum(CustodyRequestStatus),
        nullable=False,
        default=CustodyRequestStatus.pending_approval,
    )
    request_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    handler_user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id")
    )
    handled_timestamp: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    pickup_timestamp: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    expected_return_date: Mapped[date | None] = mapped_column(Date)
    actual_return_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    notes: Mapped[str | None] = mapped_column(Text)

    # Custody as it stood when the request was made
    origin_holder_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id")
    )
    origin_location: Mapped[str | None] = mapped_column(String(500))

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    document = relationship("Document", foreign_keys=[document_id])
    requester = relationship("Person", foreign_keys=[requester_id])
    handler = relationship("Person", foreign_keys=[handler_user_id])

    @property
    def document_title(self) -> str | None:
        return self.document.title if self.document else None

    @property
    def requester_name(self) -> str | None:
        return self.requester.name if self.requester else None

    @property
    def handler_name(self) -> str | None:
        return self.handler.name if self.handler else None


# ---------------------------------------------------------------------------
# Custody ledger (append-only, no updated_at)
# ---------------------------------------------------------------------------


class CustodyLedgerEntry(Base):
    __tablename__ = "custody_ledger_entries"
    __table_args__ = (
        Index("ix_custody_ledger_entries_document_id", "document_id"),
        Index("ix_custody_ledger_entries_timestamp", "timestamp"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id"), nullable=False
    )
    request_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("custody_requests.id")
    )
    location: Mapped[str] = mapped_column(String(500), nullable=False)
    holder_user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id")
    )
    actor_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id"), nullable=False
    )
    change_reason: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_person_id", "person_id"),
        Index("ix_notifications_is_read", "is_read"),
        Index("ix_notifications_event_type", "event_type"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    person_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id"), nullable=False
    )
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[NotificationPriority] = mapped_column(
        Enum(NotificationPriority), default=NotificationPriority.medium
    )
    related_document_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id")
    )
    related_request_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("custody_requests.id")
    )
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    person = relationship("Person", foreign_keys=[person_id])
