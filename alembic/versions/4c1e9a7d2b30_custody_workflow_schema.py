"""custody workflow schema

Revision ID: 4c1e9a7d2b30
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa

revision = "4c1e9a7d2b30"
down_revision = None
branch_labels = None
depends_on = None

_PERSON_ROLES = ("admin", "cs", "manager", "staff", "notary")
_DOCUMENT_STATUSES = ("draft", "pending_review", "notarized", "archived")
_REQUEST_STATUSES = (
    "pending_approval",
    "approved_pending_pickup",
    "checked_out",
    "returned",
    "rejected",
    "cancelled",
)
_PRIORITIES = ("low", "medium", "high")
_OPEN_STATUSES = (
    "status IN ('approved_pending_pickup', 'checked_out', 'pending_approval')"
)


def upgrade() -> None:
    # --- Enums ---
    personrole = sa.Enum(*_PERSON_ROLES, name="personrole")
    documentstatus = sa.Enum(*_DOCUMENT_STATUSES, name="documentstatus")
    custodyrequeststatus = sa.Enum(*_REQUEST_STATUSES, name="custodyrequeststatus")
    notificationpriority = sa.Enum(*_PRIORITIES, name="notificationpriority")
    for enum_type in (
        personrole,
        documentstatus,
        custodyrequeststatus,
        notificationpriority,
    ):
        enum_type.create(op.get_bind(), checkfirst=True)

    # --- People ---
    op.create_table(
        "people",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("first_name", sa.String(length=80), nullable=False),
        sa.Column("last_name", sa.String(length=80), nullable=False),
        sa.Column("display_name", sa.String(length=160), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column(
            "role",
            sa.Enum(*_PERSON_ROLES, name="personrole", create_type=False),
            nullable=True,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_people_email"),
    )
    op.create_index("ix_people_role", "people", ["role"])

    # --- Documents (custody projection columns included) ---
    op.create_table(
        "documents",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("document_type", sa.String(length=255), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*_DOCUMENT_STATUSES, name="documentstatus", create_type=False),
            nullable=True,
        ),
        sa.Column("storage_path", sa.String(length=1024), nullable=True),
        sa.Column("current_holder_id", sa.UUID(), nullable=True),
        sa.Column("current_location", sa.String(length=500), nullable=True),
        sa.Column("is_requested", sa.Boolean(), nullable=False),
        sa.Column("active_requester_id", sa.UUID(), nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("active_request_id", sa.UUID(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["current_holder_id"], ["people.id"]),
        sa.ForeignKeyConstraint(["active_requester_id"], ["people.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "(is_requested AND active_request_id IS NOT NULL"
            " AND active_requester_id IS NOT NULL AND requested_at IS NOT NULL)"
            " OR (NOT is_requested AND active_request_id IS NULL"
            " AND active_requester_id IS NULL AND requested_at IS NULL)",
            name="ck_documents_custody_projection",
        ),
    )
    op.create_index("ix_documents_status", "documents", ["status"])
    op.create_index(
        "ix_documents_current_holder_id", "documents", ["current_holder_id"]
    )

    # --- Custody requests ---
    op.create_table(
        "custody_requests",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("requester_id", sa.UUID(), nullable=False),
        sa.Column("created_by", sa.UUID(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*_REQUEST_STATUSES, name="custodyrequeststatus", create_type=False),
            nullable=False,
        ),
        sa.Column("request_timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("handler_user_id", sa.UUID(), nullable=True),
        sa.Column("handled_timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pickup_timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expected_return_date", sa.Date(), nullable=True),
        sa.Column(
            "actual_return_timestamp", sa.DateTime(timezone=True), nullable=True
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("origin_holder_id", sa.UUID(), nullable=True),
        sa.Column("origin_location", sa.String(length=500), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"]),
        sa.ForeignKeyConstraint(["requester_id"], ["people.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["people.id"]),
        sa.ForeignKeyConstraint(["handler_user_id"], ["people.id"]),
        sa.ForeignKeyConstraint(["origin_holder_id"], ["people.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_custody_requests_document_id", "custody_requests", ["document_id"]
    )
    op.create_index(
        "ix_custody_requests_requester_id", "custody_requests", ["requester_id"]
    )
    op.create_index("ix_custody_requests_status", "custody_requests", ["status"])
    op.create_index(
        "ix_custody_requests_request_timestamp",
        "custody_requests",
        ["request_timestamp"],
    )
    op.create_index(
        "uq_custody_requests_open_document",
        "custody_requests",
        ["document_id"],
        unique=True,
        postgresql_where=sa.text(_OPEN_STATUSES),
        sqlite_where=sa.text(_OPEN_STATUSES),
    )
    op.create_foreign_key(
        "fk_documents_active_request_id",
        "documents",
        "custody_requests",
        ["active_request_id"],
        ["id"],
    )

    # --- Custody ledger ---
    op.create_table(
        "custody_ledger_entries",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("request_id", sa.UUID(), nullable=True),
        sa.Column("location", sa.String(length=500), nullable=False),
        sa.Column("holder_user_id", sa.UUID(), nullable=True),
        sa.Column("actor_user_id", sa.UUID(), nullable=False),
        sa.Column("change_reason", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"]),
        sa.ForeignKeyConstraint(["request_id"], ["custody_requests.id"]),
        sa.ForeignKeyConstraint(["holder_user_id"], ["people.id"]),
        sa.ForeignKeyConstraint(["actor_user_id"], ["people.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_custody_ledger_entries_document_id",
        "custody_ledger_entries",
        ["document_id"],
    )
    op.create_index(
        "ix_custody_ledger_entries_timestamp",
        "custody_ledger_entries",
        ["timestamp"],
    )

    # --- Notifications ---
    op.create_table(
        "notifications",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("person_id", sa.UUID(), nullable=False),
        sa.Column("event_type", sa.String(length=100), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column(
            "priority",
            sa.Enum(*_PRIORITIES, name="notificationpriority", create_type=False),
            nullable=True,
        ),
        sa.Column("related_document_id", sa.UUID(), nullable=True),
        sa.Column("related_request_id", sa.UUID(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"]),
        sa.ForeignKeyConstraint(["related_document_id"], ["documents.id"]),
        sa.ForeignKeyConstraint(["related_request_id"], ["custody_requests.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_person_id", "notifications", ["person_id"])
    op.create_index("ix_notifications_is_read", "notifications", ["is_read"])
    op.create_index("ix_notifications_event_type", "notifications", ["event_type"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("custody_ledger_entries")
    op.drop_constraint(
        "fk_documents_active_request_id", "documents", type_="foreignkey"
    )
    op.drop_table("custody_requests")
    op.drop_table("documents")
    op.drop_table("people")
    for name in (
        "notificationpriority",
        "custodyrequeststatus",
        "documentstatus",
        "personrole",
    ):
        sa.Enum(name=name).drop(op.get_bind(), checkfirst=True)
