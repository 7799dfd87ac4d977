from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from notaryflow.models.custody import CustodyRequestStatus


# ---------------------------------------------------------------------------
# Custody requests
# ---------------------------------------------------------------------------


class CustodyRequestCreate(BaseModel):
    # Defaults to the acting person when omitted
    requester_id: UUID | None = None
    expected_return_date: date | None = None


class CustodyRequestTransition(BaseModel):
    status: CustodyRequestStatus
    location: str | None = Field(default=None, max_length=500)
    notes: str | None = None


class CustodyRequestRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_id: UUID
    requester_id: UUID
    created_by: UUID
    status: CustodyRequestStatus
    request_timestamp: datetime
    handler_user_id: UUID | None = None
    handled_timestamp: datetime | None = None
    pickup_timestamp: datetime | None = None
    expected_return_date: date | None = None
    actual_return_timestamp: datetime | None = None
    notes: str | None = None
    origin_holder_id: UUID | None = None
    origin_location: str | None = None


class CustodyRequestDetail(CustodyRequestRead):
    document_title: str | None = None
    requester_name: str | None = None
    handler_name: str | None = None


class CustodyRequestPage(BaseModel):
    requests: list[CustodyRequestDetail]
    total: int
    page: int
    total_pages: int


# ---------------------------------------------------------------------------
# Document custody projection and ledger
# ---------------------------------------------------------------------------


class DocumentCustodyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    current_holder_id: UUID | None = None
    current_location: str | None = None
    is_requested: bool
    active_requester_id: UUID | None = None
    requested_at: datetime | None = None
    active_request_id: UUID | None = None


class CustodyLedgerEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_id: UUID
    request_id: UUID | None = None
    location: str
    holder_user_id: UUID | None = None
    actor_user_id: UUID
    change_reason: str
    timestamp: datetime
