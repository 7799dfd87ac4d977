from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from notaryflow.models.custody import NotificationPriority


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    person_id: UUID
    event_type: str
    title: str
    body: str
    priority: NotificationPriority
    related_document_id: UUID | None = None
    related_request_id: UUID | None = None
    is_read: bool
    read_at: datetime | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class MarkReadRequest(BaseModel):
    notification_ids: list[UUID]


class UnreadCountResponse(BaseModel):
    count: int
