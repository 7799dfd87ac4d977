from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from notaryflow.api.deps import get_current_actor, get_db
from notaryflow.errors import NotFound
from notaryflow.models.person import Person
from notaryflow.schemas.common import ListResponse
from notaryflow.schemas.notification import (
    MarkReadRequest,
    NotificationRead,
    UnreadCountResponse,
)
from notaryflow.services.notification import notifications

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _own_notification(db: Session, notification_id: str, actor: Person):
    notification = notifications.get(db, notification_id)
    if notification.person_id != actor.id:
        raise NotFound("Notification not found")
    return notification


@router.get("/unread-count", response_model=UnreadCountResponse)
def unread_count(
    actor: Person = Depends(get_current_actor), db: Session = Depends(get_db)
):
    count = notifications.unread_count(db, str(actor.id))
    return {"count": count}


@router.get("", response_model=ListResponse[NotificationRead])
def list_notifications(
    event_type: str | None = None,
    is_read: bool | None = None,
    is_active: bool | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=25, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    actor: Person = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return notifications.list_response(
        db,
        str(actor.id),
        event_type,
        is_read,
        is_active,
        order_by,
        order_dir,
        limit,
        offset,
    )


@router.post("/mark-read")
def mark_read(
    payload: MarkReadRequest,
    actor: Person = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    count = notifications.mark_read(
        db, [str(nid) for nid in payload.notification_ids], str(actor.id)
    )
    return {"marked": count}


@router.post("/mark-all-read")
def mark_all_read(
    actor: Person = Depends(get_current_actor), db: Session = Depends(get_db)
):
    count = notifications.mark_all_read(db, str(actor.id))
    return {"marked": count}


@router.post("/dismiss-all")
def dismiss_all(
    actor: Person = Depends(get_current_actor), db: Session = Depends(get_db)
):
    count = notifications.dismiss_all(db, str(actor.id))
    return {"dismissed": count}


@router.get("/{notification_id}", response_model=NotificationRead)
def get_notification(
    notification_id: str,
    actor: Person = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return _own_notification(db, notification_id, actor)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def dismiss_notification(
    notification_id: str,
    actor: Person = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    _own_notification(db, notification_id, actor)
    notifications.dismiss(db, notification_id)
