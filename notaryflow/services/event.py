import enum
import logging
import uuid

logger = logging.getLogger(__name__)


class EventType(enum.Enum):
    custody_requested = "custody.requested"
    custody_approved = "custody.approved"
    custody_rejected = "custody.rejected"
    custody_cancelled = "custody.cancelled"
    custody_checked_out = "custody.checked_out"
    custody_returned = "custody.returned"


def publish_event(
    event_type: EventType,
    entity_type: str,
    entity_id: str | uuid.UUID,
    actor_id: str | uuid.UUID | None = None,
    document_id: str | uuid.UUID | None = None,
    payload: dict | None = None,
) -> None:
    """Fire-and-forget event publishing for already-committed changes.

    Queues a Celery task that hands recorded notifications to delivery.
    Never raises: the state change is durable whether or not the broker
    is reachable, so failures are logged and dropped.
    """
    try:
        from notaryflow.tasks.events import process_event

        process_event.delay(
            event_type=event_type.value,
            entity_type=entity_type,
            entity_id=str(entity_id),
            actor_id=str(actor_id) if actor_id else None,
            document_id=str(document_id) if document_id else None,
            payload=payload or {},
        )
        logger.debug(
            "Published event %s for %s/%s", event_type.value, entity_type, entity_id
        )
    except Exception as e:
        logger.exception("Failed to publish event %s: %s", event_type.value, e)
