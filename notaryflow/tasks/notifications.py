import logging

from notaryflow.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    name="notaryflow.tasks.notifications.dispatch_notifications", ignore_result=True
)
def dispatch_notifications(
    event_type: str,
    entity_type: str,
    entity_id: str,
    actor_id: str | None = None,
    document_id: str | None = None,
    payload: dict | None = None,
) -> None:
    """Queue delivery for each notification recorded with the event.

    The notification rows were written in the workflow transaction; this
    task only moves them towards their recipients.
    """
    recorded = (payload or {}).get("notifications", [])
    for item in recorded:
        try:
            send_notification_email.delay(
                notification_id=item["id"],
                person_id=item["person_id"],
                title=item["title"],
                body=item["body"],
            )
        except Exception as e:
            logger.exception(
                "Failed to queue delivery of notification %s: %s", item.get("id"), e
            )
    logger.info(
        "Dispatched %d notifications for event %s on %s/%s",
        len(recorded),
        event_type,
        entity_type,
        entity_id,
    )


@celery_app.task(
    name="notaryflow.tasks.notifications.send_notification_email", ignore_result=True
)
def send_notification_email(
    notification_id: str,
    person_id: str,
    title: str,
    body: str,
) -> None:
    """Send notification email to a person.

    Placeholder until an email backend is configured.
    """
    logger.info(
        "Would send email for notification %s to person %s: %s",
        notification_id,
        person_id,
        title,
    )
