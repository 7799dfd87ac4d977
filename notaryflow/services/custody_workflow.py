"""Custody workflow engine for original (physical) documents.

Every public operation runs in its own transaction obtained from the
injected session factory. Mutating operations lock the document row first,
so all requests and transitions for one document are serialized while
different documents proceed in parallel. Request rows, ledger entries,
projection fields and notification rows are written in that single
transaction; events are published only after it commits.
"""

import logging
import math
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone

from prometheus_client import Counter
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from notaryflow.config import Settings
from notaryflow.config import settings as default_settings
from notaryflow.errors import (
    AlreadyTerminal,
    ConflictAlreadyRequested,
    CustodyError,
    InvalidTransition,
    StorageFailure,
    ValidationError,
)
from notaryflow.models.custody import (
    CustodyLedgerEntry,
    CustodyRequest,
    CustodyRequestStatus,
    Document,
    NotificationPriority,
)
from notaryflow.models.person import Person
from notaryflow.services.common import coerce_uuid
from notaryflow.services.custody_ledger import custody_ledger
from notaryflow.services.custody_projection import document_custody
from notaryflow.services.custody_requests import custody_requests
from notaryflow.services.directory import Directory, privileged_roles
from notaryflow.services.event import EventType, publish_event
from notaryflow.services.notification import Notifications
from notaryflow.services.notification import notifications as default_notifications

logger = logging.getLogger(__name__)

CUSTODY_OPERATIONS = Counter(
    "notaryflow_custody_operations_total",
    "Custody workflow operations by outcome",
    ["operation", "outcome"],
)

S = CustodyRequestStatus

VALID_TRANSITIONS: dict[CustodyRequestStatus, frozenset[CustodyRequestStatus]] = {
    S.pending_approval: frozenset(
        {S.approved_pending_pickup, S.rejected, S.cancelled}
    ),
    S.approved_pending_pickup: frozenset({S.checked_out}),
    S.checked_out: frozenset({S.returned}),
    S.returned: frozenset(),
    S.rejected: frozenset(),
    S.cancelled: frozenset(),
}

_EVENTS = {
    S.approved_pending_pickup: EventType.custody_approved,
    S.checked_out: EventType.custody_checked_out,
    S.returned: EventType.custody_returned,
    S.rejected: EventType.custody_rejected,
    S.cancelled: EventType.custody_cancelled,
}

DEFAULT_REJECTION_NOTE = "Request rejected by front desk."
DEFAULT_CANCELLATION_NOTE = "Request cancelled."


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def coerce_status(value) -> CustodyRequestStatus:
    if isinstance(value, CustodyRequestStatus):
        return value
    try:
        return CustodyRequestStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid status: {value}", {"status": str(value)})


class CustodyWorkflow:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        notifier: Notifications | None = None,
        people: Directory | None = None,
        config: Settings | None = None,
    ):
        self._session_factory = session_factory
        self._notifications = notifier or default_notifications
        self._settings = config or default_settings
        self._directory = people or Directory(
            privileged_roles(self._settings.custody_privileged_roles)
        )

    @property
    def directory(self) -> Directory:
        return self._directory

    # ------------------------------------------------------------------
    # Transaction scope
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self, operation: str, **context):
        try:
            with self._session_factory.begin() as db:
                yield db
        except CustodyError as exc:
            CUSTODY_OPERATIONS.labels(operation=operation, outcome=exc.code).inc()
            logger.info(
                "Custody %s refused (%s): %s %s",
                operation,
                exc.code,
                exc.message,
                context,
            )
            raise
        except SQLAlchemyError as exc:
            CUSTODY_OPERATIONS.labels(
                operation=operation, outcome=StorageFailure.code
            ).inc()
            logger.exception("Custody %s failed in storage: %s", operation, context)
            raise StorageFailure(
                f"Custody {operation} could not be stored", context
            ) from exc
        CUSTODY_OPERATIONS.labels(operation=operation, outcome="ok").inc()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def request_custody(
        self,
        document_id,
        requester_id,
        actor_id,
        expected_return_date: date | None = None,
    ) -> CustodyRequest:
        doc_uuid = coerce_uuid(document_id)
        requester_uuid = coerce_uuid(requester_id)
        actor_uuid = coerce_uuid(actor_id)
        context = {
            "document_id": str(doc_uuid),
            "requester_id": str(requester_uuid),
            "actor_id": str(actor_uuid),
        }
        with self._transaction("request", **context) as db:
            document = document_custody.get_for_update(
                db, doc_uuid, lock_timeout_ms=self._settings.db_lock_timeout_ms
            )
            requester = self._directory.get_person(db, requester_uuid)
            actor = (
                requester
                if actor_uuid == requester_uuid
                else self._directory.get_person(db, actor_uuid)
            )
            if not requester.is_active:
                raise ValidationError(
                    "Custody can only be requested for an active person",
                    {"requester_id": str(requester.id)},
                )
            if document.is_requested:
                raise ConflictAlreadyRequested(
                    "Document already has an open custody request",
                    {
                        "document_id": str(document.id),
                        "active_request_id": str(document.active_request_id),
                    },
                )
            now = _now()
            request = custody_requests.create(
                db,
                document_id=document.id,
                requester_id=requester.id,
                created_by=actor.id,
                request_timestamp=now,
                expected_return_date=expected_return_date,
                origin_holder_id=document.current_holder_id,
                origin_location=document.current_location,
            )
            document_custody.open_request(db, document, request, now)
            recorded = self._notify_requested(db, document, request, requester, actor)

        logger.info(
            "Custody request %s opened on document %s for %s by %s",
            request.id,
            doc_uuid,
            requester_uuid,
            actor_uuid,
        )
        self._publish(EventType.custody_requested, request, actor_uuid, recorded)
        return request

    def transition_request(
        self,
        request_id,
        new_status,
        actor_id,
        location: str | None = None,
        notes: str | None = None,
    ) -> CustodyRequest:
        target = coerce_status(new_status)
        req_uuid = coerce_uuid(request_id)
        actor_uuid = coerce_uuid(actor_id)
        context = {
            "request_id": str(req_uuid),
            "status": target.value,
            "actor_id": str(actor_uuid),
        }
        with self._transaction("transition", **context) as db:
            request = custody_requests.get(db, req_uuid)
            document = document_custody.get_for_update(
                db,
                request.document_id,
                lock_timeout_ms=self._settings.db_lock_timeout_ms,
            )
            # Re-read under the document lock
            db.refresh(request)
            current = request.status
            if current.is_terminal:
                raise AlreadyTerminal(
                    "Custody request is already closed",
                    {"request_id": str(request.id), "status": current.value},
                )
            if target not in VALID_TRANSITIONS[current]:
                raise InvalidTransition(
                    f"Cannot move a {current.value} request to {target.value}",
                    {
                        "request_id": str(request.id),
                        "status": current.value,
                        "requested_status": target.value,
                    },
                )
            actor = self._directory.get_person(db, actor_uuid)
            requester = self._directory.get_person(db, request.requester_id)
            now = _now()
            if target is S.approved_pending_pickup:
                recorded = self._approve(db, request, document, actor, requester, now)
            elif target is S.checked_out:
                recorded = self._check_out(
                    db, request, document, actor, requester, location, now
                )
            elif target is S.returned:
                recorded = self._return(
                    db, request, document, actor, requester, location, now
                )
            else:
                recorded = self._close(
                    db, request, document, actor, requester, target, notes, now
                )

        logger.info(
            "Custody request %s moved %s -> %s by %s",
            req_uuid,
            current.value,
            target.value,
            actor_uuid,
        )
        self._publish(_EVENTS[target], request, actor_uuid, recorded)
        return request

    # ------------------------------------------------------------------
    # Transition effects (run inside the operation's transaction)
    # ------------------------------------------------------------------

    def _approve(self, db, request, document, actor, requester, now) -> list[dict]:
        actor_name = self._display_name(db, actor)
        custody_requests.update_status(
            db,
            request,
            S.pending_approval,
            S.approved_pending_pickup,
            handler_user_id=actor.id,
            handled_timestamp=now,
        )
        return [
            self._emit(
                db,
                requester,
                EventType.custody_approved,
                f"Custody request approved: {document.title}",
                f'Your request for the original of "{document.title}" was approved '
                f"by {actor_name}. It is ready for pickup.",
                document,
                request,
                NotificationPriority.high,
            )
        ]

    def _check_out(
        self, db, request, document, actor, requester, location, now
    ) -> list[dict]:
        actor_name = self._display_name(db, actor)
        requester_name = self._display_name(db, requester)
        location = _clean(location) or f"In possession of {requester_name}"
        custody_requests.update_status(
            db,
            request,
            S.approved_pending_pickup,
            S.checked_out,
            pickup_timestamp=now,
            handler_user_id=actor.id,
            handled_timestamp=now,
        )
        document_custody.move(db, document, requester.id, location)
        custody_ledger.append(
            db,
            document_id=document.id,
            location=location,
            holder_user_id=requester.id,
            actor_user_id=actor.id,
            change_reason=f"Checked out to {requester_name}",
            request_id=request.id,
            timestamp=now,
        )
        return [
            self._emit(
                db,
                requester,
                EventType.custody_checked_out,
                f"Document checked out: {document.title}",
                f'The original of "{document.title}" was handed over to you '
                f"by {actor_name}. Location: {location}.",
                document,
                request,
            )
        ]

    def _return(
        self, db, request, document, actor, requester, location, now
    ) -> list[dict]:
        actor_name = self._display_name(db, actor)
        requester_name = self._display_name(db, requester)
        location = _clean(location)
        if location is None:
            if self._settings.custody_require_return_location:
                raise ValidationError(
                    "A storage location is required to return a document",
                    {"field": "location", "request_id": str(request.id)},
                )
            location = self._settings.custody_default_storage_location
        custody_requests.update_status(
            db,
            request,
            S.checked_out,
            S.returned,
            actual_return_timestamp=now,
            handler_user_id=actor.id,
            handled_timestamp=now,
        )
        # The handler accepting the return becomes holder of record
        document_custody.clear_request(
            db, document, current_holder_id=actor.id, current_location=location
        )
        custody_ledger.append(
            db,
            document_id=document.id,
            location=location,
            holder_user_id=actor.id,
            actor_user_id=actor.id,
            change_reason=f"Returned by {requester_name}, received by {actor_name}",
            request_id=request.id,
            timestamp=now,
        )
        return [
            self._emit(
                db,
                requester,
                EventType.custody_returned,
                f"Document returned: {document.title}",
                f'The original of "{document.title}" was received back by '
                f"{actor_name} and stored at {location}.",
                document,
                request,
            )
        ]

    def _close(
        self, db, request, document, actor, requester, target, notes, now
    ) -> list[dict]:
        actor_name = self._display_name(db, actor)
        if target is S.rejected:
            note = _clean(notes) or DEFAULT_REJECTION_NOTE
            title = f"Custody request rejected: {document.title}"
            body = (
                f'Your request for the original of "{document.title}" was '
                f"rejected by {actor_name}. Reason: {note}"
            )
        else:
            note = _clean(notes) or DEFAULT_CANCELLATION_NOTE
            title = f"Custody request cancelled: {document.title}"
            body = (
                f'The request for the original of "{document.title}" was '
                f"cancelled by {actor_name}. {note}"
            )
        custody_requests.update_status(
            db,
            request,
            S.pending_approval,
            target,
            notes=note,
            handler_user_id=actor.id,
            handled_timestamp=now,
        )
        # Custody itself does not move
        document_custody.clear_request(db, document)
        return [
            self._emit(
                db, requester, _EVENTS[target], title, body, document, request
            )
        ]

    def _notify_requested(self, db, document, request, requester, actor) -> list[dict]:
        recorded = []
        actor_name = self._display_name(db, actor)
        requester_name = self._display_name(db, requester)
        body = f'{requester_name} requested the original of "{document.title}".'
        if actor.id != requester.id:
            body += f" Submitted by {actor_name} on their behalf."
        for person in self._directory.list_privileged(db):
            # The requester of an on-behalf request gets its own notice below
            if person.id in (actor.id, requester.id):
                continue
            recorded.append(
                self._emit(
                    db,
                    person,
                    EventType.custody_requested,
                    f"New custody request: {document.title}",
                    body,
                    document,
                    request,
                )
            )
        if actor.id != requester.id:
            recorded.append(
                self._emit(
                    db,
                    requester,
                    EventType.custody_requested,
                    f"Custody requested for you: {document.title}",
                    f'{actor_name} requested the original of "{document.title}" '
                    "on your behalf.",
                    document,
                    request,
                )
            )
        return recorded

    def _display_name(self, db: Session, person: Person) -> str:
        return self._directory.get_display_name(db, person.id)

    def _emit(
        self,
        db: Session,
        person: Person,
        event_type: EventType,
        title: str,
        body: str,
        document: Document,
        request: CustodyRequest,
        priority: NotificationPriority = NotificationPriority.medium,
    ) -> dict:
        notification = self._notifications.emit(
            db,
            person_id=person.id,
            event_type=event_type.value,
            title=title,
            body=body,
            related_document_id=document.id,
            related_request_id=request.id,
            priority=priority,
        )
        return {
            "id": str(notification.id),
            "person_id": str(person.id),
            "title": title,
            "body": body,
        }

    def _publish(
        self,
        event_type: EventType,
        request: CustodyRequest,
        actor_id: uuid.UUID,
        recorded: list[dict],
    ) -> None:
        publish_event(
            event_type,
            entity_type="custody_request",
            entity_id=request.id,
            actor_id=actor_id,
            document_id=request.document_id,
            payload={"status": request.status.value, "notifications": recorded},
        )

    # ------------------------------------------------------------------
    # Queries (no locks)
    # ------------------------------------------------------------------

    def get_request(self, request_id) -> CustodyRequest:
        with self._session_factory() as db:
            return custody_requests.get_detail(db, request_id)

    def list_requests(
        self,
        statuses=None,
        requester_id=None,
        document_id=None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        with self._session_factory() as db:
            items, total = custody_requests.list_by_filter(
                db,
                statuses=statuses,
                requester_id=requester_id,
                document_id=document_id,
                page=page,
                limit=limit,
            )
        return {
            "requests": items,
            "total": total,
            "page": page,
            "total_pages": math.ceil(total / limit) if total else 0,
        }

    def get_location_history(self, document_id) -> list[CustodyLedgerEntry]:
        with self._session_factory() as db:
            document = document_custody.get(db, document_id)
            return custody_ledger.list_for_document(db, document.id)

    def get_current_custody(self, document_id) -> Document:
        with self._session_factory() as db:
            return document_custody.get(db, document_id)

    def document_exists(self, document_id) -> bool:
        with self._session_factory() as db:
            return document_custody.exists(db, document_id)
