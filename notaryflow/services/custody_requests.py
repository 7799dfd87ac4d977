import logging
import uuid
from collections.abc import Iterable
from datetime import date, datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from notaryflow.errors import (
    AlreadyTerminal,
    ConflictAlreadyRequested,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from notaryflow.models.custody import CustodyRequest, CustodyRequestStatus
from notaryflow.services.common import coerce_uuid

logger = logging.getLogger(__name__)

_DETAIL_OPTIONS = (
    selectinload(CustodyRequest.document),
    selectinload(CustodyRequest.requester),
    selectinload(CustodyRequest.handler),
)


def _coerce_statuses(
    statuses: Iterable[CustodyRequestStatus | str] | CustodyRequestStatus | str | None,
) -> list[CustodyRequestStatus]:
    if statuses is None:
        return []
    if isinstance(statuses, (str, CustodyRequestStatus)):
        statuses = [statuses]
    coerced = []
    for status in statuses:
        if isinstance(status, CustodyRequestStatus):
            coerced.append(status)
            continue
        try:
            coerced.append(CustodyRequestStatus(status))
        except ValueError:
            raise ValidationError(f"Invalid status: {status}")
    return coerced


class CustodyRequests:
    @staticmethod
    def create(
        db: Session,
        document_id: uuid.UUID,
        requester_id: uuid.UUID,
        created_by: uuid.UUID,
        request_timestamp: datetime | None = None,
        expected_return_date: date | None = None,
        origin_holder_id: uuid.UUID | None = None,
        origin_location: str | None = None,
    ) -> CustodyRequest:
        request = CustodyRequest(
            document_id=document_id,
            requester_id=requester_id,
            created_by=created_by,
            status=CustodyRequestStatus.pending_approval,
            request_timestamp=request_timestamp or datetime.now(timezone.utc),
            expected_return_date=expected_return_date,
            origin_holder_id=origin_holder_id,
            origin_location=origin_location,
        )
        db.add(request)
        try:
            db.flush()
        except IntegrityError as exc:
            # The partial unique index caught a second open request
            raise ConflictAlreadyRequested(
                "Document already has an open custody request",
                {"document_id": str(document_id)},
            ) from exc
        return request

    @staticmethod
    def get(db: Session, request_id) -> CustodyRequest:
        request = db.get(CustodyRequest, coerce_uuid(request_id))
        if not request:
            raise NotFound(
                "Custody request not found", {"request_id": str(request_id)}
            )
        return request

    @staticmethod
    def get_detail(db: Session, request_id) -> CustodyRequest:
        stmt = (
            select(CustodyRequest)
            .where(CustodyRequest.id == coerce_uuid(request_id))
            .options(*_DETAIL_OPTIONS)
        )
        request = db.scalar(stmt)
        if not request:
            raise NotFound(
                "Custody request not found", {"request_id": str(request_id)}
            )
        return request

    @staticmethod
    def update_status(
        db: Session,
        request: CustodyRequest,
        expected_status: CustodyRequestStatus,
        new_status: CustodyRequestStatus,
        **fields,
    ) -> CustodyRequest:
        """Compare-and-set the status; never overwrites a concurrent change."""
        stmt = (
            update(CustodyRequest)
            .where(
                CustodyRequest.id == request.id,
                CustodyRequest.status == expected_status,
            )
            .values(status=new_status, **fields)
            .execution_options(synchronize_session=False)
        )
        result = db.execute(stmt)
        db.refresh(request)
        if result.rowcount != 1:
            details = {
                "request_id": str(request.id),
                "status": request.status.value,
                "requested_status": new_status.value,
            }
            if request.status.is_terminal:
                raise AlreadyTerminal("Custody request is already closed", details)
            raise InvalidTransition(
                "Custody request changed while it was being updated", details
            )
        logger.info(
            "Custody request %s: %s -> %s",
            request.id,
            expected_status.value,
            new_status.value,
        )
        return request

    @staticmethod
    def list_by_filter(
        db: Session,
        statuses=None,
        requester_id=None,
        document_id=None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[CustodyRequest], int]:
        if page < 1:
            raise ValidationError("page must be >= 1")
        if limit < 1:
            raise ValidationError("limit must be >= 1")
        conditions = []
        status_values = _coerce_statuses(statuses)
        if status_values:
            conditions.append(CustodyRequest.status.in_(status_values))
        if requester_id is not None:
            conditions.append(CustodyRequest.requester_id == coerce_uuid(requester_id))
        if document_id is not None:
            conditions.append(CustodyRequest.document_id == coerce_uuid(document_id))

        total = db.scalar(
            select(func.count()).select_from(CustodyRequest).where(*conditions)
        )
        stmt = (
            select(CustodyRequest)
            .where(*conditions)
            .options(*_DETAIL_OPTIONS)
            .order_by(
                CustodyRequest.request_timestamp.desc(), CustodyRequest.id.desc()
            )
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return list(db.scalars(stmt).all()), total or 0


custody_requests = CustodyRequests()
