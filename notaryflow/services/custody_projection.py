import logging
import uuid
from datetime import datetime

from sqlalchemy import exists, select, text
from sqlalchemy.orm import Session

from notaryflow.config import settings
from notaryflow.errors import NotFound
from notaryflow.models.custody import CustodyRequest, Document
from notaryflow.services.common import coerce_uuid

logger = logging.getLogger(__name__)

_CUSTODY_FIELDS = frozenset(
    {
        "current_holder_id",
        "current_location",
        "is_requested",
        "active_requester_id",
        "requested_at",
        "active_request_id",
    }
)


def _set_lock_timeout(db: Session, timeout_ms: int) -> None:
    if db.get_bind().dialect.name != "postgresql":
        return
    timeout_ms = int(timeout_ms)
    if timeout_ms > 0:
        db.execute(text(f"SET LOCAL lock_timeout = {timeout_ms}"))


class DocumentCustody:
    """Accessor for the custody fields denormalized onto the document row."""

    @staticmethod
    def exists(db: Session, document_id) -> bool:
        doc_uuid = coerce_uuid(document_id)
        return bool(db.scalar(select(exists().where(Document.id == doc_uuid))))

    @staticmethod
    def get(db: Session, document_id) -> Document:
        document = db.get(Document, coerce_uuid(document_id))
        if not document:
            raise NotFound("Document not found", {"document_id": str(document_id)})
        return document

    @staticmethod
    def get_for_update(
        db: Session, document_id, lock_timeout_ms: int | None = None
    ) -> Document:
        """Load the document holding an exclusive row lock until commit.

        Must be called inside an open transaction.
        """
        if not db.in_transaction():
            raise RuntimeError("get_for_update requires an open transaction")
        if lock_timeout_ms is None:
            lock_timeout_ms = settings.db_lock_timeout_ms
        _set_lock_timeout(db, lock_timeout_ms)
        stmt = (
            select(Document)
            .where(Document.id == coerce_uuid(document_id))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        document = db.scalar(stmt)
        if not document:
            raise NotFound("Document not found", {"document_id": str(document_id)})
        return document

    @staticmethod
    def update(db: Session, document: Document, **fields) -> Document:
        unknown = set(fields) - _CUSTODY_FIELDS
        if unknown:
            raise ValueError(f"Not a custody field: {', '.join(sorted(unknown))}")
        for key, value in fields.items():
            setattr(document, key, value)
        db.flush()
        return document

    @classmethod
    def open_request(
        cls, db: Session, document: Document, request: CustodyRequest, now: datetime
    ) -> Document:
        return cls.update(
            db,
            document,
            is_requested=True,
            active_requester_id=request.requester_id,
            requested_at=now,
            active_request_id=request.id,
        )

    @classmethod
    def clear_request(cls, db: Session, document: Document, **custody) -> Document:
        return cls.update(
            db,
            document,
            is_requested=False,
            active_requester_id=None,
            requested_at=None,
            active_request_id=None,
            **custody,
        )

    @classmethod
    def move(
        cls,
        db: Session,
        document: Document,
        holder_id: uuid.UUID | None,
        location: str,
    ) -> Document:
        return cls.update(
            db, document, current_holder_id=holder_id, current_location=location
        )


document_custody = DocumentCustody()
