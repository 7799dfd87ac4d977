import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from notaryflow.models.custody import CustodyLedgerEntry

logger = logging.getLogger(__name__)


class CustodyLedger:
    """Append-only trail of custody movements.

    Exposes no update or delete. ``append`` runs inside the caller's
    transaction and a failed insert aborts the whole operation.
    """

    @staticmethod
    def append(
        db: Session,
        document_id: uuid.UUID,
        location: str,
        holder_user_id: uuid.UUID | None,
        actor_user_id: uuid.UUID,
        change_reason: str,
        request_id: uuid.UUID | None = None,
        timestamp: datetime | None = None,
    ) -> CustodyLedgerEntry:
        entry = CustodyLedgerEntry(
            document_id=document_id,
            request_id=request_id,
            location=location,
            holder_user_id=holder_user_id,
            actor_user_id=actor_user_id,
            change_reason=change_reason,
            timestamp=timestamp or datetime.now(timezone.utc),
        )
        db.add(entry)
        db.flush()
        logger.info(
            "Ledger entry %s for document %s: %s", entry.id, document_id, location
        )
        return entry

    @staticmethod
    def list_for_document(db: Session, document_id: uuid.UUID) -> list[CustodyLedgerEntry]:
        stmt = (
            select(CustodyLedgerEntry)
            .where(CustodyLedgerEntry.document_id == document_id)
            .order_by(
                CustodyLedgerEntry.timestamp.desc(), CustodyLedgerEntry.id.desc()
            )
        )
        return list(db.scalars(stmt).all())

    @staticmethod
    def count_for_document(db: Session, document_id: uuid.UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(CustodyLedgerEntry)
            .where(CustodyLedgerEntry.document_id == document_id)
        )
        return db.scalar(stmt) or 0


custody_ledger = CustodyLedger()
