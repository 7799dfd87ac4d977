import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from notaryflow.models.custody import (
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    CustodyRequest,
    CustodyRequestStatus,
    Document,
)
from notaryflow.models.person import Person


def _make_person(db_session):
    p = Person(
        first_name="Model",
        last_name="Tester",
        email=f"model-{uuid.uuid4().hex[:8]}@test.com",
    )
    db_session.add(p)
    db_session.commit()
    return p


class TestStatuses:
    def test_open_and_terminal_partition(self):
        assert OPEN_STATUSES | TERMINAL_STATUSES == set(CustodyRequestStatus)
        assert not OPEN_STATUSES & TERMINAL_STATUSES

    def test_is_terminal(self):
        assert CustodyRequestStatus.returned.is_terminal
        assert not CustodyRequestStatus.checked_out.is_terminal


class TestDocumentModel:
    def test_defaults(self, db_session):
        doc = Document(title="Power of attorney")
        db_session.add(doc)
        db_session.commit()
        assert doc.is_requested is False
        assert doc.active_request_id is None
        assert doc.created_at is not None

    def test_projection_must_be_all_or_nothing(self, db_session):
        person = _make_person(db_session)
        doc = Document(
            title="Half requested",
            is_requested=False,
            active_requester_id=person.id,
        )
        db_session.add(doc)
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()


class TestCustodyRequestModel:
    def test_one_open_request_per_document(self, db_session):
        person = _make_person(db_session)
        doc = Document(title="Deed")
        db_session.add(doc)
        db_session.commit()
        for status in (CustodyRequestStatus.returned, CustodyRequestStatus.rejected):
            db_session.add(
                CustodyRequest(
                    document_id=doc.id,
                    requester_id=person.id,
                    created_by=person.id,
                    status=status,
                )
            )
        db_session.add(
            CustodyRequest(
                document_id=doc.id, requester_id=person.id, created_by=person.id
            )
        )
        db_session.commit()
        db_session.add(
            CustodyRequest(
                document_id=doc.id,
                requester_id=person.id,
                created_by=person.id,
                status=CustodyRequestStatus.checked_out,
            )
        )
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_name_properties(self, db_session):
        person = _make_person(db_session)
        doc = Document(title="Will")
        db_session.add(doc)
        db_session.commit()
        req = CustodyRequest(
            document_id=doc.id,
            requester_id=person.id,
            created_by=person.id,
            request_timestamp=datetime.now(timezone.utc),
        )
        db_session.add(req)
        db_session.commit()
        assert req.document_title == "Will"
        assert req.requester_name == "Model Tester"
        assert req.handler_name is None
