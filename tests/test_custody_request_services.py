import uuid
from datetime import datetime, timedelta, timezone

import pytest

from notaryflow.errors import (
    AlreadyTerminal,
    ConflictAlreadyRequested,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from notaryflow.models.custody import CustodyRequestStatus, Document
from notaryflow.models.person import Person
from notaryflow.services.custody_requests import CustodyRequests

S = CustodyRequestStatus


def _make_person(db_session):
    p = Person(
        first_name="Request",
        last_name="Tester",
        email=f"req-{uuid.uuid4().hex[:8]}@test.com",
    )
    db_session.add(p)
    db_session.commit()
    return p


def _make_document(db_session):
    doc = Document(title=f"doc_{uuid.uuid4().hex[:8]}")
    db_session.add(doc)
    db_session.commit()
    return doc


class TestCreate:
    def test_create_pending_request(self, session_factory, db_session):
        person = _make_person(db_session)
        doc = _make_document(db_session)
        with session_factory.begin() as db:
            req = CustodyRequests.create(db, doc.id, person.id, person.id)
        assert req.id is not None
        assert req.status == S.pending_approval
        assert req.request_timestamp is not None

    def test_second_open_request_hits_unique_index(self, session_factory, db_session):
        person = _make_person(db_session)
        doc = _make_document(db_session)
        with session_factory.begin() as db:
            CustodyRequests.create(db, doc.id, person.id, person.id)
        with pytest.raises(ConflictAlreadyRequested):
            with session_factory.begin() as db:
                CustodyRequests.create(db, doc.id, person.id, person.id)

    def test_closed_requests_do_not_block_new_ones(self, session_factory, db_session):
        person = _make_person(db_session)
        doc = _make_document(db_session)
        with session_factory.begin() as db:
            first = CustodyRequests.create(db, doc.id, person.id, person.id)
            CustodyRequests.update_status(db, first, S.pending_approval, S.cancelled)
            second = CustodyRequests.create(db, doc.id, person.id, person.id)
        assert second.id != first.id


class TestGet:
    def test_get_not_found(self, session_factory):
        with session_factory() as db:
            with pytest.raises(NotFound) as exc:
                CustodyRequests.get(db, str(uuid.uuid4()))
        assert exc.value.message == "Custody request not found"

    def test_get_detail_loads_names(self, session_factory, db_session):
        person = _make_person(db_session)
        doc = _make_document(db_session)
        with session_factory.begin() as db:
            req = CustodyRequests.create(db, doc.id, person.id, person.id)
        with session_factory() as db:
            detail = CustodyRequests.get_detail(db, str(req.id))
        assert detail.document_title == doc.title
        assert detail.requester_name == "Request Tester"
        assert detail.handler_name is None


class TestUpdateStatus:
    def test_compare_and_set(self, session_factory, db_session):
        person = _make_person(db_session)
        doc = _make_document(db_session)
        with session_factory.begin() as db:
            req = CustodyRequests.create(db, doc.id, person.id, person.id)
            CustodyRequests.update_status(
                db, req, S.pending_approval, S.approved_pending_pickup,
                handler_user_id=person.id,
            )
            assert req.status == S.approved_pending_pickup
            assert req.handler_user_id == person.id

    def test_stale_expected_status_is_refused(self, session_factory, db_session):
        person = _make_person(db_session)
        doc = _make_document(db_session)
        with pytest.raises(InvalidTransition):
            with session_factory.begin() as db:
                req = CustodyRequests.create(db, doc.id, person.id, person.id)
                CustodyRequests.update_status(
                    db, req, S.pending_approval, S.approved_pending_pickup
                )
                CustodyRequests.update_status(
                    db, req, S.pending_approval, S.rejected
                )

    def test_terminal_row_is_refused(self, session_factory, db_session):
        person = _make_person(db_session)
        doc = _make_document(db_session)
        with pytest.raises(AlreadyTerminal):
            with session_factory.begin() as db:
                req = CustodyRequests.create(db, doc.id, person.id, person.id)
                CustodyRequests.update_status(db, req, S.pending_approval, S.rejected)
                CustodyRequests.update_status(
                    db, req, S.pending_approval, S.cancelled
                )


class TestListByFilter:
    def _seed(self, session_factory, db_session, count):
        person = _make_person(db_session)
        base = datetime(2026, 1, 1, tzinfo=timezone.utc)
        ids = []
        with session_factory.begin() as db:
            for i in range(count):
                doc = Document(title=f"doc_{i}")
                db.add(doc)
                db.flush()
                req = CustodyRequests.create(
                    db,
                    doc.id,
                    person.id,
                    person.id,
                    request_timestamp=base + timedelta(minutes=i),
                )
                ids.append(req.id)
        return person, ids

    def test_newest_first_and_paged(self, session_factory, db_session):
        _, ids = self._seed(session_factory, db_session, 3)
        with session_factory() as db:
            items, total = CustodyRequests.list_by_filter(db, page=1, limit=2)
            tail, _ = CustodyRequests.list_by_filter(db, page=2, limit=2)
        assert total == 3
        assert [r.id for r in items] == [ids[2], ids[1]]
        assert [r.id for r in tail] == [ids[0]]

    def test_status_filter_accepts_strings(self, session_factory, db_session):
        self._seed(session_factory, db_session, 2)
        with session_factory() as db:
            items, total = CustodyRequests.list_by_filter(
                db, statuses=["pending_approval"]
            )
            none, zero = CustodyRequests.list_by_filter(db, statuses=S.returned)
        assert total == 2
        assert zero == 0
        assert none == []

    def test_invalid_status(self, session_factory):
        with session_factory() as db:
            with pytest.raises(ValidationError):
                CustodyRequests.list_by_filter(db, statuses=["lost"])

    @pytest.mark.parametrize("page,limit", [(0, 10), (1, 0)])
    def test_invalid_paging(self, session_factory, page, limit):
        with session_factory() as db:
            with pytest.raises(ValidationError):
                CustodyRequests.list_by_filter(db, page=page, limit=limit)
