import uuid

from notaryflow.models.custody import Document
from notaryflow.models.person import Person, PersonRole


def _headers(person):
    return {"X-Person-Id": str(person.id)}


def _create_person(db_session, role=PersonRole.staff):
    p = Person(
        first_name="API",
        last_name="Custody",
        email=f"api-cu-{uuid.uuid4().hex[:8]}@test.com",
        role=role,
    )
    db_session.add(p)
    db_session.commit()
    return p


def _create_document(db_session):
    doc = Document(title="Test Deed", current_location="Vault A")
    db_session.add(doc)
    db_session.commit()
    return doc


def _request(client, document, person, **body):
    return client.post(
        f"/documents/{document.id}/custody-requests",
        json=body,
        headers=_headers(person),
    )


def _transition(client, request_id, person, **body):
    return client.post(
        f"/custody-requests/{request_id}/transitions",
        json=body,
        headers=_headers(person),
    )


class TestCustodyRequestEndpoints:
    def test_request_custody(self, client, auth_headers, person, document):
        resp = client.post(
            f"/documents/{document.id}/custody-requests",
            json={"expected_return_date": "2026-11-30"},
            headers=auth_headers,
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["document_id"] == str(document.id)
        assert data["requester_id"] == str(person.id)
        assert data["status"] == "pending_approval"
        assert data["expected_return_date"] == "2026-11-30"

    def test_request_under_api_prefix(self, client, person, document):
        resp = client.post(
            f"/api/v1/documents/{document.id}/custody-requests",
            json={},
            headers=_headers(person),
        )
        assert resp.status_code == 201

    def test_request_conflict(self, client, person, document, db_session):
        _request(client, document, person)
        other = _create_person(db_session)
        resp = _request(client, document, other)
        assert resp.status_code == 409
        assert resp.json()["code"] == "conflict_already_requested"

    def test_request_missing_document(self, client, person):
        resp = client.post(
            f"/documents/{uuid.uuid4()}/custody-requests",
            json={},
            headers=_headers(person),
        )
        assert resp.status_code == 404
        assert resp.json()["message"] == "Document not found"

    def test_request_without_identity(self, client, document):
        resp = client.post(f"/documents/{document.id}/custody-requests", json={})
        assert resp.status_code == 401

    def test_request_with_unknown_identity(self, client, document):
        resp = client.post(
            f"/documents/{document.id}/custody-requests",
            json={},
            headers={"X-Person-Id": str(uuid.uuid4())},
        )
        assert resp.status_code == 401

    def test_on_behalf_requires_privilege(
        self, client, person, other_person, cs_agent, document
    ):
        resp = _request(client, document, other_person, requester_id=str(person.id))
        assert resp.status_code == 403
        assert resp.json()["code"] == "permission_denied"

        resp = _request(client, document, cs_agent, requester_id=str(person.id))
        assert resp.status_code == 201
        assert resp.json()["requester_id"] == str(person.id)
        assert resp.json()["created_by"] == str(cs_agent.id)


class TestTransitionEndpoints:
    def test_full_cycle(self, client, person, cs_agent, document):
        req_id = _request(client, document, person).json()["id"]

        resp = _transition(client, req_id, cs_agent, status="approved_pending_pickup")
        assert resp.status_code == 200
        assert resp.json()["handler_user_id"] == str(cs_agent.id)

        resp = _transition(client, req_id, cs_agent, status="checked_out")
        assert resp.status_code == 200
        assert resp.json()["pickup_timestamp"] is not None

        resp = _transition(
            client, req_id, cs_agent, status="returned", location="Shelf B"
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "returned"

        custody = client.get(
            f"/documents/{document.id}/custody", headers=_headers(person)
        ).json()
        assert custody["current_holder_id"] == str(cs_agent.id)
        assert custody["current_location"] == "Shelf B"
        assert custody["is_requested"] is False

        history = client.get(
            f"/documents/{document.id}/location-history", headers=_headers(person)
        ).json()
        assert [h["location"] for h in history] == [
            "Shelf B",
            f"In possession of {person.name}",
        ]

    def test_requester_cannot_approve(self, client, person, document):
        req_id = _request(client, document, person).json()["id"]
        resp = _transition(client, req_id, person, status="approved_pending_pickup")
        assert resp.status_code == 403

    def test_requester_can_cancel(self, client, person, document):
        req_id = _request(client, document, person).json()["id"]
        resp = _transition(client, req_id, person, status="cancelled")
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"

    def test_invalid_transition(self, client, person, cs_agent, document):
        req_id = _request(client, document, person).json()["id"]
        resp = _transition(client, req_id, cs_agent, status="returned", location="X")
        assert resp.status_code == 409
        assert resp.json()["code"] == "invalid_transition"

    def test_already_terminal(self, client, person, cs_agent, document):
        req_id = _request(client, document, person).json()["id"]
        _transition(client, req_id, cs_agent, status="rejected")
        resp = _transition(client, req_id, cs_agent, status="approved_pending_pickup")
        assert resp.status_code == 409
        assert resp.json()["code"] == "already_terminal"

    def test_return_without_location(self, client, person, cs_agent, document):
        req_id = _request(client, document, person).json()["id"]
        _transition(client, req_id, cs_agent, status="approved_pending_pickup")
        _transition(client, req_id, cs_agent, status="checked_out")
        resp = _transition(client, req_id, cs_agent, status="returned")
        assert resp.status_code == 422
        assert resp.json()["code"] == "validation_error"

    def test_unknown_status_value(self, client, person, cs_agent, document):
        req_id = _request(client, document, person).json()["id"]
        resp = _transition(client, req_id, cs_agent, status="lost")
        assert resp.status_code == 422

    def test_unknown_request(self, client, cs_agent):
        resp = _transition(
            client, uuid.uuid4(), cs_agent, status="approved_pending_pickup"
        )
        assert resp.status_code == 404


class TestListEndpoints:
    def test_list_for_front_desk(self, client, db_session, person, cs_agent):
        for _ in range(3):
            _request(client, _create_document(db_session), person)
        resp = client.get(
            "/custody-requests", params={"limit": 2}, headers=_headers(cs_agent)
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 3
        assert data["total_pages"] == 2
        assert data["page"] == 1
        assert len(data["requests"]) == 2
        assert data["requests"][0]["requester_name"] == person.name
        assert data["requests"][0]["document_title"] == "Test Deed"

    def test_list_status_filter_is_repeatable(
        self, client, db_session, person, cs_agent
    ):
        first = _request(client, _create_document(db_session), person).json()["id"]
        _request(client, _create_document(db_session), person)
        _transition(client, first, cs_agent, status="rejected")
        resp = client.get(
            "/custody-requests",
            params=[("status", "rejected"), ("status", "cancelled")],
            headers=_headers(cs_agent),
        )
        assert [r["id"] for r in resp.json()["requests"]] == [first]

    def test_staff_only_see_their_own(
        self, client, db_session, person, other_person, document
    ):
        _request(client, document, person)
        resp = client.get("/custody-requests", headers=_headers(other_person))
        assert resp.json()["total"] == 0
        resp = client.get(
            "/custody-requests",
            params={"requester_id": str(person.id)},
            headers=_headers(other_person),
        )
        assert resp.status_code == 403

    def test_invalid_page(self, client, cs_agent):
        resp = client.get(
            "/custody-requests", params={"page": 0}, headers=_headers(cs_agent)
        )
        assert resp.status_code == 422

    def test_get_request_detail(self, client, person, cs_agent, document):
        req_id = _request(client, document, person).json()["id"]
        _transition(client, req_id, cs_agent, status="approved_pending_pickup")
        resp = client.get(f"/custody-requests/{req_id}", headers=_headers(person))
        assert resp.status_code == 200
        data = resp.json()
        assert data["handler_name"] == cs_agent.name
        assert data["document_title"] == document.title

    def test_get_request_of_someone_else(
        self, client, person, other_person, document
    ):
        req_id = _request(client, document, person).json()["id"]
        resp = client.get(f"/custody-requests/{req_id}", headers=_headers(other_person))
        assert resp.status_code == 403

    def test_custody_of_missing_document(self, client, person):
        resp = client.get(f"/documents/{uuid.uuid4()}/custody", headers=_headers(person))
        assert resp.status_code == 404

    def test_location_history_of_missing_document(self, client, person):
        resp = client.get(
            f"/documents/{uuid.uuid4()}/location-history", headers=_headers(person)
        )
        assert resp.status_code == 404


class TestServiceEndpoints:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_metrics(self, client, person, document):
        _request(client, document, person)
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert "notaryflow_custody_operations_total" in resp.text
