import os
import uuid

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from notaryflow.celery_app import celery_app
from notaryflow.db import Base, build_session_factory, get_engine
from notaryflow.main import create_app
from notaryflow.models.custody import Document, DocumentStatus
from notaryflow.models.person import Person, PersonRole
from notaryflow.services.custody_workflow import CustodyWorkflow

celery_app.conf.task_always_eager = True


@pytest.fixture()
def database_url(tmp_path):
    return f"sqlite+pysqlite:///{tmp_path / 'custody.db'}"


@pytest.fixture()
def engine(database_url):
    engine = get_engine(database_url)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture()
def db_session(engine, database_url):
    # Plain pysqlite transactions: reads take no lock, so the fixture
    # session never blocks the workflow's writers.
    fixture_engine = create_engine(
        database_url, connect_args={"check_same_thread": False}
    )
    session = sessionmaker(bind=fixture_engine)()
    yield session
    session.close()
    fixture_engine.dispose()


@pytest.fixture()
def workflow(session_factory):
    return CustodyWorkflow(session_factory)


def _make_person(db_session, role=PersonRole.staff, first_name="Test", **kwargs):
    person = Person(
        first_name=first_name,
        last_name=kwargs.pop("last_name", "Person"),
        email=f"{first_name.lower()}-{uuid.uuid4().hex[:8]}@example.com",
        role=role,
        **kwargs,
    )
    db_session.add(person)
    db_session.commit()
    return person


def _make_document(db_session, holder=None, location="Vault A", **kwargs):
    document = Document(
        title=kwargs.pop("title", f"Deed {uuid.uuid4().hex[:6]}"),
        document_type=kwargs.pop("document_type", "deed"),
        status=kwargs.pop("status", DocumentStatus.notarized),
        current_holder_id=holder.id if holder else None,
        current_location=location,
        **kwargs,
    )
    db_session.add(document)
    db_session.commit()
    return document


@pytest.fixture()
def person(db_session):
    return _make_person(db_session, PersonRole.staff, first_name="Alice")


@pytest.fixture()
def requester(person):
    return person


@pytest.fixture()
def cs_agent(db_session):
    return _make_person(db_session, PersonRole.cs, first_name="Carol")


@pytest.fixture()
def admin(db_session):
    return _make_person(db_session, PersonRole.admin, first_name="Adam")


@pytest.fixture()
def other_person(db_session):
    return _make_person(db_session, PersonRole.notary, first_name="Olivia")


@pytest.fixture()
def document(db_session, admin):
    return _make_document(db_session, holder=admin, location="Vault A")


@pytest.fixture()
def client(session_factory):
    app = create_app(session_factory)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def auth_headers(person):
    return {"X-Person-Id": str(person.id)}
