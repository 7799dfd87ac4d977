from collections.abc import Generator

from fastapi import Header, HTTPException, Request, status
from sqlalchemy.orm import Session, sessionmaker

from notaryflow.models.person import Person
from notaryflow.services.common import coerce_uuid
from notaryflow.services.custody_workflow import CustodyWorkflow
from notaryflow.errors import ValidationError


def get_session_factory(request: Request) -> sessionmaker[Session]:
    return request.app.state.session_factory


def get_db(request: Request) -> Generator[Session, None, None]:
    db = get_session_factory(request)()
    try:
        yield db
    finally:
        db.close()


def get_workflow(request: Request) -> CustodyWorkflow:
    return request.app.state.workflow


def get_current_actor(
    request: Request,
    x_person_id: str | None = Header(default=None),
) -> Person:
    """Resolve the authenticated caller from the gateway's ``X-Person-Id``.

    Uses a short-lived session of its own so no transaction stays open while
    the route runs.
    """
    if not x_person_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Person-Id header",
        )
    try:
        person_id = coerce_uuid(x_person_id)
    except ValidationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid X-Person-Id header",
        )
    with get_session_factory(request)() as db:
        person = db.get(Person, person_id)
    if not person or not person.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown or inactive person",
        )
    return person
