"""Who may do what in the custody workflow.

The engine trusts its callers; these checks run at the API boundary.
"""

import uuid

from notaryflow.errors import PermissionDenied
from notaryflow.models.custody import CustodyRequest, CustodyRequestStatus
from notaryflow.models.person import Person
from notaryflow.services.directory import Directory
from notaryflow.services.directory import directory as default_directory


def ensure_can_request(
    actor: Person, requester_id: uuid.UUID, people: Directory | None = None
) -> None:
    people = people or default_directory
    if requester_id != actor.id and not people.is_privileged(actor):
        raise PermissionDenied(
            "Only front-desk staff may request custody for another person",
            {"actor_id": str(actor.id), "requester_id": str(requester_id)},
        )


def ensure_can_transition(
    actor: Person,
    request: CustodyRequest,
    new_status: CustodyRequestStatus,
    people: Directory | None = None,
) -> None:
    people = people or default_directory
    if people.is_privileged(actor):
        return
    if (
        new_status is CustodyRequestStatus.cancelled
        and request.requester_id == actor.id
    ):
        return
    raise PermissionDenied(
        f"Not allowed to mark this request {new_status.value}",
        {"actor_id": str(actor.id), "request_id": str(request.id)},
    )


def visible_requester(
    actor: Person, requester_id: uuid.UUID | None, people: Directory | None = None
) -> uuid.UUID | None:
    """Restrict request listings of non-privileged actors to their own."""
    people = people or default_directory
    if people.is_privileged(actor):
        return requester_id
    if requester_id is not None and requester_id != actor.id:
        raise PermissionDenied(
            "Not allowed to list another person's custody requests",
            {"actor_id": str(actor.id), "requester_id": str(requester_id)},
        )
    return actor.id
