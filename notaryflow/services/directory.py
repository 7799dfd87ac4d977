"""Read-only person lookups used by the custody workflow."""

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from notaryflow.config import settings
from notaryflow.errors import NotFound
from notaryflow.models.person import Person, PersonRole
from notaryflow.services.common import coerce_uuid

logger = logging.getLogger(__name__)


def privileged_roles(raw: str | None = None) -> frozenset[PersonRole]:
    """Parse a comma-separated role list such as ``"admin,cs"``."""
    value = settings.custody_privileged_roles if raw is None else raw
    roles = set()
    for item in value.split(","):
        item = item.strip().lower()
        if not item:
            continue
        try:
            roles.add(PersonRole(item))
        except ValueError:
            logger.warning("Ignoring unknown privileged role %r", item)
    return frozenset(roles)


class Directory:
    def __init__(self, roles: frozenset[PersonRole] | None = None):
        self.privileged_roles = roles if roles is not None else privileged_roles()

    @staticmethod
    def get_person(db: Session, person_id) -> Person:
        person = db.get(Person, coerce_uuid(person_id))
        if not person:
            raise NotFound("Person not found", {"person_id": str(person_id)})
        return person

    def get_display_name(self, db: Session, person_id) -> str:
        if person_id is None:
            return "unknown"
        person = db.get(Person, coerce_uuid(person_id))
        if not person:
            return str(person_id)
        return person.name

    def is_privileged(self, person: Person) -> bool:
        return person.role in self.privileged_roles

    def list_privileged(self, db: Session) -> list[Person]:
        if not self.privileged_roles:
            return []
        stmt = (
            select(Person)
            .where(
                Person.role.in_(list(self.privileged_roles)),
                Person.is_active.is_(True),
            )
            .order_by(Person.created_at.asc(), Person.id.asc())
        )
        return list(db.scalars(stmt).all())


directory = Directory()
