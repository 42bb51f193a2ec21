"""
Actors and actor resolution.

Every mutating operation receives an explicit, already-authenticated
``Actor``.  The resolver protocol lets the action boundary ask for "the
actor playing role X in this call"; there is no lookup that picks an
arbitrary user holding a role.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable
from uuid import UUID

from viatico_kernel.exceptions import ActorNotFoundError


class UserRole(str, Enum):
    JEFE_AREA = "JEFE_AREA"
    COLABORADOR = "COLABORADOR"
    ADMIN = "ADMIN"
    TESORERIA = "TESORERIA"


@dataclass(frozen=True)
class Actor:
    """An authenticated user acting in one role."""

    user_id: UUID
    role: UserRole
    area_id: UUID | None = None
    name: str | None = None


@runtime_checkable
class ActorResolver(Protocol):
    def resolve(self, role: UserRole) -> Actor | None:
        ...


class ExplicitActorResolver:
    """
    Resolver over the actors the caller has already authenticated.

    A session usually carries a single actor; tests and back-office tooling
    may hand over several (one per role).
    """

    def __init__(self, *actors: Actor):
        self.actors = tuple(actors)

    def resolve(self, role: UserRole) -> Actor | None:
        for actor in self.actors:
            if actor.role == role:
                return actor
        return None


def require_role(actor: Actor | None, role: UserRole | str) -> Actor:
    """
    Return ``actor`` if it holds ``role``.

    Raises:
        ActorNotFoundError: If there is no actor or it plays another role.
    """
    required = UserRole(role)
    if actor is None:
        raise ActorNotFoundError(required.value)
    if actor.role != required:
        raise ActorNotFoundError(required.value, UserRole(actor.role).value)
    return actor
