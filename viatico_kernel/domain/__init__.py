"""
Pure domain layer.

Value objects and calculations with NO dependencies on the ORM, the
database, the clock or any other I/O.  Services in ``viatico_kernel.services``
feed them plain data and persist what they return.
"""

from viatico_kernel.domain.actor import (
    Actor,
    ActorResolver,
    ExplicitActorResolver,
    UserRole,
    require_role,
)
from viatico_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from viatico_kernel.domain.day_plan import DayPlan, DayPlanDay
from viatico_kernel.domain.request_workflow import (
    VIATIC_REQUEST_WORKFLOW,
    RequestAction,
    RequestStatus,
)

__all__ = [
    "Actor",
    "ActorResolver",
    "ExplicitActorResolver",
    "UserRole",
    "require_role",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "DayPlan",
    "DayPlanDay",
    "VIATIC_REQUEST_WORKFLOW",
    "RequestAction",
    "RequestStatus",
]
