"""
Typed Exception Hierarchy for the Viatico Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the kernel (the action boundary, tests, operational tooling)
must be able to tell a malformed amount from a workflow precondition
failure without parsing messages.  Every exception here therefore:

  1. Has its own class (catch by type, not message)
  2. Carries a CODE class attribute (machine-readable, API-safe)
  3. Stores its context as attributes (not just a message string)

Example:
    try:
        workflow.sign(request_id, actor=chief)
    except PreconditionFailedError as e:
        log.info("sign_skipped", extra={"status": e.current_state})

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ViaticoKernelError (base)
    |
    +-- InvalidInputError
    |   +-- DuplicateLegajoError
    |   +-- InvalidConsumptionError
    |
    +-- ActorNotFoundError
    |
    +-- NotFoundError
    |   +-- AreaNotFoundError
    |   +-- WorkerNotFoundError
    |   +-- RequestNotFoundError
    |   +-- VersionNotFoundError
    |   +-- RequestWorkerNotFoundError
    |   +-- BatchNotFoundError
    |
    +-- VersionConflictError
    +-- AlreadyAppliedError
    +-- PreconditionFailedError
    +-- ImmutabilityViolationError
    +-- AuditChainBrokenError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                   | When Raised
-----------------------|------------------------------------------------------
INVALID_INPUT          | Amount <= 0, bad date range, missing required field
DUPLICATE_LEGAJO       | Worker legajo already registered
INVALID_CONSUMPTION    | Consumed viaticos negative, not 0.5-step, > days
ACTOR_NOT_FOUND        | No actor resolvable for the required role
NOT_FOUND              | Referenced row absent (subclasses narrow the entity)
VERSION_CONFLICT       | Version number is not current + 1 (lost CAS race)
ALREADY_APPLIED        | Adjustment batch is not DRAFT any more
PRECONDITION_FAILED    | Workflow action attempted from a disallowed state
IMMUTABILITY_VIOLATION | Write to a frozen column or append-only row
AUDIT_CHAIN_BROKEN     | Audit log hash chain fails validation

===============================================================================
HANDLING PATTERNS
===============================================================================

Validation and precondition errors are raised BEFORE any write, so the
enclosing transaction can simply be rolled back.  The action boundary
(``viatico_kernel.actions``) converts any ViaticoKernelError into a
REJECTED result; callers that need the distinction (tests, internal
tooling) call the services directly and catch the specific type.
"""


class ViaticoKernelError(Exception):
    """
    Base exception for all viatico kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "VIATICO_KERNEL_ERROR"


# Input validation


class InvalidInputError(ViaticoKernelError):
    """Malformed or out-of-range user data."""

    code: str = "INVALID_INPUT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class DuplicateLegajoError(InvalidInputError):
    """A worker with the same legajo already exists."""

    code: str = "DUPLICATE_LEGAJO"

    def __init__(self, legajo: str):
        self.legajo = legajo
        super().__init__("legajo", f"a worker with legajo '{legajo}' already exists")


class InvalidConsumptionError(InvalidInputError):
    """
    Consumed viaticos are negative, not a multiple of 0.5, or exceed the
    days granted on the request line.
    """

    code: str = "INVALID_CONSUMPTION"

    def __init__(self, consumed: str, available: str | None, reason: str):
        self.consumed = consumed
        self.available = available
        super().__init__("consumed_viaticos", reason)


# Actor resolution


class ActorNotFoundError(ViaticoKernelError):
    """No actor holding the required role is available to the operation."""

    code: str = "ACTOR_NOT_FOUND"

    def __init__(self, required_role: str, actual_role: str | None = None):
        self.required_role = required_role
        self.actual_role = actual_role
        if actual_role is None:
            message = f"No actor available with role {required_role}"
        else:
            message = (
                f"No actor available with role {required_role} "
                f"(current actor has role {actual_role})"
            )
        super().__init__(message)


# Lookups


class NotFoundError(ViaticoKernelError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"

    entity_type: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class AreaNotFoundError(NotFoundError):
    code: str = "AREA_NOT_FOUND"
    entity_type = "Area"


class WorkerNotFoundError(NotFoundError):
    code: str = "WORKER_NOT_FOUND"
    entity_type = "Worker"


class RequestNotFoundError(NotFoundError):
    code: str = "REQUEST_NOT_FOUND"
    entity_type = "ViaticRequest"


class VersionNotFoundError(NotFoundError):
    code: str = "VERSION_NOT_FOUND"
    entity_type = "ViaticRequestVersion"


class RequestWorkerNotFoundError(NotFoundError):
    code: str = "REQUEST_WORKER_NOT_FOUND"
    entity_type = "ViaticRequestWorker"


class BatchNotFoundError(NotFoundError):
    code: str = "BATCH_NOT_FOUND"
    entity_type = "RetroactiveAdjustmentBatch"


# Concurrency


class VersionConflictError(ViaticoKernelError):
    """
    A new version was not exactly current_version_number + 1.

    Raised when the compare-and-swap on the request row finds that another
    transaction already advanced the version pointer, or when a caller
    supplies a stale version number.  Safe to retry after re-reading.
    """

    code: str = "VERSION_CONFLICT"

    def __init__(
        self,
        request_id: str,
        expected_version: int,
        current_version: int | None,
    ):
        self.request_id = request_id
        self.expected_version = expected_version
        self.current_version = current_version
        super().__init__(
            f"Version conflict on request {request_id}: attempted version "
            f"{expected_version}, current version is {current_version}"
        )


class AlreadyAppliedError(ViaticoKernelError):
    """Retroactive adjustment batch has already been applied."""

    code: str = "ALREADY_APPLIED"

    def __init__(self, batch_id: str, status: str):
        self.batch_id = batch_id
        self.status = status
        super().__init__(
            f"Adjustment batch {batch_id} cannot be applied from status {status}"
        )


# Workflow


class PreconditionFailedError(ViaticoKernelError):
    """Workflow action is not allowed from the request's current state."""

    code: str = "PRECONDITION_FAILED"

    def __init__(self, request_id: str, action: str, current_state: str):
        self.request_id = request_id
        self.action = action
        self.current_state = current_state
        super().__init__(
            f"Action '{action}' not allowed on request {request_id} "
            f"in state {current_state}"
        )


# Immutability


class ImmutabilityViolationError(ViaticoKernelError):
    """
    Attempted to modify or delete an immutable record.

    Rate history, audit log rows, request line items, version identity
    columns and applied adjustment batches are frozen once written.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


class AuditChainBrokenError(ViaticoKernelError):
    """Stored audit hash does not match the recomputed chain."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_id: str, expected_hash: str, actual_hash: str):
        self.audit_id = audit_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_id}: expected {expected_hash}, "
            f"found {actual_hash}"
        )
