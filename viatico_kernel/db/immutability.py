"""
ORM-level immutability enforcement.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                      | When immutable            | What is frozen
----------------------------|---------------------------|----------------------------
ViaticRateHistory           | always                    | every column, no delete
AuditLog                    | always                    | every column, no delete
ViaticRequestWorker         | always                    | every column, no delete
ViaticRequestVersion        | always                    | identity columns, no delete
RetroactiveAdjustmentBatch  | once APPLIED              | every column, no delete
RetroactiveAdjustmentItem   | once APPLIED              | every column, no delete

updated_at / updated_by_id are bookkeeping and may change on any row.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires ``before_update`` / ``before_delete`` mapper events during
flush.  The listeners below inspect attribute history and raise
ImmutabilityViolationError before any SQL reaches the database, aborting
the flush.  Bulk ``UPDATE`` statements bypass mapper events; the services
only issue one (the version-pointer compare-and-swap on viatic_requests,
which is not a protected table).

===============================================================================
USAGE
===============================================================================

Registered by ``init_engine_from_url(install_immutability=True)``:

    from viatico_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # idempotent

Tests that need to plant corrupt rows may call
``unregister_immutability_listeners()`` and re-register afterwards.
"""

from sqlalchemy import event, inspect

from viatico_kernel.exceptions import ImmutabilityViolationError
from viatico_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_BOOKKEEPING_FIELDS = frozenset({"updated_at", "updated_by_id"})

VERSION_IDENTITY_FIELDS = frozenset(
    {"request_id", "version_number", "start_date", "end_date", "payload_json"}
)


def _changed_fields(target) -> list[str]:
    """Column attributes with pending changes, bookkeeping excluded."""
    insp = inspect(target)
    changed = []
    for attr in insp.mapper.column_attrs:
        if attr.key in _BOOKKEEPING_FIELDS:
            continue
        if insp.attrs[attr.key].history.has_changes():
            changed.append(attr.key)
    return changed


def _block(entity_type: str, target, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _was_applied(target) -> bool:
    """True when the row was already APPLIED before this flush."""
    history = inspect(target).attrs["status"].history
    if history.deleted:
        return history.deleted[0] == "APPLIED"
    if not history.added:
        return target.status == "APPLIED"
    return False


# Always-frozen rows


def _frozen_update(entity_type: str):
    def _check(mapper, connection, target):
        changed = _changed_fields(target)
        if changed:
            _block(
                entity_type, target, "UPDATE",
                f"Cannot modify field '{changed[0]}' on {entity_type}",
                changed[0],
            )
    _check.__name__ = f"_check_{entity_type.lower()}_update"
    return _check


def _frozen_delete(entity_type: str):
    def _check(mapper, connection, target):
        _block(entity_type, target, "DELETE", f"{entity_type} rows cannot be deleted")
    _check.__name__ = f"_check_{entity_type.lower()}_delete"
    return _check


_check_rate_update = _frozen_update("ViaticRateHistory")
_check_rate_delete = _frozen_delete("ViaticRateHistory")
_check_audit_update = _frozen_update("AuditLog")
_check_audit_delete = _frozen_delete("AuditLog")
_check_line_update = _frozen_update("ViaticRequestWorker")
_check_line_delete = _frozen_delete("ViaticRequestWorker")
_check_version_delete = _frozen_delete("ViaticRequestVersion")


def _check_version_update(mapper, connection, target):
    for field in _changed_fields(target):
        if field in VERSION_IDENTITY_FIELDS:
            _block(
                "ViaticRequestVersion", target, "UPDATE",
                f"Cannot modify '{field}' on an issued version; create a new version",
                field,
            )


# Applied adjustment batches


def _check_batch_update(mapper, connection, target):
    if not _was_applied(target):
        return
    changed = _changed_fields(target)
    if changed:
        _block(
            "RetroactiveAdjustmentBatch", target, "UPDATE",
            f"Cannot modify field '{changed[0]}' on an applied batch",
            changed[0],
        )


def _check_batch_delete(mapper, connection, target):
    if target.status == "APPLIED":
        _block("RetroactiveAdjustmentBatch", target, "DELETE", "Applied batches cannot be deleted")


def _check_item_update(mapper, connection, target):
    if not _was_applied(target):
        return
    changed = _changed_fields(target)
    if changed:
        _block(
            "RetroactiveAdjustmentItem", target, "UPDATE",
            f"Cannot modify field '{changed[0]}' on an applied item",
            changed[0],
        )


def _check_item_delete(mapper, connection, target):
    if target.status == "APPLIED":
        _block("RetroactiveAdjustmentItem", target, "DELETE", "Applied items cannot be deleted")


def _listeners():
    from viatico_kernel.models.adjustment import (
        RetroactiveAdjustmentBatch,
        RetroactiveAdjustmentItem,
    )
    from viatico_kernel.models.audit_log import AuditLog
    from viatico_kernel.models.rate import ViaticRateHistory
    from viatico_kernel.models.request import ViaticRequestVersion, ViaticRequestWorker

    return (
        (ViaticRateHistory, "before_update", _check_rate_update),
        (ViaticRateHistory, "before_delete", _check_rate_delete),
        (AuditLog, "before_update", _check_audit_update),
        (AuditLog, "before_delete", _check_audit_delete),
        (ViaticRequestWorker, "before_update", _check_line_update),
        (ViaticRequestWorker, "before_delete", _check_line_delete),
        (ViaticRequestVersion, "before_update", _check_version_update),
        (ViaticRequestVersion, "before_delete", _check_version_delete),
        (RetroactiveAdjustmentBatch, "before_update", _check_batch_update),
        (RetroactiveAdjustmentBatch, "before_delete", _check_batch_delete),
        (RetroactiveAdjustmentItem, "before_update", _check_item_update),
        (RetroactiveAdjustmentItem, "before_delete", _check_item_delete),
    )


def register_immutability_listeners() -> None:
    """Register every immutability listener (safe to call repeatedly)."""
    registered = 0
    for target, identifier, fn in _listeners():
        if not event.contains(target, identifier, fn):
            event.listen(target, identifier, fn)
            registered += 1
    if registered:
        logger.debug("immutability_listeners_registered", extra={"count": registered})


def unregister_immutability_listeners() -> None:
    """
    Remove the immutability listeners.

    WARNING: only for tests that must plant rows the listeners would block.
    """
    for target, identifier, fn in _listeners():
        if event.contains(target, identifier, fn):
            event.remove(target, identifier, fn)
