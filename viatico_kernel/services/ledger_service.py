"""
LedgerService -- writes to the worker balance ledger.

Two kinds of entries:

* Manual entries (purpose ``MANUAL``): free postings by administration,
  any number per worker.
* Keyed entries (``RENDITION_BALANCE``, ``RETROACTIVE_ADJUSTMENT``): at most
  one row per ``LedgerKey``, enforced by partial unique indexes.  They are
  written with lock-then-update-or-insert; when two transactions race to
  insert the same key, the loser's insert fails inside a savepoint and it
  re-reads the winner's row under lock and updates it instead.

Amounts are always positive; the sign lives in ``entry_type``.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from viatico_kernel.db.types import to_decimal
from viatico_kernel.domain.actor import Actor, UserRole, require_role
from viatico_kernel.domain.dtos import LedgerEntryInfo, LedgerKey
from viatico_kernel.exceptions import InvalidInputError, WorkerNotFoundError
from viatico_kernel.logging_config import get_logger
from viatico_kernel.models.ledger import EntryType, LedgerPurpose, WorkerViaticBalanceLedger
from viatico_kernel.models.worker import Worker
from viatico_kernel.services.base import BaseService

logger = get_logger("services.ledger")


def _positive_amount(amount) -> Decimal:
    try:
        value = to_decimal(amount, "amount")
    except ValueError as exc:
        raise InvalidInputError("amount", str(exc)) from exc
    if value <= 0:
        raise InvalidInputError("amount", "must be greater than zero")
    return value


def _entry_type(entry_type: EntryType | str) -> str:
    try:
        return EntryType(entry_type).value
    except ValueError as exc:
        raise InvalidInputError("entry_type", f"unknown entry type {entry_type!r}") from exc


class LedgerService(BaseService):

    def _keyed_query(self, key: LedgerKey):
        stmt = select(WorkerViaticBalanceLedger).where(
            WorkerViaticBalanceLedger.worker_id == key.worker_id,
            WorkerViaticBalanceLedger.purpose == key.purpose,
        )
        if key.purpose == LedgerPurpose.RENDITION_BALANCE.value:
            return stmt.where(
                WorkerViaticBalanceLedger.related_request_version_id
                == key.related_request_version_id
            )
        if key.purpose == LedgerPurpose.RETROACTIVE_ADJUSTMENT.value:
            return stmt.where(
                WorkerViaticBalanceLedger.related_adjustment_item_id
                == key.related_adjustment_item_id
            )
        raise InvalidInputError("purpose", f"{key.purpose!r} entries are not keyed")

    def _find_keyed(self, key: LedgerKey) -> WorkerViaticBalanceLedger | None:
        return self.session.execute(
            self._keyed_query(key)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def record_entry(
        self,
        worker_id: UUID,
        entry_type: EntryType | str,
        amount,
        reason: str,
        actor: Actor,
    ) -> LedgerEntryInfo:
        """
        Post a manual entry.

        Raises:
            ActorNotFoundError: Actor is not ADMIN.
            InvalidInputError: Non-positive amount, unknown type, blank reason.
            WorkerNotFoundError: Unknown worker.
        """
        require_role(actor, UserRole.ADMIN)
        kind = _entry_type(entry_type)
        value = _positive_amount(amount)
        text = (reason or "").strip()
        if not text:
            raise InvalidInputError("reason", "cannot be blank")
        if self.session.get(Worker, worker_id) is None:
            raise WorkerNotFoundError(str(worker_id))

        entry = WorkerViaticBalanceLedger(
            worker_id=worker_id,
            entry_type=kind,
            amount=value,
            reason=text,
            purpose=LedgerPurpose.MANUAL.value,
            created_by_id=actor.user_id,
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "ledger_entry_recorded",
            extra={
                "worker_id": str(worker_id),
                "entry_type": kind,
                "amount": str(value),
                "purpose": LedgerPurpose.MANUAL.value,
            },
        )
        return LedgerEntryInfo.from_model(entry)

    def upsert_keyed_entry(
        self,
        key: LedgerKey,
        entry_type: EntryType | str,
        amount,
        reason: str,
        actor_id: UUID,
    ) -> LedgerEntryInfo:
        """
        Create or overwrite the single entry identified by ``key``.

        Postconditions:
            Exactly one row matches ``key``, holding the given type,
            amount and reason.
        """
        kind = _entry_type(entry_type)
        value = _positive_amount(amount)

        entry = self._find_keyed(key)
        if entry is None:
            savepoint = self.session.begin_nested()
            try:
                entry = WorkerViaticBalanceLedger(
                    worker_id=key.worker_id,
                    entry_type=kind,
                    amount=value,
                    reason=reason,
                    purpose=key.purpose,
                    related_request_version_id=key.related_request_version_id,
                    related_adjustment_item_id=key.related_adjustment_item_id,
                    created_by_id=actor_id,
                )
                self.session.add(entry)
                self.session.flush()
                savepoint.commit()
                logger.info(
                    "ledger_keyed_entry_created",
                    extra={
                        "worker_id": str(key.worker_id),
                        "purpose": key.purpose,
                        "entry_type": kind,
                        "amount": str(value),
                    },
                )
                return LedgerEntryInfo.from_model(entry)
            except IntegrityError:
                savepoint.rollback()
                logger.info(
                    "ledger_keyed_entry_race_retry",
                    extra={"worker_id": str(key.worker_id), "purpose": key.purpose},
                )
                entry = self._find_keyed(key)
                if entry is None:
                    raise

        entry.entry_type = kind
        entry.amount = value
        entry.reason = reason
        entry.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "ledger_keyed_entry_updated",
            extra={
                "worker_id": str(key.worker_id),
                "purpose": key.purpose,
                "entry_type": kind,
                "amount": str(value),
            },
        )
        return LedgerEntryInfo.from_model(entry)

    def delete_keyed_entry(self, key: LedgerKey) -> bool:
        """Remove the entry for ``key``.  Returns False when there was none."""
        entry = self._find_keyed(key)
        if entry is None:
            return False
        self.session.delete(entry)
        self.session.flush()
        logger.info(
            "ledger_keyed_entry_deleted",
            extra={"worker_id": str(key.worker_id), "purpose": key.purpose},
        )
        return True
