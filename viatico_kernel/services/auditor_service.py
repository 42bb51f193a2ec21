"""
AuditorService -- hash-chained audit trail for workflow actions.

Every successful state change appends one ``AuditLog`` row
``{entity, entity_id, action, after_json, actor_id}``.  Rows are chained:

    hash = H(entity | entity_id | action | payload_hash | prev_hash)

so editing or removing any row is detectable by ``validate_chain()``.

Audit writes run inside a SAVEPOINT.  If the write fails the savepoint is
rolled back, ``audit_record_failed`` is logged, and the business
transaction carries on.

Services depend on the ``AuditSink`` protocol, not on this class, so a
caller may route audit records elsewhere.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from viatico_kernel.domain.clock import Clock, SystemClock
from viatico_kernel.exceptions import AuditChainBrokenError
from viatico_kernel.logging_config import get_logger
from viatico_kernel.models.audit_log import AuditLog
from viatico_kernel.services.sequence_service import SequenceService
from viatico_kernel.utils.hashing import canonicalize_json, hash_audit_record, hash_payload

logger = get_logger("services.auditor")


@runtime_checkable
class AuditSink(Protocol):
    def record(
        self,
        entity: str,
        entity_id: UUID,
        action: str,
        after_json: dict[str, Any] | None,
        actor_id: UUID,
    ) -> None:
        ...


@dataclass(frozen=True)
class AuditTraceEntry:
    seq: int
    action: str
    occurred_at: datetime
    actor_id: UUID
    after_json: dict[str, Any] | None
    hash: str


class AuditorService:
    """
    Default ``AuditSink``: writes to the ``audit_log`` table.

    Guarantees:
        - ``seq`` comes from the locked ``audit_log`` counter.
        - Every row links to its predecessor's hash.
        - ``record()`` never raises on a storage failure.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        last = self._session.execute(
            select(AuditLog).order_by(AuditLog.seq.desc()).limit(1)
        ).scalar_one_or_none()
        return last.hash if last else None

    def _create_audit_record(
        self,
        entity: str,
        entity_id: UUID,
        action: str,
        after_json: dict[str, Any] | None,
        actor_id: UUID,
    ) -> AuditLog:
        seq = self._sequence_service.next_value(SequenceService.AUDIT_LOG)
        prev_hash = self._get_last_hash()

        # Round-trip through canonical JSON so the stored document holds
        # plain strings for Decimal, date and UUID values.
        stored = json.loads(canonicalize_json(after_json or {}))
        payload_hash = hash_payload(stored)

        record_hash = hash_audit_record(
            entity=entity,
            entity_id=str(entity_id),
            action=action,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        record = AuditLog(
            seq=seq,
            entity=entity,
            entity_id=entity_id,
            action=action,
            after_json=stored,
            actor_id=actor_id,
            occurred_at=self._clock.now(),
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=record_hash,
        )
        self._session.add(record)
        self._session.flush()

        logger.info(
            "audit_record_created",
            extra={
                "entity": entity,
                "entity_id": str(entity_id),
                "action": action,
                "seq": seq,
            },
        )
        return record

    def record(
        self,
        entity: str,
        entity_id: UUID,
        action: str,
        after_json: dict[str, Any] | None,
        actor_id: UUID,
    ) -> AuditLog | None:
        """
        Append one audit row.  Returns it, or None when the write failed
        (the failure is logged and the enclosing transaction is untouched).
        """
        savepoint = self._session.begin_nested()
        try:
            record = self._create_audit_record(entity, entity_id, action, after_json, actor_id)
            savepoint.commit()
            return record
        except SQLAlchemyError:
            savepoint.rollback()
            logger.error(
                "audit_record_failed",
                extra={
                    "entity": entity,
                    "entity_id": str(entity_id),
                    "action": action,
                },
                exc_info=True,
            )
            return None

    # Chain validation

    def validate_chain(self) -> bool:
        """
        Recompute every hash in ``seq`` order.

        Raises:
            AuditChainBrokenError: On the first row whose hash or
                predecessor link does not match.
        """
        records = self._session.execute(
            select(AuditLog).order_by(AuditLog.seq)
        ).scalars().all()

        expected_prev: str | None = None
        for record in records:
            if record.prev_hash != expected_prev:
                logger.critical("audit_chain_broken", extra={"seq": record.seq})
                raise AuditChainBrokenError(
                    str(record.id), expected_prev or "None", record.prev_hash or "None"
                )
            expected = hash_audit_record(
                entity=record.entity,
                entity_id=str(record.entity_id),
                action=record.action,
                payload_hash=record.payload_hash,
                prev_hash=record.prev_hash,
            )
            if record.hash != expected:
                logger.critical("audit_chain_broken", extra={"seq": record.seq})
                raise AuditChainBrokenError(str(record.id), expected, record.hash)
            expected_prev = record.hash

        logger.info("audit_chain_valid", extra={"record_count": len(records)})
        return True

    def get_trace(self, entity: str, entity_id: UUID) -> tuple[AuditTraceEntry, ...]:
        """Audit history of one entity, oldest first."""
        records = self._session.execute(
            select(AuditLog)
            .where(AuditLog.entity == entity, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.seq)
        ).scalars().all()
        return tuple(
            AuditTraceEntry(
                seq=r.seq,
                action=r.action,
                occurred_at=r.occurred_at,
                actor_id=r.actor_id,
                after_json=r.after_json,
                hash=r.hash,
            )
            for r in records
        )
