"""
WorkflowService -- drives requests through ``VIATIC_REQUEST_WORKFLOW``.

Each public method is one workflow action.  The shared skeleton:

    1. check the actor plays the action's role
    2. lock the request row
    3. look up the transition for the current state and evaluate its guard
       (PreconditionFailedError, before any write, when there is none or
       the guard fails)
    4. apply the action's side effect on the active version
    5. set the new status, flush, append one audit record

Side effects:

    standardize          lote / planned date / notes on the active version
    create_correction    fork the active version (RequestService.fork_version)
    sign                 upsert the version's Signature
    mark_paid            upsert the version's TreasuryPayment (repeatable on PAID)
    request_correction   OPEN CorrectionRequest on the active version
"""

from datetime import date, datetime, timedelta
from typing import Any, Callable
from uuid import UUID

from viatico_kernel.domain.actor import Actor, require_role
from viatico_kernel.domain.dtos import RequestInfo
from viatico_kernel.domain.request_workflow import (
    ACTIVE_VERSION_HAS_LINES,
    RequestAction,
    guard_for,
    required_role,
    target_state,
)
from viatico_kernel.exceptions import InvalidInputError, PreconditionFailedError
from viatico_kernel.logging_config import get_logger
from viatico_kernel.models.request import (
    CorrectionRequest,
    CorrectionStatus,
    Signature,
    TreasuryPayment,
    ViaticRequest,
    ViaticRequestVersion,
)
from viatico_kernel.services.base import BaseService
from viatico_kernel.services.request_service import REQUEST_AUDIT_ENTITY, RequestService
from viatico_kernel.services.sequence_service import SequenceService
from viatico_kernel.utils.hashing import hash_payload

logger = get_logger("services.workflow")

# Audit action names that differ from the workflow action name
AUDIT_ACTION_NAMES: dict[RequestAction, str] = {
    RequestAction.STANDARDIZE: "admin_standardize",
    RequestAction.CREATE_CORRECTION: "admin_create_correction",
    RequestAction.SIGN: "sign_request",
}

# Guard name -> predicate over the active version
GUARD_EVALUATORS: dict[str, Callable[[ViaticRequestVersion], bool]] = {
    ACTIVE_VERSION_HAS_LINES: lambda version: bool(version.workers),
}


def version_document(request: ViaticRequest, version: ViaticRequestVersion) -> dict[str, Any]:
    """The content a signature attests to."""
    return {
        "request_number": request.request_number,
        "version_number": version.version_number,
        "start_date": version.start_date,
        "end_date": version.end_date,
        "planned_payment_date": version.planned_payment_date,
        "lote_number": version.lote_number,
        "lines": [
            {
                "worker_id": line.worker_id,
                "days_count": line.days_count,
                "daily_amount": line.daily_amount,
                "gross_amount": line.gross_amount,
                "balance_applied_amount": line.balance_applied_amount,
                "net_amount": line.net_amount,
            }
            for line in version.workers
        ],
    }


class WorkflowService(BaseService):

    @property
    def _store(self) -> RequestService:
        return RequestService(self.session, self.clock, self.auditor, self.settings)

    def _begin(
        self, request_id: UUID, action: RequestAction, actor: Actor
    ) -> tuple[ViaticRequest, str]:
        require_role(actor, required_role(action))
        request = self._store.get_request(request_id, lock=True)
        target = target_state(action, request.status)
        if target is None:
            logger.info(
                "workflow_precondition_failed",
                extra={
                    "request_id": str(request_id),
                    "action": action.value,
                    "status": request.status,
                },
            )
            raise PreconditionFailedError(str(request_id), action.value, request.status)

        guard = guard_for(action, request.status)
        if guard is not None and not self._guard_passes(guard.name, request):
            logger.info(
                "workflow_guard_failed",
                extra={
                    "request_id": str(request_id),
                    "action": action.value,
                    "guard_name": guard.name,
                },
            )
            raise PreconditionFailedError(str(request_id), action.value, request.status)
        return request, target

    def _guard_passes(self, guard_name: str, request: ViaticRequest) -> bool:
        evaluator = GUARD_EVALUATORS.get(guard_name)
        if evaluator is None:
            logger.warning("guard_no_evaluator", extra={"guard_name": guard_name})
            return False
        return evaluator(self._store.active_version(request))

    def _finish(
        self,
        request: ViaticRequest,
        action: RequestAction,
        target: str,
        actor: Actor,
        details: dict[str, Any] | None = None,
    ) -> RequestInfo:
        previous = request.status
        request.status = target
        request.updated_by_id = actor.user_id
        self.session.flush()

        after = {
            "from_status": previous,
            "status": target,
            "version_number": request.current_version_number,
        }
        after.update(details or {})
        self.auditor.record(
            REQUEST_AUDIT_ENTITY,
            request.id,
            AUDIT_ACTION_NAMES.get(action, action.value),
            after,
            actor.user_id,
        )

        logger.info(
            "request_transitioned",
            extra={
                "request_id": str(request.id),
                "action": action.value,
                "from_status": previous,
                "to_status": target,
            },
        )
        return RequestInfo.from_model(request)

    # Administration

    def submit(self, request_id: UUID, actor: Actor) -> RequestInfo:
        request, target = self._begin(request_id, RequestAction.SUBMIT, actor)
        return self._finish(request, RequestAction.SUBMIT, target, actor)

    def start_review(self, request_id: UUID, actor: Actor) -> RequestInfo:
        request, target = self._begin(request_id, RequestAction.START_REVIEW, actor)
        return self._finish(request, RequestAction.START_REVIEW, target, actor)

    def standardize(
        self,
        request_id: UUID,
        actor: Actor,
        lote_number: str | None = None,
        planned_payment_date: date | None = None,
        notes: str | None = None,
    ) -> RequestInfo:
        """
        Stamp the administrative metadata and send the request to signature.

        The lote keeps, in order of preference: the caller's value, the one
        already on the version, or a fresh ``L-<year>-<NNNN>``.
        """
        request, target = self._begin(request_id, RequestAction.STANDARDIZE, actor)
        version = self._store.active_version(request)

        lote = (lote_number or "").strip() or version.lote_number
        if not lote:
            year = self.clock.today().year
            number = SequenceService(self.session).next_value(SequenceService.lote_sequence(year))
            lote = self.settings.format_lote_number(year, number)
        version.lote_number = lote
        if planned_payment_date is not None:
            version.planned_payment_date = planned_payment_date
        if notes is not None:
            version.notes = notes.strip() or None
        version.updated_by_id = actor.user_id

        return self._finish(
            request, RequestAction.STANDARDIZE, target, actor,
            {"lote_number": lote, "planned_payment_date": version.planned_payment_date},
        )

    def start_correction(self, request_id: UUID, actor: Actor) -> RequestInfo:
        request, target = self._begin(request_id, RequestAction.START_CORRECTION, actor)
        return self._finish(request, RequestAction.START_CORRECTION, target, actor)

    def create_correction(
        self,
        request_id: UUID,
        actor: Actor,
        notes: str | None = None,
        planned_payment_date: date | None = None,
    ) -> RequestInfo:
        """Fork the active version and send the copy back to signature."""
        request, target = self._begin(request_id, RequestAction.CREATE_CORRECTION, actor)
        source = self._store.active_version(request)
        version = self._store.fork_version(
            request_id, actor, notes=notes, planned_payment_date=planned_payment_date
        )
        return self._finish(
            request, RequestAction.CREATE_CORRECTION, target, actor,
            {"from_version": source.version_number, "lines": len(version.lines)},
        )

    def cancel(self, request_id: UUID, actor: Actor, reason: str | None = None) -> RequestInfo:
        request, target = self._begin(request_id, RequestAction.CANCEL, actor)
        return self._finish(
            request, RequestAction.CANCEL, target, actor, {"reason": (reason or "").strip() or None}
        )

    # Area chief

    def sign(
        self,
        request_id: UUID,
        actor: Actor,
        signature_method: str | None = None,
    ) -> RequestInfo:
        """
        Sign the active version.  A version already signed keeps its
        signature; only ``signed_at`` moves.
        """
        request, target = self._begin(request_id, RequestAction.SIGN, actor)
        version = self._store.active_version(request)
        now = self.clock.now()

        signature = version.signature
        if signature is None:
            signature = Signature(
                signed_by_user_id=actor.user_id,
                signed_at=now,
                signature_method=signature_method or self.settings.default_signature_method,
                doc_hash=hash_payload(version_document(request, version)),
            )
            version.signature = signature
        else:
            signature.signed_at = now

        return self._finish(
            request, RequestAction.SIGN, target, actor,
            {"doc_hash": signature.doc_hash, "signature_method": signature.signature_method},
        )

    # Treasury

    def mark_paid(
        self,
        request_id: UUID,
        actor: Actor,
        payment_reference: str | None = None,
        notes: str | None = None,
        paid_at: datetime | None = None,
    ) -> RequestInfo:
        """
        Record the payment of the active version; repeating it updates the record.

        ``paid_at`` defaults to now.  Marking a PAID request again is how a
        wrong payment date or reference gets corrected.

        Raises:
            InvalidInputError: ``paid_at`` has no timezone.
        """
        if paid_at is not None and paid_at.tzinfo is None:
            raise InvalidInputError("paid_at", "must be timezone-aware")
        request, target = self._begin(request_id, RequestAction.MARK_PAID, actor)
        version = self._store.active_version(request)
        when = paid_at or self.clock.now()
        reference = (payment_reference or "").strip() or self.settings.default_payment_reference
        text = (notes or "").strip() or self.settings.default_payment_notes

        payment = version.payment
        if payment is None:
            payment = TreasuryPayment(
                paid_at=when,
                payment_reference=reference,
                notes=text,
                created_by_user_id=actor.user_id,
            )
            version.payment = payment
        else:
            payment.paid_at = when
            payment.payment_reference = reference
            payment.notes = text

        return self._finish(
            request, RequestAction.MARK_PAID, target, actor,
            {"payment_reference": reference, "paid_at": when},
        )

    def request_correction(
        self,
        request_id: UUID,
        actor: Actor,
        reason: str | None = None,
        suggested_payment_date: date | None = None,
    ) -> RequestInfo:
        """Bounce the request back to administration with an OPEN correction."""
        request, target = self._begin(request_id, RequestAction.REQUEST_CORRECTION, actor)
        version = self._store.active_version(request)
        text = (reason or "").strip() or self.settings.default_correction_reason
        suggested = suggested_payment_date or (
            self.clock.today() + timedelta(days=self.settings.correction_suggested_offset_days)
        )
        self.session.add(
            CorrectionRequest(
                request_version_id=version.id,
                requested_by_user_id=actor.user_id,
                reason=text,
                suggested_payment_date=suggested,
                status=CorrectionStatus.OPEN.value,
            )
        )
        return self._finish(
            request, RequestAction.REQUEST_CORRECTION, target, actor,
            {"reason": text, "suggested_payment_date": suggested},
        )
