"""
Append-only persistence tests.

Verifies:
- Rate history rows are never edited or deleted
- Request lines and audit rows are frozen once written
- A version's identity columns are frozen; its workflow columns are not
- Applied adjustment batches and items are frozen; drafts are not
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from viatico_kernel.exceptions import ImmutabilityViolationError
from viatico_kernel.models.adjustment import RetroactiveAdjustmentBatch
from viatico_kernel.models.audit_log import AuditLog
from viatico_kernel.models.rate import ViaticRateHistory
from viatico_kernel.models.request import ViaticRequestVersion, ViaticRequestWorker


@pytest.fixture
def version(create_request, request_selector, session) -> ViaticRequestVersion:
    info = request_selector.active_version(create_request().id)
    return session.get(ViaticRequestVersion, info.id)


@pytest.fixture
def batch(rate_service, create_request, session, admin) -> RetroactiveAdjustmentBatch:
    rate_service.set_rate(date(2026, 2, 1), Decimal("20000"), None, admin)
    create_request()
    change = rate_service.set_rate(date(2026, 2, 10), Decimal("25000"), None, admin)
    return session.get(RetroactiveAdjustmentBatch, change.adjustment_batch_id)


class TestRateHistory:

    def test_amount_cannot_change(self, rate_service, session, admin):
        change = rate_service.set_rate(date(2026, 2, 1), Decimal("20000"), None, admin)
        row = session.get(ViaticRateHistory, change.rate.id)

        row.amount = Decimal("21000")
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "ViaticRateHistory"

    def test_cannot_delete(self, rate_service, session, admin):
        change = rate_service.set_rate(date(2026, 2, 1), Decimal("20000"), None, admin)
        session.delete(session.get(ViaticRateHistory, change.rate.id))
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestRequestLines:

    def test_line_amount_cannot_change(self, version, session):
        line = version.workers[0]
        line.daily_amount = Decimal("1")
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "ViaticRequestWorker"

    def test_line_cannot_be_deleted(self, version, session):
        line_id = version.workers[0].id
        session.delete(session.get(ViaticRequestWorker, line_id))
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestVersions:

    @pytest.mark.parametrize(
        "field,value",
        [("start_date", date(2026, 2, 6)), ("end_date", date(2026, 2, 20)), ("payload_json", {})],
    )
    def test_identity_fields_frozen(self, version, session, field, value):
        setattr(version, field, value)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_workflow_fields_may_change(self, version, session):
        version.lote_number = "L-2026-0099"
        version.planned_payment_date = date(2026, 2, 25)
        session.flush()
        assert session.get(ViaticRequestVersion, version.id).lote_number == "L-2026-0099"


class TestAuditRows:

    def test_audit_row_frozen(self, create_request, session):
        create_request()
        row = session.execute(select(AuditLog).limit(1)).scalar_one()
        row.after_json = {"status": "PAID"}
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_audit_row_cannot_be_deleted(self, create_request, session):
        create_request()
        session.delete(session.execute(select(AuditLog).limit(1)).scalar_one())
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestAdjustmentBatches:

    def test_draft_batch_editable(self, batch, session):
        batch.items[0].position = 7
        session.flush()

    def test_applied_batch_frozen(self, batch, adjustment_service, session, admin):
        adjustment_service.apply_batch(batch.id, admin)

        batch.new_amount = Decimal("30000")
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "RetroactiveAdjustmentBatch"

    def test_applied_item_frozen(self, batch, adjustment_service, session, admin):
        adjustment_service.apply_batch(batch.id, admin)

        batch.items[0].amount_diff = Decimal("1")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_applied_batch_cannot_be_deleted(self, batch, adjustment_service, session, admin):
        adjustment_service.apply_batch(batch.id, admin)
        session.delete(batch)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
