"""
Tests for RequestService: request creation, numbering and the version chain.

Request lines are frozen at creation with the rate in force on the clock's
date (2026-02-20 in these tests).  Corrections never edit a version; they
append version N+1 through a compare-and-swap on the request pointer.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from viatico_kernel.domain.actor import Actor, UserRole
from viatico_kernel.domain.day_plan import DayPlan, DayPlanDay
from viatico_kernel.domain.dtos import LineItemSpec, WorkerLineInput
from viatico_kernel.domain.request_workflow import RequestStatus
from viatico_kernel.exceptions import (
    ActorNotFoundError,
    InvalidInputError,
    RequestNotFoundError,
    VersionConflictError,
    WorkerNotFoundError,
)
from viatico_kernel.models.area import Area
from viatico_kernel.services.request_service import REQUEST_AUDIT_ENTITY


# =========================================================================
# create_request
# =========================================================================


class TestCreateRequest:

    def test_defaults_to_range_days_and_current_rate(self, create_request, request_selector):
        request = create_request()

        assert request.status == RequestStatus.SUBMITTED_TO_ADMIN.value
        assert request.current_version_number == 1

        version = request_selector.active_version(request.id)
        assert version.version_number == 1
        assert len(version.lines) == 3
        for line in version.lines:
            assert line.days_count == Decimal("10")
            assert line.daily_amount == Decimal("25000")
            assert line.gross_amount == Decimal("250000")
            assert line.balance_applied_amount == Decimal("0")
            assert line.net_amount == Decimal("250000")
        assert version.total_net == Decimal("750000")

    def test_as_draft(self, create_request):
        assert create_request(as_draft=True).status == RequestStatus.DRAFT.value

    def test_lines_follow_input_order(self, create_request, request_selector, worker_ids):
        reordered = [WorkerLineInput(w) for w in reversed(worker_ids)]
        request = create_request(workers=reordered)
        version = request_selector.active_version(request.id)
        assert [line.worker_id for line in version.lines] == list(reversed(worker_ids))

    def test_rate_snapshot_uses_registry(
        self, create_request, rate_service, request_selector, admin
    ):
        rate_service.set_rate(date(2026, 2, 1), Decimal("30000"), "Aumento", admin)
        # Not yet in force on 2026-02-20
        rate_service.set_rate(date(2026, 3, 1), Decimal("40000"), None, admin)

        request = create_request()
        version = request_selector.active_version(request.id)
        assert {line.daily_amount for line in version.lines} == {Decimal("30000")}

    def test_explicit_days_and_amount_win(self, create_request, request_selector, worker_ids):
        request = create_request(
            workers=[
                WorkerLineInput(worker_ids[0], days_count=Decimal("2.5")),
                WorkerLineInput(worker_ids[1], daily_amount=Decimal("18000")),
            ]
        )
        first, second = request_selector.active_version(request.id).lines
        assert first.days_count == Decimal("2.5")
        assert first.gross_amount == Decimal("62500")
        assert second.days_count == Decimal("10")
        assert second.daily_amount == Decimal("18000")

    def test_duplicate_workers_collapse(self, create_request, request_selector, worker_ids):
        request = create_request(
            workers=[WorkerLineInput(worker_ids[0]), WorkerLineInput(worker_ids[0])]
        )
        assert len(request_selector.active_version(request.id).lines) == 1

    def test_day_plan_drives_days_and_concepts(
        self, create_request, request_selector, worker_ids
    ):
        ana, bruno, carla = worker_ids
        plan = DayPlan(
            crew="Cuadrilla norte",
            days={
                date(2026, 2, 5): DayPlanDay(worker_ids=(ana, bruno), concepts=("Montaje",)),
                date(2026, 2, 6): DayPlanDay(worker_ids=(ana,)),
            },
        )
        request = create_request(
            workers=[WorkerLineInput(w) for w in worker_ids], day_plan=plan
        )
        version = request_selector.active_version(request.id)

        days = {line.worker_id: line.days_count for line in version.lines}
        # Carla is not on any plan day and gets no line
        assert days == {ana: Decimal("2"), bruno: Decimal("1")}
        assert request_selector.day_concepts(version.id) == [
            (date(2026, 2, 5), "Montaje"),
            (date(2026, 2, 6), "Concepto general"),
        ]

    def test_day_plan_without_selected_days_rejected(self, create_request, worker_ids):
        plan = DayPlan(days={date(2026, 2, 5): DayPlanDay(worker_ids=(worker_ids[0],))})
        with pytest.raises(InvalidInputError):
            create_request(workers=[WorkerLineInput(worker_ids[2])], day_plan=plan)

    def test_concept_lines_repeat_each_day(self, create_request, request_selector):
        request = create_request(concept_lines=["Relevamiento", "  ", "Traslado"])
        version = request_selector.active_version(request.id)
        concepts = request_selector.day_concepts(version.id)
        assert len(concepts) == 20
        assert concepts[:2] == [
            (date(2026, 2, 5), "Relevamiento"),
            (date(2026, 2, 5), "Traslado"),
        ]

    def test_actor_area_used(self, create_request, seed):
        assert create_request().area_id == seed.area_id

    def test_default_area_created_for_actor_without_area(
        self, request_service, session, chief, worker_ids
    ):
        roaming = Actor(user_id=chief.user_id, role=UserRole.JEFE_AREA)
        request = request_service.create_request(
            roaming, date(2026, 2, 5), date(2026, 2, 6), [WorkerLineInput(worker_ids[0])]
        )
        area = session.get(Area, request.area_id)
        assert area.name == "Santiago del Estero"

    def test_audited(self, create_request, auditor_service):
        request = create_request()
        trace = auditor_service.get_trace(REQUEST_AUDIT_ENTITY, request.id)
        assert [entry.action for entry in trace] == ["create_request"]
        assert trace[0].after_json["workers"] == 3

    def test_logged(self, create_request, captured_logs):
        request = create_request()
        created = [r for r in captured_logs() if r["message"] == "request_created"]
        assert len(created) == 1
        assert created[0]["request_id"] == str(request.id)
        assert created[0]["worker_count"] == 3


class TestCreateRequestValidation:

    def test_end_before_start(self, create_request):
        with pytest.raises(InvalidInputError):
            create_request(start=date(2026, 2, 14), end=date(2026, 2, 5))

    def test_missing_dates(self, create_request):
        with pytest.raises(InvalidInputError):
            create_request(start=None)

    def test_no_workers(self, create_request):
        with pytest.raises(InvalidInputError):
            create_request(workers=[])

    def test_unknown_worker(self, create_request):
        with pytest.raises(WorkerNotFoundError):
            create_request(workers=[WorkerLineInput(uuid4())])

    @pytest.mark.parametrize("days", [Decimal("0"), Decimal("-1"), 1.5])
    def test_bad_days(self, create_request, worker_ids, days):
        with pytest.raises(InvalidInputError):
            create_request(workers=[WorkerLineInput(worker_ids[0], days_count=days)])

    @pytest.mark.parametrize("days", [Decimal("2.3"), "0.25", Decimal("1e30")])
    def test_days_not_half_step(self, create_request, worker_ids, days):
        with pytest.raises(InvalidInputError, match="0.5"):
            create_request(workers=[WorkerLineInput(worker_ids[0], days_count=days)])

    def test_half_day_line_accepted(self, create_request, request_selector, worker_ids):
        request = create_request(
            workers=[WorkerLineInput(worker_ids[0], days_count=Decimal("2.5"))]
        )
        [line] = request_selector.active_version(request.id).lines
        assert line.days_count == Decimal("2.5")

    def test_wrong_role(self, request_service, admin, worker_ids):
        with pytest.raises(ActorNotFoundError):
            request_service.create_request(
                admin, date(2026, 2, 5), date(2026, 2, 6), [WorkerLineInput(worker_ids[0])]
            )


# =========================================================================
# Numbering
# =========================================================================


class TestRequestNumbering:

    def test_first_number_from_clock(self, create_request, deterministic_clock):
        request = create_request()
        expected = int(deterministic_clock.now().timestamp() * 1000)
        assert request.request_number == f"REQ-{expected}"

    def test_following_numbers_increment(self, create_request):
        first = create_request()
        second = create_request()
        third = create_request()
        base = int(first.request_number.removeprefix("REQ-"))
        assert second.request_number == f"REQ-{base + 1}"
        assert third.request_number == f"REQ-{base + 2}"

    def test_short_numbers_padded(self, settings):
        assert settings.format_request_number(7) == "REQ-0007"
        assert settings.format_request_number(12345) == "REQ-12345"

    def test_numbers_unique_in_selector(self, create_request, request_selector):
        numbers = {create_request().request_number for _ in range(4)}
        assert len(numbers) == 4
        assert len(request_selector.list_requests()) == 4

    def test_lookup_by_number(self, create_request, request_selector):
        request = create_request()
        assert request_selector.by_number(request.request_number).id == request.id
        assert request_selector.by_number("REQ-9999") is None


# =========================================================================
# Versions
# =========================================================================


class TestVersions:

    def _lines(self, worker_ids):
        return [
            LineItemSpec(worker_id=w, days_count=Decimal("3"), daily_amount=Decimal("25000"))
            for w in worker_ids
        ]

    def test_create_next_version(
        self, create_request, request_service, request_selector, chief, worker_ids
    ):
        request = create_request()
        version = request_service.create_version(
            request.id, 2, date(2026, 2, 5), date(2026, 2, 7), self._lines(worker_ids), [], chief
        )
        assert version.version_number == 2
        assert request_selector.get(request.id).current_version_number == 2
        assert [v.version_number for v in request_selector.versions(request.id)] == [1, 2]

    @pytest.mark.parametrize("attempted", [1, 3])
    def test_non_sequential_version_conflicts(
        self, create_request, request_service, chief, worker_ids, attempted
    ):
        request = create_request()
        with pytest.raises(VersionConflictError) as exc_info:
            request_service.create_version(
                request.id, attempted, date(2026, 2, 5), date(2026, 2, 7),
                self._lines(worker_ids), [], chief,
            )
        assert exc_info.value.current_version == 1

    def test_unknown_request(self, request_service, chief, worker_ids):
        with pytest.raises(RequestNotFoundError):
            request_service.create_version(
                uuid4(), 2, date(2026, 2, 5), date(2026, 2, 7), self._lines(worker_ids), [], chief
            )

    def test_version_needs_lines(self, create_request, request_service, chief):
        request = create_request()
        with pytest.raises(InvalidInputError):
            request_service.create_version(
                request.id, 2, date(2026, 2, 5), date(2026, 2, 7), [], [], chief
            )

    def test_fork_copies_lines_and_concepts(
        self, create_request, request_service, request_selector, admin
    ):
        request = create_request(concept_lines=["Relevamiento"])
        original = request_selector.active_version(request.id)

        fork = request_service.fork_version(request.id, admin)

        assert fork.version_number == 2
        assert fork.notes == "Correccion solicitada"
        assert [(l.worker_id, l.days_count, l.net_amount) for l in fork.lines] == [
            (l.worker_id, l.days_count, l.net_amount) for l in original.lines
        ]
        assert request_selector.day_concepts(fork.id) == request_selector.day_concepts(
            original.id
        )
        # The original version is untouched
        assert request_selector.versions(request.id)[0].lines == original.lines
