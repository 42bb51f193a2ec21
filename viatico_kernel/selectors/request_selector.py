"""
Module: viatico_kernel.selectors.request_selector
Responsibility: Read-only queries over requests, their versions and the
    audit trail attached to them.
"""

from uuid import UUID

from sqlalchemy import select

from viatico_kernel.domain.dtos import RequestInfo, VersionInfo
from viatico_kernel.models.request import (
    CorrectionRequest,
    ViaticRequest,
    ViaticRequestDayConcept,
    ViaticRequestVersion,
)
from viatico_kernel.selectors.base import BaseSelector


class RequestSelector(BaseSelector):

    def get(self, request_id: UUID) -> RequestInfo | None:
        request = self.session.get(ViaticRequest, request_id)
        return RequestInfo.from_model(request) if request else None

    def by_number(self, request_number: str) -> RequestInfo | None:
        request = self.session.execute(
            select(ViaticRequest).where(ViaticRequest.request_number == request_number)
        ).scalar_one_or_none()
        return RequestInfo.from_model(request) if request else None

    def list_requests(self, status: str | None = None) -> list[RequestInfo]:
        """Requests in creation order, optionally filtered by status."""
        stmt = select(ViaticRequest).order_by(ViaticRequest.seq)
        if status is not None:
            stmt = stmt.where(ViaticRequest.status == status)
        return [RequestInfo.from_model(r) for r in self.session.execute(stmt).scalars()]

    def versions(self, request_id: UUID) -> list[VersionInfo]:
        rows = self.session.execute(
            select(ViaticRequestVersion)
            .where(ViaticRequestVersion.request_id == request_id)
            .order_by(ViaticRequestVersion.version_number)
        ).scalars().all()
        return [VersionInfo.from_model(v) for v in rows]

    def active_version(self, request_id: UUID) -> VersionInfo | None:
        row = self.session.execute(
            select(ViaticRequestVersion)
            .join(ViaticRequest, ViaticRequest.id == ViaticRequestVersion.request_id)
            .where(
                ViaticRequest.id == request_id,
                ViaticRequestVersion.version_number == ViaticRequest.current_version_number,
            )
        ).scalar_one_or_none()
        return VersionInfo.from_model(row) if row else None

    def day_concepts(self, version_id: UUID) -> list[tuple]:
        """(date, text) pairs in day then position order."""
        return [
            (row.date, row.concept_text)
            for row in self.session.execute(
                select(ViaticRequestDayConcept)
                .where(ViaticRequestDayConcept.request_version_id == version_id)
                .order_by(ViaticRequestDayConcept.date, ViaticRequestDayConcept.position)
            ).scalars()
        ]

    def correction_statuses(self, version_id: UUID) -> list[str]:
        return list(
            self.session.execute(
                select(CorrectionRequest.status)
                .where(CorrectionRequest.request_version_id == version_id)
                .order_by(CorrectionRequest.created_at, CorrectionRequest.id)
            ).scalars()
        )
