"""
Structured day plan stored on each request version.

The plan says which workers travel on which day and what work is done.
Worker day counts and day concepts are derived from it, so it is kept as
a schema-versioned structure rather than an opaque blob:

    {
      "schema_version": 1,
      "crew": "Cuadrilla norte",
      "location": "Termas de Rio Hondo",
      "concepts": ["Relevamiento"],
      "days": {
        "2026-02-05": {"worker_ids": ["<uuid>", ...], "concepts": ["Montaje"]},
        ...
      }
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, Mapping
from uuid import UUID

from viatico_kernel.exceptions import InvalidInputError

DAY_PLAN_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class DayPlanDay:
    worker_ids: tuple[UUID, ...] = ()
    concepts: tuple[str, ...] = ()


@dataclass(frozen=True)
class DayPlan:
    crew: str = ""
    location: str = ""
    concepts: tuple[str, ...] = ()
    days: Mapping[date, DayPlanDay] = field(default_factory=dict)
    schema_version: int = DAY_PLAN_SCHEMA_VERSION

    @property
    def has_days(self) -> bool:
        return len(self.days) > 0

    def days_within(self, start: date, end: date) -> list[tuple[date, DayPlanDay]]:
        """Plan days inside [start, end], in date order."""
        return sorted(
            ((d, day) for d, day in self.days.items() if start <= d <= end),
            key=lambda item: item[0],
        )

    def worker_day_counts(
        self,
        start: date,
        end: date,
        selected: Iterable[UUID] | None = None,
    ) -> dict[UUID, int]:
        """
        Number of plan days (inside the range) listing each worker.

        Workers listed twice on the same day count once.  With ``selected``,
        workers outside the selection are ignored.
        """
        allowed = set(selected) if selected is not None else None
        counts: dict[UUID, int] = {}
        for _, day in self.days_within(start, end):
            for worker_id in dict.fromkeys(day.worker_ids):
                if allowed is not None and worker_id not in allowed:
                    continue
                counts[worker_id] = counts.get(worker_id, 0) + 1
        return counts

    def day_concepts(self, start: date, end: date, default_text: str) -> list[tuple[date, str]]:
        """One (date, text) per concept per plan day; default when a day lists none."""
        rows: list[tuple[date, str]] = []
        for d, day in self.days_within(start, end):
            for text in (day.concepts or (default_text,)):
                rows.append((d, text))
        return rows

    def to_payload(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "crew": self.crew,
            "location": self.location,
            "concepts": list(self.concepts),
            "days": {
                d.isoformat(): {
                    "worker_ids": [str(w) for w in day.worker_ids],
                    "concepts": list(day.concepts),
                }
                for d, day in sorted(self.days.items(), key=lambda item: item[0])
            },
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> "DayPlan":
        """
        Rebuild a plan from its stored form.

        Raises:
            InvalidInputError: Unknown schema version or malformed content.
        """
        if not payload:
            return cls()
        version = payload.get("schema_version", DAY_PLAN_SCHEMA_VERSION)
        if version != DAY_PLAN_SCHEMA_VERSION:
            raise InvalidInputError(
                "payload_json", f"unsupported day plan schema version {version!r}"
            )
        days: dict[date, DayPlanDay] = {}
        for key, raw_day in (payload.get("days") or {}).items():
            try:
                day = date.fromisoformat(key)
                worker_ids = tuple(UUID(str(w)) for w in raw_day.get("worker_ids") or ())
            except (TypeError, ValueError, AttributeError) as exc:
                raise InvalidInputError("payload_json", f"malformed day entry {key!r}") from exc
            concepts = tuple(str(c) for c in raw_day.get("concepts") or ())
            days[day] = DayPlanDay(worker_ids=worker_ids, concepts=concepts)
        return cls(
            crew=str(payload.get("crew") or ""),
            location=str(payload.get("location") or ""),
            concepts=tuple(str(c) for c in payload.get("concepts") or ()),
            days=days,
        )


def inclusive_dates(start: date, end: date) -> list[date]:
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def repeat_concepts(
    start: date,
    end: date,
    lines: Iterable[str],
    default_text: str,
) -> list[tuple[date, str]]:
    """
    Free-text concept lines repeated for every day of the range.

    Blank lines are dropped; no lines at all yields the default text.
    """
    texts = [line.strip() for line in lines if line and line.strip()] or [default_text]
    return [(d, text) for d in inclusive_dates(start, end) for text in texts]
