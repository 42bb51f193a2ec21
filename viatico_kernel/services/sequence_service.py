"""
SequenceService -- monotonic counters via locked rows.

Counters back three orderings:

* ``viatic_request``  creation order of requests (``ViaticRequest.seq``)
* ``audit_log``       order of the audit hash chain
* ``lote_<year>``     per-year lote numbers assigned by standardize

The counter row is locked with ``SELECT ... FOR UPDATE`` while it is
advanced, so two transactions can never draw the same value, and the
aggregate max-plus-one pattern is never used.  The increment is only
visible when the caller's transaction commits; a rollback gives the value
back.
"""

from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from viatico_kernel.logging_config import get_logger
from viatico_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Allocates the next value of a named counter.

    Usage:
        seq = SequenceService(session).next_value(SequenceService.VIATIC_REQUEST)
    """

    VIATIC_REQUEST = "viatic_request"
    AUDIT_LOG = "audit_log"

    def __init__(self, session: Session):
        self._session = session

    @staticmethod
    def lote_sequence(year: int) -> str:
        return f"lote_{year}"

    def _locked_counter(self) -> Select:
        return (
            select(SequenceCounter)
            .with_for_update()
            .execution_options(populate_existing=True)
        )

    def next_value(self, sequence_name: str) -> int:
        """
        Lock the counter (creating it on first use), increment it and
        return the new value, always > 0.
        """
        counter = self._session.execute(
            self._locked_counter().where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        if counter is None:
            # First use.  A concurrent creator makes our insert fail; the
            # savepoint keeps the rest of the transaction intact.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._session.execute(
                    self._locked_counter().where(SequenceCounter.name == sequence_name)
                ).scalar_one()

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value without incrementing; None if never used."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None

