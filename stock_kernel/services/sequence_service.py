"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Hands out strictly increasing integers per named sequence.  Backs the
    ``seq`` ordering column on stock movements and the business numbers of
    transfers (``TRF000001``), purchases, production batches and manual
    adjustments.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Monotonicity: the locked counter row is the sole source of the next
      value.  MAX(column)+1 is never used.
    - Transactional: an allocated value is only visible after the caller's
      transaction commits; a rollback returns it.

Failure modes:
    - IntegrityError on a concurrent first-use race, handled with a
      savepoint rollback and re-read.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_kernel.logging_config import get_logger
from stock_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


def format_sequence_number(prefix: str, value: int, width: int) -> str:
    """``format_sequence_number("TRF", 7, 6) == "TRF000007"``."""
    return f"{prefix}{value:0{width}d}"


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()``; the caller owns the boundary.
    """

    # Well-known sequence names
    STOCK_MOVEMENT = "stock_movement"
    STOCK_TRANSFER = "stock_transfer"
    PURCHASE = "purchase"
    PRODUCTION_BATCH = "production_batch"
    MANUAL_ADJUSTMENT = "manual_adjustment"

    WELL_KNOWN = (
        STOCK_MOVEMENT,
        STOCK_TRANSFER,
        PURCHASE,
        PRODUCTION_BATCH,
        MANUAL_ADJUSTMENT,
    )

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Locks the counter row (creating it on first use), increments it and
        returns the new value.  Always > 0.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use. Another transaction may create it at the same time,
            # so insert inside a savepoint and fall back to re-reading.
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
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def next_formatted(self, sequence_name: str, prefix: str, width: int) -> str:
        """Allocate the next value and render it as a zero-padded business number."""
        return format_sequence_number(prefix, self.next_value(sequence_name), width)

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None if unused."""
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return counter.current_value if counter else None

    def reset(self, sequence_name: str, value: int = 0) -> None:
        """
        Reset a sequence to a specific value.

        WARNING: tests and migration scripts only.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            counter = SequenceCounter(name=sequence_name, current_value=value)
            self._session.add(counter)
        else:
            counter.current_value = value

        self._session.flush()

    def initialize_sequences(self) -> None:
        """Create every well-known sequence at zero if missing."""
        for name in self.WELL_KNOWN:
            existing = self._session.execute(
                select(SequenceCounter)
                .where(SequenceCounter.name == name)
            ).scalar_one_or_none()

            if existing is None:
                self._session.add(SequenceCounter(name=name, current_value=0))

        self._session.flush()
