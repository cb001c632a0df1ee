"""
Result carriers for operations that may partially fail.

A cascade processor or batch job commits its primary record even when some
sub-operations fail.  Those failures are collected as ``FailureDetail``
values and returned inside a ``PartialFailure`` rather than raised.
"""

from dataclasses import dataclass, field
from uuid import UUID

from stock_kernel.exceptions import StockKernelError


@dataclass(frozen=True)
class FailureDetail:
    """One failed sub-operation."""

    subject: str
    code: str
    message: str
    subject_id: UUID | None = None

    @classmethod
    def from_exception(
        cls,
        subject: str,
        exc: Exception,
        subject_id: UUID | None = None,
    ) -> "FailureDetail":
        code = exc.code if isinstance(exc, StockKernelError) else type(exc).__name__
        return cls(subject=subject, code=code, message=str(exc), subject_id=subject_id)


@dataclass(frozen=True)
class PartialFailure:
    """Failures collected alongside a successful primary result."""

    failures: tuple[FailureDetail, ...] = field(default_factory=tuple)

    def __bool__(self) -> bool:
        return bool(self.failures)

    def __len__(self) -> int:
        return len(self.failures)

    def __iter__(self):
        return iter(self.failures)

    @property
    def subjects(self) -> tuple[str, ...]:
        return tuple(f.subject for f in self.failures)
