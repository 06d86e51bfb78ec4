"""Pydantic models for date ranges and period comparison results."""

from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, model_validator


def is_aware(moment: datetime) -> bool:
    """True when moment carries a usable UTC offset."""
    return moment.tzinfo is not None and moment.utcoffset() is not None


class DateRange(BaseModel):
    """An inclusive span of time; `start` must not be after `end`.

    Both ends must use the same convention: both time zone aware or both naive.
    """

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def _check_order(self) -> "DateRange":
        if is_aware(self.start) != is_aware(self.end):
            raise ValueError("start and end must both be time zone aware or both naive")
        if self.start > self.end:
            raise ValueError(f"start ({self.start}) must not be after end ({self.end})")
        return self

    @property
    def tz_aware(self) -> bool:
        return is_aware(self.start)

    @property
    def days(self) -> int:
        """Number of calendar days covered, counting both ends."""
        return (self.end.date() - self.start.date()).days + 1

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end

    def label(self) -> str:
        return f"{self.start.date().isoformat()} to {self.end.date().isoformat()}"


class WarningSeverity(str, Enum):
    """How strongly a period warning should be treated."""

    ERROR = "error"  # Blocks the comparison from running
    WARNING = "warning"
    INFO = "info"


class QuickFix(str, Enum):
    """Mechanical repairs that can be applied to the baseline period."""

    SHIFT_PERIOD_A = "shift-period-a"
    MATCH_DURATION = "match-duration"
    USE_PREVIOUS_PERIOD = "use-previous-period"


class PeriodWarning(BaseModel):
    """A single problem detected when comparing two periods."""

    severity: WarningSeverity
    message: str
    quick_fix: QuickFix | None = None


class PeriodValidation(BaseModel):
    """Result of validating a baseline period (A) against a recent period (B)."""

    has_overlap: bool = False
    overlap_days: int = 0
    is_identical: bool = False
    period_a_days: int
    period_b_days: int
    days_difference: int
    warnings: list[PeriodWarning] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(w.severity == WarningSeverity.ERROR for w in self.warnings)
