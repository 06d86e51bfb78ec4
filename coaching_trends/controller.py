"""State machine coordinating the primary analysis, an optional comparison
analysis, period validation and the call-count preview.

Primary:    idle -> pending -> ready | failed
Comparison: off -> staged -> confirmed -> ready | failed
            any -> ready (saved analysis from history) -> off

Date edits never run an analysis. The primary analysis runs on generate(),
the comparison only on confirm_comparison(). A result whose range changed
while it was in flight is discarded.
"""

import asyncio
import inspect
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from .config import get_settings
from .engines import TrendOrchestrator, apply_quick_fix, last_n_days, previous_period, validate_periods
from .errors import ComparisonBlockedError, TrendAnalysisError
from .models import (
    AnalysisTier,
    DateRange,
    PeriodValidation,
    QuickFix,
    TrendAnalysisOutcome,
    TrendHistoryItem,
    WarningSeverity,
)

logger = logging.getLogger(__name__)

DEFAULT_PRESET_DAYS = 30
PRESET_PREVIOUS = "previous"
PRESET_CUSTOM = "custom"


class PrimaryState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class ComparisonState(str, Enum):
    OFF = "off"
    STAGED = "staged"  # Range chosen, waiting for confirmation
    CONFIRMED = "confirmed"  # Analysis running
    READY = "ready"
    FAILED = "failed"


class DateRangeDebouncer:
    """Emits a range only after edits have been quiet for `delay_seconds`."""

    def __init__(self, on_commit: Callable[[DateRange], Any], delay_seconds: float | None = None):
        self.on_commit = on_commit
        self.delay_seconds = (
            get_settings().date_change_debounce_seconds if delay_seconds is None else delay_seconds
        )
        self._pending_range: DateRange | None = None
        self._timer: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._pending_range is not None

    def submit(self, date_range: DateRange) -> None:
        """Record an edit, restarting the quiet period."""
        self.cancel()
        self._pending_range = date_range
        self._timer = asyncio.create_task(self._wait_and_commit())

    async def flush(self) -> None:
        """Commit a pending edit immediately."""
        if self._pending_range is None:
            return
        date_range = self._pending_range
        self.cancel()
        await self._commit(date_range)

    def cancel(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None
        self._pending_range = None

    async def _wait_and_commit(self) -> None:
        await asyncio.sleep(self.delay_seconds)
        date_range = self._pending_range
        self._pending_range = None
        self._timer = None
        if date_range is not None:
            await self._commit(date_range)

    async def _commit(self, date_range: DateRange) -> None:
        result = self.on_commit(date_range)
        if inspect.isawaitable(result):
            await result


class ComparisonController:
    """Drives the trend views for one rep."""

    def __init__(
        self,
        orchestrator: TrendOrchestrator,
        subject_id: str,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.orchestrator = orchestrator
        self.subject_id = subject_id
        self._now = now

        self.primary_range = last_n_days(DEFAULT_PRESET_DAYS, now())
        self.primary_preset = str(DEFAULT_PRESET_DAYS)
        self.primary_state = PrimaryState.IDLE
        self.primary_outcome: TrendAnalysisOutcome | None = None
        self.primary_error: TrendAnalysisError | None = None

        self.comparison_state = ComparisonState.OFF
        self.comparison_range = previous_period(self.primary_range)
        self.comparison_preset = PRESET_PREVIOUS
        self.comparison_outcome: TrendAnalysisOutcome | None = None
        self.comparison_error: TrendAnalysisError | None = None

        self.preview_count: int | None = None
        self.preview_tier: AnalysisTier | None = None

        self._primary_generation = 0
        self._comparison_generation = 0

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def comparison_enabled(self) -> bool:
        return self.comparison_state != ComparisonState.OFF

    @property
    def validation(self) -> PeriodValidation | None:
        """Comparison period (A) checked against the primary period (B)."""
        if not self.comparison_enabled:
            return None
        return validate_periods(self.comparison_range, self.primary_range)

    @property
    def comparing_history(self) -> bool:
        """True when the comparison side shows a saved analysis."""
        return self.comparison_outcome is not None and self.comparison_outcome.kind == "history"

    @property
    def can_confirm(self) -> bool:
        validation = self.validation
        return (
            self.comparison_state in (ComparisonState.STAGED, ComparisonState.FAILED)
            and validation is not None
            and not validation.has_errors
        )

    @property
    def has_no_data(self) -> bool:
        """True when the primary period has no graded calls (not a failure)."""
        return self.primary_outcome is not None and self.primary_outcome.kind == "empty"

    @property
    def can_retry(self) -> bool:
        return self.primary_state == PrimaryState.FAILED and bool(
            self.primary_error and self.primary_error.recoverable
        )

    @property
    def error_message(self) -> str | None:
        if self.primary_state != PrimaryState.FAILED or self.primary_error is None:
            return None
        if self.primary_error.recoverable:
            return f"Analysis failed, try again. {self.primary_error.message}"
        return self.primary_error.message

    # ------------------------------------------------------------------
    # Range edits
    # ------------------------------------------------------------------

    def commit_primary_range(self, date_range: DateRange, preset: str = PRESET_CUSTOM) -> None:
        """Accept a settled primary range and invalidate loaded results."""
        self.primary_range = date_range
        self.primary_preset = preset
        self._reset_primary()
        self.preview_count = None
        self.preview_tier = None

        if self.comparison_enabled and not self.comparing_history:
            if self.comparison_preset == PRESET_PREVIOUS:
                self.comparison_range = previous_period(date_range)
            self._stage_comparison()

    def select_preset(self, days: int) -> None:
        self.commit_primary_range(last_n_days(days, self._now()), preset=str(days))

    def toggle_comparison(self, enabled: bool) -> None:
        if enabled:
            self.comparison_range = previous_period(self.primary_range)
            self.comparison_preset = PRESET_PREVIOUS
            self._stage_comparison()
        else:
            self._comparison_generation += 1
            self.comparison_state = ComparisonState.OFF
            self.comparison_outcome = None
            self.comparison_error = None

    def set_comparison_range(self, date_range: DateRange, preset: str = PRESET_CUSTOM) -> None:
        """Choose a comparison range; comparison is turned on and staged."""
        self.comparison_range = date_range
        self.comparison_preset = preset
        self._stage_comparison()

    def apply_quick_fix(self, fix: QuickFix) -> DateRange:
        fixed = apply_quick_fix(fix, self.comparison_range, self.primary_range)
        preset = PRESET_PREVIOUS if QuickFix(fix) is QuickFix.USE_PREVIOUS_PERIOD else PRESET_CUSTOM
        self.set_comparison_range(fixed, preset=preset)
        return fixed

    # ------------------------------------------------------------------
    # Analyses
    # ------------------------------------------------------------------

    async def generate(self, force_refresh: bool = False) -> TrendAnalysisOutcome | None:
        """Run the primary analysis. Returns None if the result went stale."""
        self._primary_generation += 1
        generation = self._primary_generation
        date_range = self.primary_range
        self.primary_state = PrimaryState.PENDING
        self.primary_error = None

        try:
            outcome = await self.orchestrator.analyze(self.subject_id, date_range, force_refresh=force_refresh)
        except TrendAnalysisError as e:
            if generation == self._primary_generation:
                logger.warning("Primary analysis failed for %s: %s", self.subject_id, e.message)
                self.primary_state = PrimaryState.FAILED
                self.primary_error = e
            return None

        if generation != self._primary_generation:
            logger.info("Discarding stale primary result for %s", date_range.label())
            return None
        self.primary_outcome = outcome
        self.primary_state = PrimaryState.READY
        return outcome

    async def force_refresh(self) -> TrendAnalysisOutcome | None:
        return await self.generate(force_refresh=True)

    async def confirm_comparison(self) -> TrendAnalysisOutcome | None:
        """Run the comparison analysis for the staged range.

        Raises:
            ComparisonBlockedError: If comparison is off or the periods are invalid
        """
        if not self.comparison_enabled:
            raise ComparisonBlockedError(["comparison mode is off"])
        validation = self.validation
        if validation.has_errors:
            raise ComparisonBlockedError([
                w.message for w in validation.warnings if w.severity == WarningSeverity.ERROR
            ])

        self._comparison_generation += 1
        generation = self._comparison_generation
        date_range = self.comparison_range
        self.comparison_state = ComparisonState.CONFIRMED
        self.comparison_error = None

        try:
            outcome = await self.orchestrator.analyze(self.subject_id, date_range)
        except TrendAnalysisError as e:
            if generation == self._comparison_generation:
                logger.warning("Comparison analysis failed for %s: %s", self.subject_id, e.message)
                self.comparison_state = ComparisonState.FAILED
                self.comparison_error = e
            return None

        if generation != self._comparison_generation:
            logger.info("Discarding stale comparison result for %s", date_range.label())
            return None
        self.comparison_outcome = outcome
        self.comparison_state = ComparisonState.READY
        return outcome

    async def preview(self) -> tuple[int, AnalysisTier] | None:
        """Fetch the call count and predicted tier for the primary range."""
        date_range = self.primary_range
        count = await self.orchestrator.preview_record_count(self.subject_id, date_range)
        if date_range != self.primary_range:
            return None
        self.preview_count = count
        self.preview_tier = self.orchestrator.predict_tier(count)
        return count, self.preview_tier

    def load_from_history(self, item: TrendHistoryItem) -> None:
        """Show a saved analysis in place of a fresh one."""
        self.exit_history_comparison()
        self.primary_range = item.date_range
        self.primary_preset = PRESET_CUSTOM
        self._reset_primary()
        self.primary_outcome = item.to_outcome()
        self.primary_state = PrimaryState.READY

    def compare_from_history(self, item: TrendHistoryItem) -> None:
        """Show a saved analysis as the comparison side. Nothing is re-run."""
        self._comparison_generation += 1
        self.comparison_range = item.date_range
        self.comparison_preset = PRESET_CUSTOM
        self.comparison_outcome = item.to_outcome()
        self.comparison_error = None
        self.comparison_state = ComparisonState.READY

    def exit_history_comparison(self) -> None:
        """Leave a history comparison; comparison mode is turned off."""
        if self.comparing_history:
            self.toggle_comparison(False)

    def _reset_primary(self) -> None:
        self._primary_generation += 1
        self.primary_state = PrimaryState.IDLE
        self.primary_outcome = None
        self.primary_error = None

    def _stage_comparison(self) -> None:
        self._comparison_generation += 1
        self.comparison_state = ComparisonState.STAGED
        self.comparison_outcome = None
        self.comparison_error = None
