"""Validation and repair of baseline (A) vs. recent (B) comparison periods.

Day counts are inclusive calendar days. Only an identical pair of periods
blocks a comparison; overlap and duration mismatch are advisory.
"""

from datetime import datetime, timedelta

from ..errors import InvalidDateRangeError
from ..models import DateRange, is_aware, PeriodValidation, PeriodWarning, QuickFix, WarningSeverity

# Duration mismatch is reported only above both limits
DURATION_MISMATCH_MIN_DAYS = 7
DURATION_MISMATCH_RATIO = 0.3

MIXED_TZ_REASON = "start and end must both include a time zone offset or both omit it"


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=23, minute=59, second=59, microsecond=999999)


def make_range(start: datetime, end: datetime) -> DateRange:
    """Build a DateRange, raising InvalidDateRangeError instead of a validation error."""
    if is_aware(start) != is_aware(end):
        raise InvalidDateRangeError(start, end, reason=MIXED_TZ_REASON)
    if start > end:
        raise InvalidDateRangeError(start, end)
    return DateRange(start=start, end=end)


def _span_ending(end: datetime, days: int) -> DateRange:
    """Whole-day range of `days` calendar days ending on end's date."""
    last = end_of_day(end)
    first = start_of_day(last - timedelta(days=days - 1))
    return DateRange(start=first, end=last)


def last_n_days(days: int, now: datetime) -> DateRange:
    """The `days` calendar days ending today (today included)."""
    if days < 1:
        raise ValueError(f"days must be at least 1, got {days}")
    return _span_ending(now, days)


def previous_period(period: DateRange) -> DateRange:
    """Range of the same length ending the day before `period` starts."""
    return _span_ending(period.start - timedelta(days=1), period.days)


def _check_same_convention(period_a: DateRange, period_b: DateRange) -> None:
    """Both periods must be time zone aware, or both naive, to be compared."""
    if period_a.tz_aware != period_b.tz_aware:
        raise InvalidDateRangeError(
            period_a.start,
            period_b.start,
            reason="both periods must include a time zone offset or both omit it",
        )


def validate_periods(period_a: DateRange, period_b: DateRange) -> PeriodValidation:
    """Check a baseline period A against a recent period B.

    Returns:
        PeriodValidation with one warning per detected problem
    """
    _check_same_convention(period_a, period_b)
    a_days = period_a.days
    b_days = period_b.days
    days_difference = abs(a_days - b_days)
    warnings: list[PeriodWarning] = []

    is_identical = period_a.start == period_b.start and period_a.end == period_b.end
    has_overlap = False
    overlap_days = 0

    if is_identical:
        warnings.append(PeriodWarning(
            severity=WarningSeverity.ERROR,
            message="Both periods are identical. Choose a different comparison period.",
            quick_fix=QuickFix.USE_PREVIOUS_PERIOD,
        ))
    else:
        overlap_start = max(period_a.start, period_b.start)
        overlap_end = min(period_a.end, period_b.end)
        if overlap_start <= overlap_end:
            has_overlap = True
            overlap_days = (overlap_end.date() - overlap_start.date()).days + 1
            warnings.append(PeriodWarning(
                severity=WarningSeverity.WARNING,
                message=(
                    f"Periods overlap by {overlap_days} day{'s' if overlap_days != 1 else ''}. "
                    "Calls in the overlap are counted in both periods."
                ),
                quick_fix=QuickFix.SHIFT_PERIOD_A,
            ))

    if (
        days_difference > DURATION_MISMATCH_MIN_DAYS
        and days_difference > DURATION_MISMATCH_RATIO * min(a_days, b_days)
    ):
        warnings.append(PeriodWarning(
            severity=WarningSeverity.INFO,
            message=(
                f"Periods differ in length by {days_difference} days "
                f"({a_days} vs {b_days}). Averages may not be comparable."
            ),
            quick_fix=QuickFix.MATCH_DURATION,
        ))

    return PeriodValidation(
        has_overlap=has_overlap,
        overlap_days=overlap_days,
        is_identical=is_identical,
        period_a_days=a_days,
        period_b_days=b_days,
        days_difference=days_difference,
        warnings=warnings,
    )


def apply_quick_fix(fix: QuickFix, period_a: DateRange, period_b: DateRange) -> DateRange:
    """Return the repaired period A. Period B is never changed."""
    fix = QuickFix(fix)
    _check_same_convention(period_a, period_b)
    if fix is QuickFix.SHIFT_PERIOD_A:
        return _span_ending(period_b.start - timedelta(days=1), period_a.days)
    if fix is QuickFix.MATCH_DURATION:
        return _span_ending(period_a.end, period_b.days)
    return previous_period(period_b)
