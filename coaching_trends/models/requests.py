"""Request and response bodies for the HTTP API."""

from datetime import datetime
from pydantic import BaseModel, Field

from .analysis import AnalysisTier
from .periods import DateRange, PeriodValidation, QuickFix


class DateRangeInput(BaseModel):
    """Unvalidated range from a client; ordering is checked by the handlers."""

    start: datetime
    end: datetime


class TrendAnalysisRequest(BaseModel):
    subject_id: str = Field(..., min_length=1, description="Rep whose calls are analyzed")
    date_range: DateRangeInput
    force_refresh: bool = False


class PreviewRequest(BaseModel):
    subject_id: str = Field(..., min_length=1)
    date_range: DateRangeInput


class PreviewResponse(BaseModel):
    call_count: int
    tier: AnalysisTier


class ValidatePeriodsRequest(BaseModel):
    period_a: DateRangeInput = Field(..., description="Earlier baseline period")
    period_b: DateRangeInput = Field(..., description="Recent period")


class QuickFixRequest(ValidatePeriodsRequest):
    quick_fix: QuickFix


class QuickFixResponse(BaseModel):
    period_a: DateRange
    validation: PeriodValidation


class SnapshotRequest(BaseModel):
    title: str | None = Field(None, max_length=255)
