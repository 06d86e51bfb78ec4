"""Pydantic models for persisted coaching trend analyses."""

from datetime import datetime
from pydantic import BaseModel

from .analysis import HistoricalAnalysis, TrendAnalysisResult
from .periods import DateRange


class TrendHistoryItem(BaseModel):
    """A saved analysis for one rep and one date range."""

    id: int
    subject_id: str
    date_range: DateRange
    call_count: int
    title: str | None = None
    is_snapshot: bool = False
    created_at: datetime
    updated_at: datetime | None = None
    analysis: TrendAnalysisResult

    def to_outcome(self) -> HistoricalAnalysis:
        return HistoricalAnalysis(
            result=self.analysis,
            history_id=self.id,
            date_range=self.date_range,
            call_count=self.call_count,
            created_at=self.created_at,
        )
