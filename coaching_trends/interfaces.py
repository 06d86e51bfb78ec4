"""Collaborator interfaces consumed by the analysis engines."""

from typing import Protocol

from .models import CallRecord, ChunkSummary, DateRange, TrendAnalysisResult, TrendHistoryItem


class RecordStore(Protocol):
    """Source of a rep's graded calls."""

    async def fetch_records(self, subject_id: str, date_range: DateRange) -> list[CallRecord]:
        """Return calls in the range ordered by date, earliest first.

        Raises:
            SubjectNotFoundError: If the rep does not exist
        """
        ...

    async def count_records(self, subject_id: str, date_range: DateRange) -> int:
        ...


class Summarizer(Protocol):
    """Bounded-context model that turns calls into structured coaching output.

    Every method may raise UpstreamTimeoutError, UpstreamError or
    MalformedOutputError.
    """

    async def summarize_calls(
        self, records: list[CallRecord], date_range: DateRange
    ) -> TrendAnalysisResult:
        ...

    async def summarize_chunk(
        self, records: list[CallRecord], chunk_index: int, date_range: DateRange
    ) -> ChunkSummary:
        ...

    async def synthesize(
        self, chunk_summaries: list[ChunkSummary], date_range: DateRange, total_calls: int
    ) -> TrendAnalysisResult:
        ...


class HistoryStore(Protocol):
    """Persistent store of generated analyses."""

    async def save_analysis(
        self,
        subject_id: str,
        date_range: DateRange,
        call_count: int,
        analysis: TrendAnalysisResult,
    ) -> TrendHistoryItem:
        """Insert or replace the analysis saved for this rep and range."""
        ...
