"""Shared test fixtures and configuration."""

import asyncio
import os
import pytest
from datetime import datetime, timedelta


# Set test environment variables BEFORE any application imports
os.environ.setdefault("ANTHROPIC_API_KEY", "test-key-123")
os.environ.setdefault("ARIZE_API_KEY", "")
os.environ.setdefault("ARIZE_SPACE_ID", "")
os.environ.setdefault("DATABASE_URL", "sqlite://")


@pytest.fixture(autouse=True, scope="session")
def clear_settings_cache():
    """Clear the lru_cache on get_settings to prevent stale config."""
    from coaching_trends.config import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


JAN_1 = datetime(2024, 1, 1, 9, 0)


@pytest.fixture
def make_range():
    """Factory fixture for whole-day DateRange objects."""
    from coaching_trends.models import DateRange

    def _make(start: datetime, end: datetime):
        return DateRange(
            start=start.replace(hour=0, minute=0, second=0, microsecond=0),
            end=end.replace(hour=23, minute=59, second=59, microsecond=999999),
        )

    return _make


@pytest.fixture
def make_record():
    """Factory fixture to create CallRecord objects."""
    from coaching_trends.models import CallRecord

    def _make(call_id="call-1", call_date=JAN_1, heat_score=5.0, subject_id="rep-1", **kwargs):
        return CallRecord(
            id=call_id,
            subject_id=subject_id,
            call_date=call_date,
            heat_score=heat_score,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_records(make_record):
    """Factory for `count` calls spread `spacing` apart starting at `start`."""

    def _make(count, start=JAN_1, spacing=timedelta(hours=12), subject_id="rep-1"):
        return [
            make_record(
                call_id=f"call-{i:04d}",
                call_date=start + spacing * i,
                heat_score=float((i * 7) % 11),
                subject_id=subject_id,
            )
            for i in range(count)
        ]

    return _make


@pytest.fixture
def sample_result():
    """A populated TrendAnalysisResult."""
    from coaching_trends.models import TrendAnalysisResult

    return TrendAnalysisResult.model_validate({
        "summary": "Discovery depth improved while monologues dropped.",
        "period_analysis": {"total_calls": 12, "average_heat_score": 6.5, "heat_score_trend": "improving"},
        "strengths": ["Strong pain discovery"],
        "improvements": ["Confirm decision criteria earlier"],
        "top_priorities": [
            {
                "area": "Economic buyer",
                "reason": "Missing in 5 of 12 calls",
                "action_item": "Ask who signs off on budget in the first call",
            }
        ],
    })


class FakeRecordStore:
    """In-memory RecordStore that counts fetches."""

    def __init__(self, records=None, known_subjects=("rep-1",)):
        self.records = list(records or [])
        self.known_subjects = set(known_subjects)
        self.fetch_calls = 0
        self.count_calls = 0
        self.gate: asyncio.Event | None = None

    def _matching(self, subject_id, date_range):
        from coaching_trends.errors import SubjectNotFoundError

        if subject_id not in self.known_subjects:
            raise SubjectNotFoundError(subject_id)
        return sorted(
            (r for r in self.records if r.subject_id == subject_id and date_range.contains(r.call_date)),
            key=lambda r: r.call_date,
        )

    async def fetch_records(self, subject_id, date_range):
        self.fetch_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        return self._matching(subject_id, date_range)

    async def count_records(self, subject_id, date_range):
        self.count_calls += 1
        return len(self._matching(subject_id, date_range))


class FakeSummarizer:
    """Summarizer returning canned results and recording its inputs."""

    def __init__(self, fail_on_chunk=None, chunk_delays=None):
        self.summarize_inputs = []
        self.chunk_inputs = []
        self.synthesize_inputs = []
        self.fail_on_chunk = fail_on_chunk
        self.chunk_delays = chunk_delays or {}
        self.cancelled_chunks = []
        self.summary_prefix = "Analysis"

    def _result(self, total_calls):
        from coaching_trends.models import PeriodAnalysis, TrendAnalysisResult

        return TrendAnalysisResult(
            summary=f"{self.summary_prefix} of {total_calls} calls",
            period_analysis=PeriodAnalysis(total_calls=total_calls),
        )

    async def summarize_calls(self, records, date_range):
        self.summarize_inputs.append(list(records))
        return self._result(len(records))

    async def summarize_chunk(self, records, chunk_index, date_range):
        from coaching_trends.errors import UpstreamError
        from coaching_trends.models import ChunkSummary

        self.chunk_inputs.append((chunk_index, list(records)))
        try:
            await asyncio.sleep(self.chunk_delays.get(chunk_index, 0))
        except asyncio.CancelledError:
            self.cancelled_chunks.append(chunk_index)
            raise
        if chunk_index == self.fail_on_chunk:
            raise UpstreamError(f"chunk {chunk_index + 1} summary", "boom")
        return ChunkSummary(chunk_index=chunk_index, date_range=date_range, call_count=len(records))

    async def synthesize(self, chunk_summaries, date_range, total_calls):
        self.synthesize_inputs.append(list(chunk_summaries))
        return self._result(total_calls)


@pytest.fixture
def fake_store():
    return FakeRecordStore()


@pytest.fixture
def fake_summarizer():
    return FakeSummarizer()


@pytest.fixture
def make_orchestrator(fake_store, fake_summarizer):
    """Factory for a TrendOrchestrator wired to the fakes with small tiers."""
    from coaching_trends.cache import AnalysisCache
    from coaching_trends.engines import ChunkSynthesizer, StratifiedSampler, TierSelector, TrendOrchestrator

    def _make(direct_max=50, sampling_max=100, chunk_size=25, history_store=None, clock=None):
        cache_kwargs = {"ttl_seconds": 300, "max_entries": 100}
        if clock is not None:
            cache_kwargs["clock"] = clock
        return TrendOrchestrator(
            record_store=fake_store,
            summarizer=fake_summarizer,
            cache=AnalysisCache(**cache_kwargs),
            history_store=history_store,
            tier_selector=TierSelector(direct_max=direct_max, sampling_max=sampling_max),
            sampler=StratifiedSampler(bucket_days=7, extreme_share=0.5),
            chunk_synthesizer=ChunkSynthesizer(fake_summarizer, max_chunk_size=chunk_size, concurrency=4),
        )

    return _make
