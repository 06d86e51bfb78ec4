"""Top-level coordinator for coaching trend analysis.

Flow for one (rep, date range) request:
    1. Validate the range
    2. Serve from cache unless a refresh is forced
    3. Fetch the rep's graded calls
    4. No calls -> EmptyAnalysis (not cached)
    5. Pick a tier and run it: direct, sampled or hierarchical
    6. Cache the result and save it to history
"""

import json
import logging

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from ..cache import AnalysisCache
from ..errors import InvalidDateRangeError, TrendAnalysisError
from ..interfaces import HistoryStore, RecordStore, Summarizer
from ..models import (
    AnalysisMetadata,
    AnalysisTier,
    DateRange,
    EmptyAnalysis,
    FreshAnalysis,
    PeriodAnalysis,
    TrendAnalysisOutcome,
    TrendAnalysisResult,
)
from .chunk_synthesizer import ChunkSynthesizer
from .sampler import StratifiedSampler
from .tier_selector import TierSelector

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

EMPTY_SUMMARY = "No analyzed calls found in the selected period"


def empty_outcome() -> EmptyAnalysis:
    return EmptyAnalysis(
        result=TrendAnalysisResult(summary=EMPTY_SUMMARY, period_analysis=PeriodAnalysis(total_calls=0)),
        metadata=AnalysisMetadata(tier=AnalysisTier.DIRECT, total_calls=0, analyzed_calls=0),
    )


class TrendOrchestrator:
    """Produces coaching trend outcomes for a rep over a date range."""

    def __init__(
        self,
        record_store: RecordStore,
        summarizer: Summarizer,
        cache: AnalysisCache | None = None,
        history_store: HistoryStore | None = None,
        tier_selector: TierSelector | None = None,
        sampler: StratifiedSampler | None = None,
        chunk_synthesizer: ChunkSynthesizer | None = None,
    ):
        self.record_store = record_store
        self.summarizer = summarizer
        self.cache = cache or AnalysisCache()
        self.history_store = history_store
        self.tier_selector = tier_selector or TierSelector()
        self.sampler = sampler or StratifiedSampler()
        self.chunk_synthesizer = chunk_synthesizer or ChunkSynthesizer(summarizer)

    @staticmethod
    def cache_key(subject_id: str, date_range: DateRange) -> tuple:
        return (subject_id, date_range.start, date_range.end)

    async def analyze(
        self, subject_id: str, date_range: DateRange, force_refresh: bool = False
    ) -> TrendAnalysisOutcome:
        """Analyze a rep's calls in date_range.

        Args:
            subject_id: Rep whose calls are analyzed
            date_range: Inclusive period to analyze
            force_refresh: Bypass the cache and supersede any in-flight run

        Returns:
            FreshAnalysis, or EmptyAnalysis when the period has no graded calls

        Raises:
            InvalidDateRangeError: If start is after end
            SubjectNotFoundError: If the rep does not exist
            UpstreamError: If summarization fails or times out
        """
        self._check_range(date_range)

        with tracer.start_as_current_span("coaching_trend_analysis") as span:
            span.set_attribute("openinference.span.kind", "chain")
            span.set_attribute("input.value", json.dumps({
                "subject_id": subject_id,
                "start": date_range.start.isoformat(),
                "end": date_range.end.isoformat(),
                "force_refresh": force_refresh,
            }))
            span.set_attribute("input.mime_type", "application/json")

            try:
                outcome = await self.cache.get_or_compute(
                    self.cache_key(subject_id, date_range),
                    lambda: self._run(subject_id, date_range),
                    force_refresh=force_refresh,
                    cacheable=lambda value: isinstance(value, FreshAnalysis),
                )
            except TrendAnalysisError as e:
                span.set_attribute("error.type", e.error_type)
                span.set_status(Status(StatusCode.ERROR, e.message))
                span.record_exception(e)
                raise
            except Exception as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                span.record_exception(e)
                raise

            span.set_attribute("analysis.kind", outcome.kind)
            span.set_attribute("analysis.tier", outcome.metadata.tier.value)
            span.set_attribute("analysis.total_calls", outcome.metadata.total_calls)
            span.set_attribute("output.value", outcome.result.summary)
            span.set_status(Status(StatusCode.OK))
            return outcome

    async def preview_record_count(self, subject_id: str, date_range: DateRange) -> int:
        """Count graded calls in range without running an analysis."""
        self._check_range(date_range)
        return await self.record_store.count_records(subject_id, date_range)

    def predict_tier(self, record_count: int) -> AnalysisTier:
        return self.tier_selector.select_tier(record_count)

    @staticmethod
    def _check_range(date_range: DateRange) -> None:
        if date_range.start > date_range.end:
            raise InvalidDateRangeError(date_range.start, date_range.end)

    async def _run(self, subject_id: str, date_range: DateRange) -> EmptyAnalysis | FreshAnalysis:
        records = await self.record_store.fetch_records(subject_id, date_range)
        if not records:
            logger.info("No graded calls for %s in %s", subject_id, date_range.label())
            return empty_outcome()

        total = len(records)
        tier = self.tier_selector.select_tier(total)
        logger.info("Tier determined: %s for %d calls (%s)", tier.value, total, subject_id)

        if tier == AnalysisTier.DIRECT:
            result = await self.summarizer.summarize_calls(records, date_range)
            metadata = AnalysisMetadata(tier=tier, total_calls=total, analyzed_calls=total)

        elif tier == AnalysisTier.SAMPLED:
            sample, sampling_info = self.sampler.sample(records, self.tier_selector.direct_max)
            result = await self.summarizer.summarize_calls(sample, date_range)
            metadata = AnalysisMetadata(
                tier=tier,
                total_calls=total,
                analyzed_calls=len(sample),
                sampling_info=sampling_info,
            )

        else:
            result, hierarchical_info = await self.chunk_synthesizer.synthesize(records, date_range)
            metadata = AnalysisMetadata(
                tier=tier,
                total_calls=total,
                analyzed_calls=total,
                hierarchical_info=hierarchical_info,
            )

        if self.history_store is not None:
            await self._save_history(subject_id, date_range, total, result)

        logger.info("Analysis complete for %s: %s tier, %d calls", subject_id, tier.value, total)
        return FreshAnalysis(result=result, metadata=metadata)

    async def _save_history(
        self, subject_id: str, date_range: DateRange, call_count: int, result: TrendAnalysisResult
    ) -> None:
        try:
            item = await self.history_store.save_analysis(subject_id, date_range, call_count, result)
        except Exception:
            # History is a convenience; the fresh result is still returned
            logger.exception("Failed to save analysis history for %s", subject_id)
            return
        logger.info("Saved analysis %s to history", item.id)
