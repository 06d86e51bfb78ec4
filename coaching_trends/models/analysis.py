"""Pydantic models for coaching trend analysis results and their provenance."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .periods import DateRange


class AnalysisTier(str, Enum):
    """Strategy used to fit a set of calls into one model context."""

    DIRECT = "direct"  # Every call sent in a single request
    SAMPLED = "sampled"  # Representative subset sent in a single request
    HIERARCHICAL = "hierarchical"  # Chunk summaries, then a synthesis pass


class TrendDirection(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class GapTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    WORSE = "worse"


# ============================================================================
# TREND ANALYSIS RESULT
# ============================================================================

NO_DATA_RECOMMENDATION = "Submit more calls with behavior and strategy analysis"


class FrameworkTrend(BaseModel):
    """Trend of a scored framework across the period."""

    trend: TrendDirection = TrendDirection.STABLE
    starting_avg: float = Field(0, description="Average score over the first half of the period")
    ending_avg: float = Field(0, description="Average score over the second half of the period")
    key_insight: str = Field("", description="One sentence insight about this trend")
    evidence: list[str] = Field(default_factory=list, description="Specific examples from calls")
    recommendation: str = Field("", description="Specific actionable advice")


class PatienceTrend(FrameworkTrend):
    avg_interruptions: float = Field(0, description="Average interruption count per call")


class StrategicThreadingTrend(FrameworkTrend):
    avg_relevance_ratio: float = Field(0, description="Average % of pitches relevant to pains")
    avg_missed_opportunities: float = Field(0, description="Average missed opportunities per call")


class MonologueTrend(BaseModel):
    trend: TrendDirection = TrendDirection.STABLE
    total_violations: float = 0
    avg_per_call: float = 0
    avg_longest_turn: float = Field(0, description="Average longest turn word count")
    key_insight: str = ""
    evidence: list[str] = Field(default_factory=list)
    recommendation: str = ""


def _no_patience_data() -> PatienceTrend:
    return PatienceTrend(key_insight="No patience data available", recommendation=NO_DATA_RECOMMENDATION)


def _no_threading_data() -> StrategicThreadingTrend:
    return StrategicThreadingTrend(
        key_insight="No strategic threading data available",
        recommendation=NO_DATA_RECOMMENDATION,
    )


def _no_monologue_data() -> MonologueTrend:
    return MonologueTrend(key_insight="No monologue data available", recommendation=NO_DATA_RECOMMENDATION)


class TrendBreakdown(BaseModel):
    """Per-metric trends. Behavioral metrics default to a 'no data' trend."""

    patience: PatienceTrend = Field(default_factory=_no_patience_data)
    strategic_threading: StrategicThreadingTrend = Field(default_factory=_no_threading_data)
    monologue_violations: MonologueTrend = Field(default_factory=_no_monologue_data)
    meddpicc: FrameworkTrend = Field(default_factory=FrameworkTrend)
    gap_selling: FrameworkTrend = Field(default_factory=FrameworkTrend)
    active_listening: FrameworkTrend = Field(default_factory=FrameworkTrend)


class PersistentGap(BaseModel):
    gap: str
    frequency: str = Field(..., description='e.g. "5 of 12 calls"')
    trend: GapTrend = GapTrend.STABLE


class CriticalInfoPatterns(BaseModel):
    persistent_gaps: list[PersistentGap] = Field(default_factory=list)
    new_issues: list[str] = Field(default_factory=list, description="Issues that appeared recently")
    resolved_issues: list[str] = Field(default_factory=list, description="Issues that stopped appearing")
    recommendation: str = ""


class FollowUpPatterns(BaseModel):
    recurring_themes: list[str] = Field(default_factory=list)
    quality_trend: TrendDirection = TrendDirection.STABLE
    recommendation: str = ""


class PatternAnalysis(BaseModel):
    critical_info_missing: CriticalInfoPatterns = Field(default_factory=CriticalInfoPatterns)
    follow_up_questions: FollowUpPatterns = Field(default_factory=FollowUpPatterns)


class Priority(BaseModel):
    """A coaching focus area."""

    area: str = Field(..., description="Area to focus on")
    reason: str = Field(..., description="Why this is a priority")
    action_item: str = Field(..., description="Specific thing to do")


class PeriodAnalysis(BaseModel):
    total_calls: int
    average_heat_score: float = Field(0, description="Average heat score across all calls")
    heat_score_trend: TrendDirection = TrendDirection.STABLE


class TrendAnalysisResult(BaseModel):
    """AI-generated synthesis of a rep's performance over a period."""

    model_config = ConfigDict(frozen=True)

    summary: str = Field(..., description="2-3 sentence executive summary of overall performance trends")
    period_analysis: PeriodAnalysis
    strengths: list[str] = Field(default_factory=list, description="Recurring strengths")
    improvements: list[str] = Field(default_factory=list, description="Recurring weaknesses to work on")
    trend_analysis: TrendBreakdown = Field(default_factory=TrendBreakdown)
    pattern_analysis: PatternAnalysis = Field(default_factory=PatternAnalysis)
    top_priorities: list[Priority] = Field(default_factory=list, description="Top 3 priority areas")


# ============================================================================
# HIERARCHICAL STAGE 1 OUTPUT
# ============================================================================

class ChunkScores(BaseModel):
    """Average scores over one chunk, computed from the records."""

    meddpicc: float | None = None
    bant: float | None = None
    gap_selling: float | None = None
    active_listening: float | None = None
    heat: float | None = None
    patience_avg: float | None = None
    strategic_threading_avg: float | None = None
    monologue_violations_total: int | None = None


class ChunkTrends(BaseModel):
    meddpicc: TrendDirection = TrendDirection.STABLE
    gap_selling: TrendDirection = TrendDirection.STABLE
    active_listening: TrendDirection = TrendDirection.STABLE
    patience: TrendDirection | None = None
    strategic_threading: TrendDirection | None = None
    monologue: TrendDirection | None = None


class ChunkInsights(BaseModel):
    """What the model reports about one chunk of calls."""

    dominant_trends: ChunkTrends = Field(default_factory=ChunkTrends)
    top_missing_info: list[str] = Field(
        default_factory=list, description="Top 3-5 most frequently missing pieces of information"
    )
    top_improvement_areas: list[str] = Field(
        default_factory=list, description="Top 3-5 areas that need improvement across all frameworks"
    )
    key_observations: list[str] = Field(
        default_factory=list, description="2-3 key observations that should inform the overall analysis"
    )


class ChunkSummary(ChunkInsights):
    """Condensed summary of one chunk, fed into the synthesis pass."""

    chunk_index: int
    date_range: DateRange
    call_count: int
    avg_scores: ChunkScores = Field(default_factory=ChunkScores)


# ============================================================================
# METADATA
# ============================================================================

class SamplingInfo(BaseModel):
    original_count: int
    sampled_count: int
    strategy: str = "stratified"

    @model_validator(mode="after")
    def _check_counts(self) -> "SamplingInfo":
        if self.sampled_count > self.original_count:
            raise ValueError("sampled_count cannot exceed original_count")
        return self


class HierarchicalInfo(BaseModel):
    chunks_analyzed: int
    calls_per_chunk: list[int]

    @model_validator(mode="after")
    def _check_chunks(self) -> "HierarchicalInfo":
        if len(self.calls_per_chunk) != self.chunks_analyzed:
            raise ValueError("calls_per_chunk must have one entry per analyzed chunk")
        return self


class AnalysisMetadata(BaseModel):
    """How a result was produced."""

    tier: AnalysisTier
    total_calls: int
    analyzed_calls: int
    sampling_info: SamplingInfo | None = None
    hierarchical_info: HierarchicalInfo | None = None

    @model_validator(mode="after")
    def _check_tier_info(self) -> "AnalysisMetadata":
        expected = {
            AnalysisTier.DIRECT: (False, False),
            AnalysisTier.SAMPLED: (True, False),
            AnalysisTier.HIERARCHICAL: (False, True),
        }[self.tier]
        actual = (self.sampling_info is not None, self.hierarchical_info is not None)
        if actual != expected:
            raise ValueError(f"metadata for tier '{self.tier.value}' has mismatched sampling/hierarchical info")
        if self.hierarchical_info and sum(self.hierarchical_info.calls_per_chunk) != self.total_calls:
            raise ValueError("calls_per_chunk must add up to total_calls")
        return self


# ============================================================================
# OUTCOMES (tagged by provenance)
# ============================================================================

class FreshAnalysis(BaseModel):
    """Result generated by a trend analysis run."""

    kind: Literal["fresh"] = "fresh"
    result: TrendAnalysisResult
    metadata: AnalysisMetadata
    generated_at: datetime = Field(default_factory=datetime.utcnow)


class EmptyAnalysis(BaseModel):
    """No graded calls in the requested period. Informational, not a failure."""

    kind: Literal["empty"] = "empty"
    result: TrendAnalysisResult
    metadata: AnalysisMetadata


class HistoricalAnalysis(BaseModel):
    """A previously saved analysis loaded from history. Carries no run metadata."""

    kind: Literal["history"] = "history"
    result: TrendAnalysisResult
    history_id: int
    date_range: DateRange
    call_count: int
    created_at: datetime


TrendAnalysisOutcome = Annotated[
    Union[FreshAnalysis, EmptyAnalysis, HistoricalAnalysis],
    Field(discriminator="kind"),
]
