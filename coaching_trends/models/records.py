"""Pydantic models for graded call records fed into trend analysis."""

from datetime import datetime
from pydantic import BaseModel, Field, field_validator


class ScoredMetric(BaseModel):
    """A single behavioral metric score."""

    score: float | None = None


class PatienceMetric(ScoredMetric):
    missed_acknowledgment_count: int = 0


class QuestionQualityMetric(ScoredMetric):
    average_question_length: float = 0
    average_answer_length: float = 0
    high_leverage_count: int = 0
    low_leverage_count: int = 0


class MonologueMetric(ScoredMetric):
    longest_turn_word_count: int = 0
    violation_count: int = 0


class TalkListenMetric(ScoredMetric):
    rep_talk_percentage: float | None = None


class NextStepsMetric(ScoredMetric):
    secured: bool = False


class BehaviorMetrics(BaseModel):
    patience: PatienceMetric | None = None
    question_quality: QuestionQualityMetric | None = None
    monologue: MonologueMetric | None = None
    talk_listen_ratio: TalkListenMetric | None = None
    next_steps: NextStepsMetric | None = None


class BehaviorAnalysis(BaseModel):
    """Objective behavior scores computed from a transcript."""

    overall_score: float | None = None
    grade: str | None = None  # "Pass" | "Fail"
    coaching_tip: str | None = None
    metrics: BehaviorMetrics = Field(default_factory=BehaviorMetrics)


class RelevanceMapping(BaseModel):
    """A pain identified on a call and the feature pitched against it."""

    pain_identified: str
    feature_pitched: str
    is_relevant: bool
    reasoning: str | None = None


class StrategicThreading(BaseModel):
    score: float | None = None
    grade: str | None = None
    relevance_map: list[RelevanceMapping] = Field(default_factory=list)
    missed_opportunities: list[str] = Field(default_factory=list)


class MeddpiccAudit(BaseModel):
    overall_score: float | None = None


class StrategyAnalysis(BaseModel):
    """Deal strategy audit for a call."""

    strategic_threading: StrategicThreading | None = None
    meddpicc: MeddpiccAudit | None = None


class FrameworkScore(BaseModel):
    score: float | None = None
    summary: str | None = None


class FrameworkScores(BaseModel):
    """Legacy per-framework scores (used when behavior/strategy data is absent)."""

    meddpicc: FrameworkScore | None = None
    bant: FrameworkScore | None = None
    gap_selling: FrameworkScore | None = None
    active_listening: FrameworkScore | None = None


class CallRecord(BaseModel):
    """One graded sales call belonging to a rep."""

    id: str
    subject_id: str
    call_date: datetime
    heat_score: float | None = Field(None, description="Deal heat on a 0-10 scale")

    analysis_behavior: BehaviorAnalysis | None = None
    analysis_strategy: StrategyAnalysis | None = None
    framework_scores: FrameworkScores | None = None

    meddpicc_improvements: list[str] = Field(default_factory=list)
    bant_improvements: list[str] = Field(default_factory=list)
    gap_selling_improvements: list[str] = Field(default_factory=list)
    active_listening_improvements: list[str] = Field(default_factory=list)
    critical_info_missing: list[str] = Field(default_factory=list)
    follow_up_questions: list[str] = Field(default_factory=list)

    @field_validator("critical_info_missing", mode="before")
    @classmethod
    def _flatten_missing_info(cls, value):
        # Older grading output stored {"info": ..., "missed_opportunity": ...}
        return [item.get("info", "") if isinstance(item, dict) else item for item in value or []]

    @field_validator("follow_up_questions", mode="before")
    @classmethod
    def _flatten_follow_ups(cls, value):
        return [item.get("question", "") if isinstance(item, dict) else item for item in value or []]

    @property
    def has_behavior_data(self) -> bool:
        return self.analysis_behavior is not None or self.analysis_strategy is not None
