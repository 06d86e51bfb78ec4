"""Pydantic models for the application."""

from .periods import DateRange, is_aware, PeriodValidation, PeriodWarning, QuickFix, WarningSeverity
from .records import CallRecord, BehaviorAnalysis, StrategyAnalysis, FrameworkScores
from .analysis import (
    AnalysisTier,
    AnalysisMetadata,
    SamplingInfo,
    HierarchicalInfo,
    TrendAnalysisResult,
    PeriodAnalysis,
    TrendDirection,
    ChunkSummary,
    ChunkInsights,
    ChunkScores,
    FreshAnalysis,
    EmptyAnalysis,
    HistoricalAnalysis,
    TrendAnalysisOutcome,
)
from .history import TrendHistoryItem
from .requests import (
    DateRangeInput,
    TrendAnalysisRequest,
    PreviewRequest,
    PreviewResponse,
    ValidatePeriodsRequest,
    QuickFixRequest,
    QuickFixResponse,
    SnapshotRequest,
)

__all__ = [
    "DateRange",
    "is_aware",
    "PeriodValidation",
    "PeriodWarning",
    "QuickFix",
    "WarningSeverity",
    "CallRecord",
    "BehaviorAnalysis",
    "StrategyAnalysis",
    "FrameworkScores",
    "AnalysisTier",
    "AnalysisMetadata",
    "SamplingInfo",
    "HierarchicalInfo",
    "TrendAnalysisResult",
    "PeriodAnalysis",
    "TrendDirection",
    "ChunkSummary",
    "ChunkInsights",
    "ChunkScores",
    "FreshAnalysis",
    "EmptyAnalysis",
    "HistoricalAnalysis",
    "TrendAnalysisOutcome",
    "TrendHistoryItem",
    "DateRangeInput",
    "TrendAnalysisRequest",
    "PreviewRequest",
    "PreviewResponse",
    "ValidatePeriodsRequest",
    "QuickFixRequest",
    "QuickFixResponse",
    "SnapshotRequest",
]
