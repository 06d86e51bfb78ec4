"""Engine modules for tier selection, sampling, chunking and orchestration."""

from .tier_selector import TierSelector
from .sampler import StratifiedSampler
from .chunk_synthesizer import ChunkSpan, ChunkSynthesizer, plan_chunks
from .period_validator import (
    apply_quick_fix,
    last_n_days,
    make_range,
    previous_period,
    validate_periods,
)
from .orchestrator import TrendOrchestrator, EMPTY_SUMMARY

__all__ = [
    "TierSelector",
    "StratifiedSampler",
    "ChunkSpan",
    "ChunkSynthesizer",
    "plan_chunks",
    "apply_quick_fix",
    "last_n_days",
    "make_range",
    "previous_period",
    "validate_periods",
    "TrendOrchestrator",
    "EMPTY_SUMMARY",
]
