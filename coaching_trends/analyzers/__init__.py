"""Analyzer modules for turning call data into prompt text."""

from .call_formatter import (
    compute_chunk_scores,
    format_calls_for_prompt,
    format_chunk_stats,
    format_chunk_summaries_for_prompt,
)

__all__ = [
    "compute_chunk_scores",
    "format_calls_for_prompt",
    "format_chunk_stats",
    "format_chunk_summaries_for_prompt",
]
