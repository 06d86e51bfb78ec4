"""Coaching trend analysis: tiered summarization of a rep's graded calls."""
