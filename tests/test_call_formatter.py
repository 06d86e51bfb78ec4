"""Tests for prompt rendering of calls and chunk summaries."""

from datetime import datetime

from coaching_trends.analyzers import (
    compute_chunk_scores,
    format_calls_for_prompt,
    format_chunk_stats,
    format_chunk_summaries_for_prompt,
)
from coaching_trends.models import ChunkScores, ChunkSummary


class TestFormatCalls:
    def test_behavior_call(self, make_record):
        record = make_record(
            analysis_behavior={
                "overall_score": 72,
                "grade": "Pass",
                "metrics": {
                    "patience": {"score": 24, "missed_acknowledgment_count": 2},
                    "monologue": {"score": 15, "violation_count": 1, "longest_turn_word_count": 180},
                    "next_steps": {"secured": True},
                },
            },
            analysis_strategy={"meddpicc": {"overall_score": 64}},
        )
        text = format_calls_for_prompt([record])
        assert text.startswith("### Call 1 (2024-01-01)")
        assert "2 missed acknowledgments" in text
        assert "Next Steps: SECURED" in text
        assert "MEDDPICC Score: 64/100" in text
        assert "Framework Scores" not in text

    def test_legacy_call_uses_framework_scores(self, make_record):
        record = make_record(
            framework_scores={"bant": {"score": 55, "summary": "Budget unclear"}},
            bant_improvements=["Confirm budget"],
            critical_info_missing=[{"info": "Decision date"}],
        )
        text = format_calls_for_prompt([record])
        assert "BANT: 55/100 - Budget unclear" in text
        assert "Gap Selling: N/A/100 - No summary" in text
        assert "BANT Improvements Needed: Confirm budget" in text
        assert "Critical Info Missing: Decision date" in text

    def test_calls_numbered_in_order(self, make_records):
        text = format_calls_for_prompt(make_records(3))
        assert text.index("### Call 1") < text.index("### Call 2") < text.index("### Call 3")


class TestChunkScores:
    def test_averages_present_values(self, make_record):
        records = [
            make_record(call_id="a", heat_score=4.0, framework_scores={"meddpicc": {"score": 60}}),
            make_record(
                call_id="b",
                heat_score=None,
                analysis_strategy={"meddpicc": {"overall_score": 80}, "strategic_threading": {"score": 70}},
                analysis_behavior={"metrics": {"monologue": {"violation_count": 3}}},
            ),
            make_record(call_id="c", heat_score=8.0, analysis_behavior={"metrics": {"monologue": {"violation_count": 2}}}),
        ]
        scores = compute_chunk_scores(records)
        assert scores.meddpicc == 70
        assert scores.heat == 6
        assert scores.strategic_threading_avg == 70
        assert scores.monologue_violations_total == 5
        assert scores.patience_avg is None
        assert scores.bant is None

    def test_stats_fall_back_to_bant(self, make_record):
        records = [make_record(framework_scores={"bant": {"score": 40}}, bant_improvements=["Ask about budget"])]
        stats = format_chunk_stats(records, compute_chunk_scores(records))
        assert "Average BANT Score: 40.0" in stats
        assert "BANT Improvements Mentioned: Ask about budget" in stats
        assert "Critical Info Missing: None" in stats


class TestChunkSummaries:
    def test_periods_rendered_in_order(self, make_range):
        summaries = [
            ChunkSummary(
                chunk_index=i,
                date_range=make_range(datetime(2024, 1, 1 + 10 * i), datetime(2024, 1, 10 + 10 * i)),
                call_count=25,
                avg_scores=ChunkScores(patience_avg=20.0 + i),
                key_observations=[f"observation {i}"],
            )
            for i in range(2)
        ]
        text = format_chunk_summaries_for_prompt(summaries)
        assert "### Period 1: 2024-01-01 to 2024-01-10 (25 calls)" in text
        assert "### Period 2: 2024-01-11 to 2024-01-20 (25 calls)" in text
        assert "Patience Score: 21.0/30" in text
        assert text.index("observation 0") < text.index("observation 1")
