"""Renders call records and chunk summaries as prompt text.

Behavior/strategy scores are used when a call has them; older calls fall back
to the legacy framework scores and improvement lists.
"""

from statistics import mean

from ..models import CallRecord, ChunkScores, ChunkSummary


def _fmt(value, digits: int | None = None) -> str:
    if value is None:
        return "N/A"
    if digits is not None:
        return f"{value:.{digits}f}"
    return f"{value:g}" if isinstance(value, float) else str(value)


def _avg(values: list[float]) -> float | None:
    return mean(values) if values else None


def format_call(record: CallRecord, number: int) -> str:
    """Format one call as a markdown section."""
    lines = [f"### Call {number} ({record.call_date.date().isoformat()})"]

    behavior = record.analysis_behavior
    if behavior:
        lines.append("**Behavior Analysis:**")
        lines.append(f"- Overall Behavior Score: {_fmt(behavior.overall_score)}/100 ({behavior.grade or 'N/A'})")
        m = behavior.metrics
        if m.patience:
            lines.append(
                f"- Acknowledgment Score: {_fmt(m.patience.score)}/30 "
                f"({m.patience.missed_acknowledgment_count} missed acknowledgments)"
            )
        if m.question_quality:
            q = m.question_quality
            ratio = (
                f"{q.average_answer_length / q.average_question_length:.1f}"
                if q.average_question_length else "N/A"
            )
            lines.append(
                f"- Question Yield: {_fmt(q.average_answer_length)} words per answer vs "
                f"{_fmt(q.average_question_length)} words per question ({ratio}:1 ratio, "
                f"{q.high_leverage_count} high leverage, {q.low_leverage_count} low leverage)"
            )
        if m.monologue:
            lines.append(
                f"- Monologue Score: {_fmt(m.monologue.score)}/20 ({m.monologue.violation_count} violations, "
                f"longest: {m.monologue.longest_turn_word_count} words)"
            )
        if m.talk_listen_ratio:
            lines.append(f"- Talk Ratio: {_fmt(m.talk_listen_ratio.rep_talk_percentage)}% rep talk time")
        if m.next_steps:
            lines.append(f"- Next Steps: {'SECURED' if m.next_steps.secured else 'NOT SECURED'}")
        if behavior.coaching_tip:
            lines.append(f"- Coaching Tip: {behavior.coaching_tip}")

    strategy = record.analysis_strategy
    if strategy:
        lines.append("**Strategy Analysis:**")
        threading = strategy.strategic_threading
        if threading:
            lines.append(f"- Strategic Threading Score: {_fmt(threading.score)}/100 ({threading.grade or 'N/A'})")
            if threading.relevance_map:
                relevant = sum(1 for r in threading.relevance_map if r.is_relevant)
                lines.append(f"- Pitch Relevance: {relevant}/{len(threading.relevance_map)} solutions matched pains")
            if threading.missed_opportunities:
                lines.append(f"- Missed Opportunities: {len(threading.missed_opportunities)} pains not addressed")
        if strategy.meddpicc:
            lines.append(f"- MEDDPICC Score: {_fmt(strategy.meddpicc.overall_score)}/100")

    if not record.has_behavior_data:
        scores = record.framework_scores
        if scores:
            lines.append("**Framework Scores:**")
            if scores.meddpicc:
                lines.append(f"- MEDDPICC: {_fmt(scores.meddpicc.score)}/100 - {scores.meddpicc.summary or 'No summary'}")
            elif scores.bant:
                lines.append(f"- BANT: {_fmt(scores.bant.score)}/100 - {scores.bant.summary or 'No summary'}")
            for label, framework in (("Gap Selling", scores.gap_selling), ("Active Listening", scores.active_listening)):
                score = framework.score if framework else None
                summary = framework.summary if framework and framework.summary else "No summary"
                lines.append(f"- {label}: {_fmt(score)}/100 - {summary}")

    if record.heat_score is not None:
        lines.append(f"Heat Score: {_fmt(record.heat_score)}/10")

    if not record.has_behavior_data:
        if record.meddpicc_improvements:
            lines.append(f"MEDDPICC Improvements Needed: {'; '.join(record.meddpicc_improvements)}")
        elif record.bant_improvements:
            lines.append(f"BANT Improvements Needed: {'; '.join(record.bant_improvements)}")
        if record.gap_selling_improvements:
            lines.append(f"Gap Selling Improvements Needed: {'; '.join(record.gap_selling_improvements)}")
        if record.active_listening_improvements:
            lines.append(f"Active Listening Improvements Needed: {'; '.join(record.active_listening_improvements)}")
        if record.critical_info_missing:
            lines.append(f"Critical Info Missing: {'; '.join(record.critical_info_missing)}")
        if record.follow_up_questions:
            lines.append(f"Recommended Follow-ups: {'; '.join(record.follow_up_questions)}")

    return "\n".join(lines)


def format_calls_for_prompt(records: list[CallRecord]) -> str:
    return "\n\n".join(format_call(record, i + 1) for i, record in enumerate(records))


def compute_chunk_scores(records: list[CallRecord]) -> ChunkScores:
    """Average the scores of a chunk locally instead of asking the model."""
    meddpicc, bant, gap, active, heat = [], [], [], [], []
    patience, threading, monologue = [], [], []

    for r in records:
        if r.framework_scores:
            fs = r.framework_scores
            if fs.meddpicc and fs.meddpicc.score is not None:
                meddpicc.append(fs.meddpicc.score)
            if fs.bant and fs.bant.score is not None:
                bant.append(fs.bant.score)
            if fs.gap_selling and fs.gap_selling.score is not None:
                gap.append(fs.gap_selling.score)
            if fs.active_listening and fs.active_listening.score is not None:
                active.append(fs.active_listening.score)
        if r.analysis_strategy and r.analysis_strategy.meddpicc and r.analysis_strategy.meddpicc.overall_score is not None:
            meddpicc.append(r.analysis_strategy.meddpicc.overall_score)
        if r.heat_score is not None:
            heat.append(r.heat_score)

        metrics = r.analysis_behavior.metrics if r.analysis_behavior else None
        if metrics and metrics.patience and metrics.patience.score is not None:
            patience.append(metrics.patience.score)
        if metrics and metrics.monologue:
            monologue.append(metrics.monologue.violation_count)
        if r.analysis_strategy and r.analysis_strategy.strategic_threading:
            if r.analysis_strategy.strategic_threading.score is not None:
                threading.append(r.analysis_strategy.strategic_threading.score)

    return ChunkScores(
        meddpicc=_avg(meddpicc),
        bant=_avg(bant),
        gap_selling=_avg(gap),
        active_listening=_avg(active),
        heat=_avg(heat),
        patience_avg=_avg(patience),
        strategic_threading_avg=_avg(threading),
        monologue_violations_total=sum(monologue) if monologue else None,
    )


def format_chunk_stats(records: list[CallRecord], scores: ChunkScores) -> str:
    """Quick stats and pooled improvement notes for one chunk."""
    primary_label, primary_avg = ("MEDDPICC", scores.meddpicc) if scores.meddpicc is not None else ("BANT", scores.bant)
    primary_improvements = [i for r in records for i in r.meddpicc_improvements] or [
        i for r in records for i in r.bant_improvements
    ]
    gap_improvements = [i for r in records for i in r.gap_selling_improvements]
    active_improvements = [i for r in records for i in r.active_listening_improvements]
    missing = [i for r in records for i in r.critical_info_missing]

    return "\n".join([
        "Quick Stats:",
        f"- Average {primary_label} Score: {_fmt(primary_avg, 1)}",
        f"- Average Gap Selling Score: {_fmt(scores.gap_selling, 1)}",
        f"- Average Active Listening Score: {_fmt(scores.active_listening, 1)}",
        f"- Average Heat Score: {_fmt(scores.heat, 1)}",
        f"- Average Patience Score: {_fmt(scores.patience_avg, 1)}",
        f"- Average Strategic Threading Score: {_fmt(scores.strategic_threading_avg, 1)}",
        f"- Total Monologue Violations: {_fmt(scores.monologue_violations_total)}",
        "",
        f"{primary_label} Improvements Mentioned: {'; '.join(primary_improvements) or 'None'}",
        f"Gap Selling Improvements Mentioned: {'; '.join(gap_improvements) or 'None'}",
        f"Active Listening Improvements Mentioned: {'; '.join(active_improvements) or 'None'}",
        f"Critical Info Missing: {'; '.join(missing) or 'None'}",
    ])


def format_chunk_summaries_for_prompt(summaries: list[ChunkSummary]) -> str:
    sections = []
    for number, chunk in enumerate(summaries, start=1):
        s = chunk.avg_scores
        t = chunk.dominant_trends
        lines = [
            f"### Period {number}: {chunk.date_range.start.date().isoformat()} to "
            f"{chunk.date_range.end.date().isoformat()} ({chunk.call_count} calls)"
        ]

        if s.patience_avg is not None or s.strategic_threading_avg is not None:
            lines.append("**Behavior & Strategy Metrics:**")
            lines.append(f"- Patience Score: {_fmt(s.patience_avg, 1)}/30")
            lines.append(f"- Strategic Threading Score: {_fmt(s.strategic_threading_avg, 1)}/100")
            lines.append(f"- Total Monologue Violations: {_fmt(s.monologue_violations_total)}")
            for label, trend in (
                ("Patience", t.patience),
                ("Strategic Threading", t.strategic_threading),
                ("Monologue Discipline", t.monologue),
            ):
                if trend:
                    lines.append(f"- {label} trend: {trend.value}")

        lines.append("**Framework Scores:**")
        if s.meddpicc is not None:
            lines.append(f"- MEDDPICC: {_fmt(s.meddpicc, 1)}/100 ({t.meddpicc.value})")
        elif s.bant is not None:
            lines.append(f"- BANT: {_fmt(s.bant, 1)}/100")
        lines.append(f"- Gap Selling: {_fmt(s.gap_selling, 1)}/100 ({t.gap_selling.value})")
        lines.append(f"- Active Listening: {_fmt(s.active_listening, 1)}/100 ({t.active_listening.value})")
        lines.append(f"- Heat: {_fmt(s.heat, 1)}/10")

        if chunk.top_missing_info:
            lines.append(f"Top Missing Information: {'; '.join(chunk.top_missing_info)}")
        if chunk.top_improvement_areas:
            lines.append(f"Top Improvement Areas: {'; '.join(chunk.top_improvement_areas)}")
        if chunk.key_observations:
            lines.append(f"Key Observations: {'; '.join(chunk.key_observations)}")
        sections.append("\n".join(lines))
    return "\n\n".join(sections)
