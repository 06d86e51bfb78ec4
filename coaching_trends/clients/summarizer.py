"""Anthropic-backed summarizer producing structured coaching output.

Every call forces a single tool so the response arrives as JSON matching a
pydantic schema, then validates it into the target model.
"""

import asyncio
import logging
import math
from typing import TypeVar

import anthropic
from pydantic import BaseModel, ValidationError

from ..analyzers import (
    compute_chunk_scores,
    format_calls_for_prompt,
    format_chunk_stats,
    format_chunk_summaries_for_prompt,
)
from ..config import get_settings
from ..errors import (
    ConfigurationError,
    MalformedOutputError,
    UpstreamError,
    UpstreamRateLimitError,
    UpstreamTimeoutError,
)
from ..models import CallRecord, ChunkInsights, ChunkSummary, DateRange, TrendAnalysisResult

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

TREND_TOOL_NAME = "provide_trend_analysis"
CHUNK_TOOL_NAME = "provide_chunk_summary"


TREND_ANALYSIS_SYSTEM_PROMPT = """You are an expert sales coaching analyst. Your job is to analyze a collection of call analyses from a sales rep and identify TRENDS in their performance over time.

**BEHAVIOR & STRATEGY METRICS (use when available):**
1. **Patience Score** - Are they interrupting less? Fewer missed acknowledgments = better patience.
2. **Strategic Threading Score** - Are they connecting prospect pains to relevant solutions?
3. **Monologue Violations** - How many times did they talk too long without letting the prospect respond?
4. **MEDDPICC Score** - How well are they qualifying deals?
5. **Next Steps Secured** - Are they consistently securing specific next steps?

**LEGACY METRICS (fallback):**
- Gap Selling score - current state vs future state gap identification
- Active Listening score - follow-up questions and acknowledgment
- Critical Information Missing patterns

For each metric:
- Identify whether performance is IMPROVING, STABLE, or DECLINING
- Provide specific evidence from the calls
- Give actionable recommendations

Be direct and specific. If something is declining, say so clearly. The behavior metrics are objective numbers calculated from the transcript; track them precisely over time."""


HIERARCHICAL_SYNTHESIS_PROMPT = """You are an expert sales coaching analyst. Your job is to SYNTHESIZE multiple period summaries into one comprehensive trend analysis.

The summaries cover consecutive batches of calls in chronological order. Your task is to:
1. Identify overall trends across all periods
2. Note how patterns evolved over time (early periods vs recent periods)
3. Aggregate the most common issues and improvements
4. Provide actionable recommendations based on the full picture

Focus on the big picture while citing specific evidence from the summaries."""


CHUNK_SUMMARY_PROMPT = """You are an expert sales coaching analyst. Summarize one batch of calls from a longer period so the batch can later be combined with others.

Report the dominant direction of each metric within the batch, the most frequently missing information, the top areas needing improvement, and 2-3 observations that should inform the overall analysis. Be concise and specific."""


def _retry_after_seconds(response) -> int | None:
    """Whole seconds from a Retry-After header, when it holds a number."""
    value = response.headers.get("retry-after") if response is not None else None
    try:
        return max(1, math.ceil(float(value))) if value is not None else None
    except ValueError:
        return None


class AnthropicSummarizer:
    """Summarizer backed by the Anthropic Messages API."""

    def __init__(
        self,
        client: anthropic.AsyncAnthropic | None = None,
        llm_model: str | None = None,
        timeout_seconds: float | None = None,
    ):
        settings = get_settings()
        if client is None:
            if not settings.anthropic_api_key:
                raise ConfigurationError("ANTHROPIC_API_KEY", "an Anthropic API key is required for trend analysis")
            # Retries are left to the caller; a timeout fails the run
            client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key, max_retries=0)
        self.client = client
        self.llm_model = llm_model or settings.llm_model
        self.max_tokens = settings.llm_max_tokens
        self.temperature = settings.llm_temperature
        self.timeout_seconds = timeout_seconds or settings.summarizer_timeout_seconds

    async def summarize_calls(self, records: list[CallRecord], date_range: DateRange) -> TrendAnalysisResult:
        prompt = (
            f"Analyze the following {len(records)} call analyses from {date_range.label()} "
            f"and identify trends:\n\n{format_calls_for_prompt(records)}\n\n"
            "Provide a comprehensive trend analysis with specific evidence and actionable recommendations."
        )
        return await self._call_tool(
            stage="trend analysis",
            system=TREND_ANALYSIS_SYSTEM_PROMPT,
            prompt=prompt,
            tool_name=TREND_TOOL_NAME,
            description="Provide structured trend analysis of the sales rep coaching data",
            schema=TrendAnalysisResult,
            defaults={"period_analysis": {"total_calls": len(records)}},
        )

    async def summarize_chunk(
        self, records: list[CallRecord], chunk_index: int, date_range: DateRange
    ) -> ChunkSummary:
        scores = compute_chunk_scores(records)
        prompt = (
            f"Analyze this batch of {len(records)} calls from {date_range.label()}:\n\n"
            f"{format_chunk_stats(records, scores)}\n\n"
            f"{format_calls_for_prompt(records)}\n\n"
            "Provide a condensed summary of this batch's patterns and trends."
        )
        insights = await self._call_tool(
            stage=f"chunk {chunk_index + 1} summary",
            system=CHUNK_SUMMARY_PROMPT,
            prompt=prompt,
            tool_name=CHUNK_TOOL_NAME,
            description="Provide a condensed summary of one batch of calls",
            schema=ChunkInsights,
        )
        return ChunkSummary(
            chunk_index=chunk_index,
            date_range=date_range,
            call_count=len(records),
            avg_scores=scores,
            **insights.model_dump(),
        )

    async def synthesize(
        self, chunk_summaries: list[ChunkSummary], date_range: DateRange, total_calls: int
    ) -> TrendAnalysisResult:
        prompt = (
            f"Synthesize the following {len(chunk_summaries)} period summaries covering {total_calls} "
            f"total calls from {date_range.label()}:\n\n"
            f"{format_chunk_summaries_for_prompt(chunk_summaries)}\n\n"
            "Provide a comprehensive trend analysis that identifies patterns across all periods, "
            "noting how performance evolved over time."
        )
        return await self._call_tool(
            stage="synthesis",
            system=HIERARCHICAL_SYNTHESIS_PROMPT,
            prompt=prompt,
            tool_name=TREND_TOOL_NAME,
            description="Provide structured trend analysis of the sales rep coaching data",
            schema=TrendAnalysisResult,
            defaults={"period_analysis": {"total_calls": total_calls}},
        )

    async def _call_tool(
        self,
        stage: str,
        system: str,
        prompt: str,
        tool_name: str,
        description: str,
        schema: type[ModelT],
        defaults: dict | None = None,
    ) -> ModelT:
        logger.info("Requesting %s from %s", stage, self.llm_model)
        try:
            response = await asyncio.wait_for(
                self.client.messages.create(
                    model=self.llm_model,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                    system=system,
                    messages=[{"role": "user", "content": prompt}],
                    tools=[{
                        "name": tool_name,
                        "description": description,
                        "input_schema": schema.model_json_schema(),
                    }],
                    tool_choice={"type": "tool", "name": tool_name},
                ),
                timeout=self.timeout_seconds,
            )
        except (asyncio.TimeoutError, anthropic.APITimeoutError) as e:
            logger.error("%s timed out after %ss", stage, self.timeout_seconds)
            raise UpstreamTimeoutError(stage, self.timeout_seconds) from e
        except anthropic.RateLimitError as e:
            retry_after = _retry_after_seconds(e.response)
            logger.warning("%s rate limited by the model API (retry after %s)", stage, retry_after)
            raise UpstreamRateLimitError(stage, retry_after) from e
        except anthropic.APIError as e:
            logger.error("%s failed: %s", stage, e)
            raise UpstreamError(stage, str(e)) from e

        tool_input = next(
            (block.input for block in response.content if block.type == "tool_use" and block.name == tool_name),
            None,
        )
        if not isinstance(tool_input, dict):
            raise MalformedOutputError(stage, "response did not contain the expected tool call")

        for key, value in (defaults or {}).items():
            tool_input.setdefault(key, value)

        try:
            return schema.model_validate(tool_input)
        except ValidationError as e:
            logger.error("%s returned output that failed validation: %s", stage, e)
            raise MalformedOutputError(stage, f"{e.error_count()} validation errors") from e
