"""Tests for the Anthropic summarizer with a mocked client."""

import asyncio
import anthropic
import httpx
import pytest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

from coaching_trends.clients import AnthropicSummarizer
from coaching_trends.clients.summarizer import CHUNK_TOOL_NAME, TREND_TOOL_NAME
from coaching_trends.errors import (
    ConfigurationError,
    MalformedOutputError,
    UpstreamError,
    UpstreamRateLimitError,
    UpstreamTimeoutError,
)
from coaching_trends.models import ChunkSummary, TrendAnalysisResult

REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def tool_response(name, payload):
    block = MagicMock()
    block.type = "tool_use"
    block.name = name
    block.input = payload
    return MagicMock(content=[block])


def text_response(text):
    block = MagicMock()
    block.type = "text"
    block.text = text
    return MagicMock(content=[block])


@pytest.fixture
def client():
    mock = MagicMock()
    mock.messages.create = AsyncMock()
    return mock


@pytest.fixture
def summarizer(client):
    return AnthropicSummarizer(client=client, llm_model="claude-test", timeout_seconds=5)


@pytest.fixture
def period(make_range):
    return make_range(datetime(2024, 1, 1), datetime(2024, 1, 31))


class TestSummarizeCalls:
    @pytest.mark.asyncio
    async def test_parses_forced_tool_output(self, summarizer, client, make_records, period, sample_result):
        client.messages.create.return_value = tool_response(TREND_TOOL_NAME, sample_result.model_dump(mode="json"))

        result = await summarizer.summarize_calls(make_records(3), period)

        assert isinstance(result, TrendAnalysisResult)
        assert result.summary == sample_result.summary
        kwargs = client.messages.create.await_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["tool_choice"] == {"type": "tool", "name": TREND_TOOL_NAME}
        assert kwargs["tools"][0]["input_schema"]["title"] == "TrendAnalysisResult"
        assert "3 call analyses" in kwargs["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_fills_missing_period_analysis(self, summarizer, client, make_records, period):
        client.messages.create.return_value = tool_response(TREND_TOOL_NAME, {"summary": "Short"})

        result = await summarizer.summarize_calls(make_records(4), period)

        assert result.period_analysis.total_calls == 4

    @pytest.mark.asyncio
    async def test_missing_tool_call_is_malformed(self, summarizer, client, make_records, period):
        client.messages.create.return_value = text_response("I could not do that")

        with pytest.raises(MalformedOutputError) as exc_info:
            await summarizer.summarize_calls(make_records(2), period)
        assert exc_info.value.recoverable

    @pytest.mark.asyncio
    async def test_wrong_tool_name_is_malformed(self, summarizer, client, make_records, period):
        client.messages.create.return_value = tool_response("something_else", {"summary": "x"})

        with pytest.raises(MalformedOutputError):
            await summarizer.summarize_calls(make_records(2), period)

    @pytest.mark.asyncio
    async def test_invalid_payload_is_malformed(self, summarizer, client, make_records, period):
        client.messages.create.return_value = tool_response(TREND_TOOL_NAME, {"strengths": "not a list"})

        with pytest.raises(MalformedOutputError, match="validation errors"):
            await summarizer.summarize_calls(make_records(2), period)


class TestUpstreamFailures:
    @pytest.mark.asyncio
    async def test_slow_response_times_out(self, client, make_records, period):
        async def hang(**kwargs):
            await asyncio.sleep(10)

        client.messages.create = AsyncMock(side_effect=hang)
        summarizer = AnthropicSummarizer(client=client, timeout_seconds=0.01)

        with pytest.raises(UpstreamTimeoutError) as exc_info:
            await summarizer.summarize_calls(make_records(2), period)
        assert exc_info.value.error_type == "upstream_timeout"
        assert exc_info.value.recoverable

    @pytest.mark.asyncio
    async def test_sdk_timeout_maps_to_timeout(self, summarizer, client, make_records, period):
        client.messages.create.side_effect = anthropic.APITimeoutError(request=REQUEST)

        with pytest.raises(UpstreamTimeoutError):
            await summarizer.summarize_calls(make_records(2), period)

    @pytest.mark.asyncio
    async def test_api_error_maps_to_upstream(self, summarizer, client, make_records, period):
        client.messages.create.side_effect = anthropic.APIConnectionError(request=REQUEST)

        with pytest.raises(UpstreamError) as exc_info:
            await summarizer.summarize_calls(make_records(2), period)
        assert exc_info.value.error_type == "upstream_error"
        assert exc_info.value.stage == "trend analysis"

    @pytest.mark.asyncio
    async def test_rate_limit_maps_to_upstream_rate_limited(self, summarizer, client, make_records, period):
        response = httpx.Response(429, request=REQUEST, headers={"retry-after": "20"})
        client.messages.create.side_effect = anthropic.RateLimitError("rate limited", response=response, body=None)

        with pytest.raises(UpstreamRateLimitError) as exc_info:
            await summarizer.summarize_calls(make_records(2), period)
        assert exc_info.value.error_type == "upstream_rate_limited"
        assert exc_info.value.retry_after_seconds == 20
        assert exc_info.value.recoverable

    @pytest.mark.asyncio
    async def test_rate_limit_without_retry_after(self, summarizer, client, make_records, period):
        response = httpx.Response(429, request=REQUEST)
        client.messages.create.side_effect = anthropic.RateLimitError("rate limited", response=response, body=None)

        with pytest.raises(UpstreamRateLimitError) as exc_info:
            await summarizer.summarize_calls(make_records(2), period)
        assert exc_info.value.retry_after_seconds is None


class TestChunks:
    @pytest.mark.asyncio
    async def test_chunk_summary_carries_local_scores(self, summarizer, client, make_records, period):
        client.messages.create.return_value = tool_response(CHUNK_TOOL_NAME, {
            "dominant_trends": {"meddpicc": "improving"},
            "key_observations": ["Shorter monologues"],
        })
        records = make_records(3)

        summary = await summarizer.summarize_chunk(records, 2, period)

        assert isinstance(summary, ChunkSummary)
        assert summary.chunk_index == 2
        assert summary.call_count == 3
        assert summary.key_observations == ["Shorter monologues"]
        # Heat scores (0, 7, 3) are averaged locally
        assert summary.avg_scores.heat == pytest.approx(10 / 3)

    @pytest.mark.asyncio
    async def test_chunk_failure_names_stage(self, summarizer, client, make_records, period):
        client.messages.create.side_effect = anthropic.APIConnectionError(request=REQUEST)

        with pytest.raises(UpstreamError) as exc_info:
            await summarizer.summarize_chunk(make_records(2), 0, period)
        assert exc_info.value.stage == "chunk 1 summary"

    @pytest.mark.asyncio
    async def test_synthesize(self, summarizer, client, period):
        client.messages.create.return_value = tool_response(TREND_TOOL_NAME, {"summary": "Overall"})
        chunks = [ChunkSummary(chunk_index=i, date_range=period, call_count=25) for i in range(4)]

        result = await summarizer.synthesize(chunks, period, 100)

        assert result.period_analysis.total_calls == 100
        prompt = client.messages.create.await_args.kwargs["messages"][0]["content"]
        assert "4 period summaries covering 100 total calls" in prompt


class TestConfiguration:
    def test_missing_api_key_raises(self):
        with patch("coaching_trends.clients.summarizer.get_settings") as mock_settings:
            mock_settings.return_value = MagicMock(anthropic_api_key="")
            with pytest.raises(ConfigurationError) as exc_info:
                AnthropicSummarizer()
        assert exc_info.value.setting == "ANTHROPIC_API_KEY"

    def test_builds_client_from_settings(self):
        summarizer = AnthropicSummarizer()
        assert isinstance(summarizer.client, anthropic.AsyncAnthropic)
        assert summarizer.client.max_retries == 0
