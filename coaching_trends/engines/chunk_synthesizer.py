"""Hierarchical (map-reduce) analysis for call sets too large for one context.

Stage 1 summarizes fixed-size, date-ordered chunks concurrently. Stage 2
synthesizes the chunk summaries, earliest chunk first, into one result.
"""

import asyncio
import json
import logging
from typing import NamedTuple

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from ..config import get_settings
from ..interfaces import Summarizer
from ..models import CallRecord, ChunkSummary, DateRange, HierarchicalInfo, TrendAnalysisResult

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class ChunkSpan(NamedTuple):
    """Half-open index range [start, stop) of one chunk."""

    index: int
    start: int
    stop: int

    @property
    def size(self) -> int:
        return self.stop - self.start


def plan_chunks(record_count: int, max_size: int) -> list[ChunkSpan]:
    """Split record_count records into contiguous chunks of at most max_size.

    All chunks are full except possibly the last.
    """
    if max_size < 1:
        raise ValueError(f"max_size must be at least 1, got {max_size}")
    if record_count < 0:
        raise ValueError(f"record_count must be non-negative, got {record_count}")
    return [
        ChunkSpan(index, start, min(start + max_size, record_count))
        for index, start in enumerate(range(0, record_count, max_size))
    ]


class ChunkSynthesizer:
    """Runs the two-stage chunk summarize / synthesize pipeline."""

    def __init__(
        self,
        summarizer: Summarizer,
        max_chunk_size: int | None = None,
        concurrency: int | None = None,
    ):
        settings = get_settings()
        self.summarizer = summarizer
        self.max_chunk_size = max_chunk_size or settings.chunk_max_size
        self.concurrency = concurrency or settings.chunk_concurrency

    async def synthesize(
        self, records: list[CallRecord], date_range: DateRange
    ) -> tuple[TrendAnalysisResult, HierarchicalInfo]:
        """Analyze records chunk by chunk, then merge.

        Raises:
            UpstreamError: If any chunk or the synthesis call fails. Remaining
                chunk calls are cancelled and no partial result is returned.
        """
        ordered = sorted(records, key=lambda r: r.call_date)
        plan = plan_chunks(len(ordered), self.max_chunk_size)
        info = HierarchicalInfo(
            chunks_analyzed=len(plan),
            calls_per_chunk=[span.size for span in plan],
        )
        logger.info(
            "Hierarchical analysis: %d calls in %d chunks (max %d per chunk)",
            len(ordered),
            len(plan),
            self.max_chunk_size,
        )

        summaries = await self._summarize_chunks(ordered, plan)

        with tracer.start_as_current_span("synthesize_chunk_summaries") as span:
            span.set_attribute("openinference.span.kind", "chain")
            span.set_attribute("input.value", json.dumps({
                "chunks": len(summaries),
                "total_calls": len(ordered),
                "date_range": date_range.label(),
            }))
            try:
                result = await self.summarizer.synthesize(summaries, date_range, len(ordered))
            except Exception as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                span.record_exception(e)
                raise
            span.set_attribute("output.value", result.summary)
            span.set_status(Status(StatusCode.OK))

        return result, info

    async def _summarize_chunks(
        self, ordered: list[CallRecord], plan: list[ChunkSpan]
    ) -> list[ChunkSummary]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(span: ChunkSpan) -> ChunkSummary:
            async with semaphore:
                chunk = ordered[span.start:span.stop]
                chunk_range = DateRange(start=chunk[0].call_date, end=chunk[-1].call_date)
                with tracer.start_as_current_span("summarize_chunk") as otel_span:
                    otel_span.set_attribute("openinference.span.kind", "chain")
                    otel_span.set_attribute("chunk.index", span.index)
                    otel_span.set_attribute("chunk.call_count", span.size)
                    try:
                        summary = await self.summarizer.summarize_chunk(chunk, span.index, chunk_range)
                    except asyncio.CancelledError:
                        otel_span.set_status(Status(StatusCode.ERROR, "cancelled"))
                        raise
                    except Exception as e:
                        otel_span.set_status(Status(StatusCode.ERROR, str(e)))
                        otel_span.record_exception(e)
                        raise
                    otel_span.set_status(Status(StatusCode.OK))
                logger.info("Chunk %d/%d analyzed (%d calls)", span.index + 1, len(plan), span.size)
                return summary

        tasks = [asyncio.create_task(run(span)) for span in plan]
        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        failed = next((t for t in tasks if t in done and not t.cancelled() and t.exception()), None)
        if failed is not None:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            logger.error("Chunk analysis failed, cancelled %d outstanding chunks", len(pending))
            raise failed.exception()

        # Completion order varies; keep chunk order
        return [task.result() for task in tasks]
