import os
import json
import logging
from dotenv import load_dotenv

# Load environment variables FIRST
# override=True ensures .env file takes precedence over system env vars
load_dotenv(override=True)

from coaching_trends.config import get_settings
from observability import setup_logging, setup_observability

settings = get_settings()
setup_logging(debug=settings.debug)
tracer_provider = setup_observability(project_name=settings.arize_project_name)

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from coaching_trends.cache import AnalysisCache
from coaching_trends.clients import AnthropicSummarizer
from coaching_trends.database import CallRecordStore, TrendHistoryStore, init_db
from coaching_trends.engines import (
    TierSelector,
    TrendOrchestrator,
    apply_quick_fix,
    make_range,
    validate_periods,
)
from coaching_trends.errors import (
    ComparisonBlockedError,
    InvalidDateRangeError,
    RateLimitExceededError,
    SubjectNotFoundError,
    TrendAnalysisError,
    UpstreamError,
    UpstreamRateLimitError,
    UpstreamTimeoutError,
)
from coaching_trends.models import (
    DateRange,
    DateRangeInput,
    PeriodValidation,
    PreviewRequest,
    PreviewResponse,
    QuickFixRequest,
    QuickFixResponse,
    SnapshotRequest,
    TrendAnalysisOutcome,
    TrendAnalysisRequest,
    TrendHistoryItem,
    ValidatePeriodsRequest,
)
from coaching_trends.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Coaching Trends Analyzer",
    description="AI-generated coaching trend reports over a rep's graded sales calls",
)

# Enable CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize tracer for main API
tracer = trace.get_tracer("coaching-trends-api")

# Built on first use so the app starts without an API key or database
_orchestrator: TrendOrchestrator | None = None
_history_store: TrendHistoryStore | None = None
_record_store: CallRecordStore | None = None
_tier_selector: TierSelector | None = None
_rate_limiter = RateLimiter()


def get_history_store() -> TrendHistoryStore:
    global _history_store
    if _history_store is None:
        _history_store = TrendHistoryStore(init_db())
    return _history_store


def get_record_store() -> CallRecordStore:
    global _record_store
    if _record_store is None:
        _record_store = CallRecordStore(get_history_store().engine)
    return _record_store


def get_tier_selector() -> TierSelector:
    global _tier_selector
    if _tier_selector is None:
        _tier_selector = TierSelector()
    return _tier_selector


def get_orchestrator() -> TrendOrchestrator:
    """Create the orchestrator and its collaborators on first use."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = TrendOrchestrator(
            record_store=get_record_store(),
            summarizer=AnthropicSummarizer(),
            cache=AnalysisCache(),
            history_store=get_history_store(),
            tier_selector=get_tier_selector(),
        )
        logger.info("Trend orchestrator initialized (model: %s)", settings.llm_model)
    return _orchestrator


def error_status(error: TrendAnalysisError) -> int:
    """HTTP status for a domain error."""
    if isinstance(error, InvalidDateRangeError):
        return 400
    if isinstance(error, SubjectNotFoundError):
        return 404
    if isinstance(error, ComparisonBlockedError):
        return 409
    if isinstance(error, (RateLimitExceededError, UpstreamRateLimitError)):
        return 429
    if isinstance(error, UpstreamTimeoutError):
        return 504
    if isinstance(error, UpstreamError):
        return 503
    return 500


@app.exception_handler(TrendAnalysisError)
async def trend_error_handler(request: Request, error: TrendAnalysisError):
    headers = {}
    retry_after = getattr(error, "retry_after_seconds", None)
    if retry_after is not None:
        headers["Retry-After"] = str(retry_after)
    return JSONResponse(
        status_code=error_status(error),
        content={
            "error": error.error_type,
            "detail": error.message,
            "recoverable": error.recoverable,
        },
        headers=headers,
    )


def _to_range(value: DateRangeInput) -> DateRange:
    return make_range(value.start, value.end)


def _caller_id(request: Request) -> str:
    return request.headers.get("x-user-id") or (request.client.host if request.client else "anonymous")


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    api_key = os.getenv("ANTHROPIC_API_KEY")
    return {
        "status": "healthy",
        "api_key_configured": bool(api_key)
    }


@app.post("/api/coaching-trends", response_model=TrendAnalysisOutcome)
async def generate_coaching_trends(body: TrendAnalysisRequest, request: Request):
    """
    Generate a coaching trend analysis for a rep over a date range.

    Returns kind="fresh" for a new analysis and kind="empty" when the period
    has no graded calls. Failures return an error status with `recoverable`.
    """
    with tracer.start_as_current_span(
        "coaching_trends_request",
        attributes={
            "openinference.span.kind": "chain",
            "input.value": body.model_dump_json(),
            "input.mime_type": "application/json",
        },
    ) as span:
        try:
            _rate_limiter.check(_caller_id(request))
            date_range = _to_range(body.date_range)
            outcome = await get_orchestrator().analyze(
                body.subject_id, date_range, force_refresh=body.force_refresh
            )
        except TrendAnalysisError as e:
            span.set_attribute("error.type", e.error_type)
            span.set_status(Status(StatusCode.ERROR, e.message))
            span.record_exception(e)
            raise

        span.set_attribute("analysis.kind", outcome.kind)
        span.set_attribute("output.value", json.dumps({
            "kind": outcome.kind,
            "tier": outcome.metadata.tier.value,
            "total_calls": outcome.metadata.total_calls,
            "analyzed_calls": outcome.metadata.analyzed_calls,
        }))
        span.set_attribute("output.mime_type", "application/json")
        span.set_status(Status(StatusCode.OK))
        return outcome


@app.post("/api/coaching-trends/preview", response_model=PreviewResponse)
async def preview_coaching_trends(body: PreviewRequest):
    """Count the calls in range and report which tier an analysis would use."""
    with tracer.start_as_current_span("coaching_trends_preview") as span:
        span.set_attribute("openinference.span.kind", "chain")
        span.set_attribute("input.value", body.model_dump_json())
        date_range = _to_range(body.date_range)
        count = await get_record_store().count_records(body.subject_id, date_range)
        tier = get_tier_selector().select_tier(count)
        span.set_attribute("output.value", json.dumps({"call_count": count, "tier": tier.value}))
        span.set_status(Status(StatusCode.OK))
        return PreviewResponse(call_count=count, tier=tier)


@app.post("/api/coaching-trends/validate-periods", response_model=PeriodValidation)
async def validate_comparison_periods(body: ValidatePeriodsRequest):
    """Check a baseline period (A) against a recent period (B)."""
    return validate_periods(_to_range(body.period_a), _to_range(body.period_b))


@app.post("/api/coaching-trends/quick-fix", response_model=QuickFixResponse)
async def apply_period_quick_fix(body: QuickFixRequest):
    """Apply a suggested repair to period A and re-validate the pair."""
    period_b = _to_range(body.period_b)
    fixed = apply_quick_fix(body.quick_fix, _to_range(body.period_a), period_b)
    return QuickFixResponse(period_a=fixed, validation=validate_periods(fixed, period_b))


@app.get("/api/coaching-trends/history/{subject_id}", response_model=list[TrendHistoryItem])
async def list_trend_history(
    subject_id: str,
    snapshots_only: bool = False,
    limit: int = Query(20, ge=1, le=100),
):
    """Saved analyses for a rep, newest first."""
    return get_history_store().list_history(subject_id, snapshots_only=snapshots_only, limit=limit)


@app.get("/api/coaching-trends/history/item/{analysis_id}", response_model=TrendHistoryItem)
async def get_trend_history_item(analysis_id: int):
    item = get_history_store().get_analysis(analysis_id)
    if item is None:
        raise HTTPException(status_code=404, detail=f"Analysis {analysis_id} not found")
    return item


@app.post("/api/coaching-trends/history/item/{analysis_id}/snapshot", response_model=TrendHistoryItem)
async def save_trend_snapshot(analysis_id: int, body: SnapshotRequest):
    """Pin a saved analysis as a named snapshot."""
    item = get_history_store().mark_snapshot(analysis_id, title=body.title)
    if item is None:
        raise HTTPException(status_code=404, detail=f"Analysis {analysis_id} not found")
    return item


if __name__ == "__main__":
    import uvicorn

    # Check if API key is configured
    if not os.getenv("ANTHROPIC_API_KEY"):
        logger.warning("ANTHROPIC_API_KEY not found in environment variables")
        logger.warning("Please create a .env file with your API key (see .env.example)")

    port = int(os.getenv("PORT", 8080))
    logger.info("Starting Coaching Trends Analyzer on port %d", port)
    logger.info("API docs available at http://localhost:%d/docs", port)

    uvicorn.run(app, host="0.0.0.0", port=port)
