"""
OpenInference observability integration for Arize AX.

Registers an Arize tracer provider and instruments the Anthropic SDK so every
summarizer request shows up under the API and orchestrator spans. Without
Arize credentials tracing stays a no-op and the app runs unchanged.
"""
import os
import logging
from typing import Optional
from arize.otel import register
from openinference.instrumentation.anthropic import AnthropicInstrumentor
from opentelemetry import trace

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False):
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # Export internals are noisy at INFO
    logging.getLogger("opentelemetry").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def setup_observability(
    project_name: str = "coaching-trends",
    arize_api_key: Optional[str] = None,
    arize_space_id: Optional[str] = None
):
    """
    Set up OpenInference instrumentation and export traces to Arize AX.

    Args:
        project_name: Name of the project for trace organization
        arize_api_key: Arize API key (defaults to ARIZE_API_KEY env var)
        arize_space_id: Arize space ID (defaults to ARIZE_SPACE_ID env var)

    Returns:
        The registered tracer provider, or None when tracing is disabled
    """
    # NOTE: load_dotenv() must run before this in main.py
    api_key = arize_api_key or os.getenv("ARIZE_API_KEY")
    space_id = arize_space_id or os.getenv("ARIZE_SPACE_ID")

    if not api_key or not space_id:
        logger.warning("Arize credentials not found. Observability disabled.")
        logger.warning("Set ARIZE_API_KEY and ARIZE_SPACE_ID in .env to enable tracing.")
        return None

    try:
        tracer_provider = register(
            space_id=space_id,
            api_key=api_key,
            project_name=project_name,
            set_global_tracer_provider=True,
        )

        AnthropicInstrumentor().instrument(tracer_provider=tracer_provider)

        logger.info("OpenInference tracing enabled (Anthropic)")
        logger.info("Sending telemetry to Arize AX (project: %s)", project_name)
        logger.info("Global tracer provider: %s", type(trace.get_tracer_provider()).__name__)
        return tracer_provider

    except Exception:
        logger.exception("Failed to initialize observability. Application will continue without tracing.")
        return None
