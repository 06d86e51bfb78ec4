"""Custom exceptions for the coaching trends analyzer."""


class TrendAnalysisError(Exception):
    """Base exception for coaching trend errors."""

    def __init__(self, message: str, error_type: str, recoverable: bool = False):
        self.message = message
        self.error_type = error_type
        self.recoverable = recoverable
        super().__init__(message)


class InvalidDateRangeError(TrendAnalysisError):
    """Raised when a date range is malformed (start after end, or mixed time zone conventions)."""

    def __init__(self, start, end, reason: str | None = None):
        self.start = start
        self.end = end
        if reason is None:
            message = (
                f"Invalid date range: start {start} is after end {end}. "
                "Pick a start date on or before the end date."
            )
        else:
            message = f"Invalid date range: {reason}."
        super().__init__(message, "invalid_date_range", recoverable=False)


class SubjectNotFoundError(TrendAnalysisError):
    """Raised when the rep whose calls were requested does not exist."""

    def __init__(self, subject_id: str):
        self.subject_id = subject_id
        message = f"No rep found with id '{subject_id}'."
        super().__init__(message, "subject_not_found", recoverable=False)


class UpstreamError(TrendAnalysisError):
    """Raised when the summarization service fails."""

    def __init__(self, stage: str, original_error: str, error_type: str = "upstream_error"):
        self.stage = stage
        self.original_error = original_error
        message = (
            f"AI analysis failed during {stage}: {original_error}. "
            "This may be due to rate limits or service issues. Please try again."
        )
        super().__init__(message, error_type, recoverable=True)


class UpstreamTimeoutError(UpstreamError):
    """Raised when a summarization call exceeds its time budget."""

    def __init__(self, stage: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            stage,
            f"request timed out after {timeout_seconds:g} seconds",
            error_type="upstream_timeout",
        )


class UpstreamRateLimitError(UpstreamError):
    """Raised when the summarization service rejects a call for rate limiting."""

    def __init__(self, stage: str, retry_after_seconds: int | None = None):
        self.retry_after_seconds = retry_after_seconds
        detail = "rate limit exceeded"
        if retry_after_seconds is not None:
            detail += f", retry in {retry_after_seconds} seconds"
        super().__init__(stage, detail, error_type="upstream_rate_limited")


class MalformedOutputError(UpstreamError):
    """Raised when the model response cannot be parsed into the expected shape."""

    def __init__(self, stage: str, original_error: str):
        super().__init__(stage, original_error, error_type="malformed_output")


class ConfigurationError(TrendAnalysisError):
    """Raised when required configuration or credentials are missing."""

    def __init__(self, setting: str, detail: str):
        self.setting = setting
        message = f"Configuration error for {setting}: {detail}"
        super().__init__(message, "configuration_error", recoverable=False)


class RateLimitExceededError(TrendAnalysisError):
    """Raised when a caller exceeds the allowed request rate."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        message = (
            "Rate limit exceeded. "
            f"Please try again in {retry_after_seconds} seconds."
        )
        super().__init__(message, "rate_limited", recoverable=True)


class ComparisonBlockedError(TrendAnalysisError):
    """Raised when a comparison is confirmed while its periods are invalid."""

    def __init__(self, reasons: list[str]):
        self.reasons = reasons
        message = "Comparison cannot run: " + "; ".join(reasons)
        super().__init__(message, "comparison_blocked", recoverable=False)
