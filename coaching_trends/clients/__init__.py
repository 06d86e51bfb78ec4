"""Client modules for external services."""

from .summarizer import AnthropicSummarizer

__all__ = ["AnthropicSummarizer"]
