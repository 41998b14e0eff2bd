"""Scraper utilities for retrying, normalization and listing parsing."""

from .retry import RetryPolicy, exponential_backoff, fixed_delay
from .normalizer import (
    calculate_title_similarity,
    generate_external_id,
    normalize_event,
    normalize_price_range,
    parse_event_date,
    validate_image_url,
)
from .markdown_parser import parse_listing_markdown


__all__ = [
    # Retrying
    "RetryPolicy",
    "exponential_backoff",
    "fixed_delay",
    # Normalization
    "calculate_title_similarity",
    "generate_external_id",
    "normalize_event",
    "normalize_price_range",
    "parse_event_date",
    "validate_image_url",
    # Parsing
    "parse_listing_markdown",
]
