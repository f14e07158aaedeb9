"""URL recipe extraction package.

This package extracts recipes from web pages using multiple strategies:
schema.org JSON-LD, publisher-specific CSS selectors, HTML heuristics and a
generative fallback. Orchestration lives in ``scraper_manager``; the
extractors and image resolver are imported from their own modules.
"""

from recipe_harvester.app.services.url_parsing.errors import (
    AIExtractionError,
    AIResponseParseError,
    BlockedResponseError,
    FetchError,
    ImageValidationError,
    InvalidUrlError,
    NormalizationError,
    RecipeExtractionError,
    ScraperError,
)
from recipe_harvester.app.services.url_parsing.html_fetcher import (
    RateLimiter,
    RequestFetcher,
    build_request_headers,
    fetch_html,
    is_blocked_response,
    is_private_host,
    pick_user_agent,
    validate_url,
)
from recipe_harvester.app.services.url_parsing.json_ld import find_recipe_node, recipe_draft_from_node
from recipe_harvester.app.services.url_parsing.json_repair import parse_json_response
from recipe_harvester.app.services.url_parsing.models import (
    ExtractionResult,
    FetchResult,
    ImageCandidate,
    NormalizationResult,
    RecipeDraft,
)
from recipe_harvester.app.services.url_parsing.normalizer import normalize_recipe_node
from recipe_harvester.app.services.url_parsing.parsing_utils import (
    clean_text,
    extract_image,
    parse_iso8601_duration,
    parse_servings,
    to_iso8601_duration,
)
from recipe_harvester.app.services.url_parsing.scoring import calculate_confidence, merge_results
from recipe_harvester.app.services.url_parsing.validation import (
    clean_recipe_draft,
    is_usable_recipe,
    validate_recipe,
)

__all__ = [
    # Errors
    "AIExtractionError",
    "AIResponseParseError",
    "BlockedResponseError",
    "FetchError",
    "ImageValidationError",
    "InvalidUrlError",
    "NormalizationError",
    "RecipeExtractionError",
    "ScraperError",
    # Models
    "ExtractionResult",
    "FetchResult",
    "ImageCandidate",
    "NormalizationResult",
    "RecipeDraft",
    # HTML fetching
    "RateLimiter",
    "RequestFetcher",
    "build_request_headers",
    "fetch_html",
    "is_blocked_response",
    "is_private_host",
    "pick_user_agent",
    "validate_url",
    # Structured data
    "find_recipe_node",
    "normalize_recipe_node",
    "parse_json_response",
    "recipe_draft_from_node",
    # Scoring and validation
    "calculate_confidence",
    "clean_recipe_draft",
    "is_usable_recipe",
    "merge_results",
    "validate_recipe",
    # Parsing utilities
    "clean_text",
    "extract_image",
    "parse_iso8601_duration",
    "parse_servings",
    "to_iso8601_duration",
]
