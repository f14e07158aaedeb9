"""Tuned constants shared by the extraction pipeline.

The confidence numbers are empirically tuned. Keep them here so they can be
adjusted without touching control flow.
"""

# Extraction method labels
METHOD_JSON_LD = "json-ld"
METHOD_SITE_SPECIFIC = "site-specific"
METHOD_MICRODATA = "microdata"
METHOD_CSS_SELECTORS = "css-selectors"
METHOD_MERGED_PREFIX = "merged-"
METHOD_AI_FAST = "ai-fast"
METHOD_AI_DETAILED = "ai-detailed"
METHOD_AI_AGGRESSIVE = "ai-aggressive"
METHOD_AI_MINIMAL = "ai-minimal"
METHOD_CACHE = "cache"
METHOD_ERROR = "error"

# Base confidence by method
BASE_CONFIDENCE = {
    METHOD_JSON_LD: 0.70,
    METHOD_SITE_SPECIFIC: 0.65,
    METHOD_MICRODATA: 0.60,
    METHOD_CSS_SELECTORS: 0.50,
}
DEFAULT_BASE_CONFIDENCE = 0.40

# Completeness bonuses
TITLE_MIN_LENGTH = 3
TITLE_BONUS = 0.08
INGREDIENT_BONUS_PER_ITEM = 0.02
INGREDIENT_BONUS_MAX = 0.12
INSTRUCTION_BONUS_PER_ITEM = 0.02
INSTRUCTION_BONUS_MAX = 0.10
IMAGE_BONUS = 0.03
DESCRIPTION_MIN_LENGTH = 20
DESCRIPTION_BONUS = 0.03
TIME_BONUS = 0.02
SERVINGS_BONUS = 0.02
HIGH_QUALITY_DOMAIN_BONUS = 0.03
HIGH_QUALITY_DOMAINS = (
    "seriouseats.com",
    "bbcgoodfood.com",
    "food52.com",
    "nytimes.com",
)

# Merged result scoring
MERGE_BASE_CONFIDENCE = 0.70
MERGE_TITLE_BONUS = 0.10
MERGE_INGREDIENTS_BONUS = 0.10
MERGE_INSTRUCTIONS_BONUS = 0.10
MERGE_IMAGE_BONUS = 0.05
MERGE_DESCRIPTION_BONUS = 0.03
MERGE_SERVINGS_BONUS = 0.02
MERGE_TITLE_AGREEMENT_BONUS = 0.02
MERGE_INGREDIENT_AGREEMENT_BONUS = 0.03

# Partial-data enhancement
ENHANCE_THRESHOLD = 0.6
ENHANCE_INGREDIENTS_BONUS = 0.15
ENHANCE_INSTRUCTIONS_BONUS = 0.15
ENHANCE_IMAGE_BONUS = 0.03
ENHANCE_MIN_TEXT_LENGTH = 10
ENHANCE_MAX_TEXT_LENGTH = 200
ENHANCE_MIN_MATCHES = 3
ENHANCE_MAX_ITEMS = 20

# Generative fallback
AI_FALLBACK_THRESHOLD = 0.6
AI_FAST_MIN_CONFIDENCE = 0.2
AI_AGGRESSIVE_MAX_CONFIDENCE = 0.05
AI_CACHE_MIN_CONFIDENCE = 0.6
AI_BASE_CONFIDENCE = 0.7
AI_TITLE_BONUS = 0.1
AI_INGREDIENTS_BONUS = 0.1
AI_INSTRUCTIONS_BONUS = 0.1
AI_IMAGE_BONUS = 0.05
AI_TIME_BONUS = 0.03
AI_SERVINGS_BONUS = 0.02
AI_MAX_CONFIDENCE = 0.95
AI_TITLE_MIN_LENGTH = 5
FAST_BASE_CONFIDENCE = 0.4
FAST_TITLE_BONUS = 0.2
FAST_INGREDIENTS_BONUS = 0.2
FAST_INSTRUCTIONS_BONUS = 0.2
FAST_MIN_INGREDIENTS = 3
FAST_MIN_INSTRUCTIONS = 2
FAST_MAX_CONFIDENCE = 0.85
MINIMAL_CONFIDENCE = 0.5

# Pipeline acceptance
CACHE_HIT_CONFIDENCE = 1.0
ACCEPT_MIN_CONFIDENCE = 0.3

# Bot detection
BLOCKED_STATUS_CODES = frozenset({403, 429, 503, 1020})
BOT_DETECTION_PHRASES = (
    "access denied",
    "captcha",
    "bot detection",
    "please enable javascript",
    "checking your browser",
    "ddos protection",
    "security check",
    "ray id",
    "error 1020",
    "error 1015",
    "please wait while we",
    "human verification",
    "unusual traffic",
    "automated requests",
    "suspicious activity",
)

# Images
BAD_IMAGE_TOKENS = (
    "logo",
    "icon",
    "sprite",
    "avatar",
    "ad",
    "banner",
    "placeholder",
    "pixel",
    "spacer",
)
BAD_IMAGE_EXTENSIONS = (".svg", ".ico")
JSON_LD_IMAGE_MIN_WIDTH = 400
IMG_TAG_MIN_WIDTH = 300
SRCSET_PREFERRED_WIDTH = 600

FRACTION_MAP = {
    "½": "1/2",
    "⅓": "1/3",
    "⅔": "2/3",
    "¼": "1/4",
    "¾": "3/4",
    "⅕": "1/5",
    "⅛": "1/8",
    "⅜": "3/8",
    "⅝": "5/8",
    "⅞": "7/8",
}
