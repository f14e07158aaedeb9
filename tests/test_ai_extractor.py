import asyncio
import json

import pytest

from recipe_harvester.app.core.config import Settings
from recipe_harvester.app.services.cache_service import InMemoryRecipeCache
from recipe_harvester.app.services.url_parsing.errors import AIExtractionError
from recipe_harvester.app.services.url_parsing.extractors.llm import AIExtractor, coerce_ai_payload
from recipe_harvester.app.services.url_parsing.models import RecipeDraft

ARTICLE_PAGE = (
    "<html><head><title>Shakshuka</title></head><body>"
    "<nav>Home | Recipes</nav>"
    "<article><h1>Shakshuka</h1><p>"
    + "Eggs poached in a spiced tomato and pepper sauce. " * 15
    + "</p></article></body></html>"
)

FRAGMENT_PAGE = """
<html><body>
  <h1>Garlic Noodles</h1>
  <ul class="ingredients">
    <li>8 oz noodles</li><li>6 cloves garlic</li><li>3 tbsp butter</li><li>1 tbsp oyster sauce</li>
  </ul>
  <ol class="instructions">
    <li>Boil the noodles.</li><li>Melt butter with garlic.</li><li>Toss together.</li>
  </ol>
</body></html>
"""

NOISY_PAGE = """
<html><head><meta property="og:image" content="https://example.com/stew-hero.jpg"></head>
<body>
  <div class="ad-slot">Buy now!</div>
  <span class="prep-time">20 minutes</span>
  <p>Mystery stew, the way my grandmother made it.</p>
</body></html>
"""

FULL_RESPONSE = json.dumps(
    {
        "title": "Shakshuka",
        "ingredients": ["6 eggs", "1 can tomatoes"],
        "instructions": ["Simmer the sauce.", "Crack in the eggs."],
        "image": "https://example.com/shakshuka.jpg",
        "prep_time": "15 minutes",
        "servings": 4,
    }
)

NOODLES_RESPONSE = (
    "```json\n"
    '{"title": "Garlic Noodles", '
    '"ingredients": ["8 oz noodles", "6 cloves garlic", "3 tbsp butter", "1 tbsp oyster sauce",], '
    '"instructions": ["Boil the noodles.", "Melt butter with garlic.", "Toss together."],}\n'
    "```"
)


class FakeGenerator:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def generate(self, prompt, max_tokens):
        self.calls.append((prompt, max_tokens))
        return self.responses[min(len(self.calls), len(self.responses)) - 1]


class SlowGenerator:
    def __init__(self):
        self.calls = 0

    async def generate(self, prompt, max_tokens):
        self.calls += 1
        await asyncio.sleep(1)
        return "{}"


class UnavailableCache:
    def __init__(self, fail_reads=True):
        self.fail_reads = fail_reads
        self.writes = 0

    async def get(self, key):
        if self.fail_reads:
            raise ConnectionError("redis down")
        return None

    async def set(self, key, draft, ttl_seconds=None):
        self.writes += 1
        raise ConnectionError("redis down")


@pytest.fixture
def ai_settings():
    return Settings(_env_file=None, LLM_TIMEOUT_SECONDS=5)


@pytest.mark.asyncio
async def test_detailed_extraction_and_cache(ai_settings):
    generator = FakeGenerator(FULL_RESPONSE)
    cache = InMemoryRecipeCache()
    extractor = AIExtractor(generator, cache=cache, settings=ai_settings)
    url = "https://example.com/shakshuka"

    result = await extractor.extract(url, ARTICLE_PAGE)

    assert result.method == "ai-detailed"
    assert result.confidence == pytest.approx(0.95)
    assert result.recipe.prep_time == "PT15M"
    assert result.recipe.servings == 4
    prompt, max_tokens = generator.calls[0]
    assert max_tokens == 3000
    assert "Eggs poached in a spiced tomato" in prompt

    cached = await extractor.extract(url, ARTICLE_PAGE)

    assert cached.method == "cache"
    assert cached.confidence == 1.0
    assert cached.recipe.title == "Shakshuka"
    assert len(generator.calls) == 1


@pytest.mark.asyncio
async def test_fast_level_structures_fragments(ai_settings):
    generator = FakeGenerator(NOODLES_RESPONSE)
    extractor = AIExtractor(generator, settings=ai_settings)

    result = await extractor.extract("https://example.com/noodles", FRAGMENT_PAGE, fallback_level="fast")

    assert result.method == "ai-fast"
    assert result.confidence == pytest.approx(0.85)
    assert len(result.recipe.ingredients) == 4
    prompt, max_tokens = generator.calls[0]
    assert max_tokens == 1500
    assert "Structure these recipe fragments" in prompt
    assert "6 cloves garlic" in prompt


@pytest.mark.asyncio
async def test_fast_without_fragments_degrades_to_minimal(ai_settings):
    generator = FakeGenerator(FULL_RESPONSE)
    cache = InMemoryRecipeCache()
    extractor = AIExtractor(generator, cache=cache, settings=ai_settings)
    url = "https://example.com/shakshuka"

    result = await extractor.extract(url, ARTICLE_PAGE, fallback_level="fast")

    assert result.method == "ai-minimal"
    assert result.confidence == 0.5
    assert generator.calls[0][1] == 1500
    # Minimal results are too weak to cache
    assert (await extractor.extract(url, ARTICLE_PAGE, fallback_level="fast")).method == "ai-minimal"
    assert len(generator.calls) == 2


@pytest.mark.asyncio
async def test_failed_level_is_retried_at_fast(ai_settings):
    generator = FakeGenerator("Sorry, I cannot help with that.", NOODLES_RESPONSE)
    extractor = AIExtractor(generator, settings=ai_settings)

    result = await extractor.extract("https://example.com/noodles", FRAGMENT_PAGE, fallback_level="detailed")

    assert result.method == "ai-fast"
    assert [max_tokens for _, max_tokens in generator.calls] == [3000, 1500]


@pytest.mark.asyncio
async def test_generation_timeout_raises():
    generator = SlowGenerator()
    extractor = AIExtractor(generator, settings=Settings(_env_file=None, LLM_TIMEOUT_SECONDS=0.01))

    with pytest.raises(AIExtractionError, match="timed out"):
        await extractor.extract("https://example.com/noodles", FRAGMENT_PAGE)

    assert generator.calls == 2


@pytest.mark.asyncio
async def test_no_recipe_error_payload_raises(ai_settings):
    extractor = AIExtractor(FakeGenerator('{"error": "no_recipe"}'), settings=ai_settings)

    with pytest.raises(AIExtractionError, match="no_recipe"):
        await extractor.extract("https://example.com/noodles", FRAGMENT_PAGE, fallback_level="fast")


@pytest.mark.asyncio
async def test_missing_generator_raises(ai_settings):
    with pytest.raises(AIExtractionError):
        await AIExtractor(None, settings=ai_settings).extract("https://example.com/x", ARTICLE_PAGE)


@pytest.mark.asyncio
async def test_aggressive_level_backfills_from_page(ai_settings):
    response = json.dumps({"title": "Mystery Stew", "ingredients": ["1 lb beef"], "instructions": ["Stew it."]})
    generator = FakeGenerator(response)
    extractor = AIExtractor(generator, settings=ai_settings)

    result = await extractor.extract("https://example.com/stew", NOISY_PAGE, fallback_level="aggressive")

    assert result.method == "ai-aggressive"
    assert result.recipe.image == "https://example.com/stew-hero.jpg"
    assert result.recipe.prep_time == "PT20M"
    prompt, max_tokens = generator.calls[0]
    assert max_tokens == 4000
    assert "The page is noisy" in prompt


@pytest.mark.asyncio
async def test_hints_fill_fields_the_model_left_out(ai_settings):
    response = json.dumps({"title": "Shakshuka", "ingredients": ["6 eggs"], "instructions": ["Cook."]})
    generator = FakeGenerator(response)
    extractor = AIExtractor(generator, settings=ai_settings)
    hints = RecipeDraft(title="Shakshuka", image="https://example.com/hint.jpg", servings=2)

    result = await extractor.extract("https://example.com/shakshuka", ARTICLE_PAGE, hints=hints)

    assert result.recipe.image == "https://example.com/hint.jpg"
    assert result.recipe.servings == 2
    assert "Partial data already extracted" in generator.calls[0][0]


def test_coerce_ai_payload_accepts_common_shapes():
    draft = coerce_ai_payload(
        {
            "recipe": {
                "name": "Pho",
                "ingredients": [{"quantity": "2", "unit": "cups", "name": "broth"}, {"text": "1 onion"}],
                "steps": [{"text": "1. Simmer the broth"}],
                "tags": "Soup, Vietnamese",
                "servings": "4-6",
                "cookTime": "PT3H",
            }
        },
        "https://example.com/pho",
    )

    assert draft.title == "Pho"
    assert draft.ingredients == ["2 cups broth", "1 onion"]
    assert draft.instructions == ["Simmer the broth"]
    assert draft.tags == ["Soup", "Vietnamese"]
    assert draft.servings == 5
    assert draft.cook_time == "PT3H"
    assert draft.source_url == "https://example.com/pho"


def test_coerce_ai_payload_rejects_non_objects_and_errors():
    with pytest.raises(AIExtractionError):
        coerce_ai_payload(["not", "an", "object"], "https://example.com/x")
    with pytest.raises(AIExtractionError):
        coerce_ai_payload({"error": {"code": "no_recipe", "message": "nothing here"}}, "https://example.com/x")


@pytest.mark.asyncio
@pytest.mark.parametrize("fail_reads", [True, False])
async def test_cache_outage_does_not_block_extraction(ai_settings, fail_reads):
    generator = FakeGenerator(FULL_RESPONSE)
    cache = UnavailableCache(fail_reads=fail_reads)
    extractor = AIExtractor(generator, cache=cache, settings=ai_settings)

    result = await extractor.extract("https://example.com/shakshuka", ARTICLE_PAGE)

    assert result.method == "ai-detailed"
    assert result.recipe.title == "Shakshuka"
    assert len(generator.calls) == 1
    assert cache.writes == 1
