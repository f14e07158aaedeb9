"""Heuristic recipe extraction from HTML structure."""

import logging
import re
from typing import List, Optional, Sequence
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from recipe_harvester.app.services.url_parsing.constants import (
    ENHANCE_MAX_ITEMS,
    ENHANCE_MAX_TEXT_LENGTH,
    ENHANCE_MIN_MATCHES,
    ENHANCE_MIN_TEXT_LENGTH,
    METHOD_CSS_SELECTORS,
)
from recipe_harvester.app.services.url_parsing.models import ExtractionResult, RecipeDraft
from recipe_harvester.app.services.url_parsing.parsing_utils import (
    clean_instruction,
    clean_text,
    parse_servings,
)
from recipe_harvester.app.services.url_parsing.scoring import calculate_confidence
from recipe_harvester.app.services.url_parsing.validation import validate_recipe

logger = logging.getLogger(__name__)

AGGRESSIVE_INGREDIENT_SELECTORS = (
    'li:-soup-contains("cup"), li:-soup-contains("tablespoon"), li:-soup-contains("teaspoon")',
    'li:-soup-contains("lb"), li:-soup-contains("oz"), li:-soup-contains("pound")',
    'p:-soup-contains("cup"), p:-soup-contains("tablespoon"), p:-soup-contains("teaspoon")',
    'div:-soup-contains("ingredient") li',
    '[class*="ingredient"]',
    '[id*="ingredient"] li',
)
AGGRESSIVE_INSTRUCTION_SELECTORS = (
    "ol li",
    'div:-soup-contains("step") p',
    'p:-soup-contains("Step")',
    '[class*="direction"] li, [class*="instruction"] li, [class*="method"] li',
    '[class*="direction"], [class*="instruction"], [class*="method"]',
    '[id*="direction"] li, [id*="instruction"] li',
)
META_IMAGE_SELECTORS = (
    'meta[property="og:image"]',
    'meta[name="og:image"]',
    'meta[name="twitter:image"]',
    'meta[property="twitter:image"]',
)

_UNIT_RE = re.compile(
    r"\d|\b(cup|tsp|tbsp|tablespoon|teaspoon|ounce|oz|gram|g|kg|ml|l|lb|pound|pinch|clove)s?\b", re.I
)
_ACTION_VERB_RE = re.compile(
    r"\b(cook|bake|add|mix|stir|heat|pour|season|chop|slice|dice|mince|preheat|whisk|serve)\b", re.I
)


def _find_ingredient_items(container) -> List[str]:
    """Find likely ingredient items in a container element."""
    best_items: List[str] = []
    best_score = -1
    for lst in container.find_all(["ul", "ol"]):
        items = [li.get_text(" ", strip=True) for li in lst.find_all("li")]
        if len(items) < 2:
            continue
        matches = sum(1 for item in items if _UNIT_RE.search(item))
        if matches < max(2, len(items) // 2):
            continue
        score = matches * 2 + len(items)
        if score > best_score:
            best_score = score
            best_items = items
    return [clean_text(i) for i in best_items if clean_text(i)]


def _find_instruction_items(container) -> List[str]:
    """Find likely instruction items in a container element."""
    # Strategy 1: the ordered list that reads most like a method
    best_list = None
    best_score = 0
    for ol in container.find_all("ol"):
        items = [li.get_text(" ", strip=True) for li in ol.find_all("li")]
        if len(items) < 2:
            continue
        score = len(items) + 2 * sum(1 for item in items if _ACTION_VERB_RE.search(item))
        if score > best_score:
            best_score = score
            best_list = items
    if best_list:
        return [clean_instruction(s) for s in best_list if clean_text(s)]

    # Strategy 2: content following an instructions heading
    steps: List[str] = []
    for pattern in (r"how\s+to\s+make", r"instructions?", r"directions?", r"method", r"preparation"):
        heading = container.find(string=re.compile(pattern, re.I))
        if not heading or not heading.parent:
            continue
        sibling = heading.parent.find_next_sibling(["ol", "ul", "div", "section"])
        if not sibling:
            continue
        if sibling.name in {"ol", "ul"}:
            steps = [li.get_text(" ", strip=True) for li in sibling.find_all("li")]
        else:
            steps = [p.get_text(" ", strip=True) for p in sibling.find_all("p")] or [
                li.get_text(" ", strip=True) for li in sibling.find_all("li")
            ]
        if steps:
            break
    return [clean_instruction(s) for s in steps if clean_text(s)]


def clean_soup_for_content(soup: BeautifulSoup) -> None:
    """Remove obvious boilerplate nodes before extracting candidate content."""
    for noisy in soup.find_all(["header", "footer", "nav", "aside", "form"]):
        noisy.decompose()
    for tag in soup.find_all(["script", "style", "noscript", "link", "meta"]):
        tag.decompose()


def find_main_node(soup: BeautifulSoup):
    """Find the main content node in the soup."""
    return (
        soup.find(attrs={"itemtype": re.compile("Recipe", re.I)})
        or soup.find("article")
        or soup.find("main")
        or soup.find(class_=re.compile("recipe|post|content", re.I))
        or soup.body
    )


def parse_servings_from_text(text: str):
    """Extract servings from descriptive text."""
    if not text:
        return None
    for pattern in (r"serves\s+([\d\s/–-]+)", r"serve[s]?:\s*([\d\s/–-]+)", r"yield[s]?:\s*([\d\s/–-]+)"):
        match = re.search(pattern, text, flags=re.I)
        if match:
            servings = parse_servings(match.group(1))
            if servings is not None:
                return servings
    return None


def meta_image(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    """Open Graph / Twitter card image, if the page declares one."""
    for selector in META_IMAGE_SELECTORS:
        element = soup.select_one(selector)
        content = element.get("content") if element else None
        if isinstance(content, str) and content.strip():
            return urljoin(base_url, content.strip())
    return None


def _aggressive_texts(soup: BeautifulSoup, selectors: Sequence[str]) -> List[str]:
    """Texts from the first selector yielding enough plausibly sized matches."""
    for selector in selectors:
        texts: List[str] = []
        for element in soup.select(selector):
            text = clean_text(element.get_text(" ", strip=True))
            if ENHANCE_MIN_TEXT_LENGTH < len(text) < ENHANCE_MAX_TEXT_LENGTH and text not in texts:
                texts.append(text)
        if len(texts) >= ENHANCE_MIN_MATCHES:
            logger.debug("Aggressive selector %r matched %d items", selector, len(texts))
            return texts[:ENHANCE_MAX_ITEMS]
    return []


def find_aggressive_ingredients(soup: BeautifulSoup) -> List[str]:
    return _aggressive_texts(soup, AGGRESSIVE_INGREDIENT_SELECTORS)


def find_aggressive_instructions(soup: BeautifulSoup) -> List[str]:
    return [clean_instruction(t) for t in _aggressive_texts(soup, AGGRESSIVE_INSTRUCTION_SELECTORS)]


class GenericHtmlExtractor:
    """Last-resort extractor using list heuristics over the main content node."""

    name = "Generic HTML"

    def extract(self, url: str, html: str) -> ExtractionResult:
        soup = BeautifulSoup(html or "", "lxml")
        title_tag = soup.find("h1") or soup.title
        title = clean_text(title_tag.get_text()) if title_tag else ""
        description_tag = soup.select_one('meta[name="description"]')
        description = clean_text(description_tag.get("content") or "") if description_tag else ""
        if not title:
            return ExtractionResult(
                recipe=None,
                confidence=0.0,
                method=METHOD_CSS_SELECTORS,
                issues=["No recipe found using generic HTML heuristics"],
            )

        clean_soup_for_content(soup)
        container = find_main_node(soup)
        ingredients = _find_ingredient_items(container) if container else []
        instructions = _find_instruction_items(container) if container else []
        servings = parse_servings_from_text(container.get_text(" ", strip=True)) if container else None

        recipe = RecipeDraft(
            title=title,
            description=description or None,
            servings=servings,
            ingredients=ingredients,
            instructions=[s for s in instructions if s],
            source_url=url,
        )
        confidence = calculate_confidence(recipe, METHOD_CSS_SELECTORS, url)
        logger.info(
            "Generic HTML extractor: ingredients=%d instructions=%d confidence=%.2f",
            len(recipe.ingredients),
            len(recipe.instructions),
            confidence,
        )
        return ExtractionResult(
            recipe=recipe,
            confidence=confidence,
            method=METHOD_CSS_SELECTORS,
            issues=validate_recipe(recipe),
        )
