#!/usr/bin/env python
"""
Extract a recipe from a URL and print the result as JSON.

Usage:
    python scripts/extract_url.py https://example.com/recipe
    python scripts/extract_url.py https://example.com/recipe --html-file saved.html
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

from recipe_harvester.app.core.config import get_settings
from recipe_harvester.app.services.recipe_pipeline import get_recipe_pipeline
from recipe_harvester.app.services.url_parsing.errors import FetchError, InvalidUrlError

logging.basicConfig(level=get_settings().log_level.upper())
logger = logging.getLogger("extract_url")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Extract a recipe draft from a web page.")
    parser.add_argument("url", help="Recipe page URL")
    parser.add_argument("--html-file", type=Path, help="Use this saved HTML instead of fetching the page")
    return parser.parse_args(argv)


async def run(url: str, html=None) -> int:
    try:
        result = await get_recipe_pipeline().extract(url, html=html)
    except InvalidUrlError as exc:
        logger.error("Invalid URL: %s", exc)
        return 2
    except FetchError as exc:
        logger.error("Fetch failed: %s", exc)
        return 1
    print(result.model_dump_json(indent=2))
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    html = args.html_file.read_text(encoding="utf-8", errors="replace") if args.html_file else None
    return asyncio.run(run(args.url, html))


if __name__ == "__main__":
    sys.exit(main())
