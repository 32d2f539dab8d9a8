#!/usr/bin/env python
"""
Fetch one recipe URL and print the parse result as JSON.

Run manually:
    python scripts/ingest_url.py https://example.com/some-recipe [--no-llm]
"""
import argparse
import asyncio
import json
import logging
import sys

from recipe_scraper.app.core.config import get_settings
from recipe_scraper.app.services.url_parsing.pipeline import (
    build_llm_service,
    parse_recipe_from_url,
)

logger = logging.getLogger("ingest_url")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Extract a recipe from a web page.")
    parser.add_argument("url", help="http(s) URL of the recipe page")
    parser.add_argument("--no-llm", action="store_true", help="skip LLM fallback and enrichment")
    parser.add_argument("--indent", type=int, default=2, help="JSON indent (default: 2)")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

    llm_service = None if args.no_llm else build_llm_service(settings)
    result = asyncio.run(
        parse_recipe_from_url(
            args.url, llm_service=llm_service, use_llm=not args.no_llm, settings=settings
        )
    )
    print(json.dumps(result.model_dump(mode="json", by_alias=True), indent=args.indent))
    if not result.success:
        logger.error("Ingest failed: %s (%s)", result.error_code, result.error_message)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
