"""URL recipe parsing package.

This package extracts recipes from web pages using a cascade of strategies:
schema.org JSON-LD, microdata, DOM heuristics, a readability pass feeding the
heuristics again, and an LLM fallback, with optional LLM enrichment.
"""

from recipe_scraper.app.services.url_parsing.html_fetcher import (
    FetchError,
    FetchTimeoutError,
    fetch_html,
    is_private_host,
)
from recipe_scraper.app.services.url_parsing.ingredient_parser import (
    parse_ingredient_line,
    parse_ingredient_lines,
)
from recipe_scraper.app.services.url_parsing.models import (
    Ingredient,
    ParseResult,
    Recipe,
    Step,
    Strategy,
    UnitSystem,
)
from recipe_scraper.app.services.url_parsing.normalizers import (
    infer_units,
    normalize_from_heuristics,
    normalize_from_structured,
)
from recipe_scraper.app.services.url_parsing.parsing_utils import (
    minutes_from_instruction_text,
    minutes_from_iso8601_duration,
    normalize_steps,
    normalize_unit,
    to_string_array,
    to_string_coerce,
)
from recipe_scraper.app.services.url_parsing.pipeline import (
    build_llm_service,
    ingest_html,
    parse_recipe_from_url,
)

__all__ = [
    # Models
    "Ingredient",
    "ParseResult",
    "Recipe",
    "Step",
    "Strategy",
    "UnitSystem",
    # HTML fetching
    "FetchError",
    "FetchTimeoutError",
    "fetch_html",
    "is_private_host",
    # Ingredient parsing
    "parse_ingredient_line",
    "parse_ingredient_lines",
    # Normalizers
    "infer_units",
    "normalize_from_heuristics",
    "normalize_from_structured",
    # Parsing utilities
    "minutes_from_instruction_text",
    "minutes_from_iso8601_duration",
    "normalize_steps",
    "normalize_unit",
    "to_string_array",
    "to_string_coerce",
    # Pipeline
    "build_llm_service",
    "ingest_html",
    "parse_recipe_from_url",
]
