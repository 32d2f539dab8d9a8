"""Recipe extractors for different parsing strategies."""

from recipe_scraper.app.services.url_parsing.extractors.heuristic import extract_heuristics
from recipe_scraper.app.services.url_parsing.extractors.llm import (
    LLMRecipeService,
    merge_enrichment,
)
from recipe_scraper.app.services.url_parsing.extractors.microdata import (
    extract_microdata_recipe,
)
from recipe_scraper.app.services.url_parsing.extractors.schema_org import (
    extract_json_ld_recipe,
)

__all__ = [
    "LLMRecipeService",
    "extract_heuristics",
    "extract_json_ld_recipe",
    "extract_microdata_recipe",
    "merge_enrichment",
]
