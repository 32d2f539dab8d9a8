from functools import lru_cache

from recipe_scraper.app.core.config import get_settings
from recipe_scraper.app.services.url_parsing.extractors.llm import LLMRecipeService
from recipe_scraper.app.services.url_parsing.pipeline import build_llm_service


@lru_cache
def get_llm_service() -> LLMRecipeService:
    """One provider + response cache per process."""
    return build_llm_service(get_settings())
