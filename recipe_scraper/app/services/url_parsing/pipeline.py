"""Strategy cascade: turn one fetched page into a ParseResult."""

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup

from recipe_scraper.app.core.config import Settings, get_settings
from recipe_scraper.app.services.llm_client import ChatCompletionsProvider
from recipe_scraper.app.services.url_parsing.extractors.heuristic import extract_heuristics
from recipe_scraper.app.services.url_parsing.extractors.llm import LLMRecipeService
from recipe_scraper.app.services.url_parsing.extractors.microdata import (
    extract_microdata_recipe,
)
from recipe_scraper.app.services.url_parsing.extractors.schema_org import (
    extract_json_ld_recipe,
)
from recipe_scraper.app.services.url_parsing.html_fetcher import (
    FetchError,
    FetchTimeoutError,
    fetch_html,
)
from recipe_scraper.app.services.url_parsing.llm_cache import ResponseCache
from recipe_scraper.app.services.url_parsing.metrics import LLM_ENRICH, log_strategy_hit
from recipe_scraper.app.services.url_parsing.models import (
    HeuristicExtraction,
    ParseResult,
    Recipe,
    Strategy,
)
from recipe_scraper.app.services.url_parsing.normalizers import (
    normalize_from_heuristics,
    normalize_from_structured,
)
from recipe_scraper.app.services.url_parsing.readability import extract_readable_content

logger = logging.getLogger(__name__)


@dataclass
class IngestContext:
    """Per-request state shared by the strategies."""

    url: str
    html: str
    heuristics: HeuristicExtraction
    llm_service: Optional[LLMRecipeService] = None
    llm_heuristics: Optional[HeuristicExtraction] = None
    warnings: List[str] = field(default_factory=list)
    _readable_html: Optional[str] = None
    _readable_loaded: bool = False

    def __post_init__(self) -> None:
        if self.llm_heuristics is None:
            self.llm_heuristics = self.heuristics

    @property
    def readable_html(self) -> Optional[str]:
        if not self._readable_loaded:
            self._readable_html = extract_readable_content(self.html, self.url)
            self._readable_loaded = True
        return self._readable_html


StrategyFn = Callable[[BeautifulSoup, IngestContext], Awaitable[Optional[Recipe]]]


@dataclass(frozen=True)
class StrategyEntry:
    strategy: Strategy
    run: StrategyFn


async def _json_ld(soup: BeautifulSoup, ctx: IngestContext) -> Optional[Recipe]:
    node = extract_json_ld_recipe(soup)
    return normalize_from_structured(node, ctx.url) if node is not None else None


async def _microdata(soup: BeautifulSoup, ctx: IngestContext) -> Optional[Recipe]:
    node = extract_microdata_recipe(soup)
    return normalize_from_structured(node, ctx.url) if node is not None else None


async def _heuristics(soup: BeautifulSoup, ctx: IngestContext) -> Optional[Recipe]:
    if not ctx.heuristics.has_structured_bits:
        return None
    return normalize_from_heuristics(ctx.heuristics, ctx.url)


async def _readability_heuristics(soup: BeautifulSoup, ctx: IngestContext) -> Optional[Recipe]:
    readable = ctx.readable_html
    if not readable:
        return None
    extraction = extract_heuristics(BeautifulSoup(readable, "lxml"))
    if not extraction.has_structured_bits:
        return None
    recipe = normalize_from_heuristics(extraction, ctx.url)
    ctx.llm_heuristics = extraction
    return recipe


async def _llm_fallback(soup: BeautifulSoup, ctx: IngestContext) -> Optional[Recipe]:
    if ctx.llm_service is None:
        return None
    return await ctx.llm_service.extract(
        ctx.url,
        ctx.html,
        heuristics=ctx.llm_heuristics,
        readable_html=ctx.readable_html,
    )


DEFAULT_STRATEGIES: Tuple[StrategyEntry, ...] = (
    StrategyEntry(Strategy.JSON_LD, _json_ld),
    StrategyEntry(Strategy.MICRODATA, _microdata),
    StrategyEntry(Strategy.HEURISTICS, _heuristics),
    StrategyEntry(Strategy.READABILITY_HEURISTICS, _readability_heuristics),
    StrategyEntry(Strategy.LLM_FALLBACK, _llm_fallback),
)


async def run_cascade(
    soup: BeautifulSoup,
    ctx: IngestContext,
    strategies: Sequence[StrategyEntry] = DEFAULT_STRATEGIES,
) -> Tuple[Optional[Recipe], Optional[Strategy]]:
    """Try strategies in order and stop at the first structurally complete recipe.

    If none is complete, the last partial non-LLM recipe is returned instead.
    """
    partial: Optional[Recipe] = None
    partial_strategy: Optional[Strategy] = None
    for entry in strategies:
        try:
            candidate = await entry.run(soup, ctx)
        except ValueError as exc:
            logger.warning("%s normalize error for %s: %s", entry.strategy.value, ctx.url, exc)
            continue
        if candidate is None:
            continue
        logger.debug(
            "%s produced %d ingredients / %d steps",
            entry.strategy.value,
            len(candidate.ingredients),
            len(candidate.steps),
        )
        if candidate.is_structurally_complete():
            return candidate, entry.strategy
        if entry.strategy is not Strategy.LLM_FALLBACK:
            partial, partial_strategy = candidate, entry.strategy
    return partial, partial_strategy


def should_enrich(recipe: Recipe) -> bool:
    return (
        not recipe.title
        or not recipe.description
        or recipe.time.total is None
        or (recipe.yield_.servings is None and not recipe.yield_.original)
        or not recipe.tags
    )


async def ingest_html(
    html: str,
    url: str,
    llm_service: Optional[LLMRecipeService] = None,
    use_llm: bool = True,
    strategies: Sequence[StrategyEntry] = DEFAULT_STRATEGIES,
) -> ParseResult:
    soup = BeautifulSoup(html, "lxml")
    ctx = IngestContext(
        url=url,
        html=html,
        heuristics=extract_heuristics(soup),
        llm_service=llm_service if use_llm else None,
    )

    recipe, strategy = await run_cascade(soup, ctx, strategies)
    if recipe is None or strategy is None:
        return ParseResult(
            success=False,
            error_code="parse_failed",
            error_message="Could not extract a recipe from the page.",
            warnings=ctx.warnings,
        )

    used_llm = strategy is Strategy.LLM_FALLBACK
    enriched = False
    if used_llm:
        ctx.warnings.append("LLM fallback used; please verify ingredients.")
    elif ctx.llm_service is not None and should_enrich(recipe):
        enriched_recipe = await ctx.llm_service.enrich(
            recipe,
            html,
            heuristics=ctx.llm_heuristics,
            readable_html=ctx.readable_html,
        )
        if enriched_recipe is not None:
            log_strategy_hit(LLM_ENRICH)
            recipe = enriched_recipe
            enriched = True
            used_llm = True

    if not recipe.is_structurally_complete():
        ctx.warnings.append("Recipe is incomplete (missing ingredients or steps).")

    log_strategy_hit(strategy.value)
    return ParseResult(
        success=True,
        recipe=recipe,
        parser_strategy=strategy,
        used_llm=used_llm,
        llm_enriched=enriched,
        warnings=ctx.warnings,
    )


def build_llm_service(settings: Settings) -> LLMRecipeService:
    return LLMRecipeService(
        provider=ChatCompletionsProvider(settings),
        cache=ResponseCache(ttl_seconds=settings.llm_cache_ttl_seconds),
        settings=settings,
    )


async def parse_recipe_from_url(
    url: str,
    llm_service: Optional[LLMRecipeService] = None,
    use_llm: bool = True,
    settings: Optional[Settings] = None,
) -> ParseResult:
    settings = settings or get_settings()
    try:
        html = await fetch_html(
            url,
            timeout=settings.fetch_timeout_seconds,
            user_agent=settings.scraper_user_agent,
        )
    except ValueError as exc:
        return ParseResult(success=False, error_code="invalid_url", error_message=str(exc))
    except FetchTimeoutError as exc:
        return ParseResult(success=False, error_code="fetch_timeout", error_message=str(exc))
    except FetchError as exc:
        blocked = exc.status_code in (401, 403)
        return ParseResult(
            success=False,
            error_code="fetch_failed",
            error_message=str(exc),
            warnings=["blocked_by_site" if blocked else "fetch_http_error"],
        )

    return await ingest_html(html, url, llm_service=llm_service, use_llm=use_llm)
