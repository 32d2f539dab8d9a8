"""LLM-based recipe extraction and enrichment."""

import logging
import re
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Type

from bs4 import BeautifulSoup
from pydantic import BaseModel

from recipe_scraper.app.core.config import Settings
from recipe_scraper.app.services.llm_client import (
    LLMError,
    LLMNoOutputError,
    LLMProvider,
    LLMResult,
    LLMTimeoutError,
    LLMUnavailableError,
    LLMValidationError,
)
from recipe_scraper.app.services.url_parsing.ingredient_parser import parse_ingredient_lines
from recipe_scraper.app.services.url_parsing.llm_cache import ResponseCache
from recipe_scraper.app.services.url_parsing.metrics import log_llm_usage
from recipe_scraper.app.services.url_parsing.models import (
    HeuristicExtraction,
    LLMEnrichment,
    LLMExtraction,
    Recipe,
)
from recipe_scraper.app.services.url_parsing.normalizers import (
    build_source,
    compute_total,
    infer_units,
    merge_tags,
)
from recipe_scraper.app.services.url_parsing.parsing_utils import clamp_int, normalize_steps

logger = logging.getLogger(__name__)

HEURISTIC_LINE_LIMIT = 40

EXTRACT_SYSTEM_PROMPT = " ".join(
    [
        "You are a disciplined recipe extraction engine.",
        "Extract only facts from the provided context.",
        'List ingredients with quantity before the item (e.g., "500 g beef chuck").',
        "Preserve every instruction; keep each step under two concise sentences.",
        "Identify cooking methods (braise, simmer, grill, sauté, etc.) and dish/category tags.",
        "Limit optional notes to the most useful facts (maximum three short items).",
        "If data is absent, respond with null instead of guessing.",
        "Do not invent numbers or convert units unless stated clearly.",
        "Output must strictly follow the provided JSON schema.",
    ]
)

ENRICH_SYSTEM_PROMPT = " ".join(
    [
        "You refine existing recipe data with minimal, factual additions.",
        "Fill only missing fields when the context provides clear evidence.",
        "List ingredients with quantity before the item if you propose changes.",
        "Keep all steps present and concise; never drop or merge distinct actions.",
        "Expand tags with dish type, cuisine, and cooking methods evident from context.",
        "Limit optional notes to the most useful facts (maximum three short items).",
        "Never overwrite existing values with guesses or conflicting data.",
        "Return null for information that remains unknown.",
        "Output must strictly follow the provided JSON schema.",
    ]
)

TRUNCATED_OUTPUT_HINT = (
    "Previous response was truncated or not valid JSON. Return compact JSON only, "
    "fully close arrays/objects, and keep each step under 35 words."
)

_SERVES_RE = re.compile(r"\bserves?\b", re.I)


class AttemptState(str, Enum):
    ATTEMPTING = "attempting"
    REPAIRING_SCHEMA = "repairing_schema"
    SHRINKING_CONTEXT = "shrinking_context"
    EXHAUSTED = "exhausted"


def _sanitize_lines(lines: Sequence[str], limit: int) -> List[str]:
    cleaned = [line.strip() for line in lines if line and line.strip()]
    return cleaned[:limit]


def reduce_html_to_text(html: str, limit: int) -> str:
    """Visible body text with scripts/styles removed and blank lines collapsed."""
    try:
        soup = BeautifulSoup(html, "lxml")
        for tag in soup.find_all(["script", "style", "noscript"]):
            tag.decompose()
        root = soup.body or soup
        lines = (line.strip() for line in root.get_text("\n").splitlines())
        text = "\n".join(line for line in lines if line)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Failed to reduce HTML to text: %s", exc)
        text = html
    return text[:limit]


def build_llm_context(
    url: str,
    html: str,
    heuristics: Optional[HeuristicExtraction] = None,
    readable_html: Optional[str] = None,
    max_chars: int = 5000,
) -> str:
    segments = [f"URL: {url}"]
    if heuristics is not None:
        if heuristics.title:
            segments.append(f"Heuristic title: {heuristics.title}")
        ingredients = _sanitize_lines(heuristics.ingredients, HEURISTIC_LINE_LIMIT)
        if ingredients:
            segments.append("Heuristic ingredients:\n- " + "\n- ".join(ingredients))
        steps = _sanitize_lines(heuristics.steps, HEURISTIC_LINE_LIMIT)
        if steps:
            numbered = [f"{idx}. {line}" for idx, line in enumerate(steps, start=1)]
            segments.append("Heuristic steps:\n" + "\n".join(numbered))
    excerpt = reduce_html_to_text(readable_html or html, max_chars)
    segments.append(f"Context excerpt:\n{excerpt}")
    return "\n\n".join(segments)


def llm_result_to_recipe(
    data: LLMExtraction, url: str, heuristics: Optional[HeuristicExtraction] = None
) -> Recipe:
    heuristic_ingredients = heuristics.ingredients if heuristics else []
    yield_original = data.servings_text or next(
        (line for line in heuristic_ingredients if _SERVES_RE.search(line)), None
    )
    ingredients = parse_ingredient_lines(data.ingredients)
    prep = clamp_int(data.prep_minutes)
    cook = clamp_int(data.cook_minutes)
    total = clamp_int(data.total_minutes)
    return Recipe.model_validate(
        {
            "title": data.title or (heuristics.title if heuristics else None),
            "description": data.description,
            "image": heuristics.image if heuristics else None,
            "author": None,
            "yield": {"servings": clamp_int(data.servings), "original": yield_original},
            "time": {"prep": prep, "cook": cook, "total": compute_total(prep, cook, total)},
            "ingredients": ingredients,
            "steps": normalize_steps(data.steps),
            "tags": merge_tags(data.tags, data.cuisines, data.methods),
            "dietFlags": {},
            "units": infer_units(ingredients),
            "source": build_source(url),
            "llmNotes": {"extracted": "llm", "notes": list(data.notes)},
        }
    )


def merge_enrichment(base: Recipe, enrichment: LLMEnrichment) -> Recipe:
    """Fill only the fields ``base`` leaves empty; tags are unioned.

    Returns a new, re-validated Recipe. Present values are never replaced.
    """
    filled: List[str] = []

    def pick(field: str, current: Any, proposed: Any) -> Any:
        if current not in (None, "") or proposed in (None, ""):
            return current
        filled.append(field)
        return proposed

    title = pick("title", base.title, enrichment.title)
    description = pick("description", base.description, enrichment.description)
    servings = pick("yield.servings", base.yield_.servings, clamp_int(enrichment.servings))
    original = pick("yield.original", base.yield_.original, enrichment.servings_text)
    prep = pick("time.prep", base.time.prep, clamp_int(enrichment.prep_minutes))
    cook = pick("time.cook", base.time.cook, clamp_int(enrichment.cook_minutes))
    total = pick("time.total", base.time.total, clamp_int(enrichment.total_minutes))
    total = compute_total(prep, cook, total)

    tags = merge_tags(base.tags, enrichment.tags or [], enrichment.cuisines or [], enrichment.methods or [])
    if len(tags) > len(base.tags):
        filled.append("tags")

    notes: Dict[str, Any] = dict(base.llm_notes) if isinstance(base.llm_notes, dict) else {}
    notes["enriched"] = filled

    payload = base.model_dump(by_alias=True)
    payload.update(
        {
            "title": title,
            "description": description,
            "yield": {"servings": servings, "original": original},
            "time": {"prep": prep, "cook": cook, "total": total},
            "tags": tags,
            "llmNotes": notes,
        }
    )
    return Recipe.model_validate(payload)


class LLMRecipeService:
    """Extraction and enrichment through an injected provider and response cache."""

    def __init__(self, provider: LLMProvider, cache: ResponseCache, settings: Settings):
        self.provider = provider
        self.cache = cache
        self.settings = settings

    async def call_llm(
        self, kind: str, system_prompt: str, context: str, schema: Type[BaseModel]
    ) -> LLMResult:
        """Run the bounded retry loop.

        A schema failure retries with the validator message as a hint, a
        no-output failure shrinks the context and asks for compact JSON, and a
        timeout retries with the longer timeout. An unavailable provider fails
        immediately.
        """
        max_attempts = max(1, self.settings.llm_max_attempts)
        state = AttemptState.ATTEMPTING
        attempt = 0
        repair_hint: Optional[str] = None
        last_error: Optional[LLMError] = None

        while state is not AttemptState.EXHAUSTED:
            if attempt >= max_attempts:
                state = AttemptState.EXHAUSTED
                break
            if state is AttemptState.SHRINKING_CONTEXT:
                context = context[: self.settings.llm_shrunk_context_chars]

            prompt_parts = [context]
            if repair_hint:
                prompt_parts.append(f"Previous output failed validation: {repair_hint}")
                prompt_parts.append("Return corrected JSON only.")
            timeout = (
                self.settings.llm_request_timeout_seconds
                if attempt == 0
                else self.settings.llm_retry_timeout_seconds
            )
            attempt += 1
            try:
                return await self.provider.generate(
                    system_prompt=system_prompt,
                    user_prompt="\n\n".join(prompt_parts),
                    schema=schema,
                    temperature=self.settings.llm_temperature,
                    max_output_tokens=self.settings.llm_max_output_tokens,
                    timeout=timeout,
                )
            except LLMUnavailableError:
                raise
            except LLMValidationError as exc:
                last_error = exc
                repair_hint = str(exc)
                state = AttemptState.REPAIRING_SCHEMA
            except LLMNoOutputError as exc:
                last_error = exc
                repair_hint = TRUNCATED_OUTPUT_HINT
                state = AttemptState.SHRINKING_CONTEXT
            except LLMTimeoutError as exc:
                last_error = exc
                state = AttemptState.ATTEMPTING
            except LLMError as exc:
                last_error = exc
                state = AttemptState.ATTEMPTING
            logger.warning(
                "LLM %s attempt %d/%d failed (%s); next state: %s",
                kind,
                attempt,
                max_attempts,
                last_error,
                state.value,
            )

        raise last_error or LLMError("LLM call failed")

    async def extract(
        self,
        url: str,
        html: str,
        heuristics: Optional[HeuristicExtraction] = None,
        readable_html: Optional[str] = None,
    ) -> Optional[Recipe]:
        key = ResponseCache.make_key("extract", url, html)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        context = build_llm_context(
            url, html, heuristics, readable_html, max_chars=self.settings.llm_max_context_chars
        )
        try:
            result = await self.call_llm("extract", EXTRACT_SYSTEM_PROMPT, context, LLMExtraction)
        except LLMUnavailableError:
            logger.warning("LLM extract skipped (model unavailable)")
            return None
        except LLMError as exc:
            logger.warning("LLM extract failed for %s: %s", url, exc)
            return None

        log_llm_usage("extract", result.usage)
        try:
            recipe = llm_result_to_recipe(result.object, url, heuristics)
        except ValueError as exc:
            logger.warning("LLM extraction for %s did not validate as a recipe: %s", url, exc)
            return None
        self.cache.put(key, recipe)
        return recipe

    async def enrich(
        self,
        base: Recipe,
        html: str,
        heuristics: Optional[HeuristicExtraction] = None,
        readable_html: Optional[str] = None,
    ) -> Optional[Recipe]:
        if not self.settings.llm_enrichment_enabled:
            logger.debug("LLM enrichment disabled by settings")
            return None
        url = base.source.url
        key = ResponseCache.make_key("enrich", url, html)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        context = "\n\n".join(
            [
                f"URL: {url}",
                f"Existing recipe JSON: {base.model_dump_json(by_alias=True)}",
                build_llm_context(
                    url,
                    html,
                    heuristics,
                    readable_html,
                    max_chars=self.settings.llm_max_context_chars,
                ),
            ]
        )
        try:
            result = await self.call_llm("enrich", ENRICH_SYSTEM_PROMPT, context, LLMEnrichment)
        except LLMUnavailableError:
            logger.warning("LLM enrich skipped (model unavailable)")
            return None
        except LLMError as exc:
            logger.warning("LLM enrich failed for %s: %s", url, exc)
            return None

        log_llm_usage("enrich", result.usage)
        try:
            merged = merge_enrichment(base, result.object)
        except ValueError as exc:
            logger.warning("Enriched recipe for %s failed validation: %s", url, exc)
            return None
        self.cache.put(key, merged)
        return merged
