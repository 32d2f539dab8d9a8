"""Map structured-data nodes and heuristic extractions onto the Recipe model."""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from recipe_scraper.app.services.url_parsing.constants import (
    METRIC_UNITS,
    NEUTRAL_UNITS,
    US_UNITS,
)
from recipe_scraper.app.services.url_parsing.ingredient_parser import parse_ingredient_lines
from recipe_scraper.app.services.url_parsing.models import (
    HeuristicExtraction,
    Ingredient,
    Recipe,
    UnitSystem,
)
from recipe_scraper.app.services.url_parsing.parsing_utils import (
    clamp_int,
    decode_entities,
    extract_author,
    extract_image,
    flatten_instructions,
    get_domain,
    minutes_from_instruction_text,
    minutes_from_iso8601_duration,
    normalize_steps,
    to_string_array,
    to_string_coerce,
)

logger = logging.getLogger(__name__)

_SERVINGS_RE = re.compile(r"(\d+)\s*(servings?|serves?|people|portion|portions)?", re.I)


def infer_units(ingredients: Sequence[Ingredient]) -> UnitSystem:
    """Decide metric vs US from the units present; ties and no evidence give metric."""
    units = [ing.unit.lower() for ing in ingredients if ing.unit]
    if not units:
        return UnitSystem.METRIC
    metric_only = all(u in METRIC_UNITS or u in NEUTRAL_UNITS for u in units)
    us_only = all(u in US_UNITS or u in NEUTRAL_UNITS for u in units)
    if us_only and not metric_only:
        return UnitSystem.US
    return UnitSystem.METRIC


def compute_total(prep: Optional[int], cook: Optional[int], total: Optional[int]) -> Optional[int]:
    """Keep an explicit total; otherwise prep + cook when both are known and positive."""
    if total is not None:
        return total
    if prep is not None and cook is not None and prep + cook > 0:
        return prep + cook
    return None


def merge_tags(*groups: Iterable[str]) -> List[str]:
    """Lowercase and de-duplicate tags, keeping first-seen order."""
    seen = set()
    merged: List[str] = []
    for group in groups:
        for tag in group or []:
            clean = tag.strip().lower()
            if clean and clean not in seen:
                seen.add(clean)
                merged.append(clean)
    return merged


def build_source(url: str) -> Dict[str, Any]:
    return {
        "url": url,
        "domain": get_domain(url),
        "fetchedAt": datetime.now(timezone.utc).isoformat(),
    }


def parse_yield(raw_yield: Any) -> Dict[str, Any]:
    """Read recipeYield into {"servings", "original"}; "4 4 people" becomes "4 people"."""
    text = to_string_coerce(raw_yield)
    original = re.sub(r"\b(\d+)\s+\1\b", r"\1", text, count=1).strip() if text else None
    servings = None
    if isinstance(raw_yield, (int, float)) and not isinstance(raw_yield, bool):
        servings = clamp_int(raw_yield)
    elif original:
        match = _SERVINGS_RE.search(original)
        if match:
            servings = int(match.group(1))
    return {"servings": servings, "original": original or None}


def normalize_from_structured(node: Dict[str, Any], source_url: str) -> Recipe:
    """Normalize a JSON-LD or microdata Recipe node.

    Raises pydantic.ValidationError when the result does not fit the Recipe
    schema; the cascade treats that as "try the next strategy".
    """
    title = decode_entities(to_string_coerce(node.get("name"))).strip()
    description = decode_entities(to_string_coerce(node.get("description"))).strip()

    raw_ingredients = node.get("recipeIngredient")
    if raw_ingredients is None:
        raw_ingredients = node.get("ingredients")
    if isinstance(raw_ingredients, str):
        raw_ingredients = [raw_ingredients]
    ingredients = parse_ingredient_lines(raw_ingredients if isinstance(raw_ingredients, list) else [])
    steps = normalize_steps(flatten_instructions(node.get("recipeInstructions")))

    prep = clamp_int(minutes_from_iso8601_duration(node.get("prepTime")))
    cook = clamp_int(minutes_from_iso8601_duration(node.get("cookTime")))
    total = clamp_int(minutes_from_iso8601_duration(node.get("totalTime")))
    if cook is None and total is None:
        cook = minutes_from_instruction_text(step.text for step in steps)
        if cook is not None:
            logger.debug("Cook time %d min read from instruction text", cook)

    tags = merge_tags(
        to_string_array(node.get("keywords")),
        to_string_array(node.get("recipeCategory")),
        to_string_array(node.get("recipeCuisine")),
    )

    return Recipe.model_validate(
        {
            "title": title or None,
            "description": description or None,
            "image": extract_image(node.get("image")),
            "author": extract_author(node.get("author")),
            "yield": parse_yield(node.get("recipeYield")),
            "time": {"prep": prep, "cook": cook, "total": compute_total(prep, cook, total)},
            "ingredients": ingredients,
            "steps": steps,
            "tags": tags,
            "dietFlags": {},
            "units": infer_units(ingredients),
            "source": build_source(source_url),
            "llmNotes": None,
        }
    )


def normalize_from_heuristics(data: HeuristicExtraction, source_url: str) -> Recipe:
    ingredients = parse_ingredient_lines(data.ingredients)
    steps = normalize_steps(data.steps)
    return Recipe.model_validate(
        {
            "title": data.title or None,
            "description": None,
            "image": data.image or None,
            "author": None,
            "yield": {"servings": None, "original": None},
            "time": {"prep": None, "cook": None, "total": None},
            "ingredients": ingredients,
            "steps": steps,
            "tags": [],
            "dietFlags": {},
            "units": infer_units(ingredients),
            "source": build_source(source_url),
            "llmNotes": {"extracted": "heuristics"},
        }
    )
