"""Schema.org JSON-LD recipe extraction."""

import json
import logging
from typing import Any, Dict, Iterator, Optional

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)


def _is_recipe_node(node: Dict[str, Any]) -> bool:
    node_type = node.get("@type")
    types = node_type if isinstance(node_type, list) else [node_type] if node_type else []
    return any("recipe" in str(t).lower() for t in types)


def _iter_recipe_nodes(node: Any) -> Iterator[Dict[str, Any]]:
    """Depth-first walk over lists, @graph containers and nested object values."""
    if isinstance(node, list):
        for entry in node:
            yield from _iter_recipe_nodes(entry)
    elif isinstance(node, dict):
        if _is_recipe_node(node):
            yield node
        for value in node.values():
            yield from _iter_recipe_nodes(value)


def extract_json_ld_recipe(soup: BeautifulSoup) -> Optional[Dict[str, Any]]:
    """Return the first schema.org Recipe node found in the page's JSON-LD blocks."""
    scripts = soup.find_all("script", attrs={"type": "application/ld+json"})
    logger.info("Found %d JSON-LD script blocks", len(scripts))

    for idx, script in enumerate(scripts):
        raw_json = script.string or script.get_text()
        if not raw_json or not raw_json.strip():
            logger.debug("JSON-LD block %d is empty", idx)
            continue
        try:
            data = json.loads(raw_json)
        except json.JSONDecodeError as exc:
            logger.warning(
                "JSON-LD block %d failed to parse: %s (first 200 chars: %s)",
                idx,
                exc,
                raw_json[:200],
            )
            continue

        recipe = next(_iter_recipe_nodes(data), None)
        if recipe is not None:
            logger.debug("JSON-LD block %d holds a recipe node (@type=%s)", idx, recipe.get("@type"))
            return recipe
    return None
