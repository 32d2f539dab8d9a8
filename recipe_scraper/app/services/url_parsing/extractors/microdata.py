"""Schema.org microdata (itemscope/itemprop) recipe extraction."""

import logging
import re
from typing import Any, Dict, List, Optional, Union

from bs4 import BeautifulSoup, Tag

from recipe_scraper.app.services.url_parsing.parsing_utils import clean_text

logger = logging.getLogger(__name__)

TYPE_RECIPE_RE = re.compile(r"schema\.org/recipe", re.I)

MicrodataValue = Union[str, Dict[str, Any]]


def _simplify_types(type_attr: str) -> List[str]:
    """Reduce "http://schema.org/Recipe https://schema.org/Thing" to ["Recipe", "Thing"]."""
    types = []
    for token in type_attr.split():
        token = token.strip().rstrip("/")
        if token:
            types.append(token.rsplit("/", 1)[-1] or token)
    return types


def _read_value(element: Tag) -> Optional[str]:
    name = (element.name or "").lower()
    content = element.get("content")
    if content:
        return content.strip()
    if name == "meta":
        return None
    if name == "time":
        return element.get("datetime") or clean_text(element.get_text(" ")) or None
    if name == "link":
        return element.get("href")
    if name in {"img", "source"}:
        return element.get("src")
    if name in {"a", "area"} and element.get("href"):
        return element["href"]
    return clean_text(element.get_text(" ")) or None


def _add_value(data: Dict[str, Any], prop: str, value: Optional[MicrodataValue]) -> None:
    if value is None:
        return
    existing = data.get(prop)
    if existing is None:
        data[prop] = value
    elif isinstance(existing, list):
        existing.append(value)
    else:
        data[prop] = [existing, value]


def _collect_itemscope(scope: Tag) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    types = _simplify_types(scope.get("itemtype") or "")
    if len(types) == 1:
        data["@type"] = types[0]
    elif types:
        data["@type"] = next((t for t in types if "recipe" in t.lower()), types[0])

    def traverse(node: Tag) -> None:
        for child in node.children:
            if not isinstance(child, Tag):
                continue
            has_scope = child.has_attr("itemscope")
            # itemprop may list several names separated by spaces.
            for prop in (child.get("itemprop") or "").split():
                value = _collect_itemscope(child) if has_scope else _read_value(child)
                _add_value(data, prop, value)
            if not has_scope:
                traverse(child)

    traverse(scope)
    return data


def extract_microdata_recipe(soup: BeautifulSoup) -> Optional[Dict[str, Any]]:
    """Build a JSON-LD-like dict from the first schema.org/Recipe itemscope."""
    for scope in soup.find_all(attrs={"itemscope": True, "itemtype": True}):
        if not TYPE_RECIPE_RE.search(scope.get("itemtype") or ""):
            continue
        recipe = _collect_itemscope(scope)
        logger.debug("Microdata recipe scope found with properties: %s", sorted(recipe))
        return recipe
    return None
