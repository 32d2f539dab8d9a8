"""Heuristic recipe extraction from common recipe-site markup."""

import logging
from typing import List, Optional, Sequence

from bs4 import BeautifulSoup

from recipe_scraper.app.services.url_parsing.constants import (
    INGREDIENT_SELECTORS,
    STEP_SELECTORS,
)
from recipe_scraper.app.services.url_parsing.models import HeuristicExtraction
from recipe_scraper.app.services.url_parsing.parsing_utils import clean_text

logger = logging.getLogger(__name__)


def _select_texts(soup: BeautifulSoup, selector: str) -> List[str]:
    texts = (clean_text(el.get_text(" ")) for el in soup.select(selector))
    return [t for t in texts if t]


def _first_matching_group(
    soup: BeautifulSoup, selectors: Sequence[str], minimum: int
) -> List[str]:
    for selector in selectors:
        items = _select_texts(soup, selector)
        if len(items) >= minimum:
            logger.debug("Selector %r matched %d items", selector, len(items))
            return items
    return []


def _find_title(soup: BeautifulSoup) -> Optional[str]:
    for selector in ('h1[itemprop="name"]', "h1", "title"):
        tag = soup.select_one(selector)
        if tag:
            text = clean_text(tag.get_text(" "))
            if text:
                return text
    return None


def _find_image(soup: BeautifulSoup) -> Optional[str]:
    og_image = soup.select_one('meta[property="og:image"]')
    if og_image and og_image.get("content"):
        return og_image["content"].strip()
    first_img = soup.find("img", src=True)
    if first_img:
        return first_img["src"].strip() or None
    return None


def extract_heuristics(soup: BeautifulSoup) -> HeuristicExtraction:
    """Scrape title, image, ingredient and step text using fixed selector lists."""
    return HeuristicExtraction(
        title=_find_title(soup),
        image=_find_image(soup),
        ingredients=_first_matching_group(soup, INGREDIENT_SELECTORS, minimum=2),
        steps=_first_matching_group(soup, STEP_SELECTORS, minimum=1),
    )
