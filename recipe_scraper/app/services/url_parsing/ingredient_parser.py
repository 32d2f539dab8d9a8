"""Ingredient line parsing: quantity, unit, item and note."""

import logging
import re
from typing import Iterable, List, Optional, Tuple

from recipe_scraper.app.services.url_parsing.models import Ingredient
from recipe_scraper.app.services.url_parsing.parsing_utils import (
    NUMBER_PATTERN,
    clean_text,
    decode_entities,
    is_known_unit,
    normalize_unit,
    parse_numeric_token,
    replace_unicode_fractions,
)

logger = logging.getLogger(__name__)

_RANGE_RE = re.compile(rf"^({NUMBER_PATTERN})\s*(?:-|to)\s*({NUMBER_PATTERN})", re.I)
_SINGLE_NUMBER_RE = re.compile(rf"^({NUMBER_PATTERN})")
_UNIT_TOKEN_RE = re.compile(r"^([A-Za-z][A-Za-z.]*)")
_LEADING_PAREN_RE = re.compile(r"^\(([^()]*)\)\s*")
_TRAILING_PAREN_RE = re.compile(r"\(([^()]*)\)\s*$")


def _take_leading_parens(text: str, notes: List[str]) -> str:
    match = _LEADING_PAREN_RE.match(text)
    while match:
        notes.append(match.group(1))
        text = text[match.end():].strip()
        match = _LEADING_PAREN_RE.match(text)
    return text


def _take_trailing_parens(text: str, notes: List[str]) -> str:
    trailing: List[str] = []
    match = _TRAILING_PAREN_RE.search(text)
    while match:
        trailing.append(match.group(1))
        text = text[: match.start()].strip()
        match = _TRAILING_PAREN_RE.search(text)
    # Collected right-to-left; keep reading order in the note.
    notes.extend(reversed(trailing))
    return text


def _split_first_comma(text: str) -> Tuple[str, Optional[str]]:
    depth = 0
    for idx, char in enumerate(text):
        if char == "(":
            depth += 1
        elif char == ")":
            depth = max(0, depth - 1)
        elif char == "," and depth == 0:
            return text[:idx].strip(), text[idx + 1:].strip()
    return text, None


def _clean_note(fragment: str) -> str:
    fragment = re.sub(r"^[\s,;()\-]+", "", fragment)
    fragment = re.sub(r"\*+$", "", fragment)
    return re.sub(r"[\s)]+$", "", fragment).strip()


def parse_ingredient_line(line: Optional[str]) -> Optional[Ingredient]:
    """Split one raw ingredient line into an Ingredient.

    "3-4 cloves garlic, minced" gives quantity 3, unit "clove", item "garlic"
    and note "range 3 - 4; minced". Lines that are empty after whitespace
    cleanup and entity decoding return None.
    """
    original = clean_text(decode_entities(clean_text(line)))
    if not original:
        return None

    rest = re.sub(r"[−–—]", "-", replace_unicode_fractions(original))
    quantity: Optional[float] = None
    notes: List[str] = []

    range_match = _RANGE_RE.match(rest)
    if range_match:
        low_text, high_text = range_match.group(1), range_match.group(2)
        low = parse_numeric_token(low_text)
        high = parse_numeric_token(high_text)
        quantity = low
        if low is not None and high is not None and low != high:
            quantity = min(low, high)
            notes.append(f"range {low_text} - {high_text}")
        rest = rest[range_match.end():].strip()

    if quantity is None:
        number_match = _SINGLE_NUMBER_RE.match(rest)
        if number_match:
            quantity = parse_numeric_token(number_match.group(1))
            rest = rest[number_match.end():].strip()

    rest = _take_leading_parens(rest, notes)

    unit: Optional[str] = None
    token_match = _UNIT_TOKEN_RE.match(rest)
    if token_match:
        token = token_match.group(1)
        # "tbsp. oil" and "tbsp oil" both work; "tbspx" does not.
        follows = rest[token_match.end():token_match.end() + 1]
        if is_known_unit(token) and not follows.isalnum():
            unit = normalize_unit(token)
            rest = rest[token_match.end():].strip()
            rest = _take_leading_parens(rest, notes)

    item = _take_trailing_parens(rest.strip(), notes)
    item, after_comma = _split_first_comma(item)
    if after_comma:
        notes.append(after_comma)
    item = _take_trailing_parens(item, notes)

    item = re.sub(r"^of\s+", "", item, flags=re.I)
    item = re.sub(r"\*+$", "", item).strip()
    item = re.sub(r"^[\s\-.,]+", "", item)
    item = re.sub(r"[\s(]+$", "", item).strip()

    note = "; ".join(n for n in (_clean_note(fragment) for fragment in notes) if n) or None

    return Ingredient(
        original=original,
        quantity=quantity,
        unit=unit,
        item=item or None,
        note=note,
    )


def parse_ingredient_lines(lines: Iterable[object]) -> List[Ingredient]:
    """Parse many lines, dropping the ones that come back empty."""
    parsed: List[Ingredient] = []
    for idx, raw in enumerate(lines or []):
        if raw is None:
            continue
        ingredient = parse_ingredient_line(str(raw))
        if ingredient is None:
            logger.debug("Ingredient %d was empty after cleaning", idx)
            continue
        parsed.append(ingredient)
    return parsed
