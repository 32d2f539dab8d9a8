"""General parsing utilities for recipe extraction."""

import html
import math
import re
from typing import Any, Iterable, List, Optional
from urllib.parse import urlparse

from recipe_scraper.app.services.url_parsing.constants import (
    FRACTION_CHARS,
    FRACTION_MAP,
    KNOWN_UNITS,
    UNIT_ALIASES,
)
from recipe_scraper.app.services.url_parsing.models import Step

NUMBER_PATTERN = r"(?:\d+\s+\d+/\d+|\d+/\d+|\d*\.\d+|\d+)"

_ISO_DURATION_RE = re.compile(
    r"^P(?:(\d+)W)?(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?)?", re.I
)
_ISO_DURATION_SHAPE_RE = re.compile(r"^P(?:\d|T)", re.I)

_FREE_TEXT_DURATION_RE = re.compile(
    r"(?:\b(?:about|around|approximately|at\s+least|up\s+to|for|another|an\s+additional|extra)\s+)?"
    rf"({NUMBER_PATTERN})(?:\s*(?:-|–|—|to)\s*({NUMBER_PATTERN}))?\s*-?\s*"
    r"(hours?|hrs?|h|minutes?|mins?|m)\b",
    re.I,
)


def clean_text(text: Optional[str]) -> str:
    """Normalize whitespace in text."""
    return re.sub(r"\s+", " ", text or "").strip()


def decode_entities(text: Optional[str]) -> str:
    return html.unescape(text or "")


def replace_unicode_fractions(text: str) -> str:
    """Swap vulgar fraction glyphs for ASCII ``n/d``; "1½" becomes "1 1/2"."""
    text = re.sub(rf"(\d)([{FRACTION_CHARS}])", r"\1 \2", text)
    for glyph, ascii_fraction in FRACTION_MAP.items():
        text = text.replace(glyph, ascii_fraction)
    return text


def parse_numeric_token(token: Optional[str]) -> Optional[float]:
    """Parse "2", "0.5", "1/2" or "1 1/2" into a float."""
    if not token:
        return None
    value = token.strip()
    if not value:
        return None
    if " " in value:
        whole_part, frac_part = value.split(None, 1)
        whole = parse_numeric_token(whole_part)
        frac = parse_numeric_token(frac_part)
        if whole is not None and frac is not None:
            return whole + frac
    if "/" in value:
        num_str, denom_str = value.split("/", 1)
        try:
            num = float(num_str)
            denom = float(denom_str)
        except ValueError:
            return None
        if denom == 0:
            return None
        return num / denom
    try:
        return float(value)
    except ValueError:
        return None


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_int(value: Any) -> Optional[int]:
    """Round a finite number to a non-negative int; anything else becomes None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return max(0, round_half_up(value))


def get_domain(url: str) -> Optional[str]:
    try:
        return urlparse(url).hostname or None
    except ValueError:
        return None


def minutes_from_iso8601_duration(value: Any) -> Optional[int]:
    """Parse an ISO-8601 duration (e.g. PT1H30M, P0DT45M) into minutes.

    Accepts a single value or a list of candidates; the first string that looks
    like a duration is used.
    """
    candidates = value if isinstance(value, list) else [value]
    pick = next(
        (c for c in candidates if isinstance(c, str) and _ISO_DURATION_SHAPE_RE.search(c.strip())),
        None,
    )
    if pick is None:
        return None
    match = next(
        (m for m in _ISO_DURATION_RE.finditer(pick.strip()) if any(m.groups())),
        None,
    )
    if match is None:
        return None
    weeks, days, hours, minutes, seconds = (int(g) if g else 0 for g in match.groups())
    return (
        weeks * 7 * 24 * 60
        + days * 24 * 60
        + hours * 60
        + minutes
        + round_half_up(seconds / 60)
    )


def minutes_from_instruction_text(texts: Iterable[str]) -> Optional[int]:
    """Scan free-text instructions for durations and return the longest one.

    Ranges ("20-25 minutes") count as their midpoint; hours are converted to
    minutes. Returns None when no duration phrase is found.
    """
    best: Optional[float] = None
    for text in texts:
        if not text:
            continue
        prepared = replace_unicode_fractions(text)
        for match in _FREE_TEXT_DURATION_RE.finditer(prepared):
            low = parse_numeric_token(match.group(1))
            if low is None:
                continue
            high = parse_numeric_token(match.group(2)) if match.group(2) else None
            value = (low + high) / 2 if high is not None else low
            if match.group(3).lower().startswith("h"):
                value *= 60
            if best is None or value > best:
                best = value
    return round_half_up(best) if best is not None else None


def _name_or_text(node: Any) -> Optional[str]:
    if isinstance(node, str):
        return node
    if isinstance(node, dict):
        for key in ("name", "text"):
            if isinstance(node.get(key), str):
                return node[key]
    return None


def to_string_coerce(value: Any) -> Optional[str]:
    """Collapse a string/number/object/array value into one string, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list):
        parts = [part for part in (_name_or_text(x) for x in value) if part]
        return " ".join(parts) if parts else None
    if isinstance(value, dict):
        return _name_or_text(value)
    return None


def to_string_array(value: Any) -> List[str]:
    """Turn a comma/newline separated string or an array of strings/objects into a list."""
    if not value:
        return []
    if isinstance(value, list):
        items = []
        for entry in value:
            if isinstance(entry, str):
                items.append(entry)
            elif isinstance(entry, dict):
                for key in ("text", "name"):
                    if isinstance(entry.get(key), str):
                        items.append(entry[key])
                        break
    elif isinstance(value, str):
        items = re.split(r",|\n", value)
    else:
        return []
    return [item.strip() for item in items if item and item.strip()]


def normalize_unit(unit: Optional[str]) -> Optional[str]:
    """Map a unit token to its canonical symbol; unknown tokens pass through lowercased."""
    if not unit:
        return None
    key = unit.lower().replace(".", "")
    return UNIT_ALIASES.get(key, key) or None


def is_known_unit(unit: Optional[str]) -> bool:
    if not unit:
        return False
    key = unit.lower().replace(".", "")
    return key in UNIT_ALIASES or key in KNOWN_UNITS


def is_shouty_heading(text: Optional[str]) -> bool:
    """True for section markers like "FOR THE GLAZE" or "Serves 4"."""
    if not text:
        return False
    stripped = text.strip()
    if len(stripped.split()) <= 4:
        letters = re.sub(r"[^A-Za-z]", "", stripped)
        if letters and letters == letters.upper():
            return True
    return bool(re.match(r"for the\b", stripped, re.I) or re.match(r"serv(?:e|ing)s\b", stripped, re.I))


def normalize_steps(entries: Optional[Iterable[Any]]) -> List[Step]:
    texts: List[str] = []
    for entry in entries or []:
        if isinstance(entry, str):
            raw = entry
        elif isinstance(entry, dict):
            raw = entry.get("text") or ""
        else:
            raw = getattr(entry, "text", None) or ""
        text = decode_entities(raw.strip()).strip() if isinstance(raw, str) else ""
        if text and not is_shouty_heading(text):
            texts.append(text)
    return [Step(n=idx, text=text) for idx, text in enumerate(texts, start=1)]


def flatten_instructions(instructions: Any) -> List[str]:
    """Flatten schema.org recipeInstructions into an ordered list of strings.

    Handles plain strings (split on newlines), lists of strings, HowToStep
    objects and HowToSection objects with nested itemListElement lists.
    """
    if isinstance(instructions, str):
        return [line.strip() for line in re.split(r"[\r\n]+", instructions) if line.strip()]
    collected: List[str] = []
    if isinstance(instructions, list):
        for entry in instructions:
            if isinstance(entry, str):
                if entry.strip():
                    collected.append(entry)
            else:
                collected.extend(flatten_instructions(entry))
    elif isinstance(instructions, dict):
        text = instructions.get("text")
        if not isinstance(text, str):
            text = instructions.get("name")
        if isinstance(text, str) and text.strip():
            collected.append(text)
        nested = instructions.get("itemListElement")
        if isinstance(nested, (list, dict)):
            collected.extend(flatten_instructions(nested if isinstance(nested, list) else [nested]))
    return collected


def extract_image(value: Any) -> Optional[str]:
    """Extract an image URL from string, {url} or array forms."""
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        url = value.get("url") or value.get("contentUrl")
        return url.strip() if isinstance(url, str) and url.strip() else None
    if isinstance(value, list):
        for entry in value:
            found = extract_image(entry)
            if found:
                return found
    return None


def extract_author(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        name = value.get("name")
        return name.strip() if isinstance(name, str) and name.strip() else None
    if isinstance(value, list):
        for entry in value:
            found = extract_author(entry)
            if found:
                return found
    return None
