"""Reader-mode fallback: strip boilerplate from pages without recipe markup."""

import logging
from typing import Optional

from bs4 import BeautifulSoup
from readability import Document

logger = logging.getLogger(__name__)


def extract_readable_content(html: str, url: str) -> Optional[str]:
    """Return simplified article HTML for the page, or None.

    Any failure inside the readability pass is logged and treated as "no
    article"; the caller simply moves on to the next strategy.
    """
    if not html or not html.strip():
        return None
    try:
        document = Document(html, url=url)
        content = document.summary(html_partial=True)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Readability extraction failed for %s: %s", url, exc)
        return None

    if not content or not BeautifulSoup(content, "lxml").get_text(strip=True):
        logger.debug("Readability found no article content for %s", url)
        return None
    return content
