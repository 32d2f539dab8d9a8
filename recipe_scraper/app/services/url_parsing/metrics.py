"""Strategy-hit counters and LLM token-usage logging."""

import logging
from collections import Counter
from typing import Optional

from recipe_scraper.app.services.url_parsing.models import TokenUsage

logger = logging.getLogger(__name__)

LLM_ENRICH = "llm-enrich"

_strategy_counts: Counter = Counter()


def log_strategy_hit(strategy: str) -> int:
    """Bump the process-wide count for a strategy label and log it."""
    _strategy_counts[strategy] += 1
    count = _strategy_counts[strategy]
    logger.info("Strategy hit: %s (count=%d)", strategy, count)
    return count


def strategy_counts() -> dict:
    return dict(_strategy_counts)


def log_llm_usage(kind: str, usage: Optional[TokenUsage]) -> None:
    if usage is None:
        return
    prompt = usage.prompt_tokens if usage.prompt_tokens is not None else usage.total_tokens
    completion = (
        usage.completion_tokens if usage.completion_tokens is not None else usage.total_tokens
    )
    logger.info(
        "LLM usage kind=%s prompt=%s completion=%s total=%s",
        kind,
        prompt,
        completion,
        usage.total_tokens,
    )
