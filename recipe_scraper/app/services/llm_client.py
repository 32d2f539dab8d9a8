import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from recipe_scraper.app.core.config import Settings
from recipe_scraper.app.services.url_parsing.models import TokenUsage

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class LLMError(Exception):
    """Base class for language-model call failures."""


class LLMUnavailableError(LLMError):
    """No model endpoint is configured; callers skip without retrying."""


class LLMValidationError(LLMError):
    """The model returned JSON that does not match the requested schema."""


class LLMNoOutputError(LLMError):
    """The model returned nothing parseable (empty, truncated or non-JSON)."""


class LLMTimeoutError(LLMError):
    pass


@dataclass
class LLMResult:
    object: BaseModel
    usage: Optional[TokenUsage] = None


class LLMProvider(Protocol):
    async def generate(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        schema: Type[SchemaT],
        temperature: float,
        max_output_tokens: int,
        timeout: float,
    ) -> LLMResult: ...


# Remove ASCII control chars that frequently break json.loads (except \n, \r, \t)
def _strip_invalid_control_chars(s: str) -> str:
    if not isinstance(s, str):
        return str(s)
    return re.sub(r"[\x00-\x08\x0B\x0C\x0E-\x1F]", "", s)


def _try_local_json_repair(raw: str) -> Optional[str]:
    cleaned = _strip_invalid_control_chars(raw).strip()
    cleaned = re.sub(r"^```[a-zA-Z0-9_-]*\s*", "", cleaned)
    cleaned = re.sub(r"\s*```$", "", cleaned)
    if cleaned.startswith("{") and cleaned.endswith("}"):
        try:
            json.loads(cleaned)
            return cleaned
        except json.JSONDecodeError:
            pass
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start != -1 and end != -1 and end > start:
        snippet = cleaned[start : end + 1]
        try:
            json.loads(snippet)
            return snippet
        except json.JSONDecodeError:
            return None
    return None


def _parse_llm_json_content(raw: str) -> Dict[str, Any]:
    """Parse LLM content into a JSON object, handling fences and stray control chars."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        repaired = _try_local_json_repair(raw)
        if repaired is None:
            raise LLMNoOutputError("LLM response was not valid JSON")
        data = json.loads(repaired)
    if not isinstance(data, dict):
        raise LLMNoOutputError("LLM response is not a JSON object")
    return data


def _parse_usage(data: Dict[str, Any]) -> Optional[TokenUsage]:
    usage = data.get("usage")
    if not isinstance(usage, dict):
        return None
    return TokenUsage(
        prompt_tokens=usage.get("prompt_tokens"),
        completion_tokens=usage.get("completion_tokens"),
        total_tokens=usage.get("total_tokens"),
    )


def schema_hint(schema: Type[BaseModel]) -> str:
    return json.dumps(schema.model_json_schema(), separators=(",", ":"))


class ChatCompletionsProvider:
    """OpenAI-compatible /v1/chat/completions client returning schema-validated objects."""

    def __init__(self, settings: Settings):
        self.base_url = (settings.llm_base_url or "").rstrip("/")
        self.api_key = settings.llm_api_key
        self.model_name = settings.llm_model_name or "full"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def generate(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        schema: Type[SchemaT],
        temperature: float,
        max_output_tokens: int,
        timeout: float,
    ) -> LLMResult:
        if not self.base_url:
            raise LLMUnavailableError("LLM_BASE_URL is not configured")

        payload = {
            "model": self.model_name,
            "temperature": temperature,
            "response_format": {"type": "json_object"},
            "messages": [
                {
                    "role": "system",
                    "content": f"{system_prompt}\n\nJSON schema: {schema_hint(schema)}",
                },
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": max_output_tokens,
            "stream": False,
        }

        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=5.0)) as client:
                resp = await client.post(
                    f"{self.base_url}/v1/chat/completions",
                    json=payload,
                    headers=self._headers(),
                )
        except httpx.TimeoutException as exc:
            raise LLMTimeoutError(f"LLM request timed out after {timeout}s") from exc
        except httpx.HTTPError as exc:
            raise LLMError(f"LLM request failed: {exc}") from exc

        if resp.status_code >= 400:
            raise LLMError(f"LLM endpoint returned status {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise LLMNoOutputError("LLM endpoint returned a non-JSON body") from exc

        # Check for error response from the LLM proxy
        if isinstance(data, dict) and "error" in data:
            error_info = data["error"] if isinstance(data["error"], dict) else {"message": str(data["error"])}
            error_type = error_info.get("type", "unknown_error")
            error_message = str(error_info.get("message", "Unknown error"))
            logger.error(
                "LLM proxy returned error: type=%s, message=%s",
                error_type,
                error_message[:500],
            )
            raise LLMError(f"LLM proxy error ({error_type}): {error_message}")

        choices = data.get("choices") if isinstance(data, dict) else None
        choice = choices[0] if isinstance(choices, list) and choices else {}
        if not isinstance(choice, dict):
            raise LLMNoOutputError("LLM response choice is not an object")
        message = choice.get("message") or {}
        if not isinstance(message, dict):
            raise LLMNoOutputError("LLM response message is not an object")
        content = message.get("content")
        if not content or not isinstance(content, str):
            raise LLMNoOutputError("LLM response missing assistant content")
        if choice.get("finish_reason") == "length":
            raise LLMNoOutputError("LLM response was truncated at the token limit")

        logger.debug("LLM raw content (truncated): %s", content[:1000])
        parsed = _parse_llm_json_content(content)
        try:
            obj = schema.model_validate(parsed)
        except ValidationError as exc:
            raise LLMValidationError(str(exc)) from exc
        return LLMResult(object=obj, usage=_parse_usage(data))
