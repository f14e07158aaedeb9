import logging
from typing import Dict, Optional, Protocol

import httpx

from recipe_harvester.app.core.config import Settings, get_settings
from recipe_harvester.app.services.url_parsing.errors import AIExtractionError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a recipe extraction expert. Return only valid JSON."


class TextGenerator(Protocol):
    async def generate(self, prompt: str, max_tokens: int) -> str:
        ...


def _headers(settings: Settings) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if settings.llm_app_id and settings.llm_app_key:
        headers["X-App-Id"] = settings.llm_app_id
        headers["X-App-Key"] = settings.llm_app_key
    return headers


def _content_from_response(data) -> Optional[str]:
    """Assistant text from an OpenAI-style (or bare) completion payload."""
    if not isinstance(data, dict):
        return None
    content = None
    choices = data.get("choices")
    if choices and isinstance(choices[0], dict):
        content = (choices[0].get("message") or {}).get("content")
    if not content and isinstance(data.get("message"), dict):
        content = data["message"].get("content")
    if not content:
        content = data.get("content")
    return content if isinstance(content, str) else None


class LlmProxyClient:
    """Chat-completions client for an OpenAI-compatible LLM proxy."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        if not self.settings.llm_base_url:
            raise AIExtractionError("LLM_BASE_URL is not configured")

    async def _post(self, payload: dict) -> httpx.Response:
        timeout = httpx.Timeout(self.settings.llm_timeout_seconds, connect=10.0)
        async with httpx.AsyncClient(timeout=timeout) as client:
            return await client.post(
                f"{self.settings.llm_base_url.rstrip('/')}/v1/chat/completions",
                json=payload,
                headers=_headers(self.settings),
            )

    async def generate(self, prompt: str, max_tokens: int) -> str:
        payload = {
            "model": self.settings.llm_model_name or "full",
            "temperature": 0.1,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": max_tokens,
            "stream": False,
        }
        try:
            resp = await self._post(payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as exc:
            raise AIExtractionError(f"LLM proxy request failed: {exc}") from exc
        except ValueError as exc:
            raise AIExtractionError("LLM proxy returned a non-JSON body") from exc

        if isinstance(data, dict) and data.get("error"):
            error_info = data["error"] if isinstance(data["error"], dict) else {"message": str(data["error"])}
            error_type = error_info.get("type", "unknown_error")
            error_message = error_info.get("message", "Unknown error")
            logger.error(
                "LLM proxy returned error: type=%s, message=%s",
                error_type,
                str(error_message)[:500],
            )
            raise AIExtractionError(f"LLM proxy error ({error_type}): {error_message}")

        content = _content_from_response(data)
        if not content:
            raise AIExtractionError("LLM response missing assistant content")
        logger.debug("LLM raw content (truncated): %s", content[:1000])
        return content


def get_text_generator() -> Optional[TextGenerator]:
    """The configured generator, or None when no LLM proxy is set up."""
    settings = get_settings()
    if not settings.llm_base_url:
        return None
    return LlmProxyClient(settings)
