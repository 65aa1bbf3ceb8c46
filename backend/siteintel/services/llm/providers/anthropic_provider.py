from __future__ import annotations

from siteintel.config import get_settings
from siteintel.services.llm.types import LLMProviderError, classify_retryable_error

try:
    from anthropic import Anthropic
except Exception:  # pragma: no cover - import guard
    Anthropic = None

WEB_SEARCH_TOOL = {"type": "web_search_20250305", "name": "web_search", "max_uses": 5}


class AnthropicProvider:
    name = "anthropic"
    supports_web_search = True

    def __init__(self) -> None:
        settings = get_settings()
        if not settings.anthropic_api_key:
            raise LLMProviderError("ANTHROPIC_API_KEY not configured", retryable=False)
        if Anthropic is None:
            raise LLMProviderError("anthropic SDK unavailable", retryable=False)
        self._client = Anthropic(api_key=settings.anthropic_api_key)

    def generate(
        self,
        *,
        model: str,
        prompt: str,
        timeout_seconds: int,
        use_web_search: bool = False,
    ) -> str:
        kwargs = {
            "model": model,
            "max_tokens": 4000,
            "messages": [{"role": "user", "content": prompt}],
            "timeout": timeout_seconds,
        }
        if use_web_search:
            kwargs["tools"] = [WEB_SEARCH_TOOL]
        try:
            response = self._client.messages.create(**kwargs)
        except Exception as exc:
            raise LLMProviderError(str(exc), retryable=classify_retryable_error(exc)) from exc

        # Server-side tool use interleaves search blocks; only text blocks carry the answer.
        text_parts = []
        for block in getattr(response, "content", []) or []:
            if getattr(block, "type", "text") != "text":
                continue
            value = getattr(block, "text", None)
            if value:
                text_parts.append(str(value))
        text = "\n".join(text_parts).strip()
        if not text:
            raise LLMProviderError("No usable text content in Anthropic response", retryable=False)
        return text
