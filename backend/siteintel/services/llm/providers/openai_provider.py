from __future__ import annotations

from siteintel.config import get_settings
from siteintel.services.llm.types import LLMProviderError, classify_retryable_error

try:
    from openai import OpenAI
except Exception:  # pragma: no cover - import guard
    OpenAI = None


class OpenAIProvider:
    name = "openai"
    supports_web_search = False

    def __init__(self) -> None:
        settings = get_settings()
        if not settings.openai_api_key:
            raise LLMProviderError("OPENAI_API_KEY not configured", retryable=False)
        if OpenAI is None:
            raise LLMProviderError("openai SDK unavailable", retryable=False)
        self._client = OpenAI(api_key=settings.openai_api_key)

    def generate(
        self,
        *,
        model: str,
        prompt: str,
        timeout_seconds: int,
        use_web_search: bool = False,
    ) -> str:
        # Chat completions carry no search tooling; fallback routes rely on prompt context.
        del use_web_search
        try:
            response = self._client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                timeout=timeout_seconds,
            )
        except Exception as exc:
            raise LLMProviderError(str(exc), retryable=classify_retryable_error(exc)) from exc
        content = response.choices[0].message.content if response.choices else ""
        text = str(content or "").strip()
        if not text:
            raise LLMProviderError("No usable content in OpenAI response", retryable=False)
        return text
