from __future__ import annotations

from typing import Optional

from siteintel.config import get_settings
from siteintel.services.llm.types import LLMProviderError, classify_retryable_error

try:
    from google import genai
    from google.genai import types
except Exception:  # pragma: no cover - import guard
    genai = None
    types = None


class GeminiProvider:
    name = "gemini"
    supports_web_search = True

    def __init__(self) -> None:
        settings = get_settings()
        if not settings.gemini_api_key:
            raise LLMProviderError("GEMINI_API_KEY not configured", retryable=False)
        if genai is None:
            raise LLMProviderError("google-genai SDK unavailable", retryable=False)
        self._client = genai.Client(api_key=settings.gemini_api_key)

    def generate(
        self,
        *,
        model: str,
        prompt: str,
        timeout_seconds: int,
        use_web_search: bool = False,
    ) -> str:
        cfg: Optional["types.GenerateContentConfig"] = None
        if types is not None:
            tools = [types.Tool(google_search=types.GoogleSearch())] if use_web_search else None
            cfg = types.GenerateContentConfig(
                tools=tools,
                http_options=types.HttpOptions(timeout=timeout_seconds * 1000),
            )
        try:
            response = self._client.models.generate_content(
                model=model,
                contents=prompt,
                config=cfg,
            )
        except Exception as exc:
            raise LLMProviderError(str(exc), retryable=classify_retryable_error(exc)) from exc
        text = str(response.text or "").strip()
        if not text:
            raise LLMProviderError("No usable text in Gemini response", retryable=False)
        return text
