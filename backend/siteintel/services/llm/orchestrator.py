from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional, Tuple

from siteintel.config import get_settings
from siteintel.services.llm.providers.anthropic_provider import AnthropicProvider
from siteintel.services.llm.providers.gemini_provider import GeminiProvider
from siteintel.services.llm.providers.openai_provider import OpenAIProvider
from siteintel.services.llm.types import (
    LLMOrchestrationError,
    LLMProviderError,
    LLMRequest,
    LLMResponse,
    ModelAttemptTrace,
    classify_retryable_error,
    now_iso,
)

logger = logging.getLogger(__name__)

PROVIDER_CLASSES = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}

# Used when a stage has no parseable routes configured
DEFAULT_ROUTE = ("anthropic", "claude-3-5-haiku-latest")

Route = Tuple[str, str]


def order_routes(routes: List[Route], use_web_search: bool) -> List[Route]:
    """Routes in configured order; search-capable providers first when search is wanted."""
    if not use_web_search:
        return list(routes)

    def can_search(route: Route) -> bool:
        provider_class = PROVIDER_CLASSES.get(route[0])
        return bool(getattr(provider_class, "supports_web_search", False))

    return [route for route in routes if can_search(route)] + [route for route in routes if not can_search(route)]


class LLMOrchestrator:
    """
    Runs one completion stage across its ``provider:model`` routes.

    Each route gets ``stage_retry_max_attempts`` tries while its errors are
    retryable, with linear backoff; a terminal error moves on to the next
    route. Every try is traced, and the traces travel with the response or
    with the ``LLMOrchestrationError`` raised when no route answers.
    """

    def __init__(self) -> None:
        self._settings = get_settings()
        self._providers: Dict[str, object] = {}

    def _provider(self, name: str):
        key = str(name or "").strip().lower()
        if key not in self._providers:
            provider_class = PROVIDER_CLASSES.get(key)
            if provider_class is None:
                raise LLMProviderError(f"Unsupported LLM provider: {name}", retryable=False)
            self._providers[key] = provider_class()
        return self._providers[key]

    def _routes_for_stage(self, stage_name: str) -> List[Route]:
        return self._settings.stage_model_routes(stage_name) or [DEFAULT_ROUTE]

    def run_stage(self, request: LLMRequest) -> LLMResponse:
        attempts: List[ModelAttemptTrace] = []
        routes = order_routes(self._routes_for_stage(request.stage.value), request.use_web_search)
        max_attempts = max(1, int(self._settings.stage_retry_max_attempts))
        backoff = max(0.0, float(self._settings.stage_retry_backoff_seconds))

        for provider_name, model in routes:
            for retry_count in range(max_attempts):
                trace, text = self._attempt(request, provider_name, model, retry_count)
                attempts.append(trace)
                if text is not None:
                    return LLMResponse(text=text, provider=provider_name, model=model, attempts=attempts)
                if trace.status != "retryable_error" or retry_count == max_attempts - 1:
                    break
                if backoff > 0:
                    time.sleep(backoff * (retry_count + 1))

        raise LLMOrchestrationError(
            f"All model routes failed for stage={request.stage.value}",
            attempts=attempts,
        )

    def _attempt(
        self,
        request: LLMRequest,
        provider_name: str,
        model: str,
        retry_count: int,
    ) -> Tuple[ModelAttemptTrace, Optional[str]]:
        """One provider call: the trace, plus the text when it succeeded."""
        trace = ModelAttemptTrace(
            stage=request.stage.value,
            provider=provider_name,
            model=model,
            latency_ms=0,
            status="success",
            retry_count=retry_count,
            started_at=now_iso(),
        )
        t0 = time.perf_counter()
        try:
            text = self._provider(provider_name).generate(
                model=model,
                prompt=request.prompt,
                timeout_seconds=max(1, int(request.timeout_seconds)),
                use_web_search=bool(request.use_web_search),
            )
            if request.expect_json and "{" not in text and "[" not in text:
                raise LLMProviderError("response contains no JSON payload", retryable=True)
        except Exception as exc:
            retryable = exc.retryable if isinstance(exc, LLMProviderError) else False
            trace.status = "retryable_error" if retryable or classify_retryable_error(exc) else "terminal_error"
            trace.error_class = exc.__class__.__name__
            trace.error_message = str(exc)[:500]
            text = None
            logger.warning(
                "LLM attempt failed stage=%s route=%s:%s try=%d: %s",
                request.stage.value,
                provider_name,
                model,
                retry_count + 1,
                str(exc)[:200],
            )
        trace.latency_ms = int((time.perf_counter() - t0) * 1000)
        trace.ended_at = now_iso()
        return trace, text
