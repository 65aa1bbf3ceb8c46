"""Awaitable completion service used by the crawler and the intelligence entry point."""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any, Dict, Optional

from siteintel.config import get_settings
from siteintel.services.llm.orchestrator import LLMOrchestrator
from siteintel.services.llm.types import LLMRequest, LLMStage

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def extract_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return the first JSON object embedded in ``text``, or ``None``.

    Models wrap their JSON in prose or code fences, so the widest ``{...}``
    span is tried first, then a decode starting at the first brace that
    ignores whatever trails the object.
    """
    raw = str(text or "")
    match = _JSON_OBJECT_RE.search(raw)
    if not match:
        return None

    candidate = match.group(0)
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        try:
            parsed, _end = json.JSONDecoder().raw_decode(candidate)
        except json.JSONDecodeError:
            return None
    return parsed if isinstance(parsed, dict) else None


class OrchestratedCompletionService:
    """Runs the blocking :class:`LLMOrchestrator` off the event loop."""

    def __init__(
        self,
        orchestrator: Optional[LLMOrchestrator] = None,
        timeout_seconds: Optional[int] = None,
    ) -> None:
        self._orchestrator = orchestrator or LLMOrchestrator()
        self._timeout_seconds = timeout_seconds or get_settings().llm_timeout_seconds

    async def complete(
        self,
        prompt: str,
        *,
        stage: LLMStage,
        use_web_search: bool = False,
    ) -> str:
        request = LLMRequest(
            stage=stage,
            prompt=prompt,
            timeout_seconds=self._timeout_seconds,
            use_web_search=use_web_search,
            expect_json=True,
        )
        response = await asyncio.to_thread(self._orchestrator.run_stage, request)
        return response.text
