from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class LLMStage(str, Enum):
    # Pick the pages worth fetching after the homepage
    link_selection = "link_selection"
    # Business profile from crawled text
    business_extraction = "business_extraction"
    # Business profile from the URL alone, web search allowed
    url_inference = "url_inference"


@dataclass
class LLMRequest:
    stage: LLMStage
    prompt: str
    timeout_seconds: int = 60
    use_web_search: bool = False
    expect_json: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ModelAttemptTrace:
    """One call to one provider model, successful or not."""
    stage: str
    provider: str
    model: str
    latency_ms: int
    status: str  # success, retryable_error, terminal_error
    retry_count: int
    error_class: Optional[str] = None
    error_message: Optional[str] = None
    started_at: Optional[str] = None
    ended_at: Optional[str] = None

    def summary(self) -> Dict[str, Any]:
        """Compact form kept in crawl diagnostics."""
        entry: Dict[str, Any] = {
            "route": f"{self.provider}:{self.model}",
            "status": self.status,
            "latency_ms": self.latency_ms,
        }
        if self.error_class:
            entry["error"] = f"{self.error_class}: {(self.error_message or '')[:200]}"
        return entry


@dataclass
class LLMResponse:
    text: str
    provider: str
    model: str
    attempts: List[ModelAttemptTrace] = field(default_factory=list)


class LLMOrchestrationError(RuntimeError):
    """Every route of a stage failed; ``attempts`` lists what was tried."""

    def __init__(
        self,
        message: str,
        *,
        attempts: Optional[List[ModelAttemptTrace]] = None,
    ) -> None:
        super().__init__(message)
        self.attempts = attempts or []


class LLMProviderError(RuntimeError):
    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


_RETRYABLE_MARKERS = (
    "rate limit",
    "429",
    "resource_exhausted",
    "resource exhausted",
    "overloaded",
    "529",
    "timeout",
    "timed out",
    "connection reset",
    "connection aborted",
    "502",
    "503",
    "504",
)


def classify_retryable_error(exc: Exception) -> bool:
    """Transient provider failures worth another attempt on the same route."""
    text = str(exc).lower()
    return any(marker in text for marker in _RETRYABLE_MARKERS)


def now_iso() -> str:
    return datetime.utcnow().isoformat()
