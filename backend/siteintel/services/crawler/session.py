"""Per-crawl state shared by the orchestrator, the design extractor and the caller."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from .models import DesignAssets, RawPage
from .links import normalize_url_key


@dataclass
class CrawlSession:
    """
    Everything one crawl remembers.

    Replaces process-wide caches: two crawls never share seen URLs, the
    fetched homepage, design assets or diagnostics.
    """
    website_url: str
    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    seen_urls: Set[str] = field(default_factory=set)
    known_link_urls: Set[str] = field(default_factory=set)
    design_assets: Dict[str, DesignAssets] = field(default_factory=dict)
    homepage: Optional[RawPage] = None
    diagnostics: List[Dict[str, Any]] = field(default_factory=list)

    def mark_seen(self, url: str) -> None:
        self.seen_urls.add(normalize_url_key(url))

    def is_seen(self, url: str) -> bool:
        return normalize_url_key(url) in self.seen_urls

    def remember_links(self, urls) -> None:
        self.known_link_urls.update(normalize_url_key(url) for url in urls)

    def is_known_link(self, url: str) -> bool:
        return normalize_url_key(url) in self.known_link_urls

    def record(self, event: str, **details: Any) -> None:
        """Append a timestamped diagnostic entry."""
        entry = {"event": event, "at": datetime.utcnow().isoformat()}
        entry.update(details)
        self.diagnostics.append(entry)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "correlation_id": self.correlation_id,
            "website_url": self.website_url,
            "pages_seen": len(self.seen_urls),
            "links_known": len(self.known_link_urls),
            "events": list(self.diagnostics),
        }
