"""AI-assisted selection of the pages worth fetching after the homepage."""

import logging
from typing import Any, Callable, Dict, List, Optional

from siteintel.services.llm.completion import OrchestratedCompletionService, extract_json_object
from siteintel.services.llm.types import LLMStage
from siteintel.services.prompts import link_selection_prompt
from .models import ExtractedLink, LinkSelection, SelectedLink
from .links import normalize_url_key
from .constants import MAX_LINKS_FOR_SELECTION, MAX_SELECTED_PAGES

logger = logging.getLogger(__name__)

MAX_REASONING_CHARS = 300


class PageSelector:
    """Asks the completion service to pick up to ten candidate links."""

    def __init__(
        self,
        completion: OrchestratedCompletionService,
        progress_callback: Optional[Callable[[str], None]] = None,
        max_pages: int = MAX_SELECTED_PAGES,
    ):
        self.completion = completion
        self.progress_callback = progress_callback
        self.max_pages = max_pages

    def _log(self, message: str) -> None:
        """Log progress if callback is set."""
        logger.info(message)
        if self.progress_callback:
            self.progress_callback(message)

    async def select_pages(
        self,
        links: List[ExtractedLink],
        company_name: str,
        base_url: str,
    ) -> LinkSelection:
        """
        Pick the most informative pages among ``links``.

        Returns a homepage-only selection with ``reason`` set when there is
        nothing to choose from, when the response cannot be parsed, or when
        the model accepts none of the candidates. Completion service errors
        propagate to the caller.
        """
        if not links:
            self._log("No candidate links, homepage only")
            return LinkSelection(strategy="No links found on the homepage", reason="no_links")

        candidates = links[:MAX_LINKS_FOR_SELECTION]
        by_key: Dict[str, ExtractedLink] = {}
        for link in candidates:
            by_key.setdefault(normalize_url_key(link.url), link)

        payload = [
            {
                "url": link.url,
                "text": link.text,
                "category": link.category,
                "is_external": link.is_external,
            }
            for link in candidates
        ]
        prompt = link_selection_prompt(payload, company_name, base_url, max_pages=self.max_pages)

        self._log(f"Selecting pages among {len(candidates)} links...")
        response = await self.completion.complete(prompt, stage=LLMStage.link_selection)

        data = extract_json_object(response)
        raw_selection = data.get("selected_links") if data is not None else None
        if not isinstance(raw_selection, list):
            self._log("Page selection response could not be parsed")
            return LinkSelection(strategy="Unparseable selection response", reason="ai_parsing_failed")

        strategy = str(data.get("selection_strategy") or "").strip()
        selected = self._accept(raw_selection, by_key)
        if not selected:
            self._log("Model selected no pages, homepage only")
            return LinkSelection(strategy=strategy, reason="ai_selected_none")

        self._log(f"Selected {len(selected)} pages")
        return LinkSelection(
            selected_links=selected,
            total_selected=len(selected),
            strategy=strategy,
        )

    def _accept(self, raw_selection: List[Any], by_key: Dict[str, ExtractedLink]) -> List[SelectedLink]:
        """Keep only candidate URLs, once each, up to the page cap."""
        selected: List[SelectedLink] = []
        seen = set()
        for item in raw_selection:
            if not isinstance(item, dict):
                continue
            key = normalize_url_key(str(item.get("url") or ""))
            link = by_key.get(key)
            if link is None:
                logger.debug("Dropping selected URL outside the candidate list: %s", item.get("url"))
                continue
            if key in seen:
                continue
            seen.add(key)
            reasoning = str(item.get("reasoning") or "").strip()[:MAX_REASONING_CHARS]
            selected.append(SelectedLink(link=link, reasoning=reasoning))
            if len(selected) >= self.max_pages:
                break
        return selected
