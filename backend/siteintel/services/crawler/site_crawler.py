"""Multi-page crawl: homepage, AI page selection, selected pages, fallback chain."""

import asyncio
import logging
import re
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Tuple
from urllib.parse import urlparse

import httpx

from siteintel.config import get_settings
from siteintel.services.llm.types import LLMOrchestrationError
from .models import (
    CrawlDegraded,
    CrawlOutcome,
    CrawlResult,
    CrawlSuccess,
    ExtractedLink,
    PageContent,
    RawPage,
    SelectedLink,
)
from .constants import FOOTER_OVERLAP_RATIO, MAX_PAGE_LINKS_LISTED
from .fetcher import FetchError, PageFetcher, build_http_client
from .links import bare_hostname, extract_all_links, extract_company_name_from_url, normalize_url_key
from .selector import PageSelector
from .session import CrawlSession
from .text_pipeline import extract_clean_text, extract_page_title

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")


class CrawlState(str, Enum):
    homepage_fetch = "HOMEPAGE_FETCH"
    link_select = "LINK_SELECT"
    page_fetch = "PAGE_FETCH"
    assembly = "ASSEMBLY"
    done = "DONE"


def _normalize_line(line: str) -> str:
    return _WS_RE.sub(" ", line).strip().lower()


def _is_duplicate(line: str, reference_set: set, reference: List[str]) -> bool:
    if line in reference_set:
        return True
    for other in reference:
        shorter, longer = (line, other) if len(line) <= len(other) else (other, line)
        if shorter in longer and len(shorter) >= FOOTER_OVERLAP_RATIO * len(longer):
            return True
    return False


def remove_duplicate_lines(text: str, reference_text: str) -> str:
    """Drop lines of ``text`` that repeat a line of ``reference_text``.

    A line repeats another when the normalized lines are equal, or when the
    shorter one is contained in the longer and covers at least 80% of it.
    """
    reference = [norm for norm in (_normalize_line(line) for line in reference_text.split("\n")) if norm]
    if not reference:
        return text
    reference_set = set(reference)

    kept = []
    for line in text.split("\n"):
        norm = _normalize_line(line)
        if not norm or _is_duplicate(norm, reference_set, reference):
            continue
        kept.append(line)
    return "\n".join(kept)


def format_page_links(links: List[ExtractedLink], site_host: str) -> str:
    """PAGE LINKS block listing links by whether they leave the site."""
    internal = [link for link in links if bare_hostname(link.url) == site_host]
    external = [link for link in links if bare_hostname(link.url) != site_host]

    parts = ["PAGE LINKS:"]
    if internal:
        parts.append("Internal:")
        parts.extend(f"- {link.text}: {link.url}" for link in internal)
    if external:
        parts.append("External:")
        parts.extend(f"- {link.text}: {link.url}" for link in external)
    return "\n".join(parts)


class MultiPageCrawler:
    """
    One crawl of one website.

    States: HOMEPAGE_FETCH -> LINK_SELECT -> PAGE_FETCH -> ASSEMBLY -> DONE.
    Link selection shortcuts end the crawl right after LINK_SELECT with a
    homepage-only result.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        selector: PageSelector,
        session: CrawlSession,
        progress_callback: Optional[Callable[[str], None]] = None,
        courtesy_delay: Optional[float] = None,
    ):
        self.fetcher = fetcher
        self.selector = selector
        self.session = session
        self.progress_callback = progress_callback
        self.courtesy_delay = (
            courtesy_delay if courtesy_delay is not None else get_settings().courtesy_delay_seconds
        )
        self.state = CrawlState.homepage_fetch
        self._site_host = ""

    def _log(self, message: str) -> None:
        """Log progress if callback is set."""
        logger.info(message)
        if self.progress_callback:
            self.progress_callback(message)

    async def crawl(self, website_url: str) -> CrawlResult:
        """Run the full crawl. Raises FetchError when the homepage is unreachable."""
        # HOMEPAGE_FETCH
        self.state = CrawlState.homepage_fetch
        homepage = await self.fetch_homepage(website_url)
        self._site_host = bare_hostname(homepage.base_url) or bare_hostname(website_url)

        homepage_text = extract_clean_text(homepage.html)
        links = extract_all_links(homepage.html, homepage.base_url)
        self.session.mark_seen(website_url)
        self.session.mark_seen(homepage.base_url)
        self.session.remember_links(link.url for link in links)

        result = CrawlResult(
            website_url=website_url,
            homepage_content=homepage_text,
            homepage_title=extract_page_title(homepage.html),
            homepage_html=homepage.html,
        )
        self._log(
            f"Homepage: {len(homepage.html)} chars of HTML, "
            f"{len(homepage_text)} chars of clean text, {len(links)} links"
        )
        self.session.record(
            "homepage_extracted",
            url=homepage.base_url,
            html_length=len(homepage.html),
            clean_length=len(homepage_text),
            links_found=len(links),
        )

        # LINK_SELECT
        self.state = CrawlState.link_select
        selection = await self.selector.select_pages(
            links,
            extract_company_name_from_url(website_url),
            homepage.base_url,
        )
        result.selection_strategy = selection.strategy or None
        self.session.record(
            "pages_selected",
            total_selected=selection.total_selected,
            reason=selection.reason,
        )
        if selection.is_homepage_only:
            result.analysis_method = f"homepage_only_{selection.reason or 'no_links'}"
            self.state = CrawlState.done
            return result
        result.pages_selected = selection.total_selected

        # PAGE_FETCH
        self.state = CrawlState.page_fetch
        for selected in selection.selected_links:
            if self.session.is_seen(selected.link.url):
                self.session.record("page_skipped", url=selected.link.url, reason="already_seen")
                continue
            if self.courtesy_delay > 0:
                await asyncio.sleep(self.courtesy_delay)
            self.session.mark_seen(selected.link.url)
            result.additional_pages.append(await self.fetch_selected_page(selected, homepage_text))

        # ASSEMBLY
        self.state = CrawlState.assembly
        result.analysis_method = "multi_page_analysis"
        self._log(
            f"Crawl assembled: {len(result.successful_pages)}/{len(result.additional_pages)} pages, "
            f"{result.external_pages_analyzed} external, {result.total_content_length} chars"
        )
        self.session.record(
            "crawl_assembled",
            pages_fetched=len(result.additional_pages),
            pages_succeeded=len(result.successful_pages),
            total_content_length=result.total_content_length,
        )
        self.state = CrawlState.done
        return result

    async def fetch_homepage(self, website_url: str) -> RawPage:
        """Homepage for this session, fetched at most once."""
        cached = self.session.homepage
        if cached is not None and normalize_url_key(cached.url) == normalize_url_key(website_url):
            return cached
        page = await self.fetcher.fetch(website_url)
        self.session.homepage = page
        return page

    async def fetch_selected_page(self, selected: SelectedLink, homepage_text: str) -> PageContent:
        """Fetch and clean one selected page; failures become an error entry."""
        link = selected.link
        try:
            raw = await self.fetcher.fetch(link.url)
        except FetchError as exc:
            self._log(f"Failed to fetch {link.url}: {exc.message}")
            self.session.record("page_failed", url=link.url, error=exc.message)
            return PageContent(
                url=link.url,
                title=link.text,
                clean_text=None,
                content_length=0,
                is_external=link.is_external,
                domain=link.domain,
                reasoning=selected.reasoning,
                error=exc.message,
            )

        text = extract_clean_text(raw.html, skip_footer_nav=not link.is_external)
        if not link.is_external:
            text = remove_duplicate_lines(text, homepage_text)
        text = self._with_page_links(text, raw)

        self.session.record("page_extracted", url=link.url, clean_length=len(text))
        return PageContent(
            url=link.url,
            title=link.text or extract_page_title(raw.html),
            clean_text=text,
            content_length=len(text),
            is_external=link.is_external,
            domain=link.domain,
            reasoning=selected.reasoning,
        )

    def _with_page_links(self, text: str, raw: RawPage) -> str:
        """Append links not seen anywhere in this crawl so far."""
        fresh = [
            link for link in extract_all_links(raw.html, raw.base_url)
            if not self.session.is_known_link(link.url)
        ][:MAX_PAGE_LINKS_LISTED]
        if not fresh:
            return text
        self.session.remember_links(link.url for link in fresh)
        block = format_page_links(fresh, self._site_host)
        return f"{text}\n\n{block}" if text else block


def normalize_website_url(website_url: Optional[str]) -> Optional[str]:
    """``https://``-prefixed URL with a host, or None when unusable."""
    url = (website_url or "").strip()
    if not url:
        return None
    if "://" not in url:
        url = f"https://{url}"
    try:
        parsed = urlparse(url)
        _ = parsed.port
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.hostname or "." not in parsed.hostname:
        return None
    return url


async def crawl_website(
    website_url: str,
    *,
    completion,
    session: Optional[CrawlSession] = None,
    client: Optional[httpx.AsyncClient] = None,
    progress_callback: Optional[Callable[[str], None]] = None,
    courtesy_delay: Optional[float] = None,
) -> CrawlOutcome:
    """
    Crawl with fallbacks: multi-page, then single page, then URL only.

    Never raises. The first strategy succeeding yields ``CrawlSuccess``; a
    later one yields ``CrawlDegraded`` with the earlier failures as reason.
    """
    session = session or CrawlSession(website_url=website_url or "")
    url = normalize_website_url(website_url)
    if url is None:
        session.record("invalid_url", url=website_url)
        return CrawlDegraded(
            result=CrawlResult(website_url=website_url or ""),
            tier="url_only",
            reason="invalid website URL",
        )

    owns_client = client is None
    http_client = client or build_http_client()
    fetcher = PageFetcher(http_client, progress_callback)
    crawler = MultiPageCrawler(
        fetcher,
        PageSelector(completion, progress_callback),
        session,
        progress_callback=progress_callback,
        courtesy_delay=courtesy_delay,
    )

    async def multi_page() -> CrawlResult:
        return await crawler.crawl(url)

    async def single_page() -> CrawlResult:
        page = await crawler.fetch_homepage(url)
        return CrawlResult(
            website_url=url,
            homepage_content=extract_clean_text(page.html),
            homepage_title=extract_page_title(page.html),
            analysis_method="single_page_fallback",
            homepage_html=page.html,
        )

    strategies: List[Tuple[str, Callable[[], Awaitable[CrawlResult]]]] = [
        ("multi_page", multi_page),
        ("single_page", single_page),
    ]
    failures: List[str] = []
    try:
        for tier, strategy in strategies:
            try:
                result = await strategy()
            except Exception as exc:
                logger.warning("Crawl tier %s failed for %s: %s", tier, url, exc)
                details = {"tier": tier, "error": f"{type(exc).__name__}: {exc}"}
                if isinstance(exc, LLMOrchestrationError):
                    details["llm_attempts"] = [trace.summary() for trace in exc.attempts]
                session.record("tier_failed", **details)
                failures.append(f"{tier}: {exc}")
                continue

            session.record("tier_succeeded", tier=tier, analysis_method=result.analysis_method)
            if not failures:
                return CrawlSuccess(result=result, tier=tier)
            return CrawlDegraded(result=result, tier=tier, reason="; ".join(failures))
    finally:
        if owns_client:
            await http_client.aclose()

    session.record("tier_succeeded", tier="url_only", analysis_method="url_only_fallback")
    return CrawlDegraded(
        result=CrawlResult(website_url=url),
        tier="url_only",
        reason="; ".join(failures),
    )
