"""HTTP page fetching shared by the crawler components."""

import logging
from typing import Callable, Optional

import httpx

from siteintel.config import get_settings
from .models import RawPage
from .constants import DEFAULT_HEADERS, HTML_CONTENT_TYPES

logger = logging.getLogger(__name__)


class FetchError(RuntimeError):
    """A page could not be fetched as HTML."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url
        self.message = message


def build_http_client(timeout: Optional[float] = None) -> httpx.AsyncClient:
    """Async client with browser-like headers and redirect following."""
    if timeout is None:
        timeout = get_settings().request_timeout_seconds
    return httpx.AsyncClient(
        timeout=timeout,
        follow_redirects=True,
        headers=DEFAULT_HEADERS,
    )


class PageFetcher:
    """GETs single pages and insists on an HTML-ish response."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        progress_callback: Optional[Callable[[str], None]] = None,
        timeout: Optional[float] = None,
    ):
        self.client = client
        self.progress_callback = progress_callback
        self.timeout = timeout if timeout is not None else get_settings().request_timeout_seconds

    def _log(self, message: str) -> None:
        """Log progress if callback is set."""
        logger.info(message)
        if self.progress_callback:
            self.progress_callback(message)

    async def fetch(self, url: str) -> RawPage:
        self._log(f"Fetching {url}")
        try:
            response = await self.client.get(url, timeout=self.timeout)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise FetchError(url, f"{type(exc).__name__}: {exc}") from exc

        if response.status_code >= 400:
            raise FetchError(url, f"HTTP {response.status_code}")

        content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
        if content_type and content_type not in HTML_CONTENT_TYPES:
            raise FetchError(url, f"Unsupported content type {content_type}")

        return RawPage(
            url=url,
            html=response.text,
            status_code=response.status_code,
            final_url=str(response.url),
        )
