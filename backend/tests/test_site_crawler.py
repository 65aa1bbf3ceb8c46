import asyncio
import json

import httpx
import respx

from siteintel.services.crawler.fetcher import PageFetcher
from siteintel.services.crawler.models import CrawlDegraded, CrawlSuccess, ExtractedLink
from siteintel.services.crawler.selector import PageSelector
from siteintel.services.crawler.session import CrawlSession
from siteintel.services.llm.types import LLMOrchestrationError, ModelAttemptTrace
from siteintel.services.crawler.site_crawler import (
    CrawlState,
    MultiPageCrawler,
    crawl_website,
    format_page_links,
    normalize_website_url,
    remove_duplicate_lines,
)

SITE = "https://acme.test/"

NAV = '<nav><a href="/">Home</a><a href="/about">About</a><a href="/pricing">Pricing</a></nav>'
FOOTER = "<footer><p>Acme Inc. builds widgets for every team.</p></footer>"

HOMEPAGE = f"""<html><head><title>Acme</title></head><body>
{NAV}
<main><h1>Acme makes widgets</h1>
<p>We help 500 clients save $10,000/year with smart widgets.</p>
<p><a href="https://partner.io/case">Read the Partner case study</a></p></main>
{FOOTER}
</body></html>"""

ABOUT = f"""<html><head><title>About Acme</title></head><body>
{NAV}
<main><h1>About Acme</h1>
<p>We help 500 clients save $10,000/year with smart widgets.</p>
<p>Founded in 2015 by two engineers, Acme now employs 40 people in Berlin.</p>
<p><a href="/careers">Join our careers team</a></p></main>
{FOOTER}
</body></html>"""

PARTNER = """<html><body>
<nav><a href="https://partner.io/">Partner home</a></nav>
<main><p>Partner used Acme widgets to cut costs by 30% in one year.</p></main>
</body></html>"""


class _FakeCompletion:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def complete(self, prompt, *, stage, use_web_search=False):
        self.calls.append(stage)
        if self.error is not None:
            raise self.error
        return self.response


def _selection(*urls):
    return json.dumps({
        "selected_links": [{"url": url, "reasoning": "informative"} for url in urls],
        "selection_strategy": "Company and proof points",
    })


def _mock_site(router, about=None):
    home = router.get(SITE).mock(return_value=httpx.Response(200, html=HOMEPAGE))
    router.get("https://acme.test/about").mock(
        return_value=about if about is not None else httpx.Response(200, html=ABOUT)
    )
    router.get("https://partner.io/case").mock(return_value=httpx.Response(200, html=PARTNER))
    router.route().mock(return_value=httpx.Response(404))
    return home


def _crawl(completion, url=SITE, session=None):
    return asyncio.run(
        crawl_website(url, completion=completion, session=session, courtesy_delay=0)
    )


def test_multi_page_crawl_collects_selected_pages():
    completion = _FakeCompletion(_selection("https://acme.test/about", "https://partner.io/case"))
    session = CrawlSession(website_url=SITE)

    with respx.mock(assert_all_called=False) as router:
        _mock_site(router)
        outcome = _crawl(completion, session=session)

    assert isinstance(outcome, CrawlSuccess)
    assert outcome.tier == "multi_page"
    result = outcome.result
    assert result.analysis_method == "multi_page_analysis"
    assert result.pages_selected == 2
    assert result.pages_analyzed == 3
    assert result.external_pages_analyzed == 1
    assert result.selection_strategy == "Company and proof points"
    assert "Acme makes widgets" in result.homepage_content

    about, partner = result.additional_pages
    assert about.title == "About"
    assert about.is_external is False
    assert "Founded in 2015 by two engineers" in about.clean_text
    assert "We help 500 clients" not in about.clean_text
    assert "Acme Inc. builds widgets" not in about.clean_text
    assert "PAGE LINKS:\nInternal:\n- Join our careers team: https://acme.test/careers" in about.clean_text
    assert "https://acme.test/pricing" not in about.clean_text

    assert partner.is_external is True
    assert partner.domain == "partner.io"
    assert "cut costs by 30%" in partner.clean_text
    assert "External:\n- Partner home: https://partner.io/" in partner.clean_text

    corpus = result.corpus
    assert corpus.startswith("HOMEPAGE CONTENT:")
    assert "Page 1: About (Internal Page)" in corpus
    assert "Page 2: Read the Partner case study (External Domain: partner.io)" in corpus

    events = [entry["event"] for entry in session.diagnostics]
    assert "homepage_extracted" in events
    assert events[-1] == "tier_succeeded"


def test_failed_page_is_recorded_without_failing_the_crawl():
    completion = _FakeCompletion(_selection("https://acme.test/about"))

    with respx.mock(assert_all_called=False) as router:
        _mock_site(router, about=httpx.Response(500))
        outcome = _crawl(completion)

    assert isinstance(outcome, CrawlSuccess)
    page = outcome.result.additional_pages[0]
    assert page.error == "HTTP 500"
    assert page.clean_text is None
    assert outcome.result.pages_analyzed == 1
    assert "Page 1: About (Failed to fetch from acme.test)" in outcome.result.corpus


def test_selection_shortcuts_end_in_homepage_only_result():
    completion = _FakeCompletion('{"selected_links": [], "selection_strategy": "Homepage is enough"}')

    with respx.mock(assert_all_called=False) as router:
        _mock_site(router)
        outcome = _crawl(completion)

    assert isinstance(outcome, CrawlSuccess)
    assert outcome.result.analysis_method == "homepage_only_ai_selected_none"
    assert outcome.result.additional_pages == []
    assert outcome.result.pages_analyzed == 1


def test_homepage_without_links_never_calls_the_model():
    completion = _FakeCompletion(_selection())

    with respx.mock(assert_all_called=False) as router:
        router.get(SITE).mock(return_value=httpx.Response(
            200, html="<p>Acme builds industrial widgets for factories.</p>"
        ))
        outcome = _crawl(completion)

    assert outcome.result.analysis_method == "homepage_only_no_links"
    assert completion.calls == []


def test_selection_failure_degrades_to_single_page_without_refetch():
    completion = _FakeCompletion(error=RuntimeError("all routes failed"))

    with respx.mock(assert_all_called=False) as router:
        home = _mock_site(router)
        outcome = _crawl(completion)

    assert isinstance(outcome, CrawlDegraded)
    assert outcome.degraded is True
    assert outcome.tier == "single_page"
    assert "multi_page: all routes failed" in outcome.reason
    assert outcome.result.analysis_method == "single_page_fallback"
    assert "Acme makes widgets" in outcome.result.homepage_content
    assert outcome.result.homepage_html == HOMEPAGE
    assert home.call_count == 1


def test_unreachable_homepage_degrades_to_url_only():
    completion = _FakeCompletion(_selection())

    with respx.mock(assert_all_called=False) as router:
        home = router.get(SITE).mock(return_value=httpx.Response(503))
        outcome = _crawl(completion)

    assert isinstance(outcome, CrawlDegraded)
    assert outcome.tier == "url_only"
    assert "multi_page" in outcome.reason
    assert "single_page" in outcome.reason
    assert outcome.result.analysis_method == "url_only_fallback"
    assert outcome.result.pages_analyzed == 0
    assert home.call_count == 2
    assert completion.calls == []


def test_non_html_homepage_is_a_fetch_failure():
    completion = _FakeCompletion(_selection())

    with respx.mock(assert_all_called=False) as router:
        router.get(SITE).mock(return_value=httpx.Response(200, json={"ok": True}))
        outcome = _crawl(completion)

    assert outcome.tier == "url_only"
    assert "application/json" in outcome.reason


def test_invalid_urls_skip_the_network():
    completion = _FakeCompletion(_selection())

    for bad in ("", "not a url", "ftp://acme.test"):
        outcome = _crawl(completion, url=bad)
        assert isinstance(outcome, CrawlDegraded)
        assert outcome.tier == "url_only"
        assert outcome.reason == "invalid website URL"

    assert completion.calls == []


def test_crawler_walks_states_and_skips_seen_pages():
    completion = _FakeCompletion(_selection(SITE, "https://acme.test/about"))
    session = CrawlSession(website_url=SITE)
    messages = []

    async def run():
        async with httpx.AsyncClient() as client:
            crawler = MultiPageCrawler(
                PageFetcher(client),
                PageSelector(completion),
                session,
                progress_callback=messages.append,
                courtesy_delay=0,
            )
            assert crawler.state == CrawlState.homepage_fetch
            result = await crawler.crawl(SITE)
            return crawler, result

    with respx.mock(assert_all_called=False) as router:
        _mock_site(router)
        crawler, result = asyncio.run(run())

    assert crawler.state == CrawlState.done
    assert [page.url for page in result.additional_pages] == ["https://acme.test/about"]
    assert session.is_seen("https://acme.test/about")
    skipped = [entry for entry in session.diagnostics if entry["event"] == "page_skipped"]
    assert skipped[0]["url"] == SITE
    assert any(message.startswith("Homepage:") for message in messages)


def test_remove_duplicate_lines_matches_exact_and_near_identical_lines():
    reference = "Contact us today\nAcme Inc. All rights reserved."
    text = "Contact us today!\nContact\n  acme inc.   all rights reserved.\nNew content here"

    assert remove_duplicate_lines(text, reference) == "Contact\nNew content here"
    assert remove_duplicate_lines(text, "") == text


def test_format_page_links_splits_internal_and_external():
    links = [
        ExtractedLink(url="https://www.acme.test/jobs", text="Jobs", is_external=False, domain="acme.test"),
        ExtractedLink(url="https://x.test/", text="X", is_external=True, domain="x.test"),
    ]

    assert format_page_links(links, "acme.test") == (
        "PAGE LINKS:\nInternal:\n- Jobs: https://www.acme.test/jobs\nExternal:\n- X: https://x.test/"
    )


def test_normalize_website_url():
    assert normalize_website_url("acme.test") == "https://acme.test"
    assert normalize_website_url(" http://acme.test/x ") == "http://acme.test/x"
    assert normalize_website_url("localhost") is None
    assert normalize_website_url(None) is None


def test_llm_route_failures_are_kept_in_diagnostics():
    trace = ModelAttemptTrace(
        stage="link_selection",
        provider="anthropic",
        model="claude-3-5-haiku-latest",
        latency_ms=12,
        status="terminal_error",
        retry_count=0,
        error_class="LLMProviderError",
        error_message="ANTHROPIC_API_KEY not configured",
    )
    completion = _FakeCompletion(error=LLMOrchestrationError("All model routes failed", attempts=[trace]))
    session = CrawlSession(website_url=SITE)

    with respx.mock(assert_all_called=False) as router:
        _mock_site(router)
        outcome = _crawl(completion, session=session)

    assert outcome.tier == "single_page"
    failed = [entry for entry in session.diagnostics if entry["event"] == "tier_failed"]
    assert failed[0]["tier"] == "multi_page"
    assert failed[0]["llm_attempts"] == [{
        "route": "anthropic:claude-3-5-haiku-latest",
        "status": "terminal_error",
        "latency_ms": 12,
        "error": "LLMProviderError: ANTHROPIC_API_KEY not configured",
    }]
