import asyncio
import json

import pytest

from siteintel.services.crawler.models import ExtractedLink
from siteintel.services.crawler.selector import PageSelector
from siteintel.services.llm.types import LLMStage


class _FakeCompletion:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def complete(self, prompt, *, stage, use_web_search=False):
        self.calls.append({"prompt": prompt, "stage": stage, "use_web_search": use_web_search})
        if self.error is not None:
            raise self.error
        return self.response


def _links(count):
    return [
        ExtractedLink(
            url=f"https://acme.test/page-{i}",
            text=f"Page {i}",
            is_external=False,
            domain="acme.test",
        )
        for i in range(count)
    ]


def _select(completion, links):
    selector = PageSelector(completion)
    return asyncio.run(selector.select_pages(links, "Acme", "https://acme.test"))


def test_no_links_skips_the_completion_service():
    completion = _FakeCompletion(response="{}")

    selection = _select(completion, [])

    assert selection.reason == "no_links"
    assert selection.is_homepage_only
    assert completion.calls == []


def test_selection_is_capped_and_restricted_to_candidates():
    links = _links(15)
    chosen = [{"url": link.url, "reasoning": "useful"} for link in links]
    chosen.insert(0, {"url": "https://elsewhere.test/invented", "reasoning": "made up"})
    completion = _FakeCompletion(response=json.dumps({
        "selected_links": chosen,
        "selection_strategy": "Everything",
    }))

    selection = _select(completion, links)

    candidate_urls = {link.url for link in links}
    assert selection.total_selected == 10
    assert len(selection.selected_links) == 10
    assert all(item.link.url in candidate_urls for item in selection.selected_links)
    assert selection.strategy == "Everything"
    assert selection.reason is None
    assert completion.calls[0]["stage"] == LLMStage.link_selection
    assert "https://acme.test/page-14" in completion.calls[0]["prompt"]


def test_duplicate_and_case_variant_selections_are_merged():
    links = _links(3)
    completion = _FakeCompletion(response=json.dumps({
        "selected_links": [
            {"url": "HTTPS://ACME.TEST/PAGE-1", "reasoning": "r" * 500},
            {"url": "https://acme.test/page-1", "reasoning": "again"},
            "not an object",
        ],
        "selection_strategy": "Focused",
    }))

    selection = _select(completion, links)

    assert selection.total_selected == 1
    picked = selection.selected_links[0]
    assert picked.link.url == "https://acme.test/page-1"
    assert len(picked.reasoning) == 300


def test_unparseable_response_falls_back_to_homepage_only():
    completion = _FakeCompletion(response="I think the about page looks good.")

    selection = _select(completion, _links(2))

    assert selection.reason == "ai_parsing_failed"
    assert selection.is_homepage_only


def test_selected_links_must_be_a_list():
    completion = _FakeCompletion(response='{"selected_links": "all of them"}')

    selection = _select(completion, _links(2))

    assert selection.reason == "ai_parsing_failed"


def test_empty_acceptance_is_reported_as_selected_none():
    completion = _FakeCompletion(response=json.dumps({
        "selected_links": [{"url": "https://other.test/x"}],
        "selection_strategy": "Homepage is enough",
    }))

    selection = _select(completion, _links(2))

    assert selection.reason == "ai_selected_none"
    assert selection.strategy == "Homepage is enough"
    assert selection.is_homepage_only


def test_completion_errors_propagate():
    completion = _FakeCompletion(error=RuntimeError("all routes failed"))

    with pytest.raises(RuntimeError, match="all routes failed"):
        _select(completion, _links(2))
