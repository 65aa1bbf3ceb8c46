"""Website intelligence: crawl a company site and extract a business profile."""

import asyncio
import logging
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

import httpx

from siteintel.config import get_settings
from siteintel.services.crawler import (
    CrawlDegraded,
    CrawlOutcome,
    CrawlResult,
    CrawlSession,
    CrawlSuccess,
    DesignAssetExtractor,
    DesignAssets,
    FetchError,
    PageFetcher,
    build_http_client,
    crawl_website,
    extract_clean_text,
    extract_company_name_from_url,
    extract_page_title,
)
from siteintel.services.crawler.site_crawler import normalize_website_url
from siteintel.services.llm.completion import OrchestratedCompletionService, extract_json_object
from siteintel.services.llm.types import LLMStage
from siteintel.services.prompts import fallback_crawl_prompt, main_crawl_prompt, multi_page_analysis_prompt

logger = logging.getLogger(__name__)

RAW_RESPONSE_PREVIEW_CHARS = 500
HOMEPAGE_ONLY_METHOD = "homepage_only_competitor"


def create_fallback_data(
    website_url: str,
    raw_response: Optional[str] = None,
    error_message: Optional[str] = None,
) -> Dict[str, Any]:
    """Profile guessed from the URL alone, used when extraction fails."""
    url_lower = (website_url or "").lower()
    industry = "Not found"
    service = "Not found"
    features = []

    if "photo" in url_lower or "image" in url_lower or "pic" in url_lower:
        industry = "Photography/Image"
        service = "Image or photography related service"
        features.append("Image processing")

    if "ai" in url_lower or "artificial" in url_lower:
        industry = "AI/Technology"
        if service == "Not found":
            service = "AI-powered service"
        features.append("AI-powered")

    if "app" in url_lower or "software" in url_lower:
        if industry == "Not found":
            industry = "Software"
        if service == "Not found":
            service = "Software application"

    notes = f"Error: {error_message}" if error_message else "Information extracted from URL analysis"
    data: Dict[str, Any] = {
        "company_name": extract_company_name_from_url(website_url),
        "business_description": service,
        "value_proposition": "Not found",
        "target_customer": "Not found",
        "main_product_service": service,
        "key_features": features,
        "pricing_info": "Not found",
        "business_stage": "Unknown",
        "industry_category": industry,
        "competitors_mentioned": [],
        "unique_selling_points": [],
        "team_size": "Not found",
        "recent_updates": "Not found",
        "social_media": {"twitter": "", "linkedin": "", "other": []},
        "funding_info": "Not found",
        "company_mission": "Not found",
        "team_background": "Not found",
        "additional_notes": notes,
        "fallback_used": True,
    }
    if raw_response:
        data["raw_response"] = raw_response[:RAW_RESPONSE_PREVIEW_CHARS]
        data["additional_notes"] += ". Raw response available for manual review."
    return data


def build_profile_prompt(result: CrawlResult) -> Tuple[str, LLMStage]:
    """Prompt and completion stage matching the tier that produced ``result``."""
    if result.analysis_method == "url_only_fallback":
        return fallback_crawl_prompt(result.website_url), LLMStage.url_inference
    if result.analysis_method in ("single_page_fallback", HOMEPAGE_ONLY_METHOD):
        return main_crawl_prompt(result.website_url, result.homepage_content), LLMStage.business_extraction
    return (
        multi_page_analysis_prompt(
            result.website_url,
            result.corpus,
            result.pages_analyzed,
            result.external_pages_analyzed,
        ),
        LLMStage.business_extraction,
    )


async def extract_business_profile(
    completion: OrchestratedCompletionService,
    result: CrawlResult,
) -> Dict[str, Any]:
    """Ask the completion service for the profile; fall back to URL heuristics."""
    prompt, stage = build_profile_prompt(result)
    try:
        response = await completion.complete(
            prompt,
            stage=stage,
            use_web_search=stage == LLMStage.url_inference,
        )
    except Exception as exc:
        logger.warning("Business profile extraction failed for %s: %s", result.website_url, exc)
        return create_fallback_data(result.website_url, None, str(exc))

    data = extract_json_object(response)
    if data is None:
        logger.warning("No JSON structure in profile response for %s", result.website_url)
        return create_fallback_data(result.website_url, response, "No JSON structure found in response")
    return data


def _skipped_design_assets(website_url: str) -> DesignAssets:
    return DesignAssets(extraction_metadata={
        "timestamp": datetime.utcnow().isoformat(),
        "extraction_method": "skipped",
        "source_url": website_url,
        "cached": False,
    })


def _finalize(
    profile: Dict[str, Any],
    website_url: str,
    outcome: Optional[CrawlOutcome],
    design: DesignAssets,
    session: CrawlSession,
) -> Dict[str, Any]:
    result = outcome.result if outcome is not None else CrawlResult(website_url=website_url)
    name = str(profile.get("company_name") or "").strip()
    if not name or name == "Not found":
        profile["company_name"] = extract_company_name_from_url(website_url)

    profile["design_assets"] = asdict(design)
    profile["extraction_metadata"] = {
        "extraction_method": result.analysis_method,
        "pages_analyzed": result.pages_analyzed,
        "pages_selected": result.pages_selected,
        "external_pages_analyzed": result.external_pages_analyzed,
        "total_content_length": result.total_content_length,
        "selection_strategy": result.selection_strategy,
        "degraded_reason": outcome.reason if outcome is not None else "invalid website URL",
        "correlation_id": session.correlation_id,
        "extraction_timestamp": datetime.utcnow().isoformat(),
    }
    profile["crawl_diagnostics"] = session.snapshot()
    return profile


async def analyze_website(
    website_url: str,
    correlation_id: Optional[str] = None,
    *,
    completion: Optional[OrchestratedCompletionService] = None,
    client: Optional[httpx.AsyncClient] = None,
    storage_dir: Optional[Union[str, Path]] = None,
    progress_callback: Optional[Callable[[str], None]] = None,
    courtesy_delay: Optional[float] = None,
    llm_courtesy_delay: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Crawl ``website_url`` and return its business profile.

    Never raises: any failure ends in the URL-heuristic profile, with
    ``extraction_metadata`` and ``crawl_diagnostics`` attached.
    """
    session_kwargs = {"correlation_id": correlation_id} if correlation_id else {}
    session = CrawlSession(website_url=website_url or "", **session_kwargs)

    if not (website_url or "").strip():
        profile = create_fallback_data("", None, "Website URL is required")
        return _finalize(profile, "", None, _skipped_design_assets(""), session)

    try:
        return await _analyze(
            website_url,
            session,
            completion=completion,
            client=client,
            storage_dir=storage_dir,
            progress_callback=progress_callback,
            courtesy_delay=courtesy_delay,
            llm_courtesy_delay=llm_courtesy_delay,
        )
    except Exception as exc:
        logger.exception("Website analysis failed for %s", website_url)
        session.record("analysis_failed", error=f"{type(exc).__name__}: {exc}")
        profile = create_fallback_data(website_url, None, str(exc))
        return _finalize(profile, website_url, None, _skipped_design_assets(website_url), session)


async def _analyze(
    website_url: str,
    session: CrawlSession,
    *,
    completion: Optional[OrchestratedCompletionService],
    client: Optional[httpx.AsyncClient],
    storage_dir: Optional[Union[str, Path]],
    progress_callback: Optional[Callable[[str], None]],
    courtesy_delay: Optional[float],
    llm_courtesy_delay: Optional[float],
) -> Dict[str, Any]:
    settings = get_settings()
    completion = completion or OrchestratedCompletionService()
    owns_client = client is None
    http_client = client or build_http_client()

    try:
        outcome = await crawl_website(
            website_url,
            completion=completion,
            session=session,
            client=http_client,
            progress_callback=progress_callback,
            courtesy_delay=courtesy_delay,
        )
        result = outcome.result
        logger.info(
            "Crawl of %s finished: tier=%s method=%s degraded=%s",
            website_url, outcome.tier, result.analysis_method, outcome.degraded,
        )

        design = await _extract_design(http_client, session, result, website_url, storage_dir, progress_callback)
    finally:
        if owns_client:
            await http_client.aclose()

    delay = llm_courtesy_delay if llm_courtesy_delay is not None else settings.llm_courtesy_delay_seconds
    if delay > 0:
        await asyncio.sleep(delay)

    profile = await extract_business_profile(completion, result)
    return _finalize(profile, result.website_url or website_url, outcome, design, session)


async def _extract_design(
    http_client: httpx.AsyncClient,
    session: CrawlSession,
    result: CrawlResult,
    website_url: str,
    storage_dir: Optional[Union[str, Path]],
    progress_callback: Optional[Callable[[str], None]],
) -> DesignAssets:
    """Design assets for the crawled homepage; failures never cost the crawl."""
    source_url = result.website_url or website_url
    if not result.homepage_html:
        return _skipped_design_assets(source_url)
    extractor = DesignAssetExtractor(http_client, storage_dir, progress_callback)
    try:
        return await extractor.extract_cached(session, result.homepage_html, source_url)
    except Exception as exc:
        logger.warning("Design extraction failed for %s: %s", source_url, exc)
        session.record("design_assets_failed", error=f"{type(exc).__name__}: {exc}")
        design = _skipped_design_assets(source_url)
        design.extraction_metadata.update(extraction_method="failed", error=str(exc))
        return design


async def analyze_homepage(
    website_url: str,
    correlation_id: Optional[str] = None,
    *,
    completion: Optional[OrchestratedCompletionService] = None,
    client: Optional[httpx.AsyncClient] = None,
    progress_callback: Optional[Callable[[str], None]] = None,
) -> Dict[str, Any]:
    """
    Quick profile from the homepage alone, e.g. for a competitor.

    One fetch, no link selection and no design extraction. An unreachable
    or invalid site gives the URL-heuristic profile without a model call.
    """
    session_kwargs = {"correlation_id": correlation_id} if correlation_id else {}
    session = CrawlSession(website_url=website_url or "", **session_kwargs)
    url = normalize_website_url(website_url)
    if url is None:
        session.record("invalid_url", url=website_url)
        profile = create_fallback_data(website_url or "", None, "invalid website URL")
        return _finalize(profile, website_url or "", None, _skipped_design_assets(website_url or ""), session)

    completion = completion or OrchestratedCompletionService()
    owns_client = client is None
    http_client = client or build_http_client()
    try:
        page = await PageFetcher(http_client, progress_callback).fetch(url)
    except FetchError as exc:
        logger.warning("Homepage fetch failed for %s: %s", url, exc.message)
        session.record("tier_failed", tier="homepage_only", error=exc.message)
        outcome = CrawlDegraded(result=CrawlResult(website_url=url), tier="url_only", reason=exc.message)
        profile = create_fallback_data(url, None, exc.message)
        return _finalize(profile, url, outcome, _skipped_design_assets(url), session)
    finally:
        if owns_client:
            await http_client.aclose()

    result = CrawlResult(
        website_url=url,
        homepage_content=extract_clean_text(page.html),
        homepage_title=extract_page_title(page.html),
        analysis_method=HOMEPAGE_ONLY_METHOD,
    )
    session.mark_seen(url)
    session.record(
        "homepage_extracted",
        url=page.base_url,
        html_length=len(page.html),
        clean_length=len(result.homepage_content),
    )

    profile = await extract_business_profile(completion, result)
    outcome = CrawlSuccess(result=result, tier="homepage_only")
    return _finalize(profile, url, outcome, _skipped_design_assets(url), session)
