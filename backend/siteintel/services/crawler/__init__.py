"""Website crawler package for business intelligence extraction."""

from .models import (
    RawPage,
    ExtractedLink,
    SelectedLink,
    LinkSelection,
    PageContent,
    DocumentStatistics,
    TextLine,
    CrawlResult,
    CrawlSuccess,
    CrawlDegraded,
    CrawlOutcome,
    ColorPalette,
    Typography,
    LogoAsset,
    LogoAssets,
    VisualElements,
    DesignAssets,
)
from .text_pipeline import TextExtractionPipeline, DEFAULT_SCORERS, extract_clean_text, extract_page_title
from .links import extract_all_links, normalize_url_key, extract_company_name_from_url
from .fetcher import FetchError, PageFetcher, build_http_client
from .selector import PageSelector
from .session import CrawlSession
from .site_crawler import CrawlState, MultiPageCrawler, crawl_website, remove_duplicate_lines
from .design import DesignAssetExtractor, company_identifier

__all__ = [
    # Main entry points
    "crawl_website",
    "MultiPageCrawler",
    "CrawlState",
    "CrawlSession",

    # Components
    "TextExtractionPipeline",
    "DEFAULT_SCORERS",
    "PageSelector",
    "PageFetcher",
    "DesignAssetExtractor",

    # Data models
    "RawPage",
    "ExtractedLink",
    "SelectedLink",
    "LinkSelection",
    "PageContent",
    "DocumentStatistics",
    "TextLine",
    "CrawlResult",
    "CrawlSuccess",
    "CrawlDegraded",
    "CrawlOutcome",
    "ColorPalette",
    "Typography",
    "LogoAsset",
    "LogoAssets",
    "VisualElements",
    "DesignAssets",

    # Errors
    "FetchError",

    # Utility functions
    "extract_clean_text",
    "extract_page_title",
    "extract_all_links",
    "normalize_url_key",
    "extract_company_name_from_url",
    "build_http_client",
    "remove_duplicate_lines",
    "company_identifier",
]
