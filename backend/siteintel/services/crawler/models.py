"""Data models for the website crawler."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass
class RawPage:
    """One HTTP fetch."""
    url: str
    html: str
    status_code: int = 200
    final_url: str = ""  # after redirects; base for link resolution

    @property
    def base_url(self) -> str:
        return self.final_url or self.url


@dataclass
class ExtractedLink:
    """Absolute, fragment-free hyperlink found in a page."""
    url: str
    text: str
    is_external: bool
    domain: str
    category: str = "other"  # about, pricing, product, support, content, legal, other


@dataclass
class SelectedLink:
    """A link picked by the page selector, with its justification."""
    link: ExtractedLink
    reasoning: str = ""


@dataclass
class LinkSelection:
    """Outcome of page selection for one crawl."""
    selected_links: List[SelectedLink] = field(default_factory=list)
    total_selected: int = 0
    strategy: str = ""
    reason: Optional[str] = None  # no_links, ai_parsing_failed, ai_selected_none

    @property
    def is_homepage_only(self) -> bool:
        return not self.selected_links


@dataclass
class PageContent:
    """Cleaned content of one selected page."""
    url: str
    title: str
    clean_text: Optional[str]
    content_length: int
    is_external: bool
    domain: str
    reasoning: str = ""
    error: Optional[str] = None


@dataclass
class DocumentStatistics:
    """Per-page statistics driving the line filter."""
    line_count: int
    word_count: int
    avg_words_per_line: float
    avg_chars_per_line: float
    lexical_diversity: float
    information_threshold: float


@dataclass
class TextLine:
    """A candidate line and the structural role it came from."""
    text: str
    role: str = "body"  # body, heading, list, table, boilerplate


@dataclass
class CrawlResult:
    """Everything the crawl collected for fact extraction."""
    website_url: str
    homepage_content: str = ""
    homepage_title: str = ""
    additional_pages: List[PageContent] = field(default_factory=list)
    analysis_method: str = "url_only_fallback"
    selection_strategy: Optional[str] = None
    pages_selected: int = 0
    homepage_html: str = field(default="", repr=False)

    @property
    def successful_pages(self) -> List[PageContent]:
        return [page for page in self.additional_pages if not page.error]

    @property
    def pages_analyzed(self) -> int:
        if not self.homepage_content and self.analysis_method == "url_only_fallback":
            return 0
        return 1 + len(self.successful_pages)

    @property
    def external_pages_analyzed(self) -> int:
        return sum(1 for page in self.successful_pages if page.is_external)

    @property
    def total_content_length(self) -> int:
        return len(self.homepage_content) + sum(page.content_length for page in self.successful_pages)

    @property
    def corpus(self) -> str:
        """Homepage plus tagged per-page sections, as one text."""
        parts = [f"HOMEPAGE CONTENT:\n{self.homepage_content}\n"]
        if self.additional_pages:
            parts.append("ADDITIONAL PAGES:")
            for index, page in enumerate(self.additional_pages, start=1):
                if page.error:
                    parts.append(f"\nPage {index}: {page.title} (Failed to fetch from {page.domain})")
                    continue
                origin = f"External Domain: {page.domain}" if page.is_external else "Internal Page"
                parts.append(
                    f"\nPage {index}: {page.title} ({origin})\n"
                    f"URL: {page.url}\n"
                    f"Content: {page.clean_text}"
                )
        return "\n".join(parts).strip()


@dataclass
class CrawlSuccess:
    """The first strategy in the fallback chain produced the result."""
    result: CrawlResult
    tier: str

    degraded = False
    reason = None


@dataclass
class CrawlDegraded:
    """A lower fallback tier produced the result."""
    result: CrawlResult
    tier: str
    reason: str

    degraded = True


CrawlOutcome = Union[CrawlSuccess, CrawlDegraded]


@dataclass
class ColorPalette:
    primary_colors: List[str] = field(default_factory=list)
    secondary_colors: List[str] = field(default_factory=list)
    text_colors: List[str] = field(default_factory=list)
    background_colors: List[str] = field(default_factory=list)
    accent_colors: List[str] = field(default_factory=list)
    all_extracted_colors: List[str] = field(default_factory=list)
    color_count: int = 0
    extraction_method: str = "css_and_inline_analysis"
    error: Optional[str] = None


@dataclass
class Typography:
    primary_font_family: str = "Not found"
    secondary_font_family: str = "Not found"
    font_families_found: List[str] = field(default_factory=list)
    web_fonts: List[str] = field(default_factory=list)
    font_weights_used: List[str] = field(default_factory=list)
    font_size_scale: List[str] = field(default_factory=list)
    extraction_method: str = "css_and_html_analysis"
    error: Optional[str] = None


@dataclass
class LogoAsset:
    asset_type: str  # logo, favicon
    status: str  # downloaded, failed, not_found, inline_svg
    original_url: str = ""
    local_path: str = ""
    file_size: int = 0
    content_type: str = ""
    file_format: str = ""
    alt_text: str = ""
    error: Optional[str] = None


@dataclass
class LogoAssets:
    main_logo: LogoAsset = field(default_factory=lambda: LogoAsset(asset_type="logo", status="not_found"))
    favicon: LogoAsset = field(default_factory=lambda: LogoAsset(asset_type="favicon", status="not_found"))
    extraction_method: str = "markup_pattern_match"
    error: Optional[str] = None


@dataclass
class VisualElements:
    border_radius_patterns: List[str] = field(default_factory=list)
    shadow_patterns: List[str] = field(default_factory=list)
    spacing_patterns: List[str] = field(default_factory=list)
    button_classes: List[str] = field(default_factory=list)
    flexbox_usage: bool = False
    grid_usage: bool = False
    display_patterns: List[str] = field(default_factory=list)
    position_patterns: List[str] = field(default_factory=list)
    extraction_method: str = "css_pattern_analysis"
    error: Optional[str] = None


@dataclass
class DesignAssets:
    """Best-effort design metadata for one homepage."""
    color_palette: ColorPalette = field(default_factory=ColorPalette)
    typography: Typography = field(default_factory=Typography)
    logo_assets: LogoAssets = field(default_factory=LogoAssets)
    visual_elements: VisualElements = field(default_factory=VisualElements)
    extraction_metadata: Dict[str, Any] = field(default_factory=dict)
