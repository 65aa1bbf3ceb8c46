"""Design asset mining: colors, typography, logo/favicon and visual patterns."""

import asyncio
import html as html_lib
import logging
import os
import re
from collections import Counter, defaultdict
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union
from urllib.parse import parse_qs, urljoin, urlparse

import httpx
from selectolax.parser import HTMLParser, Node

from siteintel.config import get_settings
from .models import (
    ColorPalette,
    DesignAssets,
    LogoAsset,
    LogoAssets,
    Typography,
    VisualElements,
)
from .constants import (
    ASSET_EXTENSIONS,
    BACKGROUND_TONE_COLORS,
    GENERIC_FONT_FAMILIES,
    MAX_CATEGORIZED_COLORS,
    MAX_FONT_FAMILIES,
    MAX_REPORTED_COLORS,
    TAILWIND_COLORS,
    TEXT_TONE_COLORS,
)
from .session import CrawlSession

logger = logging.getLogger(__name__)

# Color sources
_COLOR_VALUE = r"#[0-9a-fA-F]{3,8}\b|rgba?\([^)]*\)?|hsla?\([^)]*\)|var\([^)]*\)"
_COLOR_DECL_RE = re.compile(
    rf"(?<![\w-])(color|background-color|border-color|background|fill|stroke)\s*:\s*({_COLOR_VALUE})",
    re.IGNORECASE,
)
_COLOR_VAR_RE = re.compile(
    r"(--[\w-]+)\s*:\s*(#[0-9a-fA-F]{3,8}\b|rgba?\([^)]*\)|hsla?\([^)]*\))",
    re.IGNORECASE,
)
_CLASS_ATTR_RE = re.compile(r"""\bclass\s*=\s*(?:"([^"]*)"|'([^']*)')""", re.IGNORECASE)
_TAILWIND_COLOR_RE = re.compile(r"^(?:[\w-]+:)*(bg|text|border)-([a-z]+)-(\d{2,3})$")
_TAILWIND_PROPERTIES = {"bg": "background", "text": "color", "border": "border-color"}

_HEX_RE = re.compile(r"^#(?:[0-9a-f]{3}|[0-9a-f]{4}|[0-9a-f]{6}|[0-9a-f]{8})$")
_RGB_RE = re.compile(
    r"^rgba?\(\s*(\d{1,3})\s*[,\s]\s*(\d{1,3})\s*[,\s]\s*(\d{1,3})(?:\s*[,/]\s*(\d*\.?\d+%?))?\s*\)?"
)
_HSL_RE = re.compile(
    r"^hsla?\(\s*(\d+(?:\.\d+)?)(?:deg)?\s*[,\s]\s*(\d+(?:\.\d+)?)%\s*[,\s]\s*(\d+(?:\.\d+)?)%"
    r"(?:\s*[,/]\s*(\d*\.?\d+%?))?\s*\)$"
)

# Typography
_FONT_VALUE = r"""((?:"[^"]*"|'[^']*'|[^;}<>"'])+)"""
_FONT_FAMILY_RE = re.compile(rf"(?<![\w-])font-family\s*:\s*{_FONT_VALUE}", re.IGNORECASE)
_FONT_VAR_RE = re.compile(rf"--font[\w-]*\s*:\s*{_FONT_VALUE}", re.IGNORECASE)
_FONT_JSON_RE = re.compile(r'"fontFamily"\s*:\s*"([^"]+)"')
_GOOGLE_FONTS_RE = re.compile(r"""https?://fonts\.googleapis\.com/css2?\?[^"'\s)<>]+""", re.IGNORECASE)
_FONT_WEIGHT_RE = re.compile(r"(?<![\w-])font-weight\s*:\s*([^;}\"'<>!]+)", re.IGNORECASE)
_FONT_SIZE_RE = re.compile(r"(?<![\w-])font-size\s*:\s*(\d*\.?\d+)(px|rem|em)\b", re.IGNORECASE)
_VAR_CALL_RE = re.compile(r"var\([^)]*\)?")

# Visual patterns
_BORDER_RADIUS_RE = re.compile(r"(?<![\w-])border-radius\s*:\s*([^;}\"'<>]+)", re.IGNORECASE)
_BOX_SHADOW_RE = re.compile(r"(?<![\w-])box-shadow\s*:\s*([^;}\"'<>]+)", re.IGNORECASE)
_SPACING_RE = re.compile(r"(?<![\w-])(?:margin|padding)\s*:\s*([^;}\"'<>]+)", re.IGNORECASE)
_DISPLAY_RE = re.compile(r"(?<![\w-])display\s*:\s*([a-z-]+)", re.IGNORECASE)
_POSITION_RE = re.compile(r"(?<![\w-])position\s*:\s*([a-z-]+)", re.IGNORECASE)

_ASSET_SUFFIXES = {".png", ".jpg", ".jpeg", ".svg", ".gif", ".webp", ".ico"}


def company_identifier(website_url: str) -> str:
    """Filesystem-safe company key, e.g. ``www.acme.io`` -> ``acme_io``."""
    try:
        host = (urlparse(website_url or "").hostname or "").lower()
    except ValueError:
        host = ""
    if host.startswith("www."):
        host = host[4:]
    return host.replace(".", "_") or "unknown_company"


def normalize_color(value: str) -> Optional[str]:
    """Canonical lowercase color, or None for unresolvable/malformed values."""
    color = (value or "").strip().lower()
    if not color or color.startswith("var("):
        return None

    if color.startswith("#"):
        if not _HEX_RE.match(color):
            return None
        if len(color) == 4:
            return "#" + "".join(ch * 2 for ch in color[1:])
        return color

    if color.startswith("rgb"):
        match = _RGB_RE.match(color)
        if not match:
            return None
        channels = [int(group) for group in match.groups()[:3]]
        if any(channel > 255 for channel in channels):
            return None
        r, g, b = channels
        alpha = match.group(4)
        if alpha is not None and color.startswith("rgba"):
            return f"rgba({r}, {g}, {b}, {alpha})"
        return f"rgb({r}, {g}, {b})"

    if color.startswith("hsl"):
        match = _HSL_RE.match(color)
        if not match:
            return None
        h, s, l, alpha = match.groups()
        if alpha is not None and color.startswith("hsla"):
            return f"hsla({h}, {s}%, {l}%, {alpha})"
        return f"hsl({h}, {s}%, {l}%)"

    return None


def _rgb_channels(color: str) -> Optional[Tuple[int, int, int]]:
    if color.startswith("#") and len(color) in (7, 9):
        return int(color[1:3], 16), int(color[3:5], 16), int(color[5:7], 16)
    match = _RGB_RE.match(color)
    if match:
        return int(match.group(1)), int(match.group(2)), int(match.group(3))
    return None


def _is_text_tone(color: str) -> bool:
    if color in TEXT_TONE_COLORS:
        return True
    channels = _rgb_channels(color)
    return bool(channels) and max(channels) - min(channels) <= 8 and max(channels) <= 0x99


def _is_background_tone(color: str) -> bool:
    if color in BACKGROUND_TONE_COLORS:
        return True
    channels = _rgb_channels(color)
    return bool(channels) and min(channels) >= 0xF0


def _clean_font_name(raw: str) -> str:
    name = raw.replace('"', "").replace("'", "").replace("!important", "")
    return re.sub(r"\s+", " ", name).strip()


def _ranked(values: List[str], limit: int) -> List[str]:
    """Most frequent first, ties in first-seen order."""
    return [value for value, _count in Counter(values).most_common(limit)]


class DesignAssetExtractor:
    """Best-effort design metadata for one homepage. Never raises."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        storage_dir: Optional[Union[str, Path]] = None,
        progress_callback: Optional[Callable[[str], None]] = None,
    ):
        settings = get_settings()
        self.client = client
        self.storage_dir = Path(storage_dir if storage_dir is not None else settings.design_assets_dir)
        self.progress_callback = progress_callback
        self.max_css_files = settings.max_css_files
        self.css_timeout = settings.css_request_timeout_seconds
        self.asset_timeout = settings.asset_request_timeout_seconds

    def _log(self, message: str) -> None:
        """Log progress if callback is set."""
        logger.info(message)
        if self.progress_callback:
            self.progress_callback(message)

    def _safe_attr_text(self, node: Optional[Node], key: str) -> str:
        """Safely extract attribute text and normalize it."""
        if node is None:
            return ""
        raw = node.attributes.get(key, "")
        if raw is None:
            return ""
        return str(raw).strip()

    async def extract_cached(self, session: CrawlSession, html: str, website_url: str) -> DesignAssets:
        """Extract once per company within ``session``."""
        key = company_identifier(website_url)
        cached = session.design_assets.get(key)
        if cached is not None:
            session.record("design_assets_cache_hit", company_id=key)
            return replace(cached, extraction_metadata={**cached.extraction_metadata, "cached": True})

        assets = await self.extract(html, website_url)
        session.design_assets[key] = assets
        session.record(
            "design_assets_extracted",
            company_id=key,
            colors=assets.color_palette.color_count,
            logo_status=assets.logo_assets.main_logo.status,
        )
        return assets

    async def extract(self, html: str, website_url: str) -> DesignAssets:
        self._log(f"Extracting design assets for {website_url}")
        html = html or ""
        try:
            tree = HTMLParser(html)
        except Exception as exc:
            logger.warning("Design extraction could not parse %s: %s", website_url, exc)
            return DesignAssets(extraction_metadata=self._metadata(website_url, 0, method="failed", error=str(exc)))

        try:
            css_texts = await self._fetch_stylesheets(tree, website_url)
        except Exception as exc:
            logger.warning("Stylesheet collection failed for %s: %s", website_url, exc)
            css_texts = []
        sources = "\n".join([html] + css_texts)

        assets = DesignAssets(
            color_palette=self._guard(ColorPalette, self.extract_color_palette, html, sources),
            typography=self._guard(Typography, self.extract_typography, sources),
            logo_assets=await self._guard_async(LogoAssets, self.extract_logos(tree, website_url)),
            visual_elements=self._guard(VisualElements, self.extract_visual_elements, tree, sources),
            extraction_metadata=self._metadata(website_url, len(css_texts)),
        )
        self._log(
            f"Design assets: {assets.color_palette.color_count} colors, "
            f"font {assets.typography.primary_font_family}, logo {assets.logo_assets.main_logo.status}"
        )
        return assets

    @staticmethod
    def _metadata(website_url: str, css_files: int, method: str = "css_html_and_asset_analysis", error: Optional[str] = None) -> Dict:
        metadata = {
            "timestamp": datetime.utcnow().isoformat(),
            "extraction_method": method,
            "source_url": website_url,
            "css_files_fetched": css_files,
            "cached": False,
        }
        if error:
            metadata["error"] = error
        return metadata

    @staticmethod
    def _guard(record_type, func, *args):
        try:
            return func(*args)
        except Exception as exc:
            logger.warning("%s extraction failed: %s", record_type.__name__, exc)
            return record_type(extraction_method="failed", error=str(exc))

    @staticmethod
    async def _guard_async(record_type, awaitable):
        try:
            return await awaitable
        except Exception as exc:
            logger.warning("%s extraction failed: %s", record_type.__name__, exc)
            return record_type(extraction_method="failed", error=str(exc))

    # ------------------------------------------------------------------
    # Stylesheets
    # ------------------------------------------------------------------

    def stylesheet_urls(self, tree: HTMLParser, website_url: str) -> List[str]:
        urls: List[str] = []
        for link in tree.css("link[href]"):
            href = self._safe_attr_text(link, "href")
            rel = self._safe_attr_text(link, "rel").lower()
            if "stylesheet" not in rel and ".css" not in href.lower():
                continue
            try:
                absolute = urljoin(website_url, html_lib.unescape(href))
                scheme = urlparse(absolute).scheme
            except ValueError:
                logger.debug("Skipping malformed stylesheet href %r", href)
                continue
            if scheme not in ("http", "https") or absolute in urls:
                continue
            urls.append(absolute)
            if len(urls) >= self.max_css_files:
                break
        return urls

    async def _fetch_stylesheets(self, tree: HTMLParser, website_url: str) -> List[str]:
        """Linked CSS, fetched one at a time."""
        texts = []
        for css_url in self.stylesheet_urls(tree, website_url):
            try:
                response = await self.client.get(css_url, timeout=self.css_timeout)
                response.raise_for_status()
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                logger.debug("Skipping stylesheet %s: %s", css_url, exc)
                continue
            texts.append(response.text)
        return texts

    # ------------------------------------------------------------------
    # Colors
    # ------------------------------------------------------------------

    def extract_color_palette(self, html: str, sources: str) -> ColorPalette:
        candidates: List[Tuple[str, str]] = []
        for match in _COLOR_DECL_RE.finditer(sources):
            candidates.append((match.group(2), match.group(1).lower()))
        for match in _COLOR_VAR_RE.finditer(sources):
            candidates.append((match.group(2), "variable"))
        candidates.extend(self._tailwind_colors(html))

        counts: Counter = Counter()
        properties: Dict[str, Counter] = defaultdict(Counter)
        for value, prop in candidates:
            color = normalize_color(value)
            if color is None:
                continue
            counts[color] += 1
            properties[color][prop] += 1

        ranked = [color for color, _count in counts.most_common()]
        palette = ColorPalette(
            primary_colors=ranked[:2],
            secondary_colors=ranked[2:4],
            all_extracted_colors=ranked[:MAX_REPORTED_COLORS],
            color_count=len(ranked),
        )
        for color in ranked[4:MAX_CATEGORIZED_COLORS]:
            dominant = properties[color].most_common(1)[0][0]
            if _is_text_tone(color) or dominant == "color":
                palette.text_colors.append(color)
            elif _is_background_tone(color) or dominant in ("background", "background-color"):
                palette.background_colors.append(color)
            else:
                palette.accent_colors.append(color)
        return palette

    @staticmethod
    def _tailwind_colors(html: str) -> List[Tuple[str, str]]:
        found = []
        for match in _CLASS_ATTR_RE.finditer(html):
            for token in (match.group(1) or match.group(2) or "").split():
                utility = _TAILWIND_COLOR_RE.match(token)
                if utility and utility.group(2) in TAILWIND_COLORS:
                    found.append((TAILWIND_COLORS[utility.group(2)], _TAILWIND_PROPERTIES[utility.group(1)]))
        return found

    # ------------------------------------------------------------------
    # Typography
    # ------------------------------------------------------------------

    def extract_typography(self, sources: str) -> Typography:
        families: List[str] = []
        raw_values = [m.group(1) for m in _FONT_FAMILY_RE.finditer(sources)]
        raw_values += [m.group(1) for m in _FONT_VAR_RE.finditer(sources)]
        raw_values += [m.group(1) for m in _FONT_JSON_RE.finditer(sources)]
        for raw in raw_values:
            for part in _VAR_CALL_RE.sub("", raw).split(","):
                name = _clean_font_name(part)
                if len(name) > 1 and name.lower() not in GENERIC_FONT_FAMILIES:
                    families.append(name)
        ranked_families = _ranked(families, MAX_FONT_FAMILIES)

        weights = []
        for match in _FONT_WEIGHT_RE.finditer(sources):
            weight = match.group(1).strip()
            if weight and "var(" not in weight and weight not in weights:
                weights.append(weight)

        sizes = []
        for match in _FONT_SIZE_RE.finditer(sources):
            value, unit = float(match.group(1)), match.group(2).lower()
            px = value if unit == "px" else value * 16
            sizes.append(round(px, 1))
        scale = sorted(_ranked(sizes, 10))

        return Typography(
            primary_font_family=ranked_families[0] if ranked_families else "Not found",
            secondary_font_family=ranked_families[1] if len(ranked_families) > 1 else "Not found",
            font_families_found=ranked_families,
            web_fonts=self.google_fonts(sources),
            font_weights_used=weights[:10],
            font_size_scale=[f"{size:g}px" for size in scale],
        )

    @staticmethod
    def google_fonts(sources: str) -> List[str]:
        fonts: List[str] = []
        for match in _GOOGLE_FONTS_RE.finditer(sources):
            query = urlparse(html_lib.unescape(match.group(0))).query
            for family in parse_qs(query).get("family", []):
                for entry in family.split("|"):
                    name = entry.split(":")[0].strip()
                    if len(name) > 1 and name not in fonts:
                        fonts.append(name)
        return fonts

    # ------------------------------------------------------------------
    # Logo and favicon
    # ------------------------------------------------------------------

    async def extract_logos(self, tree: HTMLParser, website_url: str) -> LogoAssets:
        company_id = company_identifier(website_url)
        assets = LogoAssets()

        logo_node = self._find_logo_image(tree)
        if logo_node is not None:
            src = self._safe_attr_text(logo_node, "src") or self._safe_attr_text(logo_node, "data-src")
            assets.main_logo = await self.download_asset(
                urljoin(website_url, html_lib.unescape(src)),
                "logo",
                company_id,
                alt_text=self._safe_attr_text(logo_node, "alt") or "Company Logo",
            )
        elif self._has_inline_svg_logo(tree):
            assets.main_logo = LogoAsset(asset_type="logo", status="inline_svg", alt_text="Company Logo")

        assets.favicon = await self.download_asset(
            self.favicon_url(tree, website_url),
            "favicon",
            company_id,
            alt_text="Favicon",
        )
        return assets

    def _find_logo_image(self, tree: HTMLParser) -> Optional[Node]:
        for img in tree.css("img"):
            src = self._safe_attr_text(img, "src") or self._safe_attr_text(img, "data-src")
            if not src:
                continue
            haystack = " ".join(self._safe_attr_text(img, key) for key in ("class", "src", "alt", "id")).lower()
            if "logo" in haystack:
                return img
        for img in tree.css("header img"):
            if self._safe_attr_text(img, "src") or self._safe_attr_text(img, "data-src"):
                return img
        return None

    def _has_inline_svg_logo(self, tree: HTMLParser) -> bool:
        for svg in tree.css("svg"):
            haystack = " ".join(self._safe_attr_text(svg, key) for key in ("class", "id", "aria-label")).lower()
            if "logo" in haystack:
                return True
        return False

    def favicon_url(self, tree: HTMLParser, website_url: str) -> str:
        preferred = None
        touch_icon = None
        for link in tree.css("link[rel][href]"):
            rel_tokens = self._safe_attr_text(link, "rel").lower().split()
            href = self._safe_attr_text(link, "href")
            if not href:
                continue
            if "icon" in rel_tokens and preferred is None:
                preferred = href
            elif "apple-touch-icon" in rel_tokens and touch_icon is None:
                touch_icon = href
        href = preferred or touch_icon or "/favicon.ico"
        return urljoin(website_url, html_lib.unescape(href))

    async def download_asset(self, url: str, asset_type: str, company_id: str, alt_text: str = "") -> LogoAsset:
        """Save the asset as ``<storage>/<company_id>/<asset_type><ext>``."""
        asset = LogoAsset(asset_type=asset_type, status="failed", original_url=url, alt_text=alt_text)
        if urlparse(url).scheme not in ("http", "https"):
            asset.error = "Unsupported asset URL"
            return asset

        try:
            response = await self.client.get(url, timeout=self.asset_timeout)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            asset.error = f"{type(exc).__name__}: {exc}"
            logger.debug("Asset download failed for %s: %s", url, asset.error)
            return asset

        content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
        extension = self._extension(url, content_type)
        target = self.storage_dir / company_id / f"{asset_type}{extension}"
        try:
            await asyncio.to_thread(self._store, target, response.content)
        except OSError as exc:
            asset.error = f"Storage failed: {exc}"
            logger.warning("Could not store %s for %s: %s", asset_type, company_id, exc)
            return asset

        self._log(f"Downloaded {asset_type}: {url} -> {target}")
        asset.status = "downloaded"
        asset.local_path = str(target)
        asset.file_size = len(response.content)
        asset.content_type = content_type
        asset.file_format = extension.lstrip(".")
        return asset

    @staticmethod
    def _store(target: Path, content: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

    @staticmethod
    def _extension(url: str, content_type: str) -> str:
        suffix = os.path.splitext(urlparse(url).path)[1].lower()
        if suffix in _ASSET_SUFFIXES:
            return ".jpg" if suffix == ".jpeg" else suffix
        for marker, extension in ASSET_EXTENSIONS.items():
            if marker in content_type:
                return extension
        return ".png"

    # ------------------------------------------------------------------
    # Visual patterns
    # ------------------------------------------------------------------

    def extract_visual_elements(self, tree: HTMLParser, sources: str) -> VisualElements:
        radii = [m.group(1).strip() for m in _BORDER_RADIUS_RE.finditer(sources)]
        shadows = [m.group(1).strip() for m in _BOX_SHADOW_RE.finditer(sources)]
        spacing = [
            token
            for m in _SPACING_RE.finditer(sources)
            for token in m.group(1).split()
            if token not in ("0", "!important")
        ]
        displays = [m.group(1).lower() for m in _DISPLAY_RE.finditer(sources)]
        positions = [m.group(1).lower() for m in _POSITION_RE.finditer(sources)]

        button_classes = []
        class_tokens = set()
        for node in tree.css("[class]"):
            tokens = self._safe_attr_text(node, "class").split()
            class_tokens.update(tokens)
            for token in tokens:
                if node.tag == "button" or "btn" in token.lower() or "button" in token.lower():
                    button_classes.append(token)

        return VisualElements(
            border_radius_patterns=_ranked([r for r in radii if r and "var(" not in r], 5),
            shadow_patterns=_ranked([s for s in shadows if s and s != "none" and "var(" not in s], 5),
            spacing_patterns=_ranked([s for s in spacing if "var(" not in s], 10),
            button_classes=_ranked(button_classes, 10),
            flexbox_usage="flex" in displays or "inline-flex" in displays or "flex" in class_tokens,
            grid_usage="grid" in displays or "inline-grid" in displays or "grid" in class_tokens,
            display_patterns=_ranked(displays, 10),
            position_patterns=_ranked(positions, 10),
        )
