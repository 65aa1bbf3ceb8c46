import asyncio
from pathlib import Path

import httpx
import respx

from siteintel.services.crawler.design import DesignAssetExtractor, company_identifier, normalize_color
from siteintel.services.crawler.session import CrawlSession

SITE = "https://acme.test/"

HOMEPAGE = """<html><head>
<link rel="stylesheet" href="/styles/main.css">
<link rel="icon" href="/static/favicon.png">
<link href="https://fonts.googleapis.com/css2?family=Inter:wght@400;700&amp;family=Roboto+Mono&amp;display=swap" rel="stylesheet">
<style>
:root { --brand-primary: #1A73E8; --font-heading: 'Poppins', sans-serif; }
body { font-family: "Inter", Arial, sans-serif; color: #333; background-color: #FFF; font-size: 1rem; }
h1 { font-size: 32px; font-weight: 700; }
.card { border-radius: 8px; box-shadow: 0 1px 2px rgba(0,0,0,0.1); padding: 16px 24px; display: flex; }
</style></head>
<body>
<header><img class="site-logo" src="/img/logo.svg" alt="Acme logo"></header>
<div class="bg-blue-500 text-gray-700" style="color: #1a73e8; position: relative">Hi</div>
<button class="btn btn-primary">Start</button>
</body></html>"""

MAIN_CSS = """a { color: #ff5722; }
.x { background: rgb(255 255 255/var(--tw-bg-opacity)); }
.y { color: #ff5722; }
"""


def _mock_assets(router):
    router.get("https://acme.test/styles/main.css").mock(
        return_value=httpx.Response(200, text=MAIN_CSS, headers={"content-type": "text/css"})
    )
    logo = router.get("https://acme.test/img/logo.svg").mock(
        return_value=httpx.Response(200, content=b"<svg></svg>", headers={"content-type": "image/svg+xml"})
    )
    router.get("https://acme.test/static/favicon.png").mock(
        return_value=httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"})
    )
    router.route().mock(return_value=httpx.Response(404))
    return logo


def _extract(html, storage_dir, session=None):
    async def run():
        async with httpx.AsyncClient() as client:
            extractor = DesignAssetExtractor(client, storage_dir)
            if session is None:
                return await extractor.extract(html, SITE)
            return await extractor.extract_cached(session, html, SITE)

    return asyncio.run(run())


def test_full_design_extraction(tmp_path):
    with respx.mock(assert_all_called=False) as router:
        _mock_assets(router)
        assets = _extract(HOMEPAGE, tmp_path)

    palette = assets.color_palette
    assert palette.primary_colors == ["#1a73e8", "#ff5722"]
    assert palette.secondary_colors == ["#333333", "#ffffff"]
    assert "rgb(255, 255, 255)" in palette.background_colors
    assert "#3b82f6" in palette.background_colors
    assert palette.text_colors == ["#6b7280"]
    assert palette.color_count == 7
    assert not any("var(" in color for color in palette.all_extracted_colors)

    typography = assets.typography
    assert typography.primary_font_family == "Inter"
    assert typography.secondary_font_family == "Arial"
    assert "Poppins" in typography.font_families_found
    assert "sans-serif" not in typography.font_families_found
    assert typography.web_fonts == ["Inter", "Roboto Mono"]
    assert typography.font_weights_used == ["700"]
    assert typography.font_size_scale == ["16px", "32px"]

    logo = assets.logo_assets.main_logo
    assert logo.status == "downloaded"
    assert logo.original_url == "https://acme.test/img/logo.svg"
    assert logo.file_format == "svg"
    assert logo.alt_text == "Acme logo"
    assert Path(logo.local_path) == tmp_path / "acme_test" / "logo.svg"
    assert Path(logo.local_path).read_bytes() == b"<svg></svg>"

    favicon = assets.logo_assets.favicon
    assert favicon.status == "downloaded"
    assert Path(favicon.local_path) == tmp_path / "acme_test" / "favicon.png"

    visual = assets.visual_elements
    assert visual.border_radius_patterns == ["8px"]
    assert visual.shadow_patterns == ["0 1px 2px rgba(0,0,0,0.1)"]
    assert visual.spacing_patterns == ["16px", "24px"]
    assert visual.flexbox_usage is True
    assert visual.grid_usage is False
    assert visual.position_patterns == ["relative"]
    assert visual.button_classes == ["btn", "btn-primary"]

    metadata = assets.extraction_metadata
    assert metadata["css_files_fetched"] == 1
    assert metadata["source_url"] == SITE
    assert metadata["cached"] is False


def test_inline_svg_logo_and_default_favicon(tmp_path):
    html = "<html><body><svg class='logo-mark'><path d='M0 0'/></svg><p>Hello</p></body></html>"

    with respx.mock(assert_all_called=False) as router:
        router.route().mock(return_value=httpx.Response(404))
        assets = _extract(html, tmp_path)

    assert assets.logo_assets.main_logo.status == "inline_svg"
    favicon = assets.logo_assets.favicon
    assert favicon.status == "failed"
    assert favicon.original_url == "https://acme.test/favicon.ico"
    assert assets.color_palette.primary_colors == []
    assert assets.typography.primary_font_family == "Not found"


def test_storage_failure_marks_asset_failed(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")

    with respx.mock(assert_all_called=False) as router:
        _mock_assets(router)
        assets = _extract(HOMEPAGE, blocker)

    logo = assets.logo_assets.main_logo
    assert logo.status == "failed"
    assert logo.error.startswith("Storage failed")
    assert assets.color_palette.color_count == 7


def test_extraction_is_cached_per_session(tmp_path):
    session = CrawlSession(website_url=SITE)

    with respx.mock(assert_all_called=False) as router:
        logo = _mock_assets(router)
        first = _extract(HOMEPAGE, tmp_path, session=session)
        second = _extract(HOMEPAGE, tmp_path, session=session)

    assert first.extraction_metadata["cached"] is False
    assert second.extraction_metadata["cached"] is True
    assert second.color_palette == first.color_palette
    assert logo.call_count == 1
    assert "acme_test" in session.design_assets
    events = [entry["event"] for entry in session.diagnostics]
    assert events == ["design_assets_extracted", "design_assets_cache_hit"]


def test_normalize_color():
    assert normalize_color("#FFF") == "#ffffff"
    assert normalize_color("#1A73E8") == "#1a73e8"
    assert normalize_color("#12345") is None
    assert normalize_color("var(--brand)") is None
    assert normalize_color("rgb(10,20,30)") == "rgb(10, 20, 30)"
    assert normalize_color("rgba(0, 0, 0, .5)") == "rgba(0, 0, 0, .5)"
    assert normalize_color("rgb(300, 0, 0)") is None
    assert normalize_color("rgb(255255255/var(--tw))") is None
    assert normalize_color("hsl(210, 50%, 40%)") == "hsl(210, 50%, 40%)"
    assert normalize_color("red") is None


def test_company_identifier():
    assert company_identifier("https://www.acme.co.uk/x") == "acme_co_uk"
    assert company_identifier("") == "unknown_company"


def test_malformed_stylesheet_href_is_skipped(tmp_path):
    html = HOMEPAGE.replace(
        '<link rel="icon"',
        '<link rel="stylesheet" href="http://[broken/site.css">\n<link rel="icon"',
    )

    with respx.mock(assert_all_called=False) as router:
        _mock_assets(router)
        assets = _extract(html, tmp_path)

    assert assets.extraction_metadata["css_files_fetched"] == 1
    assert assets.color_palette.primary_colors == ["#1a73e8", "#ff5722"]
    assert assets.logo_assets.main_logo.status == "downloaded"
