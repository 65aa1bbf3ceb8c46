import re

from siteintel.services.crawler.models import TextLine
from siteintel.services.crawler.text_pipeline import (
    TextExtractionPipeline,
    compute_statistics,
    extract_clean_text,
    extract_page_title,
    truncate_text,
)

NAV_MAIN_FOOTER = (
    "<nav>Home About</nav>"
    "<main><h1>Acme makes widgets</h1>"
    "<p>We help 500 clients save $10,000/year.</p></main>"
    "<footer>Home About</footer>"
)


def test_navigation_and_footer_are_suppressed_statistically():
    text = extract_clean_text(NAV_MAIN_FOOTER)

    assert text == "Acme makes widgets\nWe help 500 clients save $10,000/year."


def test_extraction_is_idempotent():
    html = "<div><h2>Pricing</h2><p>Plans start at $49 per month, billed yearly.</p></div>" * 3
    assert extract_clean_text(html) == extract_clean_text(html)


def test_output_is_bounded_and_free_of_markup():
    paragraphs = "".join(
        f"<p>Customer {i} reported a {i % 7 + 2}x faster rollout after adopting our <b>platform</b>.</p>"
        for i in range(1500)
    )
    html = f"<html><body><script>var x = '<b>tag</b>';</script>{paragraphs}</body></html>"

    text = extract_clean_text(html)

    assert text
    assert len(text) <= 15000
    assert len(text) <= len(html)
    assert not re.search(r"<[^<>]+>", text)
    assert "var x" not in text


def test_short_html_never_grows():
    html = "<p>Hi &amp; bye.</p>"
    assert len(extract_clean_text(html)) <= len(html)


def test_skip_footer_nav_removes_boilerplate_blocks():
    html = (
        "<nav><p>Products, pricing and careers for everyone.</p></nav>"
        "<p>Our platform helps teams ship faster, with fewer bugs.</p>"
        "<footer><p>Copyright 2024 Acme Inc. All rights reserved.</p></footer>"
    )

    kept = extract_clean_text(html)
    skipped = extract_clean_text(html, skip_footer_nav=True)

    assert "Copyright 2024" in kept
    assert "Copyright 2024" not in skipped
    assert "Products, pricing" not in skipped
    assert "Our platform helps teams ship faster, with fewer bugs." in skipped


def test_entities_and_emphasis_are_resolved():
    html = "<p>Fish &amp; chips &mdash; <strong>fresh</strong> daily, since 1999&#33;</p>"

    text = extract_clean_text(html)

    assert "Fish & chips - fresh daily, since 1999" in text
    assert "&" in text
    assert "⟦" not in text


def test_escaped_angle_brackets_keep_the_text_between_them():
    html = "<p>Plans cost &lt; $10 per month and support &gt; 500 users, everywhere.</p>"

    text = extract_clean_text(html)

    assert text == "Plans cost ‹ $10 per month and support › 500 users, everywhere."
    assert "<" not in text and ">" not in text
    assert "\ue000" not in text


def test_custom_scorers_replace_default_filtering():
    text = extract_clean_text(NAV_MAIN_FOOTER, scorers=[lambda line, stats: 1.0])

    assert text.count("Home About") == 2
    assert "Acme makes widgets" in text


def test_reconstruct_repairs_tag_stripping_artifacts():
    pipeline = TextExtractionPipeline()

    assert pipeline.reconstruct("Plans from $ 49 per month , billed yearly .") == (
        "Plans from $49 per month, billed yearly."
    )
    assert pipeline.reconstruct("Save 20 % today") == "Save 20% today"
    assert pipeline.reconstruct("We don ' t stop") == "We don't stop"
    assert pipeline.reconstruct("Fast.Reliable everywhere") == "Fast. Reliable everywhere"
    assert pipeline.reconstruct("ourTeam builds tools") == "our Team builds tools"
    assert pipeline.reconstruct("red,green and blue") == "red, green and blue"


def test_reconstruct_drops_excessively_repeated_tokens():
    pipeline = TextExtractionPipeline()
    lines = "\n".join(f"Login feature{i} works great" for i in range(10))

    result = pipeline.reconstruct(lines)

    assert "Login" not in result
    assert "great" not in result
    assert "feature3" in result


def test_statistics_drive_adaptive_threshold():
    repetitive = [TextLine("buy now buy now") for _ in range(25)]
    stats = compute_statistics(repetitive)
    assert stats.line_count == 25
    assert stats.avg_words_per_line == 4
    assert stats.information_threshold == 0.3

    varied = [
        TextLine("Acme builds reliable industrial widgets for fast growing manufacturing teams worldwide today"),
        TextLine("Founded in Berlin during 2015 by two engineers who previously scaled logistics software"),
    ]
    stats = compute_statistics(varied)
    assert stats.lexical_diversity > 0.6
    assert stats.avg_words_per_line > 12
    assert stats.information_threshold == 0.1


def test_truncate_prefers_sentence_then_word_boundary():
    assert truncate_text("One. Two three. Four five six", 20) == "One. Two three."
    assert truncate_text("alpha beta gamma", 12) == "alpha beta"
    assert truncate_text("short", 100) == "short"


def test_pipeline_failure_falls_back_to_minimal_extraction(monkeypatch):
    def boom(self, text):
        raise ValueError("broken phase")

    monkeypatch.setattr(TextExtractionPipeline, "filter_lines", boom)

    text = extract_clean_text("<p>Hello <b>world</b></p><script>track()</script>")

    assert text == "Hello world"


def test_extract_page_title():
    assert extract_page_title("<html><head><title> Acme | Widgets </title></head></html>") == "Acme | Widgets"
    assert extract_page_title("<p>No title</p>") == ""
