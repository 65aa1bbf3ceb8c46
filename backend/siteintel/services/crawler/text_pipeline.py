"""HTML to clean business text in five phases.

1. Structural normalization - drop non-content blocks, decode entities
2. Semantic role mapping - tags become sentinel markers, then spaces
3. Statistical filtering - score lines against adaptive document statistics
4. Linguistic reconstruction - repair tag-stripping artifacts, drop chrome tokens
5. Optimization - whitespace cleanup and length cap

There is no keyword blocklist anywhere: navigation and boilerplate are
suppressed by line statistics and structural roles only.
"""

import logging
import re
from collections import Counter
from typing import Callable, Iterable, List, Optional, Sequence

from selectolax.parser import HTMLParser

from .models import DocumentStatistics, TextLine
from .constants import (
    ANGLE_BRACKET_REPLACEMENTS,
    ALL_MARKERS,
    BASE_INFORMATION_THRESHOLD,
    BLOCK_TAGS,
    BOILERPLATE_CLOSE_MARKER,
    BOILERPLATE_OPEN_MARKER,
    BOILERPLATE_PENALTY,
    BOILERPLATE_TAGS,
    CELL_MARKER,
    CHAR_COUNT_DIVISOR,
    CLAUSE_SEPARATOR_BONUS,
    CURRENCY_BONUS,
    DIGIT_BONUS,
    EMPHASIS_MARKER,
    EMPHASIS_TAGS,
    ENTITY_MAP,
    FALLBACK_TEXT_CHARS,
    HEADING_BONUS,
    HEADING_MARKER,
    HEADING_TAGS,
    HIGH_LEXICAL_DIVERSITY,
    LIST_ITEM_BONUS,
    LIST_MARKER,
    LONG_LINE_WORDS,
    MAX_CHAR_COUNT_BONUS,
    MAX_CLEAN_TEXT_CHARS,
    MAX_WORD_COUNT_BONUS,
    MEAN_FREQUENCY_MULTIPLIER,
    MIN_INFORMATION_THRESHOLD,
    MIN_REPEAT_THRESHOLD,
    NON_CONTENT_TAGS,
    PERCENT_BONUS,
    QUOTE_BONUS,
    REPETITION_MIN_WORDS,
    REPETITION_PENALTY,
    REPETITION_UNIQUE_RATIO,
    SECTION_MARKER,
    SECTION_TAGS,
    SENTENCE_PUNCTUATION_BONUS,
    SHORT_DOCUMENT_LINES,
    SINGLE_WORD_PENALTY,
    TABLE_MARKER,
    THRESHOLD_ADJUSTMENT,
    TOKEN_SHARE_THRESHOLD,
    WORD_COUNT_DIVISOR,
)

logger = logging.getLogger(__name__)

LineScorer = Callable[[TextLine, DocumentStatistics], float]


def _block_re(tags: Iterable[str], to_end_if_unclosed: bool = False) -> re.Pattern:
    alternatives = "|".join(tags)
    closing = r"(?:</\1\s*>|$)" if to_end_if_unclosed else r"</\1\s*>"
    return re.compile(
        rf"<({alternatives})\b(?:[^>]*/>|[^>]*>.*?{closing})",
        re.IGNORECASE | re.DOTALL,
    )


def _open_re(tags: Iterable[str]) -> re.Pattern:
    return re.compile(rf"<(?:{'|'.join(tags)})\b[^>]*>", re.IGNORECASE)


def _close_re(tags: Iterable[str]) -> re.Pattern:
    return re.compile(rf"</(?:{'|'.join(tags)})\s*>", re.IGNORECASE)


def _any_re(tags: Iterable[str]) -> re.Pattern:
    return re.compile(rf"</?(?:{'|'.join(tags)})\b[^>]*>", re.IGNORECASE)


_COMMENT_RE = re.compile(r"<!--.*?(?:-->|$)", re.DOTALL)
_NON_CONTENT_RE = _block_re(NON_CONTENT_TAGS, to_end_if_unclosed=True)
_BOILERPLATE_BLOCK_RE = _block_re(BOILERPLATE_TAGS)
_ENTITY_RE = re.compile(r"&(#[xX][0-9a-fA-F]+|#\d+|[a-zA-Z][a-zA-Z0-9]*);")

_HEADING_OPEN_RE = _open_re(HEADING_TAGS)
_HEADING_CLOSE_RE = _close_re(HEADING_TAGS)
_BOILERPLATE_OPEN_RE = _open_re(BOILERPLATE_TAGS)
_BOILERPLATE_CLOSE_RE = _close_re(BOILERPLATE_TAGS)
_SECTION_RE = _any_re(SECTION_TAGS)
_LIST_ITEM_RE = _open_re(["li"])
_ROW_RE = _open_re(["tr"])
_CELL_RE = _open_re(["td", "th"])
_EMPHASIS_RE = _any_re(EMPHASIS_TAGS)
_BLOCK_TAG_RE = _any_re(BLOCK_TAGS + ["li", "tr", "td", "th"])
_TAG_RE = re.compile(r"<[^<>]+>")

_SENTENCE_END_RE = re.compile(r"[.!?][\"')\]]*(?=\s|$)")
_CLAUSE_RE = re.compile(r"[,;:]")
_QUOTE_RE = re.compile(r"[\"“”«»]")
_DIGIT_RE = re.compile(r"\d")
_CURRENCY_RE = re.compile(r"[$€£¥]")
_NON_WORD_RE = re.compile(r"[^\w]", re.UNICODE)

_CURRENCY_GAP_RE = re.compile(r"([$€£¥])\s+(?=\d)")
_GLUED_CURRENCY_RE = re.compile(r"(?<=[A-Za-z])(?=[$€£¥]\d)")
_PERCENT_GAP_RE = re.compile(r"(?<=\d)\s+%")
_GLUED_PERCENT_RE = re.compile(r"%(?=[A-Za-z])")
_SPACE_BEFORE_PUNCT_RE = re.compile(r"\s+([,;:!?]|\.(?!\d))")
_GLUED_SENTENCE_RE = re.compile(r"(?<=[a-z0-9])([.!?])(?=[A-Z][a-z])")
_GLUED_COMMA_RE = re.compile(r"(?<=[A-Za-z]),(?=[A-Za-z])")
_CONTRACTION_RE = re.compile(r"(\w)\s*(['’])\s*(s|t|re|ve|ll|d|m)\b", re.IGNORECASE)
_GLUED_WORDS_RE = re.compile(r"\b([a-z]{2,4})([A-Z][a-z]{2,})\b")

_INLINE_WS_RE = re.compile(r"[ \t\r\f\v ]+")
_WS_RE = re.compile(r"\s+")
_ANGLE_TABLE = str.maketrans(ANGLE_BRACKET_REPLACEMENTS)


def _normalize_word(token: str) -> str:
    return _NON_WORD_RE.sub("", token.lower())


def _strip_markers(text: str) -> str:
    text = text.replace(EMPHASIS_MARKER, "")
    for marker in ALL_MARKERS:
        text = text.replace(marker, " ")
    return text


# ---------------------------------------------------------------------------
# Line scorers: score(line, stats) -> float, summed and clamped to [0, 1]
# ---------------------------------------------------------------------------

def score_length(line: TextLine, stats: DocumentStatistics) -> float:
    words = len(line.text.split())
    return (
        min(words / WORD_COUNT_DIVISOR, MAX_WORD_COUNT_BONUS)
        + min(len(line.text) / CHAR_COUNT_DIVISOR, MAX_CHAR_COUNT_BONUS)
    )


def score_punctuation(line: TextLine, stats: DocumentStatistics) -> float:
    score = 0.0
    if _SENTENCE_END_RE.search(line.text):
        score += SENTENCE_PUNCTUATION_BONUS
    if _CLAUSE_RE.search(line.text):
        score += CLAUSE_SEPARATOR_BONUS
    if _QUOTE_RE.search(line.text):
        score += QUOTE_BONUS
    return score


def score_numeric(line: TextLine, stats: DocumentStatistics) -> float:
    score = 0.0
    if _DIGIT_RE.search(line.text):
        score += DIGIT_BONUS
    if _CURRENCY_RE.search(line.text):
        score += CURRENCY_BONUS
    if "%" in line.text:
        score += PERCENT_BONUS
    return score


def score_structure(line: TextLine, stats: DocumentStatistics) -> float:
    if line.role == "heading":
        return HEADING_BONUS
    if line.role == "list":
        return LIST_ITEM_BONUS
    if line.role == "boilerplate":
        return -BOILERPLATE_PENALTY
    return 0.0


def score_noise(line: TextLine, stats: DocumentStatistics) -> float:
    if not any(ch.isalnum() for ch in line.text):
        return -1.0
    words = line.text.split()
    penalty = 0.0
    if len(words) == 1:
        penalty -= SINGLE_WORD_PENALTY
    if len(words) > REPETITION_MIN_WORDS:
        normalized = [_normalize_word(word) for word in words]
        if len(set(normalized)) / len(normalized) < REPETITION_UNIQUE_RATIO:
            penalty -= REPETITION_PENALTY
    return penalty


DEFAULT_SCORERS: Sequence[LineScorer] = (
    score_length,
    score_punctuation,
    score_numeric,
    score_structure,
    score_noise,
)


def score_line(
    line: TextLine,
    stats: DocumentStatistics,
    scorers: Sequence[LineScorer] = DEFAULT_SCORERS,
) -> float:
    """Information score of a line in [0, 1]."""
    total = sum(scorer(line, stats) for scorer in scorers)
    return min(1.0, max(0.0, total))


def compute_statistics(lines: Sequence[TextLine]) -> DocumentStatistics:
    """Document statistics and the adaptive information threshold."""
    line_count = len(lines)
    words = [word for line in lines for word in line.text.split()]
    normalized = [word for word in (_normalize_word(w) for w in words) if word]

    avg_words = len(words) / line_count if line_count else 0.0
    avg_chars = sum(len(line.text) for line in lines) / line_count if line_count else 0.0
    diversity = len(set(normalized)) / len(normalized) if normalized else 0.0

    threshold = BASE_INFORMATION_THRESHOLD
    if diversity > HIGH_LEXICAL_DIVERSITY:
        threshold -= THRESHOLD_ADJUSTMENT
    if avg_words > LONG_LINE_WORDS:
        threshold -= THRESHOLD_ADJUSTMENT
    if line_count < SHORT_DOCUMENT_LINES:
        threshold -= THRESHOLD_ADJUSTMENT
    threshold = max(MIN_INFORMATION_THRESHOLD, round(threshold, 4))

    return DocumentStatistics(
        line_count=line_count,
        word_count=len(words),
        avg_words_per_line=avg_words,
        avg_chars_per_line=avg_chars,
        lexical_diversity=diversity,
        information_threshold=threshold,
    )


def truncate_text(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` chars at the last sentence, else word, boundary."""
    if len(text) <= limit:
        return text
    if limit <= 0:
        return ""

    window = text[:limit]
    cut = 0
    for match in _SENTENCE_END_RE.finditer(window):
        end = match.end()
        if end < len(window) or text[end:end + 1].isspace():
            cut = end
    if cut:
        return window[:cut].rstrip()

    space = max(window.rfind(" "), window.rfind("\n"))
    if space > 0:
        return window[:space].rstrip()
    return window


def minimal_fallback_text(html: str) -> str:
    """Last-resort extraction: strip script/style and tags, collapse whitespace."""
    text = re.sub(r"<(script|style)\b[^>]*>.*?(?:</\1\s*>|$)", " ", html or "", flags=re.IGNORECASE | re.DOTALL)
    text = _TAG_RE.sub(" ", text)
    text = _WS_RE.sub(" ", text).strip()
    return text[:FALLBACK_TEXT_CHARS]


def extract_page_title(html: str) -> str:
    """Text of the first ``<title>``, or empty string."""
    try:
        node = HTMLParser(html or "").css_first("title")
        if node is None:
            return ""
        text = node.text(strip=True)
    except Exception:
        return ""
    return _WS_RE.sub(" ", str(text or "")).strip()


class TextExtractionPipeline:
    """Turns raw HTML into clean business prose."""

    def __init__(
        self,
        scorers: Optional[Sequence[LineScorer]] = None,
        max_chars: int = MAX_CLEAN_TEXT_CHARS,
    ):
        self.scorers = tuple(scorers) if scorers is not None else DEFAULT_SCORERS
        self.max_chars = max_chars

    def extract(self, html: str, *, skip_footer_nav: bool = False) -> str:
        """Run all five phases; never raises."""
        source = html or ""
        try:
            text = self.normalize_structure(source, skip_footer_nav=skip_footer_nav)
            text = self.map_semantic_roles(text)
            text = self.filter_lines(text)
            text = self.reconstruct(text)
            return self.optimize(text, limit=min(self.max_chars, len(source)))
        except Exception as exc:
            logger.warning("Clean text extraction failed, using minimal fallback: %s", exc, exc_info=True)
            return minimal_fallback_text(source)

    # Phase 1 ---------------------------------------------------------------

    def normalize_structure(self, html: str, skip_footer_nav: bool = False) -> str:
        text = _COMMENT_RE.sub(" ", html)
        text = _NON_CONTENT_RE.sub(" ", text)
        if skip_footer_nav:
            text = _BOILERPLATE_BLOCK_RE.sub(" ", text)
        return _ENTITY_RE.sub(self._decode_entity, text)

    @staticmethod
    def _decode_entity(match: re.Match) -> str:
        return ENTITY_MAP.get(match.group(1).lower(), " ")

    # Phase 2 ---------------------------------------------------------------

    def map_semantic_roles(self, text: str) -> str:
        text = _HEADING_OPEN_RE.sub(f"\n{HEADING_MARKER} ", text)
        text = _HEADING_CLOSE_RE.sub("\n", text)
        text = _BOILERPLATE_OPEN_RE.sub(f"\n{BOILERPLATE_OPEN_MARKER}\n", text)
        text = _BOILERPLATE_CLOSE_RE.sub(f"\n{BOILERPLATE_CLOSE_MARKER}\n", text)
        text = _SECTION_RE.sub(f"\n{SECTION_MARKER}\n", text)
        text = _LIST_ITEM_RE.sub(f"\n{LIST_MARKER} ", text)
        text = _ROW_RE.sub(f"\n{TABLE_MARKER} ", text)
        text = _CELL_RE.sub(f" {CELL_MARKER} ", text)
        text = _EMPHASIS_RE.sub(EMPHASIS_MARKER, text)
        text = _BLOCK_TAG_RE.sub("\n", text)
        return _TAG_RE.sub(" ", text)

    # Phase 3 ---------------------------------------------------------------

    def classify_lines(self, text: str) -> List[TextLine]:
        """Split into content lines tagged with their structural role."""
        lines: List[TextLine] = []
        boilerplate_depth = 0
        for raw in text.split("\n"):
            stripped = raw.strip()
            if not stripped:
                continue
            if stripped == BOILERPLATE_OPEN_MARKER:
                boilerplate_depth += 1
                continue
            if stripped == BOILERPLATE_CLOSE_MARKER:
                boilerplate_depth = max(0, boilerplate_depth - 1)
                continue

            if stripped.startswith(HEADING_MARKER):
                role = "heading"
            elif stripped.startswith(LIST_MARKER):
                role = "list"
            elif stripped.startswith(TABLE_MARKER) or CELL_MARKER in stripped:
                role = "table"
            else:
                role = "body"
            if boilerplate_depth:
                role = "boilerplate"

            content = _WS_RE.sub(" ", _strip_markers(stripped)).strip()
            if content:
                lines.append(TextLine(text=content, role=role))
        return lines

    def filter_lines(self, text: str) -> str:
        lines = self.classify_lines(text)
        if not lines:
            return ""
        stats = compute_statistics(lines)
        kept = [
            line for line in lines
            if score_line(line, stats, self.scorers) > stats.information_threshold
        ]
        return "\n".join(self._render(line) for line in kept)

    @staticmethod
    def _render(line: TextLine) -> str:
        if line.role == "heading":
            return f"{HEADING_MARKER} {line.text}"
        if line.role == "list":
            return f"{LIST_MARKER} {line.text}"
        return line.text

    # Phase 4 ---------------------------------------------------------------

    def reconstruct(self, text: str) -> str:
        lines = [self._repair(line) for line in _strip_markers(text).split("\n")]
        return self._drop_repeated_tokens(lines)

    @staticmethod
    def _repair(line: str) -> str:
        line = _CURRENCY_GAP_RE.sub(r"\1", line)
        line = _GLUED_CURRENCY_RE.sub(" ", line)
        line = _PERCENT_GAP_RE.sub("%", line)
        line = _GLUED_PERCENT_RE.sub("% ", line)
        line = _SPACE_BEFORE_PUNCT_RE.sub(r"\1", line)
        line = _GLUED_SENTENCE_RE.sub(r"\1 ", line)
        line = _GLUED_COMMA_RE.sub(", ", line)
        line = _CONTRACTION_RE.sub(r"\1\2\3", line)
        return _GLUED_WORDS_RE.sub(r"\1 \2", line)

    @staticmethod
    def _drop_repeated_tokens(lines: List[str]) -> str:
        tokens = [token for line in lines for token in line.split()]
        counts = Counter(word for word in (_normalize_word(t) for t in tokens) if word)
        if not counts:
            return "\n".join(lines)

        mean_frequency = sum(counts.values()) / len(counts)
        threshold = max(
            MIN_REPEAT_THRESHOLD,
            MEAN_FREQUENCY_MULTIPLIER * mean_frequency,
            TOKEN_SHARE_THRESHOLD * len(tokens),
        )
        excessive = {word for word, count in counts.items() if count > threshold}
        if not excessive:
            return "\n".join(lines)

        rebuilt = []
        for line in lines:
            kept = [token for token in line.split() if _normalize_word(token) not in excessive]
            rebuilt.append(" ".join(kept))
        return "\n".join(rebuilt)

    # Phase 5 ---------------------------------------------------------------

    def optimize(self, text: str, limit: Optional[int] = None) -> str:
        text = _TAG_RE.sub(" ", text)
        text = text.translate(_ANGLE_TABLE)
        lines = (_INLINE_WS_RE.sub(" ", line).strip() for line in text.split("\n"))
        text = "\n".join(line for line in lines if line)
        return truncate_text(text, self.max_chars if limit is None else limit)


_default_pipeline = TextExtractionPipeline()


def extract_clean_text(
    html: str,
    *,
    skip_footer_nav: bool = False,
    scorers: Optional[Sequence[LineScorer]] = None,
) -> str:
    """Clean business text for ``html``; never raises."""
    pipeline = _default_pipeline if scorers is None else TextExtractionPipeline(scorers=scorers)
    return pipeline.extract(html, skip_footer_nav=skip_footer_nav)
