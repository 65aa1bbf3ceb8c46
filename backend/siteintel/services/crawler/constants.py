"""Constants for the website crawler.

The scoring and threshold numbers are empirical. Tune them here rather than
in the pipeline code.
"""

# Browser-like identity for every fetch
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

# Content types a page fetch accepts (empty content type is accepted too)
HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml", "application/xml", "text/xml", "text/plain")

# ---------------------------------------------------------------------------
# Text extraction pipeline
# ---------------------------------------------------------------------------

# Blocks removed wholesale in phase 1
NON_CONTENT_TAGS = ["script", "style", "noscript", "svg", "canvas", "iframe"]

# Removed only for same-domain secondary pages
BOILERPLATE_TAGS = ["footer", "nav"]

# Escaped angle brackets: placeholders until phase 5 strips tags, then guillemets
LT_PLACEHOLDER = "\ue000"
GT_PLACEHOLDER = "\ue001"
ANGLE_BRACKET_REPLACEMENTS = {LT_PLACEHOLDER: "‹", GT_PLACEHOLDER: "›"}

# Fixed entity set; anything else becomes a single space
ENTITY_MAP = {
    "nbsp": " ",
    "amp": "&",
    "lt": LT_PLACEHOLDER,
    "gt": GT_PLACEHOLDER,
    "quot": '"',
    "apos": "'",
    "#39": "'",
    "#x27": "'",
    "#160": " ",
    "rsquo": "'",
    "lsquo": "'",
    "rdquo": '"',
    "ldquo": '"',
    "ndash": "-",
    "mdash": "-",
    "hellip": "...",
    "copy": "(c)",
    "reg": "(r)",
    "trade": "(tm)",
    "euro": "€",
    "pound": "£",
    "yen": "¥",
    "cent": "¢",
}

# Sentinel markers written by the role mapper and stripped by the reconstructor
HEADING_MARKER = "⟦H⟧"
SECTION_MARKER = "⟦S⟧"
BOILERPLATE_OPEN_MARKER = "⟦N⟧"
BOILERPLATE_CLOSE_MARKER = "⟦/N⟧"
LIST_MARKER = "⟦L⟧"
TABLE_MARKER = "⟦T⟧"
CELL_MARKER = "⟦C⟧"
EMPHASIS_MARKER = "⟦E⟧"

ALL_MARKERS = [
    HEADING_MARKER,
    SECTION_MARKER,
    BOILERPLATE_OPEN_MARKER,
    BOILERPLATE_CLOSE_MARKER,
    LIST_MARKER,
    TABLE_MARKER,
    CELL_MARKER,
    EMPHASIS_MARKER,
]

HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
SECTION_TAGS = ["section", "article", "main", "header", "aside"]
EMPHASIS_TAGS = ["strong", "b", "em", "i", "mark", "u"]
BLOCK_TAGS = [
    "p", "div", "br", "hr", "ul", "ol", "dl", "dt", "dd", "table", "thead",
    "tbody", "tfoot", "form", "blockquote", "pre", "figure", "figcaption",
    "address", "body", "html", "title",
]

# Adaptive information threshold
BASE_INFORMATION_THRESHOLD = 0.3
MIN_INFORMATION_THRESHOLD = 0.1
THRESHOLD_ADJUSTMENT = 0.1
HIGH_LEXICAL_DIVERSITY = 0.6
LONG_LINE_WORDS = 12
SHORT_DOCUMENT_LINES = 20

# Line scorer weights
WORD_COUNT_DIVISOR = 20.0
MAX_WORD_COUNT_BONUS = 0.3
CHAR_COUNT_DIVISOR = 200.0
MAX_CHAR_COUNT_BONUS = 0.15
SENTENCE_PUNCTUATION_BONUS = 0.2
CLAUSE_SEPARATOR_BONUS = 0.1
QUOTE_BONUS = 0.05
DIGIT_BONUS = 0.05
CURRENCY_BONUS = 0.1
PERCENT_BONUS = 0.05
HEADING_BONUS = 0.2
LIST_ITEM_BONUS = 0.05
BOILERPLATE_PENALTY = 0.3
SINGLE_WORD_PENALTY = 0.3
REPETITION_PENALTY = 0.3
REPETITION_UNIQUE_RATIO = 0.5
REPETITION_MIN_WORDS = 3

# Repeated-token removal
MIN_REPEAT_THRESHOLD = 5
MEAN_FREQUENCY_MULTIPLIER = 3
TOKEN_SHARE_THRESHOLD = 0.05

# Output caps
MAX_CLEAN_TEXT_CHARS = 15000
FALLBACK_TEXT_CHARS = 8000

# ---------------------------------------------------------------------------
# Links and page selection
# ---------------------------------------------------------------------------

MAX_LINK_TEXT_CHARS = 100
MAX_SELECTED_PAGES = 10

# Checked in order; first match wins, default "other"
LINK_CATEGORY_PATTERNS = {
    "legal": r"/(?:privacy|terms|legal|cookies?|gdpr|disclaimer|imprint)(?:[/\-_.?]|$)",
    "about": r"/(?:about|company|team|who-we-are|our-story|leadership|mission|careers?)(?:[/\-_.?]|$)",
    "pricing": r"/(?:pricing|plans?|prices?|packages?)(?:[/\-_.?]|$)",
    "product": r"/(?:products?|features?|solutions?|services?|platform|integrations?)(?:[/\-_.?]|$)",
    "support": r"/(?:support|help|faq|contact|docs?|documentation)(?:[/\-_.?]|$)",
    "content": r"/(?:blog|news|articles?|resources?|case-stud(?:y|ies)|customers?|insights|press|stories)(?:[/\-_.?]|$)",
}

# Links serialized into the selection prompt
MAX_LINKS_FOR_SELECTION = 150

# ---------------------------------------------------------------------------
# Cross-page deduplication
# ---------------------------------------------------------------------------

FOOTER_OVERLAP_RATIO = 0.8
MAX_PAGE_LINKS_LISTED = 40

# ---------------------------------------------------------------------------
# Design assets
# ---------------------------------------------------------------------------

MAX_REPORTED_COLORS = 20
MAX_CATEGORIZED_COLORS = 10
MAX_FONT_FAMILIES = 10

GENERIC_FONT_FAMILIES = {
    "serif", "sans-serif", "monospace", "cursive", "fantasy", "system-ui",
    "ui-sans-serif", "ui-serif", "ui-monospace", "inherit", "initial",
    "unset", "emoji", "math",
}

# Tailwind default palette, 500 shade
TAILWIND_COLORS = {
    "red": "#ef4444", "blue": "#3b82f6", "green": "#22c55e", "yellow": "#eab308",
    "purple": "#a855f7", "pink": "#ec4899", "indigo": "#6366f1", "orange": "#f97316",
    "gray": "#6b7280", "slate": "#64748b", "zinc": "#71717a", "neutral": "#737373",
    "stone": "#78716c", "emerald": "#10b981", "teal": "#14b8a6", "cyan": "#06b6d4",
    "sky": "#0ea5e9", "violet": "#8b5cf6", "fuchsia": "#d946ef", "rose": "#f43f5e",
    "lime": "#84cc16", "amber": "#f59e0b",
}

TEXT_TONE_COLORS = {
    "#000000", "#111111", "#222222", "#333333", "#444444", "#555555", "#666666", "#999999",
}
BACKGROUND_TONE_COLORS = {
    "#ffffff", "#fafafa", "#f5f5f5", "#f0f0f0", "#eeeeee", "#f8f9fa",
}

ASSET_EXTENSIONS = {
    "png": ".png",
    "jpeg": ".jpg",
    "jpg": ".jpg",
    "svg": ".svg",
    "gif": ".gif",
    "webp": ".webp",
    "icon": ".ico",
    "ico": ".ico",
}
