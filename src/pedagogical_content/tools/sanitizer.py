"""Inline-markup allow-list filter for free-text block fields.

Generated text may carry arbitrary HTML. Only ``strong``, ``em``, ``br``,
``u``, ``span``, ``p`` and ``code`` survive; any other tag is unwrapped so its
inner text is kept. Parsing with BeautifulSoup closes unterminated tags.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup
from bs4.dammit import EntitySubstitution
from bs4.element import PreformattedString
from bs4.formatter import HTMLFormatter

ALLOWED_TAGS = frozenset({"strong", "em", "br", "u", "span", "p", "code"})

_KEPT_ATTRIBUTES = frozenset({"class"})

# Tags whose body is code, not prose
_DROPPED_WITH_CONTENT = frozenset({"script", "style", "template"})

# Minimal escaping (& < >) and bare <br> so a second pass reproduces the first
_FORMATTER = HTMLFormatter(
    entity_substitution=EntitySubstitution.substitute_xml,
    void_element_close_prefix=None,
)


def sanitize(markup: str) -> str:
    """Restrict *markup* to the inline allow-list.

    Pure and idempotent: ``sanitize(sanitize(x)) == sanitize(x)``.
    """
    if not markup:
        return ""

    soup = BeautifulSoup(markup, "html.parser")

    # Comments, doctypes, CDATA and processing instructions
    for node in soup.find_all(string=lambda s: isinstance(s, PreformattedString)):
        node.extract()

    for tag in soup.find_all(True):
        if tag.decomposed:
            continue
        if tag.name in _DROPPED_WITH_CONTENT:
            tag.decompose()
        elif tag.name not in ALLOWED_TAGS:
            tag.unwrap()
        else:
            tag.attrs = {k: v for k, v in tag.attrs.items() if k in _KEPT_ATTRIBUTES}

    return soup.decode(formatter=_FORMATTER)


# ---------------------------------------------------------------------------
# Markdown emphasis -> allow-listed markup
# ---------------------------------------------------------------------------

_HEADING_MARKER_RE = re.compile(r"^[ \t]*(?:#{1,6}[ \t]+)+", re.MULTILINE)
_BOLD_ITALIC_RE = re.compile(r"\*\*\*(?!\s)(.+?)(?<!\s)\*\*\*")
_BOLD_RE = re.compile(r"\*\*(?!\s)(.+?)(?<!\s)\*\*")
_UNDERSCORE_BOLD_RE = re.compile(r"__(?!\s)(.+?)(?<!\s)__")
_ITALIC_RE = re.compile(r"(?<!\*)\*(?![\s*])(.+?)(?<![\s*])\*(?!\*)")
_ESCAPED_BR_RE = re.compile(r"&lt;br\s*/?&gt;", re.IGNORECASE)
_LITERAL_NEWLINE_RE = re.compile(r"\\n")
_NEWLINE_RE = re.compile(r"\r?\n")


def inline_markdown_to_markup(text: str) -> str:
    """Convert markdown emphasis and line breaks into allow-listed tags.

    ``***x***`` becomes ``<strong><em>x</em></strong>``, ``**x**`` and
    ``__x__`` become ``<strong>``, ``*x*`` becomes ``<em>``. Escaped
    ``&lt;br&gt;``, literal ``\\n`` and real newlines become ``<br>``; leading
    ``#`` heading markers are dropped. Idempotent.
    """
    if not text:
        return ""
    out = _HEADING_MARKER_RE.sub("", text)
    out = _BOLD_ITALIC_RE.sub(r"<strong><em>\1</em></strong>", out)
    out = _BOLD_RE.sub(r"<strong>\1</strong>", out)
    out = _UNDERSCORE_BOLD_RE.sub(r"<strong>\1</strong>", out)
    out = _ITALIC_RE.sub(r"<em>\1</em>", out)
    out = _ESCAPED_BR_RE.sub("<br>", out)
    out = _LITERAL_NEWLINE_RE.sub("<br>", out)
    out = _NEWLINE_RE.sub("<br>", out)
    return out


def clean_markup(text: str) -> str:
    """Markdown conversion followed by sanitization, as applied during repair."""
    return sanitize(inline_markdown_to_markup(text))


def strip_tags(markup: str) -> str:
    """Plain text of *markup* (used for keyword sniffing and titles)."""
    if not markup:
        return ""
    return BeautifulSoup(markup, "html.parser").get_text()
