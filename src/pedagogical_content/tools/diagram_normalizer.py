"""Textual rewrites for generated mermaid sources.

Fixes the faults generators most often produce: unicode arrow glyphs,
parentheses inside node labels, and labels too long to lay out. The rewrite
is lossy and trades diagram meaning for renderability.
"""

from __future__ import annotations

import re


LABEL_MAX_CHARS = 40
ELLIPSIS = "..."

RECOGNIZED_KEYWORDS = (
    "graph",
    "flowchart",
    "mindmap",
    "gantt",
    "sequenceDiagram",
    "classDiagram",
    "stateDiagram-v2",
    "stateDiagram",
    "erDiagram",
    "pie",
    "journey",
    "timeline",
    "gitGraph",
)

ARROW_REPLACEMENTS = {
    "↔": "<-->",
    "⇔": "<==>",
    "→": "-->",
    "←": "<--",
    "⇒": "==>",
    "⇐": "<==",
    "➡\ufe0f": "-->",
    "➡": "-->",
}


class DiagramSyntaxError(ValueError):
    """Source does not open with a recognized diagram keyword.

    ``source`` holds the text after every rewrite that did apply, so callers
    can keep it instead of the raw input.
    """

    def __init__(self, message: str, source: str):
        super().__init__(message)
        self.source = source


# ---------------------------------------------------------------------------
# Code fences
# ---------------------------------------------------------------------------

_OPEN_FENCE_RE = re.compile(r"^\s*```[ \t]*(?:mermaid)?[ \t]*\n?", re.IGNORECASE)
_CLOSE_FENCE_RE = re.compile(r"\n?[ \t]*```\s*$")


def strip_code_fences(source: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    out = _OPEN_FENCE_RE.sub("", source, count=1)
    out = _CLOSE_FENCE_RE.sub("", out, count=1)
    return out


# ---------------------------------------------------------------------------
# Step 1: arrows
# ---------------------------------------------------------------------------


def replace_arrow_glyphs(source: str) -> str:
    """Map unicode arrows to their ASCII mermaid equivalents."""
    for glyph, ascii_arrow in ARROW_REPLACEMENTS.items():
        source = source.replace(glyph, ascii_arrow)
    return source


# ---------------------------------------------------------------------------
# Steps 2-3: node labels
# ---------------------------------------------------------------------------

# ID[label] and ID{label}; labels never span lines
_SQUARE_LABEL_RE = re.compile(r"\b([A-Za-z0-9_]+)\[([^\[\]\n]*)\]")
_CURLY_LABEL_RE = re.compile(r"\b([A-Za-z0-9_]+)\{([^{}\n]*)\}")

_INNER_PARENS_RE = re.compile(r"\([^()]*\)")
_WHITESPACE_RE = re.compile(r"\s+")


def strip_parentheticals(label: str) -> str:
    """Drop parenthesized sub-expressions, nested or unbalanced."""
    previous = None
    while previous != label:
        previous = label
        label = _INNER_PARENS_RE.sub("", label)
    label = label.replace("(", "").replace(")", "")
    return _WHITESPACE_RE.sub(" ", label).strip()


def truncate_label(label: str, limit: int = LABEL_MAX_CHARS) -> str:
    """Cut *label* to *limit* characters plus an ellipsis.

    A label already cut this way is returned unchanged.
    """
    if len(label) <= limit:
        return label
    if label.endswith(ELLIPSIS) and len(label) - len(ELLIPSIS) <= limit:
        return label
    return label[:limit] + ELLIPSIS


def _split_quotes(label: str) -> tuple[str, str, str]:
    stripped = label.strip()
    if len(stripped) >= 2 and stripped[0] == stripped[-1] == '"':
        return '"', stripped[1:-1], '"'
    return "", stripped, ""


def _rewrite_labels(source: str, transform) -> str:
    def _sub(open_char: str, close_char: str):
        def replace(m: re.Match) -> str:
            node_id, label = m.group(1), m.group(2)
            left, inner, right = _split_quotes(label)
            inner = transform(node_id, inner)
            return f"{node_id}{open_char}{left}{inner}{right}{close_char}"
        return replace

    source = _SQUARE_LABEL_RE.sub(_sub("[", "]"), source)
    source = _CURLY_LABEL_RE.sub(_sub("{", "}"), source)
    return source


def _clean_label(node_id: str, label: str) -> str:
    cleaned = strip_parentheticals(label)
    if not cleaned:
        return f"Node {node_id}"
    return cleaned


def clean_node_labels(source: str) -> str:
    """Strip parentheticals inside node labels, naming emptied labels after the node."""
    return _rewrite_labels(source, _clean_label)


def truncate_long_labels(source: str, limit: int = LABEL_MAX_CHARS) -> str:
    """Truncate every node label longer than *limit*."""
    return _rewrite_labels(source, lambda _id, label: truncate_label(label, limit))


# ---------------------------------------------------------------------------
# Step 4: keyword recognition
# ---------------------------------------------------------------------------

_KEYWORD_RE = re.compile(
    r"^(?:" + "|".join(re.escape(k) for k in RECOGNIZED_KEYWORDS) + r")(?![a-z])"
)


def first_statement(source: str) -> str:
    """First non-blank, non-comment line of *source*."""
    for line in source.splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith("%%"):
            return stripped
    return ""


def has_recognized_keyword(source: str) -> bool:
    return bool(_KEYWORD_RE.match(first_statement(source)))


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def rewrite_diagram_source(source: str) -> str:
    """Apply the fence, arrow, label and truncation rewrites. Never raises."""
    out = strip_code_fences(source or "").strip()
    out = replace_arrow_glyphs(out)
    out = clean_node_labels(out)
    out = truncate_long_labels(out)
    return out


def normalize_diagram_source(source: str) -> str:
    """Rewrite *source* and check it opens with a recognized diagram keyword.

    Idempotent on its output.

    Raises
    ------
    DiagramSyntaxError
        No recognized keyword after rewriting; ``.source`` carries the
        rewritten text.
    """
    out = rewrite_diagram_source(source)
    if not has_recognized_keyword(out):
        head = first_statement(out)[:40]
        raise DiagramSyntaxError(f"Unrecognized diagram keyword in {head!r}", source=out)
    return out
