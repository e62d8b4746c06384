"""Reference-list canonicalization.

Bibliographies arrive either as an item array or as one free-text field with
``[1] ... [2] ...`` markers. Both are reduced to the item-array shape, each
item ending in the double-break sentinel.
"""

from __future__ import annotations

import re

from ..models import ReferenceListBlock

REFERENCE_SENTINEL = "<br><br>"

# Zero-width split before each bracketed ordinal marker
_MARKER_SPLIT_RE = re.compile(r"(?=\[\d+\])")

# Trailing run of sentinels, tolerating the self-closing and spaced variants
_TRAILING_BREAKS_RE = re.compile(r"(?:\s*<br\s*/?>)+\s*$", re.IGNORECASE)


def split_reference_text(text: str) -> list[str]:
    """Split free-text references on ``[n]`` markers, dropping empty pieces."""
    return [piece.strip() for piece in _MARKER_SPLIT_RE.split(text) if piece.strip()]


def ensure_sentinel(item: str) -> str:
    """Return *item* ending in exactly one sentinel."""
    body = _TRAILING_BREAKS_RE.sub("", item.strip())
    return body + REFERENCE_SENTINEL


def normalize_references(block: ReferenceListBlock) -> ReferenceListBlock:
    """Canonicalize *block* to the item-array shape. Idempotent."""
    if block.items:
        raw_items = list(block.items)
    elif block.text:
        raw_items = split_reference_text(block.text)
    else:
        raw_items = []

    items = [ensure_sentinel(item) for item in raw_items if _TRAILING_BREAKS_RE.sub("", item).strip()]
    return block.model_copy(update={"items": items, "text": None})
