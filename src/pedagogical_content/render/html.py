"""Presentation tree -> HTML fragment.

``text`` fields are escaped; ``markup`` fields were sanitized upstream and
are embedded verbatim.
"""

from __future__ import annotations

import html
import json
from typing import Any, Callable

from ..models import PresentationNode


def _esc(value: Any) -> str:
    return html.escape("" if value is None else str(value), quote=False)


def _attr(value: Any) -> str:
    escaped = html.escape("" if value is None else str(value), quote=True)
    return escaped.replace("\n", " ").replace("\r", " ")


def _children(node: PresentationNode) -> str:
    return "".join(to_html(child) for child in node.children)


def _caption(node: PresentationNode, tag: str = "h4") -> str:
    title = node.attrs.get("title")
    return f"<{tag}>{_esc(title)}</{tag}>" if title else ""


def _description(node: PresentationNode) -> str:
    desc = node.attrs.get("description")
    return f'<p class="block-description">{_esc(desc)}</p>' if desc else ""


# ---------------------------------------------------------------------------
# Per-kind serializers
# ---------------------------------------------------------------------------


def _document(node: PresentationNode) -> str:
    return f'<article class="lesson">{_children(node)}</article>'


def _title(node: PresentationNode) -> str:
    return f"<h1>{_esc(node.text)}</h1>"


def _heading(node: PresentationNode) -> str:
    level = node.attrs.get("level", 2)
    level = level if level in (2, 3, 4) else 2
    return f"<h{level}>{_esc(node.text)}</h{level}>"


def _paragraph(node: PresentationNode) -> str:
    return f'<p class="paragraph">{node.markup or ""}</p>'


def _highlight_box(node: PresentationNode) -> str:
    title = node.attrs.get("title")
    heading = f"<h4>📌 {_esc(title)}</h4>" if title else ""
    return f'<div class="highlight-box">{heading}<div>{node.markup or ""}</div></div>'


def _objectives(node: PresentationNode) -> str:
    return f'<div class="highlight-box objectives-box">{_caption(node)}{_children(node)}</div>'


def _objective_tier(node: PresentationNode) -> str:
    return f"<h5>{_esc(node.text)}</h5><ul>{_children(node)}</ul>"


def _sticky(node: PresentationNode) -> str:
    category = _attr(node.attrs.get("category", "info"))
    icon = _esc(node.attrs.get("icon", ""))
    return (
        f'<aside class="sticky sticky-{category}">'
        f'<span class="sticky-icon">{icon}</span>'
        f'<div>{node.markup or ""}</div></aside>'
    )


def _diagram(node: PresentationNode) -> str:
    kind = _attr(node.attrs.get("diagram_kind", "flow"))
    return (
        f'<figure class="diagram diagram-{kind}">{_caption(node)}'
        f"{_children(node)}{_description(node)}</figure>"
    )


def _diagram_graphic(node: PresentationNode) -> str:
    return f'<div class="diagram-graphic">{node.markup or ""}</div>'


def _diagram_placeholder(node: PresentationNode) -> str:
    return f'<div class="diagram-placeholder" role="note"><p>{_esc(node.text)}</p>{_children(node)}</div>'


def _source_excerpt(node: PresentationNode) -> str:
    return f"<pre><code>{_esc(node.text)}</code></pre>"


def _chart(node: PresentationNode) -> str:
    series = node.attrs.get("series") or []
    kind = _attr(node.attrs.get("chart_kind", "bar"))
    rows = "".join(
        f"<tr><td>{_esc(p.get('category'))}</td><td>{_esc(p.get('value'))}</td></tr>" for p in series
    )
    data = _attr(json.dumps(series, ensure_ascii=False))
    return (
        f'<figure class="chart chart-{kind}" data-series="{data}">{_caption(node)}'
        f"<table><tbody>{rows}</tbody></table>{_description(node)}</figure>"
    )


def _accordion(node: PresentationNode) -> str:
    return f'<div class="accordion">{_caption(node)}{_children(node)}</div>'


def _accordion_item(node: PresentationNode) -> str:
    return f"<details><summary>{_esc(node.text)}</summary><div>{node.markup or ''}</div></details>"


def _guideline_list(node: PresentationNode) -> str:
    return f'<section class="guidelines">{_caption(node)}<ul>{_children(node)}</ul></section>'


def _list_item(node: PresentationNode) -> str:
    return f"<li>{node.markup or ''}</li>"


def _reference_list(node: PresentationNode) -> str:
    return f'<section class="references">{_caption(node, "h3")}{_children(node)}</section>'


def _reference(node: PresentationNode) -> str:
    return f'<p class="reference">{node.markup or ""}</p>'


def _notice(css_class: str) -> Callable[[PresentationNode], str]:
    def serialize(node: PresentationNode) -> str:
        return f'<div class="{css_class}" role="note">{_esc(node.text)}</div>'
    return serialize


_SERIALIZERS: dict[str, Callable[[PresentationNode], str]] = {
    "document": _document,
    "title": _title,
    "heading": _heading,
    "paragraph": _paragraph,
    "highlight_box": _highlight_box,
    "objectives": _objectives,
    "objective_tier": _objective_tier,
    "sticky": _sticky,
    "diagram": _diagram,
    "diagram_graphic": _diagram_graphic,
    "diagram_placeholder": _diagram_placeholder,
    "source_excerpt": _source_excerpt,
    "chart": _chart,
    "accordion": _accordion,
    "accordion_item": _accordion_item,
    "guideline_list": _guideline_list,
    "list_item": _list_item,
    "reference_list": _reference_list,
    "reference": _reference,
    "unsupported": _notice("unsupported-block"),
    "unavailable": _notice("render-unavailable"),
}


def to_html(node: PresentationNode) -> str:
    """Serialize *node* and its subtree."""
    serializer = _SERIALIZERS.get(node.kind)
    if serializer is None:
        text = _esc(node.text) if node.text else ""
        return f'<div class="{_attr(node.kind)}">{text}{node.markup or ""}{_children(node)}</div>'
    return serializer(node)


def to_html_page(node: PresentationNode, title: str = "") -> str:
    """Standalone HTML page around :func:`to_html`."""
    return (
        "<!DOCTYPE html>\n"
        '<html lang="pt-BR"><head><meta charset="utf-8">'
        f"<title>{_esc(title)}</title></head>"
        f"<body>{to_html(node)}</body></html>\n"
    )
