"""Block -> presentation node mapping.

``render_block`` is total over block kinds: unknown kinds and unrecognized
composite components become a visible "not supported" node naming the
offending kind. Diagram blocks render to an empty diagram slot that the
retry engine fills.
"""

from __future__ import annotations

from typing import Callable

from ..models import (
    Block,
    ChartBlock,
    CompositeBlock,
    DiagramBlock,
    GuidelineListBlock,
    HeadingBlock,
    HighlightBoxBlock,
    LearningObjectives,
    ParagraphBlock,
    PresentationNode,
    ReferenceListBlock,
    StickyBlock,
    StickyCategory,
    UnknownBlock,
)
from ..tools.references import REFERENCE_SENTINEL, normalize_references
from ..tools.sanitizer import sanitize, strip_tags

# First match wins, in this order
STICKY_KEYWORDS: tuple[tuple[StickyCategory, tuple[str, ...]], ...] = (
    (StickyCategory.WARNING, ("atenção", "cuidado", "alerta")),
    (StickyCategory.TIP, ("dica", "tip")),
    (StickyCategory.REFLECTION, ("pense", "reflexão")),
    (StickyCategory.APPLICATION, ("conexão", "aplicação", "prática")),
)

STICKY_ICONS = {
    StickyCategory.WARNING: "⚠️",
    StickyCategory.TIP: "💡",
    StickyCategory.REFLECTION: "🤔",
    StickyCategory.APPLICATION: "🌍",
    StickyCategory.INFO: "💡",
}

REFERENCE_SPACER = '<br><br><span class="ref-spacer"></span>'

SUPPORTED_COMPONENTS = frozenset({"accordion"})

OBJECTIVES_TITLE = "🎯 Objetivos de Aprendizagem"
OBJECTIVE_TIERS = (
    ("remember_understand", "Lembrar e Entender"),
    ("apply_analyze", "Aplicar e Analisar"),
    ("evaluate_create", "Avaliar e Criar"),
)


def classify_sticky(text: str) -> StickyCategory:
    """Category of a sticky note from case-insensitive keyword sniffing."""
    lowered = strip_tags(text).lower()
    for category, keywords in STICKY_KEYWORDS:
        if any(k in lowered for k in keywords):
            return category
    return StickyCategory.INFO


def _common_attrs(block: Block) -> dict:
    attrs: dict = {}
    if block.title:
        attrs["title"] = block.title
    if block.description:
        attrs["description"] = block.description
    return attrs


def unsupported_node(kind: str, detail: str | None = None) -> PresentationNode:
    """Visible marker for content this renderer does not handle."""
    name = f"{kind}:{detail}" if detail else kind
    return PresentationNode(
        kind="unsupported",
        attrs={"kind": kind, "name": detail or kind},
        text=f"Content type not supported: {name}",
    )


# ---------------------------------------------------------------------------
# Per-kind renderers
# ---------------------------------------------------------------------------


def _render_heading(block: HeadingBlock) -> PresentationNode:
    return PresentationNode(kind="heading", attrs={"level": block.level}, text=strip_tags(block.text))


def _render_paragraph(block: ParagraphBlock) -> PresentationNode:
    return PresentationNode(kind="paragraph", markup=sanitize(block.text))


def _render_highlight_box(block: HighlightBoxBlock) -> PresentationNode:
    return PresentationNode(kind="highlight_box", attrs=_common_attrs(block), markup=sanitize(block.text))


def _render_sticky(block: StickyBlock) -> PresentationNode:
    markup = sanitize(block.text)
    category = classify_sticky(markup)
    attrs = {"category": category.value, "icon": STICKY_ICONS[category], **_common_attrs(block)}
    return PresentationNode(kind="sticky", attrs=attrs, markup=markup)


def _render_diagram(block: DiagramBlock) -> PresentationNode:
    attrs = {"diagram_kind": block.diagram_kind.value, "source": block.source, **_common_attrs(block)}
    return PresentationNode(kind="diagram", attrs=attrs)


def _render_chart(block: ChartBlock) -> PresentationNode:
    attrs = {
        "chart_kind": block.chart_kind.value,
        "series": [{"category": p.category, "value": p.value} for p in block.series],
        **_common_attrs(block),
    }
    return PresentationNode(kind="chart", attrs=attrs)


def _render_accordion(block: CompositeBlock) -> PresentationNode:
    items = block.props.get("items")
    sections: list[PresentationNode] = []
    for item in items if isinstance(items, list) else []:
        if not isinstance(item, dict):
            continue
        sections.append(PresentationNode(
            kind="accordion_item",
            text=strip_tags(str(item.get("trigger", ""))),
            markup=sanitize(str(item.get("content", ""))),
        ))
    return PresentationNode(kind="accordion", attrs=_common_attrs(block), children=sections)


def _render_composite(block: CompositeBlock) -> PresentationNode:
    if block.component.strip().lower() not in SUPPORTED_COMPONENTS:
        return unsupported_node("composite", block.component or "(unnamed)")
    return _render_accordion(block)


def _render_guideline_list(block: GuidelineListBlock) -> PresentationNode:
    items = [PresentationNode(kind="list_item", markup=sanitize(i)) for i in block.items]
    return PresentationNode(kind="guideline_list", attrs=_common_attrs(block), children=items)


def _render_reference_list(block: ReferenceListBlock) -> PresentationNode:
    canonical = normalize_references(block)
    refs = [
        PresentationNode(kind="reference", markup=sanitize(item).replace(REFERENCE_SENTINEL, REFERENCE_SPACER))
        for item in canonical.items or []
    ]
    return PresentationNode(kind="reference_list", attrs=_common_attrs(block), children=refs)


def _render_unknown(block: UnknownBlock) -> PresentationNode:
    return unsupported_node(block.original_kind or "(missing kind)")


_RENDERERS: dict[str, Callable] = {
    "heading": _render_heading,
    "paragraph": _render_paragraph,
    "highlight_box": _render_highlight_box,
    "sticky": _render_sticky,
    "diagram": _render_diagram,
    "chart": _render_chart,
    "composite": _render_composite,
    "guideline_list": _render_guideline_list,
    "reference_list": _render_reference_list,
    "unknown": _render_unknown,
}


def render_block(block: Block) -> PresentationNode:
    """Map one block to its presentation node."""
    renderer = _RENDERERS.get(getattr(block, "kind", None))
    if renderer is None:
        return unsupported_node(str(getattr(block, "kind", type(block).__name__)))
    return renderer(block)


def render_objectives(objectives: LearningObjectives) -> PresentationNode:
    """Objectives box materialized from document-level learning objectives."""
    tiers = [
        PresentationNode(
            kind="objective_tier",
            text=label,
            children=[PresentationNode(kind="list_item", markup=sanitize(o)) for o in getattr(objectives, field)],
        )
        for field, label in OBJECTIVE_TIERS
        if getattr(objectives, field)
    ]
    return PresentationNode(kind="objectives", attrs={"title": OBJECTIVES_TITLE}, children=tiers)
