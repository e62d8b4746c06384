"""Codec between the generator's JSON dialect and the canonical block models.

The generator emits Portuguese-keyed payloads (``tipo``, ``texto``,
``definicao_mermaid`` ...). Canonical payloads (``kind`` plus the model field
names) are accepted as well so a repaired document can be re-ingested.
Decoding never raises for a malformed block: it becomes an ``UnknownBlock``.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import TypeAdapter, ValidationError

from .models import (
    Block,
    ChartBlock,
    ChartKind,
    ChartPoint,
    CompositeBlock,
    DiagramBlock,
    DiagramKind,
    Document,
    GuidelineListBlock,
    HeadingBlock,
    HighlightBoxBlock,
    LearningObjectives,
    ParagraphBlock,
    ReferenceListBlock,
    StickyBlock,
    UnknownBlock,
)

logger = logging.getLogger(__name__)

_BLOCK_ADAPTER: TypeAdapter[Block] = TypeAdapter(Block)

_CANONICAL_KINDS = frozenset({
    "heading", "paragraph", "highlight_box", "sticky", "diagram", "chart",
    "composite", "guideline_list", "reference_list", "unknown",
})

_HEADING_LEVELS = {"h2": 2, "h3": 3, "h4": 4}

_DIAGRAM_KINDS = {
    "fluxograma": DiagramKind.FLOW,
    "organograma": DiagramKind.FLOW,
    "cronograma_gantt": DiagramKind.FLOW,
    "mapa_mental": DiagramKind.MINDMAP,
    "diagrama": DiagramKind.SCHEMATIC,
}
_DIAGRAM_WIRE_NAMES = {
    DiagramKind.FLOW: "fluxograma",
    DiagramKind.MINDMAP: "mapa_mental",
    DiagramKind.SCHEMATIC: "diagrama",
}

_CHART_KINDS = {"barras": ChartKind.BAR, "pizza": ChartKind.PIE, "linha": ChartKind.LINE}
_CHART_WIRE_NAMES = {v: k for k, v in _CHART_KINDS.items()}

_GUIDELINE_KINDS = frozenset({"diretrizes_distribuicao", "checklist"})

# Row keys seen in generated chart data, in lookup order
_CATEGORY_KEYS = ("categoria", "category", "x", "nome", "label", "name")
_VALUE_KEYS = ("valor", "value", "y", "quantidade", "porcentagem")


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    return _text(value)


def _string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [_text(v) for v in value if v is not None]
    return [_text(value)]


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace(",", ".").rstrip("%"))
    except (TypeError, ValueError):
        return 0.0


def normalize_chart_rows(rows: Any) -> list[ChartPoint]:
    """Coerce generated chart rows of any known shape into ``ChartPoint`` items."""
    if not isinstance(rows, list):
        return []
    points: list[ChartPoint] = []
    for row in rows:
        if isinstance(row, ChartPoint):
            points.append(row)
            continue
        if not isinstance(row, dict):
            continue
        category = next((row[k] for k in _CATEGORY_KEYS if row.get(k) not in (None, "")), "N/A")
        value = next((row[k] for k in _VALUE_KEYS if row.get(k) not in (None, "")), 0)
        points.append(ChartPoint(category=_text(category), value=_number(value)))
    return points


def _shared(raw: dict[str, Any]) -> dict[str, Any]:
    return {
        "title": _optional_text(raw.get("titulo", raw.get("title"))),
        "description": _optional_text(raw.get("descricao", raw.get("description"))),
    }


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def _from_canonical(raw: dict[str, Any]) -> Block:
    kind = _text(raw.get("kind"))
    if kind not in _CANONICAL_KINDS:
        return UnknownBlock(original_kind=kind, payload=dict(raw), **_shared(raw))
    payload = dict(raw)
    if kind == "chart" and "series" in payload:
        payload["series"] = normalize_chart_rows(payload["series"])
    try:
        return _BLOCK_ADAPTER.validate_python(payload)
    except ValidationError as e:
        logger.warning("Malformed %r block kept as unknown: %s", kind, e.errors()[0].get("msg", e))
        return UnknownBlock(original_kind=kind, payload=dict(raw), **_shared(raw))


def block_from_wire(raw: Any) -> Block:
    """Decode one block. Unrecognized or missing kinds decode to ``UnknownBlock``."""
    if not isinstance(raw, dict):
        return UnknownBlock(original_kind=type(raw).__name__, payload={"value": raw})
    if "kind" in raw and "tipo" not in raw:
        return _from_canonical(raw)

    tipo = _text(raw.get("tipo")).strip()
    shared = _shared(raw)

    if tipo in _HEADING_LEVELS:
        return HeadingBlock(level=_HEADING_LEVELS[tipo], text=_text(raw.get("texto")), **shared)
    if tipo == "paragrafo":
        return ParagraphBlock(text=_text(raw.get("texto")), **shared)
    if tipo == "caixa_de_destaque":
        return HighlightBoxBlock(text=_text(raw.get("texto")), **shared)
    if tipo == "post_it":
        return StickyBlock(text=_text(raw.get("texto")), **shared)
    if tipo in _DIAGRAM_KINDS:
        return DiagramBlock(
            diagram_kind=_DIAGRAM_KINDS[tipo],
            source=_text(raw.get("definicao_mermaid")),
            **shared,
        )
    if tipo == "grafico":
        return ChartBlock(
            chart_kind=_CHART_KINDS.get(_text(raw.get("tipo_grafico")), ChartKind.BAR),
            series=normalize_chart_rows(raw.get("dados")),
            **shared,
        )
    if tipo == "componente_react":
        props = raw.get("props")
        return CompositeBlock(
            component=_text(raw.get("componente")),
            props=props if isinstance(props, dict) else {},
            **shared,
        )
    if tipo in _GUIDELINE_KINDS:
        return GuidelineListBlock(items=_string_list(raw.get("itens")), **shared)
    if tipo == "referencias":
        items = raw.get("itens")
        return ReferenceListBlock(
            items=_string_list(items) if items is not None else None,
            text=_optional_text(raw.get("texto")),
            **shared,
        )

    if tipo:
        logger.debug("Unrecognized block kind %r", tipo)
    return UnknownBlock(original_kind=tipo, payload=dict(raw), **shared)


def _objectives_from_wire(raw: dict[str, Any]) -> LearningObjectives | None:
    obj = raw.get("objetivos_aprendizagem")
    metadata = raw.get("metadata")
    if obj is None and isinstance(metadata, dict):
        obj = metadata.get("objetivos_aprendizagem")
    if obj is None:
        obj = raw.get("objectives")
    if not isinstance(obj, dict):
        return None
    objectives = LearningObjectives(
        remember_understand=_string_list(obj.get("lembrar_entender", obj.get("remember_understand"))),
        apply_analyze=_string_list(obj.get("aplicar_analisar", obj.get("apply_analyze"))),
        evaluate_create=_string_list(obj.get("avaliar_criar", obj.get("evaluate_create"))),
    )
    return None if objectives.is_empty else objectives


def document_from_wire(raw: Any) -> Document:
    """Decode a whole generated document. Block order is preserved."""
    if not isinstance(raw, dict):
        raise TypeError(f"Document payload must be a JSON object, got {type(raw).__name__}")
    blocks_raw = raw.get("conteudo", raw.get("blocks"))
    if not isinstance(blocks_raw, list):
        blocks_raw = []
    return Document(
        general_title=_text(raw.get("titulo_geral", raw.get("general_title"))),
        blocks=[block_from_wire(b) for b in blocks_raw],
        objectives=_objectives_from_wire(raw),
    )


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def block_to_wire(block: Block) -> dict[str, Any]:
    """Encode one block in the generator dialect."""
    if isinstance(block, UnknownBlock):
        return dict(block.payload) if block.payload else {"tipo": block.original_kind}

    out: dict[str, Any]
    if isinstance(block, HeadingBlock):
        out = {"tipo": f"h{block.level}", "texto": block.text}
    elif isinstance(block, ParagraphBlock):
        out = {"tipo": "paragrafo", "texto": block.text}
    elif isinstance(block, HighlightBoxBlock):
        out = {"tipo": "caixa_de_destaque", "texto": block.text}
    elif isinstance(block, StickyBlock):
        out = {"tipo": "post_it", "texto": block.text}
    elif isinstance(block, DiagramBlock):
        out = {"tipo": _DIAGRAM_WIRE_NAMES[block.diagram_kind], "definicao_mermaid": block.source}
    elif isinstance(block, ChartBlock):
        out = {
            "tipo": "grafico",
            "tipo_grafico": _CHART_WIRE_NAMES[block.chart_kind],
            "dados": [{"categoria": p.category, "valor": p.value} for p in block.series],
        }
    elif isinstance(block, CompositeBlock):
        out = {"tipo": "componente_react", "componente": block.component, "props": block.props}
    elif isinstance(block, GuidelineListBlock):
        out = {"tipo": "diretrizes_distribuicao", "itens": list(block.items)}
    elif isinstance(block, ReferenceListBlock):
        out = {"tipo": "referencias"}
        if block.items is not None:
            out["itens"] = list(block.items)
        if block.text is not None:
            out["texto"] = block.text
    else:
        raise TypeError(f"Not a block: {block!r}")

    if block.title is not None:
        out["titulo"] = block.title
    if block.description is not None:
        out["descricao"] = block.description
    return out


def document_to_wire(document: Document) -> dict[str, Any]:
    """Encode a document in the generator dialect."""
    out: dict[str, Any] = {
        "titulo_geral": document.general_title,
        "conteudo": [block_to_wire(b) for b in document.blocks],
    }
    if document.objectives is not None:
        out["objetivos_aprendizagem"] = {
            "lembrar_entender": list(document.objectives.remember_understand),
            "aplicar_analisar": list(document.objectives.apply_analyze),
            "avaliar_criar": list(document.objectives.evaluate_create),
        }
    return out
