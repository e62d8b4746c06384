"""Document repair pipeline.

Phase 1: ASSIST     - one LLM rewrite of the whole document (best effort)
Phase 2: NORMALIZE  - sanitizer, diagram and reference normalizers on every block
Phase 3: DIAGNOSE   - advisory structural-balance checks

The deterministic phase always runs, whatever the assist pass returned or
whether it ran at all. Repair never raises on bad content: the best document
produced so far is returned together with its warnings.
"""

from __future__ import annotations

import logging
from typing import Protocol

from .agents.content_repairer import AgentRewriter
from .logging_config import NullCallbacks, PipelineCallbacks
from .models import (
    VISUAL_KINDS,
    BalanceDiagnostics,
    Block,
    CompositeBlock,
    DiagramBlock,
    Document,
    GuidelineListBlock,
    HeadingBlock,
    HighlightBoxBlock,
    ParagraphBlock,
    ProjectConfig,
    ReferenceListBlock,
    RepairMode,
    RepairResult,
    StickyBlock,
)
from .tools.diagram_normalizer import DiagramSyntaxError, normalize_diagram_source
from .tools.references import normalize_references
from .tools.sanitizer import clean_markup, strip_tags

logger = logging.getLogger(__name__)

MIN_PARAGRAPHS = 8
MIN_TEXT_VISUAL_RATIO = 0.5

OBJECTIVES_MARKERS = ("objetivos", "objectives")
READINGS_MARKERS = ("leituras", "readings")


class DocumentRewriter(Protocol):
    """LLM-assist collaborator: one untrusted rewrite per document."""

    async def rewrite(self, document: Document) -> Document: ...


# ---------------------------------------------------------------------------
# Deterministic normalization
# ---------------------------------------------------------------------------


def _clean_accordion_props(props: dict) -> dict:
    items = props.get("items")
    if not isinstance(items, list):
        return props
    cleaned = []
    for item in items:
        if isinstance(item, dict) and isinstance(item.get("content"), str):
            item = {**item, "content": clean_markup(item["content"])}
        cleaned.append(item)
    return {**props, "items": cleaned}


def normalize_block(block: Block) -> tuple[Block, list[str]]:
    """Apply the deterministic normalizers to one block.

    Returns the normalized block and any advisory warnings. Blocks of kinds
    without free text (charts, unknown) come back unchanged.
    """
    warnings: list[str] = []

    if isinstance(block, HeadingBlock):
        return block.model_copy(update={"text": strip_tags(clean_markup(block.text))}), warnings

    if isinstance(block, (ParagraphBlock, HighlightBoxBlock, StickyBlock)):
        return block.model_copy(update={"text": clean_markup(block.text)}), warnings

    if isinstance(block, GuidelineListBlock):
        return block.model_copy(update={"items": [clean_markup(i) for i in block.items]}), warnings

    if isinstance(block, ReferenceListBlock):
        sanitized = block.model_copy(update={
            "items": [clean_markup(i) for i in block.items] if block.items else block.items,
            "text": clean_markup(block.text) if block.text else block.text,
        })
        return normalize_references(sanitized), warnings

    if isinstance(block, DiagramBlock):
        try:
            source = normalize_diagram_source(block.source)
        except DiagramSyntaxError as e:
            source = e.source
            warnings.append(f"Diagram '{block.title or block.diagram_kind.value}': {e}")
        return block.model_copy(update={"source": source}), warnings

    if isinstance(block, CompositeBlock):
        return block.model_copy(update={"props": _clean_accordion_props(block.props)}), warnings

    return block, warnings


def normalize_document(
    document: Document,
    callbacks: PipelineCallbacks | None = None,
) -> tuple[Document, list[str]]:
    """Normalize every block in order. A block that faults is kept as received."""
    callbacks = callbacks or NullCallbacks()
    blocks: list[Block] = []
    warnings: list[str] = []
    for index, block in enumerate(document.blocks):
        try:
            normalized, block_warnings = normalize_block(block)
        except Exception as e:
            logger.warning("Block %d (%s) could not be normalized: %s", index, block.kind, e)
            normalized, block_warnings = block, [f"Block {index} ({block.kind}) left unnormalized: {e}"]
        blocks.append(normalized)
        warnings.extend(block_warnings)
        callbacks.on_block_repaired(index, block.kind)
    return document.model_copy(update={"blocks": blocks}), warnings


# ---------------------------------------------------------------------------
# Structural-balance diagnostics
# ---------------------------------------------------------------------------


def _title_matches(block: Block, markers: tuple[str, ...]) -> bool:
    if not isinstance(block, HighlightBoxBlock) or not block.title:
        return False
    title = strip_tags(block.title).lower()
    return any(m in title for m in markers)


def compute_diagnostics(document: Document) -> BalanceDiagnostics:
    """Count paragraphs and visual blocks and look for the required boxes.

    Non-empty document-level learning objectives count as an objectives box
    since the renderer materializes one from them.
    """
    paragraphs = sum(1 for b in document.blocks if isinstance(b, ParagraphBlock))
    visuals = sum(1 for b in document.blocks if b.kind in VISUAL_KINDS)
    has_objectives = (
        any(_title_matches(b, OBJECTIVES_MARKERS) for b in document.blocks)
        or (document.objectives is not None and not document.objectives.is_empty)
    )
    has_readings = any(_title_matches(b, READINGS_MARKERS) for b in document.blocks)
    ratio = paragraphs / visuals if visuals else None

    warnings: list[str] = []
    if paragraphs < MIN_PARAGRAPHS:
        warnings.append(f"Only {paragraphs} paragraph(s); expected at least {MIN_PARAGRAPHS}")
    if not has_objectives:
        warnings.append("No learning-objectives highlight box")
    if not has_readings:
        warnings.append("No required-readings highlight box")
    if ratio is not None and ratio < MIN_TEXT_VISUAL_RATIO:
        warnings.append(
            f"Text/visual ratio {ratio:.2f} below {MIN_TEXT_VISUAL_RATIO} "
            f"({paragraphs} paragraphs, {visuals} visual blocks)"
        )

    return BalanceDiagnostics(
        paragraph_count=paragraphs,
        visual_count=visuals,
        has_objectives_box=has_objectives,
        has_readings_box=has_readings,
        ratio=ratio,
        warnings=warnings,
    )


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class RepairPipeline:
    """Turns a generated document into a renderable one.

    Parameters
    ----------
    config : ProjectConfig
        ``assist_enabled`` decides whether the default AG2 rewriter is used.
    callbacks : PipelineCallbacks, optional
        Progress reporting; silent when omitted.
    rewriter : DocumentRewriter, optional
        Assist collaborator. Defaults to ``AgentRewriter`` when assist is
        enabled and none is given.
    """

    def __init__(
        self,
        config: ProjectConfig,
        callbacks: PipelineCallbacks | None = None,
        rewriter: DocumentRewriter | None = None,
    ) -> None:
        self.config = config
        self.callbacks = callbacks or NullCallbacks()
        if rewriter is None and config.assist_enabled:
            rewriter = AgentRewriter(config)
        self.rewriter = rewriter

    async def _assist(self, document: Document, warnings: list[str]) -> tuple[Document, RepairMode]:
        if self.rewriter is None:
            return document, RepairMode.DETERMINISTIC

        self.callbacks.on_phase_start("ASSIST", "LLM rewrite pass")
        try:
            candidate = await self.rewriter.rewrite(document)
        except Exception as e:
            logger.warning("Assist pass failed, using deterministic repair only: %s", e)
            warnings.append(f"Assist pass failed: {e}")
            self.callbacks.on_phase_end("ASSIST", False)
            return document, RepairMode.DETERMINISTIC

        if len(candidate.blocks) < len(document.blocks):
            msg = (
                f"Assist pass returned {len(candidate.blocks)} blocks for "
                f"{len(document.blocks)}; keeping the original document"
            )
            logger.warning(msg)
            warnings.append(msg)
            self.callbacks.on_phase_end("ASSIST", False)
            return document, RepairMode.DETERMINISTIC

        if not candidate.general_title:
            candidate = candidate.model_copy(update={"general_title": document.general_title})
        if candidate.objectives is None and document.objectives is not None:
            candidate = candidate.model_copy(update={"objectives": document.objectives})
        self.callbacks.on_phase_end("ASSIST", True)
        return candidate, RepairMode.ASSISTED

    async def repair(self, document: Document) -> RepairResult:
        """Repair *document*. Only cancellation propagates."""
        warnings: list[str] = []
        candidate, mode = await self._assist(document, warnings)

        self.callbacks.on_phase_start("NORMALIZE", f"{len(candidate.blocks)} blocks")
        try:
            repaired, block_warnings = normalize_document(candidate, self.callbacks)
            warnings.extend(block_warnings)
            self.callbacks.on_phase_end("NORMALIZE", True)
        except Exception as e:
            logger.error("Normalization aborted, returning the unnormalized document: %s", e)
            warnings.append(f"Normalization aborted: {e}")
            repaired = candidate
            self.callbacks.on_phase_end("NORMALIZE", False)

        diagnostics = compute_diagnostics(repaired)
        for w in diagnostics.warnings:
            logger.info("Balance: %s", w)
            self.callbacks.on_warning(w)
        for w in warnings:
            self.callbacks.on_warning(w)

        return RepairResult(document=repaired, diagnostics=diagnostics, mode=mode, warnings=warnings)
