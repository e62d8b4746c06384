"""Whole-document rendering.

Blocks are rendered in order, each inside its own fault boundary. Diagram
slots are then filled by the retry engine; different diagrams render
concurrently, and the tree is assembled only after every diagram settled.
"""

from __future__ import annotations

import asyncio
import logging

from ..logging_config import NullCallbacks, PipelineCallbacks
from ..models import Document, HeadingBlock, HighlightBoxBlock, PresentationNode, ProjectConfig
from ..pipeline import OBJECTIVES_MARKERS
from ..tools.sanitizer import strip_tags
from .blocks import render_block, render_objectives
from .diagram import DiagramEngine, DiagramRenderer, MermaidCliEngine
from .isolation import isolate, isolate_async

logger = logging.getLogger(__name__)


def _objectives_insert_at(document: Document) -> int | None:
    """Block index the objectives box goes before, or None if not needed."""
    if document.objectives is None or document.objectives.is_empty:
        return None
    for block in document.blocks:
        if isinstance(block, HighlightBoxBlock) and block.title:
            if any(m in strip_tags(block.title).lower() for m in OBJECTIVES_MARKERS):
                return None
    for index, block in enumerate(document.blocks):
        if isinstance(block, HeadingBlock) and block.level == 2:
            return index + 1
    return 0


class DocumentRenderer:
    """Renders a repaired document to a presentation tree.

    Parameters
    ----------
    config : ProjectConfig
        Supplies the diagram timeout, excerpt length and mermaid executable.
    engine : DiagramEngine, optional
        Defaults to ``MermaidCliEngine``.
    callbacks : PipelineCallbacks, optional
        Progress and fault reporting.
    """

    def __init__(
        self,
        config: ProjectConfig,
        engine: DiagramEngine | None = None,
        callbacks: PipelineCallbacks | None = None,
    ) -> None:
        self.config = config
        self.callbacks = callbacks or NullCallbacks()
        self.diagrams = DiagramRenderer(
            engine or MermaidCliEngine(config.mermaid_cli),
            timeout=config.diagram_render_timeout,
            excerpt_chars=config.placeholder_excerpt_chars,
            callbacks=self.callbacks,
        )
        self.faults: list[str] = []

    def _on_fault(self, label: str, exc: Exception) -> None:
        self.faults.append(label)
        self.callbacks.on_error(f"Render fault in {label}: {exc}")

    async def _render_diagram_slot(self, slot: PresentationNode, unique_id: str) -> PresentationNode:
        graphic = await self.diagrams.render(str(slot.attrs.get("source", "")), unique_id)
        return slot.model_copy(update={"children": [graphic]})

    async def _render_tree(self, document: Document) -> PresentationNode:
        nodes = [
            isolate(render_block, block, label=f"block {i} ({block.kind})", on_fault=self._on_fault)
            for i, block in enumerate(document.blocks)
        ]

        slots = [i for i, node in enumerate(nodes) if node.kind == "diagram"]
        filled = await asyncio.gather(*(
            isolate_async(
                self._render_diagram_slot(nodes[i], f"diagram-{i}"),
                label=f"block {i} (diagram)",
                on_fault=self._on_fault,
            )
            for i in slots
        ))
        for i, node in zip(slots, filled):
            nodes[i] = node

        insert_at = _objectives_insert_at(document)
        if insert_at is not None:
            box = isolate(render_objectives, document.objectives, label="objectives", on_fault=self._on_fault)
            nodes.insert(insert_at, box)

        children = []
        if document.general_title:
            children.append(PresentationNode(kind="title", text=document.general_title))
        children.extend(nodes)
        return PresentationNode(kind="document", children=children)

    async def render(self, document: Document) -> PresentationNode:
        """Render *document*. Never raises except on cancellation."""
        self.faults = []
        self.callbacks.on_phase_start("RENDER", f"{len(document.blocks)} blocks")
        tree = await isolate_async(self._render_tree(document), label="document", on_fault=self._on_fault)
        if tree.kind != "document":
            tree = PresentationNode(kind="document", children=[tree])
        self.callbacks.on_phase_end("RENDER", not self.faults)
        return tree

