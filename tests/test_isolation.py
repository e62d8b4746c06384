"""Tests for render fault containment and whole-document rendering."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, patch

import pytest

from pedagogical_content.models import (
    DiagramBlock,
    Document,
    HeadingBlock,
    HighlightBoxBlock,
    LearningObjectives,
    ParagraphBlock,
    PresentationNode,
)
from pedagogical_content.render.document import DocumentRenderer
from pedagogical_content.render.isolation import (
    UNAVAILABLE_TEXT,
    isolate,
    isolate_async,
    unavailable_node,
)


def _boom(*_args):
    raise RuntimeError("renderer exploded")


class TestIsolate:
    def test_passthrough(self):
        node = isolate(lambda text: PresentationNode(kind="paragraph", text=text), "hi", label="p")
        assert node.text == "hi"

    def test_fault_becomes_placeholder(self):
        on_fault = MagicMock()
        node = isolate(_boom, label="block 3", on_fault=on_fault)
        assert node == unavailable_node("block 3")
        assert node.text == UNAVAILABLE_TEXT
        label, exc = on_fault.call_args.args
        assert label == "block 3"
        assert isinstance(exc, RuntimeError)

    def test_fault_is_logged(self, caplog):
        with caplog.at_level("ERROR"):
            isolate(_boom, label="block 1")
        assert "renderer exploded" in caplog.text

    def test_base_exception_passes_through(self):
        def interrupt():
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            isolate(interrupt, label="x")


class TestIsolateAsync:
    @pytest.mark.asyncio
    async def test_passthrough(self):
        async def ok():
            return PresentationNode(kind="paragraph")

        assert (await isolate_async(ok(), label="p")).kind == "paragraph"

    @pytest.mark.asyncio
    async def test_fault_becomes_placeholder(self):
        async def fail():
            raise ValueError("bad svg")

        node = await isolate_async(fail(), label="diagram")
        assert node.kind == "unavailable"
        assert node.attrs["origin"] == "diagram"

    @pytest.mark.asyncio
    async def test_cancellation_passes_through(self):
        async def cancelled():
            raise asyncio.CancelledError

        with pytest.raises(asyncio.CancelledError):
            await isolate_async(cancelled(), label="x")


class TestDocumentRenderer:
    @pytest.mark.asyncio
    async def test_renders_sample(self, sample_lesson, offline_config, recording_engine):
        tree = await DocumentRenderer(offline_config, engine=recording_engine).render(sample_lesson)
        kinds = [c.kind for c in tree.children]

        assert tree.kind == "document"
        assert kinds[0] == "title"
        assert kinds[1] == "heading"
        assert kinds[2] == "objectives"
        assert "unsupported" not in kinds
        assert "unavailable" not in kinds

        diagram = next(c for c in tree.children if c.kind == "diagram")
        assert diagram.children[0].kind == "diagram_graphic"

    @pytest.mark.asyncio
    async def test_block_fault_is_contained(self, sample_lesson, offline_config, recording_engine):
        renderer = DocumentRenderer(offline_config, engine=recording_engine)
        with patch.dict("pedagogical_content.render.blocks._RENDERERS", {"paragraph": _boom}):
            tree = await renderer.render(sample_lesson)

        kinds = [c.kind for c in tree.children]
        assert kinds.count("unavailable") == 3
        assert "heading" in kinds
        assert "reference_list" in kinds
        assert len(renderer.faults) == 3

    @pytest.mark.asyncio
    async def test_diagram_fault_is_contained(self, offline_config, recording_engine):
        doc = Document(blocks=[ParagraphBlock(text="a"), DiagramBlock(source="graph TD")])
        renderer = DocumentRenderer(offline_config, engine=recording_engine)
        with patch.object(renderer.diagrams, "render", side_effect=RuntimeError("engine crashed")):
            tree = await renderer.render(doc)
        assert [c.kind for c in tree.children] == ["paragraph", "unavailable"]

    @pytest.mark.asyncio
    async def test_failed_diagram_gets_placeholder(self, offline_config, failing_engine):
        doc = Document(blocks=[DiagramBlock(source="graph TD\nA --> B")])
        tree = await DocumentRenderer(offline_config, engine=failing_engine).render(doc)
        slot = tree.children[0]
        assert slot.kind == "diagram"
        assert slot.children[0].kind == "diagram_placeholder"

    @pytest.mark.asyncio
    async def test_document_fault_is_contained(self, sample_lesson, offline_config, recording_engine):
        callbacks = MagicMock()
        renderer = DocumentRenderer(offline_config, engine=recording_engine, callbacks=callbacks)
        with patch("pedagogical_content.render.document._objectives_insert_at", side_effect=RuntimeError("x")):
            tree = await renderer.render(sample_lesson)
        assert tree.kind == "document"
        assert [c.kind for c in tree.children] == ["unavailable"]
        callbacks.on_error.assert_called_once()

    @pytest.mark.asyncio
    async def test_diagram_ids_are_unique(self, offline_config, recording_engine):
        doc = Document(blocks=[DiagramBlock(source="graph TD"), DiagramBlock(source="graph LR")])
        await DocumentRenderer(offline_config, engine=recording_engine).render(doc)
        ids = [uid for uid, _ in recording_engine.calls]
        assert len(ids) == len(set(ids)) == 2

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, offline_config, hanging_engine):
        config = offline_config.model_copy(update={"diagram_render_timeout": 30})
        doc = Document(blocks=[DiagramBlock(source="graph TD")])
        task = asyncio.create_task(DocumentRenderer(config, engine=hanging_engine).render(doc))
        while not hanging_engine.calls:
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert hanging_engine.cancelled == 1


class TestObjectivesPlacement:
    _OBJECTIVES = LearningObjectives(apply_analyze=["Calcular"])

    @pytest.mark.asyncio
    async def test_without_heading_goes_first(self, offline_config, recording_engine):
        doc = Document(blocks=[ParagraphBlock(text="a")], objectives=self._OBJECTIVES)
        tree = await DocumentRenderer(offline_config, engine=recording_engine).render(doc)
        assert [c.kind for c in tree.children] == ["objectives", "paragraph"]

    @pytest.mark.asyncio
    async def test_existing_box_not_duplicated(self, offline_config, recording_engine):
        doc = Document(
            blocks=[HeadingBlock(text="Intro"), HighlightBoxBlock(title="Objetivos", text="x")],
            objectives=self._OBJECTIVES,
        )
        tree = await DocumentRenderer(offline_config, engine=recording_engine).render(doc)
        assert "objectives" not in [c.kind for c in tree.children]

    @pytest.mark.asyncio
    async def test_empty_objectives_ignored(self, offline_config, recording_engine):
        doc = Document(blocks=[ParagraphBlock(text="a")], objectives=LearningObjectives())
        tree = await DocumentRenderer(offline_config, engine=recording_engine).render(doc)
        assert [c.kind for c in tree.children] == ["paragraph"]
