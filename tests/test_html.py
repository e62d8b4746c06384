"""Tests for presentation tree -> HTML serialization."""

from __future__ import annotations

import pytest

from pedagogical_content.models import PresentationNode, ReferenceListBlock, StickyBlock
from pedagogical_content.render.blocks import render_block, unsupported_node
from pedagogical_content.render.document import DocumentRenderer
from pedagogical_content.render.html import to_html, to_html_page
from pedagogical_content.render.isolation import unavailable_node


class TestToHtml:
    def test_text_is_escaped(self):
        out = to_html(PresentationNode(kind="heading", attrs={"level": 3}, text="a < b & c"))
        assert out == "<h3>a &lt; b &amp; c</h3>"

    def test_markup_is_embedded(self):
        out = to_html(PresentationNode(kind="paragraph", markup="<strong>x</strong>"))
        assert out == '<p class="paragraph"><strong>x</strong></p>'

    def test_bad_heading_level_falls_back(self):
        assert to_html(PresentationNode(kind="heading", attrs={"level": 9}, text="x")) == "<h2>x</h2>"

    def test_sticky_category_class(self):
        out = to_html(render_block(StickyBlock(text="Dica: revise")))
        assert 'class="sticky sticky-tip"' in out

    def test_references_spacer_kept(self):
        out = to_html(render_block(ReferenceListBlock(title="Refs", items=["[1] Foo"])))
        assert '<span class="ref-spacer"></span>' in out
        assert "<h3>Refs</h3>" in out

    def test_unsupported_notice(self):
        out = to_html(unsupported_node("frobnicate"))
        assert 'class="unsupported-block"' in out
        assert "frobnicate" in out

    def test_unavailable_notice(self):
        out = to_html(unavailable_node("block 2"))
        assert 'class="render-unavailable"' in out
        assert "Visualization unavailable" in out

    def test_unknown_node_kind_has_fallback(self):
        out = to_html(PresentationNode(kind="mystery", text="<x>"))
        assert out == '<div class="mystery">&lt;x&gt;</div>'

    def test_chart_series_in_attribute(self):
        node = PresentationNode(
            kind="chart",
            attrs={"chart_kind": "pie", "series": [{"category": 'a"b', "value": 1.0}]},
        )
        out = to_html(node)
        assert 'class="chart chart-pie"' in out
        assert "&quot;" in out
        assert "<td>a\"b</td>" in out

    def test_placeholder_excerpt_escaped(self):
        node = PresentationNode(
            kind="diagram_placeholder",
            text="could not render",
            children=[PresentationNode(kind="source_excerpt", text="A --> B<script>")],
        )
        out = to_html(node)
        assert "<pre><code>A --&gt; B&lt;script&gt;</code></pre>" in out


class TestToHtmlPage:
    def test_page_wrapper(self):
        page = to_html_page(PresentationNode(kind="document"), title="Aula & Prática")
        assert page.startswith("<!DOCTYPE html>")
        assert '<html lang="pt-BR">' in page
        assert "<title>Aula &amp; Prática</title>" in page

    @pytest.mark.asyncio
    async def test_sample_lesson_page(self, sample_lesson, offline_config, recording_engine):
        tree = await DocumentRenderer(offline_config, engine=recording_engine).render(sample_lesson)
        page = to_html_page(tree, sample_lesson.general_title)
        assert "<h1>Hidrostática: Pressão em Fluidos</h1>" in page
        assert "<details>" in page
        assert '<div class="diagram-graphic"><svg>ok</svg></div>' in page
        assert "<script" not in page
