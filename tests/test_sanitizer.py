"""Tests for the inline-markup sanitizer and markdown conversion."""

from __future__ import annotations

import pytest

from pedagogical_content.tools.sanitizer import (
    ALLOWED_TAGS,
    clean_markup,
    inline_markdown_to_markup,
    sanitize,
    strip_tags,
)

_SAMPLES = [
    "plain text",
    "<div>bad</div>",
    "<strong>bold",
    "<p>one<p>two",
    '<span class="hl" style="color:red" onclick="x()">hi</span>',
    "a <b>b</b> <i>c</i> <a href='http://x'>link</a>",
    "x<br/>y<br />z</br>",
    "1 &lt; 2 &amp;&amp; 3 &gt; 2",
    "<script>alert(1)</script>after",
    "<!-- note -->visible",
    "acentuação: ação, reflexão",
    "<em><strong>nested</em></strong>",
    "<table><tr><td>cell</td></tr></table>",
]


class TestSanitize:
    def test_allow_list(self):
        assert ALLOWED_TAGS == {"strong", "em", "br", "u", "span", "p", "code"}

    def test_disallowed_tag_stripped_keeping_text(self):
        assert sanitize("<div>bad</div>") == "bad"

    def test_allowed_tags_kept(self):
        markup = "<p><strong>a</strong> <em>b</em> <u>c</u> <code>d</code><br>e</p>"
        assert sanitize(markup) == markup

    def test_unterminated_tag_is_closed(self):
        assert sanitize("<strong>bold") == "<strong>bold</strong>"

    def test_void_br_serialized_without_slash(self):
        assert sanitize("a<br/>b<br />c") == "a<br>b<br>c"

    def test_only_class_attribute_kept(self):
        assert sanitize('<span class="hl" style="color:red" onclick="x()">hi</span>') == '<span class="hl">hi</span>'

    def test_links_unwrapped(self):
        assert sanitize("see <a href='http://x'>this</a>") == "see this"

    def test_script_content_dropped(self):
        assert sanitize("<script>alert(1)</script>after") == "after"

    def test_comments_dropped(self):
        assert sanitize("<!-- note -->visible") == "visible"

    def test_accents_not_entity_encoded(self):
        assert sanitize("ação e reflexão") == "ação e reflexão"

    def test_reference_sentinel_survives(self):
        assert sanitize("[1] Foo<br><br>") == "[1] Foo<br><br>"

    def test_empty(self):
        assert sanitize("") == ""

    @pytest.mark.parametrize("markup", _SAMPLES)
    def test_idempotent(self, markup):
        once = sanitize(markup)
        assert sanitize(once) == once


class TestInlineMarkdown:
    def test_bold_and_italic(self):
        assert inline_markdown_to_markup("**a** and *b*") == "<strong>a</strong> and <em>b</em>"

    def test_bold_italic(self):
        assert inline_markdown_to_markup("***x***") == "<strong><em>x</em></strong>"

    def test_underscore_bold(self):
        assert inline_markdown_to_markup("__x__") == "<strong>x</strong>"

    def test_line_breaks(self):
        assert inline_markdown_to_markup("a\nb\\nc&lt;br&gt;d&lt;br /&gt;e") == "a<br>b<br>c<br>d<br>e"

    def test_heading_markers_dropped(self):
        assert inline_markdown_to_markup("## Título\ntexto") == "Título<br>texto"

    def test_stacked_heading_markers_dropped(self):
        assert inline_markdown_to_markup("#  # x") == "x"

    def test_lone_asterisk_untouched(self):
        assert inline_markdown_to_markup("5 * 3 = 15") == "5 * 3 = 15"

    @pytest.mark.parametrize("text", ["**a** *b*", "x\ny", "## h", "#  # x", "***z***", "a &lt;br&gt; b"])
    def test_idempotent(self, text):
        once = inline_markdown_to_markup(text)
        assert inline_markdown_to_markup(once) == once


class TestCleanMarkup:
    def test_markdown_then_sanitize(self):
        assert clean_markup("<div>**x**</div>") == "<strong>x</strong>"

    def test_stacked_heading_markers_idempotent(self):
        once = clean_markup("#  # x")
        assert once == "x"
        assert clean_markup(once) == once

    def test_strip_tags(self):
        assert strip_tags("<strong>Atenção</strong>: cuidado") == "Atenção: cuidado"
