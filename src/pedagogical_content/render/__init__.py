"""Rendering of repaired documents to presentation trees and HTML."""

from .blocks import classify_sticky, render_block
from .diagram import DiagramRenderer, MermaidCliEngine
from .document import DocumentRenderer
from .html import to_html, to_html_page
from .isolation import RenderFault, isolate, isolate_async

__all__ = [
    "DiagramRenderer",
    "DocumentRenderer",
    "MermaidCliEngine",
    "RenderFault",
    "classify_sticky",
    "isolate",
    "isolate_async",
    "render_block",
    "to_html",
    "to_html_page",
]
