"""Deterministic normalizers for generated lesson content."""

from .diagram_normalizer import DiagramSyntaxError, normalize_diagram_source, rewrite_diagram_source
from .references import normalize_references
from .sanitizer import clean_markup, sanitize

__all__ = [
    "DiagramSyntaxError",
    "clean_markup",
    "normalize_diagram_source",
    "normalize_references",
    "rewrite_diagram_source",
    "sanitize",
]
