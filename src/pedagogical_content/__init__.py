"""Repair and rendering pipeline for LLM-generated structured lesson material."""

__version__ = "0.1.0"
