"""Structured content engine: schema validation, content tree, editing locks and translation sync."""

__version__ = "1.0.0"
