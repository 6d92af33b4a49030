"""Markshelf: serve local Markdown with durable, self-healing highlights."""

__version__ = "0.1.0"
