"""Scouting tablet file ingestion: watch, decode, persist, review."""

__version__ = "0.9.0"
