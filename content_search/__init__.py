"""Content extraction, enrichment and hybrid search service."""

__version__ = "1.0.0"
