"""Page signal extraction."""

from aeo_scoring.signals.extractor import extract, get_clean_content, validate_heading_hierarchy

__all__ = ["extract", "get_clean_content", "validate_heading_hierarchy"]
