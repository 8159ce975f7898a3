"""Page categorization."""

from aeo_scoring.categorizer.categorizer import PageCategorizer
from aeo_scoring.categorizer.categories import get_analyzed_dimensions, get_category_display_name

__all__ = ["PageCategorizer", "get_analyzed_dimensions", "get_category_display_name"]
