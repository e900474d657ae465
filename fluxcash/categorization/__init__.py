"""Transaction categorization package."""

from fluxcash.categorization.resolver import (
    DEFAULT_CATEGORY,
    DEFAULT_HEURISTICS,
    CategoryResolver,
)

__all__ = ["DEFAULT_CATEGORY", "DEFAULT_HEURISTICS", "CategoryResolver"]
