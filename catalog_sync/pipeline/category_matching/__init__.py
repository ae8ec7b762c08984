"""Category reconciliation: strategy cascade over a canonical tree snapshot."""
from catalog_sync.pipeline.category_matching.matcher import (
    NO_MATCH,
    ROOT_REJECTED,
    CategoryMatcher,
)
from catalog_sync.pipeline.category_matching.strategies import (
    DEFAULT_STRATEGIES,
    CategoryTree,
    MatchingStrategy,
    is_valid_category,
)

__all__ = [
    "CategoryMatcher",
    "CategoryTree",
    "DEFAULT_STRATEGIES",
    "MatchingStrategy",
    "NO_MATCH",
    "ROOT_REJECTED",
    "is_valid_category",
]
