"""
Category reconciliation strategies.

Each strategy is a pure function over an immutable snapshot of the canonical
tree. Strategies run in the order of ``DEFAULT_STRATEGIES``; the first one
returning a category wins.
"""
from collections.abc import Iterable, Mapping
from typing import Callable, NamedTuple, Optional

from catalog_sync.models.domain import CategoryLabels, CategoryRecord, MatchStrategy
from catalog_sync.services.slug import build_path, normalize_slug


def is_valid_category(category: Optional[CategoryRecord]) -> bool:
    """A usable category has an id and a non-blank display name"""
    return (
        category is not None
        and category.id is not None
        and bool(category.name and category.name.strip())
    )


def _same_name(left: Optional[str], right: Optional[str]) -> bool:
    if left is None or right is None:
        return False
    return left.strip().casefold() == right.strip().casefold()


class CategoryTree:
    """Read-only snapshot of the canonical tree taken at the start of a run"""

    def __init__(
        self,
        categories: Iterable[CategoryRecord],
        external_ids: Optional[Mapping[str, int]] = None,
    ) -> None:
        self._categories = tuple(sorted(categories, key=lambda c: c.id or 0))
        self._by_id = {c.id: c for c in self._categories}
        # Every provider id known for a category, not only the one it carries
        self._external_ids = dict(external_ids or {})
        self._by_path: dict[str, CategoryRecord] = {}
        for category in self._categories:
            if category.path:
                self._by_path.setdefault(category.path.lower(), category)

    def __len__(self) -> int:
        return len(self._categories)

    def __iter__(self):
        return iter(self._categories)

    def get(self, category_id: Optional[int]) -> Optional[CategoryRecord]:
        return self._by_id.get(category_id)

    def parent_of(self, category: CategoryRecord) -> Optional[CategoryRecord]:
        return self._by_id.get(category.parent_id)

    def by_path(self, path: Optional[str]) -> Optional[CategoryRecord]:
        """First category whose stored path equals the given one, ignoring case"""
        if not path:
            return None
        category = self._by_path.get(path.lower())
        return category if is_valid_category(category) else None

    def first(self, predicate: Callable[[CategoryRecord], bool]) -> Optional[CategoryRecord]:
        """First valid category in store order satisfying the predicate"""
        for category in self._categories:
            if is_valid_category(category) and predicate(category):
                return category
        return None

    def by_external_id(self, external_id: Optional[str]) -> Optional[CategoryRecord]:
        if not external_id:
            return None
        if external_id in self._external_ids:
            category = self._by_id.get(self._external_ids[external_id])
            if is_valid_category(category):
                return category
        return self.first(lambda c: c.external_id == external_id)

    def child_of_named_parent(
        self,
        parent_name: str,
        predicate: Callable[[CategoryRecord], bool],
    ) -> Optional[CategoryRecord]:
        def matches(category: CategoryRecord) -> bool:
            parent = self.parent_of(category)
            return parent is not None and _same_name(parent.name, parent_name) and predicate(category)

        return self.first(matches)


# ============================================================================
# Strategies
# ============================================================================


def match_exact_path(labels: CategoryLabels, tree: CategoryTree) -> Optional[CategoryRecord]:
    """Normalized path of every present level equals a stored path"""
    return tree.by_path(build_path(labels.level1, labels.level2, labels.level3))


def _two_level_labels(labels: CategoryLabels) -> bool:
    return bool(labels.level1 and labels.level2 and not labels.level3)


def match_level2_name_under_parent(
    labels: CategoryLabels, tree: CategoryTree
) -> Optional[CategoryRecord]:
    """Level-2 display name under a parent named like level-1"""
    if not _two_level_labels(labels):
        return None
    return tree.child_of_named_parent(
        labels.level1, lambda c: _same_name(c.name, labels.level2)
    )


def match_level2_slug_under_parent(
    labels: CategoryLabels, tree: CategoryTree
) -> Optional[CategoryRecord]:
    """Normalized level-2 equals the provider slug under a parent named like level-1"""
    if not _two_level_labels(labels):
        return None
    slug = normalize_slug(labels.level2)
    if not slug:
        return None
    return tree.child_of_named_parent(
        labels.level1, lambda c: _same_name(c.provider_slug, slug)
    )


def match_partial_path(labels: CategoryLabels, tree: CategoryTree) -> Optional[CategoryRecord]:
    """Path built from levels 1 and 2 only"""
    if not labels.level2:
        return None
    return tree.by_path(build_path(labels.level1, labels.level2))


def match_level1_path(labels: CategoryLabels, tree: CategoryTree) -> Optional[CategoryRecord]:
    """Path built from level 1 only"""
    if not labels.level1:
        return None
    return tree.by_path(build_path(labels.level1))


def match_provider_slug(labels: CategoryLabels, tree: CategoryTree) -> Optional[CategoryRecord]:
    """Normalized level-3, then level-2, against provider slugs"""
    for label in (labels.level3, labels.level2):
        slug = normalize_slug(label)
        if not slug:
            continue
        category = tree.first(lambda c: _same_name(c.provider_slug, slug))
        if category is not None:
            return category
    return None


def match_display_name(labels: CategoryLabels, tree: CategoryTree) -> Optional[CategoryRecord]:
    """Display name on level-3, level-2, then level-1"""
    for label in (labels.level3, labels.level2, labels.level1):
        if not label:
            continue
        category = tree.first(lambda c: _same_name(c.name, label))
        if category is not None:
            return category
    return None


class MatchingStrategy(NamedTuple):
    """A named step of the reconciliation cascade"""

    name: MatchStrategy
    match: Callable[[CategoryLabels, CategoryTree], Optional[CategoryRecord]]


DEFAULT_STRATEGIES: tuple[MatchingStrategy, ...] = (
    MatchingStrategy(MatchStrategy.EXACT_PATH, match_exact_path),
    MatchingStrategy(MatchStrategy.LEVEL2_NAME_UNDER_PARENT, match_level2_name_under_parent),
    MatchingStrategy(MatchStrategy.LEVEL2_SLUG_UNDER_PARENT, match_level2_slug_under_parent),
    MatchingStrategy(MatchStrategy.PARTIAL_PATH, match_partial_path),
    MatchingStrategy(MatchStrategy.LEVEL1_PATH, match_level1_path),
    MatchingStrategy(MatchStrategy.PROVIDER_SLUG, match_provider_slug),
    MatchingStrategy(MatchStrategy.DISPLAY_NAME, match_display_name),
)


__all__ = [
    "CategoryTree",
    "MatchingStrategy",
    "DEFAULT_STRATEGIES",
    "is_valid_category",
    "match_exact_path",
    "match_level2_name_under_parent",
    "match_level2_slug_under_parent",
    "match_partial_path",
    "match_level1_path",
    "match_provider_slug",
    "match_display_name",
]
