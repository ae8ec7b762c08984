"""
Category reconciliation matcher.

Runs the strategy cascade for a denormalized label tuple, rejects roots,
memoizes per distinct tuple and keeps per-strategy statistics for the run.
"""
from collections import Counter
from collections.abc import Iterable
from typing import Optional

import structlog

from catalog_sync.models.domain import CategoryLabels, MatchResult
from catalog_sync.pipeline.category_matching.strategies import (
    DEFAULT_STRATEGIES,
    CategoryTree,
    MatchingStrategy,
    is_valid_category,
)

logger = structlog.get_logger(__name__)

NO_MATCH = "no_match"
ROOT_REJECTED = "root_rejected"


class CategoryMatcher:
    """
    Reconciles provider category labels against a canonical tree snapshot.

    The cascade stops at the first strategy that returns a category. A hit on
    a root category is rejected and reported as no match, since roots never
    receive products.
    """

    def __init__(
        self,
        tree: CategoryTree,
        strategies: Iterable[MatchingStrategy] = DEFAULT_STRATEGIES,
        disabled: Iterable[str] = (),
    ) -> None:
        disabled_names = set(disabled)
        self.tree = tree
        self.strategies = tuple(s for s in strategies if s.name.value not in disabled_names)
        self.statistics: Counter = Counter()
        self._memo: dict[tuple, MatchResult] = {}
        self.logger = logger.bind(component="category_matcher")

        if disabled_names:
            self.logger.info("Match strategies disabled", disabled=sorted(disabled_names))

    def match(self, labels: CategoryLabels) -> MatchResult:
        """
        Reconcile one label tuple.

        Args:
            labels: Up to three category levels from the provider record

        Returns:
            Match result; ``category`` is None on a miss or a rejected root
        """
        key = labels.as_tuple()
        result = self._memo.get(key)
        if result is None:
            result = self._evaluate(labels)
            self._memo[key] = result

        self._count(result)
        return result

    def match_labels(
        self,
        level1: Optional[str] = None,
        level2: Optional[str] = None,
        level3: Optional[str] = None,
    ) -> MatchResult:
        return self.match(CategoryLabels.from_raw(level1, level2, level3))

    def _evaluate(self, labels: CategoryLabels) -> MatchResult:
        if labels.is_empty():
            return MatchResult()

        for strategy in self.strategies:
            category = strategy.match(labels, self.tree)
            if category is None or not is_valid_category(category):
                continue

            if category.is_root:
                self.logger.debug(
                    "Root category hit rejected",
                    strategy=strategy.name.value,
                    labels=list(labels.as_tuple()),
                    category_id=category.id,
                )
                return MatchResult(strategy=strategy.name, rejected_root=True)

            return MatchResult(category=category, strategy=strategy.name)

        return MatchResult()

    def _count(self, result: MatchResult) -> None:
        if result.rejected_root:
            self.statistics[ROOT_REJECTED] += 1
        elif result.category is None:
            self.statistics[NO_MATCH] += 1
        else:
            self.statistics[result.strategy.value] += 1

    def get_statistics(self) -> dict[str, int]:
        """Match counts per strategy plus misses and rejected roots"""
        stats = {strategy.name.value: 0 for strategy in self.strategies}
        stats[NO_MATCH] = 0
        stats[ROOT_REJECTED] = 0
        stats.update(self.statistics)
        return stats

    def reset_statistics(self) -> None:
        self.statistics.clear()


__all__ = ["CategoryMatcher", "NO_MATCH", "ROOT_REJECTED"]
