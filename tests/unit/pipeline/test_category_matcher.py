"""
Unit tests for the category reconciliation cascade.
"""
import pytest

from catalog_sync.models.domain import CategoryLabels, MatchStrategy
from catalog_sync.pipeline.category_matching import (
    NO_MATCH,
    ROOT_REJECTED,
    CategoryMatcher,
    CategoryTree,
)


@pytest.fixture
def matcher(canonical_categories):
    return CategoryMatcher(CategoryTree(canonical_categories))


class TestCascade:
    """Test strategy precedence"""

    def test_exact_path_beats_display_name(self, matcher):
        """The path match wins although a lower-id category shares the name"""
        result = matcher.match_labels("Видеонаблюдение", "IP камери", "Куполни")

        assert result.category.id == 5
        assert result.strategy == MatchStrategy.EXACT_PATH

    @pytest.mark.parametrize(
        "levels, expected_id, expected_strategy",
        [
            (("Аксесоари", "Куполни"), 7, MatchStrategy.LEVEL2_NAME_UNDER_PARENT),
            (("Аксесоари", "Stoyki za kameri"), 8, MatchStrategy.LEVEL2_SLUG_UNDER_PARENT),
            (("Видеонаблюдение", "Аналогови камери", "Непознати"), 4, MatchStrategy.PARTIAL_PATH),
            (("Unknown", "Something", "ip cameras"), 2, MatchStrategy.PROVIDER_SLUG),
            (("Unknown", "Аналогови камери"), 4, MatchStrategy.DISPLAY_NAME),
        ],
    )
    def test_first_hit_wins(self, matcher, levels, expected_id, expected_strategy):
        result = matcher.match_labels(*levels)

        assert result.matched
        assert result.category.id == expected_id
        assert result.strategy == expected_strategy

    def test_colliding_slug_found_by_name_under_parent(self, matcher):
        """A node whose slug was prefixed on collision is still reachable"""
        result = matcher.match_labels("Аксесоари", "Куполни")
        assert result.category.slug == "aksesoari-kupolni"

    def test_null_labels_treated_as_absent(self, matcher):
        result = matcher.match(CategoryLabels(level1="Видеонаблюдение", level2="IP камери", level3="null"))

        assert result.category.id == 2
        assert result.strategy == MatchStrategy.EXACT_PATH

    def test_no_match(self, matcher):
        result = matcher.match_labels("Непозната", "Категория")

        assert not result.matched
        assert result.strategy is None
        assert not result.rejected_root

    def test_unusable_middle_level_is_no_exact_path(self, matcher):
        """A level with no slug characters never lets a deeper path match one level up"""
        result = matcher.match_labels("Видеонаблюдение", "电源", "IP камери")

        assert result.strategy != MatchStrategy.EXACT_PATH
        assert not result.matched

    def test_empty_labels(self, matcher):
        assert not matcher.match_labels(None, "null", " ").matched


class TestRootRejection:
    """Roots never receive products"""

    def test_root_hit_by_level1_path_rejected(self, matcher):
        result = matcher.match_labels("Видеонаблюдение", "Несъществуваща")

        assert result.category is None
        assert result.rejected_root
        assert result.strategy == MatchStrategy.LEVEL1_PATH

    def test_root_hit_by_exact_path_rejected(self, matcher):
        result = matcher.match_labels("Аксесоари")

        assert result.rejected_root
        assert result.strategy == MatchStrategy.EXACT_PATH


class TestConfiguration:
    """Test disabled strategies, memoization and statistics"""

    def test_disabled_strategy_skipped(self, canonical_categories):
        matcher = CategoryMatcher(
            CategoryTree(canonical_categories), disabled=["exact_path"]
        )
        result = matcher.match_labels("Видеонаблюдение", "IP камери")

        assert result.category.id == 2
        assert result.strategy == MatchStrategy.LEVEL2_NAME_UNDER_PARENT

    def test_all_disabled_matches_nothing(self, canonical_categories):
        matcher = CategoryMatcher(
            CategoryTree(canonical_categories), disabled=[s.value for s in MatchStrategy]
        )
        assert not matcher.match_labels("Видеонаблюдение", "IP камери").matched

    def test_memoized_per_label_tuple(self, matcher):
        first = matcher.match_labels("Видеонаблюдение", "IP камери")
        second = matcher.match_labels("Видеонаблюдение", "IP камери")

        assert first is second

    def test_statistics(self, matcher):
        matcher.match_labels("Видеонаблюдение", "IP камери")
        matcher.match_labels("Видеонаблюдение", "IP камери")
        matcher.match_labels("Unknown", "Аналогови камери")
        matcher.match_labels("Непозната")
        matcher.match_labels("Аксесоари")

        stats = matcher.get_statistics()
        assert stats["exact_path"] == 2
        assert stats["display_name"] == 1
        assert stats[NO_MATCH] == 1
        assert stats[ROOT_REJECTED] == 1
        assert stats["provider_slug"] == 0

        matcher.reset_statistics()
        assert matcher.get_statistics()[NO_MATCH] == 0
