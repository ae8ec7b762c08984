"""
Category tree synchronization.

Walks the provider's nested category tree level by level (roots, then their
children, then grandchildren) and reconciles every node with the canonical
tree. Nodes are matched under the same canonical parent by the provider's own
id, then its slug, then normalized name, so categories created by another
provider are reused instead of duplicated. A reused category keeps its names;
the provider's id and slug are recorded as a reference to it.
"""
from itertools import count
from typing import Any, Optional

import structlog
from sqlalchemy.orm import Session

from catalog_sync.config.settings import SyncSettings
from catalog_sync.core.exceptions import InvalidRecordError
from catalog_sync.models.domain import (
    CategoryProviderRef,
    CategoryRecord,
    SyncCounts,
    UpsertOutcome,
)
from catalog_sync.pipeline.mapping import get_int, get_string, localized_text, translated_text
from catalog_sync.repositories.category_repository import CategoryRepository
from catalog_sync.services.slug import extract_discriminator, normalize_slug

logger = structlog.get_logger(__name__)

DEFAULT_PROVIDER = "default"
MAX_DEPTH = 3
CHILD_KEYS = ("sub_categories", "subsubcat", "children")


def child_nodes(raw: dict[str, Any]) -> list[dict[str, Any]]:
    """Nested child categories of a raw node, whichever key the provider uses"""
    for key in CHILD_KEYS:
        children = raw.get(key)
        if children:
            return [child for child in children if isinstance(child, dict)]
    return []


class CategoryTreeSynchronizer:
    """Reconciles a provider category tree into the canonical tree"""

    def __init__(
        self, session: Session, settings: SyncSettings, provider: str = DEFAULT_PROVIDER
    ) -> None:
        self.session = session
        self.settings = settings
        self.provider = provider
        self.repository = CategoryRepository(session)
        self.excluded_ids = set(settings.excluded_category_ids)
        self.root_slugs = {normalize_slug(slug) for slug in settings.root_category_slugs}
        self.logger = logger.bind(component="category_tree_sync", provider=provider)

    def sync(self, raw_categories: list[dict[str, Any]]) -> SyncCounts:
        """
        Reconcile the provider tree.

        Args:
            raw_categories: Provider root nodes with nested children

        Returns:
            Counters; invalid or failing nodes are counted as errors and their
            subtrees skipped
        """
        counts = SyncCounts()
        level: list[tuple[dict[str, Any], Optional[CategoryRecord]]] = [
            (raw, None) for raw in raw_categories if self._is_selected_root(raw)
        ]

        for depth in range(1, MAX_DEPTH + 1):
            next_level = []
            for raw, parent in level:
                saved = self._sync_node(raw, parent, counts)
                if saved is not None and depth < MAX_DEPTH:
                    next_level.extend((child, saved) for child in child_nodes(raw))
            self.logger.info("Category level synchronized", depth=depth, nodes=len(level))
            level = next_level
            if not level:
                break

        return counts

    def _is_selected_root(self, raw: dict[str, Any]) -> bool:
        if not isinstance(raw, dict):
            return False
        if not self.root_slugs:
            return True
        slug = normalize_slug(get_string(raw, "slug"))
        name = normalize_slug(localized_text(raw.get("name"), self.settings.primary_language))
        return slug in self.root_slugs or name in self.root_slugs

    def _sync_node(
        self, raw: dict[str, Any], parent: Optional[CategoryRecord], counts: SyncCounts
    ) -> Optional[CategoryRecord]:
        external_id = get_string(raw, "id")
        if external_id and external_id in self.excluded_ids:
            self.logger.info("Excluded category skipped", external_id=external_id)
            return None

        try:
            with self.session.begin_nested():
                saved, outcome = self._upsert(raw, parent)
        except Exception as e:
            counts.errors += 1
            self.logger.warning(
                "Category skipped",
                external_id=external_id,
                parent_id=parent.id if parent else None,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        counts.record(outcome)
        return saved

    def _upsert(
        self, raw: dict[str, Any], parent: Optional[CategoryRecord]
    ) -> tuple[CategoryRecord, UpsertOutcome]:
        external_id = get_string(raw, "id")
        provider_slug = get_string(raw, "slug")
        name = localized_text(raw.get("name"), self.settings.primary_language)

        if not external_id:
            raise InvalidRecordError("Category without id", field="id")
        if not provider_slug:
            raise InvalidRecordError("Category without slug", field="slug", record_key=external_id)
        if not name:
            raise InvalidRecordError("Category without name", field="name", record_key=external_id)

        parent_id = parent.id if parent else None
        existing = self._find_existing(external_id, provider_slug, name, parent_id)

        sort_order = get_int(raw, "sort_order")
        if sort_order is None:
            sort_order = get_int(raw, "count")

        name_en = translated_text(raw.get("name"), "en") or get_string(raw, "name_en")

        if existing is None:
            saved = self.repository.save(
                CategoryRecord(
                    provider=self.provider,
                    external_id=external_id,
                    provider_slug=provider_slug,
                    name=name,
                    name_en=name_en,
                    slug=self._unique_slug(name, provider_slug, external_id, parent),
                    parent_id=parent_id,
                    sort_order=sort_order or 0,
                    visible=True,
                )
            )
            outcome = UpsertOutcome.CREATED
        elif self._owns(existing, external_id):
            update = {"provider_slug": provider_slug, "name": name}
            if name_en:
                update["name_en"] = name_en
            if sort_order is not None:
                update["sort_order"] = sort_order
            saved = self.repository.save(existing.model_copy(update=update))
            outcome = UpsertOutcome.UPDATED
        else:
            saved = existing
            outcome = UpsertOutcome.UPDATED

        self.repository.save_provider_ref(
            CategoryProviderRef(
                category_id=saved.id,
                provider=self.provider,
                external_id=external_id,
                provider_slug=provider_slug,
            )
        )
        self.logger.debug(
            "Category synchronized",
            external_id=external_id,
            slug=saved.slug,
            path=saved.path,
            outcome=outcome.value,
        )
        return saved, outcome

    def _owns(self, category: CategoryRecord, external_id: str) -> bool:
        """A provider renames only the categories it created under the same id"""
        return category.provider == self.provider and category.external_id == external_id

    def _find_existing(
        self,
        external_id: str,
        provider_slug: str,
        name: str,
        parent_id: Optional[int],
    ) -> Optional[CategoryRecord]:
        existing = self.repository.find_by_provider_ref(self.provider, external_id, parent_id)
        if existing is not None:
            return existing

        existing = self.repository.find_by_provider_ref_slug(self.provider, provider_slug, parent_id)
        if existing is not None:
            return existing

        wanted = normalize_slug(name)
        for sibling in self.repository.list_children(parent_id):
            if normalize_slug(sibling.name) == wanted:
                self.logger.info(
                    "Reusing category matched by name",
                    category_id=sibling.id,
                    name=name,
                    created_by=sibling.provider,
                )
                return sibling
        return None

    def _unique_slug(
        self,
        name: str,
        provider_slug: Optional[str],
        external_id: str,
        parent: Optional[CategoryRecord],
    ) -> str:
        """
        Pick a slug not used by any other category.

        Tries the normalized name, then a parent-prefixed form (``-root`` for
        roots), then a discriminator suffix, then numeric suffixes.
        """
        base = (
            normalize_slug(name)
            or normalize_slug(provider_slug)
            or f"category-{normalize_slug(external_id)}"
        )
        if not self.repository.slug_exists(base):
            return base

        if parent is None:
            candidates = [f"{base}-root"]
        else:
            candidates = [f"{parent.slug}-{base}"]
            discriminator = extract_discriminator(name)
            if discriminator:
                candidates.append(f"{candidates[0]}-{discriminator}")

        for candidate in candidates:
            if not self.repository.slug_exists(candidate):
                return candidate

        stem = candidates[-1]
        for number in count(2):
            candidate = f"{stem}-{number}"
            if not self.repository.slug_exists(candidate):
                return candidate


__all__ = ["DEFAULT_PROVIDER", "CategoryTreeSynchronizer", "child_nodes"]
