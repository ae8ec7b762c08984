"""
Catalog synchronization orchestration.

Top-level operations pulling one kind of data from a provider into the
canonical catalog. Each operation opens its own session, builds its per-run
caches, is recorded in the sync run ledger and returns its counters.

Complete synchronization order: categories, manufacturers, parameters,
products. Products come last because they reference all the others.
"""
import time
from collections.abc import Iterator
from typing import Any, Callable, Optional, Union

import structlog
from sqlalchemy.orm import Session

from catalog_sync.config.settings import SyncSettings
from catalog_sync.core.exceptions import CatalogSyncError
from catalog_sync.models.domain import CategoryProviderRef, CategoryRecord, SyncCounts, SyncType
from catalog_sync.pipeline.attribute_resolver import PARAMETER_NAMES, AttributeDictionaryResolver
from catalog_sync.pipeline.category_matching import CategoryMatcher, CategoryTree
from catalog_sync.pipeline.category_tree_sync import CategoryTreeSynchronizer
from catalog_sync.pipeline.chunked_upsert import ChunkedUpsertPipeline
from catalog_sync.pipeline.deduplication import ProductDeduplicator
from catalog_sync.pipeline.handlers import (
    ManufacturerHandler,
    ParameterGroup,
    ParameterHandler,
    ProductCategoryResolver,
    ProductHandler,
)
from catalog_sync.pipeline.mapping import (
    SKU_FIELD,
    extract_properties,
    get_int,
    get_string,
    localized_text,
    translated_text,
)
from catalog_sync.pipeline.run_cache import ManufacturerCache, normalize_manufacturer_name
from catalog_sync.providers.base import CatalogProvider, RawRecord
from catalog_sync.repositories.attribute_repository import AttributeRepository
from catalog_sync.repositories.base import session_scope
from catalog_sync.repositories.category_repository import CategoryRepository
from catalog_sync.repositories.manufacturer_repository import ManufacturerRepository
from catalog_sync.repositories.product_repository import ProductRepository
from catalog_sync.services.sync_ledger import SyncRunLedger

logger = structlog.get_logger(__name__)


def category_handle(source: Union[CategoryRecord, CategoryProviderRef]) -> Optional[str]:
    """Provider grouping key of a canonical category or one of its references"""
    return source.provider_slug or source.external_id


class CatalogSyncService:
    """Runs provider synchronizations against the canonical catalog"""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        provider: CatalogProvider,
        settings: Optional[SyncSettings] = None,
        ledger: Optional[SyncRunLedger] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session_factory = session_factory
        self.provider = provider
        self.settings = settings or SyncSettings()
        self.ledger = ledger or SyncRunLedger(session_factory)
        self.clock = clock
        self.sleep = sleep
        self.excluded_ids = set(self.settings.excluded_category_ids)
        self.logger = logger.bind(component="catalog_sync", provider=provider.name)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def sync_categories(self) -> SyncCounts:
        """Reconcile the provider category tree into the canonical tree"""
        with self.ledger.track(SyncType.CATEGORIES) as run:
            raw_categories = self.provider.fetch_categories_raw()
            self.logger.info("Categories fetched", roots=len(raw_categories))

            with session_scope(self.session_factory) as session:
                counts = CategoryTreeSynchronizer(
                    session, self.settings, provider=self.provider.name
                ).sync(raw_categories)

            run.complete(
                counts,
                f"Categories: {counts.created} created, {counts.updated} updated, "
                f"{counts.errors} skipped",
            )
        return counts

    # ------------------------------------------------------------------
    # Manufacturers
    # ------------------------------------------------------------------

    def sync_manufacturers(self) -> SyncCounts:
        """Upsert the union of manufacturer names across category handles"""
        with self.ledger.track(SyncType.MANUFACTURERS) as run:
            with session_scope(self.session_factory) as session:
                names: dict[str, str] = {}
                fetch_errors = 0

                for handle in self._category_handles(session):
                    try:
                        fetched = self.provider.fetch_manufacturers_raw(handle)
                    except Exception as e:
                        fetch_errors += 1
                        self._log_fetch_failure("manufacturers", handle, e)
                        continue
                    for name in sorted(fetched):
                        names.setdefault(normalize_manufacturer_name(name), name)

                names.pop("", None)
                handler = ManufacturerHandler(ManufacturerCache(ManufacturerRepository(session)))
                report = self._pipeline(session).run(list(names.values()), handler)

            counts = report.counts
            counts.errors += fetch_errors
            run.complete(
                counts,
                f"Manufacturers: {counts.created} created, {counts.updated} updated",
            )
        return counts

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def sync_parameters(self) -> SyncCounts:
        """
        Register attributes and options per category.

        Sources are the provider's explicit parameter lists and the property
        fields of the products listed under each category handle.
        """
        with self.ledger.track(SyncType.PARAMETERS) as run:
            with session_scope(self.session_factory) as session:
                categories, refs = self._provider_view(session)
                category_resolver = ProductCategoryResolver(self._matcher(categories, refs))
                groups: dict[tuple[int, str], dict[str, Any]] = {}
                fetch_errors = 0

                handle_categories = list(self._handle_categories(categories, refs))
                for handle, category in handle_categories:
                    try:
                        explicit = self.provider.fetch_parameter_options_raw(handle)
                    except Exception as e:
                        fetch_errors += 1
                        self._log_fetch_failure("parameters", handle, e)
                        explicit = []
                    for raw in explicit:
                        self._collect_explicit_parameter(groups, category, raw)

                records, product_fetch_errors = self._fetch_products(
                    [handle for handle, _ in handle_categories]
                )
                fetch_errors += product_fetch_errors
                for raw in records:
                    category = category_resolver.resolve(raw)
                    if category is None:
                        continue
                    properties = extract_properties(
                        raw, self.settings.property_prefix, fallback_keys=tuple(PARAMETER_NAMES)
                    )
                    for key, value in properties.items():
                        group = self._group(groups, category, key)
                        group["values"].setdefault(value, None)

                parameter_groups = [
                    ParameterGroup(
                        category=group["category"],
                        key=group["key"],
                        values=tuple(group["values"]),
                        name=group["name"],
                        name_en=group["name_en"],
                        sort_order=group["sort_order"],
                    )
                    for group in groups.values()
                ]
                handler = ParameterHandler(AttributeDictionaryResolver(AttributeRepository(session)))
                report = self._pipeline(session).run(parameter_groups, handler)

            counts = report.counts
            counts.errors += fetch_errors
            run.complete(
                counts,
                f"Parameters: {counts.created} created, {counts.updated} updated. "
                f"Options: {handler.options_created} created, {handler.options_existing} existing",
            )
        return counts

    def _group(self, groups: dict, category: CategoryRecord, key: str) -> dict[str, Any]:
        return groups.setdefault(
            (category.id, key),
            {
                "category": category,
                "key": key,
                "values": {},
                "name": None,
                "name_en": None,
                "sort_order": None,
            },
        )

    def _collect_explicit_parameter(
        self, groups: dict, category: CategoryRecord, raw: RawRecord
    ) -> None:
        key = get_string(raw, "key") or get_string(raw, "id")
        if not key:
            self.logger.warning("Parameter without key skipped", category_id=category.id)
            return

        group = self._group(groups, category, key)
        group["name"] = localized_text(raw.get("name"), self.settings.primary_language)
        group["name_en"] = translated_text(raw.get("name"), "en") or get_string(raw, "name_en")
        group["sort_order"] = get_int(raw, "order")
        for option in raw.get("options") or []:
            value = localized_text(
                option.get("value", option.get("name")) if isinstance(option, dict) else option,
                self.settings.primary_language,
            )
            if value:
                group["values"].setdefault(value, None)

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def sync_products(self, category_id: Optional[int] = None) -> SyncCounts:
        """
        Upsert products from every category handle, or from one category's.

        Duplicates are removed first so natural-key lookups are unambiguous.
        Records whose category cannot be reconciled are skipped and counted as
        errors.

        Args:
            category_id: Canonical category whose provider handles are fetched;
                all categories when None

        Raises:
            CatalogSyncError: If the category has no handle for this provider
        """
        with self.ledger.track(SyncType.PRODUCTS) as run:
            with session_scope(self.session_factory) as session:
                removed = self._deduplicate(session)

                categories, refs = self._provider_view(session)
                category_resolver = ProductCategoryResolver(self._matcher(categories, refs))
                handles = [
                    handle
                    for handle, category in self._handle_categories(categories, refs)
                    if category_id is None or category.id == category_id
                ]
                if category_id is not None and not handles:
                    raise CatalogSyncError(
                        f"Category {category_id} has no handle for provider {self.provider.name}",
                        stage="products",
                        details={"category_id": category_id},
                    )
                records, fetch_errors = self._fetch_products(handles)

                handler = ProductHandler(
                    session,
                    category_resolver,
                    AttributeDictionaryResolver(AttributeRepository(session)),
                    ManufacturerCache(ManufacturerRepository(session)),
                    self.provider,
                    property_prefix=self.settings.property_prefix,
                )
                report = self._pipeline(session).run(records, handler)

            counts = report.counts
            counts.errors += fetch_errors
            self.logger.info(
                "Category match statistics",
                **category_resolver.get_statistics(),
            )
            self.logger.info("Attribute resolution statistics", **handler.resolver.get_statistics())

            scope = f" (category {category_id})" if category_id is not None else ""
            message = (
                f"Products{scope}: {counts.created} created, {counts.updated} updated, "
                f"{counts.errors} errors"
            )
            if counts.deferred:
                message += f", {counts.deferred} deferred"
            if removed:
                message += f". Duplicates removed: {removed}"
            run.complete(counts, message)
        return counts

    def deduplicate_products(self) -> int:
        """Remove duplicate products by SKU, then by external id"""
        with session_scope(self.session_factory) as session:
            return self._deduplicate(session)

    def _deduplicate(self, session: Session) -> int:
        removed = ProductDeduplicator(ProductRepository(session)).run()
        session.commit()
        return removed

    # ------------------------------------------------------------------
    # Complete
    # ------------------------------------------------------------------

    def sync_complete(self) -> SyncCounts:
        """De-duplicate, then run categories, manufacturers, parameters, products"""
        with self.ledger.track(SyncType.COMPLETE) as run:
            removed = self.deduplicate_products()
            total = SyncCounts()
            steps = (
                ("categories", self.sync_categories),
                ("manufacturers", self.sync_manufacturers),
                ("parameters", self.sync_parameters),
                ("products", self.sync_products),
            )
            for name, step in steps:
                self.logger.info("Complete sync step starting", step=name)
                total.merge(step())

            run.complete(
                total,
                f"Complete sync: {total.processed} processed, {total.created} created, "
                f"{total.updated} updated, {total.errors} errors"
                + (f". Duplicates removed: {removed}" if removed else ""),
            )
        return total

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _pipeline(self, session: Session) -> ChunkedUpsertPipeline:
        return ChunkedUpsertPipeline.from_settings(
            session, self.settings, clock=self.clock, sleep=self.sleep
        )

    def _provider_view(
        self, session: Session
    ) -> tuple[list[CategoryRecord], list[CategoryProviderRef]]:
        """The canonical tree as this provider sees it, plus its references"""
        repository = CategoryRepository(session)
        return (
            repository.list_for_provider(self.provider.name),
            repository.list_provider_refs(self.provider.name),
        )

    def _matcher(
        self, categories: list[CategoryRecord], refs: list[CategoryProviderRef]
    ) -> CategoryMatcher:
        tree = CategoryTree(
            categories, external_ids={ref.external_id: ref.category_id for ref in refs}
        )
        return CategoryMatcher(tree, disabled=self.settings.disabled_match_strategies)

    def _handle_categories(
        self, categories: list[CategoryRecord], refs: list[CategoryProviderRef]
    ) -> Iterator[tuple[str, CategoryRecord]]:
        """(handle, category) in tree order; a category may have several handles"""
        refs_by_category: dict[int, list[CategoryProviderRef]] = {}
        for ref in refs:
            refs_by_category.setdefault(ref.category_id, []).append(ref)

        seen = set()
        for category in categories:
            for source in refs_by_category.get(category.id) or [category]:
                handle = category_handle(source)
                if not handle or handle in seen or source.external_id in self.excluded_ids:
                    continue
                seen.add(handle)
                yield handle, category

    def _category_handles(self, session: Session) -> list[str]:
        categories, refs = self._provider_view(session)
        return [handle for handle, _ in self._handle_categories(categories, refs)]

    def _fetch_products(self, handles: list[str]) -> tuple[list[RawRecord], int]:
        """Products across handles with repeated SKUs dropped; returns fetch error count"""
        records: list[RawRecord] = []
        seen_skus: set[str] = set()
        fetch_errors = 0

        for handle in handles:
            try:
                fetched = self.provider.fetch_products_raw(handle)
            except Exception as e:
                fetch_errors += 1
                self._log_fetch_failure("products", handle, e)
                continue

            for raw in fetched:
                sku = get_string(raw, SKU_FIELD) if isinstance(raw, dict) else None
                if sku:
                    if sku in seen_skus:
                        continue
                    seen_skus.add(sku)
                records.append(raw)

        self.logger.info(
            "Products fetched", handles=len(handles), records=len(records), fetch_errors=fetch_errors
        )
        return records, fetch_errors

    def _log_fetch_failure(self, kind: str, handle: str, error: Exception) -> None:
        self.logger.warning(
            "Provider fetch failed",
            kind=kind,
            handle=handle,
            error=str(error),
            error_type=type(error).__name__,
        )


__all__ = ["CatalogSyncService", "category_handle"]
