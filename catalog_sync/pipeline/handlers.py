"""
Record handlers plugged into the chunked upsert pipeline.

One handler per provider record kind. Handlers own the per-run caches they
extend and keep them consistent with savepoint outcomes.
"""
from collections import Counter
from collections.abc import Sequence
from typing import Any, NamedTuple, Optional

import structlog
from sqlalchemy.orm import Session

from catalog_sync.core.exceptions import InvalidRecordError, ProviderError, ReconciliationError
from catalog_sync.models.domain import (
    AttributeAssignment,
    CategoryRecord,
    ProductRecord,
    UpsertOutcome,
)
from catalog_sync.pipeline.attribute_resolver import (
    PARAMETER_NAMES,
    AttributeDictionaryResolver,
)
from catalog_sync.pipeline.category_matching import CategoryMatcher
from catalog_sync.pipeline.chunked_upsert import RecordHandler
from catalog_sync.pipeline.mapping import (
    CATEGORY_ID_FIELD,
    EXTERNAL_ID_FIELD,
    SKU_FIELD,
    category_labels,
    documents_from_raw,
    extract_documents,
    extract_properties,
    get_string,
    map_product,
)
from catalog_sync.pipeline.run_cache import ManufacturerCache
from catalog_sync.providers.base import CatalogProvider
from catalog_sync.repositories.product_repository import ProductRepository

logger = structlog.get_logger(__name__)

EXTERNAL_ID_MATCH = "external_id"


class ProductCategoryResolver:
    """
    Finds the canonical category for a raw product.

    A provider category id that points at a stored non-root category wins;
    otherwise the denormalized labels go through the matcher cascade.
    """

    def __init__(self, matcher: CategoryMatcher) -> None:
        self.matcher = matcher
        self.external_id_hits = 0

    def resolve(self, raw: dict[str, Any]) -> Optional[CategoryRecord]:
        external_id = get_string(raw, CATEGORY_ID_FIELD)
        if external_id:
            category = self.matcher.tree.by_external_id(external_id)
            if category is not None and not category.is_root:
                self.external_id_hits += 1
                return category

        return self.matcher.match(category_labels(raw)).category

    def get_statistics(self) -> dict[str, int]:
        stats = {EXTERNAL_ID_MATCH: self.external_id_hits}
        stats.update(self.matcher.get_statistics())
        return stats


class ManufacturerHandler(RecordHandler[str]):
    """Upserts manufacturers by normalized name"""

    entity_name = "manufacturer"

    def __init__(self, cache: ManufacturerCache) -> None:
        self.cache = cache

    def record_key(self, record: str) -> str:
        return str(record)

    def apply(self, record: str) -> UpsertOutcome:
        manufacturer, created = self.cache.resolve(record)
        if manufacturer is None:
            raise InvalidRecordError("Blank manufacturer name", field="name")
        return UpsertOutcome.CREATED if created else UpsertOutcome.UPDATED

    def record_succeeded(self, record: str) -> None:
        self.cache.commit_pending()

    def record_failed(self, record: str, error: Exception) -> None:
        self.cache.discard_pending()

    def chunk_failed(self, chunk: Sequence[str]) -> None:
        self.cache.reset()


class ParameterGroup(NamedTuple):
    """All values seen for one property key within one canonical category"""

    category: CategoryRecord
    key: str
    values: tuple[str, ...]
    name: Optional[str] = None
    name_en: Optional[str] = None
    sort_order: Optional[int] = None


class ParameterHandler(RecordHandler[ParameterGroup]):
    """Registers attributes and their options in the dictionary"""

    entity_name = "parameter"

    def __init__(self, resolver: AttributeDictionaryResolver) -> None:
        self.resolver = resolver
        self.options_created = 0
        self.options_existing = 0
        self._pending_options = Counter()

    def record_key(self, record: ParameterGroup) -> str:
        return f"{record.category.slug}:{record.key}"

    def apply(self, record: ParameterGroup) -> UpsertOutcome:
        self._pending_options.clear()
        attribute, created = self.resolver.resolve_attribute(
            record.category.id,
            record.key,
            name=record.name,
            name_en=record.name_en,
            sort_order=record.sort_order,
        )
        for value in record.values:
            _, option_created = self.resolver.resolve_option(attribute, value)
            self._pending_options["created" if option_created else "existing"] += 1
        return UpsertOutcome.CREATED if created else UpsertOutcome.UPDATED

    def record_succeeded(self, record: ParameterGroup) -> None:
        self.resolver.commit_pending()
        self.options_created += self._pending_options["created"]
        self.options_existing += self._pending_options["existing"]

    def record_failed(self, record: ParameterGroup, error: Exception) -> None:
        self.resolver.discard_pending()

    def chunk_failed(self, chunk: Sequence[ParameterGroup]) -> None:
        self.resolver.reset()


class ProductHandler(RecordHandler[dict]):
    """
    Upserts products from raw provider records.

    Per record: validate SKU and name, reconcile the category (a miss skips the
    record), find the product by external id then SKU, resolve the
    manufacturer, rebuild the product value, then replace its attribute
    assignments and, when supplied, its documents.
    """

    entity_name = "product"

    def __init__(
        self,
        session: Session,
        categories: ProductCategoryResolver,
        resolver: AttributeDictionaryResolver,
        manufacturers: ManufacturerCache,
        provider: CatalogProvider,
        property_prefix: str = "prop_",
    ) -> None:
        self.products = ProductRepository(session)
        self.categories = categories
        self.resolver = resolver
        self.manufacturers = manufacturers
        self.provider = provider
        self.property_prefix = property_prefix
        self.logger = logger.bind(component="product_handler")

    def record_key(self, record: dict) -> str:
        if not isinstance(record, dict):
            return repr(record)[:80]
        return get_string(record, SKU_FIELD) or get_string(record, EXTERNAL_ID_FIELD) or "<no sku>"

    def apply(self, record: dict) -> UpsertOutcome:
        sku = get_string(record, SKU_FIELD)
        if not sku:
            raise InvalidRecordError("Product without SKU", field=SKU_FIELD)
        if not get_string(record, "name"):
            raise InvalidRecordError("Product without name", field="name", record_key=sku)

        category = self.categories.resolve(record)
        if category is None:
            labels = category_labels(record)
            raise ReconciliationError(
                "No canonical category for product", record_key=sku, labels=labels.as_tuple()
            )

        existing = self.products.find_one(sku, get_string(record, EXTERNAL_ID_FIELD))

        manufacturer_id = None
        manufacturer_name = get_string(record, "manufacturer")
        if manufacturer_name:
            manufacturer, _ = self.manufacturers.resolve(manufacturer_name)
            manufacturer_id = manufacturer.id if manufacturer else None

        product = self.products.save(map_product(existing, record, category.id, manufacturer_id))
        self._assign_attributes(product, category, record)
        self._attach_documents(product, record)

        return UpsertOutcome.CREATED if existing is None else UpsertOutcome.UPDATED

    def _assign_attributes(
        self, product: ProductRecord, category: CategoryRecord, record: dict
    ) -> None:
        properties = extract_properties(
            record, self.property_prefix, fallback_keys=tuple(PARAMETER_NAMES)
        )
        assignments = []
        for key, value in properties.items():
            resolved = self.resolver.resolve(category, key, value)
            if resolved is not None:
                assignments.append(
                    AttributeAssignment(
                        attribute_id=resolved.attribute.id, option_id=resolved.option.id
                    )
                )
        self.products.replace_assignments(product.id, assignments)

    def _attach_documents(self, product: ProductRecord, record: dict) -> None:
        documents = extract_documents(record)
        if documents is None:
            try:
                documents = documents_from_raw(self.provider.fetch_documents_raw(product.sku))
            except ProviderError as e:
                self.logger.warning("Document fetch failed", sku=product.sku, error=str(e))
                return
            if not documents:
                return
        self.products.replace_documents(product.id, documents)

    def record_succeeded(self, record: dict) -> None:
        self.resolver.commit_pending()
        self.manufacturers.commit_pending()

    def record_failed(self, record: dict, error: Exception) -> None:
        self.resolver.discard_pending()
        self.manufacturers.discard_pending()

    def chunk_failed(self, chunk: Sequence[dict]) -> None:
        self.resolver.reset()
        self.manufacturers.reset()


__all__ = [
    "ProductCategoryResolver",
    "ManufacturerHandler",
    "ParameterGroup",
    "ParameterHandler",
    "ProductHandler",
    "EXTERNAL_ID_MATCH",
]
