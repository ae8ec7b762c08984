"""
Duplicate product removal.

Runs before product synchronization so natural-key lookups resolve to exactly
one canonical product. For every SKU, then every external id, carried by more
than one product, the oldest product is kept and the rest are deleted together
with their owned rows.
"""
import structlog

from catalog_sync.models.domain import ProductRecord
from catalog_sync.repositories.product_repository import ProductRepository

logger = structlog.get_logger(__name__)


class ProductDeduplicator:
    """Removes products that share a SKU or an external id"""

    def __init__(self, repository: ProductRepository) -> None:
        self.repository = repository
        self.logger = logger.bind(component="product_deduplicator")

    def run(self) -> int:
        """
        Remove duplicates by SKU, then by external id.

        Returns:
            Number of products deleted
        """
        removed = 0

        for sku in self.repository.find_duplicate_skus():
            removed += self._keep_first(self.repository.find_by_sku(sku), sku=sku)

        for external_id in self.repository.find_duplicate_external_ids():
            removed += self._keep_first(
                self.repository.find_by_external_id(external_id), external_id=external_id
            )

        if removed:
            self.logger.info("Duplicate products removed", removed=removed)
        else:
            self.logger.debug("No duplicate products found")
        return removed

    def _keep_first(self, products: list[ProductRecord], **context) -> int:
        if len(products) < 2:
            return 0

        keeper, duplicates = products[0], products[1:]
        for duplicate in duplicates:
            self.repository.delete(duplicate.id)

        self.logger.info(
            "Duplicates collapsed",
            kept_id=keeper.id,
            deleted_ids=[d.id for d in duplicates],
            **context,
        )
        return len(duplicates)


__all__ = ["ProductDeduplicator"]
