"""
Unit tests for duplicate product removal.
"""
from catalog_sync.models.domain import ProductDocumentRecord, ProductRecord
from catalog_sync.pipeline.deduplication import ProductDeduplicator
from catalog_sync.repositories.product_repository import ProductRepository


class TestProductDeduplicator:
    """Test duplicate collapse by SKU and external id"""

    def test_three_skus_collapse_to_oldest(self, session):
        repository = ProductRepository(session)
        saved = [
            repository.save(ProductRecord(sku="CAM-1", name=f"Copy {n}")) for n in range(3)
        ]
        repository.save(ProductRecord(sku="CAM-2", name="Unrelated"))

        removed = ProductDeduplicator(repository).run()

        assert removed == 2
        remaining = repository.find_by_sku("CAM-1")
        assert [p.id for p in remaining] == [saved[0].id]
        assert repository.count() == 2

    def test_external_id_duplicates(self, session):
        repository = ProductRepository(session)
        first = repository.save(ProductRecord(sku="A-1", external_id="501", name="First"))
        repository.save(ProductRecord(sku="A-2", external_id="501", name="Second"))

        assert ProductDeduplicator(repository).run() == 1
        assert [p.id for p in repository.find_by_external_id("501")] == [first.id]

    def test_owned_rows_removed_with_duplicate(self, session):
        repository = ProductRepository(session)
        repository.save(ProductRecord(sku="CAM-1", name="Keep"))
        duplicate = repository.save(ProductRecord(sku="CAM-1", name="Drop"))
        repository.replace_documents(
            duplicate.id, [ProductDocumentRecord(url="https://example.com/a.pdf")]
        )

        ProductDeduplicator(repository).run()

        assert repository.list_documents(duplicate.id) == []

    def test_no_duplicates(self, session):
        repository = ProductRepository(session)
        repository.save(ProductRecord(sku="CAM-1", name="Only"))

        assert ProductDeduplicator(repository).run() == 0
