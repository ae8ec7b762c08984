"""
Product repository with natural-key lookups and duplicate detection.

Products are identified by SKU and, when the provider supplies one, by
external id. Owned rows (attribute assignments, documents, specifications)
are always replaced as a whole set.
"""
from collections.abc import Iterable
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from catalog_sync.models.database import (
    ProductAttributeTable,
    ProductDocumentTable,
    ProductTable,
)
from catalog_sync.models.domain import (
    AttributeAssignment,
    ProductDocumentRecord,
    ProductRecord,
)
from catalog_sync.repositories.base import BaseRepository, RepositoryError


class ProductRepository(BaseRepository[ProductRecord]):
    """Repository for canonical products"""

    def __init__(self, session: Session) -> None:
        super().__init__(session, ProductTable, ProductRecord)

    def find_by_sku(self, sku: str) -> list[ProductRecord]:
        """All products carrying the SKU, oldest first"""
        return self._find_all(ProductTable.sku == sku)

    def find_by_external_id(self, external_id: str) -> list[ProductRecord]:
        """All products carrying the provider id, oldest first"""
        return self._find_all(ProductTable.external_id == external_id)

    def find_one(self, sku: str, external_id: Optional[str] = None) -> Optional[ProductRecord]:
        """
        Resolve the canonical product for a provider record.

        Looks up by external id first when one is given, then by SKU.
        """
        if external_id:
            matches = self.find_by_external_id(external_id)
            if matches:
                return matches[0]
        matches = self.find_by_sku(sku)
        return matches[0] if matches else None

    def save(self, product: ProductRecord) -> ProductRecord:
        """Insert or update a product"""
        if product.id is None:
            row = ProductTable()
            self.session.add(row)
        else:
            row = self.session.get(ProductTable, product.id)
            if row is None:
                raise RepositoryError(f"Product {product.id} not found")

        row.sku = product.sku
        row.external_id = product.external_id
        row.name = product.name
        row.model = product.model
        row.description = product.description
        row.price_client = product.price_client
        row.price_partner = product.price_partner
        row.quantity = product.quantity
        row.weight = product.weight
        row.visible = product.visible
        row.status = product.status
        row.primary_image_url = product.primary_image_url
        row.additional_images = list(product.additional_images)
        row.category_id = product.category_id
        row.manufacturer_id = product.manufacturer_id

        self._flush("save product", sku=product.sku)
        return self._to_domain_model(row)

    def find_duplicate_skus(self) -> list[str]:
        """SKUs carried by more than one product"""
        return self._find_duplicates(ProductTable.sku)

    def find_duplicate_external_ids(self) -> list[str]:
        """External ids carried by more than one product"""
        return self._find_duplicates(ProductTable.external_id)

    def replace_assignments(
        self, product_id: int, assignments: Iterable[AttributeAssignment]
    ) -> int:
        """
        Replace the product's attribute assignments with the given set.

        Returns:
            Number of assignments stored
        """
        by_attribute = {a.attribute_id: a for a in assignments}
        try:
            self.session.execute(
                delete(ProductAttributeTable).where(
                    ProductAttributeTable.product_id == product_id
                )
            )
            for assignment in by_attribute.values():
                self.session.add(
                    ProductAttributeTable(
                        product_id=product_id,
                        attribute_id=assignment.attribute_id,
                        option_id=assignment.option_id,
                    )
                )
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to replace attribute assignments: {e}", e) from e

        self._flush("replace attribute assignments", product_id=product_id)
        return len(by_attribute)

    def list_assignments(self, product_id: int) -> list[AttributeAssignment]:
        try:
            query = (
                select(ProductAttributeTable)
                .where(ProductAttributeTable.product_id == product_id)
                .order_by(ProductAttributeTable.attribute_id)
            )
            rows = self.session.execute(query).scalars().all()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to list attribute assignments: {e}", e) from e
        return [
            AttributeAssignment(attribute_id=row.attribute_id, option_id=row.option_id)
            for row in rows
        ]

    def replace_documents(
        self, product_id: int, documents: Iterable[ProductDocumentRecord]
    ) -> int:
        """Replace the product's documents with the given set"""
        documents = list(documents)
        try:
            self.session.execute(
                delete(ProductDocumentTable).where(
                    ProductDocumentTable.product_id == product_id
                )
            )
            for document in documents:
                self.session.add(
                    ProductDocumentTable(
                        product_id=product_id,
                        document_url=document.url,
                        comment=document.comment,
                    )
                )
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to replace product documents: {e}", e) from e

        self._flush("replace product documents", product_id=product_id)
        return len(documents)

    def list_documents(self, product_id: int) -> list[ProductDocumentRecord]:
        try:
            query = (
                select(ProductDocumentTable)
                .where(ProductDocumentTable.product_id == product_id)
                .order_by(ProductDocumentTable.id)
            )
            rows = self.session.execute(query).scalars().all()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to list product documents: {e}", e) from e
        return [ProductDocumentRecord(url=row.document_url, comment=row.comment) for row in rows]

    def _find_all(self, clause) -> list[ProductRecord]:
        try:
            query = select(ProductTable).where(clause).order_by(ProductTable.id)
            rows = self.session.execute(query).scalars().all()
            return [self._to_domain_model(row) for row in rows]
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to look up products: {e}", e) from e

    def _find_duplicates(self, column) -> list[str]:
        try:
            query = (
                select(column)
                .where(column.is_not(None), column != "")
                .group_by(column)
                .having(func.count(ProductTable.id) > 1)
                .order_by(column)
            )
            return list(self.session.execute(query).scalars().all())
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to find duplicate products: {e}", e) from e

    def _to_domain_model(self, db_entity: ProductTable) -> ProductRecord:
        return ProductRecord(
            id=db_entity.id,
            sku=db_entity.sku,
            external_id=db_entity.external_id,
            name=db_entity.name,
            model=db_entity.model,
            description=db_entity.description,
            price_client=db_entity.price_client,
            price_partner=db_entity.price_partner,
            quantity=db_entity.quantity or 0,
            weight=db_entity.weight,
            visible=bool(db_entity.visible),
            status=db_entity.status,
            primary_image_url=db_entity.primary_image_url,
            additional_images=tuple(db_entity.additional_images or ()),
            category_id=db_entity.category_id,
            manufacturer_id=db_entity.manufacturer_id,
        )


__all__ = ["ProductRepository"]
