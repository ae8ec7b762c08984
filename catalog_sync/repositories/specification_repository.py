"""Specification template and product specification repository."""
from collections.abc import Iterable

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from catalog_sync.models.database import (
    ProductSpecificationTable,
    SpecificationTemplateTable,
)
from catalog_sync.models.domain import (
    ProductSpecificationRecord,
    SpecificationTemplateRecord,
)
from catalog_sync.repositories.base import BaseRepository, RepositoryError


class SpecificationRepository(BaseRepository[SpecificationTemplateRecord]):
    """Repository for category specification templates and product values"""

    def __init__(self, session: Session) -> None:
        super().__init__(session, SpecificationTemplateTable, SpecificationTemplateRecord)

    def list_templates(self, category_id: int) -> list[SpecificationTemplateRecord]:
        """List a category's templates in sort order"""
        try:
            query = (
                select(SpecificationTemplateTable)
                .where(SpecificationTemplateTable.category_id == category_id)
                .order_by(SpecificationTemplateTable.sort_order, SpecificationTemplateTable.id)
            )
            rows = self.session.execute(query).scalars().all()
            return [self._to_domain_model(row) for row in rows]
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to list specification templates: {e}", e) from e

    def save_template(self, template: SpecificationTemplateRecord) -> SpecificationTemplateRecord:
        """Insert or update a template"""
        if template.id is None:
            row = SpecificationTemplateTable()
            self.session.add(row)
        else:
            row = self.session.get(SpecificationTemplateTable, template.id)
            if row is None:
                raise RepositoryError(f"Specification template {template.id} not found")

        row.category_id = template.category_id
        row.spec_name = template.name
        row.unit = template.unit
        row.spec_group = template.group
        row.type = template.type
        row.allowed_values = (
            list(template.allowed_values) if template.allowed_values is not None else None
        )
        row.required = template.required
        row.filterable = template.filterable
        row.sort_order = template.sort_order

        self._flush("save specification template", name=template.name)
        return self._to_domain_model(row)

    def replace_product_specifications(
        self, product_id: int, specifications: Iterable[ProductSpecificationRecord]
    ) -> list[ProductSpecificationRecord]:
        """Replace the product's full specification set"""
        rows = []
        try:
            self.session.execute(
                delete(ProductSpecificationTable).where(
                    ProductSpecificationTable.product_id == product_id
                )
            )
            for spec in specifications:
                row = ProductSpecificationTable(
                    product_id=product_id,
                    template_id=spec.template_id,
                    spec_value=spec.value,
                    spec_value_secondary=spec.secondary_value,
                    sort_order=spec.sort_order,
                )
                self.session.add(row)
                rows.append(row)
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to replace product specifications: {e}", e) from e

        self._flush("replace product specifications", product_id=product_id)
        return [self._specification_to_domain(row) for row in rows]

    def list_product_specifications(self, product_id: int) -> list[ProductSpecificationRecord]:
        try:
            query = (
                select(ProductSpecificationTable)
                .where(ProductSpecificationTable.product_id == product_id)
                .order_by(ProductSpecificationTable.sort_order, ProductSpecificationTable.id)
            )
            rows = self.session.execute(query).scalars().all()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to list product specifications: {e}", e) from e
        return [self._specification_to_domain(row) for row in rows]

    @staticmethod
    def _specification_to_domain(row: ProductSpecificationTable) -> ProductSpecificationRecord:
        return ProductSpecificationRecord(
            id=row.id,
            product_id=row.product_id,
            template_id=row.template_id,
            value=row.spec_value,
            secondary_value=row.spec_value_secondary,
            sort_order=row.sort_order or 0,
        )

    def _to_domain_model(self, db_entity: SpecificationTemplateTable) -> SpecificationTemplateRecord:
        allowed = db_entity.allowed_values
        return SpecificationTemplateRecord(
            id=db_entity.id,
            category_id=db_entity.category_id,
            name=db_entity.spec_name,
            unit=db_entity.unit,
            group=db_entity.spec_group,
            type=db_entity.type,
            allowed_values=tuple(allowed) if allowed is not None else None,
            required=bool(db_entity.required),
            filterable=bool(db_entity.filterable),
            sort_order=db_entity.sort_order or 0,
        )


__all__ = ["SpecificationRepository"]
