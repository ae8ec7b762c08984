"""
Attribute dictionary repository.

Attributes are scoped to a category; options are scoped to an attribute and
always listed in sort order.
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from catalog_sync.models.database import AttributeOptionTable, AttributeTable
from catalog_sync.models.domain import AttributeOptionRecord, AttributeRecord
from catalog_sync.repositories.base import BaseRepository, RepositoryError
from catalog_sync.services.slug import normalize_dictionary_value


class AttributeRepository(BaseRepository[AttributeRecord]):
    """Repository for attributes and their options"""

    def __init__(self, session: Session) -> None:
        super().__init__(session, AttributeTable, AttributeRecord)

    def list_by_category(self, category_id: int) -> list[AttributeRecord]:
        """List a category's attributes in sort order"""
        try:
            query = (
                select(AttributeTable)
                .where(AttributeTable.category_id == category_id)
                .order_by(AttributeTable.sort_order, AttributeTable.id)
            )
            rows = self.session.execute(query).scalars().all()
            return [self._to_domain_model(row) for row in rows]
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to list attributes: {e}", e) from e

    def find_by_key(self, category_id: int, external_key: str) -> Optional[AttributeRecord]:
        """Find the attribute with the given provider key in a category"""
        try:
            query = select(AttributeTable).where(
                AttributeTable.category_id == category_id,
                AttributeTable.external_key == external_key,
            )
            row = self.session.execute(query).scalar_one_or_none()
            return self._to_domain_model(row) if row is not None else None
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to find attribute by key: {e}", e) from e

    def save(self, attribute: AttributeRecord) -> AttributeRecord:
        """Insert or update an attribute"""
        if attribute.id is None:
            row = AttributeTable()
            self.session.add(row)
        else:
            row = self.session.get(AttributeTable, attribute.id)
            if row is None:
                raise RepositoryError(f"Attribute {attribute.id} not found")

        row.category_id = attribute.category_id
        row.external_key = attribute.external_key
        row.name = attribute.name
        row.name_en = attribute.name_en
        row.sort_order = attribute.sort_order

        self._flush(
            "save attribute", category_id=attribute.category_id, key=attribute.external_key
        )
        return self._to_domain_model(row)

    def list_options(self, attribute_id: int) -> list[AttributeOptionRecord]:
        """List an attribute's options in sort order"""
        try:
            query = (
                select(AttributeOptionTable)
                .where(AttributeOptionTable.attribute_id == attribute_id)
                .order_by(AttributeOptionTable.sort_order, AttributeOptionTable.id)
            )
            rows = self.session.execute(query).scalars().all()
            return [self._option_to_domain(row) for row in rows]
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to list attribute options: {e}", e) from e

    def save_option(self, option: AttributeOptionRecord) -> AttributeOptionRecord:
        """Insert or update an attribute option"""
        if option.id is None:
            row = AttributeOptionTable()
            self.session.add(row)
        else:
            row = self.session.get(AttributeOptionTable, option.id)
            if row is None:
                raise RepositoryError(f"Attribute option {option.id} not found")

        row.attribute_id = option.attribute_id
        row.value = option.value
        row.value_key = normalize_dictionary_value(option.value)
        row.sort_order = option.sort_order

        self._flush("save attribute option", attribute_id=option.attribute_id)
        return self._option_to_domain(row)

    @staticmethod
    def _option_to_domain(row: AttributeOptionTable) -> AttributeOptionRecord:
        return AttributeOptionRecord(
            id=row.id,
            attribute_id=row.attribute_id,
            value=row.value,
            sort_order=row.sort_order or 0,
        )

    def _to_domain_model(self, db_entity: AttributeTable) -> AttributeRecord:
        return AttributeRecord(
            id=db_entity.id,
            category_id=db_entity.category_id,
            external_key=db_entity.external_key,
            name=db_entity.name,
            name_en=db_entity.name_en,
            sort_order=db_entity.sort_order if db_entity.sort_order is not None else 50,
        )


__all__ = ["AttributeRepository"]
