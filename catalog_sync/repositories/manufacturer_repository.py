"""Manufacturer repository."""
from sqlalchemy.orm import Session

from catalog_sync.models.database import ManufacturerTable
from catalog_sync.models.domain import ManufacturerRecord
from catalog_sync.repositories.base import BaseRepository, RepositoryError


class ManufacturerRepository(BaseRepository[ManufacturerRecord]):
    """Repository for product manufacturers"""

    def __init__(self, session: Session) -> None:
        super().__init__(session, ManufacturerTable, ManufacturerRecord)

    def save(self, manufacturer: ManufacturerRecord) -> ManufacturerRecord:
        """Insert or update a manufacturer"""
        if manufacturer.id is None:
            row = ManufacturerTable()
            self.session.add(row)
        else:
            row = self.session.get(ManufacturerTable, manufacturer.id)
            if row is None:
                raise RepositoryError(f"Manufacturer {manufacturer.id} not found")

        row.external_id = manufacturer.external_id
        row.name = manufacturer.name
        row.information_name = manufacturer.information_name or manufacturer.name

        self._flush("save manufacturer", name=manufacturer.name)
        return self._to_domain_model(row)

    def _to_domain_model(self, db_entity: ManufacturerTable) -> ManufacturerRecord:
        return ManufacturerRecord(
            id=db_entity.id,
            external_id=db_entity.external_id,
            name=db_entity.name,
            information_name=db_entity.information_name,
        )


__all__ = ["ManufacturerRepository"]
