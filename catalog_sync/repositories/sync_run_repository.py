"""Sync run ledger repository."""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from catalog_sync.models.database import SyncRunTable
from catalog_sync.models.domain import SyncCounts, SyncRunRecord, SyncStatus, SyncType
from catalog_sync.repositories.base import BaseRepository, RepositoryError


class SyncRunRepository(BaseRepository[SyncRunRecord]):
    """Repository for sync run ledger entries"""

    def __init__(self, session: Session) -> None:
        super().__init__(session, SyncRunTable, SyncRunRecord)

    def start(self, sync_type: SyncType) -> SyncRunRecord:
        """Create an IN_PROGRESS run"""
        row = SyncRunTable(
            sync_type=sync_type,
            status=SyncStatus.IN_PROGRESS,
            started_at=datetime.now(timezone.utc),
        )
        self.session.add(row)
        self._flush("start sync run", sync_type=sync_type.value)
        return self._to_domain_model(row)

    def finish(
        self,
        run_id: int,
        status: SyncStatus,
        counts: SyncCounts,
        duration_ms: int,
        message: Optional[str] = None,
    ) -> SyncRunRecord:
        """Move a run to its terminal state"""
        row = self.session.get(SyncRunTable, run_id)
        if row is None:
            raise RepositoryError(f"Sync run {run_id} not found")
        if row.status != SyncStatus.IN_PROGRESS:
            raise RepositoryError(f"Sync run {run_id} already finished with {row.status.value}")

        row.status = status
        row.records_processed = counts.processed
        row.records_created = counts.created
        row.records_updated = counts.updated
        row.errors = counts.errors
        row.duration_ms = duration_ms
        row.message = message
        row.finished_at = datetime.now(timezone.utc)

        self._flush("finish sync run", run_id=run_id)
        return self._to_domain_model(row)

    def list_recent(self, limit: int = 20, sync_type: Optional[SyncType] = None) -> list[SyncRunRecord]:
        """Most recent runs first"""
        try:
            query = select(SyncRunTable)
            if sync_type is not None:
                query = query.where(SyncRunTable.sync_type == sync_type)
            query = query.order_by(SyncRunTable.id.desc()).limit(limit)
            rows = self.session.execute(query).scalars().all()
            return [self._to_domain_model(row) for row in rows]
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to list sync runs: {e}", e) from e

    def _to_domain_model(self, db_entity: SyncRunTable) -> SyncRunRecord:
        return SyncRunRecord(
            id=db_entity.id,
            sync_type=db_entity.sync_type,
            status=db_entity.status,
            records_processed=db_entity.records_processed or 0,
            records_created=db_entity.records_created or 0,
            records_updated=db_entity.records_updated or 0,
            errors=db_entity.errors or 0,
            duration_ms=db_entity.duration_ms,
            message=db_entity.message,
            started_at=db_entity.started_at,
            finished_at=db_entity.finished_at,
        )


__all__ = ["SyncRunRepository"]
