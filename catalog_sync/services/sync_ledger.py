"""
Sync run ledger.

Every top-level sync operation is recorded as a run: IN_PROGRESS when it
starts, then exactly one of SUCCESS or FAILED with counters, duration and a
message. Ledger writes use their own sessions and are best-effort: a ledger
failure is logged and never changes the outcome of the sync itself.
"""
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Callable, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from catalog_sync.models.domain import SyncCounts, SyncRunRecord, SyncStatus, SyncType
from catalog_sync.repositories.base import RepositoryError, session_scope
from catalog_sync.repositories.sync_run_repository import SyncRunRepository

logger = structlog.get_logger(__name__)

LEDGER_ERRORS = (SQLAlchemyError, RepositoryError)


class SyncRunHandle:
    """Mutable view of a running sync, filled in by the operation body"""

    def __init__(self, sync_type: SyncType, run_id: Optional[int]) -> None:
        self.sync_type = sync_type
        self.run_id = run_id
        self.counts = SyncCounts()
        self.message: Optional[str] = None

    def complete(self, counts: SyncCounts, message: Optional[str] = None) -> None:
        """Record the final counters and summary message"""
        self.counts = counts
        self.message = message


class SyncRunLedger:
    """Records sync runs without ever gating them"""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session_factory = session_factory
        self.clock = clock
        self.logger = logger.bind(component="sync_ledger")

    @contextmanager
    def track(self, sync_type: SyncType) -> Iterator[SyncRunHandle]:
        """
        Wrap a sync operation in a ledger run.

        The body's exception, if any, is recorded as FAILED and re-raised.
        """
        handle = SyncRunHandle(sync_type, self._start(sync_type))
        started = self.clock()

        try:
            yield handle
        except Exception as e:
            duration_ms = int((self.clock() - started) * 1000)
            self.logger.error(
                "Sync run failed",
                sync_type=sync_type.value,
                run_id=handle.run_id,
                duration_ms=duration_ms,
                error=str(e),
                error_type=type(e).__name__,
            )
            self._finish(handle, SyncStatus.FAILED, duration_ms, str(e) or type(e).__name__)
            raise

        duration_ms = int((self.clock() - started) * 1000)
        self.logger.info(
            "Sync run completed",
            sync_type=sync_type.value,
            run_id=handle.run_id,
            duration_ms=duration_ms,
            processed=handle.counts.processed,
            created=handle.counts.created,
            updated=handle.counts.updated,
            errors=handle.counts.errors,
        )
        self._finish(handle, SyncStatus.SUCCESS, duration_ms, handle.message)

    def recent_runs(self, limit: int = 20, sync_type: Optional[SyncType] = None) -> list[SyncRunRecord]:
        """Most recent runs first"""
        with session_scope(self.session_factory) as session:
            return SyncRunRepository(session).list_recent(limit, sync_type)

    def _start(self, sync_type: SyncType) -> Optional[int]:
        try:
            with session_scope(self.session_factory) as session:
                run = SyncRunRepository(session).start(sync_type)
        except LEDGER_ERRORS as e:
            self.logger.warning(
                "Could not record sync run start", sync_type=sync_type.value, error=str(e)
            )
            return None

        self.logger.info("Sync run started", sync_type=sync_type.value, run_id=run.id)
        return run.id

    def _finish(
        self,
        handle: SyncRunHandle,
        status: SyncStatus,
        duration_ms: int,
        message: Optional[str],
    ) -> None:
        if handle.run_id is None:
            self.logger.warning(
                "Sync run outcome not recorded, start was not persisted",
                sync_type=handle.sync_type.value,
                status=status.value,
            )
            return

        try:
            with session_scope(self.session_factory) as session:
                SyncRunRepository(session).finish(
                    handle.run_id, status, handle.counts, duration_ms, message
                )
        except LEDGER_ERRORS as e:
            self.logger.warning(
                "Could not record sync run outcome",
                run_id=handle.run_id,
                status=status.value,
                error=str(e),
            )


__all__ = ["SyncRunLedger", "SyncRunHandle"]
