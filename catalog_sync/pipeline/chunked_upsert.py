"""
Chunked upsert pipeline.

Applies provider records to the canonical store in fixed-size chunks. Each
record runs inside its own savepoint so one failure never discards its
neighbours; the session is committed and its identity map released every few
records to bound memory. A chunk that runs past its time budget stops early
and reports the remaining records as deferred; the next run picks them up,
since every write is an idempotent upsert.
"""
import time
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import Any, Callable, Generic, TypeVar

import structlog
from sqlalchemy.orm import Session

from catalog_sync.config.settings import SyncSettings
from catalog_sync.models.domain import SyncCounts, UpsertOutcome, UpsertReport

logger = structlog.get_logger(__name__)

RecordType = TypeVar("RecordType")


def partition(records: Sequence[RecordType], size: int) -> list[Sequence[RecordType]]:
    """Split records into consecutive chunks of at most ``size``"""
    if size < 1:
        raise ValueError("Chunk size must be at least 1")
    return [records[start:start + size] for start in range(0, len(records), size)]


class RecordHandler(ABC, Generic[RecordType]):
    """
    Applies one kind of provider record.

    ``apply`` must be idempotent: look the record up by external id or
    natural key, then create or update.
    """

    entity_name = "record"

    @abstractmethod
    def record_key(self, record: RecordType) -> str:
        """Identifier used in logs"""

    @abstractmethod
    def apply(self, record: RecordType) -> UpsertOutcome:
        """Create or update the canonical entity for the record"""

    def record_succeeded(self, record: RecordType) -> None:
        """Called after the record's savepoint is released"""

    def record_failed(self, record: RecordType, error: Exception) -> None:
        """Called after the record's savepoint is rolled back"""

    def chunk_failed(self, chunk: Sequence[RecordType]) -> None:
        """Called after a chunk-level rollback"""


class ChunkedUpsertPipeline:
    """Runs a record handler over records in budgeted, checkpointed chunks"""

    def __init__(
        self,
        session: Session,
        chunk_size: int = 30,
        flush_every: int = 10,
        max_chunk_duration_seconds: float = 300.0,
        chunk_pause_seconds: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if chunk_size < 1 or flush_every < 1:
            raise ValueError("Chunk size and flush interval must be at least 1")

        self.session = session
        self.chunk_size = chunk_size
        self.flush_every = flush_every
        self.max_chunk_duration_seconds = max_chunk_duration_seconds
        self.chunk_pause_seconds = chunk_pause_seconds
        self.clock = clock
        self.sleep = sleep
        self.logger = logger.bind(component="chunked_upsert")

    @classmethod
    def from_settings(cls, session: Session, settings: SyncSettings, **overrides: Any) -> "ChunkedUpsertPipeline":
        options = {
            "chunk_size": settings.chunk_size,
            "flush_every": settings.flush_every,
            "max_chunk_duration_seconds": settings.max_chunk_duration_seconds,
            "chunk_pause_seconds": settings.chunk_pause_seconds,
        }
        options.update(overrides)
        return cls(session, **options)

    def run(self, records: Iterable[RecordType], handler: RecordHandler[RecordType]) -> UpsertReport:
        """
        Apply all records through the handler.

        Args:
            records: Provider records to apply
            handler: Handler for this kind of record

        Returns:
            Report with counters and the records deferred by chunk budgets
        """
        records = list(records)
        report = UpsertReport()
        chunks = partition(records, self.chunk_size)

        self.logger.info(
            "Starting chunked upsert",
            entity=handler.entity_name,
            records=len(records),
            chunks=len(chunks),
            chunk_size=self.chunk_size,
        )

        for index, chunk in enumerate(chunks, start=1):
            if index > 1 and self.chunk_pause_seconds > 0:
                self.sleep(self.chunk_pause_seconds)

            counts, deferred = self._process_chunk(index, chunk, handler)
            report.counts.merge(counts)
            report.deferred_records.extend(deferred)
            report.chunks += 1

            self.logger.info(
                "Chunk completed",
                entity=handler.entity_name,
                chunk=index,
                of=len(chunks),
                processed=counts.processed,
                errors=counts.errors,
                deferred=counts.deferred,
            )

        self.logger.info(
            "Chunked upsert completed",
            entity=handler.entity_name,
            processed=report.counts.processed,
            created=report.counts.created,
            updated=report.counts.updated,
            errors=report.counts.errors,
            deferred=report.counts.deferred,
        )
        return report

    def _process_chunk(
        self, index: int, chunk: Sequence[RecordType], handler: RecordHandler[RecordType]
    ) -> tuple[SyncCounts, list[RecordType]]:
        counts = SyncCounts()
        deferred: list[RecordType] = []
        started = self.clock()
        since_checkpoint = 0

        try:
            for position, record in enumerate(chunk):
                self._apply_record(record, handler, counts)
                since_checkpoint += 1

                if since_checkpoint >= self.flush_every:
                    self._checkpoint(handler)
                    since_checkpoint = 0

                elapsed = self.clock() - started
                if elapsed > self.max_chunk_duration_seconds:
                    deferred = list(chunk[position + 1:])
                    counts.deferred = len(deferred)
                    if deferred:
                        self.logger.warning(
                            "Chunk time budget exceeded, deferring remaining records",
                            entity=handler.entity_name,
                            chunk=index,
                            elapsed_seconds=round(elapsed, 3),
                            budget_seconds=self.max_chunk_duration_seconds,
                            deferred=len(deferred),
                        )
                    break

            self._checkpoint(handler)

        except Exception as e:
            self.session.rollback()
            handler.chunk_failed(chunk)
            self.logger.error(
                "Chunk failed, rolled back",
                entity=handler.entity_name,
                chunk=index,
                records=len(chunk),
                error=str(e),
                error_type=type(e).__name__,
            )
            return SyncCounts(errors=len(chunk)), []

        return counts, deferred

    def _apply_record(
        self, record: RecordType, handler: RecordHandler[RecordType], counts: SyncCounts
    ) -> None:
        try:
            with self.session.begin_nested():
                outcome = handler.apply(record)
        except Exception as e:
            counts.errors += 1
            handler.record_failed(record, e)
            self.logger.warning(
                "Record failed",
                entity=handler.entity_name,
                key=handler.record_key(record),
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        handler.record_succeeded(record)
        counts.record(outcome)

    def _checkpoint(self, handler: RecordHandler[RecordType]) -> None:
        """Commit applied records and release the identity map"""
        self.session.commit()
        self.session.expunge_all()
        self.logger.debug("Checkpoint committed", entity=handler.entity_name)


__all__ = ["ChunkedUpsertPipeline", "RecordHandler", "partition"]
