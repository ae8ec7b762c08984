"""
Unit tests for the chunked upsert pipeline.

Covers partitioning, per-record isolation, chunk-level rollback, checkpoints
and the chunk time budget.
"""
import itertools
from unittest.mock import MagicMock, patch

import pytest

from catalog_sync.models.domain import ManufacturerRecord, UpsertOutcome
from catalog_sync.pipeline.chunked_upsert import (
    ChunkedUpsertPipeline,
    RecordHandler,
    partition,
)
from catalog_sync.repositories.manufacturer_repository import ManufacturerRepository


class RecordingHandler(RecordHandler[int]):
    """Applies integers; odd ones count as created, even ones as updated"""

    entity_name = "number"

    def __init__(self, fail_on=(), explode_on=()):
        self.fail_on = set(fail_on)
        self.explode_on = set(explode_on)
        self.applied = []
        self.succeeded = []
        self.failed = []
        self.failed_chunks = []

    def record_key(self, record):
        return str(record)

    def apply(self, record):
        if record in self.fail_on:
            raise ValueError(f"bad record {record}")
        self.applied.append(record)
        return UpsertOutcome.CREATED if record % 2 else UpsertOutcome.UPDATED

    def record_succeeded(self, record):
        if record in self.explode_on:
            raise RuntimeError("cache corrupted")
        self.succeeded.append(record)

    def record_failed(self, record, error):
        self.failed.append(record)

    def chunk_failed(self, chunk):
        self.failed_chunks.append(list(chunk))


class ManufacturerWritingHandler(RecordHandler[str]):
    """Writes a manufacturer, then fails for names starting with "!" """

    entity_name = "manufacturer"

    def __init__(self, session):
        self.repository = ManufacturerRepository(session)

    def record_key(self, record):
        return record

    def apply(self, record):
        self.repository.save(ManufacturerRecord(name=record))
        if record.startswith("!"):
            raise ValueError("rejected after write")
        return UpsertOutcome.CREATED


class TestPartition:
    """Test chunk partitioning"""

    def test_partition(self):
        assert partition([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
        assert partition([], 3) == []

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            partition([1], 0)


class TestRecordIsolation:
    """One failing record never discards its neighbours"""

    def test_failed_record_counted(self, session):
        handler = RecordingHandler(fail_on={3})
        report = ChunkedUpsertPipeline(session, chunk_size=10, flush_every=2).run(
            [1, 2, 3, 4, 5], handler
        )

        assert report.counts.processed == 4
        assert report.counts.created == 2
        assert report.counts.updated == 2
        assert report.counts.errors == 1
        assert handler.failed == [3]
        assert handler.succeeded == [1, 2, 4, 5]

    def test_failed_record_writes_rolled_back(self, session):
        pipeline = ChunkedUpsertPipeline(session, chunk_size=2, flush_every=1)
        report = pipeline.run(["Hikvision", "!Broken", "Dahua"], ManufacturerWritingHandler(session))

        assert report.counts.processed == 2
        assert report.counts.errors == 1
        names = [m.name for m in ManufacturerRepository(session).list_all()]
        assert names == ["Hikvision", "Dahua"]


class TestChunkFailure:
    """A chunk-level failure rolls the chunk back and counts it as errors"""

    def test_chunk_counted_as_errors(self, session):
        handler = RecordingHandler(explode_on={2})
        report = ChunkedUpsertPipeline(session, chunk_size=2, flush_every=2).run(
            [1, 2, 3, 4], handler
        )

        assert report.counts.errors == 2
        assert report.counts.processed == 2
        assert handler.failed_chunks == [[1, 2]]
        assert handler.succeeded == [1, 3, 4]
        assert report.chunks == 2

    def test_chunk_writes_rolled_back(self, session):
        class ExplodingManufacturers(ManufacturerWritingHandler):
            def record_succeeded(self, record):
                if record == "Dahua":
                    raise RuntimeError("boom")

        pipeline = ChunkedUpsertPipeline(session, chunk_size=2, flush_every=5)
        report = pipeline.run(["Hikvision", "Dahua", "Uniview"], ExplodingManufacturers(session))

        assert report.counts.errors == 2
        assert [m.name for m in ManufacturerRepository(session).list_all()] == ["Uniview"]


class TestCheckpoints:
    """Test commit cadence and pauses between chunks"""

    def test_commit_every_flush_interval(self, session):
        pipeline = ChunkedUpsertPipeline(session, chunk_size=10, flush_every=3)

        with patch.object(session, "commit", wraps=session.commit) as commit:
            pipeline.run(list(range(1, 8)), RecordingHandler())

        # after records 3 and 6, then at the end of the chunk
        assert commit.call_count == 3

    def test_pause_between_chunks(self, session):
        sleep = MagicMock()
        pipeline = ChunkedUpsertPipeline(
            session, chunk_size=2, flush_every=2, chunk_pause_seconds=0.5, sleep=sleep
        )
        report = pipeline.run([1, 2, 3, 4, 5], RecordingHandler())

        assert report.chunks == 3
        assert sleep.call_count == 2
        sleep.assert_called_with(0.5)

    def test_invalid_configuration(self, session):
        with pytest.raises(ValueError):
            ChunkedUpsertPipeline(session, chunk_size=0)
        with pytest.raises(ValueError):
            ChunkedUpsertPipeline(session, flush_every=0)


class TestChunkBudget:
    """A chunk past its time budget defers the rest"""

    def test_budget_defers_remaining_records(self, session):
        """Each record takes one clock tick; a 5.5 tick budget applies six of ten"""
        clock = itertools.count().__next__
        handler = RecordingHandler()
        pipeline = ChunkedUpsertPipeline(
            session, chunk_size=10, flush_every=4, max_chunk_duration_seconds=5.5, clock=clock
        )

        report = pipeline.run(list(range(1, 11)), handler)

        assert report.counts.processed == 6
        assert report.counts.deferred == 4
        assert report.deferred_records == [7, 8, 9, 10]
        assert handler.applied == [1, 2, 3, 4, 5, 6]

    def test_records_applied_before_budget_stay_committed(self, session_factory):
        """Rows written before the deferral survive a rollback and are visible to a new session"""
        clock = itertools.count().__next__
        session = session_factory()
        pipeline = ChunkedUpsertPipeline(
            session, chunk_size=10, flush_every=4, max_chunk_duration_seconds=5.5, clock=clock
        )
        names = [f"Maker {n}" for n in range(1, 11)]

        report = pipeline.run(names, ManufacturerWritingHandler(session))
        session.rollback()
        session.close()

        assert report.deferred_records == names[6:]
        reader = session_factory()
        try:
            stored = [m.name for m in ManufacturerRepository(reader).list_all()]
        finally:
            reader.close()
        assert sorted(stored) == sorted(names[:6])

    def test_budget_is_per_chunk(self, session):
        clock = itertools.count().__next__
        pipeline = ChunkedUpsertPipeline(
            session, chunk_size=3, flush_every=3, max_chunk_duration_seconds=1.5, clock=clock
        )

        report = pipeline.run([1, 2, 3, 4, 5, 6], RecordingHandler())

        assert report.counts.processed == 4
        assert report.deferred_records == [3, 6]

    def test_budget_hit_on_last_record_defers_nothing(self, session):
        clock = itertools.count().__next__
        pipeline = ChunkedUpsertPipeline(
            session, chunk_size=3, flush_every=3, max_chunk_duration_seconds=2.5, clock=clock
        )

        report = pipeline.run([1, 2, 3], RecordingHandler())

        assert report.counts.processed == 3
        assert report.counts.deferred == 0

    def test_from_settings(self, session, sync_settings):
        pipeline = ChunkedUpsertPipeline.from_settings(session, sync_settings, flush_every=1)

        assert pipeline.chunk_size == 4
        assert pipeline.flush_every == 1
        assert pipeline.max_chunk_duration_seconds == 60.0
