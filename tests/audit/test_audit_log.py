"""Tests for certverify.audit -- AuditLog front end and in-memory store."""

from __future__ import annotations

import dataclasses
import logging
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch

from certverify.audit import AuditLog, InMemoryAuditLogStore
from certverify.core.types import VerificationMethod, VerificationOutcome
from certverify.metrics.collector import MetricsCollector
from certverify.models import VerificationLogEntry


def _entry(
    certificate_id: str = "C1",
    result: VerificationOutcome = VerificationOutcome.VALID,
    response_time_ms: int = 10,
    age: timedelta = timedelta(0),
) -> VerificationLogEntry:
    return VerificationLogEntry(
        certificate_id=certificate_id,
        verification_method=VerificationMethod.ID,
        result=result,
        response_time_ms=response_time_ms,
        timestamp=datetime.now(UTC) - age,
    )


class TestInMemoryAuditLogStore:
    def test_statistics_grouped_per_day_newest_first(self):
        store = InMemoryAuditLogStore()
        store.insert(_entry(result=VerificationOutcome.VALID, response_time_ms=10))
        store.insert(_entry(result=VerificationOutcome.INVALID, response_time_ms=30))
        store.insert(_entry(result=VerificationOutcome.ERROR, age=timedelta(days=2)))

        stats = store.statistics(7)
        assert len(stats) == 2
        today = stats[0]
        assert today.day > stats[1].day
        assert today.total == 2
        assert today.valid_count == 1
        assert today.invalid_count == 1
        assert today.error_count == 0
        assert today.avg_response_time_ms == 20
        assert stats[1].error_count == 1

    def test_statistics_window(self):
        store = InMemoryAuditLogStore()
        store.insert(_entry(age=timedelta(days=40)))
        assert store.statistics(30) == []

    def test_counts_sum_to_total(self):
        store = InMemoryAuditLogStore()
        for outcome in VerificationOutcome:
            store.insert(_entry(result=outcome))
        (day,) = store.statistics(1)
        assert day.valid_count + day.invalid_count + day.error_count == day.total

    def test_find_by_certificate_most_recent_first(self):
        store = InMemoryAuditLogStore()
        old = _entry(age=timedelta(hours=2))
        new = _entry()
        store.insert(old)
        store.insert(new)
        store.insert(_entry(certificate_id="C2"))
        assert store.find_by_certificate("C1", 10) == [new, old]
        assert store.find_by_certificate("C1", 1) == [new]

    def test_delete_older_than(self):
        store = InMemoryAuditLogStore()
        store.insert(_entry(age=timedelta(days=100)))
        store.insert(_entry())
        assert store.delete_older_than(90) == 1
        assert len(store) == 1


class TestAuditLog:
    def test_inline_write(self):
        store = InMemoryAuditLogStore()
        audit = AuditLog(store, max_workers=0)
        audit.record(_entry())
        assert len(store) == 1
        assert audit.write_count == 1

    def test_background_write_drained_on_shutdown(self):
        store = InMemoryAuditLogStore()
        audit = AuditLog(store, max_workers=2)
        for _ in range(20):
            audit.record(_entry())
        audit.shutdown(wait=True)
        assert len(store) == 20
        assert audit.write_count == 20

    def test_record_after_shutdown_writes_inline(self):
        store = InMemoryAuditLogStore()
        audit = AuditLog(store, max_workers=1)
        audit.shutdown()
        audit.record(_entry())
        assert len(store) == 1

    def test_shutdown_idempotent(self):
        audit = AuditLog(InMemoryAuditLogStore(), max_workers=1)
        audit.shutdown()
        audit.shutdown()
        assert audit.is_shutdown

    def test_store_failure_is_swallowed_and_counted(self):
        store = MagicMock()
        store.insert.side_effect = RuntimeError("disk full")
        metrics = MetricsCollector()
        audit = AuditLog(store, max_workers=0, metrics=metrics)
        with patch("certverify.audit.log.security_events.audit_write_failed") as event:
            audit.record(_entry())
        assert audit.failure_count == 1
        assert audit.write_count == 0
        assert metrics.get("certverify_audit_write_failures_total") == 1
        event.assert_called_once()

    def test_mirrors_to_audit_logger(self, caplog):
        audit = AuditLog(InMemoryAuditLogStore(), max_workers=0)
        entry = dataclasses.replace(_entry(), verifier_ip="198.51.100.7")
        with caplog.at_level(logging.INFO, logger="certverify.audit"):
            audit.record(entry)
        records = [r for r in caplog.records if r.name == "certverify.audit"]
        assert len(records) == 1
        assert records[0].certificate_id == "C1"
        assert records[0].verifier_ip == "198.51.100.7"

    def test_queries_delegate(self):
        store = InMemoryAuditLogStore()
        audit = AuditLog(store, max_workers=0)
        audit.record(_entry())
        assert audit.statistics(1)[0].total == 1
        assert len(audit.history("C1", 10)) == 1

    def test_purge_emits_security_event(self):
        store = InMemoryAuditLogStore()
        store.insert(_entry(age=timedelta(days=200)))
        audit = AuditLog(store, max_workers=0)
        with patch("certverify.audit.log.security_events.audit_purged") as event:
            assert audit.purge(90) == 1
        event.assert_called_once_with(90, 1)
