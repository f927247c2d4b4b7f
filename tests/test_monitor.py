"""
Tests for the Security Monitor.

Tests cover:
- Injection detection in user input
- Bounded log capacity, most recent first
- Summary counts over the trailing window
- Oversized and deeply nested structure anomalies
- Invalid input events
- Log scanning through SuspiciousLogFilter
- Resilience against corrupt logs and failing storage
"""
import logging

import orjson
import pytest

from finance_vault.conf import SECURITY_LOG_KEY
from finance_vault.models import SecurityEventType
from finance_vault.monitor import (
    SecurityMonitor,
    SuspiciousLogFilter,
    install_log_monitor,
    match_pattern,
    nesting_depth,
)
from finance_vault.storage import MemoryStorage
from finance_vault.vault.crypto import now_ms


class ReadOnlyStorage(MemoryStorage):
    def set_item(self, key: str, value: str) -> None:
        raise OSError("read-only")


def _deep(levels: int) -> list:
    value: list = []
    for _ in range(levels):
        value = [value]
    return value


class TestScanInput:
    """Tests for scan_input."""

    def test_script_is_detected(self, monitor):
        """A script tag yields True and exactly one XSS event."""
        assert monitor.scan_input("<script>alert(1)</script>") is True
        events = monitor.log()
        assert len(events) == 1
        assert events[0].type == SecurityEventType.XSS_ATTEMPT
        assert events[0].data["input"] == "<script>alert(1)</script>"
        assert "script" in events[0].data["pattern"]
        assert events[0].user_agent == "pytest"

    def test_benign_text_is_not_logged(self, monitor):
        assert monitor.scan_input("buy milk") is False
        assert monitor.log() == []

    @pytest.mark.parametrize(
        "text",
        [
            "javascript:void(0)",
            '<img src=x onerror="x">',
            "eval (payload)",
            "document.cookie",
            "window.location='x'",
            "<IFRAME src=x>",
            "<object data=x>",
            "<embed src=x>",
            "data:text/html;base64,AAAA",
            "VBScript:msgbox",
        ],
    )
    def test_patterns(self, monitor, text):
        assert monitor.scan_input(text) is True

    def test_non_string_ignored(self, monitor):
        assert monitor.scan_input(123) is False
        assert monitor.log() == []

    def test_input_excerpt_truncated(self, monitor):
        monitor.scan_input("<iframe " + "a" * 500)
        assert len(monitor.log()[0].data["input"]) == 200

    def test_match_pattern_first_wins(self):
        pattern = match_pattern("<script>eval(1)</script>")
        assert pattern is not None
        assert pattern.pattern.startswith("<script")


class TestLogMaintenance:
    """Tests for the bounded log."""

    def test_log_is_capped_most_recent_first(self, monitor):
        """150 events leave the newest 100, newest first."""
        for i in range(150):
            monitor.scan_input(f"<iframe {i}")
        events = monitor.log()
        assert len(events) == 100
        assert events[0].data["input"] == "<iframe 149"
        assert events[-1].data["input"] == "<iframe 50"

    def test_wire_format(self, monitor, local_storage):
        """Stored events use camelCase keys."""
        monitor.scan_input("<iframe>")
        stored = orjson.loads(local_storage.get_item(SECURITY_LOG_KEY))
        assert set(stored[0]) == {"type", "message", "data", "timestamp", "userAgent"}
        assert stored[0]["type"] == "XSS_ATTEMPT"

    def test_clear_log(self, monitor, local_storage):
        monitor.scan_input("<iframe>")
        monitor.clear_log()
        assert monitor.log() == []
        assert local_storage.get_item(SECURITY_LOG_KEY) is None

    def test_corrupt_log_reads_empty(self, monitor, local_storage):
        local_storage.set_item(SECURITY_LOG_KEY, '[{"type": "NOPE"}]')
        assert monitor.log() == []

    def test_record_failure_is_swallowed(self, config):
        """A storage failure never escapes the monitor."""
        monitor = SecurityMonitor(ReadOnlyStorage(), config)
        assert monitor.scan_input("<iframe>") is True
        assert monitor.log() == []


class TestSummary:
    """Tests for summary."""

    def test_counts_by_kind(self, monitor):
        monitor.scan_input("<iframe>")
        monitor.record_invalid_input(5, "string", "bank name")
        monitor.record_suspicious_usage("odd")
        summary = monitor.summary()
        assert summary.total_events == 3
        assert summary.xss_attempts == 1
        assert summary.invalid_inputs == 1
        assert summary.suspicious_patterns == 1
        assert summary.data_anomalies == 0
        assert summary.last_event.type == SecurityEventType.SUSPICIOUS_PATTERN

    def test_old_events_outside_window(self, monitor, local_storage):
        """Events older than 24h are not counted."""
        now = now_ms()
        day = 24 * 60 * 60 * 1000
        events = [
            {
                "type": "XSS_ATTEMPT",
                "message": "recent",
                "timestamp": now - 1000,
                "userAgent": "pytest",
            },
            {
                "type": "DATA_ANOMALY",
                "message": "old",
                "timestamp": now - 2 * day,
                "userAgent": "pytest",
            },
        ]
        local_storage.set_item(SECURITY_LOG_KEY, orjson.dumps(events).decode())

        summary = monitor.summary(now=now)
        assert summary.total_events == 1
        assert summary.xss_attempts == 1
        assert summary.data_anomalies == 0
        assert summary.last_event.message == "recent"

    def test_empty_summary(self, monitor):
        summary = monitor.summary()
        assert summary.total_events == 0
        assert summary.last_event is None


class TestScanStructure:
    """Tests for scan_structure."""

    def test_large_structure(self, monitor):
        monitor.scan_structure({"blob": "x" * 200_000}, "persist")
        events = monitor.log()
        assert len(events) == 1
        assert events[0].type == SecurityEventType.DATA_ANOMALY
        assert events[0].data["context"] == "persist"
        assert events[0].data["size"] > 100_000
        assert events[0].data["type"] == "dict"

    def test_deep_structure(self, monitor):
        monitor.scan_structure(_deep(15), "persist")
        events = monitor.log()
        assert len(events) == 1
        assert events[0].data["depth"] > 10

    def test_normal_structure(self, monitor, wire_state):
        monitor.scan_structure(wire_state, "persist")
        assert monitor.log() == []

    def test_nesting_scan_is_bounded(self):
        assert nesting_depth(_deep(50)) == 21
        assert nesting_depth({"a": {"b": 1}}) == 2
        assert nesting_depth("flat") == 0

    def test_circular_structure_does_not_raise(self, monitor):
        loop: list = []
        loop.append(loop)
        monitor.scan_structure(loop, "persist")


class TestInvalidInput:
    """Tests for record_invalid_input."""

    def test_event_data(self, monitor):
        monitor.record_invalid_input(["x" * 300], "string", "bank name")
        event = monitor.log()[0]
        assert event.type == SecurityEventType.INVALID_INPUT
        assert event.data["context"] == "bank name"
        assert event.data["expectedType"] == "string"
        assert event.data["actualType"] == "list"
        assert len(event.data["value"]) == 100


class TestLogFilter:
    """Tests for SuspiciousLogFilter."""

    @pytest.fixture
    def watched(self, monitor):
        log = logging.getLogger("tests.watched")
        log_filter = install_log_monitor(monitor, log)
        yield log
        log.removeFilter(log_filter)

    def test_suspicious_message_is_reported(self, monitor, watched):
        watched.warning("user typed <script>alert(1)</script>")
        kinds = [event.type for event in monitor.log()]
        assert kinds == [
            SecurityEventType.SUSPICIOUS_PATTERN,
            SecurityEventType.XSS_ATTEMPT,
        ]
        assert monitor.log()[0].data["logger"] == "tests.watched"

    def test_benign_message_passes(self, monitor, watched):
        watched.warning("saved 3 expenses")
        assert monitor.log() == []

    def test_monitor_records_are_ignored(self, monitor):
        log_filter = SuspiciousLogFilter(monitor)
        record = logging.LogRecord(
            "finance.security", logging.WARNING, __file__, 1,
            "Security event: XSS_ATTEMPT <iframe>", None, None,
        )
        assert log_filter.filter(record) is True
        assert monitor.log() == []
