"""
Security Monitor: detects suspicious input and structural anomalies.

Findings are appended to a bounded security log kept in durable storage
(most recent first). The monitor only observes: it never alters the data
path, and a failure inside the monitor never propagates to the host
operation.

Security Note:
    Logged excerpts are truncated (200 chars for input, 100 for invalid
    values). Never pass decrypted financial records as event data.
"""
import re
import logging
import platform
from typing import Any, Optional

import orjson
from pydantic import BaseModel, TypeAdapter, ValidationError

from .conf import SECURITY_LOG_KEY
from .models import SecurityEvent, SecurityEventType, SecuritySummary
from .storage import Storage
from .vault.config import VaultConfig
from .vault.crypto import now_ms
from .version import __title__, __version__

logger = logging.getLogger("finance.security")

INPUT_EXCERPT = 200
VALUE_EXCERPT = 100

# Injection indicators; the first match wins.
SUSPICIOUS_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
    re.compile(r"eval\s*\(", re.IGNORECASE),
    re.compile(r"document\.cookie", re.IGNORECASE),
    re.compile(r"window\.location", re.IGNORECASE),
    re.compile(r"<iframe", re.IGNORECASE),
    re.compile(r"<object", re.IGNORECASE),
    re.compile(r"<embed", re.IGNORECASE),
    re.compile(r"data:text/html", re.IGNORECASE),
    re.compile(r"vbscript:", re.IGNORECASE),
)

_events_adapter = TypeAdapter(list[SecurityEvent])


def default_agent() -> str:
    """Identifier of the reporting agent stored with every event."""
    return (
        f"{__title__}/{__version__} "
        f"({platform.system()}; Python {platform.python_version()})"
    )


def match_pattern(text: str) -> Optional[re.Pattern]:
    """Return the first suspicious pattern found in ``text``."""
    for pattern in SUSPICIOUS_PATTERNS:
        if pattern.search(text):
            return pattern
    return None


def nesting_depth(value: Any, depth: int = 0, limit: int = 20) -> int:
    """Maximum nesting depth of dicts/lists, not walked past ``limit``."""
    if depth > limit:
        return depth
    if isinstance(value, dict):
        children = value.values()
    elif isinstance(value, (list, tuple)):
        children = value
    else:
        return depth
    deepest = depth
    for child in children:
        deepest = max(deepest, nesting_depth(child, depth + 1, limit))
    return deepest


class SecurityMonitor:
    """Bounded, inspectable security event log."""

    def __init__(
        self,
        storage: Storage,
        config: Optional[VaultConfig] = None,
        agent: Optional[str] = None,
    ) -> None:
        self._storage = storage
        self._config = config or VaultConfig()
        self._agent = agent or default_agent()

    # ------------------------------------------------------------------
    # Log maintenance
    # ------------------------------------------------------------------

    def log(self) -> list[SecurityEvent]:
        """Current security log, most recent first."""
        raw = self._storage.get_item(SECURITY_LOG_KEY)
        if not raw:
            return []
        try:
            return _events_adapter.validate_json(raw)
        except ValidationError as err:
            logger.error("Unreadable security log: %s", err.error_count())
            return []

    def clear_log(self) -> None:
        self._storage.remove_item(SECURITY_LOG_KEY)
        logger.info("Security log cleared")

    def summary(self, now: Optional[int] = None) -> SecuritySummary:
        """Counts by event kind over the trailing summary window."""
        now = now if now is not None else now_ms()
        since = now - self._config.summary_window * 1000
        recent = [event for event in self.log() if event.timestamp > since]

        def count(kind: SecurityEventType) -> int:
            return sum(1 for event in recent if event.type == kind)

        return SecuritySummary(
            total_events=len(recent),
            xss_attempts=count(SecurityEventType.XSS_ATTEMPT),
            invalid_inputs=count(SecurityEventType.INVALID_INPUT),
            suspicious_patterns=count(SecurityEventType.SUSPICIOUS_PATTERN),
            data_anomalies=count(SecurityEventType.DATA_ANOMALY),
            last_event=recent[0] if recent else None,
        )

    def record(
        self,
        kind: SecurityEventType,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> None:
        """Append an event, dropping the oldest beyond capacity.

        Failures are logged and swallowed.
        """
        try:
            event = SecurityEvent(
                type=kind,
                message=message,
                data=data,
                timestamp=now_ms(),
                user_agent=self._agent,
            )
            events = [event.to_wire()]
            events.extend(e.to_wire() for e in self.log())
            del events[self._config.max_log_entries:]
            self._storage.set_item(
                SECURITY_LOG_KEY, orjson.dumps(events).decode("utf-8")
            )
            logger.warning("Security event: %s %s", kind.value, message)
        except Exception as err:
            logger.error("Failed to log security event: %s", err)

    # ------------------------------------------------------------------
    # Detectors
    # ------------------------------------------------------------------

    def scan_input(self, text: Any) -> bool:
        """True if ``text`` carries an injection indicator.

        Records one XSS_ATTEMPT event for the first matching pattern.
        """
        if not isinstance(text, str):
            return False
        pattern = match_pattern(text)
        if pattern is None:
            return False
        self.record(
            SecurityEventType.XSS_ATTEMPT,
            "Suspicious pattern detected in user input",
            {"input": text[:INPUT_EXCERPT], "pattern": pattern.pattern},
        )
        return True

    def scan_structure(self, data: Any, context: str) -> None:
        """Record DATA_ANOMALY events for oversized or deeply nested data."""
        try:
            if isinstance(data, BaseModel):
                data = data.model_dump(mode="json", by_alias=True)
            depth = nesting_depth(data, limit=self._config.nesting_scan_limit)
            if depth > self._config.max_nesting_depth:
                self.record(
                    SecurityEventType.DATA_ANOMALY,
                    "Unusual object nesting depth detected",
                    {"context": context, "depth": depth},
                )
            size = len(
                orjson.dumps(
                    data, default=str, option=orjson.OPT_NON_STR_KEYS
                ).decode("utf-8")
            )
            if size > self._config.max_structure_size:
                self.record(
                    SecurityEventType.DATA_ANOMALY,
                    "Unusually large data structure detected",
                    {"context": context, "size": size, "type": type(data).__name__},
                )
        except Exception as err:
            logger.debug("Anomaly scan skipped for %s: %s", context, err)

    def record_invalid_input(
        self, value: Any, expected_kind: str, context: str
    ) -> None:
        """Record an INVALID_INPUT event for a value of the wrong kind."""
        self.record(
            SecurityEventType.INVALID_INPUT,
            "Invalid input type detected",
            {
                "context": context,
                "expectedType": expected_kind,
                "actualType": type(value).__name__,
                "value": str(value)[:VALUE_EXCERPT],
            },
        )

    def record_suspicious_usage(
        self, message: str, data: Optional[dict[str, Any]] = None
    ) -> None:
        self.record(SecurityEventType.SUSPICIOUS_PATTERN, message, data)


class SuspiciousLogFilter(logging.Filter):
    """Watches log output for injection indicators.

    Attach to a logger or handler; every record passes through unchanged,
    but messages that match a suspicious pattern are reported to the
    monitor as XSS_ATTEMPT plus SUSPICIOUS_PATTERN events. Records emitted
    by the monitor itself are ignored.
    """

    def __init__(self, monitor: SecurityMonitor, name: str = "") -> None:
        super().__init__(name)
        self._monitor = monitor
        self._active = False

    def filter(self, record: logging.LogRecord) -> bool:
        if self._active or record.name.startswith(logger.name):
            return True
        self._active = True
        try:
            message = record.getMessage()
            if self._monitor.scan_input(message):
                self._monitor.record_suspicious_usage(
                    "Suspicious log usage detected",
                    {
                        "logger": record.name,
                        "level": record.levelname,
                        "message": message[:INPUT_EXCERPT],
                    },
                )
        except Exception:
            logger.debug("Log scan failed for %s", record.name, exc_info=True)
        finally:
            self._active = False
        return True


def install_log_monitor(
    monitor: SecurityMonitor, target: logging.Filterer
) -> SuspiciousLogFilter:
    """Attach a SuspiciousLogFilter to a handler or logger.

    Logger filters only see records created on that logger; attach to a
    handler to watch everything that propagates to it.
    """
    log_filter = SuspiciousLogFilter(monitor)
    target.addFilter(log_filter)
    return log_filter
