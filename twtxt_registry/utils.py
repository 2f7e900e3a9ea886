import ipaddress
import logging
import re
import threading
import time
from datetime import datetime, timedelta, timezone
from urllib.parse import urlsplit

from twtxt_registry.exceptions import OperationCancelled

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# RFC 3339 date-time, with or without a fractional second (up to nanoseconds)
RFC3339_PATTERN = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d{1,9}))?([Zz]|[+-]\d{2}:\d{2})$"
)


# Custom logging formatter to support colors
class ColoredFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[94m",
        "INFO": "\033[92m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "CRITICAL": "\033[95m",
    }
    RESET = "\033[0m"

    def format(self, record):
        color = self.COLORS.get(record.levelname)
        if color:
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


# Werkzeug prints its own date in access logs, ours already carries one
class FilterRemoveDateFromWerkzeugLogs(logging.Filter):
    pattern: re.Pattern = re.compile(r' - - \[.+?] "')

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self.pattern.sub(' - "', record.msg)
        return True


def now_utc():
    return datetime.now(timezone.utc)


def now_ns():
    return time.time_ns()


def parse_timestamp(value: str) -> int:
    """
    Parse an RFC 3339 timestamp into integer nanoseconds since the Unix epoch.

    Both the plain profile (``2023-01-01T00:00:00Z``) and the one carrying a
    fractional second (``2023-01-01T00:00:00.123456789+02:00``) are accepted.

    Raises:
        ValueError: the value matches neither profile or names an impossible date.
    """
    match = RFC3339_PATTERN.match(value.strip()) if value else None
    if not match:
        raise ValueError(f"not an RFC 3339 timestamp: {value!r}")

    year, month, day, hour, minute, second, fraction, offset = match.groups()
    if offset in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = -1 if offset[0] == "-" else 1
        hours, minutes = int(offset[1:3]), int(offset[4:6])
        if hours > 23 or minutes > 59:
            raise ValueError(f"invalid UTC offset in timestamp: {value!r}")
        tz = timezone(sign * timedelta(hours=hours, minutes=minutes))

    moment = datetime(int(year), int(month), int(day), int(hour), int(minute), int(second), tzinfo=tz)
    delta = moment - EPOCH
    seconds = delta.days * 86400 + delta.seconds
    nanos = int(fraction.ljust(9, "0")) if fraction else 0
    return seconds * 1_000_000_000 + nanos


def ns_to_datetime(value: int) -> datetime:
    return EPOCH + timedelta(microseconds=value // 1000)


def datetime_to_ns(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    delta = value - EPOCH
    return (delta.days * 86400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1000


def format_timestamp(value: int, nanos: bool = False) -> str:
    """
    Render nanoseconds since the epoch as an RFC 3339 UTC timestamp.

    Second precision by default; with ``nanos`` a non-zero fractional
    second is kept, trailing zeros trimmed.
    """
    seconds, fraction = divmod(value, 1_000_000_000)
    rendered = (EPOCH + timedelta(seconds=seconds)).strftime("%Y-%m-%dT%H:%M:%S")
    if nanos and fraction:
        rendered += "." + f"{fraction:09d}".rstrip("0")
    return rendered + "Z"


def is_valid_url(url) -> bool:
    """
    True if the URL is a plausible http(s) address that does not point back
    at this host (``localhost`` or any loopback address).
    """
    if not url or not isinstance(url, str) or not url.strip():
        return False
    try:
        parts = urlsplit(url.strip())
        hostname = parts.hostname
    except ValueError:
        return False

    if parts.scheme not in ("http", "https") or not hostname:
        return False
    if hostname == "localhost" or hostname.endswith(".localhost"):
        return False
    try:
        if ipaddress.ip_address(hostname).is_loopback:
            return False
    except ValueError:
        pass
    return True


def canonical_feed_key(url: str) -> str:
    """
    Host (without a leading ``www.``) followed by the path, so that
    ``http://www.example.com/twtxt.txt`` and ``https://example.com/twtxt.txt``
    compare equal.
    """
    parts = urlsplit(url.strip())
    host = parts.netloc.lower()
    if host.startswith("www."):
        host = host[4:]
    return f"{host}{parts.path}"


class Deadline:
    """
    Cancellation signal handed to store and fetcher operations.

    A deadline expires either when its time budget runs out or when
    ``cancel()`` is called from another thread. ``Deadline()`` with no
    budget only expires on an explicit cancel.
    """

    def __init__(self, seconds=None):
        self._expires_at = None if seconds is None else time.monotonic() + seconds
        self._cancelled = threading.Event()

    def cancel(self):
        self._cancelled.set()

    @property
    def cancelled(self):
        return self._cancelled.is_set()

    @property
    def expired(self):
        if self._cancelled.is_set():
            return True
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    def remaining(self):
        """Seconds left, ``None`` when unbounded, ``0`` once expired"""
        if self._cancelled.is_set():
            return 0
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def check(self, operation):
        if self.expired:
            raise OperationCancelled(operation)


class CachedCount:
    """Lock-protected integer refreshed on demand from a counting callable"""

    def __init__(self, initial=0):
        self._value = initial
        self._lock = threading.Lock()

    @property
    def value(self):
        with self._lock:
            return self._value

    def refresh(self, counter):
        fresh = counter()
        with self._lock:
            self._value = fresh
        return fresh
