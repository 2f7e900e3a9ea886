"""
Feed Fetcher - retrieves a remote twtxt feed and parses it into candidate entries
"""
import re
from dataclasses import dataclass, field
from email.utils import format_datetime
from typing import List, Optional

import requests
import structlog

from twtxt_registry.constants import BUILD_VERSION, DEFAULT_FETCH_TIMEOUT
from twtxt_registry.exceptions import FetchError, InvalidInput
from twtxt_registry.indexer import index_body
from twtxt_registry.utils import is_valid_url, ns_to_datetime, parse_timestamp

logger = structlog.get_logger("fetcher")

FIELD_SEPARATOR = re.compile(r"\s+")


@dataclass
class FeedEntry:
    """An entry parsed from a feed, not yet stored"""

    account_id: int
    timestamp_ns: int
    body: str
    contains_mentions: bool = False
    contains_tags: bool = False

    def __post_init__(self):
        flags = index_body(self.body)
        self.contains_mentions = flags.contains_mentions
        self.contains_tags = flags.contains_tags


@dataclass
class FetchResult:
    entries: List[FeedEntry] = field(default_factory=list)
    skipped: int = 0
    not_modified: bool = False


def parse_feed(text: str, account_id: int, url: Optional[str] = None) -> FetchResult:
    """
    Split a feed document into candidate entries, in file order.

    Blank lines and ``#`` comments are ignored. Lines without a body or
    with a timestamp that is not RFC 3339 are skipped and counted.
    """
    result = FetchResult()
    # Only LF ends a line; other Unicode line separators belong to the body
    for raw_line in text.split("\n"):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        fields = FIELD_SEPARATOR.split(line, maxsplit=1)
        if len(fields) < 2:
            logger.debug("skipping feed line without body", url=url, line=line)
            result.skipped += 1
            continue

        stamp, body = fields
        try:
            timestamp_ns = parse_timestamp(stamp)
        except ValueError:
            logger.debug("skipping feed line with bad timestamp", url=url, timestamp=stamp)
            result.skipped += 1
            continue

        result.entries.append(FeedEntry(account_id=account_id, timestamp_ns=timestamp_ns, body=body))
    return result


class FeedFetcher:
    """Performs conditional GETs against twtxt feeds"""

    def __init__(self, session=None, timeout=DEFAULT_FETCH_TIMEOUT, user_agent=None):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.session.headers.update({"User-Agent": user_agent or f"twtxt-registry/{BUILD_VERSION}"})

    def _timeout_for(self, deadline):
        if deadline is None:
            return self.timeout
        remaining = deadline.remaining()
        if remaining is None:
            return self.timeout
        return min(self.timeout, remaining)

    def fetch(self, url, account_id, last_modified_ns=None, deadline=None) -> FetchResult:
        """
        Fetch and parse the feed at ``url``.

        A 304 yields an empty result with ``not_modified`` set. Any other
        non-200 status, a non text/plain content type or a transport failure
        raises FetchError. Invalid URLs raise InvalidInput before any request.
        """
        if not is_valid_url(url):
            raise InvalidInput(f"invalid URL provided: {url!r}")
        if deadline is not None:
            deadline.check(f"fetching {url}")

        headers = {}
        if last_modified_ns:
            headers["If-Modified-Since"] = format_datetime(ns_to_datetime(last_modified_ns), usegmt=True)

        try:
            response = self.session.get(url, headers=headers, timeout=self._timeout_for(deadline))
        except requests.RequestException as e:
            logger.warning("feed request failed", url=url, error=str(e))
            raise FetchError(f"error making http request to {url}: {e}", url=url) from e

        if response.status_code == 304:
            logger.debug("feed not modified", url=url)
            return FetchResult(not_modified=True)

        if response.status_code != 200:
            raise FetchError(f"got status code {response.status_code} from {url}", url=url, status_code=response.status_code)

        content_type = response.headers.get("Content-Type", "")
        if "text/plain" not in content_type:
            raise FetchError(
                f"received non-text/plain content type from {url}: {content_type}",
                url=url,
                status_code=response.status_code,
                content_type=content_type,
            )

        # twtxt feeds are UTF-8 whatever requests guesses for text/*
        if "charset" not in content_type.lower():
            response.encoding = "utf-8"
        result = parse_feed(response.text, account_id, url=url)
        logger.info("feed fetched", url=url, entries=len(result.entries), skipped=result.skipped)
        return result
