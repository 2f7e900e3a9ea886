"""
Registry facade - the object the HTTP layer, the sync job and the admin
scripts hold. It composes the fetcher, the repositories and the search
index behind filter-aware entry points, and owns the cached totals.
"""
import logging
import secrets
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from twtxt_registry import metrics
from twtxt_registry.constants import DEFAULT_FETCH_TIMEOUT, PASSCODE_BYTES, PASSCODE_HASH_METHOD
from twtxt_registry.exceptions import AuthenticationError, FetchError, InvalidInput, OperationCancelled, StoreError
from twtxt_registry.fetcher import FeedFetcher
from twtxt_registry.models import Account, Visibility
from twtxt_registry.repositories import AccountCandidate, AccountRepository, EntryRepository, PageWindow
from twtxt_registry.repositories.pagination import page_bounds
from twtxt_registry.utils import CachedCount, parse_timestamp

logger = logging.getLogger("main")


def generate_passcode():
    """Return ``(passcode, hash)``; only the hash is ever stored"""
    passcode = secrets.token_hex(PASSCODE_BYTES)
    return passcode, generate_password_hash(passcode, method=PASSCODE_HASH_METHOD)


def parse_account_list(text) -> List[AccountCandidate]:
    """
    Parse an account list document, one ``NICK URL [ADDED]`` per line.

    Lines with fewer than two fields or an unparseable ADDED timestamp are
    skipped. Every candidate gets a freshly generated passcode.
    """
    lines = text.splitlines() if isinstance(text, str) else list(text or [])
    candidates = []
    for line in lines:
        fields = line.split()
        if len(fields) < 2:
            continue

        dt_added = None
        if len(fields) >= 3:
            try:
                dt_added = parse_timestamp(fields[2])
            except ValueError:
                logger.warning(f"Skipping account list line with bad timestamp: {line.strip()}")
                continue

        passcode, passcode_hash = generate_passcode()
        candidates.append(
            AccountCandidate(
                url=fields[1],
                nickname=fields[0],
                passcode_hash=passcode_hash,
                dt_added=dt_added,
                passcode=passcode,
            )
        )
    return candidates


@dataclass
class Registration:
    account: Account
    passcode: str
    entries_added: int = 0
    fetch_error: Optional[FetchError] = None


@dataclass
class SyncReport:
    accounts_synced: int = 0
    accounts_failed: int = 0
    accounts_not_modified: int = 0
    entries_inserted: int = 0
    lines_skipped: int = 0
    failures: dict = field(default_factory=dict)


class Registry:
    """Query Service and write path over the primary store and search index"""

    def __init__(
        self,
        min_per_page,
        max_per_page,
        http_session=None,
        fetch_timeout=DEFAULT_FETCH_TIMEOUT,
        user_agent=None,
    ):
        self.min_per_page, self.max_per_page = page_bounds(min_per_page, max_per_page)
        self.fetcher = FeedFetcher(session=http_session, timeout=fetch_timeout, user_agent=user_agent)
        self._account_count = CachedCount()
        self._entry_count = CachedCount()
        self._sync_lock = threading.Lock()

    def window(self, page, per_page) -> PageWindow:
        return PageWindow.normalize(page, per_page, self.min_per_page, self.max_per_page)

    # Query service

    def get_or_search_accounts(self, page=1, per_page=None, term=None, deadline=None) -> List[Account]:
        window = self.window(page, per_page)
        if term and term.strip():
            return AccountRepository.search_paged(window, term, deadline=deadline)
        return AccountRepository.get_paged(window, deadline=deadline)

    def get_or_search_entries(self, page=1, per_page=None, term=None, visibility=Visibility.VISIBLE, deadline=None):
        window = self.window(page, per_page)
        if term and term.strip():
            return EntryRepository.search(window, term, visibility, deadline=deadline)
        return EntryRepository.get_paged(window, visibility, deadline=deadline)

    def tags(self, page=1, per_page=None, tag=None, visibility=Visibility.VISIBLE, deadline=None):
        window = self.window(page, per_page)
        if tag and tag.strip().lstrip("#"):
            return EntryRepository.search_tags(window, tag, visibility, deadline=deadline)
        return EntryRepository.get_tags(window, visibility, deadline=deadline)

    def mentions(self, page=1, per_page=None, url=None, visibility=Visibility.VISIBLE, deadline=None):
        window = self.window(page, per_page)
        if url and url.strip():
            return EntryRepository.search_mentions(window, url, visibility, deadline=deadline)
        return EntryRepository.get_mentions(window, visibility, deadline=deadline)

    def account_entries(self, account_id, page=1, per_page=None, visibility=Visibility.VISIBLE, deadline=None):
        window = self.window(page, per_page)
        return EntryRepository.get_paged(window, visibility, account_id=account_id, deadline=deadline)

    # Write path

    def _ingest(self, url, account_id, last_sync=None, deadline=None):
        """Fetch one feed and store what is new; returns the FetchResult and inserted count"""
        result = self.fetcher.fetch(url, account_id, last_modified_ns=last_sync or None, deadline=deadline)
        inserted = 0
        if result.entries:
            inserted = EntryRepository.insert_entries(result.entries, deadline=deadline)
        return result, inserted

    def register_account(self, url, nickname, deadline=None) -> Registration:
        """
        Register a feed and ingest it immediately.

        A failed fetch does not undo the registration, it is reported in
        ``fetch_error`` and the feed is picked up again on the next sync.
        """
        passcode, passcode_hash = generate_passcode()
        account = AccountRepository.register(url, nickname, passcode_hash, deadline=deadline)
        account.passcode = passcode
        registration = Registration(account=account, passcode=passcode)

        try:
            _, registration.entries_added = self._ingest(account.url, account.id, deadline=deadline)
            AccountRepository.update_sync_times([account.id], deadline=deadline)
        except FetchError as e:
            logger.warning(f"Registered {url} but could not fetch its feed: {e.message}")
            registration.fetch_error = e

        self.refresh_counts()
        return registration

    def bulk_register(self, lines, deadline=None) -> List[Registration]:
        """
        Register every valid account from an account list, then fetch each feed.

        A failed fetch is logged and never aborts the batch.
        """
        candidates = parse_account_list(lines)
        accounts = AccountRepository.bulk_register(candidates, deadline=deadline)

        registrations = []
        synced = []
        for account in accounts:
            registration = Registration(account=account, passcode=account.passcode)
            try:
                _, registration.entries_added = self._ingest(account.url, account.id, deadline=deadline)
                synced.append(account.id)
            except FetchError as e:
                logger.error(f"Couldn't fetch entries for {account.url}: {e.message}")
                registration.fetch_error = e
            registrations.append(registration)

        AccountRepository.update_sync_times(synced, deadline=deadline)
        self.refresh_counts()
        return registrations

    def insert_entries(self, entries, deadline=None) -> int:
        inserted = EntryRepository.insert_entries(entries, deadline=deadline)
        self.refresh_counts()
        return inserted

    def delete_account(self, account_id, deadline=None) -> int:
        removed = AccountRepository.delete(account_id, deadline=deadline)
        self.refresh_counts()
        return removed

    def delete_accounts(self, urls, deadline=None) -> int:
        removed = AccountRepository.delete_many(urls, deadline=deadline)
        self.refresh_counts()
        return removed

    def toggle_visibility(self, account_id, timestamp_ns, visibility, deadline=None) -> int:
        return EntryRepository.toggle_visibility(account_id, timestamp_ns, visibility, deadline=deadline)

    def set_entry_visibility(self, url, timestamp, visibility, deadline=None) -> int:
        """Hide or unhide the entry an account's feed declared at ``timestamp`` (RFC 3339)"""
        if not url or not timestamp:
            raise InvalidInput("URL and timestamp are both required")
        try:
            timestamp_ns = parse_timestamp(timestamp)
        except ValueError as e:
            raise InvalidInput(str(e)) from e

        account = AccountRepository.get_by_url(url.strip(), deadline=deadline)
        if account is None:
            raise InvalidInput(f"no account registered for {url}")
        return self.toggle_visibility(account.id, timestamp_ns, visibility, deadline=deadline)

    # Credentials

    def authenticate_owner(self, url, passcode, deadline=None) -> Account:
        if not url or not passcode:
            raise AuthenticationError()
        account = AccountRepository.get_by_url(url.strip(), deadline=deadline)
        if account is None or not check_password_hash(account.passcode_hash, passcode):
            raise AuthenticationError()
        return account

    @staticmethod
    def check_admin(password, admin_hash) -> bool:
        if not password or not admin_hash:
            return False
        return check_password_hash(admin_hash, password)

    # Periodic resync

    def sync_all(self, deadline=None) -> Optional[SyncReport]:
        """
        Conditionally re-fetch every feed and store new entries.

        A failed fetch or store for one feed is recorded in the report and
        the run moves on to the next feed. Cancellation stops the run.
        Returns None without doing anything when a sync is already running.
        """
        if not self._sync_lock.acquire(blocking=False):
            logger.info("Sync already in progress, skipping")
            return None

        report = SyncReport()
        synced = []
        try:
            targets = [(a.id, a.url, a.last_sync) for a in AccountRepository.get_all(deadline=deadline)]
            for account_id, url, last_sync in targets:
                try:
                    result, inserted = self._ingest(url, account_id, last_sync, deadline=deadline)
                except OperationCancelled:
                    raise
                except (FetchError, InvalidInput, StoreError) as e:
                    logger.warning(f"Sync of {url} failed: {e.message}")
                    report.accounts_failed += 1
                    report.failures[url] = e.message
                    metrics.feeds_fetched_total.labels(result="failed").inc()
                    continue

                synced.append(account_id)
                report.lines_skipped += result.skipped
                if result.not_modified:
                    report.accounts_not_modified += 1
                    metrics.feeds_fetched_total.labels(result="not_modified").inc()
                else:
                    report.accounts_synced += 1
                    report.entries_inserted += inserted
                    metrics.feeds_fetched_total.labels(result="fetched").inc()
        finally:
            try:
                AccountRepository.update_sync_times(synced)
            finally:
                self._sync_lock.release()

        metrics.entries_inserted_total.inc(report.entries_inserted)
        metrics.feed_lines_skipped_total.inc(report.lines_skipped)
        self.refresh_counts()
        return report

    @property
    def sync_running(self):
        return self._sync_lock.locked()

    # Cached totals

    def refresh_counts(self):
        accounts = self._account_count.refresh(AccountRepository.count)
        entries = self._entry_count.refresh(EntryRepository.count)
        metrics.update_count_metrics(accounts, entries)
        return accounts, entries

    @property
    def account_count(self):
        return self._account_count.value

    @property
    def entry_count(self):
        return self._entry_count.value
