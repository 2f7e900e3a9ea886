"""
Repository for Account database operations
"""
import logging
import re
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urlsplit

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError

from twtxt_registry.db import db, transaction
from twtxt_registry.exceptions import Conflict, IncompleteInput, InvalidInput, NotAFeedURL
from twtxt_registry.models import Account, Entry
from twtxt_registry.repositories.pagination import numbered, windowed
from twtxt_registry.utils import canonical_feed_key, is_valid_url, now_ns

logger = logging.getLogger("main")

NICKNAME_PATTERN = re.compile(r"\w+", re.ASCII)
FEED_PATH_PATTERN = re.compile(r"(/twtxt\.txt|/twtxt|\.txt)$")

ACCOUNT_ORDER = (Account.dt_added.desc(), Account.id.desc())


@dataclass
class AccountCandidate:
    """An account about to be registered"""

    url: str
    nickname: str
    passcode_hash: str
    dt_added: Optional[int] = None
    passcode: Optional[str] = None


def validate_candidate(url, nickname, passcode_hash):
    """
    Reject an account before any I/O.

    Raises:
        IncompleteInput: missing field or nickname outside ``[A-Za-z0-9_]``
        InvalidInput: not an http(s) URL, or one pointing at this host
        NotAFeedURL: path does not look like a twtxt feed
    """
    if not url or not nickname or not passcode_hash:
        raise IncompleteInput()
    if not NICKNAME_PATTERN.fullmatch(nickname):
        raise IncompleteInput(f"nickname contains characters outside [A-Za-z0-9_]: {nickname!r}")
    if not is_valid_url(url):
        raise InvalidInput(f"invalid URL provided: {url!r}")
    if not FEED_PATH_PATTERN.search(urlsplit(url).path):
        raise NotAFeedURL(url)


class AccountRepository:
    """Repository for Account database operations"""

    @staticmethod
    def _canonical_clause(url):
        key = canonical_feed_key(url)
        return or_(
            Account.url.endswith("://" + key, autoescape=True),
            Account.url.endswith("://www." + key, autoescape=True),
        )

    @staticmethod
    def exists_canonical(url, deadline=None) -> bool:
        """True if the feed is registered under any scheme, with or without www."""
        with transaction("checking for a registered URL", deadline, commit=False) as session:
            found = session.execute(
                select(Account.id).where(AccountRepository._canonical_clause(url)).limit(1)
            ).first()
        return found is not None

    @staticmethod
    def register(url, nickname, passcode_hash, deadline=None, dt_added=None) -> Account:
        """Create a single account, all-or-nothing"""
        url = url.strip() if url else url
        nickname = nickname.strip() if nickname else nickname
        validate_candidate(url, nickname, passcode_hash)

        if AccountRepository.exists_canonical(url, deadline):
            raise Conflict(f"URL already registered: {url}")

        with transaction("registering account", deadline) as session:
            account = Account(url=url, nick=nickname, passcode_hash=passcode_hash, dt_added=dt_added or now_ns())
            session.add(account)
            try:
                session.flush()
            except IntegrityError as e:
                raise Conflict(f"URL already registered: {url}") from e

        logger.info(f"Registered account {nickname} ({url})")
        return account

    @staticmethod
    def bulk_register(candidates: List[AccountCandidate], deadline=None) -> List[Account]:
        """
        Register many accounts in one transaction.

        Invalid or already registered candidates are skipped and logged,
        they never abort the batch.
        """
        accepted = []
        seen = set()
        with transaction("bulk registering accounts", deadline) as session:
            for candidate in candidates:
                if deadline is not None:
                    deadline.check("bulk registering accounts")
                url = (candidate.url or "").strip()
                nickname = (candidate.nickname or "").strip()
                try:
                    validate_candidate(url, nickname, candidate.passcode_hash)
                except InvalidInput as e:
                    logger.warning(f"Skipping bulk candidate {nickname} {url}: {e.message}")
                    continue

                key = canonical_feed_key(url)
                if key in seen or session.execute(
                    select(Account.id).where(AccountRepository._canonical_clause(url)).limit(1)
                ).first():
                    logger.warning(f"Skipping bulk candidate {nickname} {url}: already registered")
                    continue
                seen.add(key)

                account = Account(
                    url=url,
                    nick=nickname,
                    passcode_hash=candidate.passcode_hash,
                    dt_added=candidate.dt_added or now_ns(),
                )
                account.passcode = candidate.passcode
                session.add(account)
                accepted.append(account)
            session.flush()

        logger.info(f"Bulk registered {len(accepted)} of {len(candidates)} accounts")
        return accepted

    @staticmethod
    def get_by_id(account_id) -> Optional[Account]:
        return db.session.get(Account, account_id)

    @staticmethod
    def get_by_url(url, deadline=None) -> Optional[Account]:
        with transaction("looking up account", deadline, commit=False) as session:
            return session.execute(select(Account).where(Account.url == url)).scalar_one_or_none()

    @staticmethod
    def get_all(deadline=None) -> List[Account]:
        with transaction("listing all accounts", deadline, commit=False) as session:
            return list(session.execute(select(Account).order_by(Account.id)).scalars())

    @staticmethod
    def delete(account_id, deadline=None) -> int:
        """Delete an account and its entries; returns the number of entries removed"""
        if not account_id:
            raise InvalidInput("no account id provided")

        with transaction("deleting account", deadline) as session:
            removed = session.execute(
                select(func.count(Entry.id)).where(Entry.account_id == account_id)
            ).scalar_one()
            result = session.execute(delete(Account).where(Account.id == account_id))
            if result.rowcount == 0:
                removed = 0

        logger.info(f"Deleted account {account_id} and {removed} entries")
        return removed

    @staticmethod
    def delete_many(urls, deadline=None) -> int:
        """Delete every account whose URL is listed; returns the total entries removed"""
        urls = [url.strip() for url in urls or [] if url and url.strip()]
        if not urls:
            raise InvalidInput("no URLs provided")

        with transaction("deleting accounts", deadline) as session:
            account_ids = list(session.execute(select(Account.id).where(Account.url.in_(urls))).scalars())
            if not account_ids:
                return 0
            removed = session.execute(
                select(func.count(Entry.id)).where(Entry.account_id.in_(account_ids))
            ).scalar_one()
            session.execute(delete(Account).where(Account.id.in_(account_ids)))

        logger.info(f"Deleted {len(account_ids)} accounts and {removed} entries")
        return removed

    @staticmethod
    def update_sync_times(account_ids, synced_at_ns=None, deadline=None) -> int:
        if not account_ids:
            return 0
        synced_at_ns = synced_at_ns or now_ns()
        with transaction("updating sync times", deadline) as session:
            result = session.execute(
                update(Account).where(Account.id.in_(list(account_ids))).values(last_sync=synced_at_ns)
            )
        return result.rowcount

    @staticmethod
    def get_paged(window, deadline=None) -> List[Account]:
        """Latest accounts by registration time"""
        with transaction("listing accounts", deadline, commit=False) as session:
            stmt = windowed(Account, numbered(Account.id, ACCOUNT_ORDER), window)
            return list(session.execute(stmt).scalars())

    @staticmethod
    def search_paged(window, term, deadline=None) -> List[Account]:
        """Accounts whose nickname or URL contains ``term``"""
        if not term or not term.strip():
            raise InvalidInput("no search term provided")
        term = term.strip()

        with transaction("searching accounts", deadline, commit=False) as session:
            matches = or_(
                Account.nick.contains(term, autoescape=True),
                Account.url.contains(term, autoescape=True),
            )
            stmt = windowed(Account, numbered(Account.id, ACCOUNT_ORDER, matches), window)
            return list(session.execute(stmt).scalars())

    @staticmethod
    def count(deadline=None) -> int:
        with transaction("counting accounts", deadline, commit=False) as session:
            return session.execute(select(func.count(Account.id))).scalar_one()
