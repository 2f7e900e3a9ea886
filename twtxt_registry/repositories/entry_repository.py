"""
Repository for Entry database operations and search index queries
"""
import logging
from typing import List

from sqlalchemy import func, literal_column, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import joinedload

from twtxt_registry.db import transaction
from twtxt_registry.exceptions import InvalidInput
from twtxt_registry.indexer import index_body, tag_tokens
from twtxt_registry.models import Entry, Visibility
from twtxt_registry.models.search import SEARCH_TABLE, entries_search
from twtxt_registry.repositories.pagination import numbered, windowed

logger = logging.getLogger("main")

ENTRY_ORDER = (Entry.dt.desc(), Entry.id.desc())
SEARCH_ORDER = (entries_search.c.dt.desc(), entries_search.c.rowid.desc())


def quote_term(term):
    """A single FTS5 phrase; embedded double quotes are doubled"""
    return '"' + term.replace('"', '""') + '"'


def keyword_query(term):
    """Every whitespace separated word must appear in the body"""
    words = term.split()
    if not words:
        raise InvalidInput("no search term provided")
    return " ".join("body : " + quote_term(word) for word in words)


def tag_query(tag):
    tag = tag.strip().lstrip("#")
    if not tag:
        raise InvalidInput("no tag provided")
    return "tags : " + quote_term("#" + tag)


def _visibility(value):
    return int(Visibility(int(value)))


def _matches(expression):
    return literal_column(SEARCH_TABLE).op("MATCH")(expression)


class EntryRepository:
    """Repository for Entry database operations"""

    @staticmethod
    def insert_entries(entries, deadline=None) -> int:
        """
        Store parsed entries, ignoring any already present.

        The (account, timestamp, body) constraint makes re-ingesting the
        same feed a no-op. Index flags are recomputed from the body here,
        whatever the caller passed in. Returns the number of new rows.
        """
        if not entries:
            raise InvalidInput("no entries to insert")

        inserted = 0
        with transaction("inserting entries", deadline) as session:
            for entry in entries:
                if deadline is not None:
                    deadline.check("inserting entries")
                flags = index_body(entry.body)
                stmt = (
                    sqlite_insert(Entry)
                    .values(
                        account_id=entry.account_id,
                        dt=entry.timestamp_ns,
                        body=entry.body,
                        contains_mentions=flags.contains_mentions,
                        contains_tags=flags.contains_tags,
                        tag_tokens=tag_tokens(entry.body),
                        hidden=int(Visibility.VISIBLE),
                    )
                    .on_conflict_do_nothing(index_elements=["account_id", "dt", "body"])
                )
                inserted += session.execute(stmt).rowcount

        logger.debug(f"Inserted {inserted} of {len(entries)} entries")
        return inserted

    @staticmethod
    def toggle_visibility(account_id, timestamp_ns, visibility, deadline=None) -> int:
        """Set the visibility of the entry posted by ``account_id`` at ``timestamp_ns``"""
        if not account_id:
            raise InvalidInput("no account id provided")
        if not timestamp_ns:
            raise InvalidInput("no entry timestamp provided")

        with transaction("toggling entry visibility", deadline) as session:
            result = session.execute(
                update(Entry)
                .where(Entry.account_id == account_id, Entry.dt == timestamp_ns)
                .values(hidden=_visibility(visibility))
            )
        return result.rowcount

    @staticmethod
    def _page(operation, numbered_ids, window, deadline):
        with transaction(operation, deadline, commit=False) as session:
            stmt = windowed(Entry, numbered_ids, window).options(joinedload(Entry.account))
            return list(session.execute(stmt).unique().scalars())

    @staticmethod
    def get_paged(window, visibility=Visibility.VISIBLE, account_id=None, deadline=None) -> List[Entry]:
        """Latest entries, optionally restricted to one account"""
        criteria = [Entry.hidden == _visibility(visibility)]
        if account_id is not None:
            criteria.append(Entry.account_id == account_id)
        return EntryRepository._page(
            "listing entries", numbered(Entry.id, ENTRY_ORDER, *criteria), window, deadline
        )

    @staticmethod
    def search(window, term, visibility=Visibility.VISIBLE, deadline=None) -> List[Entry]:
        """Entries whose body contains every word of ``term``"""
        if not term or not term.strip():
            raise InvalidInput("no search term provided")
        criteria = (
            _matches(keyword_query(term)),
            entries_search.c.hidden == _visibility(visibility),
        )
        return EntryRepository._page(
            "searching entries", numbered(entries_search.c.rowid, SEARCH_ORDER, *criteria), window, deadline
        )

    @staticmethod
    def get_tags(window, visibility=Visibility.VISIBLE, deadline=None) -> List[Entry]:
        criteria = (Entry.contains_tags.is_(True), Entry.hidden == _visibility(visibility))
        return EntryRepository._page(
            "listing tagged entries", numbered(Entry.id, ENTRY_ORDER, *criteria), window, deadline
        )

    @staticmethod
    def search_tags(window, tag, visibility=Visibility.VISIBLE, deadline=None) -> List[Entry]:
        """Entries carrying ``#tag``; the leading '#' is optional"""
        if not tag or not tag.strip():
            raise InvalidInput("no tag provided")
        criteria = (
            _matches(tag_query(tag)),
            entries_search.c.contains_tags == 1,
            entries_search.c.hidden == _visibility(visibility),
        )
        return EntryRepository._page(
            "searching tags", numbered(entries_search.c.rowid, SEARCH_ORDER, *criteria), window, deadline
        )

    @staticmethod
    def get_mentions(window, visibility=Visibility.VISIBLE, deadline=None) -> List[Entry]:
        criteria = (Entry.contains_mentions.is_(True), Entry.hidden == _visibility(visibility))
        return EntryRepository._page(
            "listing entries with mentions", numbered(Entry.id, ENTRY_ORDER, *criteria), window, deadline
        )

    @staticmethod
    def search_mentions(window, url, visibility=Visibility.VISIBLE, deadline=None) -> List[Entry]:
        """Entries mentioning the feed at ``url``"""
        if not url or not url.strip():
            raise InvalidInput("no mention URL provided")
        url = url.strip()
        criteria = (
            _matches("body : " + quote_term(url)),
            func.instr(entries_search.c.body, url) > 0,
            entries_search.c.contains_mentions == 1,
            entries_search.c.hidden == _visibility(visibility),
        )
        return EntryRepository._page(
            "searching mentions", numbered(entries_search.c.rowid, SEARCH_ORDER, *criteria), window, deadline
        )

    @staticmethod
    def count(deadline=None) -> int:
        with transaction("counting entries", deadline, commit=False) as session:
            return session.execute(select(func.count(Entry.id))).scalar_one()

    @staticmethod
    def count_for_account(account_id, deadline=None) -> int:
        with transaction("counting account entries", deadline, commit=False) as session:
            return session.execute(
                select(func.count(Entry.id)).where(Entry.account_id == account_id)
            ).scalar_one()

    @staticmethod
    def count_search_index(deadline=None) -> int:
        """Rows in the search index, equal to ``count()`` whenever a transaction has completed"""
        with transaction("counting search index rows", deadline, commit=False) as session:
            return session.execute(select(func.count()).select_from(entries_search)).scalar_one()
