"""
Search index over entries.

An FTS5 table mirrors every row of ``entries`` together with the owner's
nickname and URL. Triggers keep it in step with inserts, deletes (including
cascades from ``accounts``) and visibility changes, so it is always written
in the same transaction as the row it mirrors.

Tags go into their own ``tags`` column exactly as the tag pattern extracts
them, so a tag query agrees with the tags an entry reports. '#' and '_' are
token characters: ``#foo_bar`` is one token and never matches ``#foo``.
"""
from sqlalchemy import BigInteger, Boolean, Integer, Text, column, event, table, text

from twtxt_registry.models.entry import Entry

SEARCH_TABLE = "entries_search"

CREATE_SEARCH_TABLE = f"""
CREATE VIRTUAL TABLE IF NOT EXISTS {SEARCH_TABLE} USING fts5 (
    body,
    tags,
    nick UNINDEXED,
    url UNINDEXED,
    account_id UNINDEXED,
    dt UNINDEXED,
    contains_mentions UNINDEXED,
    contains_tags UNINDEXED,
    hidden UNINDEXED,
    tokenize = "unicode61 tokenchars '#_'"
)
"""

CREATE_INSERT_TRIGGER = f"""
CREATE TRIGGER IF NOT EXISTS entries_search_insert AFTER INSERT ON entries
BEGIN
    INSERT INTO {SEARCH_TABLE} (
        rowid, body, tags, nick, url, account_id, dt, contains_mentions, contains_tags, hidden
    )
    SELECT new.id, new.body, new.tag_tokens, accounts.nick, accounts.url, new.account_id, new.dt,
           new.contains_mentions, new.contains_tags, new.hidden
    FROM accounts WHERE accounts.id = new.account_id;
END
"""

CREATE_DELETE_TRIGGER = f"""
CREATE TRIGGER IF NOT EXISTS entries_search_delete AFTER DELETE ON entries
BEGIN
    DELETE FROM {SEARCH_TABLE} WHERE rowid = old.id;
END
"""

CREATE_VISIBILITY_TRIGGER = f"""
CREATE TRIGGER IF NOT EXISTS entries_search_visibility AFTER UPDATE OF hidden ON entries
BEGIN
    UPDATE {SEARCH_TABLE} SET hidden = new.hidden WHERE rowid = new.id;
END
"""

INSTALL_STATEMENTS = (
    CREATE_SEARCH_TABLE,
    CREATE_INSERT_TRIGGER,
    CREATE_DELETE_TRIGGER,
    CREATE_VISIBILITY_TRIGGER,
)

DROP_STATEMENTS = (
    "DROP TRIGGER IF EXISTS entries_search_visibility",
    "DROP TRIGGER IF EXISTS entries_search_delete",
    "DROP TRIGGER IF EXISTS entries_search_insert",
    f"DROP TABLE IF EXISTS {SEARCH_TABLE}",
)

# Query-side view of the virtual table; rowid is the mirrored entry id
entries_search = table(
    SEARCH_TABLE,
    column("rowid", Integer),
    column("body", Text),
    column("tags", Text),
    column("nick", Text),
    column("url", Text),
    column("account_id", Integer),
    column("dt", BigInteger),
    column("contains_mentions", Boolean),
    column("contains_tags", Boolean),
    column("hidden", Integer),
)


def install_search_index(connection):
    """Create the search table and its triggers if they are missing"""
    for statement in INSTALL_STATEMENTS:
        connection.execute(text(statement))


def drop_search_index(connection):
    for statement in DROP_STATEMENTS:
        connection.execute(text(statement))


@event.listens_for(Entry.__table__, "after_create")
def _create_search_index(target, connection, **kw):
    install_search_index(connection)


@event.listens_for(Entry.__table__, "before_drop")
def _drop_search_index(target, connection, **kw):
    drop_search_index(connection)
