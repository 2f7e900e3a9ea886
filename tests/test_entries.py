"""
Tests for entry storage, pagination and visibility
"""
import pytest

from twtxt_registry.exceptions import InvalidInput
from twtxt_registry.fetcher import FeedEntry
from twtxt_registry.models import Visibility
from twtxt_registry.repositories import AccountRepository, EntryRepository, PageWindow

NEW_YEAR_2023_NS = 1_672_531_200_000_000_000


class TestInsertEntries:
    """Re-ingesting a feed never duplicates entries"""

    def test_insert_is_idempotent(self, app, make_account, make_entries):
        account_id = make_account().id
        entries = make_entries(account_id, ["one", "two", "three"])

        assert EntryRepository.insert_entries(entries) == 3
        assert EntryRepository.insert_entries(entries) == 0
        assert EntryRepository.count() == 3

    def test_partial_overlap(self, app, make_account, make_entries):
        account_id = make_account().id
        EntryRepository.insert_entries(make_entries(account_id, ["one", "two"]))
        assert EntryRepository.insert_entries(make_entries(account_id, ["one", "two", "three"])) == 1

    def test_same_timestamp_different_body(self, app, make_account):
        account_id = make_account().id
        entries = [
            FeedEntry(account_id=account_id, timestamp_ns=NEW_YEAR_2023_NS, body="first"),
            FeedEntry(account_id=account_id, timestamp_ns=NEW_YEAR_2023_NS, body="second"),
        ]
        assert EntryRepository.insert_entries(entries) == 2

    def test_empty_list_rejected(self, app):
        with pytest.raises(InvalidInput):
            EntryRepository.insert_entries([])

    def test_flags_recomputed_from_body(self, app, make_account):
        account_id = make_account().id
        entry = FeedEntry(account_id=account_id, timestamp_ns=NEW_YEAR_2023_NS, body="plain")
        entry.contains_tags = True
        EntryRepository.insert_entries([entry])
        assert EntryRepository.get_tags(PageWindow(1, 10)) == []

    def test_stored_entry_renders(self, app, make_account, make_entries):
        account_id = make_account(url="https://ex.com/twtxt.txt", nickname="foo").id
        EntryRepository.insert_entries(make_entries(account_id, ["hello #test @<bar https://ex2.com/twtxt.txt>"]))

        entry = EntryRepository.get_paged(PageWindow(1, 10))[0]
        data = entry.to_dict()
        assert data["nickname"] == "foo"
        assert data["url"] == "https://ex.com/twtxt.txt"
        assert data["datetime"] == "2023-01-01T00:00:00Z"
        assert data["tags"] == ["test"]
        assert data["mentions"] == [{"nickname": "bar", "url": "https://ex2.com/twtxt.txt"}]
        assert data["hidden"] == 0


class TestPagination:
    """Pages concatenate to the full, ordered result set"""

    def test_pages_partition_entries(self, app, make_account, make_entries):
        account_id = make_account().id
        EntryRepository.insert_entries(make_entries(account_id, [f"entry {n}" for n in range(23)]))

        pages = [EntryRepository.get_paged(PageWindow(page, 10)) for page in (1, 2, 3, 4)]
        assert [len(page) for page in pages] == [10, 10, 3, 0]

        timestamps = [entry.dt for page in pages for entry in page]
        assert timestamps == sorted(timestamps, reverse=True)
        assert len(set(entry.id for page in pages for entry in page)) == 23

    def test_ties_have_a_stable_order(self, app, make_account, make_entries):
        """Many accounts posting at the same instant still paginate without gaps"""
        for n in range(15):
            account_id = make_account().id
            EntryRepository.insert_entries(make_entries(account_id, [f"same time {n}"], step_ns=0))

        first = EntryRepository.get_paged(PageWindow(1, 10))
        second = EntryRepository.get_paged(PageWindow(2, 10))
        ids = [entry.id for entry in first + second]
        assert len(ids) == 15
        assert len(set(ids)) == 15
        assert ids == sorted(ids, reverse=True)

    def test_restricted_to_account(self, app, make_account, make_entries):
        mine = make_account().id
        theirs = make_account().id
        EntryRepository.insert_entries(make_entries(mine, ["a", "b"]))
        EntryRepository.insert_entries(make_entries(theirs, ["c"]))

        entries = EntryRepository.get_paged(PageWindow(1, 10), account_id=mine)
        assert {entry.account_id for entry in entries} == {mine}
        assert len(entries) == 2

    def test_counts(self, app, make_account, make_entries):
        account_id = make_account().id
        EntryRepository.insert_entries(make_entries(account_id, ["a", "b"]))
        assert EntryRepository.count() == 2
        assert EntryRepository.count_for_account(account_id) == 2
        assert EntryRepository.count_for_account(account_id + 1) == 0

    @pytest.mark.parametrize("term", [None, "entry"])
    def test_huge_page_is_empty(self, registry, make_account, make_entries, term):
        account_id = make_account().id
        EntryRepository.insert_entries(make_entries(account_id, ["entry #tag"]))

        assert registry.get_or_search_entries(page=10**20, term=term) == []
        assert registry.tags(page=10**20, tag="tag") == []


class TestVisibility:
    def test_toggle_hides_and_restores(self, app, make_account, make_entries):
        account_id = make_account().id
        EntryRepository.insert_entries(make_entries(account_id, ["keep", "hide me"]))
        hidden_ts = NEW_YEAR_2023_NS + 1_000_000_000

        assert EntryRepository.toggle_visibility(account_id, hidden_ts, Visibility.HIDDEN) == 1
        visible = EntryRepository.get_paged(PageWindow(1, 10))
        hidden = EntryRepository.get_paged(PageWindow(1, 10), Visibility.HIDDEN)
        assert [entry.body for entry in visible] == ["keep"]
        assert [entry.body for entry in hidden] == ["hide me"]
        assert hidden[0].visibility is Visibility.HIDDEN

        EntryRepository.toggle_visibility(account_id, hidden_ts, Visibility.VISIBLE)
        assert len(EntryRepository.get_paged(PageWindow(1, 10))) == 2

    def test_unknown_entry_updates_nothing(self, app, make_account):
        account_id = make_account().id
        assert EntryRepository.toggle_visibility(account_id, 42, Visibility.HIDDEN) == 0

    @pytest.mark.parametrize("account_id, timestamp", [(None, 42), (0, 42), (1, 0), (1, None)])
    def test_requires_account_and_timestamp(self, app, account_id, timestamp):
        with pytest.raises(InvalidInput):
            EntryRepository.toggle_visibility(account_id, timestamp, Visibility.HIDDEN)

    def test_rejects_unknown_visibility(self, app, make_account):
        account_id = make_account().id
        with pytest.raises(ValueError):
            EntryRepository.toggle_visibility(account_id, 42, 7)


class TestSearchIndexMirror:
    """Every committed entry has exactly one search index row"""

    def test_index_follows_inserts(self, app, make_account, make_entries):
        account_id = make_account().id
        EntryRepository.insert_entries(make_entries(account_id, ["a", "b", "c"]))
        EntryRepository.insert_entries(make_entries(account_id, ["a", "b", "c"]))
        assert EntryRepository.count_search_index() == EntryRepository.count() == 3

    def test_index_follows_cascade_delete(self, app, make_account, make_entries):
        gone = make_account().id
        kept = make_account().id
        EntryRepository.insert_entries(make_entries(gone, ["a", "b"]))
        EntryRepository.insert_entries(make_entries(kept, ["c"]))

        AccountRepository.delete(gone)
        assert EntryRepository.count_search_index() == EntryRepository.count() == 1

    def test_index_follows_visibility(self, app, make_account, make_entries):
        account_id = make_account().id
        EntryRepository.insert_entries(make_entries(account_id, ["findable words"]))
        EntryRepository.toggle_visibility(account_id, NEW_YEAR_2023_NS, Visibility.HIDDEN)

        assert EntryRepository.search(PageWindow(1, 10), "findable") == []
        hidden = EntryRepository.search(PageWindow(1, 10), "findable", Visibility.HIDDEN)
        assert [entry.body for entry in hidden] == ["findable words"]
