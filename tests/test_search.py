"""
Tests for keyword, tag and mention search over the full-text index
"""
import pytest

from conftest import MENTIONED_URL, SCENARIO_FEED, SCENARIO_URL
from twtxt_registry.exceptions import InvalidInput
from twtxt_registry.indexer import extract_tags
from twtxt_registry.models import Visibility
from twtxt_registry.repositories import EntryRepository, PageWindow
from twtxt_registry.repositories.entry_repository import keyword_query, quote_term, tag_query


@pytest.fixture
def scenario(registry, feeds):
    """foo at ex.com posts one entry with a tag and a mention"""
    feeds.serve(SCENARIO_URL, SCENARIO_FEED)
    registration = registry.register_account(SCENARIO_URL, "foo")
    assert registration.fetch_error is None
    assert registration.entries_added == 1
    return registration


class TestQueryBuilding:
    def test_quote_term_doubles_quotes(self):
        assert quote_term('say "hi"') == '"say ""hi"""'

    def test_keyword_query_quotes_every_word(self):
        assert keyword_query("hello  world") == 'body : "hello" body : "world"'

    def test_tag_query_hash_is_optional(self):
        assert tag_query("test") == tag_query("#test") == 'tags : "#test"'

    @pytest.mark.parametrize("term", ["", "   "])
    def test_blank_keyword_rejected(self, term):
        with pytest.raises(InvalidInput):
            keyword_query(term)

    def test_blank_tag_rejected(self):
        with pytest.raises(InvalidInput):
            tag_query("#")


class TestScenario:
    """One account, one entry, every query path"""

    @pytest.mark.parametrize("tag", ["test", "#test"])
    def test_tag_search(self, registry, scenario, tag):
        entries = registry.tags(tag=tag)
        assert len(entries) == 1
        assert entries[0].nickname == "foo"
        assert entries[0].url == SCENARIO_URL

    def test_mention_search(self, registry, scenario):
        entries = registry.mentions(url=MENTIONED_URL)
        assert [entry.body for entry in entries] == [SCENARIO_FEED.split("\t", 1)[1].strip()]

    def test_mention_of_other_url(self, registry, scenario):
        assert registry.mentions(url="https://ex3.com/twtxt.txt") == []

    def test_keyword_search(self, registry, scenario):
        assert len(registry.get_or_search_entries(term="hello")) == 1

    def test_keyword_search_without_match(self, registry, scenario):
        assert registry.get_or_search_entries(term="zzz") == []

    def test_listings_without_filter(self, registry, scenario):
        assert len(registry.tags()) == 1
        assert len(registry.mentions()) == 1
        assert len(registry.get_or_search_entries()) == 1

    def test_nickname_is_not_searched(self, registry, scenario):
        assert registry.get_or_search_entries(term="foo") == []


class TestTagMatching:
    def test_tag_does_not_match_plain_word(self, registry, make_account, make_entries):
        account_id = make_account().id
        EntryRepository.insert_entries(make_entries(account_id, ["I like to test things", "tagged #test"]))

        assert [entry.body for entry in registry.tags(tag="test")] == ["tagged #test"]

    def test_keyword_does_not_match_tag(self, registry, make_account, make_entries):
        account_id = make_account().id
        EntryRepository.insert_entries(make_entries(account_id, ["tagged #python"]))
        assert registry.get_or_search_entries(term="python") == []

    def test_every_keyword_must_appear(self, registry, make_account, make_entries):
        account_id = make_account().id
        EntryRepository.insert_entries(make_entries(account_id, ["red apple", "green apple", "red car"]))

        found = registry.get_or_search_entries(term="red apple")
        assert [entry.body for entry in found] == ["red apple"]

    def test_quotes_in_term_are_literal(self, registry, make_account, make_entries):
        account_id = make_account().id
        EntryRepository.insert_entries(make_entries(account_id, ['she said "hi"']))
        assert registry.get_or_search_entries(term='"hi"') != []
        assert registry.get_or_search_entries(term='AND OR NOT') == []

    def test_underscore_tag_is_not_its_prefix(self, registry, make_account, make_entries):
        """#foo_bar is the tag foo_bar, never foo"""
        account_id = make_account().id
        EntryRepository.insert_entries(make_entries(account_id, ["about #foo_bar only"]))

        assert registry.tags(tag="foo") == []
        assert [entry.body for entry in registry.tags(tag="foo_bar")] == ["about #foo_bar only"]

    def test_tag_inside_word_is_found(self, registry, make_account, make_entries):
        """A tag glued to a preceding word is still extracted, so search must find it"""
        account_id = make_account().id
        EntryRepository.insert_entries(make_entries(account_id, ["see x#test here"]))

        assert [entry.body for entry in registry.tags(tag="test")] == ["see x#test here"]
        assert registry.get_or_search_entries(term="test") == []

    @pytest.mark.parametrize("body", ["tags #a_b and #c", "issue#42 fixed", "#Mixed_Case"])
    def test_tag_search_agrees_with_extraction(self, registry, make_account, make_entries, body):
        account_id = make_account().id
        EntryRepository.insert_entries(make_entries(account_id, [body]))

        for tag in extract_tags(body):
            assert [entry.body for entry in registry.tags(tag=tag)] == [body]


class TestHiddenEntriesInSearch:
    def test_hidden_entries_are_filtered(self, registry, scenario):
        account = scenario.account
        registry.toggle_visibility(account.id, 1_672_531_200_000_000_000, Visibility.HIDDEN)

        assert registry.tags(tag="test") == []
        assert registry.mentions(url=MENTIONED_URL) == []
        assert registry.get_or_search_entries(term="hello") == []
        assert len(registry.tags(tag="test", visibility=Visibility.HIDDEN)) == 1

    def test_search_pages(self, registry, make_account, make_entries):
        account_id = make_account().id
        EntryRepository.insert_entries(make_entries(account_id, [f"needle {n}" for n in range(12)]))

        first = EntryRepository.search(PageWindow(1, 10), "needle")
        second = EntryRepository.search(PageWindow(2, 10), "needle")
        assert len(first) == 10
        assert len(second) == 2
        timestamps = [entry.dt for entry in first + second]
        assert timestamps == sorted(timestamps, reverse=True)
