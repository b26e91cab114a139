"""
Property-based tests for synonym expansion.

Verifies reverse lookup, idempotent expansion and graceful degradation when
the synonym store is unavailable.
"""

import pytest
from hypothesis import given, settings, strategies as st
from pydantic import ValidationError

from pet_search.models import SynonymEntry, SynonymUpsert
from pet_search.services.search.synonyms import (
    ExpandedQuery,
    ExpansionCache,
    SynonymGraph,
    candidate_phrases,
    expand_tokens,
    tokenize,
)
from fakes import FakeRedis, InMemorySynonymStore, run_async


words = st.text(alphabet="abcdefghijklmnopqrstuvwxyz", min_size=2, max_size=8)


@st.composite
def disjoint_entries(draw):
    """
    Synonym entries of one- and two-word phrases.

    No word appears in more than one phrase, so terms and synonyms never
    overlap across entries.
    """
    pool = draw(st.lists(words, min_size=4, max_size=30, unique=True))
    phrases = []
    index = 0
    while index < len(pool):
        size = draw(st.integers(min_value=1, max_value=2))
        phrases.append(" ".join(pool[index:index + size]))
        index += size

    entries = []
    index = 0
    while index + 1 < len(phrases):
        size = draw(st.integers(min_value=1, max_value=3))
        term = phrases[index]
        synonyms = phrases[index + 1:index + 1 + size]
        entries.append(SynonymEntry(term=term, synonyms=synonyms))
        index += 1 + size
    return entries


@given(entries=disjoint_entries(), data=st.data())
@settings(max_examples=100)
def test_reverse_lookup_pulls_in_term_and_siblings(entries, data):
    """
    **Feature: pet-search, Property 1: Reverse lookup correctness**

    For any entry A -> {B, C}, expanding a query containing B includes A and C.
    """
    entry = data.draw(st.sampled_from(entries))
    synonym = data.draw(st.sampled_from(entry.synonyms))

    expanded = expand_tokens(synonym, tokenize(synonym), entries)

    assert entry.term in expanded.terms
    for sibling in entry.synonyms:
        assert sibling in expanded.terms


@given(entries=disjoint_entries(), data=st.data())
@settings(max_examples=100)
def test_expansion_is_idempotent(entries, data):
    """
    **Feature: pet-search, Property 2: Expansion idempotence**

    Expanding an already-expanded query yields the same term set.
    """
    vocabulary = [e.term for e in entries] + [s for e in entries for s in e.synonyms] + ["unrelated"]
    tokens = data.draw(st.lists(st.sampled_from(vocabulary), min_size=1, max_size=5))
    text = " ".join(tokens)

    once = expand_tokens(text, tokenize(text), entries)
    twice = expand_tokens(once.text, tokenize(once.text), entries)

    assert set(twice.terms) == set(once.terms)


@given(tokens=st.lists(words, min_size=1, max_size=6))
@settings(max_examples=100)
def test_terms_are_deduplicated_in_first_seen_order(tokens):
    expanded = ExpandedQuery.unexpanded(" ".join(tokens))

    assert len(expanded.terms) == len(set(expanded.terms))
    assert list(expanded.terms) == list(dict.fromkeys(tokens))


def test_gsd_expands_to_german_shepherd():
    store = InMemorySynonymStore({"gsd": ["german shepherd"]})
    graph = SynonymGraph(store)

    expanded = run_async(graph.expand("gsd"))

    assert "german shepherd" in expanded.terms
    assert expanded.groups == (("gsd", "german shepherd"),)


def test_each_token_keeps_its_own_group():
    entries = [SynonymEntry(term="gsd", synonyms=["german shepherd", "alsatian"])]

    expanded = expand_tokens("alsatian training", ["alsatian", "training"], entries)

    assert expanded.groups[0] == ("alsatian", "gsd", "german shepherd")
    assert expanded.groups[1] == ("training",)
    assert expanded.text == "alsatian gsd german shepherd training"


def test_multi_word_synonym_matches_as_a_phrase():
    store = InMemorySynonymStore({"gsd": ["german shepherd"]})
    graph = SynonymGraph(store)

    expanded = run_async(graph.expand("German Shepherd training"))

    assert expanded.groups == (("german shepherd", "gsd"), ("training",))
    assert "german shepherd" in store.lookups[0]


def test_expanded_phrase_is_not_split_on_reexpansion():
    graph = SynonymGraph(InMemorySynonymStore({"gsd": ["german shepherd"]}))

    once = run_async(graph.expand("gsd"))
    twice = run_async(graph.expand(once.text))

    assert set(twice.terms) == set(once.terms) == {"gsd", "german shepherd"}
    assert ("german shepherd", "gsd") in twice.groups


def test_longest_phrase_wins():
    entries = [
        SynonymEntry(term="dog", synonyms=["hound"]),
        SynonymEntry(term="hot dog", synonyms=["frankfurter"]),
    ]

    expanded = expand_tokens("hot dog stand", ["hot", "dog", "stand"], entries)

    assert expanded.tokens == ("hot dog", "stand")
    assert "hound" not in expanded.terms


def test_candidate_phrases_cover_every_short_run():
    phrases = candidate_phrases(["a", "b", "c"])

    assert phrases == ["a", "a b", "a b c", "b", "b c", "c"]
    assert "1 2 3 4 5" in candidate_phrases([str(i) for i in range(8)])
    assert "1 2 3 4 5 6" not in candidate_phrases([str(i) for i in range(8)])


def test_lookup_miss_carries_token_through():
    graph = SynonymGraph(InMemorySynonymStore({"cat": ["kitten"]}))

    expanded = run_async(graph.expand("Parrot"))

    assert expanded.terms == ("parrot",)


def test_store_failure_means_no_expansion():
    graph = SynonymGraph(InMemorySynonymStore({"gsd": ["german shepherd"]}, fail=True))

    expanded = run_async(graph.expand("gsd puppies"))

    assert expanded.terms == ("gsd", "puppies")


def test_blank_query_expands_to_nothing():
    expanded = run_async(SynonymGraph(InMemorySynonymStore()).expand("   "))

    assert expanded.is_empty


def test_upsert_normalizes_and_stores_entry():
    store = InMemorySynonymStore()
    graph = SynonymGraph(store)
    payload = SynonymUpsert(term="  GSD ", synonyms=["German  Shepherd", "gsd", "german shepherd"])

    entry = run_async(graph.upsert(payload.term, payload.synonyms))

    assert entry.term == "gsd"
    assert entry.synonyms == ["german shepherd"]
    assert store.entries == {"gsd": ["german shepherd"]}


@pytest.mark.parametrize("term,synonyms", [
    ("", ["dog"]),
    ("   ", ["dog"]),
    ("dog", []),
    ("dog", ["  ", "dog"]),
    ("one two three four five six", ["dog"]),
    ("dog", ["a very long hound name here"]),
])
def test_upsert_rejects_empty_or_overlong_phrases(term, synonyms):
    with pytest.raises(ValidationError):
        SynonymUpsert(term=term, synonyms=synonyms)


class UpsertDuringLookupStore(InMemorySynonymStore):
    """Simulates an upsert landing while a lookup is in flight."""

    def __init__(self, cache: ExpansionCache, entries):
        super().__init__(entries)
        self.cache = cache
        self.raced = False

    async def lookup(self, phrases):
        found = await super().lookup(phrases)
        if not self.raced:
            self.raced = True
            self.entries["gsd"] = ["german shepherd", "alsatian"]
            await self.cache.invalidate()
        return found


def test_lookup_racing_an_upsert_is_not_cached_under_the_new_version():
    cache = ExpansionCache(FakeRedis())
    store = UpsertDuringLookupStore(cache, {"gsd": ["german shepherd"]})
    graph = SynonymGraph(store, cache)

    first = run_async(graph.expand("gsd"))
    second = run_async(graph.expand("gsd"))

    assert "alsatian" not in first.terms
    assert "alsatian" in second.terms


def test_cached_lookup_skips_the_store():
    cache = ExpansionCache(FakeRedis())
    store = InMemorySynonymStore({"gsd": ["german shepherd"]})
    graph = SynonymGraph(store, cache)

    run_async(graph.expand("gsd"))
    expanded = run_async(graph.expand("gsd"))

    assert len(store.lookups) == 1
    assert expanded.terms == ("gsd", "german shepherd")


def test_upsert_invalidates_cached_lookups():
    cache = ExpansionCache(FakeRedis())
    graph = SynonymGraph(InMemorySynonymStore({"gsd": ["german shepherd"]}), cache)

    run_async(graph.expand("gsd"))
    run_async(graph.upsert("gsd", ["german shepherd", "alsatian"]))
    expanded = run_async(graph.expand("gsd"))

    assert "alsatian" in expanded.terms
