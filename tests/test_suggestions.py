"""Tests for typeahead suggestion sourcing and limits."""

from hypothesis import given, settings, strategies as st

from pet_search.catalog import InMemoryCatalog
from pet_search.models import EntityType, Pet
from pet_search.services.search.suggestions import SuggestionService
from pet_search.services.search.synonyms import ExpandedQuery
from fakes import FakePool, run_async


def content_handler(posts: int, wiki: int, fail_posts: bool = False):
    """Serve up to posts/wiki rows, never more than the statement's LIMIT."""

    def handler(kind, sql, args):
        requested = args[-1]
        if "FROM blog_posts" in sql:
            if fail_posts:
                raise ConnectionError("posts unavailable")
            return [{"id": i, "title": f"Golden post {i}", "snippet": None} for i in range(min(posts, requested))]
        if "FROM articles" in sql:
            return [{"id": i, "title": f"Golden wiki {i}", "slug": f"g-{i}"} for i in range(min(wiki, requested))]
        return []

    return handler


def limit_of(pool, table):
    for kind, sql, args in pool.calls:
        if f"FROM {table}" in sql:
            return args[-1]
    return None


@given(limit=st.integers(min_value=1, max_value=20), posts=st.integers(min_value=0, max_value=20))
@settings(max_examples=100)
def test_wiki_only_asks_for_what_posts_left_open(limit, posts):
    """
    **Feature: pet-search, Property 9: Suggestion limit sharing**

    Wiki is asked for at most half the limit and never for more than the
    posts source left unfilled, so no fetched row is thrown away.
    """
    pool = FakePool(handler=content_handler(posts, wiki=20))
    service = SuggestionService(pool, InMemoryCatalog())

    suggestions = run_async(service.suggest(ExpandedQuery.unexpanded("golden"), limit))

    taken = min(posts, limit_of(pool, "blog_posts"))
    wiki_limit = limit_of(pool, "articles")
    assert len(suggestions) <= limit
    if wiki_limit is not None:
        assert wiki_limit <= limit - taken
        assert wiki_limit <= -(-limit // 2)


def test_posts_and_wiki_split_the_limit():
    pool = FakePool(handler=content_handler(posts=10, wiki=10))
    service = SuggestionService(pool, InMemoryCatalog())

    suggestions = run_async(service.suggest(ExpandedQuery.unexpanded("golden"), 5))

    assert limit_of(pool, "blog_posts") == 3
    assert limit_of(pool, "articles") == 2
    assert [s.entity_type for s in suggestions] == [EntityType.POSTS] * 3 + [EntityType.WIKI] * 2


def test_failing_source_is_skipped():
    catalog = InMemoryCatalog(pets=[Pet(id="p1", name="Goldie", species="dog", breed="Golden Retriever")])
    pool = FakePool(handler=content_handler(posts=10, wiki=1, fail_posts=True))

    suggestions = run_async(SuggestionService(pool, catalog).suggest(ExpandedQuery.unexpanded("golden"), 4))

    assert [(s.entity_type, s.id) for s in suggestions] == [(EntityType.WIKI, "0"), (EntityType.PETS, "p1")]
    assert suggestions[0].snippet == "Golden wiki 0"


def test_blank_query_suggests_nothing():
    pool = FakePool()

    assert run_async(SuggestionService(pool, InMemoryCatalog()).suggest(ExpandedQuery.unexpanded("  "), 5)) == []
    assert pool.calls == []
