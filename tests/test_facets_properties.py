"""
Property-based tests for facet aggregation.
"""

from hypothesis import given, settings, strategies as st

from pet_search.catalog import InMemoryCatalog
from pet_search.models import EntityType, Pet, SearchFilters
from pet_search.services.search.facets import FacetAggregator, merge_counts
from pet_search.services.search.strategies import PetsStrategy
from pet_search.services.search.synonyms import ExpandedQuery
from fakes import FakePool, run_async


tag_counts = st.dictionaries(
    st.text(alphabet="abcdefgh", min_size=1, max_size=4),
    st.integers(min_value=0, max_value=1000),
    max_size=10,
)


@given(first=tag_counts, second=tag_counts)
@settings(max_examples=100)
def test_merge_counts_sums_shared_keys(first, second):
    merged = merge_counts(first, second)

    assert set(merged) == set(first) | set(second)
    for key, count in merged.items():
        assert count == first.get(key, 0) + second.get(key, 0)
    counts = list(merged.values())
    assert counts == sorted(counts, reverse=True)


pets = st.lists(
    st.builds(
        Pet,
        id=st.uuids().map(str),
        name=st.sampled_from(["Rex", "Luna", "Max", "Bella"]),
        species=st.sampled_from(["dog", "cat", "rabbit"]),
        breed=st.sampled_from([None, "Husky", "Tabby", "Lop"]),
        privacy=st.sampled_from([None, "public", "private"]),
    ),
    max_size=20,
    unique_by=lambda p: p.id,
)


@given(catalog_pets=pets, term=st.sampled_from(["rex", "husky", "a", "dog", "lop"]),
       species=st.sampled_from([None, "dog", "cat"]))
@settings(max_examples=100)
def test_species_facet_never_undercounts_visible_pet_hits(catalog_pets, term, species):
    """
    **Feature: pet-search, Property 5: Facet coverage**

    For every species, the facet count is at least the number of pet hits of
    that species in the search results.
    """
    catalog = InMemoryCatalog(pets=catalog_pets)
    query = ExpandedQuery.unexpanded(term)
    filters = SearchFilters(species=species)

    hits = run_async(PetsStrategy(catalog).search(query, 100, 0, filters))
    facets = run_async(FacetAggregator(FakePool(), catalog).aggregate(query, [EntityType.PETS], filters))

    for hit in hits:
        visible = sum(1 for h in hits if h.extra["species"].lower() == hit.extra["species"].lower())
        assert facets.species.get(hit.extra["species"].lower(), 0) >= visible


def _tag_rows(kind, sql, args):
    if "article_tags" in sql:
        return [{"key": "training", "count": 2}, {"key": "nutrition", "count": 1}]
    if "blog_post_tags" in sql:
        return [{"key": "training", "count": 3}, {"key": "puppies", "count": 1}]
    return [{"key": "blog_post", "count": 4}]


def test_tags_from_posts_and_wiki_are_summed_under_one_key():
    aggregator = FacetAggregator(FakePool(handler=_tag_rows), InMemoryCatalog())

    facets = run_async(aggregator.aggregate(
        ExpandedQuery.unexpanded("training"), [EntityType.POSTS, EntityType.WIKI], SearchFilters()
    ))

    assert facets.tags == {"training": 5, "nutrition": 1, "puppies": 1}
    assert facets.post_types == {"blog_post": 4}


def test_facets_only_cover_requested_types():
    pool = FakePool(handler=_tag_rows)
    aggregator = FacetAggregator(pool, InMemoryCatalog())

    facets = run_async(aggregator.aggregate(ExpandedQuery.unexpanded("dog"), [EntityType.PLACES]))

    assert facets.species == {}
    assert facets.tags == {}
    assert facets.post_types == {}
    assert pool.calls == []


def test_tag_facet_ignores_tag_filter_but_keeps_type_filter():
    pool = FakePool(handler=_tag_rows)
    aggregator = FacetAggregator(pool, InMemoryCatalog())
    filters = SearchFilters(tags=["training"], post_type="guide")

    run_async(aggregator.post_tag_counts(ExpandedQuery.unexpanded("dog"), filters))

    kind, sql, args = pool.calls[0]
    assert "guide" in args
    assert ["training"] not in args


def test_failing_facet_is_zeroed_without_failing_others():
    pool = FakePool(error=ConnectionError("db down"))
    catalog = InMemoryCatalog(pets=[Pet(id="1", name="Rex", species="dog")])
    aggregator = FacetAggregator(pool, catalog)

    facets = run_async(aggregator.aggregate(
        ExpandedQuery.unexpanded("rex"), [EntityType.POSTS, EntityType.PETS]
    ))

    assert facets.species == {"dog": 1}
    assert facets.tags == {}
    assert facets.post_types == {}


def test_wiki_tag_failure_keeps_post_tags():
    def handler(kind, sql, args):
        if "article_tags" in sql:
            raise ConnectionError("wiki replica down")
        return _tag_rows(kind, sql, args)

    aggregator = FacetAggregator(FakePool(handler=handler), InMemoryCatalog())

    facets = run_async(aggregator.aggregate(
        ExpandedQuery.unexpanded("training"), [EntityType.POSTS, EntityType.WIKI]
    ))

    assert facets.tags == {"training": 3, "puppies": 1}
    assert facets.post_types == {"blog_post": 4}


def test_tag_counts_are_not_truncated():
    rows = [{"key": f"tag-{i:03d}", "count": 1} for i in range(120)]
    pool = FakePool(rows=rows)
    aggregator = FacetAggregator(pool, InMemoryCatalog())

    counts = run_async(aggregator.post_tag_counts(ExpandedQuery.unexpanded("dog"), SearchFilters()))

    assert len(counts) == 120
    kind, sql, args = pool.calls[0]
    assert "LIMIT" not in sql


def test_popular_tags_failure_returns_nothing():
    aggregator = FacetAggregator(FakePool(error=ConnectionError("db down")), InMemoryCatalog())

    assert run_async(aggregator.popular_tags(ExpandedQuery.unexpanded("dog"))) == []


def test_popular_tags_match_each_query_unit():
    pool = FakePool(rows=[{"key": "dog-training", "count": 3}, {"key": "puppy-care", "count": 1}])
    aggregator = FacetAggregator(pool, InMemoryCatalog())

    tags = run_async(aggregator.popular_tags(ExpandedQuery.unexpanded("Dog 50%"), limit=3))

    assert tags == ["dog-training", "puppy-care"]
    kind, sql, args = pool.calls[0]
    assert args == [["%dog%", "%50\\%%"], 3]
