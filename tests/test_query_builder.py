"""Tests for SQL building helpers and relevance policies."""

import pytest

from pet_search.services.search.query_builder import (
    FtsTerms,
    SqlParams,
    clean_term,
    escape_like,
    like_patterns,
    tsquery_sql,
    weighted_document_sql,
)
from pet_search.services.search.relevance import FixedRelevance, SaturatingRelevance
from pet_search.services.search.synonyms import ExpandedQuery


def test_sql_params_number_placeholders_in_order():
    params = SqlParams()

    assert params.add("a") == "$1"
    assert params.add(["b"]) == "$2"
    assert params.values == ["a", ["b"]]
    assert len(params) == 2


def test_fts_terms_share_a_position_per_original_token():
    query = ExpandedQuery(
        original="gsd training",
        terms=("gsd", "german shepherd", "training"),
        groups=(("gsd", "german shepherd"), ("training",)),
    )

    fts = FtsTerms.from_expanded(query)

    assert fts.terms == ("gsd", "german shepherd", "training")
    assert fts.positions == (0, 0, 1)


def test_fts_terms_skip_groups_that_clean_to_nothing():
    query = ExpandedQuery(original="\\ dog", terms=("\\", "dog"), groups=(("\\",), ("dog",)))

    fts = FtsTerms.from_expanded(query)

    assert fts.terms == ("dog",)
    assert fts.positions == (0,)


def test_tsquery_sql_binds_terms_instead_of_inlining_them():
    query = ExpandedQuery.unexpanded("o'brien & dogs")
    params = SqlParams()

    sql = tsquery_sql(params, FtsTerms.from_expanded(query), "english")

    assert "o'brien" not in sql
    assert "quote_literal(t.term) || ':*'" in sql
    assert params.values[0] == ["o'brien", "&", "dogs"]
    assert params.values[1] == [0, 1, 2]
    assert params.values[2] == "english"


def test_weighted_document_orders_title_type_body():
    params = SqlParams()

    sql = weighted_document_sql(params, "english", "p.title", "p.type", "p.content")

    assert sql.index("p.title") < sql.index("'A'") < sql.index("p.type") < sql.index("'B'")
    assert sql.index("p.content") < sql.index("'C'")


@pytest.mark.parametrize("raw,expected", [
    ("dog", "dog"),
    ("back\\slash", "back slash"),
    ("tab\there", "tab here"),
    ("  spaced   out ", "spaced out"),
])
def test_clean_term(raw, expected):
    assert clean_term(raw) == expected


def test_like_patterns_escape_wildcards():
    assert escape_like("50%_off") == "50\\%\\_off"
    assert like_patterns(["park", "", "dog_run"]) == ["%park%", "%dog\\_run%"]


def test_saturating_relevance_maps_rank_into_unit_band():
    policy = SaturatingRelevance(half_point=1.0)

    assert policy.normalize(0) == 0.0
    assert policy.normalize(1.0) == 0.5
    assert 0.99 < policy.normalize(1000.0) < 1.0
    assert policy.normalize(None) == 0.0


def test_saturating_relevance_rejects_non_positive_half_point():
    with pytest.raises(ValueError):
        SaturatingRelevance(half_point=0)


def test_fixed_relevance_ignores_raw_score():
    assert FixedRelevance(1.0).normalize(123.0) == 1.0
    assert FixedRelevance(3.0).value == 1.0
