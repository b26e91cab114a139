"""
Property-based tests for saved search alert checks.

These tests verify that repeated checks never alert on the same entity twice
and that a check always advances last_checked_at.
"""

from datetime import datetime, timezone

import pytest
from hypothesis import given, settings, strategies as st

from pet_search.config import SavedSearchConfig
from pet_search.error_handling import NotFoundError
from pet_search.models import EntityType, SavedSearchCreate
from pet_search.services.search.ranker import ResultRanker
from pet_search.services.search.saved_searches import AlertChecker
from pet_search.services.search.strategies import StrategyRegistry
from pet_search.services.search.synonyms import SynonymGraph
from fakes import InMemorySavedSearchStore, InMemorySynonymStore, StaticStrategy, make_hit, run_async


def build_checker(hits_by_type, config=None):
    store = InMemorySavedSearchStore()
    registry = StrategyRegistry([StaticStrategy(t, hits) for t, hits in hits_by_type.items()])
    checker = AlertChecker(store, ResultRanker(registry), SynonymGraph(InMemorySynonymStore()), config)
    return store, registry, checker


def create(store, **overrides):
    data = {"query": "husky", "entity_types": [EntityType.PETS]}
    data.update(overrides)
    return run_async(store.create(SavedSearchCreate(**data)))


@given(
    batches=st.lists(
        st.lists(st.integers(min_value=0, max_value=20), max_size=10),
        min_size=1,
        max_size=5,
    )
)
@settings(max_examples=100)
def test_entity_is_alerted_at_most_once(batches):
    """
    **Feature: pet-search, Property 6: Alert idempotence**

    Across any sequence of checks, no (saved search, entity) pair is recorded
    as an alert more than once.
    """
    strategy = StaticStrategy(EntityType.PETS)
    store = InMemorySavedSearchStore()
    checker = AlertChecker(
        store, ResultRanker(StrategyRegistry([strategy])), SynonymGraph(InMemorySynonymStore())
    )
    saved = create(store)

    seen = set()
    for batch in batches:
        strategy.hits = [make_hit(EntityType.PETS, str(i)) for i in dict.fromkeys(batch)]
        result = run_async(checker.check(saved.id))

        reported = {hit.key for hit in result.new_results}
        assert not (reported & seen)
        seen |= reported

    keys = [alert.key for alert in run_async(store.list_alerts(saved.id))]
    assert len(keys) == len(set(keys))
    assert set(keys) == seen


def test_second_check_without_new_content_reports_nothing():
    hits = [make_hit(EntityType.PETS, "rex"), make_hit(EntityType.PETS, "luna")]
    store, _, checker = build_checker({EntityType.PETS: hits})
    saved = create(store)

    first = run_async(checker.check(saved.id))
    second = run_async(checker.check(saved.id))

    assert first.new_results_count == 2
    assert [a.entity_id for a in first.alerts] == ["rex", "luna"]
    assert second.success is True
    assert second.new_results_count == 0
    assert second.new_results == []
    assert second.alerts == []


def test_check_records_last_checked_at():
    store, _, checker = build_checker({EntityType.PETS: []})
    saved = create(store)
    now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    result = run_async(checker.check(saved.id, now=now))

    assert result.checked_at == now
    assert run_async(store.get(saved.id)).last_checked_at == now


def test_disabled_alerting_still_checks_but_records_nothing():
    store, _, checker = build_checker({EntityType.PETS: [make_hit(EntityType.PETS, "rex")]})
    saved = create(store, alert_enabled=False)

    result = run_async(checker.check(saved.id))

    assert result.new_results_count == 1
    assert result.alerts is None
    assert run_async(store.list_alerts(saved.id)) == []
    assert run_async(store.get(saved.id)).last_checked_at is not None


def test_unknown_saved_search_raises_not_found():
    _, _, checker = build_checker({})

    with pytest.raises(NotFoundError):
        run_async(checker.check(999))


def test_payload_is_capped_but_count_is_not():
    hits = [make_hit(EntityType.PETS, str(i)) for i in range(25)]
    store, _, checker = build_checker({EntityType.PETS: hits}, SavedSearchConfig(alert_payload_cap=10))
    saved = create(store)

    result = run_async(checker.check(saved.id))

    assert result.new_results_count == 25
    assert len(result.new_results) == 10
    assert len(result.alerts) == 10
    assert len(run_async(store.list_alerts(saved.id))) == 25


def test_check_uses_saved_filters_and_types():
    store, registry, checker = build_checker({
        EntityType.PETS: [make_hit(EntityType.PETS, "rex")],
        EntityType.GROUPS: [make_hit(EntityType.GROUPS, "g1")],
    })
    saved = create(store, entity_types=[EntityType.GROUPS], filters={"tags": ["Hiking"]})

    result = run_async(checker.check(saved.id))

    assert [h.key for h in result.new_results] == ["groups:g1"]
    groups = registry.get(EntityType.GROUPS)
    assert groups.calls[0]["filters"].tags == ["hiking"]
    assert registry.get(EntityType.PETS).calls == []
