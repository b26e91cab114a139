"""
Pet and group strategies over the externally-owned catalog.

Matching is a substring test of each expanded term against the entity's
searchable text. Every match scores the same, so ordering comes from where
the match landed: the name first, then the secondary field.
"""

from typing import List, Optional, Sequence

from pet_search.catalog import CatalogReader
from pet_search.error_handling import StrategyGuard
from pet_search.models import EntityType, GeoPoint, Group, Pet, SearchFilters, SearchHit
from ..relevance import FixedRelevance, RelevancePolicy
from ..synonyms import ExpandedQuery
from .base import SearchStrategy


SNIPPET_LENGTH = 160


def contains_any(text: Optional[str], terms: Sequence[str]) -> bool:
    if not text:
        return False
    text = text.lower()
    return any(term in text for term in terms)


def pet_matches(pet: Pet, terms: Sequence[str]) -> bool:
    return contains_any(pet.searchable_text(), terms)


def pet_match_priority(pet: Pet, terms: Sequence[str]) -> int:
    if contains_any(pet.name, terms):
        return 0
    if contains_any(pet.breed, terms):
        return 1
    return 2


def group_matches(group: Group, terms: Sequence[str]) -> bool:
    return contains_any(group.searchable_text(), terms)


def group_match_priority(group: Group, terms: Sequence[str]) -> int:
    if contains_any(group.name, terms):
        return 0
    if contains_any(group.description, terms):
        return 1
    return 2


def filter_pets_by_species(pets: Sequence[Pet], species: Optional[str]) -> List[Pet]:
    if not species:
        return list(pets)
    return [pet for pet in pets if pet.species and pet.species.lower() == species]


async def pet_ids_for_species(catalog: CatalogReader, species: str) -> List[str]:
    """Resolve a species filter into the ids of catalog pets of that species."""
    pets = await catalog.list_pets()
    return [pet.id for pet in filter_pets_by_species(pets, species)]


def _truncate(text: Optional[str], length: int = SNIPPET_LENGTH) -> str:
    if not text:
        return ""
    return text if len(text) <= length else text[:length].rstrip() + "..."


class PetsStrategy(SearchStrategy):
    """Public pets whose name, breed, bio or species contains a term."""

    entity_type = EntityType.PETS

    def __init__(
        self,
        catalog: CatalogReader,
        relevance: Optional[RelevancePolicy] = None,
        guard: Optional[StrategyGuard] = None
    ):
        super().__init__(relevance or FixedRelevance(1.0), guard)
        self.catalog = catalog

    async def _search(
        self,
        query: ExpandedQuery,
        limit: int,
        offset: int,
        filters: SearchFilters,
        geo: Optional[GeoPoint]
    ) -> List[SearchHit]:
        terms = list(query.terms)
        pets = [pet for pet in await self.catalog.list_pets() if pet.is_public]
        pets = filter_pets_by_species(pets, filters.species)

        matched = [pet for pet in pets if pet_matches(pet, terms)]
        matched.sort(key=lambda pet: pet_match_priority(pet, terms))

        return [self._to_hit(pet) for pet in matched[offset:offset + limit]]

    def _to_hit(self, pet: Pet) -> SearchHit:
        snippet = f"{pet.species} - {pet.breed}" if pet.breed else pet.species
        return SearchHit(
            entity_type=self.entity_type,
            id=pet.id,
            title=pet.name,
            snippet=snippet,
            relevance=self.relevance.normalize(1.0),
            type=pet.species,
            extra={
                "species": pet.species,
                "breed": pet.breed,
                "ownerId": pet.owner_id,
                "slug": pet.slug,
                "avatar": pet.avatar,
            },
        )


class GroupsStrategy(SearchStrategy):
    """Groups whose name, description or tags contain a term."""

    entity_type = EntityType.GROUPS

    def __init__(
        self,
        catalog: CatalogReader,
        relevance: Optional[RelevancePolicy] = None,
        guard: Optional[StrategyGuard] = None
    ):
        super().__init__(relevance or FixedRelevance(1.0), guard)
        self.catalog = catalog

    async def _search(
        self,
        query: ExpandedQuery,
        limit: int,
        offset: int,
        filters: SearchFilters,
        geo: Optional[GeoPoint]
    ) -> List[SearchHit]:
        terms = list(query.terms)
        groups = await self.catalog.list_groups()

        if filters.tags:
            wanted = set(filters.tags)
            groups = [g for g in groups if wanted & {tag.lower() for tag in g.tags}]

        matched = [group for group in groups if group_matches(group, terms)]
        matched.sort(key=lambda group: group_match_priority(group, terms))

        return [self._to_hit(group) for group in matched[offset:offset + limit]]

    def _to_hit(self, group: Group) -> SearchHit:
        return SearchHit(
            entity_type=self.entity_type,
            id=group.id,
            title=group.name,
            snippet=_truncate(group.description),
            relevance=self.relevance.normalize(1.0),
            type=group.category,
            extra={"slug": group.slug, "tags": list(group.tags)},
        )
