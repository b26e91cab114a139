"""
Read-only access to the externally-owned pet and group catalog.

The catalog is owned by another subsystem, which stores each collection as a
JSON array under a key/value key. Search only ever reads it.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Type, TypeVar

import redis.asyncio as redis
from pydantic import ValidationError

from pet_search.models import Group, Pet


logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", Pet, Group)


class CatalogReader(ABC):
    """Narrow read interface injected into the catalog-backed strategies."""

    @abstractmethod
    async def list_pets(self) -> List[Pet]:
        """Return every pet in the catalog."""

    @abstractmethod
    async def list_groups(self) -> List[Group]:
        """Return every group in the catalog."""


class InMemoryCatalog(CatalogReader):
    """Catalog backed by lists held in process memory."""

    def __init__(self, pets: Optional[Iterable[Pet]] = None, groups: Optional[Iterable[Group]] = None):
        self._pets = list(pets or [])
        self._groups = list(groups or [])

    async def list_pets(self) -> List[Pet]:
        return list(self._pets)

    async def list_groups(self) -> List[Group]:
        return list(self._groups)


class RedisCatalog(CatalogReader):
    """Catalog stored as JSON arrays under Redis keys."""

    def __init__(
        self,
        client: redis.Redis,
        pets_key: str = "catalog:pets",
        groups_key: str = "catalog:groups"
    ):
        self.client = client
        self.pets_key = pets_key
        self.groups_key = groups_key

    async def list_pets(self) -> List[Pet]:
        return await self._load(self.pets_key, Pet)

    async def list_groups(self) -> List[Group]:
        return await self._load(self.groups_key, Group)

    async def _load(self, key: str, model: Type[RecordT]) -> List[RecordT]:
        """
        Load and validate one catalog collection.

        Malformed entries are skipped; a malformed collection is an error the
        calling strategy reports as an unavailable backend.
        """
        raw = await self.client.get(key)
        if not raw:
            return []

        items = json.loads(raw)
        if not isinstance(items, list):
            raise ValueError(f"Catalog key {key} does not hold a JSON array")

        records: List[RecordT] = []
        for item in items:
            try:
                records.append(model.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed {model.__name__} entry in {key}: {e.error_count()} errors")
        return records
