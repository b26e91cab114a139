"""Externally-owned catalog records (pets and groups)"""

from typing import List, Optional

from pydantic import ConfigDict
from pydantic.alias_generators import to_camel

from .base import ApiModel


class CatalogRecord(ApiModel):
    """Catalog entries carry many more fields than search needs; ignore them."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Pet(CatalogRecord):
    id: str
    name: str
    species: str
    breed: Optional[str] = None
    bio: Optional[str] = None
    owner_id: Optional[str] = None
    slug: Optional[str] = None
    avatar: Optional[str] = None
    privacy: Optional[str] = None

    def searchable_text(self) -> str:
        parts = [self.name, self.breed, self.bio, self.species]
        return " ".join(p for p in parts if p).lower()

    @property
    def is_public(self) -> bool:
        return self.privacy in (None, "public")


class Group(CatalogRecord):
    id: str
    name: str
    description: Optional[str] = None
    tags: List[str] = []
    slug: Optional[str] = None
    category: Optional[str] = None

    def searchable_text(self) -> str:
        parts = [self.name, self.description, " ".join(self.tags)]
        return " ".join(p for p in parts if p).lower()
