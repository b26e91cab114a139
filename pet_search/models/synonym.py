"""Synonym data models"""

from datetime import datetime
from typing import List, Optional

from pydantic import field_validator, model_validator

from .base import ApiModel


# Longest phrase, in words, that query expansion can match as one unit
MAX_PHRASE_WORDS = 5


def _phrase_too_long(phrase: str) -> bool:
    return len(phrase.split()) > MAX_PHRASE_WORDS


class SynonymUpsert(ApiModel):
    """Admin upsert of a synonym entry keyed by term"""
    term: str
    synonyms: List[str]

    @field_validator("term")
    @classmethod
    def _normalize_term(cls, value: str) -> str:
        value = " ".join(value.lower().split())
        if not value:
            raise ValueError("term must not be empty")
        if _phrase_too_long(value):
            raise ValueError(f"term must be at most {MAX_PHRASE_WORDS} words")
        return value

    @model_validator(mode="after")
    def _normalize_synonyms(self) -> "SynonymUpsert":
        cleaned: List[str] = []
        for synonym in self.synonyms:
            synonym = " ".join(synonym.lower().split())
            if _phrase_too_long(synonym):
                raise ValueError(f"synonyms must be at most {MAX_PHRASE_WORDS} words each")
            if synonym and synonym != self.term and synonym not in cleaned:
                cleaned.append(synonym)
        if not cleaned:
            raise ValueError("synonyms must contain at least one term other than the key")
        self.synonyms = cleaned
        return self


class SynonymEntry(ApiModel):
    """Stored synonym entry"""
    term: str
    synonyms: List[str]
    updated_at: Optional[datetime] = None
