"""
Synonym graph - bidirectional query term expansion.

The query is first split into units: a known multi-word term or synonym
(such as "german shepherd") is one unit, every other word is its own. Expanding
a unit pulls in its own synonyms (forward lookup) and the term and sibling
synonyms of every entry listing the unit as a synonym (reverse lookup).
"""

import hashlib
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Set, Tuple

import asyncpg
import redis.asyncio as redis

from pet_search.models import MAX_PHRASE_WORDS, SynonymEntry


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExpandedQuery:
    """
    Result of synonym expansion.

    Attributes:
        original: Raw query text as submitted
        terms: Deduplicated expansion terms in first-seen order
        groups: Per query unit, the unit followed by its own expansions
    """
    original: str
    terms: Tuple[str, ...]
    groups: Tuple[Tuple[str, ...], ...]

    @property
    def text(self) -> str:
        """Space-joined expanded query string."""
        return " ".join(self.terms)

    @property
    def tokens(self) -> Tuple[str, ...]:
        return tuple(group[0] for group in self.groups)

    @property
    def is_empty(self) -> bool:
        return not self.terms

    @classmethod
    def unexpanded(cls, text: str) -> "ExpandedQuery":
        """Expansion that carries every token through unchanged."""
        return expand_tokens(text, tokenize(text), [])


def tokenize(text: str) -> List[str]:
    """Split on whitespace into lowercase tokens."""
    return text.lower().split()


def _dedupe(items: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for item in items:
        if item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered


def candidate_phrases(tokens: Sequence[str]) -> List[str]:
    """Every run of up to MAX_PHRASE_WORDS consecutive tokens, for store lookup."""
    phrases = []
    for start in range(len(tokens)):
        for size in range(1, min(MAX_PHRASE_WORDS, len(tokens) - start) + 1):
            phrases.append(" ".join(tokens[start:start + size]))
    return _dedupe(phrases)


def segment(tokens: Sequence[str], vocabulary: Set[str]) -> List[str]:
    """
    Group tokens into query units.

    At each position the longest multi-word phrase found in vocabulary wins;
    otherwise the single token is the unit.
    """
    units = []
    start = 0
    while start < len(tokens):
        size = 1
        for candidate in range(min(MAX_PHRASE_WORDS, len(tokens) - start), 1, -1):
            if " ".join(tokens[start:start + candidate]) in vocabulary:
                size = candidate
                break
        units.append(" ".join(tokens[start:start + size]))
        start += size
    return units


def expand_tokens(text: str, tokens: Sequence[str], entries: Sequence[SynonymEntry]) -> ExpandedQuery:
    """
    Expand tokens against a set of synonym entries.

    Entries that do not mention any unit are ignored, so callers may pass a
    superset of the relevant entries.
    """
    forward = {entry.term: entry.synonyms for entry in entries}
    vocabulary = set(forward) | {s for entry in entries for s in entry.synonyms}

    groups: List[Tuple[str, ...]] = []
    for unit in _dedupe(segment(list(tokens), vocabulary)):
        group = [unit]
        group.extend(forward.get(unit, []))
        for entry in entries:
            if unit in entry.synonyms:
                group.append(entry.term)
                group.extend(s for s in entry.synonyms if s != unit)
        groups.append(tuple(_dedupe(group)))

    terms = _dedupe(term for group in groups for term in group)
    return ExpandedQuery(original=text, terms=tuple(terms), groups=tuple(groups))


class SynonymStore(ABC):
    """Storage port for synonym entries."""

    @abstractmethod
    async def lookup(self, phrases: Sequence[str]) -> List[SynonymEntry]:
        """Entries whose term is one of phrases or whose synonyms contain one."""

    @abstractmethod
    async def upsert(self, term: str, synonyms: Sequence[str]) -> SynonymEntry:
        """Create or replace the entry keyed by term."""

    @abstractmethod
    async def list_entries(self, limit: int = 100, offset: int = 0) -> List[SynonymEntry]:
        """List stored entries ordered by term."""


class PgSynonymStore(SynonymStore):
    """Synonym entries in the PostgreSQL synonyms table."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def lookup(self, phrases: Sequence[str]) -> List[SynonymEntry]:
        if not phrases:
            return []
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT term, synonyms, updated_at
                FROM synonyms
                WHERE term = ANY($1::text[]) OR synonyms && $1::text[]
                ORDER BY term
            """, list(phrases))
        return [self._to_entry(row) for row in rows]

    async def upsert(self, term: str, synonyms: Sequence[str]) -> SynonymEntry:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("""
                INSERT INTO synonyms (term, synonyms)
                VALUES ($1, $2::text[])
                ON CONFLICT (term) DO UPDATE
                SET synonyms = EXCLUDED.synonyms,
                    updated_at = NOW()
                RETURNING term, synonyms, updated_at
            """, term, list(synonyms))
        return self._to_entry(row)

    async def list_entries(self, limit: int = 100, offset: int = 0) -> List[SynonymEntry]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT term, synonyms, updated_at
                FROM synonyms
                ORDER BY term
                LIMIT $1 OFFSET $2
            """, limit, offset)
        return [self._to_entry(row) for row in rows]

    @staticmethod
    def _to_entry(row) -> SynonymEntry:
        return SynonymEntry(
            term=row['term'],
            synonyms=list(row['synonyms'] or []),
            updated_at=row['updated_at'],
        )


class ExpansionCache:
    """
    Redis cache of synonym lookups.

    Keys embed a version counter; bumping it on upsert invalidates every
    cached lookup at once.
    """

    VERSION_KEY = "synonyms:version"

    def __init__(self, client: redis.Redis, ttl_seconds: int = 300):
        self.client = client
        self.ttl_seconds = ttl_seconds

    async def key(self, tokens: Sequence[str]) -> Optional[str]:
        """
        Cache key for tokens under the current version.

        Read it once per lookup and use it for both get and put, so entries
        read before an upsert are never stored under the post-upsert version.
        """
        try:
            version = await self.client.get(self.VERSION_KEY) or "0"
        except Exception as e:
            logger.warning(f"Synonym cache version read failed: {e}")
            return None
        if isinstance(version, bytes):
            version = version.decode()
        digest = hashlib.md5(" ".join(sorted(set(tokens))).encode()).hexdigest()
        return f"synonyms:v{version}:{digest}"

    async def get(self, key: str) -> Optional[List[SynonymEntry]]:
        try:
            cached = await self.client.get(key)
            if cached:
                return [SynonymEntry(**item) for item in json.loads(cached)]
            return None
        except Exception as e:
            logger.warning(f"Synonym cache read failed: {e}")
            return None

    async def put(self, key: str, entries: Sequence[SynonymEntry]) -> None:
        try:
            payload = json.dumps([entry.model_dump(mode="json") for entry in entries])
            await self.client.setex(key, self.ttl_seconds, payload)
        except Exception as e:
            logger.warning(f"Synonym cache write failed: {e}")

    async def invalidate(self) -> None:
        try:
            await self.client.incr(self.VERSION_KEY)
        except Exception as e:
            logger.warning(f"Synonym cache invalidation failed: {e}")


class SynonymGraph:
    """Expands queries through the synonym store, optionally cached."""

    def __init__(self, store: SynonymStore, cache: Optional[ExpansionCache] = None):
        self.store = store
        self.cache = cache

    async def expand(self, text: str) -> ExpandedQuery:
        """
        Expand query text with synonyms.

        If the store cannot be reached the query is carried through
        unexpanded rather than failing the search.
        """
        tokens = tokenize(text)
        if not tokens:
            return ExpandedQuery(original=text, terms=(), groups=())

        try:
            entries = await self._lookup(tokens)
        except Exception as e:
            logger.warning(f"Synonym lookup failed, searching without expansion: {e}")
            entries = []

        return expand_tokens(text, tokens, entries)

    async def upsert(self, term: str, synonyms: Sequence[str]) -> SynonymEntry:
        entry = await self.store.upsert(term, synonyms)
        if self.cache:
            await self.cache.invalidate()
        logger.info(f"Upserted synonym entry '{entry.term}' with {len(entry.synonyms)} synonyms")
        return entry

    async def list_entries(self, limit: int = 100, offset: int = 0) -> List[SynonymEntry]:
        return await self.store.list_entries(limit, offset)

    async def _lookup(self, tokens: List[str]) -> List[SynonymEntry]:
        key = await self.cache.key(tokens) if self.cache else None
        if key:
            cached = await self.cache.get(key)
            if cached is not None:
                return cached

        entries = await self.store.lookup(candidate_phrases(tokens))

        if key:
            await self.cache.put(key, entries)
        return entries
