"""
SQL building helpers for the relational search backends.

Full-text queries are never assembled from user text in Python: terms travel
as bind parameters and PostgreSQL quotes them into a prefix tsquery.
"""

import re
from dataclasses import dataclass, field
from typing import Any, List, Tuple

from .synonyms import ExpandedQuery


# Characters that cannot appear inside a quoted tsquery lexeme
_UNSAFE_TERM_CHARS = re.compile(r"[\\\x00-\x1f]")


class SqlParams:
    """Collects positional bind parameters for asyncpg ($1, $2, ...)."""

    def __init__(self):
        self.values: List[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"

    def __len__(self) -> int:
        return len(self.values)


def clean_term(term: str) -> str:
    """Remove characters that would break a quoted lexeme and collapse spaces."""
    return " ".join(_UNSAFE_TERM_CHARS.sub(" ", term).split())


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so a term matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass(frozen=True)
class FtsTerms:
    """
    Flattened expansion groups for the SQL-side tsquery builder.

    terms[i] belongs to the original token at positions[i]; terms sharing a
    position are OR-ed and positions are AND-ed.
    """
    terms: Tuple[str, ...] = field(default_factory=tuple)
    positions: Tuple[int, ...] = field(default_factory=tuple)

    @classmethod
    def from_expanded(cls, query: ExpandedQuery) -> "FtsTerms":
        terms: List[str] = []
        positions: List[int] = []
        position = 0
        for group in query.groups:
            cleaned = [t for t in (clean_term(term) for term in group) if t]
            if not cleaned:
                continue
            for term in cleaned:
                terms.append(term)
                positions.append(position)
            position += 1
        return cls(terms=tuple(terms), positions=tuple(positions))

    @property
    def is_empty(self) -> bool:
        return not self.terms


def tsquery_sql(params: SqlParams, fts: FtsTerms, language: str) -> str:
    """
    SQL expression producing the prefix tsquery for the expansion groups.

    Each term is quoted with quote_literal and suffixed with ':*'.
    """
    terms = params.add(list(fts.terms))
    positions = params.add(list(fts.positions))
    lang = params.add(language)
    return f"""to_tsquery({lang}::regconfig, (
        SELECT string_agg(grp.clause, ' & ' ORDER BY grp.position)
        FROM (
            SELECT t.position,
                   '(' || string_agg(quote_literal(t.term) || ':*', ' | ') || ')' AS clause
            FROM unnest({terms}::text[], {positions}::int[]) AS t(term, position)
            GROUP BY t.position
        ) grp
    ))"""


def weighted_document_sql(params: SqlParams, language: str, title: str, category: str, body: str) -> str:
    """tsvector weighting title (A) over category/type (B) over body (C)."""
    lang = params.add(language)
    return (
        f"setweight(to_tsvector({lang}::regconfig, COALESCE({title}, '')), 'A') || "
        f"setweight(to_tsvector({lang}::regconfig, COALESCE({category}, '')), 'B') || "
        f"setweight(to_tsvector({lang}::regconfig, COALESCE({body}, '')), 'C')"
    )


def headline_sql(params: SqlParams, language: str, body: str, query: str) -> str:
    lang = params.add(language)
    return (
        f"ts_headline({lang}::regconfig, COALESCE({body}, ''), {query}, "
        f"'MaxWords=35, MinWords=15, StartSel=<mark>, StopSel=</mark>')"
    )


def like_patterns(terms: List[str]) -> List[str]:
    """Case-insensitive substring patterns for ILIKE ANY(...)."""
    return [f"%{escape_like(term)}%" for term in terms if term]
