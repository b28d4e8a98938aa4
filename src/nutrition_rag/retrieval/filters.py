"""
Typed metadata filters.

A Filter is a conjunction of clauses. Each clause is validated against the
metadata schema when it is built, so a typo in a field name fails at the
call site instead of silently matching nothing.

    Filter(Equals("type", DocumentType.RECIPE))
    Filter(In("goals", {Goal.WEIGHT_LOSS}), Equals("difficulty", "beginner"))
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Union

from nutrition_rag.core.errors import InvalidFilter
from nutrition_rag.retrieval.document import Difficulty, DocumentType, Goal, Metadata

# field -> enum used to coerce values (None: compared as-is)
SCALAR_FIELDS: dict[str, type[Enum] | None] = {
    "type": DocumentType,
    "title": None,
    "source": None,
    "calories": None,
    "difficulty": Difficulty,
}

SET_FIELDS: dict[str, type[Enum] | None] = {
    "tags": None,
    "goals": Goal,
}


def _coerce(enum_cls: type[Enum] | None, value: Any, field: str) -> Any:
    if enum_cls is None:
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidFilter(f"{value!r} is not a valid value for '{field}'") from None


@dataclass(frozen=True)
class Equals:
    """Exact match on a scalar metadata field."""
    field: str
    value: Any

    def __post_init__(self):
        if self.field not in SCALAR_FIELDS:
            if self.field in SET_FIELDS:
                raise InvalidFilter(f"'{self.field}' is set-valued; use In()")
            raise InvalidFilter(f"Unknown metadata field '{self.field}'")
        object.__setattr__(self, "value", _coerce(SCALAR_FIELDS[self.field], self.value, self.field))

    def matches(self, metadata: Metadata) -> bool:
        return getattr(metadata, self.field) == self.value


@dataclass(frozen=True)
class In:
    """Set membership: the document's set field shares at least one value."""
    field: str
    values: frozenset

    def __post_init__(self):
        if self.field not in SET_FIELDS:
            if self.field in SCALAR_FIELDS:
                raise InvalidFilter(f"'{self.field}' is scalar; use Equals()")
            raise InvalidFilter(f"Unknown metadata field '{self.field}'")
        if isinstance(self.values, (str, bytes)):
            raise InvalidFilter("In() expects a collection of values, not a string")
        enum_cls = SET_FIELDS[self.field]
        object.__setattr__(
            self,
            "values",
            frozenset(_coerce(enum_cls, v, self.field) for v in self.values),
        )

    def matches(self, metadata: Metadata) -> bool:
        return not self.values.isdisjoint(getattr(metadata, self.field))


Clause = Union[Equals, In]


class Filter:
    """Conjunction of Equals/In clauses. An empty filter matches everything."""

    __slots__ = ("clauses",)

    def __init__(self, *clauses: Clause):
        for clause in clauses:
            if not isinstance(clause, (Equals, In)):
                raise InvalidFilter(f"Unsupported filter clause: {clause!r}")
        self.clauses: tuple[Clause, ...] = tuple(clauses)

    def matches(self, metadata: Metadata) -> bool:
        return all(clause.matches(metadata) for clause in self.clauses)

    def __bool__(self) -> bool:
        return bool(self.clauses)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Filter) and self.clauses == other.clauses

    def __hash__(self) -> int:
        return hash(self.clauses)

    def __repr__(self) -> str:
        return f"Filter({', '.join(repr(c) for c in self.clauses)})"


def type_filter(doc_type: DocumentType | str) -> Filter:
    return Filter(Equals("type", doc_type))


def goals_filter(goals: Iterable[Goal | str]) -> Filter:
    return Filter(In("goals", frozenset(goals)))
