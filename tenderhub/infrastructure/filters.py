"""Predicate algebra for document filters.

Predicates are immutable trees built with ``equals``, ``in_``, ``and_`` and
``or_``. They compile to a parameterised SQL fragment for repositories and can
also be evaluated against a plain dict, which keeps access rules testable
without a database.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Tuple


class Predicate:
    """Base for filter nodes."""


@dataclass(frozen=True)
class Equals(Predicate):
    field: str
    value: Any


@dataclass(frozen=True)
class In(Predicate):
    field: str
    values: Tuple[Any, ...]


@dataclass(frozen=True)
class And(Predicate):
    parts: Tuple[Predicate, ...]


@dataclass(frozen=True)
class Or(Predicate):
    parts: Tuple[Predicate, ...]


MATCH_ALL = And(())


def equals(field: str, value: Any) -> Predicate:
    return Equals(field, value)


def in_(field: str, values: Iterable[Any]) -> Predicate:
    return In(field, tuple(dict.fromkeys(values)))


def _flatten(kind: type, parts: Iterable[Predicate | None]) -> Tuple[Predicate, ...]:
    flat: List[Predicate] = []
    for part in parts:
        if part is None:
            continue
        if isinstance(part, kind):
            flat.extend(part.parts)
        else:
            flat.append(part)
    return tuple(flat)


def and_(*parts: Predicate | None) -> Predicate:
    flat = _flatten(And, parts)
    return flat[0] if len(flat) == 1 else And(flat)


def or_(*parts: Predicate | None) -> Predicate:
    flat = _flatten(Or, parts)
    if any(part == MATCH_ALL for part in flat):
        return MATCH_ALL
    return flat[0] if len(flat) == 1 else Or(flat)


def compile_predicate(predicate: Predicate, allowed_fields: Iterable[str]) -> Tuple[str, List[Any]]:
    allowed = set(allowed_fields)
    params: List[Any] = []

    def column(field: str) -> str:
        if field not in allowed:
            raise ValueError(f"unsupported filter field: {field}")
        return field

    def walk(node: Predicate) -> str:
        if isinstance(node, Equals):
            if node.value is None:
                return f"{column(node.field)} IS NULL"
            params.append(node.value)
            return f"{column(node.field)} = ?"
        if isinstance(node, In):
            if not node.values:
                return "1 = 0"
            params.extend(node.values)
            placeholders = ", ".join("?" for _ in node.values)
            return f"{column(node.field)} IN ({placeholders})"
        if isinstance(node, And):
            if not node.parts:
                return "1 = 1"
            return "(" + " AND ".join(walk(part) for part in node.parts) + ")"
        if isinstance(node, Or):
            if not node.parts:
                return "1 = 0"
            return "(" + " OR ".join(walk(part) for part in node.parts) + ")"
        raise TypeError(f"unknown predicate: {node!r}")

    return walk(predicate), params


def matches(predicate: Predicate, document: Mapping[str, Any]) -> bool:
    if isinstance(predicate, Equals):
        return document.get(predicate.field) == predicate.value
    if isinstance(predicate, In):
        return document.get(predicate.field) in predicate.values
    if isinstance(predicate, And):
        return all(matches(part, document) for part in predicate.parts)
    if isinstance(predicate, Or):
        return any(matches(part, document) for part in predicate.parts)
    raise TypeError(f"unknown predicate: {predicate!r}")
