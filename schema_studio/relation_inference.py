"""Relation inference and reconciliation shared by import and live editing.

Two relations are the same when they connect the same pair of columns, in
either direction. ``RelationSet`` applies that rule while collecting
candidates from inline ``.references()`` modifiers and relation blocks, and
``schema_editing.validate_relation`` applies it to relations drawn by hand.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from schema_studio.schema_model import Column, Relation, Table, primary_key_column

logger = logging.getLogger("relation_inference")

_ID_SUFFIX = re.compile(r"(?:_id|_ID|Id|ID)$")


@dataclass(frozen=True)
class Endpoint:
    table_id: str
    column_id: str


@dataclass(frozen=True)
class RelationCandidate:
    source: Endpoint  # referenced side
    target: Endpoint  # referencing side
    type: str
    origin: str = ""


class IdAllocator:
    """Mints ``<prefix>-N`` ids; one instance belongs to one parse call."""

    def __init__(self) -> None:
        self._counters: dict[str, int] = {}

    def next(self, prefix: str) -> str:
        value = self._counters.get(prefix, 0) + 1
        self._counters[prefix] = value
        return f"{prefix}-{value}"


def endpoints_of(relation: Relation | RelationCandidate) -> tuple[Endpoint, Endpoint]:
    if isinstance(relation, RelationCandidate):
        return relation.source, relation.target
    return (
        Endpoint(relation.from_table_id, relation.from_column_id),
        Endpoint(relation.to_table_id, relation.to_column_id),
    )


def same_column_pair(a: Relation | RelationCandidate, b: Relation | RelationCandidate) -> bool:
    a_from, a_to = endpoints_of(a)
    b_from, b_to = endpoints_of(b)
    return (a_from == b_from and a_to == b_to) or (a_from == b_to and a_to == b_from)


def infer_cardinality(foreign_key_column: Column) -> str:
    return "one-to-one" if foreign_key_column.unique else "one-to-many"


class RelationSet:
    """Ordered, duplicate-free relations; ids go to survivors in discovery order."""

    def __init__(self, ids: IdAllocator, *, prefix: str = "rel"):
        self._ids = ids
        self._prefix = prefix
        self._relations: list[Relation] = []

    def contains(self, candidate: RelationCandidate) -> bool:
        return any(same_column_pair(existing, candidate) for existing in self._relations)

    def links_tables(self, table_a_id: str, table_b_id: str) -> bool:
        """True when some relation joins the two tables, in either direction."""
        pair = {table_a_id, table_b_id}
        return any({r.from_table_id, r.to_table_id} == pair for r in self._relations)

    def add(self, candidate: RelationCandidate) -> Relation | None:
        if self.contains(candidate):
            logger.debug(
                "Dropping duplicate relation %s.%s <-> %s.%s (%s)",
                candidate.source.table_id,
                candidate.source.column_id,
                candidate.target.table_id,
                candidate.target.column_id,
                candidate.origin or "unknown origin",
            )
            return None
        relation = Relation(
            id=self._ids.next(self._prefix),
            from_table_id=candidate.source.table_id,
            from_column_id=candidate.source.column_id,
            to_table_id=candidate.target.table_id,
            to_column_id=candidate.target.column_id,
            type=candidate.type,
        )
        self._relations.append(relation)
        return relation

    def to_list(self) -> list[Relation]:
        return list(self._relations)


def foreign_key_candidate(
    referenced_table: Table,
    referenced_column: Column,
    referencing_table: Table,
    referencing_column: Column,
    *,
    origin: str = "",
) -> RelationCandidate:
    return RelationCandidate(
        source=Endpoint(referenced_table.id, referenced_column.id),
        target=Endpoint(referencing_table.id, referencing_column.id),
        type=infer_cardinality(referencing_column),
        origin=origin,
    )


def explicit_pair_candidate(
    fields_table: Table,
    fields_column: Column,
    references_table: Table,
    references_column: Column,
    *,
    origin: str = "",
) -> RelationCandidate:
    # The primary key side is the referenced side whichever list names it;
    # without a primary key on exactly the fields side, references wins.
    if fields_column.primary_key and not references_column.primary_key:
        return foreign_key_candidate(
            fields_table, fields_column, references_table, references_column, origin=origin
        )
    return foreign_key_candidate(
        references_table, references_column, fields_table, fields_column, origin=origin
    )


def _normalize(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", name.lower())


def singularize(name: str) -> str:
    word = name.strip()
    lower = word.lower()
    if lower.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    if lower.endswith(("sses", "shes", "ches", "xes", "zes")):
        return word[:-2]
    if lower.endswith("s") and not lower.endswith(("ss", "us", "is")) and len(word) > 1:
        return word[:-1]
    return word


def key_column(table: Table) -> Column | None:
    column = primary_key_column(table)
    if column is not None:
        return column
    return table.columns[0] if table.columns else None


def find_foreign_key_column(base_table: Table, target_table: Table) -> Column | None:
    """Guess which column of ``target_table`` points back at ``base_table``.

    Preference: ``<singular base name>id``, then a column containing the
    singular base name with an id suffix, then any id-suffixed column.
    Names compare case-insensitively with separators removed.
    """
    singular = _normalize(singularize(base_table.name))
    if not singular:
        return None

    exact = singular + "id"
    for column in target_table.columns:
        if _normalize(column.name) == exact:
            return column

    for column in target_table.columns:
        if _ID_SUFFIX.search(column.name) and singular in _normalize(column.name):
            return column

    for column in target_table.columns:
        if _ID_SUFFIX.search(column.name) and _normalize(column.name) != "id":
            return column

    return None


def collection_candidate(
    base_table: Table,
    target_table: Table,
    *,
    origin: str = "",
) -> RelationCandidate | None:
    referenced = key_column(base_table)
    if referenced is None:
        return None
    referencing = find_foreign_key_column(base_table, target_table)
    if referencing is None:
        return None
    if base_table.id == target_table.id and referencing.id == referenced.id:
        return None
    return foreign_key_candidate(base_table, referenced, target_table, referencing, origin=origin)
