from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import Any

from schema_studio.error_contract import EDITOR_CONTEXT, format_actionable_error
from schema_studio.relation_inference import Endpoint, RelationCandidate, same_column_pair
from schema_studio.schema_model import (
    COLUMN_TYPES,
    ENUM_TYPE_PREFIX,
    RELATION_TYPES,
    Column,
    Position,
    Relation,
    Schema,
    Table,
    find_column,
    find_table,
    is_enum_type,
)

logger = logging.getLogger("schema_editing")


def _edit_error(field: str, issue: str, hint: str) -> str:
    return format_actionable_error(EDITOR_CONTEXT, field, issue, hint)


@dataclass(frozen=True)
class RelationCheck:
    valid: bool
    error: str | None = None


def _next_id(prefix: str, existing: list[str]) -> str:
    pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$")
    highest = 0
    for value in existing:
        m = pattern.match(value)
        if m:
            highest = max(highest, int(m.group(1)))
    return f"{prefix}-{highest + 1}"


def _all_column_ids(schema: Schema) -> list[str]:
    return [c.id for t in schema.tables for c in t.columns]


def _parse_name(value: Any, *, field: str, hint: str) -> str:
    if not isinstance(value, str) or value.strip() == "":
        raise ValueError(_edit_error(field, "value is required", hint))
    return value.strip()


def _parse_column_type(value: Any, *, field: str) -> str:
    allowed = ", ".join(COLUMN_TYPES)
    if not isinstance(value, str) or value.strip() == "":
        raise ValueError(_edit_error(field, "type is required", f"choose one of: {allowed}"))
    column_type = value.strip()
    if column_type.lower() in COLUMN_TYPES:
        return column_type.lower()
    if is_enum_type(column_type):
        return column_type
    raise ValueError(
        _edit_error(
            field,
            f"unsupported type '{column_type}'",
            f"choose one of: {allowed}, or '{ENUM_TYPE_PREFIX}<enumName>'",
        )
    )


def _parse_relation_type(value: Any, *, field: str) -> str:
    relation_type = str(value).strip().lower() if value is not None else ""
    if relation_type not in RELATION_TYPES:
        raise ValueError(
            _edit_error(
                field,
                f"unsupported relation type '{value}'",
                f"choose one of: {', '.join(RELATION_TYPES)}",
            )
        )
    return relation_type


def _require_table(schema: Schema, table_id: str, *, field: str) -> Table:
    table = find_table(schema, table_id)
    if table is None:
        raise ValueError(
            _edit_error(field, f"table '{table_id}' was not found", "choose an existing table")
        )
    return table


def _require_column(table: Table, column_id: str, *, field: str) -> Column:
    column = find_column(table, column_id)
    if column is None:
        raise ValueError(
            _edit_error(
                field,
                f"column '{column_id}' was not found on table '{table.name}'",
                "choose an existing column",
            )
        )
    return column


def _check_auto_increment(column: Column, *, field: str) -> None:
    if column.auto_increment and column.type != "integer":
        raise ValueError(
            _edit_error(
                field,
                f"auto-increment column '{column.name}' must be type integer",
                "set type to integer or turn off auto-increment",
            )
        )
    if column.auto_increment and column.nullable:
        raise ValueError(
            _edit_error(
                field,
                f"auto-increment column '{column.name}' cannot be nullable",
                "turn off nullable or turn off auto-increment",
            )
        )


def _replace_table(schema: Schema, table: Table) -> Schema:
    return replace(schema, tables=[table if t.id == table.id else t for t in schema.tables])


def build_preview_schema() -> Schema:
    """Starter schema shown on an empty canvas: users, posts and comments."""

    def pk(table: str) -> Column:
        return Column(
            id=f"col-{table}-id",
            name="id",
            type="integer",
            nullable=False,
            primary_key=True,
            unique=True,
            auto_increment=True,
        )

    def col(table: str, key: str, name: str, column_type: str, *, nullable: bool = False, unique: bool = False) -> Column:
        return Column(id=f"col-{table}-{key}", name=name, type=column_type, nullable=nullable, unique=unique)

    users = Table(
        id="table-users",
        name="users",
        position=Position(100, 100),
        columns=[
            pk("users"),
            col("users", "email", "email", "varchar", unique=True),
            col("users", "name", "name", "varchar"),
            col("users", "created", "created_at", "timestamp"),
        ],
    )
    posts = Table(
        id="table-posts",
        name="posts",
        position=Position(500, 100),
        columns=[
            pk("posts"),
            col("posts", "user-id", "user_id", "integer"),
            col("posts", "title", "title", "varchar"),
            col("posts", "content", "content", "text", nullable=True),
            col("posts", "created", "created_at", "timestamp"),
        ],
    )
    comments = Table(
        id="table-comments",
        name="comments",
        position=Position(900, 100),
        columns=[
            pk("comments"),
            col("comments", "post-id", "post_id", "integer"),
            col("comments", "user-id", "user_id", "integer"),
            col("comments", "text", "text", "text"),
            col("comments", "created", "created_at", "timestamp"),
        ],
    )
    relations = [
        Relation("rel-users-posts", "table-users", "col-users-id", "table-posts", "col-posts-user-id"),
        Relation("rel-posts-comments", "table-posts", "col-posts-id", "table-comments", "col-comments-post-id"),
        Relation("rel-users-comments", "table-users", "col-users-id", "table-comments", "col-comments-user-id"),
    ]
    return Schema(tables=[users, posts, comments], relations=relations)


def add_table(schema: Schema, *, name_value: Any = None) -> Schema:
    table_id = _next_id("table", [t.id for t in schema.tables])
    number = int(table_id.rsplit("-", 1)[1])
    name = (
        f"table_{number}"
        if name_value is None
        else _parse_name(name_value, field="Add table / Name", hint="enter a non-empty table name")
    )
    id_column = Column(
        id=_next_id("col", _all_column_ids(schema)),
        name="id",
        type="integer",
        nullable=False,
        primary_key=True,
        unique=True,
        auto_increment=True,
    )
    new_table = Table(
        id=table_id,
        name=name,
        columns=[id_column],
        position=Position(100 + number * 50, 100 + number * 50),
    )
    return replace(schema, tables=[*schema.tables, new_table])


def update_table(
    schema: Schema,
    table_id: str,
    *,
    name_value: Any = None,
    position: Position | None = None,
    width: int | None = None,
) -> Schema:
    table = _require_table(schema, table_id, field="Edit table")
    changes: dict[str, Any] = {}
    if name_value is not None:
        changes["name"] = _parse_name(name_value, field="Edit table / Name", hint="enter a non-empty table name")
    if position is not None:
        changes["position"] = position
    if width is not None:
        if width <= 0:
            raise ValueError(_edit_error("Edit table / Width", "must be > 0", "enter a positive width"))
        changes["width"] = int(width)
    if not changes:
        return schema
    return _replace_table(schema, replace(table, **changes))


def delete_table(schema: Schema, table_id: str) -> Schema:
    _require_table(schema, table_id, field="Delete table")
    return replace(
        schema,
        tables=[t for t in schema.tables if t.id != table_id],
        relations=[
            r for r in schema.relations if r.from_table_id != table_id and r.to_table_id != table_id
        ],
    )


def add_column(
    schema: Schema,
    table_id: str,
    *,
    name_value: Any = None,
    type_value: Any = "varchar",
    nullable: bool = True,
    primary_key: bool = False,
    unique: bool = False,
    auto_increment: bool = False,
) -> Schema:
    table = _require_table(schema, table_id, field="Add column / Table")
    column_id = _next_id("col", _all_column_ids(schema))
    name = (
        f"column_{column_id.rsplit('-', 1)[1]}"
        if name_value is None
        else _parse_name(name_value, field="Add column / Name", hint="enter a non-empty column name")
    )
    column = Column(
        id=column_id,
        name=name,
        type=_parse_column_type(type_value, field="Add column / Type"),
        nullable=bool(nullable),
        primary_key=bool(primary_key),
        unique=bool(unique),
        auto_increment=bool(auto_increment),
    )
    _check_auto_increment(column, field="Add column")
    return _replace_table(schema, replace(table, columns=[*table.columns, column]))


def update_column(schema: Schema, table_id: str, column_id: str, **changes: Any) -> Schema:
    table = _require_table(schema, table_id, field="Edit column / Table")
    column = _require_column(table, column_id, field="Edit column")

    allowed = {"name", "type", "nullable", "primary_key", "unique", "auto_increment"}
    unknown = sorted(set(changes) - allowed)
    if unknown:
        raise ValueError(
            _edit_error(
                "Edit column",
                f"unknown column attribute(s): {', '.join(unknown)}",
                f"edit only: {', '.join(sorted(allowed))}",
            )
        )

    updates: dict[str, Any] = {}
    for key, value in changes.items():
        if key == "name":
            updates[key] = _parse_name(value, field="Edit column / Name", hint="enter a non-empty column name")
        elif key == "type":
            updates[key] = _parse_column_type(value, field="Edit column / Type")
        else:
            updates[key] = bool(value)

    updated = replace(column, **updates)
    _check_auto_increment(updated, field="Edit column")
    columns = [updated if c.id == column_id else c for c in table.columns]
    return _replace_table(schema, replace(table, columns=columns))


def delete_column(schema: Schema, table_id: str, column_id: str) -> Schema:
    table = _require_table(schema, table_id, field="Delete column / Table")
    _require_column(table, column_id, field="Delete column")
    next_table = replace(table, columns=[c for c in table.columns if c.id != column_id])
    next_schema = _replace_table(schema, next_table)
    return replace(
        next_schema,
        relations=[
            r
            for r in schema.relations
            if not (r.from_table_id == table_id and r.from_column_id == column_id)
            and not (r.to_table_id == table_id and r.to_column_id == column_id)
        ],
    )


def validate_relation(
    schema: Schema,
    from_table_id: str,
    from_column_id: str,
    to_table_id: str,
    to_column_id: str,
    *,
    ignore_relation_id: str | None = None,
) -> RelationCheck:
    if from_table_id == to_table_id:
        return RelationCheck(False, "Cannot create relation within the same table")

    for side, table_id, column_id in (
        ("source", from_table_id, from_column_id),
        ("target", to_table_id, to_column_id),
    ):
        table = find_table(schema, table_id)
        if table is None:
            return RelationCheck(False, f"The {side} table '{table_id}' does not exist")
        if find_column(table, column_id) is None:
            return RelationCheck(False, f"The {side} column '{column_id}' does not exist on '{table.name}'")

    candidate = RelationCandidate(
        source=Endpoint(from_table_id, from_column_id),
        target=Endpoint(to_table_id, to_column_id),
        type="one-to-many",
    )
    for existing in schema.relations:
        if existing.id == ignore_relation_id:
            continue
        if not same_column_pair(existing, candidate):
            continue
        if existing.from_table_id == from_table_id and existing.from_column_id == from_column_id:
            return RelationCheck(False, "Relation already exists between these columns")
        return RelationCheck(False, "Reverse relation already exists")

    return RelationCheck(True)


def _warn_on_unstable_one_to_one(schema: Schema, relation: Relation) -> None:
    # Imported cardinality follows the referencing column's uniqueness.
    if relation.type != "one-to-one":
        return
    table = find_table(schema, relation.to_table_id)
    column = find_column(table, relation.to_column_id) if table is not None else None
    if column is not None and not column.unique:
        logger.warning(
            "Relation %s is one-to-one but %s.%s is not unique; Drizzle import will read it back as one-to-many",
            relation.id,
            table.name,
            column.name,
        )


def add_relation(
    schema: Schema,
    *,
    from_table_id: str,
    from_column_id: str,
    to_table_id: str,
    to_column_id: str,
    type_value: Any = "one-to-many",
) -> Schema:
    """Append a validated relation from the referenced column to the referencing one.

    A one-to-one relation survives a Drizzle round trip only when the
    referencing column is unique; otherwise a warning is logged.
    """
    relation_type = _parse_relation_type(type_value, field="Add relation / Type")
    check = validate_relation(schema, from_table_id, from_column_id, to_table_id, to_column_id)
    if not check.valid:
        raise ValueError(
            _edit_error("Add relation", check.error or "invalid relation", "choose a different column pair")
        )
    relation = Relation(
        id=_next_id("rel", [r.id for r in schema.relations]),
        from_table_id=from_table_id,
        from_column_id=from_column_id,
        to_table_id=to_table_id,
        to_column_id=to_column_id,
        type=relation_type,
    )
    _warn_on_unstable_one_to_one(schema, relation)
    return replace(schema, relations=[*schema.relations, relation])


def update_relation(schema: Schema, relation_id: str, **changes: Any) -> Schema:
    current = next((r for r in schema.relations if r.id == relation_id), None)
    if current is None:
        raise ValueError(
            _edit_error("Edit relation", f"relation '{relation_id}' was not found", "choose an existing relation")
        )

    allowed = {"from_table_id", "from_column_id", "to_table_id", "to_column_id", "type"}
    unknown = sorted(set(changes) - allowed)
    if unknown:
        raise ValueError(
            _edit_error(
                "Edit relation",
                f"unknown relation attribute(s): {', '.join(unknown)}",
                f"edit only: {', '.join(sorted(allowed))}",
            )
        )
    if "type" in changes:
        changes["type"] = _parse_relation_type(changes["type"], field="Edit relation / Type")

    updated = replace(current, **changes)
    if any(key != "type" for key in changes):
        check = validate_relation(
            schema,
            updated.from_table_id,
            updated.from_column_id,
            updated.to_table_id,
            updated.to_column_id,
            ignore_relation_id=relation_id,
        )
        if not check.valid:
            raise ValueError(
                _edit_error("Edit relation", check.error or "invalid relation", "choose a different column pair")
            )
    _warn_on_unstable_one_to_one(schema, updated)
    return replace(schema, relations=[updated if r.id == relation_id else r for r in schema.relations])


def delete_relation(schema: Schema, relation_id: str) -> Schema:
    return replace(schema, relations=[r for r in schema.relations if r.id != relation_id])
