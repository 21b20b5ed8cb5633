from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

ColumnType = Literal["integer", "varchar", "text", "boolean", "timestamp", "date", "json"]
RelationType = Literal["one-to-one", "one-to-many", "many-to-many"]

COLUMN_TYPES: tuple[str, ...] = (
    "integer",
    "varchar",
    "text",
    "boolean",
    "timestamp",
    "date",
    "json",
)
RELATION_TYPES: tuple[str, ...] = ("one-to-one", "one-to-many", "many-to-many")
ENUM_TYPE_PREFIX = "enum:"
DEFAULT_TABLE_WIDTH = 280


def enum_type(enum_name: str) -> str:
    return f"{ENUM_TYPE_PREFIX}{enum_name}"


def is_enum_type(column_type: str) -> bool:
    return column_type.startswith(ENUM_TYPE_PREFIX) and len(column_type) > len(ENUM_TYPE_PREFIX)


def enum_name_of(column_type: str) -> str | None:
    if not is_enum_type(column_type):
        return None
    return column_type[len(ENUM_TYPE_PREFIX):]


@dataclass(frozen=True)
class Position:
    x: float = 0
    y: float = 0


@dataclass(frozen=True)
class Column:
    id: str
    name: str
    type: str = "varchar"
    nullable: bool = True
    primary_key: bool = False
    unique: bool = False
    auto_increment: bool = False


@dataclass(frozen=True)
class Table:
    id: str
    name: str
    columns: list[Column] = field(default_factory=list)

    # canvas-only layout; the Drizzle codec neither reads nor writes these
    position: Position = field(default_factory=Position)
    width: int = DEFAULT_TABLE_WIDTH


@dataclass(frozen=True)
class Relation:
    id: str

    # referenced ("one") side
    from_table_id: str
    from_column_id: str

    # referencing ("many") side
    to_table_id: str
    to_column_id: str

    type: str = "one-to-many"


@dataclass(frozen=True)
class EnumSpec:
    name: str
    values: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Schema:
    tables: list[Table] = field(default_factory=list)
    relations: list[Relation] = field(default_factory=list)
    enums: list[EnumSpec] = field(default_factory=list)


def find_table(schema: Schema, table_id: str) -> Table | None:
    for table in schema.tables:
        if table.id == table_id:
            return table
    return None


def find_column(table: Table, column_id: str) -> Column | None:
    for column in table.columns:
        if column.id == column_id:
            return column
    return None


def find_enum(schema: Schema, enum_name: str) -> EnumSpec | None:
    for spec in schema.enums:
        if spec.name == enum_name:
            return spec
    return None


def primary_key_column(table: Table) -> Column | None:
    for column in table.columns:
        if column.primary_key:
            return column
    return None


def validate_schema(schema: Schema) -> None:
    table_ids = [t.id for t in schema.tables]
    if any(not tid.strip() for tid in table_ids):
        raise ValueError("All tables must have a non-empty id.")
    if len(set(table_ids)) != len(table_ids):
        raise ValueError("Table ids must be unique.")

    enum_names = [e.name for e in schema.enums]
    if any(not name.strip() for name in enum_names):
        raise ValueError("All enums must have a non-empty name.")
    if len(set(enum_names)) != len(enum_names):
        raise ValueError("Enum names must be unique.")

    for t in schema.tables:
        if not t.name.strip():
            raise ValueError(f"Table '{t.id}': table name cannot be empty.")

        col_ids = [c.id for c in t.columns]
        if any(not cid.strip() for cid in col_ids):
            raise ValueError(f"Table '{t.name}': all columns must have a non-empty id.")
        if len(set(col_ids)) != len(col_ids):
            raise ValueError(f"Table '{t.name}': column ids must be unique.")

        for c in t.columns:
            if not c.name.strip():
                raise ValueError(f"Table '{t.name}', column '{c.id}': column name cannot be empty.")
            if c.type not in COLUMN_TYPES and not is_enum_type(c.type):
                allowed = ", ".join(COLUMN_TYPES)
                raise ValueError(
                    f"Table '{t.name}', column '{c.name}': unsupported type '{c.type}'. "
                    f"Fix: use one of: {allowed}, or '{ENUM_TYPE_PREFIX}<enumName>'."
                )
            if c.auto_increment and c.type != "integer":
                raise ValueError(
                    f"Table '{t.name}', column '{c.name}': auto_increment requires type 'integer'. "
                    "Fix: set type='integer' or turn off auto_increment."
                )
            if c.auto_increment and c.nullable:
                raise ValueError(
                    f"Table '{t.name}', column '{c.name}': auto_increment columns cannot be nullable. "
                    "Fix: set nullable=False for auto-increment columns."
                )

    table_map = {t.id: t for t in schema.tables}
    rel_ids = [r.id for r in schema.relations]
    if len(set(rel_ids)) != len(rel_ids):
        raise ValueError("Relation ids must be unique.")

    for r in schema.relations:
        if r.type not in RELATION_TYPES:
            raise ValueError(
                f"Relation '{r.id}': unsupported type '{r.type}'. "
                f"Fix: use one of: {', '.join(RELATION_TYPES)}."
            )
        for side, table_id, column_id in (
            ("from", r.from_table_id, r.from_column_id),
            ("to", r.to_table_id, r.to_column_id),
        ):
            table = table_map.get(table_id)
            if table is None:
                raise ValueError(
                    f"Relation '{r.id}': {side} table '{table_id}' not found. "
                    "Fix: reference an existing table id."
                )
            if find_column(table, column_id) is None:
                raise ValueError(
                    f"Relation '{r.id}': {side} column '{column_id}' not found on table '{table.name}'. "
                    "Fix: reference an existing column id."
                )
