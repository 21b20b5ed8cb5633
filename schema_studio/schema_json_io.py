import json
import logging
from typing import Any

from schema_studio.drizzle_generator import generate_drizzle_schema
from schema_studio.error_contract import JSON_CONTEXT, actionable_error
from schema_studio.schema_model import (
    DEFAULT_TABLE_WIDTH,
    Column,
    EnumSpec,
    Position,
    Relation,
    Schema,
    Table,
    validate_schema,
)

logger = logging.getLogger("schema_json_io")

DRIZZLE_SOURCE_KEY = "drizzleSource"


def _json_error(location: str, issue: str, hint: str) -> ValueError:
    return actionable_error(JSON_CONTEXT, location, issue, hint)


def schema_to_dict(schema: Schema) -> dict[str, Any]:
    return {
        "tables": [
            {
                "id": t.id,
                "name": t.name,
                "columns": [
                    {
                        "id": c.id,
                        "name": c.name,
                        "type": c.type,
                        "nullable": c.nullable,
                        "primaryKey": c.primary_key,
                        "unique": c.unique,
                        "autoIncrement": c.auto_increment,
                    }
                    for c in t.columns
                ],
                "position": {"x": t.position.x, "y": t.position.y},
                "width": t.width,
            }
            for t in schema.tables
        ],
        "relations": [
            {
                "id": r.id,
                "fromTableId": r.from_table_id,
                "fromColumnId": r.from_column_id,
                "toTableId": r.to_table_id,
                "toColumnId": r.to_column_id,
                "type": r.type,
            }
            for r in schema.relations
        ],
        "enums": [{"name": e.name, "values": list(e.values)} for e in schema.enums],
    }


def _require(data: dict[str, Any], key: str, *, location: str) -> Any:
    if key not in data:
        raise _json_error(location, f"missing key '{key}'", f"add '{key}' to the object")
    return data[key]


def _object_list(value: Any, *, location: str) -> list[dict[str, Any]]:
    if not isinstance(value, list) or any(not isinstance(item, dict) for item in value):
        raise _json_error(location, "must be a list of objects", "store one JSON object per entry")
    return value


def schema_from_dict(data: Any) -> Schema:
    if not isinstance(data, dict):
        raise _json_error("Root", "document must be a JSON object", "store tables and relations in an object")

    tables: list[Table] = []
    for i, t in enumerate(_object_list(_require(data, "tables", location="Root"), location="tables")):
        where = f"tables[{i}]"
        columns = [
            Column(
                id=str(_require(c, "id", location=f"{where}.columns[{j}]")),
                name=str(_require(c, "name", location=f"{where}.columns[{j}]")),
                type=str(c.get("type", "varchar")),
                nullable=bool(c.get("nullable", True)),
                primary_key=bool(c.get("primaryKey", False)),
                unique=bool(c.get("unique", False)),
                auto_increment=bool(c.get("autoIncrement", False)),
            )
            for j, c in enumerate(_object_list(t.get("columns", []), location=f"{where}.columns"))
        ]
        position = t.get("position") or {}
        if not isinstance(position, dict):
            raise _json_error(f"{where}.position", "must be an object", "use {\"x\": 0, \"y\": 0}")
        tables.append(
            Table(
                id=str(_require(t, "id", location=where)),
                name=str(_require(t, "name", location=where)),
                columns=columns,
                position=Position(x=position.get("x", 0), y=position.get("y", 0)),
                width=int(t.get("width", DEFAULT_TABLE_WIDTH)),
            )
        )

    relations = [
        Relation(
            id=str(_require(r, "id", location=f"relations[{i}]")),
            from_table_id=str(_require(r, "fromTableId", location=f"relations[{i}]")),
            from_column_id=str(_require(r, "fromColumnId", location=f"relations[{i}]")),
            to_table_id=str(_require(r, "toTableId", location=f"relations[{i}]")),
            to_column_id=str(_require(r, "toColumnId", location=f"relations[{i}]")),
            type=str(r.get("type", "one-to-many")),
        )
        for i, r in enumerate(_object_list(data.get("relations", []), location="relations"))
    ]

    enums = [
        EnumSpec(
            name=str(_require(e, "name", location=f"enums[{i}]")),
            values=[str(v) for v in e.get("values", [])],
        )
        for i, e in enumerate(_object_list(data.get("enums", []), location="enums"))
    ]

    return Schema(tables=tables, relations=relations, enums=enums)


def save_schema_to_json(schema: Schema, path: str, *, indent: int = 2) -> None:
    validate_schema(schema)
    data = schema_to_dict(schema)
    data[DRIZZLE_SOURCE_KEY] = generate_drizzle_schema(schema)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent)
    logger.info("Saved schema JSON: path=%s tables=%d", path, len(schema.tables))


def load_schema_from_json(path: str) -> Schema:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise _json_error(path, f"file is not valid JSON ({exc})", "choose a schema JSON file") from exc

    if isinstance(data, dict):
        drizzle_source = data.get(DRIZZLE_SOURCE_KEY)
        if (drizzle_source is not None) and (not isinstance(drizzle_source, str)):
            raise _json_error(
                DRIZZLE_SOURCE_KEY,
                "must be a string when present",
                f"set '{DRIZZLE_SOURCE_KEY}' to Drizzle source text or remove the key",
            )

    schema = schema_from_dict(data)
    validate_schema(schema)
    return schema
