"""OpenAPI 3.1 description of a CRUD API over the tables of a Schema."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from schema_studio.schema_model import Column, Schema, Table, enum_name_of, find_enum

logger = logging.getLogger("openapi_export")

OPENAPI_VERSION = "3.1.0"

_COLUMN_JSON_TYPES: dict[str, dict[str, Any]] = {
    "integer": {"type": "integer"},
    "boolean": {"type": "boolean"},
    "timestamp": {"type": "string", "format": "date-time"},
    "date": {"type": "string", "format": "date"},
    "json": {"type": "object", "additionalProperties": True},
    "varchar": {"type": "string"},
    "text": {"type": "string"},
}


def to_snake_case(value: str) -> str:
    text = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", value.strip())
    text = re.sub(r"[^a-zA-Z0-9]+", "_", text)
    text = re.sub(r"_+", "_", text).strip("_").lower()
    return text or "table"


def to_pascal_case(value: str) -> str:
    parts = [p for p in to_snake_case(value).split("_") if p]
    return "".join(p[:1].upper() + p[1:] for p in parts) or "Table"


def make_unique_name(base: str, used: set[str]) -> str:
    name = base
    i = 2
    while name in used:
        name = f"{base}{i}"
        i += 1
    used.add(name)
    return name


def with_nullable(schema: dict[str, Any], nullable: bool) -> dict[str, Any]:
    if not nullable or "anyOf" in schema:
        return schema
    json_type = schema.get("type")
    if isinstance(json_type, str):
        result = {**schema, "type": [json_type, "null"]}
    elif isinstance(json_type, list):
        if "null" in json_type:
            return schema
        result = {**schema, "type": [*json_type, "null"]}
    else:
        return {"anyOf": [schema, {"type": "null"}]}
    if "enum" in result and None not in result["enum"]:
        result["enum"] = [*result["enum"], None]
    return result


def as_non_nullable(schema: dict[str, Any]) -> dict[str, Any]:
    json_type = schema.get("type")
    if not isinstance(json_type, list):
        return schema
    kept = [t for t in json_type if t != "null"]
    result = {**schema, "type": kept[0] if len(kept) == 1 else kept}
    if "enum" in result:
        result["enum"] = [v for v in result["enum"] if v is not None]
    return result


def column_json_schema(column: Column, schema: Schema) -> dict[str, Any]:
    enum_name = enum_name_of(column.type)
    if enum_name is not None:
        spec = find_enum(schema, enum_name)
        base: dict[str, Any] = {"type": "string"}
        if spec is not None and spec.values:
            base["enum"] = list(spec.values)
    else:
        base = dict(_COLUMN_JSON_TYPES.get(column.type, {"type": "string"}))
    return with_nullable(base, column.nullable)


def _table_component_schemas(table: Table, schema: Schema) -> tuple[dict, dict, dict]:
    read_props: dict[str, Any] = {}
    create_props: dict[str, Any] = {}
    update_props: dict[str, Any] = {}
    read_required: list[str] = []
    create_required: list[str] = []

    for column in table.columns:
        prop = column_json_schema(column, schema)
        read_props[column.name] = prop
        update_props[column.name] = prop
        if not column.auto_increment:
            create_props[column.name] = prop
            if not column.nullable:
                create_required.append(column.name)
        if not column.nullable:
            read_required.append(column.name)

    read_schema: dict[str, Any] = {"type": "object", "properties": read_props}
    if read_required:
        read_schema["required"] = read_required
    create_schema: dict[str, Any] = {"type": "object", "properties": create_props}
    if create_required:
        create_schema["required"] = create_required
    update_schema: dict[str, Any] = {"type": "object", "properties": update_props}
    return read_schema, create_schema, update_schema


def _single_primary_key(table: Table) -> Column | None:
    keys = [c for c in table.columns if c.primary_key]
    return keys[0] if len(keys) == 1 else None


def _ref(component: str) -> dict[str, str]:
    return {"$ref": f"#/components/schemas/{component}"}


def _json_body(schema: dict[str, Any]) -> dict[str, Any]:
    return {"application/json": {"schema": schema}}


def _collection_path(table: Table, component: str, op_base: str) -> dict[str, Any]:
    return {
        "get": {
            "tags": [component],
            "operationId": f"list_{op_base}",
            "summary": f"List {table.name}",
            "responses": {
                "200": {
                    "description": "OK",
                    "content": _json_body({"type": "array", "items": _ref(component)}),
                }
            },
        },
        "post": {
            "tags": [component],
            "operationId": f"create_{op_base}",
            "summary": f"Create {table.name}",
            "requestBody": {"required": True, "content": _json_body(_ref(f"{component}Create"))},
            "responses": {"201": {"description": "Created", "content": _json_body(_ref(component))}},
        },
    }


def _item_path(table: Table, component: str, op_base: str, key: Column, key_schema: dict, param: str) -> dict[str, Any]:
    parameters = [{"name": param, "in": "path", "required": True, "schema": key_schema}]
    return {
        "get": {
            "tags": [component],
            "operationId": f"get_{op_base}_by_{param}",
            "summary": f"Get {table.name} by {key.name}",
            "parameters": parameters,
            "responses": {"200": {"description": "OK", "content": _json_body(_ref(component))}},
        },
        "patch": {
            "tags": [component],
            "operationId": f"update_{op_base}_by_{param}",
            "summary": f"Update {table.name} by {key.name}",
            "parameters": parameters,
            "requestBody": {"required": True, "content": _json_body(_ref(f"{component}Update"))},
            "responses": {"200": {"description": "OK", "content": _json_body(_ref(component))}},
        },
        "delete": {
            "tags": [component],
            "operationId": f"delete_{op_base}_by_{param}",
            "summary": f"Delete {table.name} by {key.name}",
            "parameters": parameters,
            "responses": {"204": {"description": "No Content"}},
        },
    }


def generate_openapi_document(
    schema: Schema,
    *,
    title: str = "Generated API",
    version: str = "0.1.0",
    description: str = "Generated from Drizzle schema",
) -> dict[str, Any]:
    """Build an OpenAPI document with list/create and get/patch/delete paths per table.

    Item paths are only produced for tables with exactly one primary key
    column; the key's snake_case name becomes the path parameter.
    """
    used: set[str] = set()
    components: dict[str, Any] = {}
    component_by_table: dict[str, str] = {}
    tags: list[dict[str, str]] = []

    for table in schema.tables:
        base = to_pascal_case(table.name)
        if base[0].isdigit():
            base = f"T{base}"
        component = make_unique_name(base, used)
        component_by_table[table.id] = component
        tags.append({"name": component})

        read_schema, create_schema, update_schema = _table_component_schemas(table, schema)
        components[component] = read_schema
        components[f"{component}Create"] = create_schema
        components[f"{component}Update"] = update_schema

    paths: dict[str, Any] = {}
    for table in schema.tables:
        component = component_by_table[table.id]
        op_base = to_snake_case(table.name)
        paths[f"/{op_base}"] = _collection_path(table, component, op_base)

        key = _single_primary_key(table)
        if key is None:
            continue
        param = to_snake_case(key.name)
        key_schema = as_non_nullable(column_json_schema(key, schema))
        paths[f"/{op_base}/{{{param}}}"] = _item_path(table, component, op_base, key, key_schema, param)

    logger.info("Generated OpenAPI document: tables=%d paths=%d", len(schema.tables), len(paths))
    return {
        "openapi": OPENAPI_VERSION,
        "info": {"title": title, "version": version, "description": description},
        "tags": tags,
        "paths": paths,
        "components": {"schemas": components},
    }


def generate_openapi_json(schema: Schema, *, indent: int = 2, **info: str) -> str:
    return json.dumps(generate_openapi_document(schema, **info), indent=indent)
