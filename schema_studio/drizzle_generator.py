from __future__ import annotations

import logging
import re

from schema_studio.scanner import quote
from schema_studio.schema_model import Column, Relation, Schema, Table, enum_name_of, find_column

logger = logging.getLogger("drizzle_generator")

VARCHAR_LENGTH = 255
AUTO_INCREMENT_KEYWORD = "serial"

_PG_CORE_IMPORTS: tuple[str, ...] = (
    "pgTable",
    "text",
    "integer",
    "boolean",
    "timestamp",
    "date",
    "jsonb",
    "varchar",
    "serial",
)

# internal column type -> Drizzle column constructor
_DRIZZLE_TYPES: dict[str, str] = {
    "integer": "integer",
    "varchar": "varchar",
    "text": "text",
    "boolean": "boolean",
    "timestamp": "timestamp",
    "date": "date",
    "json": "jsonb",
}

_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

# names a declaration may not take in the generated module
_RESERVED_IDENTIFIERS: frozenset[str] = frozenset(
    {*_PG_CORE_IMPORTS, "pgEnum", "relations", "one", "many"}
    | {
        "break", "case", "catch", "class", "const", "continue", "debugger", "default",
        "delete", "do", "else", "enum", "export", "extends", "false", "finally", "for",
        "function", "if", "import", "in", "instanceof", "let", "new", "null", "return",
        "super", "switch", "this", "throw", "true", "try", "typeof", "var", "void",
        "while", "with", "yield",
    }
)


def sanitize_identifier(name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "", name)


def _unique_identifier(base: str, used: set[str], *, fallback: str) -> str:
    ident = base or fallback
    if ident[0].isdigit():
        ident = f"{fallback}{ident}"
    candidate = ident
    i = 2
    while candidate in used or candidate in _RESERVED_IDENTIFIERS:
        candidate = f"{ident}{i}"
        i += 1
    used.add(candidate)
    return candidate


def _property_key(name: str) -> str:
    return name if _IDENTIFIER.match(name) else quote(name)


def _lower_first(value: str) -> str:
    return value[:1].lower() + value[1:]


def column_expression(column: Column, *, enum_identifiers: dict[str, str]) -> str:
    enum_name = enum_name_of(column.type)
    enum_ident = enum_identifiers.get(enum_name) if enum_name is not None else None
    keyword = _DRIZZLE_TYPES.get(column.type, "text")

    if enum_ident is not None:
        expr = f"{enum_ident}({quote(column.name)})"
    elif column.auto_increment and keyword == "integer":
        expr = AUTO_INCREMENT_KEYWORD
    elif keyword == "varchar":
        expr = f"varchar({quote(column.name)}, {{ length: {VARCHAR_LENGTH} }})"
    else:
        expr = f"{keyword}({quote(column.name)})"

    modifiers: list[str] = []
    if not column.nullable:
        modifiers.append(".notNull()")
    if column.unique:
        modifiers.append(".unique()")
    if column.primary_key and not column.auto_increment:
        modifiers.append(".primaryKey()")
    return expr + "".join(modifiers)


def _import_header(schema: Schema) -> str:
    names = list(_PG_CORE_IMPORTS)
    if schema.enums:
        names.append("pgEnum")
    code = "import { " + ", ".join(names) + " } from 'drizzle-orm/pg-core'\n"
    code += "import { relations } from 'drizzle-orm'\n\n"
    return code


def _enum_declarations(schema: Schema, used: set[str]) -> tuple[str, dict[str, str]]:
    identifiers: dict[str, str] = {}
    lines: list[str] = []
    for spec in schema.enums:
        base = _lower_first(sanitize_identifier(spec.name))
        ident = _unique_identifier(f"{base}Enum" if base else "", used, fallback="enum")
        identifiers[spec.name] = ident
        values = ", ".join(quote(v) for v in spec.values)
        lines.append(f"export const {ident} = pgEnum({quote(spec.name)}, [{values}])\n")
    if not lines:
        return "", identifiers
    return "".join(lines) + "\n", identifiers


def _table_declaration(table: Table, ident: str, enum_identifiers: dict[str, str]) -> str:
    code = f"export const {ident} = pgTable({quote(table.name)}, {{\n"
    for column in table.columns:
        expr = column_expression(column, enum_identifiers=enum_identifiers)
        code += f"  {_property_key(column.name)}: {expr},\n"
    code += "})\n"
    return code


def _field_name(base: str, used: set[str]) -> str:
    name = base
    i = 2
    while name in used:
        name = f"{base}{i}"
        i += 1
    used.add(name)
    return name


def _scalar_reference(field: str, target_ident: str, fields: str, references: str) -> str:
    return (
        f"  {field}: one({target_ident}, {{\n"
        f"    fields: [{fields}],\n"
        f"    references: [{references}],\n"
        "  }),\n"
    )


def _relation_block(
    table: Table,
    schema: Schema,
    table_idents: dict[str, str],
    tables_by_id: dict[str, Table],
) -> str:
    ident = table_idents[table.id]
    outgoing = [r for r in schema.relations if r.from_table_id == table.id]
    incoming = [r for r in schema.relations if r.to_table_id == table.id]
    if not outgoing and not incoming:
        return ""

    used: set[str] = set()
    code = f"export const {ident}Relations = relations({ident}, ({{ one, many }}) => ({{\n"

    for relation in outgoing:
        resolved = _resolve(relation, tables_by_id)
        if resolved is None:
            continue
        from_col, to_table, to_col = resolved
        to_ident = table_idents[to_table.id]
        base = _lower_first(to_ident) + ("s" if relation.type == "many-to-many" else "")
        field = _field_name(base, used)
        if relation.type == "one-to-one":
            code += _scalar_reference(
                field,
                to_ident,
                f"{ident}.{_member(from_col.name)}",
                f"{to_ident}.{_member(to_col.name)}",
            )
        else:
            code += f"  {field}: many({to_ident}),\n"

    for relation in incoming:
        resolved = _resolve(relation, tables_by_id)
        if resolved is None:
            continue
        from_col, _to_table, to_col = resolved
        from_ident = table_idents[relation.from_table_id]
        field = _field_name(_lower_first(from_ident), used)
        code += _scalar_reference(
            field,
            from_ident,
            f"{ident}.{_member(to_col.name)}",
            f"{from_ident}.{_member(from_col.name)}",
        )

    code += "}))\n"
    return code


def _member(column_name: str) -> str:
    return column_name if _IDENTIFIER.match(column_name) else f"[{quote(column_name)}]"


def _resolve(relation: Relation, tables_by_id: dict[str, Table]) -> tuple[Column, Table, Column] | None:
    from_table = tables_by_id.get(relation.from_table_id)
    to_table = tables_by_id.get(relation.to_table_id)
    if from_table is None or to_table is None:
        return None
    from_col = find_column(from_table, relation.from_column_id)
    to_col = find_column(to_table, relation.to_column_id)
    if from_col is None or to_col is None:
        return None
    return from_col, to_table, to_col


def generate_drizzle_schema(schema: Schema) -> str:
    """Render ``schema`` as Drizzle ORM (pg-core) TypeScript source.

    Output depends only on the order tables, columns, relations and enums are
    stored in; UI layout attributes are not written.
    """
    code = _import_header(schema)

    used_idents: set[str] = set()
    enum_code, enum_identifiers = _enum_declarations(schema, used_idents)
    code += enum_code

    table_idents: dict[str, str] = {}
    for table in schema.tables:
        table_idents[table.id] = _unique_identifier(
            sanitize_identifier(table.name), used_idents, fallback="table"
        )
    tables_by_id = {t.id: t for t in schema.tables}

    declarations = [
        _table_declaration(table, table_idents[table.id], enum_identifiers)
        for table in schema.tables
    ]
    code += "\n".join(declarations) + "\n"

    if schema.relations:
        code += "// Relations\n\n"
        for table in schema.tables:
            block = _relation_block(table, schema, table_idents, tables_by_id)
            if block:
                code += block + "\n"

    logger.info(
        "Generated Drizzle schema: tables=%d relations=%d enums=%d",
        len(schema.tables),
        len(schema.relations),
        len(schema.enums),
    )
    return code
