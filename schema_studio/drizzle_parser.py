"""Rebuild a Schema from Drizzle ORM schema source.

The input is treated as loosely formatted text rather than a program:
declarations are located with regular expressions, their extents with the
delimiter-matching scanner, and anything not recognised is skipped and noted.
Only structural damage (unbalanced delimiters, no table at all) fails the
whole import.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from schema_studio.error_contract import IMPORT_CONTEXT, actionable_error, format_actionable_error
from schema_studio.relation_inference import (
    IdAllocator,
    RelationSet,
    collection_candidate,
    explicit_pair_candidate,
    foreign_key_candidate,
)
from schema_studio.scanner import (
    find_code_char,
    is_balanced,
    mask_comments,
    mask_literals,
    match_delimiter,
    split_top_level,
    unquote,
)
from schema_studio.schema_model import Column, EnumSpec, Schema, Table, enum_type

logger = logging.getLogger("drizzle_parser")

_IDENT = r"[A-Za-z_$][\w$]*"


def _string_literal(quote_group: str) -> str:
    return rf"""(?P<{quote_group}>['"`])(?:\\.|(?!(?P={quote_group})).)*(?P={quote_group})"""


_ENUM_DECL = re.compile(rf"({_IDENT})\s*=\s*pgEnum\s*\(")
_TABLE_DECL = re.compile(rf"({_IDENT})\s*=\s*(?:pgTable|mysqlTable|sqliteTable)\s*\(")
_RELATIONS_DECL = re.compile(rf"({_IDENT})\s*=\s*relations\s*\(")
_RELATION_CALL = re.compile(r"(?<![\w$.])(one|many)\s*\(")

_LEADING_STRING = re.compile(rf"\s*{_string_literal('q')}", re.DOTALL)
_ENTRY = re.compile(
    rf"^(?:({_IDENT})|(?P<key>{_string_literal('q')}))\s*:\s*(?P<expr>.+)$",
    re.DOTALL,
)
_LEADING_CALL = re.compile(rf"^({_IDENT})\s*")
_IDENT_ONLY = re.compile(rf"^{_IDENT}$")
_DOT_MEMBER = re.compile(rf"^\s*({_IDENT})\s*\.\s*({_IDENT})\s*$")
_INDEX_MEMBER = re.compile(
    rf"^\s*({_IDENT})\s*\[\s*(?P<key>{_string_literal('q')})\s*\]\s*$",
    re.DOTALL,
)

_NOT_NULL = re.compile(r"\.\s*notNull\s*\(\s*\)")
_PRIMARY_KEY = re.compile(r"\.\s*primaryKey\s*\(\s*\)")
_UNIQUE = re.compile(r"\.\s*unique\s*\(\s*\)")
_REFERENCES = re.compile(r"\.\s*references\s*\(")
_ARROW_PREFIX = re.compile(r"^\s*\(\s*\)\s*=>\s*")
_FIELDS = re.compile(r"(?<![\w$])fields\s*:\s*\[")
_REFERENCES_KEY = re.compile(r"(?<![\w$])references\s*:\s*\[")

AUTO_INCREMENT_KEYWORDS: tuple[str, ...] = ("serial", "bigserial", "smallserial")
DEFAULT_COLUMN_TYPE = "text"

# Drizzle column constructor -> internal column type
TYPE_KEYWORDS: dict[str, str] = {
    "integer": "integer",
    "varchar": "varchar",
    "text": "text",
    "boolean": "boolean",
    "timestamp": "timestamp",
    "date": "date",
    "jsonb": "json",
    "json": "json",
}


@dataclass(frozen=True)
class ParseResult:
    ok: bool
    schema: Schema | None = None
    error: str | None = None
    skipped: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PendingReference:
    # referencing side (the column carrying .references())
    source_decl: str
    source_property: str

    # referenced side
    target_decl: str
    target_property: str


@dataclass
class ParsedTable:
    decl: str
    table: Table
    columns_by_property: dict[str, Column]


def _parse_error(location: str, issue: str, hint: str) -> ValueError:
    return actionable_error(IMPORT_CONTEXT, location, issue, hint)


def _line_of(text: str, index: int) -> int:
    return text.count("\n", 0, index) + 1


def parse_member(text: str) -> tuple[str, str] | None:
    """``users.id`` or ``users['id']`` -> ("users", "id")."""
    m = _DOT_MEMBER.match(text)
    if m:
        return m.group(1), m.group(2)
    m = _INDEX_MEMBER.match(text)
    if m:
        key = unquote(m.group("key"))
        if key is not None:
            return m.group(1), key
    return None


def _property_name(m: re.Match) -> str | None:
    if m.group(1):
        return m.group(1)
    return unquote(m.group("key"))


def _bracket_list(text: str, code: str, pattern: re.Pattern) -> list[str] | None:
    m = pattern.search(code)
    if m is None:
        return None
    open_index = m.end() - 1
    close_index = match_delimiter(text, open_index, "[", "]")
    if close_index is None:
        return None
    return split_top_level(text[open_index + 1:close_index])


class _ParseSession:
    """All state for one parse call; nothing outlives it."""

    def __init__(self, source: str):
        self.text = mask_comments(source)
        self.code = mask_literals(source)
        self.ids = IdAllocator()
        self.enums_by_decl: dict[str, EnumSpec] = {}
        self.enums: list[EnumSpec] = []
        self.tables: list[ParsedTable] = []
        self.tables_by_decl: dict[str, ParsedTable] = {}
        self.pending: list[PendingReference] = []
        self.relations = RelationSet(self.ids)
        self.skipped: list[str] = []

    def skip(self, message: str, *args: object) -> None:
        note = message % args if args else message
        self.skipped.append(note)
        logger.debug("Skipped: %s", note)

    def _call_extent(self, match: re.Match, kind: str) -> tuple[int, int]:
        open_index = match.end() - 1
        close_index = match_delimiter(self.text, open_index, "(", ")")
        if close_index is None:
            raise _parse_error(
                f"{kind} '{match.group(1)}' (line {_line_of(self.text, match.start())})",
                "the argument list is never closed",
                "balance the parentheses, braces and brackets of the declaration",
            )
        if not is_balanced(self.text[open_index:close_index + 1]):
            raise _parse_error(
                f"{kind} '{match.group(1)}' (line {_line_of(self.text, match.start())})",
                "brackets inside the argument list do not match",
                "close every brace and bracket before the closing parenthesis",
            )
        return open_index, close_index

    # -- enums --------------------------------------------------------------

    def parse_enums(self) -> None:
        for m in _ENUM_DECL.finditer(self.code):
            decl = m.group(1)
            open_index, close_index = self._call_extent(m, "Enum declaration")
            args = split_top_level(self.text[open_index + 1:close_index])
            name = unquote(args[0]) if args else None
            if name is None:
                self.skip("enum '%s' has no name literal", decl)
                continue
            values: list[str] = []
            if len(args) > 1 and args[1].startswith("["):
                close = match_delimiter(args[1], 0, "[", "]")
                if close is not None:
                    for item in split_top_level(args[1][1:close]):
                        value = unquote(item)
                        if value is not None:
                            values.append(value)
            spec = EnumSpec(name=name, values=values)
            self.enums_by_decl[decl] = spec
            self.enums.append(spec)

    # -- tables -------------------------------------------------------------

    def parse_tables(self) -> None:
        for m in _TABLE_DECL.finditer(self.code):
            decl = m.group(1)
            open_index, close_index = self._call_extent(m, "Table declaration")
            args = self.text[open_index + 1:close_index]

            name_match = _LEADING_STRING.match(args)
            name = unquote(name_match.group(0)) if name_match else None
            if name is None:
                self.skip("table '%s' has no leading name literal", decl)
                continue

            brace = find_code_char(args, "{", name_match.end())
            if brace is None:
                self.skip("table '%s' has no column object", decl)
                continue
            brace_close = match_delimiter(args, brace, "{", "}")
            if brace_close is None:
                raise _parse_error(
                    f"Table declaration '{decl}' (line {_line_of(self.text, m.start())})",
                    "the column object is never closed",
                    "balance the braces of the column object",
                )

            table_id = self.ids.next("table")
            columns: list[Column] = []
            by_property: dict[str, Column] = {}
            for entry in split_top_level(args[brace + 1:brace_close]):
                parsed = self._parse_column(decl, entry)
                if parsed is None:
                    continue
                prop, column = parsed
                columns.append(column)
                by_property[prop] = column

            parsed_table = ParsedTable(
                decl=decl,
                table=Table(id=table_id, name=name, columns=columns),
                columns_by_property=by_property,
            )
            self.tables.append(parsed_table)
            self.tables_by_decl[decl] = parsed_table

    def _parse_column(self, decl: str, entry: str) -> tuple[str, Column] | None:
        m = _ENTRY.match(entry)
        prop = _property_name(m) if m else None
        if m is None or prop is None:
            self.skip("entry %r in table '%s' is not 'name: expression'", entry[:40], decl)
            return None

        expr = m.group("expr").strip()
        code = mask_literals(expr)
        call = _LEADING_CALL.match(code)
        if call is None:
            self.skip("column '%s.%s' has no leading constructor", decl, prop)
            return None
        keyword = call.group(1)

        name = prop
        if call.end() < len(expr) and expr[call.end()] == "(":
            close = match_delimiter(expr, call.end(), "(", ")")
            if close is not None:
                call_args = split_top_level(expr[call.end() + 1:close])
                literal = unquote(call_args[0]) if call_args else None
                if literal is not None:
                    name = literal

        nullable = _NOT_NULL.search(code) is None
        primary_key = _PRIMARY_KEY.search(code) is not None
        unique = _UNIQUE.search(code) is not None
        auto_increment = False

        if keyword in AUTO_INCREMENT_KEYWORDS:
            column_type = "integer"
            nullable = False
            primary_key = True
            auto_increment = True
        elif keyword in self.enums_by_decl:
            column_type = enum_type(self.enums_by_decl[keyword].name)
        elif keyword in TYPE_KEYWORDS:
            column_type = TYPE_KEYWORDS[keyword]
        else:
            logger.debug("Unknown type keyword '%s' on %s.%s; using %s", keyword, decl, prop, DEFAULT_COLUMN_TYPE)
            column_type = DEFAULT_COLUMN_TYPE

        ref = _REFERENCES.search(code)
        if ref is not None:
            self._record_reference(decl, prop, expr, ref.end() - 1)

        column = Column(
            id=self.ids.next("col"),
            name=name,
            type=column_type,
            nullable=nullable,
            primary_key=primary_key,
            unique=unique,
            auto_increment=auto_increment,
        )
        return prop, column

    def _record_reference(self, decl: str, prop: str, expr: str, open_index: int) -> None:
        close = match_delimiter(expr, open_index, "(", ")")
        if close is None:
            self.skip("reference on '%s.%s' is not closed", decl, prop)
            return
        ref_args = split_top_level(expr[open_index + 1:close])
        arrow = _ARROW_PREFIX.match(ref_args[0]) if ref_args else None
        member = parse_member(ref_args[0][arrow.end():]) if arrow else None
        if member is None:
            self.skip("reference on '%s.%s' is not '() => table.column'", decl, prop)
            return
        self.pending.append(
            PendingReference(
                source_decl=decl,
                source_property=prop,
                target_decl=member[0],
                target_property=member[1],
            )
        )

    # -- relations ----------------------------------------------------------

    def _lookup(self, decl: str, prop: str) -> tuple[Table, Column] | None:
        parsed = self.tables_by_decl.get(decl)
        if parsed is None:
            return None
        column = parsed.columns_by_property.get(prop)
        if column is None:
            return None
        return parsed.table, column

    def resolve_inline_references(self) -> None:
        for ref in self.pending:
            source = self._lookup(ref.source_decl, ref.source_property)
            target = self._lookup(ref.target_decl, ref.target_property)
            if source is None or target is None:
                self.skip(
                    "reference %s.%s -> %s.%s does not resolve",
                    ref.source_decl,
                    ref.source_property,
                    ref.target_decl,
                    ref.target_property,
                )
                continue
            self.relations.add(
                foreign_key_candidate(target[0], target[1], source[0], source[1], origin="inline reference")
            )

    def parse_relation_blocks(self) -> None:
        """Read every relations() block.

        one() calls name both columns and are taken first, across all blocks.
        many() calls only name a table, so their foreign key is a guess; they
        are resolved afterwards and dropped when the two tables are already
        linked.
        """
        collections: list[tuple[str, ParsedTable, str]] = []
        for m in _RELATIONS_DECL.finditer(self.code):
            decl = m.group(1)
            open_index, close_index = self._call_extent(m, "Relations declaration")
            args_text = self.text[open_index + 1:close_index]
            args_code = self.code[open_index + 1:close_index]

            args = split_top_level(args_text)
            base_decl = args[0] if args else ""
            base = self.tables_by_decl.get(base_decl) if _IDENT_ONLY.match(base_decl) else None
            if base is None:
                self.skip("relations '%s' names unknown table %r", decl, base_decl)
                continue

            for call in _RELATION_CALL.finditer(args_code):
                call_open = call.end() - 1
                call_close = match_delimiter(args_text, call_open, "(", ")")
                if call_close is None:
                    self.skip("%s() call in relations '%s' is not closed", call.group(1), decl)
                    continue
                call_text = args_text[call_open + 1:call_close]
                call_code = args_code[call_open + 1:call_close]
                if call.group(1) == "one":
                    self._add_scalar_reference(decl, call_text, call_code)
                else:
                    collections.append((decl, base, call_text))

        for decl, base, call_text in collections:
            self._add_collection_reference(decl, base, call_text)

    def _add_scalar_reference(self, decl: str, call_text: str, call_code: str) -> None:
        fields = _bracket_list(call_text, call_code, _FIELDS)
        references = _bracket_list(call_text, call_code, _REFERENCES_KEY)
        fields_member = parse_member(fields[0]) if fields else None
        references_member = parse_member(references[0]) if references else None
        if fields_member is None or references_member is None:
            self.skip("one() in relations '%s' has no fields/references pair", decl)
            return

        fields_side = self._lookup(*fields_member)
        references_side = self._lookup(*references_member)
        if fields_side is None or references_side is None:
            self.skip(
                "one() in relations '%s' names unknown columns %s.%s / %s.%s",
                decl,
                fields_member[0],
                fields_member[1],
                references_member[0],
                references_member[1],
            )
            return
        self.relations.add(
            explicit_pair_candidate(
                fields_side[0],
                fields_side[1],
                references_side[0],
                references_side[1],
                origin=f"relations '{decl}'",
            )
        )

    def _add_collection_reference(self, decl: str, base: ParsedTable, call_text: str) -> None:
        call_args = split_top_level(call_text)
        target_decl = call_args[0] if call_args else ""
        target = self.tables_by_decl.get(target_decl) if _IDENT_ONLY.match(target_decl) else None
        if target is None:
            self.skip("many() in relations '%s' names unknown table %r", decl, target_decl)
            return
        if self.relations.links_tables(base.table.id, target.table.id):
            logger.debug(
                "many(%s) in relations '%s' already covered by a relation between '%s' and '%s'",
                target_decl,
                decl,
                base.table.name,
                target.table.name,
            )
            return
        candidate = collection_candidate(base.table, target.table, origin=f"relations '{decl}'")
        if candidate is None:
            self.skip(
                "many(%s) in relations '%s' has no foreign key column back to '%s'",
                target_decl,
                decl,
                base.table.name,
            )
            return
        self.relations.add(candidate)

    # -- pipeline -----------------------------------------------------------

    def run(self) -> Schema:
        self.parse_enums()
        self.parse_tables()
        if not self.tables:
            raise _parse_error(
                "Table declarations",
                "no table declarations were found",
                "provide source with at least one `name = pgTable('name', { ... })` declaration",
            )
        self.resolve_inline_references()
        self.parse_relation_blocks()
        return Schema(
            tables=[p.table for p in self.tables],
            relations=self.relations.to_list(),
            enums=list(self.enums),
        )


def parse_drizzle_schema(source: str) -> ParseResult:
    """Parse Drizzle schema source into a fresh Schema.

    Never raises for bad input: structural problems come back as
    ``ParseResult(ok=False, error=...)`` and fragments that could not be
    understood are listed in ``skipped``.
    """
    if not isinstance(source, str):
        return ParseResult(
            ok=False,
            error=format_actionable_error(
                IMPORT_CONTEXT,
                "Source",
                "schema source must be text",
                "paste the contents of a Drizzle schema file",
            ),
        )

    session = _ParseSession(source)
    try:
        schema = session.run()
    except ValueError as exc:
        logger.warning("Drizzle import failed: %s", exc)
        return ParseResult(ok=False, error=str(exc), skipped=list(session.skipped))

    logger.info(
        "Parsed Drizzle schema: tables=%d relations=%d enums=%d skipped=%d",
        len(schema.tables),
        len(schema.relations),
        len(schema.enums),
        len(session.skipped),
    )
    return ParseResult(ok=True, schema=schema, skipped=list(session.skipped))
