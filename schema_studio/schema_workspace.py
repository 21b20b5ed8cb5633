from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from schema_studio import schema_editing
from schema_studio.drizzle_generator import generate_drizzle_schema
from schema_studio.drizzle_parser import parse_drizzle_schema
from schema_studio.error_contract import EXPORT_CONTEXT, coerce_actionable_message
from schema_studio.schema_model import Position, Schema, validate_schema

logger = logging.getLogger("schema_workspace")


@dataclass(frozen=True)
class CodecResult:
    success: bool
    message: str
    text: str | None = None
    schema: Schema | None = None


class SchemaWorkspace:
    """Owns the live schema a designer is editing.

    Edits go through ``schema_editing`` and swap in the returned schema; a
    failed edit raises and leaves the current schema as it was. Drizzle
    import replaces the live schema only when parsing succeeds.
    """

    def __init__(self, schema: Schema | None = None):
        self.schema = schema if schema is not None else Schema()

    @classmethod
    def with_preview(cls) -> "SchemaWorkspace":
        return cls(schema_editing.build_preview_schema())

    def clear(self) -> None:
        self.schema = Schema()

    # -- codec requests -----------------------------------------------------

    def export_drizzle(self) -> CodecResult:
        if not self.schema.tables:
            return CodecResult(False, "Nothing to export: the schema has no tables.")
        try:
            validate_schema(self.schema)
        except ValueError as exc:
            logger.warning("Export blocked by invalid schema: %s", exc)
            message = coerce_actionable_message(
                EXPORT_CONTEXT, exc, location="Schema", hint="correct the schema and export again"
            )
            return CodecResult(False, message)
        text = generate_drizzle_schema(self.schema)
        return CodecResult(True, f"Exported {len(self.schema.tables)} table(s).", text=text)

    def import_drizzle(self, text: str) -> CodecResult:
        result = parse_drizzle_schema(text)
        if not result.ok or result.schema is None:
            return CodecResult(False, result.error or "Import failed.")

        self.schema = result.schema
        message = (
            f"Imported {len(result.schema.tables)} table(s) and "
            f"{len(result.schema.relations)} relation(s)."
        )
        if result.skipped:
            message += f" Skipped {len(result.skipped)} fragment(s)."
        logger.info("Drizzle import: %s", message)
        return CodecResult(True, message, schema=result.schema)

    # -- edits ----------------------------------------------------------------

    def add_table(self, *, name_value: Any = None) -> str:
        self.schema = schema_editing.add_table(self.schema, name_value=name_value)
        return self.schema.tables[-1].id

    def update_table(
        self,
        table_id: str,
        *,
        name_value: Any = None,
        position: Position | None = None,
        width: int | None = None,
    ) -> None:
        self.schema = schema_editing.update_table(
            self.schema, table_id, name_value=name_value, position=position, width=width
        )

    def delete_table(self, table_id: str) -> None:
        self.schema = schema_editing.delete_table(self.schema, table_id)

    def add_column(self, table_id: str, **attributes: Any) -> str:
        self.schema = schema_editing.add_column(self.schema, table_id, **attributes)
        table = next(t for t in self.schema.tables if t.id == table_id)
        return table.columns[-1].id

    def update_column(self, table_id: str, column_id: str, **changes: Any) -> None:
        self.schema = schema_editing.update_column(self.schema, table_id, column_id, **changes)

    def delete_column(self, table_id: str, column_id: str) -> None:
        self.schema = schema_editing.delete_column(self.schema, table_id, column_id)

    def add_relation(
        self,
        from_table_id: str,
        from_column_id: str,
        to_table_id: str,
        to_column_id: str,
        type_value: Any = "one-to-many",
    ) -> str:
        self.schema = schema_editing.add_relation(
            self.schema,
            from_table_id=from_table_id,
            from_column_id=from_column_id,
            to_table_id=to_table_id,
            to_column_id=to_column_id,
            type_value=type_value,
        )
        return self.schema.relations[-1].id

    def update_relation(self, relation_id: str, **changes: Any) -> None:
        self.schema = schema_editing.update_relation(self.schema, relation_id, **changes)

    def delete_relation(self, relation_id: str) -> None:
        self.schema = schema_editing.delete_relation(self.schema, relation_id)
