# To run:
# python -m schema_studio.main export schema.json -o schema.ts
# python -m schema_studio.main import schema.ts -o schema.json


from __future__ import annotations

import argparse
import json
import logging
import sys
import traceback
from pathlib import Path

from schema_studio.config import AppConfig
from schema_studio.drizzle_generator import generate_drizzle_schema
from schema_studio.logging_setup import setup_logging
from schema_studio.openapi_export import generate_openapi_json
from schema_studio.schema_editing import build_preview_schema
from schema_studio.schema_json_io import load_schema_from_json, save_schema_to_json, schema_to_dict
from schema_studio.schema_workspace import SchemaWorkspace

logger = logging.getLogger("main")


def _write_output(text: str, output: str | None) -> None:
    if output:
        Path(output).write_text(text, encoding="utf-8")
        logger.info("Wrote %s", output)
    else:
        sys.stdout.write(text)
        if not text.endswith("\n"):
            sys.stdout.write("\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schema_studio",
        description="Convert schemas between the designer JSON form and Drizzle ORM source.",
    )
    parser.add_argument("--log-level", default=None, help="DEBUG lists fragments skipped during import")
    parser.add_argument("--debug", action="store_true", help="print tracebacks for unexpected errors")
    sub = parser.add_subparsers(dest="command", required=True)

    export_cmd = sub.add_parser("export", help="schema JSON -> Drizzle source")
    export_cmd.add_argument("schema_json")
    export_cmd.add_argument("-o", "--output")

    import_cmd = sub.add_parser("import", help="Drizzle source -> schema JSON")
    import_cmd.add_argument("drizzle_source")
    import_cmd.add_argument("-o", "--output", help="schema JSON path (prints JSON when omitted)")

    openapi_cmd = sub.add_parser("openapi", help="schema JSON -> OpenAPI 3.1 document")
    openapi_cmd.add_argument("schema_json")
    openapi_cmd.add_argument("-o", "--output")

    preview_cmd = sub.add_parser("preview", help="write the users/posts/comments starter schema")
    preview_cmd.add_argument("-o", "--output", help="schema JSON path (prints Drizzle source when omitted)")
    return parser


def _run(args: argparse.Namespace, cfg: AppConfig) -> int:
    if args.command == "export":
        workspace = SchemaWorkspace(load_schema_from_json(args.schema_json))
        result = workspace.export_drizzle()
        if not result.success or result.text is None:
            logger.error(result.message)
            return 1
        _write_output(result.text, args.output)
        return 0

    if args.command == "import":
        source = Path(args.drizzle_source).read_text(encoding="utf-8")
        workspace = SchemaWorkspace()
        result = workspace.import_drizzle(source)
        if not result.success:
            logger.error(result.message)
            return 1
        if args.output:
            save_schema_to_json(workspace.schema, args.output, indent=cfg.json_indent)
            logger.info("Wrote %s", args.output)
        else:
            _write_output(json.dumps(schema_to_dict(workspace.schema), indent=cfg.json_indent), None)
        return 0

    if args.command == "openapi":
        schema = load_schema_from_json(args.schema_json)
        text = generate_openapi_json(
            schema,
            indent=cfg.json_indent,
            title=cfg.openapi_title,
            version=cfg.openapi_version,
            description=cfg.openapi_description,
        )
        _write_output(text, args.output)
        return 0

    schema = build_preview_schema()
    if args.output:
        save_schema_to_json(schema, args.output, indent=cfg.json_indent)
        logger.info("Wrote %s", args.output)
    else:
        _write_output(generate_drizzle_schema(schema), None)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = AppConfig(
        debug=args.debug,
        log_level=args.log_level or AppConfig.log_level,
    )

    setup_logging(cfg.log_level)
    logger.info("Running command '%s'", args.command)

    try:
        return _run(args, cfg)
    except (OSError, ValueError) as exc:
        logger.error("%s", exc)
        if cfg.debug:
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
