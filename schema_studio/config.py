from dataclasses import dataclass

@dataclass(frozen=True)
class AppConfig:
    debug: bool = False
    log_level: str = "INFO"  # DEBUG also lists skipped fragments during import
    json_indent: int = 2
    openapi_title: str = "Generated API"
    openapi_version: str = "0.1.0"
    openapi_description: str = "Generated from Drizzle schema"
