"""Actionable error messages: ``<Context> / <Location>: <issue>. Fix: <hint>.``"""

from __future__ import annotations

import re

IMPORT_CONTEXT = "Drizzle import"
EXPORT_CONTEXT = "Drizzle export"
EDITOR_CONTEXT = "Schema editor"
JSON_CONTEXT = "Schema JSON"

ACTIONABLE_ERROR_PATTERN = re.compile(
    r"^(?P<where>[^:\n]+): (?P<issue>.+)\. Fix: (?P<hint>.+)\.$",
    re.DOTALL,
)


def _sentence(value: object, default: str) -> str:
    text = str(value).strip().rstrip(".").strip()
    return text or default


def format_actionable_error(context: str, location: str, issue: str, hint: str) -> str:
    where = _sentence(location, "Unknown")
    context_text = str(context).strip()
    if context_text:
        where = f"{context_text} / {where}"
    return f"{where}: {_sentence(issue, 'unknown issue')}. Fix: {_sentence(hint, 'review the input and retry')}."


def actionable_error(context: str, location: str, issue: str, hint: str) -> ValueError:
    return ValueError(format_actionable_error(context, location, issue, hint))


def is_actionable_message(message: str) -> bool:
    return ACTIONABLE_ERROR_PATTERN.match(str(message).strip()) is not None


def coerce_actionable_message(context: str, raw_message: object, *, location: str, hint: str) -> str:
    """Pass actionable text through; wrap anything else as the issue of a new message."""
    text = str(raw_message).strip()
    if is_actionable_message(text):
        return text
    return format_actionable_error(context, location, text, hint)
