"""String- and comment-aware scanning primitives for schema source text.

Every helper here runs the same explicit state machine over the text:
NORMAL, LINE_COMMENT (``//`` to end of line), BLOCK_COMMENT (``/* ... */``)
and STRING (one of three quote characters, with backslash escapes). Only
characters seen in the NORMAL state count as code, so delimiters and commas
inside strings or comments never affect depth.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterator

QUOTE_CHARS: tuple[str, ...] = ("'", '"', "`")
OPENERS = "([{"
CLOSERS = ")]}"

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0"}


class ScanState(str, Enum):
    NORMAL = "normal"
    LINE_COMMENT = "line_comment"
    BLOCK_COMMENT = "block_comment"
    STRING = "string"


class Scanner:
    """Walks text one character at a time, tagging each with its scan state.

    ``quote`` and ``escaped`` carry the STRING state's payload. After a walk
    completes, ``state`` holds the terminal state of the scanned region.
    """

    def __init__(self, text: str):
        self.text = text
        self.state = ScanState.NORMAL
        self.quote = ""
        self.escaped = False

    def walk(self, start: int = 0, end: int | None = None) -> Iterator[tuple[int, str, ScanState]]:
        text = self.text
        stop = len(text) if end is None else min(end, len(text))
        i = start
        while i < stop:
            ch = text[i]
            nxt = text[i + 1] if i + 1 < stop else ""

            if self.state is ScanState.NORMAL:
                if ch == "/" and nxt == "/":
                    self.state = ScanState.LINE_COMMENT
                    yield i, ch, ScanState.LINE_COMMENT
                    yield i + 1, nxt, ScanState.LINE_COMMENT
                    i += 2
                    continue
                if ch == "/" and nxt == "*":
                    self.state = ScanState.BLOCK_COMMENT
                    yield i, ch, ScanState.BLOCK_COMMENT
                    yield i + 1, nxt, ScanState.BLOCK_COMMENT
                    i += 2
                    continue
                if ch in QUOTE_CHARS:
                    self.state = ScanState.STRING
                    self.quote = ch
                    self.escaped = False
                    yield i, ch, ScanState.STRING
                    i += 1
                    continue
                yield i, ch, ScanState.NORMAL

            elif self.state is ScanState.LINE_COMMENT:
                if ch == "\n":
                    self.state = ScanState.NORMAL
                    yield i, ch, ScanState.NORMAL
                else:
                    yield i, ch, ScanState.LINE_COMMENT

            elif self.state is ScanState.BLOCK_COMMENT:
                if ch == "*" and nxt == "/":
                    yield i, ch, ScanState.BLOCK_COMMENT
                    yield i + 1, nxt, ScanState.BLOCK_COMMENT
                    self.state = ScanState.NORMAL
                    i += 2
                    continue
                yield i, ch, ScanState.BLOCK_COMMENT

            else:
                yield i, ch, ScanState.STRING
                if self.escaped:
                    self.escaped = False
                elif ch == "\\":
                    self.escaped = True
                elif ch == self.quote:
                    self.state = ScanState.NORMAL
                    self.quote = ""

            i += 1

        # A line comment is closed by end of input as well as by a newline.
        if self.state is ScanState.LINE_COMMENT:
            self.state = ScanState.NORMAL


def match_delimiter(text: str, open_index: int, open_char: str, close_char: str) -> int | None:
    """Return the index of the delimiter closing the one at ``open_index``.

    Returns None when the input ends before depth returns to zero.
    """
    if open_index < 0 or open_index >= len(text) or text[open_index] != open_char:
        return None

    depth = 1
    scanner = Scanner(text)
    for index, ch, state in scanner.walk(open_index + 1):
        if state is not ScanState.NORMAL:
            continue
        if ch == open_char:
            depth += 1
        elif ch == close_char:
            depth -= 1
            if depth == 0:
                return index
    return None


def split_top_level(text: str) -> list[str]:
    """Split on commas that sit outside every bracket, string and comment."""
    segments: list[str] = []
    depth = 0
    start = 0
    scanner = Scanner(text)
    for index, ch, state in scanner.walk():
        if state is not ScanState.NORMAL:
            continue
        if ch in OPENERS:
            depth += 1
        elif ch in CLOSERS:
            depth -= 1
        elif ch == "," and depth == 0:
            segments.append(text[start:index])
            start = index + 1
    segments.append(text[start:])
    return [s.strip() for s in segments if s.strip()]


def find_code_char(text: str, char: str, start: int = 0, end: int | None = None) -> int | None:
    """First index of ``char`` at or after ``start`` that is code, not string or comment."""
    scanner = Scanner(text)
    for index, ch, state in scanner.walk(start, end):
        if state is ScanState.NORMAL and ch == char:
            return index
    return None


def mask_comments(text: str) -> str:
    """Blank out comment characters, keeping offsets and line breaks intact."""
    out: list[str] = []
    scanner = Scanner(text)
    for _index, ch, state in scanner.walk():
        if state in (ScanState.LINE_COMMENT, ScanState.BLOCK_COMMENT) and ch != "\n":
            out.append(" ")
        else:
            out.append(ch)
    return "".join(out)


def mask_literals(text: str) -> str:
    """Blank out comments and string literals, keeping offsets and line breaks intact."""
    out: list[str] = []
    scanner = Scanner(text)
    for _index, ch, state in scanner.walk():
        if state is ScanState.NORMAL or ch == "\n":
            out.append(ch)
        else:
            out.append(" ")
    return "".join(out)


def is_balanced(text: str) -> bool:
    """True when every bracket closes in order and the scan ends in NORMAL state."""
    stack: list[str] = []
    scanner = Scanner(text)
    for _index, ch, state in scanner.walk():
        if state is not ScanState.NORMAL:
            continue
        if ch in OPENERS:
            stack.append(CLOSERS[OPENERS.index(ch)])
        elif ch in CLOSERS:
            if not stack or stack.pop() != ch:
                return False
    return not stack and scanner.state is ScanState.NORMAL


def unquote(literal: str) -> str | None:
    """Decode a single quoted string literal; None if ``literal`` is not one."""
    raw = literal.strip()
    if len(raw) < 2 or raw[0] not in QUOTE_CHARS or raw[-1] != raw[0]:
        return None
    body = raw[1:-1]
    out: list[str] = []
    escaped = False
    for ch in body:
        if escaped:
            out.append(_ESCAPES.get(ch, ch))
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == raw[0]:
            # An unescaped quote means this was more than one literal.
            return None
        else:
            out.append(ch)
    if escaped:
        return None
    return "".join(out)


def quote(value: str, quote_char: str = "'") -> str:
    escaped = value.replace("\\", "\\\\").replace(quote_char, "\\" + quote_char).replace("\n", "\\n")
    return f"{quote_char}{escaped}{quote_char}"
