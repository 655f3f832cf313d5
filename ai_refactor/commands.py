"""Parse agent replies into edit commands.

The reply is free text with a closed set of XML-like tags embedded in it::

    <SHOW path="./a.ts"/>   <HIDE id="3"/>   <REMOVE path="./old.ts"/>
    <WRITE path="./a.ts">...</WRITE>
    <PATCH path="./a.ts">
    <<<<<<< SEARCH
    ...
    =======
    ...
    >>>>>>> REPLACE
    </PATCH>
    <RUN>make test</RUN>   <omit file="./b.ts"/>   <omit path="./lib">x.ts</omit>
    <EDIT id="2">...</EDIT>  <INSERT id="2">  <APPEND id="2">  <SPLICE id="2-5">  <DONE/>

A small scanner walks the text; each tag is parsed by ``_Parser._tag``.
Block bodies are taken verbatim up to the matching close tag (case-insensitive),
so code inside a body is never re-parsed as commands. Unknown tags are logged
and skipped. A command missing a required attribute is skipped on its own.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from .chunks import split_chunks
from .errors import MalformedCommand
from .files import norm_line_endings
from .utils import dbg, report_skip, warn


@dataclass
class SearchReplace:
    search: str
    replace: str


@dataclass
class WriteCommand:
    path: str
    content: str


@dataclass
class PatchCommand:
    path: str
    operations: List[SearchReplace]


@dataclass
class RemoveCommand:
    path: str


@dataclass
class ShowCommand:
    path: str = ""
    ids: List[int] = field(default_factory=list)


@dataclass
class HideCommand:
    path: str = ""
    ids: List[int] = field(default_factory=list)


@dataclass
class OmitCommand:
    files: List[str]


@dataclass
class RunCommand:
    command: str


@dataclass
class ChunkEditCommand:
    op: str  # edit | insert | append | splice
    start: int
    end: int
    texts: List[str]


@dataclass
class DoneCommand:
    pass


EditCommand = Union[WriteCommand, PatchCommand, RemoveCommand]
Command = Union[
    WriteCommand,
    PatchCommand,
    RemoveCommand,
    ShowCommand,
    HideCommand,
    OmitCommand,
    RunCommand,
    ChunkEditCommand,
    DoneCommand,
]


@dataclass
class ParseResult:
    commands: List[Command] = field(default_factory=list)
    skipped: List[MalformedCommand] = field(default_factory=list)
    unknown: List[str] = field(default_factory=list)

    def report(self) -> None:
        for err in self.skipped:
            report_skip(err.path or f"<{err.tag}>", err.reason)
        for name in self.unknown:
            warn(f"unknown tag <{name}> skipped")


# Tags whose body is part of the command; they need a close tag.
_BLOCK_TAGS = {"write", "patch", "run", "edit", "insert", "append", "splice"}
# Tags that only carry attributes; self-closing or paired.
_ATTR_TAGS = {"show", "hide", "remove", "delete", "omit", "done"}
_TAG_ALIASES = {"delete": "remove"}

_NAME_RE = re.compile(r"[A-Za-z][A-Za-z0-9_-]*")
_ATTR_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_-]*")
_SEARCH_RE = re.compile(r"^\s*<<<<<<<\s*SEARCH\s*$", re.IGNORECASE)
_DIVIDER_RE = re.compile(r"^\s*=======\s*$")
_REPLACE_RE = re.compile(r"^\s*>>>>>>>\s*REPLACE\s*$", re.IGNORECASE)


class _Scanner:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def eof(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self, n: int = 1) -> str:
        return self.text[self.pos:self.pos + n]

    def startswith(self, s: str) -> bool:
        return self.text.startswith(s, self.pos)

    def skip_ws(self) -> None:
        while not self.eof() and self.text[self.pos].isspace():
            self.pos += 1

    def match(self, pattern: "re.Pattern[str]") -> Optional[str]:
        m = pattern.match(self.text, self.pos)
        if not m:
            return None
        self.pos = m.end()
        return m.group(0)

    def until_any(self, stops: str) -> str:
        start = self.pos
        while not self.eof() and self.text[self.pos] not in stops:
            self.pos += 1
        return self.text[start:self.pos]

    def next_tag_start(self) -> int:
        i = self.text.find("<", self.pos)
        while i != -1:
            nxt = self.text[i + 1:i + 2]
            if nxt.isalpha():
                return i
            i = self.text.find("<", i + 1)
        return -1


class _Parser:
    def __init__(self, text: str):
        self.s = _Scanner(text or "")
        self.result = ParseResult()

    def parse(self) -> ParseResult:
        while True:
            start = self.s.next_tag_start()
            if start < 0:
                break
            self.s.pos = start
            self._tag()
        return self.result

    # tag := '<' NAME attrs ( '/>' | '>' [ body '</' NAME '>' ] )
    def _tag(self) -> None:
        s = self.s
        start = s.pos
        s.pos += 1
        name = s.match(_NAME_RE) or ""
        key = name.lower()
        if key not in _BLOCK_TAGS and key not in _ATTR_TAGS:
            self.result.unknown.append(name)
            dbg(f"commands: unknown tag <{name}> skipped")
            return
        attrs, closed = self._attrs()
        if closed is None:
            self._skip(MalformedCommand(name, "unterminated tag"), start + 1)
            return
        body = ""
        if closed == ">":
            found = self._body(name, bounded=key in _ATTR_TAGS)
            if found is None and key in _BLOCK_TAGS:
                self._skip(MalformedCommand(name, f"missing </{name}>", attrs.get("path") or attrs.get("file") or ""), s.pos)
                return
            body = found or ""
        try:
            self.result.commands.append(self._build(_TAG_ALIASES.get(key, key), name, attrs, body))
        except MalformedCommand as exc:
            self.result.skipped.append(exc)
            dbg(f"commands: skipped {exc}")

    def _skip(self, err: MalformedCommand, resume: int) -> None:
        self.result.skipped.append(err)
        dbg(f"commands: skipped {err}")
        self.s.pos = resume

    # attrs := ( NAME [ '=' value ] )*   value := "..." | '...' | bare
    def _attrs(self) -> Tuple[Dict[str, str], Optional[str]]:
        s = self.s
        attrs: Dict[str, str] = {}
        while True:
            s.skip_ws()
            if s.eof():
                return attrs, None
            if s.startswith("/>"):
                s.pos += 2
                return attrs, "/>"
            if s.startswith(">"):
                s.pos += 1
                return attrs, ">"
            if s.peek() == "<":
                return attrs, None
            name = s.match(_ATTR_NAME_RE)
            if not name:
                s.pos += 1
                continue
            s.skip_ws()
            value = ""
            if s.peek() == "=":
                s.pos += 1
                s.skip_ws()
                value = self._value()
                if value.endswith("/") and s.peek() == ">":
                    # <REMOVE path=a.txt/>
                    value = value[:-1]
                    s.pos -= 1
            attrs[name.lower()] = value

    def _value(self) -> str:
        s = self.s
        quote = s.peek()
        if quote in ("\"", "'"):
            s.pos += 1
            value = s.until_any(quote)
            s.pos += 1
            return value
        return s.until_any(" \t\r\n>")

    def _body(self, name: str, bounded: bool = False) -> Optional[str]:
        """Text up to ``</NAME>``. A bounded body may not contain another tag;
        without a close tag before it, ``pos`` stays after the opening ``>``."""
        s = self.s
        close = re.compile(r"</\s*" + re.escape(name) + r"\s*>", re.IGNORECASE)
        limit = s.next_tag_start() if bounded else -1
        m = close.search(s.text, s.pos, limit if limit >= 0 else len(s.text))
        if not m:
            return None
        body = s.text[s.pos:m.start()]
        s.pos = m.end()
        return body

    def _build(self, key: str, name: str, attrs: Dict[str, str], body: str) -> Command:
        path = attrs.get("path") or attrs.get("file") or ""
        if key == "write":
            _require(name, path, "missing path attribute")
            return WriteCommand(path, body)
        if key == "patch":
            _require(name, path, "missing path attribute")
            try:
                ops = parse_search_replace(body)
            except MalformedCommand as exc:
                raise MalformedCommand(name, exc.reason, path)
            return PatchCommand(path, ops)
        if key == "remove":
            _require(name, path, "missing path attribute")
            return RemoveCommand(path)
        if key in ("show", "hide"):
            ids = _parse_ids(name, attrs.get("id", ""))
            _require(name, path or ids, "missing path or id attribute")
            return ShowCommand(path, ids) if key == "show" else HideCommand(path, ids)
        if key == "omit":
            return OmitCommand(_omit_files(name, attrs, body))
        if key == "run":
            command = (attrs.get("cmd") or body).strip()
            _require(name, command, "empty command")
            return RunCommand(command)
        if key == "done":
            return DoneCommand()
        start, end = _parse_range(name, attrs.get("id") or attrs.get("range") or "", key == "splice")
        return ChunkEditCommand(key, start, end, split_chunks(body))


def _require(tag: str, value, reason: str) -> None:
    if not value:
        raise MalformedCommand(tag, reason)


def _parse_ids(tag: str, raw: str) -> List[int]:
    ids: List[int] = []
    for part in re.split(r"[\s,]+", raw.strip()):
        if not part:
            continue
        if "-" in part:
            a, b = _parse_range(tag, part, True)
            ids.extend(range(a, b + 1))
        elif part.isdigit():
            ids.append(int(part))
        else:
            raise MalformedCommand(tag, f"bad chunk id {part!r}")
    return ids


def _parse_range(tag: str, raw: str, allow_range: bool) -> Tuple[int, int]:
    m = re.fullmatch(r"\s*(\d+)\s*(?:-\s*(\d+)\s*)?", raw or "")
    if not m:
        raise MalformedCommand(tag, f"missing or bad id attribute {raw!r}")
    start = int(m.group(1))
    end = int(m.group(2)) if m.group(2) is not None else start
    if m.group(2) is not None and not allow_range:
        raise MalformedCommand(tag, f"ranges are only valid for SPLICE: {raw!r}")
    if end < start:
        raise MalformedCommand(tag, f"empty range {raw!r}")
    return start, end


def _omit_files(tag: str, attrs: Dict[str, str], body: str) -> List[str]:
    if attrs.get("file"):
        return [attrs["file"]]
    directory = attrs.get("path") or attrs.get("dir") or ""
    names = [ln.strip() for ln in norm_line_endings(body).split("\n") if ln.strip()]
    if directory and names:
        return [directory.rstrip("/") + "/" + n for n in names]
    _require(tag, directory, "missing file or path attribute")
    return [directory]


def parse_search_replace(body: str) -> List[SearchReplace]:
    """Line-oriented SEARCH/=======/REPLACE blocks, in document order."""
    ops: List[SearchReplace] = []
    state = "outside"
    search: List[str] = []
    replace: List[str] = []
    for line in norm_line_endings(body or "").split("\n"):
        if state == "outside":
            if _SEARCH_RE.match(line):
                state, search, replace = "search", [], []
        elif state == "search":
            if _DIVIDER_RE.match(line):
                state = "replace"
            else:
                search.append(line)
        elif _REPLACE_RE.match(line):
            ops.append(SearchReplace("\n".join(search), "\n".join(replace)))
            state = "outside"
        else:
            replace.append(line)
    if state != "outside":
        raise MalformedCommand("PATCH", "unterminated SEARCH/REPLACE block")
    if not ops:
        raise MalformedCommand("PATCH", "no SEARCH/REPLACE blocks found")
    return ops


def parse_commands(text: str) -> ParseResult:
    result = _Parser(text).parse()
    dbg(
        f"commands: parsed {len(result.commands)} command(s), "
        f"{len(result.skipped)} skipped, {len(result.unknown)} unknown tag(s)"
    )
    return result
