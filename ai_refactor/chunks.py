"""Blank-line chunking and structural chunk edits.

A chunk is a maximal run of non-blank lines. Chunk ids are list positions:
every mutation renumbers the whole document densely from 0, so an id is only
meaningful against the listing it was read from.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .errors import MalformedCommand
from .files import apply_newline, detect_newline, norm_line_endings, write_text_atomic
from .utils import dbg

_BOUNDARY = re.compile(r"\n(?:[ \t]*\n)+")
_COMMENT_PREFIXES = ("//", "--", "#")


@dataclass
class Chunk:
    id: int
    path: str
    text: str
    visible: bool = False


def _trim_blank_lines(block: str) -> str:
    lines = block.split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines)


def split_chunks(text: str) -> List[str]:
    """Split on runs of blank lines; chunks keep their indentation."""
    parts = _BOUNDARY.split(norm_line_endings(text or "").replace("\r", "\n"))
    return [c for c in (_trim_blank_lines(p) for p in parts) if c]


def join_chunks(texts: Iterable[str]) -> str:
    return "\n\n".join(texts)


def _is_comment(line: str) -> bool:
    return line.strip().startswith(_COMMENT_PREFIXES)


def shorten(text: str) -> str:
    """One- or two-line preview: first comment line, then first code line, each with '...'."""
    lines = text.split("\n")
    first_comment = next((ln for ln in lines if _is_comment(ln)), None)
    first_code = next((ln for ln in lines if not _is_comment(ln)), None)
    out = [ln + "..." for ln in (first_comment, first_code) if ln is not None]
    return "\n".join(out) if out else lines[0] + "..."


class ChunkDocument:
    """Chunks of several files in one dense id space."""

    def __init__(self):
        self._chunks: List[Chunk] = []
        self._files: List[str] = []
        self._newline: Dict[str, str] = {}
        self._trailing_newline: Dict[str, bool] = {}
        self.dirty: Set[str] = set()

    # -- loading ---------------------------------------------------------

    def load_file(self, path: str, text: str, visible: bool = False) -> List[int]:
        """Add a file, or replace the chunks of one already loaded in place."""
        self._newline[path] = detect_newline(text)
        self._trailing_newline[path] = norm_line_endings(text).endswith("\n")
        new = [Chunk(-1, path, t, visible) for t in split_chunks(text)]
        positions = [i for i, c in enumerate(self._chunks) if c.path == path]
        if path in self._files:
            at = positions[0] if positions else self._insertion_point(path)
            self._chunks = [c for c in self._chunks if c.path != path]
            self._chunks[at:at] = new
        else:
            self._files.append(path)
            at = len(self._chunks)
            self._chunks.extend(new)
        self._renumber()
        return list(range(at, at + len(new)))

    def drop_file(self, path: str) -> None:
        if path not in self._files:
            return
        self._files.remove(path)
        self._chunks = [c for c in self._chunks if c.path != path]
        self.dirty.discard(path)
        self._renumber()

    def _insertion_point(self, path: str) -> int:
        # A file whose chunks were all deleted goes back where its successors start.
        later = self._files[self._files.index(path) + 1:]
        for i, c in enumerate(self._chunks):
            if c.path in later:
                return i
        return len(self._chunks)

    # -- access ----------------------------------------------------------

    @property
    def chunks(self) -> List[Chunk]:
        return list(self._chunks)

    def __len__(self) -> int:
        return len(self._chunks)

    def __getitem__(self, i: int) -> Chunk:
        return self._chunks[i]

    def files(self) -> List[str]:
        return list(self._files)

    def chunks_of(self, path: str) -> List[Chunk]:
        return [c for c in self._chunks if c.path == path]

    def file_text(self, path: str) -> str:
        text = join_chunks(c.text for c in self.chunks_of(path))
        if text and self._trailing_newline.get(path):
            text += "\n"
        return apply_newline(text, self._newline.get(path, "\n"))

    # -- visibility ------------------------------------------------------

    def _check(self, i: int, tag: str) -> Chunk:
        if not 0 <= i < len(self._chunks):
            raise MalformedCommand(tag, f"chunk id {i} out of range (0..{len(self._chunks) - 1})")
        return self._chunks[i]

    def set_visible(self, ids: Iterable[int], visible: bool) -> None:
        tag = "SHOW" if visible else "HIDE"
        for i in ids:
            self._check(i, tag).visible = visible

    def set_file_visible(self, path: str, visible: bool) -> bool:
        if path not in self._files:
            return False
        for c in self.chunks_of(path):
            c.visible = visible
        return True

    # -- mutation --------------------------------------------------------

    def edit(self, i: int, texts: Sequence[str]) -> List[int]:
        """Replace chunk i. An empty list deletes it."""
        return self._replace("EDIT", i, i, i, i + 1, texts)

    def insert(self, i: int, texts: Sequence[str]) -> List[int]:
        return self._replace("INSERT", i, i, i, i, texts)

    def append(self, i: int, texts: Sequence[str]) -> List[int]:
        return self._replace("APPEND", i, i, i + 1, i + 1, texts)

    def splice(self, i: int, j: int, texts: Sequence[str]) -> List[int]:
        if j < i:
            raise MalformedCommand("SPLICE", f"empty range {i}-{j}")
        return self._replace("SPLICE", i, j, i, j + 1, texts)

    def _replace(self, tag: str, first: int, last: int, lo: int, hi: int, texts: Sequence[str]) -> List[int]:
        path = self._check(first, tag).path
        if self._check(last, tag).path != path or any(
            c.path != path for c in self._chunks[first:last + 1]
        ):
            raise MalformedCommand(tag, f"range {first}-{last} spans more than one file")
        new_texts: List[str] = []
        for t in texts:
            new_texts.extend(split_chunks(t))
        new = [Chunk(-1, path, t, True) for t in new_texts]
        self._chunks[lo:hi] = new
        self._renumber()
        self.dirty.add(path)
        dbg(f"chunks: {tag.lower()} {first}-{last} in {path} -> {len(new)} chunk(s)")
        return list(range(lo, lo + len(new)))

    def _renumber(self) -> None:
        for i, c in enumerate(self._chunks):
            c.id = i

    # -- persistence -----------------------------------------------------

    def save(self, root, paths: Optional[Iterable[str]] = None) -> List[str]:
        """Rewrite dirty (or the given) files from their current chunks."""
        targets = [p for p in self._files if p in set(paths if paths is not None else self.dirty)]
        for path in targets:
            write_text_atomic(Path(root) / path, self.file_text(path), root)
            self.dirty.discard(path)
        return targets
