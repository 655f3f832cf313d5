"""Transitive import discovery over comment-marker import syntaxes.

A dialect is one marker form (``//./dep.ts//``, ``{-./Dep.hs-}``,
``#include "dep.h"`` ...). Lines are stripped and tested against the selected
dialects in list order; the first dialect that matches owns the line.
Resolution is a preorder DFS from the entry file keyed by canonical path, so
cycles terminate and each file appears once, in discovery order.
"""

from __future__ import annotations

import re
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from . import config
from .errors import SandboxViolation, UnresolvedImport
from .files import read_text
from .sandbox import ensure_contained, realpath_safe, relative_to_root
from .utils import dbg, warn


@dataclass(frozen=True)
class ImportDialect:
    name: str
    opening: str
    closing: str
    pattern: "re.Pattern[str]"

    def match(self, line: str) -> Optional[str]:
        m = self.pattern.match(line.strip())
        if not m:
            return None
        ref = next((g for g in m.groups() if g), None)
        return ref.strip() if ref and ref.strip() else None


def marker_dialect(name: str, opening: str, closing: str) -> ImportDialect:
    """A whole-line ``<opening><./relative/path><closing>`` marker."""
    pattern = re.compile(
        "^" + re.escape(opening) + r"(\.{1,2}/.+?)" + re.escape(closing) + "$"
    )
    return ImportDialect(name, opening, closing, pattern)


_REGISTRY: Dict[str, ImportDialect] = {}


def register_dialect(dialect: ImportDialect) -> ImportDialect:
    _REGISTRY[dialect.name] = dialect
    return dialect


for _name, _open, _close in (
    ("slash", "//", "//"),
    ("haskell", "{-", "-}"),
    ("hash", "#", "#"),
    ("dash", "--", "--"),
    ("double-hash", "##", "##"),
    ("bracket-hash", "#[", "]"),
    ("bracket-dash", "--[", "]"),
    ("bracket-slash", "//[", "]"),
):
    register_dialect(marker_dialect(_name, _open, _close))

register_dialect(
    ImportDialect(
        "c-include",
        '#include "',
        '"',
        re.compile(r"^#include\s+(?:\"([^\"]+)\"|'([^']+)')"),
    )
)


def available_dialects() -> List[str]:
    return list(_REGISTRY)


def select_dialects(names: Optional[Iterable[str]] = None) -> List[ImportDialect]:
    """Dialects in caller order; all registered dialects in registration order by default."""
    wanted = list(names or config.IMPORT_DIALECTS or _REGISTRY)
    out: List[ImportDialect] = []
    for name in wanted:
        if name not in _REGISTRY:
            raise ValueError(f"unknown import dialect: {name} (known: {', '.join(_REGISTRY)})")
        out.append(_REGISTRY[name])
    return out


def match_import(line: str, dialects: Sequence[ImportDialect]) -> Optional[str]:
    for dialect in dialects:
        ref = dialect.match(line)
        if ref:
            return ref
    return None


def find_imports(content: str, dialects: Sequence[ImportDialect]) -> List[str]:
    """Import references of one file, deduplicated, in first-seen order."""
    seen: Set[str] = set()
    refs: List[str] = []
    for line in (content or "").splitlines():
        ref = match_import(line, dialects)
        if ref and ref not in seen:
            seen.add(ref)
            refs.append(ref)
    return refs


@dataclass(eq=False)
class FileNode:
    path: str
    content: str
    imports: List["FileNode"] = field(default_factory=list, repr=False)


@dataclass(frozen=True)
class UnresolvedRef:
    name: str
    importer: str
    reason: str


class ContextSet:
    """Ordered path -> content mapping of files disclosed to the agent.

    The entry file is pinned: it can be neither removed nor hidden.
    """

    def __init__(self, root: Path, entry: str):
        self.root = Path(root)
        self.entry = entry
        self.nodes: Dict[str, FileNode] = {}
        self.unresolved: List[UnresolvedRef] = []
        self._hidden: Set[str] = set()

    def add(self, node: FileNode) -> None:
        self.nodes[node.path] = node

    def __contains__(self, path: str) -> bool:
        return path in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self.nodes))

    def paths(self) -> List[str]:
        return list(self.nodes)

    def items(self) -> List[Tuple[str, str]]:
        return [(p, n.content) for p, n in self.nodes.items()]

    def get(self, path: str) -> Optional[str]:
        node = self.nodes.get(path)
        return node.content if node else None

    def remove(self, path: str) -> bool:
        if path == self.entry or path not in self.nodes:
            return False
        del self.nodes[path]
        self._hidden.discard(path)
        return True

    def is_visible(self, path: str) -> bool:
        return path in self.nodes and path not in self._hidden

    def show(self, path: str) -> bool:
        if path not in self.nodes:
            return False
        self._hidden.discard(path)
        return True

    def hide(self, path: str) -> bool:
        if path == self.entry or path not in self.nodes:
            return False
        self._hidden.add(path)
        return True


_MISSING = (FileNotFoundError, IsADirectoryError, NotADirectoryError, UnicodeDecodeError)


class ImportResolver:
    """Builds a ContextSet from an entry file.

    Sibling imports may be read ahead on a thread pool; only the thread that
    called ``resolve`` touches the visited set and the ContextSet, and merges
    happen in discovery order.
    """

    def __init__(
        self,
        root,
        dialects: Optional[Sequence[ImportDialect]] = None,
        max_workers: Optional[int] = None,
        reader: Optional[Callable[[Path, Path], str]] = None,
    ):
        self.root = realpath_safe(root)
        self.dialects = list(dialects) if dialects is not None else select_dialects()
        self.max_workers = config.RESOLVE_WORKERS if max_workers is None else max_workers
        self._read = reader or read_text

    def find_imports(self, content: str) -> List[str]:
        return find_imports(content, self.dialects)

    def resolve(self, entry_file, entry_content: Optional[str] = None) -> ContextSet:
        entry_abs = ensure_contained(Path(self.root) / entry_file, self.root)
        entry_rel = relative_to_root(entry_abs, self.root)
        if entry_content is None:
            try:
                entry_content = self._read(entry_abs, self.root)
            except FileNotFoundError:
                raise UnresolvedImport(entry_rel)
        ctx = ContextSet(self.root, entry_rel)
        pool = ThreadPoolExecutor(max_workers=self.max_workers) if self.max_workers > 1 else None
        try:
            self._walk(ctx, entry_abs, entry_content, pool)
        finally:
            if pool is not None:
                pool.shutdown(wait=True, cancel_futures=True)
        dbg(
            f"imports: resolved {len(ctx)} file(s) from {entry_rel}, "
            f"{len(ctx.unresolved)} unresolved"
        )
        return ctx

    def _walk(self, ctx: ContextSet, entry_abs: Path, entry_content: str, pool) -> None:
        visited: Set[Path] = set()
        by_abs: Dict[Path, FileNode] = {}
        pending: Dict[Path, Future] = {}
        # (canonical path, preloaded content, importer node, reference as written)
        stack: List[Tuple[Path, Optional[str], Optional[FileNode], str]] = [
            (entry_abs, entry_content, None, ctx.entry)
        ]
        while stack:
            target, content, importer, ref = stack.pop()
            if target in visited:
                if importer is not None and by_abs[target] not in importer.imports:
                    importer.imports.append(by_abs[target])
                continue
            if content is None:
                future = pending.pop(target, None)
                try:
                    content = future.result() if future is not None else self._read(target, self.root)
                except _MISSING as exc:
                    self._unresolved(ctx, ref, importer, type(exc).__name__)
                    continue
            visited.add(target)
            node = FileNode(relative_to_root(target, self.root), content)
            by_abs[target] = node
            ctx.add(node)
            if importer is not None:
                importer.imports.append(node)
            children = self._children(ctx, node, target)
            if pool is not None:
                for child_abs, _ in children:
                    if child_abs not in visited and child_abs not in pending:
                        pending[child_abs] = pool.submit(self._read, child_abs, self.root)
            for child_abs, child_ref in reversed(children):
                stack.append((child_abs, None, node, child_ref))

    def _children(self, ctx: ContextSet, node: FileNode, target: Path) -> List[Tuple[Path, str]]:
        out: List[Tuple[Path, str]] = []
        for ref in self.find_imports(node.content):
            try:
                child = ensure_contained(target.parent / ref, self.root)
            except SandboxViolation as exc:
                self._unresolved(ctx, ref, node, str(exc))
                continue
            out.append((child, ref))
        return out

    def _unresolved(self, ctx: ContextSet, ref: str, importer: Optional[FileNode], reason: str) -> None:
        importer_path = importer.path if importer is not None else ""
        ctx.unresolved.append(UnresolvedRef(ref, importer_path, reason))
        warn(f"missing import {ref}" + (f" (imported from {importer_path})" if importer_path else ""))
