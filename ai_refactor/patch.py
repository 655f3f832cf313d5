"""Apply WRITE / PATCH / REMOVE commands to the workspace.

Commands run strictly in emission order. A PATCH is computed fully in memory
and written once, so a missing SEARCH leaves the file byte-identical. Failure
isolation is per file: a failed command does not undo earlier ones.
"""

from __future__ import annotations

import difflib
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .commands import Command, EditCommand, PatchCommand, RemoveCommand, SearchReplace, WriteCommand
from .errors import MalformedCommand, SandboxViolation, SearchNotFound
from .files import (
    apply_newline,
    detect_newline,
    norm_line_endings,
    read_text,
    removal_target,
    remove_path,
    trim_blank_edges,
    write_text_atomic,
)
from .sandbox import normalize_ref, resolve_target, to_posix
from .utils import dbg, report_skip


@dataclass
class AppliedResult:
    command: Command
    path: str
    ok: bool
    action: str
    error: str = ""
    diff: str = ""


def generate_diff(old_content: str, new_content: str, filepath: str, context_lines: int = 3) -> str:
    old_lines = norm_line_endings(old_content or "").splitlines(keepends=True)
    new_lines = norm_line_endings(new_content or "").splitlines(keepends=True)
    diff = difflib.unified_diff(
        old_lines,
        new_lines,
        fromfile=f"a/{filepath}",
        tofile=f"b/{filepath}",
        n=context_lines,
    )
    return "".join(diff)


def apply_operations(content: str, operations: Sequence[SearchReplace], path: str = "") -> str:
    """Replace the first occurrence of each search, in order, on the running result."""
    current = norm_line_endings(content)
    for i, op in enumerate(operations):
        search = norm_line_endings(op.search)
        if not search:
            raise SearchNotFound(path, i, search, f"search block {i} is empty")
        idx = current.find(search)
        if idx == -1:
            raise SearchNotFound(path, i, search)
        current = current[:idx] + norm_line_endings(op.replace) + current[idx + len(search):]
    return current


def _read_existing(target: Path, root) -> Optional[str]:
    if not target.is_file():
        return None
    return read_text(target, root)


def apply_write(cmd: WriteCommand, root, write: bool = True) -> AppliedResult:
    rel, target = resolve_target(cmd.path, root)
    old = _read_existing(target, root)
    new = trim_blank_edges(cmd.content)
    if old is not None:
        new = apply_newline(new, detect_newline(old))
    if write:
        write_text_atomic(target, new, root)
    action = "write" if old is None else "overwrite"
    return AppliedResult(cmd, rel, True, action, diff=generate_diff(old or "", new, rel))


def apply_patch(cmd: PatchCommand, root, write: bool = True) -> AppliedResult:
    rel, target = resolve_target(cmd.path, root)
    old = _read_existing(target, root)
    if old is None:
        raise SearchNotFound(rel, 0, "", "file does not exist")
    new = apply_newline(apply_operations(old, cmd.operations, rel), detect_newline(old))
    if write:
        write_text_atomic(target, new, root)
    return AppliedResult(cmd, rel, True, "patch", diff=generate_diff(old, new, rel))


def apply_remove(cmd: RemoveCommand, root, write: bool = True) -> AppliedResult:
    resolve_target(cmd.path, root)  # rejects empty and escaping references
    target = removal_target(Path(root) / normalize_ref(cmd.path), root)
    rel = to_posix(os.path.relpath(target, os.path.abspath(root)))
    if not write:
        existed = target.exists() or target.is_symlink()
    else:
        existed = remove_path(target, root)
    return AppliedResult(cmd, rel, True, "remove" if existed else "remove (missing)")


_APPLIERS = {
    WriteCommand: apply_write,
    PatchCommand: apply_patch,
    RemoveCommand: apply_remove,
}


def apply_command(cmd: EditCommand, root, write: bool = True) -> AppliedResult:
    """Apply one command; validation failures become a failed result, I/O errors propagate."""
    applier = _APPLIERS[type(cmd)]
    try:
        result = applier(cmd, root, write=write)
    except (SandboxViolation, SearchNotFound, MalformedCommand) as exc:
        report_skip(cmd.path, str(exc))
        return AppliedResult(cmd, cmd.path, False, "skip", error=str(exc))
    verb = result.action if write else f"{result.action} (dry run)"
    print(f"[apply] {verb} {result.path}", file=sys.stderr)
    dbg(f"patch: {verb} {result.path}")
    return result


def apply_commands(commands: Sequence[EditCommand], root, write: bool = True) -> List[AppliedResult]:
    return [apply_command(cmd, root, write=write) for cmd in commands]
