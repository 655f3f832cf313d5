import os
import shutil
import tempfile
from pathlib import Path
from typing import Union

from .errors import SandboxViolation
from .sandbox import ensure_contained, realpath_safe
from .utils import dbg

PathLike = Union[str, Path]


def detect_newline(text: str) -> str:
    return "\r\n" if "\r\n" in (text or "") else "\n"


def norm_line_endings(s: str) -> str:
    """Normalize line endings to \\n so file (\\r\\n) and agent text (\\n) compare equal."""
    if not s:
        return s
    return s.replace("\r\n", "\n")


def apply_newline(text: str, newline: str) -> str:
    if newline == "\n":
        return text
    return norm_line_endings(text).replace("\n", newline)


def read_text(path: PathLike, root: PathLike) -> str:
    """Read a file under root, preserving its newline style."""
    target = ensure_contained(path, root)
    with open(target, "r", encoding="utf-8", newline="") as f:
        return f.read()


def write_text_atomic(path: PathLike, content: str, root: PathLike) -> Path:
    """Write via a temp file in the target dir, fsync, then replace and read back."""
    target = ensure_contained(path, root)
    target.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w",
        delete=False,
        dir=str(target.parent),
        prefix=target.name + ".tmp.",
        encoding="utf-8",
        newline="",
    ) as tmp:
        tmp.write(content)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_path = Path(tmp.name)
    try:
        tmp_path.replace(target)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise
    with open(target, "r", encoding="utf-8", newline="") as f:
        disk = f.read()
    if disk != content:
        raise IOError(f"write verification failed for {target}")
    dbg(f"files: wrote {target} ({len(content)} chars)")
    return target


def removal_target(path: PathLike, root: PathLike) -> Path:
    """The lexical path REMOVE acts on. A symlink is the link itself, never its target.

    Both the resolved path and the link's parent directory must lie under root.
    """
    ensure_contained(path, root)
    target = Path(os.path.abspath(path))
    ensure_contained(target.parent, root)
    if target == Path(os.path.abspath(root)) or (
        not target.is_symlink() and realpath_safe(target) == realpath_safe(root)
    ):
        raise SandboxViolation(path, root, "refusing to remove the workspace root")
    return target


def remove_path(path: PathLike, root: PathLike) -> bool:
    """Delete a file, symlink or directory tree under root. Returns False when nothing existed."""
    target = removal_target(path, root)
    if target.is_symlink() or target.is_file():
        target.unlink()
    elif target.is_dir():
        shutil.rmtree(target)
    else:
        return False
    dbg(f"files: removed {target}")
    return True


def trim_blank_edges(text: str) -> str:
    """Drop leading/trailing blank lines, keep internal ones and the newline style."""
    newline = detect_newline(text)
    lines = norm_line_endings(text or "").split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return apply_newline("\n".join(lines), newline)
