"""Workspace containment checks.

Every read, write and delete goes through ``ensure_contained`` first. A path
that canonicalizes outside the root is a ``SandboxViolation``; it is never
clamped back inside.
"""

import os
import re
from pathlib import Path
from typing import Tuple, Union

from .errors import SandboxViolation

PathLike = Union[str, Path]


def to_posix(p: PathLike) -> str:
    return str(p).replace(os.sep, "/")


def realpath_safe(p: PathLike) -> Path:
    """Resolve symlinks where the path exists; fall back to lexical resolution otherwise."""
    return Path(os.path.abspath(p)).resolve(strict=False)


def normalize_ref(reference: str) -> str:
    ref = (reference or "").strip().strip("\"'").strip()
    ref = ref.replace("\\", "/")
    return re.sub(r"^(\./)+", "", ref)


def ensure_contained(path: PathLike, root: PathLike) -> Path:
    """Return the canonical form of ``path`` or raise ``SandboxViolation``."""
    root_real = realpath_safe(root)
    target = realpath_safe(path)
    try:
        rel = os.path.relpath(target, root_real)
    except ValueError:
        # Different drive on Windows.
        raise SandboxViolation(path, root_real)
    first = Path(rel).parts[0] if Path(rel).parts else ""
    if first == ".." or os.path.isabs(rel):
        raise SandboxViolation(path, root_real)
    return target


def relative_to_root(path: PathLike, root: PathLike) -> str:
    rel = os.path.relpath(realpath_safe(path), realpath_safe(root))
    return "." if rel == "." else to_posix(rel)


def resolve_target(reference: str, root: PathLike, base: PathLike = None) -> Tuple[str, Path]:
    """Resolve an agent-supplied reference to ``(rel_posix, abs_path)`` under ``root``.

    Relative references are taken from ``base`` (a directory) when given, else
    from ``root``. Absolute references must still land under ``root``.
    """
    ref = normalize_ref(reference)
    if not ref:
        raise SandboxViolation(reference, root, "path is empty")
    anchor = Path(base) if base is not None else Path(root)
    target = ensure_contained(anchor / ref, root)
    return relative_to_root(target, root), target
