"""Split an entry file into its code body and the task instruction it carries."""

from typing import Optional, Sequence, Tuple

from .errors import TaskNotFound
from .files import apply_newline, detect_newline, norm_line_endings, trim_blank_edges
from .imports import ImportDialect, match_import, select_dialects

TASK_MARKERS = ("//!", "--!", "##!")
COMMENT_PREFIXES = ("//", "--", "#")


def _find_marker(text: str) -> Optional[Tuple[int, str]]:
    hits = [(text.find(m), m) for m in TASK_MARKERS if m in text]
    return min(hits) if hits else None


def _comment_text(line: str, dialects: Sequence[ImportDialect]) -> Optional[str]:
    stripped = line.lstrip()
    if not stripped or match_import(stripped, dialects):
        return None
    for prefix in COMMENT_PREFIXES:
        if stripped.startswith(prefix):
            return stripped[len(prefix):].lstrip()
    return None


def split_task(raw: str, dialects: Optional[Sequence[ImportDialect]] = None) -> Tuple[str, str]:
    """Return ``(body, task)``.

    An explicit task marker wins; the earliest marker in the file is used.
    Without one, the task is the trailing block of line comments.
    """
    if dialects is None:
        dialects = select_dialects()
    newline = detect_newline(raw)
    text = norm_line_endings(raw or "")

    hit = _find_marker(text)
    if hit is not None:
        idx, marker = hit
        task = text[idx + len(marker):].strip()
        if not task:
            raise TaskNotFound(f"task marker {marker} is not followed by any instruction")
        body = trim_blank_edges(text[:idx].rstrip(" \t"))
        return apply_newline(body, newline), task

    lines = text.split("\n")
    idx = len(lines) - 1
    while idx >= 0 and not lines[idx].strip():
        idx -= 1
    if idx < 0:
        raise TaskNotFound("file is empty; end it with a comment block describing the task")
    task_lines = []
    while idx >= 0:
        instruction = _comment_text(lines[idx], dialects)
        if instruction is None:
            break
        task_lines.append(instruction)
        idx -= 1
    task = trim_blank_edges("\n".join(reversed(task_lines)))
    if not task:
        raise TaskNotFound("file must end with a task marker (//!, --!, ##!) or a //, -- or # comment block")
    body_lines = lines[: idx + 1]
    while body_lines and not body_lines[-1].strip():
        body_lines.pop()
    return apply_newline("\n".join(body_lines), newline), task
