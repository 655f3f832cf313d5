"""Render the ContextSet / chunk document for the agent, and the optional compaction pass."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional

from . import config
from .chunks import ChunkDocument, shorten, split_chunks
from .commands import OmitCommand, parse_commands
from .errors import SandboxViolation
from .imports import ContextSet
from .model import Ask, AskOptions, resolve_role_options
from .prompts import COMPACTING_PROMPT_TEMPLATE, apply_template
from .sandbox import resolve_target
from .utils import dbg, dbg_dump, report_skip

NO_FILES = "(no files loaded)"


def _fence(body: str) -> str:
    return f"```\n{body}\n```"


def render_file(path: str, content: str, visible: bool) -> str:
    """``+ ./path`` with the full text, or ``- ./path`` with chunk previews."""
    if visible:
        return f"+ ./{path}\n{_fence(content)}"
    previews = [shorten(c) for c in split_chunks(content)]
    return f"- ./{path}\n{_fence(chr(10).join(previews))}"


def render_files(ctx: ContextSet, include: Optional[Callable[[str], bool]] = None) -> str:
    blocks = [
        render_file(path, content, ctx.is_visible(path))
        for path, content in ctx.items()
        if include is None or include(path)
    ]
    return "\n\n".join(blocks)


def render_context(ctx: ContextSet) -> str:
    return render_files(ctx) or NO_FILES


def render_chunks(doc: ChunkDocument) -> str:
    """Per-file ``./path:`` headers, then ``+id:`` (expanded) or ``-id:`` (preview) chunks."""
    out: List[str] = []
    current = None
    for c in doc.chunks:
        if c.path != current:
            out.append(f"\n./{c.path}:")
            current = c.path
        out.append(f"+{c.id}:" if c.visible else f"-{c.id}:")
        out.append(c.text if c.visible else shorten(c.text))
    return "\n".join(out).strip() or NO_FILES


@dataclass
class CompactionResult:
    ran: bool
    prompt: str
    response: str
    tokens_before: int
    tokens_after: int
    omitted: List[str] = field(default_factory=list)
    reason: str = ""


def collect_omits(response: str, root) -> List[str]:
    """Workspace-relative paths named by <omit> directives; out-of-root names are skipped."""
    out: List[str] = []
    for cmd in parse_commands(response).commands:
        if not isinstance(cmd, OmitCommand):
            continue
        for ref in cmd.files:
            try:
                rel, _ = resolve_target(ref, root)
            except SandboxViolation as exc:
                report_skip(ref, str(exc))
                continue
            if rel not in out:
                out.append(rel)
    return out


def compact(
    ctx: ContextSet,
    task: str,
    ask: Ask,
    count_tokens: Callable[[str], int],
    threshold: Optional[int] = None,
    options: Optional[AskOptions] = None,
) -> CompactionResult:
    """Drop files the compactor agent marks irrelevant. The entry file always stays.

    Runs only when more than one file is loaded and the rendered context plus
    task reaches ``threshold`` tokens.
    """
    threshold = config.COMPACT_TOKEN_THRESHOLD if threshold is None else threshold
    block = render_context(ctx)
    before = count_tokens(f"{block}\n\n{task}")
    has_imports = len(ctx) > 1
    if not has_imports or before < threshold:
        reasons = []
        if not has_imports:
            reasons.append("no imports detected")
        if before < threshold:
            reasons.append(f"context under {threshold} tokens")
        reason = " and ".join(reasons)
        dbg(f"compaction: skipped ({reason})")
        return CompactionResult(
            False, f"[compaction skipped: {reason}]", "[compaction skipped]", before, before, reason=reason
        )

    prompt = apply_template(COMPACTING_PROMPT_TEMPLATE, block, task)
    response = ask(prompt, options or resolve_role_options("compactor"))
    dbg_dump("compactor response", response)
    omitted: List[str] = []
    for rel in collect_omits(response, ctx.root):
        if rel == ctx.entry:
            dbg(f"compaction: refusing to omit entry file {rel}")
            continue
        if ctx.remove(rel):
            omitted.append(rel)
    after = count_tokens(f"{render_context(ctx)}\n\n{task}")
    dbg(f"compaction: omitted {len(omitted)} file(s), tokens {before} -> {after}")
    return CompactionResult(True, prompt, response, before, after, omitted)
