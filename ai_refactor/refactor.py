"""One-shot import-aware refactor.

entry file -> task split -> import resolution -> (compaction) -> editor ask
-> command parse -> dispatch. Fatal input problems raise ``RefactorError``;
everything after the agent reply is reported per command.
"""

from __future__ import annotations

import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from . import config, tokens
from .commands import (
    Command,
    HideCommand,
    PatchCommand,
    RemoveCommand,
    RunCommand,
    ShowCommand,
    WriteCommand,
    parse_commands,
)
from .context import CompactionResult, compact, render_context, render_files
from .errors import NoCommandsFound, RefactorError, SandboxViolation, UnresolvedImport
from .files import read_text
from .imports import ContextSet, ImportDialect, ImportResolver, select_dialects
from .model import Ask, ChatCompletionsClient, resolve_role_options
from .patch import AppliedResult, apply_command
from .prompts import EDITING_PROMPT_TEMPLATE, apply_template
from .sandbox import ensure_contained, realpath_safe, relative_to_root, resolve_target
from .session import FULL_PROMPT, MINI_PROMPT, RESPONSE, SessionLog, format_response_log
from .task import split_task
from .utils import dbg, dbg_dump, report_skip


_FILE_COMMANDS = (WriteCommand, PatchCommand, RemoveCommand)


@dataclass
class RefactorOutcome:
    exit_code: int
    message: str
    task: str = ""
    context: Optional[ContextSet] = None
    compaction: Optional[CompactionResult] = None
    response: str = ""
    commands: List[Command] = field(default_factory=list)
    results: List[AppliedResult] = field(default_factory=list)
    error: Optional[RefactorError] = None

    @property
    def applied(self) -> int:
        """File commands that took effect. SHOW/HIDE only shape this run's prompt."""
        return sum(1 for r in self.results if r.ok and isinstance(r.command, _FILE_COMMANDS))


def run_shell(cmd: RunCommand, root) -> AppliedResult:
    if not config.ALLOW_RUN:
        report_skip("<RUN>", f"shell commands are disabled (set AIR_ALLOW_RUN=1): {cmd.command}")
        return AppliedResult(cmd, "", False, "skip", error="run disabled")
    try:
        proc = subprocess.run(
            cmd.command,
            shell=True,
            cwd=str(root),
            capture_output=True,
            text=True,
            timeout=config.RUN_TIMEOUT,
        )
    except subprocess.TimeoutExpired:
        report_skip("<RUN>", f"timed out after {config.RUN_TIMEOUT}s: {cmd.command}")
        return AppliedResult(cmd, "", False, "skip", error="timeout")
    print(f"[run] $ {cmd.command} (exit {proc.returncode})", file=sys.stderr)
    output = (proc.stdout or "") + (proc.stderr or "")
    if output.strip():
        print(output.rstrip(), file=sys.stderr)
    return AppliedResult(cmd, "", True, f"run (exit {proc.returncode})")


def _toggle(ctx: ContextSet, cmd, root) -> AppliedResult:
    show = isinstance(cmd, ShowCommand)
    action = "show" if show else "hide"
    if not cmd.path:
        report_skip("<%s>" % action.upper(), "chunk ids are not addressable in file mode")
        return AppliedResult(cmd, "", False, "skip", error="no path")
    try:
        rel, _ = resolve_target(cmd.path, root)
    except SandboxViolation as exc:
        report_skip(cmd.path, str(exc))
        return AppliedResult(cmd, cmd.path, False, "skip", error=str(exc))
    ok = ctx.show(rel) if show else ctx.hide(rel)
    if not ok:
        reason = "entry file cannot be hidden" if rel == ctx.entry else "file is not in context"
        report_skip(rel, reason)
        return AppliedResult(cmd, rel, False, "skip", error=reason)
    return AppliedResult(cmd, rel, True, action)


def dispatch(commands: Sequence[Command], ctx: ContextSet, root, write: bool = True) -> List[AppliedResult]:
    results: List[AppliedResult] = []
    for cmd in commands:
        if isinstance(cmd, _FILE_COMMANDS):
            results.append(apply_command(cmd, root, write=write))
        elif isinstance(cmd, (ShowCommand, HideCommand)):
            results.append(_toggle(ctx, cmd, root))
        elif isinstance(cmd, RunCommand):
            if write:
                results.append(run_shell(cmd, root))
            else:
                report_skip("<RUN>", f"dry run: {cmd.command}")
        else:
            tag = type(cmd).__name__.replace("Command", "").upper()
            report_skip(f"<{tag}>", "not valid in an editor reply")
    return results


def run_refactor(
    entry_file,
    root=None,
    ask: Optional[Ask] = None,
    compact_ask: Optional[Ask] = None,
    count_tokens: Optional[Callable[[str], int]] = None,
    dialects: Optional[Sequence[ImportDialect]] = None,
    session: Optional[SessionLog] = None,
    threshold: Optional[int] = None,
    write: bool = True,
    editor_model: Optional[str] = None,
    compact_model: Optional[str] = None,
) -> RefactorOutcome:
    root = realpath_safe(root or config.ROOT)
    if ask is None:
        ask = ChatCompletionsClient()
    compact_ask = compact_ask or ask
    count_tokens = count_tokens or tokens.count_tokens
    dialects = list(dialects) if dialects is not None else select_dialects()
    session = session or SessionLog()

    entry_abs = ensure_contained(Path(root) / entry_file, root)
    entry_rel = relative_to_root(entry_abs, root)
    try:
        raw = read_text(entry_abs, root)
    except FileNotFoundError:
        raise UnresolvedImport(entry_rel)
    body, task = split_task(raw, dialects)
    dbg_dump("task", task)

    ctx = ImportResolver(root, dialects).resolve(entry_abs, body)
    dbg(f"context: {ctx.paths()}")
    base_tokens = count_tokens(body)
    imports_block = render_files(ctx, include=lambda p: p != ctx.entry)
    import_tokens = count_tokens(imports_block) if imports_block else 0
    print(f"[tokens] {base_tokens} + {import_tokens} = {base_tokens + import_tokens}", file=sys.stderr)

    session.write(FULL_PROMPT, apply_template(EDITING_PROMPT_TEMPLATE, render_context(ctx), task))
    compaction = compact(
        ctx,
        task,
        compact_ask,
        count_tokens,
        threshold=threshold,
        options=resolve_role_options("compactor", compact_model),
    )
    if compaction.ran:
        print(f"[tokens] {compaction.tokens_after} (compacted)", file=sys.stderr)

    prompt = apply_template(EDITING_PROMPT_TEMPLATE, render_context(ctx), task)
    session.write(MINI_PROMPT, prompt)
    response = ask(prompt, resolve_role_options("editor", editor_model))
    session.write(RESPONSE, format_response_log(compaction.prompt, compaction.response, response))

    parsed = parse_commands(response)
    parsed.report()
    outcome = RefactorOutcome(1, "", task, ctx, compaction, response, parsed.commands)
    if not parsed.commands:
        outcome.error = NoCommandsFound("no recognized commands in agent response")
        outcome.message = str(outcome.error)
        return outcome
    outcome.results = dispatch(parsed.commands, ctx, root, write=write)
    if outcome.applied:
        outcome.exit_code = 0
        outcome.message = f"applied {outcome.applied} of {len(parsed.commands)} command(s)"
    else:
        outcome.message = f"no file command applied ({len(parsed.commands)} command(s) parsed)"
    return outcome
