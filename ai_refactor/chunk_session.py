"""Multi-turn chunked code editor.

Each turn the agent sees every loaded file as numbered chunks (collapsed to a
preview unless shown) and replies with commands. Commands in one reply run in
order, each against the ids left by the previous one. Dirty files are saved
after every reply.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from . import config
from .chunks import ChunkDocument
from .commands import (
    ChunkEditCommand,
    Command,
    DoneCommand,
    HideCommand,
    PatchCommand,
    RemoveCommand,
    RunCommand,
    ShowCommand,
    WriteCommand,
    parse_commands,
)
from .context import render_chunks
from .errors import MalformedCommand, SandboxViolation
from .files import read_text
from .model import Ask, AskOptions, ChatCompletionsClient, resolve_role_options
from .patch import AppliedResult, apply_command
from .prompts import CHUNK_AGENT_SYSTEM_PROMPT, CHUNK_AGENT_TURN_TEMPLATE, apply_template
from .refactor import run_shell
from .sandbox import realpath_safe, relative_to_root, resolve_target
from .session import SessionLog
from .utils import dbg, report_skip


@dataclass
class TurnResult:
    done: bool
    commands: List[Command] = field(default_factory=list)
    results: List[AppliedResult] = field(default_factory=list)


def discover_files(root: Path) -> List[str]:
    """Workspace files with a chunkable extension, skipping dot-directories."""
    out: List[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
        for name in sorted(filenames):
            if Path(name).suffix.lower().lstrip(".") in config.CHUNK_EXTS_SET:
                out.append(relative_to_root(Path(dirpath) / name, root))
    return out


class ChunkSession:
    def __init__(
        self,
        root=None,
        ask: Optional[Ask] = None,
        max_turns: Optional[int] = None,
        session: Optional[SessionLog] = None,
        model: Optional[str] = None,
    ):
        self.root = realpath_safe(root or config.ROOT)
        self.ask = ask or ChatCompletionsClient()
        self.max_turns = config.CHUNK_MAX_TURNS if max_turns is None else max_turns
        self.session = session or SessionLog(
            "chunks", history_dir=config.AI_DIR / "chunks_history"
        )
        base = resolve_role_options("chunk_agent", model)
        self.options = AskOptions(CHUNK_AGENT_SYSTEM_PROMPT, base.temperature, base.max_tokens, base.model)
        self.doc = ChunkDocument()
        self.log: List[str] = []

    def load(self, files: Optional[Sequence[str]] = None) -> None:
        paths = list(files) if files else discover_files(self.root)
        for ref in paths:
            rel, target = resolve_target(ref, self.root)
            self.doc.load_file(rel, read_text(target, self.root))
        dbg(f"chunk_session: loaded {len(self.doc.files())} file(s), {len(self.doc)} chunk(s)")

    def render_prompt(self, goal: str) -> str:
        return apply_template(
            CHUNK_AGENT_TURN_TEMPLATE,
            render_chunks(self.doc),
            goal,
            log="\n".join(self.log) or "(no commands issued yet)",
        )

    def step(self, goal: str, turn: int = 0) -> TurnResult:
        prompt = self.render_prompt(goal)
        response = self.ask(prompt, self.options)
        self.session.write(f"turn-{turn:02d}.txt", f"PROMPT:\n{prompt}\n\nRESPONSE:\n{response}\n")
        self.log.append(response.strip())
        parsed = parse_commands(response)
        parsed.report()
        result = TurnResult(done=not parsed.commands, commands=parsed.commands)
        for cmd in parsed.commands:
            if isinstance(cmd, DoneCommand):
                result.done = True
                break
            applied = self.apply(cmd)
            if applied is not None:
                result.results.append(applied)
        self.doc.save(self.root)
        return result

    def run(self, goal: str) -> int:
        if not self.doc.files():
            self.load()
        applied = 0
        for turn in range(self.max_turns):
            result = self.step(goal, turn)
            applied += sum(1 for r in result.results if r.ok)
            if result.done:
                break
        else:
            report_skip("", f"stopped after {self.max_turns} turn(s) without <DONE/>")
        return 0 if applied else 1

    def apply(self, cmd: Command) -> Optional[AppliedResult]:
        if isinstance(cmd, ChunkEditCommand):
            return self._chunk_edit(cmd)
        if isinstance(cmd, (ShowCommand, HideCommand)):
            return self._toggle(cmd)
        if isinstance(cmd, (WriteCommand, PatchCommand, RemoveCommand)):
            return self._file_command(cmd)
        if isinstance(cmd, RunCommand):
            return run_shell(cmd, self.root)
        report_skip("<OMIT>", "not valid in the chunk editor")
        return None

    def _chunk_edit(self, cmd: ChunkEditCommand) -> AppliedResult:
        path = self.doc[cmd.start].path if 0 <= cmd.start < len(self.doc) else ""
        try:
            if cmd.op == "edit":
                self.doc.edit(cmd.start, cmd.texts)
            elif cmd.op == "insert":
                self.doc.insert(cmd.start, cmd.texts)
            elif cmd.op == "append":
                self.doc.append(cmd.start, cmd.texts)
            else:
                self.doc.splice(cmd.start, cmd.end, cmd.texts)
        except MalformedCommand as exc:
            report_skip(path or f"chunk {cmd.start}", exc.reason)
            return AppliedResult(cmd, path, False, "skip", error=str(exc))
        return AppliedResult(cmd, path, True, f"{cmd.op} {cmd.start}-{cmd.end}")

    def _toggle(self, cmd) -> AppliedResult:
        visible = isinstance(cmd, ShowCommand)
        try:
            if cmd.path:
                rel, _ = resolve_target(cmd.path, self.root)
                if not self.doc.set_file_visible(rel, visible):
                    raise MalformedCommand("SHOW" if visible else "HIDE", "file is not loaded", rel)
            self.doc.set_visible(cmd.ids, visible)
        except (MalformedCommand, SandboxViolation) as exc:
            report_skip(cmd.path or " ".join(map(str, cmd.ids)), str(exc))
            return AppliedResult(cmd, cmd.path, False, "skip", error=str(exc))
        return AppliedResult(cmd, cmd.path, True, "show" if visible else "hide")

    def _file_command(self, cmd) -> AppliedResult:
        # Disk must match the document before the patch engine reads it.
        self.doc.save(self.root)
        result = apply_command(cmd, self.root)
        if not result.ok:
            return result
        if isinstance(cmd, RemoveCommand):
            for path in self.doc.files():
                if path == result.path or path.startswith(result.path + "/"):
                    self.doc.drop_file(path)
        else:
            text = read_text(Path(self.root) / result.path, self.root)
            self.doc.load_file(result.path, text, visible=True)
        return result
