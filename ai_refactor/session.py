"""Audit transcripts: prompts and responses per task, named by timestamp."""

import time
from pathlib import Path
from typing import Optional

from . import config
from .utils import dbg, warn

FULL_PROMPT = "full_prompt.txt"
MINI_PROMPT = "mini_prompt.txt"
RESPONSE = "response.txt"


def format_timestamp(t: Optional[float] = None) -> str:
    return time.strftime("%Y-%m-%d-%H-%M-%S", time.localtime(t))


class SessionLog:
    """Writes ``<history>/<timestamp>-<suffix>`` plus a latest copy ``<ai_dir>/<name>-<suffix>``.

    Write failures are warnings; the log is never read back.
    """

    def __init__(
        self,
        name: str = "refactor",
        ai_dir: Optional[Path] = None,
        history_dir: Optional[Path] = None,
        timestamp: Optional[str] = None,
        enabled: Optional[bool] = None,
    ):
        self.name = name
        self.ai_dir = Path(ai_dir) if ai_dir is not None else config.AI_DIR
        self.history_dir = Path(history_dir) if history_dir is not None else config.HISTORY_DIR
        self.timestamp = timestamp or format_timestamp()
        self.enabled = (not config.DISABLE_HISTORY) if enabled is None else enabled

    def history_path(self, suffix: str) -> Path:
        return self.history_dir / f"{self.timestamp}-{suffix}"

    def latest_path(self, suffix: str) -> Path:
        return self.ai_dir / f"{self.name}-{suffix}"

    def write(self, suffix: str, content: str) -> bool:
        if not self.enabled:
            return False
        try:
            self.history_dir.mkdir(parents=True, exist_ok=True)
            self.ai_dir.mkdir(parents=True, exist_ok=True)
            self.history_path(suffix).write_text(content, encoding="utf-8")
            self.latest_path(suffix).write_text(content, encoding="utf-8")
        except OSError as exc:
            warn(f"failed to write {self.name} {suffix}: {exc}")
            return False
        dbg(f"session: wrote {self.history_path(suffix)}")
        return True


def format_response_log(compact_prompt: str, compact_response: str, editor_response: str) -> str:
    return "\n".join(
        [
            "=== COMPACTOR PROMPT ===",
            compact_prompt,
            "",
            "=== COMPACTOR RESPONSE ===",
            compact_response,
            "",
            "=== EDITOR RESPONSE ===",
            editor_response,
            "",
        ]
    )
