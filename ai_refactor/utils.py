import os
import sys
import time

from . import config


def _append_debug_log(line: str) -> None:
    try:
        with open(config.DEBUG_LOG_PATH, "a") as f:
            f.write(line + "\n")
    except OSError:
        pass


def dbg(message: str):
    if not config.DEBUG:
        return
    ts = time.strftime("%Y-%m-%d %H:%M:%S")
    line = f"[debug] [{ts} pid={os.getpid()}] {message}"
    print(line, file=sys.stderr)
    _append_debug_log(line)


def dbg_dump(label: str, text: str):
    """Dump a prompt or response to the debug log. Truncated unless AIR_DEBUG_DUMP_VERBOSE."""
    if not config.DEBUG:
        return
    content = text or ""
    if config.DEBUG_DUMP_VERBOSE:
        _append_debug_log(f"\n[debug_dump] {label}\n{content}")
        return
    lines = [ln for ln in content.splitlines() if ln.strip()]
    preview = "\n".join(lines[: config.DEBUG_DUMP_MAX_LINES])
    if len(preview) > config.DEBUG_DUMP_MAX_CHARS:
        preview = preview[: config.DEBUG_DUMP_MAX_CHARS]
    truncated = len(lines) > config.DEBUG_DUMP_MAX_LINES or len(content) > config.DEBUG_DUMP_MAX_CHARS
    _append_debug_log(
        f"\n[debug_dump] {label} (len={len(content)})"
        f"{' …(truncated)' if truncated else ''}\n{preview}"
    )


def warn(message: str):
    print(f"[warn] {message}", file=sys.stderr)
    dbg(f"warn: {message}")


def report_skip(path: str, reason: str):
    """Every skipped or failed command is reported with its target and reason."""
    print(f"[skip] {path or '(no path)'}: {reason}", file=sys.stderr)
    dbg(f"skip: path={path!r} reason={reason}")
