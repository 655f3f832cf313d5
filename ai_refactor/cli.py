"""ai-refactor command line.

    ai-refactor refactor FILE     one-shot edit driven by the task at the end of FILE
    ai-refactor chunks GOAL       multi-turn chunk editor over the workspace
    ai-refactor deps FILE         print the resolved import graph
"""

import argparse
import sys
from typing import List, Optional

from . import config
from .chunk_session import ChunkSession
from .commands import PatchCommand, RemoveCommand, WriteCommand
from .errors import RefactorError
from .imports import ImportResolver, available_dialects, select_dialects
from .model import ChatCompletionsClient
from .refactor import run_refactor
from .sandbox import realpath_safe


def _cmd_refactor(args) -> int:
    editor_model = args.model or config.MODEL_NAME
    compact_model = args.compact_model or config.COMPACT_MODEL_NAME
    print(f"[model] editor={editor_model} compactor={compact_model}", file=sys.stderr)
    outcome = run_refactor(
        args.file,
        root=args.root,
        ask=ChatCompletionsClient(),
        dialects=select_dialects(args.dialect),
        write=not args.dry_run,
        editor_model=editor_model,
        compact_model=compact_model,
    )
    if args.dry_run:
        for r in outcome.results:
            if r.diff and isinstance(r.command, (WriteCommand, PatchCommand, RemoveCommand)):
                print(r.diff)
    stream = sys.stdout if outcome.exit_code == 0 else sys.stderr
    print(f"[refactor] {outcome.message}", file=stream)
    return outcome.exit_code


def _cmd_chunks(args) -> int:
    session = ChunkSession(args.root, ask=ChatCompletionsClient(), max_turns=args.max_turns, model=args.model)
    session.load(args.files or None)
    code = session.run(args.goal)
    print(f"[chunks] finished with exit code {code}", file=sys.stderr)
    return code


def _cmd_deps(args) -> int:
    root = realpath_safe(args.root or config.ROOT)
    ctx = ImportResolver(root, select_dialects(args.dialect)).resolve(args.file)
    for path in ctx.paths():
        print(path)
    for ref in ctx.unresolved:
        print(f"? {ref.name} (imported from {ref.importer or '-'}: {ref.reason})")
    return 1 if ctx.unresolved else 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="ai-refactor")
    ap.add_argument("--root", default=None, help="workspace root (default: AIR_ROOT or cwd)")
    sub = ap.add_subparsers(dest="command", required=True)

    dialect_help = f"import dialect, repeatable, in precedence order ({', '.join(available_dialects())})"

    rf = sub.add_parser("refactor", help="apply the task written at the end of FILE")
    rf.add_argument("file")
    rf.add_argument("--model", default=None)
    rf.add_argument("--compact-model", default=None)
    rf.add_argument("--dialect", action="append", default=None, help=dialect_help)
    rf.add_argument("--dry-run", action="store_true", help="print diffs instead of writing")
    rf.set_defaults(func=_cmd_refactor)

    ch = sub.add_parser("chunks", help="multi-turn chunk editor")
    ch.add_argument("goal")
    ch.add_argument("files", nargs="*")
    ch.add_argument("--model", default=None)
    ch.add_argument("--max-turns", type=int, default=None)
    ch.set_defaults(func=_cmd_chunks)

    dp = sub.add_parser("deps", help="print FILE and its transitive imports")
    dp.add_argument("file")
    dp.add_argument("--dialect", action="append", default=None, help=dialect_help)
    dp.set_defaults(func=_cmd_deps)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except RefactorError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
