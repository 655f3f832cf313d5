import os
from pathlib import Path


def _flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


# Workspace
ROOT = Path(os.getenv("AIR_ROOT", os.getcwd())).resolve()

# Debug logging
DEBUG = _flag("AIR_DEBUG")
DEBUG_LOG_PATH = os.getenv(
    "AIR_DEBUG_LOG", os.path.join(os.path.expanduser("~"), ".ai", "ai-refactor-debug.log")
)
# AIR_DEBUG_DUMP_VERBOSE=1: write full prompts/responses to the debug log (no truncation).
DEBUG_DUMP_VERBOSE = _flag("AIR_DEBUG_DUMP_VERBOSE", "true")
DEBUG_DUMP_MAX_LINES = int(os.getenv("AIR_DEBUG_DUMP_MAX_LINES", "20"))
DEBUG_DUMP_MAX_CHARS = int(os.getenv("AIR_DEBUG_DUMP_MAX_CHARS", "2000"))

# Session history
AI_DIR = Path(os.getenv("AIR_AI_DIR", os.path.join(os.path.expanduser("~"), ".ai")))
HISTORY_DIR = Path(os.getenv("AIR_HISTORY_DIR", str(AI_DIR / "refactor_history")))
DISABLE_HISTORY = _flag("AIR_DISABLE_HISTORY")

# Model endpoint (OpenAI-compatible /chat/completions)
API_BASE = os.getenv("AIR_API_BASE", "https://api.openai.com/v1").rstrip("/")
API_KEY = os.getenv("AIR_API_KEY", os.getenv("OPENAI_API_KEY", ""))
MODEL_NAME = os.getenv("AIR_MODEL", "gpt-4o")
# Compaction is a cheap relevance pass; point it at a smaller model when available.
COMPACT_MODEL_NAME = os.getenv("AIR_COMPACT_MODEL", MODEL_NAME)
TEMPERATURE = float(os.getenv("AIR_TEMP", "0.0"))
COMPACT_TEMP = float(os.getenv("AIR_COMPACT_TEMP", "0.0"))
MAX_NEW = int(os.getenv("AIR_MAX_NEW", "8000"))
COMPACT_MAX_NEW = int(os.getenv("AIR_COMPACT_MAX_NEW", "1024"))
GEN_TIMEOUT = int(os.getenv("AIR_GEN_TIMEOUT", "300"))

# Context compaction
COMPACT_TOKEN_THRESHOLD = int(os.getenv("AIR_COMPACT_TOKENS", "8000"))
TOKEN_ENCODING = os.getenv("AIR_TOKEN_ENCODING", "cl100k_base")

# Import resolution. Order is match precedence within a line.
IMPORT_DIALECTS = [
    d.strip()
    for d in os.getenv("AIR_IMPORT_DIALECTS", "").split(",")
    if d.strip()
]
RESOLVE_WORKERS = int(os.getenv("AIR_RESOLVE_WORKERS", "4"))

# <RUN> commands are parsed always but only executed when enabled.
ALLOW_RUN = _flag("AIR_ALLOW_RUN")
RUN_TIMEOUT = int(os.getenv("AIR_RUN_TIMEOUT", "60"))

# Chunk session
CHUNK_EXTS = os.getenv("AIR_CHUNK_EXTS", "py,hs,js,mjs,ts,kind,hvml,c,h,agda")
CHUNK_EXTS_SET = {e.strip().lower().lstrip(".") for e in CHUNK_EXTS.split(",") if e.strip()}
CHUNK_MAX_TURNS = int(os.getenv("AIR_CHUNK_MAX_TURNS", "32"))
