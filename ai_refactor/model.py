"""Agent capability: ``ask(prompt, options) -> text`` over an OpenAI-compatible endpoint."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol
from urllib import error as urllib_error
from urllib import request as urllib_request

from . import config
from .errors import ModelError
from .utils import dbg, dbg_dump


@dataclass(frozen=True)
class AskOptions:
    system: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    model: Optional[str] = None


class Ask(Protocol):
    def __call__(self, prompt: str, options: Optional[AskOptions] = None) -> str:
        ...


def resolve_role_options(role: str, model: Optional[str] = None) -> AskOptions:
    key = (role or "editor").strip().lower()
    table: Dict[str, AskOptions] = {
        "editor": AskOptions(None, config.TEMPERATURE, config.MAX_NEW, config.MODEL_NAME),
        "compactor": AskOptions(None, config.COMPACT_TEMP, config.COMPACT_MAX_NEW, config.COMPACT_MODEL_NAME),
        "chunk_agent": AskOptions(None, config.TEMPERATURE, config.MAX_NEW, config.MODEL_NAME),
    }
    opts = table.get(key, table["editor"])
    if model:
        opts = AskOptions(opts.system, opts.temperature, opts.max_tokens, model)
    return opts


class ChatCompletionsClient:
    """Non-streaming POST to ``{base_url}/chat/completions``."""

    def __init__(
        self,
        base_url: str = "",
        api_key: str = "",
        model: str = "",
        timeout_s: int = 0,
    ):
        self.base_url = (base_url or config.API_BASE).rstrip("/")
        self.api_key = api_key or config.API_KEY
        self.model = model or config.MODEL_NAME
        self.timeout_s = timeout_s or config.GEN_TIMEOUT

    def _payload(self, prompt: str, options: AskOptions) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = []
        if options.system:
            messages.append({"role": "system", "content": options.system})
        messages.append({"role": "user", "content": prompt})
        payload: Dict[str, Any] = {
            "model": options.model or self.model,
            "messages": messages,
            "stream": False,
        }
        if options.temperature is not None:
            payload["temperature"] = float(options.temperature)
        if options.max_tokens:
            payload["max_tokens"] = int(options.max_tokens)
        return payload

    def __call__(self, prompt: str, options: Optional[AskOptions] = None) -> str:
        options = options or AskOptions()
        payload = self._payload(prompt, options)
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        req = urllib_request.Request(
            self.base_url + "/chat/completions",
            data=json.dumps(payload).encode("utf-8"),
            headers=headers,
            method="POST",
        )
        t0 = time.time()
        dbg(f"model: POST {self.base_url}/chat/completions model={payload['model']} prompt_chars={len(prompt)}")
        try:
            with urllib_request.urlopen(req, timeout=max(1, int(self.timeout_s))) as resp:
                raw = resp.read().decode("utf-8", errors="replace")
        except urllib_error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace") if hasattr(exc, "read") else str(exc)
            raise ModelError(f"HTTP {getattr(exc, 'code', '?')}: {detail[:500]}")
        except (urllib_error.URLError, TimeoutError) as exc:
            raise ModelError(f"request to {self.base_url} failed: {exc}")
        try:
            obj = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ModelError(f"endpoint returned invalid JSON: {exc}")
        text = extract_reply_text(obj)
        dbg(f"model: reply chars={len(text)} in {time.time() - t0:.2f}s")
        dbg_dump("model reply", text)
        return text


def extract_reply_text(obj: Dict[str, Any]) -> str:
    try:
        content = obj["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        raise ModelError(f"unexpected response shape: {str(obj)[:300]}")
    if isinstance(content, list):
        # Some servers return content parts.
        return "".join(p.get("text", "") for p in content if isinstance(p, dict))
    return content or ""
