"""Token counting for the compaction threshold."""

from functools import lru_cache

import tiktoken

from . import config


@lru_cache(maxsize=4)
def _encoding(name: str):
    try:
        return tiktoken.encoding_for_model(name)
    except KeyError:
        return tiktoken.get_encoding(name)


def count_tokens(text: str, encoding: str = "") -> int:
    enc = _encoding(encoding or config.TOKEN_ENCODING)
    return len(enc.encode(text or "", disallowed_special=()))
