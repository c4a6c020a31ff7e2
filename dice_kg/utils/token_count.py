"""
Token counts for providers whose responses omit usage metadata.

Counts are tiktoken encodings; models tiktoken does not know are counted
with cl100k_base.
"""

from __future__ import annotations

from collections.abc import Iterable
from functools import lru_cache

import tiktoken

_FALLBACK_ENCODING = "cl100k_base"

# Role and separator tokens the chat format wraps around each message
_PER_MESSAGE_OVERHEAD = 4


@lru_cache(maxsize=32)
def _encoding_for(model: str) -> tiktoken.Encoding:
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        return tiktoken.get_encoding(_FALLBACK_ENCODING)


def count_text_tokens(text: str, model: str) -> int:
    if not text:
        return 0
    return len(_encoding_for(model).encode(text))


def count_chat_tokens(messages: Iterable[str], model: str) -> int:
    """Tokens for a chat request made of messages, framing included."""
    return sum(count_text_tokens(m, model) + _PER_MESSAGE_OVERHEAD for m in messages)
