"""
Text normalization for raw provider responses
Strips markdown fences and reasoning annotations before any parsing happens
"""
import re
from typing import Optional


# Reasoning models (DeepSeek R1 and friends) wrap chain-of-thought in tags
_REASONING_BLOCK = re.compile(
    r"<(think|thinking|reasoning)\b[^>]*>.*?</\1\s*>",
    re.IGNORECASE | re.DOTALL,
)
_LEADING_FENCE = re.compile(r"^\s*```(?:[\w.+-]*[ \t]*\r?\n|[ \t]*)")
_TRAILING_FENCE = re.compile(r"\s*```\s*$")
_INLINE_FENCE = re.compile(r"```(?:[\w.+-]*[ \t]*\r?\n)?(.*?)\s*```", re.DOTALL)


def _strip_once(text: str) -> str:
    text = _REASONING_BLOCK.sub("", text)
    # Paired fences first so a trailing marker is not taken from its opener
    text = _INLINE_FENCE.sub(r"\1", text)
    text = _LEADING_FENCE.sub("", text)
    text = _TRAILING_FENCE.sub("", text)
    return text.strip()


def normalize(raw: Optional[str]) -> str:
    """
    Remove response wrappers from provider text.

    Fenced-code markers (with or without a language hint) are removed at the
    edges and inline, keeping the fenced content. Reasoning blocks are removed
    together with everything inside them. The result is trimmed.

    Never raises; ``None`` or empty input gives ``""``. Every pass only
    removes characters, so iterating to a fixed point terminates and makes
    the function idempotent.
    """
    if raw is None:
        return ""
    text = raw if isinstance(raw, str) else str(raw)

    previous = None
    while text != previous:
        previous = text
        text = _strip_once(text)
    return text
