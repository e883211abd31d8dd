"""
JSON recovery for semi-structured LLM output
Locates the most likely JSON value inside noisy text, repairs common
malformations and coerces the result to a list of items
"""
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple

from .text_normalizer import normalize


logger = logging.getLogger(__name__)


class JSONRecoveryError(ValueError):
    """Base exception for JSON recovery errors"""
    pass


class MalformedResponseError(JSONRecoveryError):
    """Text could not be parsed as JSON even after repair and one retry"""
    pass


class NotAnArrayError(JSONRecoveryError):
    """Text parsed, but into a shape that does not hold a list of items"""
    pass


@dataclass(frozen=True)
class ExtractionResult:
    """Candidate JSON text and whether the provider output looked cut off"""
    candidate: str
    truncated: bool


def _find_balanced(text: str, start: int, open_char: str, close_char: str) -> Optional[int]:
    """Index of the bracket closing the one at ``start``, or None if unbalanced"""
    depth = 0
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        ch = text[i]

        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == open_char:
            depth += 1
        elif ch == close_char:
            depth -= 1
            if depth == 0:
                return i

    return None


def _extract_pair(text: str, open_char: str, close_char: str) -> Optional[ExtractionResult]:
    start = text.find(open_char)
    if start == -1:
        return None

    end = _find_balanced(text, start, open_char, close_char)
    if end is not None:
        return ExtractionResult(candidate=text[start:end + 1], truncated=False)

    if close_char not in text[start:]:
        return ExtractionResult(candidate=text[start:], truncated=True)

    return None


def extract(text: Optional[str]) -> ExtractionResult:
    """
    Locate the most likely JSON value inside ``text``.

    Arrays are preferred over objects. A bracket that is opened but never
    closed anywhere after it yields everything from the bracket to the end of
    the text with ``truncated=True``. When nothing bracket-like applies the
    trimmed text is returned as-is and parsing is left to fail downstream.
    """
    s = (text or "").strip()

    for open_char, close_char in (("[", "]"), ("{", "}")):
        result = _extract_pair(s, open_char, close_char)
        if result is not None:
            return result

    return ExtractionResult(candidate=s, truncated=False)


_DOUBLE_QUOTES = re.compile("[\u201c\u201d\u201e\u201f\u2033]")
_SINGLE_QUOTES = re.compile("[\u2018\u2019\u201a\u201b\u2032]")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_SOFT_SPACES = re.compile("[\t\u00a0]")

_SINGLE_QUOTED_KEY = re.compile(r"([{,]\s*)'([^']+?)'\s*:")
_SINGLE_QUOTED_VALUE = re.compile(r":\s*'([^']*?)'(\s*[},\]])")


def repair(text: Optional[str]) -> str:
    """
    Best-effort cleanup of JSON-like text.

    Smart quotes become plain quotes, control characters are dropped, trailing
    commas before ``}``/``]`` are removed, and tabs or non-breaking spaces
    become regular spaces.
    """
    s = text or ""
    s = _DOUBLE_QUOTES.sub('"', s)
    s = _SINGLE_QUOTES.sub("'", s)
    s = _SOFT_SPACES.sub(" ", s)
    # newlines are whitespace between tokens; inside strings they are invalid
    s = s.replace("\r", "").replace("\n", " ")
    s = _CONTROL_CHARS.sub("", s)
    s = _TRAILING_COMMA.sub(r"\1", s)
    return s.strip()


def _relax_single_quotes(text: str) -> str:
    # Only 'key': and : 'value' shapes, so apostrophes in prose survive
    text = _SINGLE_QUOTED_KEY.sub(r'\1"\2":', text)
    return _SINGLE_QUOTED_VALUE.sub(r': "\1"\2', text)


# Extraction rules

ExtractionRule = Tuple[str, Callable[[dict], Optional[List[Any]]]]


def _list_at(*path: str) -> Callable[[dict], Optional[List[Any]]]:
    def rule(obj: dict) -> Optional[List[Any]]:
        value: Any = obj
        for key in path:
            if not isinstance(value, dict):
                return None
            value = value.get(key)
        return value if isinstance(value, list) else None
    return rule


def _single_item(obj: dict) -> Optional[List[Any]]:
    if any(isinstance(obj.get(key), str) for key in ("type", "text", "question")):
        return [obj]
    return None


EXTRACTION_RULES: Sequence[ExtractionRule] = (
    ("questions", _list_at("questions")),
    ("items", _list_at("items")),
    ("data", _list_at("data")),
    ("results", _list_at("results")),
    ("grades", _list_at("grades")),
    ("output.questions", _list_at("output", "questions")),
    ("output.items", _list_at("output", "items")),
    ("output.results", _list_at("output", "results")),
    ("single item", _single_item),
)


def coerce_to_list(parsed: Any, rules: Sequence[ExtractionRule] = EXTRACTION_RULES) -> List[Any]:
    """Coerce a parsed JSON value to a list of items using ``rules`` in order"""
    if isinstance(parsed, str):
        # Some providers double-encode the JSON payload
        try:
            inner = json.loads(repair(parsed))
        except json.JSONDecodeError as e:
            raise NotAnArrayError(f"AI JSON was a string that is not JSON: {e}") from e
        return coerce_to_list(inner, rules)

    if isinstance(parsed, list):
        return parsed

    if isinstance(parsed, dict):
        for name, rule in rules:
            items = rule(parsed)
            if items is not None:
                logger.debug(f"Coerced AI JSON to a list using rule '{name}'")
                return items

    raise NotAnArrayError(f"AI JSON was not an array (got {type(parsed).__name__})")


def parse_array(raw: Optional[str], rules: Sequence[ExtractionRule] = EXTRACTION_RULES) -> Tuple[List[Any], bool]:
    """
    Parse a list of items out of raw provider text.

    Returns ``(items, truncated)``. Raises ``MalformedResponseError`` when the
    text cannot be parsed after repair and exactly one relaxed retry, and
    ``NotAnArrayError`` when it parses into an unsupported shape. An empty
    list is only ever returned for a genuinely empty JSON array.
    """
    extracted = extract(normalize(raw))
    base = repair(extracted.candidate)

    try:
        parsed = json.loads(base)
    except json.JSONDecodeError:
        relaxed = repair(_relax_single_quotes(base))
        try:
            parsed = json.loads(relaxed)
        except json.JSONDecodeError as e:
            logger.debug(f"Unparseable AI JSON candidate: {base[:500]}")
            raise MalformedResponseError(f"Invalid JSON in AI response: {e}") from e

    if extracted.truncated:
        logger.warning("AI response looks truncated; parsed a partial JSON value")

    return coerce_to_list(parsed, rules), extracted.truncated
