"""
Turning loosely structured model output into suggestion records.

Every strategy returns a ``ParseResult``; the chains below stop at the first
one that succeeds. Nothing in this module raises on bad input.
"""
import json
import re
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence

PLACEHOLDER_DESCRIPTION = "Suggested by AI. Tap to adjust the details."

WRAPPER_KEYS = ("moves", "suggestions", "steps", "items", "data", "results")

_STRING = r'"((?:[^"\\]|\\.)*)"'
_TITLE_FIRST = re.compile(r'"title"\s*:\s*' + _STRING + r'\s*,\s*"description"\s*:\s*' + _STRING, re.DOTALL)
_DESCRIPTION_FIRST = re.compile(r'"description"\s*:\s*' + _STRING + r'\s*,\s*"title"\s*:\s*' + _STRING, re.DOTALL)
_ANY_QUOTED = re.compile(_STRING)

MIN_LOOSE_TITLE = 8
MAX_LOOSE_TITLE = 80
MAX_LOOSE_SUGGESTIONS = 5


@dataclass
class ParseResult:
    value: Any = None
    strategy: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value, strategy):
        return cls(value=value, strategy=strategy)

    @classmethod
    def failure(cls, error, strategy=None):
        return cls(strategy=strategy, error=error)


def trim_to_json(text: str) -> str:
    """Cut away prose before the first bracket and after the last one."""
    starts = [i for i in (text.find("["), text.find("{")) if i != -1]
    if not starts:
        return text
    start = min(starts)
    end = max(text.rfind("]"), text.rfind("}"))
    if end < start:
        return text[start:]
    return text[start:end + 1]


def _unescape(raw: str) -> str:
    try:
        return json.loads(f'"{raw}"')
    except ValueError:
        return raw.replace('\\"', '"')


def _clean(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def _suggestion_pairs(items) -> Optional[List[dict]]:
    if not isinstance(items, list):
        return None
    pairs = []
    for item in items:
        if not isinstance(item, dict):
            return None
        title = _clean(item.get("title"))
        if not title:
            return None
        pairs.append({"title": title, "description": _clean(item.get("description"))})
    return pairs


def _decode_list(text: str, strategy: str) -> ParseResult:
    try:
        data = json.loads(text)
    except ValueError as exc:
        return ParseResult.failure(f"invalid JSON ({exc})", strategy)
    pairs = _suggestion_pairs(data)
    if not pairs:
        return ParseResult.failure("expected a non-empty array of {title, description}", strategy)
    return ParseResult.success(pairs, strategy)


def decode_strict_list(text: str) -> ParseResult:
    return _decode_list(text.strip(), "strict")


def decode_trimmed_list(text: str) -> ParseResult:
    return _decode_list(trim_to_json(text), "trimmed")


def decode_wrapped_list(text: str) -> ParseResult:
    try:
        data = json.loads(trim_to_json(text))
    except ValueError as exc:
        return ParseResult.failure(f"invalid JSON ({exc})", "wrapped")
    if not isinstance(data, dict):
        return ParseResult.failure("not a JSON object", "wrapped")

    candidates = [data[k] for k in WRAPPER_KEYS if k in data]
    candidates += [v for k, v in data.items() if k not in WRAPPER_KEYS and isinstance(v, list)]
    for candidate in candidates:
        pairs = _suggestion_pairs(candidate)
        if pairs:
            return ParseResult.success(pairs, "wrapped")
    # A lone object is a list of one
    single = _suggestion_pairs([data])
    if single:
        return ParseResult.success(single, "wrapped")
    return ParseResult.failure("no list of suggestions inside the object", "wrapped")


def extract_pairs(text: str) -> ParseResult:
    matches = [(t, d) for t, d in _TITLE_FIRST.findall(text)]
    if not matches:
        matches = [(t, d) for d, t in _DESCRIPTION_FIRST.findall(text)]
    pairs = [
        {"title": _unescape(t).strip(), "description": _unescape(d).strip()}
        for t, d in matches
        if t.strip()
    ]
    if not pairs:
        return ParseResult.failure("no title/description pairs found", "regex")
    return ParseResult.success(pairs, "regex")


def extract_loose_titles(text: str) -> ParseResult:
    pairs = []
    seen = set()
    for raw in _ANY_QUOTED.findall(text):
        candidate = _unescape(raw).strip()
        if candidate.lower() in ("title", "description") or candidate.lower() in seen:
            continue
        if not (MIN_LOOSE_TITLE <= len(candidate) <= MAX_LOOSE_TITLE):
            continue
        seen.add(candidate.lower())
        pairs.append({"title": candidate, "description": PLACEHOLDER_DESCRIPTION})
        if len(pairs) == MAX_LOOSE_SUGGESTIONS:
            break
    if not pairs:
        return ParseResult.failure("no plausible titles found", "loose")
    return ParseResult.success(pairs, "loose")


SUGGESTION_CHAIN: Sequence[Callable[[str], ParseResult]] = (
    decode_strict_list,
    decode_trimmed_list,
    decode_wrapped_list,
    extract_pairs,
    extract_loose_titles,
)


def run_chain(text: str, chain) -> ParseResult:
    if not text or not text.strip():
        return ParseResult.failure("empty response")
    errors = []
    for attempt in chain:
        result = attempt(text)
        if result.ok:
            return result
        errors.append(f"{result.strategy}: {result.error}")
    return ParseResult.failure("; ".join(errors))


def parse_suggestions(text: str) -> ParseResult:
    return run_chain(text, SUGGESTION_CHAIN)


# --- objects (SMART goal, detail adjustment) ---

def _field_pattern(name: str):
    return re.compile(
        r'"' + re.escape(name) + r'"\s*:\s*(?:' + _STRING + r'|(-?\d+(?:\.\d+)?))',
        re.DOTALL,
    )


def _pick_fields(data, fields) -> Optional[dict]:
    if not isinstance(data, dict):
        return None
    picked = {name: data[name] for name in fields if name in data}
    return picked or None


def parse_object(text: str, fields: Sequence[str], required: Sequence[str] = ()) -> ParseResult:
    """Decode a JSON object and keep ``fields``; ``required`` ones must be present."""

    def complete(picked):
        return picked is not None and all(_clean(picked.get(name)) for name in required)

    def strict(body):
        try:
            picked = _pick_fields(json.loads(body.strip()), fields)
        except ValueError as exc:
            return ParseResult.failure(f"invalid JSON ({exc})", "strict")
        if not complete(picked):
            return ParseResult.failure("missing required fields", "strict")
        return ParseResult.success(picked, "strict")

    def trimmed(body):
        try:
            picked = _pick_fields(json.loads(trim_to_json(body)), fields)
        except ValueError as exc:
            return ParseResult.failure(f"invalid JSON ({exc})", "trimmed")
        if not complete(picked):
            return ParseResult.failure("missing required fields", "trimmed")
        return ParseResult.success(picked, "trimmed")

    def regex(body):
        picked = {}
        for name in fields:
            match = _field_pattern(name).search(body)
            if not match:
                continue
            text_value, number = match.groups()
            picked[name] = _unescape(text_value) if text_value is not None else float(number)
        if not picked or not complete(picked):
            return ParseResult.failure("required fields not found", "regex")
        return ParseResult.success(picked, "regex")

    return run_chain(text, (strict, trimmed, regex))
