"""Template substitution against the pushed payload.

Drivers that need values taken from the payload (SQL parameters, document
ids, object keys) declare them as ``{{selector}}`` tokens. A selector is
either ``pushx_payload``, meaning the raw payload, or a path into the
payload parsed as JSON:

    user.id          -> object member
    items.0.name     -> list index
    items[0].name    -> same, bracket form
    items.#          -> length of a list
    dotted\\.key     -> literal dot inside a member name

Lookups are tolerant: a missing path, a ``null`` value or a payload that is
not JSON all resolve to the empty string.
"""

import json
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, List, Optional, Sequence, Tuple

PAYLOAD_SELECTOR = "pushx_payload"
PAYLOAD_TOKEN = "{{" + PAYLOAD_SELECTOR + "}}"

# First "{{" up to the next "}}", non-greedy so tokens never overlap
TOKEN_PATTERN = re.compile(r"\{\{(.*?)\}\}", re.DOTALL)

_BRACKET_INDEX = re.compile(r"\[(\d+)\]")
_MISSING = object()


def extract_selector(value: str) -> Optional[str]:
    """Return the selector of the first token in value, or None."""
    match = TOKEN_PATTERN.search(value)
    return match.group(1) if match else None


def extract_selectors(value: str) -> List[str]:
    """Return the selectors of every token in value, left to right."""
    return TOKEN_PATTERN.findall(value)


def has_tokens(value: Any) -> bool:
    return isinstance(value, str) and TOKEN_PATTERN.search(value) is not None


def _split_path(selector: str) -> List[str]:
    path = _BRACKET_INDEX.sub(r".\1", selector.strip())
    segments: List[str] = []
    current = []
    escaped = False
    for char in path:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == ".":
            segments.append("".join(current))
            current = []
        else:
            current.append(char)
    segments.append("".join(current))
    return [segment for segment in segments if segment != ""]


def _walk(document: Any, segments: Sequence[str]) -> Any:
    node = document
    for segment in segments:
        if isinstance(node, dict):
            if segment not in node:
                return _MISSING
            node = node[segment]
        elif isinstance(node, list):
            if segment == "#":
                node = len(node)
            elif segment.isdigit() and int(segment) < len(node):
                node = node[int(segment)]
            else:
                return _MISSING
        else:
            return _MISSING
    return node


def _stringify(value: Any) -> str:
    if value is _MISSING or value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    if isinstance(value, float):
        return _format_float(value)
    return str(value)


def _format_float(value: float) -> str:
    """Shortest plain decimal form: 1.0 -> "1", 1e3 -> "1000", 1.5e-7 -> "0.00000015"."""
    return format(Decimal(repr(value)).normalize(), "f")


def lookup(payload: bytes, selector: str) -> str:
    """
    Evaluate a path selector against the payload parsed as JSON.

    Args:
        payload: Raw payload bytes
        selector: Dotted/bracketed path, e.g. ``user.id`` or ``items[0].name``

    Returns:
        String form of the located value, or "" if it does not resolve
    """
    segments = _split_path(selector)
    if not segments:
        return ""
    try:
        document = json.loads(payload)
    except (ValueError, UnicodeDecodeError):
        return ""
    return _stringify(_walk(document, segments))


def _payload_text(payload: bytes) -> str:
    return payload.decode("utf-8", errors="replace")


def render(payload: bytes, template: str) -> str:
    """
    Replace every token in template with its value from the payload.

    Single left-to-right pass: text inserted by a replacement (including the
    payload itself) is never scanned for further tokens.
    """

    def _replace(match: "re.Match[str]") -> str:
        selector = match.group(1)
        if selector == PAYLOAD_SELECTOR:
            return _payload_text(payload)
        return lookup(payload, selector)

    return TOKEN_PATTERN.sub(_replace, template)


def resolve_param(payload: bytes, value: Any) -> Any:
    """
    Resolve a single parameter slot.

    - exactly ``{{pushx_payload}}``: the payload bytes, unchanged
    - exactly one ``{{path}}`` token: the looked-up string
    - tokens mixed with other text: every token rendered in place
    - anything else: returned as is
    """
    if not isinstance(value, str):
        return value
    if value == PAYLOAD_TOKEN:
        return payload
    match = TOKEN_PATTERN.match(value)
    if match and match.end() == len(value):
        return lookup(payload, match.group(1))
    if TOKEN_PATTERN.search(value):
        return render(payload, value)
    return value


def resolve_params(payload: bytes, params: Sequence[Any]) -> List[Any]:
    """Resolve parameter slots in declared order, returning a new list."""
    return [resolve_param(payload, value) for value in params]


@dataclass
class SqlQuery:
    """A query string plus positional parameter slots that may hold tokens."""

    query: str = ""
    params: List[Any] = field(default_factory=list)

    def resolve(self, payload: bytes) -> Tuple[Any, ...]:
        return tuple(resolve_params(payload, self.params))
