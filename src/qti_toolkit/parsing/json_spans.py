"""
Module: parsing.json_spans

Purpose:
    Scan JSON text into a tree of nodes that remember their source
    offsets. The stdlib decoder is used for error reporting and for
    decoding individual tokens; this scanner adds the spans needed to
    splice edits into JSON documents without reformatting them.

Key Functions:
    - scan_json(): Build a JsonNode tree from valid JSON text

Key Classes:
    - JsonNode: Value with kind, span and decoded value
    - JsonMember: Object member with key span
    - JsonSpanError: Raised for text the scanner cannot follow

Dependencies:
    - json (std), re (std)
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

STRING_RE = re.compile(r'"(?:[^"\\\x00-\x1f]|\\(?:["\\/bfnrt]|u[0-9a-fA-F]{4}))*"')
NUMBER_RE = re.compile(r"-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?")
WS_RE = re.compile(r"[ \t\n\r]*")
LITERALS = (("true", True), ("false", False), ("null", None))
CLOSERS = {"object": "}", "array": "]"}


class JsonSpanError(ValueError):
    """Raised when text is not valid JSON."""

    def __init__(self, message: str, offset: int):
        super().__init__(f"{message} at offset {offset}")
        self.offset = offset


@dataclass(eq=False)
class JsonMember:
    """``"key": value`` inside an object."""

    key: str
    key_start: int
    key_end: int
    value: JsonNode


@dataclass(eq=False)
class JsonNode:
    """
    A JSON value with its source span.

    Attributes:
        kind: ``object``, ``array``, ``string``, ``number`` or ``literal``
        start: Offset of the first character
        end: Offset just past the last character
        value: Decoded Python value
        members: Object members in source order
        items: Array elements in source order
    """

    kind: str
    start: int
    end: int
    value: Any = None
    members: List[JsonMember] = field(default_factory=list)
    items: List[JsonNode] = field(default_factory=list)

    def member(self, key: str) -> Optional[JsonMember]:
        """Last member named ``key`` (matching the decoder's behaviour)."""
        found = None
        for member in self.members:
            if member.key == key:
                found = member
        return found

    def get(self, key: str) -> Optional[JsonNode]:
        member = self.member(key)
        return member.value if member is not None else None

    def raw(self, source: str) -> str:
        return source[self.start:self.end]


def scan_json(text: str) -> JsonNode:
    """
    Scan ``text`` into a JsonNode tree.

    Args:
        text: JSON text

    Returns:
        Root node

    Raises:
        JsonSpanError: If ``text`` is not valid JSON

    Example:
        >>> node = scan_json('{"a": [1, 2]}')
        >>> node.get("a").start, node.get("a").end
        (6, 12)
    """
    scanner = _Scanner(text)
    node, pos = scanner.value(scanner.ws(0))
    pos = scanner.ws(pos)
    if pos != len(text):
        raise JsonSpanError("extra data", pos)
    return node


class _Scanner:
    """Single pass with an explicit stack of open containers."""

    def __init__(self, text: str):
        self.text = text

    def ws(self, pos: int) -> int:
        return WS_RE.match(self.text, pos).end()

    def value(self, pos: int) -> Tuple[JsonNode, int]:
        text = self.text
        # Open containers, each with the member name its next value belongs to.
        stack: List[Tuple[JsonNode, Optional[Tuple[str, int, int]]]] = []
        while True:
            node, pos = self._start(pos)
            if node.kind in CLOSERS:
                pos = self.ws(pos)
                if pos < len(text) and text[pos] == CLOSERS[node.kind]:
                    node.end = pos = pos + 1
                else:
                    key = None
                    if node.kind == "object":
                        key, pos = self._key(pos)
                    stack.append((node, key))
                    continue

            while True:
                if not stack:
                    return node, pos
                parent, key = stack[-1]
                if key is not None:
                    name, key_start, key_end = key
                    parent.members.append(JsonMember(name, key_start, key_end, node))
                    parent.value[name] = node.value
                else:
                    parent.items.append(node)
                    parent.value.append(node.value)
                closer = CLOSERS[parent.kind]
                pos = self.ws(pos)
                if pos < len(text) and text[pos] == ",":
                    pos = self.ws(pos + 1)
                    if parent.kind == "object":
                        key, pos = self._key(pos)
                        stack[-1] = (parent, key)
                    break
                if pos < len(text) and text[pos] == closer:
                    parent.end = pos = pos + 1
                    stack.pop()
                    node = parent
                    continue
                raise JsonSpanError(f"expected ',' or '{closer}'", pos)

    def _start(self, pos: int) -> Tuple[JsonNode, int]:
        """A scalar, or a container whose end is not known yet."""
        text = self.text
        if pos >= len(text):
            raise JsonSpanError("unexpected end of input", pos)
        ch = text[pos]
        if ch == "{":
            return JsonNode("object", pos, pos, {}), pos + 1
        if ch == "[":
            return JsonNode("array", pos, pos, []), pos + 1
        if ch == '"':
            match = STRING_RE.match(text, pos)
            if match is None:
                raise JsonSpanError("invalid string", pos)
            return JsonNode("string", pos, match.end(), json.loads(match.group())), match.end()
        match = NUMBER_RE.match(text, pos)
        if match is not None and match.group():
            return JsonNode("number", pos, match.end(), json.loads(match.group())), match.end()
        for literal, decoded in LITERALS:
            if text.startswith(literal, pos):
                end = pos + len(literal)
                return JsonNode("literal", pos, end, decoded), end
        raise JsonSpanError(f"unexpected character {ch!r}", pos)

    def _key(self, pos: int) -> Tuple[Tuple[str, int, int], int]:
        text = self.text
        match = STRING_RE.match(text, pos)
        if match is None:
            raise JsonSpanError("expected member name", pos)
        pos = self.ws(match.end())
        if pos >= len(text) or text[pos] != ":":
            raise JsonSpanError("expected ':'", pos)
        return (json.loads(match.group()), match.start(), match.end()), self.ws(pos + 1)
