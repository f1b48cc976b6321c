"""
Module: parsing.markup_tree

Purpose:
    Tokenizer and tree builder for the markup syntax. Unlike a stock XML
    reader it records source offsets for every element, attribute value
    and text run, so edits can be applied as text splices, and it never
    stops at the first problem: each malformed construct becomes a
    SyntaxIssue and building resumes at the next recognisable boundary.

Key Functions:
    - build_tree(): Build a MarkupDocument from raw text
    - line_indent(): Leading whitespace of the line containing an offset

Key Classes:
    - MarkupDocument: Top-level elements plus collected issues
    - MarkupElement: Element with spans and children
    - MarkupText: Decoded character data with span
    - MarkupAttribute: Attribute with name and value spans
    - SyntaxIssue: Offset and message of one syntax problem

Recovery Rules:
    - Unexpected closing tags are reported and skipped
    - A closing tag that matches an outer element closes the inner
      elements at that point, each reported as unclosed
    - Opening a boundary element (an item) while another is open closes
      the open one, so one broken item never swallows its siblings
    - Unclosed elements are closed at the end of input
    - Comments, processing instructions and DOCTYPE are skipped

Dependencies:
    - html (std): Entity decoding
    - re (std)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from html import unescape
from typing import Iterator, List, Optional, Tuple, Union

NAME_RE = re.compile(r"[A-Za-z_][\w.\-]*(?::[A-Za-z_][\w.\-]*)?")
END_TAG_RE = re.compile(r"</\s*([A-Za-z_][\w.:\-]*)\s*>")
ATTR_NAME_RE = re.compile(r"[^\s=/<>\"']+")
UNQUOTED_VALUE_RE = re.compile(r"[^\s<>\"']+")
WHITESPACE_RE = re.compile(r"\s*")
INDENT_RE = re.compile(r"[ \t]*")
BARE_AMPERSAND_RE = re.compile(r"&(?!#[0-9]+;|#x[0-9A-Fa-f]+;|[A-Za-z][\w.\-]*;)")


@dataclass(frozen=True)
class SyntaxIssue:
    """One syntax problem at a source offset."""

    offset: int
    message: str


@dataclass
class MarkupAttribute:
    """
    Attribute of a start tag.

    Attributes:
        name: Attribute name as written
        value: Entity-decoded value
        start: Offset of the attribute name
        end: Offset just past the closing quote
        value_start: Offset of the first value character (inside quotes)
        value_end: Offset of the closing quote
    """

    name: str
    value: str
    start: int
    end: int
    value_start: int
    value_end: int


@dataclass(eq=False)
class MarkupText:
    """Character data with entities decoded; CDATA content is taken as is."""

    text: str
    start: int
    end: int


@dataclass(eq=False)
class MarkupElement:
    """
    Element with source spans.

    Spans (all offsets into the source):
        start .. start_tag_end: the start tag
        inner_start .. inner_end: the content between start and end tag
        start .. end: the whole element
    For a self-closing element the inner span is empty at start_tag_end.
    """

    tag: str
    start: int
    name_end: int
    start_tag_end: int = 0
    inner_start: int = 0
    inner_end: int = 0
    end: int = 0
    attributes: List[MarkupAttribute] = field(default_factory=list)
    children: List[Union[MarkupElement, MarkupText]] = field(default_factory=list)
    self_closing: bool = False
    closed: bool = True
    parent: Optional[MarkupElement] = field(default=None, repr=False)

    @property
    def local_name(self) -> str:
        return self.tag.rsplit(":", 1)[-1]

    def attribute(self, name: str) -> Optional[MarkupAttribute]:
        for attr in self.attributes:
            if attr.name == name:
                return attr
        for attr in self.attributes:
            if ":" in attr.name and attr.name.rsplit(":", 1)[1] == name:
                return attr
        return None

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        attr = self.attribute(name)
        return attr.value if attr is not None else default

    def attribute_pairs(self) -> Tuple[Tuple[str, str], ...]:
        return tuple((a.name, a.value) for a in self.attributes)

    def elements(self) -> Iterator[MarkupElement]:
        """Child elements in order."""
        for child in self.children:
            if isinstance(child, MarkupElement):
                yield child

    def find(self, local: str) -> Optional[MarkupElement]:
        """First child element with local name ``local``."""
        for child in self.elements():
            if child.local_name == local:
                return child
        return None

    def find_all(self, local: str) -> List[MarkupElement]:
        return [child for child in self.elements() if child.local_name == local]

    def iter(self) -> Iterator[MarkupElement]:
        """This element and all descendant elements, depth first."""
        stack = [self]
        while stack:
            element = stack.pop()
            yield element
            stack.extend(reversed(list(element.elements())))


@dataclass
class MarkupDocument:
    """Result of build_tree: top-level elements plus issues sorted by offset."""

    source: str
    roots: List[MarkupElement]
    issues: List[SyntaxIssue]

    def position(self, offset: int) -> Tuple[int, int]:
        """1-based (line, column) of ``offset``."""
        line = self.source.count("\n", 0, offset) + 1
        column = offset - (self.source.rfind("\n", 0, offset) + 1) + 1
        return line, column

    def format_issue(self, issue: SyntaxIssue) -> str:
        line, column = self.position(issue.offset)
        return f"line {line}, column {column}: {issue.message}"

    def issues_within(self, start: int, end: int) -> List[SyntaxIssue]:
        return [issue for issue in self.issues if start <= issue.offset < end]

    def iter(self) -> Iterator[MarkupElement]:
        for root in self.roots:
            yield from root.iter()


def line_indent(source: str, offset: int) -> str:
    """Leading whitespace of the line that contains ``offset``."""
    line_start = source.rfind("\n", 0, offset) + 1
    return INDENT_RE.match(source, line_start).group()


def build_tree(source: str, boundary_tags: Tuple[str, ...] = ("assessmentItem",)) -> MarkupDocument:
    """
    Build a span-annotated tree from markup text. Never raises.

    Args:
        source: Raw markup text
        boundary_tags: Local names that may not nest; opening one while
            another is open closes the open one

    Returns:
        MarkupDocument with top-level elements and syntax issues

    Example:
        >>> doc = build_tree('<a x="1"><b>hi</b></a>')
        >>> doc.roots[0].find("b").inner_start
        12
    """
    return _TreeBuilder(source, frozenset(boundary_tags)).run()


class _TreeBuilder:
    """Single pass over the source with an explicit open-element stack."""

    def __init__(self, source: str, boundary_tags: frozenset):
        self.source = source
        self.length = len(source)
        self.boundary_tags = boundary_tags
        self.pos = 0
        self.stack: List[MarkupElement] = []
        self.roots: List[MarkupElement] = []
        self.issues: List[SyntaxIssue] = []

    def run(self) -> MarkupDocument:
        src = self.source
        while self.pos < self.length:
            lt = src.find("<", self.pos)
            if lt == -1:
                self._text(self.pos, self.length)
                break
            if lt > self.pos:
                self._text(self.pos, lt)
            self.pos = lt
            if src.startswith("<!--", lt):
                self._comment(lt)
            elif src.startswith("<![CDATA[", lt):
                self._cdata(lt)
            elif src.startswith("<?", lt):
                self._processing_instruction(lt)
            elif src.startswith("<!", lt):
                self._doctype(lt)
            elif src.startswith("</", lt):
                self._end_tag(lt)
            else:
                self._start_tag(lt)

        for element in reversed(self.stack):
            self._close_unclosed(element, self.length, "was not closed before end of input")
        self.stack.clear()
        self.issues.sort(key=lambda issue: issue.offset)
        return MarkupDocument(self.source, self.roots, self.issues)

    # ─────────────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────────────

    def _issue(self, offset: int, message: str) -> None:
        self.issues.append(SyntaxIssue(offset, message))

    def _skip_ws(self, pos: int) -> int:
        return WHITESPACE_RE.match(self.source, pos).end()

    def _close_unclosed(self, element: MarkupElement, at: int, reason: str) -> None:
        element.inner_end = at
        element.end = at
        element.closed = False
        self._issue(element.start, f"<{element.tag}> {reason}")

    def _check_ampersands(self, raw: str, offset: int) -> None:
        for match in BARE_AMPERSAND_RE.finditer(raw):
            self._issue(offset + match.start(), "unescaped '&'")

    # ─────────────────────────────────────────────────────────────────────────
    # Constructs
    # ─────────────────────────────────────────────────────────────────────────

    def _text(self, start: int, end: int) -> None:
        raw = self.source[start:end]
        self._check_ampersands(raw, start)
        if not self.stack:
            stripped = raw.lstrip()
            if stripped:
                self._issue(start + len(raw) - len(stripped), "text outside of any element")
            return
        self.stack[-1].children.append(MarkupText(unescape(raw), start, end))

    def _comment(self, lt: int) -> None:
        end = self.source.find("-->", lt + 4)
        if end == -1:
            self._issue(lt, "unterminated comment")
            self.pos = self.length
        else:
            self.pos = end + 3

    def _cdata(self, lt: int) -> None:
        end = self.source.find("]]>", lt + 9)
        if end == -1:
            self._issue(lt, "unterminated CDATA section")
            content_end = close_end = self.length
        else:
            content_end, close_end = end, end + 3
        if self.stack:
            self.stack[-1].children.append(
                MarkupText(self.source[lt + 9:content_end], lt, close_end)
            )
        else:
            self._issue(lt, "CDATA outside of any element")
        self.pos = close_end

    def _processing_instruction(self, lt: int) -> None:
        end = self.source.find("?>", lt + 2)
        if end == -1:
            self._issue(lt, "unterminated processing instruction")
            nxt = self.source.find("<", lt + 2)
            self.pos = nxt if nxt != -1 else self.length
        else:
            self.pos = end + 2

    def _doctype(self, lt: int) -> None:
        depth = 0
        for index in range(lt + 2, self.length):
            ch = self.source[index]
            if ch == "[":
                depth += 1
            elif ch == "]":
                depth -= 1
            elif ch == ">" and depth <= 0:
                self.pos = index + 1
                return
        self._issue(lt, "unterminated declaration")
        self.pos = self.length

    def _end_tag(self, lt: int) -> None:
        src = self.source
        match = END_TAG_RE.match(src, lt)
        if match is None:
            self._issue(lt, "malformed closing tag")
            gt = src.find(">", lt)
            nxt = src.find("<", lt + 2)
            if gt != -1 and (nxt == -1 or gt < nxt):
                self.pos = gt + 1
            else:
                self.pos = nxt if nxt != -1 else self.length
            return

        name = match.group(1)
        self.pos = match.end()
        index = len(self.stack) - 1
        while index >= 0 and self.stack[index].tag != name:
            index -= 1
        if index < 0:
            self._issue(lt, f"unexpected closing tag </{name}>")
            return

        for element in reversed(self.stack[index + 1:]):
            self._close_unclosed(element, lt, f"was not closed before </{name}>")
        target = self.stack[index]
        target.inner_end = lt
        target.end = match.end()
        del self.stack[index:]

    def _start_tag(self, lt: int) -> None:
        src = self.source
        match = NAME_RE.match(src, lt + 1)
        if match is None:
            self._issue(lt, "'<' is not followed by a tag name")
            if self.stack:
                self.stack[-1].children.append(MarkupText("<", lt, lt + 1))
            self.pos = lt + 1
            return

        tag = match.group()
        element = MarkupElement(tag=tag, start=lt, name_end=match.end())
        pos = self._attributes(element, match.end())
        element.start_tag_end = pos
        self.pos = pos

        if element.local_name in self.boundary_tags:
            for index, open_element in enumerate(self.stack):
                if open_element.local_name in self.boundary_tags:
                    for unclosed in reversed(self.stack[index:]):
                        self._close_unclosed(unclosed, lt, f"was not closed before <{tag}>")
                    del self.stack[index:]
                    break

        parent = self.stack[-1] if self.stack else None
        element.parent = parent
        (parent.children if parent is not None else self.roots).append(element)
        if element.self_closing:
            element.inner_start = element.inner_end = element.end = pos
        else:
            element.inner_start = pos
            self.stack.append(element)

    def _attributes(self, element: MarkupElement, pos: int) -> int:
        """Parse attributes up to the end of the start tag; return the offset after it."""
        src = self.source
        seen = set()
        while True:
            pos = self._skip_ws(pos)
            if pos >= self.length:
                self._issue(element.start, f"unterminated start tag <{element.tag}>")
                return self.length
            ch = src[pos]
            if ch == ">":
                return pos + 1
            if src.startswith("/>", pos):
                element.self_closing = True
                return pos + 2
            if ch == "<":
                self._issue(element.start, f"unterminated start tag <{element.tag}>")
                return pos

            name_match = ATTR_NAME_RE.match(src, pos)
            if name_match is None:
                self._issue(pos, f"unexpected {ch!r} in start tag <{element.tag}>")
                pos += 1
                continue

            name = name_match.group()
            name_start = pos
            attr, pos = self._attribute_value(name, name_start, name_match.end())
            if name in seen:
                self._issue(name_start, f"duplicate attribute {name!r}")
            seen.add(name)
            element.attributes.append(attr)

    def _attribute_value(self, name: str, name_start: int, pos: int) -> Tuple[MarkupAttribute, int]:
        src = self.source
        after_name = pos
        pos = self._skip_ws(pos)
        if pos >= self.length or src[pos] != "=":
            self._issue(name_start, f"attribute {name!r} has no value")
            return MarkupAttribute(name, "", name_start, after_name, after_name, after_name), after_name

        pos = self._skip_ws(pos + 1)
        if pos < self.length and src[pos] in "\"'":
            quote = src[pos]
            close = src.find(quote, pos + 1)
            next_lt = src.find("<", pos + 1)
            if close == -1 or (next_lt != -1 and next_lt < close):
                self._issue(pos, f"unterminated value for attribute {name!r}")
                value_end = next_lt if next_lt != -1 else self.length
                raw = src[pos + 1:value_end]
                attr = MarkupAttribute(name, unescape(raw), name_start, value_end, pos + 1, value_end)
                return attr, value_end
            raw = src[pos + 1:close]
            self._check_ampersands(raw, pos + 1)
            attr = MarkupAttribute(name, unescape(raw), name_start, close + 1, pos + 1, close)
            return attr, close + 1

        self._issue(pos, f"value of attribute {name!r} is not quoted")
        value_match = UNQUOTED_VALUE_RE.match(src, pos)
        if value_match is None:
            return MarkupAttribute(name, "", name_start, pos, pos, pos), pos
        end = value_match.end()
        if src.startswith("/>", end - 1):
            end -= 1
        return MarkupAttribute(name, unescape(src[pos:end]), name_start, end, pos, end), end
