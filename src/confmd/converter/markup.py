"""Lexical helpers for locating storage-format elements.

Storage format is treated as text: elements are located as offset spans
and replaced in one forward sweep per element class, without building a
tree. Openings and closers of an element class are indexed in a single
scan, and pairing is bounded by an iteration cap, so malformed or
adversarial markup cannot stall a conversion.
"""

import html
import re
from bisect import bisect_left
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from typing import NamedTuple

from bs4 import BeautifulSoup, Comment
from bs4.element import Tag

from confmd.converter.placeholders import PlaceholderStore
from confmd.logger import logger

DEFAULT_MAX_ITERATIONS = 1000

# Characters that may follow an element name inside its opening tag
_NAME_TERMINATORS = frozenset(" \t\r\n/>")

# Tag body up to its closing '>'; quoted values may contain '>' but never '<'
_TAG_BODY_RE = re.compile(r"""(?:[^<>"']|"[^"<]*"|'[^'<]*')*>""")

_CDATA_RE = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.DOTALL)
_WHITESPACE_RE = re.compile(r"\s+")

# Elements whose end is a line boundary in extracted text
_BLOCK_TAGS = frozenset({
    "p", "div", "li", "tr", "h1", "h2", "h3", "h4", "h5", "h6",
    "blockquote", "pre", "table", "ul", "ol", "br", "hr",
})
# Private-use characters standing in for line boundaries and CDATA sections
_BREAK = "\ue000"
_CDATA_SLOT = "\ue001"
_CDATA_SLOT_RE = re.compile(rf"{_CDATA_SLOT}(\d+){_CDATA_SLOT}")


class Element(NamedTuple):
    """One element instance cut out of its document."""

    source: str
    open_end: int
    inner_end: int
    self_closing: bool
    closed: bool

    @property
    def opening_tag(self) -> str:
        """Opening tag including its attributes."""
        return self.source[: self.open_end]

    @property
    def inner(self) -> str:
        """Content between the opening tag and the closer (empty if none)."""
        return self.source[self.open_end : self.inner_end]


class ElementSpan(NamedTuple):
    """Absolute offsets of one element instance.

    ``closed`` is False when no closer was found; the span then covers the
    opening tag only. ``open_end`` is -1 when the opening tag itself has no
    terminating '>'.
    """

    start: int
    end: int
    open_end: int
    inner_end: int
    self_closing: bool
    closed: bool

    @property
    def truncated(self) -> bool:
        """True when the opening tag never ends."""
        return self.open_end < 0

    def element(self, text: str) -> Element:
        """Cut this span out of text."""
        return Element(
            source=text[self.start : self.end],
            open_end=self.open_end - self.start,
            inner_end=self.inner_end - self.start,
            self_closing=self.self_closing,
            closed=self.closed,
        )


def find_opening(text: str, tag: str, pos: int = 0) -> int:
    """Return the offset of the next ``<tag`` opening, or -1.

    ``<ac:link`` does not match ``<ac:link-body>``: the name must be
    followed by whitespace, '/', '>' or the end of text.
    """
    marker = f"<{tag}"
    index = text.find(marker, pos)
    while index != -1:
        after = index + len(marker)
        if after >= len(text) or text[after] in _NAME_TERMINATORS:
            return index
        index = text.find(marker, index + 1)
    return -1


def find_tag_end(text: str, start: int) -> int:
    """Return the offset of the '>' that ends the tag opened at start, or -1."""
    match = _TAG_BODY_RE.match(text, start + 1)
    if match:
        return match.end() - 1
    return text.find(">", start + 1)


def _is_self_closing(text: str, start: int, tag_end: int) -> bool:
    i = tag_end - 1
    while i > start and text[i].isspace():
        i -= 1
    return text[i] == "/"


class ElementIndex:
    """Every instance of one element in a text, located in a single scan.

    Openings and closers are collected left to right and paired with a
    stack, so the closer of a nested element belongs to the innermost open
    instance and the outermost instance spans its whole subtree. A pairing
    separated by more than ``max_steps`` markers counts as unmatched.
    """

    def __init__(self, text: str, tag: str, max_steps: int = DEFAULT_MAX_ITERATIONS) -> None:
        """Index text for one element name.

        Args:
            text: Text to index.
            tag: Qualified element name, e.g. ``ac:structured-macro``.
            max_steps: Bound on markers between an opening and its closer.

        """
        self._text = text
        self._tag = tag
        self._max_steps = max_steps
        self._close_marker = f"</{tag}>"
        self._spans = self._build()
        self._starts = [span.start for span in self._spans]

    def find(self, pos: int = 0) -> ElementSpan | None:
        """Return the first instance starting at or after pos, or None."""
        i = bisect_left(self._starts, pos)
        return self._spans[i] if i < len(self._spans) else None

    def _openings(self) -> list[tuple[int, int]]:
        """(start, offset of '>') for every opening; '>' is -1 if the tag never ends."""
        text = self._text
        openings: list[tuple[int, int]] = []
        # Next bare '>' for tag bodies that do not parse; only ever moves forward
        next_gt = 0
        start = find_opening(text, self._tag)
        while start != -1:
            match = _TAG_BODY_RE.match(text, start + 1)
            if match:
                tag_end = match.end() - 1
            else:
                if next_gt != -1 and next_gt <= start:
                    next_gt = text.find(">", start + 1)
                tag_end = next_gt
            openings.append((start, tag_end))
            start = find_opening(text, self._tag, start + 1)
        return openings

    def _closers(self) -> list[int]:
        closers: list[int] = []
        index = self._text.find(self._close_marker)
        while index != -1:
            closers.append(index)
            index = self._text.find(self._close_marker, index + len(self._close_marker))
        return closers

    def _build(self) -> list[ElementSpan]:
        text = self._text
        openings = self._openings()
        closers = self._closers()

        partners: dict[int, int] = {}
        stack: list[tuple[int, int]] = []
        step = 0
        ci = 0

        def close(closer: int) -> None:
            if stack:
                opening, pushed_at = stack.pop()
                if step - pushed_at <= self._max_steps:
                    partners[opening] = closer

        for oi, (start, tag_end) in enumerate(openings):
            while ci < len(closers) and closers[ci] < start:
                step += 1
                close(closers[ci])
                ci += 1
            step += 1
            if tag_end == -1 or _is_self_closing(text, start, tag_end):
                continue
            # A closer inside the opening tag itself means the tag is not a real opening
            if ci < len(closers) and closers[ci] < tag_end:
                continue
            stack.append((oi, step))
        for closer in closers[ci:]:
            step += 1
            close(closer)

        spans: list[ElementSpan] = []
        for oi, (start, tag_end) in enumerate(openings):
            if tag_end == -1:
                spans.append(ElementSpan(start, len(text), -1, len(text), self_closing=False, closed=False))
                continue
            open_end = tag_end + 1
            if _is_self_closing(text, start, tag_end):
                spans.append(ElementSpan(start, open_end, open_end, open_end, self_closing=True, closed=True))
            elif oi in partners:
                closer = partners[oi]
                end = closer + len(self._close_marker)
                spans.append(ElementSpan(start, end, open_end, closer, self_closing=False, closed=True))
            else:
                spans.append(ElementSpan(start, open_end, open_end, open_end, self_closing=False, closed=False))
        return spans


def find_element(
    text: str, tag: str, pos: int = 0, max_steps: int = DEFAULT_MAX_ITERATIONS
) -> ElementSpan | None:
    """Locate the next instance of an element.

    Loops over many instances of the same element should build one
    ElementIndex instead of calling this repeatedly.

    Args:
        text: Text to search.
        tag: Qualified element name, e.g. ``ac:structured-macro``.
        pos: Offset to start searching from.
        max_steps: Bound on markers inspected while matching the closer.

    Returns:
        ElementSpan of the next instance, or None if there is none.

    """
    if find_opening(text, tag, pos) == -1:
        return None
    return ElementIndex(text, tag, max_steps).find(pos)


def child_inner(text: str, tag: str, max_steps: int = DEFAULT_MAX_ITERATIONS) -> str | None:
    """Return the content of the first complete ``tag`` element in text."""
    span = find_element(text, tag, 0, max_steps)
    if span is None or span.truncated or span.self_closing or not span.closed:
        return None
    return text[span.open_end : span.inner_end]


def remove_elements(text: str, tag: str, max_steps: int = DEFAULT_MAX_ITERATIONS) -> str:
    """Drop every complete ``tag`` element, content included."""
    if find_opening(text, tag) == -1:
        return text
    index = ElementIndex(text, tag, max_steps)
    parts: list[str] = []
    cursor = 0
    for _ in range(max_steps):
        span = index.find(cursor)
        if span is None or span.truncated:
            break
        parts.append(text[cursor : span.start])
        cursor = span.end
    parts.append(text[cursor:])
    return "".join(parts)


@lru_cache(maxsize=64)
def _attribute_pattern(name: str) -> re.Pattern[str]:
    return re.compile(rf"""(?<![\w:-]){re.escape(name)}\s*=\s*(?:"([^"]*)"|'([^']*)')""")


def attribute(text: str, name: str) -> str | None:
    """Return the entity-decoded value of the first ``name="..."`` in text."""
    match = _attribute_pattern(name).search(text)
    if match is None:
        return None
    value = match.group(1) if match.group(1) is not None else match.group(2)
    return html.unescape(value)


def _is_block_boundary(tag: Tag) -> bool:
    return tag.name in _BLOCK_TAGS or tag.name.startswith("ac:task")


def strip_tags(fragment: str, *, line_breaks: bool = False) -> str:
    """Reduce a markup fragment to its text.

    CDATA sections are kept literally; everything else follows HTML rules:
    whitespace runs collapse, tags vanish and entities are decoded.

    Args:
        fragment: Markup to strip.
        line_breaks: Turn block-level boundaries (paragraphs, list items,
            line breaks) into newlines instead of spaces.

    Returns:
        Plain text. With line_breaks, lines are trimmed and empty ones dropped.

    """
    sections: list[str] = []

    def _stash(match: re.Match[str]) -> str:
        sections.append(match.group(1))
        return f"{_CDATA_SLOT}{len(sections) - 1}{_CDATA_SLOT}"

    markup = fragment.replace(_BREAK, "").replace(_CDATA_SLOT, "")
    markup = _CDATA_RE.sub(_stash, markup)

    if "<" in markup:
        soup = BeautifulSoup(markup, "html.parser")
        for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
            comment.extract()
        for tag in soup.find_all(_is_block_boundary):
            tag.insert_after(_BREAK)
        text = soup.get_text()
    else:
        # Nothing to parse, only entities to decode
        text = html.unescape(markup)

    text = _WHITESPACE_RE.sub(" ", text)
    if line_breaks:
        lines = (line.strip() for line in text.split(_BREAK))
        text = "\n".join(line for line in lines if line)
    else:
        text = _WHITESPACE_RE.sub(" ", text.replace(_BREAK, " "))

    return _CDATA_SLOT_RE.sub(lambda m: sections[int(m.group(1))], text)


def plain_text(fragment: str) -> str:
    """Text of a plain-text body.

    CDATA sections are kept literally, entities elsewhere are decoded and
    stray CDATA markers are dropped. Whitespace is preserved.
    """
    pieces: list[str] = []
    cursor = 0
    for match in _CDATA_RE.finditer(fragment):
        pieces.append(_decode_plain(fragment[cursor : match.start()]))
        pieces.append(match.group(1))
        cursor = match.end()
    pieces.append(_decode_plain(fragment[cursor:]))
    return "".join(pieces)


def _decode_plain(chunk: str) -> str:
    return html.unescape(chunk.replace("<![CDATA[", "").replace("]]>", ""))


@dataclass
class ScanContext:
    """State shared by the passes of one normalization call.

    When a placeholder store is attached, every rendered fragment is
    protected behind a token, and tokens inside a span are restored before
    the span is rendered.
    """

    max_iterations: int = DEFAULT_MAX_ITERATIONS
    store: PlaceholderStore | None = None

    def protect(self, fragment: str) -> str:
        """Swap a rendered fragment for a token if a store is attached."""
        if self.store is None:
            return fragment
        return self.store.protect(fragment)

    def restore(self, text: str) -> str:
        """Swap tokens back for their fragments if a store is attached."""
        if self.store is None:
            return text
        return self.store.restore(text)

    def index(self, text: str, tag: str) -> ElementIndex:
        """Index every ``tag`` element of text within the iteration cap."""
        return ElementIndex(text, tag, self.max_iterations)

    def element(self, text: str, span: ElementSpan) -> Element:
        """Cut a span out of text with any tokens inside it restored."""
        if self.store is None or not len(self.store):
            return span.element(text)
        opening = self.restore(text[span.start : span.open_end])
        inner = self.restore(text[span.open_end : span.inner_end])
        closer = text[span.inner_end : span.end]
        return Element(
            source=opening + inner + closer,
            open_end=len(opening),
            inner_end=len(opening) + len(inner),
            self_closing=span.self_closing,
            closed=span.closed,
        )


def replace_elements(
    text: str,
    tag: str,
    render: Callable[[Element], str],
    context: ScanContext,
) -> str:
    """Replace every ``tag`` element in one forward sweep.

    Rendered output is never rescanned. The sweep stops early, leaving the
    rest of the text untouched, at an opening tag that never ends or once
    ``context.max_iterations`` elements have been replaced.

    Args:
        text: Working text.
        tag: Qualified element name.
        render: Maps one element to its replacement.
        context: Scan state for this call.

    Returns:
        Text with elements replaced.

    """
    if find_opening(text, tag) == -1:
        return text

    index = context.index(text, tag)
    parts: list[str] = []
    cursor = 0
    replaced = 0

    while True:
        span = index.find(cursor)
        if span is None:
            break
        if span.truncated:
            logger.debug("Unterminated <%s> at offset %d left in place", tag, span.start)
            break
        if replaced >= context.max_iterations:
            logger.warning(
                "Iteration cap of %d reached for <%s>, leaving remainder untouched",
                context.max_iterations,
                tag,
            )
            break

        parts.append(text[cursor : span.start])
        parts.append(context.protect(render(context.element(text, span))))
        cursor = span.end
        replaced += 1

    parts.append(text[cursor:])
    return "".join(parts)
