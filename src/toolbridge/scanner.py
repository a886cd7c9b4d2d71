"""Delimited-span scanner for semi-structured model output.

Backends answer in free text with the structured part wrapped in XML-ish
tags such as ``<AnswerInJson>...</AnswerInJson>``.  ``TagScanner`` walks
the tag occurrences of one tag name in order and drives a two-state
machine:

- ``SEEKING``: skip text (and stray closing tags) until an opening tag;
- ``CAPTURING``: collect text until the matching closing tag.

With ``nested=True`` further opening tags while capturing raise the
depth and the span ends at the closing tag that brings it back to zero.
An opening tag without a closing tag yields no span.

Typical usage::

    from toolbridge.scanner import TagScanner

    answer = TagScanner("AnswerInJson")
    span = answer.first_span(answer.unescape(text))
    if span is not None:
        payload = span.content
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum, auto


class _State(Enum):
    SEEKING = auto()
    CAPTURING = auto()


class _Tag(Enum):
    OPEN = auto()
    CLOSE = auto()


@dataclass(frozen=True)
class Span:
    """One captured span.

    Attributes:
        text: The scanned text the span belongs to.
        start: Index of the opening tag.
        content_start: Index just after the opening tag.
        content_end: Index of the closing tag.
        end: Index just after the closing tag.
    """

    text: str
    start: int
    content_start: int
    content_end: int
    end: int

    @property
    def content(self) -> str:
        return self.text[self.content_start : self.content_end]


class TagScanner:
    """Finds, strips and unescapes spans delimited by one tag name.

    Args:
        name: Tag name without brackets, e.g. ``"think"``.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.open_tag = f"<{name}>"
        self.close_tag = f"</{name}>"
        self._escaped_open = f"\\<{name}\\>"
        self._escaped_close = f"\\</{name}\\>"

    def _tags(self, text: str, pos: int) -> Iterator[tuple[_Tag, int]]:
        """Yield every opening/closing tag at or after *pos*, in order.

        Each tag kind is searched again only after the previous match of
        that kind has been yielded, so every search starts past it.
        """
        next_open = text.find(self.open_tag, pos)
        next_close = text.find(self.close_tag, pos)
        while next_open != -1 or next_close != -1:
            if next_close == -1 or (next_open != -1 and next_open < next_close):
                yield _Tag.OPEN, next_open
                next_open = text.find(self.open_tag, next_open + len(self.open_tag))
            else:
                yield _Tag.CLOSE, next_close
                next_close = text.find(self.close_tag, next_close + len(self.close_tag))

    def first_span(self, text: str, pos: int = 0, *, nested: bool = False) -> Span | None:
        """Locate the first complete span at or after *pos*.

        Args:
            text: Text to scan.
            pos: Index to start scanning from.
            nested: Track nested opening tags and end at the matching
                close.  Otherwise the first closing tag ends the span.

        Returns:
            The span, or ``None`` if there is no opening tag or it is
            never closed.
        """
        state = _State.SEEKING
        start = content_start = depth = 0
        for tag, index in self._tags(text, pos):
            if state is _State.SEEKING:
                if tag is _Tag.OPEN:
                    state = _State.CAPTURING
                    start, content_start, depth = index, index + len(self.open_tag), 1
                continue
            if tag is _Tag.OPEN:
                if nested:
                    depth += 1
                continue
            depth -= 1
            if depth == 0 or not nested:
                return Span(text, start, content_start, index, index + len(self.close_tag))
        return None

    def strip_spans(self, text: str) -> str:
        """Remove every complete span, tags included.

        Each span runs from an opening tag to the next closing tag.  An
        unclosed opening tag and everything after it are kept.
        """
        parts: list[str] = []
        pos = 0
        while (span := self.first_span(text, pos)) is not None:
            parts.append(text[pos : span.start])
            pos = span.end
        parts.append(text[pos:])
        return "".join(parts)

    def strip_tags(self, text: str) -> str:
        """Remove bare opening and closing tag literals, keeping their content."""
        return text.replace(self.open_tag, "").replace(self.close_tag, "")

    def unescape(self, text: str) -> str:
        r"""Turn backslash-escaped tags (``\<Tag\>``) into plain tags."""
        return text.replace(self._escaped_open, self.open_tag).replace(
            self._escaped_close, self.close_tag
        )
