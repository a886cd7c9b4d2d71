"""Tests for the delimited-span scanner.

Covers: first span capture, missing open/close tags, stray closing tags,
nested spans, span stripping, tag stripping and unescaping.
"""

from __future__ import annotations

from toolbridge.scanner import TagScanner

ANSWER = TagScanner("AnswerInJson")
THINK = TagScanner("think")
JSON = TagScanner("Json")


class TestFirstSpan:
    """first_span() captures from an opening tag to its close."""

    def test_captures_content(self) -> None:
        span = ANSWER.first_span("pre <AnswerInJson>{}</AnswerInJson> post")
        assert span is not None
        assert span.content == "{}"
        assert span.start == 4
        assert span.end == len("pre <AnswerInJson>{}</AnswerInJson>")

    def test_first_of_two_spans(self) -> None:
        span = ANSWER.first_span("<AnswerInJson>1</AnswerInJson><AnswerInJson>2</AnswerInJson>")
        assert span is not None and span.content == "1"

    def test_no_open_tag(self) -> None:
        assert ANSWER.first_span("plain text") is None

    def test_missing_close_tag(self) -> None:
        assert ANSWER.first_span("<AnswerInJson>{\"content\": []}") is None

    def test_stray_close_before_open_is_ignored(self) -> None:
        span = ANSWER.first_span("</AnswerInJson> x <AnswerInJson>ok</AnswerInJson>")
        assert span is not None and span.content == "ok"

    def test_start_position(self) -> None:
        text = "<think>a</think><think>b</think>"
        span = THINK.first_span(text, pos=1)
        assert span is not None and span.content == "b"


class TestNested:
    """nested=True tracks depth; the default stops at the first close."""

    def test_nested_outer_span(self) -> None:
        span = JSON.first_span("<Json><Json>{}</Json></Json>", nested=True)
        assert span is not None
        assert span.content == "<Json>{}</Json>"
        assert JSON.strip_tags(span.content) == "{}"

    def test_flat_stops_at_first_close(self) -> None:
        span = JSON.first_span("<Json><Json>{}</Json></Json>")
        assert span is not None and span.content == "<Json>{}"

    def test_unbalanced_nested_has_no_span(self) -> None:
        assert JSON.first_span("<Json><Json>{}</Json>", nested=True) is None


class TestStripSpans:
    """strip_spans() removes every complete span non-greedily."""

    def test_removes_each_span(self) -> None:
        text = "<think>a</think>keep<think>b</think>!"
        assert THINK.strip_spans(text) == "keep!"

    def test_non_greedy(self) -> None:
        text = "<think>a</think> answer </think>"
        assert THINK.strip_spans(text) == " answer </think>"

    def test_unclosed_span_kept(self) -> None:
        assert THINK.strip_spans("x <think>still thinking") == "x <think>still thinking"


class TestUnescape:
    """unescape() turns backslash-escaped tags into plain ones."""

    def test_escaped_tags(self) -> None:
        text = "\\<AnswerInJson\\>{}\\</AnswerInJson\\>"
        assert ANSWER.unescape(text) == "<AnswerInJson>{}</AnswerInJson>"

    def test_other_tags_untouched(self) -> None:
        assert ANSWER.unescape("\\<Json\\>") == "\\<Json\\>"


class CountingText(str):
    """str that counts ``find()`` calls."""

    finds = 0

    def find(self, *args: object) -> int:  # type: ignore[override]
        type(self).finds += 1
        return super().find(*args)  # type: ignore[arg-type]


class TestScanCost:
    """Each tag occurrence is searched for once."""

    def test_many_unclosed_opening_tags(self) -> None:
        CountingText.finds = 0
        text = CountingText("<think>x" * 200)
        assert TagScanner("think").first_span(text) is None
        # one initial search per tag kind, then one per opening tag
        assert CountingText.finds <= 2 + 200

    def test_alternating_tags_still_paired(self) -> None:
        text = "<a>1</a><a>2</a>"
        spans = []
        pos = 0
        scanner = TagScanner("a")
        while (span := scanner.first_span(text, pos)) is not None:
            spans.append(span.content)
            pos = span.end
        assert spans == ["1", "2"]
