"""Tests for prompt compilation.

Covers: system text flattening, content and message serialization,
template substitution (purity, all occurrences, JSON message format),
fix JSON formatting, and template loading.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from toolbridge.errors import ConfigurationError
from toolbridge.prompts import (
    compact_json,
    compile_instruction,
    extract_system_text,
    format_fix_json,
    load_templates,
    messages_to_text,
    serialize_content,
)
from toolbridge.types import MessageFormat

TEMPLATE = "S=<$SystemPrompt$>\nT=<$Tools$>\nM=<$Messages$>\nS2=<$SystemPrompt$>"


class TestExtractSystemText:
    """extract_system_text() handles strings, segment lists and junk."""

    def test_string(self) -> None:
        assert extract_system_text("Be brief.") == "Be brief."

    def test_segments_keep_text_only(self) -> None:
        system = [
            {"type": "text", "text": "one"},
            {"type": "image", "source": {}},
            {"type": "text", "text": "two"},
        ]
        assert extract_system_text(system) == "one\ntwo"

    @pytest.mark.parametrize("system", [None, 42, {"text": "x"}, ""])
    def test_other_values_give_empty(self, system: object) -> None:
        assert extract_system_text(system) == ""


class TestSerializeContent:
    """serialize_content() renders content blocks."""

    def test_string_verbatim(self) -> None:
        assert serialize_content("hello") == "hello"

    def test_blocks(self) -> None:
        content = [
            {"type": "text", "text": "Looking it up."},
            {"type": "tool_use", "id": "x", "name": "search", "input": {"q": "é"}},
            {
                "type": "tool_result",
                "tool_use_id": "x",
                "content": [{"type": "text", "text": "r1"}, {"type": "text", "text": "r2"}],
            },
        ]
        assert serialize_content(content) == (
            'Looking it up.\n[tool_use:search] {"q":"é"}\n[tool_result] r1\nr2'
        )

    def test_tool_result_string_content(self) -> None:
        block = {"type": "tool_result", "content": "42 degrees"}
        assert serialize_content([block]) == "[tool_result] 42 degrees"

    def test_unknown_blocks_skipped(self) -> None:
        assert serialize_content([{"type": "image"}, "junk", {"type": "text", "text": "a"}]) == "a"

    def test_dict_with_text(self) -> None:
        assert serialize_content({"text": "t"}) == "t"


class TestMessagesToText:
    """messages_to_text() joins role sections with separators."""

    def test_roles_and_separator(self) -> None:
        messages = [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": [{"type": "text", "text": "Hello"}]},
        ]
        assert messages_to_text(messages) == "role:user\nHi\n---\nrole:assistant\nHello"

    def test_missing_role_defaults_to_user(self) -> None:
        assert messages_to_text([{"content": "x"}]) == "role:user\nx"

    def test_non_list_gives_empty(self) -> None:
        assert messages_to_text(None) == ""


class TestCompileInstruction:
    """compile_instruction() fills every placeholder deterministically."""

    def test_substitutes_all_placeholders(self) -> None:
        tools = [{"name": "search", "input_schema": {"type": "object"}}]
        messages = [{"role": "user", "content": "Hi"}]
        result = compile_instruction(TEMPLATE, "sys", tools, messages)
        assert result == (
            "S=sys\n"
            'T=[{"name":"search","input_schema":{"type":"object"}}]\n'
            "M=role:user\nHi\n"
            "S2=sys"
        )

    def test_is_pure(self) -> None:
        messages = [{"role": "user", "content": [{"type": "text", "text": "Hi"}]}]
        first = compile_instruction(TEMPLATE, "sys", [], messages)
        second = compile_instruction(TEMPLATE, "sys", [], messages)
        assert first == second

    def test_absent_tools_render_empty_array(self) -> None:
        assert "T=[]" in compile_instruction(TEMPLATE, "", None, [])

    def test_json_message_format(self) -> None:
        messages = [{"role": "user", "content": "Hi"}]
        result = compile_instruction(TEMPLATE, "", [], messages, message_format=MessageFormat.JSON)
        assert 'M=[{"role":"user","content":"Hi"}]' in result


class TestFixJson:
    """format_fix_json() replaces the first placeholder only."""

    def test_first_occurrence(self) -> None:
        assert format_fix_json("<$JSON$> and <$JSON$>", "{x}") == "{x} and <$JSON$>"


class TestCompactJson:
    def test_no_whitespace_and_unicode_kept(self) -> None:
        assert compact_json({"a": [1, "ü"]}) == '{"a":[1,"ü"]}'


class TestLoadTemplates:
    """load_templates() reads both files or fails fatally."""

    def test_bundled_templates(self) -> None:
        templates = load_templates()
        assert "<$Messages$>" in templates.function_call
        assert "<AnswerInJson>" in templates.function_call
        assert "<$JSON$>" in templates.fix_json

    def test_custom_dir(self, tmp_path: Path) -> None:
        (tmp_path / "function_call.txt").write_text("FC", encoding="utf-8")
        (tmp_path / "fix_json.txt").write_text("FJ", encoding="utf-8")
        templates = load_templates(tmp_path)
        assert (templates.function_call, templates.fix_json) == ("FC", "FJ")

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        (tmp_path / "function_call.txt").write_text("FC", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="fix_json.txt not found"):
            load_templates(tmp_path)
