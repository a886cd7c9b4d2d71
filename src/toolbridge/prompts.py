"""Prompt templates for emulated tool calling.

Two templates drive the gateway: the *function call* template, which
wraps the source system prompt, tool schema and message history into a
single user instruction, and the *fix JSON* template, which asks a model
to repair a malformed answer payload.

Templates are plain-text files with literal placeholders:

- ``<$SystemPrompt$>``, ``<$Tools$>``, ``<$Messages$>`` in
  ``function_call.txt`` (every occurrence is replaced);
- ``<$JSON$>`` in ``fix_json.txt`` (first occurrence only).

Design note: substitution is plain ``str.replace`` rather than
``str.format`` so braces in tool schemas and JSON never need escaping.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from toolbridge.errors import ConfigurationError
from toolbridge.types import MessageFormat

DEFAULT_TEMPLATES_DIR = Path(__file__).parent / "templates"
FUNCTION_CALL_FILE = "function_call.txt"
FIX_JSON_FILE = "fix_json.txt"

SYSTEM_PLACEHOLDER = "<$SystemPrompt$>"
TOOLS_PLACEHOLDER = "<$Tools$>"
MESSAGES_PLACEHOLDER = "<$Messages$>"
JSON_PLACEHOLDER = "<$JSON$>"

MESSAGE_SEPARATOR = "\n---\n"


@dataclass(frozen=True)
class PromptTemplates:
    """The two templates, loaded once at startup.

    Attributes:
        function_call: Emulated tool-calling instruction template.
        fix_json: JSON repair template.
    """

    function_call: str
    fix_json: str


def load_templates(prompts_dir: Path | None = None) -> PromptTemplates:
    """Read both templates from disk.

    Args:
        prompts_dir: Directory holding ``function_call.txt`` and
            ``fix_json.txt``.  Defaults to the templates bundled with
            the package.

    Returns:
        Loaded ``PromptTemplates``.

    Raises:
        ConfigurationError: If either file is missing.
    """
    directory = prompts_dir or DEFAULT_TEMPLATES_DIR
    texts: dict[str, str] = {}
    for filename in (FUNCTION_CALL_FILE, FIX_JSON_FILE):
        path = directory / filename
        if not path.is_file():
            raise ConfigurationError(f"{filename} not found in {directory}")
        texts[filename] = path.read_text(encoding="utf-8")
    return PromptTemplates(function_call=texts[FUNCTION_CALL_FILE], fix_json=texts[FIX_JSON_FILE])


def compact_json(value: Any) -> str:
    """Serialize *value* the way a JavaScript ``JSON.stringify`` would.

    No whitespace after separators and non-ASCII kept as-is, so the
    output is stable across calls and usable as a fingerprint input.
    """
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def extract_system_text(system: Any) -> str:
    """Flatten the source ``system`` field into plain text.

    Args:
        system: A string, a list of typed segments, or anything else.

    Returns:
        The string itself, the ``text`` of every ``text``-typed segment
        joined by newlines, or ``""``.
    """
    if not system:
        return ""
    if isinstance(system, str):
        return system
    if isinstance(system, list):
        return "\n".join(
            str(item.get("text") or "")
            for item in system
            if isinstance(item, dict) and item.get("type") == "text"
        )
    return ""


def _tool_result_text(block: dict[str, Any]) -> str:
    inner = block.get("content")
    if isinstance(inner, list):
        return "\n".join(
            str(c.get("text") or "") if isinstance(c, dict) and c.get("type") == "text" else ""
            for c in inner
        )
    if isinstance(inner, str):
        return inner
    return str(block.get("text") or "")


def serialize_content(content: Any) -> str:
    """Render one message's content as plain text.

    Text blocks contribute their text, ``tool_use`` blocks a
    ``[tool_use:<name>] <input json>`` tag and ``tool_result`` blocks a
    ``[tool_result] <text>`` tag.  Other block types are skipped.

    Args:
        content: A string, a list of content blocks, or a dict with
            a ``text`` key.

    Returns:
        The rendered text, blocks joined by newlines.
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if not isinstance(item, dict):
                continue
            kind = item.get("type")
            if kind == "text":
                parts.append(str(item.get("text") or ""))
            elif kind == "tool_use":
                name = str(item.get("name") or "")
                parts.append(f"[tool_use:{name}] {compact_json(item.get('input') or {})}")
            elif kind == "tool_result":
                parts.append(f"[tool_result] {_tool_result_text(item)}")
        return "\n".join(parts)
    if isinstance(content, dict) and "text" in content:
        return str(content.get("text") or "")
    return ""


def messages_to_text(messages: Any) -> str:
    """Render a message history as ``role:<role>`` sections.

    Args:
        messages: Source-protocol messages; anything but a list gives ``""``.

    Returns:
        One ``role:<role>\\n<content>`` section per message, joined by
        ``\\n---\\n``.
    """
    if not isinstance(messages, list):
        return ""
    sections = []
    for message in messages:
        message = message if isinstance(message, dict) else {}
        role = str(message.get("role") or "user")
        sections.append(f"role:{role}\n{serialize_content(message.get('content'))}")
    return MESSAGE_SEPARATOR.join(sections)


def compile_instruction(
    template: str,
    system_text: str,
    tools: Any,
    messages: Any,
    *,
    message_format: MessageFormat = MessageFormat.TEXT,
) -> str:
    """Fill the function call template.

    Pure function: identical arguments always give identical output.

    Args:
        template: The function call template text.
        system_text: Flattened system prompt.
        tools: Tool definitions, passed through as compact JSON.
        messages: Source-protocol message history.
        message_format: Rendering used for the ``<$Messages$>`` slot.

    Returns:
        The instruction sent as the backend's only user message.
    """
    tools_text = compact_json(tools if tools is not None else [])
    if message_format == MessageFormat.JSON:
        messages_text = compact_json(messages if messages is not None else [])
    else:
        messages_text = messages_to_text(messages)
    return (
        template.replace(SYSTEM_PLACEHOLDER, system_text)
        .replace(TOOLS_PLACEHOLDER, tools_text)
        .replace(MESSAGES_PLACEHOLDER, messages_text)
    )


def format_fix_json(template: str, json_text: str) -> str:
    """Fill the fix JSON template with the malformed payload.

    Args:
        template: The fix JSON template text.
        json_text: Candidate payload that failed to parse.

    Returns:
        Prompt asking the model to return the repaired JSON in a
        ``<Json>`` span.
    """
    return template.replace(JSON_PLACEHOLDER, json_text, 1)
