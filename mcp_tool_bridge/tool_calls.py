"""Execution of tool calls embedded in generated text.

Calls are written as::

    <tool>read_file(path="src/main.py")</tool>

Argument values cannot contain a double quote; there is no escape
syntax, so a value stops at the first ``"``.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List

from .models import CallToolResult
from .server_manager import ToolServerRegistry


TOOL_CALL_PATTERN = re.compile(r'<tool>([A-Za-z0-9_]+)\((.*?)\)</tool>')
ARGUMENT_PATTERN = re.compile(r'([A-Za-z0-9_]+)="([^"]*)"')

logger = logging.getLogger("tool_calls")


@dataclass(frozen=True)
class ToolCall:
    """A tool call parsed from text, with the span it was read from."""
    name: str
    arguments: Dict[str, str] = field(default_factory=dict)
    start: int = 0
    end: int = 0


def parse_arguments(args_string: str) -> Dict[str, str]:
    """Parse ``key="value", ...`` into a dict; repeated keys keep the last value."""
    if not args_string.strip():
        return {}
    return {match.group(1): match.group(2) for match in ARGUMENT_PATTERN.finditer(args_string)}


def extract_tool_calls(text: str) -> List[ToolCall]:
    """Find all tool calls in ``text``, left to right, without overlap."""
    return [
        ToolCall(
            name=match.group(1),
            arguments=parse_arguments(match.group(2)),
            start=match.start(),
            end=match.end(),
        )
        for match in TOOL_CALL_PATTERN.finditer(text)
    ]


def render_result(result: CallToolResult) -> str:
    """Render a tool result as inline text."""
    if result.isError:
        message = result.content[0].text if result.content and result.content[0].text else "Unknown error"
        return f"[Error: {message}]"

    parts = []
    for item in result.content:
        if item.type == "image":
            parts.append(f"[Image: {item.mimeType}]")
        elif item.type == "resource":
            parts.append(f"[Resource: {item.mimeType}]")
        else:
            parts.append(item.text or "")
    return "\n".join(parts)


class ToolCallEngine:
    """Replaces embedded tool calls with the output of running them."""

    def __init__(self, registry: ToolServerRegistry):
        self.registry = registry

    async def _run(self, call: ToolCall) -> str:
        try:
            result = await self.registry.dispatch(call.name, dict(call.arguments))
            return render_result(result)
        except Exception as e:
            logger.error(f"Error executing tool {call.name}: {e}")
            return f"[Error executing {call.name}: {e}]"

    async def execute(self, text: str) -> str:
        """Run every call in ``text`` in order and splice in the results.

        Text outside the matched spans is returned unchanged.
        """
        calls = extract_tool_calls(text)
        if not calls:
            return text

        logger.info(f"Executing {len(calls)} embedded tool call(s)")
        pieces = []
        position = 0
        for call in calls:
            pieces.append(text[position:call.start])
            pieces.append(await self._run(call))
            position = call.end
        pieces.append(text[position:])
        return "".join(pieces)
