"""Tests for embedded tool call extraction and execution."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from mcp_tool_bridge.client import TransportError
from mcp_tool_bridge.models import CallToolResult, ContentItem
from mcp_tool_bridge.server_manager import ToolServerRegistry
from mcp_tool_bridge.tool_calls import (
    ToolCall, ToolCallEngine, extract_tool_calls, parse_arguments, render_result,
)


def text_result(text: str) -> CallToolResult:
    return CallToolResult(content=[ContentItem(type="text", text=text)])


def mock_registry(side_effect=None, return_value=None) -> MagicMock:
    registry = MagicMock(spec=ToolServerRegistry)
    registry.dispatch = AsyncMock(side_effect=side_effect, return_value=return_value)
    return registry


class TestParseArguments:

    def test_empty(self):
        assert parse_arguments("") == {}
        assert parse_arguments("   ") == {}

    def test_pairs(self):
        assert parse_arguments('path="a.txt", mode="r"') == {"path": "a.txt", "mode": "r"}

    def test_duplicate_key_keeps_last(self):
        assert parse_arguments('q="one", q="two"') == {"q": "two"}

    def test_value_may_contain_commas_and_parens(self):
        assert parse_arguments('expr="f(a, b)"') == {"expr": "f(a, b)"}

    def test_embedded_quote_truncates_value(self):
        """There is no escaping: a quote ends the value."""
        assert parse_arguments('text="say "hi" now"') == {"text": "say "}

    def test_empty_value(self):
        assert parse_arguments('path=""') == {"path": ""}


class TestExtract:

    def test_no_calls(self):
        assert extract_tool_calls("plain text, no tools") == []

    def test_single_call_span(self):
        text = 'before <tool>read_file(path="a.txt")</tool> after'
        calls = extract_tool_calls(text)

        assert calls == [ToolCall("read_file", {"path": "a.txt"}, 7, 43)]
        assert text[calls[0].start:calls[0].end] == '<tool>read_file(path="a.txt")</tool>'

    def test_multiple_calls_in_order(self):
        text = '<tool>a()</tool> and <tool>b(x="1")</tool>'
        calls = extract_tool_calls(text)

        assert [c.name for c in calls] == ["a", "b"]
        assert calls[0].end <= calls[1].start
        assert calls[1].arguments == {"x": "1"}

    def test_malformed_calls_ignored(self):
        text = '<tool>bad name()</tool> <tool>ok()</tool> <tool>no_parens</tool>'
        assert [c.name for c in extract_tool_calls(text)] == ["ok"]

    def test_call_does_not_span_lines(self):
        assert extract_tool_calls('<tool>a(x="1\n2")</tool>') == []


class TestRenderResult:

    def test_text_items_joined(self):
        result = CallToolResult(content=[
            ContentItem(type="text", text="one"),
            ContentItem(type="text", text="two"),
        ])
        assert render_result(result) == "one\ntwo"

    def test_image_and_resource_placeholders(self):
        result = CallToolResult(content=[
            ContentItem(type="image", data="...", mimeType="image/png"),
            ContentItem(type="resource", mimeType="text/plain"),
        ])
        assert render_result(result) == "[Image: image/png]\n[Resource: text/plain]"

    def test_error_uses_first_item(self):
        assert render_result(CallToolResult.error("boom")) == "[Error: boom]"

    def test_error_without_content(self):
        assert render_result(CallToolResult(content=[], isError=True)) == "[Error: Unknown error]"

    def test_empty_success(self):
        assert render_result(CallToolResult(content=[], isError=False)) == ""

    def test_text_item_without_text(self):
        assert render_result(CallToolResult(content=[ContentItem(type="text")])) == ""


class TestEngine:

    @pytest.mark.asyncio
    async def test_identity_without_calls(self):
        registry = mock_registry()
        engine = ToolCallEngine(registry)
        text = "  nothing <tool> to </tool> see here\n\twith formatting  "

        assert await engine.execute(text) == text
        registry.dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_single_substitution(self):
        registry = mock_registry(return_value=text_result("hello"))
        engine = ToolCallEngine(registry)

        output = await engine.execute('before <tool>read_file(path="a.txt")</tool> after')

        assert output == "before hello after"
        registry.dispatch.assert_awaited_once_with("read_file", {"path": "a.txt"})

    @pytest.mark.asyncio
    async def test_multiple_substitutions_in_order(self):
        registry = mock_registry(side_effect=[text_result("1"), text_result("2"), text_result("3")])
        engine = ToolCallEngine(registry)

        output = await engine.execute('a <tool>x()</tool> b <tool>y()</tool>\n c <tool>x()</tool>.')

        assert output == "a 1 b 2\n c 3."
        assert [call.args[0] for call in registry.dispatch.await_args_list] == ["x", "y", "x"]

    @pytest.mark.asyncio
    async def test_identical_calls_replaced_by_span(self):
        """Each occurrence is executed and replaced separately."""
        registry = mock_registry(side_effect=[text_result("first"), text_result("second")])
        engine = ToolCallEngine(registry)

        output = await engine.execute("<tool>t()</tool>|<tool>t()</tool>")
        assert output == "first|second"

    @pytest.mark.asyncio
    async def test_reported_error_rendered_inline(self):
        registry = mock_registry(return_value=CallToolResult.error("Unknown tool: read_file"))
        engine = ToolCallEngine(registry)

        output = await engine.execute('before <tool>read_file(path="a.txt")</tool> after')

        assert output == "before [Error: Unknown tool: read_file] after"
        assert "<tool>" not in output

    @pytest.mark.asyncio
    async def test_exception_becomes_marker(self):
        registry = mock_registry(side_effect=[TransportError("timed out"), text_result("ok")])
        engine = ToolCallEngine(registry)

        output = await engine.execute("<tool>slow()</tool> then <tool>fast()</tool>")

        assert output == "[Error executing slow: timed out] then ok"

    @pytest.mark.asyncio
    async def test_empty_result_removes_call(self):
        registry = mock_registry(return_value=CallToolResult(content=[]))
        engine = ToolCallEngine(registry)

        assert await engine.execute("x<tool>noop()</tool>y") == "xy"

    @pytest.mark.asyncio
    async def test_unknown_tool_with_real_registry(self):
        engine = ToolCallEngine(ToolServerRegistry([]))

        output = await engine.execute('before <tool>read_file(path="a.txt")</tool> after')
        assert output == "before [Error: Unknown tool: read_file] after"
