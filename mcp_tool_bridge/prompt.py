"""Prompt composition from the registry and project context."""

from typing import Optional

from .config import ClientConfig
from .server_manager import ToolServerRegistry


DEFAULT_IDENTITY = (
    "You are a coding assistant embedded in a code editor. "
    "Answer concisely and prefer working code over prose."
)

TOOL_INSTRUCTIONS = (
    "You can call tools by writing them inline as "
    '<tool>tool_name(arg1="value1", arg2="value2")</tool>. '
    "Each call is replaced with its output before the reply is shown. "
    "Argument values are plain strings and cannot contain double quotes."
)


class PromptAssembler:
    """Builds system and user prompts for the model gateway."""

    def __init__(self, registry: ToolServerRegistry, identity: str = DEFAULT_IDENTITY,
                 enable_tools: bool = True, include_context: bool = True):
        self.registry = registry
        self.identity = identity
        self.enable_tools = enable_tools
        self.include_context = include_context

    @classmethod
    def from_config(cls, registry: ToolServerRegistry, config: ClientConfig,
                    identity: str = DEFAULT_IDENTITY) -> "PromptAssembler":
        return cls(registry, identity, config.enable_tools, config.include_context)

    def system_prompt(self, enable_tools: Optional[bool] = None) -> str:
        if enable_tools is None:
            enable_tools = self.enable_tools
        if not enable_tools:
            return self.identity
        return "\n\n".join([
            self.identity,
            TOOL_INSTRUCTIONS,
            self.registry.describe_available_tools(),
        ])

    def user_prompt(self, message: str, current_focus: Optional[str] = None,
                    include_context: Optional[bool] = None) -> str:
        if include_context is None:
            include_context = self.include_context
        lines = []
        if include_context:
            context = self.registry.build_context(current_focus)
            if context:
                lines.append("=== CODEBASE CONTEXT ===")
                lines.append(context)
                lines.append("")
        lines.append("=== USER MESSAGE ===")
        lines.append(message)
        return "\n".join(lines)
