"""Server capability advertisement for ``initialize``."""

from typing import Any, Protocol


class CapabilityProvider(Protocol):
    """What the manager needs to know about a tool or prompt provider."""

    supports_list_changed: bool

    def has_tools(self) -> bool: ...


class PromptCapabilityProvider(Protocol):
    supports_list_changed: bool

    def has_prompts(self) -> bool: ...


class CapabilitiesManager:
    """
    Derive the capabilities object from the registered providers.

    Resources always advertise ``listChanged`` and ``subscribe``. Equal
    provider state always yields an equal structure.
    """

    def __init__(
        self,
        tools: CapabilityProvider | None = None,
        prompts: PromptCapabilityProvider | None = None,
    ):
        self.tools = tools
        self.prompts = prompts

    def build(self) -> dict[str, Any]:
        tools_list_changed = bool(
            self.tools is not None
            and self.tools.has_tools()
            and self.tools.supports_list_changed
        )
        prompts_list_changed = bool(
            self.prompts is not None
            and self.prompts.has_prompts()
            and self.prompts.supports_list_changed
        )
        return {
            "tools": {"listChanged": tools_list_changed},
            "prompts": {"listChanged": prompts_list_changed},
            "resources": {"listChanged": True, "subscribe": True},
        }
