"""Tool/function calling models."""

from typing import Any

from pydantic import BaseModel, ConfigDict

from nova.models.connectors import ConnectorType


class ToolDescriptor(BaseModel):
    """Tool definition as advertised to the model (provider-agnostic)."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: dict[str, Any]  # JSON Schema format

    def to_anthropic_format(self) -> dict[str, Any]:
        """Convert to Anthropic tool format."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }

    def to_openai_format(self) -> dict[str, Any]:
        """Convert to OpenAI tool format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolSpec(BaseModel):
    """A catalog entry: a descriptor bound to the connector action that serves it."""

    model_config = ConfigDict(frozen=True)

    descriptor: ToolDescriptor
    connector: ConnectorType
    action: str
    # Connector types whose presence makes the tool visible; defaults to ``connector``
    visible_with: frozenset[ConnectorType] = frozenset()

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def visibility(self) -> frozenset[ConnectorType]:
        return self.visible_with or frozenset({self.connector})
