from typing import Dict, Any, List, Literal, Union
from pydantic import BaseModel, Field


class ToolDeclaration(BaseModel):
    """A callable tool advertised by a tool server"""
    name: str = Field(description="Tool name, unique across registered servers")
    description: str = Field("", description="What the tool does")
    input_schema: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        description="JSON schema of the tool arguments"
    )

    def to_function_schema(self) -> Dict[str, Any]:
        """Render in the function-calling format accepted by chat models"""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            }
        }


class ServerInfo(BaseModel):
    """Result of a tool server handshake"""
    name: str = ""
    version: str = ""
    supports_tools: bool = False


class TextOutput(BaseModel):
    """Text content returned by a tool"""
    kind: Literal["text"] = "text"
    text: str


class UnsupportedOutput(BaseModel):
    """Tool content the orchestrator cannot forward (images, resources, ...)"""
    kind: Literal["unsupported"] = "unsupported"
    content_type: str


ToolOutput = Union[TextOutput, UnsupportedOutput]


def text_of(outputs: List[ToolOutput]) -> str:
    """Join the text outputs of a tool call; other variants are dropped"""
    return " ".join(output.text for output in outputs if isinstance(output, TextOutput))
