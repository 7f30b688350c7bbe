import base64
from typing import Dict, Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from enum import Enum


class Role(str, Enum):
    """Author of a history entry"""
    USER = "user"
    MODEL = "model"


class WireModel(BaseModel):
    """Base for models persisted in the model-exchange JSON shape (camelCase keys)"""
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """Dump to the JSON-compatible wire shape"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class InlineData(WireModel):
    """Binary payload with its MIME type"""
    mime_type: str = Field(alias="mimeType", description="MIME type of the payload")
    data: bytes = Field(description="Raw bytes; standard base64 on the wire")

    @field_validator("data", mode="before")
    @classmethod
    def _decode_base64(cls, value: Any) -> Any:
        if isinstance(value, str):
            return base64.b64decode(value)
        return value

    @field_serializer("data", when_used="json")
    def _encode_base64(self, value: bytes) -> str:
        return base64.b64encode(value).decode("ascii")


class FunctionCall(WireModel):
    """A tool call requested by the model"""
    id: Optional[str] = None
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)


class FunctionResponse(WireModel):
    """The result of a tool call handed back to the model"""
    id: Optional[str] = None
    name: str
    response: Dict[str, Any] = Field(default_factory=dict)


class Part(WireModel):
    """One piece of a history entry; at most one field is set"""
    text: Optional[str] = None
    inline_data: Optional[InlineData] = Field(None, alias="inlineData")
    function_call: Optional[FunctionCall] = Field(None, alias="functionCall")
    function_response: Optional[FunctionResponse] = Field(None, alias="functionResponse")


class Content(WireModel):
    """A role-tagged history entry"""
    role: Role
    parts: List[Part] = Field(default_factory=list)

    @classmethod
    def from_text(cls, role: Role, text: str) -> "Content":
        return cls(role=role, parts=[Part(text=text)])

    @property
    def text(self) -> str:
        """Concatenated text parts"""
        return "".join(part.text for part in self.parts if part.text)

    @property
    def function_calls(self) -> List[FunctionCall]:
        return [part.function_call for part in self.parts if part.function_call]

    @property
    def function_responses(self) -> List[FunctionResponse]:
        return [part.function_response for part in self.parts if part.function_response]


class TurnRequest(BaseModel):
    """Inbound message for one turn"""
    message: str = Field("", description="User message text")
    attachment: Optional[InlineData] = Field(None, description="Optional binary attachment")


class RetrievedDocument(BaseModel):
    """A knowledge base document returned by a similarity query"""
    id: str
    content: str
