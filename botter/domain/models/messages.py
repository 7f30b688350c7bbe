"""
Mapping between persisted history entries and chat model messages.

History is stored in the model-exchange shape (role + parts); the chat model
speaks langchain messages. Function responses travel as one ToolMessage per
result and are folded back into a single user entry when persisted.
"""

import base64
import json
from typing import Any, Dict, List

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage

from botter.domain.models.conversation import (
    Content, FunctionCall, FunctionResponse, InlineData, Part, Role
)


def message_text(message: Any) -> str:
    """Text of a chat message whose content is a string or a list of blocks"""

    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content

    texts = []
    for block in content or []:
        if isinstance(block, str):
            texts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            texts.append(block.get("text", ""))
    return "".join(texts)


def part_to_block(part: Part) -> Dict[str, Any]:
    if part.inline_data is not None:
        return {
            "type": "media",
            "mime_type": part.inline_data.mime_type,
            "data": base64.b64encode(part.inline_data.data).decode("ascii"),
        }
    return {"type": "text", "text": part.text or ""}


def block_to_part(block: Any) -> Part:
    if isinstance(block, str):
        return Part(text=block)
    if block.get("type") == "media":
        return Part(inline_data=InlineData(mime_type=block["mime_type"], data=block["data"]))
    return Part(text=block.get("text", ""))


def content_to_messages(content: Content) -> List[BaseMessage]:
    """Convert one history entry into the chat messages it stands for"""

    plain_parts = [p for p in content.parts if p.function_call is None and p.function_response is None]

    if content.role == Role.MODEL:
        return [AIMessage(
            content="".join(p.text for p in plain_parts if p.text),
            tool_calls=[
                {"id": call.id or "", "name": call.name, "args": call.args, "type": "tool_call"}
                for call in content.function_calls
            ]
        )]

    messages: List[BaseMessage] = [
        ToolMessage(
            content=json.dumps(response.response),
            tool_call_id=response.id or "",
            name=response.name
        )
        for response in content.function_responses
    ]
    if plain_parts or not messages:
        messages.append(parts_to_human_message(plain_parts))
    return messages


def parts_to_human_message(parts: List[Part]) -> HumanMessage:
    if len(parts) == 1 and parts[0].inline_data is None:
        return HumanMessage(content=parts[0].text or "")
    return HumanMessage(content=[part_to_block(part) for part in parts])


def contents_to_messages(history: List[Content]) -> List[BaseMessage]:
    messages: List[BaseMessage] = []
    for content in history:
        messages.extend(content_to_messages(content))
    return messages


def _tool_response_payload(raw: Any) -> Dict[str, Any]:
    if not isinstance(raw, str):
        return {"output": message_text(raw)}
    try:
        decoded = json.loads(raw)
    except ValueError:
        return {"output": raw}
    return decoded if isinstance(decoded, dict) else {"output": raw}


def messages_to_contents(messages: List[BaseMessage]) -> List[Content]:
    """Convert chat messages back into history entries; system messages are dropped"""

    contents: List[Content] = []
    for message in messages:
        if isinstance(message, SystemMessage):
            continue

        if isinstance(message, ToolMessage):
            part = Part(function_response=FunctionResponse(
                id=message.tool_call_id or None,
                name=message.name or "",
                response=_tool_response_payload(message.content)
            ))
            previous = contents[-1] if contents else None
            if previous is not None and previous.role == Role.USER and previous.function_responses \
                    and len(previous.function_responses) == len(previous.parts):
                previous.parts.append(part)
            else:
                contents.append(Content(role=Role.USER, parts=[part]))
            continue

        if isinstance(message, AIMessage):
            parts = []
            text = message_text(message)
            if text:
                parts.append(Part(text=text))
            for call in message.tool_calls:
                parts.append(Part(function_call=FunctionCall(
                    id=call.get("id") or None, name=call["name"], args=call.get("args") or {}
                )))
            contents.append(Content(role=Role.MODEL, parts=parts or [Part(text="")]))
            continue

        raw = message.content
        blocks = [raw] if isinstance(raw, str) else raw
        contents.append(Content(role=Role.USER, parts=[block_to_part(block) for block in blocks]))

    return contents
