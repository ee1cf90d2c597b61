import json
from typing import List, Optional, Dict, Any, Iterable

from .types import Message, Role, ToolCall

# =============================================================================
# Message Helpers
# =============================================================================

def create_message(role: Role, content: str) -> Message:
    """
    Create a plain text Message.

    Args:
        role (str): The role of the message sender ('system', 'user', 'assistant').
        content (str): The text content of the message.

    Returns:
        Message: An immutable message.
    """
    return Message(role=role, content=content)


def messages_to_dicts(messages: Iterable[Message]) -> List[Dict[str, Any]]:
    """
    Render messages in the OpenAI chat-completion wire shape.
    """
    return [m.to_dict() for m in messages]


# =============================================================================
# Tool Calling Helpers
# =============================================================================

def create_tool(
    name: str,
    description: str,
    parameters: Dict[str, Any],
    required: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Create a tool declaration in the OpenAI function-calling schema.

    Other providers convert from this shape (see AnthropicProvider).

    Args:
        name (str): The name of the function/tool to be called.
        description (str): A clear description of what the tool does.
        parameters (Dict): JSON Schema properties of the expected arguments.
        required (List[str], optional): A list of parameter names that are required.

    Returns:
        Dict[str, Any]: The tool declaration.
    """
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": parameters,
                "required": required or [],
            },
        },
    }


def create_tool_result(tool_call_id: str, content: str) -> Message:
    """
    Create a tool result message to send back to the model.

    Args:
        tool_call_id (str): The ID of the tool call this result answers.
        content (str): The rendered result (or error text) of the execution.

    Returns:
        Message: A message with role='tool'.
    """
    return Message(role="tool", content=content, tool_call_id=tool_call_id)


def create_assistant_message_with_tool_calls(
    content: str,
    tool_calls: List[ToolCall],
) -> Message:
    """
    Create an assistant message that records the model's tool calls.

    Args:
        content (str): Text accompanying the tool calls (usually empty).
        tool_calls (List[ToolCall]): The calls the model issued.

    Returns:
        Message: A message with role='assistant'.
    """
    return Message(role="assistant", content=content or "", tool_calls=tuple(tool_calls))


def dump_json(value: Any) -> str:
    """
    Serialize an arbitrary value to JSON text, falling back to `str` for
    values json cannot encode.
    """
    try:
        return json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(value)
