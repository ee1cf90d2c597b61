"""
Tool-call loop.

One user turn makes at most two upstream calls: the initial request and,
when the reply carries tool calls, a single follow-up after every call has
been answered. The follow-up never declares tools, so it cannot ask for more.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .normalize import normalize_usage
from .params import build_params
from .providers.base import ChatProvider
from .search import WEB_SEARCH_TOOL_NAME, SearchFunction, execute_web_search
from .types import Message, ToolCall
from .utils import create_assistant_message_with_tool_calls, create_tool_result

logger = logging.getLogger(__name__)


async def execute_tool_calls(
    tool_calls: Sequence[ToolCall],
    search: Optional[SearchFunction],
    *,
    max_results: int = 5,
    max_chars: int = 8000,
) -> List[Message]:
    """
    Answer every tool call of one assistant turn, in order.

    `web_search` calls run against the search capability; any other tool
    name gets an "unsupported tool" result so no call is left unanswered.
    Nothing here raises for tool failures.

    Args:
        tool_calls (Sequence[ToolCall]): Calls from the assistant message.
        search (SearchFunction, optional): The external search capability.
        max_results (int): Default result count for web_search.
        max_chars (int): Bound on each rendered result.

    Returns:
        List[Message]: One tool-role message per call.
    """
    results = []
    for tc in tool_calls:
        if tc.name == WEB_SEARCH_TOOL_NAME:
            results.append(
                await execute_web_search(tc, search, max_results=max_results, max_chars=max_chars)
            )
        else:
            logger.warning("Model requested unsupported tool %r (call %s)", tc.name, tc.id)
            results.append(create_tool_result(tc.id, f"Error: tool '{tc.name}' is not supported."))
    return results


async def resolve_tool_calls(
    reply: Dict[str, Any],
    params: Dict[str, Any],
    *,
    model: str,
    max_tokens: Any,
    search: Optional[SearchFunction],
    max_results: int = 5,
    max_chars: int = 8000,
) -> Optional[Dict[str, Any]]:
    """
    Execute the tool calls of a reply and build the follow-up parameters.

    Returns:
        The follow-up parameters, or None when the reply has no tool calls.
        The follow-up conversation is the original one plus the assistant
        message and one tool message per call.
    """
    tool_calls = reply.get("tool_calls") or []
    if not tool_calls:
        return None

    logger.debug("Executing %d tool call(s) for %s", len(tool_calls), model)
    messages = list(params["messages"])
    messages.append(create_assistant_message_with_tool_calls(reply.get("text", ""), tool_calls))
    messages.extend(
        await execute_tool_calls(tool_calls, search, max_results=max_results, max_chars=max_chars)
    )

    followup, _ = build_params(model, messages, use_web_search=False, max_tokens=max_tokens)
    return followup


async def complete_with_tools(
    provider: ChatProvider,
    params: Dict[str, Any],
    *,
    model: str,
    max_tokens: Any,
    search: Optional[SearchFunction],
    max_results: int = 5,
    max_chars: int = 8000,
) -> Tuple[Dict[str, Any], int]:
    """
    Run one turn through the tool-call loop.

    States: awaiting model -> (tool calls present) executing tools -> one
    follow-up call -> done; or awaiting model -> done.

    Args:
        provider (ChatProvider): Provider serving the turn.
        params (Dict[str, Any]): Initial parameters from `build_params`.
        model (str): Model identifier, reused for the follow-up.
        max_tokens: The caller's requested output limit.
        search (SearchFunction, optional): The external search capability.
        max_results (int): Default result count for web_search.
        max_chars (int): Bound on each rendered tool result.

    Returns:
        Tuple of the final provider reply (usage summed over both calls) and
        the number of tool calls executed.
    """
    reply = await provider.complete(params)

    followup = await resolve_tool_calls(
        reply,
        params,
        model=model,
        max_tokens=max_tokens,
        search=search,
        max_results=max_results,
        max_chars=max_chars,
    )
    if followup is None:
        return reply, 0

    executed = len(reply["tool_calls"])
    final = await provider.complete(followup)
    if final.get("tool_calls"):
        logger.warning(
            "Ignoring %d tool call(s) in follow-up reply from %s", len(final["tool_calls"]), model
        )

    final = dict(final)
    final["usage"] = normalize_usage(reply.get("usage")) + normalize_usage(final.get("usage"))
    final["tool_calls"] = []
    return final, executed
