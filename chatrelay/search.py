import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from .types import Message, SearchResult, ToolCall
from .utils import create_tool, create_tool_result, dump_json

logger = logging.getLogger(__name__)

WEB_SEARCH_TOOL_NAME = "web_search"

MAX_RESULTS_LIMIT = 10

# Per-result cap on the optional page content excerpt
MAX_CONTENT_CHARS = 1500

# async (query, max_results) -> ordered search hits
SearchFunction = Callable[[str, int], Awaitable[List[SearchResult]]]

WEB_SEARCH_TOOL: Dict[str, Any] = create_tool(
    name=WEB_SEARCH_TOOL_NAME,
    description=(
        "Search the web for current information. Use this for recent events, news, "
        "prices, schedules, or anything that may have changed after your training data."
    ),
    parameters={
        "query": {
            "type": "string",
            "description": "The search query.",
        },
        "max_results": {
            "type": "integer",
            "description": f"Number of results to return (1-{MAX_RESULTS_LIMIT}).",
        },
    },
    required=["query"],
)


def _field(result: Mapping[str, Any], key: str) -> str:
    value = result.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        value = dump_json(value)
    return value.strip()


def format_search_results(
    query: str,
    results: Sequence[SearchResult],
    max_chars: int = 8000,
) -> str:
    """
    Render search hits into the bounded text consumed by a tool-result message.

    Hits that are not mappings are skipped; non-string fields are rendered
    as JSON text.

    Args:
        query (str): The query that produced the results.
        results (Sequence[SearchResult]): Ordered hits, possibly empty.
        max_chars (int): Upper bound on the returned text.

    Returns:
        str: Numbered listing of the hits, never empty.
    """
    hits = [result for result in results if isinstance(result, Mapping)]
    if len(hits) < len(results):
        logger.warning("Skipped %d malformed search hit(s) for %r", len(results) - len(hits), query)
    if not hits:
        return f'No search results found for "{query}".'

    blocks = [f'Search results for "{query}":']
    for index, result in enumerate(hits, start=1):
        lines = [f"{index}. {_field(result, 'title') or 'Untitled'}"]
        url = _field(result, "url")
        if url:
            lines.append(f"URL: {url}")
        description = _field(result, "description")
        if description:
            lines.append(description)
        content = _field(result, "content")
        if content:
            if len(content) > MAX_CONTENT_CHARS:
                content = content[:MAX_CONTENT_CHARS] + "..."
            lines.append(f"Content: {content}")
        blocks.append("\n".join(lines))

    text = "\n\n".join(blocks)
    if len(text) > max_chars:
        text = text[: max_chars - 15].rstrip() + "\n[truncated]"
    return text


def _parse_arguments(tool_call: ToolCall, default_max_results: int) -> tuple:
    """
    Parse and validate web_search arguments.

    Raises:
        ValueError: If the blob is not a JSON object or has no usable query.
    """
    try:
        arguments = json.loads(tool_call.arguments or "{}")
    except json.JSONDecodeError as e:
        raise ValueError(f"invalid JSON arguments ({e.msg})") from e
    if not isinstance(arguments, dict):
        raise ValueError("arguments must be a JSON object")

    query = arguments.get("query")
    if not isinstance(query, str) or not query.strip():
        raise ValueError("missing 'query' argument")

    max_results = arguments.get("max_results", default_max_results)
    if isinstance(max_results, bool) or not isinstance(max_results, int):
        max_results = default_max_results
    max_results = max(1, min(max_results, MAX_RESULTS_LIMIT))
    return query.strip(), max_results


async def execute_web_search(
    tool_call: ToolCall,
    search: Optional[SearchFunction],
    *,
    max_results: int = 5,
    max_chars: int = 8000,
) -> Message:
    """
    Execute one web_search tool call.

    Never raises for argument or search failures: the failure is described
    in the returned tool message so the model can explain it.

    Args:
        tool_call (ToolCall): The call issued by the model.
        search (SearchFunction, optional): The external search capability.
        max_results (int): Result count used when the model does not ask for one.
        max_chars (int): Bound on the rendered result text.

    Returns:
        Message: A tool-role message answering `tool_call.id`.
    """
    try:
        query, count = _parse_arguments(tool_call, max_results)
    except ValueError as e:
        logger.warning("web_search call %s rejected: %s", tool_call.id, e)
        return create_tool_result(tool_call.id, f"Error: web search could not run: {e}.")

    if search is None:
        logger.warning("web_search requested but no search capability is configured")
        return create_tool_result(tool_call.id, "Error: web search is not available right now.")

    logger.debug("Running web_search %r (max_results=%d)", query, count)
    try:
        results = await search(query, count)
        text = format_search_results(query, list(results or []), max_chars)
    except Exception as e:
        logger.warning("web_search %r failed: %s", query, e)
        return create_tool_result(
            tool_call.id,
            f'Error: web search for "{query}" failed: {str(e) or type(e).__name__}',
        )

    return create_tool_result(tool_call.id, text)
