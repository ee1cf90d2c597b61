"""
System prompt composition.

The engine always owns the leading system message: it is rebuilt for every
turn from the session configuration and never written back to caller state.
"""
import logging
from datetime import date
from typing import List, Optional

from .types import ChatRequest, Message
from .utils import create_message

logger = logging.getLogger(__name__)

PROVIDER_LABELS = {
    "openai": "OpenAI",
    "claude": "Anthropic",
    "perplexity": "Perplexity",
}

IDENTITY_TEMPLATE = (
    "You are a helpful AI assistant. You are running on the {label} model \"{model}\". "
    "If the user asks which model or AI you are, answer that you are {model} provided by {label}. "
    "Do not claim to be, and do not speculate about being, any other AI product or model."
)

WEB_SEARCH_INSTRUCTION = (
    "You have access to a web_search tool. For questions about current events, news, "
    "prices, weather, schedules, recent releases, today's date or anything else that is "
    "time-sensitive or may have changed after your training data, call web_search instead "
    "of answering from memory. Cite the sources you used."
)

STYLE_INSTRUCTIONS = {
    "concise": (
        "Keep answers short and to the point. Prefer a few sentences or a brief list; "
        "only add detail when the user asks for it."
    ),
    "detailed": (
        "Give thorough, well-structured answers. Explain your reasoning, include relevant "
        "context and examples, and use headings or lists where they help readability."
    ),
}

DEFAULT_STYLE = "concise"


def compose_system_prompt(
    provider: str,
    model: str,
    *,
    response_style: Optional[str] = DEFAULT_STYLE,
    use_web_search: bool = False,
    today: Optional[date] = None,
) -> Message:
    """
    Build the leading system message for one turn.

    Args:
        provider (str): Active provider identifier ('openai', 'claude', ...).
        model (str): Exact model string sent upstream.
        response_style (str): 'concise' or 'detailed'; anything else means concise.
        use_web_search (bool): Whether to include the web-search instruction.
        today (date, optional): Date to announce. Defaults to the current date.

    Returns:
        Message: The system message.
    """
    label = PROVIDER_LABELS.get(provider, provider)
    style = response_style if response_style in STYLE_INSTRUCTIONS else DEFAULT_STYLE
    today = today or date.today()

    sections = [IDENTITY_TEMPLATE.format(label=label, model=model)]
    if use_web_search:
        sections.append(WEB_SEARCH_INSTRUCTION)
    sections.append(STYLE_INSTRUCTIONS[style])
    sections.append(f"Today's date is {today:%A, %Y-%m-%d}.")

    return create_message("system", "\n\n".join(sections))


def with_system_prompt(
    request: ChatRequest,
    provider: str,
    model: str,
    today: Optional[date] = None,
    *,
    use_web_search: Optional[bool] = None,
) -> List[Message]:
    """
    Return a new message list: the composed system prompt followed by the
    caller's messages in their original order.

    Caller-supplied system messages are dropped; the system prompt is not
    the caller's to set. `use_web_search` overrides the request's flag, so
    the instruction is left out when no tool is actually offered.
    """
    conversation = [m for m in request.messages if m.role != "system"]
    dropped = len(request.messages) - len(conversation)
    if dropped:
        logger.debug("Dropped %d caller-supplied system message(s)", dropped)

    system = compose_system_prompt(
        provider,
        model,
        response_style=request.response_style,
        use_web_search=request.use_web_search if use_web_search is None else use_web_search,
        today=today,
    )
    return [system, *conversation]
