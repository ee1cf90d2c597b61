import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from .normalize import EMPTY_RESPONSE_PLACEHOLDER, normalize_citations, normalize_usage
from .types import Citations, ContentDelta, Done, StreamEvent

logger = logging.getLogger(__name__)


def translate_chunk(chunk: Dict[str, Any]) -> List[StreamEvent]:
    """
    Map one provider chunk onto stream events.

    Order within a chunk: content delta, citations, done.

    Args:
        chunk (Dict[str, Any]): Provider chunk with optional 'delta',
            'citations', 'finish_reason', 'usage' and 'model'.

    Returns:
        List[StreamEvent]: Zero or more events.
    """
    events: List[StreamEvent] = []

    delta = chunk.get("delta")
    if delta:
        events.append(ContentDelta(text=delta))

    if chunk.get("citations"):
        events.append(Citations(citations=normalize_citations(chunk["citations"])))

    if chunk.get("finish_reason"):
        events.append(Done(
            finish_reason=chunk["finish_reason"],
            usage=normalize_usage(chunk.get("usage")),
            model=chunk.get("model"),
        ))

    return events


async def adapt_stream(
    chunks: AsyncIterator[Dict[str, Any]],
    *,
    model: Optional[str] = None,
) -> AsyncIterator[StreamEvent]:
    """
    Forward provider chunks as stream events, in arrival order.

    Exactly one Done event is produced: upstream consumption stops after the
    first finish signal, and a Done without finish reason is synthesized if
    the upstream ends without one. When no visible text was streamed the
    placeholder text is emitted before Done.

    Cancellation: stop iterating. Closing this generator closes `chunks`.

    Args:
        chunks: Provider chunk stream.
        model (str, optional): Model name used when the upstream reports none.

    Yields:
        StreamEvent: ContentDelta, Citations and a final Done.
    """
    has_text = False

    def finish(done: Done) -> List[StreamEvent]:
        tail: List[StreamEvent] = []
        if not has_text:
            logger.warning(
                "Empty stream replaced by placeholder (model=%s, finish_reason=%s, usage=%s)",
                done.model or model, done.finish_reason, done.usage,
            )
            tail.append(ContentDelta(text=EMPTY_RESPONSE_PLACEHOLDER))
        if done.model is None and model is not None:
            done = Done(finish_reason=done.finish_reason, usage=done.usage, model=model)
        tail.append(done)
        return tail

    try:
        async for chunk in chunks:
            for event in translate_chunk(chunk):
                if isinstance(event, Done):
                    for tail_event in finish(event):
                        yield tail_event
                    return
                if isinstance(event, ContentDelta) and event.text.strip():
                    has_text = True
                yield event
    finally:
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()

    logger.debug("Upstream stream for %s ended without a finish signal", model)
    for tail_event in finish(Done(finish_reason=None, model=model)):
        yield tail_event
