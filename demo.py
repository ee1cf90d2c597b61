"""
Demo: streaming a turn through ChatEngine and rendering it with rich.

Reads API keys from the environment / .env. The search capability here is
a stub; plug in a real search backend to let the model use web_search.
"""
import asyncio
from typing import List

from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel

from chatrelay import ChatEngine, ChatRequest, Citations, ContentDelta, Done, SearchResult

console = Console()


async def stub_search(query: str, max_results: int) -> List[SearchResult]:
    """Fake search backend returning canned hits."""
    return [
        {
            "title": f"Result {i} for '{query}'",
            "url": f"https://example.com/{i}",
            "description": "Placeholder search result.",
        }
        for i in range(1, max_results + 1)
    ]


async def main():
    engine = ChatEngine.from_env(search=stub_search)

    request = ChatRequest.from_dict({
        "messages": [{"role": "user", "content": "What happened in tech news today?"}],
        "provider": "openai",
        "model": "gpt-4o-mini",
        "responseStyle": "concise",
        "useWebSearch": True,
        "maxTokens": 1000,
    })

    text = ""
    with Live(Panel("", title="Assistant", border_style="blue"), console=console, refresh_per_second=30) as live:
        async for event in engine.stream(request):
            if isinstance(event, ContentDelta):
                text += event.text
                live.update(Panel(Markdown(text), title="Assistant", border_style="blue"))
            elif isinstance(event, Citations):
                console.print("[dim]Sources:[/dim] " + ", ".join(event.citations))
            elif isinstance(event, Done):
                live.update(Panel(
                    Markdown(text),
                    title=f"{event.model} ({event.finish_reason})",
                    subtitle=f"{event.usage.total_tokens} tokens",
                    border_style="green",
                ))


if __name__ == "__main__":
    asyncio.run(main())
