"""Heuristics deciding whether to ask the provider for web search."""

from typing import Iterable, Protocol, Sequence

from canvasgate.types import Message

DEFAULT_TRIGGERS: tuple[str, ...] = (
    "search",
    "current",
    "recent",
    "latest",
    "news",
    "today",
    "2024",
    "2025",
    "what is",
    "who is",
    "when did",
    "where is",
    "how does",
    "explain",
    "tell me about",
    "internet",
    "web",
    "online",
)


class WebSearchPredicate(Protocol):
    def __call__(self, messages: Sequence[Message]) -> bool:
        ...


class LexicalWebSearchPredicate:
    """True when the latest user message contains any trigger term.

    This is a hint to the provider, not a guarantee that a search happens.
    """

    def __init__(self, triggers: Iterable[str] = DEFAULT_TRIGGERS) -> None:
        self.triggers = tuple(t.lower() for t in triggers)

    def __call__(self, messages: Sequence[Message]) -> bool:
        for message in reversed(messages):
            if message.role == "user":
                text = message.content.lower()
                return any(trigger in text for trigger in self.triggers)
        return False
