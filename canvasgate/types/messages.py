"""Message type definitions."""

from typing import Literal

from pydantic import BaseModel


MessageRole = Literal["system", "user", "assistant"]


class Message(BaseModel):
    """Chat message in the upstream ``{role, content}`` shape."""

    role: MessageRole
    content: str

    @classmethod
    def system(cls, content: str) -> "Message":
        """Create a system message."""
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        """Create a user message."""
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        """Create an assistant message."""
        return cls(role="assistant", content=content)
