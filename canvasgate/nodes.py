"""Writes generated content to response nodes."""

from typing import Optional

from canvasgate.exceptions import NotFoundError
from canvasgate.store import GraphStore, Node
from canvasgate.types import TokenUsage


class NodeWriter:
    def __init__(self, store: GraphStore):
        self.store = store

    async def _load(self, node_id: str) -> Node:
        node = await self.store.get_node(node_id)
        if node is None:
            raise NotFoundError("Node not found")
        return node

    async def update_response_node(
        self,
        node_id: str,
        content: str,
        model: str,
        tokens: Optional[TokenUsage] = None,
    ) -> Node:
        """Write the final text and token counts of a completion."""
        node = await self._load(node_id)
        usage = tokens or TokenUsage()
        node.content = content
        node.meta = {
            **node.meta,
            "model": model,
            "tokens": {"input": usage.input_tokens, "output": usage.output_tokens},
            "streaming": False,
        }
        return await self.store.save_node(node)

    async def update_response_node_stream(self, node_id: str, content: str, model: str) -> Node:
        """Write partial text while a stream is still running."""
        node = await self._load(node_id)
        node.content = content
        node.meta = {**node.meta, "model": model, "streaming": True}
        return await self.store.save_node(node)
