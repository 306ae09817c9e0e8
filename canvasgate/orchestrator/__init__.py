"""Completion orchestration."""

from .orchestrator import CompletionOrchestrator
from .preflight import COMPLETE_OPERATION, STREAM_OPERATION, Preflight, PreflightPipeline
from .stream_writer import StreamPersistence
from .web_search import DEFAULT_TRIGGERS, LexicalWebSearchPredicate, WebSearchPredicate

__all__ = [
    "COMPLETE_OPERATION",
    "CompletionOrchestrator",
    "DEFAULT_TRIGGERS",
    "LexicalWebSearchPredicate",
    "Preflight",
    "PreflightPipeline",
    "STREAM_OPERATION",
    "StreamPersistence",
    "WebSearchPredicate",
]
