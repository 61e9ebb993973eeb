"""Grounded chat over the loaded document."""

from .orchestrator import ChatOrchestrator, RAGContext

__all__ = [
    'ChatOrchestrator',
    'RAGContext',
]
