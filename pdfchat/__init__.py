"""
PDF Chat RAG Core

Ask questions about an ingested document and get answers from a locally
hosted Ollama model, grounded in retrieved excerpts of that document.
"""

__version__ = "0.1.0"
