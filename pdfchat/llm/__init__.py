"""Local LLM access through the Ollama HTTP API."""

from .ollama_client import OllamaClient, GenerationConfig

__all__ = [
    'OllamaClient',
    'GenerationConfig',
]
