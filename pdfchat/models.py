"""
Core data models for the PDF chat RAG core.

This module defines the data structures shared by the chunker, the Ollama
client, the in-memory vector store and the chat orchestrator.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Any, Union
import numpy as np


class MessageRole(Enum):
    """Speaker of a conversation message."""
    USER = "user"
    ASSISTANT = "assistant"


class ConnectionState(Enum):
    """Connection lifecycle of the Ollama client."""
    UNKNOWN = "unknown"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


class ChatState(Enum):
    """Orchestrator lifecycle."""
    IDLE = "idle"
    DOCUMENT_LOADED = "document_loaded"
    QUERYING = "querying"
    ANSWERED = "answered"


class StatusCode(Enum):
    """Semantic outcome of an orchestrator request."""
    OK = "ok"
    VALIDATION_FAILED = "validation_failed"
    NO_RELEVANT_CONTEXT = "no_relevant_context"
    SERVICE_UNAVAILABLE = "service_unavailable"
    GENERATION_FAILED = "generation_failed"
    EMBEDDING_FAILED = "embedding_failed"

    @property
    def http_status(self) -> int:
        """HTTP status used when this outcome is served over HTTP."""
        return _HTTP_STATUS[self]


_HTTP_STATUS = {
    StatusCode.OK: 200,
    StatusCode.VALIDATION_FAILED: 400,
    StatusCode.NO_RELEVANT_CONTEXT: 404,
    StatusCode.SERVICE_UNAVAILABLE: 503,
    StatusCode.GENERATION_FAILED: 500,
    StatusCode.EMBEDDING_FAILED: 500,
}


@dataclass(frozen=True)
class Chunk:
    """
    A bounded span of document text used as the unit of retrieval.

    `start` and `end` are character offsets into the text the chunk was cut
    from (`end` exclusive).
    """
    chunk_id: str
    text: str
    index: int = 0
    start: int = 0
    end: int = 0


@dataclass
class StoredChunk:
    """A chunk paired with its embedding vector."""
    chunk: Chunk
    embedding: np.ndarray


@dataclass
class RetrievalResult:
    """One ranked hit from similarity search."""
    chunk: Chunk
    similarity_score: float
    rank: int

    @property
    def text(self) -> str:
        return self.chunk.text


@dataclass
class ConversationMessage:
    """A single turn of caller-supplied chat history."""
    role: MessageRole
    content: str
    context: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationMessage":
        """
        Build a message from its wire representation.

        Raises:
            ValidationError: If the role is unknown or content is missing
        """
        from .errors import ValidationError

        if not isinstance(data, dict):
            raise ValidationError("History entries must be objects with 'role' and 'content'")

        try:
            role = MessageRole(data.get('role'))
        except ValueError:
            raise ValidationError(f"Unknown message role: {data.get('role')!r}", field_name='role')

        content = data.get('content')
        if not isinstance(content, str):
            raise ValidationError("History entry content must be a string", field_name='content')

        return cls(role=role, content=content, context=list(data.get('context') or []))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'role': self.role.value, 'content': self.content}
        if self.context:
            data['context'] = list(self.context)
        return data


@dataclass
class OllamaModelInfo:
    """Information about a model installed on the Ollama server."""
    name: str
    size: Union[int, str] = 'unknown'
    modified_at: str = ''
    digest: str = ''
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ModelFound:
    """Discovery picked a model; `exact_match` is False for a fallback."""
    name: str
    exact_match: bool = True


@dataclass(frozen=True)
class ModelNotFound:
    """Discovery found no usable model among those installed."""
    available: tuple = ()


ModelDiscovery = Union[ModelFound, ModelNotFound]


@dataclass
class ConnectionStatus:
    """Outcome of a connection check."""
    is_running: bool
    model: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0


@dataclass
class IngestResult:
    """Result of loading a document into the store."""
    success: bool
    chunks_added: int = 0
    document_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'success': self.success}


@dataclass
class ChatResponse:
    """Generated answer plus the context chunks it was grounded in."""
    response: str
    context: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'response': self.response, 'context': list(self.context)}
