"""
Chat orchestrator for document question answering.

Combines retrieval output, caller-supplied history and the document-mode
flag into a prompt, runs it through the Ollama client and returns the answer
together with the context it was grounded in.
"""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Dict, Any, Optional, Sequence, Tuple, Union

from ..config import SystemConfig, ProcessingConfig, RetrievalConfig
from ..errors import RAGError, ValidationError, RetrievalEmptyError, OllamaConnectionError
from ..llm.ollama_client import OllamaClient
from ..models import ChatState, ChatResponse, ConversationMessage, IngestResult, StatusCode
from ..processors.chunker import TextChunker
from ..processors.pdf_processor import load_document_text
from ..retrieval.vector_store import InMemoryVectorStore
from .prompts import build_chat_prompt, build_document_prompt

logger = logging.getLogger(__name__)

HistoryItem = Union[ConversationMessage, Dict[str, Any]]

NO_CONTEXT_MESSAGE = "No relevant information found in the PDF. Please try uploading the PDF again."


@dataclass
class RAGContext:
    """
    Everything one chat session needs: a client handle, its own corpus and
    a chunker. Several contexts may share one client.
    """
    client: OllamaClient
    store: InMemoryVectorStore
    chunker: TextChunker
    processing: ProcessingConfig

    @classmethod
    def from_config(cls, config: SystemConfig, client: Optional[OllamaClient] = None) -> "RAGContext":
        client = client or OllamaClient(config.ollama)
        return cls(
            client=client,
            store=InMemoryVectorStore(client),
            chunker=TextChunker.from_config(config.processing),
            processing=config.processing
        )


class ChatOrchestrator:
    """
    Request-level state machine for document chat.

    IDLE -> DOCUMENT_LOADED on ingest, -> QUERYING while a query runs,
    -> ANSWERED after it succeeds. Loading another document clears the
    previous corpus first. History is always supplied by the caller.

    Ingest, query and reset calls on one orchestrator run one at a time.
    """

    def __init__(self, context: RAGContext, retrieval_config: Optional[RetrievalConfig] = None):
        """
        Initialize the orchestrator.

        Args:
            context: Client, store and chunker this session works with
            retrieval_config: Retrieval settings (top-k)
        """
        self.context = context
        self.retrieval_config = retrieval_config or RetrievalConfig()
        self._state = ChatState.IDLE
        self._has_document = False
        self._document_id: Optional[str] = None
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, config: SystemConfig, client: Optional[OllamaClient] = None) -> "ChatOrchestrator":
        return cls(RAGContext.from_config(config, client), config.retrieval)

    @property
    def state(self) -> ChatState:
        return self._state

    @property
    def document_id(self) -> Optional[str]:
        return self._document_id

    def ingest_chunks(self, chunks: Sequence[str], document_id: Optional[str] = None) -> IngestResult:
        """
        Replace the corpus with the given chunk texts.

        Args:
            chunks: Chunk texts in document order
            document_id: Optional label for the loaded document

        Returns:
            IngestResult with the number of chunks stored

        Raises:
            ValidationError: If chunks is not a non-empty list of non-empty strings
            OllamaConnectionError: If the server cannot be reached
            EmbeddingError: If embedding fails
        """
        if not isinstance(chunks, (list, tuple)):
            raise ValidationError("Chunks must be a list of strings", field_name='chunks')
        if not chunks:
            raise ValidationError("At least one chunk is required", field_name='chunks')
        if any(not isinstance(chunk, str) or not chunk.strip() for chunk in chunks):
            raise ValidationError("Chunks must be non-empty strings", field_name='chunks')

        with self._lock:
            store = self.context.store
            store.clear()
            self._has_document = False
            self._document_id = None

            try:
                added = store.add_documents(list(chunks))
            except Exception:
                store.clear()
                self._state = ChatState.IDLE
                raise

            self._has_document = True
            self._document_id = document_id
            self._state = ChatState.DOCUMENT_LOADED

        logger.info(f"Loaded document {document_id or '<unnamed>'} with {added} chunks")
        return IngestResult(success=True, chunks_added=added, document_id=document_id)

    def ingest_text(self, text: str, document_id: Optional[str] = None) -> IngestResult:
        """Chunk raw document text and load it as the corpus."""
        if not text or not text.strip():
            raise ValidationError("Document text is empty", field_name='text')

        chunks = self.context.chunker.create_chunks(text, document_id or "doc")
        logger.info(f"Split document into {len(chunks)} chunks")
        return self.ingest_chunks([chunk.text for chunk in chunks if chunk.text.strip()], document_id)

    def ingest_file(self, file_path: str) -> IngestResult:
        """Extract a PDF or text file and load it as the corpus."""
        text = load_document_text(file_path, self.context.processing)
        return self.ingest_text(text, document_id=Path(file_path).stem)

    def query(
        self,
        message: str,
        history: Optional[Sequence[HistoryItem]] = None,
        is_pdf_mode: bool = False
    ) -> ChatResponse:
        """
        Answer a message, optionally grounded in the loaded document.

        Args:
            message: User message
            history: Prior turns, oldest first
            is_pdf_mode: Retrieve context from the store and ground the answer

        Returns:
            ChatResponse with the answer and the context chunks used

        Raises:
            ValidationError: If the message is empty, history is malformed or
                is_pdf_mode is not a bool
            RetrievalEmptyError: If document mode finds nothing to ground on
            OllamaConnectionError: If the server cannot be reached
            GenerationError: If the model call fails
        """
        if not isinstance(message, str) or not message.strip():
            raise ValidationError("Message is required", field_name='message')

        if not isinstance(is_pdf_mode, bool):
            raise ValidationError("isPDFMode must be a boolean", field_name='isPDFMode')

        messages = self._parse_history(history)

        with self._lock:
            previous_state = self._state
            self._state = ChatState.QUERYING

            try:
                context: List[str] = []
                if is_pdf_mode:
                    context = self.context.store.similarity_search(message, self.retrieval_config.default_k)
                    if not context:
                        logger.info("No relevant context found in store")
                        raise RetrievalEmptyError(NO_CONTEXT_MESSAGE)
                    logger.info(f"Retrieved {len(context)} relevant chunks")

                prompt = self.build_prompt(message, messages, context if is_pdf_mode else None)
                answer = self.context.client.generate(prompt)

            except Exception:
                self._state = previous_state
                raise

            self._state = ChatState.ANSWERED if self._has_document else ChatState.IDLE

        return ChatResponse(response=answer, context=context)

    def build_prompt(
        self,
        message: str,
        history: Sequence[ConversationMessage],
        context: Optional[List[str]] = None
    ) -> str:
        """Assemble the prompt; `context=None` means an ungrounded chat prompt."""
        if context is None:
            return build_chat_prompt(message, history)
        return build_document_prompt(message, history, context)

    @staticmethod
    def _parse_history(history: Optional[Sequence[HistoryItem]]) -> List[ConversationMessage]:
        if history is None:
            return []
        if not isinstance(history, (list, tuple)):
            raise ValidationError("History must be a list of messages", field_name='history')

        messages = []
        for item in history:
            if isinstance(item, ConversationMessage):
                messages.append(item)
            else:
                messages.append(ConversationMessage.from_dict(item))
        return messages

    def reset(self) -> None:
        """Drop the loaded document and return to IDLE."""
        with self._lock:
            self.context.store.clear()
            self._has_document = False
            self._document_id = None
            self._state = ChatState.IDLE

    def handle_ingest_request(self, payload: Dict[str, Any]) -> Tuple[StatusCode, Dict[str, Any]]:
        """
        Serve `{chunks: [str]}` -> `{success: true}`.

        Returns:
            Tuple of status code and response body
        """
        try:
            self._require_service()
            if not isinstance(payload, dict):
                raise ValidationError("Request body must be an object")
            result = self.ingest_chunks(payload.get('chunks') or [])
            return StatusCode.OK, result.to_dict()
        except RAGError as e:
            return self._error_response(e)

    def handle_query_request(self, payload: Dict[str, Any]) -> Tuple[StatusCode, Dict[str, Any]]:
        """
        Serve `{message, history, isPDFMode}` -> `{response, context}`.

        Returns:
            Tuple of status code and response body
        """
        try:
            self._require_service()
            if not isinstance(payload, dict):
                raise ValidationError("Request body must be an object")
            result = self.query(
                message=payload.get('message'),
                history=payload.get('history'),
                is_pdf_mode=payload.get('isPDFMode', False)
            )
            return StatusCode.OK, result.to_dict()
        except RAGError as e:
            return self._error_response(e)

    def handle_request(self, payload: Dict[str, Any]) -> Tuple[StatusCode, Dict[str, Any]]:
        """Route a chat request: a non-empty `chunks` list ingests, anything else queries."""
        if isinstance(payload, dict) and payload.get('chunks'):
            return self.handle_ingest_request(payload)
        return self.handle_query_request(payload)

    def _require_service(self) -> None:
        status = self.context.client.check_connection()
        if not status.is_running:
            raise OllamaConnectionError(
                f"Ollama service not available: {status.error}",
                endpoint=self.context.client.base_url,
                attempts=status.attempts
            )

    @staticmethod
    def _error_response(error: RAGError) -> Tuple[StatusCode, Dict[str, Any]]:
        if error.status_code in (StatusCode.VALIDATION_FAILED, StatusCode.NO_RELEVANT_CONTEXT):
            logger.info(f"Request rejected ({error.status_code.value}): {error.message}")
        else:
            logger.error(f"Request failed ({error.status_code.value}): {error.message}")
        return error.status_code, {'error': error.message}
