"""
In-memory vector store for the active document.

Holds `(chunk, embedding)` pairs for one corpus and answers similarity
queries by embedding the query through the Ollama client.
"""

import logging
import threading
from typing import List, Dict, Any, Optional, Sequence, Union

import numpy as np

from ..errors import EmbeddingError
from ..llm.ollama_client import OllamaClient
from ..models import Chunk, RetrievalResult, StoredChunk
from .retriever import Retriever

logger = logging.getLogger(__name__)


class InMemoryVectorStore:
    """
    Ordered collection of chunk/embedding pairs for a single corpus.

    A lock guards the pair list. Embedding requests run outside it; add and
    clear take it to mutate, search takes it only to snapshot the pairs.
    Each clear() bumps `generation`, and an add whose embeddings were
    computed before that clear is dropped.
    """

    def __init__(self, client: OllamaClient, retriever: Optional[Retriever] = None):
        """
        Initialize the vector store.

        Args:
            client: Ollama client used for embeddings
            retriever: Ranking strategy (cosine similarity by default)
        """
        self.client = client
        self.retriever = retriever or Retriever()

        self._entries: List[StoredChunk] = []
        self._dimension: Optional[int] = None
        self._generation = 0
        self._lock = threading.Lock()

        logger.info("InMemoryVectorStore initialized")

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def is_empty(self) -> bool:
        return not self._entries

    @property
    def dimension(self) -> Optional[int]:
        """Embedding dimensionality of the stored vectors, None when empty."""
        return self._dimension

    @property
    def generation(self) -> int:
        return self._generation

    def add_documents(self, chunks: Sequence[Union[Chunk, str]]) -> int:
        """
        Embed chunks and append them to the store in input order.

        Plain strings are wrapped into Chunks that continue the store's
        index sequence.

        Args:
            chunks: Chunks or chunk texts to add

        Returns:
            Number of pairs added

        Raises:
            OllamaConnectionError: If the server cannot be reached
            EmbeddingError: If embedding fails or dimensions disagree; the
                store is left unchanged
        """
        if not chunks:
            return 0

        with self._lock:
            generation = self._generation
            next_index = len(self._entries)

        normalized = self._to_chunks(chunks, next_index)

        self.client.ensure_connected()
        logger.info(f"Getting embeddings for {len(normalized)} chunks...")
        embeddings = self.client.embed([chunk.text for chunk in normalized])

        if len(embeddings) != len(normalized):
            raise EmbeddingError(
                f"Expected {len(normalized)} embeddings, got {len(embeddings)}"
            )

        with self._lock:
            if generation != self._generation:
                logger.warning(
                    f"Store was cleared while embedding {len(normalized)} chunks; discarding them"
                )
                return 0

            dimension = self._validate_dimensions(embeddings)
            self._entries.extend(
                StoredChunk(chunk=chunk, embedding=embedding)
                for chunk, embedding in zip(normalized, embeddings)
            )
            self._dimension = dimension
            total = len(self._entries)

        logger.info(f"Added {len(normalized)} chunks to store ({total} total)")
        return len(normalized)

    def _to_chunks(self, chunks: Sequence[Union[Chunk, str]], next_index: int) -> List[Chunk]:
        normalized = []
        for offset, item in enumerate(chunks):
            if isinstance(item, Chunk):
                normalized.append(item)
            elif isinstance(item, str):
                index = next_index + offset
                normalized.append(Chunk(
                    chunk_id=f"chunk_{index:04d}",
                    text=item,
                    index=index,
                    start=0,
                    end=len(item)
                ))
            else:
                raise TypeError(f"Expected Chunk or str, got {type(item).__name__}")
        return normalized

    def _validate_dimensions(self, embeddings: Sequence[np.ndarray]) -> int:
        """Check every new vector matches the store's dimensionality. Caller holds the lock."""
        dimension = self._dimension
        for index, embedding in enumerate(embeddings):
            if embedding.ndim != 1:
                raise EmbeddingError(f"Embedding {index} is not a flat vector", index=index)
            if dimension is None:
                dimension = embedding.shape[0]
            elif embedding.shape[0] != dimension:
                raise EmbeddingError(
                    f"Embedding {index} has dimension {embedding.shape[0]}, expected {dimension}",
                    index=index
                )
        return dimension

    def similarity_search_with_scores(self, query: str, k: int = 3) -> List[RetrievalResult]:
        """
        Rank stored chunks against a query.

        An empty store returns an empty list without contacting the server.

        Args:
            query: Query text
            k: Number of results wanted

        Returns:
            Top `min(k, len(store))` results, best first
        """
        with self._lock:
            entries = list(self._entries)

        if not entries or k <= 0:
            return []

        self.client.ensure_connected()
        logger.info(f"Searching for similar chunks to: {query[:50]!r}")
        query_vector = self.client.embed_one(query)

        if query_vector.shape[0] != entries[0].embedding.shape[0]:
            raise EmbeddingError(
                f"Query embedding has dimension {query_vector.shape[0]}, "
                f"store holds dimension {entries[0].embedding.shape[0]}"
            )

        results = self.retriever.rank(query_vector, entries, k)
        logger.info(f"Found {len(results)} similar chunks")
        return results

    def similarity_search(self, query: str, k: int = 3) -> List[str]:
        """Return the text of the top `k` chunks for a query."""
        return [result.text for result in self.similarity_search_with_scores(query, k)]

    def get_chunks(self) -> List[Chunk]:
        """Return stored chunks in insertion order."""
        with self._lock:
            return [entry.chunk for entry in self._entries]

    def clear(self) -> None:
        """Discard every stored pair. The client's connection is untouched."""
        with self._lock:
            removed = len(self._entries)
            self._entries = []
            self._dimension = None
            self._generation += 1
        logger.info(f"Cleared {removed} chunks from store")

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get store statistics.

        Returns:
            Dictionary with chunk count, dimension and character totals
        """
        with self._lock:
            entries = list(self._entries)
            dimension = self._dimension
            generation = self._generation

        return {
            'total_chunks': len(entries),
            'embedding_dimension': dimension,
            'total_characters': sum(len(entry.chunk.text) for entry in entries),
            'generation': generation,
        }
