"""
Unit tests for InMemoryVectorStore.

Tests adding chunks, similarity search ordering, empty-store behaviour,
dimension checks, clearing, and add/clear interleaving.
"""

import numpy as np
import pytest

from pdfchat.errors import EmbeddingError, OllamaConnectionError
from pdfchat.models import Chunk
from pdfchat.retrieval.vector_store import InMemoryVectorStore

from conftest import CAT_CORPUS, CAT_QUERY, TableEmbedder


class TestInMemoryVectorStore:
    """Test suite for InMemoryVectorStore."""

    @pytest.fixture
    def store(self, stub_client):
        return InMemoryVectorStore(stub_client)

    @pytest.fixture
    def compass_client(self, make_stub_client):
        """Stub client over hand-picked 2-D vectors."""
        return make_stub_client(TableEmbedder({
            "east": [1.0, 0.0],
            "north": [0.0, 1.0],
            "north-east": [1.0, 1.0],
            "west": [-1.0, 0.0],
            "south": [0.0, -1.0],
            "query": [1.0, 0.1],
        }))

    def test_initialization(self, store):
        assert len(store) == 0
        assert store.is_empty
        assert store.dimension is None

    def test_add_documents_strings(self, store, stub_client):
        """Plain strings are wrapped into ordered chunks."""
        added = store.add_documents(CAT_CORPUS)

        assert added == 3
        assert len(store) == 3
        assert [c.text for c in store.get_chunks()] == CAT_CORPUS
        assert [c.index for c in store.get_chunks()] == [0, 1, 2]
        assert stub_client.embed_calls == [CAT_CORPUS]

    def test_add_documents_continues_index(self, store):
        store.add_documents(CAT_CORPUS[:2])
        store.add_documents(CAT_CORPUS[2:])

        assert [c.index for c in store.get_chunks()] == [0, 1, 2]
        assert store.get_chunks()[2].chunk_id == "chunk_0002"

    def test_add_documents_chunk_objects(self, store):
        chunks = [Chunk(chunk_id="doc_chunk_0000", text="The cat sat.", index=0, start=0, end=12)]

        store.add_documents(chunks)

        assert store.get_chunks() == chunks

    def test_add_empty_list(self, store, stub_client):
        assert store.add_documents([]) == 0
        assert stub_client.embed_calls == []

    def test_add_rejects_other_types(self, store):
        with pytest.raises(TypeError):
            store.add_documents([42])

    def test_end_to_end_cat_scenario(self, store):
        """The chunk about the sleeping cat ranks first."""
        store.add_documents(CAT_CORPUS)

        results = store.similarity_search(CAT_QUERY, k=1)

        assert results == ["The cat slept."]

    def test_search_with_scores(self, store):
        store.add_documents(CAT_CORPUS)

        results = store.similarity_search_with_scores(CAT_QUERY, k=3)

        assert [r.text for r in results] == ["The cat slept.", "The cat sat.", "Rain fell hard."]
        assert results[2].similarity_score == pytest.approx(0.0)

    @pytest.mark.parametrize("k", [1, 2, 3, 4, 5])
    def test_top_k_exact_count_ordered(self, compass_client, k):
        """k <= n returns exactly k results ordered by non-increasing score."""
        store = InMemoryVectorStore(compass_client)
        store.add_documents(["east", "north", "north-east", "west", "south"])

        results = store.similarity_search_with_scores("query", k=k)

        assert len(results) == k
        scores = [r.similarity_score for r in results]
        assert scores == sorted(scores, reverse=True)
        assert results[0].text == "east"

    def test_k_larger_than_store(self, store):
        store.add_documents(CAT_CORPUS)

        assert len(store.similarity_search(CAT_QUERY, k=10)) == 3

    def test_empty_store_returns_empty(self, store, stub_client):
        """Searching an empty store never errors and skips the server."""
        assert store.similarity_search(CAT_QUERY, k=3) == []
        assert stub_client.embed_calls == []

    def test_empty_store_with_server_down(self, store, stub_client):
        stub_client.connected = False

        assert store.similarity_search(CAT_QUERY) == []

    def test_search_server_down_raises(self, store, stub_client):
        store.add_documents(CAT_CORPUS)
        stub_client.connected = False

        with pytest.raises(OllamaConnectionError):
            store.similarity_search(CAT_QUERY)

    def test_embedding_failure_leaves_store_unchanged(self, store, stub_client):
        store.add_documents(CAT_CORPUS[:1])
        stub_client.embed_error = EmbeddingError("boom", upstream_status=500)

        with pytest.raises(EmbeddingError):
            store.add_documents(CAT_CORPUS[1:])

        assert len(store) == 1

    def test_dimension_mismatch_rejected(self, make_stub_client):
        """Every stored vector has the same dimensionality."""
        client = make_stub_client(TableEmbedder({"a": [1.0, 0.0], "b": [1.0, 0.0, 0.0]}))
        store = InMemoryVectorStore(client)
        store.add_documents(["a"])

        with pytest.raises(EmbeddingError, match="dimension"):
            store.add_documents(["b"])

        assert len(store) == 1
        assert store.dimension == 2

    def test_dimension_mismatch_within_batch(self, make_stub_client):
        client = make_stub_client(TableEmbedder({"a": [1.0, 0.0], "b": [1.0, 0.0, 0.0]}))
        store = InMemoryVectorStore(client)

        with pytest.raises(EmbeddingError):
            store.add_documents(["a", "b"])

        assert store.is_empty

    def test_query_dimension_mismatch(self, make_stub_client):
        client = make_stub_client(TableEmbedder({"a": [1.0, 0.0], "q": [1.0, 0.0, 0.0]}))
        store = InMemoryVectorStore(client)
        store.add_documents(["a"])

        with pytest.raises(EmbeddingError):
            store.similarity_search("q")

    def test_clear(self, store, stub_client):
        """clear() empties the store but keeps the client connected."""
        store.add_documents(CAT_CORPUS)
        checks_before = stub_client.check_calls

        store.clear()

        assert store.is_empty
        assert store.dimension is None
        assert store.generation == 1
        assert stub_client.check_calls == checks_before
        assert store.similarity_search(CAT_QUERY) == []

    def test_add_racing_clear_is_discarded(self, store, stub_client, cat_embedder):
        """Embeddings computed before a concurrent clear() are not stored."""
        store.add_documents(CAT_CORPUS[:1])

        def embed_then_clear(text):
            store.clear()
            return cat_embedder(text)

        stub_client.embedder = embed_then_clear

        assert store.add_documents(CAT_CORPUS[1:]) == 0
        assert store.is_empty

    def test_statistics(self, store):
        store.add_documents(CAT_CORPUS)

        stats = store.get_statistics()

        assert stats['total_chunks'] == 3
        assert stats['embedding_dimension'] == store.dimension
        assert stats['total_characters'] == sum(len(t) for t in CAT_CORPUS)
