"""Similarity retrieval over the in-memory corpus."""

from .retriever import Retriever, cosine_similarity
from .vector_store import InMemoryVectorStore

__all__ = [
    'Retriever',
    'cosine_similarity',
    'InMemoryVectorStore',
]
