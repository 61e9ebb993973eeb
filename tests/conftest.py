"""
Shared fixtures: fake HTTP responses, a deterministic lexical embedder and
an in-process stand-in for the Ollama client.
"""

import re
from typing import Callable, Dict, Iterable, List, Optional
from unittest.mock import Mock

import numpy as np
import requests
import pytest

from pdfchat.errors import OllamaConnectionError
from pdfchat.models import ConnectionStatus


def make_response(status_code: int = 200, json_data=None, text: str = "", reason: str = "OK") -> Mock:
    """Build a requests.Response look-alike."""
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.reason = reason if response.ok else "Internal Server Error"
    response.text = text
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    if response.ok:
        response.raise_for_status.return_value = None
    else:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return response


class LexicalEmbedder:
    """
    Embeds text as character-trigram counts over a fixed vocabulary.

    Texts sharing more word fragments get higher cosine similarity, so
    "slept" and "sleep" overlap on "sle" while "sat" does not.
    """

    def __init__(self, vocabulary_texts: Iterable[str]):
        grams = sorted({gram for text in vocabulary_texts for gram in self.trigrams(text)})
        self.index = {gram: i for i, gram in enumerate(grams)}
        self.dimension = max(len(grams), 1)

    @staticmethod
    def trigrams(text: str) -> List[str]:
        grams = []
        for word in re.findall(r"[a-z0-9]+", text.lower()):
            if len(word) <= 3:
                grams.append(word)
            else:
                grams.extend(word[i:i + 3] for i in range(len(word) - 2))
        return grams

    def __call__(self, text: str) -> np.ndarray:
        vector = np.zeros(self.dimension, dtype=np.float32)
        for gram in self.trigrams(text):
            if gram in self.index:
                vector[self.index[gram]] += 1.0
        return vector


class StubOllamaClient:
    """Duck-typed OllamaClient that embeds with a local function."""

    base_url = "http://stub-ollama"

    def __init__(self, embedder: Callable[[str], np.ndarray], answer: str = "stub answer"):
        self.embedder = embedder
        self.answer = answer
        self.connected = True
        self.generate_error: Optional[Exception] = None
        self.embed_error: Optional[Exception] = None
        self.embed_calls: List[List[str]] = []
        self.prompts: List[str] = []
        self.check_calls = 0

    def check_connection(self) -> ConnectionStatus:
        self.check_calls += 1
        if self.connected:
            return ConnectionStatus(is_running=True, model="stub-model", attempts=0)
        return ConnectionStatus(is_running=False, error="stub server offline", attempts=3)

    def ensure_connected(self) -> str:
        status = self.check_connection()
        if not status.is_running:
            raise OllamaConnectionError(status.error, endpoint=self.base_url, attempts=status.attempts)
        return status.model

    def embed(self, texts) -> List[np.ndarray]:
        self.ensure_connected()
        texts = list(texts)
        self.embed_calls.append(texts)
        if self.embed_error is not None:
            raise self.embed_error
        return [self.embedder(text) for text in texts]

    def embed_one(self, text: str) -> np.ndarray:
        return self.embed([text])[0]

    def generate(self, prompt: str) -> str:
        self.ensure_connected()
        self.prompts.append(prompt)
        if self.generate_error is not None:
            raise self.generate_error
        return self.answer


class TableEmbedder:
    """Looks embeddings up in a text -> vector table."""

    def __init__(self, table: Dict[str, List[float]]):
        self.table = {text: np.asarray(vector, dtype=np.float32) for text, vector in table.items()}

    def __call__(self, text: str) -> np.ndarray:
        return self.table[text]


CAT_CORPUS = ["The cat sat.", "Rain fell hard.", "The cat slept."]
CAT_QUERY = "Where did the cat sleep?"


@pytest.fixture
def cat_embedder():
    """Lexical embedder whose vocabulary covers the cat corpus and query."""
    return LexicalEmbedder(CAT_CORPUS + [CAT_QUERY])


@pytest.fixture
def stub_client(cat_embedder):
    """Stub client backed by the cat-corpus lexical embedder."""
    return StubOllamaClient(cat_embedder)


@pytest.fixture
def make_stub_client():
    """Factory for stub clients with a custom embedder."""
    def factory(embedder, answer: str = "stub answer") -> StubOllamaClient:
        return StubOllamaClient(embedder, answer=answer)
    return factory
