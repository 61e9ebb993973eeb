"""
Ollama client for local LLM inference and embeddings.

Owns the connection lifecycle to one Ollama server: model discovery with
bounded retries, non-streaming text generation, and per-text embedding
requests.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, List, Optional, Any, Sequence

import numpy as np
import requests

from ..config import OllamaConfig
from ..errors import OllamaConnectionError, GenerationError, EmbeddingError
from ..models import (
    ConnectionState, ConnectionStatus, ModelDiscovery, ModelFound, ModelNotFound,
    OllamaModelInfo
)

logger = logging.getLogger(__name__)


@dataclass
class GenerationConfig:
    """Sampling options sent with a generation request."""
    temperature: float = 0.7
    top_p: float = 0.9
    top_k: int = 40
    max_tokens: int = 512
    stop_sequences: Optional[List[str]] = None
    seed: Optional[int] = None

    @classmethod
    def from_ollama_config(cls, config: OllamaConfig) -> "GenerationConfig":
        return cls(
            temperature=config.temperature,
            top_p=config.top_p,
            top_k=config.top_k,
            max_tokens=config.max_tokens
        )

    def to_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "temperature": self.temperature,
            "top_p": self.top_p,
            "top_k": self.top_k,
            "num_predict": self.max_tokens,
        }
        if self.stop_sequences:
            options["stop"] = self.stop_sequences
        if self.seed is not None:
            options["seed"] = self.seed
        return options


class OllamaClient:
    """
    Client for one locally running Ollama server.

    Connection state moves only through check_connection(): UNKNOWN or
    FAILED -> CONNECTING -> CONNECTED | FAILED. Once CONNECTED, further checks
    return immediately without touching the network. generate() and embed()
    trigger a check when the client is not connected yet.
    """

    def __init__(self, config: Optional[OllamaConfig] = None, session: Optional[requests.Session] = None):
        """
        Initialize Ollama client.

        Args:
            config: Connection and sampling configuration
            session: HTTP session to use (a new one is created if omitted)
        """
        self.config = config or OllamaConfig()
        self.base_url = self.config.base_url.rstrip('/')
        self.session = session or requests.Session()

        self._state = ConnectionState.UNKNOWN
        self._model: Optional[str] = None
        self._connection_lock = threading.Lock()
        self._stats_lock = threading.Lock()

        self._stats = self._empty_stats()

        logger.info(f"OllamaClient initialized with base URL: {self.base_url}")

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def model(self) -> Optional[str]:
        """Name of the discovered generation model, None until connected."""
        return self._model

    @property
    def embedding_model(self) -> Optional[str]:
        return self.config.embedding_model or self._model

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def list_models(self) -> List[OllamaModelInfo]:
        """
        List models installed on the server.

        Returns:
            List of installed model information

        Raises:
            OllamaConnectionError: If the request fails
        """
        try:
            return self._fetch_models(timeout=self.config.request_timeout)
        except (requests.RequestException, ValueError) as e:
            error_msg = f"Failed to list models at {self.base_url}: {str(e)}"
            logger.error(error_msg)
            raise OllamaConnectionError(error_msg, endpoint=self.base_url, attempts=1, cause=e)

    def _fetch_models(self, timeout: float) -> List[OllamaModelInfo]:
        response = self.session.get(f"{self.base_url}/api/tags", timeout=timeout)
        response.raise_for_status()

        data = response.json()
        models = []

        for model_data in data.get('models', []):
            models.append(OllamaModelInfo(
                name=model_data['name'],
                size=model_data.get('size', 'unknown'),
                modified_at=model_data.get('modified_at', ''),
                digest=model_data.get('digest', ''),
                details=model_data.get('details', {})
            ))

        logger.debug(f"Found {len(models)} available models")
        return models

    def discover_model(self, models: Sequence[OllamaModelInfo]) -> ModelDiscovery:
        """
        Choose a generation model from the installed ones.

        Preference order: the configured model (an untagged name also matches
        any tag of it, e.g. "llama3.2" matches "llama3.2:latest"), then the
        first installed model whose name contains none of the excluded
        fallback patterns.

        Args:
            models: Installed models, in server order

        Returns:
            ModelFound with the chosen name, or ModelNotFound
        """
        names = [model.name for model in models]

        for name in names:
            if self._matches_preferred(name):
                return ModelFound(name=name, exact_match=True)

        excluded = [pattern.lower() for pattern in self.config.excluded_fallback_patterns]
        for name in names:
            if not any(pattern in name.lower() for pattern in excluded):
                return ModelFound(name=name, exact_match=False)

        return ModelNotFound(available=tuple(names))

    def _matches_preferred(self, name: str) -> bool:
        preferred = self.config.preferred_model
        if name == preferred:
            return True
        return ':' not in preferred and name.split(':', 1)[0] == preferred

    def check_connection(self) -> ConnectionStatus:
        """
        Make sure the server is reachable and a usable model is installed.

        Returns immediately when already connected. Otherwise probes the
        model list up to `max_retries` times, sleeping `retry_delay` seconds
        between attempts. Failed probes are logged and retried, never raised.

        Returns:
            ConnectionStatus describing the outcome
        """
        with self._connection_lock:
            if self._state is ConnectionState.CONNECTED and self._model:
                return ConnectionStatus(is_running=True, model=self._model, attempts=0)

            self._state = ConnectionState.CONNECTING
            max_retries = self.config.max_retries
            last_error = "no attempt made"

            for attempt in range(1, max_retries + 1):
                logger.info(f"Attempting to connect to Ollama at {self.base_url} (attempt {attempt}/{max_retries})")

                try:
                    discovery = self.discover_model(self._fetch_models(timeout=self.config.probe_timeout))
                except (requests.RequestException, ValueError, KeyError) as e:
                    last_error = str(e)
                    logger.warning(f"Connection attempt {attempt} failed: {e}")
                else:
                    if isinstance(discovery, ModelFound):
                        self._model = discovery.name
                        self._state = ConnectionState.CONNECTED
                        if discovery.exact_match:
                            logger.info(f"Connected to Ollama, using model {discovery.name}")
                        else:
                            logger.warning(
                                f"Preferred model {self.config.preferred_model} not installed, "
                                f"falling back to {discovery.name}"
                            )
                        return ConnectionStatus(is_running=True, model=discovery.name, attempts=attempt)

                    installed = ", ".join(discovery.available) or "none"
                    last_error = f"no usable model installed (installed: {installed})"
                    logger.warning(f"Connection attempt {attempt}: {last_error}")

                if attempt < max_retries:
                    logger.info(f"Waiting {self.config.retry_delay}s before next attempt...")
                    time.sleep(self.config.retry_delay)

            self._state = ConnectionState.FAILED
            self._model = None

            error_msg = (
                f"Could not connect to Ollama at {self.base_url} after {max_retries} attempts "
                f"({last_error}). Please ensure Ollama is running and the "
                f"{self.config.preferred_model} model is installed."
            )
            logger.error(error_msg)
            return ConnectionStatus(is_running=False, error=error_msg, attempts=max_retries)

    def ensure_connected(self) -> str:
        """
        Run a connection check and fail loudly if it does not succeed.

        Returns:
            Name of the discovered model

        Raises:
            OllamaConnectionError: If the server is unreachable after retries
        """
        status = self.check_connection()
        if not status.is_running:
            raise OllamaConnectionError(status.error, endpoint=self.base_url, attempts=status.attempts)
        return status.model

    def reset_connection(self) -> None:
        """Forget the discovered model so the next check probes again."""
        with self._connection_lock:
            self._state = ConnectionState.UNKNOWN
            self._model = None
        logger.info("Ollama connection state reset")

    def generate(self, prompt: str, config: Optional[GenerationConfig] = None) -> str:
        """
        Generate text with the discovered model.

        Args:
            prompt: Input prompt
            config: Sampling options (defaults come from OllamaConfig)

        Returns:
            Generated text response

        Raises:
            OllamaConnectionError: If the server cannot be reached
            GenerationError: If the generation call fails
        """
        model = self.ensure_connected()
        if config is None:
            config = GenerationConfig.from_ollama_config(self.config)

        payload = {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": config.to_options(),
        }

        start_time = time.time()

        try:
            response = self.session.post(
                f"{self.base_url}/api/generate",
                json=payload,
                timeout=self.config.request_timeout
            )
        except requests.RequestException as e:
            self._update_stats('generate', time.time() - start_time, False)
            error_msg = f"Text generation failed with {model}: {str(e)}"
            logger.error(error_msg)
            raise GenerationError(error_msg, cause=e)

        if not response.ok:
            self._update_stats('generate', time.time() - start_time, False)
            error_msg = f"Ollama API error: {response.status_code} {response.reason}. {response.text}"
            logger.error(error_msg)
            raise GenerationError(error_msg, upstream_status=response.status_code, upstream_text=response.text)

        try:
            generated_text = response.json()['response']
        except (ValueError, KeyError, TypeError) as e:
            self._update_stats('generate', time.time() - start_time, False)
            raise GenerationError(
                f"Malformed generation response from {model}",
                upstream_status=response.status_code,
                upstream_text=response.text,
                cause=e
            )

        if not isinstance(generated_text, str):
            self._update_stats('generate', time.time() - start_time, False)
            raise GenerationError(
                f"Malformed generation response from {model}: response is not text",
                upstream_status=response.status_code,
                upstream_text=response.text
            )

        response_time = time.time() - start_time
        self._update_stats('generate', response_time, True)
        logger.info(f"Generated {len(generated_text)} characters using {model} in {response_time:.2f}s")
        return generated_text

    def embed(self, texts: Sequence[str]) -> List[np.ndarray]:
        """
        Compute one embedding per input text, in input order.

        Texts are sent one request at a time so a small local server is not
        flooded. With `embedding_workers > 1` a fixed pool dispatches them
        instead and results are put back in input order.

        Args:
            texts: Texts to embed

        Returns:
            List of float32 vectors, one per text

        Raises:
            OllamaConnectionError: If the server cannot be reached
            EmbeddingError: If any embedding call fails; no partial results
        """
        self.ensure_connected()
        texts = list(texts)
        if not texts:
            return []

        model = self.embedding_model
        start_time = time.time()

        if self.config.embedding_workers > 1 and len(texts) > 1:
            embeddings = self._embed_concurrently(texts, model)
        else:
            embeddings = []
            for index, text in enumerate(texts):
                embeddings.append(self._embed_single(index, text, model))

        logger.info(f"Generated {len(embeddings)} embeddings with {model} in {time.time() - start_time:.2f}s")
        return embeddings

    def embed_one(self, text: str) -> np.ndarray:
        """Embed a single text."""
        return self.embed([text])[0]

    def _embed_concurrently(self, texts: List[str], model: str) -> List[np.ndarray]:
        results: List[Optional[np.ndarray]] = [None] * len(texts)

        with ThreadPoolExecutor(max_workers=self.config.embedding_workers) as executor:
            futures = {
                executor.submit(self._embed_single, index, text, model): index
                for index, text in enumerate(texts)
            }
            try:
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
            except EmbeddingError:
                for future in futures:
                    future.cancel()
                raise

        return results

    def _embed_single(self, index: int, text: str, model: str) -> np.ndarray:
        start_time = time.time()

        try:
            response = self.session.post(
                f"{self.base_url}/api/embeddings",
                json={"model": model, "prompt": text},
                timeout=self.config.request_timeout
            )
        except requests.RequestException as e:
            self._update_stats('embed', time.time() - start_time, False)
            error_msg = f"Failed to get embedding for text {index}: {str(e)}"
            logger.error(error_msg)
            raise EmbeddingError(error_msg, index=index, cause=e)

        if not response.ok:
            self._update_stats('embed', time.time() - start_time, False)
            error_msg = f"Failed to get embeddings: {response.status_code} {response.reason}. {response.text}"
            logger.error(error_msg)
            raise EmbeddingError(
                error_msg,
                upstream_status=response.status_code,
                upstream_text=response.text,
                index=index
            )

        try:
            embedding = response.json()['embedding']
        except (ValueError, KeyError, TypeError) as e:
            self._update_stats('embed', time.time() - start_time, False)
            raise EmbeddingError(
                f"Malformed embedding response for text {index}",
                upstream_status=response.status_code,
                upstream_text=response.text,
                index=index,
                cause=e
            )

        if not embedding:
            self._update_stats('embed', time.time() - start_time, False)
            raise EmbeddingError(f"Empty embedding returned for text {index}", index=index)

        self._update_stats('embed', time.time() - start_time, True)
        return np.asarray(embedding, dtype=np.float32)

    @staticmethod
    def _empty_stats() -> Dict[str, Any]:
        return {
            operation: {
                'total_requests': 0,
                'successful_requests': 0,
                'failed_requests': 0,
                'average_response_time': 0.0,
            }
            for operation in ('generate', 'embed')
        }

    def _update_stats(self, operation: str, response_time: float, success: bool) -> None:
        """Update request performance statistics."""
        with self._stats_lock:
            stats = self._stats[operation]
            stats['total_requests'] += 1

            if success:
                stats['successful_requests'] += 1
            else:
                stats['failed_requests'] += 1

            total_requests = stats['total_requests']
            stats['average_response_time'] = (
                (stats['average_response_time'] * (total_requests - 1) + response_time) / total_requests
            )

    def get_stats(self) -> Dict[str, Any]:
        """
        Get request performance statistics.

        Returns:
            Dictionary containing per-operation metrics and connection info
        """
        with self._stats_lock:
            stats = {operation: dict(values) for operation, values in self._stats.items()}
        stats['state'] = self._state.value
        stats['model'] = self._model
        return stats

    def clear_stats(self) -> None:
        """Clear request statistics."""
        with self._stats_lock:
            self._stats = self._empty_stats()
        logger.info("Request statistics cleared")
