"""
Configuration management for the PDF chat RAG core.

Provides dataclasses for chunking, the Ollama connection, retrieval and
logging, plus a manager that layers file and environment overrides on top
of the defaults.
"""

from dataclasses import dataclass, field, fields, is_dataclass
from typing import List, Dict, Any, Optional
import json
import logging
import os
from pathlib import Path


@dataclass
class ProcessingConfig:
    """Configuration for document text processing."""
    chunk_size: int = 1000
    chunk_overlap: int = 200
    max_file_size_mb: int = 100


@dataclass
class OllamaConfig:
    """Configuration for the local Ollama inference server."""
    base_url: str = "http://127.0.0.1:11434"
    preferred_model: str = "llama3.2"
    embedding_model: Optional[str] = None  # None reuses the discovered model
    excluded_fallback_patterns: List[str] = field(default_factory=lambda: ["embed"])
    max_retries: int = 3
    retry_delay: float = 1.0  # seconds between discovery attempts
    request_timeout: float = 300.0
    probe_timeout: float = 5.0
    embedding_workers: int = 1  # 1 keeps embedding strictly sequential
    temperature: float = 0.7
    top_p: float = 0.9
    top_k: int = 40
    max_tokens: int = 512


@dataclass
class RetrievalConfig:
    """Configuration for similarity retrieval."""
    default_k: int = 3


@dataclass
class LoggingConfig:
    """Configuration for system logging."""
    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = None
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    enable_console_logging: bool = True


@dataclass
class SystemConfig:
    """Main system configuration containing all subsystem configs."""
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)
    ollama: OllamaConfig = field(default_factory=OllamaConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


class ConfigManager:
    """
    Manages system configuration loading, validation, and updates.

    Values are resolved in order: dataclass defaults, then an optional JSON
    file with nested sections, then environment variables.
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path
        self._config: Optional[SystemConfig] = None

    def load_config(self) -> SystemConfig:
        """Load configuration from file and environment variables."""
        if self._config is None:
            self._config = SystemConfig()
            self._apply_file_overrides()
            self._apply_environment_overrides()
            self._validate_config()
        return self._config

    def _apply_file_overrides(self) -> None:
        """Apply nested overrides from a JSON configuration file."""
        if not self._config or not self.config_path:
            return

        with open(self.config_path, 'r', encoding='utf-8') as handle:
            data = json.load(handle)

        if not isinstance(data, dict):
            raise ValueError(f"Configuration file must contain an object: {self.config_path}")

        for section_name, values in data.items():
            section = getattr(self._config, section_name, None)
            if section is None or not is_dataclass(section):
                raise ValueError(f"Unknown configuration section: {section_name}")
            if not isinstance(values, dict):
                raise ValueError(f"Configuration section '{section_name}' must be an object")

            known = {f.name for f in fields(section)}
            for key, value in values.items():
                if key not in known:
                    raise ValueError(f"Unknown setting '{section_name}.{key}'")
                setattr(section, key, value)

    def _apply_environment_overrides(self) -> None:
        """Apply configuration overrides from environment variables."""
        if not self._config:
            return

        # Ollama config overrides
        if os.getenv("OLLAMA_BASE_URL"):
            self._config.ollama.base_url = os.getenv("OLLAMA_BASE_URL")
        if os.getenv("OLLAMA_MODEL"):
            self._config.ollama.preferred_model = os.getenv("OLLAMA_MODEL")
        if os.getenv("OLLAMA_MAX_RETRIES"):
            self._config.ollama.max_retries = int(os.getenv("OLLAMA_MAX_RETRIES"))
        if os.getenv("OLLAMA_RETRY_DELAY"):
            self._config.ollama.retry_delay = float(os.getenv("OLLAMA_RETRY_DELAY"))
        if os.getenv("OLLAMA_EMBEDDING_WORKERS"):
            self._config.ollama.embedding_workers = int(os.getenv("OLLAMA_EMBEDDING_WORKERS"))

        # Processing config overrides
        if os.getenv("CHUNK_SIZE"):
            self._config.processing.chunk_size = int(os.getenv("CHUNK_SIZE"))
        if os.getenv("CHUNK_OVERLAP"):
            self._config.processing.chunk_overlap = int(os.getenv("CHUNK_OVERLAP"))

        # Retrieval config overrides
        if os.getenv("RETRIEVAL_K"):
            self._config.retrieval.default_k = int(os.getenv("RETRIEVAL_K"))

        # Logging config overrides
        if os.getenv("LOG_LEVEL"):
            self._config.logging.level = os.getenv("LOG_LEVEL").upper()

    def _validate_config(self) -> None:
        """Validate configuration values and constraints."""
        if not self._config:
            return

        # Validate processing config
        if self._config.processing.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if self._config.processing.chunk_overlap < 0:
            raise ValueError("chunk_overlap cannot be negative")
        if self._config.processing.chunk_overlap >= self._config.processing.chunk_size:
            raise ValueError("chunk_overlap must be less than chunk_size")

        # Validate Ollama config
        ollama = self._config.ollama
        if not ollama.base_url:
            raise ValueError("base_url cannot be empty")
        if ollama.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if ollama.retry_delay < 0:
            raise ValueError("retry_delay cannot be negative")
        if ollama.embedding_workers < 1:
            raise ValueError("embedding_workers must be at least 1")
        if ollama.temperature < 0 or ollama.temperature > 2:
            raise ValueError("temperature must be between 0 and 2")

        # Validate retrieval config
        if self._config.retrieval.default_k < 1:
            raise ValueError("default_k must be at least 1")

        # Validate logging config
        if not isinstance(logging.getLevelName(self._config.logging.level.upper()), int):
            raise ValueError(f"Unknown log level: {self._config.logging.level}")

    def update_config(self, **kwargs) -> None:
        """Update configuration values at runtime."""
        if not self._config:
            self.load_config()

        for key, value in kwargs.items():
            if hasattr(self._config, key):
                setattr(self._config, key, value)

        self._validate_config()

    def get_config(self) -> SystemConfig:
        """Get the current system configuration."""
        if self._config is None:
            return self.load_config()
        return self._config

    def to_dict(self) -> Dict[str, Any]:
        """Return the effective configuration as nested dictionaries."""
        config = self.get_config()
        return {
            f.name: {
                sub.name: getattr(getattr(config, f.name), sub.name)
                for sub in fields(getattr(config, f.name))
            }
            for f in fields(config)
        }


def configure_logging(config: LoggingConfig) -> None:
    """
    Configure root logging handlers from a LoggingConfig.

    Args:
        config: Logging configuration
    """
    handlers: List[logging.Handler] = []

    if config.enable_console_logging:
        handlers.append(logging.StreamHandler())

    if config.log_file:
        Path(config.log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(config.log_file))

    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=config.level.upper(),
        format=config.log_format,
        handlers=handlers,
        force=True
    )
