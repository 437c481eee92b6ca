"""
Configuration for TextVault.

Supports loading from:
1. Environment variables (highest priority)
2. YAML config file
3. Default values (fallback)
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class EmbedderConfig(BaseModel):
    """Embedder configuration."""

    provider: str = "ollama"  # ollama, openai
    model: str | None = None  # provider default when unset
    base_url: str | None = None
    api_key: str | None = None
    timeout: float = 120.0
    # Optional overrides of the provider's fixed values
    dimension: int | None = None
    max_batch_size: int | None = None


class StoreConfig(BaseModel):
    """Document store configuration."""

    backend: str = "sqlite"
    db_path: str = "data/textvault.db"


class SegmenterConfig(BaseModel):
    """Segmenter configuration (token counts are approximate, 4 chars each)."""

    max_tokens: int = Field(default=512, gt=0)
    overlap_tokens: int = Field(default=50, ge=0)
    separator: str = "\n\n"


class SearchConfig(BaseModel):
    """Hybrid search configuration."""

    rrf_k: int = Field(default=60, gt=0)
    default_limit: int = 10
    max_limit: int = 50
    # Candidate multiplier applied when post-filters are present
    filter_overfetch: int = Field(default=3, ge=1)


class IngestionConfig(BaseModel):
    """Batch ingestion configuration."""

    concurrency: int = Field(default=5, ge=1)
    embed_timeout: float = 120.0
    manifest_filename: str = ".manifest.json"
    pattern: str = "**/*.md"
    verify_store_by_hash: bool = True


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_to_file: bool = False
    log_dir: str = "logs"
    file_rotation: str = "10 MB"
    file_retention: str = "7 days"
    compression: str = "zip"
    serialize: bool = True


class Config(BaseModel):
    """Main configuration."""

    embedder: EmbedderConfig = Field(default_factory=EmbedderConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    segmenter: SegmenterConfig = Field(default_factory=SegmenterConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Config":
        """
        Load configuration from environment variables.

        Priority: .env file -> system environment variables -> defaults

        Args:
            env_file: Optional path to .env file (default: .env in project root)

        Returns:
            Config instance

        Environment variables:
            TEXTVAULT_EMBEDDER_PROVIDER: Embedder provider (ollama, openai)
            TEXTVAULT_EMBEDDER_MODEL: Embedder model name
            TEXTVAULT_EMBEDDER_BASE_URL: Embedder endpoint
            TEXTVAULT_EMBEDDER_API_KEY: Embedder API key (for OpenAI)
            TEXTVAULT_EMBEDDER_DIMENSION: Embedding dimension override
            TEXTVAULT_STORE_BACKEND: Store backend (sqlite)
            TEXTVAULT_STORE_DB_PATH: SQLite database path
            TEXTVAULT_SEGMENT_MAX_TOKENS: Segment token budget
            TEXTVAULT_SEGMENT_OVERLAP_TOKENS: Segment overlap
            TEXTVAULT_SEARCH_RRF_K: RRF smoothing constant
            TEXTVAULT_INGEST_CONCURRENCY: Ingestion worker count
            TEXTVAULT_INGEST_EMBED_TIMEOUT: Per-call embedding timeout (seconds)
        """
        # Load .env file if provided or exists
        if env_file:
            load_dotenv(env_file)
        elif Path(".env").exists():
            load_dotenv()

        def get_env(key: str, default: Any = None, cast: type | None = None) -> Any:
            """Get environment variable with type conversion."""
            value = os.getenv(key)
            if value is None or value == "":
                return default
            target = cast or (type(default) if default is not None else None)
            if target is bool:
                return str(value).lower() in ("true", "1", "yes")
            if target is int:
                return int(value)
            if target is float:
                return float(value)
            return value

        return cls(
            embedder=EmbedderConfig(
                provider=get_env("TEXTVAULT_EMBEDDER_PROVIDER", "ollama"),
                model=get_env("TEXTVAULT_EMBEDDER_MODEL"),
                base_url=get_env("TEXTVAULT_EMBEDDER_BASE_URL"),
                api_key=get_env("TEXTVAULT_EMBEDDER_API_KEY") or get_env("OPENAI_API_KEY"),
                timeout=get_env("TEXTVAULT_EMBEDDER_TIMEOUT", 120.0),
                dimension=get_env("TEXTVAULT_EMBEDDER_DIMENSION", cast=int),
                max_batch_size=get_env("TEXTVAULT_EMBEDDER_MAX_BATCH_SIZE", cast=int),
            ),
            store=StoreConfig(
                backend=get_env("TEXTVAULT_STORE_BACKEND", "sqlite"),
                db_path=get_env("TEXTVAULT_STORE_DB_PATH", "data/textvault.db"),
            ),
            segmenter=SegmenterConfig(
                max_tokens=get_env("TEXTVAULT_SEGMENT_MAX_TOKENS", 512),
                overlap_tokens=get_env("TEXTVAULT_SEGMENT_OVERLAP_TOKENS", 50),
            ),
            search=SearchConfig(
                rrf_k=get_env("TEXTVAULT_SEARCH_RRF_K", 60),
                filter_overfetch=get_env("TEXTVAULT_SEARCH_FILTER_OVERFETCH", 3),
            ),
            ingestion=IngestionConfig(
                concurrency=get_env("TEXTVAULT_INGEST_CONCURRENCY", 5),
                embed_timeout=get_env("TEXTVAULT_INGEST_EMBED_TIMEOUT", 120.0),
                manifest_filename=get_env("TEXTVAULT_INGEST_MANIFEST", ".manifest.json"),
                pattern=get_env("TEXTVAULT_INGEST_PATTERN", "**/*.md"),
                verify_store_by_hash=get_env("TEXTVAULT_INGEST_VERIFY_STORE", True),
            ),
            logging=LoggingConfig(
                level=get_env("TEXTVAULT_LOG_LEVEL", "INFO"),
                log_to_file=get_env("TEXTVAULT_LOG_TO_FILE", False),
                log_dir=get_env("TEXTVAULT_LOG_DIR", "logs"),
                file_rotation=get_env("TEXTVAULT_LOG_FILE_ROTATION", "10 MB"),
                file_retention=get_env("TEXTVAULT_LOG_FILE_RETENTION", "7 days"),
                compression=get_env("TEXTVAULT_LOG_COMPRESSION", "zip"),
                serialize=get_env("TEXTVAULT_LOG_SERIALIZE", True),
            ),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "Config":
        """
        Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def from_env_or_yaml(
        cls, yaml_path: str | Path | None = None, env_file: str | Path | None = None
    ) -> "Config":
        """
        Load configuration with priority: env vars > YAML > defaults.

        Args:
            yaml_path: Optional path to YAML config
            env_file: Optional path to .env file

        Returns:
            Config instance
        """
        if yaml_path and Path(yaml_path).exists():
            with open(yaml_path) as f:
                config_dict = yaml.safe_load(f) or {}
        else:
            config_dict = {}

        env_config = cls.from_env(env_file=env_file)

        # Env sections that differ from defaults override YAML
        final_dict = {**config_dict}
        default = cls()
        for section in ("embedder", "store", "segmenter", "search", "ingestion", "logging"):
            env_section = getattr(env_config, section)
            if env_section != getattr(default, section):
                final_dict[section] = env_section.model_dump()

        return cls(**final_dict) if final_dict else env_config
