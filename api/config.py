"""Settings management for the DQ Flags API.

This module provides centralized configuration management using pydantic-settings.
All configuration is loaded from environment variables with sensible defaults.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GraphBackend(str, Enum):
    """Graph storage backends the API can run on."""

    NEO4J = "neo4j"
    MEMORY = "memory"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Attributes:
        app_name: Name of the application.
        app_version: Application version.
        debug: Enable debug mode.
        log_level: Logging level.

        graph_backend: Graph storage backend (neo4j or memory).
        neo4j_uri: Neo4j connection URI.
        neo4j_user: Neo4j username.
        neo4j_password: Neo4j password.
        neo4j_database: Neo4j database name.
        enforce_unique_classes: Install a uniqueness constraint on class labels.

        worker_core_size: Workers kept alive in the batch pool.
        worker_max_size: Maximum workers in the batch pool.
        worker_queue_size: Pending batches the pool accepts before rejecting.
        worker_keep_alive_seconds: Idle time before a non-core worker exits.
        worker_shutdown_timeout_seconds: Time queued batches get on shutdown.
        batch_timeout_seconds: Time a single batch may take.
        stats_max_depth: Deepest class level statistics will walk.

        cors_origins: Allowed CORS origins.
        api_prefix: API route prefix.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = Field(default="DQ Flags API", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # Graph settings
    graph_backend: GraphBackend = Field(
        default=GraphBackend.NEO4J,
        description="Graph storage backend",
    )
    neo4j_uri: str = Field(
        default="bolt://localhost:7687",
        description="Neo4j connection URI",
    )
    neo4j_user: str = Field(default="neo4j", description="Neo4j username")
    neo4j_password: str = Field(default="password", description="Neo4j password")
    neo4j_database: str = Field(default="neo4j", description="Neo4j database name")
    enforce_unique_classes: bool = Field(
        default=False,
        description="Install a uniqueness constraint on flag class labels",
    )

    # Worker pool settings (unset sizes are derived from the CPU count)
    worker_core_size: int | None = Field(default=None, ge=1, description="Core workers")
    worker_max_size: int | None = Field(default=None, ge=1, description="Maximum workers")
    worker_queue_size: int | None = Field(default=None, ge=1, description="Work queue capacity")
    worker_keep_alive_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Idle seconds before a non-core worker exits",
    )
    worker_shutdown_timeout_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Seconds queued work may run during shutdown",
    )

    # Flag core settings
    batch_timeout_seconds: float | None = Field(
        default=60.0,
        gt=0,
        description="Seconds a single deletion batch may take",
    )
    stats_max_depth: int = Field(
        default=64,
        ge=1,
        description="Maximum class hierarchy depth for statistics",
    )

    # CORS settings
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins",
    )

    # API settings
    api_prefix: str = Field(default="/api/v1", description="API route prefix")


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Uses lru_cache to ensure settings are loaded once and reused.

    Returns:
        The application settings instance.
    """
    return Settings()
