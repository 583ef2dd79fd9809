"""DQ Flags - API module for REST endpoints.

This module provides the FastAPI application and all related components
for the data-quality flags API.
"""

from .config import Settings, get_settings
from .dependencies import (
    get_graph_database,
    get_service,
    get_transaction,
    get_worker_pool,
)
from .main import app, create_app

__all__ = [
    "app",
    "create_app",
    "get_graph_database",
    "get_service",
    "get_settings",
    "get_transaction",
    "get_worker_pool",
    "Settings",
]
