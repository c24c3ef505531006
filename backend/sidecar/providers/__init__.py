"""
External tool providers: subprocess clients, registry and catalog
"""

from .models import (
    CatalogTemplate,
    ConnectionStatus,
    ProviderDefinition,
    ProviderSessionState,
    ProviderToolDefinition,
    generate_provider_id,
)
from .client import ProviderClient
from .registry import ProviderRegistry, ProviderToolEntry
from .store import InMemoryProviderStore, ProviderStore

__all__ = [
    "CatalogTemplate",
    "ConnectionStatus",
    "ProviderDefinition",
    "ProviderSessionState",
    "ProviderToolDefinition",
    "generate_provider_id",
    "ProviderClient",
    "ProviderRegistry",
    "ProviderToolEntry",
    "InMemoryProviderStore",
    "ProviderStore",
]
