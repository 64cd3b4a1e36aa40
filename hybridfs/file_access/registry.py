# hybridfs/file_access/registry.py
"""
Provider registry.

Maps provider names to classes and builds the fixed-priority fallback chain
from settings.
"""
from typing import Any, Dict, List

from hybridfs.config import Settings
from hybridfs.file_access.base import FileStorageProvider, ProviderName
from hybridfs.file_access.local_provider import LocalFileSystem
from hybridfs.file_access.remote_provider import RemoteWorkspaceProvider
from hybridfs.file_access.runtime_provider import EmbeddedRuntimeProvider


# Registry of available providers
PROVIDER_REGISTRY: Dict[ProviderName, type] = {
    ProviderName.REMOTE_CLOUD: RemoteWorkspaceProvider,
    ProviderName.EMBEDDED_RUNTIME: EmbeddedRuntimeProvider,
    ProviderName.LOCAL: LocalFileSystem,
}

# Fallback order; local must stay last
PRIORITY: List[ProviderName] = [
    ProviderName.REMOTE_CLOUD,
    ProviderName.EMBEDDED_RUNTIME,
    ProviderName.LOCAL,
]


def provider_configs(settings: Settings) -> Dict[ProviderName, Dict[str, Any]]:
    """Per-provider configuration derived from settings."""
    return {
        ProviderName.REMOTE_CLOUD: {
            "api_key": settings.WORKSPACE_API_KEY,
            "workspace_id": settings.WORKSPACE_ID,
            "base_url": settings.WORKSPACE_API_URL,
        },
        ProviderName.EMBEDDED_RUNTIME: {
            "root": settings.RUNTIME_ROOT,
        },
        ProviderName.LOCAL: {
            "scaffold": settings.LOCAL_SCAFFOLD,
        },
    }


def build_provider_chain(settings: Settings) -> List[FileStorageProvider]:
    """
    Instantiate every provider in priority order.

    Providers are constructed even when unconfigured; a missing credential
    surfaces from connect() so the manager can record the skip.
    """
    configs = provider_configs(settings)
    return [PROVIDER_REGISTRY[name](configs[name]) for name in PRIORITY]
