# hybridfs/file_access/remote_provider.py
"""
Remote workspace provider.

Creates a session on the remote workspace API, connects to it, and maps the
session client's raw primitives onto the FileStorageProvider interface.
"""
from typing import Any, Dict, List, Optional

import structlog

from hybridfs.file_access.base import (
    FileStat,
    FileStorageProvider,
    ProviderName,
    normalize_path,
)
from hybridfs.file_access.errors import (
    ConfigurationError,
    HybridFSError,
    NotFoundError,
    NotReadyError,
    ProtocolError,
    ProviderConnectionError,
)
from hybridfs.integrations.workspace_client import (
    WorkspaceClient,
    WorkspaceSession,
    WorkspaceSessionAPI,
)
from hybridfs.monitoring.context import set_request_context

logger = structlog.get_logger()


class RemoteWorkspaceProvider(FileStorageProvider):
    """
    Remote workspace provider.

    Config schema:
    {
        "api_key": "...",                     # Required to attempt a session
        "workspace_id": "my-workspace",       # Workspace to open a session on
        "base_url": "https://api.example/v1"  # Workspace API root
    }

    A missing api_key is reported from connect() as ConfigurationError so the
    provider can be listed in the chain and skipped without a network call.
    """

    name = ProviderName.REMOTE_CLOUD

    def __init__(
        self,
        config: Dict[str, Any],
        session_api: Optional[WorkspaceSessionAPI] = None,
    ):
        super().__init__(config)
        self.api_key = config.get("api_key")
        self.workspace_id = config.get("workspace_id", "default")
        self.base_url = config.get("base_url", "")

        self._session_api = session_api
        self._session: Optional[WorkspaceSession] = None
        self._client: Optional[WorkspaceClient] = None

    @property
    def session(self) -> Optional[WorkspaceSession]:
        return self._session

    async def connect(self) -> None:
        """
        Create and connect a workspace session.

        Raises:
            ConfigurationError: If no api_key is configured
            ProviderConnectionError: If the API cannot be reached or refuses
            ProtocolError: If the API answers with malformed data
        """
        if not self.api_key:
            raise ConfigurationError("Remote workspace API key not configured")

        if self._session_api is None:
            self._session_api = WorkspaceSessionAPI(self.api_key, self.base_url)

        try:
            logger.info("remote_connecting", workspace_id=self.workspace_id)
            self._session = await self._session_api.create(self.workspace_id)
            set_request_context(session_id=self._session.id)
            self._client = await self._session.connect()
            logger.info("remote_connected", workspace_id=self.workspace_id, session_id=self._session.id)

        except ProtocolError as e:
            # A partial session may exist; health checks must still fail
            self.mark_unhealthy()
            logger.error("remote_protocol_error", workspace_id=self.workspace_id, error=str(e))
            raise

        except ProviderConnectionError as e:
            logger.error("remote_connection_failed", workspace_id=self.workspace_id, error=str(e))
            raise

        except Exception as e:
            logger.error("remote_connection_failed", workspace_id=self.workspace_id, error=str(e))
            raise ProviderConnectionError(f"Remote workspace connection failed: {e}") from e

    async def disconnect(self) -> None:
        """Close the remote session."""
        if self._session:
            try:
                await self._session.close()
                logger.info("remote_disconnected", session_id=self._session.id)
            except HybridFSError as e:
                logger.warning("remote_disconnect_error", error=str(e))
            finally:
                self._session = None
                self._client = None

    def _require_client(self) -> WorkspaceClient:
        if self._client is None:
            raise NotReadyError("Remote workspace not connected")
        return self._client

    async def read_file(self, path: str) -> str:
        return await self._require_client().read_file(normalize_path(path))

    async def write_file(self, path: str, content: str) -> None:
        await self._require_client().write_file(normalize_path(path), content)

    async def readdir(self, path: str) -> List[str]:
        return await self._require_client().readdir(normalize_path(path))

    async def mkdir(self, path: str, recursive: bool = False) -> None:
        await self._require_client().mkdir(normalize_path(path), recursive=recursive)

    async def delete_file(self, path: str) -> None:
        path = normalize_path(path)
        client = self._require_client()
        info = await client.stat(path)
        if info["type"] == "directory":
            raise IsADirectoryError(f"Is a directory: {path}")
        await client.remove(path)

    async def delete_directory(self, path: str, recursive: bool = False) -> None:
        await self._require_client().remove(normalize_path(path), recursive=recursive)

    async def exists(self, path: str) -> bool:
        try:
            await self._require_client().stat(normalize_path(path))
            return True
        except NotFoundError:
            return False

    async def stat(self, path: str) -> FileStat:
        info = await self._require_client().stat(normalize_path(path))
        is_directory = info["type"] == "directory"
        return FileStat(is_file=not is_directory, is_directory=is_directory, size=info["size"])
