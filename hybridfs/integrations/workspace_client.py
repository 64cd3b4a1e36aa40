"""hybridfs/integrations/workspace_client.py
Remote workspace client over a JSON HTTP API.

Responsibilities:
- `WorkspaceSessionAPI.create(workspace_id)` starts a remote session
- `WorkspaceSession.connect()` returns a `WorkspaceClient`
- `WorkspaceClient` exposes the raw primitives: read_file, write_file,
  readdir, stat, mkdir, remove

Notes:
- Transport failures raise ProviderConnectionError.
- Bodies that are not JSON, or JSON that does not have the expected shape,
  raise ProtocolError.
- Non-2xx answers map to NotFoundError (404), NotEmptyError (409 not_empty)
  or RemoteOperationError.
"""
from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional

import aiohttp

from hybridfs.file_access.errors import (
    NotEmptyError,
    NotFoundError,
    ProtocolError,
    ProviderConnectionError,
    RemoteOperationError,
)
from hybridfs.monitoring.logger import log


def _require(data: Any, key: str, kind: type, op: str) -> Any:
    """Return data[key] if present and of the expected type, else raise ProtocolError."""
    if not isinstance(data, dict) or key not in data:
        raise ProtocolError(f"{op}: response missing '{key}'")
    value = data[key]
    if not isinstance(value, kind) or (isinstance(value, bool) and kind is not bool):
        raise ProtocolError(f"{op}: '{key}' has unexpected type {type(value).__name__}")
    return value


class _HttpTransport:
    """Shared request plumbing for the session API and the fs client."""

    def __init__(self, api_key: str, session: Optional[aiohttp.ClientSession] = None, timeout: float = 30.0):
        self.api_key = api_key
        self._external_session = session
        self._timeout = timeout

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._external_session is not None:
            return self._external_session
        return aiohttp.ClientSession(
            headers={"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"},
            timeout=aiohttp.ClientTimeout(total=self._timeout),
        )

    async def _request(
        self,
        method: str,
        url: str,
        op: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
        path: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        session = await self._get_session()
        try:
            async with session.request(method, url, params=params, json=payload) as resp:
                text = await resp.text()
                if resp.status >= 400:
                    self._raise_for_status(resp.status, text, op, path)
                if resp.status == 204 or not text:
                    return None
                try:
                    data = json.loads(text)
                except ValueError as exc:
                    log("ERROR", f"{op}: undecodable response body", module="workspace_client", status=resp.status)
                    raise ProtocolError(f"{op}: response is not valid JSON: {exc}") from exc
                if not isinstance(data, dict):
                    raise ProtocolError(f"{op}: expected a JSON object, got {type(data).__name__}")
                return data
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            log("ERROR", f"{op} failed: {exc}", module="workspace_client")
            raise ProviderConnectionError(f"{op} failed: {exc}") from exc
        finally:
            if self._external_session is None:
                await session.close()

    @staticmethod
    def _raise_for_status(status: int, text: str, op: str, path: Optional[str]) -> None:
        code = None
        try:
            body = json.loads(text) if text else {}
            code = body.get("code") if isinstance(body, dict) else None
        except ValueError:
            pass
        if status == 404:
            raise NotFoundError(f"{op}: not found: {path}")
        if status == 409 and code == "not_empty":
            raise NotEmptyError(f"{op}: directory not empty: {path}")
        if status == 409 and code == "exists":
            raise FileExistsError(f"{op}: already exists: {path}")
        log("ERROR", f"{op} failed: {status} {text}", module="workspace_client")
        raise RemoteOperationError(f"{op} failed: {status} {text}", status=status)


class WorkspaceClient(_HttpTransport):
    """Thin client for filesystem primitives of a connected session."""

    def __init__(self, fs_url: str, api_key: str, session: Optional[aiohttp.ClientSession] = None):
        super().__init__(api_key, session)
        self.fs_url = fs_url.rstrip("/")

    async def read_file(self, path: str) -> str:
        data = await self._request("GET", f"{self.fs_url}/file", "read_file", params={"path": path}, path=path)
        return _require(data, "content", str, "read_file")

    async def write_file(self, path: str, content: str) -> None:
        await self._request("PUT", f"{self.fs_url}/file", "write_file",
                            payload={"path": path, "content": content}, path=path)

    async def readdir(self, path: str) -> List[str]:
        data = await self._request("GET", f"{self.fs_url}/dir", "readdir", params={"path": path}, path=path)
        entries = _require(data, "entries", list, "readdir")
        if not all(isinstance(e, str) and e and "/" not in e for e in entries):
            raise ProtocolError("readdir: entries must be non-empty names without separators")
        return entries

    async def stat(self, path: str) -> Dict[str, Any]:
        data = await self._request("GET", f"{self.fs_url}/stat", "stat", params={"path": path}, path=path)
        kind = _require(data, "type", str, "stat")
        size = _require(data, "size", int, "stat")
        if kind not in ("file", "directory"):
            raise ProtocolError(f"stat: unknown entry type '{kind}'")
        if size < 0:
            raise ProtocolError(f"stat: size out of bounds ({size})")
        return {"type": kind, "size": size}

    async def mkdir(self, path: str, recursive: bool = False) -> None:
        await self._request("POST", f"{self.fs_url}/dir", "mkdir",
                            payload={"path": path, "recursive": recursive}, path=path)

    async def remove(self, path: str, recursive: bool = False) -> None:
        await self._request("DELETE", f"{self.fs_url}/entry", "remove",
                            params={"path": path, "recursive": "true" if recursive else "false"}, path=path)


class WorkspaceSession(_HttpTransport):
    """A remote session created for one workspace."""

    def __init__(self, session_id: str, base_url: str, api_key: str, session: Optional[aiohttp.ClientSession] = None):
        super().__init__(api_key, session)
        self.id = session_id
        self.base_url = base_url.rstrip("/")

    async def connect(self) -> WorkspaceClient:
        data = await self._request("POST", f"{self.base_url}/sessions/{self.id}/connect", "connect")
        fs_url = _require(data, "fs_url", str, "connect")
        log("INFO", f"Connected to workspace session {self.id}", module="workspace_client", session_id=self.id)
        return WorkspaceClient(fs_url, self.api_key, self._external_session)

    async def close(self) -> None:
        try:
            await self._request("DELETE", f"{self.base_url}/sessions/{self.id}", "close_session")
        except (ProviderConnectionError, RemoteOperationError, NotFoundError) as exc:
            log("WARNING", f"Failed to close workspace session {self.id}: {exc}", module="workspace_client")


class WorkspaceSessionAPI(_HttpTransport):
    """Entry point of the remote workspace API."""

    def __init__(self, api_key: str, base_url: str, session: Optional[aiohttp.ClientSession] = None):
        super().__init__(api_key, session)
        self.base_url = base_url.rstrip("/")

    async def create(self, workspace_id: str) -> WorkspaceSession:
        data = await self._request("POST", f"{self.base_url}/workspaces/{workspace_id}/sessions", "create_session")
        session_id = _require(data, "session_id", str, "create_session")
        log("INFO", f"Workspace session created: {session_id}", module="workspace_client", session_id=session_id)
        return WorkspaceSession(session_id, self.base_url, self.api_key, self._external_session)
