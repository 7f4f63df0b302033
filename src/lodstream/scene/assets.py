"""Asset fetchers and mesh decoding.

Fetchers resolve catalog-relative URIs (``positions.json``,
``<name>/metadata.json``, ``<name>/<level file>``) to bytes. Decoders turn
level bytes into :class:`MeshGeometry`. Both are async; blocking work is
pushed to worker threads so the scheduling loop keeps running.
"""

from __future__ import annotations

import asyncio
import io
from pathlib import Path, PurePosixPath
from typing import Dict, List, Mapping, Optional, Protocol, Union

import httpx
import numpy as np
import trimesh

from lodstream.errors import AssetDecodeError, AssetFetchError
from lodstream.scene.renderable import MeshGeometry


class AssetFetcher(Protocol):
    async def fetch_text(self, uri: str) -> str: ...

    async def fetch_bytes(self, uri: str) -> bytes: ...


class MeshDecoder(Protocol):
    async def decode(self, data: bytes, *, file_type: str) -> MeshGeometry: ...


def file_type_for(filename: str) -> str:
    suffix = PurePosixPath(filename).suffix.lstrip(".").lower()
    return suffix or "ply"


def _decode_text(uri: str, data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise AssetFetchError(f"{uri}: not UTF-8 text") from exc


class LocalAssetFetcher:
    """Reads assets below a root directory."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)

    def _path(self, uri: str) -> Path:
        return self.root.joinpath(*PurePosixPath(uri).parts)

    async def fetch_bytes(self, uri: str) -> bytes:
        path = self._path(uri)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise AssetFetchError(f"{uri}: {exc.strerror or exc}") from exc

    async def fetch_text(self, uri: str) -> str:
        return _decode_text(uri, await self.fetch_bytes(uri))


class HttpAssetFetcher:
    """Fetches assets relative to ``base_url`` with a shared ``httpx`` client."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout_s)

    async def fetch_bytes(self, uri: str) -> bytes:
        try:
            response = await self._client.get(uri)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise AssetFetchError(f"{uri}: {exc}") from exc
        return response.content

    async def fetch_text(self, uri: str) -> str:
        return _decode_text(uri, await self.fetch_bytes(uri))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpAssetFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


class MemoryAssetFetcher:
    """In-process asset store; records every URI it was asked for."""

    def __init__(self, files: Optional[Mapping[str, Union[str, bytes]]] = None) -> None:
        self.files: Dict[str, bytes] = {}
        self.requests: List[str] = []
        for uri, payload in (files or {}).items():
            self.put(uri, payload)

    def put(self, uri: str, payload: Union[str, bytes]) -> None:
        self.files[uri] = payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)

    async def fetch_bytes(self, uri: str) -> bytes:
        self.requests.append(uri)
        try:
            return self.files[uri]
        except KeyError as exc:
            raise AssetFetchError(f"{uri}: not found") from exc

    async def fetch_text(self, uri: str) -> str:
        return _decode_text(uri, await self.fetch_bytes(uri))


def fetcher_from_config(root: Optional[str], base_url: Optional[str], *, timeout_s: float = 30.0) -> AssetFetcher:
    if base_url:
        return HttpAssetFetcher(base_url, timeout_s=timeout_s)
    if root:
        return LocalAssetFetcher(root)
    raise ValueError("an asset root directory or base URL is required")


class TrimeshDecoder:
    """Decodes any mesh format ``trimesh`` can load into a single mesh."""

    def _load(self, data: bytes, file_type: str) -> MeshGeometry:
        try:
            mesh = trimesh.load(io.BytesIO(data), file_type=file_type, force="mesh")
        except Exception as exc:
            raise AssetDecodeError(f"cannot decode {file_type} payload: {exc}") from exc
        vertices = np.asarray(getattr(mesh, "vertices", ()), dtype=float).reshape(-1, 3)
        faces = np.asarray(getattr(mesh, "faces", ()), dtype=np.int64).reshape(-1, 3)
        if vertices.size == 0:
            raise AssetDecodeError(f"{file_type} payload has no vertices")
        return MeshGeometry(vertices=vertices, faces=faces, nbytes=len(data))

    async def decode(self, data: bytes, *, file_type: str) -> MeshGeometry:
        return await asyncio.to_thread(self._load, data, file_type)


__all__ = [
    "AssetFetcher",
    "HttpAssetFetcher",
    "LocalAssetFetcher",
    "MemoryAssetFetcher",
    "MeshDecoder",
    "TrimeshDecoder",
    "fetcher_from_config",
    "file_type_for",
]
