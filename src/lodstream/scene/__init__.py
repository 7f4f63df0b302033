"""Scene-side state: assets, renderables, streamable objects and the catalog."""

from .assets import (
    AssetFetcher,
    HttpAssetFetcher,
    LocalAssetFetcher,
    MemoryAssetFetcher,
    MeshDecoder,
    TrimeshDecoder,
    fetcher_from_config,
)
from .catalog import ObjectCatalog, Placement, parse_descriptor
from .renderable import MeshGeometry, Renderable
from .streamable import LevelDescriptor, ObjectMetadata, StreamableObject

__all__ = [
    "AssetFetcher",
    "HttpAssetFetcher",
    "LevelDescriptor",
    "LocalAssetFetcher",
    "MemoryAssetFetcher",
    "MeshDecoder",
    "MeshGeometry",
    "ObjectCatalog",
    "ObjectMetadata",
    "Placement",
    "Renderable",
    "StreamableObject",
    "TrimeshDecoder",
    "fetcher_from_config",
    "parse_descriptor",
]
