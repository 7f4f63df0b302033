"""Generated catalogs for demos and smoke runs.

Each object is an icosphere whose level ``i`` has ``i + 1`` subdivisions, so
later levels are larger and closer to the ideal sphere. Everything lands in a
:class:`MemoryAssetFetcher` using the same layout as an on-disk catalog.
"""

from __future__ import annotations

import json
import math
from typing import Dict, List

import trimesh

from lodstream.scene.assets import MemoryAssetFetcher


def _ring_positions(count: int, radius: float) -> List[List[float]]:
    out = []
    for i in range(count):
        theta = 2.0 * math.pi * i / max(count, 1)
        out.append([round(radius * math.sin(theta), 4), 0.0, round(radius * math.cos(theta), 4)])
    return out


def build_synthetic_catalog(
    n_objects: int = 6,
    n_levels: int = 4,
    *,
    radius: float = 8.0,
    descriptor: str = "positions.json",
) -> MemoryAssetFetcher:
    """Create ``n_objects`` spheres on a ring, each with ``n_levels`` levels."""
    if n_objects < 1 or n_levels < 1:
        raise ValueError("need at least one object and one level")
    fetcher = MemoryAssetFetcher()
    placements: List[Dict[str, object]] = []
    for idx, position in enumerate(_ring_positions(n_objects, radius)):
        name = f"sphere{idx:02d}"
        levels = []
        for level in range(n_levels):
            mesh = trimesh.creation.icosphere(subdivisions=level + 1, radius=0.5)
            payload = mesh.export(file_type="ply")
            filename = f"{name}_{level}.ply"
            fetcher.put(f"{name}/{filename}", payload)
            levels.append(
                {
                    "level": level,
                    "filename": filename,
                    "size": len(payload),
                    "hdrvdp2": round(0.6 / (level + 1), 4),
                }
            )
        metadata = {
            "name": name,
            "nb_levels": n_levels,
            "area": round(float(mesh.area), 4),
            "Levels": levels,
            "Textures": [],
        }
        fetcher.put(f"{name}/metadata.json", json.dumps(metadata))
        placements.append({"name": name, "position": position, "rotation": [0.0, 0.0, 0.0], "scale": 1.0})
    fetcher.put(descriptor, json.dumps(placements))
    return fetcher


__all__ = ["build_synthetic_catalog"]
