"""Headless mesh instances placed in the scene."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import numpy as np
from scipy.spatial.transform import Rotation

from lodstream.camera.projection import box_in_frustum


@dataclass(frozen=True)
class MeshGeometry:
    """Decoded level geometry in object-local coordinates."""

    vertices: np.ndarray
    faces: np.ndarray
    nbytes: int = 0

    @property
    def bounds(self) -> np.ndarray:
        """``(2, 3)`` array of the local axis-aligned min and max corners."""
        if len(self.vertices) == 0:
            return np.zeros((2, 3))
        verts = np.asarray(self.vertices, dtype=float)
        return np.stack([verts.min(axis=0), verts.max(axis=0)])


@dataclass
class Renderable:
    """One level of one object, instantiated at the object's fixed transform."""

    name: str
    level: int
    geometry: MeshGeometry
    position: np.ndarray
    rotation: np.ndarray
    scale: float = 1.0
    enabled: bool = True
    _corners: Optional[np.ndarray] = field(default=None, init=False, repr=False)

    def world_rotation(self) -> Rotation:
        rx, ry, rz = (float(v) for v in self.rotation)
        return Rotation.from_euler("YXZ", [ry, rx, rz])

    def bounding_corners(self) -> np.ndarray:
        """The eight world-space corners of the local bounding box."""
        if self._corners is None:
            lo, hi = self.geometry.bounds
            local = np.array(
                [[x, y, z] for x in (lo[0], hi[0]) for y in (lo[1], hi[1]) for z in (lo[2], hi[2])],
                dtype=float,
            )
            self._corners = (
                self.world_rotation().apply(local * float(self.scale))
                + np.asarray(self.position, dtype=float)
            )
        return self._corners

    def center(self) -> np.ndarray:
        return self.bounding_corners().mean(axis=0)

    def in_frustum(self, planes: np.ndarray) -> bool:
        return box_in_frustum(self.bounding_corners(), planes)

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = bool(enabled)


__all__ = ["MeshGeometry", "Renderable"]
