"""Camera variants consumed by the predictor, metrics and catalog.

Two kinds exist. ``DesktopCamera`` stores its orientation as Euler angles
(pitch, yaw, roll) the way a keyboard/mouse camera does. ``ImmersiveCamera``
stores a headset quaternion whose frustum is authored 180 degrees about the
vertical axis relative to the scene; ``view_rotation`` undoes that offset so
everything downstream can treat both kinds alike.

Cameras are values: derived matrices are cached per instance and released by
``dispose()``. Using a disposed camera is a bug and raises.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Union

import numpy as np
from scipy.spatial.transform import Rotation

from lodstream.camera.projection import (
    frustum_planes,
    perspective_matrix,
    project_points,
    view_matrix,
)


_YAW_HALF_TURN = Rotation.from_euler("y", math.pi)


def _frozen_vector(value: Any, size: int) -> np.ndarray:
    arr = np.array(value, dtype=float).reshape(size)
    arr.flags.writeable = False
    return arr


def _look_rotation(eye: np.ndarray, target: np.ndarray) -> tuple[float, float]:
    """Return (pitch, yaw) so that local +z points from ``eye`` to ``target``."""
    d = np.asarray(target, dtype=float) - np.asarray(eye, dtype=float)
    yaw = math.atan2(float(d[0]), float(d[2]))
    pitch = -math.atan2(float(d[1]), math.hypot(float(d[0]), float(d[2])))
    return pitch, yaw


@dataclass(frozen=True, eq=False)
class _CameraBase:
    position: np.ndarray
    fov: float = 0.8
    aspect: float = 16.0 / 9.0
    near: float = 0.1
    far: float = 1000.0
    _cache: Dict[str, Any] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", _frozen_vector(self.position, 3))

    # ---- kind-specific hooks -----------------------------------------------

    kind: str = field(default="base", init=False)

    def view_rotation(self) -> Rotation:
        raise NotImplementedError

    @property
    def orientation(self) -> np.ndarray:
        raise NotImplementedError

    def retargeted(self, target: np.ndarray) -> "Camera":
        raise NotImplementedError

    def extrapolated(self, prev_position: np.ndarray, prev_orientation: np.ndarray, factor: float) -> "Camera":
        raise NotImplementedError

    # ---- shared derived state ----------------------------------------------

    @property
    def disposed(self) -> bool:
        return bool(self._cache.get("disposed", False))

    def _cached(self, key: str, build) -> np.ndarray:
        if self.disposed:
            raise RuntimeError(f"{type(self).__name__} used after dispose()")
        value = self._cache.get(key)
        if value is None:
            value = build()
            self._cache[key] = value
        return value

    def forward(self) -> np.ndarray:
        return self.view_rotation().apply([0.0, 0.0, 1.0])

    def view_matrix(self) -> np.ndarray:
        return self._cached("view", lambda: view_matrix(self.position, self.view_rotation().as_matrix()))

    def projection_matrix(self) -> np.ndarray:
        return self._cached("proj", lambda: perspective_matrix(self.fov, self.aspect, self.near, self.far))

    def view_projection(self) -> np.ndarray:
        return self._cached("view_proj", lambda: self.projection_matrix() @ self.view_matrix())

    def frustum_planes(self) -> np.ndarray:
        return self._cached("planes", lambda: frustum_planes(self.view_projection()))

    def project(self, points: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        return project_points(points, self.view_projection())

    def clone(self, **changes: Any) -> "Camera":
        return replace(self, **changes)

    def dispose(self) -> None:
        self._cache.clear()
        self._cache["disposed"] = True


@dataclass(frozen=True, eq=False)
class DesktopCamera(_CameraBase):
    """Free-flying camera with Euler rotation ``(pitch, yaw, roll)`` in radians."""

    rotation: np.ndarray = field(default_factory=lambda: np.zeros(3))
    kind: str = field(default="desktop", init=False)

    def __post_init__(self) -> None:
        super().__post_init__()
        object.__setattr__(self, "rotation", _frozen_vector(self.rotation, 3))

    @property
    def orientation(self) -> np.ndarray:
        return self.rotation

    def view_rotation(self) -> Rotation:
        pitch, yaw, roll = (float(v) for v in self.rotation)
        return Rotation.from_euler("YXZ", [yaw, pitch, roll])

    def retargeted(self, target: np.ndarray) -> "DesktopCamera":
        pitch, yaw = _look_rotation(self.position, target)
        return self.clone(rotation=(pitch, yaw, 0.0))

    def extrapolated(self, prev_position: np.ndarray, prev_orientation: np.ndarray, factor: float) -> "DesktopCamera":
        pos = self.position + (self.position - prev_position) * factor
        rot = self.rotation + (self.rotation - prev_orientation) * factor
        return self.clone(position=pos, rotation=rot)


@dataclass(frozen=True, eq=False)
class ImmersiveCamera(_CameraBase):
    """Headset camera with a unit quaternion ``(x, y, z, w)``."""

    rotation_quaternion: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, 0.0, 1.0]))
    kind: str = field(default="immersive", init=False)

    def __post_init__(self) -> None:
        super().__post_init__()
        quat = Rotation.from_quat(np.asarray(self.rotation_quaternion, dtype=float)).as_quat()
        object.__setattr__(self, "rotation_quaternion", _frozen_vector(quat, 4))

    @property
    def orientation(self) -> np.ndarray:
        return self.rotation_quaternion

    def device_rotation(self) -> Rotation:
        return Rotation.from_quat(self.rotation_quaternion)

    def view_rotation(self) -> Rotation:
        # Counter-rotate the headset frame onto the scene convention.
        return self.device_rotation() * _YAW_HALF_TURN

    def retargeted(self, target: np.ndarray) -> "ImmersiveCamera":
        pitch, yaw = _look_rotation(self.position, target)
        look = Rotation.from_euler("YXZ", [yaw, pitch, 0.0])
        return self.clone(rotation_quaternion=(look * _YAW_HALF_TURN.inv()).as_quat())

    def extrapolated(self, prev_position: np.ndarray, prev_orientation: np.ndarray, factor: float) -> "ImmersiveCamera":
        pos = self.position + (self.position - prev_position) * factor
        current = self.device_rotation()
        step = current * Rotation.from_quat(prev_orientation).inv()
        # Slerp from identity along the per-frame increment, extrapolated.
        ahead = Rotation.from_rotvec(step.as_rotvec() * factor) * current
        return self.clone(position=pos, rotation_quaternion=ahead.as_quat())


Camera = Union[DesktopCamera, ImmersiveCamera]


__all__ = ["Camera", "DesktopCamera", "ImmersiveCamera"]
