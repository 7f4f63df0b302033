"""Projection and frustum math (free functions).

Conventions: world is y-up, cameras look down their local +z axis with +x to
the right (left-handed, as in the reference scene). Matrices act on column
vectors, and clip-space depth spans ``[0, w]``.
"""

from __future__ import annotations

import math

import numpy as np


def view_matrix(position: np.ndarray, rotation: np.ndarray) -> np.ndarray:
    """World -> camera transform for a camera-to-world ``rotation`` (3x3)."""
    rot_t = np.asarray(rotation, dtype=float).T
    out = np.eye(4)
    out[:3, :3] = rot_t
    out[:3, 3] = -rot_t @ np.asarray(position, dtype=float)
    return out


def perspective_matrix(fov: float, aspect: float, near: float, far: float) -> np.ndarray:
    """Perspective projection with vertical field of view ``fov`` (radians)."""
    if near <= 0.0 or far <= near:
        raise ValueError(f"invalid clip range near={near} far={far}")
    if aspect <= 0.0:
        raise ValueError(f"invalid aspect {aspect}")
    f = 1.0 / math.tan(0.5 * float(fov))
    depth = far / (far - near)
    return np.array(
        [
            [f / aspect, 0.0, 0.0, 0.0],
            [0.0, f, 0.0, 0.0],
            [0.0, 0.0, depth, -near * depth],
            [0.0, 0.0, 1.0, 0.0],
        ]
    )


def frustum_planes(view_projection: np.ndarray) -> np.ndarray:
    """Extract the six frustum planes ``(a, b, c, d)`` from a view-projection.

    Planes are normalised and point inwards, so ``dot(n, p) + d >= 0`` means the
    point is on the visible side. Order: left, right, bottom, top, near, far.
    """
    m = np.asarray(view_projection, dtype=float)
    r0, r1, r2, r3 = m[0], m[1], m[2], m[3]
    planes = np.stack([r3 + r0, r3 - r0, r3 + r1, r3 - r1, r2, r3 - r2])
    norms = np.linalg.norm(planes[:, :3], axis=1, keepdims=True)
    norms[norms == 0.0] = 1.0
    return planes / norms


def box_in_frustum(corners: np.ndarray, planes: np.ndarray) -> bool:
    """True unless every corner lies outside one of the planes."""
    pts = np.asarray(corners, dtype=float)
    dist = pts @ planes[:, :3].T + planes[:, 3]
    return not bool(np.any(np.all(dist < 0.0, axis=0)))


def project_points(points: np.ndarray, view_projection: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Project world points onto the unit screen.

    Returns ``(screen_xy, in_front)``: screen coordinates in the ``[0, 1]``
    viewport (y down) and a mask of points in front of the near plane. Points
    behind the camera still get coordinates but must be ignored by callers.
    """
    pts = np.atleast_2d(np.asarray(points, dtype=float))
    hom = np.hstack([pts, np.ones((pts.shape[0], 1))])
    clip = hom @ np.asarray(view_projection, dtype=float).T
    w = clip[:, 3]
    in_front = w > 1e-12
    safe_w = np.where(in_front, w, 1.0)
    ndc = clip[:, :3] / safe_w[:, None]
    in_front &= ndc[:, 2] >= 0.0
    screen = np.empty((pts.shape[0], 2))
    screen[:, 0] = 0.5 * (ndc[:, 0] + 1.0)
    screen[:, 1] = 0.5 * (1.0 - ndc[:, 1])
    return screen, in_front


__all__ = [
    "box_in_frustum",
    "frustum_planes",
    "perspective_matrix",
    "project_points",
    "view_matrix",
]
