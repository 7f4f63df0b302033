"""Utility metrics: how much an object matters from a given viewpoint.

Every metric maps ``(object, camera) -> float``; larger is more useful. None of
them touches the object's display state or the camera passed in.
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Callable, Dict, Optional, Union

import numpy as np

from lodstream.camera.kinds import Camera
from lodstream.config.logging_policy import DebugPolicy
from lodstream.geometry.hull import surface_on_screen
from lodstream.scene.streamable import StreamableObject


logger = logging.getLogger(__name__)

# Returned by the distance-based metrics when the camera sits on the object.
ZERO_DISTANCE_UTILITY = 1e12


class MetricKind(str, Enum):
    SURFACE = "surface"
    DISTANCE = "distance"
    VISIBLE = "visible"
    POTENTIAL = "potential"
    VISIBLE_POTENTIAL = "visible_potential"

    @classmethod
    def parse(cls, value: Union["MetricKind", str]) -> "MetricKind":
        if isinstance(value, MetricKind):
            return value
        key = str(value).strip().lower().replace("-", "_")
        for kind in cls:
            if key in (kind.value, kind.name.lower()):
                return kind
        raise ValueError(f"unknown metric {value!r}; expected one of {[k.value for k in cls]}")


def _distance_sq(obj: StreamableObject, camera: Camera) -> float:
    delta = obj.position - np.asarray(camera.position, dtype=float)
    return float(np.dot(delta, delta))


def distance_utility(obj: StreamableObject, camera: Camera) -> float:
    d2 = _distance_sq(obj, camera)
    if d2 == 0.0:
        return ZERO_DISTANCE_UTILITY
    return 1.0 / d2


def surface_utility(obj: StreamableObject, camera: Camera) -> float:
    d2 = _distance_sq(obj, camera)
    if d2 == 0.0:
        return ZERO_DISTANCE_UTILITY
    return obj.area * obj.scale * obj.scale / d2


def projected_area(corners: np.ndarray, camera: Camera) -> float:
    """Screen fraction covered by ``corners`` seen from ``camera``."""
    screen, in_front = camera.project(corners)
    kept = screen[in_front]
    if len(kept) < 3:
        return 0.0
    return surface_on_screen(kept)


def visible_utility(obj: StreamableObject, camera: Camera) -> float:
    return projected_area(obj.current_mesh().bounding_corners(), camera)


def potential_utility(obj: StreamableObject, camera: Camera) -> float:
    """Screen area the object would cover if the camera turned to face it."""
    mesh = obj.current_mesh()
    aimed = camera.retargeted(mesh.center())
    try:
        return projected_area(mesh.bounding_corners(), aimed)
    finally:
        aimed.dispose()


def visible_potential_utility(obj: StreamableObject, camera: Camera) -> float:
    score = visible_utility(obj, camera)
    if score == 0.0:
        # Off-screen objects rank below every visible one, by how close they are to view.
        score = -math.cos(potential_utility(obj, camera))
    return score


MetricFn = Callable[[StreamableObject, Camera], float]

METRICS: Dict[MetricKind, MetricFn] = {
    MetricKind.SURFACE: surface_utility,
    MetricKind.DISTANCE: distance_utility,
    MetricKind.VISIBLE: visible_utility,
    MetricKind.POTENTIAL: potential_utility,
    MetricKind.VISIBLE_POTENTIAL: visible_potential_utility,
}


class MetricSelector:
    """Holds the active metric; switch it between ticks with ``set_metric``."""

    def __init__(
        self,
        kind: Union[MetricKind, str] = MetricKind.DISTANCE,
        *,
        debug_policy: Optional[DebugPolicy] = None,
    ) -> None:
        self._kind = MetricKind.parse(kind)
        self._log_scores = bool(debug_policy and debug_policy.logging.log_metric_scores)

    def set_metric(self, kind: Union[MetricKind, str]) -> None:
        new_kind = MetricKind.parse(kind)
        if new_kind is not self._kind:
            logger.info("metric: %s -> %s", self._kind.value, new_kind.value)
        self._kind = new_kind

    @property
    def kind(self) -> MetricKind:
        return self._kind

    @property
    def name(self) -> str:
        return self._kind.value

    def score(self, obj: StreamableObject, camera: Camera) -> float:
        value = METRICS[self._kind](obj, camera)
        if self._log_scores:
            logger.info("metric %s: %s = %.6g", self._kind.value, obj.name, value)
        return value


__all__ = [
    "METRICS",
    "MetricKind",
    "MetricSelector",
    "ZERO_DISTANCE_UTILITY",
    "distance_utility",
    "potential_utility",
    "projected_area",
    "surface_utility",
    "visible_potential_utility",
    "visible_utility",
]
