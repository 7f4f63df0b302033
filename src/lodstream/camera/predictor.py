"""Linear viewpoint prediction from the previous rendered frame."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

import numpy as np

from lodstream.camera.kinds import Camera
from lodstream.config.logging_policy import DebugPolicy


logger = logging.getLogger(__name__)


class CameraRig:
    """Holds the scene's active camera; the render loop swaps values in."""

    def __init__(self, camera: Optional[Camera] = None) -> None:
        self._camera = camera

    @property
    def camera(self) -> Optional[Camera]:
        return self._camera

    def set(self, camera: Camera) -> None:
        self._camera = camera

    def __call__(self) -> Camera:
        if self._camera is None:
            raise RuntimeError("Camera error: no active camera yet")
        return self._camera


class ViewpointPredictor:
    """Current camera plus linear extrapolation ``delta_s`` seconds ahead.

    ``save_frame`` must run once per render tick, after the scene moved the
    camera. Saving earlier makes every prediction one tick stale.
    """

    def __init__(
        self,
        camera_source: Callable[[], Camera],
        *,
        debug_policy: Optional[DebugPolicy] = None,
    ) -> None:
        self._camera_source = camera_source
        self._prev_kind: Optional[str] = None
        self._prev_position: Optional[np.ndarray] = None
        self._prev_orientation: Optional[np.ndarray] = None
        self._frame_delta_s = 0.0
        self._log_prediction = bool(debug_policy and debug_policy.logging.log_prediction)

    def current(self) -> Camera:
        return self._camera_source()

    @property
    def frame_delta_s(self) -> float:
        return self._frame_delta_s

    def save_frame(self, frame_delta_s: float) -> None:
        cam = self.current()
        self._prev_kind = cam.kind
        self._prev_position = np.array(cam.position, dtype=float)
        self._prev_orientation = np.array(cam.orientation, dtype=float)
        self._frame_delta_s = float(frame_delta_s)

    def predict(self, delta_s: float) -> Camera:
        """Return a new camera predicted ``delta_s`` seconds ahead.

        The result is independent of the live camera; dispose it after use or
        use :meth:`predicted`.
        """
        cam = self.current()
        if (
            self._prev_position is None
            or self._prev_orientation is None
            or self._prev_kind != cam.kind
            or self._frame_delta_s <= 0.0
        ):
            return cam.clone()
        factor = float(delta_s) / self._frame_delta_s
        future = cam.extrapolated(self._prev_position, self._prev_orientation, factor)
        if self._log_prediction:
            logger.info(
                "predict: dt=%.3fs factor=%.2f pos=%s -> %s",
                delta_s,
                factor,
                np.round(cam.position, 3).tolist(),
                np.round(future.position, 3).tolist(),
            )
        return future

    @contextmanager
    def predicted(self, delta_s: float) -> Iterator[Camera]:
        future = self.predict(delta_s)
        try:
            yield future
        finally:
            future.dispose()


__all__ = ["CameraRig", "ViewpointPredictor"]
