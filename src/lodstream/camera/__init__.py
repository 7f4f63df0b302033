"""Camera variants, projection helpers and viewpoint prediction."""

from .kinds import Camera, DesktopCamera, ImmersiveCamera
from .predictor import CameraRig, ViewpointPredictor

__all__ = [
    "Camera",
    "CameraRig",
    "DesktopCamera",
    "ImmersiveCamera",
    "ViewpointPredictor",
]
