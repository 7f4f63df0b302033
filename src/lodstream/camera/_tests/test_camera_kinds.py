from __future__ import annotations

import math

import numpy as np
import pytest

from lodstream.camera import DesktopCamera, ImmersiveCamera
from lodstream.camera.projection import box_in_frustum, perspective_matrix


def _unit_box(center) -> np.ndarray:
    c = np.asarray(center, dtype=float)
    offsets = np.array(
        [[x, y, z] for x in (-0.5, 0.5) for y in (-0.5, 0.5) for z in (-0.5, 0.5)]
    )
    return c + offsets


def test_desktop_camera_looks_down_positive_z() -> None:
    cam = DesktopCamera(position=(0.0, 0.0, 0.0))
    assert np.allclose(cam.forward(), [0.0, 0.0, 1.0])

    screen, in_front = cam.project([[0.0, 0.0, 5.0], [0.0, 0.0, -5.0]])
    assert in_front.tolist() == [True, False]
    assert screen[0] == pytest.approx([0.5, 0.5])


def test_desktop_frustum_contains_box_in_front_only() -> None:
    cam = DesktopCamera(position=(0.0, 1.0, 0.0))
    planes = cam.frustum_planes()
    assert planes.shape == (6, 4)
    assert box_in_frustum(_unit_box((0.0, 1.0, 10.0)), planes)
    assert not box_in_frustum(_unit_box((0.0, 1.0, -10.0)), planes)
    assert not box_in_frustum(_unit_box((100.0, 1.0, 10.0)), planes)


def test_yaw_turns_towards_positive_x() -> None:
    cam = DesktopCamera(position=(0.0, 0.0, 0.0), rotation=(0.0, math.pi / 2, 0.0))
    assert np.allclose(cam.forward(), [1.0, 0.0, 0.0], atol=1e-9)


def test_retargeted_desktop_camera_centers_target() -> None:
    cam = DesktopCamera(position=(1.0, 2.0, -3.0), rotation=(0.3, -1.2, 0.1))
    target = np.array([-4.0, 0.5, 7.0])

    aimed = cam.retargeted(target)

    screen, in_front = aimed.project([target])
    assert in_front[0]
    assert screen[0] == pytest.approx([0.5, 0.5], abs=1e-9)
    # The original is untouched.
    assert cam.rotation.tolist() == pytest.approx([0.3, -1.2, 0.1])


def test_immersive_camera_is_half_turn_from_device_frame() -> None:
    cam = ImmersiveCamera(position=(0.0, 0.0, 0.0))
    # Identity headset quaternion looks down -z in scene terms.
    assert np.allclose(cam.forward(), [0.0, 0.0, -1.0], atol=1e-9)
    planes = cam.frustum_planes()
    assert box_in_frustum(_unit_box((0.0, 0.0, -10.0)), planes)
    assert not box_in_frustum(_unit_box((0.0, 0.0, 10.0)), planes)
    # The stored quaternion is not modified by the frustum computation.
    assert cam.rotation_quaternion.tolist() == pytest.approx([0.0, 0.0, 0.0, 1.0])


def test_retargeted_immersive_camera_centers_target() -> None:
    cam = ImmersiveCamera(position=(0.0, 1.6, 0.0))
    target = np.array([3.0, 1.0, 4.0])
    aimed = cam.retargeted(target)
    screen, in_front = aimed.project([target])
    assert in_front[0]
    assert screen[0] == pytest.approx([0.5, 0.5], abs=1e-9)


def test_camera_values_are_immutable_and_disposable() -> None:
    cam = DesktopCamera(position=(1.0, 2.0, 3.0))
    with pytest.raises(ValueError):
        cam.position[0] = 5.0

    clone = cam.clone(position=(0.0, 0.0, 0.0))
    assert cam.position.tolist() == [1.0, 2.0, 3.0]
    assert clone.position.tolist() == [0.0, 0.0, 0.0]

    clone.view_projection()
    clone.dispose()
    assert clone.disposed
    with pytest.raises(RuntimeError):
        clone.frustum_planes()
    # Disposing a clone leaves the source usable.
    assert cam.frustum_planes().shape == (6, 4)


def test_perspective_matrix_rejects_bad_clip_range() -> None:
    with pytest.raises(ValueError):
        perspective_matrix(0.8, 1.0, 0.0, 10.0)
    with pytest.raises(ValueError):
        perspective_matrix(0.8, 1.0, 5.0, 1.0)
