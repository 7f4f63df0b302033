from __future__ import annotations

import itertools

import pytest

from lodstream.geometry import clip_to_unit_square, convex_hull, shoelace_area, surface_on_screen


def test_hull_drops_interior_and_collinear_points() -> None:
    pts = [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0), (0.5, 0.5), (0.5, 0.0), (0.0, 0.0)]
    hull = convex_hull(pts)
    assert sorted(hull) == [(0.0, 0.0), (0.0, 1.0), (1.0, 0.0), (1.0, 1.0)]


def test_area_is_invariant_under_reordering() -> None:
    pts = [(0.2, 0.1), (0.8, 0.2), (0.9, 0.7), (0.4, 0.9), (0.1, 0.6), (0.5, 0.5)]
    expected = surface_on_screen(pts)
    assert expected > 0.0
    for perm in itertools.islice(itertools.permutations(pts), 0, 720, 37):
        assert surface_on_screen(list(perm)) == pytest.approx(expected)


def test_area_is_clipped_to_viewport() -> None:
    # A square twice the viewport, centred on it, covers the whole screen.
    pts = [(-0.5, -0.5), (1.5, -0.5), (1.5, 1.5), (-0.5, 1.5)]
    assert surface_on_screen(pts) == pytest.approx(1.0)

    # Half in, half out.
    pts = [(0.5, 0.0), (1.5, 0.0), (1.5, 1.0), (0.5, 1.0)]
    assert surface_on_screen(pts) == pytest.approx(0.5)


def test_degenerate_inputs_have_no_area() -> None:
    assert surface_on_screen([]) == 0.0
    assert surface_on_screen([(0.1, 0.1), (0.9, 0.9)]) == 0.0
    assert surface_on_screen([(0.1, 0.1), (0.5, 0.5), (0.9, 0.9)]) == 0.0
    assert surface_on_screen([(0.3, 0.3)] * 5) == 0.0
    # Entirely off screen.
    assert surface_on_screen([(2.0, 2.0), (3.0, 2.0), (3.0, 3.0)]) == 0.0


def test_clip_and_shoelace_helpers() -> None:
    ring = clip_to_unit_square([(0.0, 0.0), (2.0, 0.0), (0.0, 2.0)])
    # Every point of the square satisfies x + y <= 2.
    assert shoelace_area(ring) == pytest.approx(1.0)
    assert clip_to_unit_square([(0.0, 0.0), (1.0, 1.0)]) == []
    assert shoelace_area([(0.0, 0.0), (1.0, 0.0), (0.0, 1.0)]) == pytest.approx(0.5)
