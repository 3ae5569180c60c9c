import math

import pytest

from geoscene import geometry as geo


def _close(p, q, tol=1e-9):
    return math.isclose(p[0], q[0], abs_tol=tol) and math.isclose(p[1], q[1], abs_tol=tol)


def test_intersect_lines_basic_cross():
    hit = geo.intersect_lines((0.0, 0.0), (10.0, 10.0), (0.0, 10.0), (10.0, 0.0))
    assert hit is not None
    assert _close(hit, (5.0, 5.0))


@pytest.mark.parametrize(
    'a1, a2, b1, b2',
    [
        ((0.0, 0.0), (4.0, 1.0), (1.0, 5.0), (2.0, -3.0)),
        ((-3.0, 2.0), (7.0, 2.5), (0.5, -4.0), (0.0, 9.0)),
        ((1.0, 1.0), (2.0, 3.0), (5.0, 0.0), (-1.0, 1.0)),
    ],
)
@pytest.mark.parametrize('shift', [(3.0, -7.0), (-120.5, 44.25), (0.001, 1e4)])
def test_intersect_lines_is_translation_equivariant(a1, a2, b1, b2, shift):
    def move(p):
        return p[0] + shift[0], p[1] + shift[1]

    base = geo.intersect_lines(a1, a2, b1, b2)
    moved = geo.intersect_lines(move(a1), move(a2), move(b1), move(b2))
    assert base is not None and moved is not None
    assert _close(moved, move(base), tol=1e-6)


def test_intersect_lines_parallel_returns_none():
    assert geo.intersect_lines((0.0, 0.0), (1.0, 0.0), (0.0, 1.0), (5.0, 1.0)) is None
    assert geo.intersect_lines((0.0, 0.0), (1.0, 1.0), (2.0, 2.0), (3.0, 3.0)) is None


def test_line_circle_two_roots_ordered_along_line():
    roots = geo.line_circle_intersections((-10.0, 0.0), (10.0, 0.0), (0.0, 0.0), 5.0)
    assert len(roots) == 2
    assert _close(roots[0], (-5.0, 0.0))
    assert _close(roots[1], (5.0, 0.0))


def test_line_circle_tangent_and_miss():
    tangent = geo.line_circle_intersections((0.0, 5.0), (1.0, 5.0), (0.0, 0.0), 5.0)
    assert len(tangent) == 1
    assert _close(tangent[0], (0.0, 5.0))
    assert geo.line_circle_intersections((0.0, 6.0), (1.0, 6.0), (0.0, 0.0), 5.0) == []


def test_line_circle_clamped_to_segment():
    roots = geo.line_circle_intersections((0.0, 0.0), (10.0, 0.0), (0.0, 0.0), 5.0, clamp_to_segment=True)
    assert len(roots) == 1
    assert _close(roots[0], (5.0, 0.0))


def test_circle_circle_two_points():
    roots = geo.circle_circle_intersections((0.0, 0.0), 5.0, (8.0, 0.0), 5.0)
    assert len(roots) == 2
    assert any(_close(r, (4.0, 3.0)) for r in roots)
    assert any(_close(r, (4.0, -3.0)) for r in roots)


@pytest.mark.parametrize(
    'c2, r2, expected',
    [
        ((10.0, 0.0), 5.0, 1),  # external tangency
        ((10.5, 0.0), 5.0, 0),  # too far apart
        ((1.0, 0.0), 2.0, 0),  # nested
        ((3.0, 0.0), 2.0, 1),  # internal tangency
        ((0.0, 0.0), 5.0, 0),  # concentric
        ((6.0, 0.0), 3.0, 2),
    ],
)
def test_circle_circle_root_count(c2, r2, expected):
    assert len(geo.circle_circle_intersections((0.0, 0.0), 5.0, c2, r2)) == expected


def test_circle_circle_tangent_point_location():
    (root,) = geo.circle_circle_intersections((0.0, 0.0), 5.0, (10.0, 0.0), 5.0)
    assert _close(root, (5.0, 0.0))


def test_circle_from_three_points():
    center = geo.circle_from_three((5.0, 0.0), (0.0, 5.0), (-5.0, 0.0))
    assert center is not None
    assert _close(center, (0.0, 0.0))


def test_circle_from_three_collinear_is_none():
    assert geo.circle_from_three((0.0, 0.0), (1.0, 1.0), (2.0, 2.0)) is None


def test_projection_and_reflection():
    foot = geo.project_point_to_line((3.0, 4.0), (0.0, 0.0), (10.0, 0.0))
    assert _close(foot, (3.0, 0.0))
    image = geo.reflect_across_line((3.0, 4.0), (0.0, 0.0), (10.0, 0.0))
    assert _close(image, (3.0, -4.0))
    assert _close(geo.reflect_across_point((1.0, 2.0), (3.0, 3.0)), (5.0, 4.0))
    assert geo.reflect_across_line((1.0, 1.0), (2.0, 2.0), (2.0, 2.0)) is None


def test_project_point_to_circle_handles_center():
    assert _close(geo.project_point_to_circle((3.0, 4.0), (0.0, 0.0), 10.0), (6.0, 8.0))
    assert _close(geo.project_point_to_circle((0.0, 0.0), (0.0, 0.0), 2.0), (2.0, 0.0))


def test_angle_between_and_projection_order():
    assert math.isclose(geo.angle_between((1.0, 0.0), (0.0, 2.0)), 90.0)
    assert geo.angle_between((0.0, 0.0), (1.0, 0.0)) is None
    order = geo.projection_order([(5.0, 1.0), (-2.0, 0.0), (1.0, 3.0)], (0.0, 0.0), (1.0, 0.0))
    assert order == [1, 2, 0]
