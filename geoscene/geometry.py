"""Pure 2D geometry kernels used by the construction engine.

Every function takes plain ``(x, y)`` tuples and returns new tuples (or
``None`` / an empty list when the configuration is degenerate).  Nothing in
this module raises on degeneracy: callers decide whether an unsolvable
configuration hides a point or rejects a construction.
"""

from __future__ import annotations

import logging
from math import acos, degrees, hypot, sqrt
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .logging_utils import apply_debug_logging

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

EPS = 1e-9


def vec(a: Point, b: Point) -> Point:
    return b[0] - a[0], b[1] - a[1]


def dot(a: Point, b: Point) -> float:
    return a[0] * b[0] + a[1] * b[1]


def cross(a: Point, b: Point) -> float:
    return a[0] * b[1] - a[1] * b[0]


def norm(v: Point) -> float:
    return hypot(v[0], v[1])


def distance(a: Point, b: Point) -> float:
    return hypot(b[0] - a[0], b[1] - a[1])


def midpoint(a: Point, b: Point) -> Point:
    return (a[0] + b[0]) * 0.5, (a[1] + b[1]) * 0.5


def rotate90(v: Point) -> Point:
    return -v[1], v[0]


def unit(v: Point, eps: float = EPS) -> Optional[Point]:
    length = norm(v)
    if length <= eps:
        return None
    return v[0] / length, v[1] / length


def intersect_lines(a1: Point, a2: Point, b1: Point, b2: Point, eps: float = EPS) -> Optional[Point]:
    """Intersect the infinite lines ``a1a2`` and ``b1b2``.

    Returns ``None`` when the direction cross product is below ``eps``
    (parallel or coincident lines).
    """

    r = vec(a1, a2)
    s = vec(b1, b2)
    denom = cross(r, s)
    if abs(denom) < eps:
        return None
    qp = vec(a1, b1)
    t = cross(qp, s) / denom
    return a1[0] + t * r[0], a1[1] + t * r[1]


def line_circle_intersections(
    a: Point,
    b: Point,
    center: Point,
    radius: float,
    clamp_to_segment: bool = False,
    eps: float = EPS,
) -> List[Point]:
    """Intersect the line through ``a`` and ``b`` with a circle.

    Roots are ordered by their parameter along ``a -> b``.  With
    ``clamp_to_segment`` only roots with ``t`` in ``[0, 1]`` survive.
    """

    d = vec(a, b)
    diff = vec(center, a)
    qa = dot(d, d)
    if qa <= eps:
        return []
    qb = 2.0 * dot(d, diff)
    qc = dot(diff, diff) - radius * radius
    disc = qb * qb - 4.0 * qa * qc
    # scale-aware tangency band: disc is quadratic in the coordinates
    tol = eps * max(1.0, qa * max(radius, 1.0) ** 2)
    if disc < -tol:
        return []
    if abs(disc) <= tol:
        params = [-qb / (2.0 * qa)]
    else:
        root = sqrt(disc)
        params = [(-qb - root) / (2.0 * qa), (-qb + root) / (2.0 * qa)]
    if clamp_to_segment:
        params = [t for t in params if -eps <= t <= 1.0 + eps]
    return [(a[0] + t * d[0], a[1] + t * d[1]) for t in params]


def circle_circle_intersections(
    c1: Point, r1: float, c2: Point, r2: float, eps: float = EPS
) -> List[Point]:
    """Intersect two circles using the radical line.

    Returns no points for concentric, separate or nested circles, a single
    point at tangency (within ``eps``) and two points otherwise.  The two
    roots are ordered left-then-right of the ``c1 -> c2`` direction.
    """

    dx = c2[0] - c1[0]
    dy = c2[1] - c1[1]
    d = hypot(dx, dy)
    if d <= eps:
        return []
    if d > r1 + r2 + eps:
        return []
    if d < abs(r1 - r2) - eps:
        return []
    a_param = (r1 * r1 - r2 * r2 + d * d) / (2.0 * d)
    h_sq = r1 * r1 - a_param * a_param
    base = (c1[0] + a_param * dx / d, c1[1] + a_param * dy / d)
    if h_sq <= eps * max(1.0, r1 * r1):
        return [base]
    h = sqrt(h_sq)
    rx = -dy * (h / d)
    ry = dx * (h / d)
    return [(base[0] + rx, base[1] + ry), (base[0] - rx, base[1] - ry)]


def circle_from_three(a: Point, b: Point, c: Point, eps: float = EPS) -> Optional[Point]:
    """Return the circumcenter of ``a``, ``b``, ``c`` or ``None`` if collinear."""

    matrix = np.array(
        [
            [b[0] - a[0], b[1] - a[1]],
            [c[0] - a[0], c[1] - a[1]],
        ],
        dtype=float,
    )
    det = float(np.linalg.det(matrix))
    scale = max(norm(vec(a, b)) * norm(vec(a, c)), 1.0)
    if abs(det) <= eps * scale:
        return None
    rhs = 0.5 * np.array(
        [
            (b[0] ** 2 - a[0] ** 2) + (b[1] ** 2 - a[1] ** 2),
            (c[0] ** 2 - a[0] ** 2) + (c[1] ** 2 - a[1] ** 2),
        ],
        dtype=float,
    )
    center = np.linalg.solve(matrix, rhs)
    return float(center[0]), float(center[1])


def line_parameter(point: Point, a: Point, b: Point, eps: float = EPS) -> Optional[float]:
    """Return ``t`` such that the projection of ``point`` is ``a + t (b - a)``."""

    d = vec(a, b)
    denom = dot(d, d)
    if denom <= eps:
        return None
    return dot(vec(a, point), d) / denom


def point_at_parameter(a: Point, b: Point, t: float) -> Point:
    return a[0] + t * (b[0] - a[0]), a[1] + t * (b[1] - a[1])


def project_point_to_line(point: Point, a: Point, b: Point, eps: float = EPS) -> Optional[Point]:
    t = line_parameter(point, a, b, eps)
    if t is None:
        return None
    return point_at_parameter(a, b, t)


def project_point_to_circle(point: Point, center: Point, radius: float, eps: float = EPS) -> Point:
    offset = vec(center, point)
    direction = unit(offset, eps)
    if direction is None:
        return center[0] + radius, center[1]
    return center[0] + direction[0] * radius, center[1] + direction[1] * radius


def reflect_across_point(point: Point, mirror: Point) -> Point:
    return 2.0 * mirror[0] - point[0], 2.0 * mirror[1] - point[1]


def reflect_across_line(point: Point, a: Point, b: Point, eps: float = EPS) -> Optional[Point]:
    foot = project_point_to_line(point, a, b, eps)
    if foot is None:
        return None
    return reflect_across_point(point, foot)


def polar_angle(point: Point, center: Point) -> float:
    return float(np.arctan2(point[1] - center[1], point[0] - center[0]))


def point_on_circle(center: Point, radius: float, angle: float) -> Point:
    return center[0] + radius * float(np.cos(angle)), center[1] + radius * float(np.sin(angle))


def angle_between(u: Point, v: Point, eps: float = EPS) -> Optional[float]:
    """Unsigned angle between two vectors in degrees, ``None`` if one is null."""

    nu = norm(u)
    nv = norm(v)
    if nu <= eps or nv <= eps:
        return None
    cos_theta = max(-1.0, min(1.0, dot(u, v) / (nu * nv)))
    return degrees(acos(cos_theta))


def projection_order(points: Sequence[Point], a: Point, b: Point) -> List[int]:
    """Indices of ``points`` sorted by their projection onto ``a -> b``."""

    d = vec(a, b)
    keys = [dot(vec(a, p), d) for p in points]
    return sorted(range(len(points)), key=lambda idx: keys[idx])


apply_debug_logging(
    globals(),
    logger=logger,
    skip={"vec", "dot", "cross", "norm", "distance", "midpoint", "rotate90", "unit"},
)
