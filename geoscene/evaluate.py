"""Turn scene entities into concrete geometry for the current point positions."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from . import geometry as geo
from .model import Circle, Line, ParentRef
from .scene import Scene

logger = logging.getLogger(__name__)

XY = Tuple[float, float]
PairKey = Tuple[ParentRef, ParentRef]


def pair_key(a: ParentRef, b: ParentRef) -> PairKey:
    """Order-independent key for a parent pair."""

    return (a, b) if (a.kind, a.id) <= (b.kind, b.id) else (b, a)


def line_endpoints(scene: Scene, line: Line) -> Optional[Tuple[XY, XY]]:
    """Positions of the defining points, or ``None`` if missing or coincident."""

    a = scene.get("point", line.defining_points[0])
    b = scene.get("point", line.defining_points[1])
    if a is None or b is None:
        return None
    if geo.distance(a.pos, b.pos) <= scene.config.min_direction:
        return None
    return a.pos, b.pos


def line_direction(scene: Scene, line: Line) -> Optional[XY]:
    ends = line_endpoints(scene, line)
    if ends is None:
        return None
    return geo.vec(ends[0], ends[1])


def circle_shape(scene: Scene, circle: Circle) -> Optional[Tuple[XY, float]]:
    """Center and radius, or ``None`` when the circle is degenerate."""

    if circle.kind == "three-point":
        ids = circle.defining_points or ()
        pts = [scene.get("point", pid) for pid in ids]
        if len(pts) != 3 or any(p is None for p in pts):
            return None
        a, b, c = (p.pos for p in pts)  # type: ignore[union-attr]
        center = geo.circle_from_three(a, b, c, scene.config.epsilon)
        if center is None:
            return None
        radius = geo.distance(center, a)
    else:
        if circle.center is None or circle.radius_point is None:
            return None
        center_pt = scene.get("point", circle.center)
        radius_pt = scene.get("point", circle.radius_point)
        if center_pt is None or radius_pt is None:
            return None
        center = center_pt.pos
        radius = geo.distance(center, radius_pt.pos)
    if radius <= scene.config.min_radius:
        return None
    return center, radius


def _within_segment(line: Line, ends: Tuple[XY, XY], pos: XY, eps: float) -> bool:
    if not line.segment:
        return True
    t = geo.line_parameter(pos, ends[0], ends[1], eps)
    return t is not None and -eps <= t <= 1.0 + eps


def ref_intersections(scene: Scene, first: ParentRef, second: ParentRef) -> Optional[List[XY]]:
    """All current common points of two parents.

    ``None`` means a parent is missing or degenerate; an empty list means the
    parents are valid but do not meet.  Segments only meet within their
    endpoints.
    """

    eps = scene.config.epsilon
    a, b = pair_key(first, second)
    obj_a = scene.resolve(a)
    obj_b = scene.resolve(b)
    if obj_a is None or obj_b is None:
        return None
    if a.kind == "line" and b.kind == "line":
        ends_a = line_endpoints(scene, obj_a)  # type: ignore[arg-type]
        ends_b = line_endpoints(scene, obj_b)  # type: ignore[arg-type]
        if ends_a is None or ends_b is None:
            return None
        hit = geo.intersect_lines(ends_a[0], ends_a[1], ends_b[0], ends_b[1], eps)
        if hit is None:
            return []
        inside = _within_segment(obj_a, ends_a, hit, eps) and _within_segment(obj_b, ends_b, hit, eps)  # type: ignore[arg-type]
        return [hit] if inside else []
    if a.kind == "circle" and b.kind == "circle":
        shape_a = circle_shape(scene, obj_a)  # type: ignore[arg-type]
        shape_b = circle_shape(scene, obj_b)  # type: ignore[arg-type]
        if shape_a is None or shape_b is None:
            return None
        return geo.circle_circle_intersections(shape_a[0], shape_a[1], shape_b[0], shape_b[1], eps)
    # pair_key sorts "circle" before "line"
    shape = circle_shape(scene, obj_a)  # type: ignore[arg-type]
    ends = line_endpoints(scene, obj_b)  # type: ignore[arg-type]
    if shape is None or ends is None:
        return None
    return geo.line_circle_intersections(
        ends[0], ends[1], shape[0], shape[1], clamp_to_segment=obj_b.segment, eps=eps  # type: ignore[union-attr]
    )


def position_on_parent(scene: Scene, ref: ParentRef, param: float) -> Optional[XY]:
    """Position of an attached point from its stored parameter."""

    parent = scene.resolve(ref)
    if parent is None:
        return None
    if ref.kind == "line":
        ends = line_endpoints(scene, parent)  # type: ignore[arg-type]
        if ends is None:
            return None
        return geo.point_at_parameter(ends[0], ends[1], param)
    shape = circle_shape(scene, parent)  # type: ignore[arg-type]
    if shape is None:
        return None
    return geo.point_on_circle(shape[0], shape[1], param)


def constrain_to_parent(scene: Scene, ref: ParentRef, pos: XY) -> Optional[Tuple[XY, float]]:
    """Project ``pos`` onto a parent; returns the projected point and its parameter."""

    parent = scene.resolve(ref)
    if parent is None:
        return None
    if ref.kind == "line":
        ends = line_endpoints(scene, parent)  # type: ignore[arg-type]
        if ends is None:
            return None
        t = geo.line_parameter(pos, ends[0], ends[1], scene.config.epsilon)
        if t is None:
            return None
        if parent.segment:  # type: ignore[union-attr]
            t = min(max(t, 0.0), 1.0)
        return geo.point_at_parameter(ends[0], ends[1], t), t
    shape = circle_shape(scene, parent)  # type: ignore[arg-type]
    if shape is None:
        return None
    projected = geo.project_point_to_circle(pos, shape[0], shape[1], scene.config.epsilon)
    return projected, geo.polar_angle(projected, shape[0])
