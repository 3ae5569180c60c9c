"""Construction resolver: turn user gestures into derived scene objects.

Every ``add_*`` function validates the whole request first and raises
:class:`~geoscene.model.ConstructionError` before touching the scene, so a
rejected construction never leaves partial state behind.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from . import geometry as geo
from .evaluate import (
    constrain_to_parent,
    line_direction,
    line_endpoints,
    pair_key,
    ref_intersections,
)
from .logging_utils import apply_debug_logging
from .model import (
    STICKY_KINDS,
    Angle,
    AngleLeg,
    Circle,
    ConstructionError,
    ConstructionKind,
    Line,
    LineRelation,
    MidpointMeta,
    MirrorKind,
    ParentRef,
    Point,
    Polygon,
    SymmetricMeta,
    UnknownEntityError,
)
from .propagation import propagate_point, sort_line_points
from .scene import Scene

logger = logging.getLogger(__name__)

XY = Tuple[float, float]


def classify_point(point: Point) -> ConstructionKind:
    """Construction kind implied by the number of parent references.

    ``midpoint`` and ``symmetric`` are sticky and returned unchanged.
    """

    if point.construction_kind in STICKY_KINDS:
        return point.construction_kind
    count = len(point.parent_refs)
    if count == 0:
        return "free"
    if count == 1:
        return "on_object"
    return "intersection"


def _dedupe_refs(refs: Iterable[ParentRef]) -> List[ParentRef]:
    merged: List[ParentRef] = []
    for ref in refs:
        if ref.kind not in ("line", "circle"):
            raise ConstructionError(f"parent must be a line or circle, got {ref.kind!r}")
        if ref not in merged:
            merged.append(ref)
    return merged


def merge_parent_refs(point: Point, refs: Iterable[ParentRef]) -> List[ParentRef]:
    """Merge ``refs`` into ``point.parent_refs`` and reclassify the point."""

    merged = _dedupe_refs(list(point.parent_refs) + list(refs))
    if len(merged) > 2:
        raise ConstructionError(f"point {point.id} cannot have more than two parents")
    point.parent_refs = merged
    point.construction_kind = classify_point(point)
    return merged


def _require_parent(scene: Scene, ref: ParentRef):
    parent = scene.resolve(ref)
    if parent is None:
        raise UnknownEntityError(ref.kind, ref.id)
    return parent


def _nearest(candidates: Sequence[XY], target: XY) -> XY:
    return min(candidates, key=lambda pos: geo.distance(pos, target))


def _register_membership(scene: Scene, point: Point) -> None:
    for ref in point.parent_refs:
        parent = scene.resolve(ref)
        if parent is None or point.id in parent.points:
            continue
        parent.points.append(point.id)
        if ref.kind == "line":
            sort_line_points(scene, parent)


def _point_inputs(scene: Scene, point: Point) -> List[str]:
    inputs: List[str] = []
    for ref in point.parent_refs:
        inputs.extend(_object_inputs(scene, ref))
    if point.midpoint is not None:
        inputs.extend(point.midpoint.parents)
    if point.symmetric is not None:
        inputs.append(point.symmetric.source)
        if point.symmetric.mirror_kind == "point":
            inputs.append(point.symmetric.mirror_id)
        else:
            inputs.extend(_object_inputs(scene, ParentRef("line", point.symmetric.mirror_id)))
    if point.helper_for is not None:
        owner = scene.get("line", point.helper_for)
        relation = owner.relation if owner is not None else None
        if relation is not None:
            inputs.append(relation.through_point)
            inputs.extend(_object_inputs(scene, ParentRef("line", relation.reference_line)))
    return inputs


def _object_inputs(scene: Scene, ref: ParentRef) -> List[str]:
    parent = scene.resolve(ref)
    if parent is None:
        return []
    if ref.kind == "line":
        return list(parent.defining_points)
    return list(parent.input_points())


def depends_on(scene: Scene, ref: ParentRef, point_id: str) -> bool:
    """Whether the geometry of ``ref`` is (transitively) driven by ``point_id``."""

    stack = _object_inputs(scene, ref)
    seen: Set[str] = set()
    while stack:
        current = stack.pop()
        if current == point_id:
            return True
        if current in seen:
            continue
        seen.add(current)
        point = scene.get("point", current)
        if point is not None:
            stack.extend(_point_inputs(scene, point))
    return False


def add_point(
    scene: Scene,
    x: float,
    y: float,
    *,
    parents: Optional[Iterable[ParentRef]] = None,
    kind: Optional[ConstructionKind] = None,
    style: Optional[Dict[str, Any]] = None,
    label: Optional[str] = None,
) -> Point:
    """Place a point, optionally constrained by one or two parents.

    With two parents the point is always an ``intersection``, whatever
    ``kind`` asks for; it lands on the root nearest ``(x, y)``.
    """

    refs = _dedupe_refs(parents or [])
    if len(refs) > 2:
        raise ConstructionError("a point can have at most two parents")
    for ref in refs:
        _require_parent(scene, ref)
    if kind in STICKY_KINDS and len(refs) < 2:
        raise ConstructionError(f"{kind} points are created with their dedicated construction")
    if kind == "on_object" and not refs:
        raise ConstructionError("an on_object point needs a parent")
    if kind == "free" and refs:
        logger.debug("Ignoring requested kind 'free' for a point with %d parent(s)", len(refs))

    pos: XY = (float(x), float(y))
    param: Optional[float] = None
    if len(refs) == 2:
        if kind not in (None, "intersection"):
            logger.debug("Forcing intersection kind (requested %s)", kind)
        roots = ref_intersections(scene, refs[0], refs[1])
        if not roots:
            raise ConstructionError(f"{refs[0].id} and {refs[1].id} have no common point")
        pos = _nearest(roots, pos)
        refs = list(pair_key(refs[0], refs[1]))
    elif len(refs) == 1:
        seated = constrain_to_parent(scene, refs[0], pos)
        if seated is None:
            raise ConstructionError(f"cannot place a point on degenerate {refs[0].kind} {refs[0].id}")
        pos, param = seated

    point = Point(
        id=scene.next_id("point"),
        x=pos[0],
        y=pos[1],
        style=dict(style or {}),
        label=label,
        parent_refs=refs,
        param=param,
    )
    point.construction_kind = classify_point(point)
    scene.add(point)
    _register_membership(scene, point)
    logger.info("Created %s", point.summary())
    return point


def add_point_on_line(scene: Scene, line_id: str, x: float, y: float, **kwargs: Any) -> Point:
    return add_point(scene, x, y, parents=[ParentRef("line", line_id)], **kwargs)


def add_point_on_circle(scene: Scene, circle_id: str, x: float, y: float, **kwargs: Any) -> Point:
    return add_point(scene, x, y, parents=[ParentRef("circle", circle_id)], **kwargs)


def attach_point(scene: Scene, point_id: str, ref: ParentRef) -> Point:
    """Constrain an existing point by one more parent.

    ``free`` becomes ``on_object`` and ``on_object`` becomes
    ``intersection``.  Sticky kinds only record the membership.
    """

    point = scene.point(point_id)
    _require_parent(scene, ref)
    if ref in point.parent_refs:
        return point
    if point.is_helper:
        raise ConstructionError(f"helper point {point_id} cannot be attached")
    if depends_on(scene, ref, point_id):
        raise ConstructionError(f"{ref.kind} {ref.id} depends on point {point_id}")
    merged = _dedupe_refs(list(point.parent_refs) + [ref])
    if len(merged) > 2:
        raise ConstructionError(f"point {point_id} already has two parents")

    if point.construction_kind in STICKY_KINDS:
        point.parent_refs = merged
        _register_membership(scene, point)
        return point

    param: Optional[float] = None
    if len(merged) == 1:
        seated = constrain_to_parent(scene, ref, point.pos)
        if seated is None:
            raise ConstructionError(f"cannot attach to degenerate {ref.kind} {ref.id}")
        pos, param = seated
    else:
        roots = ref_intersections(scene, merged[0], merged[1])
        if not roots:
            raise ConstructionError(f"{merged[0].id} and {merged[1].id} have no common point")
        pos = _nearest(roots, point.pos)
        merged = list(pair_key(merged[0], merged[1]))

    point.parent_refs = merged
    point.construction_kind = classify_point(point)
    point.param = param
    point.move_to(pos)
    point.hidden = False
    _register_membership(scene, point)
    logger.info("Attached %s to %s %s", point.id, ref.kind, ref.id)
    propagate_point(scene, point.id)
    return point


def add_line(
    scene: Scene,
    a_id: str,
    b_id: str,
    *,
    segment: bool = False,
    style: Optional[Dict[str, Any]] = None,
) -> Line:
    """Create the line (or segment) through two existing points."""

    if a_id == b_id:
        raise ConstructionError("a line needs two distinct points")
    a = scene.point(a_id)
    b = scene.point(b_id)
    if geo.distance(a.pos, b.pos) <= scene.config.min_direction:
        raise ConstructionError(f"points {a_id} and {b_id} coincide")
    line = Line(id=scene.next_id("line"), defining_points=(a_id, b_id), segment=segment, style=dict(style or {}))
    scene.add(line)
    sort_line_points(scene, line)
    logger.info("Created %s", line.summary())
    return line


def add_segment(scene: Scene, a_id: str, b_id: str, **kwargs: Any) -> Line:
    return add_line(scene, a_id, b_id, segment=True, **kwargs)


def add_circle(
    scene: Scene,
    center_id: str,
    radius_point_id: str,
    *,
    style: Optional[Dict[str, Any]] = None,
) -> Circle:
    if center_id == radius_point_id:
        raise ConstructionError("center and radius point must differ")
    center = scene.point(center_id)
    radius_point = scene.point(radius_point_id)
    if geo.distance(center.pos, radius_point.pos) <= scene.config.min_radius:
        raise ConstructionError("circle radius is too small")
    circle = Circle(
        id=scene.next_id("circle"),
        kind="center-radius",
        center=center_id,
        radius_point=radius_point_id,
        points=[radius_point_id],
        style=dict(style or {}),
    )
    scene.add(circle)
    logger.info("Created %s", circle.summary())
    return circle


def add_circle_through(
    scene: Scene,
    a_id: str,
    b_id: str,
    c_id: str,
    *,
    style: Optional[Dict[str, Any]] = None,
) -> Circle:
    ids = (a_id, b_id, c_id)
    if len(set(ids)) != 3:
        raise ConstructionError("circle through needs three distinct points")
    a, b, c = (scene.point(pid).pos for pid in ids)
    center = geo.circle_from_three(a, b, c, scene.config.epsilon)
    if center is None:
        raise ConstructionError(f"points {', '.join(ids)} are collinear")
    if geo.distance(center, a) <= scene.config.min_radius:
        raise ConstructionError("circle radius is too small")
    circle = Circle(
        id=scene.next_id("circle"),
        kind="three-point",
        defining_points=ids,
        center_xy=center,
        points=list(ids),
        style=dict(style or {}),
    )
    scene.add(circle)
    logger.info("Created %s", circle.summary())
    return circle


def add_intersection(
    scene: Scene,
    first: ParentRef,
    second: ParentRef,
    *,
    near: Optional[XY] = None,
    style: Optional[Dict[str, Any]] = None,
) -> List[Point]:
    """Create the intersection point(s) of two lines/circles.

    One point per current root, or only the root nearest ``near``.  A root
    already carried by a sibling point with the same parents is reused.
    """

    refs = _dedupe_refs([first, second])
    if len(refs) != 2:
        raise ConstructionError("an intersection needs two distinct parents")
    for ref in refs:
        _require_parent(scene, ref)
    key = pair_key(refs[0], refs[1])
    roots = ref_intersections(scene, key[0], key[1])
    if roots is None:
        raise ConstructionError(f"{key[0].id} or {key[1].id} is degenerate")
    if not roots:
        raise ConstructionError(f"{key[0].id} and {key[1].id} have no common point")
    if near is not None:
        roots = [_nearest(roots, near)]

    siblings = [
        point
        for point in scene.points
        if point.construction_kind == "intersection"
        and len(point.parent_refs) == 2
        and pair_key(*point.parent_refs) == key
    ]
    result: List[Point] = []
    for root in roots:
        existing = next(
            (p for p in siblings if geo.distance(p.pos, root) <= scene.config.merge_distance),
            None,
        )
        if existing is not None:
            result.append(existing)
            continue
        point = Point(
            id=scene.next_id("point"),
            x=root[0],
            y=root[1],
            style=dict(style or {}),
            construction_kind="intersection",
            parent_refs=list(key),
        )
        scene.add(point)
        _register_membership(scene, point)
        siblings.append(point)
        result.append(point)
        logger.info("Created %s from %s and %s", point.summary(), key[0].id, key[1].id)
    return result


def add_midpoint(
    scene: Scene,
    a_id: str,
    b_id: str,
    *,
    style: Optional[Dict[str, Any]] = None,
    label: Optional[str] = None,
) -> Point:
    if a_id == b_id:
        raise ConstructionError("midpoint needs two distinct points")
    a = scene.point(a_id)
    b = scene.point(b_id)
    pos = geo.midpoint(a.pos, b.pos)
    point = Point(
        id=scene.next_id("point"),
        x=pos[0],
        y=pos[1],
        style=dict(style or {}),
        label=label,
        construction_kind="midpoint",
        midpoint=MidpointMeta(parents=(a_id, b_id)),
    )
    scene.add(point)
    logger.info("Created %s", point.summary())
    return point


def add_segment_midpoint(
    scene: Scene,
    line_id: str,
    *,
    style: Optional[Dict[str, Any]] = None,
    label: Optional[str] = None,
) -> Point:
    """Midpoint of a line's defining points, also inserted into that line."""

    line = scene.line(line_id)
    a_id, b_id = line.defining_points
    point = add_midpoint(scene, a_id, b_id, style=style, label=label)
    point.midpoint.parent_line_id = line_id  # type: ignore[union-attr]
    line.points.append(point.id)
    sort_line_points(scene, line)
    return point


def add_symmetric_point(
    scene: Scene,
    source_id: str,
    mirror_kind: MirrorKind,
    mirror_id: str,
    *,
    style: Optional[Dict[str, Any]] = None,
    label: Optional[str] = None,
) -> Point:
    """Reflect ``source_id`` across a point or a line."""

    source = scene.point(source_id)
    if mirror_kind == "point":
        if mirror_id == source_id:
            raise ConstructionError("a point cannot be mirrored across itself")
        image = geo.reflect_across_point(source.pos, scene.point(mirror_id).pos)
    elif mirror_kind == "line":
        ends = line_endpoints(scene, scene.line(mirror_id))
        image = None if ends is None else geo.reflect_across_line(source.pos, ends[0], ends[1], scene.config.epsilon)
        if image is None:
            raise ConstructionError(f"mirror line {mirror_id} is degenerate")
    else:
        raise ConstructionError(f"unsupported mirror kind {mirror_kind!r}")
    point = Point(
        id=scene.next_id("point"),
        x=image[0],
        y=image[1],
        style=dict(style or {}),
        label=label,
        construction_kind="symmetric",
        symmetric=SymmetricMeta(source=source_id, mirror_kind=mirror_kind, mirror_id=mirror_id),
    )
    scene.add(point)
    logger.info("Created %s", point.summary())
    return point


def _add_related_line(
    scene: Scene,
    through_id: str,
    reference_line_id: str,
    perpendicular: bool,
    style: Optional[Dict[str, Any]],
) -> Line:
    through = scene.point(through_id)
    reference = scene.line(reference_line_id)
    direction = line_direction(scene, reference)
    u = None if direction is None else geo.unit(direction, scene.config.min_direction)
    if u is None:
        raise ConstructionError(f"reference line {reference_line_id} is degenerate")
    min_distance = scene.config.helper_min_distance
    if perpendicular:
        normal = geo.rotate90(u)
        anchor = scene.point(reference.defining_points[0]).pos
        side = geo.dot(normal, geo.vec(anchor, through.pos))
        if abs(side) >= min_distance:
            # helper sits on the foot of the perpendicular
            distance = abs(side)
            orientation = -1 if side > 0 else 1
        else:
            distance = max(geo.norm(direction), min_distance)  # type: ignore[arg-type]
            orientation = 1
        offset_dir = normal
    else:
        distance = max(geo.norm(direction), min_distance)  # type: ignore[arg-type]
        orientation = 1
        offset_dir = u

    line_id = scene.next_id("line")
    helper = Point(
        id=scene.next_id("point"),
        x=through.x + offset_dir[0] * distance * orientation,
        y=through.y + offset_dir[1] * distance * orientation,
        style=dict(style or {}),
    )
    relation = LineRelation(
        through_point=through_id,
        reference_line=reference_line_id,
        helper_point=helper.id,
        helper_distance=distance,
        helper_orientation=orientation,
    )
    line = Line(id=line_id, defining_points=(through_id, helper.id), style=dict(style or {}))
    if perpendicular:
        helper.perpendicular_helper_for = line_id
        line.perpendicular = relation
    else:
        helper.parallel_helper_for = line_id
        line.parallel = relation
    scene.add(helper)
    scene.add(line)
    sort_line_points(scene, line)
    logger.info("Created %s", line.summary())
    return line


def add_parallel_line(
    scene: Scene, through_id: str, reference_line_id: str, *, style: Optional[Dict[str, Any]] = None
) -> Line:
    return _add_related_line(scene, through_id, reference_line_id, perpendicular=False, style=style)


def add_perpendicular_line(
    scene: Scene, through_id: str, reference_line_id: str, *, style: Optional[Dict[str, Any]] = None
) -> Line:
    return _add_related_line(scene, through_id, reference_line_id, perpendicular=True, style=style)


def _leg_segment(line: Line, vertex_id: str) -> int:
    if vertex_id not in line.points:
        raise ConstructionError(f"vertex {vertex_id} is not on line {line.id}")
    idx = line.points.index(vertex_id)
    return idx if idx < len(line.points) - 1 else idx - 1


def add_angle(
    scene: Scene,
    vertex_id: str,
    line_a_id: str,
    line_b_id: str,
    *,
    style: Optional[Dict[str, Any]] = None,
) -> Angle:
    """Angle at ``vertex_id`` between one segment of each of two lines."""

    if line_a_id == line_b_id:
        raise ConstructionError("an angle needs two different lines")
    scene.point(vertex_id)
    line_a = scene.line(line_a_id)
    line_b = scene.line(line_b_id)
    legs = (
        AngleLeg(line=line_a_id, segment_index=_leg_segment(line_a, vertex_id)),
        AngleLeg(line=line_b_id, segment_index=_leg_segment(line_b, vertex_id)),
    )
    angle = Angle(id=scene.next_id("angle"), vertex=vertex_id, legs=legs, style=dict(style or {}))
    scene.add(angle)
    logger.info("Created %s", angle.summary())
    return angle


def _leg_far_point(scene: Scene, leg: AngleLeg, vertex: Point) -> Optional[XY]:
    line = scene.get("line", leg.line)
    if line is None or len(line.points) < 2:
        return None
    idx = min(max(leg.segment_index, 0), len(line.points) - 2)
    ends = [line.points[idx], line.points[idx + 1]]
    if vertex.id in ends:
        ends.remove(vertex.id)
        return scene.point(ends[0]).pos
    return max((scene.point(pid).pos for pid in ends), key=lambda pos: geo.distance(pos, vertex.pos))


def angle_measure(scene: Scene, angle: Angle) -> Optional[float]:
    """Angle in degrees (0..180), ``None`` if a leg is missing or degenerate."""

    vertex = scene.get("point", angle.vertex)
    if vertex is None:
        return None
    far = [_leg_far_point(scene, leg, vertex) for leg in angle.legs]
    if far[0] is None or far[1] is None:
        return None
    return geo.angle_between(geo.vec(vertex.pos, far[0]), geo.vec(vertex.pos, far[1]), scene.config.epsilon)


def polygon_area(positions: Sequence[XY]) -> float:
    """Signed shoelace area."""

    total = 0.0
    for idx, (x0, y0) in enumerate(positions):
        x1, y1 = positions[(idx + 1) % len(positions)]
        total += x0 * y1 - x1 * y0
    return 0.5 * total


def _find_edge(scene: Scene, a_id: str, b_id: str) -> Optional[Line]:
    for line in scene.lines:
        if line.relation is None and set(line.defining_points) == {a_id, b_id}:
            return line
    return None


def add_polygon(
    scene: Scene,
    vertex_ids: Sequence[str],
    *,
    style: Optional[Dict[str, Any]] = None,
) -> Polygon:
    """Closed polygon through ``vertex_ids``; edges are reused or created as segments."""

    ids = list(vertex_ids)
    if len(ids) < 3:
        raise ConstructionError("a polygon needs at least three vertices")
    if len(set(ids)) != len(ids):
        raise ConstructionError("polygon vertices must be distinct")
    positions = [scene.point(pid).pos for pid in ids]
    pairs = [(ids[idx], ids[(idx + 1) % len(ids)]) for idx in range(len(ids))]
    for (a_id, b_id), (pa, pb) in zip(pairs, zip(positions, positions[1:] + positions[:1])):
        if geo.distance(pa, pb) <= scene.config.min_direction:
            raise ConstructionError(f"polygon edge {a_id}-{b_id} has zero length")
    if abs(polygon_area(positions)) <= scene.config.epsilon:
        raise ConstructionError("polygon vertices are collinear")

    edges: List[str] = []
    for a_id, b_id in pairs:
        existing = _find_edge(scene, a_id, b_id)
        edges.append(existing.id if existing is not None else add_segment(scene, a_id, b_id, style=style).id)
    polygon = Polygon(id=scene.next_id("polygon"), lines=edges, style=dict(style or {}))
    scene.add(polygon)
    logger.info("Created %s", polygon.summary())
    return polygon


def polygon_vertices(scene: Scene, polygon: Polygon) -> List[str]:
    """Vertex loop recovered from consecutive edges."""

    lines = [scene.line(line_id) for line_id in polygon.lines]
    shared: List[str] = []
    for idx, line in enumerate(lines):
        nxt = lines[(idx + 1) % len(lines)]
        common = [pid for pid in line.defining_points if pid in nxt.defining_points]
        if not common:
            raise ConstructionError(f"polygon {polygon.id} edges {line.id} and {nxt.id} do not meet")
        shared.append(common[0])
    return shared[-1:] + shared[:-1]


apply_debug_logging(globals(), logger=logger, skip={"polygon_area"})
