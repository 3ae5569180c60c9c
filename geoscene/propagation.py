"""Dependency propagation: recompute derived objects after a parent moved.

The cascade is driven by :func:`propagate_point`, :func:`propagate_line` and
:func:`propagate_circle`.  Every ``update_*`` entry point is idempotent and
may be called several times per frame by UI code that moves points directly.

Cycle handling relies on the guard sets in :class:`geoscene.scene.PropagationGuards`:
parallel and perpendicular lines register themselves while being recomputed
and are skipped if re-entered, points register while their dependents are
refreshed.  Mutually dependent parallel/perpendicular chains therefore settle
on the first consistent pass instead of recursing.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Dict, Iterator, List

import numpy as np
from scipy.optimize import linear_sum_assignment
from scipy.spatial.distance import cdist

from . import geometry as geo
from .evaluate import (
    PairKey,
    circle_shape,
    constrain_to_parent,
    line_direction,
    line_endpoints,
    pair_key,
    position_on_parent,
    ref_intersections,
)
from .logging_utils import apply_debug_logging
from .model import STICKY_KINDS, Line, LineRelation, ParentRef, Point
from .scene import Scene

logger = logging.getLogger(__name__)


def depth_limit(scene: Scene) -> int:
    """Deepest cascade allowed for ``scene``.

    An acyclic chain nests at most two cascade levels per point, line or
    circle, so the limit grows with the scene and only stops runaway cycles
    that slipped past the guard sets.
    """

    return max(scene.config.max_propagation_depth, 2 * (len(scene.points) + len(scene.lines) + len(scene.circles)))


@contextmanager
def _cascade(scene: Scene) -> Iterator[bool]:
    guards = scene.guards
    guards.depth += 1
    try:
        yield guards.depth <= depth_limit(scene)
    finally:
        guards.depth -= 1


def _place(scene: Scene, point: Point, pos) -> bool:
    """Move ``point`` to ``pos`` and clear ``hidden``; report whether anything changed."""

    eps = scene.config.epsilon
    changed = point.hidden or abs(point.x - pos[0]) > eps or abs(point.y - pos[1]) > eps
    point.move_to(pos)
    point.hidden = False
    return changed


def _hide(point: Point) -> None:
    if not point.hidden:
        logger.debug("Hiding %s: constraint has no solution", point.id)
    point.hidden = True


def sort_line_points(scene: Scene, line: Line) -> None:
    """Reorder ``line.points`` by projection along its direction."""

    ends = line_endpoints(scene, line)
    if ends is None:
        return
    present = [pid for pid in line.points if scene.has("point", pid)]
    positions = [scene.point(pid).pos for pid in present]
    order = geo.projection_order(positions, ends[0], ends[1])
    line.points = [present[idx] for idx in order]


def _refresh_attached(scene: Scene, point: Point) -> bool:
    """Re-seat an ``on_object`` point on its single parent using its stored parameter."""

    ref = point.parent_refs[0]
    if point.param is None:
        seated = constrain_to_parent(scene, ref, point.pos)
        if seated is None:
            _hide(point)
            return False
        point.param = seated[1]
    pos = position_on_parent(scene, ref, point.param)
    if pos is None:
        _hide(point)
        return False
    return _place(scene, point, pos)


def _resolve_intersection_group(scene: Scene, key: PairKey, members: List[Point]) -> List[str]:
    """Assign the current roots of ``key`` to its sibling points.

    Roots go to siblings by minimum total displacement so two visible
    intersection points never trade places between frames.  Siblings left
    without a root keep their last position and are hidden.
    """

    roots = ref_intersections(scene, key[0], key[1])
    if not roots:
        for member in members:
            _hide(member)
        return []
    previous = np.array([member.pos for member in members], dtype=float)
    candidates = np.array(roots, dtype=float)
    rows, cols = linear_sum_assignment(cdist(previous, candidates))
    moved: List[str] = []
    assigned = set()
    for row, col in zip(rows, cols):
        assigned.add(int(row))
        member = members[int(row)]
        if _place(scene, member, roots[int(col)]):
            moved.append(member.id)
    for idx, member in enumerate(members):
        if idx not in assigned:
            _hide(member)
    return moved


def _update_dependents_of(scene: Scene, ref: ParentRef) -> List[str]:
    moved: List[str] = []
    groups: Dict[PairKey, List[Point]] = {}
    for point in scene.points_with_parent(ref):
        if point.construction_kind in STICKY_KINDS:
            continue
        if point.construction_kind == "intersection" and len(point.parent_refs) == 2:
            groups.setdefault(pair_key(*point.parent_refs), []).append(point)
        elif point.construction_kind == "on_object" and point.parent_refs:
            if _refresh_attached(scene, point):
                moved.append(point.id)
    for key, members in groups.items():
        moved.extend(_resolve_intersection_group(scene, key, members))
    for point_id in moved:
        propagate_point(scene, point_id)
    return moved


def update_intersections_for_line(scene: Scene, line_id: str) -> List[str]:
    """Recompute every point constrained by ``line_id``; returns moved point ids."""

    if not scene.has("line", line_id):
        return []
    return _update_dependents_of(scene, ParentRef("line", line_id))


def update_intersections_for_circle(scene: Scene, circle_id: str) -> List[str]:
    """Recompute every point constrained by ``circle_id``; returns moved point ids."""

    circle = scene.get("circle", circle_id)
    if circle is None:
        return []
    shape = circle_shape(scene, circle)
    circle.hidden = shape is None
    if shape is not None and circle.kind == "three-point":
        circle.center_xy = shape[0]
    return _update_dependents_of(scene, ParentRef("circle", circle_id))


def _recompute_midpoint(scene: Scene, point: Point) -> bool:
    first = scene.get("point", point.midpoint.parents[0])  # type: ignore[union-attr]
    second = scene.get("point", point.midpoint.parents[1])  # type: ignore[union-attr]
    if first is None or second is None:
        _hide(point)
        return False
    return _place(scene, point, geo.midpoint(first.pos, second.pos))


def _recompute_symmetric(scene: Scene, point: Point) -> bool:
    meta = point.symmetric
    source = scene.get("point", meta.source)  # type: ignore[union-attr]
    if source is None:
        _hide(point)
        return False
    if meta.mirror_kind == "point":  # type: ignore[union-attr]
        mirror = scene.get("point", meta.mirror_id)  # type: ignore[union-attr]
        image = None if mirror is None else geo.reflect_across_point(source.pos, mirror.pos)
    else:
        mirror_line = scene.get("line", meta.mirror_id)  # type: ignore[union-attr]
        ends = None if mirror_line is None else line_endpoints(scene, mirror_line)
        image = None if ends is None else geo.reflect_across_line(source.pos, ends[0], ends[1], scene.config.epsilon)
    if image is None:
        _hide(point)
        return False
    return _place(scene, point, image)


def update_midpoints_for_point(scene: Scene, point_id: str) -> List[str]:
    """Recompute midpoints and reflections that read ``point_id``."""

    moved: List[str] = []
    for point in scene.points:
        if point.midpoint is not None and point_id in point.midpoint.parents:
            if _recompute_midpoint(scene, point):
                moved.append(point.id)
        elif point.symmetric is not None and (
            point.symmetric.source == point_id
            or (point.symmetric.mirror_kind == "point" and point.symmetric.mirror_id == point_id)
        ):
            if _recompute_symmetric(scene, point):
                moved.append(point.id)
    for moved_id in moved:
        propagate_point(scene, moved_id)
    return moved


def update_reflections_for_line(scene: Scene, line_id: str) -> List[str]:
    """Recompute points mirrored across ``line_id``."""

    moved = [
        point.id
        for point in scene.points
        if point.symmetric is not None
        and point.symmetric.mirror_kind == "line"
        and point.symmetric.mirror_id == line_id
        and _recompute_symmetric(scene, point)
    ]
    for moved_id in moved:
        propagate_point(scene, moved_id)
    return moved


def _recompute_related_line(scene: Scene, line: Line, relation: LineRelation, perpendicular: bool) -> bool:
    reference = scene.get("line", relation.reference_line)
    through = scene.get("point", relation.through_point)
    helper = scene.get("point", relation.helper_point)
    if reference is None or through is None or helper is None:
        # dangling: the orphan collector owns this case
        return False
    direction = line_direction(scene, reference)
    u = None if direction is None else geo.unit(direction, scene.config.min_direction)
    if u is None:
        line.hidden = True
        _hide(helper)
        return False
    if perpendicular:
        u = geo.rotate90(u)
    offset = relation.helper_distance * relation.helper_orientation
    line.hidden = False
    _place(scene, helper, (through.x + u[0] * offset, through.y + u[1] * offset))
    propagate_point(scene, helper.id)
    return True


def recompute_parallel_line(scene: Scene, line_id: str) -> bool:
    guard = scene.guards.parallel
    if line_id in guard:
        logger.debug("Parallel line %s already being recomputed; skipping", line_id)
        return False
    line = scene.get("line", line_id)
    if line is None or line.parallel is None:
        return False
    guard.add(line_id)
    try:
        return _recompute_related_line(scene, line, line.parallel, perpendicular=False)
    finally:
        guard.discard(line_id)


def recompute_perpendicular_line(scene: Scene, line_id: str) -> bool:
    guard = scene.guards.perpendicular
    if line_id in guard:
        logger.debug("Perpendicular line %s already being recomputed; skipping", line_id)
        return False
    line = scene.get("line", line_id)
    if line is None or line.perpendicular is None:
        return False
    guard.add(line_id)
    try:
        return _recompute_related_line(scene, line, line.perpendicular, perpendicular=True)
    finally:
        guard.discard(line_id)


def update_parallel_lines_for_line(scene: Scene, line_id: str) -> List[str]:
    targets = [line.id for line in scene.lines if line.parallel is not None and line.parallel.reference_line == line_id]
    return [target for target in targets if recompute_parallel_line(scene, target)]


def update_parallel_lines_for_point(scene: Scene, point_id: str) -> List[str]:
    targets = [line.id for line in scene.lines if line.parallel is not None and line.parallel.through_point == point_id]
    return [target for target in targets if recompute_parallel_line(scene, target)]


def update_perpendicular_lines_for_line(scene: Scene, line_id: str) -> List[str]:
    targets = [
        line.id
        for line in scene.lines
        if line.perpendicular is not None and line.perpendicular.reference_line == line_id
    ]
    return [target for target in targets if recompute_perpendicular_line(scene, target)]


def update_perpendicular_lines_for_point(scene: Scene, point_id: str) -> List[str]:
    targets = [
        line.id
        for line in scene.lines
        if line.perpendicular is not None and line.perpendicular.through_point == point_id
    ]
    return [target for target in targets if recompute_perpendicular_line(scene, target)]


def propagate_line(scene: Scene, line_id: str) -> None:
    """Refresh everything that reads the geometry of ``line_id``."""

    line = scene.get("line", line_id)
    if line is None:
        return
    with _cascade(scene) as within_limit:
        if not within_limit:
            logger.warning("Propagation depth limit reached at line %s", line_id)
            return
        if line.relation is None:
            line.hidden = line_endpoints(scene, line) is None
        sort_line_points(scene, line)
        update_intersections_for_line(scene, line_id)
        update_reflections_for_line(scene, line_id)
        update_parallel_lines_for_line(scene, line_id)
        update_perpendicular_lines_for_line(scene, line_id)


def propagate_circle(scene: Scene, circle_id: str) -> None:
    with _cascade(scene) as within_limit:
        if not within_limit:
            logger.warning("Propagation depth limit reached at circle %s", circle_id)
            return
        update_intersections_for_circle(scene, circle_id)


def propagate_point(scene: Scene, point_id: str) -> None:
    """Refresh every dependent of a point whose position just changed."""

    guards = scene.guards
    if point_id in guards.points or not scene.has("point", point_id):
        return
    with _cascade(scene) as within_limit:
        if not within_limit:
            logger.warning("Propagation depth limit reached at point %s", point_id)
            return
        guards.points.add(point_id)
        try:
            update_midpoints_for_point(scene, point_id)
            update_parallel_lines_for_point(scene, point_id)
            update_perpendicular_lines_for_point(scene, point_id)
            for line in scene.lines_defined_by(point_id):
                propagate_line(scene, line.id)
            for circle in scene.circles_defined_by(point_id):
                propagate_circle(scene, circle.id)
            for line in scene.lines_containing(point_id):
                if point_id not in line.defining_points:
                    sort_line_points(scene, line)
        finally:
            guards.points.discard(point_id)


def recompute_all(scene: Scene) -> None:
    """Full pass from every root; used after loading a document or a cleanup."""

    for line in list(scene.lines):
        if line.parallel is not None:
            recompute_parallel_line(scene, line.id)
        elif line.perpendicular is not None:
            recompute_perpendicular_line(scene, line.id)
    for line in list(scene.lines):
        propagate_line(scene, line.id)
    for circle in list(scene.circles):
        propagate_circle(scene, circle.id)
    for point in list(scene.points):
        if point.construction_kind == "free" and not point.is_helper:
            propagate_point(scene, point.id)
    logger.info("Recomputed %s", scene.summary())


apply_debug_logging(globals(), logger=logger, skip={"sort_line_points", "depth_limit"})
