"""Structural deletion and orphan collection."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set

from .constructions import classify_point
from .logging_utils import apply_debug_logging
from .model import STICKY_KINDS, Circle, Line, Point
from .propagation import recompute_all
from .scene import Scene

logger = logging.getLogger(__name__)


@dataclass
class CleanupReport:
    """Ids touched by one deletion/cleanup run."""

    removed_points: List[str] = field(default_factory=list)
    removed_lines: List[str] = field(default_factory=list)
    removed_circles: List[str] = field(default_factory=list)
    removed_angles: List[str] = field(default_factory=list)
    removed_polygons: List[str] = field(default_factory=list)
    reclassified: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(
            self.removed_points
            or self.removed_lines
            or self.removed_circles
            or self.removed_angles
            or self.removed_polygons
            or self.reclassified
        )

    def record(self, kind: str, ids: List[str]) -> None:
        getattr(self, f"removed_{kind}s").extend(ids)


def _line_is_orphan(scene: Scene, line: Line) -> bool:
    if not all(scene.has("point", pid) for pid in line.defining_points):
        return True
    relation = line.relation
    if relation is None:
        return False
    return not (
        scene.has("line", relation.reference_line)
        and scene.has("point", relation.through_point)
        and scene.has("point", relation.helper_point)
    )


def _circle_is_orphan(scene: Scene, circle: Circle) -> bool:
    inputs = circle.input_points()
    expected = 3 if circle.kind == "three-point" else 2
    return len(inputs) != expected or not all(scene.has("point", pid) for pid in inputs)


def _point_is_orphan(scene: Scene, point: Point) -> bool:
    if point.midpoint is not None:
        return not all(scene.has("point", pid) for pid in point.midpoint.parents)
    if point.symmetric is not None:
        meta = point.symmetric
        return not (scene.has("point", meta.source) and scene.has(meta.mirror_kind, meta.mirror_id))
    owner_id = point.helper_for
    if owner_id is not None:
        owner = scene.get("line", owner_id)
        return owner is None or owner.relation is None or owner.relation.helper_point != point.id
    return False


def _strip_dangling(scene: Scene, report: CleanupReport) -> Set[str]:
    """Drop unresolvable parent refs; return ids of points that should go.

    A point left with no parent is only removed when nothing else reads it.
    Points still carrying other structures are released as ``free``.
    """

    lost_all: Set[str] = set()
    for point in scene.points:
        if point.midpoint is not None and point.midpoint.parent_line_id is not None:
            if not scene.has("line", point.midpoint.parent_line_id):
                point.midpoint.parent_line_id = None
        if not point.parent_refs:
            continue
        kept = [ref for ref in point.parent_refs if scene.resolve(ref) is not None]
        if len(kept) == len(point.parent_refs):
            continue
        point.parent_refs = kept
        if not kept and point.construction_kind not in STICKY_KINDS and not scene.children_of(point.id):
            lost_all.add(point.id)
            continue
        point.construction_kind = classify_point(point)
        point.param = None
        report.reclassified.append(point.id)
        logger.debug("Reclassified %s as %s", point.id, point.construction_kind)
    return lost_all


def _prune_memberships(scene: Scene) -> None:
    for line in scene.lines:
        line.points = [pid for pid in line.points if scene.has("point", pid)]
    for circle in scene.circles:
        circle.points = [pid for pid in circle.points if scene.has("point", pid)]


def collect_orphans(scene: Scene, report: Optional[CleanupReport] = None) -> CleanupReport:
    """Remove derived objects whose parents vanished and repair survivors.

    Runs to a fixed point: removing a line can orphan a helper point, whose
    removal can orphan another line, and so on.  Finishes with a full
    recompute so positions are valid before the next render.
    """

    report = report or CleanupReport()
    while True:
        doomed_lines = [line.id for line in scene.lines if _line_is_orphan(scene, line)]
        doomed_circles = [circle.id for circle in scene.circles if _circle_is_orphan(scene, circle)]
        report.record("line", scene.remove("line", doomed_lines))
        report.record("circle", scene.remove("circle", doomed_circles))

        lost_all = _strip_dangling(scene, report)
        doomed_points = [point.id for point in scene.points if point.id in lost_all or _point_is_orphan(scene, point)]
        report.record("point", scene.remove("point", doomed_points))

        doomed_angles = [
            angle.id
            for angle in scene.angles
            if not scene.has("point", angle.vertex) or not all(scene.has("line", leg.line) for leg in angle.legs)
        ]
        doomed_polygons = [
            polygon.id
            for polygon in scene.polygons
            if not all(scene.has("line", line_id) for line_id in polygon.lines)
        ]
        report.record("angle", scene.remove("angle", doomed_angles))
        report.record("polygon", scene.remove("polygon", doomed_polygons))
        if not (doomed_lines or doomed_circles or doomed_points or doomed_angles or doomed_polygons):
            break

    _prune_memberships(scene)
    scene.rebuild_index()
    if report.changed:
        recompute_all(scene)
        logger.info(
            "Cleanup removed %d point(s), %d line(s), %d circle(s), %d angle(s), %d polygon(s); reclassified %d",
            len(report.removed_points),
            len(report.removed_lines),
            len(report.removed_circles),
            len(report.removed_angles),
            len(report.removed_polygons),
            len(report.reclassified),
        )
    return report


def delete_point(scene: Scene, point_id: str) -> CleanupReport:
    scene.point(point_id)
    report = CleanupReport()
    report.record("point", scene.remove("point", [point_id]))
    return collect_orphans(scene, report)


def delete_line(scene: Scene, line_id: str) -> CleanupReport:
    """Delete a line together with everything that only existed because of it."""

    scene.line(line_id)
    report = CleanupReport()
    report.record("line", scene.remove("line", [line_id]))
    return collect_orphans(scene, report)


def delete_circle(scene: Scene, circle_id: str) -> CleanupReport:
    scene.circle(circle_id)
    report = CleanupReport()
    report.record("circle", scene.remove("circle", [circle_id]))
    return collect_orphans(scene, report)


def delete_angle(scene: Scene, angle_id: str) -> CleanupReport:
    scene.angle(angle_id)
    report = CleanupReport()
    report.record("angle", scene.remove("angle", [angle_id]))
    return report


def delete_polygon(scene: Scene, polygon_id: str, *, delete_edges: bool = True) -> CleanupReport:
    """Delete a polygon; with ``delete_edges`` its edges not shared with another polygon go too."""

    polygon = scene.polygon(polygon_id)
    report = CleanupReport()
    report.record("polygon", scene.remove("polygon", [polygon_id]))
    if delete_edges:
        shared = {line_id for other in scene.polygons for line_id in other.lines}
        report.record("line", scene.remove("line", [line_id for line_id in polygon.lines if line_id not in shared]))
    return collect_orphans(scene, report)


apply_debug_logging(globals(), logger=logger, skip={"CleanupReport"})
