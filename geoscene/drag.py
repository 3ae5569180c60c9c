"""Edit/drag transactions: pointer deltas in, constrained positions out.

A :class:`DragSession` moves through ``idle -> dragging -> idle``.  While
dragging it keeps the *raw* pointer-driven position of every moving point so
constraints and the axis snap are applied to the unconstrained path rather
than accumulating on already-snapped positions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from math import atan2, degrees
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple

from . import geometry as geo
from .constructions import polygon_vertices
from .evaluate import constrain_to_parent
from .model import Point
from .propagation import propagate_point
from .scene import Scene

logger = logging.getLogger(__name__)

XY = Tuple[float, float]
DragTargetKind = Literal["point", "line", "circle", "polygon"]
Axis = Literal["horizontal", "vertical"]
HistoryHook = Callable[[Dict[str, Any]], None]


@dataclass
class AxisSnapIndicator:
    """What the renderer needs to draw the alignment guide."""

    axis: Axis
    value: float
    strength: float
    point_ids: Tuple[str, ...]


@dataclass
class DragState:
    kind: DragTargetKind
    target_id: str
    moving: List[str]
    original_positions: Dict[str, XY]
    original_params: Dict[str, Optional[float]]
    raw_positions: Dict[str, XY]
    last_pointer: XY
    moved: bool = False
    # some inputs of the dragged body are derived and stay put
    partial: bool = False


def is_draggable_point(point: Point) -> bool:
    return point.construction_kind in ("free", "on_object") and not point.is_helper


def snap_weight(deviation_deg: float, threshold_deg: float, closeness_threshold: float) -> float:
    """Blend weight for a direction ``deviation_deg`` away from an axis.

    Zero outside the window, then a quadratic ramp from 0 to 1 once the
    closeness passes ``closeness_threshold``.
    """

    if threshold_deg <= 0.0 or deviation_deg >= threshold_deg:
        return 0.0
    closeness = 1.0 - deviation_deg / threshold_deg
    if closeness <= closeness_threshold:
        return 0.0
    ramp = (closeness - closeness_threshold) / max(1.0 - closeness_threshold, 1e-12)
    return min(1.0, ramp * ramp)


class DragSession:
    """Pointer lifecycle handler bound to one scene.

    ``history`` is called once with ``scene.to_dict()`` when a drag that
    actually moved something is committed.  Dragging a line, circle or
    polygon moves only its free inputs; ``state.partial`` tells the caller
    when some inputs are derived and the body will deform instead of
    translating.
    """

    def __init__(self, scene: Scene, history: Optional[HistoryHook] = None) -> None:
        self.scene = scene
        self.history = history
        self.state: Optional[DragState] = None
        self.indicator: Optional[AxisSnapIndicator] = None

    @property
    def dragging(self) -> bool:
        return self.state is not None

    def _movable_inputs(self, point_ids) -> List[str]:
        movable = []
        for pid in point_ids:
            point = self.scene.get("point", pid)
            if point is not None and point.construction_kind == "free" and not point.is_helper and pid not in movable:
                movable.append(pid)
        return movable

    def begin(self, kind: DragTargetKind, target_id: str, pointer: XY) -> bool:
        """Start dragging; returns ``False`` if the target cannot be dragged."""

        if self.state is not None:
            logger.warning("Drag of %s %s still active; committing it first", self.state.kind, self.state.target_id)
            self.end()
        scene = self.scene
        captured: List[str]
        inputs: List[str]
        if kind == "point":
            point = scene.get("point", target_id)
            if point is None or not is_draggable_point(point):
                return False
            moving = [target_id]
            captured = [target_id]
            inputs = moving
        elif kind == "line":
            line = scene.get("line", target_id)
            if line is None:
                return False
            inputs = list(line.defining_points)
            moving = self._movable_inputs(inputs)
            captured = list(line.points)
        elif kind == "circle":
            circle = scene.get("circle", target_id)
            if circle is None:
                return False
            inputs = list(circle.input_points())
            moving = self._movable_inputs(inputs)
            captured = list(circle.input_points()) + list(circle.points)
        elif kind == "polygon":
            polygon = scene.get("polygon", target_id)
            if polygon is None:
                return False
            vertices = polygon_vertices(scene, polygon)
            inputs = vertices
            moving = self._movable_inputs(vertices)
            captured = vertices
        else:
            raise ValueError(f"unsupported drag target {kind!r}")
        if not moving:
            logger.debug("%s %s has no free inputs to drag", kind, target_id)
            return False
        fixed = [pid for pid in dict.fromkeys(inputs) if pid not in moving]
        if fixed:
            logger.debug("Partial drag of %s %s: %s stay fixed", kind, target_id, fixed)

        captured_points = [scene.point(pid) for pid in dict.fromkeys(captured + moving)]
        self.state = DragState(
            kind=kind,
            target_id=target_id,
            moving=moving,
            original_positions={p.id: p.pos for p in captured_points},
            original_params={p.id: p.param for p in captured_points},
            raw_positions={pid: scene.point(pid).pos for pid in moving},
            last_pointer=(float(pointer[0]), float(pointer[1])),
            partial=bool(fixed),
        )
        self.indicator = None
        logger.debug("Drag started on %s %s moving %s", kind, target_id, moving)
        return True

    def move(self, pointer: XY) -> List[str]:
        """Apply one pointer step; returns the ids of directly moved points."""

        state = self.state
        if state is None:
            return []
        delta = (pointer[0] - state.last_pointer[0], pointer[1] - state.last_pointer[1])
        state.last_pointer = (float(pointer[0]), float(pointer[1]))
        if delta == (0.0, 0.0):
            return []
        state.moved = True
        for pid in state.moving:
            raw = state.raw_positions[pid]
            state.raw_positions[pid] = (raw[0] + delta[0], raw[1] + delta[1])

        if state.kind == "point":
            self._place_dragged_point(state.moving[0], state.raw_positions[state.moving[0]])
        else:
            for pid in state.moving:
                self.scene.point(pid).move_to(state.raw_positions[pid])
        for pid in state.moving:
            propagate_point(self.scene, pid)
        return list(state.moving)

    def _place_dragged_point(self, point_id: str, raw: XY) -> None:
        point = self.scene.point(point_id)
        if point.construction_kind == "on_object":
            seated = constrain_to_parent(self.scene, point.parent_refs[0], raw)
            if seated is not None:
                point.move_to(seated[0])
                point.param = seated[1]
            return
        point.move_to(self._apply_axis_snap(point, raw))

    def _apply_axis_snap(self, point: Point, raw: XY) -> XY:
        config = self.scene.config
        best: Optional[AxisSnapIndicator] = None
        for line in self.scene.lines_defined_by(point.id):
            if line.relation is not None:
                continue
            other_id = line.defining_points[1] if line.defining_points[0] == point.id else line.defining_points[0]
            other = self.scene.get("point", other_id)
            if other is None:
                continue
            dx = raw[0] - other.x
            dy = raw[1] - other.y
            if geo.norm((dx, dy)) <= config.min_direction:
                continue
            from_horizontal = degrees(atan2(abs(dy), abs(dx)))
            for axis, deviation, value in (
                ("horizontal", from_horizontal, other.y),
                ("vertical", 90.0 - from_horizontal, other.x),
            ):
                weight = snap_weight(deviation, config.axis_snap_degrees, config.axis_snap_closeness)
                if weight > 0.0 and (best is None or weight > best.strength):
                    best = AxisSnapIndicator(axis=axis, value=value, strength=weight, point_ids=(point.id, other_id))
        self.indicator = best
        if best is None:
            return raw
        if best.axis == "horizontal":
            return raw[0], raw[1] + (best.value - raw[1]) * best.strength
        return raw[0] + (best.value - raw[0]) * best.strength, raw[1]

    def end(self, pointer: Optional[XY] = None) -> List[str]:
        """Commit the drag; returns ids of points whose position changed."""

        if self.state is None:
            return []
        if pointer is not None:
            self.move(pointer)
        state = self.state
        indicator = self.indicator
        if indicator is not None and state.kind == "point":
            point = self.scene.point(state.moving[0])
            if indicator.axis == "horizontal":
                point.move_to((point.x, indicator.value))
            else:
                point.move_to((indicator.value, point.y))
            propagate_point(self.scene, point.id)
            logger.debug("Snapped %s to %s axis at %.6g", point.id, indicator.axis, indicator.value)
        self.indicator = None
        self.state = None

        changed = [
            pid
            for pid, original in state.original_positions.items()
            if self.scene.has("point", pid) and self.scene.point(pid).pos != original
        ]
        if state.moved and self.history is not None:
            self.history(self.scene.to_dict())
        logger.info("Drag of %s %s committed (%d point(s) changed)", state.kind, state.target_id, len(changed))
        return changed

    def cancel(self) -> None:
        """Abandon the drag and restore every captured position."""

        state = self.state
        if state is None:
            return
        self.state = None
        self.indicator = None
        for pid, pos in state.original_positions.items():
            point = self.scene.get("point", pid)
            if point is None:
                continue
            point.move_to(pos)
            point.param = state.original_params.get(pid)
        for pid in state.moving:
            propagate_point(self.scene, pid)
        logger.debug("Drag of %s %s cancelled", state.kind, state.target_id)
