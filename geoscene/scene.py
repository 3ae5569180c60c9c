"""Scene model store: entity arrays, id lookups and the serialization view."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Union

from .config import EngineConfig, get_engine_config
from .model import (
    Angle,
    Circle,
    EntityKind,
    Line,
    ParentRef,
    Point,
    Polygon,
    UnknownEntityError,
)

logger = logging.getLogger(__name__)

Entity = Union[Point, Line, Circle, Angle, Polygon]

ID_PREFIXES: Dict[str, str] = {
    "point": "P",
    "line": "L",
    "circle": "C",
    "angle": "A",
    "polygon": "G",
}

_ENTITY_KINDS = {
    Point: "point",
    Line: "line",
    Circle: "circle",
    Angle: "angle",
    Polygon: "polygon",
}


@dataclass
class PropagationGuards:
    """Reentrancy bookkeeping for one scene.

    A line id sits in ``parallel`` / ``perpendicular`` while it is being
    recomputed, and a point id sits in ``points`` while its dependents are
    being refreshed.  ``depth`` counts nested cascade levels.
    """

    parallel: Set[str] = field(default_factory=set)
    perpendicular: Set[str] = field(default_factory=set)
    points: Set[str] = field(default_factory=set)
    depth: int = 0

    def idle(self) -> bool:
        return not (self.parallel or self.perpendicular or self.points) and self.depth == 0


class Scene:
    """Owns every entity of one construction document.

    Entities live in plain lists; ``*_index`` maps are a rebuildable id ->
    position cache.  Callers outside the engine should hold ids, never list
    positions, across a mutation.
    """

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or get_engine_config()
        self.points: List[Point] = []
        self.lines: List[Line] = []
        self.circles: List[Circle] = []
        self.angles: List[Angle] = []
        self.polygons: List[Polygon] = []
        self.point_index: Dict[str, int] = {}
        self.line_index: Dict[str, int] = {}
        self.circle_index: Dict[str, int] = {}
        self.angle_index: Dict[str, int] = {}
        self.polygon_index: Dict[str, int] = {}
        self.counters: Dict[str, int] = {kind: 0 for kind in ID_PREFIXES}
        self.guards = PropagationGuards()

    def summary(self) -> str:
        return (
            f"Scene(points={len(self.points)}, lines={len(self.lines)}, circles={len(self.circles)}, "
            f"angles={len(self.angles)}, polygons={len(self.polygons)})"
        )

    # -- identity -------------------------------------------------------

    def next_id(self, kind: EntityKind) -> str:
        self.counters[kind] += 1
        return f"{ID_PREFIXES[kind]}{self.counters[kind]}"

    def _collection(self, kind: str):
        if kind == "point":
            return self.points, self.point_index
        if kind == "line":
            return self.lines, self.line_index
        if kind == "circle":
            return self.circles, self.circle_index
        if kind == "angle":
            return self.angles, self.angle_index
        if kind == "polygon":
            return self.polygons, self.polygon_index
        raise ValueError(f"unknown entity kind {kind!r}")

    def add(self, entity: Entity) -> Entity:
        kind = _ENTITY_KINDS[type(entity)]
        items, index = self._collection(kind)
        if entity.id in index:
            raise ValueError(f"duplicate {kind} id {entity.id!r}")
        index[entity.id] = len(items)
        items.append(entity)
        logger.debug("Stored %s", entity.summary())
        return entity

    def get(self, kind: str, entity_id: str) -> Optional[Any]:
        items, index = self._collection(kind)
        pos = index.get(entity_id)
        return None if pos is None else items[pos]

    def require(self, kind: str, entity_id: str) -> Any:
        entity = self.get(kind, entity_id)
        if entity is None:
            raise UnknownEntityError(kind, entity_id)
        return entity

    def point(self, point_id: str) -> Point:
        return self.require("point", point_id)

    def line(self, line_id: str) -> Line:
        return self.require("line", line_id)

    def circle(self, circle_id: str) -> Circle:
        return self.require("circle", circle_id)

    def angle(self, angle_id: str) -> Angle:
        return self.require("angle", angle_id)

    def polygon(self, polygon_id: str) -> Polygon:
        return self.require("polygon", polygon_id)

    def has(self, kind: str, entity_id: str) -> bool:
        _, index = self._collection(kind)
        return entity_id in index

    def resolve(self, ref: ParentRef) -> Union[Line, Circle, None]:
        return self.get(ref.kind, ref.id)

    def remove(self, kind: str, ids: Iterable[str]) -> List[str]:
        """Drop entities of ``kind`` and rebuild that kind's index."""

        items, index = self._collection(kind)
        doomed = {entity_id for entity_id in ids if entity_id in index}
        if not doomed:
            return []
        items[:] = [item for item in items if item.id not in doomed]
        self._rebuild(kind)
        logger.info("Removed %d %s(s): %s", len(doomed), kind, sorted(doomed))
        return sorted(doomed)

    def _rebuild(self, kind: str) -> None:
        items, index = self._collection(kind)
        index.clear()
        index.update({item.id: pos for pos, item in enumerate(items)})

    def rebuild_index(self) -> None:
        for kind in ID_PREFIXES:
            self._rebuild(kind)

    # -- relationship queries -------------------------------------------

    def lines_defined_by(self, point_id: str) -> List[Line]:
        return [line for line in self.lines if point_id in line.defining_points]

    def lines_containing(self, point_id: str) -> List[Line]:
        return [line for line in self.lines if point_id in line.points]

    def circles_defined_by(self, point_id: str) -> List[Circle]:
        return [circle for circle in self.circles if point_id in circle.input_points()]

    def points_with_parent(self, ref: ParentRef) -> List[Point]:
        return [point for point in self.points if ref in point.parent_refs]

    def children_of(self, entity_id: str) -> List[str]:
        """Ids of the entities whose geometry depends on ``entity_id``.

        This is the derived replacement for a stored ``children`` list.
        """

        children: List[str] = []
        for point in self.points:
            if any(ref.id == entity_id for ref in point.parent_refs):
                children.append(point.id)
            elif point.midpoint is not None and (
                entity_id in point.midpoint.parents or point.midpoint.parent_line_id == entity_id
            ):
                children.append(point.id)
            elif point.symmetric is not None and entity_id in (point.symmetric.source, point.symmetric.mirror_id):
                children.append(point.id)
            elif point.helper_for == entity_id:
                children.append(point.id)
        for line in self.lines:
            relation = line.relation
            if entity_id in line.defining_points:
                children.append(line.id)
            elif relation is not None and entity_id in (relation.reference_line, relation.through_point):
                children.append(line.id)
        for circle in self.circles:
            if entity_id in circle.input_points():
                children.append(circle.id)
        for angle in self.angles:
            if entity_id == angle.vertex or any(leg.line == entity_id for leg in angle.legs):
                children.append(angle.id)
        for polygon in self.polygons:
            if entity_id in polygon.lines:
                children.append(polygon.id)
        return children

    def iter_entities(self) -> Iterator[Entity]:
        yield from self.points
        yield from self.lines
        yield from self.circles
        yield from self.angles
        yield from self.polygons

    # -- serialization --------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data view for the persistence layer (JSON-compatible)."""

        return {
            "points": [point.to_dict() for point in self.points],
            "lines": [line.to_dict() for line in self.lines],
            "circles": [circle.to_dict() for circle in self.circles],
            "angles": [angle.to_dict() for angle in self.angles],
            "polygons": [polygon.to_dict() for polygon in self.polygons],
            "counters": dict(self.counters),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], config: Optional[EngineConfig] = None) -> "Scene":
        scene = cls(config=config)
        for raw in data.get("points", []):
            scene.add(Point.from_dict(raw))
        for raw in data.get("lines", []):
            scene.add(Line.from_dict(raw))
        for raw in data.get("circles", []):
            scene.add(Circle.from_dict(raw))
        for raw in data.get("angles", []):
            scene.add(Angle.from_dict(raw))
        for raw in data.get("polygons", []):
            scene.add(Polygon.from_dict(raw))
        counters = data.get("counters") or {}
        for kind in ID_PREFIXES:
            scene.counters[kind] = max(int(counters.get(kind, 0)), _highest_suffix(scene, kind))
        logger.info("Loaded %s", scene.summary())
        return scene


def _highest_suffix(scene: Scene, kind: str) -> int:
    items, _ = scene._collection(kind)
    prefix = ID_PREFIXES[kind]
    best = 0
    for item in items:
        suffix = item.id[len(prefix):] if item.id.startswith(prefix) else ""
        if suffix.isdigit():
            best = max(best, int(suffix))
    return best
