"""Entity dataclasses owned by :class:`geoscene.scene.Scene`."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple

ConstructionKind = Literal["free", "on_object", "intersection", "midpoint", "symmetric"]
ParentKind = Literal["line", "circle"]
MirrorKind = Literal["point", "line"]
CircleKind = Literal["center-radius", "three-point"]
EntityKind = Literal["point", "line", "circle", "angle", "polygon"]

CONSTRUCTION_KINDS: Tuple[str, ...] = ("free", "on_object", "intersection", "midpoint", "symmetric")
STICKY_KINDS = frozenset({"midpoint", "symmetric"})


class ConstructionError(ValueError):
    """Raised when a construction request is rejected before anything is stored."""


class UnknownEntityError(KeyError):
    """Raised when a scene lookup names an id that does not exist."""

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"unknown {kind} {entity_id!r}")
        self.kind = kind
        self.entity_id = entity_id


@dataclass(frozen=True)
class ParentRef:
    """Link from a point to the line or circle constraining it."""

    kind: ParentKind
    id: str

    def to_dict(self) -> Dict[str, str]:
        return {"kind": self.kind, "id": self.id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParentRef":
        return cls(kind=data["kind"], id=data["id"])


@dataclass
class MidpointMeta:
    parents: Tuple[str, str]
    parent_line_id: Optional[str] = None


@dataclass
class SymmetricMeta:
    source: str
    mirror_kind: MirrorKind
    mirror_id: str


@dataclass
class Point:
    id: str
    x: float
    y: float
    style: Dict[str, Any] = field(default_factory=dict)
    label: Optional[str] = None
    construction_kind: ConstructionKind = "free"
    parent_refs: List[ParentRef] = field(default_factory=list)
    midpoint: Optional[MidpointMeta] = None
    symmetric: Optional[SymmetricMeta] = None
    parallel_helper_for: Optional[str] = None
    perpendicular_helper_for: Optional[str] = None
    # position along the parent: line parameter t, or polar angle on a circle
    param: Optional[float] = None
    hidden: bool = False

    @property
    def pos(self) -> Tuple[float, float]:
        return self.x, self.y

    def move_to(self, pos: Tuple[float, float]) -> None:
        self.x = float(pos[0])
        self.y = float(pos[1])

    @property
    def helper_for(self) -> Optional[str]:
        return self.parallel_helper_for or self.perpendicular_helper_for

    @property
    def is_helper(self) -> bool:
        return self.helper_for is not None

    def summary(self) -> str:
        return f"Point({self.id} {self.construction_kind} @ ({self.x:.6g}, {self.y:.6g}))"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "style": dict(self.style),
            "label": self.label,
            "construction_kind": self.construction_kind,
            "parent_refs": [ref.to_dict() for ref in self.parent_refs],
            "param": self.param,
            "hidden": self.hidden,
        }
        if self.midpoint is not None:
            data["midpoint"] = {
                "parents": list(self.midpoint.parents),
                "parent_line_id": self.midpoint.parent_line_id,
            }
        if self.symmetric is not None:
            data["symmetric"] = {
                "source": self.symmetric.source,
                "mirror": {"kind": self.symmetric.mirror_kind, "id": self.symmetric.mirror_id},
            }
        if self.parallel_helper_for is not None:
            data["parallel_helper_for"] = self.parallel_helper_for
        if self.perpendicular_helper_for is not None:
            data["perpendicular_helper_for"] = self.perpendicular_helper_for
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Point":
        midpoint = None
        if data.get("midpoint"):
            mp = data["midpoint"]
            parents = mp["parents"]
            midpoint = MidpointMeta(parents=(parents[0], parents[1]), parent_line_id=mp.get("parent_line_id"))
        symmetric = None
        if data.get("symmetric"):
            sym = data["symmetric"]
            symmetric = SymmetricMeta(
                source=sym["source"],
                mirror_kind=sym["mirror"]["kind"],
                mirror_id=sym["mirror"]["id"],
            )
        return cls(
            id=data["id"],
            x=float(data["x"]),
            y=float(data["y"]),
            style=dict(data.get("style") or {}),
            label=data.get("label"),
            construction_kind=data.get("construction_kind", "free"),
            parent_refs=[ParentRef.from_dict(ref) for ref in data.get("parent_refs", [])],
            midpoint=midpoint,
            symmetric=symmetric,
            parallel_helper_for=data.get("parallel_helper_for"),
            perpendicular_helper_for=data.get("perpendicular_helper_for"),
            param=data.get("param"),
            hidden=bool(data.get("hidden", False)),
        )


@dataclass
class LineRelation:
    """Parallel/perpendicular bookkeeping stored on the derived line."""

    through_point: str
    reference_line: str
    helper_point: str
    helper_distance: float
    helper_orientation: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "throughPoint": self.through_point,
            "referenceLine": self.reference_line,
            "helperPoint": self.helper_point,
            "helperDistance": self.helper_distance,
            "helperOrientation": self.helper_orientation,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LineRelation":
        return cls(
            through_point=data["throughPoint"],
            reference_line=data["referenceLine"],
            helper_point=data["helperPoint"],
            helper_distance=float(data["helperDistance"]),
            helper_orientation=int(data.get("helperOrientation", 1)),
        )


@dataclass
class Line:
    id: str
    defining_points: Tuple[str, str]
    points: List[str] = field(default_factory=list)
    segment: bool = False
    style: Dict[str, Any] = field(default_factory=dict)
    parallel: Optional[LineRelation] = None
    perpendicular: Optional[LineRelation] = None
    hidden: bool = False

    def __post_init__(self) -> None:
        for pid in self.defining_points:
            if pid not in self.points:
                self.points.append(pid)

    @property
    def relation(self) -> Optional[LineRelation]:
        return self.parallel or self.perpendicular

    def summary(self) -> str:
        a, b = self.defining_points
        tag = ""
        if self.parallel is not None:
            tag = f" parallel-to {self.parallel.reference_line}"
        elif self.perpendicular is not None:
            tag = f" perpendicular-to {self.perpendicular.reference_line}"
        return f"Line({self.id} {a}-{b}{tag})"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "defining_points": list(self.defining_points),
            "points": list(self.points),
            "segment": self.segment,
            "style": dict(self.style),
            "hidden": self.hidden,
        }
        if self.parallel is not None:
            data["parallel"] = self.parallel.to_dict()
        if self.perpendicular is not None:
            data["perpendicular"] = self.perpendicular.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Line":
        a, b = data["defining_points"]
        return cls(
            id=data["id"],
            defining_points=(a, b),
            points=list(data.get("points", [])),
            segment=bool(data.get("segment", False)),
            style=dict(data.get("style") or {}),
            parallel=LineRelation.from_dict(data["parallel"]) if data.get("parallel") else None,
            perpendicular=LineRelation.from_dict(data["perpendicular"]) if data.get("perpendicular") else None,
            hidden=bool(data.get("hidden", False)),
        )


@dataclass
class Circle:
    id: str
    kind: CircleKind
    center: Optional[str] = None
    radius_point: Optional[str] = None
    defining_points: Optional[Tuple[str, str, str]] = None
    center_xy: Optional[Tuple[float, float]] = None
    points: List[str] = field(default_factory=list)
    style: Dict[str, Any] = field(default_factory=dict)
    hidden: bool = False

    def input_points(self) -> Tuple[str, ...]:
        """Point ids whose motion reshapes the circle."""

        if self.kind == "three-point":
            return tuple(self.defining_points or ())
        return tuple(pid for pid in (self.center, self.radius_point) if pid is not None)

    def summary(self) -> str:
        if self.kind == "three-point":
            return f"Circle({self.id} through {'-'.join(self.defining_points or ())})"
        return f"Circle({self.id} center={self.center} radius-point={self.radius_point})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "center": self.center,
            "radius_point": self.radius_point,
            "defining_points": list(self.defining_points) if self.defining_points else None,
            "center_xy": list(self.center_xy) if self.center_xy else None,
            "points": list(self.points),
            "style": dict(self.style),
            "hidden": self.hidden,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Circle":
        defining = data.get("defining_points")
        center_xy = data.get("center_xy")
        return cls(
            id=data["id"],
            kind=data["kind"],
            center=data.get("center"),
            radius_point=data.get("radius_point"),
            defining_points=tuple(defining) if defining else None,  # type: ignore[arg-type]
            center_xy=(float(center_xy[0]), float(center_xy[1])) if center_xy else None,
            points=list(data.get("points", [])),
            style=dict(data.get("style") or {}),
            hidden=bool(data.get("hidden", False)),
        )


@dataclass
class AngleLeg:
    line: str
    segment_index: int


@dataclass
class Angle:
    id: str
    vertex: str
    legs: Tuple[AngleLeg, AngleLeg]
    style: Dict[str, Any] = field(default_factory=dict)

    def summary(self) -> str:
        return f"Angle({self.id} at {self.vertex} {self.legs[0].line}/{self.legs[1].line})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "vertex": self.vertex,
            "legs": [{"line": leg.line, "segmentIndex": leg.segment_index} for leg in self.legs],
            "style": dict(self.style),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Angle":
        first, second = (AngleLeg(line=leg["line"], segment_index=int(leg["segmentIndex"])) for leg in data["legs"])
        return cls(id=data["id"], vertex=data["vertex"], legs=(first, second), style=dict(data.get("style") or {}))


@dataclass
class Polygon:
    id: str
    lines: List[str]
    style: Dict[str, Any] = field(default_factory=dict)

    def summary(self) -> str:
        return f"Polygon({self.id} {len(self.lines)} edges)"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "lines": list(self.lines), "style": dict(self.style)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Polygon":
        return cls(id=data["id"], lines=list(data["lines"]), style=dict(data.get("style") or {}))
