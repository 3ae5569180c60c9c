from .config import EngineConfig, get_engine_config, set_engine_config
from .model import (
    Angle,
    AngleLeg,
    Circle,
    ConstructionError,
    Line,
    LineRelation,
    MidpointMeta,
    ParentRef,
    Point,
    Polygon,
    SymmetricMeta,
    UnknownEntityError,
)
from .scene import Scene
from .constructions import (
    add_angle,
    add_circle,
    add_circle_through,
    add_intersection,
    add_line,
    add_midpoint,
    add_parallel_line,
    add_perpendicular_line,
    add_point,
    add_point_on_circle,
    add_point_on_line,
    add_polygon,
    add_segment,
    add_segment_midpoint,
    add_symmetric_point,
    angle_measure,
    attach_point,
    classify_point,
    merge_parent_refs,
    polygon_vertices,
)
from .propagation import (
    propagate_circle,
    propagate_line,
    propagate_point,
    recompute_all,
    recompute_parallel_line,
    recompute_perpendicular_line,
    update_intersections_for_circle,
    update_intersections_for_line,
    update_midpoints_for_point,
    update_parallel_lines_for_line,
    update_parallel_lines_for_point,
    update_perpendicular_lines_for_line,
    update_perpendicular_lines_for_point,
)
from .drag import AxisSnapIndicator, DragSession
from .cleanup import (
    CleanupReport,
    collect_orphans,
    delete_angle,
    delete_circle,
    delete_line,
    delete_point,
    delete_polygon,
)

__all__ = [
    'EngineConfig',
    'get_engine_config',
    'set_engine_config',
    'Angle',
    'AngleLeg',
    'Circle',
    'ConstructionError',
    'Line',
    'LineRelation',
    'MidpointMeta',
    'ParentRef',
    'Point',
    'Polygon',
    'SymmetricMeta',
    'UnknownEntityError',
    'Scene',
    'add_angle',
    'add_circle',
    'add_circle_through',
    'add_intersection',
    'add_line',
    'add_midpoint',
    'add_parallel_line',
    'add_perpendicular_line',
    'add_point',
    'add_point_on_circle',
    'add_point_on_line',
    'add_polygon',
    'add_segment',
    'add_segment_midpoint',
    'add_symmetric_point',
    'angle_measure',
    'attach_point',
    'classify_point',
    'merge_parent_refs',
    'polygon_vertices',
    'propagate_circle',
    'propagate_line',
    'propagate_point',
    'recompute_all',
    'recompute_parallel_line',
    'recompute_perpendicular_line',
    'update_intersections_for_circle',
    'update_intersections_for_line',
    'update_midpoints_for_point',
    'update_parallel_lines_for_line',
    'update_parallel_lines_for_point',
    'update_perpendicular_lines_for_line',
    'update_perpendicular_lines_for_point',
    'AxisSnapIndicator',
    'DragSession',
    'CleanupReport',
    'collect_orphans',
    'delete_angle',
    'delete_circle',
    'delete_line',
    'delete_point',
    'delete_polygon',
]
