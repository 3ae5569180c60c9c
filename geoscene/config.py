"""Tolerances and thresholds shared by the construction engine."""

from __future__ import annotations

import copy
from dataclasses import dataclass


@dataclass
class EngineConfig:
    """Numeric knobs consulted by the resolver, propagation and drag code."""

    epsilon: float = 1e-9
    min_radius: float = 1e-6
    min_direction: float = 1e-9
    helper_min_distance: float = 1.0
    axis_snap_degrees: float = 5.0
    axis_snap_closeness: float = 0.9
    max_propagation_depth: int = 64
    merge_distance: float = 1e-6


_ENGINE_CONFIG = EngineConfig()


def get_engine_config() -> EngineConfig:
    return copy.deepcopy(_ENGINE_CONFIG)


def set_engine_config(config: EngineConfig) -> None:
    global _ENGINE_CONFIG
    _ENGINE_CONFIG = copy.deepcopy(config)
