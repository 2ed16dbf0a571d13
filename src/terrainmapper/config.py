"""Tunable defaults for terrain path construction."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Union

from terrainmapper.cutaway import CUTAWAY_TOL


@dataclass(frozen=True)
class TerrainConfig:
    """Numeric settings shared by the path engine.

    ``hole_percent`` scales a mover's larger footprint side into the hole
    threshold.  ``alpha_threshold`` is the fraction of the maximum pixel
    value above which a tile pixel is solid.  Iteration caps bound the
    hole field relaxation, the ground resolver and the path walker
    (``iteration_factor * vertex_count + iteration_floor``).
    """

    hole_percent: float = 0.25
    alpha_threshold: float = 0.75
    slab_thickness: float = 1.0
    cutaway_padding: float = 1.0
    hole_max_iterations: int = 1000
    ground_max_iterations: int = 10000
    iteration_factor: int = 8
    iteration_floor: int = 100
    tolerance: float = CUTAWAY_TOL

    def __post_init__(self):
        if not 0.0 <= self.alpha_threshold <= 1.0:
            raise ValueError('alpha_threshold must lie in [0, 1]')
        if self.hole_percent <= 0.0:
            raise ValueError('hole_percent must be positive')
        if self.slab_thickness <= 0.0:
            raise ValueError('slab_thickness must be positive')
        if self.cutaway_padding < 0.0:
            raise ValueError('cutaway_padding must not be negative')
        for name in ('hole_max_iterations', 'ground_max_iterations',
                     'iteration_factor', 'iteration_floor'):
            if getattr(self, name) < 1:
                raise ValueError(f'{name} must be at least 1')
        if self.tolerance <= 0.0:
            raise ValueError('tolerance must be positive')

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TerrainConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f'unknown terrain config keys: {unknown}')
        return cls(**dict(data))

    def updated(self, **changes: Any) -> "TerrainConfig":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


DEFAULT_CONFIG = TerrainConfig()


def load_config(path: Union[str, Path]) -> TerrainConfig:
    """Read a ``TerrainConfig`` from a YAML mapping.

    A ``terrain`` top-level key, if present, holds the settings.
    """

    import yaml  # local import to avoid hard dependency if unused

    path = Path(path)
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, Mapping):
        raise ValueError(f'{path}: expected a mapping of terrain settings')
    if 'terrain' in data:
        data = data['terrain'] or {}
    return TerrainConfig.from_mapping(data)
