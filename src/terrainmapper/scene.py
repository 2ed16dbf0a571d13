"""Scene context and mover descriptors passed into every path query."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

from terrainmapper.config import DEFAULT_CONFIG, TerrainConfig
from terrainmapper.terrain import Region
from terrainmapper.tile import Tile


@dataclass(frozen=True)
class Mover:
    """Footprint of the object being moved, in canvas units."""

    width: float = 1.0
    height: float = 1.0

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError('mover width and height must be positive')


@dataclass
class SceneContext:
    """Baseline floor elevation plus the regions and tiles of a scene."""

    baseline: float = 0.0
    regions: List[Region] = field(default_factory=list)
    tiles: List[Tile] = field(default_factory=list)
    config: TerrainConfig = DEFAULT_CONFIG

    def elevated_regions(self, regions: Sequence[Region] = None) -> List[Region]:
        regions = self.regions if regions is None else regions
        return [r for r in regions if r.is_elevated]

    def elevated_tiles(self, tiles: Sequence[Tile] = None) -> List[Tile]:
        tiles = self.tiles if tiles is None else tiles
        return [t for t in tiles if not t.deleted and t.is_elevated(self.baseline)]

    def add_region(self, region: Region) -> Region:
        self.regions.append(region)
        return region

    def add_tile(self, tile: Tile) -> Tile:
        """Add ``tile``, applying this scene's alpha threshold and hole
        field iteration cap to it."""
        tile.configure(self.config)
        self.tiles.append(tile)
        return tile
