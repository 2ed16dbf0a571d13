import pytest

from terrainmapper.config import TerrainConfig
from terrainmapper.scene import Mover, SceneContext
from terrainmapper.terrain import Plateau, Region
from terrainmapper.tile import Tile

FOOTPRINT = [(0, 0), (10, 0), (10, 10), (0, 10)]


def test_mover_must_have_size():
    with pytest.raises(ValueError):
        Mover(0, 1)
    assert Mover().width == 1.0


def test_elevated_regions():
    scene = SceneContext()
    flat = scene.add_region(Region([FOOTPRINT]))
    high = scene.add_region(Region([FOOTPRINT], Plateau(3)))
    assert scene.elevated_regions() == [high]
    assert scene.elevated_regions([flat]) == []


def test_elevated_tiles():
    scene = SceneContext(baseline=1.0)
    level = scene.add_tile(Tile(0, 0, 1, 1, 1.0))
    raised = scene.add_tile(Tile(0, 0, 1, 1, 2.0))
    gone = scene.add_tile(Tile(0, 0, 1, 1, 3.0))
    gone.delete()
    assert scene.elevated_tiles() == [raised]
    assert level in scene.tiles


def test_add_tile_applies_config():
    scene = SceneContext(config=TerrainConfig(alpha_threshold=0.5, hole_max_iterations=7))
    tile = scene.add_tile(Tile(0, 0, 1, 1, 2.0))
    assert tile.alpha_threshold == 0.5
    assert tile.max_iterations == 7
