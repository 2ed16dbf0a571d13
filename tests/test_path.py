import logging
import math

import numpy as np
import pytest

from terrainmapper.combine import combine_cutaways
from terrainmapper.cutaway import CutawayPolygon
from terrainmapper.elevation import ElevationType, elevation_type
from terrainmapper.geom import MIN_ELEV
from terrainmapper.path import MovementMode, PathWalker, construct_path
from terrainmapper.scene import Mover, SceneContext
from terrainmapper.terrain import Plateau, Ramp, Region
from terrainmapper.tile import Tile
from terrainmapper.waypoint import Waypoint


def plateau_scene():
    region = Region([[(20, -5), (30, -5), (30, 5), (20, 5)]], Plateau(5.0))
    return SceneContext(baseline=0.0, regions=[region])


def two_plateau_scene():
    a = Region([[(20, -5), (30, -5), (30, 5), (20, 5)]], Plateau(5.0))
    b = Region([[(40, -5), (50, -5), (50, 5), (40, 5)]], Plateau(5.0))
    return SceneContext(baseline=0.0, regions=[a, b])


def disc_alpha(radius=3, size=21):
    rows, cols = np.ogrid[:size, :size]
    c = size // 2
    alpha = np.full((size, size), 255, dtype=np.uint8)
    alpha[(rows - c) ** 2 + (cols - c) ** 2 <= radius * radius] = 0
    return alpha


def assert_path(path, expected, tol=1e-6):
    assert len(path) == len(expected), list(path)
    for w, e in zip(path, expected):
        assert math.isclose(w.x, e[0], abs_tol=tol)
        assert math.isclose(w.y, e[1], abs_tol=tol)
        assert math.isclose(w.elevation, e[2], abs_tol=tol)


class TestTrivialPaths:

    def test_same_point(self):
        path = construct_path((25, 0, 5), (25, 0, 5), plateau_scene())
        assert len(path) == 2
        assert path[0] == path[1] == Waypoint(25, 0, 5)

    def test_no_terrain(self):
        path = construct_path((0, 0, 0), (100, 0, 0), SceneContext())
        assert_path(path, [(0, 0, 0), (100, 0, 0)])

    def test_terrain_off_the_line(self):
        path = construct_path((0, 20, 0), (100, 20, 0), plateau_scene())
        assert_path(path, [(0, 20, 0), (100, 20, 0)])

    def test_flying_and_burrowing(self):
        path = construct_path((0, 0, 0), (100, 0, 0), plateau_scene(),
                              flying=True, burrowing=True)
        assert_path(path, [(0, 0, 0), (100, 0, 0)])

    def test_flying_and_burrowing_end_lifted_to_ground(self):
        path = construct_path((0, 0, 10), (25, 0, 2), plateau_scene(),
                              flying=True, burrowing=True)
        assert_path(path, [(0, 0, 10), (25, 0, 5)])

    def test_flying_and_burrowing_can_end_below(self):
        path = construct_path((0, 0, 10), (25, 0, 2), plateau_scene(),
                              flying=True, burrowing=True, can_end_below=True)
        assert_path(path, [(0, 0, 10), (25, 0, 2)])


class TestWalking:

    def test_over_plateau(self):
        path = construct_path((0, 0, 0), (100, 0, 0), plateau_scene())
        assert_path(path, [(0, 0, 0), (20, 0, 0), (20, 0, 5),
                           (30, 0, 5), (30, 0, 0), (100, 0, 0)])

    def test_backward_over_plateau(self):
        path = construct_path((100, 0, 0), (0, 0, 0), plateau_scene())
        assert_path(path, [(100, 0, 0), (30, 0, 0), (30, 0, 5),
                           (20, 0, 5), (20, 0, 0), (0, 0, 0)])

    def test_never_below(self):
        scene = plateau_scene()
        path = construct_path((0, 0, 0), (100, 0, 0), scene)
        assert all(elevation_type(w, scene) is not ElevationType.BELOW for w in path)

    def test_up_a_ramp(self):
        region = Region([[(20, -5), (30, -5), (30, 5), (20, 5)]],
                        Ramp(0.0, 5.0, direction=270))
        scene = SceneContext(regions=[region])
        path = construct_path((0, 0, 0), (100, 0, 0), scene)
        assert_path(path, [(0, 0, 0), (20, 0, 0), (30, 0, 5),
                           (30, 0, 0), (100, 0, 0)])
        assert math.isclose(path.elevation_at((25, 0)), 2.5)

    def test_ending_on_plateau(self):
        path = construct_path((0, 0, 0), (25, 0, 0), plateau_scene())
        assert_path(path, [(0, 0, 0), (20, 0, 0), (20, 0, 5), (25, 0, 5)])

    def test_dropping_from_above(self):
        path = construct_path((0, 0, 3), (100, 0, 0), plateau_scene(), flying=False)
        assert_path(path, [(0, 0, 3), (0, 0, 0), (20, 0, 0), (20, 0, 5),
                           (30, 0, 5), (30, 0, 0), (100, 0, 0)])

    def test_start_above_end_on_ground_walks(self):
        # flying is only inferred when both ends are above the terrain
        path = construct_path((0, 0, 3), (100, 0, 0), plateau_scene())
        assert_path(path, [(0, 0, 3), (0, 0, 0), (20, 0, 0), (20, 0, 5),
                           (30, 0, 5), (30, 0, 0), (100, 0, 0)])

    def test_overhang_stops_ramp_climb(self, caplog):
        ramp = Region([[(20, -5), (60, -5), (60, 5), (20, 5)]],
                      Ramp(0.0, 20.0, direction=270))
        shelf = Tile(30, -5, 20, 10, 10.0)
        scene = SceneContext(regions=[ramp], tiles=[shelf])
        with caplog.at_level(logging.ERROR, logger="terrainmapper.path"):
            path = construct_path((0, 0, 0), (100, 0, 0), scene)
        assert_path(path, [(0, 0, 0), (20, 0, 0), (38, 0, 9)])
        assert "overhang" in caplog.text

    def test_under_a_floating_tile(self):
        scene = SceneContext(tiles=[Tile(40, -5, 10, 10, 3.0)])
        path = construct_path((0, 0, 0), (100, 0, 0), scene)
        assert_path(path, [(0, 0, 0), (100, 0, 0)])

    def test_onto_a_tile_from_a_plateau(self):
        region = Region([[(20, -5), (30, -5), (30, 5), (20, 5)]], Plateau(5.0))
        tile = Tile(30, -5, 20, 10, 5.0)
        scene = SceneContext(regions=[region], tiles=[tile])
        path = construct_path((25, 0, 5), (45, 0, 5), scene)
        assert_path(path, [(25, 0, 5), (45, 0, 5)])


class TestFlying:

    def test_clear_line(self):
        path = construct_path((0, 0, 10), (100, 0, 10), plateau_scene())
        assert_path(path, [(0, 0, 10), (100, 0, 10)])

    def test_over_plateau(self):
        scene = plateau_scene()
        path = construct_path((0, 0, 3), (100, 0, 3), scene)
        assert_path(path, [(0, 0, 3), (20, 0, 5), (30, 0, 5), (100, 0, 3)])
        assert all(elevation_type(w, scene) is not ElevationType.BELOW for w in path)

    def test_end_inside_terrain_moves_to_surface(self):
        path = construct_path((0, 0, 10), (25, 0, 2), plateau_scene(), flying=True)
        assert path[-1].almost_equal(Waypoint(25, 0, 5), 1e-6)

    def test_start_below_rises_first(self):
        path = construct_path((0, 0, -2), (100, 0, 10), plateau_scene(), flying=True)
        assert_path(path, [(0, 0, -2), (0, 0, 0), (20, 0, 5), (100, 0, 10)])

    def test_target_under_an_overhang(self):
        wall = Region([[(10, -5), (20, -5), (20, 5), (10, 5)]], Plateau(12.0))
        shelf = Tile(25, -5, 25, 10, 7.0)
        scene = SceneContext(regions=[wall], tiles=[shelf])
        path = construct_path((0, 0, 3), (40, 0, 0), scene, flying=True)
        assert len(path) >= 2
        assert_path(path, [(0, 0, 3), (10, 0, 12), (20, 0, 12), (25, 0, 6), (40, 0, 0)])

    def test_stuck_walker_keeps_two_waypoints(self, monkeypatch):
        monkeypatch.setattr(PathWalker, "run", lambda self: [self.start])
        path = construct_path((0, 0, 3), (100, 0, 3), plateau_scene(), flying=True)
        assert_path(path, [(0, 0, 3), (0, 0, 3)])


class TestBurrowing:

    def test_straight(self):
        scene = plateau_scene()
        path = construct_path((0, 0, -2), (100, 0, -2), scene)
        assert_path(path, [(0, 0, -2), (100, 0, -2)])
        assert all(elevation_type(w, scene) is not ElevationType.ABOVE for w in path)

    def test_under_a_gap(self):
        scene = two_plateau_scene()
        path = construct_path((25, 0, 3), (45, 0, 3), scene)
        assert_path(path, [(25, 0, 3), (30, 0, 0), (40, 0, 0), (45, 0, 3)])
        assert all(elevation_type(w, scene) is not ElevationType.ABOVE for w in path)

    def test_start_above_drops_first(self):
        path = construct_path((0, 0, 3), (100, 0, -2), plateau_scene(), burrowing=True)
        assert_path(path, [(0, 0, 3), (0, 0, 0), (100, 0, -2)])


class TestVerticalMoves:

    def test_not_flying_lands(self):
        path = construct_path((25, 0, 8), (25, 0, 12), plateau_scene(), flying=False)
        assert_path(path, [(25, 0, 8), (25, 0, 5)])

    def test_not_burrowing_surfaces(self):
        path = construct_path((25, 0, 8), (25, 0, 1), plateau_scene(), burrowing=False)
        assert_path(path, [(25, 0, 8), (25, 0, 5)])

    def test_unconstrained(self):
        path = construct_path((25, 0, 8), (25, 0, 12), plateau_scene())
        assert_path(path, [(25, 0, 8), (25, 0, 12)])


class TestHoles:

    def gap_scene(self):
        alpha = np.full((10, 40), 255, dtype=np.uint8)
        alpha[:, 18:22] = 0
        tile = Tile(0, -5, 40, 10, 3.0, alpha=alpha, test_holes=True)
        return SceneContext(tiles=[tile], config=SceneContext().config.updated(hole_percent=1.0))

    def test_small_mover_drops_through(self):
        path = construct_path((5, 0, 3), (35, 0, 3), self.gap_scene(), mover=Mover(2, 2))
        assert min(w.elevation for w in path) == 0.0

    def test_large_mover_walks_across(self):
        path = construct_path((5, 0, 3), (35, 0, 3), self.gap_scene(), mover=Mover(3, 3))
        assert_path(path, [(5, 0, 3), (35, 0, 3)])

    @pytest.mark.parametrize("size, drop_at", [(2, 9.0), (3, 10.0), (4, None)])
    def test_circular_perforation(self, size, drop_at):
        # the field peaks at the disc radius, 3
        tile = Tile(0, -10.5, 21, 21, 3.0, alpha=disc_alpha(3), test_holes=True)
        scene = SceneContext(tiles=[tile], config=SceneContext().config.updated(hole_percent=1.0))
        path = construct_path((2, 0, 3), (19, 0, 3), scene, mover=Mover(size, size))
        if drop_at is None:
            assert_path(path, [(2, 0, 3), (19, 0, 3)])
        else:
            assert_path(path, [(2, 0, 3), (drop_at, 0, 3), (drop_at, 0, 0), (19, 0, 0)])


class TestPathWalker:

    polys = combine_cutaways(
        [CutawayPolygon([(21, MIN_ELEV), (21, 5), (31, 5), (31, MIN_ELEV)])], 0.0, 102.0)

    def test_walk(self):
        walker = PathWalker(self.polys, (1, 0), (101, 0))
        points = walker.run()
        assert walker.complete
        expected = [(1, 0), (21, 0), (21, 5), (31, 5), (31, 0), (101, 0)]
        assert len(points) == len(expected)
        for p, e in zip(points, expected):
            assert math.isclose(p[0], e[0]) and math.isclose(p[1], e[1], abs_tol=1e-9)

    def test_iteration_cap(self, caplog):
        walker = PathWalker(self.polys, (1, 0), (101, 0), max_iterations=1)
        with caplog.at_level(logging.CRITICAL, logger="terrainmapper.path"):
            points = walker.run()
        assert not walker.complete
        assert points[0] == (1.0, 0.0)
        assert "did not finish" in caplog.text

    def test_iteration_budget(self):
        walker = PathWalker(self.polys, (1, 0), (101, 0), iteration_factor=2, iteration_floor=5)
        assert walker.max_iterations == 2 * len(self.polys[0]) + 5

    @pytest.mark.parametrize("mode", list(MovementMode))
    def test_start_is_first(self, mode):
        walker = PathWalker(self.polys, (1, 0), (101, 0), mode)
        assert walker.run()[0] == (1.0, 0.0)
