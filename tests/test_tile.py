import math
import threading
from concurrent.futures import Executor, Future

import numpy as np
import pytest

from terrainmapper.holes import HoleFieldCancelled
from terrainmapper.scene import Mover
from terrainmapper.terrain import ElevationAlgorithm
from terrainmapper.tile import Tile


class DeferredExecutor(Executor):

    def __init__(self):
        self.jobs = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.jobs.append((future, fn, args, kwargs))
        return future

    def run(self):
        for future, fn, args, kwargs in self.jobs:
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as exc:
                future.set_exception(exc)
        self.jobs = []


def gap_alpha():
    """10x10 opaque image with a four pixel wide transparent band in
    columns 3 to 6; the hole field peaks at 2 in the middle of the band."""
    alpha = np.full((10, 10), 255, dtype=np.uint8)
    alpha[:, 3:7] = 0
    return alpha


def gap_tile(**kw):
    return Tile(0, -5, 10, 10, elevation=2.0, alpha=gap_alpha(), test_holes=True, **kw)


def notch_tile():
    """20x10 opaque tile with a four row notch open to the right edge;
    the field along row 5 is 1 at column 12 and 2 from there out."""
    alpha = np.full((10, 20), 255, dtype=np.uint8)
    alpha[3:7, 12:] = 0
    return Tile(0, -5, 20, 10, elevation=2.0, alpha=alpha, test_holes=True)


def disc_alpha(radius=3, size=21):
    """Opaque square with a transparent disc around the centre pixel;
    the field peaks at ``radius`` in the centre."""
    rows, cols = np.ogrid[:size, :size]
    c = size // 2
    alpha = np.full((size, size), 255, dtype=np.uint8)
    alpha[(rows - c) ** 2 + (cols - c) ** 2 <= radius * radius] = 0
    return alpha


def bounds_close(a, b):
    return all(math.isclose(x, y, abs_tol=1e-9) for x, y in zip(a, b))


class TestGeometry:

    def test_invalid(self):
        with pytest.raises(ValueError):
            Tile(0, 0, 0, 1, 1.0)
        with pytest.raises(ValueError):
            Tile(0, 0, 1, 1, 1.0, alpha_threshold=1.5)
        with pytest.raises(ValueError):
            Tile(0, 0, 1, 1, 1.0, alpha=np.zeros(4))

    def test_footprint(self):
        tile = Tile(0, -5, 10, 10, 2.0)
        assert bounds_close(tile.shape.bounds, (0, -5, 10, 5))
        assert tile.profile.algorithm is ElevationAlgorithm.FLOOR_SLAB
        assert tile.profile.elevation == 2.0

    def test_rotated_footprint(self):
        tile = Tile(0, 0, 10, 4, 1.0, rotation=90)
        assert bounds_close(tile.shape.bounds, (3, -3, 7, 7))

    def test_local_round_trip(self):
        tile = Tile(3, 4, 10, 6, 1.0, rotation=30, alpha=np.zeros((12, 20)))
        col, row = tile.to_local((7.5, 6.0))
        x, y = tile.to_canvas(col, row)
        assert math.isclose(x, 7.5) and math.isclose(y, 6.0)
        assert math.isclose(tile.resolution, 2.0)

    def test_trim_border(self):
        alpha = np.zeros((10, 10), dtype=np.uint8)
        alpha[1:3, 2:5] = 255
        tile = Tile(0, 0, 10, 10, 1.0, alpha=alpha, trim_border=True)
        assert bounds_close(tile.shape.bounds, (2, 1, 5, 3))
        assert not Tile(0, 0, 10, 10, 1.0, alpha=alpha).shape.is_empty

    def test_transparent_tile_is_missing(self):
        tile = Tile(0, 0, 10, 10, 1.0, alpha=np.zeros((4, 4)), trim_border=True)
        assert tile.alpha_border() is None
        assert not tile.bounds_intersect_segment((-1, 5), (11, 5))
        assert tile.cutaway((-1, 5), (11, 5)) is None

    def test_float_alpha(self):
        tile = Tile(0, 0, 2, 2, 1.0, alpha=np.ones((2, 2), dtype=np.float32))
        assert tile.max_pixel_value == 1.0
        assert math.isclose(tile.alpha_pixel_threshold, 0.75)

    def test_elevated(self):
        assert Tile(0, 0, 1, 1, 2.0).is_elevated(0.0)
        assert not Tile(0, 0, 1, 1, 0.0).is_elevated(0.0)
        assert not Tile(0, 0, 1, 1, 2.0, is_floor=False).is_elevated(0.0)


class TestHoles:

    def test_field(self):
        field = gap_tile().hole_field
        assert list(field[5]) == [0, 0, 0, 1, 2, 2, 1, 0, 0, 0]

    def test_hole_at_peak_value(self):
        tile = gap_tile()
        # threshold = max(w, h) * percent * resolution = 2 = field peak
        assert tile.hole_threshold(Mover(2, 2), 1.0) == 2.0
        assert not tile.point_on_tile((4.5, 0), Mover(2, 2), 1.0)
        spans = tile.solid_spans((-1, 0), (11, 0), Mover(2, 2), 1.0)
        assert len(spans) == 2
        assert math.isclose(spans[0][0], 1.0) and math.isclose(spans[0][1], 5.0)
        assert math.isclose(spans[1][0], 7.0) and math.isclose(spans[1][1], 11.0)

    def test_solid_above_peak_value(self):
        tile = gap_tile()
        assert tile.point_on_tile((4.5, 0), Mover(3, 3), 1.0)
        spans = tile.solid_spans((-1, 0), (11, 0), Mover(3, 3), 1.0)
        assert len(spans) == 1
        assert math.isclose(spans[0][0], 1.0) and math.isclose(spans[0][1], 11.0)

    def test_no_hole_testing_without_mover(self):
        tile = gap_tile()
        assert tile.point_on_tile((4.5, 0))
        assert len(tile.solid_spans((-1, 0), (11, 0))) == 1

    def test_cutaway_slabs(self):
        slabs = gap_tile().cutaway((-1, 0), (11, 0), Mover(2, 2), 1.0, slab_thickness=0.5)
        assert len(slabs) == 2
        for slab in slabs:
            assert math.isclose(slab.ymax, 2.0)
            assert math.isclose(slab.ymin, 1.5)

    def test_waypoint_on_tile(self):
        tile = gap_tile()
        assert tile.waypoint_on_tile((1, 0, 2.0))
        assert not tile.waypoint_on_tile((1, 0, 3.0))
        assert not tile.waypoint_on_tile((20, 0, 2.0))


class TestCircularPerforation:

    def disc_tile(self):
        return Tile(0, -10.5, 21, 21, elevation=2.0, alpha=disc_alpha(), test_holes=True)

    def test_field_peaks_at_radius(self):
        field = self.disc_tile().hole_field
        assert list(field[10, 6:15]) == [0, 1, 1, 2, 3, 2, 1, 1, 0]

    @pytest.mark.parametrize("threshold, is_hole", [(2, True), (3, True), (4, False)])
    def test_threshold_around_radius(self, threshold, is_hole):
        tile = self.disc_tile()
        mover = Mover(threshold, threshold)
        assert tile.hole_threshold(mover, 1.0) == threshold
        assert tile.point_on_tile((10.5, 0), mover, 1.0) == (not is_hole)
        spans = tile.solid_spans((-1, 0), (22, 0), mover, 1.0)
        assert len(spans) == (2 if is_hole else 1)
        centre = 11.5
        assert any(d0 < centre < d1 for d0, d1 in spans) == (not is_hole)


class TestOuterHoles:

    def test_notch_field(self):
        assert list(notch_tile().hole_field[5, 10:]) == [0, 0, 1, 2, 2, 2, 2, 2, 2, 2]

    def test_notch_open_to_edge_stays_a_hole(self):
        positions = notch_tile().hole_positions((0, 0), (30, 0), 2)
        assert [hole for _, hole in positions] == [False, True, False, True]
        for (d, _), expected in zip(positions, [0.0, 13.0, 20.0, 20.0]):
            assert math.isclose(d, expected, abs_tol=1e-9)

    def test_solid_lip_holds_near_the_edge(self):
        positions = notch_tile().hole_positions((0, 0), (30, 0), 3)
        assert [hole for _, hole in positions] == [False, True]
        assert math.isclose(positions[1][0], 22.0)

    def test_notch_spans(self):
        spans = notch_tile().solid_spans((0, 0), (30, 0), Mover(2, 2), 1.0)
        assert len(spans) == 1
        assert math.isclose(spans[0][0], 0.0, abs_tol=1e-9)
        assert math.isclose(spans[0][1], 13.0)

    def test_hole_testing_stops_at_alpha_border(self):
        alpha = np.full((10, 20), 255, dtype=np.uint8)
        alpha[:, 15:] = 0
        tile = Tile(0, -5, 20, 10, elevation=2.0, alpha=alpha, test_holes=True)
        spans = tile.solid_spans((-1, 0), (21, 0))
        assert len(spans) == 1 and math.isclose(spans[0][1], 21.0)
        spans = tile.solid_spans((-1, 0), (21, 0), Mover(10, 10), 1.0)
        assert len(spans) == 1 and math.isclose(spans[0][1], 16.0)
        assert tile.point_on_tile((17, 0))
        assert not tile.point_on_tile((17, 0), Mover(10, 10), 1.0)


class TestInvalidation:

    def test_alpha_change_rebuilds_field(self):
        tile = gap_tile()
        assert tile.hole_field[5, 4] == 2
        tile.alpha = np.full((10, 10), 255, dtype=np.uint8)
        assert tile.hole_field[5, 4] == 0

    def test_threshold_change_rebuilds_field(self):
        alpha = gap_alpha()
        alpha[:, 3:7] = 100
        tile = Tile(0, -5, 10, 10, 2.0, alpha=alpha)
        assert tile.hole_field[5, 4] == 2
        tile.alpha_threshold = 0.25
        assert tile.hole_field[5, 4] == 0

    def test_future_installs_result(self):
        tile = gap_tile()
        executor = DeferredExecutor()
        future = tile.hole_field_future(executor)
        assert tile.hole_field_future(executor) is future
        executor.run()
        assert future.result()[54] == 2
        assert tile.hole_field_future(executor).done()

    def test_mark_dirty_cancels_pending_build(self):
        tile = gap_tile()
        executor = DeferredExecutor()
        future = tile.hole_field_future(executor)
        tile.mark_dirty()
        executor.run()
        assert isinstance(future.exception(), HoleFieldCancelled)
        # a fresh synchronous build still works
        assert tile.hole_field[5, 4] == 2

    def test_future_without_alpha(self):
        with pytest.raises(ValueError):
            Tile(0, 0, 1, 1, 1.0).hole_field_future(DeferredExecutor())

    def test_delete(self):
        tile = gap_tile()
        tile.delete()
        assert tile.deleted
