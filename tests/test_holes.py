import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor

import numpy as np
import pytest

from terrainmapper.holes import (
    SATURATION,
    HoleFieldCancelled,
    build_hole_field,
    relax_hole_field,
    submit_hole_field,
)

THRESHOLD = 191.25


class DeferredExecutor(Executor):
    """Executor that runs submitted work only when told to."""

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


def single_solid(size=5):
    pixels = np.zeros(size * size, dtype=np.uint8)
    pixels[(size // 2) * size + size // 2] = 255
    return pixels


def chebyshev(size=5):
    c = size // 2
    rows, cols = np.indices((size, size))
    return np.maximum(abs(rows - c), abs(cols - c))


def test_distance_to_single_solid_pixel():
    field = build_hole_field(single_solid(), 5, THRESHOLD)
    assert field.dtype == np.uint16
    assert field.shape == (25,)
    assert np.array_equal(field.reshape(5, 5), chebyshev())


def test_no_solid_pixels_saturate():
    field = build_hole_field(np.zeros(12, dtype=np.uint8), 4, THRESHOLD)
    assert np.all(field == SATURATION)


def test_all_solid():
    field = build_hole_field(np.full(12, 255, dtype=np.uint8), 4, THRESHOLD)
    assert np.all(field == 0)


def test_threshold_is_strict():
    pixels = np.array([THRESHOLD, 255.0, 0.0])
    field = build_hole_field(pixels, 3, THRESHOLD)
    assert list(field) == [1, 0, 1]


def test_relaxing_converged_field_is_a_no_op():
    field = build_hole_field(single_solid(7), 7, THRESHOLD)
    assert np.array_equal(relax_hole_field(field, 7), field)


def test_bad_width():
    with pytest.raises(ValueError):
        build_hole_field(np.zeros(10), 3, THRESHOLD)
    with pytest.raises(ValueError):
        build_hole_field(np.zeros(10), 0, THRESHOLD)


def test_iteration_cap_is_reported(caplog):
    with caplog.at_level(logging.CRITICAL, logger="terrainmapper.holes"):
        field = build_hole_field(single_solid(), 5, THRESHOLD, max_iterations=1)
    assert "did not converge" in caplog.text
    grid = field.reshape(5, 5)
    assert grid[2, 2] == 0
    assert grid[1, 1] == 1
    assert grid[0, 0] == SATURATION


def test_cancelled_build():
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(HoleFieldCancelled):
        build_hole_field(single_solid(), 5, THRESHOLD, cancel=cancel)


def test_future_matches_synchronous_build():
    pixels = single_solid()
    with ThreadPoolExecutor(max_workers=1) as executor:
        future = submit_hole_field(executor, pixels, 5, THRESHOLD)
        field = future.result(timeout=30)
    assert np.array_equal(field, build_hole_field(pixels, 5, THRESHOLD))


def test_future_works_on_a_snapshot():
    pixels = single_solid()
    executor = DeferredExecutor()
    future = submit_hole_field(executor, pixels, 5, THRESHOLD)
    pixels[:] = 0
    executor.run()
    assert np.array_equal(future.result().reshape(5, 5), chebyshev())


def test_future_cancelled_before_running():
    cancel = threading.Event()
    executor = DeferredExecutor()
    future = submit_hole_field(executor, single_solid(), 5, THRESHOLD, cancel=cancel)
    cancel.set()
    executor.run()
    assert isinstance(future.exception(), HoleFieldCancelled)
