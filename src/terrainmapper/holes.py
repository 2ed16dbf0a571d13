## hole distance fields for floor tiles
## Copyright (c) 2026 The terrainmapper authors

# Permission is hereby granted, free of charge, to any person
# obtaining a copy of this software and associated documentation files
# (the "Software"), to deal in the Software without restriction,
# including without limitation the rights to use, copy, modify, merge,
# publish, distribute, sublicense, and/or sell copies of the Software,
# and to permit persons to whom the Software is furnished to do so,
# subject to the following conditions:
#
# The above copyright notice and this permission notice shall be
# included in all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND,
# EXPRESS OR IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF
# MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND
# NONINFRINGEMENT. IN NO EVENT SHALL THE AUTHORS OR COPYRIGHT HOLDERS
# BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER LIABILITY, WHETHER IN AN
# ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM, OUT OF OR IN
# CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

"""Hole distance fields.

For every pixel of a tile's alpha image, the hole field records the
number of 8-connected steps to the nearest solid pixel.  Solid pixels
hold 0; pixels with no solid pixel anywhere saturate at ``SATURATION``.
A gap counts as a hole for a mover when the field reaches the mover's
hole threshold somewhere along its path.

The field is built by relaxation: every non-solid pixel repeatedly
takes ``1 + min(neighbours)`` until nothing changes.  The whole grid is
updated per step with numpy, so the number of steps equals the largest
finite distance in the image.

``build_hole_field`` is synchronous.  ``submit_hole_field`` hands a
private copy of the pixels to an executor and returns a future; an
optional ``threading.Event`` cancels the build between steps.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)

SATURATION = 65535
MAX_ITERATIONS = 1000


class HoleFieldCancelled(Exception):
    """Raised inside a hole field build whose cancel event was set."""


def _as_grid(values, width: int) -> np.ndarray:
    flat = np.asarray(values).ravel()
    if width <= 0:
        raise ValueError('width must be positive')
    if flat.size % width:
        raise ValueError(f'buffer of {flat.size} values is not a multiple of width {width}')
    return flat.reshape(flat.size // width, width)


def _relax(field: np.ndarray, max_iterations: int,
           cancel: Optional[threading.Event]) -> np.ndarray:
    h, w = field.shape
    for i in range(max_iterations):
        if cancel is not None and cancel.is_set():
            raise HoleFieldCancelled('hole field build cancelled')
        padded = np.pad(field, 1, mode='constant', constant_values=SATURATION)
        nmin = np.full_like(field, SATURATION)
        for dy in (0, 1, 2):
            for dx in (0, 1, 2):
                if dy == 1 and dx == 1:
                    continue
                np.minimum(nmin, padded[dy:dy + h, dx:dx + w], out=nmin)
        updated = np.where(field > 0, np.minimum(SATURATION, nmin + 1), 0)
        if np.array_equal(updated, field):
            logger.debug('hole field %dx%d converged after %d iterations', w, h, i + 1)
            return field
        field = updated
    logger.critical('hole field %dx%d did not converge within %d iterations',
                    w, h, max_iterations)
    return field


def build_hole_field(pixels, width: int, alpha_threshold: float,
                     max_iterations: int = MAX_ITERATIONS,
                     cancel: Optional[threading.Event] = None) -> np.ndarray:
    """Build the hole distance field for a flat alpha buffer.

    ``alpha_threshold`` is in pixel units: pixels strictly above it are
    solid.  Returns a flat ``uint16`` array the size of ``pixels``.
    """

    grid = _as_grid(pixels, width)
    field = np.where(grid > alpha_threshold, 0, SATURATION).astype(np.int32)
    field = _relax(field, max_iterations, cancel)
    return field.astype(np.uint16).ravel()


def relax_hole_field(field, width: int, max_iterations: int = MAX_ITERATIONS,
                     cancel: Optional[threading.Event] = None) -> np.ndarray:
    """Run the relaxation on an existing field; a converged field comes
    back unchanged."""

    grid = _as_grid(field, width).astype(np.int32)
    return _relax(grid, max_iterations, cancel).astype(np.uint16).ravel()


def submit_hole_field(executor: Executor, pixels, width: int, alpha_threshold: float,
                      max_iterations: int = MAX_ITERATIONS,
                      cancel: Optional[threading.Event] = None) -> Future:
    """Schedule ``build_hole_field`` on ``executor`` with a private copy of
    ``pixels``."""

    snapshot = np.array(pixels, copy=True)
    return executor.submit(build_hole_field, snapshot, width, alpha_threshold,
                           max_iterations, cancel)
