## floor tiles with alpha footprints and hole detection
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

"""Floor tiles.

A tile is a rectangle, given by its top-left corner, size and rotation
in degrees about its centre, lying flat at one elevation.  Its alpha
image (a 2D numpy array, rows by columns) spans the unrotated
rectangle.  Pixels whose alpha is above ``alpha_threshold`` times the
maximum pixel value are solid.

In cutaway space a tile is one or more thin slabs.  With
``trim_border`` the slab is limited to the bounding box of the solid
pixels.  With ``test_holes`` the slab is split wherever the line
crosses a gap that is wide enough for the mover to drop through, as
measured by the tile's hole distance field (see
``terrainmapper.holes``).
"""

from __future__ import annotations

import logging
import math
import threading
from concurrent.futures import Executor, Future
from typing import List, Optional, Tuple

import numpy as np
from shapely.geometry import LineString, Point, Polygon

from terrainmapper.cutaway import CutawayPolygon
from terrainmapper.geom import alongXY, bresenham, close, dist, epsilon
from terrainmapper.holes import MAX_ITERATIONS, build_hole_field, submit_hole_field
from terrainmapper.terrain import FloorSlab
from terrainmapper.waypoint import Waypoint

logger = logging.getLogger(__name__)


class Tile:
    """An overhead tile acting as a floor at ``elevation``."""

    def __init__(self, x: float, y: float, width: float, height: float, elevation: float,
                 rotation: float = 0.0, is_floor: bool = True, alpha=None,
                 alpha_threshold: float = 0.75, trim_border: bool = False,
                 test_holes: bool = False, name: str = ""):
        if width <= 0 or height <= 0:
            raise ValueError('tile width and height must be positive')
        if not 0.0 <= alpha_threshold <= 1.0:
            raise ValueError('alpha_threshold must lie in [0, 1]')
        self.name = name
        self.x = float(x)
        self.y = float(y)
        self.width = float(width)
        self.height = float(height)
        self.elevation = float(elevation)
        self.rotation = float(rotation)
        self.is_floor = is_floor
        self.trim_border = trim_border
        self.test_holes = test_holes
        self._alpha = self._check_alpha(alpha)
        self._alpha_threshold = float(alpha_threshold)
        self._lock = threading.Lock()
        self._generation = 0
        self._hole_field: Optional[np.ndarray] = None
        self._pending: Optional[Future] = None
        self._cancel: Optional[threading.Event] = None
        self.max_iterations = MAX_ITERATIONS
        self._shape: Optional[Polygon] = None
        self._border_shape: Optional[Polygon] = None
        self.deleted = False

    def __repr__(self):
        return f"Tile({self.name!r}, elevation={self.elevation})"

    @staticmethod
    def _check_alpha(alpha):
        if alpha is None:
            return None
        alpha = np.asarray(alpha)
        if alpha.ndim != 2 or alpha.size == 0:
            raise ValueError('tile alpha must be a non-empty 2D array')
        return alpha

    ## cached data and invalidation

    @property
    def alpha(self):
        return self._alpha

    @alpha.setter
    def alpha(self, value):
        alpha = self._check_alpha(value)
        with self._lock:
            self._alpha = alpha
            self._invalidate()

    @property
    def alpha_threshold(self) -> float:
        return self._alpha_threshold

    @alpha_threshold.setter
    def alpha_threshold(self, value: float):
        if not 0.0 <= value <= 1.0:
            raise ValueError('alpha_threshold must lie in [0, 1]')
        with self._lock:
            self._alpha_threshold = float(value)
            self._invalidate()

    def mark_dirty(self) -> None:
        """Drop the footprint and hole field; cancel any build in flight."""
        with self._lock:
            self._invalidate()

    def _invalidate(self) -> None:
        # caller holds the lock
        self._generation += 1
        if self._cancel is not None:
            self._cancel.set()
        self._cancel = None
        self._pending = None
        self._hole_field = None
        self._shape = None
        self._border_shape = None

    def configure(self, config) -> None:
        """Take the alpha threshold and hole field iteration cap from a
        ``TerrainConfig``."""
        self.max_iterations = config.hole_max_iterations
        self.alpha_threshold = config.alpha_threshold

    def delete(self) -> None:
        self.mark_dirty()
        self.deleted = True

    @property
    def profile(self) -> FloorSlab:
        return FloorSlab(self.elevation, holes=self.test_holes)

    ## pixel geometry

    @property
    def max_pixel_value(self) -> float:
        if self._alpha is not None and np.issubdtype(self._alpha.dtype, np.floating):
            return 1.0
        return 255.0

    @property
    def alpha_pixel_threshold(self) -> float:
        return self.max_pixel_value * self._alpha_threshold

    @property
    def pixel_width(self) -> int:
        return self._alpha.shape[1] if self._alpha is not None else int(math.ceil(self.width))

    @property
    def pixel_height(self) -> int:
        return self._alpha.shape[0] if self._alpha is not None else int(math.ceil(self.height))

    @property
    def resolution(self) -> float:
        """Image pixels per canvas unit."""
        if self._alpha is None:
            return 1.0
        return self._alpha.shape[1] / self.width

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width * 0.5, self.y + self.height * 0.5)

    def to_local(self, p) -> Tuple[float, float]:
        """Canvas point to fractional ``(column, row)`` image coordinates."""
        cx, cy = self.center
        dx, dy = p[0] - cx, p[1] - cy
        theta = math.radians(self.rotation)
        c, s = math.cos(theta), math.sin(theta)
        u = dx * c + dy * s
        v = -dx * s + dy * c
        return ((u + self.width * 0.5) * self.pixel_width / self.width,
                (v + self.height * 0.5) * self.pixel_height / self.height)

    def to_canvas(self, col: float, row: float) -> Tuple[float, float]:
        u = col * self.width / self.pixel_width - self.width * 0.5
        v = row * self.height / self.pixel_height - self.height * 0.5
        theta = math.radians(self.rotation)
        c, s = math.cos(theta), math.sin(theta)
        cx, cy = self.center
        return (cx + u * c - v * s, cy + u * s + v * c)

    def _local_rect(self, c0, r0, c1, r1):
        return [self.to_canvas(c0, r0), self.to_canvas(c1, r0),
                self.to_canvas(c1, r1), self.to_canvas(c0, r1)]

    def footprint(self) -> List[Tuple[float, float]]:
        """Corners of the full tile rectangle on the canvas."""
        return self._local_rect(0, 0, self.pixel_width, self.pixel_height)

    def alpha_border(self) -> Optional[List[Tuple[float, float]]]:
        """Corners of the bounding box of solid pixels, or ``None`` if
        the tile has none."""

        if self._alpha is None:
            return self.footprint()
        box = self.solid_box()
        if box is None:
            return None
        return self._local_rect(*box)

    def solid_box(self) -> Optional[Tuple[int, int, int, int]]:
        """``(col0, row0, col1, row1)`` pixel bounds of the solid pixels,
        end exclusive."""

        if self._alpha is None:
            return (0, 0, self.pixel_width, self.pixel_height)
        rows, cols = np.nonzero(self._alpha > self.alpha_pixel_threshold)
        if rows.size == 0:
            return None
        return (int(cols.min()), int(rows.min()), int(cols.max()) + 1, int(rows.max()) + 1)

    @property
    def shape(self) -> Polygon:
        """Usable footprint: the alpha border when trimming, else the rectangle."""
        shape = self._shape
        if shape is None:
            corners = self.alpha_border() if self.trim_border else self.footprint()
            shape = Polygon(corners) if corners else Polygon()
            self._shape = shape
        return shape

    @property
    def border_shape(self) -> Polygon:
        """The alpha border as a polygon; hole testing never reaches past it."""
        shape = self._border_shape
        if shape is None:
            corners = self.alpha_border()
            shape = Polygon(corners) if corners else Polygon()
            self._border_shape = shape
        return shape

    def _tests_holes(self, mover) -> bool:
        return mover is not None and self.test_holes and self._alpha is not None

    def is_elevated(self, baseline: float) -> bool:
        return self.is_floor and not close(self.elevation, baseline)

    def bounds_intersect_segment(self, a, b) -> bool:
        shape = self.shape
        if shape.is_empty:
            return False
        a = Waypoint.coerce(a).to_2d()
        b = Waypoint.coerce(b).to_2d()
        return shape.intersects(LineString([a, b]) if a != b else Point(a))

    ## hole field

    @property
    def hole_field(self) -> Optional[np.ndarray]:
        """The hole distance field as a (rows, columns) array, built on
        first use."""

        with self._lock:
            alpha = self._alpha
            threshold = self.alpha_pixel_threshold
            field = self._hole_field
            generation = self._generation
        if alpha is None:
            return None
        if field is None:
            field = build_hole_field(alpha.ravel(), alpha.shape[1], threshold,
                                     self.max_iterations)
            with self._lock:
                if generation == self._generation:
                    self._hole_field = field
        return field.reshape(alpha.shape)

    def hole_field_future(self, executor: Executor,
                          max_iterations: Optional[int] = None) -> Future:
        """Build the hole field on ``executor``.  The result is installed
        on the tile when it completes unless the tile changed meanwhile."""

        with self._lock:
            if self._alpha is None:
                raise ValueError(f'{self!r} has no alpha image')
            if self._hole_field is not None:
                done = Future()
                done.set_result(self._hole_field)
                return done
            if self._pending is not None:
                return self._pending
            if max_iterations is None:
                max_iterations = self.max_iterations
            cancel = threading.Event()
            generation = self._generation
            future = submit_hole_field(executor, self._alpha.ravel(), self.pixel_width,
                                       self.alpha_pixel_threshold, max_iterations, cancel)
            self._pending = future
            self._cancel = cancel
        future.add_done_callback(lambda f: self._install(f, generation))
        return future

    def _install(self, future: Future, generation: int) -> None:
        with self._lock:
            if self._pending is future:
                self._pending = None
                self._cancel = None
            if generation != self._generation or future.cancelled():
                return
            if future.exception() is not None:
                logger.error('%r: hole field build failed: %s', self, future.exception())
                return
            self._hole_field = future.result()

    def hole_threshold(self, mover, percent: float) -> float:
        """Smallest hole field value, in image pixels, that counts as a hole
        for ``mover``."""
        return max(mover.width, mover.height) * percent * self.resolution

    def _pixel(self, p) -> Optional[Tuple[int, int]]:
        col, row = self.to_local(p)
        c, r = int(math.floor(col)), int(math.floor(row))
        if 0 <= c < self.pixel_width and 0 <= r < self.pixel_height:
            return c, r
        return None

    def point_on_tile(self, location, mover=None, hole_percent: float = 0.25) -> bool:
        """Would a mover standing at ``location`` (x, y only) be supported?"""

        loc = Waypoint.coerce(location).to_2d()
        holes = self._tests_holes(mover)
        shape = self.border_shape if holes else self.shape
        if shape.is_empty or not shape.covers(Point(loc)):
            return False
        if not holes:
            return True
        px = self._pixel(loc)
        if px is None:
            return True
        return bool(self.hole_field[px[1], px[0]] < self.hole_threshold(mover, hole_percent))

    def waypoint_on_tile(self, w, mover=None, hole_percent: float = 0.25) -> bool:
        w = Waypoint.coerce(w)
        if not close(w.elevation, self.elevation):
            return False
        return self.point_on_tile(w, mover, hole_percent)

    ## transitions along a line

    @staticmethod
    def _intervals(shape: Polygon, a, b) -> List[Tuple[float, float]]:
        """Distance intervals along ``a -> b`` that lie within ``shape``."""

        if shape.is_empty:
            return []
        inter = shape.intersection(LineString([a, b]))
        out = []
        for piece in getattr(inter, 'geoms', [inter]):
            if piece.is_empty or not isinstance(piece, LineString):
                continue
            coords = list(piece.coords)
            d0 = alongXY(a, b, coords[0])
            d1 = alongXY(a, b, coords[-1])
            if d1 < d0:
                d0, d1 = d1, d0
            if d1 - d0 > epsilon:
                out.append((d0, d1))
        out.sort()
        return out

    def border_positions(self, start, end, trimmed: bool = False) -> List[Tuple[float, bool]]:
        """``(distance, entering)`` where ``start -> end`` crosses the
        usable footprint, or the alpha border when ``trimmed``."""

        a = Waypoint.coerce(start).to_2d()
        b = Waypoint.coerce(end).to_2d()
        out = []
        for d0, d1 in self._intervals(self.border_shape if trimmed else self.shape, a, b):
            out.append((d0, True))
            out.append((d1, False))
        return out

    def _cells(self, a, b, d0, d1):
        """Pixels on the line between distances ``d0`` and ``d1``, with the
        distance of each pixel centre."""

        length = dist(a, b)
        p0 = (a[0] + (b[0] - a[0]) * d0 / length, a[1] + (b[1] - a[1]) * d0 / length)
        p1 = (a[0] + (b[0] - a[0]) * d1 / length, a[1] + (b[1] - a[1]) * d1 / length)
        for col, row in bresenham(self.to_local(p0), self.to_local(p1)):
            yield col, row, alongXY(a, b, self.to_canvas(col + 0.5, row + 0.5))

    @staticmethod
    def _outer_hole(field, box, col: int, row: int, threshold: float) -> bool:
        """Is the pixel at ``col, row``, outside ``box``, a hole?

        It is when it lies ``threshold`` or more pixels from the border,
        or when every border pixel within half a threshold of its nearest
        border point is far enough from solid ground to make up the rest.
        """

        c0, r0, c1, r1 = box
        cc = min(max(col, c0), c1 - 1)
        rr = min(max(row, r0), r1 - 1)
        target = threshold - math.ceil(math.hypot(col - cc, row - rr))
        if target < 1:
            return True
        half = int(math.ceil(threshold * 0.5))
        if col < c0 or col >= c1:
            window = field[max(r0, rr - half):min(r1, rr + half + 1), cc]
        else:
            window = field[rr, max(c0, cc - half):min(c1, cc + half + 1)]
        return bool(window.min() >= target)

    def hole_positions(self, start, end, threshold: float) -> List[Tuple[float, bool]]:
        """``(distance, hole_start)`` where the line enters or leaves a hole.

        Inside the alpha border the hole field is walked pixel by pixel
        along the line.  A hole starts where the field rises to
        ``threshold`` and ends where it falls below it again, and the
        state where the line crosses into the border is always reported.

        Outside the border the line is a hole except near the edge, where
        ``_outer_hole`` extends the field outward.  A gap that opens onto
        the edge therefore stays a hole out past the border.
        """

        if self._alpha is None:
            return []
        box = self.solid_box()
        if box is None:
            return []
        a = Waypoint.coerce(start).to_2d()
        b = Waypoint.coerce(end).to_2d()
        if close(dist(a, b), 0.0):
            return []
        field = self.hole_field
        c0, r0, c1, r1 = box

        def inside(col, row):
            return c0 <= col < c1 and r0 <= row < r1

        out = []
        for d0, d1 in self._intervals(self.border_shape, a, b):
            prev = None
            prev_d = d0
            for col, row, d in self._cells(a, b, d0, d1):
                if not inside(col, row):
                    continue
                value = int(field[row, col])
                if prev is None:
                    out.append((d0, value >= threshold))
                elif prev < threshold <= value:
                    out.append(((prev_d + d) * 0.5, True))
                elif prev >= threshold > value:
                    out.append(((prev_d + d) * 0.5, False))
                prev = value
                prev_d = d
            if prev is not None and prev >= threshold:
                out.append((d1, False))

        pad = int(math.ceil(threshold))
        near = Polygon(self._local_rect(c0 - pad, r0 - pad, c1 + pad, r1 + pad))
        for d0, d1 in self._intervals(near, a, b):
            in_hole = True
            prev_d = d0
            for col, row, d in self._cells(a, b, d0, d1):
                if inside(col, row):
                    # the walk above reports the border crossings
                    in_hole = False
                else:
                    hole = self._outer_hole(field, box, col, row, threshold)
                    if hole != in_hole:
                        out.append(((prev_d + d) * 0.5, hole))
                        in_hole = hole
                prev_d = d
        out.sort()
        return out

    def solid_spans(self, start, end, mover=None,
                    hole_percent: float = 0.25) -> List[Tuple[float, float]]:
        """Distance intervals along ``start -> end`` where the tile holds
        up ``mover``."""

        holes = self._tests_holes(mover)
        events = [(d, 0, entering) for d, entering in self.border_positions(start, end, holes)]
        if holes:
            threshold = self.hole_threshold(mover, hole_percent)
            events += [(d, 1, hole) for d, hole in self.hole_positions(start, end, threshold)]
        events.sort()

        spans = []
        on_border = False
        in_hole = False
        opened = None
        for d, kind, flag in events:
            if kind == 0:
                on_border = flag
            else:
                in_hole = flag
            solid = on_border and not in_hole
            if solid and opened is None:
                opened = d
            elif not solid and opened is not None:
                if d - opened > epsilon:
                    spans.append((opened, d))
                opened = None
        return spans

    def cutaway(self, start, end, mover=None, hole_percent: float = 0.25,
                slab_thickness: float = 1.0) -> Optional[List[CutawayPolygon]]:
        """Slabs, ``slab_thickness`` deep, where the line crosses solid tile."""

        spans = self.solid_spans(start, end, mover, hole_percent)
        if not spans:
            return None
        top = self.elevation
        bottom = top - slab_thickness
        return [CutawayPolygon([(d0, bottom), (d0, top), (d1, top), (d1, bottom)])
                for d0, d1 in spans]
