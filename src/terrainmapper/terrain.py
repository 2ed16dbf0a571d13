## terrain regions and their elevation profiles
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

"""Terrain regions: footprints with plateau or ramp elevation profiles.

A region's footprint is a list of rings in canvas coordinates.  Rings
with positive signed area are solid; rings with negative signed area are
holes cut out of the solid ones.  A region is a column of ground from
its ``bottom`` elevation up to the elevation its profile assigns to each
point of the footprint (its *entry elevation*).

Ramp directions are in degrees: 0 runs toward +y (south on a canvas
whose y axis points down), 90 toward -x (west), 180 toward -y (north)
and 270 toward +x (east).  A ramp rises from ``floor`` at the start of
its axis to ``plateau`` at the end, linearly or in steps of
``step_size``.
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from shapely.geometry import LineString, Point, Polygon, box
from shapely.ops import unary_union
from shapely.validation import make_valid

from terrainmapper.cutaway import CutawayPolygon
from terrainmapper.geom import MIN_ELEV, alongXY, clamp, close, dist, dot, epsilon, signedarea
from terrainmapper.waypoint import Waypoint

logger = logging.getLogger(__name__)


class ElevationAlgorithm(enum.Enum):
    NONE = "none"
    PLATEAU = "plateau"
    RAMP = "ramp"
    FLOOR_SLAB = "floor_slab"


@dataclass(frozen=True)
class NoProfile:
    """Inert region: no effect on elevation."""

    algorithm = ElevationAlgorithm.NONE


@dataclass(frozen=True)
class Plateau:
    elevation: float

    algorithm = ElevationAlgorithm.PLATEAU


@dataclass(frozen=True)
class Ramp:
    floor: float
    plateau: float
    direction: float = 0.0
    step_size: float = 0.0
    split_polygons: bool = False

    algorithm = ElevationAlgorithm.RAMP

    def __post_init__(self):
        if self.step_size < 0.0:
            raise ValueError('ramp step_size must not be negative')

    @property
    def axis(self) -> Tuple[float, float]:
        """Unit vector pointing from the ramp floor toward its plateau."""
        theta = math.radians(self.direction)
        return (-math.sin(theta), math.cos(theta))


@dataclass(frozen=True)
class FloorSlab:
    """Profile of a floor tile: a thin slab, optionally perforated."""

    elevation: float
    holes: bool = False

    algorithm = ElevationAlgorithm.FLOOR_SLAB


TerrainProfile = (NoProfile, Plateau, Ramp, FloorSlab)


def ideal_cutpoints(ramp: Ramp) -> List[Tuple[float, float]]:
    """``(t, elevation)`` step boundaries of a stepped ramp along its axis.

    With ``n = ceil(|plateau - floor| / step_size)`` boundaries, boundary
    ``i`` sits at ``t = (i+1)/(n+1)`` and raises the ramp to
    ``floor + (i+1)*step_size``, clamped to the plateau.
    """

    delta = ramp.plateau - ramp.floor
    if not ramp.step_size or close(delta, 0.0):
        return []
    n = int(math.ceil(abs(delta) / ramp.step_size))
    sign = 1.0 if delta > 0 else -1.0
    lo, hi = min(ramp.floor, ramp.plateau), max(ramp.floor, ramp.plateau)
    return [((i + 1) / (n + 1), clamp(ramp.floor + sign * (i + 1) * ramp.step_size, lo, hi))
            for i in range(n)]


def ramp_elevation(ramp: Ramp, t: float, cutpoints=None) -> float:
    """Elevation of ``ramp`` at axis fraction ``t``."""

    if t <= epsilon:
        return ramp.floor
    if t >= 1.0 - epsilon:
        return ramp.plateau
    if not ramp.step_size:
        return ramp.floor + t * (ramp.plateau - ramp.floor)
    if cutpoints is None:
        cutpoints = ideal_cutpoints(ramp)
    elev = ramp.floor
    for ti, ei in cutpoints:
        if ti > t + epsilon:
            break
        elev = ei
    return elev


@dataclass(frozen=True)
class RegionPart:
    """One connected piece of a footprint with its ramp axis extrema."""

    shape: Polygon
    axis_min: float
    axis_max: float


@dataclass(frozen=True)
class RegionCache:
    shape: object
    bounds: Tuple[float, float, float, float]
    parts: Tuple[RegionPart, ...]
    axis_min: float
    axis_max: float
    cutpoints: Tuple[Tuple[float, float], ...] = field(default_factory=tuple)


def _axis_extent(shape, axis) -> Tuple[float, float]:
    coords = list(shape.exterior.coords)
    proj = [dot(c, axis) for c in coords]
    return min(proj), max(proj)


class Region:
    """A terrain region: footprint rings plus an elevation profile.

    Derived data lives in a ``RegionCache`` that is rebuilt on demand
    after ``mark_dirty()``.  Assigning ``polygons``, ``profile`` or
    ``bottom`` marks the region dirty.
    """

    def __init__(self, polygons, profile=None, bottom: float = MIN_ELEV, name: str = ""):
        self.name = name
        self._polygons = self._check_polygons(polygons)
        self._profile = self._check_profile(profile)
        self._bottom = float(bottom)
        self._cache: Optional[RegionCache] = None

    def __repr__(self):
        return f"Region({self.name!r}, {self._profile!r})"

    @staticmethod
    def _check_profile(profile):
        if profile is None:
            return NoProfile()
        if not isinstance(profile, TerrainProfile):
            raise TypeError(f'{profile!r} is not a terrain profile')
        return profile

    @staticmethod
    def _check_polygons(polygons):
        rings = []
        for ring in polygons:
            pts = [(float(p[0]), float(p[1])) for p in ring]
            if len(pts) > 1 and pts[0] == pts[-1]:
                pts.pop()
            if len(pts) < 3:
                raise ValueError('region polygons need at least three points')
            rings.append(tuple(pts))
        return tuple(rings)

    ## mutation, always through mark_dirty

    @property
    def polygons(self):
        return self._polygons

    @polygons.setter
    def polygons(self, value):
        self._polygons = self._check_polygons(value)
        self.mark_dirty()

    @property
    def profile(self):
        return self._profile

    @profile.setter
    def profile(self, value):
        self._profile = self._check_profile(value)
        self.mark_dirty()

    @property
    def bottom(self) -> float:
        return self._bottom

    @bottom.setter
    def bottom(self, value: float):
        self._bottom = float(value)
        self.mark_dirty()

    def mark_dirty(self) -> None:
        self._cache = None

    @property
    def cache(self) -> RegionCache:
        cache = self._cache
        if cache is None:
            cache = self._build_cache()
            self._cache = cache
        return cache

    def _build_cache(self) -> RegionCache:
        solids = [Polygon(r) for r in self._polygons if signedarea(r) > 0.0]
        holes = [Polygon(r) for r in self._polygons if signedarea(r) < 0.0]
        shape = unary_union([make_valid(p) for p in solids]) if solids else Polygon()
        if holes and not shape.is_empty:
            shape = shape.difference(unary_union([make_valid(h) for h in holes]))
        if not shape.is_valid:
            shape = make_valid(shape)
        pieces = [g for g in getattr(shape, 'geoms', [shape])
                  if isinstance(g, Polygon) and not g.is_empty]

        axis = self._profile.axis if isinstance(self._profile, Ramp) else (0.0, 1.0)
        parts = []
        for piece in pieces:
            lo, hi = _axis_extent(piece, axis)
            parts.append(RegionPart(piece, lo, hi))
        if parts:
            axis_min = min(p.axis_min for p in parts)
            axis_max = max(p.axis_max for p in parts)
        else:
            axis_min = axis_max = 0.0
        cutpoints = tuple(ideal_cutpoints(self._profile)) if isinstance(self._profile, Ramp) else ()
        bounds = shape.bounds if not shape.is_empty else (0.0, 0.0, 0.0, 0.0)
        return RegionCache(shape, bounds, tuple(parts), axis_min, axis_max, cutpoints)

    ## queries

    @property
    def is_elevated(self) -> bool:
        return self._profile.algorithm is not ElevationAlgorithm.NONE and bool(self.cache.parts)

    @property
    def bounds(self):
        return self.cache.bounds

    def bounds_intersect_segment(self, a, b) -> bool:
        if not self.cache.parts:
            return False
        a = Waypoint.coerce(a).to_2d()
        b = Waypoint.coerce(b).to_2d()
        return box(*self.cache.bounds).intersects(LineString([a, b]) if a != b else Point(a))

    def footprint_contains(self, location) -> bool:
        loc = Waypoint.coerce(location).to_2d()
        shape = self.cache.shape
        return (not shape.is_empty) and shape.covers(Point(loc))

    def on_boundary(self, location, tol: float = epsilon) -> bool:
        loc = Waypoint.coerce(location).to_2d()
        shape = self.cache.shape
        return (not shape.is_empty) and shape.boundary.distance(Point(loc)) <= tol

    def _part_for(self, loc) -> Optional[RegionPart]:
        pt = Point(loc)
        for part in self.cache.parts:
            if part.shape.covers(pt):
                return part
        return None

    def _axis_fraction(self, loc, part: Optional[RegionPart]) -> float:
        ramp = self._profile
        if ramp.split_polygons and part is not None:
            lo, hi = part.axis_min, part.axis_max
        else:
            lo, hi = self.cache.axis_min, self.cache.axis_max
        if close(lo, hi):
            return 1.0
        return clamp((dot(loc, ramp.axis) - lo) / (hi - lo), 0.0, 1.0)

    def elevation_upon_entry(self, location) -> Optional[float]:
        """Elevation of the ground surface of this region at ``location``;
        ``None`` for inert regions."""

        profile = self._profile
        algorithm = profile.algorithm
        if algorithm is ElevationAlgorithm.PLATEAU:
            return profile.elevation
        if algorithm is ElevationAlgorithm.RAMP:
            loc = Waypoint.coerce(location).to_2d()
            t = self._axis_fraction(loc, self._part_for(loc))
            return ramp_elevation(profile, t, self.cache.cutpoints)
        if algorithm is ElevationAlgorithm.FLOOR_SLAB:
            return profile.elevation
        return None

    def contains(self, location, elevation: Optional[float] = None, tol: float = epsilon) -> bool:
        """Is the 3D point inside the region's column of ground, surface included?"""

        loc = Waypoint.coerce(location)
        if elevation is None:
            elevation = loc.elevation
        if not self.is_elevated or not self.footprint_contains(loc):
            return False
        top = self.elevation_upon_entry(loc)
        return self._bottom - tol <= elevation <= top + tol

    ## cutaway profile

    def cutaway(self, start, end, slab_thickness: float = 1.0) -> Optional[List[CutawayPolygon]]:
        """Cross-section of the region along ``start -> end``.

        Returns one polygon per interval where the line crosses the
        footprint, or ``None`` if the region is inert or missed.
        """

        if not self.is_elevated:
            return None
        a = Waypoint.coerce(start).to_2d()
        b = Waypoint.coerce(end).to_2d()
        length = dist(a, b)
        if close(length, 0.0):
            return None

        line = LineString([a, b])
        out = []
        for part in self.cache.parts:
            inter = part.shape.intersection(line)
            for piece in _line_pieces(inter):
                coords = list(piece.coords)
                x0 = alongXY(a, b, coords[0])
                x1 = alongXY(a, b, coords[-1])
                if x1 < x0:
                    x0, x1 = x1, x0
                if x1 - x0 < epsilon:
                    continue
                out.append(self._interval_polygon(a, b, length, x0, x1, part, slab_thickness))
        if not out:
            return None
        logger.debug('%r: %d cutaway polygon(s)', self, len(out))
        return out

    def _elevation_along(self, a, b, length, x, part) -> float:
        profile = self._profile
        if profile.algorithm is ElevationAlgorithm.RAMP:
            loc = (a[0] + (b[0] - a[0]) * x / length, a[1] + (b[1] - a[1]) * x / length)
            t = self._axis_fraction(loc, part)
            return ramp_elevation(profile, t, self.cache.cutpoints)
        return self.elevation_upon_entry(a)

    def _breakpoints(self, a, b, length, x0, x1, part) -> List[float]:
        """Distances in ``(x0, x1)`` where a ramp's top edge bends or steps."""

        ramp = self._profile
        if ramp.algorithm is not ElevationAlgorithm.RAMP:
            return []
        if ramp.split_polygons:
            lo, hi = part.axis_min, part.axis_max
        else:
            lo, hi = self.cache.axis_min, self.cache.axis_max
        pa = dot(a, ramp.axis)
        pb = dot(b, ramp.axis)
        if close(pa, pb) or close(lo, hi):
            return []
        ts = [t for t, _ in self.cache.cutpoints] if ramp.step_size else []
        ts = [0.0] + ts + [1.0]
        out = []
        for t in ts:
            s = (lo + t * (hi - lo) - pa) / (pb - pa)
            x = s * length
            if x0 + epsilon < x < x1 - epsilon:
                out.append(x)
        return sorted(out)

    def _interval_polygon(self, a, b, length, x0, x1, part, slab_thickness) -> CutawayPolygon:
        xs = [x0] + self._breakpoints(a, b, length, x0, x1, part) + [x1]
        stepped = self._profile.algorithm is ElevationAlgorithm.RAMP and bool(self._profile.step_size)
        top = []
        if stepped:
            # constant on each sub-interval; vertical risers at each boundary
            for xa, xb in zip(xs, xs[1:]):
                e = self._elevation_along(a, b, length, (xa + xb) * 0.5, part)
                top.append((xa, e))
                top.append((xb, e))
        else:
            top = [(x, self._elevation_along(a, b, length, x, part)) for x in xs]
        bottom = min(self._bottom, min(e for _, e in top) - slab_thickness)
        ring = [(x0, bottom)] + top + [(x1, bottom)]
        return CutawayPolygon(ring)


def _line_pieces(geom) -> List[LineString]:
    if geom.is_empty:
        return []
    if isinstance(geom, LineString):
        return [geom]
    out = []
    for g in getattr(geom, 'geoms', []):
        out.extend(_line_pieces(g))
    return out
