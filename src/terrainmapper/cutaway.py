## cutaway coordinate transform and cutaway polygons for terrainmapper
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

"""Cutaway space: a vertical slice along one straight movement line.

A cutaway point is ``(distance_from_start, elevation)``.  Distances are
negative for points behind the start of the line.  Cutaway polygons are
solid terrain in that slice.
"""

from __future__ import annotations

from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple

from shapely.geometry import Polygon

from terrainmapper.geom import (
    close,
    dedupe,
    dist,
    isinsidepolyXY,
    lineLineIntersectXY,
    isonsegmentXY,
    polybbox,
    polydistance,
    signedarea,
    vclose,
)
from terrainmapper.waypoint import Waypoint

CutawayPoint = Tuple[float, float]

## default tolerance for cutaway comparisons; coarser than geom.epsilon
## to absorb error accumulated through the polygon boolean operations
CUTAWAY_TOL = 1e-4


def to_cutaway(w, start, end=None) -> CutawayPoint:
    """Project waypoint ``w`` into the cutaway space of ``start -> end``."""

    w = Waypoint.coerce(w)
    start = Waypoint.coerce(start)
    x = dist(start.to_2d(), w.to_2d())
    if end is not None:
        end = Waypoint.coerce(end)
        if dist(w.to_2d(), end.to_2d()) > dist(start.to_2d(), end.to_2d()):
            x = -x
    return (x, w.elevation)


def from_cutaway(pt: Sequence[float], start, end) -> Waypoint:
    """Map a cutaway point back onto the world segment ``start -> end``."""

    start = Waypoint.coerce(start)
    end = Waypoint.coerce(end)
    length = dist(start.to_2d(), end.to_2d())
    if close(length, 0.0):
        return Waypoint(start.x, start.y, pt[1])
    t = pt[0] / length
    return Waypoint(start.x + (end.x - start.x) * t,
                    start.y + (end.y - start.y) * t,
                    pt[1])


class CutawayPolygon:
    """Immutable open ring of cutaway points with cached extents."""

    __slots__ = ("points", "xmin", "xmax", "ymin", "ymax", "area")

    def __init__(self, points: Iterable[Sequence[float]]):
        pts = dedupe([(float(p[0]), float(p[1])) for p in points])
        if len(pts) < 3:
            raise ValueError('cutaway polygon needs at least three distinct points')
        self.points = tuple(pts)
        (self.xmin, self.ymin), (self.xmax, self.ymax) = polybbox(pts)
        self.area = signedarea(pts)

    def __len__(self):
        return len(self.points)

    def __iter__(self):
        return iter(self.points)

    def __repr__(self):
        return f"CutawayPolygon({list(self.points)!r})"

    def __eq__(self, other):
        return isinstance(other, CutawayPolygon) and self.points == other.points

    def __hash__(self):
        return hash(self.points)

    @property
    def is_clockwise(self) -> bool:
        return self.area < 0.0

    def oriented(self, clockwise: bool) -> "CutawayPolygon":
        if self.is_clockwise == clockwise:
            return self
        return CutawayPolygon(reversed(self.points))

    def mirrored(self) -> "CutawayPolygon":
        """Flip elevations; orientation flips with them."""
        return CutawayPolygon((x, -y) for x, y in self.points)

    def edge(self, i: int):
        n = len(self.points)
        return self.points[i % n], self.points[(i + 1) % n]

    def edges(self):
        n = len(self.points)
        for i in range(n):
            yield i, self.points[i], self.points[(i + 1) % n]

    def vertex(self, i: int) -> CutawayPoint:
        return self.points[i % len(self.points)]

    def in_x_extent(self, x: float, tol: float = CUTAWAY_TOL) -> bool:
        return self.xmin - tol <= x <= self.xmax + tol

    def edge_at(self, p: Sequence[float], tol: float = CUTAWAY_TOL) -> Optional[int]:
        """Index of the first edge within ``tol`` of ``p``, or ``None``."""

        if not (self.xmin - tol <= p[0] <= self.xmax + tol
                and self.ymin - tol <= p[1] <= self.ymax + tol):
            return None
        for i, a, b in self.edges():
            if isonsegmentXY((a, b), p, tol):
                return i
        return None

    def contains(self, p: Sequence[float], tol: float = CUTAWAY_TOL) -> bool:
        """Strict containment: inside and farther than ``tol`` from the boundary."""

        if not (self.xmin < p[0] < self.xmax and self.ymin < p[1] < self.ymax):
            return False
        if not isinsidepolyXY(self.points, p):
            return False
        return polydistance(self.points, p) > tol

    def crossings(self, a: Sequence[float], b: Sequence[float]) -> List[Tuple[float, int]]:
        """Sorted ``(t, edge_index)`` where segment ``a -> b`` meets an edge."""

        out = []
        seg = (a, b)
        for i, p, q in self.edges():
            params = lineLineIntersectXY(seg, (p, q), params=True)
            if params is False:
                continue
            t, u = params
            if -1e-9 <= t <= 1 + 1e-9 and -1e-9 <= u <= 1 + 1e-9:
                out.append((min(1.0, max(0.0, t)), i))
        out.sort()
        return out

    def interior_entry(self, a: Sequence[float], b: Sequence[float],
                       tol: float = CUTAWAY_TOL) -> Optional[float]:
        """Parameter at which segment ``a -> b`` first enters the interior.

        Grazing a vertex or running along an edge does not count.
        """

        if max(a[0], b[0]) <= self.xmin or min(a[0], b[0]) >= self.xmax:
            return None
        if max(a[1], b[1]) <= self.ymin or min(a[1], b[1]) >= self.ymax:
            return None
        ts = sorted(set([0.0, 1.0] + [t for t, _ in self.crossings(a, b)]))
        for t0, t1 in zip(ts, ts[1:]):
            if t1 - t0 < 1e-12:
                continue
            tm = (t0 + t1) * 0.5
            m = (a[0] + (b[0] - a[0]) * tm, a[1] + (b[1] - a[1]) * tm)
            if self.contains(m, tol):
                return t0
        return None

    def column(self, x: float) -> List[Tuple[float, int]]:
        """``(y, edge_index)`` crossings of the vertical line at ``x``, sorted
        by elevation.  Vertical edges are skipped; callers sample between
        vertex x coordinates."""

        out = []
        for i, p, q in self.edges():
            if (p[0] < x < q[0]) or (q[0] < x < p[0]):
                t = (x - p[0]) / (q[0] - p[0])
                out.append((p[1] + (q[1] - p[1]) * t, i))
        out.sort()
        return out

    def y_on_edge(self, i: int, x: float) -> float:
        """Elevation of the (extended) edge ``i`` at ``x``."""
        p, q = self.edge(i)
        if close(p[0], q[0], 1e-12):
            return max(p[1], q[1])
        t = (x - p[0]) / (q[0] - p[0])
        return p[1] + (q[1] - p[1]) * t

    def to_shapely(self) -> Polygon:
        return Polygon(self.points)


class Span(NamedTuple):
    """A run of solid material on a vertical line through cutaway space."""

    lo: float
    hi: float
    polygon: CutawayPolygon
    bottom_edge: int
    top_edge: int


def column_spans(polygons: Iterable[CutawayPolygon], x: float) -> List[Span]:
    """Solid spans of all ``polygons`` on the vertical line at ``x``."""

    spans = []
    for poly in polygons:
        if not (poly.xmin < x < poly.xmax):
            continue
        ys = poly.column(x)
        for k in range(0, len(ys) - 1, 2):
            (lo, lo_edge), (hi, hi_edge) = ys[k], ys[k + 1]
            spans.append(Span(lo, hi, poly, lo_edge, hi_edge))
    spans.sort(key=lambda s: s.lo)
    return spans


def sample_x(polygons: Iterable[CutawayPolygon], x: float, forward: bool = True,
            tol: float = CUTAWAY_TOL) -> Optional[float]:
    """An x coordinate just ahead of (or behind) ``x`` that falls strictly
    between vertex coordinates, so ``column_spans`` is well defined there."""

    best = None
    for poly in polygons:
        for vx, _ in poly.points:
            if forward and vx > x + tol:
                best = vx if best is None else min(best, vx)
            elif not forward and vx < x - tol:
                best = vx if best is None else max(best, vx)
    if best is None:
        return None
    return (x + best) * 0.5


def vertical_support(polygons: Sequence[CutawayPolygon], p: Sequence[float], *,
                     climb: bool = True, fall: bool = True, forward: bool = True,
                     tol: float = CUTAWAY_TOL) -> Optional[Tuple[float, Span]]:
    """Resolve the surface at ``p`` by moving vertically.

    If ``p`` is buried in a span (and ``climb``) the result is the top of
    that span; otherwise (and ``fall``) the top of the highest span at or
    below ``p``.  Elevations are evaluated at ``p[0]`` on the span's top
    edge.  Returns ``(elevation, span)`` or ``None`` when nothing applies.
    """

    px = sample_x(polygons, p[0], forward, tol)
    if px is None:
        return None
    spans = column_spans(polygons, px)
    below = None
    for s in spans:
        hi = s.polygon.y_on_edge(s.top_edge, p[0])
        lo = s.polygon.y_on_edge(s.bottom_edge, p[0])
        if lo + tol < p[1] < hi - tol:
            if climb:
                return hi, s
            return None
        if hi <= p[1] + tol and (below is None or hi > below[0]):
            below = (hi, s)
    if fall:
        return below
    return None


def same_point(a: Sequence[float], b: Sequence[float], tol: float = CUTAWAY_TOL) -> bool:
    return vclose(a, b, tol)
