## elevation-aware path construction
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

"""Elevation-aware path construction.

``construct_path`` takes a straight 2D move between two waypoints and
returns the waypoints a mover actually passes through once terrain is
taken into account.  The work happens in cutaway space (see
``terrainmapper.cutaway``): every region and tile crossed by the line
contributes solid cross-sections, these are unioned with the baseline
floor, and a ``PathWalker`` traces the movement through the result.

Walking
    Follow the top surface.  Elevation changes only while touching
    terrain: climbing walls, stepping down ledges, following slopes.

Flying
    Straight toward the target; around an obstruction along the upper
    convex chain of the polygons in the way.  Points before each climb
    are kept as anchors, and a later climb that can be reached directly
    from an anchor drops the waypoints in between.

Burrowing
    Flying through the inverted terrain: open air is the obstacle and
    the detour runs underneath it.
"""

from __future__ import annotations

import enum
import logging
from typing import List, Optional, Sequence, Tuple

from terrainmapper.combine import combine_cutaways, invert_cutaways
from terrainmapper.cutaway import (
    CUTAWAY_TOL,
    CutawayPolygon,
    from_cutaway,
    same_point,
    vertical_support,
)
from terrainmapper.elevation import (
    ElevationType,
    cutaway_elevation_type,
    elevation_type,
    nearest_ground_elevation,
)
from terrainmapper.geom import close, dist, lerp, lowerchain, upperchain
from terrainmapper.waypoint import StraightLinePath, Waypoint

logger = logging.getLogger(__name__)

CutawayPoint = Tuple[float, float]


class MovementMode(enum.Enum):
    WALK = "walk"
    FLY = "fly"
    BURROW = "burrow"


def _mirror(p: CutawayPoint) -> CutawayPoint:
    return (p[0], -p[1])


class PathWalker:
    """Trace a movement through combined cutaway polygons.

    ``polygons`` must be the oriented output of ``combine_cutaways``.
    ``run()`` returns the cutaway waypoints; ``complete`` tells whether
    the target was reached.
    """

    def __init__(self, polygons: Sequence[CutawayPolygon], start: CutawayPoint,
                 end: CutawayPoint, mode: MovementMode = MovementMode.WALK,
                 tol: float = CUTAWAY_TOL, max_iterations: Optional[int] = None,
                 iteration_factor: int = 8, iteration_floor: int = 100):
        self.polygons = list(polygons)
        self.start = (float(start[0]), float(start[1]))
        self.end = (float(end[0]), float(end[1]))
        self.mode = mode
        self.tol = tol
        if max_iterations is None:
            nverts = sum(len(p) for p in self.polygons)
            max_iterations = iteration_factor * nverts + iteration_floor
        self.max_iterations = max_iterations

        self.position = self.start
        self.target = self.end
        self.polygon: Optional[CutawayPolygon] = None
        self.index = 0
        self.step = 1
        self.anchors: List[int] = []
        self.waypoints: List[CutawayPoint] = [self.start]
        self.iterations = 0
        self.complete = False

    def run(self) -> List[CutawayPoint]:
        if self.mode is MovementMode.WALK:
            self._walk()
        elif self.mode is MovementMode.FLY:
            self._fly_from_start()
        else:
            self._burrow()
        return list(self.waypoints)

    ## bookkeeping

    def _tick(self) -> bool:
        self.iterations += 1
        if self.iterations > self.max_iterations:
            logger.critical('%s path from %s to %s did not finish within %d iterations',
                            self.mode.value, self.start, self.end, self.max_iterations)
            return False
        return True

    def _push(self, p: CutawayPoint) -> None:
        p = (float(p[0]), float(p[1]))
        if not same_point(self.waypoints[-1], p, self.tol):
            self.waypoints.append(p)
        self.position = p

    ## walking

    def _settle(self, p: CutawayPoint, check_climb: bool = True) -> bool:
        """Move vertically onto the surface at ``p`` and pick up the edge
        that leads forward from there.

        Climbing is only allowed along a wall; a climb that passes through
        solid terrain (the underside of an overhang) stops the walk.
        """

        found = vertical_support(self.polygons, p, tol=self.tol)
        if found is None:
            logger.error('no terrain supports the walker at %s; stopping', p)
            return False
        y, span = found
        if check_climb and y > p[1] + self.tol:
            top = (p[0], y)
            if any(poly.interior_entry(p, top, self.tol) is not None for poly in self.polygons):
                logger.error('walker at %s is blocked by an overhang; stopping', p)
                return False
        self._push((p[0], y))
        poly = span.polygon
        e = span.top_edge
        a, b = poly.edge(e)
        self.polygon = poly
        if b[0] > a[0]:
            self.index, self.step = e, 1
        else:
            self.index, self.step = (e + 1) % len(poly), -1
        return True

    def _transfer_point(self, a: CutawayPoint, b: CutawayPoint) -> Optional[CutawayPoint]:
        """First point past ``a`` where another polygon meets ``a -> b``."""

        seglen = dist(a, b)
        best = None
        for poly in self.polygons:
            if poly is self.polygon:
                continue
            for t, _ in poly.crossings(a, b):
                if t * seglen <= self.tol:
                    continue
                if best is None or t < best:
                    best = t
        return lerp(a, b, best) if best is not None else None

    def _walk(self) -> None:
        target_x = self.target[0]
        if not self._settle(self.position, check_climb=False):
            return
        while self._tick():
            pos = self.position
            if pos[0] >= target_x - self.tol:
                self.complete = True
                return
            poly = self.polygon
            n = len(poly)
            j = (self.index + self.step) % n
            b = poly.vertex(j)
            stop = b
            if b[0] > target_x:
                edge = self.index if self.step == 1 else j
                stop = (target_x, poly.y_on_edge(edge, target_x))

            hit = self._transfer_point(pos, stop)
            if hit is not None:
                self._push(hit)
                if not self._settle(hit):
                    return
                continue

            self._push(stop)
            if stop is not b:
                self.complete = True
                return
            c = poly.vertex(j + self.step)
            if c[0] > b[0] + self.tol:
                self.index = j
            elif not self._settle(b):
                return

    ## flying

    def _first_obstruction(self, a: CutawayPoint, b: CutawayPoint,
                           polygons: Sequence[CutawayPolygon],
                           skip=()) -> Optional[CutawayPolygon]:
        best = None
        for poly in polygons:
            if any(poly is s for s in skip):
                continue
            t = poly.interior_entry(a, b, self.tol)
            if t is not None and (best is None or t < best[0]):
                best = (t, poly)
        return best[1] if best is not None else None

    def _chain_obstruction(self, chain, polygons, skip=()) -> Optional[CutawayPolygon]:
        for a, b in zip(chain, chain[1:]):
            poly = self._first_obstruction(a, b, polygons, skip)
            if poly is not None:
                return poly
        return None

    def _convex_chain(self, pos, target, polygons, upper: bool) -> List[CutawayPoint]:
        """Convex chain from ``pos`` to ``target`` over (or under) the parts
        of ``polygons`` between them."""

        x0, x1 = pos[0], target[0]
        pts = [pos, target]
        for poly in polygons:
            for v in poly.points:
                if x0 + self.tol < v[0] < x1 - self.tol:
                    pts.append(v)
                elif close(v[0], x0, self.tol):
                    pts.append((x0, v[1]))
                elif close(v[0], x1, self.tol):
                    pts.append((x1, v[1]))
            for x in (x0, x1):
                pts.extend((x, y) for y, _ in poly.column(x))
        chain = upperchain(pts) if upper else lowerchain(pts)
        if not same_point(chain[0], pos, self.tol):
            chain.insert(0, pos)
        if not same_point(chain[-1], target, self.tol):
            chain.append(target)
        return chain

    def _detour(self, pos, target, blocking) -> Optional[List[CutawayPoint]]:
        for upper in (True, False):
            chain = self._convex_chain(pos, target, blocking, upper)
            if self._chain_obstruction(chain, blocking) is None:
                return chain
        return None

    def _partial_detour(self, pos, target, blocker, polygons) -> Optional[List[CutawayPoint]]:
        """The clear part of a chain around ``blocker`` alone, stopping
        short of the target.  Used when no full detour exists."""

        for upper in (True, False):
            chain = self._convex_chain(pos, target, [blocker], upper)[:-1]
            while len(chain) > 1 and close(chain[-1][0], target[0], self.tol):
                chain.pop()
            if len(chain) < 2:
                continue
            if self._chain_obstruction(chain, polygons) is None:
                return chain
        return None

    def _shortcut(self, polygons) -> None:
        """Drop waypoints between the earliest anchor that can see the
        newest waypoint and that waypoint."""

        last = self.waypoints[-1]
        for k, a in enumerate(self.anchors):
            if a >= len(self.waypoints) - 2:
                break
            if self._first_obstruction(self.waypoints[a], last, polygons) is None:
                del self.waypoints[a + 1:-1]
                self.anchors = self.anchors[:k + 1]
                return

    def _climb_to(self, v: CutawayPoint, polygons) -> None:
        self._push(v)
        self._shortcut(polygons)
        anchor = len(self.waypoints) - 2
        if anchor >= 0 and (not self.anchors or self.anchors[-1] < anchor):
            self.anchors.append(anchor)

    def _fly(self, polygons: Sequence[CutawayPolygon]) -> None:
        target = self.target
        while self._tick():
            pos = self.position
            if same_point(pos, target, self.tol):
                self.complete = True
                return
            blocker = self._first_obstruction(pos, target, polygons)
            if blocker is None:
                self._push(target)
                self.complete = True
                return
            if close(pos[0], target[0], self.tol):
                logger.error('vertical move from %s to %s is obstructed; stopping', pos, target)
                return

            blocking = [blocker]
            chain = None
            while self._tick():
                chain = self._detour(pos, target, blocking)
                if chain is None:
                    chain = self._partial_detour(pos, target, blocker, polygons)
                    if chain is None:
                        logger.error('no detour from %s around the terrain ahead; stopping', pos)
                        return
                    logger.debug('no full detour from %s; following %d chain points', pos, len(chain))
                    break
                extra = self._chain_obstruction(chain, polygons, skip=blocking)
                if extra is None:
                    break
                blocking.append(extra)
            else:
                return

            for v in chain[1:]:
                if v[1] > self.position[1] + self.tol:
                    self._climb_to(v, polygons)
                else:
                    self._push(v)
                if same_point(self.position, target, self.tol):
                    self.complete = True
                    return
                if self._first_obstruction(self.position, target, polygons) is None:
                    break

    def _fly_from_start(self) -> None:
        if cutaway_elevation_type(self.position, self.polygons, self.tol) is ElevationType.BELOW:
            found = vertical_support(self.polygons, self.position, fall=False, tol=self.tol)
            if found is not None:
                self._push((self.position[0], found[0]))
        self._fly(self.polygons)

    ## burrowing

    def _burrow(self) -> None:
        if cutaway_elevation_type(self.position, self.polygons, self.tol) is ElevationType.ABOVE:
            found = vertical_support(self.polygons, self.position, climb=False, tol=self.tol)
            if found is not None:
                self._push((self.position[0], found[0]))

        air = [p.mirrored() for p in invert_cutaways(self.polygons, tol=self.tol)]
        self.waypoints = [_mirror(p) for p in self.waypoints]
        self.position = _mirror(self.position)
        self.target = _mirror(self.target)
        try:
            self._fly(air)
        finally:
            self.waypoints = [_mirror(p) for p in self.waypoints]
            self.position = _mirror(self.position)
            self.target = _mirror(self.target)


def _surface_at_end(polygons, p, climb: bool, tol: float) -> CutawayPoint:
    found = vertical_support(polygons, p, climb=climb, fall=not climb, forward=False, tol=tol)
    if found is None:
        return p
    return (p[0], found[0])


def _vertical_path(start: Waypoint, end: Waypoint, scene, regions, tiles,
                   flying, burrowing, mover) -> StraightLinePath:
    end_type = elevation_type(end, scene, regions, tiles, mover)
    if (flying is False and end_type is ElevationType.ABOVE) or \
       (burrowing is False and end_type is ElevationType.BELOW):
        ground = nearest_ground_elevation(end, scene, regions, tiles,
                                          burrowing=bool(burrowing), mover=mover)
        end = end.with_elevation(ground)
    return StraightLinePath.between(start, end)


def construct_path(start, end, scene, flying: Optional[bool] = None,
                   burrowing: Optional[bool] = None, mover=None,
                   regions=None, tiles=None, can_end_below: bool = False) -> StraightLinePath:
    """Waypoints for a straight 2D move from ``start`` to ``end``.

    ``flying`` and ``burrowing`` left as ``None`` are inferred from both
    ends: the mover flies only when start and end are above the terrain,
    and burrows only when both are inside it.  A mover that may both fly
    and burrow moves in a straight line; its end is lifted to the ground
    when buried, unless ``can_end_below``.

    The result always holds at least two waypoints.  It is exactly
    ``[start, end]`` when no terrain lies on the line, and ends at the
    last point reached when the movement cannot be completed.
    """

    start = Waypoint.coerce(start)
    end = Waypoint.coerce(end)
    config = scene.config
    tol = config.tolerance

    if start.almost_equal(end):
        return StraightLinePath.between(start, end)
    if flying and burrowing:
        if not can_end_below and \
           elevation_type(end, scene, regions, tiles, mover) is ElevationType.BELOW:
            end = end.with_elevation(
                nearest_ground_elevation(end, scene, regions, tiles, mover=mover))
        return StraightLinePath.between(start, end)

    regions = [r for r in scene.elevated_regions(regions)
               if r.bounds_intersect_segment(start, end)]
    tiles = [t for t in scene.elevated_tiles(tiles)
             if t.bounds_intersect_segment(start, end)]
    if not regions and not tiles:
        return StraightLinePath.between(start, end)

    if start.almost_equal_xy(end):
        return _vertical_path(start, end, scene, regions, tiles, flying, burrowing, mover)

    ## cut along a slightly longer line so the ends are never on the
    ## cutaway's outer walls
    length = dist(start.to_2d(), end.to_2d())
    pad = config.cutaway_padding
    ux = (end.x - start.x) / length
    uy = (end.y - start.y) / length
    a = Waypoint(start.x - ux * pad, start.y - uy * pad)
    b = Waypoint(end.x + ux * pad, end.y + uy * pad)

    polys = []
    for region in regions:
        polys.extend(region.cutaway(a, b, config.slab_thickness) or [])
    for tile in tiles:
        polys.extend(tile.cutaway(a, b, mover, config.hole_percent, config.slab_thickness) or [])
    if not polys:
        return StraightLinePath.between(start, end)
    combined = combine_cutaways(polys, scene.baseline, length + 2 * pad, clockwise=True, tol=tol)

    start2d = (pad, start.elevation)
    end2d = (pad + length, end.elevation)
    start_type = cutaway_elevation_type(start2d, combined, tol)
    end_type = cutaway_elevation_type(end2d, combined, tol)
    if flying is None:
        flying = start_type is ElevationType.ABOVE and \
            end_type is ElevationType.ABOVE and not burrowing
    if burrowing is None:
        burrowing = start_type is ElevationType.BELOW and \
            end_type is ElevationType.BELOW and not flying
    if flying:
        mode = MovementMode.FLY
    elif burrowing:
        mode = MovementMode.BURROW
    else:
        mode = MovementMode.WALK

    if mode is MovementMode.FLY and end_type is ElevationType.BELOW:
        end2d = _surface_at_end(combined, end2d, True, tol)
    elif mode is MovementMode.BURROW and end_type is ElevationType.ABOVE:
        end2d = _surface_at_end(combined, end2d, False, tol)

    walker = PathWalker(combined, start2d, end2d, mode, tol,
                        iteration_factor=config.iteration_factor,
                        iteration_floor=config.iteration_floor)
    points = walker.run()
    logger.debug('%s path: %d cutaway waypoints (complete=%s)',
                 mode.value, len(points), walker.complete)

    path = StraightLinePath()
    for p in points:
        if close(p[0], start2d[0], tol):
            path.append(Waypoint(start.x, start.y, p[1]))
        elif close(p[0], end2d[0], tol):
            path.append(Waypoint(end.x, end.y, p[1]))
        else:
            path.append(from_cutaway((p[0] - pad, p[1]), start, end))
    if len(path) < 2:
        return StraightLinePath.between(start, path[-1])
    return path
