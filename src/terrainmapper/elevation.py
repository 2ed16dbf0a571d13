## elevation classification and ground resolution
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

"""Where is a point relative to the terrain, and where is the ground?

``cutaway_elevation_type`` classifies a cutaway point against combined
cutaway polygons.  ``elevation_type`` does the same for a world
waypoint against the regions and tiles of a scene, and
``nearest_ground_elevation`` finds the surface a mover at a point would
come to rest on.
"""

from __future__ import annotations

import enum
import logging
from typing import Optional, Sequence

from terrainmapper.cutaway import CUTAWAY_TOL, CutawayPolygon
from terrainmapper.geom import close, epsilon
from terrainmapper.waypoint import Waypoint

logger = logging.getLogger(__name__)


class ElevationType(enum.IntEnum):
    GROUND = 0
    ABOVE = 1
    BELOW = 2
    OUTSIDE = 3


def cutaway_elevation_type(point, polygons: Sequence[CutawayPolygon],
                           tol: float = CUTAWAY_TOL) -> ElevationType:
    """Classify a cutaway point against combined cutaway polygons.

    GROUND on a boundary edge, except part way up a vertical wall which
    counts as ABOVE; BELOW strictly inside; ABOVE elsewhere within some
    polygon's x extent; OUTSIDE otherwise.
    """

    p = (point[0], point[1])
    for poly in polygons:
        i = poly.edge_at(p, tol)
        if i is None:
            continue
        a, b = poly.edge(i)
        if close(a[0], b[0], tol) and not (close(p[1], a[1], tol) or close(p[1], b[1], tol)):
            return ElevationType.ABOVE
        return ElevationType.GROUND
    for poly in polygons:
        if poly.contains(p, tol):
            return ElevationType.BELOW
    for poly in polygons:
        if poly.in_x_extent(p[0], tol):
            return ElevationType.ABOVE
    return ElevationType.OUTSIDE


def _hole_percent(scene) -> float:
    return scene.config.hole_percent


def elevation_type(point, scene, regions=None, tiles=None, mover=None) -> ElevationType:
    """Classify a world waypoint against the terrain of ``scene``.

    Points on a region's footprint boundary below its surface are
    against the wall, not buried, matching ``cutaway_elevation_type``.
    """

    w = Waypoint.coerce(point)
    regions = scene.elevated_regions(regions)
    tiles = scene.elevated_tiles(tiles)
    tol = scene.config.tolerance

    if any(t.waypoint_on_tile(w, mover, _hole_percent(scene)) for t in tiles):
        return ElevationType.GROUND
    grounded = False
    for region in regions:
        if not region.footprint_contains(w):
            continue
        entry = region.elevation_upon_entry(w)
        if close(w.elevation, entry, tol):
            grounded = True
        elif region.on_boundary(w, tol):
            # against the region's wall rather than inside it
            continue
        elif region.bottom - tol <= w.elevation < entry:
            return ElevationType.BELOW
    if grounded:
        return ElevationType.GROUND
    if close(w.elevation, scene.baseline, tol):
        return ElevationType.GROUND
    if w.elevation < scene.baseline:
        return ElevationType.BELOW
    return ElevationType.ABOVE


def nearest_ground_elevation(point, scene, regions=None, tiles=None,
                             burrowing: bool = False, mover=None,
                             max_iterations: Optional[int] = None) -> float:
    """Elevation of the surface supporting a mover at ``point``.

    A burrowing mover inside a region stays put.  A point on a tile, or
    inside a region, is resolved upward to the highest entry elevation of
    the regions containing it, repeated until stable.  Otherwise a
    vertical ray toward the baseline picks the first region or tile it
    meets, and resolution continues from there.
    """

    w = Waypoint.coerce(point)
    regions = scene.elevated_regions(regions)
    tiles = scene.elevated_tiles(tiles)
    tol = scene.config.tolerance
    hole_percent = _hole_percent(scene)
    if max_iterations is None:
        max_iterations = scene.config.ground_max_iterations

    curr = w.elevation
    inside = [r for r in regions if r.contains(w, curr, tol)]
    if burrowing and inside:
        return curr
    if any(t.waypoint_on_tile(w.with_elevation(curr), mover, hole_percent) for t in tiles):
        return curr

    if not inside:
        baseline = scene.baseline
        if close(curr, baseline, tol):
            return baseline
        lo, hi = min(curr, baseline), max(curr, baseline)
        hits = []
        for region in regions:
            if not region.footprint_contains(w):
                continue
            entry = region.elevation_upon_entry(w)
            if lo - tol <= entry <= hi + tol and region.bottom <= entry:
                hits.append((abs(curr - entry), entry))
        for tile in tiles:
            if lo - tol <= tile.elevation <= hi + tol and tile.point_on_tile(w, mover, hole_percent):
                hits.append((abs(curr - tile.elevation), tile.elevation))
        if not hits:
            return baseline
        curr = min(hits)[1]

    if burrowing:
        return curr

    for _ in range(max_iterations):
        containing = [r.elevation_upon_entry(w) for r in regions if r.contains(w, curr, tol)]
        if not containing:
            return curr
        top = max(containing)
        if close(top, curr, epsilon):
            return curr
        curr = top
    logger.critical('ground elevation at (%s, %s) did not settle within %d iterations',
                    w.x, w.y, max_iterations)
    return curr
