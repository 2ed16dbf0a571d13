## cutaway polygon boolean operations for terrainmapper
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

"""Union, difference and cleanup of cutaway polygons.

The boolean work is delegated to shapely; this module converts to and
from ``CutawayPolygon`` rings, removes degenerate vertices, and
normalises orientation so that walking a ring in order follows the
direction of travel.
"""

from __future__ import annotations

import logging
from typing import Iterable, List

from shapely.geometry import GeometryCollection, MultiPolygon, Polygon, box
from shapely.ops import unary_union
from shapely.validation import make_valid

from terrainmapper.cutaway import CUTAWAY_TOL, CutawayPolygon
from terrainmapper.geom import MIN_ELEV, dedupe, removecollinear, signedarea

logger = logging.getLogger(__name__)

## padding above the terrain when building the open-air shape
INVERT_PADDING = 2.0


def floor_polygon(baseline: float, length: float, start: float = 0.0) -> CutawayPolygon:
    """The baseline floor: a slab from ``baseline`` down to ``MIN_ELEV``."""

    if length <= 0.0:
        raise ValueError('floor polygon needs a positive length')
    return CutawayPolygon([(start, baseline), (start + length, baseline),
                           (start + length, MIN_ELEV), (start, MIN_ELEV)])


def _polygons_of(geom) -> List[Polygon]:
    if geom is None or geom.is_empty:
        return []
    if isinstance(geom, Polygon):
        return [geom]
    if isinstance(geom, (MultiPolygon, GeometryCollection)):
        out = []
        for g in geom.geoms:
            out.extend(_polygons_of(g))
        return out
    # points and lines left over from degenerate input carry no area
    return []


def _valid(geom):
    return geom if geom.is_valid else make_valid(geom)


def clean(geom, clockwise: bool = True, tol: float = CUTAWAY_TOL,
          report_holes: bool = True) -> List[CutawayPolygon]:
    """Convert shapely output, or a list of possibly self-intersecting
    cutaway polygons, to oriented, hole-free cutaway polygons.

    Holes cannot occur in a union that includes the baseline floor; one
    that does is reported and filled in.
    """

    if isinstance(geom, (list, tuple)):
        pieces = [g for p in geom for g in _polygons_of(_valid(p.to_shapely()))]
    else:
        pieces = _polygons_of(_valid(geom))
    out = []
    for poly in pieces:
        if poly.interiors and report_holes:
            logger.error('combined cutaway polygon has %d hole(s); treating them as solid',
                         len(poly.interiors))
        ring = removecollinear(dedupe(list(poly.exterior.coords), tol), tol)
        if len(ring) < 3 or abs(signedarea(ring)) < tol * tol:
            continue
        out.append(CutawayPolygon(ring).oriented(clockwise))
    out.sort(key=lambda p: (p.xmin, p.ymin))
    return out


def union(polygons: Iterable[CutawayPolygon], clockwise: bool = True,
          tol: float = CUTAWAY_TOL) -> List[CutawayPolygon]:
    shapes = [_valid(p.to_shapely()) for p in polygons]
    if not shapes:
        return []
    return clean(unary_union(shapes), clockwise, tol)


def difference(a: Iterable[CutawayPolygon], b: Iterable[CutawayPolygon],
               clockwise: bool = True, tol: float = CUTAWAY_TOL) -> List[CutawayPolygon]:
    """``a`` minus ``b``; holes in the result are filled silently."""

    sa = unary_union([_valid(p.to_shapely()) for p in a])
    sb = unary_union([_valid(p.to_shapely()) for p in b])
    return clean(sa.difference(sb), clockwise, tol, report_holes=False)


def combine_cutaways(polygons: Iterable[CutawayPolygon], baseline: float, length: float,
                     clockwise: bool = True, start: float = 0.0,
                     tol: float = CUTAWAY_TOL) -> List[CutawayPolygon]:
    """Union terrain cutaways with the baseline floor over ``[start, start+length]``."""

    polys = [floor_polygon(baseline, length, start)]
    polys.extend(polygons)
    result = union(polys, clockwise, tol)
    logger.debug('combined %d cutaway polygons into %d', len(polys), len(result))
    return result


def invert_cutaways(polygons: Iterable[CutawayPolygon], clockwise: bool = False,
                    padding: float = INVERT_PADDING,
                    tol: float = CUTAWAY_TOL) -> List[CutawayPolygon]:
    """Open air above and between the ``polygons``, within their bounds
    padded upward by ``padding``."""

    shapes = [_valid(p.to_shapely()) for p in polygons]
    if not shapes:
        return []
    solid = unary_union(shapes)
    minx, miny, maxx, maxy = solid.bounds
    air = box(minx, miny, maxx, maxy + padding).difference(solid)
    return clean(air, clockwise, tol, report_holes=False)
