## foundational 2D geometry for terrainmapper
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

"""foundational 2D geometry for **terrainmapper**

====================
OVERVIEW
====================

The terrainmapper.geom module provides the small set of plane geometry
operations the rest of the package is built on: tolerance comparisons,
segment intersection, closest points, polygon area and orientation,
inside testing, convex chains and digital line traversal.

points
======

Points are Python tuples ``(x, y)``.  Anything indexable with at least
two numbers is accepted as input; results are always tuples.

polygons
========

Polygons are open rings, *i.e.* lists of points where the last point is
**not** a repeat of the first.  Counter-clockwise rings (in a frame where
y grows upward) have positive signed area.

constants
=========

``epsilon`` is the default tolerance for scalar comparisons.
``MIN_ELEV`` is the sentinel elevation used for
"infinitely deep" terrain.  Redefine it at
your peril.

"""

from math import floor, sqrt

## constants
epsilon=0.000005
MIN_ELEV = -1.0e6

## operations on scalars
## -----------------------

def close(a,b,tol=epsilon):
    """ are two scalars the same within tolerance
    """
    return abs(a-b) < tol

def clamp(v,lo,hi):
    return max(lo,min(hi,v))

## operations on points
## ------------------------

def sub(a,b):
    return (a[0]-b[0],a[1]-b[1])

def add(a,b):
    return (a[0]+b[0],a[1]+b[1])

def dot(a,b):
    return a[0]*b[0]+a[1]*b[1]

def cross(o,a,b):
    """z component of the cross product of ``a-o`` and ``b-o``; positive
    for a left (counter-clockwise) turn"""
    return (a[0]-o[0])*(b[1]-o[1]) - (a[1]-o[1])*(b[0]-o[0])

def mag(a):
    return sqrt(a[0]*a[0]+a[1]*a[1])

def dist(a,b):  # compute distance between two points a & b
    return mag(sub(a,b))

def vclose(a,b,tol=epsilon):
    """are two points the same to within tolerance"""
    return dist(a,b) < tol

def lerp(a,b,t):
    return (a[0]+(b[0]-a[0])*t, a[1]+(b[1]-a[1])*t)

## operations on line segments
## ---------------------------

def lineLineIntersectXY(l1,l2,inside=True,params=False):
    """Compute the intersection of two lines.  Returns the intersection
    point, or ``False`` if the lines are parallel or (with ``inside``
    true) the intersection falls outside either segment.  If ``params``
    is true, return the parameters ``[t,u]`` on each line instead.
    """

    x1,y1 = l1[0][0],l1[0][1]
    x2,y2 = l1[1][0],l1[1][1]
    x3,y3 = l2[0][0],l2[0][1]
    x4,y4 = l2[1][0],l2[1][1]

    ## do lines intersect anywhere?
    denom=(x1-x2)*(y3-y4)-(y1-y2)*(x3-x4)
    scl = max(abs(x1-x2)+abs(y1-y2),epsilon)*max(abs(x3-x4)+abs(y3-y4),epsilon)
    if abs(denom) < epsilon*epsilon*scl:
        return False

    t = ((x1-x3)*(y3-y4) - (y1-y3)*(x3-x4))/denom
    u = -1 * ((x1-x2)*(y1-y3) - (y1-y2)*(x1-x3))/denom

    if params:
        return [t,u]

    if inside and ( t < 0.0 or t > 1.0 or u < 0.0 or u > 1.0):
        return False

    return (x1 + t*(x2-x1), y1+t*(y2-y1))

def linePointXY(l,p,inside=True,distance=False):
    """For a line ``l`` and point ``p``, return the closest point on the
    line (or the segment, if ``inside`` is true).  If ``distance`` is
    true, return the distance instead of the point."""
    a = l[0]
    b = l[1]
    d = sub(b,a)
    dd = dot(d,d)
    if dd < epsilon*epsilon:
        q = (a[0],a[1])
    else:
        t = dot(sub(p,a),d)/dd
        if inside:
            t = clamp(t,0.0,1.0)
        q = lerp(a,b,t)
    if distance:
        return dist(q,p)
    return q

def isonsegmentXY(l,p,tol=epsilon):
    """is point ``p`` within ``tol`` of segment ``l``"""
    return linePointXY(l,p,distance=True) < tol

def alongXY(a,b,p):
    """signed distance from ``a`` of the projection of ``p`` onto the line ``a -> b``"""
    d = sub(b,a)
    m = mag(d)
    if m < epsilon:
        return 0.0
    return dot(sub(p,a),d)/m

## operations on polygons
## ----------------------

def dedupe(poly,tol=epsilon):
    """remove consecutive repeated points, including a closing repeat
    of the first point"""
    if not poly:
        return []
    deduped = [tuple(poly[0][:2])]
    for pt in poly[1:]:
        if dist(pt, deduped[-1]) > tol:
            deduped.append(tuple(pt[:2]))
    if len(deduped) > 2 and dist(deduped[0], deduped[-1]) <= tol:
        deduped.pop()
    return deduped

def removecollinear(poly,tol=epsilon):
    """drop vertices that lie on the segment joining their neighbours"""
    pts = list(poly)
    changed = True
    while changed and len(pts) > 3:
        changed = False
        for i in range(len(pts)):
            a = pts[i-1]
            b = pts[i]
            c = pts[(i+1) % len(pts)]
            if isonsegmentXY((a,c),b,tol):
                del pts[i]
                changed = True
                break
    return pts

def signedarea(poly):
    """shoelace area of an open ring, positive when counter-clockwise"""
    a = 0.0
    n = len(poly)
    for i in range(n):
        x1,y1 = poly[i][0],poly[i][1]
        x2,y2 = poly[(i+1) % n][0],poly[(i+1) % n][1]
        a += x1*y2 - x2*y1
    return a*0.5

def polybbox(poly):
    """return ``((minx,miny),(maxx,maxy))`` for a list of points"""
    if len(poly) < 1:
        raise ValueError('bad polygon passed to polybbox')
    xs = [p[0] for p in poly]
    ys = [p[1] for p in poly]
    return ((min(xs),min(ys)),(max(xs),max(ys)))

## even-odd crossing test; points exactly on the boundary may land on
## either side, callers that care use isonsegmentXY first
def isinsidepolyXY(poly,p):
    """
    Determine if point ``p`` lies inside the open ring ``poly`` using the
    even-odd rule.
    """
    x,y = p[0],p[1]
    inside = False
    n = len(poly)
    j = n-1
    for i in range(n):
        xi,yi = poly[i][0],poly[i][1]
        xj,yj = poly[j][0],poly[j][1]
        if (yi > y) != (yj > y):
            xc = xi + (y-yi)*(xj-xi)/(yj-yi)
            if x < xc:
                inside = not inside
        j = i
    return inside

def polydistance(poly,p):
    """distance from ``p`` to the nearest edge of ``poly``"""
    n = len(poly)
    return min(linePointXY((poly[i],poly[(i+1) % n]),p,distance=True)
               for i in range(n))

## convex chains
## -------------

def upperchain(points):
    """Upper convex chain, left to right, of a set of points.  Points
    sharing an x coordinate contribute only their highest member."""
    best = {}
    for p in points:
        k = p[0]
        if k not in best or p[1] > best[k][1]:
            best[k] = (p[0],p[1])
    pts = sorted(best.values())
    hull = []
    for p in pts:
        while len(hull) >= 2 and cross(hull[-2],hull[-1],p) >= 0.0:
            hull.pop()
        hull.append(p)
    return hull

def lowerchain(points):
    """Lower convex chain, left to right; see ``upperchain``"""
    return [(p[0],-p[1]) for p in upperchain([(p[0],-p[1]) for p in points])]

## digital lines
## -------------

def bresenham(a,b):
    """Yield every integer cell on the digital line from ``a`` to ``b``,
    each exactly once, starting with the cell containing ``a``."""
    x0,y0 = int(floor(a[0])),int(floor(a[1]))
    x1,y1 = int(floor(b[0])),int(floor(b[1]))
    dx = abs(x1-x0)
    dy = -abs(y1-y0)
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    err = dx+dy
    while True:
        yield (x0,y0)
        if x0 == x1 and y0 == y1:
            break
        e2 = 2*err
        if e2 >= dy:
            err += dy
            x0 += sx
        if e2 <= dx:
            err += dx
            y0 += sy
