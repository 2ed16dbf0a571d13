"""Waypoint value type and the straight-line path container."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, Optional, Sequence, Tuple

from terrainmapper.geom import close, dist, epsilon, linePointXY

Point2 = Tuple[float, float]


@dataclass(frozen=True)
class Waypoint:
    """A 2D canvas position with an elevation."""

    x: float
    y: float
    elevation: float = 0.0

    @classmethod
    def coerce(cls, value) -> "Waypoint":
        """Accept a ``Waypoint`` or an ``(x, y[, elevation])`` sequence."""

        if isinstance(value, Waypoint):
            return value
        if len(value) == 2:
            return cls(float(value[0]), float(value[1]))
        if len(value) == 3:
            return cls(float(value[0]), float(value[1]), float(value[2]))
        raise ValueError("waypoint needs two or three components")

    def to_2d(self) -> Point2:
        return (self.x, self.y)

    def with_elevation(self, elevation: float) -> "Waypoint":
        return replace(self, elevation=float(elevation))

    def almost_equal_xy(self, other: "Waypoint", tol: float = epsilon) -> bool:
        return close(self.x, other.x, tol) and close(self.y, other.y, tol)

    def almost_equal(self, other: "Waypoint", tol: float = epsilon) -> bool:
        return self.almost_equal_xy(other, tol) and close(self.elevation, other.elevation, tol)


class StraightLinePath(list):
    """Waypoints along one straight 2D line; only the elevation varies.

    Appending a waypoint almost equal to the current last one is a no-op.
    """

    def __init__(self, points: Iterable[Waypoint] = (), tol: float = epsilon):
        super().__init__()
        self.tol = tol
        self.extend(points)

    @classmethod
    def between(cls, start, end, tol: float = epsilon) -> "StraightLinePath":
        """Two-point path; both ends are kept even when they coincide."""
        path = cls(tol=tol)
        list.append(path, Waypoint.coerce(start))
        list.append(path, Waypoint.coerce(end))
        return path

    def append(self, point: Waypoint) -> None:
        point = Waypoint.coerce(point)
        if self and self[-1].almost_equal(point, self.tol):
            return
        super().append(point)

    def extend(self, points: Iterable[Waypoint]) -> None:
        for p in points:
            self.append(p)

    @property
    def start(self) -> Optional[Waypoint]:
        return self[0] if self else None

    @property
    def end(self) -> Optional[Waypoint]:
        return self[-1] if self else None

    def elevation_at(self, location: Sequence[float]) -> Optional[float]:
        """Interpolated elevation at a 2D ``location`` on the path.

        Where the path changes elevation vertically at the location the
        higher elevation wins.  Returns ``None`` if the location is not on
        the path.
        """

        if not self:
            return None
        loc = (location[0], location[1])
        start = self[0].to_2d()
        end = self[-1].to_2d()
        if len(self) == 1 or dist(start, end) < self.tol:
            if dist(start, loc) < self.tol:
                return max(p.elevation for p in self)
            return None
        if linePointXY((start, end), loc, distance=True) > self.tol:
            return None

        d = dist(start, loc)
        at = [p.elevation for p in self if close(dist(start, p.to_2d()), d, self.tol)]
        if at:
            return max(at)
        for a, b in zip(self, self[1:]):
            da = dist(start, a.to_2d())
            db = dist(start, b.to_2d())
            if da < d < db:
                t = (d - da) / (db - da)
                return a.elevation + (b.elevation - a.elevation) * t
        return None
