"""Piecewise linear functions."""

from __future__ import annotations

import enum
import math
import sys
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import TextIO

DEFAULT_EPS = 1e-6


@dataclass
class Interval:
    """A closed interval of real numbers."""

    start: float
    end: float

    def contains(self, value: float) -> bool:
        return self.start <= value <= self.end

    def clip(self, value: float) -> float:
        if value < self.start:
            return self.start
        if value > self.end:
            return self.end
        return value

    def length(self) -> float:
        return self.end - self.start


@dataclass(frozen=True)
class Point:
    """A 2D point or vector."""

    x: float = 0.0
    y: float = 0.0

    def __add__(self, other: Point) -> Point:
        return Point(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Point) -> Point:
        return Point(self.x - other.x, self.y - other.y)

    def __mul__(self, factor: float) -> Point:
        return Point(self.x * factor, self.y * factor)

    def __truediv__(self, factor: float) -> Point:
        return Point(self.x / factor, self.y / factor)

    def dot(self, other: Point) -> float:
        return self.x * other.x + self.y * other.y

    def len2(self) -> float:
        return self.x * self.x + self.y * self.y

    def length(self) -> float:
        return math.sqrt(self.len2())


class PerpType(enum.Enum):
    """Kind of closest point found by :meth:`Pwl.invert`."""

    NOT_FOUND = "not_found"
    START = "start"
    END = "end"
    VERTEX = "vertex"
    PERPENDICULAR = "perpendicular"


def _as_point(p: Point | Sequence[float]) -> Point:
    return p if isinstance(p, Point) else Point(float(p[0]), float(p[1]))


class Pwl:
    """A piecewise linear function defined by control points with increasing x."""

    def __init__(self, points: Iterable[Point | Sequence[float]] | None = None) -> None:
        self._points: list[Point] = [_as_point(p) for p in (points or ())]

    @classmethod
    def from_flat(cls, values: Iterable[float]) -> Pwl:
        """Build from a flat sequence x0, y0, x1, y1, ... with increasing x."""
        values = [float(v) for v in values]
        if len(values) % 2:
            raise ValueError("a flat point list needs an even number of values")
        points: list[Point] = []
        for x, y in zip(values[::2], values[1::2]):
            if points and not x > points[-1].x:
                raise ValueError("x values must be strictly increasing")
            points.append(Point(x, y))
        if len(points) < 2:
            raise ValueError("a piecewise linear function needs at least two points")
        return cls(points)

    @property
    def points(self) -> list[Point]:
        """A copy of the control points."""
        return list(self._points)

    def __len__(self) -> int:
        return len(self._points)

    def __repr__(self) -> str:
        inner = ", ".join(f"({p.x:g}, {p.y:g})" for p in self._points)
        return f"Pwl([{inner}])"

    def append(self, x: float, y: float, eps: float = DEFAULT_EPS) -> None:
        """Add a point at the end unless it does not lie beyond the last one."""
        if not self._points or self._points[-1].x + eps < x:
            self._points.append(Point(x, y))

    def prepend(self, x: float, y: float, eps: float = DEFAULT_EPS) -> None:
        """Add a point at the start unless it does not lie before the first one."""
        if not self._points or self._points[0].x - eps > x:
            self._points.insert(0, Point(x, y))

    def domain(self) -> Interval:
        if not self._points:
            raise ValueError("empty piecewise linear function has no domain")
        return Interval(self._points[0].x, self._points[-1].x)

    def range(self) -> Interval:
        if not self._points:
            raise ValueError("empty piecewise linear function has no range")
        ys = [p.y for p in self._points]
        return Interval(min(ys), max(ys))

    def empty(self) -> bool:
        return not self._points

    def _find_span(self, x: float, span: int) -> int:
        points = self._points
        last_span = len(points) - 2
        span = max(0, min(last_span, span))
        while span < last_span and x >= points[span + 1].x:
            span += 1
        while span and x < points[span].x:
            span -= 1
        return span

    def _eval(self, x: float, span: int) -> tuple[float, int]:
        span = self._find_span(x, span)
        p0, p1 = self._points[span], self._points[span + 1]
        return p0.y + (x - p0.x) * (p1.y - p0.y) / (p1.x - p0.x), span

    def eval(self, x: float) -> float:
        """Evaluate the function at x, extrapolating beyond the ends."""
        return self._eval(x, len(self._points) // 2 - 1)[0]

    def eval_span(self, x: float, span: int = -1) -> tuple[float, int]:
        """Evaluate using a span guess (-1 for none); return the value and span used."""
        guess = len(self._points) // 2 - 1 if span == -1 else span
        return self._eval(x, guess)

    def invert(
        self, xy: Point, span: int = -1, eps: float = DEFAULT_EPS
    ) -> tuple[PerpType, Point | None, int]:
        """Find the closest perpendicular to xy, searching from span + 1.

        Returns the kind of point found, the point itself (None if nothing was
        found) and the span, which can be passed back to continue the search.
        """
        if span < -1:
            raise ValueError("span must be at least -1")
        points = self._points
        prev_off_end = False
        span += 1
        while span < len(points) - 1:
            span_vec = points[span + 1] - points[span]
            t = (xy - points[span]).dot(span_vec) / span_vec.len2()
            if t < -eps:
                if span == 0:
                    return PerpType.START, points[span], span
                if prev_off_end:
                    return PerpType.VERTEX, points[span], span
            elif t > 1 + eps:
                if span == len(points) - 2:
                    return PerpType.END, points[span + 1], span
                prev_off_end = True
            else:
                return PerpType.PERPENDICULAR, points[span] + span_vec * t, span
            span += 1
        return PerpType.NOT_FOUND, None, span

    def compose(self, other: Pwl, eps: float = DEFAULT_EPS) -> Pwl:
        """Compose two functions, applying this one first and ``other`` after."""
        points = self._points
        other_points = other._points
        this_x, this_y = points[0].x, points[0].y
        this_span = 0
        other_span = other._find_span(this_y, 0)
        result = Pwl([Point(this_x, other._eval(this_y, other_span)[0])])
        while this_span != len(points) - 1:
            dx = points[this_span + 1].x - points[this_span].x
            dy = points[this_span + 1].y - points[this_span].y
            if (
                abs(dy) > eps
                and other_span + 1 < len(other_points)
                and points[this_span + 1].y >= other_points[other_span + 1].x + eps
            ):
                # Next control point is where our y reaches the next span in other.
                this_x = points[this_span].x + (
                    other_points[other_span + 1].x - points[this_span].y
                ) * dx / dy
                other_span += 1
                this_y = other_points[other_span].x
            elif (
                abs(dy) > eps
                and other_span > 0
                and points[this_span + 1].y <= other_points[other_span - 1].x - eps
            ):
                # Next control point is where our y reaches the previous span in other.
                this_x = points[this_span].x + (
                    other_points[other_span + 1].x - points[this_span].y
                ) * dx / dy
                other_span -= 1
                this_y = other_points[other_span].x
            else:
                this_span += 1
                this_x, this_y = points[this_span].x, points[this_span].y
            result.append(this_x, other._eval(this_y, other_span)[0], eps)
        return result

    def map(self, f: Callable[[float, float], object]) -> None:
        """Call f(x, y) at every control point."""
        for p in self._points:
            f(p.x, p.y)

    @staticmethod
    def map2(pwl0: Pwl, pwl1: Pwl, f: Callable[[float, float, float], object]) -> None:
        """Call f(x, y0, y1) wherever either function has a control point."""
        p0, p1 = pwl0._points, pwl1._points
        span0 = span1 = 0
        x = min(p0[0].x, p1[0].x)
        f(x, pwl0._eval(x, span0)[0], pwl1._eval(x, span1)[0])
        while span0 < len(p0) - 1 or span1 < len(p1) - 1:
            if span0 == len(p0) - 1:
                span1 += 1
                x = p1[span1].x
            elif span1 == len(p1) - 1:
                span0 += 1
                x = p0[span0].x
            elif p0[span0 + 1].x > p1[span1 + 1].x:
                span1 += 1
                x = p1[span1].x
            else:
                span0 += 1
                x = p0[span0].x
            f(x, pwl0._eval(x, span0)[0], pwl1._eval(x, span1)[0])

    @staticmethod
    def combine(
        pwl0: Pwl,
        pwl1: Pwl,
        f: Callable[[float, float, float], float],
        eps: float = DEFAULT_EPS,
    ) -> Pwl:
        """Build a function whose y values are f(x, y0, y1) at every knot of either."""
        result = Pwl()
        Pwl.map2(pwl0, pwl1, lambda x, y0, y1: result.append(x, f(x, y0, y1), eps))
        return result

    def match_domain(self, domain: Interval, clip: bool = True, eps: float = DEFAULT_EPS) -> None:
        """Extend to cover at least the given domain, clipped or linearly."""
        start_x = self._points[0].x if clip else domain.start
        self.prepend(domain.start, self._eval(start_x, 0)[0], eps)
        end_x = self._points[-1].x if clip else domain.end
        self.append(domain.end, self._eval(end_x, len(self._points) - 2)[0], eps)

    def generate_lut(self, as_int: bool = False) -> list[float] | list[int]:
        """Tabulate the function at 0, 1, ... up to the end of its domain."""
        end = int(self.domain().end + 1)
        span = 0
        lut = []
        for x in range(end):
            value, span = self._eval(x, span)
            lut.append(int(value) if as_int else value)
        return lut

    def __imul__(self, factor: float) -> Pwl:
        self._points = [Point(p.x, p.y * factor) for p in self._points]
        return self

    def debug(self, file: TextIO | None = None) -> None:
        """Write the control points in a readable form (to stderr by default)."""
        out = sys.stderr if file is None else file
        out.write("Pwl {\n")
        for p in self._points:
            out.write(f"\t({p.x:g}, {p.y:g})\n")
        out.write("}\n")