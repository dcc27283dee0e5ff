"""
Cubic Bezier evaluation.

Pure functions over four control points. ``t`` is not clamped, so values
outside [0, 1] extrapolate the curve.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np

from ..types import Position
from ..validation import validate_segments

PointLike = Union[Position, Sequence[float]]
"""A Position or an (x, y) pair."""


def as_position(point: PointLike) -> Position:
    """Coerce an (x, y) pair to a Position."""
    if isinstance(point, Position):
        return point
    x, y = point
    return Position(float(x), float(y))


def point_at(p0: PointLike, p1: PointLike, p2: PointLike, p3: PointLike, t: float) -> Position:
    """
    Evaluate the curve at parameter ``t``.

    Exact at the endpoints: t=0 returns p0 and t=1 returns p3.
    """
    a, b, c, d = as_position(p0), as_position(p1), as_position(p2), as_position(p3)
    if t == 0:
        return a
    if t == 1:
        return d
    mt = 1.0 - t
    w0 = mt * mt * mt
    w1 = 3.0 * mt * mt * t
    w2 = 3.0 * mt * t * t
    w3 = t * t * t
    return Position(
        w0 * a.x + w1 * b.x + w2 * c.x + w3 * d.x,
        w0 * a.y + w1 * b.y + w2 * c.y + w3 * d.y,
    )


def tangent_at(p0: PointLike, p1: PointLike, p2: PointLike, p3: PointLike, t: float) -> Position:
    """First derivative of the curve at ``t`` (not normalized)."""
    a, b, c, d = as_position(p0), as_position(p1), as_position(p2), as_position(p3)
    mt = 1.0 - t
    w0 = 3.0 * mt * mt
    w1 = 6.0 * mt * t
    w2 = 3.0 * t * t
    return Position(
        w0 * (b.x - a.x) + w1 * (c.x - b.x) + w2 * (d.x - c.x),
        w0 * (b.y - a.y) + w1 * (c.y - b.y) + w2 * (d.y - c.y),
    )


def sample_points(
    p0: PointLike, p1: PointLike, p2: PointLike, p3: PointLike, segments: int = 10
) -> np.ndarray:
    """
    Sample the curve at ``segments + 1`` evenly spaced parameters.

    Returns:
        Array of shape (segments + 1, 2); the first and last rows are p0 and p3

    Raises:
        ValidationError: If segments < 1
    """
    segments = validate_segments(segments)
    control = np.array([as_position(p).as_tuple() for p in (p0, p1, p2, p3)], dtype=float)
    t = np.linspace(0.0, 1.0, segments + 1)[:, np.newaxis]
    mt = 1.0 - t
    weights = np.hstack([mt**3, 3.0 * mt**2 * t, 3.0 * mt * t**2, t**3])
    # Relative to p0 so coincident control points give exactly zero-length steps
    points = control[0] + weights @ (control - control[0])
    points[0] = control[0]
    points[-1] = control[3]
    return points


def length_approx(
    p0: PointLike, p1: PointLike, p2: PointLike, p3: PointLike, segments: int = 10
) -> float:
    """
    Approximate arc length by summing a sampled polyline.

    More segments trade speed for accuracy; the result never exceeds the
    true length.
    """
    points = sample_points(p0, p1, p2, p3, segments)
    return float(np.sum(np.hypot(*np.diff(points, axis=0).T)))


@dataclass(frozen=True)
class CubicBezier:
    """A cubic Bezier curve with its four control points."""

    p0: Position
    p1: Position
    p2: Position
    p3: Position

    @classmethod
    def from_points(cls, p0: PointLike, p1: PointLike, p2: PointLike, p3: PointLike) -> CubicBezier:
        return cls(as_position(p0), as_position(p1), as_position(p2), as_position(p3))

    @property
    def control_points(self) -> tuple[Position, Position, Position, Position]:
        return (self.p0, self.p1, self.p2, self.p3)

    def point_at(self, t: float) -> Position:
        return point_at(self.p0, self.p1, self.p2, self.p3, t)

    def tangent_at(self, t: float) -> Position:
        return tangent_at(self.p0, self.p1, self.p2, self.p3, t)

    def sample(self, segments: int = 10) -> np.ndarray:
        return sample_points(self.p0, self.p1, self.p2, self.p3, segments)

    def length(self, segments: int = 10) -> float:
        return length_approx(self.p0, self.p1, self.p2, self.p3, segments)

    def bounds(self) -> tuple[float, float, float, float]:
        """Bounding box (min_x, min_y, max_x, max_y) of the control polygon."""
        xs = [p.x for p in self.control_points]
        ys = [p.y for p in self.control_points]
        return (min(xs), min(ys), max(xs), max(ys))
