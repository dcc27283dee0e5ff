"""
Proximity queries against curves and port anchors.

Sampling is vectorized with numpy; the best sample is then refined with a
ternary search over the neighbouring parameter interval.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable, Mapping, Optional, TypeVar

import numpy as np

from ..types import Position
from ..validation import validate_segments
from .curve import CubicBezier, PointLike, as_position

K = TypeVar("K", bound=Hashable)

_REFINE_ITERATIONS = 50


@dataclass(frozen=True)
class CurveHit:
    """Closest point on a curve to a query point."""

    t: float
    point: Position
    distance: float


def _distance(curve: CubicBezier, t: float, target: Position) -> float:
    p = curve.point_at(t)
    return float(np.hypot(p.x - target.x, p.y - target.y))


def nearest_point_on_curve(curve: CubicBezier, point: PointLike, samples: int = 32) -> CurveHit:
    """
    Find the point of ``curve`` closest to ``point``.

    Args:
        curve: Curve to search
        point: Query point
        samples: Number of sampling segments before refinement

    Returns:
        CurveHit with the parameter, the point and its distance

    Raises:
        ValidationError: If samples < 1
    """
    samples = validate_segments(samples)
    target = as_position(point)
    pts = curve.sample(samples)
    dists = np.hypot(pts[:, 0] - target.x, pts[:, 1] - target.y)
    best = int(np.argmin(dists))

    lo = max(best - 1, 0) / samples
    hi = min(best + 1, samples) / samples
    for _ in range(_REFINE_ITERATIONS):
        m1 = lo + (hi - lo) / 3.0
        m2 = hi - (hi - lo) / 3.0
        if _distance(curve, m1, target) < _distance(curve, m2, target):
            hi = m2
        else:
            lo = m1

    t = (lo + hi) / 2.0
    refined = _distance(curve, t, target)
    # Refinement can only improve on the best sample
    if refined > dists[best]:
        t = best / samples
        refined = float(dists[best])
    return CurveHit(t=t, point=curve.point_at(t), distance=refined)


def distance_to_curve(curve: CubicBezier, point: PointLike, samples: int = 32) -> float:
    return nearest_point_on_curve(curve, point, samples).distance


def is_point_near_curve(
    curve: CubicBezier, point: PointLike, tolerance: float = 8.0, samples: int = 32
) -> bool:
    """Check whether ``point`` lies within ``tolerance`` of the curve."""
    x0, y0, x1, y1 = curve.bounds()
    p = as_position(point)
    # The curve lies inside its control polygon's bounding box
    if p.x < x0 - tolerance or p.x > x1 + tolerance or p.y < y0 - tolerance or p.y > y1 + tolerance:
        return False
    return distance_to_curve(curve, p, samples) <= tolerance


def find_nearest_connection(
    curves: Mapping[K, CubicBezier],
    point: PointLike,
    tolerance: float = 8.0,
    samples: int = 32,
) -> Optional[K]:
    """
    Key of the curve closest to ``point`` within ``tolerance``.

    Ties keep the first key in mapping order. Returns None when no curve
    is close enough.
    """
    target = as_position(point)
    best_key: Optional[K] = None
    best_distance = float("inf")
    for key, curve in curves.items():
        if not is_point_near_curve(curve, target, tolerance, samples):
            continue
        distance = distance_to_curve(curve, target, samples)
        if distance < best_distance:
            best_key, best_distance = key, distance
    return best_key


def find_nearest_port(
    anchors: Mapping[K, PointLike],
    pointer: PointLike,
    snap_distance: float = 24.0,
) -> Optional[K]:
    """
    Key of the anchor closest to ``pointer`` within ``snap_distance``.

    Args:
        anchors: Port keys mapped to their connection points
        pointer: Pointer position in canvas coordinates
        snap_distance: Maximum accepted distance

    Returns:
        The nearest key, first in mapping order on ties, or None
    """
    if not anchors:
        return None
    keys = list(anchors)
    coords = np.array([as_position(anchors[k]).as_tuple() for k in keys], dtype=float)
    p = as_position(pointer)
    dists = np.hypot(coords[:, 0] - p.x, coords[:, 1] - p.y)
    # Anchors with non-finite coordinates never snap
    dists = np.where(np.isfinite(dists), dists, np.inf)
    best = int(np.argmin(dists))
    if not np.isfinite(dists[best]) or dists[best] > snap_distance:
        return None
    return keys[best]
