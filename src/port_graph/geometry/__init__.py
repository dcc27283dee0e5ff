"""
Curve geometry for connections.

- curve: cubic Bezier evaluation (point, tangent, sampling, length)
- connection: control points, path descriptions and midpoints between ports
- hit_testing: nearest point, curve proximity and port snapping
"""

from .connection import (
    CurveMidpoint,
    connection_curve,
    connection_midpoint,
    connection_path,
    control_points,
    curve_between,
)
from .curve import CubicBezier, as_position, length_approx, point_at, sample_points, tangent_at
from .hit_testing import (
    CurveHit,
    distance_to_curve,
    find_nearest_connection,
    find_nearest_port,
    is_point_near_curve,
    nearest_point_on_curve,
)

__all__ = [
    "CubicBezier",
    "as_position",
    "point_at",
    "tangent_at",
    "sample_points",
    "length_approx",
    "control_points",
    "connection_curve",
    "curve_between",
    "connection_path",
    "connection_midpoint",
    "CurveMidpoint",
    "CurveHit",
    "nearest_point_on_curve",
    "distance_to_curve",
    "is_point_near_curve",
    "find_nearest_connection",
    "find_nearest_port",
]
