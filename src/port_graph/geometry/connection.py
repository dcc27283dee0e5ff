"""
Connection curves between two ports.

A connection leaves its origin perpendicular to the origin port's side and
arrives perpendicular to the destination port's side. The control point
offset grows with the distance between the endpoints, within bounds.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from ..types import PortPosition, Position, Side
from .curve import CubicBezier, PointLike, as_position, point_at, tangent_at

MIN_CONTROL_OFFSET = 40.0
MAX_CONTROL_OFFSET = 120.0
OPPOSITE_FACING_FACTOR = 0.4


@dataclass(frozen=True)
class CurveMidpoint:
    """Point at t=0.5 with the tangent angle in degrees (for badges and markers)."""

    x: float
    y: float
    angle: float


def _is_opposite_facing(from_side: Side, to_side: Side) -> bool:
    return from_side.opposite() is to_side


def control_points(
    from_point: PointLike,
    to_point: PointLike,
    from_side: Optional[Side] = None,
    to_side: Optional[Side] = None,
    min_offset: float = MIN_CONTROL_OFFSET,
    max_offset: float = MAX_CONTROL_OFFSET,
) -> tuple[Position, Position]:
    """
    Control points for a curve between two port anchors.

    Each control point is pushed outward from its anchor along the normal of
    the port's side. The offset is half the endpoint distance clamped into
    [min_offset, max_offset], and at least 0.4 of the distance when the sides
    face each other.

    Args:
        from_point: Origin anchor
        to_point: Destination anchor
        from_side: Side of the origin port (right when unknown)
        to_side: Side of the destination port (left when unknown)
        min_offset: Lower bound of the offset
        max_offset: Upper bound of the offset

    Returns:
        (cp1, cp2)
    """
    start, end = as_position(from_point), as_position(to_point)
    from_side = from_side or Side.RIGHT
    to_side = to_side or Side.LEFT

    distance = math.hypot(end.x - start.x, end.y - start.y)
    offset = max(min_offset, min(max_offset, distance * 0.5))
    if _is_opposite_facing(from_side, to_side):
        offset = max(offset, distance * OPPOSITE_FACING_FACTOR)

    nx, ny = from_side.normal()
    cp1 = Position(start.x + nx * offset, start.y + ny * offset)
    nx, ny = to_side.normal()
    cp2 = Position(end.x + nx * offset, end.y + ny * offset)
    return cp1, cp2


def connection_curve(
    from_point: PointLike,
    to_point: PointLike,
    from_side: Optional[Side] = None,
    to_side: Optional[Side] = None,
) -> CubicBezier:
    """Build the full curve between two anchors."""
    start, end = as_position(from_point), as_position(to_point)
    cp1, cp2 = control_points(start, end, from_side, to_side)
    return CubicBezier(start, cp1, cp2, end)


def curve_between(from_position: PortPosition, to_position: PortPosition) -> CubicBezier:
    """Curve joining two resolved port positions."""
    return connection_curve(
        from_position.connection_point,
        to_position.connection_point,
        from_position.side,
        to_position.side,
    )


def _fmt(value: float, precision: int) -> str:
    text = f"{value:.{precision}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def connection_path(
    from_point: PointLike,
    to_point: PointLike,
    from_side: Optional[Side] = None,
    to_side: Optional[Side] = None,
    precision: int = 3,
) -> str:
    """
    Path description of the connection curve.

    Returns:
        ``"M x y C c1x c1y, c2x c2y, x y"`` with numbers rounded to ``precision``
        decimals and trailing zeros dropped

    Example:
        >>> connection_path((0, 0), (100, 0), Side.RIGHT, Side.LEFT)
        'M 0 0 C 50 0, 50 0, 100 0'
    """
    curve = connection_curve(from_point, to_point, from_side, to_side)
    p0, p1, p2, p3 = curve.control_points

    def pair(p: Position) -> str:
        return f"{_fmt(p.x, precision)} {_fmt(p.y, precision)}"

    return f"M {pair(p0)} C {pair(p1)}, {pair(p2)}, {pair(p3)}"


def connection_midpoint(
    from_point: PointLike,
    to_point: PointLike,
    from_side: Optional[Side] = None,
    to_side: Optional[Side] = None,
) -> CurveMidpoint:
    """Midpoint of the connection curve and its direction in degrees."""
    curve = connection_curve(from_point, to_point, from_side, to_side)
    point = point_at(*curve.control_points, 0.5)
    tangent = tangent_at(*curve.control_points, 0.5)
    return CurveMidpoint(point.x, point.y, math.degrees(math.atan2(tangent.y, tangent.x)))
