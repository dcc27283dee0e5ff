"""
Side segmentation and offset spreading for side-placed ports.

Each side of a node is split into consecutive bands ("segments"). Bands are
ordered by their segment order and sized proportionally to their span; ports
in a band are spread along it without overlapping.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ..types import Port, Side, SidePlacement
from .config import DEFAULT_PORT_POSITION_CONFIG, PortPositionConfig


@dataclass
class Segment:
    """Ports sharing a band on one side of a node."""

    key: Optional[str]
    order: float = 0.0
    span: float = 1.0
    ports: list[Port] = field(default_factory=list)

    @property
    def effective_span(self) -> float:
        if self.span is None or not math.isfinite(self.span) or self.span <= 0:
            return 1.0
        return self.span


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def compute_segment_offsets(
    aligns: Sequence[Optional[float]],
    config: PortPositionConfig = DEFAULT_PORT_POSITION_CONFIG,
) -> list[float]:
    """
    Spread ports along one segment.

    Args:
        aligns: Preferred offset of each port (0.0 to 1.0), None for no preference
        config: Bounds and separation parameters

    Returns:
        Offset of each port within the segment, in input order
    """
    n = len(aligns)
    if n == 0:
        return []
    if n == 1:
        align = aligns[0]
        return [_clamp(align, 0.0, 1.0) if _usable(align) else 0.5]

    desired = [
        _clamp(align, 0.0, 1.0) if _usable(align) else (i + 1) / (n + 1)
        for i, align in enumerate(aligns)
    ]
    ranked = sorted(range(n), key=lambda i: (desired[i], i))

    min_gap = min(config.max_gap, 0.4 / max(1, n - 1))
    adjusted = [0.0] * n
    current = config.min_bound
    for i in ranked:
        offset = max(_clamp(desired[i], config.min_bound, config.max_bound), current)
        adjusted[i] = offset
        current = offset + min_gap

    # Walk back from max_bound so an overflowing run fits and keeps its gaps
    if adjusted[ranked[-1]] > config.max_bound:
        current = config.max_bound
        for i in reversed(ranked):
            offset = max(min(adjusted[i], current), config.min_bound)
            adjusted[i] = offset
            current = offset - min_gap

    return adjusted


def group_side_ports(ports: Sequence[Port]) -> dict[Side, list[Segment]]:
    """
    Group side-placed ports by side and segment key.

    Segments are ordered by ``segment_order`` (default 0), ties broken by
    first appearance. Any port of a segment may carry the order and span
    hints; the last explicit value wins.
    """
    by_side: dict[Side, dict[Optional[str], Segment]] = defaultdict(dict)

    for port in ports:
        placement = port.placement
        if not isinstance(placement, SidePlacement):
            continue
        segments = by_side[placement.side]
        segment = segments.get(placement.segment)
        if segment is None:
            segment = Segment(key=placement.segment)
            segments[placement.segment] = segment
        if placement.segment_order is not None:
            segment.order = placement.segment_order
        if placement.segment_span is not None:
            segment.span = placement.segment_span
        segment.ports.append(port)

    ordered: dict[Side, list[Segment]] = {}
    for side, segments in by_side.items():
        # sorted() is stable, so insertion order breaks ties
        ordered[side] = sorted(segments.values(), key=lambda s: s.order)
    return ordered


def side_fractions(
    segments: Sequence[Segment],
    config: PortPositionConfig = DEFAULT_PORT_POSITION_CONFIG,
) -> list[tuple[Port, float]]:
    """
    Fraction along the side (0.0 to 1.0) for every port of one side.

    Args:
        segments: Ordered segments of a single side
        config: Placement parameters

    Returns:
        (port, fraction) pairs in segment order
    """
    total_span = sum(segment.effective_span for segment in segments)
    fractions: list[tuple[Port, float]] = []
    cursor = 0.0

    for segment in segments:
        length = segment.effective_span / total_span if total_span > 0 else 0.0
        offsets = compute_segment_offsets(
            [p.placement.align for p in segment.ports],  # type: ignore[union-attr]
            config,
        )
        for port, offset in zip(segment.ports, offsets):
            fractions.append((port, cursor + length * offset))
        cursor += length

    return fractions


def _usable(value: Optional[float]) -> bool:
    return value is not None and isinstance(value, (int, float)) and math.isfinite(value)
