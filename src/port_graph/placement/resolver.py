"""
Port placement resolver.

Turns a node, its derived ports and its size into concrete coordinates:
a node-local ``render_position`` for the port visual and a canvas-space
``connection_point`` where curves attach. The resolver never raises for
missing or degenerate geometry; such ports fall back to the node centre.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Mapping, Optional, Sequence

from ..types import (
    AbsolutePlacement,
    Connection,
    Node,
    Port,
    PortPosition,
    Position,
    PositionUnit,
    RenderPosition,
    Side,
    Size,
)
from ..validation import validate_size
from .config import DEFAULT_PORT_POSITION_CONFIG, PortPositionConfig
from .segments import group_side_ports, side_fractions

if TYPE_CHECKING:
    from ..definitions import NodeType
    from ..graph import GraphSnapshot

logger = logging.getLogger(__name__)


def compute_default_positions(
    node: Node,
    ports: Sequence[Port],
    size: Optional[Size],
    config: PortPositionConfig = DEFAULT_PORT_POSITION_CONFIG,
) -> dict[str, PortPosition]:
    """
    Place ports with the built-in side/segment and absolute rules.

    Args:
        node: Node owning the ports
        ports: Ports to place (side and absolute placements may be mixed)
        size: Known node size, or None when it has not been measured
        config: Placement parameters

    Returns:
        Mapping of port id to resolved position, in port order
    """
    known_size = validate_size(size)
    effective = known_size or config.default_node_size
    inset = config.effective_inset
    resolved: dict[str, tuple[float, float, Side]] = {}

    for side, segments in group_side_ports(ports).items():
        for port, fraction in side_fractions(segments, config):
            offset = inset if port.placement.inset else 0.0  # type: ignore[union-attr]
            x, y = _side_anchor(side, fraction, effective, offset)
            resolved[port.id] = (x, y, side)

    for port in ports:
        placement = port.placement
        if not isinstance(placement, AbsolutePlacement):
            continue
        if placement.unit is PositionUnit.PERCENT:
            if known_size is None:
                logger.debug(
                    "Node %s has no size; percent port %s falls back to the centre", node.id, port.id
                )
                centre = effective.center
                resolved[port.id] = (centre.x, centre.y, _nearest_side(centre.x, centre.y, effective))
                continue
            x = placement.x / 100.0 * known_size.width
            y = placement.y / 100.0 * known_size.height
        else:
            x, y = float(placement.x), float(placement.y)
        side = placement.side or _nearest_side(x, y, effective)
        resolved[port.id] = (x, y, side)

    positions: dict[str, PortPosition] = {}
    for port in ports:
        if port.id not in resolved:
            continue
        x, y, side = resolved[port.id]
        if not (math.isfinite(x) and math.isfinite(y)):
            logger.debug("Port %s:%s resolved to non-finite coordinates; using the centre", node.id, port.id)
            centre = effective.center
            x, y = centre.x, centre.y
        positions[port.id] = _make_position(node, port.id, x, y, side)
    return positions


def resolve_positions(
    node: Node,
    ports: Sequence[Port],
    node_type: Optional[NodeType] = None,
    config: PortPositionConfig = DEFAULT_PORT_POSITION_CONFIG,
) -> dict[str, PortPosition]:
    """
    Resolve the positions of a node's ports.

    The node's measured size is preferred, then the type's default size. A
    node type may replace the built-in algorithm with
    ``compute_port_positions``; ports the replacement does not place are
    filled in by the built-in algorithm.

    Args:
        node: Node owning the ports
        ports: Ports derived for the node
        node_type: The node's type descriptor, if registered
        config: Placement parameters

    Returns:
        Mapping of port id to resolved position

    Example:
        positions = resolve_positions(node, snapshot.ports(node.id), registry.get(node.type))
        anchor = positions["out"].connection_point
    """
    size = validate_size(node.size)
    if size is None and node_type is not None:
        size = validate_size(node_type.default_size)

    override = node_type.compute_port_positions if node_type is not None else None
    if override is None:
        return compute_default_positions(node, ports, size, config)

    placed = dict(override(node, list(ports), size or config.default_node_size))
    missing = [p for p in ports if p.id not in placed]
    if missing:
        logger.debug(
            "Placement override for node %s skipped %d port(s); using defaults", node.id, len(missing)
        )
        placed.update(compute_default_positions(node, missing, size, config))
    return {p.id: placed[p.id] for p in ports if p.id in placed}


def resolve_node_positions(
    snapshot: GraphSnapshot,
    node_id: str,
    config: PortPositionConfig = DEFAULT_PORT_POSITION_CONFIG,
) -> dict[str, PortPosition]:
    """Resolve every port of one node in a snapshot; empty for unknown nodes."""
    node = snapshot.node(node_id)
    if node is None:
        return {}
    return resolve_positions(node, snapshot.ports(node_id), snapshot.node_type(node_id), config)


def resolve_graph_positions(
    snapshot: GraphSnapshot,
    config: PortPositionConfig = DEFAULT_PORT_POSITION_CONFIG,
) -> dict[str, dict[str, PortPosition]]:
    """Resolve every port in a snapshot, keyed by node id then port id."""
    return {node_id: resolve_node_positions(snapshot, node_id, config) for node_id in snapshot.nodes}


def connection_endpoints(
    snapshot: GraphSnapshot,
    connection: Connection,
    positions: Optional[Mapping[str, Mapping[str, PortPosition]]] = None,
    config: PortPositionConfig = DEFAULT_PORT_POSITION_CONFIG,
) -> Optional[tuple[PortPosition, PortPosition]]:
    """
    Resolved positions of both ends of a connection.

    Args:
        snapshot: Graph snapshot
        connection: Connection to locate
        positions: Precomputed ``resolve_graph_positions`` output, if available
        config: Placement parameters used when positions are computed here

    Returns:
        (from_position, to_position), or None for a dangling connection
    """
    ends = []
    for node_id, port_id in (connection.from_key, connection.to_key):
        if positions is not None and node_id in positions:
            node_positions = positions[node_id]
        else:
            node_positions = resolve_node_positions(snapshot, node_id, config)
        position = node_positions.get(port_id)
        if position is None:
            return None
        ends.append(position)
    return ends[0], ends[1]


def _side_anchor(side: Side, fraction: float, size: Size, inset: float) -> tuple[float, float]:
    if side is Side.LEFT:
        return inset, size.height * fraction
    if side is Side.RIGHT:
        return size.width - inset, size.height * fraction
    if side is Side.TOP:
        return size.width * fraction, inset
    return size.width * fraction, size.height - inset


def _nearest_side(x: float, y: float, size: Size) -> Side:
    distances = [
        (abs(x), Side.LEFT),
        (abs(size.width - x), Side.RIGHT),
        (abs(y), Side.TOP),
        (abs(size.height - y), Side.BOTTOM),
    ]
    best = distances[0]
    for candidate in distances[1:]:
        if candidate[0] < best[0]:
            best = candidate
    return best[1]


def _make_position(node: Node, port_id: str, x: float, y: float, side: Side) -> PortPosition:
    origin = node.position
    if not (math.isfinite(origin.x) and math.isfinite(origin.y)):
        logger.debug("Node %s has a non-finite position; anchoring its ports at the canvas origin", node.id)
        origin = Position(
            origin.x if math.isfinite(origin.x) else 0.0,
            origin.y if math.isfinite(origin.y) else 0.0,
        )
    return PortPosition(
        port_id=port_id,
        render_position=RenderPosition(x, y),
        connection_point=origin + Position(x, y),
        side=side,
    )
