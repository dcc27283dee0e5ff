"""
Port placement.

Resolves side-placed and absolutely placed ports to node-local render
anchors and canvas connection points:
- PortPositionConfig: placement constants (bounds, inset, fallback size)
- resolve_positions: one node, honouring a node type's placement override
- compute_default_positions: the built-in side/segment/absolute algorithm
- resolve_node_positions, resolve_graph_positions: snapshot helpers
"""

from .config import DEFAULT_PORT_POSITION_CONFIG, PortPositionConfig
from .resolver import (
    compute_default_positions,
    connection_endpoints,
    resolve_graph_positions,
    resolve_node_positions,
    resolve_positions,
)
from .segments import Segment, compute_segment_offsets, group_side_ports, side_fractions

__all__ = [
    "PortPositionConfig",
    "DEFAULT_PORT_POSITION_CONFIG",
    "resolve_positions",
    "compute_default_positions",
    "resolve_node_positions",
    "resolve_graph_positions",
    "connection_endpoints",
    "Segment",
    "compute_segment_offsets",
    "group_side_ports",
    "side_fractions",
]
