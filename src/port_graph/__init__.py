"""
port-graph: Port placement and connection engine for node-graph editors.

This package provides the headless core of a node editor, independent of
any rendering layer:

- definitions: node types, port templates and dynamic port expansion
- graph: read-only graph snapshots and the host interface
- placement: side/segment and absolute port placement
- compatibility: layered rules deciding whether two ports may connect
- geometry: connection curves, paths, midpoints and hit testing
- interaction: the connection drag state machine
"""

__version__ = "0.1.0"

# Connection rules
from .compatibility import (
    CANDIDATE_NODE_ID,
    DEFAULT_CONNECTION_POLICY,
    ConnectionDecision,
    ConnectionPlan,
    ConnectionPolicy,
    ConnectionSwitchBehavior,
    PortConnectionContext,
    RejectionReason,
    are_data_types_compatible,
    can_create_connection,
    find_connectable_port,
    get_connectable_node_types,
    get_connectable_ports,
    normalize_connection_ports,
    normalize_data_types,
    plan_connection_change,
)

# Node types and port templates
from .definitions import (
    DEFAULT_MAX_PORT_INSTANCES,
    NodeType,
    NodeTypeRegistry,
    PortInstanceContext,
    PortInstanceFactoryContext,
    PortTemplate,
    default_port_templates,
    derive_node_ports,
)

# Curve geometry
from .geometry import (
    CubicBezier,
    CurveMidpoint,
    connection_curve,
    connection_midpoint,
    connection_path,
    control_points,
    find_nearest_connection,
    find_nearest_port,
    is_point_near_curve,
    length_approx,
    nearest_point_on_curve,
    point_at,
    tangent_at,
)

# Graph snapshots
from .graph import GraphHost, GraphSnapshot, PruneResult, prune_dangling_connections

# Drag interaction
from .interaction import (
    ConnectionDragMachine,
    ConnectionEnd,
    DragEvent,
    DragEventType,
    DragOutcome,
    DragState,
    InteractionConfig,
    PortHighlight,
)

# Port placement
from .placement import (
    DEFAULT_PORT_POSITION_CONFIG,
    PortPositionConfig,
    compute_default_positions,
    connection_endpoints,
    resolve_graph_positions,
    resolve_node_positions,
    resolve_positions,
)

# Shared types
from .types import (
    UNLIMITED,
    AbsolutePlacement,
    Connection,
    Node,
    Port,
    PortDirection,
    PortPosition,
    Position,
    PositionUnit,
    RenderPosition,
    Side,
    SidePlacement,
    Size,
)

# Validation
from .validation import (
    DuplicateNodeTypeError,
    InvalidPlacementError,
    InvalidPortTemplateError,
    PortConfigurationWarning,
    UnknownNodeTypeError,
    ValidationError,
)

__all__ = [
    # Types
    "UNLIMITED",
    "Position",
    "Size",
    "Side",
    "PortDirection",
    "PositionUnit",
    "SidePlacement",
    "AbsolutePlacement",
    "Port",
    "Node",
    "Connection",
    "RenderPosition",
    "PortPosition",
    # Definitions
    "DEFAULT_MAX_PORT_INSTANCES",
    "PortTemplate",
    "PortInstanceContext",
    "PortInstanceFactoryContext",
    "NodeType",
    "NodeTypeRegistry",
    "default_port_templates",
    "derive_node_ports",
    # Graph
    "GraphHost",
    "GraphSnapshot",
    "PruneResult",
    "prune_dangling_connections",
    # Placement
    "PortPositionConfig",
    "DEFAULT_PORT_POSITION_CONFIG",
    "resolve_positions",
    "compute_default_positions",
    "resolve_node_positions",
    "resolve_graph_positions",
    "connection_endpoints",
    # Compatibility
    "RejectionReason",
    "ConnectionDecision",
    "PortConnectionContext",
    "ConnectionPolicy",
    "CANDIDATE_NODE_ID",
    "DEFAULT_CONNECTION_POLICY",
    "normalize_data_types",
    "are_data_types_compatible",
    "can_create_connection",
    "find_connectable_port",
    "get_connectable_node_types",
    "normalize_connection_ports",
    "get_connectable_ports",
    "ConnectionSwitchBehavior",
    "ConnectionPlan",
    "plan_connection_change",
    # Geometry
    "CubicBezier",
    "CurveMidpoint",
    "point_at",
    "tangent_at",
    "length_approx",
    "control_points",
    "connection_curve",
    "connection_path",
    "connection_midpoint",
    "nearest_point_on_curve",
    "is_point_near_curve",
    "find_nearest_connection",
    "find_nearest_port",
    # Interaction
    "ConnectionDragMachine",
    "ConnectionEnd",
    "DragState",
    "DragOutcome",
    "DragEvent",
    "DragEventType",
    "InteractionConfig",
    "PortHighlight",
    # Validation
    "ValidationError",
    "InvalidPlacementError",
    "InvalidPortTemplateError",
    "DuplicateNodeTypeError",
    "UnknownNodeTypeError",
    "PortConfigurationWarning",
]
