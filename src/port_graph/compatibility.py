"""
Connection compatibility rules.

Decides whether a connection between two ports may be created. Rules run in
a fixed order and the first failing rule determines the reported reason:

0. Structure: both ports exist, distinct nodes, opposite directions, no duplicate
1. Data types: the declared type sets intersect (no declaration accepts anything)
2. Predicates: a port's ``can_connect`` replaces rule 1 when present
3. Capacity: neither port has reached ``max_connections``
4. Node veto: each endpoint's node type may still reject the pair
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional, Union

from .types import Connection, DataTypeSpec, Node, Port, PortDirection

if TYPE_CHECKING:
    from .definitions import NodeType
    from .graph import GraphSnapshot

logger = logging.getLogger(__name__)


class RejectionReason(str, Enum):
    """Why a connection was refused."""

    MISSING_PORT = "missing-port"
    SAME_NODE = "same-node"
    DIRECTION = "direction"
    DUPLICATE = "duplicate"
    DATA_TYPE = "data-type"
    PREDICATE = "predicate"
    CAPACITY = "capacity"
    NODE_VETO = "node-veto"


@dataclass(frozen=True)
class ConnectionDecision:
    """Outcome of a compatibility check; truthy when allowed."""

    allowed: bool
    reason: Optional[RejectionReason] = None

    def __bool__(self) -> bool:
        return self.allowed

    @classmethod
    def allow(cls) -> ConnectionDecision:
        return cls(True)

    @classmethod
    def reject(cls, reason: RejectionReason) -> ConnectionDecision:
        return cls(False, reason)


@dataclass(frozen=True)
class PortConnectionContext:
    """
    Everything a ``can_connect`` predicate may inspect.

    ``data_type_compatible`` carries the data type rule's verdict so a
    predicate can delegate to it, force-accept, or force-reject.
    """

    from_port: Port
    to_port: Port
    from_node: Optional[Node]
    to_node: Optional[Node]
    from_node_type: Optional[NodeType]
    to_node_type: Optional[NodeType]
    connections: tuple[Connection, ...]
    data_type_compatible: bool


@dataclass(frozen=True)
class ConnectionPolicy:
    """
    Structural rules applied before the data type rule.

    Attributes:
        require_opposite_directions: Only output -> input pairs may connect
        allow_same_node: Permit connections between two ports of one node
        allow_duplicates: Permit a second connection between the same two ports
    """

    require_opposite_directions: bool = True
    allow_same_node: bool = False
    allow_duplicates: bool = False


DEFAULT_CONNECTION_POLICY = ConnectionPolicy()


def normalize_data_types(spec: DataTypeSpec) -> tuple[str, ...]:
    """
    Normalize a data type declaration to a tuple of names.

    An empty tuple is the wildcard. Order is preserved and repeats dropped.
    """
    if spec is None:
        return ()
    if isinstance(spec, str):
        return (spec,) if spec else ()
    names: list[str] = []
    for name in spec:
        if name and name not in names:
            names.append(name)
    return tuple(names)


def are_data_types_compatible(a: DataTypeSpec, b: DataTypeSpec) -> bool:
    """Two declarations are compatible if either is a wildcard or they share a name."""
    types_a = normalize_data_types(a)
    types_b = normalize_data_types(b)
    if not types_a or not types_b:
        return True
    return not set(types_a).isdisjoint(types_b)


def normalize_connection_ports(a: Port, b: Port) -> tuple[Port, Port]:
    """Orient a port pair so an output comes first when the directions differ."""
    if a.direction is PortDirection.INPUT and b.direction is PortDirection.OUTPUT:
        return b, a
    return a, b


def is_port_at_capacity(port: Port, snapshot: GraphSnapshot) -> bool:
    """Check whether a port's live connections already reach its limit."""
    if port.is_unlimited:
        return False
    return len(snapshot.port_connections(port)) >= int(port.max_connections)


def can_create_connection(
    from_port: Port,
    to_port: Port,
    snapshot: GraphSnapshot,
    policy: ConnectionPolicy = DEFAULT_CONNECTION_POLICY,
) -> ConnectionDecision:
    """
    Decide whether ``from_port`` may be connected to ``to_port``.

    Ports are looked up again in ``snapshot`` so stale Port objects from an
    earlier layout pass are evaluated against the current graph.

    Args:
        from_port: Origin port
        to_port: Destination port
        snapshot: Current graph snapshot
        policy: Structural rules

    Returns:
        ConnectionDecision with the first failing rule's reason

    Example:
        decision = can_create_connection(out_port, in_port, snapshot)
        if not decision:
            print(decision.reason.value)
    """
    decision = _evaluate(from_port, to_port, snapshot, policy)
    logger.debug(
        "Connection %s:%s -> %s:%s %s%s",
        from_port.node_id,
        from_port.id,
        to_port.node_id,
        to_port.id,
        "allowed" if decision.allowed else "rejected",
        f" ({decision.reason.value})" if decision.reason else "",
    )
    return decision


def _evaluate(
    from_port: Port,
    to_port: Port,
    snapshot: GraphSnapshot,
    policy: ConnectionPolicy,
) -> ConnectionDecision:
    source = snapshot.port(from_port.node_id, from_port.id)
    target = snapshot.port(to_port.node_id, to_port.id)
    if source is None or target is None:
        return ConnectionDecision.reject(RejectionReason.MISSING_PORT)

    # Structure
    if source.key == target.key:
        return ConnectionDecision.reject(RejectionReason.SAME_NODE)
    if source.node_id == target.node_id and not policy.allow_same_node:
        return ConnectionDecision.reject(RejectionReason.SAME_NODE)
    if policy.require_opposite_directions and source.direction is target.direction:
        return ConnectionDecision.reject(RejectionReason.DIRECTION)
    if not policy.allow_duplicates and snapshot.find_connection(source.key, target.key) is not None:
        return ConnectionDecision.reject(RejectionReason.DUPLICATE)

    from_node_type = snapshot.node_type(source.node_id)
    to_node_type = snapshot.node_type(target.node_id)

    # Data types, or the predicates that replace them
    types_ok = are_data_types_compatible(source.data_type, target.data_type)
    predicates = [p.can_connect for p in (source, target) if p.can_connect is not None]
    if predicates:
        context = PortConnectionContext(
            from_port=source,
            to_port=target,
            from_node=snapshot.node(source.node_id),
            to_node=snapshot.node(target.node_id),
            from_node_type=from_node_type,
            to_node_type=to_node_type,
            connections=tuple(snapshot.live_connections()),
            data_type_compatible=types_ok,
        )
        if not all(bool(predicate(context)) for predicate in predicates):
            # A predicate agreeing with the type rule reports the type mismatch
            reason = RejectionReason.PREDICATE if types_ok else RejectionReason.DATA_TYPE
            return ConnectionDecision.reject(reason)
    elif not types_ok:
        return ConnectionDecision.reject(RejectionReason.DATA_TYPE)

    # Capacity
    if is_port_at_capacity(source, snapshot) or is_port_at_capacity(target, snapshot):
        return ConnectionDecision.reject(RejectionReason.CAPACITY)

    # Node veto; both endpoints report the same reason
    vetoes: list[NodeType] = []
    for node_type in (from_node_type, to_node_type):
        if node_type is not None and all(node_type is not seen for seen in vetoes):
            vetoes.append(node_type)
    for node_type in vetoes:
        if node_type.validate_connection is not None and not node_type.validate_connection(source, target):
            return ConnectionDecision.reject(RejectionReason.NODE_VETO)

    return ConnectionDecision.allow()


def get_connectable_ports(
    origin: Port,
    snapshot: GraphSnapshot,
    policy: ConnectionPolicy = DEFAULT_CONNECTION_POLICY,
) -> list[Port]:
    """
    List every port that would accept a connection from ``origin``.

    Pairs are oriented output -> input before evaluation.
    """
    connectable: list[Port] = []
    for port in snapshot.all_ports():
        if port.key == origin.key:
            continue
        from_port, to_port = normalize_connection_ports(origin, port)
        if _evaluate(from_port, to_port, snapshot, policy).allowed:
            connectable.append(port)
    return connectable


# -----------------------------------------------------------------------------
# Node types that could be dropped onto the canvas
# -----------------------------------------------------------------------------

CANDIDATE_NODE_ID = "__candidate__"


def find_connectable_port(
    origin: Port,
    node_type: Union[NodeType, str],
    snapshot: GraphSnapshot,
    policy: ConnectionPolicy = DEFAULT_CONNECTION_POLICY,
    node_id: str = CANDIDATE_NODE_ID,
) -> Optional[Port]:
    """
    First port of a not-yet-created node that would accept ``origin``.

    A temporary node is built from the type's ``default_data`` and
    ``default_size`` so dynamic templates expand the way they would for a
    freshly created node.

    Args:
        origin: Port the drag started from
        node_type: Registered node type, or its name
        snapshot: Current graph
        policy: Structural connection rules
        node_id: Id given to the temporary node

    Returns:
        The first connectable port in declaration order, or None

    Raises:
        UnknownNodeTypeError: If the type is not registered in the snapshot
        ValueError: If ``node_id`` already names a node in the snapshot
    """
    type_name = node_type if isinstance(node_type, str) else node_type.type
    definition = snapshot.registry.require(type_name)
    if node_id in snapshot.nodes:
        raise ValueError(f"Node id {node_id!r} is already used in the graph")

    candidate = Node(
        id=node_id,
        type=definition.type,
        size=definition.default_size,
        data=dict(definition.default_data),
    )
    extended = snapshot.with_node(candidate)
    for port in extended.ports(node_id):
        from_port, to_port = normalize_connection_ports(origin, port)
        if _evaluate(from_port, to_port, extended, policy).allowed:
            return port
    return None


def get_connectable_node_types(
    origin: Port,
    snapshot: GraphSnapshot,
    policy: ConnectionPolicy = DEFAULT_CONNECTION_POLICY,
) -> list[str]:
    """Names of registered node types with at least one port accepting ``origin``, in registry order."""
    connectable = [
        node_type.type
        for node_type in snapshot.registry
        if find_connectable_port(origin, node_type, snapshot, policy) is not None
    ]
    logger.debug("%d node types accept %s:%s", len(connectable), origin.node_id, origin.id)
    return connectable


class ConnectionSwitchBehavior(str, Enum):
    """What dropping a drag on a port should do to the graph."""

    APPEND = "append"
    IGNORE = "ignore"


@dataclass(frozen=True)
class ConnectionPlan:
    """
    Planned graph change for a drop.

    Attributes:
        behavior: APPEND to create the connection, IGNORE to leave the graph alone
        from_port: Oriented origin of the new connection (APPEND only)
        to_port: Oriented destination of the new connection (APPEND only)
        reason: Why the drop is ignored (IGNORE only)
    """

    behavior: ConnectionSwitchBehavior
    from_port: Optional[Port] = None
    to_port: Optional[Port] = None
    reason: Optional[RejectionReason] = None

    def to_connection(self, connection_id: str) -> Connection:
        """Build the connection an APPEND plan describes."""
        if self.behavior is not ConnectionSwitchBehavior.APPEND or self.from_port is None or self.to_port is None:
            raise ValueError("only an APPEND plan describes a connection")
        return Connection(
            id=connection_id,
            from_node_id=self.from_port.node_id,
            from_port_id=self.from_port.id,
            to_node_id=self.to_port.node_id,
            to_port_id=self.to_port.id,
        )


def plan_connection_change(
    origin: Port,
    target: Port,
    snapshot: GraphSnapshot,
    policy: ConnectionPolicy = DEFAULT_CONNECTION_POLICY,
) -> ConnectionPlan:
    """
    Decide what a drop of a drag started at ``origin`` onto ``target`` does.

    An origin that is already at capacity ignores the drop, as does any
    pair the compatibility rules reject. Otherwise the oriented connection
    is appended.
    """
    fresh_origin = snapshot.port(origin.node_id, origin.id)
    if fresh_origin is None:
        return ConnectionPlan(ConnectionSwitchBehavior.IGNORE, reason=RejectionReason.MISSING_PORT)
    if is_port_at_capacity(fresh_origin, snapshot):
        return ConnectionPlan(ConnectionSwitchBehavior.IGNORE, reason=RejectionReason.CAPACITY)

    from_port, to_port = normalize_connection_ports(fresh_origin, target)
    decision = can_create_connection(from_port, to_port, snapshot, policy)
    if not decision:
        return ConnectionPlan(ConnectionSwitchBehavior.IGNORE, reason=decision.reason)
    return ConnectionPlan(
        ConnectionSwitchBehavior.APPEND,
        from_port=snapshot.port(from_port.node_id, from_port.id),
        to_port=snapshot.port(to_port.node_id, to_port.id),
    )
