"""
Read-only graph snapshots.

The host owns and mutates the graph; the engine only ever reads a
GraphSnapshot. Ports are derived from node type templates on first access
and cached for the lifetime of the snapshot, which is treated as immutable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping, Optional, Protocol, Sequence, Union

from .definitions import DEFAULT_MAX_PORT_INSTANCES, NodeType, NodeTypeRegistry, derive_node_ports
from .types import Connection, ConnectionLike, Node, NodeLike, Port, Size
from .validation import validate_size


class GraphHost(Protocol):
    """Interface the engine expects from the graph store that owns the data."""

    def get_graph_snapshot(self) -> GraphSnapshot: ...

    def create_connection(self, connection: Connection) -> None: ...

    def delete_connection(self, connection_id: str) -> None: ...


class GraphSnapshot:
    """
    Consistent, read-only view of nodes, derived ports and connections.

    Example:
        snapshot = GraphSnapshot(nodes=nodes, connections=connections, registry=registry)
        for port in snapshot.ports("n1"):
            print(port.id, snapshot.is_port_connected(port))
    """

    def __init__(
        self,
        nodes: Union[Mapping[str, NodeLike], Sequence[NodeLike]] = (),
        connections: Union[Mapping[str, ConnectionLike], Sequence[ConnectionLike]] = (),
        registry: Optional[NodeTypeRegistry] = None,
        *,
        max_port_instances: int = DEFAULT_MAX_PORT_INSTANCES,
    ) -> None:
        self._nodes: dict[str, Node] = {}
        for item in _values(nodes):
            node = item if isinstance(item, Node) else Node.from_mapping(item)
            self._nodes[node.id] = node

        self._connections: dict[str, Connection] = {}
        for item in _values(connections):
            connection = item if isinstance(item, Connection) else Connection.from_mapping(item)
            self._connections[connection.id] = connection

        self._registry = registry if registry is not None else NodeTypeRegistry()
        self._max_port_instances = max_port_instances
        self._port_cache: dict[str, tuple[Port, ...]] = {}

    # -------------------------------------------------------------------------
    # Nodes and ports
    # -------------------------------------------------------------------------

    @property
    def nodes(self) -> Mapping[str, Node]:
        return self._nodes

    @property
    def connections(self) -> Mapping[str, Connection]:
        return self._connections

    @property
    def registry(self) -> NodeTypeRegistry:
        return self._registry

    @property
    def max_port_instances(self) -> int:
        return self._max_port_instances

    def node(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def node_type(self, node_id: str) -> Optional[NodeType]:
        node = self._nodes.get(node_id)
        if node is None:
            return None
        return self._registry.get(node.type)

    def node_size(self, node_id: str) -> Optional[Size]:
        """Measured size, else the type's default size, else None."""
        node = self._nodes.get(node_id)
        if node is None:
            return None
        size = validate_size(node.size)
        if size is not None:
            return size
        node_type = self._registry.get(node.type)
        return validate_size(node_type.default_size) if node_type else None

    def ports(self, node_id: str) -> tuple[Port, ...]:
        """Concrete ports of a node, expanded from its type's templates."""
        cached = self._port_cache.get(node_id)
        if cached is not None:
            return cached
        node = self._nodes.get(node_id)
        if node is None:
            return ()
        ports = tuple(derive_node_ports(node, self._registry.get(node.type), self._max_port_instances))
        self._port_cache[node_id] = ports
        return ports

    def port(self, node_id: str, port_id: str) -> Optional[Port]:
        for port in self.ports(node_id):
            if port.id == port_id:
                return port
        return None

    def all_ports(self) -> Iterator[Port]:
        for node_id in self._nodes:
            yield from self.ports(node_id)

    # -------------------------------------------------------------------------
    # Connections
    # -------------------------------------------------------------------------

    def is_dangling(self, connection: Connection) -> bool:
        """A connection is dangling when either endpoint port no longer exists."""
        return (
            self.port(connection.from_node_id, connection.from_port_id) is None
            or self.port(connection.to_node_id, connection.to_port_id) is None
        )

    def live_connections(self) -> list[Connection]:
        return [c for c in self._connections.values() if not self.is_dangling(c)]

    def dangling_connections(self) -> list[Connection]:
        return [c for c in self._connections.values() if self.is_dangling(c)]

    def port_connections(self, port: Port) -> list[Connection]:
        """Live connections touching ``port`` in either direction."""
        return [c for c in self.live_connections() if c.touches(port.node_id, port.id)]

    def is_port_connected(self, port: Port) -> bool:
        return bool(self.port_connections(port))

    def find_connection(self, a: tuple[str, str], b: tuple[str, str]) -> Optional[Connection]:
        """Connection joining two ports in either orientation, if any."""
        for connection in self._connections.values():
            if connection.links(a, b):
                return connection
        return None

    def with_connections(self, connections: Iterable[ConnectionLike]) -> GraphSnapshot:
        """New snapshot over the same nodes and registry with another connection set."""
        return GraphSnapshot(
            nodes=list(self._nodes.values()),
            connections=list(connections),
            registry=self._registry,
            max_port_instances=self._max_port_instances,
        )

    def with_node(self, node: NodeLike) -> GraphSnapshot:
        """New snapshot with ``node`` added, or replacing the node with the same id."""
        added = node if isinstance(node, Node) else Node.from_mapping(node)
        nodes = {**self._nodes, added.id: added}
        return GraphSnapshot(
            nodes=list(nodes.values()),
            connections=list(self._connections.values()),
            registry=self._registry,
            max_port_instances=self._max_port_instances,
        )

    def __repr__(self) -> str:
        return f"GraphSnapshot(nodes={len(self._nodes)}, connections={len(self._connections)})"


@dataclass(frozen=True)
class PruneResult:
    """Result of removing dangling connections."""

    removed_ids: tuple[str, ...]
    connections: dict[str, Connection]


def prune_dangling_connections(snapshot: GraphSnapshot) -> PruneResult:
    """
    Drop connections that reference ports which no longer exist.

    Typically applied by the host after a dynamic port count shrinks.

    Args:
        snapshot: Current graph snapshot

    Returns:
        Removed connection ids and the remaining connection map
    """
    removed: list[str] = []
    remaining: dict[str, Connection] = {}
    for connection_id, connection in snapshot.connections.items():
        if snapshot.is_dangling(connection):
            removed.append(connection_id)
        else:
            remaining[connection_id] = connection
    return PruneResult(removed_ids=tuple(removed), connections=remaining)


def _values(items: Union[Mapping[str, object], Sequence[object]]) -> Iterable:
    if isinstance(items, Mapping):
        return items.values()
    return items
