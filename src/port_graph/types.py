"""
Common types for the node graph engine.

This module provides the fundamental value types shared by every component:
- Position, Size: plain 2D geometry
- Side, PortDirection, PositionUnit: enumerations used by port declarations
- SidePlacement, AbsolutePlacement: the two port placement variants
- Port: a concrete, directional connection point on a node
- Node: graph vertex owned by the host
- Connection: directed edge between two ports
- RenderPosition, PortPosition: resolved port coordinates
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Sequence, Union

if TYPE_CHECKING:
    from .compatibility import PortConnectionContext


UNLIMITED = "unlimited"
"""Sentinel for ``max_connections`` that disables the capacity check."""

DEFAULT_MAX_CONNECTIONS = 1


@dataclass(frozen=True)
class Position:
    """A point in node-local or canvas coordinates."""

    x: float = 0.0
    y: float = 0.0

    def __add__(self, other: Position) -> Position:
        return Position(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Position) -> Position:
        return Position(self.x - other.x, self.y - other.y)

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class Size:
    """Width and height of a node."""

    width: float
    height: float

    @property
    def center(self) -> Position:
        """Centre of a box of this size anchored at the origin."""
        return Position(self.width / 2, self.height / 2)


class Side(Enum):
    """Side of a node where a port can sit."""

    LEFT = "left"
    RIGHT = "right"
    TOP = "top"
    BOTTOM = "bottom"

    def opposite(self) -> Side:
        """Get the opposite side."""
        opposites = {
            Side.LEFT: Side.RIGHT,
            Side.RIGHT: Side.LEFT,
            Side.TOP: Side.BOTTOM,
            Side.BOTTOM: Side.TOP,
        }
        return opposites[self]

    def is_horizontal(self) -> bool:
        """Check if this side is on a horizontal edge of the node."""
        return self in (Side.TOP, Side.BOTTOM)

    def is_vertical(self) -> bool:
        """Check if this side is on a vertical edge of the node."""
        return self in (Side.LEFT, Side.RIGHT)

    def normal(self) -> tuple[float, float]:
        """Outward unit vector of this side (y grows downward)."""
        normals = {
            Side.LEFT: (-1.0, 0.0),
            Side.RIGHT: (1.0, 0.0),
            Side.TOP: (0.0, -1.0),
            Side.BOTTOM: (0.0, 1.0),
        }
        return normals[self]


class PortDirection(Enum):
    """Whether a port receives or emits connections."""

    INPUT = "input"
    OUTPUT = "output"

    def opposite(self) -> PortDirection:
        return PortDirection.OUTPUT if self is PortDirection.INPUT else PortDirection.INPUT


class PositionUnit(Enum):
    """Unit of an absolute port placement."""

    PX = "px"
    PERCENT = "percent"


@dataclass(frozen=True)
class SidePlacement:
    """
    Port placed along one side of its node.

    Attributes:
        side: Which side of the node
        align: Preferred offset within the segment (0.0 to 1.0); even spacing when None
        segment: Key of the sub-band the port belongs to; None is the implicit group
        segment_order: Ordering of the segment on its side (lowest first)
        segment_span: Relative length of the segment band (defaults to 1)
        inset: Pull the anchor inside the node boundary by a fixed offset
    """

    side: Side = Side.RIGHT
    align: Optional[float] = None
    segment: Optional[str] = None
    segment_order: Optional[float] = None
    segment_span: Optional[float] = None
    inset: bool = False


@dataclass(frozen=True)
class AbsolutePlacement:
    """
    Port placed at explicit node-local coordinates.

    Attributes:
        x: Horizontal offset (pixels, or 0-100 when unit is percent)
        y: Vertical offset (pixels, or 0-100 when unit is percent)
        unit: Pixel or percentage coordinates
        side: Optional side hint for curve direction; nearest edge when None
    """

    x: float
    y: float
    unit: PositionUnit = PositionUnit.PX
    side: Optional[Side] = None


PortPlacement = Union[SidePlacement, AbsolutePlacement]

DataTypeSpec = Union[str, Sequence[str], None]
"""A single data type name, several names, or None for the wildcard."""

MaxConnections = Union[int, str]
"""A connection limit or the ``UNLIMITED`` sentinel."""

ConnectPredicate = Callable[["PortConnectionContext"], bool]


@dataclass(frozen=True)
class Port:
    """
    A concrete connection point on a node.

    Ports are produced from a node type's port templates; dynamic templates
    yield one port per instance with ``instance_index`` set accordingly.
    """

    id: str
    node_id: str
    direction: PortDirection
    label: str = ""
    placement: PortPlacement = SidePlacement()
    data_type: DataTypeSpec = None
    max_connections: MaxConnections = DEFAULT_MAX_CONNECTIONS
    can_connect: Optional[ConnectPredicate] = field(default=None, compare=False)
    template_id: Optional[str] = None
    instance_index: int = 0
    instance_total: int = 1

    @property
    def key(self) -> tuple[str, str]:
        """(node_id, port_id) pair identifying this port across the graph."""
        return (self.node_id, self.id)

    @property
    def is_unlimited(self) -> bool:
        return self.max_connections == UNLIMITED

    def __repr__(self) -> str:
        return f"Port({self.node_id}:{self.id}, {self.direction.value})"


@dataclass
class Node:
    """
    Graph node owned by the host.

    Attributes:
        id: Unique node identifier
        type: Node type name, resolved through a NodeTypeRegistry
        position: Top-left corner in canvas coordinates
        size: Measured size; None until the presentation layer measures it
        data: Arbitrary node data (read by dynamic port templates)
        parent_id: Optional enclosing group node
    """

    id: str
    type: str
    position: Position = field(default_factory=Position)
    size: Optional[Size] = None
    data: dict[str, Any] = field(default_factory=dict)
    parent_id: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Node:
        """Build a node from a plain dict, accepting tuple/dict positions and sizes."""
        return cls(
            id=str(data["id"]),
            type=str(data.get("type", "")),
            position=_to_position(data.get("position")),
            size=_to_size(data.get("size")),
            data=dict(data.get("data") or {}),
            parent_id=data.get("parent_id", data.get("parentId")),
        )


@dataclass
class Connection:
    """Directed edge from one port to another."""

    id: str
    from_node_id: str
    from_port_id: str
    to_node_id: str
    to_port_id: str
    data: Optional[dict[str, Any]] = None

    @property
    def from_key(self) -> tuple[str, str]:
        return (self.from_node_id, self.from_port_id)

    @property
    def to_key(self) -> tuple[str, str]:
        return (self.to_node_id, self.to_port_id)

    def touches(self, node_id: str, port_id: str) -> bool:
        """Check if either endpoint is the given port."""
        return (node_id, port_id) in (self.from_key, self.to_key)

    def links(self, a: tuple[str, str], b: tuple[str, str]) -> bool:
        """Check if this connection joins the two ports, in either orientation."""
        return {self.from_key, self.to_key} == {a, b} and a != b

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Connection:
        """Build a connection from a dict with snake_case or camelCase keys."""

        def pick(snake: str, camel: str) -> str:
            value = data.get(snake, data.get(camel))
            if value is None:
                raise KeyError(snake)
            return str(value)

        return cls(
            id=str(data["id"]),
            from_node_id=pick("from_node_id", "fromNodeId"),
            from_port_id=pick("from_port_id", "fromPortId"),
            to_node_id=pick("to_node_id", "toNodeId"),
            to_port_id=pick("to_port_id", "toPortId"),
            data=data.get("data"),
        )


@dataclass(frozen=True)
class RenderPosition:
    """Node-local anchor of a port's visual element."""

    x: float
    y: float
    transform: str = "translate(-50%, -50%)"


@dataclass(frozen=True)
class PortPosition:
    """
    Resolved coordinates of one port.

    Attributes:
        port_id: Port identifier within its node
        render_position: Node-local anchor for the port visual
        connection_point: Canvas coordinates where connection curves attach
        side: Side the curve leaves from
    """

    port_id: str
    render_position: RenderPosition
    connection_point: Position
    side: Side


def _to_position(value: Any) -> Position:
    if value is None:
        return Position()
    if isinstance(value, Position):
        return value
    if isinstance(value, Mapping):
        return Position(float(value.get("x", 0.0)), float(value.get("y", 0.0)))
    x, y = value
    return Position(float(x), float(y))


def _to_size(value: Any) -> Optional[Size]:
    if value is None:
        return None
    if isinstance(value, Size):
        return value
    if isinstance(value, Mapping):
        return Size(float(value["width"]), float(value["height"]))
    width, height = value
    return Size(float(width), float(height))


NodeLike = Union[Node, Mapping[str, Any]]
"""Input type for nodes: Node objects or dicts."""

ConnectionLike = Union[Connection, Mapping[str, Any]]
"""Input type for connections: Connection objects or dicts."""


__all__ = [
    "UNLIMITED",
    "DEFAULT_MAX_CONNECTIONS",
    "Position",
    "Size",
    "Side",
    "PortDirection",
    "PositionUnit",
    "SidePlacement",
    "AbsolutePlacement",
    "PortPlacement",
    "DataTypeSpec",
    "MaxConnections",
    "ConnectPredicate",
    "Port",
    "Node",
    "Connection",
    "RenderPosition",
    "PortPosition",
    "NodeLike",
    "ConnectionLike",
]
