"""
Node type definitions and port template expansion.

A node type declares its ports through templates. A static template yields
exactly one port; a dynamic template yields one port per instance, with the
instance count computed from the node on every layout pass. Expansion is a
pure function of (node, node type): the same index always yields the same
port id, so connections keep pointing at the right port when the count
changes.
"""

from __future__ import annotations

import math
import warnings
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterator, Mapping, Optional, Union

if TYPE_CHECKING:
    from typing_extensions import Self

from .types import (
    DEFAULT_MAX_CONNECTIONS,
    ConnectPredicate,
    DataTypeSpec,
    MaxConnections,
    Node,
    Port,
    PortDirection,
    PortPlacement,
    PortPosition,
    Side,
    SidePlacement,
    Size,
)
from .validation import (
    DuplicateNodeTypeError,
    InvalidPortTemplateError,
    PortConfigurationWarning,
    UnknownNodeTypeError,
    validate_port_template,
    validate_unique_ids,
)

DEFAULT_MAX_PORT_INSTANCES = 256
"""Upper bound applied to dynamic instance counts."""


@dataclass(frozen=True)
class PortInstanceContext:
    """Context passed to a dynamic template's ``instances`` callable."""

    node: Node


@dataclass(frozen=True)
class PortInstanceFactoryContext:
    """Context passed to ``create_port_id`` / ``create_port_label``."""

    node: Node
    template: PortTemplate
    index: int
    total: int


InstanceCount = Union[int, Callable[[PortInstanceContext], Any], None]
PortIdFactory = Callable[[PortInstanceFactoryContext], str]

PlacementOverride = Callable[[Node, "list[Port]", Size], Mapping[str, PortPosition]]
"""Replacement placement strategy: (node, ports, node_size) -> {port_id: PortPosition}."""

ConnectionValidator = Callable[[Port, Port], bool]
"""Node-level veto: (from_port, to_port) -> allowed."""


@dataclass(frozen=True)
class PortTemplate:
    """
    Declarative description of one port, or of a family of ports.

    Attributes:
        id: Template identifier (the port id for static templates)
        direction: Input or output
        label: Display label
        placement: Side or absolute placement shared by all instances
        data_type: Accepted data type(s); None accepts anything
        max_connections: Connection limit per port, or "unlimited"
        can_connect: Optional predicate replacing the data type rule
        instances: None for a static port, else a count or a callable returning one
        create_port_id: Derives an instance id from its index
        create_port_label: Derives an instance label from its index
    """

    id: str
    direction: PortDirection
    label: str = ""
    placement: PortPlacement = SidePlacement()
    data_type: DataTypeSpec = None
    max_connections: MaxConnections = DEFAULT_MAX_CONNECTIONS
    can_connect: Optional[ConnectPredicate] = field(default=None, compare=False)
    instances: InstanceCount = field(default=None, compare=False)
    create_port_id: Optional[PortIdFactory] = field(default=None, compare=False)
    create_port_label: Optional[PortIdFactory] = field(default=None, compare=False)

    @property
    def is_dynamic(self) -> bool:
        return self.instances is not None

    def instance_count(self, node: Node, max_instances: int = DEFAULT_MAX_PORT_INSTANCES) -> int:
        """
        Resolve how many ports this template yields for ``node``.

        Counts are floored and clamped into [0, max_instances]. Non-numeric,
        NaN or negative counts resolve to 0.
        """
        if self.instances is None:
            return 1

        raw = self.instances(PortInstanceContext(node)) if callable(self.instances) else self.instances

        try:
            value = float(raw)
        except (TypeError, ValueError):
            warnings.warn(
                f"Port template {self.id!r} on node {node.id!r} returned a non-numeric "
                f"instance count {raw!r}; using 0.",
                PortConfigurationWarning,
                stacklevel=4,
            )
            return 0

        if math.isnan(value) or value < 0:
            warnings.warn(
                f"Port template {self.id!r} on node {node.id!r} requested {raw} instances; "
                "clamped to 0.",
                PortConfigurationWarning,
                stacklevel=4,
            )
            return 0
        if value > max_instances:
            warnings.warn(
                f"Port template {self.id!r} on node {node.id!r} requested {raw} instances; "
                f"clamped to {max_instances}.",
                PortConfigurationWarning,
                stacklevel=4,
            )
            return max_instances
        return int(math.floor(value))

    def expand(self, node: Node, max_instances: int = DEFAULT_MAX_PORT_INSTANCES) -> list[Port]:
        """Create the concrete ports this template yields for ``node``."""
        if not self.is_dynamic:
            return [self._make_port(node, self.id, self.label, 0, 1)]

        total = self.instance_count(node, max_instances)
        ports = []
        for index in range(total):
            context = PortInstanceFactoryContext(node=node, template=self, index=index, total=total)
            port_id = self.create_port_id(context) if self.create_port_id else f"{self.id}-{index + 1}"
            if self.create_port_label:
                label = self.create_port_label(context)
            else:
                label = f"{self.label or self.id} {index + 1}"
            ports.append(self._make_port(node, str(port_id), str(label), index, total))
        return ports

    def _make_port(self, node: Node, port_id: str, label: str, index: int, total: int) -> Port:
        return Port(
            id=port_id,
            node_id=node.id,
            direction=self.direction,
            label=label,
            placement=self.placement,
            data_type=self.data_type,
            max_connections=self.max_connections,
            can_connect=self.can_connect,
            template_id=self.id,
            instance_index=index,
            instance_total=total,
        )


def default_port_templates() -> list[PortTemplate]:
    """
    Port templates inferred for node types that declare none.

    Rules:
    - one input port on the left
    - one output port on the right
    """
    return [
        PortTemplate(
            id="input",
            direction=PortDirection.INPUT,
            label="Input",
            placement=SidePlacement(side=Side.LEFT),
        ),
        PortTemplate(
            id="output",
            direction=PortDirection.OUTPUT,
            label="Output",
            placement=SidePlacement(side=Side.RIGHT),
        ),
    ]


@dataclass
class NodeType:
    """
    Node type descriptor with its pluggable policies.

    Attributes:
        type: Unique type name
        display_name: Human readable name
        ports: Port templates; None infers the default input/output pair
        default_size: Size used for placement until the node is measured
        default_data: Data for newly created nodes
        compute_port_positions: Optional replacement placement strategy
        validate_connection: Optional node-level veto evaluated last
    """

    type: str
    display_name: str = ""
    ports: Optional[list[PortTemplate]] = None
    default_size: Optional[Size] = None
    default_data: dict[str, Any] = field(default_factory=dict)
    compute_port_positions: Optional[PlacementOverride] = None
    validate_connection: Optional[ConnectionValidator] = None

    def __post_init__(self) -> None:
        if not self.display_name:
            self.display_name = self.type

    @property
    def port_templates(self) -> list[PortTemplate]:
        return list(self.ports) if self.ports is not None else default_port_templates()

    def validate(self) -> None:
        """
        Check the port templates of this type.

        Raises:
            InvalidPortTemplateError: On malformed templates or repeated static ids
        """
        issues: list[str] = []
        for template in self.port_templates:
            issues.extend(validate_port_template(template, strict=False))
        static_ids = [t.id for t in self.port_templates if not t.is_dynamic]
        issues.extend(validate_unique_ids(static_ids, "port template"))
        if issues:
            msg = f"Invalid node type {self.type!r}:\n" + "\n".join(issues)
            raise InvalidPortTemplateError(msg)


def derive_node_ports(
    node: Node,
    node_type: Optional[NodeType],
    max_instances: int = DEFAULT_MAX_PORT_INSTANCES,
) -> list[Port]:
    """
    Expand a node's port templates into concrete ports.

    Args:
        node: The node whose ports are derived
        node_type: Its type descriptor; None yields no ports
        max_instances: Upper bound for dynamic instance counts

    Returns:
        Ports in declaration order, ids unique within the node
    """
    if node_type is None:
        return []

    ports: list[Port] = []
    seen: set[str] = set()
    for template in node_type.port_templates:
        for port in template.expand(node, max_instances):
            if port.id in seen:
                warnings.warn(
                    f"Node {node.id!r} yields port id {port.id!r} more than once; "
                    "keeping the first.",
                    PortConfigurationWarning,
                    stacklevel=2,
                )
                continue
            seen.add(port.id)
            ports.append(port)
    return ports


class NodeTypeRegistry:
    """
    Registry of node types by name.

    Example:
        registry = NodeTypeRegistry()
        registry.register(NodeType("math.add", ports=[...]))
        node_type = registry.get("math.add")
    """

    def __init__(self, node_types: Optional[list[NodeType]] = None) -> None:
        self._types: dict[str, NodeType] = {}
        for node_type in node_types or []:
            self.register(node_type)

    def register(self, node_type: NodeType) -> Self:
        """
        Add a node type.

        Returns:
            self (for chaining)

        Raises:
            DuplicateNodeTypeError: If the name is already registered
            InvalidPortTemplateError: If its port templates are malformed
        """
        if node_type.type in self._types:
            raise DuplicateNodeTypeError(f"Node type {node_type.type!r} is already registered")
        node_type.validate()
        self._types[node_type.type] = node_type
        return self

    def unregister(self, type_name: str) -> None:
        self._types.pop(type_name, None)

    def get(self, type_name: str) -> Optional[NodeType]:
        return self._types.get(type_name)

    def require(self, type_name: str) -> NodeType:
        """Get a node type or raise UnknownNodeTypeError."""
        node_type = self._types.get(type_name)
        if node_type is None:
            raise UnknownNodeTypeError(f"Unknown node type {type_name!r}")
        return node_type

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._types

    def __iter__(self) -> Iterator[NodeType]:
        return iter(self._types.values())

    def __len__(self) -> int:
        return len(self._types)

    def __repr__(self) -> str:
        return f"NodeTypeRegistry({sorted(self._types)})"
