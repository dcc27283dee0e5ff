"""
Connection drag gesture.

ConnectionDragMachine tracks one drag from a port to a potential target:

    idle -> dragging -> candidate_found | no_candidate -> committed | cancelled -> idle

A drag either starts a new connection from a port (``begin``) or picks up
one end of an existing connection while the other end stays fixed
(``begin_reconnect``). Only a commit mutates the graph, through
``GraphHost.delete_connection`` (reconnect only) and
``GraphHost.create_connection``. Every event reads a fresh snapshot from the
host, so the machine holds no graph state beyond the current gesture.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Callable, Optional, TypedDict, Union

if TYPE_CHECKING:
    from typing_extensions import Self

from .compatibility import (
    DEFAULT_CONNECTION_POLICY,
    ConnectionPolicy,
    ConnectionSwitchBehavior,
    RejectionReason,
    can_create_connection,
    get_connectable_ports,
    normalize_connection_ports,
    plan_connection_change,
)
from .geometry.curve import PointLike, as_position
from .geometry.hit_testing import find_nearest_port
from .graph import GraphHost, GraphSnapshot
from .placement import (
    DEFAULT_PORT_POSITION_CONFIG,
    PortPositionConfig,
    resolve_graph_positions,
    resolve_node_positions,
)
from .types import Connection, Port, Position

logger = logging.getLogger(__name__)

PortKey = tuple[str, str]


class DragState(Enum):
    """States of a connection drag."""

    IDLE = "idle"
    DRAGGING = "dragging"
    CANDIDATE_FOUND = "candidate_found"
    NO_CANDIDATE = "no_candidate"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


_ACTIVE_STATES = (DragState.DRAGGING, DragState.CANDIDATE_FOUND, DragState.NO_CANDIDATE)


class ConnectionEnd(Enum):
    """Which end of an existing connection is being dragged."""

    FROM = "from"
    TO = "to"


class PortHighlight(Enum):
    """Visual feedback for a port while a drag is in progress."""

    NONE = "none"
    CONNECTABLE = "connectable"
    CANDIDATE = "candidate"
    INCOMPATIBLE = "incompatible"


class DragEventType(IntEnum):
    """
    Drag lifecycle events.

    - start: A drag began on a port or on a connection end
    - move: The pointer moved and the candidate was re-evaluated
    - commit: A connection was created (replacing one when reconnecting)
    - cancel: The drag ended without a change
    """

    start = 0
    move = 1
    commit = 2
    cancel = 3


class DragEvent(TypedDict, total=False):
    """Event payload passed to drag listeners."""

    type: DragEventType
    origin: Port
    candidate: Optional[Port]
    pointer: Optional[Position]
    connection: Connection
    replaced: Connection
    reason: Optional[RejectionReason]


@dataclass(frozen=True)
class DragOutcome:
    """
    How a gesture ended: committed with a connection, or cancelled with a reason.

    ``replaced`` is the connection removed by a committed reconnect.
    """

    state: DragState
    connection: Optional[Connection] = None
    reason: Optional[RejectionReason] = None
    replaced: Optional[Connection] = None

    @property
    def committed(self) -> bool:
        return self.state is DragState.COMMITTED


def _new_connection_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class InteractionConfig:
    """
    Drag behaviour settings.

    Attributes:
        snap_distance: Pointer distance within which the nearest connectable port is picked
        policy: Structural connection rules
        placement: Port placement parameters used to locate anchors
        id_factory: Creates ids for committed connections
    """

    snap_distance: float = 24.0
    policy: ConnectionPolicy = DEFAULT_CONNECTION_POLICY
    placement: PortPositionConfig = DEFAULT_PORT_POSITION_CONFIG
    id_factory: Callable[[], str] = field(default=_new_connection_id, compare=False)


class ConnectionDragMachine:
    """
    Finite state machine for dragging a connection between ports.

    Example:
        machine = ConnectionDragMachine(host)
        machine.on("commit", lambda event: print(event["connection"]))
        machine.begin("n1", "out", pointer=(10, 20))
        machine.move((180, 40))
        outcome = machine.release()
    """

    def __init__(
        self,
        host: GraphHost,
        config: Optional[InteractionConfig] = None,
        *,
        on_start: Optional[Callable[[DragEvent], None]] = None,
        on_move: Optional[Callable[[DragEvent], None]] = None,
        on_commit: Optional[Callable[[DragEvent], None]] = None,
        on_cancel: Optional[Callable[[DragEvent], None]] = None,
    ) -> None:
        self._host = host
        self._config = config or InteractionConfig()
        self._events: dict[DragEventType, Callable[[DragEvent], None]] = {}
        for event_type, callback in (
            (DragEventType.start, on_start),
            (DragEventType.move, on_move),
            (DragEventType.commit, on_commit),
            (DragEventType.cancel, on_cancel),
        ):
            if callback is not None:
                self._events[event_type] = callback
        self._reset()

    def _reset(self) -> None:
        self._state = DragState.IDLE
        self._origin: Optional[Port] = None
        self._candidate: Optional[Port] = None
        self._pointer: Optional[Position] = None
        self._connectable: set[PortKey] = set()
        self._reconnecting: Optional[Connection] = None
        self._dragged_end: Optional[ConnectionEnd] = None

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def state(self) -> DragState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state in _ACTIVE_STATES

    @property
    def origin(self) -> Optional[Port]:
        """Port the drag is anchored to; the fixed end while reconnecting."""
        return self._origin

    @property
    def candidate(self) -> Optional[Port]:
        return self._candidate

    @property
    def pointer(self) -> Optional[Position]:
        return self._pointer

    @property
    def reconnecting(self) -> Optional[Connection]:
        """The connection being re-targeted, or None for a new connection."""
        return self._reconnecting

    @property
    def dragged_end(self) -> Optional[ConnectionEnd]:
        return self._dragged_end

    @property
    def config(self) -> InteractionConfig:
        return self._config

    # -------------------------------------------------------------------------
    # Event System
    # -------------------------------------------------------------------------

    def on(self, event: DragEventType | str, callback: Callable[[DragEvent], None]) -> Self:
        """
        Subscribe to a drag event.

        Args:
            event: Event type (DragEventType enum or string name)
            callback: Function to call when event fires

        Returns:
            self (for chaining)
        """
        if isinstance(event, str):
            event = DragEventType[event]
        self._events[event] = callback
        return self

    def trigger(self, event: DragEvent) -> None:
        event_type = event.get("type")
        if event_type is not None and event_type in self._events:
            self._events[event_type](event)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def begin(self, node_id: str, port_id: str, pointer: Optional[PointLike] = None) -> bool:
        """
        Start dragging a new connection from a port.

        Returns:
            True if the drag started; False when a drag is already active or
            the port does not exist
        """
        if self._state is not DragState.IDLE:
            return False
        snapshot = self._host.get_graph_snapshot()
        origin = snapshot.port(node_id, port_id)
        if origin is None:
            logger.debug("Drag not started: port %s:%s does not exist", node_id, port_id)
            return False
        self._start(origin, snapshot, pointer)
        return True

    def begin_at(self, pointer: PointLike) -> bool:
        """Start dragging from the port nearest to ``pointer`` within snap distance."""
        if self._state is not DragState.IDLE:
            return False
        snapshot = self._host.get_graph_snapshot()
        anchors = {
            (node_id, port_id): position.connection_point
            for node_id, positions in resolve_graph_positions(snapshot, self._config.placement).items()
            for port_id, position in positions.items()
        }
        key = find_nearest_port(anchors, pointer, self._config.snap_distance)
        if key is None:
            return False
        return self.begin(key[0], key[1], pointer)

    def begin_reconnect(
        self,
        connection_id: str,
        end: Union[ConnectionEnd, str],
        pointer: Optional[PointLike] = None,
    ) -> bool:
        """
        Pick up one end of an existing connection.

        The opposite end becomes the drag origin. Candidates are evaluated as
        if the connection were already removed, so the freed capacity of both
        ports counts. The graph is only changed on commit.

        Args:
            connection_id: Connection to re-target
            end: The end being dragged ("from" or "to")
            pointer: Initial pointer position

        Returns:
            True if the drag started; False when a drag is already active, the
            connection does not exist or its fixed end is missing
        """
        if self._state is not DragState.IDLE:
            return False
        end = ConnectionEnd(end)
        snapshot = self._host.get_graph_snapshot()
        connection = snapshot.connections.get(connection_id)
        if connection is None:
            logger.debug("Reconnect not started: connection %s does not exist", connection_id)
            return False
        fixed_key = connection.to_key if end is ConnectionEnd.FROM else connection.from_key
        origin = snapshot.port(*fixed_key)
        if origin is None:
            logger.debug("Reconnect not started: fixed end %s:%s does not exist", *fixed_key)
            return False

        self._reconnecting = connection
        self._dragged_end = end
        self._start(origin, self._without_reconnected(snapshot), pointer, replaced=connection)
        return True

    def move(self, pointer: PointLike, hovered: Optional[PortKey] = None) -> DragState:
        """
        Re-evaluate the candidate for a new pointer position.

        Args:
            pointer: Pointer position in canvas coordinates
            hovered: (node_id, port_id) of the port under the pointer, if known

        Returns:
            The state after the move
        """
        if not self.is_active:
            return self._state
        current = self._current()
        if current is None:
            self._origin_lost()
            return self._state
        snapshot, origin = current

        self._pointer = as_position(pointer)
        self._connectable = self._connectable_keys(origin, snapshot)
        self._candidate = self._find_candidate(origin, snapshot, self._pointer, hovered)
        self._state = DragState.CANDIDATE_FOUND if self._candidate is not None else DragState.NO_CANDIDATE
        self.trigger(
            {
                "type": DragEventType.move,
                "origin": origin,
                "candidate": self._candidate,
                "pointer": self._pointer,
            }
        )
        return self._state

    def release(self, hovered: Optional[PortKey] = None) -> Optional[DragOutcome]:
        """
        End the drag, committing when there is a valid target.

        Args:
            hovered: (node_id, port_id) of the port under the pointer; the
                current candidate is used when None

        Returns:
            The outcome, or None when no drag was active
        """
        if not self.is_active:
            return None
        current = self._current()
        if current is None:
            return self._origin_lost()
        snapshot, origin = current

        target: Optional[Port] = None
        if hovered is not None:
            target = snapshot.port(*hovered)
        elif self._candidate is not None:
            target = snapshot.port(*self._candidate.key)
        if target is None:
            return self._cancel(RejectionReason.MISSING_PORT if hovered is not None else None)

        replaced = self._reconnecting
        if replaced is not None:
            from_port, to_port = normalize_connection_ports(origin, target)
            if (from_port.key, to_port.key) == (replaced.from_key, replaced.to_key):
                # Dropped back where it was
                return self._cancel(None)

        plan = plan_connection_change(origin, target, snapshot, self._config.policy)
        if plan.behavior is ConnectionSwitchBehavior.IGNORE:
            return self._cancel(plan.reason)

        connection = plan.to_connection(self._config.id_factory())
        if replaced is not None:
            self._host.delete_connection(replaced.id)
        self._host.create_connection(connection)
        logger.debug(
            "Drag committed %s: %s:%s -> %s:%s%s",
            connection.id,
            connection.from_node_id,
            connection.from_port_id,
            connection.to_node_id,
            connection.to_port_id,
            f" (replaces {replaced.id})" if replaced is not None else "",
        )
        self._reset()
        event: DragEvent = {"type": DragEventType.commit, "origin": origin, "connection": connection}
        if replaced is not None:
            event["replaced"] = replaced
        self.trigger(event)
        return DragOutcome(DragState.COMMITTED, connection=connection, replaced=replaced)

    def cancel(self) -> Optional[DragOutcome]:
        """Abort the drag without changing the graph; None when no drag was active."""
        if not self.is_active:
            return None
        return self._cancel(None)

    # -------------------------------------------------------------------------
    # Feedback
    # -------------------------------------------------------------------------

    def highlight(self, node_id: str, port_id: str) -> PortHighlight:
        """
        Feedback state of a port for the current gesture.

        Outside a drag every port is NONE. During a drag the candidate is
        CANDIDATE, ports accepting the origin are CONNECTABLE and every
        other port except the origin is INCOMPATIBLE.
        """
        if not self.is_active or self._origin is None:
            return PortHighlight.NONE
        key = (node_id, port_id)
        if key == self._origin.key:
            return PortHighlight.NONE
        if self._candidate is not None and key == self._candidate.key:
            return PortHighlight.CANDIDATE
        if key in self._connectable:
            return PortHighlight.CONNECTABLE
        return PortHighlight.INCOMPATIBLE

    def is_connected(self, node_id: str, port_id: str) -> bool:
        """Check whether a port has at least one live connection."""
        snapshot = self._host.get_graph_snapshot()
        port = snapshot.port(node_id, port_id)
        return port is not None and snapshot.is_port_connected(port)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _start(
        self,
        origin: Port,
        snapshot: GraphSnapshot,
        pointer: Optional[PointLike],
        replaced: Optional[Connection] = None,
    ) -> None:
        self._origin = origin
        self._pointer = as_position(pointer) if pointer is not None else None
        self._connectable = self._connectable_keys(origin, snapshot)
        self._state = DragState.DRAGGING
        logger.debug(
            "Drag started at %s:%s (%d connectable)", origin.node_id, origin.id, len(self._connectable)
        )
        event: DragEvent = {"type": DragEventType.start, "origin": origin, "pointer": self._pointer}
        if replaced is not None:
            event["replaced"] = replaced
        self.trigger(event)

    def _without_reconnected(self, snapshot: GraphSnapshot) -> GraphSnapshot:
        if self._reconnecting is None:
            return snapshot
        removed = self._reconnecting.id
        return snapshot.with_connections(c for c in snapshot.connections.values() if c.id != removed)

    def _current(self) -> Optional[tuple[GraphSnapshot, Port]]:
        """Fresh working snapshot and origin, or None when the gesture lost its anchor."""
        assert self._origin is not None
        snapshot = self._host.get_graph_snapshot()
        if self._reconnecting is not None and self._reconnecting.id not in snapshot.connections:
            return None
        origin = snapshot.port(*self._origin.key)
        if origin is None:
            return None
        return self._without_reconnected(snapshot), origin

    def _connectable_keys(self, origin: Port, snapshot: GraphSnapshot) -> set[PortKey]:
        return {port.key for port in get_connectable_ports(origin, snapshot, self._config.policy)}

    def _origin_lost(self) -> DragOutcome:
        assert self._origin is not None
        logger.debug("Drag origin %s:%s or its connection disappeared; cancelling", *self._origin.key)
        return self._cancel(RejectionReason.MISSING_PORT)

    def _find_candidate(
        self,
        origin: Port,
        snapshot: GraphSnapshot,
        pointer: Position,
        hovered: Optional[PortKey],
    ) -> Optional[Port]:
        if hovered is not None:
            port = snapshot.port(*hovered)
            if port is None or port.key == origin.key:
                return None
            from_port, to_port = normalize_connection_ports(origin, port)
            decision = can_create_connection(from_port, to_port, snapshot, self._config.policy)
            return port if decision else None

        anchors = {}
        positions_by_node: dict[str, dict] = {}
        for node_id, port_id in self._connectable:
            if node_id not in positions_by_node:
                positions_by_node[node_id] = resolve_node_positions(snapshot, node_id, self._config.placement)
            position = positions_by_node[node_id].get(port_id)
            if position is not None:
                anchors[(node_id, port_id)] = position.connection_point
        # Sorted so equidistant anchors resolve the same way on every move
        key = find_nearest_port(dict(sorted(anchors.items())), pointer, self._config.snap_distance)
        return snapshot.port(*key) if key is not None else None

    def _cancel(self, reason: Optional[RejectionReason]) -> DragOutcome:
        origin = self._origin
        logger.debug("Drag cancelled%s", f" ({reason.value})" if reason else "")
        self._reset()
        event: DragEvent = {"type": DragEventType.cancel, "reason": reason}
        if origin is not None:
            event["origin"] = origin
        self.trigger(event)
        return DragOutcome(DragState.CANCELLED, reason=reason)
