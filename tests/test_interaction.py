"""Tests for the connection drag state machine."""

from __future__ import annotations

import itertools

import pytest

from port_graph import (
    Connection,
    ConnectionDragMachine,
    ConnectionEnd,
    DragEventType,
    DragState,
    GraphSnapshot,
    InteractionConfig,
    Node,
    NodeType,
    NodeTypeRegistry,
    PortDirection,
    PortHighlight,
    PortTemplate,
    Position,
    RejectionReason,
    Side,
    SidePlacement,
    Size,
)

NODE_SIZE = Size(100, 50)


def _out(port_id="out", data_type="number", **kwargs) -> PortTemplate:
    return PortTemplate(
        id=port_id,
        direction=PortDirection.OUTPUT,
        placement=SidePlacement(side=Side.RIGHT),
        data_type=data_type,
        **kwargs,
    )


def _in(port_id="in", data_type="number", **kwargs) -> PortTemplate:
    return PortTemplate(
        id=port_id,
        direction=PortDirection.INPUT,
        placement=SidePlacement(side=Side.LEFT),
        data_type=data_type,
        **kwargs,
    )


class FakeHost:
    """In-memory graph host that records mutations."""

    def __init__(self) -> None:
        self.registry = NodeTypeRegistry(
            [
                NodeType("source", ports=[_out()]),
                NodeType("sink", ports=[_in()]),
                NodeType("text", ports=[_in(data_type="string")]),
                NodeType(
                    "multi",
                    ports=[_out(instances=lambda ctx: ctx.node.data.get("count", 0))],
                ),
            ]
        )
        # Anchors: a:out (100, 25), b:in (300, 25), c:in (300, 225), t:in (300, 125)
        self.nodes = {
            "a": Node("a", "source", Position(0, 0), NODE_SIZE),
            "b": Node("b", "sink", Position(300, 0), NODE_SIZE),
            "c": Node("c", "sink", Position(300, 200), NODE_SIZE),
            "t": Node("t", "text", Position(300, 100), NODE_SIZE),
            "m": Node("m", "multi", Position(0, 400), NODE_SIZE, data={"count": 2}),
        }
        self.connections: dict[str, Connection] = {}
        self.created: list[Connection] = []
        self.calls: list[tuple[str, str]] = []

    def get_graph_snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(dict(self.nodes), dict(self.connections), self.registry)

    def create_connection(self, connection: Connection) -> None:
        self.calls.append(("create", connection.id))
        self.created.append(connection)
        self.connections[connection.id] = connection

    def delete_connection(self, connection_id: str) -> None:
        self.calls.append(("delete", connection_id))
        self.connections.pop(connection_id, None)


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def machine(host):
    counter = itertools.count(1)
    config = InteractionConfig(id_factory=lambda: f"c{next(counter)}")
    return ConnectionDragMachine(host, config)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestBegin:
    """Tests for starting a drag."""

    def test_begin_on_port(self, machine):
        assert machine.begin("a", "out", pointer=(100, 25))
        assert machine.state is DragState.DRAGGING
        assert machine.is_active
        assert machine.origin.key == ("a", "out")
        assert machine.pointer == Position(100, 25)
        assert machine.candidate is None

    def test_begin_missing_port(self, machine):
        assert not machine.begin("a", "nope")
        assert not machine.begin("zz", "out")
        assert machine.state is DragState.IDLE

    def test_begin_while_active(self, machine):
        machine.begin("a", "out")
        assert not machine.begin("b", "in")
        assert machine.origin.key == ("a", "out")

    def test_begin_at_nearest_anchor(self, machine):
        assert machine.begin_at((98, 27))
        assert machine.origin.key == ("a", "out")

    def test_begin_at_nothing_close(self, machine):
        assert not machine.begin_at((200, 300))
        assert machine.state is DragState.IDLE


class TestMove:
    """Tests for candidate tracking during a drag."""

    def test_snaps_to_connectable_port(self, machine):
        machine.begin("a", "out")
        assert machine.move((295, 27)) is DragState.CANDIDATE_FOUND
        assert machine.candidate.key == ("b", "in")

    def test_no_candidate_far_away(self, machine):
        machine.begin("a", "out")
        assert machine.move((200, 600)) is DragState.NO_CANDIDATE
        assert machine.candidate is None

    def test_incompatible_port_is_never_snapped(self, machine):
        machine.begin("a", "out")
        assert machine.move((300, 125)) is DragState.NO_CANDIDATE

    def test_hovered_incompatible(self, machine):
        machine.begin("a", "out")
        assert machine.move((300, 125), hovered=("t", "in")) is DragState.NO_CANDIDATE

    def test_hovered_compatible(self, machine):
        machine.begin("a", "out")
        assert machine.move((0, 0), hovered=("c", "in")) is DragState.CANDIDATE_FOUND
        assert machine.candidate.key == ("c", "in")

    def test_candidate_cleared_when_pointer_leaves(self, machine):
        machine.begin("a", "out")
        machine.move((295, 27))
        assert machine.move((200, 600)) is DragState.NO_CANDIDATE
        assert machine.candidate is None

    def test_move_when_idle_is_ignored(self, machine):
        assert machine.move((10, 10)) is DragState.IDLE
        assert machine.pointer is None


class TestRelease:
    """Tests for committing or cancelling on release."""

    def test_commit_on_candidate(self, machine, host):
        machine.begin("a", "out")
        machine.move((295, 27))
        outcome = machine.release()
        assert outcome.committed
        assert outcome.state is DragState.COMMITTED
        assert outcome.connection == Connection("c1", "a", "out", "b", "in")
        assert host.created == [outcome.connection]
        assert machine.state is DragState.IDLE
        assert machine.origin is None

    def test_commit_on_hovered(self, machine, host):
        machine.begin("a", "out")
        outcome = machine.release(hovered=("c", "in"))
        assert outcome.committed
        assert outcome.connection.to_key == ("c", "in")

    def test_drag_from_input_is_oriented(self, machine, host):
        machine.begin("b", "in")
        machine.move((102, 24))
        outcome = machine.release()
        assert outcome.connection.from_key == ("a", "out")
        assert outcome.connection.to_key == ("b", "in")

    def test_release_without_target_cancels(self, machine, host):
        machine.begin("a", "out")
        machine.move((200, 600))
        outcome = machine.release()
        assert outcome.state is DragState.CANCELLED
        assert outcome.reason is None
        assert host.created == []
        assert machine.state is DragState.IDLE

    def test_release_on_missing_port(self, machine, host):
        machine.begin("a", "out")
        outcome = machine.release(hovered=("zz", "in"))
        assert outcome.reason is RejectionReason.MISSING_PORT
        assert host.created == []

    def test_release_on_incompatible_port(self, machine, host):
        machine.begin("a", "out")
        outcome = machine.release(hovered=("t", "in"))
        assert outcome.state is DragState.CANCELLED
        assert outcome.reason is RejectionReason.DATA_TYPE
        assert host.created == []

    def test_capacity_checked_against_fresh_graph(self, machine, host):
        """A connection added by the host mid-drag fills the origin."""
        machine.begin("a", "out")
        machine.move((295, 27))
        host.connections["x"] = Connection("x", "a", "out", "c", "in")
        outcome = machine.release()
        assert outcome.reason is RejectionReason.CAPACITY
        assert host.created == []

    def test_release_when_idle(self, machine):
        assert machine.release() is None

    def test_default_ids_are_unique(self, host):
        machine = ConnectionDragMachine(host)
        machine.begin("a", "out")
        first = machine.release(hovered=("b", "in")).connection
        host.nodes["d"] = Node("d", "source", Position(0, 100), NODE_SIZE)
        machine.begin("d", "out")
        second = machine.release(hovered=("c", "in")).connection
        assert first.id != second.id
        assert len(first.id) == 32


class TestCancel:
    """Tests for explicit and automatic cancellation."""

    def test_cancel(self, machine, host):
        machine.begin("a", "out")
        machine.move((295, 27))
        outcome = machine.cancel()
        assert outcome.state is DragState.CANCELLED
        assert outcome.reason is None
        assert machine.state is DragState.IDLE
        assert host.created == []

    def test_cancel_when_idle(self, machine):
        assert machine.cancel() is None

    def test_origin_removed_mid_drag(self, machine, host):
        """Shrinking a dynamic port count removes the origin and cancels the drag."""
        cancelled = []
        machine.on("cancel", cancelled.append)
        assert machine.begin("m", "out-2")
        host.nodes["m"] = Node("m", "multi", Position(0, 400), NODE_SIZE, data={"count": 1})
        assert machine.move((200, 200)) is DragState.IDLE
        assert cancelled[0]["reason"] is RejectionReason.MISSING_PORT
        assert cancelled[0]["origin"].key == ("m", "out-2")

    def test_origin_removed_before_release(self, machine, host):
        machine.begin("a", "out")
        del host.nodes["a"]
        outcome = machine.release(hovered=("b", "in"))
        assert outcome.reason is RejectionReason.MISSING_PORT
        assert host.created == []


class TestReconnect:
    """Tests for dragging one end of an existing connection."""

    @pytest.fixture
    def linked(self, host):
        host.connections["x"] = Connection("x", "a", "out", "b", "in")
        return host

    def test_begin_uses_fixed_end_as_origin(self, machine, linked):
        assert machine.begin_reconnect("x", ConnectionEnd.TO)
        assert machine.state is DragState.DRAGGING
        assert machine.origin.key == ("a", "out")
        assert machine.reconnecting.id == "x"
        assert machine.dragged_end is ConnectionEnd.TO

    def test_end_accepts_string(self, machine, linked):
        assert machine.begin_reconnect("x", "from")
        assert machine.origin.key == ("b", "in")
        assert machine.dragged_end is ConnectionEnd.FROM

    def test_invalid_end(self, machine, linked):
        with pytest.raises(ValueError):
            machine.begin_reconnect("x", "middle")

    def test_missing_connection(self, machine, linked):
        assert not machine.begin_reconnect("nope", "to")
        assert machine.state is DragState.IDLE

    def test_missing_fixed_end(self, machine, host):
        host.connections["y"] = Connection("y", "gone", "out", "b", "in")
        assert not machine.begin_reconnect("y", "to")

    def test_begin_while_active(self, machine, linked):
        machine.begin("c", "in")
        assert not machine.begin_reconnect("x", "to")

    def test_candidates_ignore_the_dragged_connection(self, machine, linked):
        """The fixed output is full in the host graph but free for the reconnect."""
        machine.begin("a", "out")
        assert machine.highlight("c", "in") is PortHighlight.INCOMPATIBLE
        machine.cancel()

        machine.begin_reconnect("x", "to")
        assert machine.highlight("c", "in") is PortHighlight.CONNECTABLE
        assert machine.highlight("b", "in") is PortHighlight.CONNECTABLE

    def test_commit_replaces_connection(self, machine, linked):
        machine.begin_reconnect("x", "to")
        assert machine.move((295, 227)) is DragState.CANDIDATE_FOUND
        assert machine.candidate.key == ("c", "in")
        outcome = machine.release()
        assert outcome.committed
        assert outcome.replaced.id == "x"
        assert outcome.connection == Connection("c1", "a", "out", "c", "in")
        assert linked.calls == [("delete", "x"), ("create", "c1")]
        assert list(linked.connections) == ["c1"]
        assert machine.reconnecting is None

    def test_commit_moving_from_end(self, machine, linked):
        linked.nodes["d"] = Node("d", "source", Position(0, 100), NODE_SIZE)
        machine.begin_reconnect("x", "from")
        machine.move((98, 127))
        outcome = machine.release()
        assert outcome.connection.from_key == ("d", "out")
        assert outcome.connection.to_key == ("b", "in")
        assert linked.calls == [("delete", "x"), ("create", "c1")]

    def test_cancel_leaves_graph_untouched(self, machine, linked):
        machine.begin_reconnect("x", "to")
        machine.move((295, 227))
        outcome = machine.cancel()
        assert outcome.state is DragState.CANCELLED
        assert linked.calls == []
        assert list(linked.connections) == ["x"]

    def test_release_on_empty_canvas_leaves_graph_untouched(self, machine, linked):
        machine.begin_reconnect("x", "to")
        machine.move((200, 600))
        outcome = machine.release()
        assert outcome.state is DragState.CANCELLED
        assert outcome.reason is None
        assert linked.calls == []

    def test_drop_back_on_original_port(self, machine, linked):
        machine.begin_reconnect("x", "to")
        outcome = machine.release(hovered=("b", "in"))
        assert outcome.state is DragState.CANCELLED
        assert outcome.reason is None
        assert linked.calls == []

    def test_incompatible_target(self, machine, linked):
        machine.begin_reconnect("x", "to")
        outcome = machine.release(hovered=("t", "in"))
        assert outcome.reason is RejectionReason.DATA_TYPE
        assert linked.calls == []

    def test_connection_removed_mid_drag(self, machine, linked):
        cancelled = []
        machine.on("cancel", cancelled.append)
        machine.begin_reconnect("x", "to")
        del linked.connections["x"]
        assert machine.move((295, 227)) is DragState.IDLE
        assert cancelled[0]["reason"] is RejectionReason.MISSING_PORT
        assert linked.calls == []

    def test_events_carry_replaced_connection(self, machine, linked):
        events = []
        machine.on("start", events.append).on("commit", events.append)
        machine.begin_reconnect("x", "to")
        machine.release(hovered=("c", "in"))
        assert [e["replaced"].id for e in events] == ["x", "x"]
        assert events[1]["connection"].to_key == ("c", "in")


# ---------------------------------------------------------------------------
# Feedback and events
# ---------------------------------------------------------------------------


class TestHighlight:
    """Tests for per-port drag feedback."""

    def test_idle_is_none(self, machine):
        assert machine.highlight("b", "in") is PortHighlight.NONE

    def test_states_during_drag(self, machine):
        machine.begin("a", "out")
        machine.move((295, 27))
        assert machine.highlight("a", "out") is PortHighlight.NONE
        assert machine.highlight("b", "in") is PortHighlight.CANDIDATE
        assert machine.highlight("c", "in") is PortHighlight.CONNECTABLE
        assert machine.highlight("t", "in") is PortHighlight.INCOMPATIBLE
        assert machine.highlight("m", "out-1") is PortHighlight.INCOMPATIBLE

    def test_cleared_after_commit(self, machine):
        machine.begin("a", "out")
        machine.release(hovered=("b", "in"))
        assert machine.highlight("c", "in") is PortHighlight.NONE

    def test_is_connected(self, machine, host):
        assert not machine.is_connected("b", "in")
        machine.begin("a", "out")
        machine.release(hovered=("b", "in"))
        assert machine.is_connected("a", "out")
        assert machine.is_connected("b", "in")
        assert not machine.is_connected("c", "in")
        assert not machine.is_connected("zz", "in")


class TestEvents:
    """Tests for drag event callbacks."""

    def test_event_sequence(self, machine):
        events = []
        result = (
            machine.on("start", events.append)
            .on(DragEventType.move, events.append)
            .on("commit", events.append)
        )
        assert result is machine

        machine.begin("a", "out", pointer=(100, 25))
        machine.move((295, 27))
        machine.release()

        assert [e["type"] for e in events] == [
            DragEventType.start,
            DragEventType.move,
            DragEventType.commit,
        ]
        assert events[0]["origin"].key == ("a", "out")
        assert events[1]["candidate"].key == ("b", "in")
        assert events[2]["connection"].id == "c1"

    def test_constructor_callbacks(self, host):
        seen = []
        machine = ConnectionDragMachine(
            host,
            on_start=lambda e: seen.append("start"),
            on_cancel=lambda e: seen.append("cancel"),
        )
        machine.begin("a", "out")
        machine.cancel()
        assert seen == ["start", "cancel"]

    def test_unknown_event_name(self, machine):
        with pytest.raises(KeyError):
            machine.on("hover", lambda e: None)
