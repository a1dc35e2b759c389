import pytest

from neuroflow import (
    NodeState,
    SimulatedClock,
    SimulationParams,
    TransitionRejected,
    create_sequencer,
    evaluate,
    graph_for,
    transition,
)
from neuroflow.sequencer import CompleteEvent, TriggerEvent, initial_states

LATENCY = 0.5


def _make(architecture, params=None):
    params = params or SimulationParams()
    clock = SimulatedClock()
    graph = graph_for(architecture)
    sequencer = create_sequencer(graph, evaluate(architecture, params), clock, latency=LATENCY)
    return sequencer, clock


def _resolve(sequencer, clock, node_id):
    assert sequencer.trigger(node_id)
    clock.advance(LATENCY)
    assert sequencer.state_of(node_id) is NodeState.DONE


def test_initial_states_activate_only_roots():
    sequencer, _ = _make("LSTM")
    active = {node for node, state in sequencer.states.items() if state is NodeState.ACTIVE}
    assert active == {"x_t", "h_prev", "c_prev"}
    assert sequencer.state_of("mix") is NodeState.PENDING


def test_trigger_moves_through_computing_to_done():
    sequencer, clock = _make("UGRNN")
    assert sequencer.trigger("x_t")
    assert sequencer.state_of("x_t") is NodeState.COMPUTING
    clock.advance(LATENCY / 2)
    assert sequencer.state_of("x_t") is NodeState.COMPUTING
    clock.advance(LATENCY / 2)
    assert sequencer.state_of("x_t") is NodeState.DONE
    assert sequencer.value_of("x_t") == [1.0, 0.0]


def test_pending_trigger_is_rejected_without_side_effects():
    sequencer, clock = _make("UGRNN")
    before = sequencer.states
    assert not sequencer.trigger("hidden")
    assert sequencer.states == before
    assert clock.pending_count() == 0


def test_only_one_node_computes_at_a_time():
    sequencer, clock = _make("UGRNN")
    assert sequencer.trigger("x_t")
    assert not sequencer.trigger("h_prev")
    assert sequencer.state_of("h_prev") is NodeState.ACTIVE
    clock.advance(LATENCY)
    assert sequencer.trigger("h_prev")


def test_unknown_node_trigger_is_rejected():
    sequencer, _ = _make("GRU")
    assert not sequencer.trigger("forget_gate")


def test_gated_recurrent_candidate_opens_after_gates_and_reset_history():
    sequencer, clock = _make("GRU")
    assert not sequencer.trigger("candidate")

    for node_id in ("x_t", "h_prev", "mix"):
        _resolve(sequencer, clock, node_id)
    assert sequencer.state_of("reset_gate") is NodeState.ACTIVE
    assert sequencer.state_of("update_gate") is NodeState.ACTIVE
    assert not sequencer.trigger("candidate")

    _resolve(sequencer, clock, "reset_gate")
    assert sequencer.state_of("reset_history") is NodeState.ACTIVE
    assert sequencer.state_of("candidate") is NodeState.PENDING

    _resolve(sequencer, clock, "update_gate")
    assert sequencer.state_of("candidate") is NodeState.PENDING
    assert not sequencer.trigger("candidate")

    _resolve(sequencer, clock, "reset_history")
    assert sequencer.value_of("reset_history") == sequencer.result.node_values["reset_history"]
    assert sequencer.state_of("candidate") is NodeState.ACTIVE


def test_gated_recurrent_candidate_still_waits_for_update_gate():
    sequencer, clock = _make("GRU")
    for node_id in ("x_t", "h_prev", "mix", "reset_gate", "reset_history"):
        _resolve(sequencer, clock, node_id)
    assert sequencer.state_of("candidate") is NodeState.PENDING
    assert not sequencer.trigger("candidate")

    _resolve(sequencer, clock, "update_gate")
    assert sequencer.state_of("candidate") is NodeState.ACTIVE


@pytest.mark.parametrize("architecture", ["UGRNN", "GRU", "LSTM"])
def test_full_walk_resolves_exactly_once(architecture):
    sequencer, clock = _make(architecture)
    graph = sequencer.graph
    resolved = []
    seen = []

    def check_dependencies(node_id, value):
        for dep in graph.node(node_id).dependencies:
            assert sequencer.state_of(dep) is NodeState.DONE
        assert value == sequencer.result.node_values[node_id]
        seen.append(node_id)

    sequencer.on_node_done(check_dependencies)
    sequencer.on_resolved(lambda: resolved.append(clock.now))

    for node_id in graph.topological_order():
        assert not sequencer.is_resolved()
        _resolve(sequencer, clock, node_id)
    clock.advance(10.0)

    assert sequencer.is_resolved()
    assert resolved == [LATENCY * len(graph)]
    assert seen == list(graph.topological_order())
    assert sequencer.revealed()["hidden"] == sequencer.result.final_hidden


def test_dispose_abandons_in_flight_transition():
    sequencer, clock = _make("UGRNN")
    done = []
    sequencer.on_node_done(lambda node_id, value: done.append(node_id))
    assert sequencer.trigger("x_t")
    sequencer.dispose()
    clock.advance(LATENCY * 4)

    assert done == []
    assert clock.pending_count() == 0
    assert sequencer.value_of("x_t") is None
    assert not sequencer.trigger("h_prev")


def test_transition_is_pure():
    graph = graph_for("UGRNN")
    states = initial_states(graph)
    computing = transition(graph, states, TriggerEvent("x_t"))
    assert states["x_t"] is NodeState.ACTIVE
    assert computing["x_t"] is NodeState.COMPUTING

    done = transition(graph, computing, CompleteEvent("x_t"))
    assert done["x_t"] is NodeState.DONE
    assert done["mix"] is NodeState.PENDING


@pytest.mark.parametrize(
    "event",
    [TriggerEvent("mix"), CompleteEvent("x_t"), TriggerEvent("missing")],
)
def test_transition_rejects_illegal_events(event):
    graph = graph_for("UGRNN")
    with pytest.raises(TransitionRejected):
        transition(graph, initial_states(graph), event)


def test_unknown_node_state_lookup_raises_key_error():
    sequencer, _ = _make("GRU")
    assert not sequencer.has_node("forget_gate")
    with pytest.raises(KeyError, match="forget_gate"):
        sequencer.state_of("forget_gate")
