import pytest

from neuroflow import Architecture, NodeKind, StepGraph, StepNode, graph_for


@pytest.mark.parametrize("architecture", list(Architecture))
def test_topological_order_respects_dependencies(architecture):
    graph = graph_for(architecture)
    order = graph.topological_order()

    assert sorted(order) == sorted(graph.node_ids())
    position = {node_id: index for index, node_id in enumerate(order)}
    for node in graph:
        for dep in node.dependencies:
            assert position[dep] < position[node.id]


def test_graph_for_returns_same_static_graph():
    assert graph_for("GRU") is graph_for(Architecture.GATED_RECURRENT_UNIT)


def test_inputs_are_pass_through_roots():
    assert graph_for("UGRNN").roots() == ["x_t", "h_prev"]
    lstm = graph_for("LSTM")
    assert lstm.roots() == ["x_t", "h_prev", "c_prev"]
    assert all(lstm.node(node_id).kind is NodeKind.PASS_THROUGH for node_id in lstm.roots())


def test_gated_recurrent_candidate_reads_reset_history():
    graph = graph_for("GRU")
    reset_history = graph.node("reset_history")
    assert reset_history.kind is NodeKind.ELEMENTWISE_MULTIPLY
    assert reset_history.dependencies == {"reset_gate", "h_prev"}
    candidate = graph.node("candidate")
    assert candidate.kind is NodeKind.TANH_TRANSFORM
    assert candidate.dependencies == {"x_t", "reset_history", "update_gate"}


def test_gate_nodes_carry_result_fields_and_biases():
    graph = graph_for("LSTM")
    gates = [node for node in graph if node.kind is NodeKind.SIGMOID_GATE]
    assert [node.id for node in gates] == ["forget_gate", "input_gate", "output_gate"]
    assert [node.result_field for node in gates] == ["gate1", "gate2", "gate3"]
    assert [node.properties["bias"] for node in gates] == ["bias1", "bias2", "bias3"]


def test_unknown_dependency_is_rejected():
    with pytest.raises(ValueError, match="unknown"):
        StepGraph(
            Architecture.UPDATE_GATE_CELL,
            [StepNode(id="mix", kind=NodeKind.ELEMENTWISE_ADD, dependencies=frozenset({"x_t"}))],
        )


def test_cycle_is_rejected():
    nodes = [
        StepNode(id="a", kind=NodeKind.ONE_MINUS, dependencies=frozenset({"b"})),
        StepNode(id="b", kind=NodeKind.ONE_MINUS, dependencies=frozenset({"a"})),
    ]
    with pytest.raises(ValueError, match="cycle"):
        StepGraph(Architecture.UPDATE_GATE_CELL, nodes)


def test_duplicate_node_is_rejected():
    node = StepNode(id="x_t", kind=NodeKind.PASS_THROUGH)
    with pytest.raises(ValueError, match="Duplicate"):
        StepGraph(Architecture.UPDATE_GATE_CELL, [node, node])


def test_to_json_lists_kinds_and_sorted_dependencies():
    payload = graph_for("UGRNN").to_json()
    assert payload["architecture"] == "UGRNN"
    hidden = next(item for item in payload["nodes"] if item["id"] == "hidden")
    assert hidden["kind"] == "elementwise-add"
    assert hidden["dependencies"] == ["proposed", "retained"]
