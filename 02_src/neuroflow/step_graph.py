"""Static dependency graphs of the computation nodes for each architecture."""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Tuple

from .cell_model import Architecture


class NodeKind(str, Enum):
    SIGMOID_GATE = "sigmoid-gate"
    TANH_TRANSFORM = "tanh-transform"
    ELEMENTWISE_ADD = "elementwise-add"
    ELEMENTWISE_MULTIPLY = "elementwise-multiply"
    ONE_MINUS = "one-minus"
    PASS_THROUGH = "pass-through"


GATE_NODES: Dict[Architecture, Tuple[str, ...]] = {
    Architecture.UPDATE_GATE_CELL: ("update_gate",),
    Architecture.GATED_RECURRENT_UNIT: ("reset_gate", "update_gate"),
    Architecture.LONG_SHORT_TERM_MEMORY: ("forget_gate", "input_gate", "output_gate"),
}


@dataclass(frozen=True)
class StepNode:
    id: str
    kind: NodeKind
    dependencies: FrozenSet[str] = frozenset()
    properties: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def result_field(self) -> str | None:
        return self.properties.get("result_field")


class StepGraph:
    """Validated, read-only DAG of step nodes for one architecture."""

    def __init__(self, architecture: Architecture, nodes: Iterable[StepNode]) -> None:
        self.architecture = architecture
        self._nodes: Dict[str, StepNode] = {}
        for node in nodes:
            if node.id in self._nodes:
                raise ValueError(f"Duplicate step node: {node.id}")
            self._nodes[node.id] = node

        for node in self._nodes.values():
            unknown = sorted(dep for dep in node.dependencies if dep not in self._nodes)
            if unknown:
                raise ValueError(f"Node '{node.id}' depends on unknown nodes: {unknown}")

        self._dependents: Dict[str, List[str]] = {node_id: [] for node_id in self._nodes}
        for node in self._nodes.values():
            for dep in node.dependencies:
                self._dependents[dep].append(node.id)
        self._order: Tuple[str, ...] = self._resolve_order()

    @property
    def nodes(self) -> Mapping[str, StepNode]:
        return MappingProxyType(self._nodes)

    def node(self, node_id: str) -> StepNode:
        return self._nodes[node_id]

    def node_ids(self) -> List[str]:
        return list(self._nodes)

    def roots(self) -> List[str]:
        return [node_id for node_id, node in self._nodes.items() if not node.dependencies]

    def dependents(self, node_id: str) -> List[str]:
        return list(self._dependents[node_id])

    def topological_order(self) -> Tuple[str, ...]:
        return self._order

    def to_json(self) -> Dict[str, Any]:
        return {
            "architecture": self.architecture.value,
            "nodes": [
                {
                    "id": node.id,
                    "kind": node.kind.value,
                    "dependencies": sorted(node.dependencies),
                    "properties": dict(node.properties),
                }
                for node in self._nodes.values()
            ],
        }

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[StepNode]:
        return iter(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    def _resolve_order(self) -> Tuple[str, ...]:
        remaining = {node_id: len(node.dependencies) for node_id, node in self._nodes.items()}
        ready = deque(node_id for node_id, count in remaining.items() if count == 0)
        order: List[str] = []
        while ready:
            node_id = ready.popleft()
            order.append(node_id)
            for dependent in self._dependents[node_id]:
                remaining[dependent] -= 1
                if remaining[dependent] == 0:
                    ready.append(dependent)
        if len(order) != len(self._nodes):
            stuck = sorted(set(self._nodes) - set(order))
            raise ValueError(f"Step graph has a dependency cycle through: {stuck}")
        return tuple(order)


class _GraphBuilder:
    def __init__(self, architecture: Architecture) -> None:
        self.architecture = architecture
        self._nodes: List[StepNode] = []

    def add(self, node_id: str, kind: NodeKind, *dependencies: str, **properties: Any) -> str:
        properties.setdefault("label", node_id)
        self._nodes.append(
            StepNode(
                id=node_id,
                kind=kind,
                dependencies=frozenset(dependencies),
                properties=MappingProxyType(dict(properties)),
            )
        )
        return node_id

    def build(self) -> StepGraph:
        return StepGraph(self.architecture, self._nodes)


def _wire_update_gate_cell(builder: _GraphBuilder, gates: List[str]) -> None:
    (update_gate,) = gates
    candidate = builder.add(
        "candidate", NodeKind.TANH_TRANSFORM, "mix",
        formula="tanh(mix)", result_field="candidate_state",
    )
    complement = builder.add("update_complement", NodeKind.ONE_MINUS, update_gate, formula="1 - u")
    builder.add("retained", NodeKind.ELEMENTWISE_MULTIPLY, update_gate, "h_prev", formula="u * h_prev")
    builder.add("proposed", NodeKind.ELEMENTWISE_MULTIPLY, complement, candidate, formula="(1 - u) * s")
    builder.add(
        "hidden", NodeKind.ELEMENTWISE_ADD, "retained", "proposed",
        formula="u * h_prev + (1 - u) * s", result_field="final_hidden",
    )


def _wire_gated_recurrent_unit(builder: _GraphBuilder, gates: List[str]) -> None:
    reset_gate, update_gate = gates
    reset_history = builder.add(
        "reset_history", NodeKind.ELEMENTWISE_MULTIPLY, reset_gate, "h_prev", formula="r * h_prev"
    )
    # The candidate also waits on the update gate so both gates form one stage.
    candidate = builder.add(
        "candidate", NodeKind.TANH_TRANSFORM, "x_t", reset_history, update_gate,
        formula="tanh(x_t + r * h_prev)", result_field="candidate_state",
    )
    complement = builder.add("update_complement", NodeKind.ONE_MINUS, update_gate, formula="1 - z")
    builder.add("retained", NodeKind.ELEMENTWISE_MULTIPLY, complement, "h_prev", formula="(1 - z) * h_prev")
    builder.add("proposed", NodeKind.ELEMENTWISE_MULTIPLY, update_gate, candidate, formula="z * n")
    builder.add(
        "hidden", NodeKind.ELEMENTWISE_ADD, "retained", "proposed",
        formula="(1 - z) * h_prev + z * n", result_field="final_hidden",
    )


def _wire_long_short_term_memory(builder: _GraphBuilder, gates: List[str]) -> None:
    forget_gate, input_gate, output_gate = gates
    candidate = builder.add(
        "candidate", NodeKind.TANH_TRANSFORM, "mix",
        formula="tanh(mix)", result_field="candidate_state",
    )
    builder.add("retained_cell", NodeKind.ELEMENTWISE_MULTIPLY, forget_gate, "c_prev", formula="f * c_prev")
    builder.add("written_cell", NodeKind.ELEMENTWISE_MULTIPLY, input_gate, candidate, formula="i * c~")
    builder.add(
        "cell", NodeKind.ELEMENTWISE_ADD, "retained_cell", "written_cell",
        formula="f * c_prev + i * c~", result_field="final_cell",
    )
    builder.add("cell_tanh", NodeKind.TANH_TRANSFORM, "cell", formula="tanh(c_t)", result_field="tanh_cell")
    builder.add(
        "hidden", NodeKind.ELEMENTWISE_MULTIPLY, output_gate, "cell_tanh",
        formula="o * tanh(c_t)", result_field="final_hidden",
    )


_WIRINGS: Dict[Architecture, Callable[[_GraphBuilder, List[str]], None]] = {
    Architecture.UPDATE_GATE_CELL: _wire_update_gate_cell,
    Architecture.GATED_RECURRENT_UNIT: _wire_gated_recurrent_unit,
    Architecture.LONG_SHORT_TERM_MEMORY: _wire_long_short_term_memory,
}


def build_graph(architecture: Architecture) -> StepGraph:
    builder = _GraphBuilder(architecture)
    builder.add("x_t", NodeKind.PASS_THROUGH, formula="x_t")
    builder.add("h_prev", NodeKind.PASS_THROUGH, formula="h_{t-1}")
    if architecture.has_cell_state:
        builder.add("c_prev", NodeKind.PASS_THROUGH, formula="c_{t-1}")
    builder.add("mix", NodeKind.ELEMENTWISE_ADD, "x_t", "h_prev", formula="x_t + h_{t-1}")

    gates: List[str] = []
    for index, node_id in enumerate(GATE_NODES[architecture], start=1):
        gates.append(
            builder.add(
                node_id, NodeKind.SIGMOID_GATE, "mix",
                formula=f"sigmoid(mix + b{index})", bias=f"bias{index}", result_field=f"gate{index}",
            )
        )
    _WIRINGS[architecture](builder, gates)
    return builder.build()


_GRAPHS: Dict[Architecture, StepGraph] = {arch: build_graph(arch) for arch in Architecture}


def graph_for(architecture: Architecture | str) -> StepGraph:
    return _GRAPHS[Architecture.parse(architecture)]
