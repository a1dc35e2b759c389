"""Forward pass for the three gated cells as one shared stage pipeline.

Every architecture runs the same skeleton: sum the input and previous hidden
vectors, squash that sum through one sigmoid gate per bias, then hand the gates
to an architecture-specific blend stage. The blend stages are the only place
the three formula sets differ.

Candidate transforms use a fixed zero bias while gates use the user biases.
"""

from typing import Dict, Mapping, Tuple

from .cell_model import Architecture, SimulationParams, SimulationResult
from .pipeline import PipelineRunner, PipelineStage
from .step_graph import GATE_NODES
from . import vector_ops as vec
from .vector_ops import Vector

CANDIDATE_BIAS = 0.0


class MixStage(PipelineStage):
    stage_name = "mix"

    def run(self, values: Mapping[str, Vector], params: SimulationParams) -> Dict[str, Vector]:
        return {"mix": vec.add(values["x_t"], values["h_prev"])}


class GateStage(PipelineStage):
    stage_name = "gates"

    def __init__(self, gate_nodes: Tuple[str, ...]) -> None:
        self._gate_nodes = gate_nodes

    def run(self, values: Mapping[str, Vector], params: SimulationParams) -> Dict[str, Vector]:
        mix = values["mix"]
        return {
            node_id: vec.sigmoid(mix, bias)
            for node_id, bias in zip(self._gate_nodes, params.biases())
        }


class UpdateGateBlendStage(PipelineStage):
    stage_name = "update_gate_blend"

    def run(self, values: Mapping[str, Vector], params: SimulationParams) -> Dict[str, Vector]:
        update_gate = values["update_gate"]
        hidden_prev = values["h_prev"]
        candidate = vec.tanh(values["mix"], CANDIDATE_BIAS)
        update_complement = vec.one_minus(update_gate)
        return {
            "candidate": candidate,
            "update_complement": update_complement,
            "retained": vec.multiply(update_gate, hidden_prev),
            "proposed": vec.multiply(update_complement, candidate),
            "hidden": vec.interpolate(update_gate, hidden_prev, candidate),
        }


class GatedRecurrentBlendStage(PipelineStage):
    stage_name = "gated_recurrent_blend"

    def run(self, values: Mapping[str, Vector], params: SimulationParams) -> Dict[str, Vector]:
        reset_gate = values["reset_gate"]
        update_gate = values["update_gate"]
        hidden_prev = values["h_prev"]
        # The candidate sees reset-gated history, not the raw mix.
        reset_history = vec.multiply(reset_gate, hidden_prev)
        candidate = vec.tanh(vec.add(values["x_t"], reset_history), CANDIDATE_BIAS)
        update_complement = vec.one_minus(update_gate)
        return {
            "reset_history": reset_history,
            "candidate": candidate,
            "update_complement": update_complement,
            "retained": vec.multiply(update_complement, hidden_prev),
            "proposed": vec.multiply(update_gate, candidate),
            "hidden": vec.interpolate(update_gate, candidate, hidden_prev),
        }


class MemoryCellBlendStage(PipelineStage):
    stage_name = "memory_cell_blend"

    def run(self, values: Mapping[str, Vector], params: SimulationParams) -> Dict[str, Vector]:
        candidate = vec.tanh(values["mix"], CANDIDATE_BIAS)
        retained_cell = vec.multiply(values["forget_gate"], values["c_prev"])
        written_cell = vec.multiply(values["input_gate"], candidate)
        cell = vec.add(retained_cell, written_cell)
        cell_tanh = vec.tanh(cell)
        return {
            "candidate": candidate,
            "retained_cell": retained_cell,
            "written_cell": written_cell,
            "cell": cell,
            "cell_tanh": cell_tanh,
            "hidden": vec.multiply(values["output_gate"], cell_tanh),
        }


_BLEND_STAGES = {
    Architecture.UPDATE_GATE_CELL: UpdateGateBlendStage,
    Architecture.GATED_RECURRENT_UNIT: GatedRecurrentBlendStage,
    Architecture.LONG_SHORT_TERM_MEMORY: MemoryCellBlendStage,
}


def build_runner(architecture: Architecture) -> PipelineRunner:
    return PipelineRunner(
        stages=[
            MixStage(),
            GateStage(GATE_NODES[architecture]),
            _BLEND_STAGES[architecture](),
        ]
    )


_RUNNERS: Dict[Architecture, PipelineRunner] = {arch: build_runner(arch) for arch in Architecture}


def input_values(architecture: Architecture, params: SimulationParams) -> Dict[str, Vector]:
    size = params.dimensionality
    values = {
        "x_t": vec.resize_vector(params.input_x, size),
        "h_prev": vec.resize_vector(params.hidden_prev, size),
    }
    if architecture.has_cell_state:
        values["c_prev"] = vec.resize_vector(params.cell_or_zeros(), size)
    return values


def evaluate(architecture: Architecture | str, params: SimulationParams) -> SimulationResult:
    """Run one forward step and return every gate, candidate and new state."""
    architecture = Architecture.parse(architecture)
    node_values = _RUNNERS[architecture].run(params, input_values(architecture, params))

    gates = [node_values[node_id] for node_id in GATE_NODES[architecture]]
    gates += [[] for _ in range(3 - len(gates))]
    result = SimulationResult(
        final_hidden=node_values["hidden"],
        gate1=gates[0],
        gate2=gates[1],
        gate3=gates[2],
        candidate_state=node_values["candidate"],
        node_values=node_values,
    )
    if architecture.has_cell_state:
        result.final_cell = node_values["cell"]
        result.tanh_cell = node_values["cell_tanh"]
    return result
