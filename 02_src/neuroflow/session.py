"""Interactive session: one architecture, one params snapshot, one live sequencer."""

import logging
import math
from typing import Any, Callable, Dict, List

from .cell_model import (
    BIAS_RANGE,
    SUPPORTED_DIMENSIONALITIES,
    Architecture,
    SimulationParams,
    SimulationResult,
)
from .config import Settings
from .evaluator import evaluate
from .scheduler import Scheduler, SimulatedClock
from .sequencer import NodeState, StepSequencer, create_sequencer
from .step_graph import StepGraph, graph_for
from . import timestep
from .vector_ops import Vector, parse_scalar, parse_vector

logger = logging.getLogger(__name__)

_VECTOR_FIELDS = ("input_x", "hidden_prev", "cell_prev")
_BIAS_FIELDS = ("bias1", "bias2", "bias3")


def clamp_bias(value: float) -> float:
    low, high = BIAS_RANGE
    return min(max(value, low), high)


def clamp_dimensionality(value: object) -> int:
    low, high = SUPPORTED_DIMENSIONALITIES[0], SUPPORTED_DIMENSIONALITIES[-1]
    number = parse_scalar(value)
    if not math.isfinite(number):
        return high if number > 0 else low
    return min(max(int(number), low), high)


def normalize_params(params: SimulationParams) -> SimulationParams:
    """Clamp a snapshot to the ranges the controls offer."""
    normalized = timestep.resize(params, clamp_dimensionality(params.dimensionality))
    return normalized.with_changes(
        **{name: clamp_bias(getattr(normalized, name)) for name in _BIAS_FIELDS}
    )


class CellSession:
    """Owns the snapshot lifecycle and replaces the sequencer on every change.

    Any edit that yields a different :class:`SimulationParams` re-evaluates the
    cell and discards the current sequencer, cancelling its in-flight callback
    before the new instance is installed.
    """

    def __init__(
        self,
        architecture: Architecture | str = Architecture.UPDATE_GATE_CELL,
        params: SimulationParams | None = None,
        scheduler: Scheduler | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.scheduler: Scheduler = scheduler or SimulatedClock()
        self.architecture = Architecture.parse(architecture)
        if params is None:
            params = SimulationParams(dimensionality=clamp_dimensionality(self.settings.dimensionality))
        self.params = normalize_params(params)
        self.time_step = 0
        self._done_listeners: List[Callable[[str, Vector], None]] = []
        self._resolved_listeners: List[Callable[[], None]] = []
        self.result: SimulationResult = evaluate(self.architecture, self.params)
        self.sequencer: StepSequencer = self._new_sequencer()

    @property
    def graph(self) -> StepGraph:
        return graph_for(self.architecture)

    @property
    def can_advance(self) -> bool:
        return self.sequencer.is_resolved()

    def on_node_done(self, callback: Callable[[str, Vector], None]) -> None:
        self._done_listeners.append(callback)
        self.sequencer.on_node_done(callback)

    def on_resolved(self, callback: Callable[[], None]) -> None:
        self._resolved_listeners.append(callback)
        self.sequencer.on_resolved(callback)

    def select_architecture(self, architecture: Architecture | str) -> None:
        architecture = Architecture.parse(architecture)
        if architecture is self.architecture:
            return
        self.architecture = architecture
        self.params = timestep.reset(self.params).with_changes(bias1=0.0, bias2=0.0, bias3=0.0)
        self.time_step = 0
        self._restart()

    def update_params(self, **changes: Any) -> bool:
        """Apply field edits; returns False when the snapshot did not change."""
        for name in _BIAS_FIELDS:
            if name in changes:
                changes[name] = clamp_bias(parse_scalar(changes[name]))
        candidate = self.params
        if "dimensionality" in changes:
            candidate = timestep.resize(candidate, clamp_dimensionality(changes.pop("dimensionality")))
        if changes:
            candidate = candidate.with_changes(**changes)
        if candidate == self.params:
            return False
        self.params = candidate
        self._restart()
        return True

    def set_vector(self, name: str, text: str) -> bool:
        if name not in _VECTOR_FIELDS:
            raise ValueError(f"Unknown vector field: {name}")
        return self.update_params(**{name: tuple(parse_vector(text, self.params.dimensionality))})

    def set_bias(self, index: int, value: object) -> bool:
        if index not in (1, 2, 3):
            raise ValueError(f"Bias index must be 1, 2 or 3, got {index}")
        return self.update_params(**{f"bias{index}": value})

    def set_dimensionality(self, dimensionality: int) -> bool:
        return self.update_params(dimensionality=dimensionality)

    def trigger(self, node_id: str) -> bool:
        return self.sequencer.trigger(node_id)

    def state_of(self, node_id: str) -> NodeState:
        return self.sequencer.state_of(node_id)

    def is_resolved(self) -> bool:
        return self.sequencer.is_resolved()

    def advance(self) -> bool:
        if not self.sequencer.is_resolved():
            logger.debug("Advance ignored at t=%d: graph not resolved", self.time_step)
            return False
        self.params = timestep.advance(self.params, self.result, self.architecture)
        self.time_step += 1
        self._restart()
        return True

    def reset(self) -> None:
        self.params = timestep.reset(self.params)
        self.time_step = 0
        self._restart()

    def to_json(self) -> Dict[str, Any]:
        return {
            "architecture": self.architecture.value,
            "time_step": self.time_step,
            "params": self.params.to_json(),
            "states": {node_id: state.value for node_id, state in self.sequencer.states.items()},
            "revealed": self.sequencer.revealed(),
        }

    def _new_sequencer(self) -> StepSequencer:
        sequencer = create_sequencer(
            self.graph, self.result, self.scheduler, latency=self.settings.step_latency
        )
        for callback in self._done_listeners:
            sequencer.on_node_done(callback)
        for callback in self._resolved_listeners:
            sequencer.on_resolved(callback)
        return sequencer

    def _restart(self) -> None:
        self.sequencer.dispose()
        self.result = evaluate(self.architecture, self.params)
        self.sequencer = self._new_sequencer()
