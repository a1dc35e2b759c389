"""Stepwise forward-pass engine for gated recurrent cells."""

from .cell_model import Architecture, SimulationParams, SimulationResult
from .evaluator import evaluate
from .scheduler import AsyncioScheduler, SimulatedClock
from .sequencer import NodeState, StepSequencer, TransitionRejected, create_sequencer, transition
from .session import CellSession
from .step_graph import NodeKind, StepGraph, StepNode, graph_for
from .timestep import advance, reset, resize

__all__ = [
    "Architecture",
    "SimulationParams",
    "SimulationResult",
    "evaluate",
    "AsyncioScheduler",
    "SimulatedClock",
    "NodeState",
    "StepSequencer",
    "TransitionRejected",
    "create_sequencer",
    "transition",
    "CellSession",
    "NodeKind",
    "StepGraph",
    "StepNode",
    "graph_for",
    "advance",
    "reset",
    "resize",
]
