"""Finite-state machine that gates the reveal order of step-graph nodes.

Node states live in a plain mapping owned by one :class:`StepSequencer`.
All state changes go through :func:`transition`, a pure function of
``(graph, states, event)`` that either returns a new mapping or raises
:class:`TransitionRejected`. The sequencer never computes values: it reads them
from the :class:`SimulationResult` it was created with.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Mapping, Union

from .cell_model import SimulationResult
from .scheduler import CallHandle, Scheduler
from .step_graph import StepGraph
from .vector_ops import Vector

logger = logging.getLogger(__name__)

DEFAULT_STEP_LATENCY = 0.5


class NodeState(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPUTING = "computing"
    DONE = "done"


class TransitionRejected(ValueError):
    """Raised by :func:`transition` for an event the current states do not allow."""


@dataclass(frozen=True)
class TriggerEvent:
    node_id: str


@dataclass(frozen=True)
class CompleteEvent:
    node_id: str


Event = Union[TriggerEvent, CompleteEvent]
NodeStates = Dict[str, NodeState]


def initial_states(graph: StepGraph) -> NodeStates:
    return {
        node.id: NodeState.PENDING if node.dependencies else NodeState.ACTIVE
        for node in graph
    }


def transition(graph: StepGraph, states: Mapping[str, NodeState], event: Event) -> NodeStates:
    node_id = event.node_id
    if node_id not in graph:
        raise TransitionRejected(f"Unknown node: {node_id}")
    current = states[node_id]

    if isinstance(event, TriggerEvent):
        if current is not NodeState.ACTIVE:
            raise TransitionRejected(f"Node '{node_id}' is {current.value}, not active")
        busy = [other for other, state in states.items() if state is NodeState.COMPUTING]
        if busy:
            raise TransitionRejected(f"Node '{busy[0]}' is still computing")
        updated = dict(states)
        updated[node_id] = NodeState.COMPUTING
        return updated

    if isinstance(event, CompleteEvent):
        if current is not NodeState.COMPUTING:
            raise TransitionRejected(f"Node '{node_id}' is {current.value}, not computing")
        updated = dict(states)
        updated[node_id] = NodeState.DONE
        for dependent in graph.dependents(node_id):
            if updated[dependent] is not NodeState.PENDING:
                continue
            deps = graph.node(dependent).dependencies
            if all(updated[dep] is NodeState.DONE for dep in deps):
                updated[dependent] = NodeState.ACTIVE
        return updated

    raise TransitionRejected(f"Unsupported event: {event!r}")


NodeDoneCallback = Callable[[str, Vector], None]
ResolvedCallback = Callable[[], None]


class StepSequencer:
    """One reveal session over a step graph and a pre-computed result."""

    def __init__(
        self,
        graph: StepGraph,
        result: SimulationResult,
        scheduler: Scheduler,
        latency: float = DEFAULT_STEP_LATENCY,
    ) -> None:
        self.graph = graph
        self.result = result
        self.latency = latency
        self._scheduler = scheduler
        self._states: NodeStates = initial_states(graph)
        self._revealed: Dict[str, Vector] = {}
        self._pending_call: CallHandle | None = None
        self._resolved_signaled = False
        self._disposed = False
        self._done_listeners: List[NodeDoneCallback] = []
        self._resolved_listeners: List[ResolvedCallback] = []

    @property
    def states(self) -> Mapping[str, NodeState]:
        return dict(self._states)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def has_node(self, node_id: str) -> bool:
        return node_id in self._states

    def state_of(self, node_id: str) -> NodeState:
        """Current state of ``node_id``; raises ``KeyError`` for ids outside the graph."""
        if node_id not in self._states:
            raise KeyError(f"Unknown node: {node_id}")
        return self._states[node_id]

    def active_nodes(self) -> List[str]:
        return [node_id for node_id, state in self._states.items() if state is NodeState.ACTIVE]

    def computing_node(self) -> str | None:
        for node_id, state in self._states.items():
            if state is NodeState.COMPUTING:
                return node_id
        return None

    def is_resolved(self) -> bool:
        return all(state is NodeState.DONE for state in self._states.values())

    def value_of(self, node_id: str) -> Vector | None:
        return self._revealed.get(node_id)

    def revealed(self) -> Dict[str, Vector]:
        return dict(self._revealed)

    def on_node_done(self, callback: NodeDoneCallback) -> None:
        self._done_listeners.append(callback)

    def on_resolved(self, callback: ResolvedCallback) -> None:
        self._resolved_listeners.append(callback)

    def trigger(self, node_id: str) -> bool:
        """Start computing ``node_id``; returns False when the request is not allowed."""
        if self._disposed:
            logger.debug("Trigger of %s ignored: sequencer disposed", node_id)
            return False
        try:
            self._states = transition(self.graph, self._states, TriggerEvent(node_id))
        except TransitionRejected as error:
            logger.debug("Trigger rejected: %s", error)
            return False
        self._pending_call = self._scheduler.call_later(self.latency, lambda: self._complete(node_id))
        return True

    def dispose(self) -> None:
        """Abandon any in-flight transition; the instance accepts no further events."""
        if self._pending_call is not None:
            self._pending_call.cancel()
            logger.debug("Abandoned in-flight node %s", self.computing_node())
            self._pending_call = None
        self._disposed = True

    def _complete(self, node_id: str) -> None:
        if self._disposed:
            return
        self._pending_call = None
        self._states = transition(self.graph, self._states, CompleteEvent(node_id))
        value = list(self.result.node_values[node_id])
        self._revealed[node_id] = value
        for callback in list(self._done_listeners):
            callback(node_id, value)
        if not self._resolved_signaled and self.is_resolved():
            self._resolved_signaled = True
            for callback in list(self._resolved_listeners):
                callback()


def create_sequencer(
    graph: StepGraph,
    result: SimulationResult,
    scheduler: Scheduler,
    latency: float = DEFAULT_STEP_LATENCY,
) -> StepSequencer:
    return StepSequencer(graph, result, scheduler, latency=latency)
