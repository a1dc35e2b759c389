"""Feedback of resolved state into the next time step."""

from .cell_model import Architecture, SimulationParams, SimulationResult
from .vector_ops import resize_vector, zeros


def advance(
    params: SimulationParams,
    result: SimulationResult,
    architecture: Architecture | str | None = None,
) -> SimulationParams:
    """Carry ``result`` forward as the previous state of the next step.

    The cell state is only fed back when the result has one (LSTM). Input and
    biases are left to the caller.
    """
    size = params.dimensionality
    changes = {"hidden_prev": tuple(resize_vector(result.final_hidden, size))}
    has_cell = (
        Architecture.parse(architecture).has_cell_state
        if architecture is not None
        else result.final_cell is not None
    )
    if has_cell and result.final_cell is not None:
        changes["cell_prev"] = tuple(resize_vector(result.final_cell, size))
    return params.with_changes(**changes)


def reset(params: SimulationParams) -> SimulationParams:
    size = params.dimensionality
    return params.with_changes(hidden_prev=tuple(zeros(size)), cell_prev=tuple(zeros(size)))


def resize(params: SimulationParams, dimensionality: int) -> SimulationParams:
    if dimensionality < 1:
        raise ValueError(f"dimensionality must be >= 1, got {dimensionality}")
    return params.with_changes(
        dimensionality=dimensionality,
        input_x=tuple(resize_vector(params.input_x, dimensionality)),
        hidden_prev=tuple(resize_vector(params.hidden_prev, dimensionality)),
        cell_prev=tuple(resize_vector(params.cell_prev, dimensionality)),
    )
