"""Elementwise vector primitives used by the cell evaluator."""

import math
from typing import List, Sequence

Vector = List[float]


def _at(values: Sequence[float], index: int) -> float:
    return values[index] if index < len(values) else 0.0


def _logistic(value: float) -> float:
    if value >= 0:
        return 1.0 / (1.0 + math.exp(-value))
    # Negative inputs use the mirrored form so math.exp cannot overflow.
    shifted = math.exp(value)
    return shifted / (1.0 + shifted)


def sigmoid(values: Sequence[float], bias: float = 0.0) -> Vector:
    return [_logistic(value + bias) for value in values]


def tanh(values: Sequence[float], bias: float = 0.0) -> Vector:
    return [math.tanh(value + bias) for value in values]


def add(left: Sequence[float], right: Sequence[float]) -> Vector:
    """Elementwise sum; the shorter operand is padded with 0."""
    size = max(len(left), len(right))
    return [_at(left, index) + _at(right, index) for index in range(size)]


def multiply(left: Sequence[float], right: Sequence[float]) -> Vector:
    size = max(len(left), len(right))
    return [_at(left, index) * _at(right, index) for index in range(size)]


def scale(scalar: float, values: Sequence[float]) -> Vector:
    return [value * scalar for value in values]


def one_minus(values: Sequence[float]) -> Vector:
    return [1.0 - value for value in values]


def interpolate(gate: Sequence[float], keep: Sequence[float], candidate: Sequence[float]) -> Vector:
    """Blend ``gate * keep + (1 - gate) * candidate`` element by element."""
    blended: Vector = []
    for index in range(max(len(gate), len(keep), len(candidate))):
        gate_value = _at(gate, index)
        blended.append(gate_value * _at(keep, index) + (1.0 - gate_value) * _at(candidate, index))
    return blended


def zeros(size: int) -> Vector:
    return [0.0] * max(size, 0)


def resize_vector(values: Sequence[float], size: int) -> Vector:
    """Truncate or zero-extend to ``size`` elements."""
    if len(values) >= size:
        return [float(value) for value in values[:size]]
    return [float(value) for value in values] + zeros(size - len(values))


def parse_scalar(text: object) -> float:
    """Parse a user-entered number; anything non-numeric becomes 0."""
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        return float(text)
    raw = str(text).strip()
    if raw in {"", "-", "+", "."}:
        return 0.0
    try:
        value = float(raw)
    except ValueError:
        return 0.0
    # "nan" parses as a float but is not something a user typed as a number.
    if math.isnan(value):
        return 0.0
    return value


def parse_vector(text: str, size: int) -> Vector:
    parts = text.replace(";", ",").split(",") if text.strip() else []
    return resize_vector([parse_scalar(part) for part in parts], size)


def format_vector(values: Sequence[float] | None, digits: int = 2) -> str:
    if values is None:
        return ""
    return "[" + ", ".join(f"{value:.{digits}f}" for value in values) + "]"
