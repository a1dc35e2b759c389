"""Data model for a single recurrent cell step."""

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Tuple

from .vector_ops import Vector, resize_vector, zeros

BIAS_RANGE: Tuple[float, float] = (-5.0, 5.0)
SUPPORTED_DIMENSIONALITIES: Tuple[int, ...] = (1, 2, 3)


class Architecture(str, Enum):
    UPDATE_GATE_CELL = "UGRNN"
    GATED_RECURRENT_UNIT = "GRU"
    LONG_SHORT_TERM_MEMORY = "LSTM"

    @property
    def has_cell_state(self) -> bool:
        return self is Architecture.LONG_SHORT_TERM_MEMORY

    @classmethod
    def parse(cls, value: "Architecture | str") -> "Architecture":
        if isinstance(value, Architecture):
            return value
        raw = str(value).strip()
        for member in cls:
            if raw.upper() == member.value or raw.upper() == member.name:
                return member
        aliases = {
            "updategatecell": cls.UPDATE_GATE_CELL,
            "gatedrecurrentunit": cls.GATED_RECURRENT_UNIT,
            "longshorttermmemory": cls.LONG_SHORT_TERM_MEMORY,
        }
        member = aliases.get(raw.replace("_", "").replace("-", "").lower())
        if member is None:
            raise ValueError(f"Unknown architecture: {value!r}")
        return member


@dataclass(frozen=True)
class SimulationParams:
    dimensionality: int = 2
    input_x: Tuple[float, ...] = (1.0, 0.0)
    hidden_prev: Tuple[float, ...] = (0.0, 0.0)
    cell_prev: Tuple[float, ...] = (0.0, 0.0)
    bias1: float = 0.0
    bias2: float = 0.0
    bias3: float = 0.0

    def __post_init__(self) -> None:
        if self.dimensionality < 1:
            raise ValueError(f"dimensionality must be >= 1, got {self.dimensionality}")
        # Frozen snapshot: coerce incoming lists so callers cannot mutate it later.
        object.__setattr__(self, "input_x", tuple(float(v) for v in self.input_x))
        object.__setattr__(self, "hidden_prev", tuple(float(v) for v in self.hidden_prev))
        object.__setattr__(self, "cell_prev", tuple(float(v) for v in self.cell_prev))

    @classmethod
    def zeroed(cls, dimensionality: int, **overrides: Any) -> "SimulationParams":
        values: Dict[str, Any] = {
            "dimensionality": dimensionality,
            "input_x": tuple(zeros(dimensionality)),
            "hidden_prev": tuple(zeros(dimensionality)),
            "cell_prev": tuple(zeros(dimensionality)),
        }
        values.update(overrides)
        return cls(**values)

    def with_changes(self, **changes: Any) -> "SimulationParams":
        return replace(self, **changes)

    def biases(self) -> Tuple[float, float, float]:
        return (self.bias1, self.bias2, self.bias3)

    def cell_or_zeros(self) -> Vector:
        if self.cell_prev:
            return list(self.cell_prev)
        return resize_vector([], len(self.input_x))

    def to_json(self) -> Dict[str, Any]:
        payload = asdict(self)
        for key in ("input_x", "hidden_prev", "cell_prev"):
            payload[key] = list(payload[key])
        return payload


@dataclass
class SimulationResult:
    final_hidden: Vector
    gate1: Vector
    gate2: Vector = field(default_factory=list)
    gate3: Vector = field(default_factory=list)
    candidate_state: Vector = field(default_factory=list)
    final_cell: Vector | None = None
    tanh_cell: Vector | None = None
    node_values: Dict[str, Vector] = field(default_factory=dict)

    def field_value(self, name: str) -> Vector | None:
        return getattr(self, name)

    def gates(self) -> List[Vector]:
        return [gate for gate in (self.gate1, self.gate2, self.gate3) if gate]

    def to_json(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["node_values"] = {key: list(value) for key, value in self.node_values.items()}
        return payload
