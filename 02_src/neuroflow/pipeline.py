"""Stage abstractions and sequential runner for cell evaluation."""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Mapping

from .cell_model import SimulationParams
from .vector_ops import Vector


class PipelineStage(ABC):
    """One step of a forward pass; produces values for named graph nodes."""

    stage_name: str

    @abstractmethod
    def run(self, values: Mapping[str, Vector], params: SimulationParams) -> Dict[str, Vector]:
        raise NotImplementedError


class PipelineRunner:
    def __init__(self, stages: Iterable[PipelineStage]) -> None:
        self.stages: List[PipelineStage] = list(stages)

    def run(self, params: SimulationParams, seed: Mapping[str, Vector]) -> Dict[str, Vector]:
        values: Dict[str, Vector] = dict(seed)
        for stage in self.stages:
            produced = stage.run(values, params)
            if not isinstance(produced, dict):
                raise TypeError(f"Stage '{stage.stage_name}' must return a dict of node values.")
            overwritten = sorted(produced.keys() & values.keys())
            if overwritten:
                raise ValueError(f"Stage '{stage.stage_name}' overwrote node values: {overwritten}")
            values.update(produced)
        return values
