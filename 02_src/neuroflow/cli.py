"""CLI entrypoint: step a cell through time and save a JSON trace."""

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from .cell_model import Architecture, SimulationParams
from .config import load_settings
from .explanation import ExplanationService
from .scheduler import SimulatedClock
from .session import CellSession, clamp_bias, clamp_dimensionality
from .vector_ops import format_vector, parse_scalar, parse_vector


def build_session(args: argparse.Namespace) -> CellSession:
    settings = load_settings()
    dimensionality = clamp_dimensionality(args.dimensionality or settings.dimensionality)
    params = SimulationParams(
        dimensionality=dimensionality,
        input_x=tuple(parse_vector(args.input, dimensionality)),
        hidden_prev=tuple(parse_vector(args.hidden, dimensionality)),
        cell_prev=tuple(parse_vector(args.cell, dimensionality)),
        bias1=clamp_bias(parse_scalar(args.bias1)),
        bias2=clamp_bias(parse_scalar(args.bias2)),
        bias3=clamp_bias(parse_scalar(args.bias3)),
    )
    return CellSession(
        architecture=args.architecture,
        params=params,
        scheduler=SimulatedClock(),
        settings=settings,
    )


def walk_time_step(session: CellSession) -> Dict[str, Any]:
    """Trigger every node in dependency order until the graph resolves."""
    clock = session.scheduler
    reveals: List[Dict[str, Any]] = []
    session.sequencer.on_node_done(
        lambda node_id, value: reveals.append({"node": node_id, "at": clock.now, "value": value})
    )
    params = session.params
    for node_id in session.graph.topological_order():
        if not session.trigger(node_id):
            raise RuntimeError(f"Node '{node_id}' was not eligible at t={session.time_step}")
        clock.advance(session.settings.step_latency)
    return {
        "time_step": session.time_step,
        "params": params.to_json(),
        "reveals": reveals,
        "result": session.result.to_json(),
    }


def run_simulation(session: CellSession, steps: int, explain: bool = False) -> Dict[str, Any]:
    explainer = ExplanationService(settings=session.settings) if explain else None
    trace: List[Dict[str, Any]] = []
    for _ in range(max(steps, 0)):
        record = walk_time_step(session)
        if explainer is not None:
            record["explanation"] = explainer.explain(session.architecture, session.params, session.result)
        trace.append(record)
        session.advance()
    return {
        "architecture": session.architecture.value,
        "graph": session.graph.to_json(),
        "steps": trace,
        "final_params": session.params.to_json(),
    }


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Step a gated recurrent cell node by node and save the trace.")
    parser.add_argument(
        "--architecture",
        default=Architecture.UPDATE_GATE_CELL.value,
        choices=[arch.value for arch in Architecture],
        help="Cell architecture to simulate.",
    )
    parser.add_argument("--dimensionality", type=int, default=None, help="Vector size (1-3).")
    parser.add_argument("--input", default="1,0", help="Input vector x_t, comma separated.")
    parser.add_argument("--hidden", default="0,0", help="Previous hidden state h_(t-1).")
    parser.add_argument("--cell", default="0,0", help="Previous cell state c_(t-1) (LSTM only).")
    parser.add_argument("--bias1", default="0", help="Gate 1 bias.")
    parser.add_argument("--bias2", default="0", help="Gate 2 bias.")
    parser.add_argument("--bias3", default="0", help="Gate 3 bias.")
    parser.add_argument("--steps", type=int, default=1, help="Number of time steps to run.")
    parser.add_argument("--explain", action="store_true", help="Ask the LLM to explain each step.")
    parser.add_argument(
        "--output-path",
        default="03_data/neuroflow_trace.json",
        help="Where to save the resulting trace JSON.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def main(argv: List[str] | None = None) -> int:
    args = parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    session = build_session(args)
    artifact = run_simulation(session, steps=args.steps, explain=args.explain)
    output_path = Path(args.output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(artifact, ensure_ascii=False, indent=2), encoding="utf-8")
    print(f"Trace saved to: {output_path.resolve()}")
    for record in artifact["steps"]:
        print(
            f"t={record['time_step']}",
            f"h={format_vector(record['result']['final_hidden'], digits=3)}",
            f"nodes={len(record['reveals'])}",
        )
        if "explanation" in record:
            print(f"  {record['explanation']}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
