"""Natural-language explanation of a cell step, powered by LangGraph + an LLM."""

import logging
from typing import Any, Dict, List, Tuple

from langchain_openai import ChatOpenAI
from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from .cell_model import Architecture, SimulationParams, SimulationResult
from .config import Settings, load_settings
from .vector_ops import format_vector

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "API key not configured in environment."
FAILURE_MESSAGE = "Failed to fetch AI explanation. Please check your API key."
EMPTY_MESSAGE = "Could not generate explanation."


class ExplanationState(TypedDict):
    architecture: str
    params: Dict[str, Any]
    result: Dict[str, Any]
    prompt: List[Tuple[str, str]]
    response_text: str
    llm_call: Dict[str, Any]
    explanation: str


class ExplanationService:
    def __init__(
        self,
        settings: Settings | None = None,
        model: Any | None = None,
        temperature: float = 0.3,
    ) -> None:
        self._settings = settings
        self._model = model
        self._temperature = temperature
        self.last_call: Dict[str, Any] = {}

    def explain(
        self,
        architecture: Architecture | str,
        params: SimulationParams,
        result: SimulationResult,
    ) -> str:
        """Return a short explanation, or a user-facing message if unavailable."""
        architecture = Architecture.parse(architecture)
        if self._model is None and not self._resolve_settings().openai_api_key:
            return MISSING_KEY_MESSAGE

        workflow = self._build_workflow()
        try:
            final_state = workflow.invoke(
                {
                    "architecture": architecture.value,
                    "params": params.to_json(),
                    "result": result.to_json(),
                    "prompt": [],
                    "response_text": "",
                    "llm_call": {},
                    "explanation": "",
                }
            )
        except Exception:
            logger.exception("Explanation request for %s failed", architecture.value)
            return FAILURE_MESSAGE

        self.last_call = dict(final_state.get("llm_call", {}))
        return final_state.get("explanation") or EMPTY_MESSAGE

    def _build_workflow(self):
        graph = StateGraph(ExplanationState)
        graph.add_node("build_prompt", self._build_prompt_node)
        graph.add_node("call_model", self._call_model)
        graph.add_node("finalize", self._finalize)
        graph.add_edge(START, "build_prompt")
        graph.add_edge("build_prompt", "call_model")
        graph.add_edge("call_model", "finalize")
        graph.add_edge("finalize", END)
        return graph.compile()

    def _build_prompt_node(self, state: ExplanationState) -> Dict[str, Any]:
        return {
            "prompt": build_prompt(
                Architecture.parse(state["architecture"]), state["params"], state["result"]
            )
        }

    def _call_model(self, state: ExplanationState) -> Dict[str, Any]:
        model = self._model if self._model is not None else self._build_model()
        response = model.invoke(state["prompt"])
        response_metadata = getattr(response, "response_metadata", {}) or {}
        usage = response_metadata.get("token_usage") or getattr(response, "usage_metadata", {})
        return {
            "response_text": _to_text(getattr(response, "content", response)),
            "llm_call": {
                "model": response_metadata.get("model_name", self._resolve_settings().openai_model),
                "finish_reason": response_metadata.get("finish_reason"),
                "token_usage": usage,
            },
        }

    @staticmethod
    def _finalize(state: ExplanationState) -> Dict[str, Any]:
        return {"explanation": state.get("response_text", "").strip()}

    def _resolve_settings(self) -> Settings:
        if self._settings is None:
            self._settings = load_settings()
        return self._settings

    def _build_model(self) -> ChatOpenAI:
        settings = self._resolve_settings()
        if not settings.openai_api_key:
            raise RuntimeError("OPENAI_API_KEY is not set in environment/.env")
        return ChatOpenAI(
            model=settings.openai_model,
            temperature=self._temperature,
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
        )


def build_prompt(
    architecture: Architecture,
    params: Dict[str, Any],
    result: Dict[str, Any],
) -> List[Tuple[str, str]]:
    is_lstm = architecture.has_cell_state
    state_lines = [
        f"- Input x_t: {format_vector(params.get('input_x'))}",
        f"- Hidden h_(t-1): {format_vector(params.get('hidden_prev'))}",
    ]
    if is_lstm:
        state_lines.append(f"- Cell state c_(t-1): {format_vector(params.get('cell_prev'))}")

    activation_lines = [
        f"- Gate 1 activation: {format_vector(result.get('gate1'))}",
        f"- Gate 2 activation: {format_vector(result.get('gate2'))}",
    ]
    if is_lstm:
        activation_lines.append(f"- Gate 3 activation: {format_vector(result.get('gate3'))}")
    activation_lines.append(f"- Final hidden state: {format_vector(result.get('final_hidden'))}")

    system_prompt = (
        "You are an expert in deep learning teaching a student.\n"
        "Briefly explain (in 2-3 sentences) why the output changed the way it did "
        "based on the specific gate values. Focus on the flow of information; for "
        "example, if the forget gate is near 0, mention that the memory was wiped.\n"
        "Do not write out the formulas, focus on intuition."
    )
    user_prompt = (
        f"The student is stepping through a {architecture.value} recurrent cell.\n\n"
        "Current inputs:\n" + "\n".join(state_lines) + "\n\n"
        "Gate bias settings:\n"
        f"- Gate 1 bias: {params.get('bias1')}\n"
        f"- Gate 2 bias: {params.get('bias2')}\n"
        f"- Gate 3 bias: {params.get('bias3')}\n\n"
        "Resulting activations:\n" + "\n".join(activation_lines)
    )
    return [("system", system_prompt), ("user", user_prompt)]


def _to_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: List[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return "\n".join(parts)
    return str(content)
