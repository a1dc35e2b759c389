from types import SimpleNamespace

from neuroflow import Architecture, SimulationParams, evaluate
from neuroflow.config import Settings
from neuroflow.explanation import (
    EMPTY_MESSAGE,
    FAILURE_MESSAGE,
    MISSING_KEY_MESSAGE,
    ExplanationService,
    build_prompt,
)


class FakeChatModel:
    def __init__(self, content="The forget gate stayed open, so memory carried over."):
        self.content = content
        self.prompts = []

    def invoke(self, prompt):
        self.prompts.append(prompt)
        return SimpleNamespace(
            content=self.content,
            response_metadata={"model_name": "fake-model", "finish_reason": "stop"},
        )


class FailingChatModel:
    def invoke(self, prompt):
        raise RuntimeError("connection refused")


def _step(architecture="LSTM"):
    params = SimulationParams(bias1=1.0)
    return params, evaluate(architecture, params)


def test_explain_returns_model_text_and_records_call():
    model = FakeChatModel()
    service = ExplanationService(settings=Settings(), model=model)
    params, result = _step()

    text = service.explain("LSTM", params, result)

    assert text == model.content
    assert service.last_call["model"] == "fake-model"
    system_prompt, user_prompt = model.prompts[0]
    assert system_prompt[0] == "system"
    assert "LSTM" in user_prompt[1]


def test_missing_api_key_short_circuits():
    service = ExplanationService(settings=Settings(openai_api_key=None))
    params, result = _step()
    assert service.explain("LSTM", params, result) == MISSING_KEY_MESSAGE


def test_model_failure_becomes_user_message():
    service = ExplanationService(settings=Settings(), model=FailingChatModel())
    params, result = _step("GRU")
    assert service.explain("GRU", params, result) == FAILURE_MESSAGE


def test_empty_response_becomes_user_message():
    service = ExplanationService(settings=Settings(), model=FakeChatModel(content="   "))
    params, result = _step("UGRNN")
    assert service.explain("UGRNN", params, result) == EMPTY_MESSAGE


def test_prompt_mentions_cell_and_third_gate_only_for_lstm():
    params, result = _step("LSTM")
    lstm_prompt = build_prompt(Architecture.LONG_SHORT_TERM_MEMORY, params.to_json(), result.to_json())[1][1]
    assert "Cell state" in lstm_prompt
    assert "Gate 3 activation" in lstm_prompt

    gru_result = evaluate("GRU", params)
    gru_prompt = build_prompt(Architecture.GATED_RECURRENT_UNIT, params.to_json(), gru_result.to_json())[1][1]
    assert "Cell state" not in gru_prompt
    assert "Gate 3 activation" not in gru_prompt
    assert "Gate 1 bias: 1.0" in gru_prompt
