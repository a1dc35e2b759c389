"""Environment-driven settings (``.env`` is honored via python-dotenv)."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_MODEL_NAME = "gpt-4.1-mini"


@dataclass(frozen=True)
class Settings:
    step_latency: float = 0.5
    dimensionality: int = 2
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    openai_model: str = DEFAULT_MODEL_NAME


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings(use_dotenv: bool = True) -> Settings:
    if use_dotenv:
        load_dotenv()
    return Settings(
        step_latency=max(_env_float("NEUROFLOW_STEP_LATENCY", 0.5), 0.0),
        dimensionality=max(_env_int("NEUROFLOW_DIMENSIONALITY", 2), 1),
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
        openai_model=os.getenv("OPENAI_MODEL", DEFAULT_MODEL_NAME),
    )
