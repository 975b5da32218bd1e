from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parents[2]
VAR_DIR = BASE_DIR / "var"

LOG_DIR = VAR_DIR / "logs"
SESSIONS_DIR = VAR_DIR / "sessions"

LEARNING_MODES = ("route", "create_only")


def _env(name: str, default: str):
    # read when the config is built, so values loaded by load_dotenv() apply
    return field(default_factory=lambda: os.getenv(name, default))


def _env_float(name: str, default: float):
    def read() -> float:
        raw = os.getenv(name)
        if raw is None or not raw.strip():
            return default
        return float(raw)

    return field(default_factory=read)


@dataclass
class BotConfig:
    environment: str = _env("ESCALATION_BOT_ENV", "production")

    # "route": ask New / Existing and let the operator pick an intent.
    # "create_only": a confirmed "Yes" always creates a new intent.
    learning_mode: str = _env("LEARNING_MODE", "route")

    nlu_model: str = _env("OPENAI_NLU_MODEL", "gpt-4o-mini")
    nlu_confidence_threshold: float = _env_float("NLU_CONFIDENCE_THRESHOLD", 0.6)

    dialogflow_project_id: str = _env("DIALOGFLOW_PROJECT_ID", "")
    dialogflow_access_token: str = _env("DIALOGFLOW_ACCESS_TOKEN", "")
    dialogflow_base_url: str = _env(
        "DIALOGFLOW_BASE_URL", "https://dialogflow.googleapis.com/v2"
    )
    dialogflow_language: str = _env("DIALOGFLOW_LANGUAGE", "en")
    http_timeout: float = _env_float("HTTP_TIMEOUT", 30.0)

    history_limit: int = 16

    var_dir: Path = VAR_DIR
    log_dir: Path = LOG_DIR
    sessions_dir: Path = SESSIONS_DIR

    def __post_init__(self) -> None:
        if self.learning_mode not in LEARNING_MODES:
            raise ValueError(
                f"learning_mode must be one of {LEARNING_MODES}, got {self.learning_mode!r}"
            )

    @property
    def test_mode(self) -> bool:
        return self.environment == "test"

    @property
    def clear_context_on_finish(self) -> bool:
        """Test runs keep the context so assertions can inspect it afterwards."""
        return not self.test_mode
