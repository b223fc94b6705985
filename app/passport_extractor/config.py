from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

BASE_DIR = Path(__file__).parent
DEFAULT_OPENAI_ENDPOINT = "https://api.openai.com/v1/chat/completions"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"

DATE_FORMATS = {
    "iso": ("%Y-%m-%d", r"^\d{4}-\d{2}-\d{2}$", "YYYY-MM-DD"),
    "us": ("%m/%d/%Y", r"^\d{2}/\d{2}/\d{4}$", "MM/DD/YYYY"),
}


def _load_dotenv() -> None:
    repo_root = Path(__file__).resolve().parents[2]
    candidates = [repo_root / ".env", Path.cwd() / ".env"]
    for env_path in candidates:
        if not env_path.exists():
            continue
        try:
            for line in env_path.read_text().splitlines():
                stripped = line.strip()
                if not stripped or stripped.startswith("#") or "=" not in stripped:
                    continue
                key, value = stripped.split("=", 1)
                key = key.strip()
                value = value.strip().strip('"').strip("'")
                if key and key not in os.environ:
                    os.environ[key] = value
        except OSError:
            continue
        break


_load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class DateConfig:
    convention: str = "iso"

    @property
    def strftime(self) -> str:
        return DATE_FORMATS[self.convention][0]

    @property
    def pattern(self) -> str:
        return DATE_FORMATS[self.convention][1]

    @property
    def display(self) -> str:
        return DATE_FORMATS[self.convention][2]


def _date_config_from_env() -> DateConfig:
    convention = os.getenv("DATE_FORMAT", "iso").strip().lower()
    if convention not in DATE_FORMATS:
        raise ValueError(f"DATE_FORMAT must be one of {sorted(DATE_FORMATS)}, got {convention!r}")
    return DateConfig(convention=convention)


@dataclass(frozen=True)
class LLMConfig:
    enabled: bool = True
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    model: str = DEFAULT_OPENAI_MODEL
    timeout: float = 30.0
    temperature: float = 0.2


def resolve_llm_config() -> LLMConfig:
    """Read model settings from the environment at call time so tests can patch them."""
    _load_dotenv()
    endpoint = os.getenv("LLM_ENDPOINT")
    api_key = os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY")
    model = (
        os.getenv("LLM_MODEL")
        or os.getenv("OPENAI_MODEL")
        or DEFAULT_OPENAI_MODEL
    ).strip()
    if not endpoint and os.getenv("OPENAI_API_KEY"):
        endpoint = DEFAULT_OPENAI_ENDPOINT
    return LLMConfig(
        enabled=_env_flag("ENABLE_LLM", "true"),
        endpoint=endpoint,
        api_key=api_key,
        model=model,
        timeout=float(os.getenv("LLM_TIMEOUT", "30")),
        temperature=float(os.getenv("LLM_TEMPERATURE", "0.2")),
    )


@dataclass(frozen=True)
class PreviewConfig:
    max_size: int = int(os.getenv("PREVIEW_MAX_SIZE", "800"))


@dataclass(frozen=True)
class SessionConfig:
    # Idle seconds before a session is dropped; 0 disables expiry.
    ttl_seconds: float = float(os.getenv("SESSION_TTL_SECONDS", "1800"))
    max_sessions: int = int(os.getenv("SESSION_MAX", "500"))


@dataclass(frozen=True)
class AppConfig:
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    dates: DateConfig = field(default_factory=_date_config_from_env)
    preview: PreviewConfig = field(default_factory=PreviewConfig)
    sessions: SessionConfig = field(default_factory=SessionConfig)


CONFIG = AppConfig()
