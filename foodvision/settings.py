from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent
REPO_ROOT = BASE_DIR.parent

SUPPORTED_PROVIDERS = ("gemini", "perplexity")
DEFAULT_PROVIDER = "gemini"
DEFAULT_GEMINI_MODEL = "gemini-1.5-flash"
DEFAULT_PERPLEXITY_MODEL = "llama-3.1-sonar-large-128k-online"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MOCK_FOOD_PROBABILITY = 0.3


@dataclass(frozen=True)
class Settings:
    gemini_api_key: str | None = None
    perplexity_api_key: str | None = None
    default_provider: str = DEFAULT_PROVIDER
    gemini_model: str = DEFAULT_GEMINI_MODEL
    perplexity_model: str = DEFAULT_PERPLEXITY_MODEL
    request_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    mock_food_probability: float = DEFAULT_MOCK_FOOD_PROBABILITY
    demo_fallback: bool = True
    http_port: int = 8000
    https_port: int = 8443
    ssl_keyfile: Path = REPO_ROOT / "localhost-key.pem"
    ssl_certfile: Path = REPO_ROOT / "localhost.pem"
    static_dir: Path = REPO_ROOT / "web"
    log_level: str = "info"

    @classmethod
    def from_env(cls, *, load_dotenv_file: bool = True) -> "Settings":
        if load_dotenv_file:
            load_dotenv()

        default_provider = (os.getenv("DEFAULT_AI_PROVIDER") or DEFAULT_PROVIDER).strip().lower()
        if default_provider not in SUPPORTED_PROVIDERS:
            default_provider = DEFAULT_PROVIDER

        return cls(
            gemini_api_key=_clean_optional_str(os.getenv("GEMINI_API_KEY")),
            perplexity_api_key=_clean_optional_str(os.getenv("PERPLEXITY_API_KEY")),
            default_provider=default_provider,
            gemini_model=_clean_optional_str(os.getenv("GEMINI_MODEL")) or DEFAULT_GEMINI_MODEL,
            perplexity_model=_clean_optional_str(os.getenv("PERPLEXITY_MODEL")) or DEFAULT_PERPLEXITY_MODEL,
            request_timeout_seconds=_parse_timeout_seconds(
                os.getenv("FOODVISION_REQUEST_TIMEOUT_SECONDS"),
                fallback=DEFAULT_TIMEOUT_SECONDS,
            ),
            mock_food_probability=_parse_probability(
                os.getenv("FOODVISION_MOCK_FOOD_PROBABILITY"),
                fallback=DEFAULT_MOCK_FOOD_PROBABILITY,
            ),
            demo_fallback=_parse_bool_env(os.getenv("FOODVISION_DEMO_FALLBACK"), default=True),
            http_port=_parse_port(os.getenv("PORT"), fallback=8000),
            https_port=_parse_port(os.getenv("HTTPS_PORT"), fallback=8443),
            ssl_keyfile=_parse_path(os.getenv("FOODVISION_SSL_KEYFILE"), fallback=REPO_ROOT / "localhost-key.pem"),
            ssl_certfile=_parse_path(os.getenv("FOODVISION_SSL_CERTFILE"), fallback=REPO_ROOT / "localhost.pem"),
            static_dir=_parse_path(os.getenv("FOODVISION_STATIC_DIR"), fallback=REPO_ROOT / "web"),
            log_level=(os.getenv("FOODVISION_LOG_LEVEL") or "info").strip().lower(),
        )

    def api_key_for(self, provider_id: str) -> str | None:
        if provider_id == "gemini":
            return self.gemini_api_key
        if provider_id == "perplexity":
            return self.perplexity_api_key
        return None

    def model_for(self, provider_id: str) -> str | None:
        if provider_id == "gemini":
            return self.gemini_model
        if provider_id == "perplexity":
            return self.perplexity_model
        return None


def _clean_optional_str(raw_value: str | None) -> str | None:
    if raw_value is None:
        return None
    value = raw_value.strip()
    return value if value else None


def _parse_timeout_seconds(raw_value: str | None, *, fallback: float) -> float:
    if raw_value is None:
        return fallback
    try:
        parsed = float(raw_value)
    except ValueError:
        return fallback
    if parsed <= 0:
        return fallback
    return parsed


def _parse_probability(raw_value: str | None, *, fallback: float) -> float:
    if raw_value is None:
        return fallback
    try:
        parsed = float(raw_value)
    except ValueError:
        return fallback
    if not 0.0 <= parsed <= 1.0:
        return fallback
    return parsed


def _parse_bool_env(raw_value: str | None, *, default: bool) -> bool:
    if raw_value is None:
        return default
    value = raw_value.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_port(raw_value: str | None, *, fallback: int) -> int:
    if raw_value is None:
        return fallback
    try:
        parsed = int(raw_value)
    except ValueError:
        return fallback
    if not 0 < parsed < 65536:
        return fallback
    return parsed


def _parse_path(raw_value: str | None, *, fallback: Path) -> Path:
    cleaned = _clean_optional_str(raw_value)
    return Path(cleaned) if cleaned else fallback
