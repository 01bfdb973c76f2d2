import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from resumezap.core.errors import ConfigurationError


def _load_env() -> None:
    env_file = os.getenv("ENV_FILE", "").strip()
    if env_file:
        load_dotenv(dotenv_path=env_file)
        return

    repo_root = Path(__file__).resolve().parents[2]
    parent_root = repo_root.parent
    candidates = [
        parent_root / ".env",
        repo_root / ".env",
        Path.cwd() / ".env",
    ]

    for candidate in candidates:
        if candidate.exists():
            load_dotenv(dotenv_path=candidate)
            return

    load_dotenv()


_load_env()


REQUIRED_ENV = ("EVOLUTION_API_URL", "EVOLUTION_API_KEY", "AI_API_KEY", "SERVICE_ROLE_KEY")


@dataclass(frozen=True)
class Settings:
    evolution_api_url: str
    evolution_api_key: str
    ai_api_url: str
    ai_api_key: str
    ai_model_standard: str
    ai_model_advanced: str
    summary_language: str
    service_role_key: str
    db_path: str
    schedule_utc_offset_hours: int
    qr_ttl_seconds: int
    qr_sweep_grace_seconds: int
    fetch_message_limit: int
    fetch_global_limit: int
    http_timeout_seconds: int
    temporary_connect_attempts: int
    temporary_connect_interval_seconds: float
    scheduler_enabled: bool
    api_host: str
    api_port: int
    log_level: str


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from exc


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def get_settings() -> Settings:
    missing = [name for name in REQUIRED_ENV if not os.getenv(name, "").strip()]
    if missing:
        raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")

    offset = _int_env("SCHEDULE_UTC_OFFSET_HOURS", -3)
    if offset < -12 or offset > 14:
        raise ConfigurationError(f"SCHEDULE_UTC_OFFSET_HOURS out of range: {offset}")

    return Settings(
        evolution_api_url=os.getenv("EVOLUTION_API_URL", "").strip().rstrip("/"),
        evolution_api_key=os.getenv("EVOLUTION_API_KEY", "").strip(),
        ai_api_url=os.getenv("AI_API_URL", "https://ai.gateway.lovable.dev/v1/chat/completions").strip(),
        ai_api_key=os.getenv("AI_API_KEY", "").strip(),
        ai_model_standard=os.getenv("AI_MODEL_STANDARD", "google/gemini-2.5-flash").strip(),
        ai_model_advanced=os.getenv("AI_MODEL_ADVANCED", "google/gemini-2.5-pro").strip(),
        summary_language=os.getenv("SUMMARY_LANGUAGE", "Brazilian Portuguese").strip(),
        service_role_key=os.getenv("SERVICE_ROLE_KEY", "").strip(),
        db_path=os.getenv("DB_PATH", "resumezap.db"),
        schedule_utc_offset_hours=offset,
        qr_ttl_seconds=max(10, _int_env("QR_TTL_SECONDS", 60)),
        qr_sweep_grace_seconds=max(0, _int_env("QR_SWEEP_GRACE_SECONDS", 120)),
        fetch_message_limit=max(1, _int_env("FETCH_MESSAGE_LIMIT", 500)),
        fetch_global_limit=max(1, _int_env("FETCH_GLOBAL_LIMIT", 1000)),
        http_timeout_seconds=max(5, _int_env("HTTP_TIMEOUT_SECONDS", 60)),
        temporary_connect_attempts=max(1, _int_env("TEMPORARY_CONNECT_ATTEMPTS", 10)),
        temporary_connect_interval_seconds=max(0.0, _float_env("TEMPORARY_CONNECT_INTERVAL_SECONDS", 3.0)),
        scheduler_enabled=_bool_env("SCHEDULER_ENABLED", True),
        api_host=os.getenv("API_HOST", "0.0.0.0").strip(),
        api_port=_int_env("API_PORT", 8000),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    )
