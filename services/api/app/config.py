import os
from dataclasses import dataclass
from functools import lru_cache


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got: {raw!r}")


@dataclass(frozen=True)
class Settings:
    database_url: str
    redis_url: str
    agent_key: str
    command_ttl_seconds: int
    sweep_interval_seconds: int
    log_level: str


def _dsn() -> str:
    url = os.getenv("DATABASE_URL", "").strip()
    if url:
        return url
    user = os.getenv("POSTGRES_USER")
    pwd = os.getenv("POSTGRES_PASSWORD")
    host = os.getenv("POSTGRES_HOST", "postgres")
    port = os.getenv("POSTGRES_PORT", "5432")
    db = os.getenv("POSTGRES_DB")
    return f"postgresql+psycopg://{user}:{pwd}@{host}:{port}/{db}"


@lru_cache
def get_settings() -> Settings:
    return Settings(
        database_url=_dsn(),
        redis_url=os.getenv("REDIS_URL", ""),
        agent_key=os.getenv("COPIER_AGENT_KEY", ""),
        command_ttl_seconds=_int_env("COPIER_COMMAND_TTL_SECONDS", 3600),
        sweep_interval_seconds=_int_env("COPIER_SWEEP_INTERVAL_SECONDS", 60),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
