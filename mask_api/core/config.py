import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

# Relative to the working directory the service is started from.
DEFAULT_TEMP_DIR = Path("temp-crops")


def _env_number(env: Mapping[str, str], key: str, default, cast):
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid value for {key}: {raw!r}") from exc


@dataclass(frozen=True)
class ServiceConfig:
    host: str = "0.0.0.0"
    port: int = 3333
    temp_dir: Path = DEFAULT_TEMP_DIR
    # Crop artifacts older than this are purged by the cleanup task.
    temp_max_age_s: float = 30 * 60
    cleanup_interval_s: float = 5 * 60
    fetch_timeout_s: float = 30.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ServiceConfig":
        env = os.environ if env is None else env
        temp_dir = env.get("TEMP_DIR")
        return cls(
            host=env.get("HOST", cls.host),
            port=_env_number(env, "PORT", cls.port, int),
            temp_dir=Path(temp_dir).expanduser() if temp_dir else DEFAULT_TEMP_DIR,
            temp_max_age_s=_env_number(env, "TEMP_MAX_AGE_S", cls.temp_max_age_s, float),
            cleanup_interval_s=_env_number(env, "CLEANUP_INTERVAL_S", cls.cleanup_interval_s, float),
            fetch_timeout_s=_env_number(env, "FETCH_TIMEOUT_S", cls.fetch_timeout_s, float),
            log_level=env.get("LOG_LEVEL", cls.log_level).upper(),
        )
