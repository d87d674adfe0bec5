# path: road-marking-api/app/config.py

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
import os

from dotenv import load_dotenv


INFERENCE_MODES = ("bundle", "frames")


def _get_env_variable(var_name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(var_name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _get_env_int(var_name: str, default: int) -> int:
    value = _get_env_variable(var_name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{var_name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class Settings:
    server_host: str = "0.0.0.0"
    server_port: int = 8080
    inference_base_url: str = "http://localhost:8000"
    inference_timeout_seconds: int = 300
    inference_mode: str = "bundle"
    database_path: Path = Path("road_marking.db")
    static_dir: Path = Path("static")
    max_upload_mb: int = 100
    log_level: str = "info"
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])

    def __post_init__(self):
        if self.inference_mode not in INFERENCE_MODES:
            raise ValueError(f"INFERENCE_MODE must be one of {INFERENCE_MODES}, got {self.inference_mode!r}")
        if self.inference_timeout_seconds <= 0:
            raise ValueError("INFERENCE_TIMEOUT_SECONDS must be positive")
        if self.max_upload_mb <= 0:
            raise ValueError("MAX_UPLOAD_MB must be positive")

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        origins = _get_env_variable("ALLOWED_ORIGINS", "*")
        return cls(
            server_host=_get_env_variable("SERVER_HOST", "0.0.0.0"),
            server_port=_get_env_int("SERVER_PORT", 8080),
            inference_base_url=_get_env_variable("INFERENCE_API_BASE_URL", "http://localhost:8000").rstrip("/"),
            inference_timeout_seconds=_get_env_int("INFERENCE_TIMEOUT_SECONDS", 300),
            inference_mode=_get_env_variable("INFERENCE_MODE", "bundle").lower(),
            database_path=Path(_get_env_variable("DATABASE_PATH", "road_marking.db")),
            static_dir=Path(_get_env_variable("STATIC_DIR", "static")),
            max_upload_mb=_get_env_int("MAX_UPLOAD_MB", 100),
            log_level=_get_env_variable("LOG_LEVEL", "info").lower(),
            allowed_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )
