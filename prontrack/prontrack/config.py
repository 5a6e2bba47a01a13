from __future__ import annotations

import os
from pathlib import Path
from typing import List

from pydantic import BaseModel

from .schema import SystemConfig


DEFAULT_DESTINATIONS: List[str] = [
    "Outpatient",
    "Inpatient",
    "Billing",
    "Archive",
    "Reception",
    "Authorization",
    "Statistics",
    "Audit",
    "Other",
    "Dead Archive",
]


def default_config() -> SystemConfig:
    return SystemConfig()


def load_dotenv(path: str | Path = ".env.local") -> None:
    """Load KEY=VALUE lines into the environment. Variables already set win."""
    env_file = Path(path)
    if not env_file.exists():
        return
    with open(env_file, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, value = line.split("=", 1)
                os.environ.setdefault(key.strip(), value.strip())


class Settings(BaseModel):
    data_dir: Path = Path("prontrack-data")
    source_pool: str = "Archive"
    schedule_destination: str = "Outpatient"
    default_user: str = "system"
    log_level: str = "INFO"

    model_config = {"extra": "forbid"}

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        env = {
            "data_dir": os.environ.get("PRONTRACK_DATA_DIR"),
            "source_pool": os.environ.get("PRONTRACK_SOURCE_POOL"),
            "schedule_destination": os.environ.get("PRONTRACK_DESTINATION"),
            "default_user": os.environ.get("PRONTRACK_USER"),
            "log_level": os.environ.get("PRONTRACK_LOG_LEVEL"),
        }
        return cls(**{k: v for k, v in env.items() if v})
