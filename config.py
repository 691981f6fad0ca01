# config.py
import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "ckd_dashboard.yaml"


class Settings(BaseModel):
    database_url: str = "sqlite:///ckd_dashboard.db"
    echo_sql: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000
    demo_cohort_size: int = 12
    demo_seed: Optional[int] = None


def load_yaml(path):
    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Settings from the YAML file (if it exists), then environment overrides:
    CKD_DATABASE_URL, CKD_LOG_LEVEL and PORT.
    """
    path = Path(config_path or os.environ.get("CKD_CONFIG", DEFAULT_CONFIG_PATH))
    data = {}
    if path.exists():
        data = load_yaml(path)
        logger.info(f"Loaded config from {path}")
    elif config_path:
        raise FileNotFoundError(f"Config file not found: {path}")

    if os.environ.get("CKD_DATABASE_URL"):
        data["database_url"] = os.environ["CKD_DATABASE_URL"]
    if os.environ.get("CKD_LOG_LEVEL"):
        data["log_level"] = os.environ["CKD_LOG_LEVEL"]
    if os.environ.get("PORT"):
        data["port"] = int(os.environ["PORT"])
    return Settings(**data)


def configure_logging(settings: Settings):
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
