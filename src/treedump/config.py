"""
Application config: remembers the last opened root directory.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from treedump.models import PersistResult

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "TREEDUMP_CONFIG_DIR"
CONFIG_NAME = "config.json"


class AppConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    current_path: str = Field(default="", alias="currentPath")


def config_path(config_dir: Optional[Path] = None) -> Path:
    """Location of the config file; TREEDUMP_CONFIG_DIR overrides the default."""
    if config_dir is None:
        override = os.environ.get(CONFIG_DIR_ENV)
        if override:
            config_dir = Path(os.path.expandvars(os.path.expanduser(override)))
        else:
            config_dir = Path.home() / ".config" / "treedump"
    return config_dir / CONFIG_NAME


def load_config(config_dir: Optional[Path] = None) -> AppConfig:
    path = config_path(config_dir)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return AppConfig.model_validate(data)
    except FileNotFoundError:
        return AppConfig()
    except (OSError, ValueError) as e:
        # ValidationError and JSONDecodeError are both ValueErrors
        logger.warning(f"Failed to load config {path}: {e}")
        return AppConfig()


def load_current_path(config_dir: Optional[Path] = None) -> str:
    """Last opened root, or "" when none has been saved."""
    return load_config(config_dir).current_path


def save_current_path(current_path: str, config_dir: Optional[Path] = None) -> PersistResult:
    path = config_path(config_dir)
    config = AppConfig(current_path=current_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(config.model_dump(by_alias=True), indent=2), encoding="utf-8"
        )
    except OSError as e:
        logger.error(f"Failed to save config {path}: {e}")
        return PersistResult(success=False, path=path, error=str(e))
    return PersistResult(success=True, path=path)
