"""Repository settings."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

import yaml

from .constants import BRANCH_DATA_DIR, SETTINGS_FILE

logger = logging.getLogger(__name__)

LOCK_TIMEOUT_ENV = "LOSTCONTROL_LOCK_TIMEOUT"


@dataclass
class LostControlConfig:
    """Settings read from .lostcontrol/config.yaml."""

    lock_timeout: float = 10.0  # seconds to wait for the repository lock
    ignore: List[str] = field(default_factory=list)  # extra gitignore-style patterns


def load_config(root: Path) -> LostControlConfig:
    """Load settings for the repository at ``root``.

    A missing or unreadable settings file yields the defaults. The
    LOSTCONTROL_LOCK_TIMEOUT environment variable overrides ``lock_timeout``.
    """
    config = LostControlConfig()

    cfg_path = root / BRANCH_DATA_DIR / SETTINGS_FILE
    if cfg_path.exists():
        try:
            data = yaml.safe_load(cfg_path.read_text()) or {}
            config = LostControlConfig(
                lock_timeout=float(data.get("lock_timeout", config.lock_timeout)),
                ignore=list(data.get("ignore", [])),
            )
        except (OSError, yaml.YAMLError, AttributeError, TypeError, ValueError) as e:
            logger.warning("Ignoring unreadable settings file %s: %s", cfg_path, e)

    env_timeout = os.environ.get(LOCK_TIMEOUT_ENV)
    if env_timeout:
        try:
            config.lock_timeout = float(env_timeout)
        except ValueError:
            logger.warning("Ignoring invalid %s=%r", LOCK_TIMEOUT_ENV, env_timeout)

    return config
