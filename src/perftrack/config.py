"""Configuration management for perftrack.

Configuration is loaded once at process start with ``load_config`` and
handed to ``build_engine``; nothing reads it through global state.
"""

import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from .utils.validation import InvalidInputError, validate_period_days

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "~/.perftrack"
REPOSITORY_TYPES = ("sqlite", "memory")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ConfigModel:
    """Global configuration model for perftrack."""

    # Storage
    data_dir: str = DEFAULT_DATA_DIR
    database_name: str = "performance.db"
    repository: str = "sqlite"  # sqlite, memory

    # Evaluation periods (calendar days)
    default_period_days: int = 30
    user_period_days: int = 90

    # Trend analysis
    trend_window_days: int = 14
    trend_threshold: float = 5.0  # percent

    # Reports and predictions
    report_locale: str = "es"  # es, en
    recent_report_months: int = 3
    prediction_months: int = 3

    # Logging
    log_level: str = "INFO"

    def __post_init__(self):
        """Post-initialization validation."""
        self.data_dir = os.path.expanduser(str(self.data_dir))
        self.log_level = str(self.log_level).upper()

        if self.repository not in REPOSITORY_TYPES:
            raise InvalidInputError(
                f"Unknown repository type: {self.repository!r}",
                "repository",
                self.repository,
                [f"Use one of: {', '.join(REPOSITORY_TYPES)}"],
            )
        if self.log_level not in LOG_LEVELS:
            raise InvalidInputError(
                f"Unknown log level: {self.log_level!r}", "log_level", self.log_level
            )

        for name in ("default_period_days", "user_period_days", "recent_report_months", "prediction_months"):
            setattr(self, name, validate_period_days(getattr(self, name), name))

        self.trend_window_days = validate_period_days(self.trend_window_days, "trend_window_days")
        if self.trend_window_days == 0:
            raise InvalidInputError(
                "Field 'trend_window_days' must be positive", "trend_window_days", self.trend_window_days
            )
        self.trend_threshold = float(self.trend_threshold)

    @property
    def database_path(self) -> Path:
        return Path(self.data_dir) / self.database_name

    def to_yaml(self) -> str:
        """Serialize config to YAML."""
        return yaml.dump(asdict(self), default_flow_style=False, sort_keys=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "ConfigModel":
        """Deserialize config from YAML. Unknown keys are ignored."""
        data = yaml.safe_load(yaml_str) or {}
        if not isinstance(data, dict):
            raise InvalidInputError("Configuration must be a YAML mapping", "config", data)

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {', '.join(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})


def get_config_path(data_dir: str = DEFAULT_DATA_DIR) -> Path:
    """Get the default config file path."""
    return Path(os.path.expanduser(data_dir)) / "config.yaml"


def load_config(config_path: Optional[Path] = None) -> ConfigModel:
    """Load configuration from file, writing the defaults if it does not exist.

    Raises:
        InvalidInputError: If the file holds invalid values
        yaml.YAMLError: If the file is not valid YAML
    """
    if config_path is None:
        config_path = get_config_path()
    config_path = Path(config_path)

    if not config_path.exists():
        config = ConfigModel()
        save_config(config, config_path)
        logger.info(f"Created default configuration at {config_path}")
        return config

    with open(config_path, 'r') as f:
        config = ConfigModel.from_yaml(f.read())
    logger.debug(f"Loaded configuration from {config_path}")
    return config


def save_config(config: ConfigModel, config_path: Optional[Path] = None) -> None:
    """Save configuration to file."""
    if config_path is None:
        config_path = get_config_path(config.data_dir)
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, 'w') as f:
        f.write(config.to_yaml())
    logger.debug(f"Configuration saved to {config_path}")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for command-line use."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
