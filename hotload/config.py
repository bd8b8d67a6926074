"""
Configuration management for hotload.

Loads and validates config.yaml from the hotload home directory:

    projects_dir: ~/hotload/projects
    manifest_name: project.yaml
    logging:
      level: INFO
      format: pretty        # pretty | structured
      file: ~/hotload/logs/hotload.log
      console: true
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from hotload.errors import ConfigError
from hotload.manifest import MANIFEST_NAME

LOG_FORMATS = ("pretty", "structured")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def get_hotload_home() -> Path:
    """Directory holding config.yaml ($HOTLOAD_HOME, default ~/.config/hotload)."""
    return Path(os.environ.get("HOTLOAD_HOME", "~/.config/hotload")).expanduser()


@dataclass
class HotloadConfig:
    """Complete hotload configuration."""
    projects_dir: Path
    manifest_name: str = MANIFEST_NAME
    log_level: str = "INFO"
    log_format: str = "pretty"
    log_file: Optional[Path] = None
    console: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HotloadConfig":
        if "projects_dir" not in data or not data["projects_dir"]:
            raise ConfigError("Missing required config key: projects_dir")

        logging_cfg = data.get("logging") or {}
        if not isinstance(logging_cfg, dict):
            raise ConfigError("'logging' must be a mapping")

        log_file = logging_cfg.get("file")
        return cls(
            projects_dir=Path(str(data["projects_dir"])).expanduser(),
            manifest_name=str(data.get("manifest_name", MANIFEST_NAME)),
            log_level=str(logging_cfg.get("level", "INFO")).upper(),
            log_format=str(logging_cfg.get("format", "pretty")),
            log_file=Path(str(log_file)).expanduser() if log_file else None,
            console=bool(logging_cfg.get("console", True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "projects_dir": str(self.projects_dir),
            "manifest_name": self.manifest_name,
            "logging": {
                "level": self.log_level,
                "format": self.log_format,
                "file": str(self.log_file) if self.log_file else None,
                "console": self.console,
            },
        }

    def validate(self) -> None:
        """Validate configuration values."""
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"Invalid log level: {self.log_level}")
        if self.log_format not in LOG_FORMATS:
            raise ConfigError(
                f"Invalid log format: {self.log_format} (expected one of: {', '.join(LOG_FORMATS)})"
            )
        if not self.manifest_name or "/" in self.manifest_name:
            raise ConfigError(f"Invalid manifest name: {self.manifest_name!r}")
        if self.projects_dir.exists() and not self.projects_dir.is_dir():
            raise ConfigError(f"projects_dir is not a directory: {self.projects_dir}")

        if self.log_file is not None:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)

    def __repr__(self) -> str:
        return f"HotloadConfig(projects_dir={self.projects_dir}, log_level={self.log_level})"


def load_config(config_path: Optional[Path] = None) -> HotloadConfig:
    """
    Load hotload configuration from YAML file.

    Args:
        config_path: Path to config file. Defaults to config.yaml in the
            hotload home

    Returns:
        Validated HotloadConfig instance

    Raises:
        FileNotFoundError: If the config file does not exist
        ConfigError: If the config is invalid
    """
    if config_path is None:
        config_path = get_hotload_home() / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax: {e}")

    if not data:
        raise ConfigError("Configuration file is empty")
    if not isinstance(data, dict):
        raise ConfigError("Configuration file must contain a mapping")

    config = HotloadConfig.from_dict(data)
    config.validate()
    return config
