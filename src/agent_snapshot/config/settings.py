"""
Settings master configuration and global helpers.
"""

from __future__ import annotations

import dataclasses
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import jsonschema
import yaml
from dotenv import find_dotenv, load_dotenv

from ..errors import ConfigError, InvalidConfigError
from ..logging import configure_logging
from .agent import AgentConfig
from .logging import LoggingConfig
from .schema import CONFIG_SCHEMA
from .snapshot import SnapshotOptions, VerificationConfig

if TYPE_CHECKING:
    from ..snapshot.normalizer import NormalizerConfig

_TRUTHY = ("1", "true", "yes", "on")


def _env_flag(value: str) -> bool:
    return value.strip().lower() in _TRUTHY


@dataclass
class SnapshotSettings:
    """Defaults applied to every snapshot case."""

    snapshot_dir: Path = Path("__snapshots__")
    update_snapshots: bool = False
    normalizer: NormalizerConfig | None = None
    verification: VerificationConfig = field(default_factory=VerificationConfig)

    def __post_init__(self):
        if isinstance(self.snapshot_dir, str):
            self.snapshot_dir = Path(self.snapshot_dir)

    def options_for(self, snapshot_name: str) -> SnapshotOptions:
        """Build ``SnapshotOptions`` for one case from these defaults."""
        return SnapshotOptions(
            snapshot_name=snapshot_name,
            snapshot_dir=self.snapshot_dir,
            normalizer_config=self.normalizer,
            verification=VerificationConfig(**vars(self.verification)),
            update_snapshots=self.update_snapshots,
        )


@dataclass
class Settings:
    """
    Master configuration for agent-snapshot.

    Aggregates all configuration sections into a single object that can be
    loaded from environment variables, files, or constructed programmatically.
    """

    snapshot: SnapshotSettings = field(default_factory=SnapshotSettings)
    agent: AgentConfig = field(default_factory=AgentConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, prefix: str = "AGENT_SNAPSHOT_") -> Settings:
        """
        Load settings from environment variables.

        Example:
            AGENT_SNAPSHOT_DIR=tests/__snapshots__
            AGENT_SNAPSHOT_UPDATE=1
            AGENT_SNAPSHOT_VERIFY_EVENTS=false
            AGENT_SNAPSHOT_LOG_LEVEL=DEBUG
        """
        settings = cls()

        # Snapshot settings
        if snapshot_dir := os.getenv(f"{prefix}DIR"):
            settings.snapshot.snapshot_dir = Path(snapshot_dir)
        if update := os.getenv(f"{prefix}UPDATE"):
            settings.snapshot.update_snapshots = _env_flag(update)
        if verify := os.getenv(f"{prefix}VERIFY_REQUESTS"):
            settings.snapshot.verification.verify_llm_requests = _env_flag(verify)
        if verify := os.getenv(f"{prefix}VERIFY_EVENTS"):
            settings.snapshot.verification.verify_event_streams = _env_flag(verify)
        if verify := os.getenv(f"{prefix}VERIFY_TOOL_CALLS"):
            settings.snapshot.verification.verify_tool_calls = _env_flag(verify)

        # Agent settings
        if max_iterations := os.getenv(f"{prefix}AGENT_MAX_ITERATIONS"):
            try:
                settings.agent = dataclasses.replace(settings.agent, max_iterations=int(max_iterations))
            except ValueError as e:
                raise InvalidConfigError(f"{prefix}AGENT_MAX_ITERATIONS must be an integer", cause=e) from e

        # Logging settings
        if level := os.getenv(f"{prefix}LOG_LEVEL"):
            settings.logging = LoggingConfig(level=level.upper(), format=settings.logging.format)  # type: ignore[arg-type]
        if log_format := os.getenv(f"{prefix}LOG_FORMAT"):
            settings.logging = LoggingConfig(level=settings.logging.level, format=log_format.lower())  # type: ignore[arg-type]

        return settings

    @classmethod
    def from_file(cls, path: str | Path) -> Settings:
        """
        Load settings from a YAML or TOML file.

        Args:
            path: Path to configuration file (.yaml, .yml, or .toml)

        Returns:
            Settings object with values from file
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        suffix = path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        elif suffix == ".toml":
            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            raise ConfigError(f"Unsupported config file format: {suffix}")

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """
        Create Settings from a dictionary.

        The input is validated against the configuration schema first.
        """
        from ..snapshot.normalizer import NormalizerConfig

        try:
            jsonschema.validate(instance=data, schema=CONFIG_SCHEMA)
        except jsonschema.ValidationError as e:
            location = ".".join(str(p) for p in e.absolute_path) or "<root>"
            raise InvalidConfigError(f"Configuration validation failed at {location}: {e.message}", cause=e) from e

        settings = cls()

        if "snapshot" in data:
            snapshot_data = data["snapshot"]
            settings.snapshot = SnapshotSettings(
                snapshot_dir=Path(snapshot_data.get("snapshot_dir", settings.snapshot.snapshot_dir)),
                update_snapshots=snapshot_data.get("update_snapshots", False),
                normalizer=NormalizerConfig.from_dict(snapshot_data["normalizer"]) if "normalizer" in snapshot_data else None,
                verification=VerificationConfig(**snapshot_data.get("verification", {})),
            )

        if "agent" in data:
            settings.agent = AgentConfig(**data["agent"])

        if "logging" in data:
            settings.logging = LoggingConfig(**data["logging"])

        return settings

    @classmethod
    def default(cls) -> Settings:
        return cls()

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary."""
        snapshot: dict[str, Any] = {
            "snapshot_dir": str(self.snapshot.snapshot_dir),
            "update_snapshots": self.snapshot.update_snapshots,
            "verification": self.snapshot.verification.to_dict(),
        }
        if self.snapshot.normalizer is not None:
            snapshot["normalizer"] = self.snapshot.normalizer.to_dict()
        return {
            "snapshot": snapshot,
            "agent": dataclasses.asdict(self.agent),
            "logging": dataclasses.asdict(self.logging),
        }


# =============================================================================
# Global Settings & Helpers
# =============================================================================

_global_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance, creating from the environment if needed."""
    global _global_settings
    if _global_settings is None:
        _global_settings = Settings.from_env()
    return _global_settings


def configure(settings: Settings | None = None, **kwargs) -> Settings:
    """
    Configure global settings.

    The default logger is reconfigured from the resulting logging section.

    Args:
        settings: Settings object to use globally
        **kwargs: Override specific sections

    Returns:
        The configured Settings object
    """
    global _global_settings

    if settings is not None:
        _global_settings = settings
    elif _global_settings is None:
        _global_settings = Settings.from_env()

    for key, value in kwargs.items():
        if not hasattr(_global_settings, key):
            raise ConfigError(f"Unknown settings section: {key}")
        setattr(_global_settings, key, value)

    configure_logging(
        level=_global_settings.logging.level,
        json_output=_global_settings.logging.json_output,
    )
    return _global_settings


def reset_settings() -> None:
    """Forget the global settings; the next ``get_settings()`` reloads them."""
    global _global_settings
    _global_settings = None


def load_env(path: str | None = None, *, override: bool = False) -> bool:
    """
    Load environment variables from a .env file.

    Args:
        path: Optional path to a .env file. If not provided, uses find_dotenv().
        override: Whether to override existing environment variables.

    Returns:
        True if a .env file was found and loaded, False otherwise.
    """
    env_path = path or find_dotenv(usecwd=True)
    if not env_path:
        return False
    return load_dotenv(env_path, override=override)


__all__ = [
    "Settings",
    "SnapshotSettings",
    "get_settings",
    "configure",
    "reset_settings",
    "load_env",
]
