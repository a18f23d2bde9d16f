"""
Configuration system for agent-snapshot.

This package provides typed configuration classes with:
- Dataclass-based settings with validation
- Environment variable loading
- YAML/TOML file loading validated against a JSON schema
- Per-call overrides merged over instance defaults
"""

from .agent import AgentConfig
from .base import LogFormat, LogLevel
from .logging import LoggingConfig
from .settings import Settings, SnapshotSettings, configure, get_settings, load_env, reset_settings
from .snapshot import (
    EffectiveRunConfig,
    SnapshotOptions,
    TestRunConfig,
    VerificationConfig,
    VerificationOverride,
    resolve_run_config,
)

__all__ = [
    # Types
    "LogLevel",
    "LogFormat",
    # Section configs
    "AgentConfig",
    "LoggingConfig",
    "SnapshotOptions",
    "SnapshotSettings",
    "VerificationConfig",
    "VerificationOverride",
    "TestRunConfig",
    "EffectiveRunConfig",
    "resolve_run_config",
    # Master config
    "Settings",
    # Global functions
    "get_settings",
    "configure",
    "reset_settings",
    "load_env",
]
