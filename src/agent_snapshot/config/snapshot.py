"""
Snapshot run configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..errors import InvalidConfigError

if TYPE_CHECKING:
    from ..snapshot.normalizer import NormalizerConfig


@dataclass
class VerificationConfig:
    """Which parts of a replay are compared against the fixture."""

    verify_llm_requests: bool = True
    verify_event_streams: bool = True
    verify_tool_calls: bool = True

    def merged(self, override: VerificationOverride | None) -> VerificationConfig:
        """Apply per-call overrides; unset (None) values keep the defaults."""
        if override is None:
            return VerificationConfig(**vars(self))
        return VerificationConfig(
            verify_llm_requests=_pick(override.verify_llm_requests, self.verify_llm_requests),
            verify_event_streams=_pick(override.verify_event_streams, self.verify_event_streams),
            verify_tool_calls=_pick(override.verify_tool_calls, self.verify_tool_calls),
        )

    def to_dict(self) -> dict[str, bool]:
        return dict(vars(self))


@dataclass
class VerificationOverride:
    """Per-call verification switches; None means "use the default"."""

    verify_llm_requests: bool | None = None
    verify_event_streams: bool | None = None
    verify_tool_calls: bool | None = None


def _pick(value: Any, default: Any) -> Any:
    return default if value is None else value


@dataclass
class SnapshotOptions:
    """
    Instance-level configuration for ``AgentSnapshot``.

    Attributes:
        snapshot_dir: Directory holding all snapshot cases
        snapshot_name: Case name; one directory per case
        normalizer_config: Default normalization rules
        verification: Default verification switches
        update_snapshots: Rewrite fixtures on mismatch instead of failing
    """

    snapshot_name: str
    snapshot_dir: Path = Path("__snapshots__")
    normalizer_config: NormalizerConfig | None = None
    verification: VerificationConfig = field(default_factory=VerificationConfig)
    update_snapshots: bool = False

    def __post_init__(self):
        from ..snapshot.normalizer import NormalizerConfig

        if not self.snapshot_name:
            raise InvalidConfigError("snapshot_name must not be empty")
        if any(sep in self.snapshot_name for sep in ("/", "\\")) or self.snapshot_name in (".", ".."):
            raise InvalidConfigError(f"snapshot_name must be a plain directory name: {self.snapshot_name!r}")
        if isinstance(self.snapshot_dir, str):
            self.snapshot_dir = Path(self.snapshot_dir)
        if self.normalizer_config is None:
            self.normalizer_config = NormalizerConfig()
        elif isinstance(self.normalizer_config, dict):
            self.normalizer_config = NormalizerConfig.from_dict(self.normalizer_config)
        if isinstance(self.verification, dict):
            self.verification = VerificationConfig(**self.verification)

    @property
    def case_path(self) -> Path:
        return self.snapshot_dir / self.snapshot_name


@dataclass
class TestRunConfig:
    """
    Per-call overrides for ``AgentSnapshot.replay``.

    Values left as None fall back to the instance's ``SnapshotOptions``.
    """

    __test__ = False  # not a pytest test class

    update_snapshots: bool | None = None
    normalizer_config: NormalizerConfig | None = None
    verification: VerificationOverride | None = None


@dataclass
class EffectiveRunConfig:
    """Configuration actually used by one replay, after merging."""

    update_snapshots: bool
    normalizer_config: NormalizerConfig
    verification: VerificationConfig


def resolve_run_config(options: SnapshotOptions, override: TestRunConfig | None) -> EffectiveRunConfig:
    """Merge per-call overrides over instance defaults; per-call values win."""
    override = override or TestRunConfig()
    normalizer = options.normalizer_config
    if override.normalizer_config is not None:
        normalizer = normalizer.merged(override.normalizer_config) if normalizer else override.normalizer_config
    return EffectiveRunConfig(
        update_snapshots=_pick(override.update_snapshots, options.update_snapshots),
        normalizer_config=normalizer,
        verification=options.verification.merged(override.verification),
    )


__all__ = [
    "VerificationConfig",
    "VerificationOverride",
    "SnapshotOptions",
    "TestRunConfig",
    "EffectiveRunConfig",
    "resolve_run_config",
]
