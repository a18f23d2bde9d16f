"""
Normalization of snapshot payloads.

Requests, responses, events and tool calls carry run-specific noise
(timestamps, generated identifiers, whitespace) that must not count as a
behavioral difference. ``normalize`` rewrites a payload into a canonical
form that is applied identically to the recorded side and the live side
before anything is stored or compared.

Rule patterns are ``fnmatch`` globs against the dotted path of a field,
with list positions as numeric segments (``messages.2.tool_call_id``).
A pattern without a dot matches the key name at any depth; a pattern
starting with ``$.`` is anchored at the payload root. Rules are tried in
order (ignore list, then explicit rules, then defaults) and the first
match wins. When a per-call config is merged over an instance config, the
per-call entries come first.

Normalization is pure: the input is never mutated, the output has its keys
in canonical order, and ``normalize(k, normalize(k, x)) == normalize(k, x)``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from fnmatch import fnmatchcase
from typing import Any

from ..errors import InvalidConfigError
from ..serialization import canonicalize
from .diff import DiffEntry, structural_diff

DEFAULT_MASK_PLACEHOLDER = "<<MASKED>>"

_WHITESPACE = re.compile(r"\s+")


class PayloadKind(str, Enum):
    """Shape of the payload being normalized; selects default rules."""

    REQUEST = "request"
    RESPONSE = "response"
    EVENT = "event"
    TOOL_CALL = "tool_call"


class NormalizeAction(str, Enum):
    """What to do with a field matched by a rule."""

    DROP = "drop"  # remove the field
    MASK = "mask"  # replace the value with a placeholder
    CANONICALIZE = "canonicalize"  # collapse whitespace in strings


@dataclass(frozen=True)
class FieldRule:
    """A single normalization rule."""

    pattern: str
    action: NormalizeAction = NormalizeAction.MASK
    replacement: Any = None
    kinds: frozenset[PayloadKind] | None = None

    def __post_init__(self):
        if not self.pattern:
            raise InvalidConfigError("FieldRule pattern must not be empty")
        if not isinstance(self.action, NormalizeAction):
            object.__setattr__(self, "action", NormalizeAction(self.action))
        if self.kinds is not None and not isinstance(self.kinds, frozenset):
            object.__setattr__(self, "kinds", frozenset(PayloadKind(k) for k in self.kinds))

    def applies_to(self, kind: PayloadKind) -> bool:
        return self.kinds is None or kind in self.kinds

    def matches(self, key: str, path: str) -> bool:
        if self.pattern.startswith("$."):
            return fnmatchcase(path, self.pattern[2:])
        if "." not in self.pattern:
            return fnmatchcase(key, self.pattern)
        return fnmatchcase(path, self.pattern)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"pattern": self.pattern, "action": self.action.value}
        if self.replacement is not None:
            data["replacement"] = self.replacement
        if self.kinds is not None:
            data["kinds"] = sorted(k.value for k in self.kinds)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FieldRule:
        try:
            return cls(
                pattern=data["pattern"],
                action=NormalizeAction(data.get("action", NormalizeAction.MASK.value)),
                replacement=data.get("replacement"),
                kinds=frozenset(PayloadKind(k) for k in data["kinds"]) if data.get("kinds") else None,
            )
        except (KeyError, ValueError) as e:
            raise InvalidConfigError(f"Invalid normalizer rule {data!r}: {e}", cause=e) from e


def _rules(action: NormalizeAction, patterns: list[str], *kinds: PayloadKind) -> list[FieldRule]:
    kind_set = frozenset(kinds) if kinds else None
    return [FieldRule(p, action, kinds=kind_set) for p in patterns]


_VOLATILE_FIELDS = [
    "event_id",
    "timestamp",
    "created",
    "created_at",
    "request_id",
    "session_id",
    "trace_id",
    "elapsed_ms",
    "duration_ms",
    "start_time",
    "end_time",
]

# Response tool-call ids are routed back by the agent, so only the
# top-level id is masked there.
DEFAULT_RULES: tuple[FieldRule, ...] = tuple(
    _rules(NormalizeAction.DROP, ["raw_response"])
    + _rules(NormalizeAction.MASK, _VOLATILE_FIELDS)
    + _rules(NormalizeAction.MASK, ["id"], PayloadKind.REQUEST, PayloadKind.EVENT, PayloadKind.TOOL_CALL)
    + _rules(NormalizeAction.MASK, ["$.id"], PayloadKind.RESPONSE)
    + _rules(
        NormalizeAction.MASK,
        ["messages.*.tool_call_id", "messages.*.tool_calls.*.id"],
        PayloadKind.REQUEST,
    )
    + _rules(NormalizeAction.MASK, ["data.tool_call_id"], PayloadKind.EVENT)
    + _rules(NormalizeAction.MASK, ["tool_call_id"], PayloadKind.TOOL_CALL)
)


@dataclass
class NormalizerConfig:
    """
    Normalization configuration.

    Attributes:
        rules: Explicit rules, tried before the defaults
        ignore: Field patterns to drop (shorthand for DROP rules)
        use_defaults: Apply the built-in rules for volatile fields
        mask_placeholder: Value written in place of masked fields
    """

    rules: list[FieldRule] = field(default_factory=list)
    ignore: list[str] = field(default_factory=list)
    use_defaults: bool = True
    mask_placeholder: str = DEFAULT_MASK_PLACEHOLDER

    def __post_init__(self):
        self.rules = [r if isinstance(r, FieldRule) else FieldRule.from_dict(r) for r in self.rules]
        if not isinstance(self.mask_placeholder, str):
            raise InvalidConfigError("mask_placeholder must be a string")

    def effective_rules(self, kind: PayloadKind) -> list[FieldRule]:
        """Ordered rules that apply to ``kind``."""
        rules = _rules(NormalizeAction.DROP, list(self.ignore)) + list(self.rules)
        if self.use_defaults:
            rules.extend(DEFAULT_RULES)
        return [r for r in rules if r.applies_to(kind)]

    def merged(self, other: NormalizerConfig | None) -> NormalizerConfig:
        """
        Layer ``other`` over this config.

        Everything from ``other`` is tried first: its ignore list, then its
        rules. This config's ignore patterns follow as DROP rules, then its
        own rules. ``other`` also supplies the placeholder and default switch.
        """
        if other is None:
            return self
        own_ignores = [p for p in self.ignore if p not in other.ignore]
        return NormalizerConfig(
            rules=other.rules + _rules(NormalizeAction.DROP, own_ignores) + self.rules,
            ignore=list(other.ignore),
            use_defaults=other.use_defaults,
            mask_placeholder=other.mask_placeholder,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "rules": [r.to_dict() for r in self.rules],
            "ignore": list(self.ignore),
            "use_defaults": self.use_defaults,
            "mask_placeholder": self.mask_placeholder,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> NormalizerConfig:
        data = data or {}
        return cls(
            rules=[FieldRule.from_dict(r) for r in data.get("rules", [])],
            ignore=list(data.get("ignore", [])),
            use_defaults=data.get("use_defaults", True),
            mask_placeholder=data.get("mask_placeholder", DEFAULT_MASK_PLACEHOLDER),
        )


def _canonical_text(value: Any) -> Any:
    if isinstance(value, str):
        return _WHITESPACE.sub(" ", value).strip()
    if isinstance(value, dict):
        return {k: _canonical_text(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_canonical_text(v) for v in value]
    return value


class _Pass:
    def __init__(self, rules: list[FieldRule], placeholder: str):
        self.rules = rules
        self.placeholder = placeholder

    def _match(self, key: str, path: str) -> FieldRule | None:
        for rule in self.rules:
            if rule.matches(key, path):
                return rule
        return None

    def value(self, value: Any, path: str) -> Any:
        if isinstance(value, dict):
            result = {}
            for key, item in value.items():
                current = f"{path}.{key}" if path else key
                rule = self._match(key, current)
                if rule is None:
                    result[key] = self.value(item, current)
                elif rule.action == NormalizeAction.DROP:
                    continue
                elif rule.action == NormalizeAction.MASK:
                    result[key] = rule.replacement if rule.replacement is not None else self.placeholder
                else:
                    result[key] = _canonical_text(self.value(item, current))
            return result
        if isinstance(value, list):
            return [self.value(item, f"{path}.{i}" if path else str(i)) for i, item in enumerate(value)]
        return value


def normalize(
    kind: PayloadKind | str,
    payload: Any,
    config: NormalizerConfig | None = None,
) -> Any:
    """
    Rewrite ``payload`` into its canonical, noise-free form.

    Args:
        kind: Payload shape, selects the default rules
        payload: JSON-like value or an object with ``to_dict``
        config: Normalization rules; defaults only when omitted

    Returns:
        A new JSON-like value with keys in canonical order
    """
    kind = PayloadKind(kind)
    config = config or NormalizerConfig()
    plain = canonicalize(payload)
    rewritten = _Pass(config.effective_rules(kind), config.mask_placeholder).value(plain, "")
    return canonicalize(rewritten)


class Normalizer:
    """Holds a normalizer configuration and applies it to each payload kind."""

    def __init__(self, config: NormalizerConfig | None = None):
        self._config = config or NormalizerConfig()

    @property
    def config(self) -> NormalizerConfig:
        return self._config

    def update_config(self, config: NormalizerConfig) -> None:
        self._config = config

    def normalize(self, kind: PayloadKind | str, payload: Any) -> Any:
        return normalize(kind, payload, self._config)

    def normalize_request(self, payload: Any) -> Any:
        return self.normalize(PayloadKind.REQUEST, payload)

    def normalize_response(self, payload: Any) -> Any:
        return self.normalize(PayloadKind.RESPONSE, payload)

    def normalize_event(self, payload: Any) -> Any:
        return self.normalize(PayloadKind.EVENT, payload)

    def normalize_tool_call(self, payload: Any) -> Any:
        return self.normalize(PayloadKind.TOOL_CALL, payload)

    def compare(self, kind: PayloadKind | str, expected: Any, actual: Any) -> list[DiffEntry]:
        """Normalize both sides identically, then diff them."""
        return structural_diff(self.normalize(kind, expected), self.normalize(kind, actual))


# Public alias.
SnapshotNormalizer = Normalizer


__all__ = [
    "DEFAULT_MASK_PLACEHOLDER",
    "DEFAULT_RULES",
    "PayloadKind",
    "NormalizeAction",
    "FieldRule",
    "NormalizerConfig",
    "Normalizer",
    "SnapshotNormalizer",
    "normalize",
]
