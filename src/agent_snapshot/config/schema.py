"""
JSON schemas for configuration validation.
"""

NORMALIZER_RULE_SCHEMA = {
    "type": "object",
    "properties": {
        "pattern": {"type": "string", "minLength": 1},
        "action": {"type": "string", "enum": ["drop", "mask", "canonicalize"]},
        "replacement": {},
        "kinds": {
            "type": "array",
            "items": {"type": "string", "enum": ["request", "response", "event", "tool_call"]},
        },
    },
    "required": ["pattern"],
    "additionalProperties": False,
}

NORMALIZER_SCHEMA = {
    "type": "object",
    "properties": {
        "rules": {"type": "array", "items": NORMALIZER_RULE_SCHEMA},
        "ignore": {"type": "array", "items": {"type": "string"}},
        "use_defaults": {"type": "boolean"},
        "mask_placeholder": {"type": "string"},
    },
    "additionalProperties": False,
}

VERIFICATION_SCHEMA = {
    "type": "object",
    "properties": {
        "verify_llm_requests": {"type": "boolean"},
        "verify_event_streams": {"type": "boolean"},
        "verify_tool_calls": {"type": "boolean"},
    },
    "additionalProperties": False,
}

SNAPSHOT_SCHEMA = {
    "type": "object",
    "properties": {
        "snapshot_dir": {"type": "string"},
        "update_snapshots": {"type": "boolean"},
        "normalizer": NORMALIZER_SCHEMA,
        "verification": VERIFICATION_SCHEMA,
    },
    "additionalProperties": False,
}

AGENT_SCHEMA = {
    "type": "object",
    "properties": {
        "max_iterations": {"type": "integer", "minimum": 1},
        "max_tool_calls_per_loop": {"type": "integer", "minimum": 1},
        "temperature": {"type": ["number", "null"], "minimum": 0.0, "maximum": 2.0},
        "max_tokens": {"type": ["integer", "null"], "minimum": 1},
        "stop_on_tool_error": {"type": "boolean"},
    },
    "additionalProperties": False,
}

LOGGING_SCHEMA = {
    "type": "object",
    "properties": {
        "level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
        "format": {"type": "string", "enum": ["text", "json"]},
    },
    "additionalProperties": False,
}

CONFIG_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "snapshot": SNAPSHOT_SCHEMA,
        "agent": AGENT_SCHEMA,
        "logging": LOGGING_SCHEMA,
    },
    "additionalProperties": False,
}

__all__ = [
    "CONFIG_SCHEMA",
    "SNAPSHOT_SCHEMA",
    "NORMALIZER_SCHEMA",
    "VERIFICATION_SCHEMA",
    "AGENT_SCHEMA",
    "LOGGING_SCHEMA",
]
