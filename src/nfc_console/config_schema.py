"""
JSON schemas for configuration validation.
"""

CONNECTION_SCHEMA = {
    "type": "object",
    "properties": {
        "base_url": {"type": "string", "pattern": "^https?://"},
        "locale": {"type": "string", "enum": ["en", "ru"]},
        "app_key": {"type": ["string", "null"]},
        "request_timeout": {"type": "number", "exclusiveMinimum": 0},
        "heartbeat": {"type": ["number", "null"], "exclusiveMinimum": 0},
    },
    "additionalProperties": False,
}

SESSION_SCHEMA = {
    "type": "object",
    "properties": {
        "ignore_host_license": {"type": "boolean"},
        "expire_after": {"type": "integer", "minimum": 0},
    },
    "additionalProperties": False,
}

LIFECYCLE_SCHEMA = {
    "type": "object",
    "properties": {
        "quiet_timeout_ms": {"type": "integer", "minimum": 0},
        "poll_interval_ms": {"type": "integer", "minimum": 1},
    },
    "additionalProperties": False,
}

LOGGING_SCHEMA = {
    "type": "object",
    "properties": {
        "level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
        "format": {"type": "string", "enum": ["text", "json"]},
        "log_submissions": {"type": "boolean"},
        "log_transitions": {"type": "boolean"},
    },
    "additionalProperties": False,
}

CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "nfc-console configuration",
    "type": "object",
    "properties": {
        "connection": CONNECTION_SCHEMA,
        "session": SESSION_SCHEMA,
        "lifecycle": LIFECYCLE_SCHEMA,
        "logging": LOGGING_SCHEMA,
    },
    "additionalProperties": False,
}
