"""Versioned payload envelopes for structured ledger columns.

Columns that hold structured data store an envelope::

    {"kind": "thought_actions", "v": 1, "data": [...]}

Each (kind, version) pair has a JSON Schema. Payloads are validated on
write and again on read, so a writer and reader that disagree about a
shape fail with PayloadError instead of drifting silently.
"""

import json
import logging
from typing import Any, Dict, Tuple

from jsonschema import Draft7Validator

from autonome.protocols import PayloadError

logger = logging.getLogger(__name__)

_NUMBER = {"type": "number"}
_STRING = {"type": "string"}

_TELEMETRY_V1 = {
    "type": "object",
    "required": [
        "heap_used",
        "heap_total",
        "cpu_time_user_us",
        "load_avg_1m",
        "thread_count",
        "process_count",
        "memory_percent",
        "uptime_seconds",
    ],
    "properties": {
        "heap_used": {"type": "integer", "minimum": 0},
        "heap_total": {"type": "integer", "minimum": 0},
        "cpu_time_user_us": {"type": "integer", "minimum": 0},
        "load_avg_1m": _NUMBER,
        "thread_count": {"type": "integer", "minimum": 0},
        "process_count": {"type": "integer", "minimum": 0},
        "memory_percent": _NUMBER,
        "uptime_seconds": _NUMBER,
        "sampled_at": {"type": ["string", "null"]},
    },
    "additionalProperties": False,
}

SCHEMAS: Dict[Tuple[str, int], Dict[str, Any]] = {
    ("interaction_input", 1): {
        "type": "object",
        "required": ["query"],
        "properties": {
            "query": _STRING,
            "context": {"type": "object"},
        },
        "additionalProperties": False,
    },
    ("interaction_output", 1): {
        "type": "object",
        "required": ["content"],
        "properties": {
            "content": _STRING,
            "memory_ids": {"type": "array", "items": _STRING},
            "model_id": {"type": ["string", "null"]},
            "error": {"type": ["string", "null"]},
        },
        "additionalProperties": False,
    },
    ("thought_actions", 1): {
        "type": "array",
        "items": _STRING,
    },
    ("telemetry", 1): _TELEMETRY_V1,
    ("decision_context", 1): {
        "type": "object",
        "required": ["urgency", "complexity", "opportunity"],
        "properties": {
            "urgency": {"type": "number", "minimum": 0, "maximum": 1},
            "complexity": {"type": "number", "minimum": 0, "maximum": 1},
            "opportunity": {"type": "number", "minimum": 0, "maximum": 1},
            "telemetry": {"anyOf": [_TELEMETRY_V1, {"type": "null"}]},
            "extra": {"type": "object"},
        },
        "additionalProperties": False,
    },
}

# Current writer version per kind
CURRENT_VERSIONS: Dict[str, int] = {
    "interaction_input": 1,
    "interaction_output": 1,
    "thought_actions": 1,
    "telemetry": 1,
    "decision_context": 1,
}

_validators: Dict[Tuple[str, int], Draft7Validator] = {}


def _validator(kind: str, version: int) -> Draft7Validator:
    key = (kind, version)
    schema = SCHEMAS.get(key)
    if schema is None:
        raise PayloadError(f"No schema registered for payload {kind} v{version}")
    validator = _validators.get(key)
    if validator is None:
        validator = Draft7Validator(schema)
        _validators[key] = validator
    return validator


def _check(kind: str, version: int, data: Any) -> None:
    errors = sorted(_validator(kind, version).iter_errors(data), key=lambda err: list(err.path))
    if errors:
        first = errors[0]
        path = ".".join(str(part) for part in first.path) or "(root)"
        raise PayloadError(f"Payload {kind} v{version} invalid at {path}: {first.message}")


def encode_payload(kind: str, data: Any) -> str:
    """Validate ``data`` against the current schema for ``kind`` and wrap it."""
    version = CURRENT_VERSIONS.get(kind)
    if version is None:
        raise PayloadError(f"Unknown payload kind: {kind}")
    _check(kind, version, data)
    try:
        return json.dumps({"kind": kind, "v": version, "data": data}, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise PayloadError(f"Payload {kind} is not JSON-serializable: {e}") from e


def decode_payload(kind: str, raw: str) -> Any:
    """Unwrap and validate an envelope previously produced by encode_payload."""
    try:
        envelope = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise PayloadError(f"Payload {kind} is not valid JSON: {e}") from e

    if not isinstance(envelope, dict) or "data" not in envelope:
        raise PayloadError(f"Payload {kind} is missing its envelope")
    if envelope.get("kind") != kind:
        raise PayloadError(f"Expected payload {kind}, found {envelope.get('kind')!r}")

    version = envelope.get("v")
    if not isinstance(version, int):
        raise PayloadError(f"Payload {kind} has no version tag")
    _check(kind, version, envelope["data"])
    return envelope["data"]
