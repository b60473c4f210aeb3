"""Decoding and validation of runner messages."""
from __future__ import annotations

import json
from typing import Optional

from jsonschema import Draft7Validator

from bddexec.core.models import ExecutionResponse

_NULLABLE_STRING = {"type": ["string", "null"]}

EXECUTION_RESPONSE_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "runner execution message",
    "type": "object",
    "properties": {
        "testcaseid": _NULLABLE_STRING,
        "script_type": _NULLABLE_STRING,
        "status": _NULLABLE_STRING,
        "logs": {
            "type": ["array", "null"],
            "items": {
                "type": "object",
                "properties": {
                    "timestamp": _NULLABLE_STRING,
                    "message": _NULLABLE_STRING,
                    "status": _NULLABLE_STRING,
                },
            },
        },
    },
}
_validator = Draft7Validator(EXECUTION_RESPONSE_SCHEMA)


class MessageFormatError(ValueError):
    """A frame from the runner could not be decoded into an ExecutionResponse."""


def parse_execution_response(text: str) -> Optional[ExecutionResponse]:
    """Decode one text frame; JSON ``null`` yields None."""

    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MessageFormatError(str(exc)) from exc
    if raw is None:
        return None
    errors = sorted(_validator.iter_errors(raw), key=lambda e: list(e.path))
    if errors:
        messages = "; ".join(f"{'/'.join(map(str, err.path)) or 'root'}: {err.message}" for err in errors)
        raise MessageFormatError(messages)
    return ExecutionResponse.from_mapping(raw)
