"""Parsing and validation of test plan payloads."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List, Mapping, Sequence, Tuple

import yaml
from jsonschema import Draft7Validator

from bddexec.core.models import TestPlan

TESTCASE_KEYS = ("current testid", "current_testid")
STEPS_KEYS = ("current - bdd steps", "current_bdd_steps")

_STEPS_SCHEMA = {
    "type": ["object", "null"],
    "additionalProperties": {"type": ["string", "number", "boolean", "null"]},
}

PLAN_SCHEMA = {
    "type": "object",
    "properties": {
        "current testid": {"type": "string", "minLength": 1},
        "current_testid": {"type": "string", "minLength": 1},
        "current - bdd steps": _STEPS_SCHEMA,
        "current_bdd_steps": _STEPS_SCHEMA,
    },
    "anyOf": [{"required": ["current testid"]}, {"required": ["current_testid"]}],
}
_validator = Draft7Validator(PLAN_SCHEMA)


class StepPairs(dict):
    """JSON object that also remembers every key/value pair in payload order.

    Step maps may repeat a phrase; a plain dict would keep only the last one.
    """

    def __init__(self, pairs: Sequence[Tuple[str, Any]]) -> None:
        super().__init__(pairs)
        self.pairs: List[Tuple[str, Any]] = list(pairs)


def decode_plan(text: str) -> Mapping[str, Any]:
    """Decode a JSON plan body, keeping duplicate step phrases."""

    try:
        raw = json.loads(text, object_pairs_hook=StepPairs)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Test plan is not valid JSON: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise ValueError("Test plan must contain an object at the top level")
    return raw


def parse_plan(raw: Mapping[str, Any]) -> TestPlan:
    """Validate a decoded plan payload and build a TestPlan."""

    if not isinstance(raw, Mapping):
        raise ValueError("Test plan must contain a mapping at the top level")
    errors = sorted(_validator.iter_errors(raw), key=lambda e: list(e.path))
    if errors:
        messages = "; ".join(f"{'/'.join(map(str, err.path)) or 'root'}: {err.message}" for err in errors)
        raise ValueError(f"Test plan validation failed: {messages}")
    testcase_id = _first(raw, TESTCASE_KEYS).strip()
    steps = _first(raw, STEPS_KEYS) or {}
    pairs = getattr(steps, "pairs", None)
    if pairs is None:
        pairs = list(steps.items())
    return TestPlan.from_pairs(testcase_id, pairs)


def load_plan(path: str) -> TestPlan:
    """Load a plan file saved from the server (JSON) or written by hand (YAML)."""

    plan_path = Path(path).expanduser().resolve()
    text = plan_path.read_text(encoding="utf-8")
    if plan_path.suffix.lower() == ".json":
        return parse_plan(decode_plan(text))
    raw = yaml.safe_load(text) or {}
    return parse_plan(raw)


def _first(raw: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if key in raw:
            return raw[key]
    return None
