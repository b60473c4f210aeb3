"""Test plan loading and the fetch-compile-execute pipeline."""

from .loader import PLAN_SCHEMA, decode_plan, load_plan, parse_plan
from .runner import run_testcase

__all__ = [
    "PLAN_SCHEMA",
    "decode_plan",
    "load_plan",
    "parse_plan",
    "run_testcase",
]
