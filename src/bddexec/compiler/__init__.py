"""Plan compiler turning BDD steps into Playwright scripts."""
from .compiler import (
    EPILOGUE,
    PROLOGUE,
    CompiledScript,
    Emitted,
    Skipped,
    StepOutcome,
    compile_plan,
    compile_step,
    escape_data,
)
from .rules import STEP_RULES, StepRule, find_rule

__all__ = [
    "EPILOGUE",
    "PROLOGUE",
    "STEP_RULES",
    "CompiledScript",
    "Emitted",
    "Skipped",
    "StepOutcome",
    "StepRule",
    "compile_plan",
    "compile_step",
    "escape_data",
    "find_rule",
]
