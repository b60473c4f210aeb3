"""Translate a TestPlan into a Playwright script."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union

from bddexec.core.models import FAIL_MARKER, PASS_MARKER, TestPlan

from .rules import DATA_PLACEHOLDER, StepRule, find_rule

STEP_INDENT = " " * 12

PROLOGUE = (
    "import asyncio",
    "import re",
    "from playwright.async_api import async_playwright, expect",
    "",
    "async def run_test():",
    '    """Test Case for current test ID."""',
    "    async with async_playwright() as p:",
    "        browser = await p.chromium.launch(headless=False)",
    "        page = await browser.new_page()",
    "        try:",
)

EPILOGUE = (
    f'            print("{PASS_MARKER} - Execution completed successfully.")',
    "        except Exception as e:",
    f'            print(f"{FAIL_MARKER} - An error occurred: {{str(e)}}")',
    "        finally:",
    "            await browser.close()",
    "",
    'if __name__ == "__main__":',
    "    asyncio.run(run_test())",
)

# Order matters: backslash first so later escapes are not doubled.
_ESCAPES = (
    ("\\", "\\\\"),
    ('"', '\\"'),
    ("\n", "\\n"),
    ("\r", "\\r"),
)


@dataclass(frozen=True)
class Emitted:
    phrase: str
    block: str


@dataclass(frozen=True)
class Skipped:
    phrase: str
    reason: str


StepOutcome = Union[Emitted, Skipped]


@dataclass(frozen=True)
class CompiledScript:
    """Generated script text plus the per-step compilation outcome."""

    testcase_id: str
    text: str
    steps: Tuple[StepOutcome, ...]

    @property
    def skipped(self) -> Tuple[Skipped, ...]:
        return tuple(step for step in self.steps if isinstance(step, Skipped))

    @property
    def emitted(self) -> Tuple[Emitted, ...]:
        return tuple(step for step in self.steps if isinstance(step, Emitted))

    def __str__(self) -> str:
        return self.text


def escape_data(value: str) -> str:
    """Escape test data for insertion into a double-quoted string literal."""

    text = value or ""
    for raw, escaped in _ESCAPES:
        text = text.replace(raw, escaped)
    return text


def render_rule(rule: StepRule, data: str) -> str:
    escaped = escape_data(data)
    lines = [f'print("Step: {rule.announce}")']
    lines.extend(line.replace(DATA_PLACEHOLDER, escaped) for line in rule.lines)
    return "".join(f"{STEP_INDENT}{line}\n" for line in lines)


def compile_step(phrase: str, data: str) -> StepOutcome:
    rule = find_rule(phrase)
    if rule is None:
        return Skipped(phrase=phrase, reason=f"no rule for step '{phrase}'")
    return Emitted(phrase=phrase, block=render_rule(rule, data))


def compile_plan(plan: TestPlan) -> CompiledScript:
    """Compile ``plan`` into script text; unknown steps are reported as Skipped."""

    outcomes = tuple(compile_step(phrase, data) for phrase, data in plan.steps)
    parts = ["".join(f"{line}\n" for line in PROLOGUE)]
    parts.extend(outcome.block for outcome in outcomes if isinstance(outcome, Emitted))
    parts.append("".join(f"{line}\n" for line in EPILOGUE))
    return CompiledScript(testcase_id=plan.testcase_id, text="".join(parts), steps=outcomes)
