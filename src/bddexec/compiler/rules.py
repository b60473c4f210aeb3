"""Closed table of recognized BDD step phrases and the code each one emits."""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

DATA_PLACEHOLDER = "{data}"


@dataclass(frozen=True)
class StepRule:
    """Code emission rule for one canonical step phrase.

    ``lines`` are emitted in order at step indentation; ``{data}`` inside a
    line is replaced by the escaped test data of the step.
    """

    phrase: str
    announce: str
    lines: Tuple[str, ...]

    @property
    def uses_data(self) -> bool:
        return any(DATA_PLACEHOLDER in line for line in self.lines)


def _rule(phrase: str, announce: str, *lines: str) -> StepRule:
    return StepRule(phrase=phrase, announce=announce, lines=tuple(lines))


_FILL_USERNAME = 'await page.get_by_placeholder("Username").fill("{data}")'

_RULES = (
    _rule(
        "Given the user is on the OrangeHRM login page",
        "Navigating to the OrangeHRM login page...",
        'await page.goto("{data}")',
    ),
    _rule("When the user enters the username", "Entering username...", _FILL_USERNAME),
    _rule("And enters their username", "Entering username...", _FILL_USERNAME),
    _rule(
        "And the user enters the password",
        "Entering password...",
        'await page.get_by_placeholder("Password").fill("{data}")',
    ),
    _rule(
        "And clicks the login button",
        "Clicking the button...",
        'await page.get_by_role("button", name="Login").click()',
    ),
    _rule(
        "And clicks the 'Reset Password' button",
        "Clicking the button...",
        'await page.get_by_role("button", name="Reset Password").click()',
    ),
    _rule(
        "When the user clicks on 'Forgot your Password?'",
        "Clicking 'Forgot your Password?'...",
        'await page.get_by_text("Forgot your Password?").click()',
    ),
    _rule(
        "Then the user should be redirected to the dashboard",
        "Verifying redirection to the dashboard...",
        'await expect(page).to_have_url(re.compile(r".*/dashboard/index"))',
        'dashboard_header = page.get_by_role("heading", name="Dashboard")',
        "await expect(dashboard_header).to_be_visible()",
    ),
    _rule(
        "Then a password reset link should be sent successfully",
        "Verifying password reset link...",
        'await expect(page.get_by_text("Reset link sent successfully")).to_be_visible()',
    ),
)

STEP_RULES: Mapping[str, StepRule] = MappingProxyType({rule.phrase: rule for rule in _RULES})


def find_rule(phrase: str) -> Optional[StepRule]:
    """Return the rule for ``phrase``; matching is exact."""

    return STEP_RULES.get(phrase)
