from __future__ import annotations

from typing import List
from unittest import mock

from bddexec.api import classify_output
from bddexec.core.errors import ApiError
from bddexec.core.models import TestPlan
from bddexec.plan import run_testcase


def _api(plan: TestPlan, output: str = "Test Passed - Execution completed successfully.") -> mock.Mock:
    api = mock.Mock()
    api.fetch_test_plan.return_value = plan
    api.execute_script.side_effect = lambda script, testcase_id, script_type: classify_output(output)
    return api


def _plan(*steps) -> TestPlan:
    return TestPlan.from_pairs("TC0013", list(steps))


def test_run_testcase_happy_path() -> None:
    seen: List[str] = []
    api = _api(_plan(("When the user enters the username", "Admin")))
    report = run_testcase(api, "TC0013", "selenium", on_log=lambda entry: seen.append(entry.message))
    api.fetch_test_plan.assert_called_once_with("TC0013")
    script, testcase_id, script_type = api.execute_script.call_args.args
    assert (testcase_id, script_type) == ("TC0013", "selenium")
    assert 'fill("Admin")' in script
    assert report.script == script
    assert report.passed
    assert seen == [entry.message for entry in report.logs]
    assert seen == [
        "Fetching test plan for TC0013",
        "Received test plan with 1 step(s)",
        "Generating script...",
        "Script generated successfully",
        "Running script...",
        "Test Passed - Execution completed successfully.",
        "Script execution completed",
    ]


def test_failed_script_output_fails_report() -> None:
    api = _api(_plan(), output="Test Failed - An error occurred: timeout")
    report = run_testcase(api, "TC0013")
    assert not report.passed
    assert any(entry.is_error for entry in report.logs)


def test_api_errors_are_recorded() -> None:
    api = mock.Mock()
    api.fetch_test_plan.side_effect = ApiError("Test case not found", status_code=404)
    report = run_testcase(api, "TC404")
    assert report.logs[-1].message == "Test case not found"
    assert report.logs[-1].is_error
    assert report.script == ""
    api.execute_script.assert_not_called()


def test_skipped_steps_are_reported() -> None:
    api = _api(_plan(("When the user does a cartwheel", "")))
    report = run_testcase(api, "TC0013")
    skipped = [entry for entry in report.logs if entry.message.startswith("Skipped step")]
    assert len(skipped) == 1 and skipped[0].status == "INFO"
    api.execute_script.assert_called_once()


def test_strict_mode_does_not_upload() -> None:
    api = _api(_plan(("When the user does a cartwheel", "")))
    report = run_testcase(api, "TC0013", strict=True)
    api.execute_script.assert_not_called()
    assert not report.passed
    assert report.logs[-1].is_error
