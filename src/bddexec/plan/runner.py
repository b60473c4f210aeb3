"""Fetch, compile and execute a test case through the request/response API."""
from __future__ import annotations

from typing import TYPE_CHECKING, Callable, List, Optional, Union

from bddexec.compiler import compile_plan
from bddexec.core.errors import ApiError
from bddexec.core.models import LogEntry, LogStatus
from bddexec.core.results import RunReport

if TYPE_CHECKING:
    from bddexec.api import ApiClient


def run_testcase(
    api: "ApiClient",
    testcase_id: str,
    script_type: str = "playwright",
    *,
    on_log: Optional[Callable[[LogEntry], None]] = None,
    strict: bool = False,
) -> RunReport:
    """Run one test case end to end; failures are reported as ERROR entries.

    With ``strict`` set, a plan containing unrecognized steps is not uploaded.
    """

    logs: List[LogEntry] = []
    script = ""

    def record(entry: LogEntry) -> None:
        logs.append(entry)
        if on_log:
            on_log(entry)

    def emit(message: str, status: Union[LogStatus, str] = LogStatus.INFO) -> None:
        record(LogEntry.create(message, status))

    emit(f"Fetching test plan for {testcase_id}")
    try:
        plan = api.fetch_test_plan(testcase_id)
        emit(f"Received test plan with {len(plan)} step(s)", LogStatus.DEBUG)
        emit("Generating script...")
        compiled = compile_plan(plan)
        script = compiled.text
        for skipped in compiled.skipped:
            emit(f"Skipped step: {skipped.reason}", LogStatus.ERROR if strict else LogStatus.INFO)
        if strict and compiled.skipped:
            emit(f"{len(compiled.skipped)} step(s) have no code rule; not running the script", LogStatus.ERROR)
            return RunReport(testcase_id=testcase_id, script=script, logs=tuple(logs))
        emit("Script generated successfully", LogStatus.SUCCESS)
        emit("Running script...")
        for entry in api.execute_script(script, testcase_id, script_type):
            record(entry)
        emit("Script execution completed", LogStatus.SUCCESS)
    except ApiError as exc:
        emit(str(exc), LogStatus.ERROR)
    return RunReport(testcase_id=testcase_id, script=script, logs=tuple(logs))
