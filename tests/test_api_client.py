from __future__ import annotations

import json
from unittest import mock

import pytest
import requests

from bddexec.api import ApiClient, classify_output
from bddexec.config import ApiSettings
from bddexec.core.errors import ApiError


def _response(status: int = 200, body: object = None, *, text: str | None = None) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.encoding = "utf-8"
    raw = text if text is not None else json.dumps(body)
    response._content = raw.encode("utf-8")
    return response


@pytest.fixture
def session() -> requests.Session:
    return requests.Session()


def _client(session: requests.Session, **overrides) -> ApiClient:
    settings = ApiSettings(base_url="http://runner:8002", timeout_seconds=7, **overrides)
    return ApiClient(settings, session=session)


def test_fetch_test_plan_builds_request(session) -> None:
    client = _client(session)
    client.set_bearer("tok")
    body = {"current testid": "TC 13", "current - bdd steps": {"When the user enters the username": "Admin"}}
    with mock.patch.object(session, "request", return_value=_response(body=body)) as request:
        plan = client.fetch_test_plan("TC 13")
    request.assert_called_once_with("GET", "http://runner:8002/testplan/TC%2013", timeout=7)
    assert session.headers["Authorization"] == "Bearer tok"
    assert session.headers["accept"] == "application/json"
    assert plan.testcase_id == "TC 13"
    assert plan.steps == (("When the user enters the username", "Admin"),)


def test_fetch_test_plan_uses_server_detail(session) -> None:
    client = _client(session)
    with mock.patch.object(session, "request", return_value=_response(404, {"detail": "Test case not found"})):
        with pytest.raises(ApiError) as excinfo:
            client.fetch_test_plan("TC404")
    assert str(excinfo.value) == "Test case not found"
    assert excinfo.value.status_code == 404


def test_fetch_test_plan_falls_back_to_generic_message(session) -> None:
    client = _client(session)
    with mock.patch.object(session, "request", return_value=_response(500, text="<html>boom</html>")):
        with pytest.raises(ApiError, match="Failed to fetch test plan."):
            client.fetch_test_plan("TC1")


def test_fetch_test_plan_rejects_invalid_payload(session) -> None:
    client = _client(session)
    with mock.patch.object(session, "request", return_value=_response(body={"steps": []})):
        with pytest.raises(ApiError, match="Invalid test plan for TC1"):
            client.fetch_test_plan("TC1")


def test_network_errors_become_api_errors(session) -> None:
    client = _client(session)
    with mock.patch.object(session, "request", side_effect=requests.ConnectionError("refused")):
        with pytest.raises(ApiError, match="refused"):
            client.fetch_test_plan("TC1")


def test_execute_script_uploads_file_and_classifies_output(session) -> None:
    client = _client(session, api_key="k")
    output = "Step: Entering username...\n\n  Test Passed - Execution completed successfully.  \n"
    with mock.patch.object(session, "request", return_value=_response(text=output)) as request:
        entries = client.execute_script("print('x')\n", "TC0013", "playwright")
    args, kwargs = request.call_args
    assert args == ("POST", "http://runner:8002/execute-code?script_type=playwright")
    assert kwargs["files"] == {"file": ("TC0013_script.py", b"print('x')\n", "text/x-python")}
    assert session.headers["X-Api-Key"] == "k"
    assert [(entry.message, entry.status) for entry in entries] == [
        ("Step: Entering username...", "INFO"),
        ("Test Passed - Execution completed successfully.", "SUCCESS"),
    ]


def test_execute_script_error_detail(session) -> None:
    client = _client(session)
    with mock.patch.object(session, "request", return_value=_response(400, {"detail": "Unsupported script type"})):
        with pytest.raises(ApiError, match="Unsupported script type"):
            client.execute_script("", "TC1", "cobol")


def test_classify_output_flags_failures() -> None:
    entries = classify_output("Test Failed - An error occurred: timeout\nplain")
    assert [entry.status for entry in entries] == ["ERROR", "INFO"]
    assert classify_output("") == []


def test_probe_endpoints_reports_each_check(session) -> None:
    client = _client(session)
    responses = [_response(body={}), _response(405, text="")]
    with mock.patch.object(session, "request", side_effect=responses):
        entries = client.probe_endpoints("TC0013")
    assert [(entry.message, entry.status) for entry in entries] == [
        ("Verifying endpoints...", "INFO"),
        ("Test Plan endpoint: Connected", "SUCCESS"),
        ("Execute Code endpoint: Failed", "ERROR"),
    ]


def test_probe_endpoints_never_raises(session) -> None:
    client = _client(session)
    with mock.patch.object(session, "request", side_effect=requests.Timeout("slow")):
        entries = client.probe_endpoints("TC0013")
    assert entries[1].message.startswith("Test Plan endpoint verification failed:")
    assert all(entry.is_error for entry in entries[1:])


def test_set_bearer_clears_header(session) -> None:
    client = _client(session)
    client.set_bearer("tok")
    client.set_bearer("  ")
    assert "Authorization" not in session.headers
