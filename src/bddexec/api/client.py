"""HTTP client for the plan-fetch and request/response execution calls."""
from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional
from urllib.parse import urljoin

import requests

from bddexec.config import ApiSettings
from bddexec.core.errors import ApiError
from bddexec.core.models import FAIL_MARKER, PASS_MARKER, LogEntry, LogStatus, TestPlan
from bddexec.endpoints import EndpointResolver
from bddexec.plan.loader import decode_plan, parse_plan

LOGGER = logging.getLogger(__name__)

RAW_PREVIEW_CHARS = 200


def classify_output(text: str) -> List[LogEntry]:
    """Split runner output into log entries, flagging pass/fail marker lines."""

    entries: List[LogEntry] = []
    for line in text.split("\n"):
        message = line.strip()
        if not message:
            continue
        if PASS_MARKER in message:
            status = LogStatus.SUCCESS
        elif FAIL_MARKER in message:
            status = LogStatus.ERROR
        else:
            status = LogStatus.INFO
        entries.append(LogEntry.create(message, status))
    return entries


def error_detail(response: requests.Response, default: str) -> str:
    """Return the ``detail`` field of a structured error body, else ``default``."""

    try:
        body = response.json()
    except ValueError:
        LOGGER.debug("Error body is not JSON: %.200s", response.text)
        return default
    detail = body.get("detail") if isinstance(body, Mapping) else None
    if not detail:
        return default
    return detail if isinstance(detail, str) else str(detail)


class ApiClient:
    """Small wrapper over ``requests.Session`` addressing endpoints by logical name."""

    def __init__(
        self,
        settings: ApiSettings,
        resolver: Optional[EndpointResolver] = None,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.settings = settings
        self.resolver = resolver or settings.resolver()
        self.base_url = settings.base_url if settings.base_url.endswith("/") else settings.base_url + "/"
        self.timeout = settings.timeout_seconds
        self._session = session or requests.Session()
        self._session.headers.update({"accept": "application/json"})
        if settings.api_key:
            self._session.headers["X-Api-Key"] = settings.api_key

    def set_bearer(self, token: Optional[str]) -> None:
        if not token or not token.strip():
            self._session.headers.pop("Authorization", None)
            return
        self._session.headers["Authorization"] = f"Bearer {token}"

    def url_for(self, key: str, params: Optional[Mapping[str, Optional[str]]] = None) -> str:
        return urljoin(self.base_url, self.resolver.resolve(key, params))

    def get(self, key: str, params: Optional[Mapping[str, Optional[str]]] = None) -> requests.Response:
        return self._request("GET", key, params)

    def post(
        self, key: str, params: Optional[Mapping[str, Optional[str]]] = None, **kwargs: Any
    ) -> requests.Response:
        return self._request("POST", key, params, **kwargs)

    def fetch_test_plan(self, testcase_id: str) -> TestPlan:
        response = self.get("TestPlan", {"testCaseId": testcase_id})
        LOGGER.debug("Received test plan response with %d bytes", len(response.content))
        if not response.ok:
            raise ApiError(error_detail(response, "Failed to fetch test plan."), status_code=response.status_code)
        try:
            return parse_plan(decode_plan(response.text))
        except ValueError as exc:
            raise ApiError(f"Invalid test plan for {testcase_id}: {exc}") from exc

    def execute_script(self, script: str, testcase_id: str, script_type: str) -> List[LogEntry]:
        """Upload ``script`` to the runner and classify its output lines."""

        files = {"file": (f"{testcase_id}_script.py", script.encode("utf-8"), "text/x-python")}
        response = self.post("ExecuteCode", {"script_type": script_type}, files=files)
        raw = response.text
        LOGGER.debug("Raw response: %s...", raw[:RAW_PREVIEW_CHARS])
        if not response.ok:
            raise ApiError(error_detail(response, "Failed to execute script."), status_code=response.status_code)
        return classify_output(raw)

    def probe_endpoints(self, testcase_id: str, script_type: str = "playwright") -> List[LogEntry]:
        """Check that the plan and execute endpoints answer; never raises."""

        entries: List[LogEntry] = [LogEntry.create("Verifying endpoints...")]
        checks = (
            ("Test Plan", "TestPlan", {"testCaseId": testcase_id}),
            ("Execute Code", "ExecuteCode", {"script_type": script_type}),
        )
        for label, key, params in checks:
            try:
                response = self.get(key, params)
            except ApiError as exc:
                entries.append(LogEntry.create(f"{label} endpoint verification failed: {exc}", LogStatus.ERROR))
                continue
            if response.ok:
                entries.append(LogEntry.create(f"{label} endpoint: Connected", LogStatus.SUCCESS))
            else:
                entries.append(LogEntry.create(f"{label} endpoint: Failed", LogStatus.ERROR))
        return entries

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _request(
        self, method: str, key: str, params: Optional[Mapping[str, Optional[str]]], **kwargs: Any
    ) -> requests.Response:
        url = self.url_for(key, params)
        LOGGER.debug("%s %s", method, url)
        try:
            return self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise ApiError(f"Request to {url} failed: {exc}") from exc
