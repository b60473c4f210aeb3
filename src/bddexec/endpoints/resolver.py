"""Logical endpoint names resolved into concrete request targets."""
from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Optional, Tuple, Union
from urllib.parse import quote

DEFAULT_ENDPOINTS: Tuple[Tuple[str, str], ...] = (
    ("GetTestSteps", "testcases/{testCaseId}/steps"),
    ("GetTestCases", "projects/{projectId}/testcases"),
    ("GetProjects", "my-projects"),
    ("CreateProject", "project/"),
    ("Login", "login/"),
    ("TestPlan", "testplan/{testCaseId}"),
    ("ExecuteCode", "execute-code?script_type={script_type}"),
    ("ExecutionLogs", "execution"),
    ("ExecuteStream", "testcases/{testCaseId}/execute-ws?script_type={script_type}"),
)

EndpointSource = Union[Mapping[str, str], Iterable[Tuple[str, str]], None]


class EndpointTable(Mapping[str, str]):
    """Immutable, case-insensitive name -> template table.

    Built once from ``(name, template)`` pairs; the first occurrence of a name
    wins. An empty source installs :data:`DEFAULT_ENDPOINTS`.
    """

    def __init__(self, source: EndpointSource = None) -> None:
        pairs = list(_iter_pairs(source))
        if not pairs:
            pairs = list(DEFAULT_ENDPOINTS)
        names: dict[str, str] = {}
        templates: dict[str, str] = {}
        for name, template in pairs:
            key = name.casefold()
            if key in templates:
                continue
            names[key] = name
            templates[key] = template
        self._names = MappingProxyType(names)
        self._templates = MappingProxyType(templates)

    def __getitem__(self, name: str) -> str:
        return self._templates[name.casefold()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.casefold() in self._templates

    def __iter__(self) -> Iterator[str]:
        return iter(self._names.values())

    def __len__(self) -> int:
        return len(self._templates)

    def __repr__(self) -> str:
        return f"EndpointTable({dict(self.items())!r})"


def _iter_pairs(source: EndpointSource) -> Iterator[Tuple[str, str]]:
    if not source:
        return
    items = source.items() if isinstance(source, Mapping) else source
    for name, template in items:
        yield str(name), str(template)


class EndpointResolver:
    """Turns a logical operation name plus parameters into a request target."""

    def __init__(self, table: Optional[EndpointTable] = None) -> None:
        self._table = table if table is not None else EndpointTable()

    @property
    def table(self) -> EndpointTable:
        return self._table

    def resolve(self, key: str, params: Optional[Mapping[str, Optional[str]]] = None) -> str:
        """Resolve ``key``; unknown keys are used as literal templates.

        Each ``{name}`` placeholder is replaced by the percent-encoded value.
        Placeholders without a parameter are left as-is.
        """

        template = self._table.get(key, key)
        for name, value in (params or {}).items():
            template = template.replace("{" + name + "}", quote("" if value is None else str(value), safe=""))
        return template


def stream_url(base_url: str, path: str) -> str:
    """Build a WebSocket URL for ``path`` relative to an HTTP ``base_url``."""

    if path.startswith(("ws://", "wss://")):
        return path
    base = base_url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    elif not base.startswith(("ws://", "wss://")):
        base = "ws://" + base
    return f"{base}/{path.lstrip('/')}"
