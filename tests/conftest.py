"""Pytest configuration and shared in-memory collaborators.

No sys.path hacks - tests should import from installed fieldsync package.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pytest

from fieldsync.kernel.models import DestinationField, ProjectedRecord


def pytest_addoption(parser):
    """Add gated perf test option."""
    parser.addoption(
        "--run-perf",
        action="store_true",
        default=False,
        help="Run performance sentinel benchmarks (gated)."
    )


def pytest_collection_modifyitems(config, items):
    """Skip perf-marked tests unless --run-perf is set."""
    if config.getoption("--run-perf"):
        return
    skip_perf = pytest.mark.skip(reason="perf tests gated; pass --run-perf")
    for item in items:
        if "perf" in item.keywords:
            item.add_marker(skip_perf)


class InMemoryJSONClient:
    """JSONClient answering from canned responses.

    A route is keyed by (method, path). Its value is either one response,
    a list of responses returned in order (one per call, for pagination) or
    a callable receiving the params/body.
    """

    def __init__(self, routes: Optional[Dict[Tuple[str, str], Any]] = None):
        self.routes = dict(routes or {})
        self.calls: List[Tuple[str, str, Optional[Dict[str, Any]]]] = []

    def _answer(self, method: str, path: str, payload: Optional[Dict[str, Any]]) -> Any:
        self.calls.append((method, path, payload))
        route = self.routes[(method, path)]
        if callable(route):
            return route(payload or {})
        if isinstance(route, list):
            return route.pop(0)
        return route

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._answer("GET", path, params)

    async def post(self, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        return self._answer("POST", path, body)


class InMemoryCollection:
    """DestinationCollection keeping fields, items and bookkeeping in dicts."""

    def __init__(self, fail_on: Sequence[str] = ()):
        self.fields: List[DestinationField] = []
        self.items: Dict[str, ProjectedRecord] = {}
        self.bookkeeping: Dict[str, Optional[str]] = {}
        self.fail_on = set(fail_on)
        self.calls: List[str] = []
        self.removed: List[str] = []
        self.added: List[str] = []

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise RuntimeError(f"{name} failed")

    async def get_fields(self) -> List[DestinationField]:
        self._record("get_fields")
        return list(self.fields)

    async def set_fields(self, fields: Sequence[DestinationField]) -> None:
        self._record("set_fields")
        self.fields = list(fields)

    async def get_item_ids(self) -> List[str]:
        self._record("get_item_ids")
        return list(self.items)

    async def remove_items(self, item_ids: Sequence[str]) -> None:
        self._record("remove_items")
        self.removed.extend(item_ids)
        for item_id in item_ids:
            self.items.pop(item_id, None)

    async def add_items(self, items: Sequence[ProjectedRecord]) -> None:
        self._record("add_items")
        for item in items:
            self.added.append(item.id)
            self.items[item.id] = item.model_copy(deep=True)

    async def get_bookkeeping(self, keys: Sequence[str]) -> Dict[str, Optional[str]]:
        self._record("get_bookkeeping")
        return {key: self.bookkeeping.get(key) for key in keys}

    async def set_bookkeeping(self, values: Dict[str, Optional[str]]) -> None:
        self._record("set_bookkeeping")
        self.bookkeeping.update(values)


@pytest.fixture
def collection() -> InMemoryCollection:
    return InMemoryCollection()


@pytest.fixture
def make_client() -> Callable[..., InMemoryJSONClient]:
    return InMemoryJSONClient


@pytest.fixture
def make_collection() -> Callable[..., InMemoryCollection]:
    return InMemoryCollection
