# tests/conftest.py
"""
Shared fixtures: a fake engine that understands the handful of Cypher shapes
the finders emit, backed by an in-memory list of nodes.
"""

import re
from typing import Any, Dict, Iterable, List, Optional

import pytest

from neo4jmapper.core.labels import LabelRegistry
from neo4jmapper.orm import engine as engine_module


_IDENT = r"`((?:[^`]|``)+)`"
_MATCH = re.compile(r"^MATCH \(n(?::" + _IDENT + r")?\)(-\[r\]-\(\))?")
_CONDITION = re.compile(r"n\." + _IDENT + r" = \$(\w+)")


def _unquote(name: str) -> str:
    return name.replace("``", "`")


class FakeNode:
    """Stands in for ``neo4j.graph.Node``."""

    def __init__(self, neo_id: int, labels: Iterable[str], properties: Optional[Dict[str, Any]] = None,
                 has_relationships: bool = False):
        self.id = neo_id
        self.element_id = f"4:test:{neo_id}"
        self.labels = frozenset(labels)
        self._properties = dict(properties or {})
        self.has_relationships = has_relationships

    def items(self):
        return self._properties.items()


class FakeRecord:
    """Stands in for ``neo4j.Record``: indexable by position and by key."""

    def __init__(self, **values: Any):
        self._keys = list(values)
        self._values = list(values.values())

    def __getitem__(self, key):
        if isinstance(key, int):
            return self._values[key]
        return self._values[self._keys.index(key)]


class FakeEngine:
    """In-memory engine implementing the methods the mapper calls."""

    def __init__(self, connected: bool = True):
        self.connected = connected
        self.nodes: List[FakeNode] = []
        self.queries: List[tuple] = []
        self.indexes: Dict[str, List[List[str]]] = {}
        self.created_indexes: List[tuple] = []

    def add_node(self, neo_id: int, *labels: str, has_relationships: bool = False, **properties: Any) -> FakeNode:
        node = FakeNode(neo_id, labels, properties, has_relationships)
        self.nodes.append(node)
        return node

    async def run(self, query: str, parameters: Optional[Dict[str, Any]] = None) -> List[FakeRecord]:
        parameters = parameters or {}
        self.queries.append((query, parameters))

        match = _MATCH.match(query)
        assert match, f"unsupported query: {query}"
        label = _unquote(match.group(1)) if match.group(1) else None
        nodes = [n for n in self.nodes if label is None or label in n.labels]

        if " DELETE " in query:
            doomed = [n for n in nodes if n.has_relationships] if match.group(2) else nodes
            self.nodes = [n for n in self.nodes if n not in doomed]
            return []

        if "id(n) = $neo_id" in query:
            nodes = [n for n in nodes if n.id == parameters["neo_id"]]
        for prop, param in _CONDITION.findall(query):
            nodes = [n for n in nodes if dict(n.items()).get(_unquote(prop)) == parameters[param]]

        if " SET n" in query or " REMOVE n" in query:
            clause = query.split(" SET n" if " SET n" in query else " REMOVE n", 1)[1]
            changed = {_unquote(l) for l in re.findall(_IDENT, clause)}
            for node in nodes:
                node.labels = node.labels | changed if " SET n" in query else node.labels - changed
            return []

        if "RETURN count(n) AS count" in query:
            return [FakeRecord(count=len(nodes))]

        if "ORDER BY id(n)" in query:
            nodes = sorted(nodes, key=lambda n: n.id)
        if "skip" in parameters:
            nodes = nodes[parameters["skip"]:]
        if "limit" in parameters:
            nodes = nodes[:parameters["limit"]]
        return [FakeRecord(n=node) for node in nodes]

    async def load_node(self, neo_id: int) -> Optional[FakeNode]:
        return next((n for n in self.nodes if n.id == neo_id), None)

    async def index_property_keys(self, label: str) -> List[List[str]]:
        return [list(keys) for keys in self.indexes.get(label, [])]

    async def create_index(self, label: str, property_name: str) -> None:
        self.created_indexes.append((label, property_name))
        self.indexes.setdefault(label, []).append([property_name])


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def make_engine():
    """Factory for extra engines in tests that need more than one."""
    return FakeEngine


@pytest.fixture
def registry() -> LabelRegistry:
    """A registry of its own, so tests do not see each other's types."""
    registry = LabelRegistry()
    yield registry
    registry.reset()


@pytest.fixture(autouse=True)
def isolate_session_state():
    """Forget the current engine and session listeners around every test."""
    engine_module.set_current_engine(None)
    engine_module.clear_listeners()
    yield
    engine_module.set_current_engine(None)
    engine_module.clear_listeners()
