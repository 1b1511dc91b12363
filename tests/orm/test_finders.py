# tests/orm/test_finders.py
"""
Tests for the finder operations against the in-memory fake engine.
"""

import pytest

from neo4jmapper.core.labels import LabelRegistry
from neo4jmapper.core.node import PersistedNode
from neo4jmapper.exceptions import InvalidArgumentError, RecordNotFound
from neo4jmapper.orm.finders import Finder


class Article:
    """Mapped type without its own constructor hook: results stay PersistedNode."""


class Wrapped:
    """Mapped type that builds itself from a node."""

    def __init__(self, node):
        self.node = node

    @classmethod
    def _from_persisted_node(cls, node):
        return cls(node)


class Special(Wrapped):
    pass


@pytest.fixture
def finder(registry: LabelRegistry, fake_engine) -> Finder:
    registry.register(Article)
    return Finder(registry, lambda cls: fake_engine)


def ids(results):
    return [r.neo_id for r in results]


@pytest.mark.asyncio
class TestAllAndCount:
    async def test_all(self, finder, fake_engine):
        fake_engine.add_node(1, "Article", title="a")
        fake_engine.add_node(2, "Other")
        fake_engine.add_node(3, "Article", title="b")

        results = await finder.all(Article).to_list()

        assert ids(results) == [1, 3]
        assert all(isinstance(r, PersistedNode) for r in results)

    async def test_all_is_restartable(self, finder, fake_engine):
        query = finder.all(Article)
        assert [r async for r in query] == []

        fake_engine.add_node(1, "Article")
        assert ids([r async for r in query]) == [1]

    async def test_count(self, finder, fake_engine):
        for neo_id in range(5):
            fake_engine.add_node(neo_id, "Article")
        fake_engine.add_node(99, "Other")

        assert await finder.count(Article) == 5
        assert fake_engine.queries[-1][0] == "MATCH (n:`Article`) RETURN count(n) AS count"

    async def test_count_empty(self, finder):
        assert await finder.count(Article) == 0


@pytest.mark.asyncio
class TestFirstAndLast:
    async def test_boundaries(self, finder, fake_engine):
        for neo_id in (9, 12, 5):
            fake_engine.add_node(neo_id, "Article")

        assert (await finder.first(Article)).neo_id == 5
        assert (await finder.last(Article)).neo_id == 12

    async def test_last_query_shape(self, finder, fake_engine):
        for neo_id in (5, 9, 12):
            fake_engine.add_node(neo_id, "Article")

        await finder.last(Article)

        query, params = fake_engine.queries[-1]
        assert query == "MATCH (n:`Article`) RETURN n ORDER BY id(n) SKIP $skip LIMIT $limit"
        assert params == {"skip": 2, "limit": 1}

    async def test_empty(self, finder, fake_engine):
        assert await finder.first(Article) is None
        assert await finder.last(Article) is None
        # The degenerate query still runs with a zero offset
        assert fake_engine.queries[-1][1] == {"skip": 0, "limit": 1}

    async def test_single_node(self, finder, fake_engine):
        fake_engine.add_node(4, "Article")
        assert (await finder.first(Article)).neo_id == (await finder.last(Article)).neo_id == 4


@pytest.mark.asyncio
class TestFind:
    async def test_by_int_and_str(self, finder, fake_engine):
        fake_engine.add_node(7, "Article")

        assert (await finder.find(Article, 7)).neo_id == 7
        assert (await finder.find(Article, "7")).neo_id == 7

    async def test_ignores_label(self, finder, fake_engine):
        fake_engine.add_node(8, "Unmapped")
        found = await finder.find(Article, 8)
        assert found.neo_id == 8
        assert found.labels() == frozenset({"Unmapped"})

    async def test_missing(self, finder):
        assert await finder.find(Article, 1234) is None

    @pytest.mark.parametrize("identifier", [1.5, object(), None, [1], True])
    async def test_invalid_identifier(self, finder, identifier):
        with pytest.raises(InvalidArgumentError):
            await finder.find(Article, identifier)

    async def test_non_numeric_string(self, finder):
        with pytest.raises(InvalidArgumentError):
            await finder.find(Article, "abc")


@pytest.mark.asyncio
class TestFindBy:
    async def test_match(self, finder, fake_engine):
        fake_engine.add_node(1, "Article", title="a", draft=True)
        fake_engine.add_node(2, "Article", title="b", draft=False)

        found = await finder.find_by(Article, title="b")
        assert found.neo_id == 2

    async def test_all_conditions_must_match(self, finder, fake_engine):
        fake_engine.add_node(1, "Article", title="a", draft=True)

        assert await finder.find_by(Article, title="a", draft=False) is None
        assert (await finder.find_by(Article, title="a", draft=True)).neo_id == 1

    async def test_or_raise_returns_same_node(self, finder, fake_engine):
        fake_engine.add_node(1, "Article", title="a")

        lenient = await finder.find_by(Article, title="a")
        strict = await finder.find_by_or_raise(Article, title="a")
        assert lenient.neo_id == strict.neo_id == 1

    async def test_or_raise_no_match(self, finder, fake_engine):
        fake_engine.add_node(1, "Article", title="a")

        assert await finder.find_by(Article, title="zzz") is None
        with pytest.raises(RecordNotFound) as excinfo:
            await finder.find_by_or_raise(Article, title="zzz")

        error = excinfo.value
        assert error.query == "MATCH (n:`Article`) WHERE n.`title` = $p0 RETURN n LIMIT $limit"
        assert error.parameters == {"p0": "zzz", "limit": 1}
        assert str(error).endswith("returned no results")


@pytest.mark.asyncio
class TestDestroyAll:
    async def test_removes_nodes_with_and_without_relationships(self, finder, fake_engine):
        fake_engine.add_node(1, "Article", has_relationships=True)
        fake_engine.add_node(2, "Article")
        fake_engine.add_node(3, "Other", has_relationships=True)

        await finder.destroy_all(Article)

        assert await finder.count(Article) == 0
        assert [n.id for n in fake_engine.nodes] == [3]

    async def test_two_statements(self, finder, fake_engine):
        await finder.destroy_all(Article)
        statements = [q for q, _ in fake_engine.queries]
        assert statements == [
            "MATCH (n:`Article`)-[r]-() DELETE n, r",
            "MATCH (n:`Article`) DELETE n",
        ]

    async def test_rerunnable(self, finder, fake_engine):
        fake_engine.add_node(1, "Article")
        await finder.destroy_all(Article)
        await finder.destroy_all(Article)
        assert await finder.count(Article) == 0


class TestWrapping:
    def test_queried_type(self, registry, fake_engine):
        registry.register(Wrapped)
        finder = Finder(registry, lambda cls: fake_engine)

        result = finder.wrap_node(fake_engine.add_node(1, "Wrapped"), Wrapped)

        assert isinstance(result, Wrapped)
        assert result.node.neo_id == 1

    def test_most_specific_type_wins(self, registry, fake_engine):
        registry.register(Wrapped)
        registry.register(Special)
        registry.set_includes(Special, [Wrapped])
        finder = Finder(registry, lambda cls: fake_engine)

        node = fake_engine.add_node(1, "Wrapped", "Special")

        assert type(finder.wrap_node(node, Wrapped)) is Special
        assert type(finder.wrap_node(node)) is Special

    def test_unregistered_queried_type(self, registry, fake_engine):
        finder = Finder(registry, lambda cls: fake_engine)
        result = finder.wrap_node(fake_engine.add_node(1, "Wrapped"), Wrapped)
        assert isinstance(result, Wrapped)

    def test_unmapped_labels(self, registry, fake_engine):
        finder = Finder(registry, lambda cls: fake_engine)
        result = finder.wrap_node(fake_engine.add_node(1, "Mystery"))
        assert isinstance(result, PersistedNode)


@pytest.mark.asyncio
async def test_no_engine(registry):
    finder = Finder(registry, lambda cls: None)
    with pytest.raises(ConnectionError, match="No GraphEngine"):
        await finder.count(Article)
