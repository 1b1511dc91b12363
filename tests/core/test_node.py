# tests/core/test_node.py

import pytest
from pydantic import ValidationError

from neo4jmapper.core.node import PersistedNode


class TestPersistedNodeModel:
    def test_from_driver_node(self, fake_engine):
        raw = fake_engine.add_node(3, "User", "Admin", name="Alice")

        node = PersistedNode.from_driver_node(raw, fake_engine)

        assert node.neo_id == 3
        assert node.element_id == "4:test:3"
        assert node.labels() == frozenset({"User", "Admin"})
        assert node.get_property("name") == "Alice"
        assert node.engine is fake_engine

    def test_labels_coerced(self):
        assert PersistedNode(neo_id=1, label_set="User").label_set == frozenset({"User"})
        assert PersistedNode(neo_id=1, label_set=None).label_set == frozenset()

    def test_negative_id_rejected(self):
        with pytest.raises(ValidationError):
            PersistedNode(neo_id=-1)

    def test_non_string_property_keys_rejected(self):
        with pytest.raises(ValidationError):
            PersistedNode(neo_id=1, properties={1: "x"})


@pytest.mark.asyncio
class TestPersistedNodeLabels:
    async def test_add_label(self, fake_engine):
        raw = fake_engine.add_node(1, "User")
        node = PersistedNode.from_driver_node(raw, fake_engine)

        await node.add_label("Admin", "Auditor")

        assert node.labels() == frozenset({"User", "Admin", "Auditor"})
        assert raw.labels == frozenset({"User", "Admin", "Auditor"})
        query, params = fake_engine.queries[-1]
        assert query == "MATCH (n) WHERE id(n) = $neo_id SET n:`Admin`:`Auditor`"
        assert params == {"neo_id": 1}

    async def test_remove_label(self, fake_engine):
        raw = fake_engine.add_node(1, "User", "Admin")
        node = PersistedNode.from_driver_node(raw, fake_engine)

        await node.remove_label("Admin")

        assert node.labels() == frozenset({"User"})
        assert raw.labels == frozenset({"User"})

    async def test_no_labels_is_a_no_op(self, fake_engine):
        node = PersistedNode.from_driver_node(fake_engine.add_node(1, "User"), fake_engine)
        await node.add_label()
        await node.remove_label()
        assert fake_engine.queries == []

    async def test_requires_engine(self):
        node = PersistedNode(neo_id=1, label_set=["User"])
        with pytest.raises(ConnectionError):
            await node.add_label("Admin")
