# src/neo4jmapper/orm/finders.py
"""
Neo4jMapper Finders - Class-Level Queries Over Labels

Turns type-level calls (``User.all()``, ``User.first()``,
``User.find_by(email=...)``) into Cypher over the type's label, and turns the
returned nodes back into record instances through the label registry.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, List, Optional, Union, TYPE_CHECKING

from neo4jmapper.core.labels import LabelRegistry
from neo4jmapper.core.node import PersistedNode
from neo4jmapper.core.query import NodeQuery, quote_identifier
from neo4jmapper.exceptions import InvalidArgumentError, RecordNotFound

if TYPE_CHECKING:
    from neo4jmapper.orm.engine import GraphEngine


logger = logging.getLogger(__name__)

EngineResolver = Callable[[Optional[type]], Optional["GraphEngine"]]


class Finder:
    """
    Query translator for one label registry.

    Every query is rooted at the variable ``n`` and filtered by the primary
    label of the type. Ordering is by ascending internal node id, the only
    total order a label's nodes are guaranteed to have.
    """

    def __init__(self, registry: LabelRegistry, engine_resolver: EngineResolver):
        self.registry = registry
        self._engine_resolver = engine_resolver

    # =========================================================================
    # QUERY CONSTRUCTION
    # =========================================================================

    def query_as(self, cls: type, variable: str = "n") -> NodeQuery:
        """Start a query over the nodes carrying ``cls``'s label."""
        return NodeQuery(
            self.registry.label_for(cls),
            variable=variable,
            engine_factory=lambda: self.engine_for(cls),
            wrap=lambda node: self.wrap_node(node, cls),
        )

    def all(self, cls: type) -> NodeQuery:
        """
        Every node of the type.

        The returned query is lazy; each ``async for`` over it queries again.
        """
        return self.query_as(cls).pluck("n")

    async def first(self, cls: type) -> Optional[Any]:
        return await self.query_as(cls).pluck("n").order_by_id().limit(1).first()

    async def last(self, cls: type) -> Optional[Any]:
        total = await self.count(cls)
        offset = 0 if total == 0 else total - 1
        return await self.query_as(cls).pluck("n").order_by_id().skip(offset).limit(1).first()

    async def count(self, cls: type) -> int:
        result = await self.query_as(cls).returning("count(n) AS count").scalar("count")
        return int(result or 0)

    async def find(self, cls: Optional[type], identifier: Union[str, int]) -> Optional[Any]:
        """
        Load a node by internal id.

        No label filter is applied: any node with that id is returned, wrapped
        as whatever registered type its labels resolve to.

        Raises:
            InvalidArgumentError: ``identifier`` is not a str or int
        """
        neo_id = self._coerce_identifier(identifier)
        engine = self.engine_for(cls)
        node = await engine.load_node(neo_id)
        if node is None:
            return None
        return self.wrap_node(node, engine=engine)

    async def find_by(self, cls: type, **conditions: Any) -> Optional[Any]:
        """First node of the type whose properties equal ``conditions``. No implied ordering."""
        return await self._find_by_query(cls, conditions).first()

    async def find_by_or_raise(self, cls: type, **conditions: Any) -> Any:
        """
        Like ``find_by`` but raises when nothing matches.

        Raises:
            RecordNotFound: carrying the Cypher that returned no rows
        """
        query = self._find_by_query(cls, conditions)
        result = await query.first()
        if result is None:
            raise RecordNotFound(query.to_cypher(), query.parameters)
        return result

    async def destroy_all(self, cls: type) -> None:
        """
        Delete every node of the type together with its relationships.

        Two statements run one after the other: the first removes nodes that
        have relationships along with those relationships, the second removes
        what is left. They are not atomic; rerunning finishes a partial delete.
        """
        label = quote_identifier(self.registry.label_for(cls))
        engine = self.engine_for(cls)
        await engine.run(f"MATCH (n:{label})-[r]-() DELETE n, r")
        await engine.run(f"MATCH (n:{label}) DELETE n")
        logger.info("Destroyed all %s nodes", self.registry.label_for(cls))

    # =========================================================================
    # RESULT WRAPPING
    # =========================================================================

    def wrap_node(self, node: Any, cls: Optional[type] = None, engine: Optional["GraphEngine"] = None) -> Any:
        """
        Turn a driver node into a record instance.

        Picks the registered type whose mapped labels cover most of the node's
        labels. When ``cls`` is given, only types that carry ``cls``'s label
        are considered. Nodes no registered type claims come back as
        ``PersistedNode``.
        """
        persisted = node if isinstance(node, PersistedNode) else PersistedNode.from_driver_node(
            node, engine or self.engine_for(cls, required=False)
        )
        target = self.type_for_labels(persisted.label_set, cls)
        if target is None or not hasattr(target, "_from_persisted_node"):
            return persisted
        return target._from_persisted_node(persisted)

    def type_for_labels(self, labels: Iterable[str], cls: Optional[type] = None) -> Optional[type]:
        labels = set(labels)
        candidates: List[type] = []
        for label in sorted(labels):
            found = self.registry.type_for(label)
            if found is not None and found not in candidates:
                candidates.append(found)

        if cls is not None:
            primary = self.registry.label_for(cls)
            candidates = [c for c in candidates if primary in self.registry.mapped_label_names(c)]
            if not candidates and primary in labels:
                return cls

        if not candidates:
            return None
        return max(candidates, key=lambda c: len(labels.intersection(self.registry.mapped_label_names(c))))

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def engine_for(self, cls: Optional[type], required: bool = True) -> Optional["GraphEngine"]:
        engine = self._engine_resolver(cls)
        if engine is None and required:
            raise ConnectionError(
                "No GraphEngine available. Connect one with `await engine.connect()` "
                "or bind one to the entity with @graph_entity(engine=...)."
            )
        return engine

    def _find_by_query(self, cls: type, conditions: dict) -> NodeQuery:
        return self.query_as(cls).where(**conditions).pluck("n").limit(1)

    @staticmethod
    def _coerce_identifier(identifier: Any) -> int:
        if isinstance(identifier, bool) or not isinstance(identifier, (str, int)):
            raise InvalidArgumentError(
                f"Unknown argument {type(identifier).__name__} in find method, expected str or int"
            )
        try:
            return int(identifier)
        except ValueError as e:
            raise InvalidArgumentError(f"Cannot use {identifier!r} as a node id") from e
