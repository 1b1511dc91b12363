# src/neo4jmapper/core/query.py
"""
Neo4jMapper Node Query Builder

A small chainable builder that renders parameterised Cypher for queries over
the nodes of one label. Values never get spliced into the query text; they go
through the parameter map. Labels and property names are backtick-quoted.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from neo4jmapper.exceptions import InvalidQueryError

logger = logging.getLogger(__name__)


def quote_identifier(name: str) -> str:
    """Backtick-quote a label or property name for use in Cypher."""
    name = str(name)
    if not name:
        raise InvalidQueryError("Identifier cannot be empty")
    return "`" + name.replace("`", "``") + "`"


class NodeQuery:
    """
    Query builder for the nodes of a label.

    Clause methods mutate the query and return it for chaining. Awaiting
    ``to_list()``/``first()``/``scalar()`` or iterating with ``async for`` runs
    the query; every iteration runs it again, nothing is cached.

    Example:
        ```python
        query = NodeQuery("User", engine_factory=get_current_engine)
        query.where(email="alice@example.com").order_by_id().limit(1)
        user = await query.first()
        ```
    """

    def __init__(
        self,
        label: Optional[str] = None,
        variable: str = "n",
        engine_factory: Optional[Callable[[], Any]] = None,
        wrap: Optional[Callable[[Any], Any]] = None,
    ):
        self.label = label
        self.variable = variable
        self._engine_factory = engine_factory
        self._wrap = wrap
        self._conditions: List[str] = []
        self._parameters: Dict[str, Any] = {}
        self._order_by: List[str] = []
        self._skip: Optional[int] = None
        self._limit: Optional[int] = None
        self._return: Optional[str] = None

    # =========================================================================
    # CLAUSES
    # =========================================================================

    def where(self, **conditions: Any) -> NodeQuery:
        """Require each property to equal the given value."""
        for prop, value in conditions.items():
            param = f"p{len(self._parameters)}"
            self._conditions.append(f"{self.variable}.{quote_identifier(prop)} = ${param}")
            self._parameters[param] = value
        return self

    def where_id(self, neo_id: int) -> NodeQuery:
        """Match the node with the given internal id."""
        self._conditions.append(f"id({self.variable}) = $neo_id")
        self._parameters["neo_id"] = neo_id
        return self

    def order_by(self, *expressions: str) -> NodeQuery:
        """Order by raw Cypher expressions, e.g. ``"n.name DESC"``."""
        self._order_by.extend(expressions)
        return self

    def order_by_id(self) -> NodeQuery:
        """Order ascending by internal node id."""
        return self.order_by(f"id({self.variable})")

    def skip(self, count: int) -> NodeQuery:
        self._skip = self._check_count("skip", count)
        return self

    def limit(self, count: int) -> NodeQuery:
        self._limit = self._check_count("limit", count)
        return self

    def pluck(self, variable: Optional[str] = None) -> NodeQuery:
        """Project the node variable itself."""
        variable = variable or self.variable
        if variable != self.variable:
            raise InvalidQueryError(f"Unknown variable {variable!r}, query is rooted at {self.variable!r}")
        self._return = variable
        return self

    def returning(self, expression: str) -> NodeQuery:
        """Project an arbitrary expression, e.g. ``"count(n) AS count"``."""
        self._return = expression
        return self

    # =========================================================================
    # RENDERING
    # =========================================================================

    @property
    def parameters(self) -> Dict[str, Any]:
        params = dict(self._parameters)
        if self._skip is not None:
            params["skip"] = self._skip
        if self._limit is not None:
            params["limit"] = self._limit
        return params

    def to_cypher(self) -> str:
        label = f":{quote_identifier(self.label)}" if self.label else ""
        parts = [f"MATCH ({self.variable}{label})"]
        if self._conditions:
            parts.append("WHERE " + " AND ".join(self._conditions))
        parts.append(f"RETURN {self._return or self.variable}")
        if self._order_by:
            parts.append("ORDER BY " + ", ".join(self._order_by))
        if self._skip is not None:
            parts.append("SKIP $skip")
        if self._limit is not None:
            parts.append("LIMIT $limit")
        return " ".join(parts)

    def __str__(self) -> str:
        return self.to_cypher()

    def __repr__(self) -> str:
        return f"NodeQuery({self.to_cypher()!r}, parameters={self.parameters!r})"

    # =========================================================================
    # EXECUTION
    # =========================================================================

    async def execute(self) -> List[Any]:
        """Run the query and return the raw driver records."""
        engine = self._get_engine()
        return await engine.run(self.to_cypher(), self.parameters)

    async def to_list(self) -> List[Any]:
        """Run the query and return the first column of every row, wrapped."""
        records = await self.execute()
        return [self._wrap_value(record[0]) for record in records]

    async def first(self) -> Optional[Any]:
        results = await self.to_list()
        return results[0] if results else None

    async def scalar(self, key: Any = 0) -> Any:
        """Run the query and return one value of the first row (None if no rows)."""
        records = await self.execute()
        if not records:
            return None
        return records[0][key]

    def __aiter__(self) -> AsyncIterator[Any]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Any]:
        for value in await self.to_list():
            yield value

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _get_engine(self) -> Any:
        if self._engine_factory is None:
            raise InvalidQueryError("Query has no engine to run against")
        return self._engine_factory()

    def _wrap_value(self, value: Any) -> Any:
        return self._wrap(value) if self._wrap else value

    @staticmethod
    def _check_count(clause: str, count: int) -> int:
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise InvalidQueryError(f"{clause} expects a non-negative integer, got {count!r}")
        return count
