# src/neo4jmapper/__init__.py
r"""
Neo4jMapper - Label-Based Object Mapping for Neo4j

Neo4jMapper maps Pydantic models onto Neo4j node labels:
- Every GraphEntity subclass is registered under a label (its class name by default)
- Extra labels through declared includes
- Async finders: all, first, last, count, find, find_by, destroy_all
- Index creation that waits for a connection when none is available yet

Example:
    ```python
    from neo4jmapper import GraphEntity, create_graph_engine

    class User(GraphEntity, indexes=("email",)):
        name: str
        email: str

    engine = create_graph_engine("bolt://localhost:7687", ("neo4j", "secret"))
    async with engine:
        print(await User.count())
        alice = await User.find_by(email="alice@example.com")
        newest = await User.last()
        async for user in User.all():
            print(user.name, user.labels())
    ```
"""

from neo4jmapper.config import Neo4jSettings
from neo4jmapper.core.labels import LabelRegistry, get_registry
from neo4jmapper.core.node import PersistedNode
from neo4jmapper.core.query import NodeQuery
from neo4jmapper.exceptions import (
    Neo4jMapperError,
    InvalidArgumentError,
    InvalidQueryError,
    LabelConflictError,
    NotPersistedError,
    RecordNotFound,
)
from neo4jmapper.orm.entities import GraphEntity, graph_entity
from neo4jmapper.orm.engine import (
    GraphEngine,
    SessionEvent,
    create_graph_engine,
    create_graph_engine_from_settings,
)

__version__ = "0.1.0"

__all__ = [
    # Entities
    "GraphEntity",
    "graph_entity",

    # Labels and queries
    "LabelRegistry",
    "get_registry",
    "NodeQuery",
    "PersistedNode",

    # Engine
    "GraphEngine",
    "SessionEvent",
    "Neo4jSettings",
    "create_graph_engine",
    "create_graph_engine_from_settings",

    # Errors
    "Neo4jMapperError",
    "InvalidArgumentError",
    "InvalidQueryError",
    "LabelConflictError",
    "NotPersistedError",
    "RecordNotFound",

    "__version__",
]
