# src/neo4jmapper/orm/__init__.py
"""
Neo4jMapper ORM Module

Label-mapped entities, their finders, index management and the engine that
connects them to Neo4j.
"""

from neo4jmapper.orm.entities import (
    GraphEntity,
    graph_entity,
    get_entity_classes,
    get_entity_by_label
)

from neo4jmapper.orm.engine import (
    GraphEngine,
    SessionEvent,
    add_listener,
    remove_listener,
    get_current_engine,
    create_graph_engine,
    create_graph_engine_from_settings
)

from neo4jmapper.orm.finders import Finder
from neo4jmapper.orm.indexes import IndexManager, IndexRequest

__all__ = [
    # Entity system
    "GraphEntity",
    "graph_entity",
    "get_entity_classes",
    "get_entity_by_label",

    # Query translation and indexes
    "Finder",
    "IndexManager",
    "IndexRequest",

    # Engine
    "GraphEngine",
    "SessionEvent",
    "add_listener",
    "remove_listener",
    "get_current_engine",
    "create_graph_engine",
    "create_graph_engine_from_settings",
]
