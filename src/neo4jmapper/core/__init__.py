# src/neo4jmapper/core/__init__.py
"""
Neo4jMapper Core Module

The label registry, the node query builder and the persisted node handle
that the ORM layer is built on.
"""

from neo4jmapper.core.labels import LabelRegistry, get_registry, label_name_for
from neo4jmapper.core.node import PersistedNode
from neo4jmapper.core.query import NodeQuery, quote_identifier

__all__ = [
    "LabelRegistry",
    "get_registry",
    "label_name_for",
    "PersistedNode",
    "NodeQuery",
    "quote_identifier",
]
