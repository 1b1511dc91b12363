# src/neo4jmapper/exceptions.py
"""
Neo4jMapper exception hierarchy.

Errors coming from the neo4j driver itself are never wrapped; they reach the
caller unchanged.
"""

from typing import Any, Dict, Optional


class Neo4jMapperError(Exception):
    """Base class for all errors raised by neo4jmapper."""


class InvalidArgumentError(Neo4jMapperError, TypeError):
    """An argument of an unsupported type was passed to a finder."""


class InvalidQueryError(Neo4jMapperError, ValueError):
    """A query could not be built from the given clauses."""


class LabelConflictError(Neo4jMapperError, ValueError):
    """A type tried to change an explicit label that was already set."""


class NotPersistedError(Neo4jMapperError):
    """A label operation was attempted on an entity without a database node."""


class RecordNotFound(Neo4jMapperError, LookupError):
    """
    Raised by ``find_by_or_raise`` when nothing matches.

    Carries the Cypher that returned no rows so it can be replayed by hand.
    """

    def __init__(self, query: str, parameters: Optional[Dict[str, Any]] = None):
        self.query = query
        self.parameters = dict(parameters or {})
        super().__init__(f"{query} returned no results")
