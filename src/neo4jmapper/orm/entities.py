# src/neo4jmapper/orm/entities.py
"""
Neo4jMapper GraphEntity - Label-Mapped Pydantic V2 Records

A ``GraphEntity`` subclass is a Pydantic model whose instances correspond to
Neo4j nodes carrying the class's label. Creating the class registers it with
the label registry; class methods query the database through the finders and
the index manager.
"""

from __future__ import annotations

from typing import Any, Callable, ClassVar, FrozenSet, Iterable, Optional, Set, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, PrivateAttr

from neo4jmapper.core.labels import LabelSource, get_registry
from neo4jmapper.core.node import PersistedNode
from neo4jmapper.core.query import NodeQuery
from neo4jmapper.exceptions import NotPersistedError
from neo4jmapper.orm.engine import GraphEngine, get_current_engine
from neo4jmapper.orm.finders import Finder
from neo4jmapper.orm.indexes import IndexDescriptor, IndexManager, IndexRequest


# Type variable for GraphEntity subclasses
EntityType = TypeVar('EntityType', bound='GraphEntity')


class GraphEntityConfig:
    """Configuration for GraphEntity classes."""

    def __init__(
        self,
        includes: Iterable[LabelSource] = (),
        engine: Optional[GraphEngine] = None,
        indexes: Iterable[str] = ()
    ):
        self.includes = tuple(includes)
        self.engine = engine
        self.indexes = tuple(indexes)


def _engine_for(cls: Optional[type]) -> Optional[GraphEngine]:
    """The engine bound to ``cls`` or, failing that, the current engine."""
    config = getattr(cls, '_entity_config', None)
    if config is not None and config.engine is not None:
        return config.engine
    return get_current_engine()


def _inherited_engine(bases: Tuple[type, ...]) -> Optional[GraphEngine]:
    for base in bases:
        config = getattr(base, '_entity_config', None)
        if config is not None and config.engine is not None:
            return config.engine
    return None


_finder = Finder(get_registry(), _engine_for)
_index_manager = IndexManager(get_registry(), _engine_for)


class GraphEntityMeta(type(BaseModel)):
    """
    Metaclass for GraphEntity.

    Pulls the mapping options out of the class keywords, lets Pydantic build
    the model, then registers the class with the label registry.
    """

    def __new__(
        mcs,
        name: str,
        bases: tuple[type, ...],
        namespace: dict[str, Any],
        label: Optional[str] = None,
        includes: Iterable[LabelSource] = (),
        indexes: Iterable[str] = (),
        **kwargs: Any
    ) -> GraphEntityMeta:

        entity_config = namespace.pop('_entity_config', None)
        if entity_config is None:
            # Subclasses keep the engine bound to their parent
            entity_config = GraphEntityConfig(
                includes=includes,
                engine=_inherited_engine(bases),
                indexes=indexes
            )

        cls = super().__new__(mcs, name, bases, namespace, **kwargs)

        # Skip processing for the base GraphEntity class
        if not any(isinstance(base, GraphEntityMeta) for base in bases):
            return cls

        cls._entity_config = entity_config

        registry = get_registry()
        if label is not None:
            registry.set_label_name(cls, label)
        registry.set_includes(cls, entity_config.includes)
        registry.register(cls)

        for property_name in entity_config.indexes:
            _index_manager.declare_index(cls, property_name)

        return cls


class GraphEntity(BaseModel, metaclass=GraphEntityMeta):
    """
    Base class for records stored as labelled Neo4j nodes.

    Features:
    - Label derived from the class name, or set explicitly
    - Extra labels through declared includes
    - Async finders (all, first, last, count, find, find_by)
    - Index management that waits for a connection when needed
    - Label changes on loaded instances

    Example:
        ```python
        class Timestamped(GraphEntity):
            created_at: Optional[datetime] = None

        class User(GraphEntity, label="Person", includes=(Timestamped,), indexes=("email",)):
            name: str = Field(min_length=1)
            email: str

        async with create_graph_engine(uri, auth):
            print(await User.count())
            alice = await User.find_by(email="alice@example.com")
            async for user in User.all():
                print(user.name, user.labels())
        ```
    """

    model_config = ConfigDict(
        validate_assignment=True,
        # Nodes may carry properties the model does not declare
        extra='ignore',
        arbitrary_types_allowed=True,
    )

    _entity_config: ClassVar[GraphEntityConfig]

    _persisted_node: Optional[PersistedNode] = PrivateAttr(default=None)

    # =============================================================================
    # INSTANCE LABEL OPERATIONS
    # =============================================================================

    @property
    def persisted_node(self) -> Optional[PersistedNode]:
        return self._persisted_node

    @property
    def neo_id(self) -> Optional[int]:
        return self._persisted_node.neo_id if self._persisted_node else None

    def is_persisted(self) -> bool:
        return self._persisted_node is not None

    def labels(self) -> FrozenSet[str]:
        """Labels of the underlying node."""
        return self._require_node().labels()

    async def add_label(self, *labels: str) -> None:
        """Add one or more labels to the underlying node."""
        await self._require_node().add_label(*labels)

    async def remove_label(self, *labels: str) -> None:
        """
        Remove one or more labels from the underlying node.

        Be careful not to remove the label that maps the node to this class.
        """
        await self._require_node().remove_label(*labels)

    def _require_node(self) -> PersistedNode:
        if self._persisted_node is None:
            raise NotPersistedError(f"{self.__class__.__name__} instance has no database node")
        return self._persisted_node

    # =============================================================================
    # FINDERS
    # =============================================================================

    @classmethod
    def query_as(cls, variable: str = "n") -> NodeQuery:
        """Start a query over this class's label rooted at ``variable``."""
        return _finder.query_as(cls, variable)

    @classmethod
    def all(cls: Type[EntityType]) -> NodeQuery:
        """All nodes of this class, as a lazy query: `async for x in User.all()`."""
        return _finder.all(cls)

    @classmethod
    async def first(cls: Type[EntityType]) -> Optional[EntityType]:
        """The node with the lowest internal id."""
        return await _finder.first(cls)

    @classmethod
    async def last(cls: Type[EntityType]) -> Optional[EntityType]:
        """The node with the highest internal id."""
        return await _finder.last(cls)

    @classmethod
    async def count(cls) -> int:
        """Number of nodes of this class."""
        return await _finder.count(cls)

    @classmethod
    async def find(cls, identifier: Union[str, int]) -> Optional[Any]:
        """
        Get the node with the given internal id.

        The label is not checked: whatever node has that id is returned.

        Args:
            identifier: Internal node id as int or numeric string

        Returns:
            Entity (or PersistedNode for unmapped labels), None if not found
        """
        return await _finder.find(cls, identifier)

    @classmethod
    async def find_by(cls: Type[EntityType], **conditions: Any) -> Optional[EntityType]:
        """
        First node whose properties equal ``conditions``.

        There is no implied ordering, so if order matters use ``query_as``.
        """
        return await _finder.find_by(cls, **conditions)

    @classmethod
    async def find_by_or_raise(cls: Type[EntityType], **conditions: Any) -> EntityType:
        """Like ``find_by`` but raises ``RecordNotFound`` when nothing matches."""
        return await _finder.find_by_or_raise(cls, **conditions)

    @classmethod
    async def destroy_all(cls) -> None:
        """Delete all nodes of this class and their relationships."""
        await _finder.destroy_all(cls)

    # =============================================================================
    # INDEXES
    # =============================================================================

    @classmethod
    async def index(cls, property_name: str) -> IndexRequest:
        """
        Create an index on ``property_name`` for every label of this class.

        Without a connected engine the index is created when one connects.
        """
        return await _index_manager.ensure_index(cls, property_name)

    @classmethod
    async def has_index(cls, descriptor: IndexDescriptor) -> bool:
        return await _index_manager.has_index(cls, descriptor)

    # =============================================================================
    # LABELS
    # =============================================================================

    @classmethod
    def mapped_label_name(cls) -> str:
        """The label that corresponds to this class."""
        return get_registry().label_for(cls)

    @classmethod
    def mapped_label_names(cls) -> Tuple[str, ...]:
        """All the labels nodes of this class have."""
        return get_registry().mapped_label_names(cls)

    @classmethod
    def set_mapped_label_name(cls, name: str) -> None:
        get_registry().set_label_name(cls, name)

    @classmethod
    def neo4j_engine(cls) -> Optional[GraphEngine]:
        return _engine_for(cls)

    @classmethod
    def _from_persisted_node(cls: Type[EntityType], node: PersistedNode) -> EntityType:
        """Create entity instance from a database node."""
        entity = cls.model_validate(node.properties)
        entity._persisted_node = node
        return entity

    def __repr__(self) -> str:
        status = f"neo_id={self.neo_id}" if self.is_persisted() else "new"
        return f"{self.__class__.__name__}({status})"


# =============================================================================
# DECORATOR FUNCTION
# =============================================================================

def graph_entity(
    cls: Optional[Type] = None,
    *,
    label: Optional[str] = None,
    includes: Iterable[LabelSource] = (),
    engine: Optional[GraphEngine] = None,
    indexes: Iterable[str] = ()
) -> Union[Type[GraphEntity], Callable]:
    """
    Decorator for configuring graph entities.

    Args:
        cls: The class being decorated
        label: Override the default label (class name)
        includes: Other entity classes or label names whose labels this class's nodes also carry
        engine: GraphEngine to use instead of the current one; subclasses defined
                afterwards inherit it
        indexes: Properties to index once an engine is available

    Returns:
        Decorated class or decorator function

    Example:
        ```python
        @graph_entity(label="Person", indexes=("email",))
        class User(GraphEntity):
            name: str = Field(min_length=1)
            email: str
        ```
    """
    def decorator(target_cls: Type) -> Type:
        if not isinstance(target_cls, type) or not issubclass(target_cls, GraphEntity):
            raise TypeError("@graph_entity can only be applied to GraphEntity subclasses")

        registry = get_registry()
        if label is not None:
            registry.set_label_name(target_cls, label)

        config = target_cls._entity_config
        if includes:
            config.includes = config.includes + tuple(includes)
            registry.set_includes(target_cls, config.includes)
        if engine is not None:
            config.engine = engine
        for property_name in indexes:
            config.indexes = config.indexes + (property_name,)
            _index_manager.declare_index(target_cls, property_name)

        return target_cls

    if cls is None:
        return decorator
    else:
        return decorator(cls)


# =============================================================================
# REGISTRY FUNCTIONS
# =============================================================================

def get_entity_classes() -> Set[Type[GraphEntity]]:
    """Get all registered GraphEntity classes."""
    return {c for c in get_registry().registered_types() if isinstance(c, GraphEntityMeta)}


def get_entity_by_label(label: str) -> Optional[Type[GraphEntity]]:
    """Get entity class by its graph label."""
    found = get_registry().type_for(label)
    return found if isinstance(found, GraphEntityMeta) else None


def get_index_manager() -> IndexManager:
    return _index_manager


def get_finder() -> Finder:
    return _finder
