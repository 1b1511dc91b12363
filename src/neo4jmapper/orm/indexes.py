# src/neo4jmapper/orm/indexes.py
"""
Neo4jMapper Index Manager

Makes sure a property is indexed on every label a record type maps to. When
no engine is connected yet the request waits for the next
``SESSION_AVAILABLE`` event.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple, Union, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from neo4jmapper.core.labels import LabelRegistry
from neo4jmapper.orm.engine import SessionEvent, add_listener, remove_listener
from neo4jmapper.orm.finders import EngineResolver

if TYPE_CHECKING:
    from neo4jmapper.orm.engine import GraphEngine


logger = logging.getLogger(__name__)

IndexDescriptor = Union[str, Sequence[str]]


class IndexState(str, Enum):
    REQUESTED = "requested"
    APPLIED = "applied"


class IndexRequest(BaseModel):
    """A request for an index on ``property_name`` for every label of ``owner``."""

    property_name: str = Field(..., min_length=1)
    owner: Any
    state: IndexState = IndexState.REQUESTED

    model_config = ConfigDict(arbitrary_types_allowed=True, validate_assignment=True)

    @property
    def satisfied(self) -> bool:
        return self.state is IndexState.APPLIED


class IndexManager:
    """
    Creates indexes for record types, once per label and property.

    Applying a request reads the indexes that already exist on each label and
    only creates the missing ones, so requesting the same index repeatedly is
    harmless.
    """

    def __init__(self, registry: LabelRegistry, engine_resolver: EngineResolver):
        self.registry = registry
        self._engine_resolver = engine_resolver
        self._pending: List[IndexRequest] = []
        self._indexed: Dict[str, List[str]] = {}
        self._tasks: Set["asyncio.Task[None]"] = set()

    async def ensure_index(self, cls: type, property_name: str) -> IndexRequest:
        """
        Index ``property_name`` on all of ``cls``'s labels now, or as soon as
        an engine becomes available.
        """
        request = IndexRequest(property_name=property_name, owner=cls)
        engine = self._engine_resolver(cls)
        if engine is not None and engine.connected:
            await self._apply_request(request, engine)
        else:
            self._defer(request)
        return request

    def defer_index(self, cls: type, property_name: str) -> IndexRequest:
        """Queue an index until the next ``SESSION_AVAILABLE`` event, whatever the current state."""
        request = IndexRequest(property_name=property_name, owner=cls)
        self._defer(request)
        return request

    def declare_index(self, cls: type, property_name: str) -> IndexRequest:
        """
        Index requested from synchronous code, such as class creation.

        With a connected engine and a running event loop the index is created
        in a background task (see ``wait_scheduled``). Otherwise it waits for
        the next ``SESSION_AVAILABLE`` event.
        """
        engine = self._engine_resolver(cls)
        if engine is None or not engine.connected:
            return self.defer_index(cls, property_name)

        request = IndexRequest(property_name=property_name, owner=cls)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "Engine is connected but no event loop is running; index on %s(%s) "
                "waits for the next session or an explicit index() call",
                self.registry.label_for(cls), property_name,
            )
            self._defer(request)
            return request

        self._pending.append(request)
        task = loop.create_task(self._apply_scheduled(request))
        self._tasks.add(task)
        task.add_done_callback(self._scheduled_done)
        return request

    async def wait_scheduled(self) -> None:
        """Wait for every index creation scheduled by ``declare_index``."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def apply(self, cls: type, property_name: str, engine: Optional["GraphEngine"] = None) -> List[str]:
        """
        Create the index on each mapped label that does not have it yet.

        Returns:
            The labels an index was created on
        """
        engine = engine or self._require_engine(cls)
        created = []
        for label in self.registry.mapped_label_names(cls):
            existing = await engine.index_property_keys(label)
            if property_name in _flatten(existing):
                logger.debug("Index on :%s(%s) already exists", label, property_name)
            else:
                await engine.create_index(label, property_name)
                created.append(label)
            indexed = self._indexed.setdefault(label, [])
            if property_name not in indexed:
                indexed.append(property_name)
        return created

    async def has_index(self, cls: type, descriptor: IndexDescriptor) -> bool:
        """
        Whether the primary label has an index matching ``descriptor``.

        A descriptor is a property name or, for composite indexes, the list of
        its property names in order.
        """
        engine = self._require_engine(cls)
        keys = await engine.index_property_keys(self.registry.label_for(cls))
        return _normalize(descriptor) in [list(k) for k in keys]

    def indexed_labels(self) -> Dict[str, Tuple[str, ...]]:
        """Label -> properties this manager has ensured an index for."""
        return {label: tuple(props) for label, props in self._indexed.items()}

    def pending_requests(self) -> Tuple[IndexRequest, ...]:
        return tuple(r for r in self._pending if not r.satisfied)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    async def _apply_request(self, request: IndexRequest, engine: "GraphEngine") -> None:
        await self.apply(request.owner, request.property_name, engine)
        request.state = IndexState.APPLIED
        self._pending = [r for r in self._pending if r is not request]

    async def _apply_scheduled(self, request: IndexRequest) -> None:
        # Resolved again: a decorator may have bound an engine since scheduling
        engine = self._engine_resolver(request.owner)
        if engine is None or not engine.connected:
            self._pending = [r for r in self._pending if r is not request]
            self._defer(request)
            return
        try:
            await self._apply_request(request, engine)
        except Exception:
            # Retried on the next session
            self._pending = [r for r in self._pending if r is not request]
            self._defer(request)
            raise

    def _scheduled_done(self, task: "asyncio.Task[None]") -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Scheduled index creation failed: %s", error, exc_info=error)

    def _defer(self, request: IndexRequest) -> None:
        logger.info(
            "No session available, deferring index on %s(%s)",
            self.registry.label_for(request.owner), request.property_name,
        )
        self._pending.append(request)

        async def on_session_event(event: SessionEvent, _engine: "GraphEngine") -> None:
            if event is not SessionEvent.SESSION_AVAILABLE:
                return
            # The type may be bound to another engine than the one that connected
            engine = self._engine_resolver(request.owner)
            if engine is None or not engine.connected:
                return
            # Stays registered until the index is in place
            await self._apply_request(request, engine)
            remove_listener(on_session_event)

        add_listener(on_session_event)

    def _require_engine(self, cls: type) -> "GraphEngine":
        engine = self._engine_resolver(cls)
        if engine is None:
            raise ConnectionError(f"No GraphEngine available to manage indexes for {cls.__name__}")
        return engine


def _normalize(descriptor: IndexDescriptor) -> List[str]:
    if isinstance(descriptor, str):
        return [descriptor]
    return list(descriptor)


def _flatten(keys: Sequence[Sequence[str]]) -> List[str]:
    return [key for group in keys for key in group]
