# src/neo4jmapper/orm/engine.py
import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union, cast

from neo4j import AsyncGraphDatabase, AsyncDriver, AsyncSession, Record, TrustAll

from neo4jmapper.config import Neo4jSettings
from neo4jmapper.core.query import quote_identifier

logger = logging.getLogger(__name__)


class SessionEvent(str, Enum):
    """Lifecycle events fired by engines to registered listeners."""
    SESSION_AVAILABLE = "session_available"
    SESSION_CLOSED = "session_closed"


SessionListener = Callable[[SessionEvent, "GraphEngine"], Union[None, Awaitable[None]]]

_listeners: List[SessionListener] = []
_current_engine: Optional["GraphEngine"] = None


def add_listener(callback: SessionListener) -> None:
    """
    Register a callback for engine lifecycle events.

    The callback receives ``(event, engine)`` and may be a coroutine function.
    It stays registered until ``remove_listener`` is called, which a callback
    may do from inside itself.
    """
    _listeners.append(callback)


def remove_listener(callback: SessionListener) -> None:
    _listeners[:] = [cb for cb in _listeners if cb is not callback]


def clear_listeners() -> None:
    _listeners.clear()


def listener_count() -> int:
    return len(_listeners)


async def notify_listeners(event: SessionEvent, engine: "GraphEngine") -> None:
    """
    Fire ``event`` at every listener, awaiting coroutine callbacks in order.

    A failing listener does not stop the others. Once all of them have run,
    the first error is raised again.
    """
    first_error: Optional[BaseException] = None
    for callback in list(_listeners):
        try:
            result = callback(event, engine)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error("Listener %r failed on %s: %s", callback, event.value, e)
            if first_error is None:
                first_error = e
    if first_error is not None:
        raise first_error


def get_current_engine() -> Optional["GraphEngine"]:
    """The engine record types use when none is bound to the type."""
    return _current_engine


def set_current_engine(engine: Optional["GraphEngine"]) -> None:
    global _current_engine
    _current_engine = engine


class GraphEngine:
    """
    Represents the core interface to a Neo4j database, analogous to SQLAlchemy's Engine.

    It holds the configuration for connecting to the database and manages the
    underlying Neo4j AsyncDriver. On a successful connect it becomes the current
    engine and fires ``SessionEvent.SESSION_AVAILABLE`` so deferred work (such
    as index creation) can run.
    """
    def __init__(
        self,
        uri: str,
        auth: Tuple[str, str],
        database: str = "neo4j", # Default database for sessions from this engine
        driver_config: Optional[Dict[str, Any]] = None
    ):
        """
        Initializes the GraphEngine. Does not establish a connection yet.
        Call `await engine.connect()` to establish the connection.

        Args:
            uri: The URI for the Neo4j instance (e.g., "bolt://localhost:7687").
            auth: A tuple of (username, password).
            database: The default Neo4j database name for sessions created by this engine.
            driver_config: Additional configuration options for the Neo4j driver.
        """
        self.uri: str = uri
        self.auth: Tuple[str, str] = auth
        self.default_database: str = database

        _driver_defaults = {
            "trusted_certificates": TrustAll(), # For local dev; use proper certs in prod.
            "max_connection_lifetime": 3600 * 24 * 30,  # seconds
            "keep_alive": True,
            "user_agent": "Neo4jMapperEngine/0.1.0"
        }
        self.driver_config: Dict[str, Any] = {**_driver_defaults, **(driver_config or {})}

        self._driver: Optional[AsyncDriver] = None
        self._is_connected: bool = False
        self._connection_lock = asyncio.Lock()

    async def connect(self, make_current: bool = True) -> None:
        """
        Establishes and verifies the connection to the Neo4j database.
        This method is idempotent; listeners only fire on the first success.

        Args:
            make_current: Make this engine the one record types use by default.
        """
        async with self._connection_lock:
            if self._is_connected and self._driver:
                return

            logger.info("Connecting to %s (default session DB: %r)", self.uri, self.default_database)
            try:
                self._driver = AsyncGraphDatabase.driver(
                    self.uri,
                    auth=self.auth,
                    **self.driver_config
                )
                await self._driver.verify_connectivity()
                self._is_connected = True
                logger.info("Successfully connected to %s", self.uri)
            except Exception as e:
                self._driver = None
                self._is_connected = False
                logger.error("Connection to %s failed: %s", self.uri, e)
                raise ConnectionError(f"Failed to connect to Neo4j at {self.uri}: {e}") from e

        if make_current:
            set_current_engine(self)
        await notify_listeners(SessionEvent.SESSION_AVAILABLE, self)

    async def close(self) -> None:
        """Closes the Neo4j driver connection if it's open."""
        was_connected = False
        async with self._connection_lock:
            if self._driver and self._is_connected:
                logger.info("Closing connection to %s", self.uri)
                await self._driver.close()
                was_connected = True
                logger.info("Connection to %s closed", self.uri)
            elif self._driver and not self._is_connected:
                # Connect failed after the driver was assigned
                logger.warning("Driver for %s was not fully connected, closing it anyway", self.uri)
                await self._driver.close()
            self._driver = None
            self._is_connected = False

        if get_current_engine() is self:
            set_current_engine(None)
        if was_connected:
            await notify_listeners(SessionEvent.SESSION_CLOSED, self)

    def get_session(self, database: Optional[str] = None) -> AsyncSession:
        """
        Returns an asynchronous Neo4j session from the engine's driver.

        Args:
            database: The name of the database to use for this session.
                      If None, uses the engine's `default_database`.

        Raises:
            ConnectionError: If the engine is not connected. Call `await engine.connect()` first.
        """
        if not self._driver or not self._is_connected:
            raise ConnectionError(
                f"GraphEngine for {self.uri} is not connected. Call `await engine.connect()` first."
            )

        db_to_use = database or self.default_database
        return cast(AsyncSession, self._driver.session(database=db_to_use))

    # =========================================================================
    # QUERY EXECUTION
    # =========================================================================

    async def run(
        self,
        query: str,
        parameters: Optional[Dict[str, Any]] = None,
        database: Optional[str] = None
    ) -> List[Record]:
        """
        Runs a Cypher statement in its own session and returns every record.

        Driver errors propagate unchanged.
        """
        logger.debug("Running %s with %r", query, parameters)
        async with self.get_session(database) as session:
            result = await session.run(query, parameters or {})
            return [record async for record in result]

    async def load_node(self, neo_id: int) -> Optional[Any]:
        """Loads a node by its internal id regardless of its labels."""
        records = await self.run("MATCH (n) WHERE id(n) = $neo_id RETURN n", {"neo_id": neo_id})
        return records[0][0] if records else None

    async def index_property_keys(self, label: str) -> List[List[str]]:
        """Returns the property keys of every index on ``label``, one list per index."""
        records = await self.run(
            "SHOW INDEXES YIELD labelsOrTypes, properties "
            "WHERE $label IN labelsOrTypes RETURN properties",
            {"label": label},
        )
        return [list(record["properties"]) for record in records if record["properties"]]

    async def create_index(self, label: str, property_name: str) -> None:
        logger.info("Creating index on :%s(%s)", label, property_name)
        await self.run(
            f"CREATE INDEX IF NOT EXISTS FOR (n:{quote_identifier(label)}) "
            f"ON (n.{quote_identifier(property_name)})"
        )

    @property
    def driver(self) -> AsyncDriver:
        """
        Provides direct access to the underlying Neo4j AsyncDriver.
        Use with caution. Prefer using `engine.get_session()`.

        Raises:
            ConnectionError: If the engine is not connected.
        """
        if not self._driver or not self._is_connected:
            raise ConnectionError(
                f"GraphEngine for {self.uri} is not connected. Call `await engine.connect()` first."
            )
        return self._driver

    @property
    def connected(self) -> bool:
        """Returns True if the engine is currently connected, False otherwise."""
        return self._is_connected

    async def __aenter__(self) -> "GraphEngine":
        """Allows the engine to be used as an async context manager for connect/close."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Ensures the engine's connection is closed when exiting the context."""
        await self.close()


def create_graph_engine(
    uri: str,
    auth: Tuple[str, str],
    database: str = "neo4j",
    **driver_config: Any
) -> GraphEngine:
    """
    Creates and returns a GraphEngine instance.
    This is the primary setup function, analogous to SQLAlchemy's create_engine.

    The engine must be explicitly connected using `await engine.connect()`
    or by using it as an async context manager (`async with engine:`).

    Args:
        uri: The URI for the Neo4j instance (e.g., "bolt://localhost:7687").
        auth: A tuple of (username, password).
        database: The default Neo4j database name for sessions.
        **driver_config: Additional configuration options for the Neo4j driver
                         (e.g., user_agent, keep_alive, max_connection_pool_size).
    """
    logger.debug("Creating GraphEngine for URI: %s, default DB: %s", uri, database)
    return GraphEngine(uri=uri, auth=auth, database=database, driver_config=driver_config)


def create_graph_engine_from_settings(settings: Optional[Neo4jSettings] = None) -> GraphEngine:
    """Creates a GraphEngine from ``Neo4jSettings`` (read from the environment when omitted)."""
    settings = settings or Neo4jSettings()
    return create_graph_engine(
        settings.uri,
        settings.auth,
        database=settings.database,
        **settings.driver_config()
    )
