from pydantic import BaseModel, Field, field_validator, ConfigDict, PrivateAttr
from typing import Any, Dict, FrozenSet, Optional

from neo4jmapper.core.query import quote_identifier


class PersistedNode(BaseModel):
    """
    Handle on a node as it was returned by the database.

    Uses Pydantic for validation of what the driver hands back. Label changes
    go straight to the database through the engine the node was loaded with.
    """

    neo_id: int = Field(..., ge=0, description="Internal node id assigned by Neo4j")
    element_id: Optional[str] = Field(None, description="Driver element id")
    label_set: FrozenSet[str] = Field(default_factory=frozenset, description="Labels on the node")
    properties: Dict[str, Any] = Field(
        default_factory=dict,
        description="Node properties"
    )

    model_config = ConfigDict(
        validate_assignment=True,
        arbitrary_types_allowed=True,
        json_schema_extra={
            "example": {
                "neo_id": 42,
                "label_set": ["User"],
                "properties": {
                    "name": "Alice Johnson",
                    "email": "alice@example.com"
                }
            }
        }
    )

    _engine: Any = PrivateAttr(default=None)

    @field_validator('label_set', mode='before')
    @classmethod
    def coerce_labels(cls, v):
        """Accept any iterable of labels."""
        if v is None:
            return frozenset()
        if isinstance(v, str):
            return frozenset([v])
        return frozenset(v)

    @field_validator('properties')
    @classmethod
    def validate_properties(cls, v):
        if v is None:
            return {}
        if not all(isinstance(k, str) for k in v.keys()):
            raise ValueError("All property keys must be strings")
        return v

    @classmethod
    def from_driver_node(cls, node: Any, engine: Any = None) -> "PersistedNode":
        """
        Build a handle from a ``neo4j.graph.Node``.

        Args:
            node: Node object returned by the driver
            engine: Engine used for later label changes
        """
        persisted = cls(
            neo_id=node.id,
            element_id=getattr(node, "element_id", None),
            label_set=node.labels,
            properties=dict(node.items()),
        )
        persisted._engine = engine
        return persisted

    @property
    def engine(self) -> Any:
        return self._engine

    def labels(self) -> FrozenSet[str]:
        """Labels the node had when loaded, plus changes made through this handle."""
        return self.label_set

    async def add_label(self, *labels: str) -> None:
        """
        Add one or more labels to the node.

        Args:
            *labels: Label names to add
        """
        if not labels:
            return
        rendered = "".join(f":{quote_identifier(label)}" for label in labels)
        await self._require_engine().run(
            f"MATCH (n) WHERE id(n) = $neo_id SET n{rendered}",
            {"neo_id": self.neo_id},
        )
        self.label_set = self.label_set | frozenset(labels)

    async def remove_label(self, *labels: str) -> None:
        """
        Remove one or more labels from the node.

        Removing the label a record type is mapped to makes the node invisible
        to that type's finders.
        """
        if not labels:
            return
        rendered = "".join(f":{quote_identifier(label)}" for label in labels)
        await self._require_engine().run(
            f"MATCH (n) WHERE id(n) = $neo_id REMOVE n{rendered}",
            {"neo_id": self.neo_id},
        )
        self.label_set = self.label_set - frozenset(labels)

    def get_property(self, key: str, default: Any = None) -> Any:
        return self.properties.get(key, default)

    def has_label(self, label: str) -> bool:
        return label in self.label_set

    def _require_engine(self) -> Any:
        if self._engine is None:
            raise ConnectionError(f"Node {self.neo_id} is not bound to an engine")
        return self._engine
