# src/neo4jmapper/config.py
"""
Connection settings for Neo4jMapper.

Values come from ``NEO4J_*`` environment variables or a ``.env`` file, with
defaults suited to a local development database.
"""

from typing import Any, Dict, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Neo4jSettings(BaseSettings):
    """
    Settings used to build a ``GraphEngine``.

    Example:
        ```python
        # NEO4J_URI=bolt://db:7687 NEO4J_PASSWORD=secret
        settings = Neo4jSettings()
        engine = create_graph_engine_from_settings(settings)
        ```
    """

    model_config = SettingsConfigDict(
        env_prefix="NEO4J_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    uri: str = "bolt://localhost:7687"
    username: str = "neo4j"
    password: str = "neo4j"
    database: str = "neo4j"
    user_agent: str = "Neo4jMapperEngine/0.1.0"
    max_connection_lifetime: int = Field(default=3600 * 24 * 30, gt=0)  # seconds

    @field_validator("uri")
    @classmethod
    def validate_uri(cls, v: str) -> str:
        if "://" not in v:
            raise ValueError(f"Neo4j URI must include a scheme, got {v!r}")
        return v

    @property
    def auth(self) -> Tuple[str, str]:
        return (self.username, self.password)

    def driver_config(self) -> Dict[str, Any]:
        return {
            "user_agent": self.user_agent,
            "max_connection_lifetime": self.max_connection_lifetime,
        }
