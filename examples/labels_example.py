"""
Neo4jMapper label mapping example.

Needs a running Neo4j; connection settings come from NEO4J_* environment
variables (see neo4jmapper.config.Neo4jSettings).
"""

import asyncio
import logging
from typing import Optional

from pydantic import Field

from neo4jmapper import (
    GraphEntity,
    RecordNotFound,
    create_graph_engine_from_settings,
    graph_entity,
)


class Auditable(GraphEntity):
    audited_by: Optional[str] = None


class User(GraphEntity, includes=(Auditable,), indexes=("email",)):
    name: str = Field(min_length=1)
    email: str


@graph_entity(label="Organisation")
class Company(GraphEntity):
    name: str


async def main() -> None:
    logging.basicConfig(level=logging.INFO)

    # Indexes declared above are created as soon as the engine connects
    async with create_graph_engine_from_settings() as engine:
        await engine.run(
            "CREATE (:User:Auditable {name: 'Alice', email: 'alice@example.com'}), "
            "(:User:Auditable {name: 'Bob', email: 'bob@example.com'}), "
            "(:Organisation {name: 'Acme'})"
        )

        print("Labels for User:", User.mapped_label_names())
        print("Users:", await User.count())
        print("First:", await User.first())
        print("Last:", await User.last())

        async for user in User.all():
            print(f"  {user.name} <{user.email}> labels={sorted(user.labels())}")

        alice = await User.find_by(email="alice@example.com")
        await alice.add_label("Admin")
        print("Alice is now:", sorted(alice.labels()))

        again = await User.find(alice.neo_id)
        print("Loaded by id:", again)

        try:
            await User.find_by_or_raise(email="nobody@example.com")
        except RecordNotFound as e:
            print("Not found:", e)

        print("Email index on User:", await User.has_index("email"))

        await User.destroy_all()
        await Company.destroy_all()
        print("Users left:", await User.count())


if __name__ == "__main__":
    asyncio.run(main())
