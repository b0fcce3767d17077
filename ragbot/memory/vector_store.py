from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import Integer, String, bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ragbot.database.models import Passage
from ragbot.utils.logging import get_logger

logger = get_logger(__name__, category="retrieval")


def _vector_literal(values: List[float]) -> str:
    if not values:
        return "[]"
    # Format with reasonable precision; pgvector parses standard floats
    return "[" + ",".join(f"{v:.8f}" for v in values) + "]"


class VectorStore:
    """Nearest-neighbour search over the ``passages`` table, scoped by collection.

    Scores are cosine similarities (``1 - cosine distance``), so higher is
    more relevant and results come back best first.
    """

    def __init__(
        self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    ) -> None:
        if session_factory is None:
            from ragbot.database.connection import SessionLocal

            session_factory = SessionLocal
        self.session_factory: async_sessionmaker[AsyncSession] = session_factory

    async def insert_passage(
        self,
        collection: str,
        text_value: str,
        embedding: List[float],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        new_id = uuid.uuid4()
        payload: Dict[str, Any] = dict(metadata or {})
        payload["text"] = text_value
        async with self.session_factory() as session:
            entity = Passage(
                id=new_id,
                collection=collection,
                payload=payload,
                embedding=embedding,
            )
            session.add(entity)
            await session.commit()
        logger.debug(f"Inserted passage {new_id} into collection {collection}")
        return str(new_id)

    async def search(
        self, collection: str, query_embedding: List[float], limit: int = 5
    ) -> List[Dict[str, Any]]:
        """
        Find the passages closest to ``query_embedding``.

        Args:
            collection: Collection to search in
            query_embedding: Query vector (1536 dimensions)
            limit: Maximum number of results

        Returns:
            Rows ``{"id", "score", "payload"}`` ordered by descending score
        """
        sql = """
            SELECT id, payload,
                   1 - (embedding <=> (:vec)::vector) AS score
            FROM passages
            WHERE collection = :collection
            ORDER BY embedding <=> (:vec)::vector
            LIMIT :limit
            """

        async with self.session_factory() as session:
            stmt = text(sql).bindparams(
                bindparam("vec", type_=String()),
                bindparam("collection", type_=String()),
                bindparam("limit", type_=Integer()),
            )
            result = await session.execute(
                stmt,
                {
                    "vec": _vector_literal(query_embedding),
                    "collection": collection,
                    "limit": limit,
                },
            )
            rows = result.mappings().all()

        return [
            {
                "id": str(row["id"]),
                "score": float(row["score"]),
                "payload": row["payload"] or {},
            }
            for row in rows
        ]

    async def count_passages(self, collection: str) -> int:
        sql = "SELECT COUNT(*) FROM passages WHERE collection = :collection"
        async with self.session_factory() as session:
            result = await session.execute(text(sql), {"collection": collection})
            return int(result.scalar() or 0)

    async def delete_collection(self, collection: str) -> int:
        sql = "DELETE FROM passages WHERE collection = :collection"
        async with self.session_factory() as session:
            result = await session.execute(text(sql), {"collection": collection})
            await session.commit()
            # rowcount can be -1 with some drivers; coerce to int >= 0
            count = result.rowcount if result.rowcount is not None else 0
        return max(int(count), 0)
