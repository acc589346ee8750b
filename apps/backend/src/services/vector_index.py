"""
Vector index over pgvector: named collections of (entity_id, embedding, payload) points.

Point ids are UUIDs assigned at insert time, so concurrent indexers never
collide. Each entity has at most one live point per collection; upserting
a new point for an entity supersedes the earlier one.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import uuid4

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select, col
from sqlmodel.ext.asyncio.session import AsyncSession

from src.core.errors import VectorIndexError, CollectionNotFoundError
from models.vectors import VectorCollection, VectorPoint


logger = logging.getLogger(__name__)


@dataclass
class PointInput:
    entity_id: str
    vector: list[float]
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class ScoredPoint:
    score: float
    payload: dict[str, Any]


@dataclass
class CollectionStats:
    name: str
    dimension: int
    count: int


class VectorIndex(Protocol):
    async def create(self, collection: str, dimension: int) -> None:
        ...

    async def delete(self, collection: str) -> None:
        ...

    async def collection_stats(self, collection: str) -> CollectionStats:
        ...

    async def upsert(self, collection: str, points: list[PointInput]) -> None:
        ...

    async def search(self, collection: str, vector: list[float], limit: int) -> list[ScoredPoint]:
        ...


class PgVectorIndex:
    """VectorIndex backed by the VectorCollection / VectorPoint tables."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_collection(self, collection: str) -> VectorCollection:
        result = await self.db.exec(
            select(VectorCollection).where(VectorCollection.name == collection)
        )
        found = result.first()
        if found is None:
            raise CollectionNotFoundError(collection)
        return found

    async def create(self, collection: str, dimension: int) -> None:
        """No-op when the collection already exists."""
        if dimension <= 0:
            raise VectorIndexError(f"Invalid dimension {dimension} for {collection}")
        try:
            result = await self.db.exec(
                select(VectorCollection.name).where(VectorCollection.name == collection)
            )
            if result.first() is not None:
                logger.info("Collection %s already exists", collection)
                return
            self.db.add(VectorCollection(name=collection, dimension=dimension))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to create collection %s: %s", collection, e)
            raise VectorIndexError(f"Failed to create collection {collection}") from e
        logger.info("Created collection %s (dim=%d)", collection, dimension)

    async def delete(self, collection: str) -> None:
        try:
            await self._get_collection(collection)
            await self.db.exec(sa.delete(VectorPoint).where(col(VectorPoint.collection) == collection))
            await self.db.exec(sa.delete(VectorCollection).where(col(VectorCollection.name) == collection))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to delete collection %s: %s", collection, e)
            raise VectorIndexError(f"Failed to delete collection {collection}") from e
        logger.info("Deleted collection %s", collection)

    async def collection_stats(self, collection: str) -> CollectionStats:
        try:
            found = await self._get_collection(collection)
            result = await self.db.exec(
                select(sa.func.count()).select_from(VectorPoint).where(VectorPoint.collection == collection)
            )
            count = result.one()
        except SQLAlchemyError as e:
            logger.error("Failed to read collection %s: %s", collection, e)
            raise VectorIndexError(f"Failed to read collection {collection}") from e
        return CollectionStats(name=found.name, dimension=found.dimension, count=count)

    async def upsert(self, collection: str, points: list[PointInput]) -> None:
        """
        Writes all points in one transaction.
        Raises CollectionNotFoundError or VectorIndexError on dimension mismatch.
        """
        if not points:
            return

        try:
            found = await self._get_collection(collection)
            for point in points:
                if len(point.vector) != found.dimension:
                    raise VectorIndexError(
                        f"Vector for {point.entity_id} has dimension {len(point.vector)}, "
                        f"collection {collection} expects {found.dimension}"
                    )

            entity_ids = [p.entity_id for p in points]
            await self.db.exec(
                sa.delete(VectorPoint)
                .where(col(VectorPoint.collection) == collection)
                .where(col(VectorPoint.entity_id).in_(entity_ids))
            )
            for point in points:
                self.db.add(VectorPoint(
                    id=uuid4(),
                    collection=collection,
                    entity_id=point.entity_id,
                    embedding=point.vector,
                    payload=point.payload,
                ))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to upsert %d points into %s: %s", len(points), collection, e)
            raise VectorIndexError(f"Failed to upsert into {collection}") from e

    async def search(self, collection: str, vector: list[float], limit: int) -> list[ScoredPoint]:
        """Nearest points by cosine distance; score = 1 - distance, best first."""
        try:
            await self._get_collection(collection)
            distance = col(VectorPoint.embedding).cosine_distance(vector).label("distance")
            statement = (
                select(VectorPoint.payload, distance)
                .where(VectorPoint.collection == collection)
                .order_by(distance)
                .limit(limit)
            )
            result = await self.db.exec(statement)
            rows = result.all()
        except SQLAlchemyError as e:
            logger.error("Vector search on %s failed: %s", collection, e)
            raise VectorIndexError(f"Search failed on {collection}") from e

        return [
            ScoredPoint(score=1.0 - float(dist), payload=dict(payload or {}))
            for payload, dist in rows
        ]
