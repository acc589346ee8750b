from uuid import UUID, uuid4
from typing import Dict, List, Optional
from datetime import datetime
import sqlalchemy as sa
from sqlmodel import SQLModel, Field, Column
from pgvector.sqlalchemy import Vector

from models.ingestion import JSONVariant


class VectorCollection(SQLModel, table=True):
    __table_args__ = {"schema": "ingestion"}

    name: str = Field(primary_key=True)
    dimension: int
    created_at: Optional[datetime] = Field(
        default=None,
        sa_column=sa.Column(
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )


class VectorPoint(SQLModel, table=True):
    __table_args__ = {"schema": "ingestion"}

    # Store-assigned identity; never derived from the collection size
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    collection: str = Field(foreign_key="ingestion.vectorcollection.name", index=True)
    entity_id: str = Field(index=True)

    # Dimension is enforced per collection, not per column
    embedding: List[float] = Field(sa_column=Column(Vector()))
    payload: Dict = Field(default_factory=dict, sa_column=Column(JSONVariant))

    created_at: Optional[datetime] = Field(
        default=None,
        sa_column=sa.Column(
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
