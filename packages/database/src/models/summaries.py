from typing import List, Optional
from datetime import datetime
import sqlalchemy as sa
from sqlmodel import SQLModel, Field, Column

from models.ingestion import JSONVariant


class SummaryRecord(SQLModel, table=True):
    """
    Bridge between the relational store and the vector index.
    entity_id shares one namespace across projects and issues.
    """
    __table_args__ = {"schema": "ingestion"}

    entity_id: str = Field(primary_key=True)
    entity_kind: str = Field(index=True)
    summary_text: str = Field(default="", sa_column=Column(sa.Text, nullable=False))
    keyword_tags: List[str] = Field(default_factory=list, sa_column=Column(JSONVariant))
    indexed: bool = Field(default=False, index=True)
    # Bumped on every overwrite; the index batch only flags the revision it embedded
    revision: int = Field(default=0)
    updated_at: Optional[datetime] = Field(
        default=None,
        sa_column=sa.Column(
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            onupdate=sa.func.now(),
            nullable=False,
        ),
    )
