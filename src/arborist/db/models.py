"""SQLModel database models for Arborist.

A single adjacency-list table: each row points at its parent and carries a
dense 1-based ``order`` among its siblings.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Uuid
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


def _timestamptz_column() -> Any:
    """Create a TIMESTAMP WITH TIME ZONE column for PostgreSQL."""
    return Column(DateTime(timezone=True), nullable=False)


def _cascade_parent_column(target: str) -> Any:
    """Create a nullable self-referencing UUID FK with CASCADE DELETE."""
    return Column(
        Uuid(), ForeignKey(target, ondelete="CASCADE"), nullable=True, index=True
    )


class Node(SQLModel, table=True):
    """One node of a stored tree.

    Attributes:
        id: Primary key UUID, auto-generated.
        tree_key: Which tree the node belongs to; pages scope queries by it.
        parent_id: Parent node, or NULL for a root (CASCADE DELETE).
        name: Label shown in the tree view.
        order: 1-based position among siblings.
        created_at: Timestamp when the node was created.
    """

    __tablename__ = "tree_node"
    __table_args__ = (Index("ix_tree_node_parent_order", "parent_id", "order"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tree_key: str = Field(default="default", max_length=100, index=True)
    parent_id: UUID | None = Field(
        default=None, sa_column=_cascade_parent_column("tree_node.id")
    )
    name: str = Field(max_length=200)
    order: int = Field(default=0, sa_column=Column("order", Integer, nullable=False))
    created_at: datetime = Field(
        default_factory=_utcnow, sa_column=_timestamptz_column()
    )
