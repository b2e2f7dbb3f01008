"""create tree_node table

Revision ID: 3a7c2e91b4d0
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3a7c2e91b4d0"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the adjacency-list node table."""
    op.create_table(
        "tree_node",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tree_key", sa.String(100), nullable=False),
        sa.Column("parent_id", sa.Uuid(), nullable=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["parent_id"],
            ["tree_node.id"],
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_tree_node_tree_key", "tree_node", ["tree_key"])
    op.create_index("ix_tree_node_parent_id", "tree_node", ["parent_id"])
    op.create_index(
        "ix_tree_node_parent_order", "tree_node", ["parent_id", "order"]
    )


def downgrade() -> None:
    """Drop the node table."""
    op.drop_index("ix_tree_node_parent_order", table_name="tree_node")
    op.drop_index("ix_tree_node_parent_id", table_name="tree_node")
    op.drop_index("ix_tree_node_tree_key", table_name="tree_node")
    op.drop_table("tree_node")
