"""Database module for Arborist.

Provides async SQLModel operations with PostgreSQL.
"""

from __future__ import annotations

from arborist.db.bootstrap import (
    ensure_database_exists,
    required_columns,
    run_alembic_upgrade,
    verify_schema,
)
from arborist.db.engine import close_db, get_engine, get_session, init_db
from arborist.db.models import Node
from arborist.db.nodes import (
    create_node,
    delete_node,
    get_node,
    list_nodes,
    list_tree_keys,
    rename_node,
)
from arborist.db.tree_query import SqlTreeQuery

__all__ = [
    # Models
    "Node",
    # Tree Query
    "SqlTreeQuery",
    # Engine
    "close_db",
    "get_engine",
    "get_session",
    "init_db",
    # Bootstrap
    "ensure_database_exists",
    "required_columns",
    "run_alembic_upgrade",
    "verify_schema",
    # Nodes
    "create_node",
    "delete_node",
    "get_node",
    "list_nodes",
    "list_tree_keys",
    "rename_node",
]
