"""Command-line utilities for Arborist.

``arborist`` runs the web app, ``arborist-seed`` fills a tree with demo
data and ``arborist-check`` verifies a stored tree's structure.
"""

from __future__ import annotations

import asyncio
import sys
from collections import defaultdict
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    import argparse
    from collections.abc import Iterable

    from arborist.tree.types import NodeRecord

console = Console()

_DEMO_TREE: dict[str, Any] = {
    "Documents": {
        "Invoices": {"2025": {}, "2026": {}},
        "Receipts": {},
        "Contracts": {"Suppliers": {}, "Customers": {}},
    },
    "Pictures": {"Holidays": {"Coast": {}, "Mountains": {}}, "Family": {}},
    "Music": {},
    "Archive": {},
}


def integrity_problems(records: Iterable[NodeRecord], root_value: Any) -> list[str]:
    """Describe every structural defect of a stored tree.

    Checks that every parent exists, that parent links are acyclic and
    that each sibling group is ordered ``1..N`` without gaps or duplicates.
    """
    by_id = {r.id: r for r in records}
    problems: list[str] = []

    groups: dict[Any, list[int]] = defaultdict(list)
    for record in by_id.values():
        groups[record.parent_id].append(record.order)
        if record.parent_id != root_value and record.parent_id not in by_id:
            problems.append(f"{record.id}: parent {record.parent_id} does not exist")

    for parent_id, orders in groups.items():
        if sorted(orders) != list(range(1, len(orders) + 1)):
            label = "root" if parent_id == root_value else str(parent_id)
            problems.append(f"children of {label}: order {sorted(orders)} not dense")

    reported: set[Any] = set()
    for record in by_id.values():
        seen = {record.id}
        current = record.parent_id
        while current in by_id and current != root_value:
            if current in seen:
                if record.id not in reported:
                    problems.append(f"{record.id}: parent chain contains a cycle")
                    reported.update(seen)
                break
            seen.add(current)
            current = by_id[current].parent_id

    return problems


def _require_database() -> None:
    from arborist.config import get_settings

    if not get_settings().database.url:
        console.print("[red]Error:[/] DATABASE__URL not set")
        sys.exit(1)


def _tree_parser(prog: str, description: str) -> argparse.ArgumentParser:
    import argparse

    parser = argparse.ArgumentParser(prog=prog, description=description)
    parser.add_argument(
        "--tree", default="default", help="Tree key to operate on (default: default)"
    )
    return parser


def seed_data() -> None:
    """Seed a tree with demo nodes for development.

    Idempotent: a tree that already has nodes is left alone unless
    ``--reset`` is given.

    Usage:
        arborist-seed [--tree KEY] [--reset]
    """
    parser = _tree_parser("arborist-seed", "Seed a tree with demo nodes.")
    parser.add_argument(
        "--reset", action="store_true", help="Delete the tree's nodes first"
    )
    args = parser.parse_args()
    _require_database()

    async def _insert(children: dict[str, Any], parent_id: Any) -> int:
        from arborist.db.nodes import create_node

        count = 0
        for name, grandchildren in children.items():
            node = await create_node(name, parent_id=parent_id, tree_key=args.tree)
            count += 1 + await _insert(grandchildren, node.id)
        return count

    async def _seed() -> None:
        from arborist.db.engine import close_db, init_db
        from arborist.db.nodes import delete_node, list_nodes

        await init_db()
        try:
            existing = await list_nodes(args.tree)
            if existing and not args.reset:
                console.print(
                    f"[yellow]Tree '{args.tree}' already has {len(existing)} "
                    "node(s); use --reset to replace them.[/]"
                )
                return
            for node in existing:
                if node.parent_id is None:
                    await delete_node(node.id)
            created = await _insert(_DEMO_TREE, None)
        finally:
            await close_db()

        console.print(
            Panel(
                f"[bold]Tree:[/] {args.tree}\n"
                f"[bold]Nodes:[/] {created}\n"
                f"[bold]Open:[/] http://localhost:8080/?tree={args.tree}",
                title="Seed Data Ready",
            )
        )

    asyncio.run(_seed())


def check_tree() -> None:
    """Verify a stored tree: parents exist, no cycles, dense sibling order.

    Exits with status 1 when any problem is found.

    Usage:
        arborist-check [--tree KEY]
    """
    parser = _tree_parser("arborist-check", "Check a stored tree's integrity.")
    args = parser.parse_args()
    _require_database()

    async def _load() -> list[NodeRecord]:
        from arborist.config import get_settings
        from arborist.db import Node, SqlTreeQuery
        from arborist.db.engine import close_db, init_db

        await init_db()
        try:
            query = SqlTreeQuery.from_config(
                get_settings().tree, where=[Node.tree_key == args.tree]
            )
            return await query.fetch_all()
        finally:
            await close_db()

    from arborist.config import get_settings

    records = asyncio.run(_load())
    problems = integrity_problems(records, get_settings().tree.root_parent_value)

    if not problems:
        console.print(
            f"[green]Tree '{args.tree}' is consistent[/] ({len(records)} nodes)"
        )
        return

    table = Table(title=f"Problems in tree '{args.tree}'")
    table.add_column("#", justify="right")
    table.add_column("Problem", style="red")
    for index, problem in enumerate(problems, start=1):
        table.add_row(str(index), problem)
    console.print(table)
    sys.exit(1)


def run() -> None:
    """Start the web app."""
    from arborist import main

    main()
