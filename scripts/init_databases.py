#!/usr/bin/env python3
"""
Court Session Service - Database Initialization Script

Connects to MongoDB with the service settings and creates the indexes used
by session listing, chat paging and case back-reference lookups.

Usage:
    python scripts/init_databases.py [--reset] [--check-only] [--production]

Examples:
    python scripts/init_databases.py
    python scripts/init_databases.py --check-only
    python scripts/init_databases.py --reset
"""

import argparse
import asyncio
import sys
from typing import Any, Dict

from rich.console import Console
from rich.table import Table

from courtroom.app.core.database import MongoDBManager
from courtroom.app.core.exceptions import BaseCustomException
from courtroom.app.utils.logging import initialize_logging_from_settings
from courtroom.config.settings import Settings, get_settings

console = Console()


def collection_names(settings: Settings) -> Dict[str, str]:
    db = settings.database
    return {
        "sessions": db.sessions_collection,
        "chat": db.chat_collection,
        "cases": db.cases_collection,
    }


async def reset_collections(manager: MongoDBManager) -> None:
    """Drop the session and chat collections. Case records are never dropped."""
    database = manager.get_database()
    for role, name in collection_names(manager.settings).items():
        if role == "cases":
            continue
        await database.drop_collection(name)
        console.print(f"[yellow]Dropped[/yellow] {name}")


async def collect_summary(manager: MongoDBManager) -> Dict[str, Any]:
    database = manager.get_database()
    existing = set(await database.list_collection_names())
    summary: Dict[str, Any] = {"health": await manager.health_check(), "collections": {}}

    for role, name in collection_names(manager.settings).items():
        if name not in existing:
            summary["collections"][role] = {"name": name, "exists": False, "documents": 0, "indexes": []}
            continue

        collection = database[name]
        index_info = await collection.index_information()
        summary["collections"][role] = {
            "name": name,
            "exists": True,
            "documents": await collection.estimated_document_count(),
            "indexes": sorted(index_info.keys()),
        }

    return summary


def print_summary(summary: Dict[str, Any]) -> None:
    health = summary["health"]
    status_style = "green" if health.get("status") == "healthy" else "red"
    console.print(f"MongoDB: [{status_style}]{health.get('status')}[/{status_style}]")

    table = Table(title="Court session collections")
    table.add_column("Role")
    table.add_column("Collection")
    table.add_column("Documents", justify="right")
    table.add_column("Indexes")

    for role, info in summary["collections"].items():
        name = info["name"] if info["exists"] else f"{info['name']} (missing)"
        table.add_row(role, name, str(info["documents"]), ", ".join(info["indexes"]) or "-")

    console.print(table)


async def main() -> int:
    parser = argparse.ArgumentParser(description="Court Session Service database initialization")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Drop the session and chat collections before creating indexes"
    )
    parser.add_argument(
        "--check-only",
        action="store_true",
        help="Only report connection health and existing indexes"
    )
    parser.add_argument(
        "--production",
        action="store_true",
        help="Refuse destructive operations"
    )
    args = parser.parse_args()

    initialize_logging_from_settings()
    settings = get_settings()

    if args.reset and args.production:
        console.print("[red]ERROR:[/red] Cannot reset collections in production mode")
        return 1

    if args.reset and not args.check_only:
        console.print("[yellow]WARNING:[/yellow] this deletes every court session and chat message")
        confirmation = input("Type 'yes' to confirm reset: ")
        if confirmation.lower() != "yes":
            console.print("Reset cancelled")
            return 0

    manager = MongoDBManager(settings)

    try:
        await manager.connect()

        if not args.check_only:
            if args.reset:
                await reset_collections(manager)
            await manager.create_indexes()
            console.print("[green]Indexes created[/green]")

        summary = await collect_summary(manager)
        print_summary(summary)
        return 0 if summary["health"].get("status") == "healthy" else 1

    except BaseCustomException as e:
        console.print(f"[red]Initialization failed:[/red] {e}")
        return 1
    finally:
        await manager.disconnect()


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        console.print("\nInitialization interrupted by user")
        sys.exit(1)
