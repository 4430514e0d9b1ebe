#!/usr/bin/env python3
"""
Inspect or prune the durable content cache.

Run: python scripts/cache_admin.py list
     python scripts/cache_admin.py show m1 -o m1.json
     python scripts/cache_admin.py remove m1
     python scripts/cache_admin.py clear --yes

Uses DATABASE_URL from the environment / .env (same as the API).
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))


def _dump(pack) -> object:
    if isinstance(pack, list):
        return [q.model_dump(mode="json") for q in pack]
    return pack.model_dump(mode="json")


async def main(argv: Optional[List[str]] = None, session_factory=None) -> int:
    parser = argparse.ArgumentParser(description="Inspect or prune cached module packs.")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("list", help="List cached module ids")
    show = sub.add_parser("show", help="Print one cached pack")
    show.add_argument("module_id")
    show.add_argument("--output", "-o", default=None, help="Write the pack to a JSON file")
    remove = sub.add_parser("remove", help="Delete one cached pack")
    remove.add_argument("module_id")
    clear = sub.add_parser("clear", help="Delete every cached pack")
    clear.add_argument("--yes", action="store_true", help="Skip the confirmation guard")
    args = parser.parse_args(argv)

    from api.config import SessionLocal, create_db
    from api.models.models import CachedGame
    from api.utils.common import unpack_questions
    from infra.cache.sql_store import SqlContentCache

    if session_factory is None:
        create_db()
        session_factory = SessionLocal
    cache = SqlContentCache(session_factory=session_factory)

    if args.command == "list":
        with session_factory() as db:
            rows = db.query(CachedGame).order_by(CachedGame.updated_at.desc()).all()
            for row in rows:
                print(f"{row.module_id}\tupdated={row.updated_at.isoformat()}Z")
            print(f"\n{len(rows)} cached pack(s)")
        return 0

    if args.command == "show":
        pack = await cache.get_game(args.module_id)
        if pack is None:
            print(f"No readable pack for {args.module_id}", file=sys.stderr)
            return 1
        for i, q in enumerate(unpack_questions(pack)):
            print(f"{i + 1}. [{q.template.value}] {q.instruction} items={q.item_names()}")
        if args.output:
            Path(args.output).write_text(json.dumps(_dump(pack), indent=2), encoding="utf-8")
            print(f"\nSaved to {args.output}")
        return 0

    if args.command == "remove":
        await cache.remove_game(args.module_id)
        print(f"Removed {args.module_id}")
        return 0

    if not args.yes:
        print("Refusing to clear the cache without --yes", file=sys.stderr)
        return 1
    await cache.clear()
    print("Cache cleared")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
