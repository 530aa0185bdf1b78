#!/usr/bin/env python3
"""
Command-line entry point for entity resolution over a JSON file.

Usage:
    # Resolve all entities and write the survivors
    python -m entity_resolution.cli resolve entities.json --output resolved.json

    # Resolve one entity type without transitive inference
    python -m entity_resolution.cli resolve entities.json --type Person --no-transitive

    # Rank duplicates of a single entity
    python -m entity_resolution.cli duplicates entities.json person-42
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from entity_resolution.config import ResolutionConfig, settings
from entity_resolution.entities.schemas import BaseEntity, parse_entity
from entity_resolution.resolution.resolver import EngineEvent, EntityResolutionEngine
from entity_resolution.store.memory import InMemoryEntityStore

logger = logging.getLogger(__name__)


def load_entities(path: Path) -> list[BaseEntity]:
    """Load a JSON array of entity objects."""
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, list):
        raise ValueError(f"{path} must contain a JSON array of entities")
    return [parse_entity(item) for item in raw]


def build_engine(path: Path, transitive: bool = True) -> tuple[EntityResolutionEngine, InMemoryEntityStore]:
    store = InMemoryEntityStore(load_entities(path))
    config = ResolutionConfig.from_settings(
        settings, enable_transitive_matching=transitive
    )
    return EntityResolutionEngine(store, config), store


async def run_resolve(
    path: Path,
    entity_type: Optional[str],
    output: Optional[Path],
    transitive: bool,
) -> int:
    engine, store = build_engine(path, transitive)
    engine.on(
        EngineEvent.MERGE_COMPLETED,
        lambda result: logger.info(f"Merged {result.merged_id} into {result.survivor_id}"),
    )

    session = await engine.resolve_all(entity_type)
    print(json.dumps(session.to_dict(), indent=2))

    if output:
        survivors = [e.model_dump(mode="json") for e in store.all()]
        with open(output, "w", encoding="utf-8") as f:
            json.dump(survivors, f, indent=2, ensure_ascii=False)
        logger.info(f"Wrote {len(survivors)} entities to {output}")

    return 0 if session.status.value == "completed" else 1


async def run_duplicates(path: Path, entity_id: str) -> int:
    engine, _ = build_engine(path)
    matches = await engine.find_duplicates(entity_id)
    print(json.dumps([m.model_dump(mode="json") for m in matches], indent=2))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Entity resolution over a JSON entity file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    resolve = subparsers.add_parser("resolve", help="Run a full resolution session")
    resolve.add_argument("entities", type=Path, help="JSON array of entities")
    resolve.add_argument("--type", dest="entity_type", help="Only resolve this entity type")
    resolve.add_argument("--output", type=Path, help="Write surviving entities here")
    resolve.add_argument(
        "--no-transitive", action="store_true", help="Disable transitive inference"
    )

    duplicates = subparsers.add_parser("duplicates", help="Rank duplicates of one entity")
    duplicates.add_argument("entities", type=Path, help="JSON array of entities")
    duplicates.add_argument("entity_id", help="Entity to look up")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    if args.command == "resolve":
        return asyncio.run(
            run_resolve(args.entities, args.entity_type, args.output, not args.no_transitive)
        )
    return asyncio.run(run_duplicates(args.entities, args.entity_id))


if __name__ == "__main__":
    sys.exit(main())
