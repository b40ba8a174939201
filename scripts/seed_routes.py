#!/usr/bin/env python3
"""
Seed the vector index from a route definition file.

Usage:
    python scripts/seed_routes.py --routes configs/routes.yaml
    python scripts/seed_routes.py --backend qdrant --qdrant-url http://localhost:6333

Embeds every utterance, writes a new collection generation, verifies the
point count and prints a build report. Exits non-zero if the build fails.
Defaults come from the same ROUTER_* environment variables as the server.
"""

import argparse
import asyncio
import dataclasses
import logging
import sys

from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, ".")

from llm_router.config import settings_from_env
from llm_router.errors import RouterError
from llm_router.service import create_router_service

logger = logging.getLogger("seed_routes")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed the LLM router vector index")
    parser.add_argument("--routes", help="Route definition file (ROUTER_ROUTES_PATH)")
    parser.add_argument("--embedding-model", help="Embedding model (ROUTER_EMBEDDING_MODEL)")
    parser.add_argument("--backend", choices=["memory", "qdrant"], help="Index backend (ROUTER_INDEX_BACKEND)")
    parser.add_argument("--qdrant-url", help="Qdrant URL (ROUTER_QDRANT_URL)")
    parser.add_argument("--collection", help="Base collection name (ROUTER_COLLECTION_NAME)")
    parser.add_argument("--deadline", type=float, help="Abort the build after this many seconds")
    return parser.parse_args(argv)


async def seed(args: argparse.Namespace) -> int:
    settings = settings_from_env()
    overrides = {
        "routes_path": args.routes,
        "embedding_model": args.embedding_model,
        "index_backend": args.backend,
        "qdrant_url": args.qdrant_url,
        "collection_name": args.collection,
    }
    settings = dataclasses.replace(
        settings, **{k: v for k, v in overrides.items() if v is not None}
    )

    service = create_router_service(settings)
    try:
        report = await service.builder.build_from_file(
            settings.routes_path, deadline=args.deadline
        )
    except RouterError as e:
        logger.error(f"Seeding failed: {e}")
        return 1
    finally:
        await service.close()

    logger.info(
        f"Generation {report.generation}: {report.points} points across "
        f"{report.routes} routes in '{report.collection}' "
        f"(dim={report.dimension}, verified={report.verified})"
    )
    if settings.index_backend == "memory":
        logger.warning("In-memory backend: the seeded index is discarded on exit")
    return 0


def main() -> None:
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    sys.exit(asyncio.run(seed(parse_args())))


if __name__ == "__main__":
    main()
