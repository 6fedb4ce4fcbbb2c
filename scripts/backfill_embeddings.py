#!/usr/bin/env python3
"""
Backfill embeddings and fingerprints for durable cache entries.

Entries stored without an embedding (provider outage, older data) are not
visible to semantic lookups until this runs. Use --overwrite after switching
embedding models so every stored vector comes from the same model.

Usage:
    python scripts/backfill_embeddings.py --batch-size 500
    python scripts/backfill_embeddings.py --overwrite
"""

import argparse
import asyncio
import logging
import sys

from hybrid_cache.config import configure_logging, settings
from hybrid_cache.exceptions import CacheError
from hybrid_cache.repositories import MongoDurableRepository, create_embedding_provider
from hybrid_cache.services import BackfillService

logger = logging.getLogger("backfill_embeddings")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--batch-size", type=int, default=500, help="Entries per provider call")
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Recompute embeddings for every entry, not only those missing one",
    )
    parser.add_argument(
        "--pause",
        type=float,
        default=1.0,
        help="Seconds to wait between batches",
    )
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    durable = MongoDurableRepository.create()
    provider = create_embedding_provider(settings)
    try:
        await durable.connect()
        if durable.read_only:
            logger.error("MongoDB user lacks write permission, nothing to do")
            return 1
        service = BackfillService(
            durable,
            provider,
            batch_size=args.batch_size,
            overwrite=args.overwrite,
            pause_seconds=args.pause,
        )
        report = await service.run()
    except CacheError as e:
        logger.error("Backfill failed: %s", e)
        return 1
    finally:
        await provider.close()
        await durable.close()

    logger.info("Report: %s", report.to_dict())
    return 1 if report.failed_batches else 0


def main() -> None:
    configure_logging()
    sys.exit(asyncio.run(run(parse_args())))


if __name__ == "__main__":
    main()
