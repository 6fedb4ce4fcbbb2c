#!/usr/bin/env python3
"""
Warm the cache from a file of prompts, one per line.

Prompts that already hit are left alone; misses are answered by the
configured chat completion API and stored. Succeeded and failed prompts are
written to separate files so a failed run can be resumed.

Usage:
    python scripts/warm_cache.py prompts.txt --concurrency 5
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from hybrid_cache.config import configure_logging
from hybrid_cache.repositories import ChatCompletionGenerator
from hybrid_cache.services import CacheService, WarmupService, read_inputs

logger = logging.getLogger("warm_cache")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("input", type=Path, help="Text file with one prompt per line")
    parser.add_argument("--concurrency", type=int, default=5, help="Prompts processed at once")
    parser.add_argument(
        "--success-log",
        type=Path,
        default=Path("warmup_success.txt"),
        help="File receiving prompts that hit or were stored",
    )
    parser.add_argument(
        "--failed-log",
        type=Path,
        default=Path("warmup_failed.txt"),
        help="File receiving prompts whose generation failed",
    )
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    inputs = read_inputs(args.input)
    logger.info("Loaded %d prompts from %s", len(inputs), args.input)

    cache = CacheService.from_settings()
    generator = ChatCompletionGenerator.create()
    try:
        await cache.connect()
        report = await WarmupService(cache, generator, concurrency=args.concurrency).run(inputs)
    finally:
        await generator.close()
        await cache.close()

    args.success_log.write_text("".join(f"{text}\n" for text in report.succeeded), encoding="utf-8")
    args.failed_log.write_text(
        "".join(f"{text}\t{error}\n" for text, error in report.failed.items()),
        encoding="utf-8",
    )
    logger.info("Report: %s", report.to_dict())
    return 1 if report.failed else 0


def main() -> None:
    configure_logging()
    sys.exit(asyncio.run(run(parse_args())))


if __name__ == "__main__":
    main()
