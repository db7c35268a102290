"""Entry point: CLI argument parsing + store setup + product generation."""

from __future__ import annotations

import argparse
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from gaia.config import AppConfig, StorageConfig, load_config, with_overrides
from gaia.errors import GaiaError
from gaia.pipeline import ProductGenerator
from gaia.storage.store import FileStore, Store


def setup_logging(log_dir: str, level: str = "INFO", verbose: bool = False) -> None:
    """Configure logging to both console and file."""
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    level_value = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    logging.basicConfig(
        level=level_value,
        format=fmt,
        handlers=[
            logging.StreamHandler(sys.stdout),
            RotatingFileHandler(log_path / "gaia.log", maxBytes=10 * 1024 * 1024,
                                backupCount=5),
        ],
    )


def build_store(config: StorageConfig) -> Store:
    """Create the configured store backend."""
    if config.backend == "s3":
        from gaia.storage.s3_store import S3Store
        return S3Store(bucket=config.bucket, prefix=config.prefix,
                       region=config.region, endpoint_url=config.endpoint_url)
    if config.backend == "file":
        return FileStore(config.root)
    raise ValueError(f"Unknown storage backend: {config.backend}")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate change and cover products for a chip"
    )
    parser.add_argument(
        "product",
        choices=ProductGenerator.PRODUCTS,
        help="Product type to generate",
    )
    parser.add_argument("--cx", type=int, required=True, help="Chip x coordinate")
    parser.add_argument("--cy", type=int, required=True, help="Chip y coordinate")
    parser.add_argument("--tile", required=True, help="Tile identifier, e.g. 027008")
    parser.add_argument(
        "--dates",
        nargs="+",
        required=True,
        help="Query dates (YYYY-MM-DD)",
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to YAML config file (default: $GAIA_CONFIG or config/default.yaml)",
    )
    parser.add_argument(
        "-w", "--workers",
        type=int,
        default=None,
        help="Worker pool size (overrides config)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    # Load configuration
    config: AppConfig = load_config(args.config)

    # Apply CLI overrides
    if args.workers:
        config = with_overrides(config, "pipeline", worker_count=args.workers)

    setup_logging(config.logging.log_dir, config.logging.level, args.verbose)
    logger = logging.getLogger(__name__)
    logger.info("Storage backend: %s", config.storage.backend)
    logger.info("Worker pool size: %d", config.pipeline.worker_count)

    try:
        store = build_store(config.storage)
        generator = ProductGenerator(store, config)
        summary = generator.generate(args.product, args.cx, args.cy, args.tile, args.dates)
    except (GaiaError, ValueError) as exc:
        logger.error("%s", exc)
        return 1

    logger.info("Generated %s products for chip (%d, %d): %s",
                summary["products"], summary["cx"], summary["cy"],
                ", ".join(summary["dates"]))
    return 0


if __name__ == "__main__":
    sys.exit(main())
