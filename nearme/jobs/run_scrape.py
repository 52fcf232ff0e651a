"""CLI job that scrapes every source and publishes the merged dataset."""

import argparse
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from nearme.core.config import get_settings
from nearme.core.geocode import Geocoder
from nearme.etl.aggregate import aggregate, build_payload, write_output
from nearme.models import Dispensary
from nearme.sources import registry

logger = logging.getLogger(__name__)


def _run_adapter(name: str, fetch: registry.Adapter, geocoder: Geocoder) -> List[Dispensary]:
    try:
        results = fetch(geocoder)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Scraper %s failed: %s", name, exc)
        return []
    logger.info("Scraper %s returned %d dispensaries", name, len(results))
    return list(results)


def collect(
    adapters: Sequence[Tuple[str, registry.Adapter]],
    geocoder: Geocoder,
    workers: int,
) -> List[List[Dispensary]]:
    """Run adapters, concurrently when workers > 1; results keep adapter order."""
    if workers <= 1:
        return [_run_adapter(name, fetch, geocoder) for name, fetch in adapters]

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(_run_adapter, name, fetch, geocoder) for name, fetch in adapters]
        return [future.result() for future in futures]


def run_scrape_job(
    *,
    output_path: str,
    geocode_cache_path: str,
    only: Optional[Sequence[str]] = None,
    workers: int = 1,
    retry_not_found: bool = False,
    adapters: Optional[Sequence[Tuple[str, registry.Adapter]]] = None,
) -> Path:
    started_at = datetime.now(timezone.utc)
    selected = list(adapters) if adapters is not None else registry.select(only)
    logger.info("Started scrape with %d adapters: %s", len(selected), ", ".join(name for name, _ in selected))

    with Geocoder(geocode_cache_path, retry_not_found=retry_not_found) as geocoder:
        per_adapter = collect(selected, geocoder, workers)
        logger.info("Geocoder made %d live lookups; cache holds %d entries", geocoder.lookups, len(geocoder))

    records = aggregate(per_adapter)
    payload = build_payload(records, generated_at=datetime.now(timezone.utc))
    target = write_output(output_path, payload)

    elapsed = (datetime.now(timezone.utc) - started_at).total_seconds()
    logger.info("Completed run: dispensaries=%d elapsed=%.1fs", len(records), elapsed)
    return target


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Scrape licensed cannabis retailers into one dataset")
    parser.add_argument(
        "--only",
        dest="only",
        action="append",
        choices=registry.ADAPTER_NAMES,
        help="Run only this adapter (repeatable)",
    )
    parser.add_argument("--output", dest="output_path", default=settings.output_path, help="Dataset output path")
    parser.add_argument(
        "--geocode-cache",
        dest="geocode_cache_path",
        default=settings.geocode_cache_path,
        help="Persistent geocode cache path",
    )
    parser.add_argument(
        "--workers",
        dest="workers",
        type=int,
        default=settings.scraper_workers,
        help="Adapters to run concurrently (1 runs sequentially)",
    )
    parser.add_argument(
        "--retry-not-found",
        dest="retry_not_found",
        action="store_true",
        help="Retry addresses cached as not found",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        run_scrape_job(
            output_path=args.output_path,
            geocode_cache_path=args.geocode_cache_path,
            only=args.only,
            workers=args.workers,
            retry_not_found=args.retry_not_found,
        )
    except OSError as exc:
        logger.error("Failed to write output: %s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
