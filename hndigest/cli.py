"""hndigest — fetch, classify, record and deliver a news digest."""

import argparse
import logging
import sys
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

import httpx

from hndigest.config import AppConfig, load_app_config
from hndigest.errors import ConfigError, DeliveryError, StoreError
from hndigest.fetchers.hackernews import HackerNewsFetcher
from hndigest.fetchers.rss_fetcher import fetch_all_feeds
from hndigest.models import CandidateItem, Source
from hndigest.processing.blacklist import BlacklistGuard
from hndigest.processing.filters import FilterSet
from hndigest.processing.pipeline import ClassificationPipeline
from hndigest.processing.vacuum import RetentionPurgeJob
from hndigest.senders.base import get_sender, select_channel
from hndigest.storage.database import IN_MEMORY, ItemStore

logger = logging.getLogger("hndigest")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Hacker News and RSS digest")
    parser.add_argument(
        "-c", "--config",
        default="config.yaml",
        help="Config file path (YAML or JSON, default: config.yaml)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "-r", "--reverse",
        action="store_true",
        help="Deliver only items that match none of the configured filters",
    )
    mode.add_argument(
        "-v", "--vacuum",
        action="store_true",
        help="Purge expired items from the database and exit",
    )
    parser.add_argument(
        "--feeds-only",
        action="store_true",
        help="Skip Hacker News and fetch only the configured RSS feeds",
    )
    return parser.parse_args(argv)


def setup_logging(log_path: Optional[Path]):
    """Log to stdout, plus a midnight-rotated file next to the database."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = TimedRotatingFileHandler(
            filename=log_path,
            when='midnight',
            interval=1,
            backupCount=7,
            encoding='utf-8'
        )
        handler.suffix = '%Y-%m-%d'
        handlers.append(handler)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s %(levelname)s %(message)s',
        handlers=handlers,
    )


def fetch_candidates(
    config: AppConfig, store: ItemStore, feeds_only: bool = False
) -> list[CandidateItem]:
    """Collect one ordered batch: Hacker News first, then RSS feeds in config order."""
    candidates: list[CandidateItem] = []

    if not feeds_only:
        fetcher = HackerNewsFetcher(
            api_base_url=config.api_base_url,
            timeout=config.feed_timeout,
            max_items=config.max_items,
            max_concurrent=config.max_concurrent,
        )
        try:
            candidates.extend(fetcher.fetch(known_ids=store.query_ids(Source.primary())))
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"  [HN] Fetch failed, continuing without it: {e}")

    if config.rss_sources:
        candidates.extend(fetch_all_feeds(list(config.rss_sources), timeout=config.feed_timeout))

    return candidates


def run_digest(config: AppConfig, store: ItemStore, filters: FilterSet,
               blacklist: BlacklistGuard, sender, reverse: bool, feeds_only: bool) -> int:
    logger.info("[1/3] Fetching candidates...")
    candidates = fetch_candidates(config, store, feeds_only=feeds_only)
    logger.info(f"  Total candidates: {len(candidates)}")

    logger.info(f"[2/3] Classifying ({'reverse' if reverse else 'normal'} mode)...")
    pipeline = ClassificationPipeline(
        store, filters, blacklist, include_unmatched=config.include_unmatched
    )
    result = pipeline.run(candidates, reverse=reverse)
    logger.info(
        f"  Blacklisted: {result.blacklisted}  Already seen: {result.duplicates}  "
        f"Recorded: {result.recorded}  In digest: {result.included}"
    )

    logger.info(f"[3/3] Delivering {result.included} items...")
    sender.send(result.digest)

    if config.purge_after_run:
        RetentionPurgeJob(store).run(config.retention)

    return result.included


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)

    try:
        config = load_app_config(Path(args.config))
        filters = FilterSet(config.filters)
        blacklist = BlacklistGuard(config.blacklisted_domains)
        sender = get_sender(config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    log_path = None
    if config.db_file != IN_MEMORY:
        log_path = Path(config.db_file).parent / "hndigest.log"
    setup_logging(log_path)

    start_time = datetime.now()
    logger.info("=" * 60)
    logger.info(f"hndigest — {'vacuum' if args.vacuum else 'digest'} run")
    logger.info(f"Started: {start_time.strftime('%Y-%m-%d %H:%M:%S')}")
    logger.info("=" * 60)

    try:
        with ItemStore(config.db_file) as store:
            if args.vacuum:
                removed = RetentionPurgeJob(store).run(config.retention)
                summary = f"Purged:      {removed} items"
            else:
                logger.info(f"  Filters: {len(filters)}  Delivery: {select_channel(config).value}")
                included = run_digest(
                    config, store, filters, blacklist, sender,
                    reverse=args.reverse, feeds_only=args.feeds_only,
                )
                summary = f"Delivered:   {included} items"
    except StoreError as e:
        logger.error(f"Item store error: {e}")
        return EXIT_FAILURE
    except DeliveryError as e:
        logger.error(f"Delivery failed: {e}")
        return EXIT_FAILURE

    end_time = datetime.now()
    duration = (end_time - start_time).total_seconds()
    logger.info("=" * 60)
    logger.info("Run complete")
    logger.info(f"  Finished:    {end_time.strftime('%Y-%m-%d %H:%M:%S')}")
    logger.info(f"  Duration:    {duration:.1f}s")
    logger.info(f"  {summary}")
    logger.info("=" * 60)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
