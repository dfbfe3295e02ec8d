"""Main application module."""
import argparse
import asyncio
import logging
import sys
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from iaa_notams.config import Config
from iaa_notams.exceptions import TransportFailure
from iaa_notams.extractor import NotamExtractor
from iaa_notams.html_scraper import StaticNotamScraper
from iaa_notams.page_driver import PageDriver, PlaywrightPageDriver
from iaa_notams.store import NotamStorage, NotamStore, merge_notams

logger = logging.getLogger(__name__)


def configure_logging(level: Optional[str] = None) -> None:
    """Configure logging from environment."""
    log_level = level or Config.LOG_LEVEL
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s.%(msecs)03d | %(levelname)-8s | %(name)-20s | %(filename)-15s | %(funcName)-15s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )


class FetchMode(Enum):
    """How a run decides which entries to expand."""
    INCREMENTAL = "incremental"
    FULL_REFRESH = "full-refresh"
    STATIC = "static"


class RunState(Enum):
    """Orchestrator state machine."""
    IDLE = "idle"
    LOADING = "loading"
    EXTRACTING = "extracting"
    MERGING = "merging"
    PERSISTED = "persisted"


@dataclass
class RunReport:
    """Outcome of one harvest run."""
    mode: FetchMode
    total_count: int = 0
    new_count: int = 0
    extracted_count: int = 0
    failed_ids: List[str] = field(default_factory=list)
    elapsed: float = 0.0


class NotamHarvester:
    """Main application class for harvesting NOTAMs into the JSON store."""

    def __init__(
        self,
        config: Optional[Config] = None,
        store: Optional[NotamStore] = None,
        driver_factory: Optional[Callable[[], PageDriver]] = None,
        static_scraper: Optional[StaticNotamScraper] = None,
    ):
        """Initialize the harvester."""
        self.config = config or Config()
        self.config.validate()

        self.store = store or NotamStore(
            self.config.DATA_DIRECTORY,
            self.config.BACKUP_DIRECTORY,
            self.config.MAX_BACKUPS,
        )
        self.driver_factory = driver_factory or (lambda: PlaywrightPageDriver(self.config))
        self.static_scraper = static_scraper
        self.state = RunState.IDLE

        logger.info("=" * 80)
        logger.info("NOTAM Harvester initialized")
        logger.info(f"Software Version: {self.config.VERSION}")
        logger.info(f"Source page: {self.config.NOTAM_PAGE_URL}")
        logger.info(f"Store: {self.store.path}")
        logger.info(f"Expand timeout: {self.config.EXPAND_TIMEOUT_MS}ms")
        logger.info(f"Entry delay: {self.config.MIN_ENTRY_DELAY}-{self.config.MAX_ENTRY_DELAY}s")
        logger.info("=" * 80)

    def _transition(self, state: RunState) -> None:
        logger.debug(f"State: {self.state.value} -> {state.value}")
        self.state = state

    async def _extract_with_browser(self, known_ids) -> tuple:
        """Open the page and run the extractor. Returns (notams, failed_ids)."""
        async with self.driver_factory() as driver:
            await driver.open(
                self.config.NOTAM_PAGE_URL,
                self.config.ROOT_SELECTOR,
                self.config.PAGE_TIMEOUT_MS,
            )
            extractor = NotamExtractor(driver, self.config)
            notams = await extractor.extract_all(known_ids)
            return notams, extractor.failed_ids

    def _extract_static(self, known_ids) -> tuple:
        logger.warning("Static mode: expanded fields (A/B/C, Q line) are not available")
        scraper = self.static_scraper or StaticNotamScraper(self.config)
        return scraper.fetch_notams(known_ids), []

    async def run_once(self, mode: FetchMode = FetchMode.INCREMENTAL, clear_storage: bool = False) -> RunReport:
        """
        Run a single harvest cycle.

        Nothing is written until the merge has succeeded in memory, so a
        failure at any step leaves the persisted store untouched.

        Raises:
            TransportFailure: the source page could not be reached
        """
        logger.info("=" * 80)
        logger.info(f"Starting NOTAM harvest ({mode.value})")
        logger.info("=" * 80)

        start_time = time.time()
        report = RunReport(mode=mode)

        try:
            self._transition(RunState.LOADING)
            if clear_storage:
                # the old file is only replaced (and backed up) by save()
                logger.info("Starting from an empty store, stored NOTAMs will be replaced")
                storage = NotamStorage()
            else:
                storage = self.store.load()
            known_ids = storage.known_ids() if mode == FetchMode.INCREMENTAL else set()

            self._transition(RunState.EXTRACTING)
            if mode == FetchMode.STATIC:
                notams, failed_ids = self._extract_static(known_ids)
            else:
                notams, failed_ids = await self._extract_with_browser(known_ids)

            self._transition(RunState.MERGING)
            merged, new_count = merge_notams(storage, notams)

            self.store.save(merged)
            self._transition(RunState.PERSISTED)
        finally:
            self._transition(RunState.IDLE)

        report.total_count = merged.total_count
        report.new_count = new_count
        report.extracted_count = len(notams)
        report.failed_ids = failed_ids
        report.elapsed = time.time() - start_time

        # Display statistics
        stats = self.store.stats(merged)
        logger.info("=" * 80)
        logger.info("Store Statistics:")
        logger.info(f"  Total NOTAMs in store: {stats['total_count']}")
        logger.info(f"  New this run: {stats['new_count']}")
        logger.info(f"  Extracted this run: {report.extracted_count}")
        if stats['oldest_created_at']:
            logger.info(f"  Oldest record: {stats['oldest_created_at'].isoformat()}")
            logger.info(f"  Newest record: {stats['newest_created_at'].isoformat()}")
        if report.failed_ids:
            logger.warning(f"  Entries with warnings: {', '.join(report.failed_ids)}")
        logger.info(f"  Cycle time: {report.elapsed:.2f}s")
        logger.info("=" * 80)

        return report

    async def run_continuous(self, mode: FetchMode = FetchMode.INCREMENTAL):
        """Run continuous harvesting; cycles never overlap."""
        logger.info("Starting continuous harvesting mode")
        logger.info(f"Update interval: {self.config.UPDATE_INTERVAL_SECONDS}s")

        while True:
            try:
                await self.run_once(mode)
            except TransportFailure as e:
                logger.error(f"Harvest cycle failed, store unchanged: {e}")
            logger.info(f"Next update in {self.config.UPDATE_INTERVAL_SECONDS}s...")
            await asyncio.sleep(self.config.UPDATE_INTERVAL_SECONDS)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Harvest IAA NOTAMs into the JSON store')
    parser.add_argument('--once', action='store_true',
                        help='Run a single cycle and exit')
    parser.add_argument('--full-refresh', action='store_true',
                        help='Expand every entry on the page, not only unseen ones')
    parser.add_argument('--clear', action='store_true',
                        help='With --full-refresh: start from an empty store')
    parser.add_argument('--static', action='store_true',
                        help='Fetch without a browser (short-form data only)')
    parser.add_argument('--no-headless', action='store_true',
                        help='Run the browser in visible mode (debugging)')
    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    configure_logging()
    args = build_arg_parser().parse_args(argv)

    if args.static:
        mode = FetchMode.STATIC
    elif args.full_refresh:
        mode = FetchMode.FULL_REFRESH
    else:
        mode = FetchMode.INCREMENTAL

    try:
        config = Config()
        harvester = NotamHarvester(
            config,
            driver_factory=lambda: PlaywrightPageDriver(config, headless=not args.no_headless),
        )

        if args.once:
            report = asyncio.run(harvester.run_once(mode, clear_storage=args.clear and args.full_refresh))
            logger.info(
                f"Done: {report.total_count} stored, {report.new_count} new, "
                f"{len(report.failed_ids)} with warnings"
            )
        else:
            asyncio.run(harvester.run_continuous(mode))
    except KeyboardInterrupt:
        logger.info("Harvesting stopped by user")
    except TransportFailure as e:
        logger.error(f"Could not reach the NOTAM page: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
