#!/usr/bin/env python3
"""Store maintenance CLI."""
import argparse
import logging
from datetime import date

from iaa_notams.config import Config
from iaa_notams.reports import filter_notams_by_date
from iaa_notams.store import NotamStore, cleanup_old_notams, export_notams, sort_notams

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s.%(msecs)03d | %(levelname)-8s | %(name)-20s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)


def main(argv=None):
    parser = argparse.ArgumentParser(description='NOTAM store maintenance')
    parser.add_argument('--cleanup-max-age', type=int, metavar='DAYS',
                        help='Drop NOTAMs created more than DAYS ago that are no longer valid')
    parser.add_argument('--cleanup-max-count', type=int, metavar='N',
                        help='Keep only the N newest NOTAMs')
    parser.add_argument('--cleanup-all', action='store_true',
                        help='Run cleanup with configured values')
    parser.add_argument('--export-daily', nargs=2, metavar=('DATE', 'PATH'),
                        help='Export NOTAMs valid on DATE (YYYY-MM-DD) to PATH')

    args = parser.parse_args(argv)

    config = Config()
    store = NotamStore(config.DATA_DIRECTORY, config.BACKUP_DIRECTORY, config.MAX_BACKUPS)

    max_age = args.cleanup_max_age
    max_count = args.cleanup_max_count
    if args.cleanup_all:
        max_age = max_age or config.CLEANUP_MAX_AGE_DAYS
        max_count = max_count or config.CLEANUP_MAX_COUNT

    if max_age or max_count:
        storage = store.load()
        before = len(storage.notams)
        storage.notams = sort_notams(cleanup_old_notams(storage.notams, max_age, max_count))
        storage.new_count = 0
        store.save(storage)
        logger.info(f"Purged {before - len(storage.notams)} NOTAM(s), {len(storage.notams)} remain")

    if args.export_daily:
        day_str, path = args.export_daily
        day = date.fromisoformat(day_str)
        storage = store.load()
        notams = filter_notams_by_date(storage.notams, day)
        export_notams(notams, path, day.isoformat())


if __name__ == '__main__':
    main()
