"""JSON store for harvested NOTAMs."""
import json
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from iaa_notams.config import Config
from iaa_notams.exceptions import StoreCorruption
from iaa_notams.models.notam import Notam, parse_iso

logger = logging.getLogger(__name__)

STORE_FILENAME = 'notams.json'
BACKUP_PREFIX = 'notams-backup-'
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class NotamStorage:
    """In-memory view of the persisted store."""
    notams: List[Notam] = field(default_factory=list)
    last_updated: datetime = EPOCH
    total_count: int = 0
    new_count: int = 0
    metadata: Dict[str, str] = field(default_factory=lambda: {
        'version': Config.VERSION,
        'source': Config.SOURCE_NAME,
    })

    def known_ids(self) -> Set[str]:
        return {notam.notam_id for notam in self.notams}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'notams': [notam.to_dict() for notam in self.notams],
            'lastUpdated': self.last_updated.isoformat(),
            'totalCount': self.total_count,
            'newCount': self.new_count,
            'metadata': dict(self.metadata),
        }


def _sort_key(notam: Notam):
    # newest first, then ascending id
    return (-notam.created_at.timestamp(), notam.notam_id)


def sort_notams(notams: Iterable[Notam]) -> List[Notam]:
    """Order records newest-first by created_at, ties by ascending id."""
    return sorted(notams, key=_sort_key)


def merge_notams(existing: NotamStorage, incoming: Iterable[Notam]) -> Tuple[NotamStorage, int]:
    """
    Merge newly extracted NOTAMs into a store.

    Incoming records whose id is already stored are dropped (first seen
    wins); duplicates within the batch keep their first occurrence.

    Returns:
        Tuple of (merged storage, number of records added)
    """
    seen = existing.known_ids()
    added: List[Notam] = []

    for notam in incoming:
        if notam.notam_id in seen:
            logger.debug(f"NOTAM {notam.notam_id} already exists, skipping")
            continue
        seen.add(notam.notam_id)
        added.append(notam)

    merged_notams = sort_notams([*existing.notams, *added])
    merged = NotamStorage(
        notams=merged_notams,
        last_updated=existing.last_updated,
        total_count=len(merged_notams),
        new_count=len(added),
        metadata=dict(existing.metadata),
    )
    return merged, len(added)


def cleanup_old_notams(
    notams: List[Notam],
    max_age_days: Optional[int] = None,
    max_count: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[Notam]:
    """
    Drop stale records.

    A record survives max_age_days if it was created recently or is still
    valid. max_count then keeps only the newest records.
    """
    now = now or datetime.now(timezone.utc)
    filtered = list(notams)

    if max_age_days:
        cutoff = now - timedelta(days=max_age_days)
        filtered = [
            notam for notam in filtered
            if notam.created_at >= cutoff or notam.valid_to is None or notam.valid_to >= now
        ]

    if max_count and len(filtered) > max_count:
        filtered = sort_notams(filtered)[:max_count]

    return filtered


class NotamStore:
    """Handles loading, merging and atomic persistence of the NOTAM store."""

    def __init__(
        self,
        data_directory: str,
        backup_directory: Optional[str] = None,
        max_backups: int = 5,
    ):
        """Initialize the store location."""
        self.data_directory = Path(data_directory)
        self.backup_directory = Path(backup_directory) if backup_directory else None
        self.max_backups = max_backups
        self.path = self.data_directory / STORE_FILENAME

    def _read(self) -> Dict[str, Any]:
        """
        Read the raw JSON document.

        Raises:
            FileNotFoundError: no store yet
            StoreCorruption: unreadable or not a JSON object
        """
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StoreCorruption(f"{self.path} is not valid JSON: {e}") from e
        except UnicodeDecodeError as e:
            raise StoreCorruption(f"{self.path} is not UTF-8: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get('notams', []), list):
            raise StoreCorruption(f"{self.path} does not contain a NOTAM store document")
        if not isinstance(data.get('lastUpdated', ''), (str, type(None))):
            raise StoreCorruption(f"{self.path}: lastUpdated is not a string")
        if not isinstance(data.get('metadata', {}), (dict, type(None))):
            raise StoreCorruption(f"{self.path}: metadata is not an object")
        return data

    def load(self) -> NotamStorage:
        """
        Load the persisted store.

        A missing or corrupt file yields an empty store; individual bad
        records are skipped.
        """
        try:
            data = self._read()
        except FileNotFoundError:
            logger.info(f"No existing NOTAM storage at {self.path}, starting fresh")
            return NotamStorage()
        except StoreCorruption as e:
            logger.warning(f"Ignoring corrupt NOTAM storage: {e}")
            return NotamStorage()

        notams = []
        for record in data.get('notams', []):
            try:
                notams.append(Notam.from_dict(record))
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping unreadable stored record {record!r:.80}: {e}")

        metadata = data.get('metadata') or {}
        try:
            last_updated = parse_iso(data.get('lastUpdated')) or EPOCH
        except ValueError:
            logger.warning(f"Unreadable lastUpdated in {self.path}, using epoch")
            last_updated = EPOCH

        storage = NotamStorage(
            notams=notams,
            last_updated=last_updated,
            total_count=len(notams),
            new_count=0,
            metadata={
                **metadata,
                'version': metadata.get('version', Config.VERSION),
                'source': metadata.get('source', Config.SOURCE_NAME),
            },
        )
        logger.info(f"Loaded {storage.total_count} NOTAM(s) from {self.path}")
        return storage

    def save(self, storage: NotamStorage) -> NotamStorage:
        """
        Persist the store atomically (write temp file, then replace).

        Recomputes total_count and stamps last_updated.

        Returns:
            The storage as written
        """
        self.data_directory.mkdir(parents=True, exist_ok=True)
        self._create_backup()

        storage.total_count = len(storage.notams)
        storage.last_updated = datetime.now(timezone.utc)

        _write_json_atomic(self.path, storage.to_dict())

        logger.info(f"Saved {storage.total_count} NOTAM(s) to {self.path} ({storage.new_count} new)")
        return storage

    @staticmethod
    def merge(existing: NotamStorage, incoming: Iterable[Notam]) -> Tuple[NotamStorage, int]:
        """See merge_notams."""
        return merge_notams(existing, incoming)

    def _create_backup(self) -> None:
        """Copy the current store file into the backup directory."""
        if not self.backup_directory or not self.path.exists():
            return

        try:
            self.backup_directory.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now(timezone.utc).strftime('%Y-%m-%dT%H-%M-%S-%f')
            backup_file = self.backup_directory / f"{BACKUP_PREFIX}{timestamp}.json"
            shutil.copy2(self.path, backup_file)
            logger.debug(f"Backed up store to {backup_file}")
            self._cleanup_old_backups()
        except OSError as e:
            logger.warning(f"Failed to create backup: {e}")

    def _cleanup_old_backups(self) -> None:
        """Keep only the newest max_backups backup files."""
        if not self.max_backups:
            return

        backups = sorted(
            self.backup_directory.glob(f"{BACKUP_PREFIX}*.json"),
            key=lambda p: p.name,
            reverse=True,
        )
        stale = backups[self.max_backups:]
        for path in stale:
            path.unlink()

        if stale:
            logger.info(f"Cleaned up {len(stale)} old backup file(s)")

    @staticmethod
    def stats(storage: NotamStorage) -> Dict[str, Any]:
        """Get summary statistics."""
        created = sorted(notam.created_at for notam in storage.notams)

        return {
            'total_count': len(storage.notams),
            'new_count': storage.new_count,
            'last_updated': storage.last_updated,
            'oldest_created_at': created[0] if created else None,
            'newest_created_at': created[-1] if created else None,
        }


def export_notams(notams: List[Notam], output_path: str, date: Optional[str] = None) -> Path:
    """
    Write a standalone {notams, lastUpdated, totalCount[, date]} document.

    Returns:
        Path of the written file
    """
    document: Dict[str, Any] = {
        'notams': [notam.to_dict() for notam in notams],
        'lastUpdated': datetime.now(timezone.utc).isoformat(),
        'totalCount': len(notams),
    }
    if date:
        document['date'] = date

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    _write_json_atomic(path, document)

    logger.info(f"Exported {len(notams)} NOTAM(s) to {path}")
    return path


def _write_json_atomic(path: Path, document: Dict[str, Any]) -> None:
    """Pretty-print JSON into a sibling temp file and rename it over path."""
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix='.tmp')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(document, f, indent=2, ensure_ascii=False)
            f.write('\n')
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
