"""Unit tests for the JSON store and merge engine."""
import json
from datetime import datetime, timedelta, timezone

import pytest

import iaa_notams.store as store_module
from iaa_notams.models.notam import Notam
from iaa_notams.store import (
    EPOCH,
    NotamStorage,
    NotamStore,
    cleanup_old_notams,
    export_notams,
    merge_notams,
    sort_notams,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_notam(notam_id, body='TEST', hours_ago=0, valid_to=None):
    return Notam(
        notam_id=notam_id,
        location_code='LLBG',
        body_text=body,
        valid_to=valid_to,
        created_at=NOW - timedelta(hours=hours_ago),
    )


class TestMerge:
    """Test cases for merge_notams."""

    def test_empty_store_all_new(self):
        incoming = [make_notam('A0001/25'), make_notam('A0002/25')]

        merged, new_count = merge_notams(NotamStorage(), incoming)

        assert new_count == 2
        assert merged.total_count == 2
        assert merged.new_count == 2

    def test_new_count_is_unseen_ids(self):
        existing = NotamStorage(notams=[make_notam('A0001/25'), make_notam('A0002/25')])
        incoming = [make_notam('A0002/25'), make_notam('A0003/25'), make_notam('C0004/25')]

        merged, new_count = merge_notams(existing, incoming)

        assert new_count == 2
        assert {n.notam_id for n in merged.notams} == {'A0001/25', 'A0002/25', 'A0003/25', 'C0004/25'}

    def test_first_seen_wins(self):
        existing = NotamStorage(notams=[make_notam('A0001/25', body='ORIGINAL')])

        merged, _ = merge_notams(existing, [make_notam('A0001/25', body='REPUBLISHED')])

        assert [n.body_text for n in merged.notams] == ['ORIGINAL']

    def test_duplicates_within_batch(self):
        incoming = [make_notam('A0001/25', body='FIRST'), make_notam('A0001/25', body='SECOND')]

        merged, new_count = merge_notams(NotamStorage(), incoming)

        assert new_count == 1
        assert merged.notams[0].body_text == 'FIRST'

    def test_idempotent(self):
        incoming = [make_notam('A0001/25'), make_notam('A0002/25', hours_ago=1)]
        once, _ = merge_notams(NotamStorage(), incoming)

        twice, new_count = merge_notams(once, incoming)

        assert new_count == 0
        assert [n.notam_id for n in twice.notams] == [n.notam_id for n in once.notams]

    def test_ordering(self):
        notams = [
            make_notam('C0003/25', hours_ago=2),
            make_notam('A0002/25'),
            make_notam('A0001/25'),
        ]

        assert [n.notam_id for n in sort_notams(notams)] == ['A0001/25', 'A0002/25', 'C0003/25']

    def test_store_merge_delegates(self):
        merged, new_count = NotamStore.merge(NotamStorage(), [make_notam('A0001/25')])

        assert new_count == 1
        assert merged.known_ids() == {'A0001/25'}


class TestNotamStore:
    """Test cases for NotamStore persistence."""

    @pytest.fixture
    def store(self, tmp_path):
        return NotamStore(tmp_path / 'data', tmp_path / 'backups', max_backups=2)

    def test_missing_file_is_empty(self, store):
        storage = store.load()

        assert storage.notams == []
        assert storage.total_count == 0
        assert storage.last_updated == EPOCH

    def test_corrupt_file_is_empty(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text('{"notams": [', encoding='utf-8')

        assert store.load().notams == []

    def test_wrong_shape_is_empty(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text('[1, 2, 3]', encoding='utf-8')

        assert store.load().notams == []

    @pytest.mark.parametrize('document', [
        {'notams': [], 'lastUpdated': 12345},
        {'notams': [], 'lastUpdated': None, 'metadata': ['x']},
    ])
    def test_wrong_field_types_are_empty(self, store, document):
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps(document), encoding='utf-8')

        storage = store.load()

        assert storage.notams == []
        assert storage.last_updated == EPOCH

    def test_unparseable_last_updated(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({
            'notams': [{'id': 'A0001/25'}],
            'lastUpdated': 'yesterday',
        }), encoding='utf-8')

        storage = store.load()

        assert storage.known_ids() == {'A0001/25'}
        assert storage.last_updated == EPOCH

    def test_bad_records_skipped(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({
            'notams': [
                {'id': 'A0001/25', 'bodyText': 'OK'},
                {'bodyText': 'no id'},
                {'id': 'A0002/25', 'validFrom': '2025-01-02T00:00:00Z', 'validTo': '2025-01-01T00:00:00Z'},
            ],
            'lastUpdated': '2025-01-01T00:00:00Z',
        }), encoding='utf-8')

        storage = store.load()

        assert [n.notam_id for n in storage.notams] == ['A0001/25']
        assert storage.last_updated == datetime(2025, 1, 1, tzinfo=timezone.utc)

    def test_save_then_load(self, store):
        storage, _ = merge_notams(NotamStorage(), [make_notam('A0001/25'), make_notam('C0002/25', hours_ago=1)])

        store.save(storage)
        loaded = store.load()

        assert loaded.notams == storage.notams
        assert loaded.total_count == 2
        assert loaded.metadata['source'] == 'israeli-aviation-authority'
        assert loaded.last_updated > EPOCH

    def test_file_layout(self, store):
        storage, _ = merge_notams(NotamStorage(), [make_notam('A0001/25')])
        store.save(storage)

        text = store.path.read_text(encoding='utf-8')
        document = json.loads(text)

        assert set(document) == {'notams', 'lastUpdated', 'totalCount', 'newCount', 'metadata'}
        assert document['totalCount'] == 1
        assert document['newCount'] == 1
        assert document['notams'][0]['locationCode'] == 'LLBG'
        assert text.startswith('{\n  "notams"')

    def test_no_temp_files_left(self, store):
        store.save(NotamStorage(notams=[make_notam('A0001/25')]))

        assert [p.name for p in store.data_directory.iterdir()] == ['notams.json']

    def test_failed_write_keeps_previous_file(self, store, monkeypatch):
        store.save(NotamStorage(notams=[make_notam('A0001/25')]))
        before = store.path.read_text(encoding='utf-8')

        def boom(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(store_module.json, 'dump', boom)

        with pytest.raises(OSError):
            store.save(NotamStorage(notams=[make_notam('A0002/25')]))

        assert store.path.read_text(encoding='utf-8') == before
        assert [p.name for p in store.data_directory.iterdir()] == ['notams.json']

    def test_backups_rotated(self, store):
        for idx in range(4):
            store.save(NotamStorage(notams=[make_notam(f'A000{idx}/25')]))

        backups = list(store.backup_directory.glob('notams-backup-*.json'))
        assert len(backups) == 2

    def test_stats(self, store):
        storage = NotamStorage(notams=[make_notam('A0001/25'), make_notam('A0002/25', hours_ago=5)])

        stats = store.stats(storage)

        assert stats['total_count'] == 2
        assert stats['oldest_created_at'] == NOW - timedelta(hours=5)
        assert stats['newest_created_at'] == NOW

    def test_stats_empty(self, store):
        stats = store.stats(NotamStorage())

        assert stats['total_count'] == 0
        assert stats['oldest_created_at'] is None


class TestCleanupAndExport:
    """Test cases for retention and export helpers."""

    def test_max_age_keeps_still_valid(self):
        notams = [
            make_notam('A0001/25', hours_ago=24 * 40, valid_to=NOW - timedelta(days=1)),
            make_notam('A0002/25', hours_ago=24 * 40, valid_to=NOW + timedelta(days=1)),
            make_notam('A0003/25', hours_ago=24 * 40),
            make_notam('A0004/25', hours_ago=1, valid_to=NOW - timedelta(hours=2)),
        ]

        kept = cleanup_old_notams(notams, max_age_days=30, now=NOW)

        assert [n.notam_id for n in kept] == ['A0002/25', 'A0003/25', 'A0004/25']

    def test_max_count_keeps_newest(self):
        notams = [make_notam(f'A000{idx}/25', hours_ago=idx) for idx in range(5)]

        kept = cleanup_old_notams(notams, max_count=2, now=NOW)

        assert [n.notam_id for n in kept] == ['A0000/25', 'A0001/25']

    def test_export(self, tmp_path):
        path = export_notams([make_notam('A0001/25')], str(tmp_path / 'out' / 'daily.json'), '2025-06-01')

        document = json.loads(path.read_text(encoding='utf-8'))
        assert document['date'] == '2025-06-01'
        assert document['totalCount'] == 1
        assert document['notams'][0]['id'] == 'A0001/25'
