"""Unit tests for the Notam model."""
from datetime import datetime, timedelta, timezone

import pytest

from iaa_notams.exceptions import DecodeError
from iaa_notams.models.notam import Notam, ScopeCode, parse_iso


class TestScopeCode:
    """Test cases for ScopeCode enum."""

    def test_from_notam_id(self):
        assert ScopeCode.from_notam_id('A0814/25') == ScopeCode.AERODROME
        assert ScopeCode.from_notam_id('c0001/25') == ScopeCode.EN_ROUTE
        assert ScopeCode.from_notam_id('R0001/25') == ScopeCode.RADAR
        assert ScopeCode.from_notam_id('N0001/25') == ScopeCode.NAVIGATION
        assert ScopeCode.from_notam_id('X0001/25') is None
        assert ScopeCode.from_notam_id('') is None

    def test_description(self):
        assert ScopeCode.EN_ROUTE.description == 'En-route'


class TestNotam:
    """Test cases for Notam dataclass."""

    @pytest.fixture
    def sample_notam(self):
        return Notam(
            notam_id='a0814/25',
            location_code='llbg',
            valid_from=datetime(2025, 10, 1, 12, 0, tzinfo=timezone.utc),
            valid_to=datetime(2025, 10, 2, 12, 0, tzinfo=timezone.utc),
            schedule='  MON-FRI\n 0600-1400 ',
            body_text='TWY B\n   CLSD',
            raw_text='A0814/25 LLBG E) TWY B\n   CLSD',
            fir='LLLL',
            q_code='QMXLC',
            latitude=32.0,
            longitude=34.87,
            radius_nm=5,
            coordinate_link='https://www.google.com/maps?q=32.0,34.87',
            created_at=datetime(2025, 10, 1, 13, 0, tzinfo=timezone.utc),
        )

    def test_identity_derived_from_id(self, sample_notam):
        assert sample_notam.notam_id == 'A0814/25'
        assert sample_notam.scope_code == ScopeCode.AERODROME
        assert sample_notam.number == '0814'
        assert sample_notam.year == '25'

    def test_text_normalized(self, sample_notam):
        assert sample_notam.location_code == 'LLBG'
        assert sample_notam.body_text == 'TWY B CLSD'
        assert sample_notam.raw_text == 'A0814/25 LLBG E) TWY B CLSD'
        assert sample_notam.schedule == 'MON-FRI 0600-1400'

    def test_inverted_window_rejected(self):
        with pytest.raises(DecodeError):
            Notam(
                notam_id='A0001/25',
                valid_from=datetime(2025, 1, 2, tzinfo=timezone.utc),
                valid_to=datetime(2025, 1, 1, tzinfo=timezone.utc),
            )

    def test_is_valid_at(self, sample_notam):
        assert sample_notam.is_valid_at(datetime(2025, 10, 1, 18, 0, tzinfo=timezone.utc))
        assert not sample_notam.is_valid_at(datetime(2025, 9, 30, tzinfo=timezone.utc))
        assert not sample_notam.is_valid_at(datetime(2025, 10, 3, tzinfo=timezone.utc))

    def test_no_dates_always_valid(self):
        notam = Notam(notam_id='N0001/25')

        assert notam.is_valid_at(datetime.now(timezone.utc))
        assert notam.is_valid_at(datetime.now(timezone.utc) + timedelta(days=3650))

    def test_to_dict(self, sample_notam):
        data = sample_notam.to_dict()

        assert data['id'] == 'A0814/25'
        assert data['scopeCode'] == 'A'
        assert data['locationCode'] == 'LLBG'
        assert data['validFrom'] == '2025-10-01T12:00:00+00:00'
        assert data['isPermanent'] is False
        assert data['qCode'] == 'QMXLC'
        assert data['radiusNm'] == 5
        assert data['createdAt'] == '2025-10-01T13:00:00+00:00'

    def test_from_dict(self, sample_notam):
        restored = Notam.from_dict(sample_notam.to_dict())

        assert restored == sample_notam

    def test_from_dict_minimal(self):
        notam = Notam.from_dict({'id': 'R0005/25', 'validTo': '2025-01-01T00:00:00Z'})

        assert notam.scope_code == ScopeCode.RADAR
        assert notam.valid_to == datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert notam.created_at.tzinfo is not None

    def test_from_dict_requires_id(self):
        with pytest.raises(KeyError):
            Notam.from_dict({'bodyText': 'no id'})

    def test_summary(self, sample_notam):
        summary = sample_notam.summary()

        assert 'A0814/25 | LLBG (Aerodrome)' in summary
        assert '2025-10-01 12:00 UTC -> 2025-10-02 12:00 UTC' in summary
        assert 'Schedule: MON-FRI 0600-1400' in summary
        assert 'Map: https://www.google.com/maps?q=32.0,34.87' in summary

    def test_summary_permanent(self):
        notam = Notam(
            notam_id='N0003/25',
            valid_from=datetime(2025, 1, 3, tzinfo=timezone.utc),
            valid_to=datetime(2028, 1, 3, tzinfo=timezone.utc),
            is_permanent=True,
        )

        assert 'PERMANENT' in notam.summary()

    def test_repr(self, sample_notam):
        assert repr(sample_notam) == '<Notam A0814/25 LLBG scope=A [MAP]>'


class TestParseIso:
    def test_naive_is_utc(self):
        assert parse_iso('2025-01-01T10:00:00') == datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc)

    def test_empty(self):
        assert parse_iso(None) is None
        assert parse_iso('') is None
