"""NOTAM domain model."""
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from dataclasses import dataclass, field
from enum import Enum

from iaa_notams.decoder import clean_text
from iaa_notams.exceptions import DecodeError


class ScopeCode(Enum):
    """NOTAM series letter published by the IAA."""
    AERODROME = "A"
    EN_ROUTE = "C"
    RADAR = "R"
    NAVIGATION = "N"

    @property
    def description(self) -> str:
        return {
            "A": "Aerodrome",
            "C": "En-route",
            "R": "Radar",
            "N": "Navigation",
        }[self.value]

    @classmethod
    def from_notam_id(cls, notam_id: str) -> Optional['ScopeCode']:
        """Scope is the leading letter of the NOTAM id (e.g. A0814/25)."""
        if not notam_id:
            return None
        try:
            return cls(notam_id[0].upper())
        except ValueError:
            return None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string from the store; naive values are taken as UTC."""
    if not value:
        return None
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Notam:
    """One NOTAM extracted from the AeroInfo page."""

    # Identity
    notam_id: str
    number: str = ''
    year: str = ''
    scope_code: Optional[ScopeCode] = None

    # Lettered fields
    location_code: Optional[str] = None
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    is_permanent: bool = False
    schedule: Optional[str] = None
    body_text: str = ''
    raw_text: str = ''

    # Q-Line
    fir: Optional[str] = None
    q_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius_nm: Optional[int] = None
    coordinate_link: Optional[str] = None

    # Local bookkeeping (not the authoritative issue time)
    created_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self):
        """Normalize text fields and enforce the validity window."""
        self.notam_id = self.notam_id.strip().upper()

        if self.scope_code is None:
            self.scope_code = ScopeCode.from_notam_id(self.notam_id)

        if not self.number or not self.year:
            num_part, _, year_part = self.notam_id.partition('/')
            self.number = self.number or num_part[1:]
            self.year = self.year or year_part

        if self.location_code:
            self.location_code = self.location_code.strip().upper() or None

        self.body_text = clean_text(self.body_text)
        self.raw_text = clean_text(self.raw_text)
        if self.schedule is not None:
            self.schedule = clean_text(self.schedule) or None

        if self.valid_from and self.valid_to and self.valid_from > self.valid_to:
            raise DecodeError(
                f"{self.notam_id}: valid_from {self.valid_from.isoformat()} "
                f"is after valid_to {self.valid_to.isoformat()}"
            )

    @property
    def scope_description(self) -> str:
        return self.scope_code.description if self.scope_code else 'Unknown'

    def is_valid_at(self, moment: datetime) -> bool:
        """
        Check whether the NOTAM is in force at a given moment.

        No dates means always valid; a missing bound is open on that side.
        PERM notices carry a far-future valid_to so need no special case.
        """
        if self.valid_from and moment < self.valid_from:
            return False
        if self.valid_to and moment > self.valid_to:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON record shape read by the viewer."""
        return {
            'id': self.notam_id,
            'scopeCode': self.scope_code.value if self.scope_code else None,
            'number': self.number,
            'year': self.year,
            'locationCode': self.location_code,
            'validFrom': _format_iso(self.valid_from),
            'validTo': _format_iso(self.valid_to),
            'isPermanent': self.is_permanent,
            'schedule': self.schedule,
            'bodyText': self.body_text,
            'rawText': self.raw_text,
            'fir': self.fir,
            'qCode': self.q_code,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'radiusNm': self.radius_nm,
            'coordinateLink': self.coordinate_link,
            'createdAt': _format_iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Notam':
        """
        Rebuild a Notam from its stored JSON record.

        Raises:
            KeyError: if the record has no id
            ValueError: if a date is not ISO-8601 or the window is inverted
        """
        scope = data.get('scopeCode')
        created_at = parse_iso(data.get('createdAt')) or _utc_now()

        return cls(
            notam_id=data['id'],
            number=data.get('number') or '',
            year=data.get('year') or '',
            scope_code=ScopeCode(scope) if scope else None,
            location_code=data.get('locationCode'),
            valid_from=parse_iso(data.get('validFrom')),
            valid_to=parse_iso(data.get('validTo')),
            is_permanent=bool(data.get('isPermanent', False)),
            schedule=data.get('schedule'),
            body_text=data.get('bodyText') or '',
            raw_text=data.get('rawText') or '',
            fir=data.get('fir'),
            q_code=data.get('qCode'),
            latitude=data.get('latitude'),
            longitude=data.get('longitude'),
            radius_nm=data.get('radiusNm'),
            coordinate_link=data.get('coordinateLink'),
            created_at=created_at,
        )

    def summary(self) -> str:
        """Generate a human-readable multi-line summary."""
        lines = []

        header = f"{self.notam_id} | {self.location_code or 'Unknown'} ({self.scope_description})"
        lines.append(header)
        lines.append("=" * len(header))

        if self.valid_from or self.valid_to:
            valid_str = "Valid: "
            valid_str += self.valid_from.strftime('%Y-%m-%d %H:%M UTC') if self.valid_from else "..."
            if self.is_permanent:
                valid_str += " -> PERMANENT"
            elif self.valid_to:
                valid_str += f" -> {self.valid_to.strftime('%Y-%m-%d %H:%M UTC')}"
        else:
            valid_str = "Validity: Not specified (assumed current)"
        lines.append(valid_str)

        if self.schedule:
            lines.append(f"Schedule: {self.schedule}")

        if self.body_text:
            lines.append(self.body_text)

        if self.coordinate_link:
            lines.append(f"Map: {self.coordinate_link}")

        return "\n".join(lines)

    def __repr__(self) -> str:
        """Compact single-line representation."""
        flags = []
        if self.is_permanent:
            flags.append("PERM")
        if self.coordinate_link:
            flags.append("MAP")

        flag_str = f" [{','.join(flags)}]" if flags else ""

        return (
            f"<Notam {self.notam_id} "
            f"{self.location_code or 'N/A'} "
            f"scope={self.scope_code.value if self.scope_code else '?'}{flag_str}>"
        )
