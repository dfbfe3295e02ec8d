"""
Field decoders for the compact encodings used in NOTAM text.

Everything in this module is pure and deterministic: no I/O, no logging.
Callers decide how to recover from a DecodeError.
"""
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from iaa_notams.exceptions import DecodeError


PERM_SENTINEL = 'PERM'

# "Permanent" notices are given a far-future end so a single
# valid_from <= t <= valid_to comparison works everywhere.
PERM_HORIZON = timedelta(days=3 * 365)

SCOPE_LETTERS = 'ACRN'

MAP_URL_TEMPLATE = 'https://www.google.com/maps?q={lat},{lon}'

_MONTHS = {
    'JAN': 1, 'FEB': 2, 'MAR': 3, 'APR': 4, 'MAY': 5, 'JUN': 6,
    'JUL': 7, 'AUG': 8, 'SEP': 9, 'OCT': 10, 'NOV': 11, 'DEC': 12,
}

_COMPACT_DATE_RE = re.compile(r'[0-9]{10}')
_NOTAM_ID_RE = re.compile(r'[ACRN][0-9]{4}/[0-9]{2}')
_HEADER_RE = re.compile(r'([ACRN])([0-9]{4})/([0-9]{2})\s+([A-Z]{4})\s+E\)\s*(.*)', re.DOTALL | re.IGNORECASE)
_ABC_RE = re.compile(r'A\)\s*(\w+)\s+B\)\s*([0-9]{10}|PERM)\s+C\)\s*([0-9]{10}|PERM)')
_Q_LINE_RE = re.compile(r'Q\)\s*([^)]+?)(?=\s+[A-Z]\)|\s*$)')
_COORD_BLOCK_RE = re.compile(r'([0-9]{2})([0-9]{2})([NS])([0-9]{3})([0-9]{2})([EW])([0-9]{3})?')
_POSITION_RE = re.compile(r'PSN\s+([0-9]{2})([0-9]{2})([0-9]{2})([NS])([0-9]{3})([0-9]{2})([0-9]{2})([EW])')
_SCHEDULE_RE = re.compile(r'D\)\s*(.+?)(?=\s+[E-G]\)|$)', re.DOTALL)

# Body-text validity patterns, most specific first
_FROM_TO_COMPACT_RE = re.compile(r'(?:FROM|FM)\s+([0-9]{10})\s+(?:TO|TILL)\s+([0-9]{10})', re.IGNORECASE)
_FROM_TO_VERBOSE_RE = re.compile(
    r'(?:VALID\s+)?(?:FROM|FM)\s+(\d{1,2}\s+[A-Z]{3}\s+\d{4}\s+\d{2}:\d{2})\s+'
    r'(?:TO|TILL)\s+(\d{1,2}\s+[A-Z]{3}\s+\d{4}\s+\d{2}:\d{2})',
    re.IGNORECASE
)
_WEF_RE = re.compile(r'WEF\s+(\d{1,2}\s+[A-Z]{3}\s+\d{4})', re.IGNORECASE)
_TILL_RE = re.compile(r'(?:TILL|UNTIL)\s+(\d{1,2}\s+[A-Z]{3}\s+\d{4}(?:\s+\d{2}:\d{2})?)', re.IGNORECASE)


@dataclass(frozen=True)
class Coordinate:
    """A position in decimal degrees (south and west are negative)."""
    lat: float
    lon: float


@dataclass(frozen=True)
class NotamHeader:
    """Short-form header: A1234/25 LLBG E) <remainder>."""
    scope_code: str
    number: str
    year: str
    location_code: str
    remainder: str

    @property
    def notam_id(self) -> str:
        return f"{self.scope_code}{self.number}/{self.year}"


@dataclass(frozen=True)
class AbcFields:
    """Raw A) B) C) values, not yet decoded."""
    location_code: str
    valid_from: str
    valid_to: str


@dataclass(frozen=True)
class QLine:
    """Fields of a Q) line: FIR/QCODE/TRAFFIC/PURPOSE/SCOPE/LOWER/UPPER/COORDS."""
    fir: Optional[str]
    q_code: Optional[str]
    traffic: Optional[str]
    purpose: Optional[str]
    scope: Optional[str]
    lower_limit: Optional[int]
    upper_limit: Optional[int]
    coordinates: Optional[str]
    coordinate: Optional[Coordinate]
    radius_nm: Optional[int]


def clean_text(value: Optional[str]) -> str:
    """Trim every line, drop empty ones and join with single spaces."""
    if not value:
        return ''
    lines = (line.strip() for line in value.splitlines())
    joined = ' '.join(line for line in lines if line)
    return re.sub(r'\s+', ' ', joined).strip()


def is_valid_notam_id(value: Optional[str]) -> bool:
    """Check the <Scope><4 digits>/<2 digits> identifier format."""
    return bool(value) and _NOTAM_ID_RE.fullmatch(value) is not None


def decode_compact_date(value: str, now: Optional[datetime] = None) -> datetime:
    """
    Decode a YYMMDDHHMM timestamp (UTC, year offset from 2000).

    The sentinel "PERM" maps to now + PERM_HORIZON.

    Raises:
        DecodeError: for anything that is neither ten digits nor the sentinel,
            or whose digit groups do not form a real date.
    """
    if value is None:
        raise DecodeError("Compact date is missing")

    if value.upper() == PERM_SENTINEL:
        reference = now or datetime.now(timezone.utc)
        return reference + PERM_HORIZON

    if len(value) != 10:
        raise DecodeError(f"Compact date must be 10 characters (YYMMDDHHMM): '{value}'")
    if not _COMPACT_DATE_RE.fullmatch(value):
        raise DecodeError(f"Compact date must be all digits: '{value}'")

    try:
        return datetime(
            2000 + int(value[0:2]),
            int(value[2:4]),
            int(value[4:6]),
            int(value[6:8]),
            int(value[8:10]),
            tzinfo=timezone.utc,
        )
    except ValueError as e:
        raise DecodeError(f"Invalid compact date '{value}': {e}") from e


def decode_coordinate_block(value: Optional[str]) -> Optional[Coordinate]:
    """
    Decode a Q) line coordinate block such as 3238N03527E010.

    DDMM latitude + hemisphere, DDDMM longitude + hemisphere, optional
    3-digit radius (ignored). Returns None when the block does not fit.
    """
    if not value:
        return None

    match = _COORD_BLOCK_RE.fullmatch(value.strip().upper())
    if not match:
        return None

    lat_deg, lat_min, lat_dir, lon_deg, lon_min, lon_dir, _radius = match.groups()
    if int(lat_min) >= 60 or int(lon_min) >= 60:
        return None

    latitude = int(lat_deg) + int(lat_min) / 60.0
    longitude = int(lon_deg) + int(lon_min) / 60.0
    if latitude > 90 or longitude > 180:
        return None

    if lat_dir == 'S':
        latitude = -latitude
    if lon_dir == 'W':
        longitude = -longitude

    return Coordinate(lat=round(latitude, 2), lon=round(longitude, 2))


def decode_position(text: Optional[str]) -> Optional[Coordinate]:
    """Decode the first "PSN ddmmssNdddmmssE" position found in free text."""
    if not text:
        return None

    match = _POSITION_RE.search(text.upper())
    if not match:
        return None

    lat_d, lat_m, lat_s, lat_dir, lon_d, lon_m, lon_s, lon_dir = match.groups()
    if int(lat_m) >= 60 or int(lat_s) >= 60 or int(lon_m) >= 60 or int(lon_s) >= 60:
        return None

    latitude = int(lat_d) + int(lat_m) / 60.0 + int(lat_s) / 3600.0
    longitude = int(lon_d) + int(lon_m) / 60.0 + int(lon_s) / 3600.0
    if lat_dir == 'S':
        latitude = -latitude
    if lon_dir == 'W':
        longitude = -longitude

    return Coordinate(lat=round(latitude, 4), lon=round(longitude, 4))


def build_map_link(coordinate: Optional[Coordinate]) -> Optional[str]:
    """Google Maps link for a coordinate."""
    if coordinate is None:
        return None
    return MAP_URL_TEMPLATE.format(lat=coordinate.lat, lon=coordinate.lon)


def extract_scope_and_identifier(raw_line: Optional[str]) -> Optional[NotamHeader]:
    """
    Parse a short-form line: <scope><4 digits>/<2 digits> <LOC> E) <text>.

    The header must start the line. Scope and location are upper-cased;
    the remainder keeps its original case. Returns None if the line does
    not follow the grammar.
    """
    if not raw_line:
        return None

    match = _HEADER_RE.match(clean_text(raw_line))
    if not match:
        return None

    scope_code, number, year, location_code, remainder = match.groups()
    return NotamHeader(
        scope_code=scope_code.upper(),
        number=number,
        year=year,
        location_code=location_code.upper(),
        remainder=clean_text(remainder),
    )


def parse_abc_fields(text: Optional[str]) -> Optional[AbcFields]:
    """Match "A) <loc> B) <date|PERM> C) <date|PERM>"; None when incomplete."""
    if not text:
        return None

    match = _ABC_RE.search(clean_text(text).upper())
    if not match:
        return None

    location_code, valid_from, valid_to = (group.strip() for group in match.groups())
    return AbcFields(location_code=location_code, valid_from=valid_from, valid_to=valid_to)


def parse_q_line(text: Optional[str]) -> Optional[QLine]:
    """Split a Q) line into its slash-separated fields."""
    if not text:
        return None

    q_match = _Q_LINE_RE.search(clean_text(text).upper())
    if not q_match:
        return None

    q_parts = [part.strip() for part in q_match.group(1).split('/')]
    if len(q_parts) < 8:
        return None

    def _limit(part: str) -> Optional[int]:
        return int(part) if part.isdigit() else None

    coordinates = q_parts[7].split()[0] if q_parts[7] else None
    radius_nm = None
    if coordinates and len(coordinates) == 14 and coordinates[11:14].isdigit():
        radius_nm = int(coordinates[11:14])

    return QLine(
        fir=q_parts[0] or None,
        q_code=q_parts[1] or None,
        traffic=q_parts[2] or None,
        purpose=q_parts[3] or None,
        scope=q_parts[4] or None,
        lower_limit=_limit(q_parts[5]),
        upper_limit=_limit(q_parts[6]),
        coordinates=coordinates,
        coordinate=decode_coordinate_block(coordinates),
        radius_nm=radius_nm,
    )


def parse_schedule(text: Optional[str]) -> Optional[str]:
    """Return the D) field (activity schedule) if present."""
    if not text:
        return None
    match = _SCHEDULE_RE.search(clean_text(text))
    if not match:
        return None
    return match.group(1).strip() or None


def _decode_verbose_date(value: str) -> datetime:
    """Decode "01 JAN 2025 12:00" (UTC)."""
    parts = value.split()
    if len(parts) != 4:
        raise DecodeError(f"Expected 'DD MON YYYY HH:MM': '{value}'")

    day, month_name, year, clock = parts
    month = _MONTHS.get(month_name.upper())
    if month is None:
        raise DecodeError(f"Unknown month '{month_name}'")

    try:
        hour, minute = (int(p) for p in clock.split(':'))
        return datetime(int(year), month, int(day), hour, minute, tzinfo=timezone.utc)
    except ValueError as e:
        raise DecodeError(f"Invalid date '{value}': {e}") from e


def extract_validity_from_text(text: Optional[str]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Best-effort validity window from free body text.

    Recognizes "FROM 2501011200 TO 2501011800", "FROM 01 JAN 2025 12:00 TO
    01 JAN 2025 23:59", "WEF 02 OCT 2025" and "TILL 05 OCT 2025 [HH:MM]".
    Raises DecodeError if a recognized date has impossible values.
    """
    if not text:
        return None, None

    match = _FROM_TO_COMPACT_RE.search(text)
    if match:
        return decode_compact_date(match.group(1)), decode_compact_date(match.group(2))

    match = _FROM_TO_VERBOSE_RE.search(text)
    if match:
        return _decode_verbose_date(match.group(1)), _decode_verbose_date(match.group(2))

    valid_from = None
    valid_to = None

    wef_match = _WEF_RE.search(text)
    if wef_match:
        valid_from = _decode_verbose_date(f"{wef_match.group(1)} 00:00")

    till_match = _TILL_RE.search(text)
    if till_match:
        date_str = till_match.group(1)
        if ':' not in date_str:
            date_str = f"{date_str} 23:59"
        valid_to = _decode_verbose_date(date_str)

    return valid_from, valid_to
