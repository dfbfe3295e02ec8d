"""Error taxonomy for the NOTAM harvester."""
from typing import Optional


class NotamError(Exception):
    """Base class for all harvester errors."""


class DecodeError(NotamError, ValueError):
    """A compact date, coordinate or validity window is outside its grammar."""


class ExtractionWarning(NotamError):
    """An entry was located but could not be expanded or parsed."""

    def __init__(self, notam_id: str, reason: str, item_id: Optional[str] = None):
        self.notam_id = notam_id
        self.item_id = item_id
        self.reason = reason
        super().__init__(f"{notam_id} (item {item_id}): {reason}")


class TransportFailure(NotamError):
    """The source page could not be reached or rendered."""


class StoreCorruption(NotamError):
    """The persisted store file is unreadable or not valid JSON."""
