"""Configuration module for the NOTAM harvester."""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Application configuration."""

    # Logging level
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Software Version
    VERSION = os.getenv('VERSION', '1.0.0')

    # Source page (Israeli Aviation Authority AeroInfo)
    NOTAM_PAGE_URL = os.getenv('NOTAM_PAGE_URL', 'https://brin.iaa.gov.il/aeroinfo/AeroInfo.aspx?msgType=Notam')
    ROOT_SELECTOR = os.getenv('ROOT_SELECTOR', '#DataList1')
    SOURCE_NAME = 'israeli-aviation-authority'

    # Browser automation
    HEADLESS = _env_bool('HEADLESS', 'true')
    SLOW_MO_MS = int(os.getenv('SLOW_MO_MS', '100'))
    VIEWPORT_WIDTH = int(os.getenv('VIEWPORT_WIDTH', '1280'))
    VIEWPORT_HEIGHT = int(os.getenv('VIEWPORT_HEIGHT', '720'))
    USER_AGENT = os.getenv(
        'USER_AGENT',
        'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
    )

    # Bounded waits
    PAGE_TIMEOUT_MS = int(os.getenv('PAGE_TIMEOUT_MS', '30000'))
    EXPAND_TIMEOUT_MS = int(os.getenv('EXPAND_TIMEOUT_MS', '10000'))
    HTTP_TIMEOUT_SECONDS = int(os.getenv('HTTP_TIMEOUT_SECONDS', '30'))

    # Delay between entry expansions (to appear natural)
    MIN_ENTRY_DELAY = float(os.getenv('MIN_ENTRY_DELAY', '0.2'))
    MAX_ENTRY_DELAY = float(os.getenv('MAX_ENTRY_DELAY', '0.8'))

    # Storage
    DATA_DIRECTORY = os.getenv('DATA_DIRECTORY', './data/notams')
    BACKUP_DIRECTORY = os.getenv('BACKUP_DIRECTORY', './data/backups')
    MAX_BACKUPS = int(os.getenv('MAX_BACKUPS', '5'))

    # Retention (used by store_cli)
    CLEANUP_MAX_AGE_DAYS = int(os.getenv('CLEANUP_MAX_AGE_DAYS', '30'))
    CLEANUP_MAX_COUNT = int(os.getenv('CLEANUP_MAX_COUNT', '5000'))

    # Update interval
    UPDATE_INTERVAL_SECONDS = int(os.getenv('UPDATE_INTERVAL_SECONDS', '3600'))

    @classmethod
    def validate(cls):
        """Validate required configuration."""
        if not cls.NOTAM_PAGE_URL:
            raise ValueError("NOTAM_PAGE_URL configuration is required")
        if not cls.DATA_DIRECTORY:
            raise ValueError("DATA_DIRECTORY configuration is required")
        if cls.MIN_ENTRY_DELAY > cls.MAX_ENTRY_DELAY:
            raise ValueError("MIN_ENTRY_DELAY must not exceed MAX_ENTRY_DELAY")
        if cls.EXPAND_TIMEOUT_MS <= 0 or cls.PAGE_TIMEOUT_MS <= 0:
            raise ValueError("Timeouts must be positive")
        return True
