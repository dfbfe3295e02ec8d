"""
Static HTML scraper for the AeroInfo page.

Fetches the page without a browser and parses the short-form entries only.
Expanded fields (A) B) C), Q) line) are not available this way, so validity
is taken from the body text when it mentions one.
"""
import logging
from typing import Dict, List, Optional

import requests
from bs4 import BeautifulSoup

from iaa_notams.config import Config
from iaa_notams.decoder import (
    build_map_link,
    clean_text,
    decode_position,
    extract_scope_and_identifier,
    extract_validity_from_text,
)
from iaa_notams.exceptions import DecodeError, TransportFailure
from iaa_notams.models.notam import Notam

logger = logging.getLogger(__name__)


class StaticNotamScraper:
    """Fetches the NOTAM page over plain HTTP and parses its text."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.session = requests.Session()

    def _headers(self) -> Dict[str, str]:
        """Headers to mimic browser behavior."""
        return {
            "User-Agent": self.config.USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
        }

    def fetch_html(self) -> str:
        """
        Download the NOTAM page.

        Raises:
            TransportFailure: on any HTTP or network error
        """
        url = self.config.NOTAM_PAGE_URL
        try:
            response = self.session.get(
                url,
                headers=self._headers(),
                timeout=self.config.HTTP_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise TransportFailure(f"HTTP error fetching {url}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransportFailure(f"Error fetching {url}: {e}") from e

        logger.info(f"Fetched {len(response.text)} characters from {url}")
        return response.text

    def parse_html_content(self, html: str) -> List[Notam]:
        """
        Parse every short-form NOTAM found in td/div elements.

        Returns:
            NOTAMs in page order, deduplicated by id
        """
        soup = BeautifulSoup(html, 'lxml')
        notams: Dict[str, Notam] = {}

        for element in soup.find_all(['td', 'div']):
            # Wrappers are skipped when a nested cell carries the entry itself
            if any(self._header_of(child) for child in element.find_all(['td', 'div'])):
                continue

            header = self._header_of(element)
            if not header:
                continue
            if header.notam_id in notams:
                logger.debug(f"Duplicate NOTAM {header.notam_id} in page, keeping first")
                continue

            notams[header.notam_id] = self._build_notam(header, clean_text(element.get_text('\n')))

        logger.info(f"Parsed {len(notams)} NOTAM(s) from static HTML")
        return list(notams.values())

    @staticmethod
    def _header_of(element):
        return extract_scope_and_identifier(clean_text(element.get_text('\n')))

    def _build_notam(self, header, text: str) -> Notam:
        try:
            valid_from, valid_to = extract_validity_from_text(header.remainder)
        except DecodeError as e:
            logger.warning(f"Could not parse dates for {header.notam_id}: {e}")
            valid_from, valid_to = None, None

        coordinate = decode_position(header.remainder)
        fields = dict(
            notam_id=header.notam_id,
            number=header.number,
            year=header.year,
            location_code=header.location_code,
            body_text=header.remainder,
            raw_text=text,
            latitude=coordinate.lat if coordinate else None,
            longitude=coordinate.lon if coordinate else None,
            coordinate_link=build_map_link(coordinate),
        )

        try:
            return Notam(valid_from=valid_from, valid_to=valid_to, **fields)
        except DecodeError as e:
            logger.warning(f"Rejected validity window for {header.notam_id}: {e}")
            return Notam(**fields)

    def fetch_notams(self, known_ids=()) -> List[Notam]:
        """Fetch and parse the page, skipping ids already stored."""
        known = set(known_ids)
        html = self.fetch_html()
        return [notam for notam in self.parse_html_content(html) if notam.notam_id not in known]
