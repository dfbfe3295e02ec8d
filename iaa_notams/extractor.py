"""
Notice extractor for the IAA AeroInfo NOTAM page.

Page layout:
  * each NOTAM has a collapsed view <div id="divMainInfo_<item>"> and an
    expanded view <div id="divMoreInfo_<item>"> sharing the same item token
  * the collapsed view holds the id (first .NotamID) and the short text
    (.MsgText elements); its first <img> toggles expansion
  * on expansion the main div gets display:none and the more-info div
    becomes visible, with one .more_MsgText cell per lettered field
    (Q), A) B) C), D), E) ...)
"""
import asyncio
import logging
import random
from typing import Iterable, List, Optional, Set

from iaa_notams.config import Config
from iaa_notams.decoder import (
    build_map_link,
    clean_text,
    decode_compact_date,
    decode_position,
    extract_scope_and_identifier,
    extract_validity_from_text,
    is_valid_notam_id,
    parse_abc_fields,
    parse_q_line,
    parse_schedule,
    PERM_SENTINEL,
)
from iaa_notams.exceptions import DecodeError, ExtractionWarning, TransportFailure
from iaa_notams.models.notam import Notam
from iaa_notams.page_driver import PageDriver

logger = logging.getLogger(__name__)

MAIN_INFO_SELECTOR = '[id^=divMainInfo]'
NOTAM_ID_SELECTOR = '.NotamID'
SHORT_TEXT_SELECTOR = '.MsgText'
MORE_TEXT_SELECTOR = '.more_MsgText'
TRIGGER_SELECTOR = 'img'

EXPANDED_PREDICATE = """(itemId) => {
    const mainInfo = document.getElementById(`divMainInfo_${itemId}`);
    const moreInfo = document.getElementById(`divMoreInfo_${itemId}`);
    if (!mainInfo || !moreInfo) {
        return false;
    }
    return mainInfo.style.display === 'none'
        && moreInfo.style.display !== 'none'
        && moreInfo.querySelectorAll('.more_MsgText').length > 0;
}"""


class NotamExtractor:
    """
    Drives a PageDriver to expand and parse NOTAM entries one at a time.

    Expansion mutates shared page state, so entries are never processed
    concurrently.
    """

    def __init__(self, driver: PageDriver, config: Optional[Config] = None):
        self.driver = driver
        self.config = config or Config()
        self.warnings: List[ExtractionWarning] = []

    @property
    def failed_ids(self) -> List[str]:
        """Ids of entries that produced a warning, in order, without repeats."""
        return list(dict.fromkeys(w.notam_id for w in self.warnings))

    def _warn(self, notam_id: str, reason: str, item_id: Optional[str] = None) -> None:
        warning = ExtractionWarning(notam_id, reason, item_id)
        logger.warning(f"Extraction warning: {warning}")
        self.warnings.append(warning)

    async def list_entries(self) -> List[tuple]:
        """
        Enumerate (item_id, notam_id) pairs for every entry on the page.

        Entries without a correlation token are dropped.
        """
        entries = []
        for div in await self.driver.query_all(MAIN_INFO_SELECTOR):
            element_id = await self.driver.get_attribute(div, 'id') or ''
            _, _, item_id = element_id.partition('_')
            if not item_id:
                logger.debug(f"Skipping container without item token: '{element_id}'")
                continue

            id_element = await self.driver.query(NOTAM_ID_SELECTOR, div)
            notam_id = clean_text(await self.driver.inner_text(id_element)).upper() if id_element else ''
            entries.append((item_id, notam_id))

        return entries

    async def extract_all(self, known_ids: Iterable[str] = ()) -> List[Notam]:
        """
        Extract every entry whose id is not in known_ids.

        Per-entry problems are logged and collected in self.warnings; only a
        TransportFailure raised by the driver escapes.
        """
        known: Set[str] = {notam_id.upper() for notam_id in known_ids}
        self.warnings = []

        entries = await self.list_entries()
        pending = [(item_id, notam_id) for item_id, notam_id in entries if notam_id not in known]

        logger.info(
            f"Found {len(entries)} entr{'y' if len(entries) == 1 else 'ies'} on page, "
            f"{len(entries) - len(pending)} already known, {len(pending)} to expand"
        )

        notams: List[Notam] = []
        seen: Set[str] = set()

        for idx, (item_id, notam_id) in enumerate(pending, 1):
            if not is_valid_notam_id(notam_id):
                self._warn(notam_id or '<missing>', "malformed NOTAM id, entry skipped", item_id)
                continue
            if notam_id in seen:
                logger.debug(f"Duplicate entry for {notam_id} on page, skipping")
                continue
            seen.add(notam_id)

            logger.info(f"[{idx}/{len(pending)}] Extracting {notam_id}")
            try:
                notam = await self.extract_entry(item_id, notam_id)
            except TransportFailure:
                raise
            except Exception as e:
                logger.error(f"Error extracting {notam_id}: {e}", exc_info=True)
                self.warnings.append(ExtractionWarning(notam_id, f"unexpected error: {e}", item_id))
                notam = None

            if notam:
                notams.append(notam)
                logger.debug(f"  -> {notam!r}")

            if idx < len(pending) and self.config.MAX_ENTRY_DELAY > 0:
                delay = random.uniform(self.config.MIN_ENTRY_DELAY, self.config.MAX_ENTRY_DELAY)
                await asyncio.sleep(delay)

        logger.info(f"Extracted {len(notams)} NOTAM(s), {len(self.failed_ids)} with warnings")
        return notams

    async def extract_entry(self, item_id: str, notam_id: str) -> Optional[Notam]:
        """Expand one entry and build its Notam from whatever data is available."""
        main_info = await self.driver.query(f'[id=divMainInfo_{item_id}]')
        if main_info is None:
            self._warn(notam_id, "collapsed view disappeared", item_id)
            return None

        fragments = [
            await self.driver.inner_text(element)
            for element in await self.driver.query_all(SHORT_TEXT_SELECTOR, main_info)
        ]
        raw_text = clean_text(' '.join(fragments))

        more_fragments: List[str] = []
        try:
            await self.expand(item_id, notam_id, main_info)
            more_fragments = await self.read_expanded_fields(item_id, notam_id)
        except ExtractionWarning as warning:
            logger.warning(f"Extraction warning: {warning}")
            self.warnings.append(warning)

        return self.build_notam(notam_id, raw_text, more_fragments, item_id)

    async def expand(self, item_id: str, notam_id: str, main_info) -> None:
        """
        Click the entry's trigger and wait for the expanded view.

        Raises:
            ExtractionWarning: trigger missing or expansion timed out
        """
        trigger = await self.driver.query(TRIGGER_SELECTOR, main_info)
        if trigger is None:
            raise ExtractionWarning(notam_id, "expand trigger not found", item_id)

        await self.driver.click(trigger)

        try:
            await self.driver.wait_for_function(
                EXPANDED_PREDICATE, item_id, self.config.EXPAND_TIMEOUT_MS
            )
        except TimeoutError as e:
            raise ExtractionWarning(
                notam_id, f"expansion timed out after {self.config.EXPAND_TIMEOUT_MS}ms", item_id
            ) from e

    async def read_expanded_fields(self, item_id: str, notam_id: str) -> List[str]:
        """
        Read the structured-field fragments of the expanded view.

        Raises:
            ExtractionWarning: the expanded view cannot be located
        """
        more_info = await self.driver.query(f'[id=divMoreInfo_{item_id}]')
        if more_info is None:
            raise ExtractionWarning(notam_id, "expanded view not found", item_id)

        return [
            await self.driver.inner_text(element)
            for element in await self.driver.query_all(MORE_TEXT_SELECTOR, more_info)
        ]

    def build_notam(
        self,
        notam_id: str,
        raw_text: str,
        more_fragments: List[str],
        item_id: Optional[str] = None,
    ) -> Notam:
        """
        Assemble a Notam from the short form and the expanded fragments.

        The id is always the short-form id. Any decode problem leaves the
        affected fields empty and is recorded as a warning.
        """
        header = extract_scope_and_identifier(raw_text)
        if header and header.notam_id != notam_id:
            logger.debug(f"{notam_id}: short text starts with a different id ({header.notam_id})")
            header = None

        body_text = header.remainder if header else raw_text
        location_code = header.location_code if header else None
        valid_from = None
        valid_to = None
        is_permanent = False

        abc_text = next((text for text in more_fragments if 'A)' in text), None)
        abc = parse_abc_fields(abc_text)
        if abc:
            location_code = abc.location_code
            try:
                valid_from = decode_compact_date(abc.valid_from)
                valid_to = decode_compact_date(abc.valid_to)
                is_permanent = abc.valid_to == PERM_SENTINEL
            except DecodeError as e:
                self._warn(notam_id, f"could not decode validity: {e}", item_id)
                valid_from = valid_to = None
        else:
            if more_fragments:
                self._warn(notam_id, "A)/B)/C) fields not found in expanded view", item_id)
            try:
                valid_from, valid_to = extract_validity_from_text(body_text)
            except DecodeError as e:
                logger.debug(f"{notam_id}: no usable validity in body text: {e}")

        schedule_text = next((text for text in more_fragments if 'D)' in text), None)
        schedule = parse_schedule(schedule_text)

        q_text = next((text for text in more_fragments if 'Q)' in text), None)
        q_line = parse_q_line(q_text)

        coordinate = decode_position(body_text) or (q_line.coordinate if q_line else None)

        fields = dict(
            notam_id=notam_id,
            location_code=location_code,
            schedule=schedule,
            body_text=body_text,
            raw_text=raw_text,
            fir=q_line.fir if q_line else None,
            q_code=q_line.q_code if q_line else None,
            radius_nm=q_line.radius_nm if q_line else None,
            latitude=coordinate.lat if coordinate else None,
            longitude=coordinate.lon if coordinate else None,
            coordinate_link=build_map_link(coordinate),
        )

        try:
            return Notam(valid_from=valid_from, valid_to=valid_to, is_permanent=is_permanent, **fields)
        except DecodeError as e:
            self._warn(notam_id, f"rejected validity window: {e}", item_id)
            return Notam(**fields)
