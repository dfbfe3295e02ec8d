"""Shared fixtures: an in-memory AeroInfo page behind the PageDriver interface."""
from dataclasses import dataclass, field
from typing import List, Optional

import pytest

from iaa_notams.config import Config
from iaa_notams.exceptions import TransportFailure
from iaa_notams.page_driver import PageDriver


class FastConfig(Config):
    """Config without pacing delays and with a short expansion wait."""
    MIN_ENTRY_DELAY = 0.0
    MAX_ENTRY_DELAY = 0.0
    EXPAND_TIMEOUT_MS = 50
    PAGE_TIMEOUT_MS = 1000


@dataclass
class FakeEntry:
    """One NOTAM as the page renders it."""
    item_id: str
    notam_id: str
    short_text: str
    more_fragments: List[str] = field(default_factory=list)
    has_trigger: bool = True
    expands: bool = True


class FakeElement:
    def __init__(self, tag, element_id=None, classes=(), text='', children=None, item_id=None):
        self.tag = tag
        self.element_id = element_id
        self.classes = set(classes)
        self.text = text
        self.children = children if children is not None else []
        self.item_id = item_id

    def matches(self, selector: str) -> bool:
        if selector.startswith('[id^='):
            return bool(self.element_id) and self.element_id.startswith(selector[5:-1])
        if selector.startswith('[id='):
            return self.element_id == selector[4:-1]
        if selector.startswith('.'):
            return selector[1:] in self.classes
        return self.tag == selector

    def descendants(self):
        for child in self.children:
            yield child
            yield from child.descendants()


class FakePageDriver(PageDriver):
    """
    Renders FakeEntry objects as divMainInfo/divMoreInfo pairs.

    Clicking an entry's trigger fills its more-info view unless the entry
    is configured not to expand, in which case the wait times out.
    """

    def __init__(self, entries: List[FakeEntry], fail_open: bool = False,
                 click_error: Optional[Exception] = None):
        self.entries = {entry.item_id: entry for entry in entries}
        self.fail_open = fail_open
        self.click_error = click_error
        self.opened_url = None
        self.clicked: List[str] = []
        self.closed = False
        self.document = FakeElement('body', children=self._render(entries))

    def _render(self, entries):
        elements = []
        for entry in entries:
            main_children = [FakeElement('span', classes=['NotamID'], text=entry.notam_id)]
            if entry.has_trigger:
                main_children.append(FakeElement('img', item_id=entry.item_id))
            main_children.append(FakeElement('span', classes=['MsgText'], text=entry.short_text))
            elements.append(FakeElement('div', f'divMainInfo_{entry.item_id}', children=main_children))
            elements.append(FakeElement('div', f'divMoreInfo_{entry.item_id}'))
        return elements

    def _more_info(self, item_id):
        return next(e for e in self.document.descendants() if e.element_id == f'divMoreInfo_{item_id}')

    async def open(self, url, ready_selector, timeout_ms):
        if self.fail_open:
            raise TransportFailure(f"Could not load {url}: net::ERR_CONNECTION_REFUSED")
        self.opened_url = url

    async def query_all(self, selector, root=None):
        scope = root if root is not None else self.document
        return [element for element in scope.descendants() if element.matches(selector)]

    async def get_attribute(self, element, name):
        return element.element_id if name == 'id' else None

    async def inner_text(self, element):
        return element.text

    async def click(self, element):
        entry = self.entries[element.item_id]
        self.clicked.append(entry.notam_id)
        if self.click_error and entry.notam_id == 'C0002/25':
            raise self.click_error
        if entry.expands:
            self._more_info(entry.item_id).children = [
                FakeElement('td', classes=['more_MsgText'], text=text) for text in entry.more_fragments
            ]

    async def wait_for_function(self, expression, arg, timeout_ms):
        if not self._more_info(arg).children:
            raise TimeoutError(f"Condition not met within {timeout_ms}ms")

    async def close(self):
        self.closed = True


RUNWAY_SHORT = "A1234/25 LLBG E) RUNWAY CLOSED FROM 2501011200 TO 2501011800"
RUNWAY_ABC = "A) LLBG B) 2501011200 C) 2501011800"
Q_FRAGMENT = "Q) LLLL/QWULW/IV/BO /W /000/010/0105N00203E001"


@pytest.fixture
def config():
    return FastConfig()


@pytest.fixture
def runway_entry():
    return FakeEntry('1920055', 'A1234/25', RUNWAY_SHORT, [RUNWAY_ABC])


@pytest.fixture
def sample_entries(runway_entry):
    return [
        runway_entry,
        FakeEntry(
            '1920056', 'C0002/25',
            "C0002/25 LLLL E) DANGER AREA LLD4 ACTIVATED",
            [Q_FRAGMENT, "A) LLLL B) 2501020600 C) 2501021400", "D) 0600-1400 DAILY"],
        ),
        FakeEntry('1920057', 'N0003/25', "N0003/25 LLBG E) VOR BGN U/S", ["A) LLBG B) 2501030000 C) PERM"]),
    ]
