"""
Page automation capability used by the extractor.

The extractor only talks to PageDriver, so parsing and merge logic can be
tested against an in-memory fake while the real browser lives in
PlaywrightPageDriver.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from iaa_notams.config import Config
from iaa_notams.exceptions import TransportFailure

logger = logging.getLogger(__name__)


class PageDriver(ABC):
    """
    Abstract base class for a single rendered page.

    Element handles are opaque to callers; they are only passed back into
    the driver. A driver is not safe for concurrent use.
    """

    async def __aenter__(self) -> 'PageDriver':
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @abstractmethod
    async def open(self, url: str, ready_selector: str, timeout_ms: int) -> None:
        """
        Navigate to url and wait until ready_selector exists.

        Raises:
            TransportFailure: if the page cannot be loaded or never renders
        """

    @abstractmethod
    async def query_all(self, selector: str, root: Any = None) -> List[Any]:
        """Return all elements matching a CSS selector (under root if given)."""

    async def query(self, selector: str, root: Any = None) -> Optional[Any]:
        """Return the first element matching a CSS selector, or None."""
        elements = await self.query_all(selector, root)
        return elements[0] if elements else None

    @abstractmethod
    async def get_attribute(self, element: Any, name: str) -> Optional[str]:
        """Read an attribute of an element."""

    @abstractmethod
    async def inner_text(self, element: Any) -> str:
        """Read the rendered text of an element."""

    @abstractmethod
    async def click(self, element: Any) -> None:
        """Activate an element."""

    @abstractmethod
    async def wait_for_function(self, expression: str, arg: Any, timeout_ms: int) -> None:
        """
        Wait until a JavaScript predicate over the document returns true.

        Raises:
            TimeoutError: if the predicate is still false after timeout_ms
        """

    @abstractmethod
    async def close(self) -> None:
        """Release the page and anything it owns."""


class PlaywrightPageDriver(PageDriver):
    """PageDriver backed by a headless Chromium via playwright.async_api."""

    def __init__(self, config: Optional[Config] = None, headless: Optional[bool] = None):
        self.config = config or Config()
        self.headless = self.config.HEADLESS if headless is None else headless
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None

    async def _launch(self):
        from playwright.async_api import async_playwright

        logger.info(f"Launching browser (headless={self.headless})...")
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.headless,
            slow_mo=self.config.SLOW_MO_MS,
        )
        self._context = await self._browser.new_context(
            viewport={
                'width': self.config.VIEWPORT_WIDTH,
                'height': self.config.VIEWPORT_HEIGHT,
            },
            user_agent=self.config.USER_AGENT,
        )
        self._page = await self._context.new_page()

    async def open(self, url: str, ready_selector: str, timeout_ms: int) -> None:
        from playwright.async_api import Error as PlaywrightError

        try:
            if self._page is None:
                await self._launch()

            logger.info(f"Navigating to {url}")
            await self._page.goto(url, wait_until="networkidle", timeout=timeout_ms)

            logger.info(f"Waiting for {ready_selector} to render...")
            await self._page.wait_for_selector(ready_selector, timeout=timeout_ms)
        except PlaywrightError as e:
            # TimeoutError is a subclass of Error in playwright
            raise TransportFailure(f"Could not load {url}: {e}") from e

        logger.info("Page loaded successfully")

    async def query_all(self, selector: str, root: Any = None) -> List[Any]:
        scope = root if root is not None else self._page
        return await scope.query_selector_all(selector)

    async def query(self, selector: str, root: Any = None) -> Optional[Any]:
        scope = root if root is not None else self._page
        return await scope.query_selector(selector)

    async def get_attribute(self, element: Any, name: str) -> Optional[str]:
        return await element.get_attribute(name)

    async def inner_text(self, element: Any) -> str:
        return await element.inner_text()

    async def click(self, element: Any) -> None:
        await element.click()

    async def wait_for_function(self, expression: str, arg: Any, timeout_ms: int) -> None:
        from playwright.async_api import TimeoutError as PlaywrightTimeout

        try:
            await self._page.wait_for_function(expression, arg=arg, timeout=timeout_ms)
        except PlaywrightTimeout as e:
            raise TimeoutError(f"Condition not met within {timeout_ms}ms") from e

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
        self._context = None
        self._page = None
