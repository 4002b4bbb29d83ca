from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol, Union

from playwright.async_api import BrowserContext, ElementHandle, Frame, Page
from playwright.async_api import Error as PlaywrightError


class DriverError(RuntimeError):
    """A browser interaction failed; the current listing can be skipped."""


class SessionClosedError(RuntimeError):
    """The top-level page or browser is gone; the run cannot continue."""


class AutomationDriver(Protocol):
    @property
    def url(self) -> str: ...

    async def navigate(self, url: str) -> None: ...

    async def find_element(self, selector: str) -> Any | None: ...

    async def click(self, handle: Any) -> None: ...

    async def type_text(self, handle: Any, text: str) -> None: ...

    async def set_value(self, selector: str, value: str) -> None: ...

    async def wait_for_element(self, selector: str, timeout_ms: int) -> None: ...

    async def wait_ms(self, ms: int) -> None: ...

    async def read_text(self, handle: Any) -> str: ...

    async def read_attribute(self, handle: Any, name: str) -> str: ...

    async def open_new_page(self) -> AutomationDriver: ...

    async def close_page(self, page: AutomationDriver) -> None: ...

    def frame(self, name: str) -> AutomationDriver | None: ...


Scope = Union[Page, Frame]


class PlaywrightDriver:
    """AutomationDriver over a Playwright page or one of its frames."""

    def __init__(self, scope: Scope, context: BrowserContext, primary: bool = True) -> None:
        self.scope = scope
        self.context = context
        self.primary = primary

    @property
    def page(self) -> Page:
        return self.scope if isinstance(self.scope, Page) else self.scope.page

    @property
    def url(self) -> str:
        return self.scope.url

    def _check_open(self) -> None:
        if not self.page.is_closed():
            return
        # Only the main page is fatal.
        if self.primary:
            raise SessionClosedError("Browser page was closed")
        raise DriverError("Detail page was closed")

    async def _call(self, action: str, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        self._check_open()
        try:
            return await func(*args, **kwargs)
        except PlaywrightError as error:
            self._check_open()
            raise DriverError(f"{action} failed: {error.message}") from error

    async def navigate(self, url: str) -> None:
        await self._call(f"navigate to {url}", self.scope.goto, url, wait_until="load", timeout=60000)

    async def find_element(self, selector: str) -> ElementHandle | None:
        return await self._call(f"query {selector!r}", self.scope.query_selector, selector)

    async def click(self, handle: ElementHandle) -> None:
        await self._call("click", handle.click)

    async def type_text(self, handle: ElementHandle, text: str) -> None:
        await self._call("type", handle.type, text)

    async def set_value(self, selector: str, value: str) -> None:
        # Some search form fields are selects, so set .value directly instead of typing.
        await self._call(
            f"set value of {selector!r}",
            self.scope.eval_on_selector,
            selector,
            "(el, value) => { el.value = value; }",
            value,
        )

    async def wait_for_element(self, selector: str, timeout_ms: int) -> None:
        await self._call(f"wait for {selector!r}", self.scope.wait_for_selector, selector, timeout=timeout_ms)

    async def wait_ms(self, ms: int) -> None:
        await self._call("wait", self.scope.wait_for_timeout, ms)

    async def read_text(self, handle: ElementHandle) -> str:
        return await self._call("read text", handle.inner_text)

    async def read_attribute(self, handle: ElementHandle, name: str) -> str:
        value = await self._call(f"read attribute {name!r}", handle.get_attribute, name)
        return value or ""

    async def open_new_page(self) -> PlaywrightDriver:
        page = await self._call("open page", self.context.new_page)
        return PlaywrightDriver(page, self.context, primary=False)

    async def close_page(self, page: AutomationDriver) -> None:
        if not isinstance(page, PlaywrightDriver) or page.page.is_closed():
            return
        try:
            await page.page.close()
        except PlaywrightError as error:
            raise DriverError(f"close page failed: {error.message}") from error

    def frame(self, name: str) -> PlaywrightDriver | None:
        frame = self.page.frame(name=name)
        if frame is None:
            return None
        return PlaywrightDriver(frame, self.context, primary=self.primary)
