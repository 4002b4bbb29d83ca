"""In-memory stand-ins for the browser automation driver."""

from __future__ import annotations

from typing import Any, Callable

from mls_agents.config import SiteSelectors
from mls_agents.driver import DriverError

SELECTORS = SiteSelectors()


class FakeElement:
    def __init__(
        self,
        text: str = "",
        attributes: dict[str, str] | None = None,
        on_click: Callable[[], None] | None = None,
    ) -> None:
        self.text = text
        self.attributes = attributes or {}
        self.on_click = on_click
        self.typed: list[str] = []


class FakeDriver:
    """Scripted AutomationDriver.

    ``elements`` maps selectors to elements, or to callables returning an
    element (or None) so lookups can depend on the current listing.
    ``errors`` maps an operation name or selector to the exception raised
    when it is used.
    """

    def __init__(
        self,
        elements: dict[str, Any] | None = None,
        frames: dict[str, FakeDriver] | None = None,
        pages: list[FakeDriver] | None = None,
        errors: dict[str, Exception] | None = None,
        url: str = "https://mls.example.com/cvlogin.jsp",
    ) -> None:
        self.elements = dict(elements or {})
        self.frames = dict(frames or {})
        self.pages = list(pages or [])
        self.errors = dict(errors or {})
        self.url = url
        self.calls: list[tuple[Any, ...]] = []
        self.opened: list[FakeDriver] = []
        self.closed: list[FakeDriver] = []
        self.values: dict[str, str] = {}
        self.waits: list[int] = []

    def _fail(self, *keys: str) -> None:
        for key in keys:
            if key in self.errors:
                raise self.errors[key]

    async def navigate(self, url: str) -> None:
        self.calls.append(("navigate", url))
        self._fail("navigate", url)
        self.url = url

    async def find_element(self, selector: str) -> FakeElement | None:
        self.calls.append(("find", selector))
        self._fail("find", selector)
        element = self.elements.get(selector)
        if callable(element):
            element = element()
        return element

    async def click(self, handle: FakeElement) -> None:
        self.calls.append(("click", handle))
        self._fail("click")
        if handle.on_click is not None:
            handle.on_click()

    async def type_text(self, handle: FakeElement, text: str) -> None:
        self.calls.append(("type", text))
        handle.typed.append(text)

    async def set_value(self, selector: str, value: str) -> None:
        self.calls.append(("set_value", selector, value))
        self.values[selector] = value

    async def wait_for_element(self, selector: str, timeout_ms: int) -> None:
        self.calls.append(("wait_for", selector))
        self._fail("wait_for_element", selector)

    async def wait_ms(self, ms: int) -> None:
        self.waits.append(ms)

    async def read_text(self, handle: FakeElement) -> str:
        self._fail("read_text")
        return handle.text

    async def read_attribute(self, handle: FakeElement, name: str) -> str:
        self._fail("read_attribute")
        return handle.attributes.get(name, "")

    async def open_new_page(self) -> FakeDriver:
        self._fail("open_new_page")
        page = self.pages.pop(0)
        self.opened.append(page)
        return page

    async def close_page(self, page: FakeDriver) -> None:
        self.closed.append(page)

    def frame(self, name: str) -> FakeDriver | None:
        return self.frames.get(name)


def agent_page(name_line: str, details: list[str], errors: dict[str, Exception] | None = None) -> FakeDriver:
    return FakeDriver(
        elements={
            SELECTORS.agent_name: FakeElement(text=name_line),
            SELECTORS.agent_details: FakeElement(text="\n".join(details)),
        },
        errors=errors,
    )


class FakeSite:
    """Listing navigation: the next button advances, the agent link follows the listing.

    ``links`` holds one href per listing, None for a listing with no agent link.
    """

    def __init__(self, links: list[str | None], pages: list[FakeDriver], has_next: bool = True) -> None:
        self.links = links
        self.position = 0
        elements: dict[str, Any] = {}
        if has_next:
            elements[SELECTORS.next_button] = FakeElement(on_click=self._advance)
        self.nav = FakeDriver(elements=elements, pages=pages)
        self.workspace = FakeDriver(elements={SELECTORS.agent_link: self._agent_link})

    def _advance(self) -> None:
        self.position += 1

    def _agent_link(self) -> FakeElement | None:
        if self.position >= len(self.links) or self.links[self.position] is None:
            return None
        return FakeElement(attributes={"href": self.links[self.position]})


def driver_error(message: str = "boom") -> DriverError:
    return DriverError(message)
