from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urljoin

from mls_agents.config import Delays, SiteSelectors
from mls_agents.driver import AutomationDriver, DriverError
from mls_agents.field_parser import parse
from mls_agents.records import RecordStore

logger = logging.getLogger(__name__)


class ListingState(Enum):
    IDLE = "idle"
    AWAITING_NEXT_CONTROL = "awaiting_next_control"
    AWAITING_DETAIL_LINK = "awaiting_detail_link"
    AWAITING_AGENT_PAGE = "awaiting_agent_page"
    AWAITING_FIELDS = "awaiting_fields"
    RECORDED = "recorded"
    SKIPPED = "skipped"


class ListingSkipped(Exception):
    def __init__(self, where: str) -> None:
        super().__init__(where)
        self.where = where


@dataclass
class WalkState:
    store: RecordStore = field(default_factory=RecordStore)
    index: int = 1
    error_count: int = 0
    no_email_count: int = 0
    listing_state: ListingState = ListingState.IDLE

    @property
    def recorded_count(self) -> int:
        return len(self.store)


def effective_total(total: int, limit: int | None = None) -> int:
    if limit is None:
        return max(0, total)
    return max(0, min(total, limit))


def agent_target(href: str) -> str | None:
    """Pull the agent page path out of a ``javascript:openAgent('/path')`` link."""
    href = (href or "").strip()
    parts = href.split("'")
    if len(parts) >= 3 and parts[1].strip():
        return parts[1].strip()
    if href and not href.lower().startswith("javascript:"):
        return href
    return None


class PaginationWalker:
    def __init__(
        self,
        nav: AutomationDriver,
        workspace: AutomationDriver,
        base_url: str,
        selectors: SiteSelectors | None = None,
        delays: Delays | None = None,
    ) -> None:
        self.nav = nav
        self.workspace = workspace
        self.base_url = base_url
        self.selectors = selectors or SiteSelectors()
        self.delays = delays or Delays()

    async def run(self, total: int, limit: int | None = None, state: WalkState | None = None) -> WalkState:
        state = state if state is not None else WalkState()
        last = effective_total(total, limit)
        if limit is not None:
            logger.info("Results limit is set, stopping at listing %d", limit)

        logger.info("Walking %d of %d listings", last, total)
        while state.index <= last:
            logger.info("Processing listing %d out of %d", state.index, total)
            await self.step(state)
            state.index += 1

        logger.info(
            "Walk finished: %d recorded, %d without email, %d errors/skipped",
            state.recorded_count,
            state.no_email_count,
            state.error_count,
        )
        return state

    def _enter(self, state: WalkState, listing_state: ListingState) -> None:
        logger.debug("Listing %d: %s -> %s", state.index, state.listing_state.value, listing_state.value)
        state.listing_state = listing_state

    async def step(self, state: WalkState) -> ListingState:
        self._enter(state, ListingState.AWAITING_NEXT_CONTROL)
        try:
            outcome = await self._visit(state)
        except (ListingSkipped, DriverError) as error:
            logger.warning("Listing %d: error @ %s, SKIPPING", state.index, error)
            state.error_count += 1
            self._enter(state, ListingState.SKIPPED)
            await self._pause_after_error()
            return ListingState.SKIPPED

        self._enter(state, outcome)
        return outcome

    async def _visit(self, state: WalkState) -> ListingState:
        selectors = self.selectors
        next_button = await self._acquire(self.nav, selectors.next_button, "next button")

        self._enter(state, ListingState.AWAITING_DETAIL_LINK)
        try:
            agent_link = await self._acquire(self.workspace, selectors.agent_link, "agent link")
            href = await self.workspace.read_attribute(agent_link, "href")
            target = agent_target(href)
            if target is None:
                raise ListingSkipped(f"agent link target ({href!r})")
        except (ListingSkipped, DriverError):
            # Keep the site on the same listing number as the walker.
            await self.nav.click(next_button)
            raise

        await self.nav.click(next_button)
        await self.nav.wait_ms(self.delays.listing_ms)

        self._enter(state, ListingState.AWAITING_AGENT_PAGE)
        agent_page = await self.nav.open_new_page()
        try:
            await agent_page.navigate(urljoin(self.base_url, target))
            await agent_page.wait_ms(self.delays.agent_page_ms)

            self._enter(state, ListingState.AWAITING_FIELDS)
            name_line = await self._read(agent_page, selectors.agent_name, "agent name")
            details = await self._read(agent_page, selectors.agent_details, "agent details")
        finally:
            await self._release(agent_page)

        logger.info("Agent name: %s", name_line)
        detail_lines = details.split("\n")
        logger.debug("Raw details scraped: %s", detail_lines)

        record = parse(name_line, detail_lines)
        logger.debug("Processed details: %s", asdict(record))
        if not record.key:
            raise ListingSkipped(f"agent name empty ({name_line!r})")

        if not state.store.add(record):
            logger.info("Listing %d: SKIPPING %s, agent doesn't have an email", state.index, record.name)
            state.no_email_count += 1
            return ListingState.SKIPPED
        return ListingState.RECORDED

    async def _acquire(self, driver: AutomationDriver, selector: str, what: str) -> Any:
        handle = await driver.find_element(selector)
        if handle is None:
            raise ListingSkipped(f"{what} empty")
        return handle

    async def _read(self, driver: AutomationDriver, selector: str, what: str) -> str:
        handle = await self._acquire(driver, selector, what)
        text = await driver.read_text(handle) or ""
        if not text.strip():
            raise ListingSkipped(f"{what} empty")
        return text

    async def _release(self, agent_page: AutomationDriver) -> None:
        try:
            await self.nav.close_page(agent_page)
        except DriverError as error:
            logger.warning("Could not close agent page: %s", error)

    async def _pause_after_error(self) -> None:
        try:
            await self.nav.wait_ms(self.delays.listing_ms)
        except DriverError as error:
            logger.warning("Delay after skipped listing failed: %s", error)
