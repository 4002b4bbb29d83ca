from __future__ import annotations

import asyncio
import atexit
import logging
import signal
import sys
from typing import Sequence
from urllib.parse import urlparse

from playwright.async_api import async_playwright

from mls_agents.config import ConfigError, Settings, SiteSelectors, load_settings
from mls_agents.driver import AutomationDriver, PlaywrightDriver
from mls_agents.persister import OutputLayout, Persister, RunFinalizer
from mls_agents.walker import PaginationWalker, WalkState

logger = logging.getLogger("scraper")

PAGE_TIMEOUT_MS = 60000


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("playwright").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def site_root(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}/"


async def _require_element(driver: AutomationDriver, selector: str, what: str):
    handle = await driver.find_element(selector)
    if handle is None:
        raise RuntimeError(f"Could not find {what} ({selector!r}). The page layout may have changed.")
    return handle


def _require_frame(driver: AutomationDriver, name: str) -> AutomationDriver:
    frame = driver.frame(name)
    if frame is None:
        raise RuntimeError(f"Frame {name!r} not found. The page layout may have changed.")
    return frame


async def sign_in(driver: AutomationDriver, settings: Settings, selectors: SiteSelectors) -> None:
    logger.info("Signing in at %s", settings.login_url)
    await driver.navigate(settings.login_url)

    for selector, text, what in (
        (selectors.username, settings.username, "user id field"),
        (selectors.password, settings.password, "password field"),
    ):
        field = await _require_element(driver, selector, what)
        await driver.click(field)
        await driver.type_text(field, text or "")

    await driver.click(await _require_element(driver, selectors.sign_in, "sign in button"))
    await driver.wait_for_element(selectors.search_tab, PAGE_TIMEOUT_MS)
    logger.info("Successfully signed in")


async def open_search_results(
    driver: AutomationDriver,
    settings: Settings,
    selectors: SiteSelectors,
) -> tuple[AutomationDriver, AutomationDriver, int]:
    logger.info("Navigating to search form")
    await driver.click(await _require_element(driver, selectors.search_tab, "search tab"))
    await driver.wait_ms(settings.delays.search_form_ms)

    workspace = _require_frame(driver, selectors.workspace_frame)
    await workspace.wait_for_element(selectors.search_form, PAGE_TIMEOUT_MS)
    for selector, value in settings.search_form_values(selectors).items():
        await workspace.set_value(selector, value)

    logger.info("Waiting for results")
    await workspace.click(await _require_element(workspace, selectors.search_button, "search button"))
    await workspace.wait_for_element(selectors.results_pane, PAGE_TIMEOUT_MS)

    first_result = await _require_element(workspace, selectors.first_result_link, "first search result")
    await workspace.click(first_result)
    await workspace.wait_for_element(selectors.listing_report, PAGE_TIMEOUT_MS)

    nav = _require_frame(driver, selectors.navpanel_frame)
    total_text = await nav.read_text(await _require_element(nav, selectors.total_listings, "listing count"))
    try:
        total = int(total_text.strip())
    except ValueError as exc:
        raise RuntimeError(f"Listing count is not a number: {total_text!r}") from exc

    logger.info("Found %d listings", total)
    return nav, workspace, total


async def scrape(settings: Settings, selectors: SiteSelectors, state: WalkState) -> WalkState:
    async with async_playwright() as playwright:
        logger.info("Opening browser (headless=%s)", settings.headless)
        try:
            browser = await playwright.chromium.launch(headless=settings.headless, slow_mo=10)
        except Exception as exc:
            raise RuntimeError(
                "Playwright browser binaries are not installed. "
                "Run: python -m playwright install chromium"
            ) from exc
        context = await browser.new_context()
        try:
            page = await context.new_page()
            driver = PlaywrightDriver(page, context)

            await sign_in(driver, settings, selectors)
            nav, workspace, total = await open_search_results(driver, settings, selectors)

            walker = PaginationWalker(
                nav=nav,
                workspace=workspace,
                base_url=site_root(driver.url),
                selectors=selectors,
                delays=settings.delays,
            )
            return await walker.run(total, limit=settings.results_limit, state=state)
        finally:
            await context.close()
            await browser.close()


def _install_signal_handlers(task: asyncio.Task) -> list[signal.Signals]:
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, task.cancel)
        except (NotImplementedError, RuntimeError):
            continue
        installed.append(sig)
    return installed


def _remove_signal_handlers(installed: list[signal.Signals]) -> None:
    loop = asyncio.get_running_loop()
    for sig in installed:
        loop.remove_signal_handler(sig)


async def run(settings: Settings, selectors: SiteSelectors | None = None) -> int:
    selectors = selectors or SiteSelectors()
    state = WalkState()
    finalizer = RunFinalizer(Persister(OutputLayout(settings.output_dir)), state.store, state)
    atexit.register(finalizer.flush, "process exit")

    task = asyncio.current_task()
    installed = _install_signal_handlers(task) if task is not None else []
    try:
        await scrape(settings, selectors, state)
    except asyncio.CancelledError:
        logger.error("Interrupted, attempting to save the data scraped so far")
        finalizer.flush("interrupted")
        return 0
    except Exception:
        logger.exception("--- SOMETHING WENT WRONG --- attempting to save the data scraped so far")
        finalizer.flush("fatal error")
        return 0
    finally:
        _remove_signal_handlers(installed)

    finalizer.flush("completed")
    return 0


async def main(argv: Sequence[str] | None = None) -> int:
    try:
        settings = load_settings(argv)
    except ConfigError as error:
        configure_logging()
        logger.error("%s! Terminating...", error)
        return 0

    configure_logging(settings.verbose)
    try:
        settings.validate()
    except ConfigError as error:
        logger.error("%s! Terminating...", error)
        return 0

    return await run(settings)


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
