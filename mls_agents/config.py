from __future__ import annotations

import argparse
import logging
import os
from dataclasses import dataclass, field
from typing import Sequence

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class SiteSelectors:
    username: str = ".login-credentials .login-input input[name=userid]"
    password: str = ".login-credentials .login-input input[name=password]"
    sign_in: str = ".login-button input[name=login]"
    search_tab: str = "#search > div"
    workspace_frame: str = "workspace"
    navpanel_frame: str = "navpanel"
    search_form: str = ".searchFieldContainer > table"
    status_field: str = "#STATUSID"
    price_min_field: str = "#minSRCHPRICE"
    price_max_field: str = "#maxSRCHPRICE"
    months_back_field: str = "#MONTHS_BACKID"
    search_button: str = "#searchButtonTop"
    results_pane: str = "div#listingspane"
    first_result_link: str = "div#listingspane > table tr:nth-child(2) td:nth-child(3) a"
    listing_report: str = "div#listingspane div.report"
    total_listings: str = "table td:nth-child(3) b:nth-child(2)"
    next_button: str = "table td:nth-child(4) > div.nextBtn"
    agent_link: str = "div#listingspane div.report table:nth-child(8) tr:nth-child(2) td:nth-child(2) a"
    agent_name: str = "table table table table tr strong"
    agent_details: str = "table table table table tr:nth-child(2) td:last-child"


@dataclass(frozen=True)
class Delays:
    listing_ms: int = 1000
    agent_page_ms: int = 2000
    search_form_ms: int = 5000


@dataclass
class Settings:
    username: str | None = None
    password: str | None = None
    status: str | None = None
    price_min: str | None = None
    price_max: str | None = None
    months_back: str | None = None
    results_limit: int | None = None
    delays: Delays = field(default_factory=Delays)
    headless: bool = True
    output_dir: str = "output"
    login_url: str = "https://sabor.connectmls.com/cvlogin.jsp"
    verbose: bool = False

    def validate(self) -> None:
        if not self.username or not self.password:
            raise ConfigError("USERID or PASSWORD is not set")

        if not self.status:
            logger.warning("STATUS_VALUE missing, using the search form defaults")
            return

        required = {
            "SEARCH_PRICE_MIN": self.price_min,
            "SEARCH_PRICE_MAX": self.price_max,
            "MONTHS_BACK": self.months_back,
        }
        for name, value in required.items():
            if not value:
                raise ConfigError(f"{name} is not set")

    def search_form_values(self, selectors: SiteSelectors) -> dict[str, str]:
        values = {
            selectors.status_field: self.status,
            selectors.price_min_field: self.price_min,
            selectors.price_max_field: self.price_max,
            selectors.months_back_field: self.months_back,
        }
        return {selector: value for selector, value in values.items() if value}


def parse_headless(value: str | None) -> bool:
    return (value or "true").strip().lower() != "false"


def _env_int(name: str, default: int | None) -> int | None:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scrape agent contacts from ConnectMLS listings using Playwright")
    parser.add_argument("--user-id", default=os.getenv("USERID"), help="Login user id (env USERID)")
    parser.add_argument("--password", default=os.getenv("PASSWORD"), help="Login password (env PASSWORD)")
    parser.add_argument("--status", default=os.getenv("STATUS_VALUE"), help="Listing status filter (env STATUS_VALUE)")
    parser.add_argument("--price-min", default=os.getenv("SEARCH_PRICE_MIN"), help="Minimum search price")
    parser.add_argument("--price-max", default=os.getenv("SEARCH_PRICE_MAX"), help="Maximum search price")
    parser.add_argument("--months-back", default=os.getenv("MONTHS_BACK"), help="How many months back to search")
    parser.add_argument(
        "--limit",
        type=int,
        default=_env_int("SEARCH_RESULTS_LIMIT", None),
        help="Stop after this many listings (env SEARCH_RESULTS_LIMIT)",
    )
    parser.add_argument(
        "--listing-delay-ms",
        type=int,
        default=_env_int("LISTING_PAGE_DELAY", 1000),
        help="Wait after moving to the next listing",
    )
    parser.add_argument(
        "--agent-page-delay-ms",
        type=int,
        default=_env_int("AGENT_PAGE_DELAY", 2000),
        help="Wait after opening an agent page",
    )
    parser.add_argument(
        "--search-form-delay-ms",
        type=int,
        default=_env_int("NAVIGATE_TO_SEARCH_FORM_DELAY", 5000),
        help="Wait after opening the search tab",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        default=not parse_headless(os.getenv("SILENT")),
        help="Show the browser window (env SILENT=false)",
    )
    parser.add_argument("--output-dir", default=os.getenv("OUTPUT_DIR", "output"), help="Directory for CSV output")
    parser.add_argument("--verbose", action="store_true", help="Log raw and processed details")
    return parser


def load_settings(argv: Sequence[str] | None = None) -> Settings:
    load_dotenv()
    args = build_parser().parse_args(argv)
    return Settings(
        username=args.user_id,
        password=args.password,
        status=args.status,
        price_min=args.price_min,
        price_max=args.price_max,
        months_back=args.months_back,
        results_limit=args.limit,
        delays=Delays(
            listing_ms=max(0, args.listing_delay_ms),
            agent_page_ms=max(0, args.agent_page_delay_ms),
            search_form_ms=max(0, args.search_form_delay_ms),
        ),
        headless=not args.headed,
        output_dir=args.output_dir,
        verbose=args.verbose,
    )
