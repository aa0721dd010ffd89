"""Search backend driving Google through a Selenium Chrome session."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options as ChromeOptions
from selenium.webdriver.common.by import By
from selenium.webdriver.common.keys import Keys
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from ..models import EnrichmentOptions, EnrichmentResult
from .base import DEFAULT_USER_AGENT, elapsed_ms
from .extraction import ContactExtractor, EmailWeights, SearchHit, summarise_contacts

LOGGER = logging.getLogger(__name__)

GOOGLE_EMAIL_WEIGHTS = EmailWeights(
    base=40.0,
    company_domain=35.0,
    business_domain=25.0,
    name_match=30.0,
    contact_keyword=20.0,
    linkedin_keyword=15.0,
    rank_bonuses=((3, 25.0), (7, 15.0), (float("inf"), 5.0)),
)

_COOKIE_BUTTONS = "button[aria-label*='Accept'], button[aria-label*='Accepter'], #L2AGLb"


@dataclass
class GoogleSearchConfig:
    """Configuration parameters for :class:`GoogleSearchBackend`."""

    remote_url: Optional[str] = None
    headless: bool = True
    wait_timeout_seconds: float = 10.0
    pause_between_queries: float = 2.0
    max_results: int = 10
    user_agent: str = DEFAULT_USER_AGENT


class GoogleSearchBackend:
    """Run a handful of targeted Google queries per prospect and collect emails from the result cards."""

    name = "google_search"
    BASE_URL = "https://www.google.com"

    def __init__(
        self,
        config: Optional[GoogleSearchConfig] = None,
        *,
        driver_factory: Optional[Callable[[], WebDriver]] = None,
        **overrides,
    ) -> None:
        self.config = config or GoogleSearchConfig(**overrides)
        self._driver_factory = driver_factory or self._create_driver

    def _build_options(self) -> ChromeOptions:
        options = ChromeOptions()
        if self.config.headless:
            options.add_argument("--headless=new")
            options.add_argument("--disable-gpu")
        options.add_argument("--no-sandbox")
        options.add_argument("--disable-dev-shm-usage")
        options.add_argument("--window-size=1920,1080")
        options.add_argument(f"--user-agent={self.config.user_agent}")
        return options

    def _create_driver(self) -> WebDriver:
        options = self._build_options()
        if self.config.remote_url:
            return webdriver.Remote(command_executor=self.config.remote_url, options=options)
        return webdriver.Chrome(options=options)

    def build_queries(self, name: str, company: str, options: EnrichmentOptions) -> List[str]:
        quoted_name = f'"{name.strip()}"' if name and name.strip() else ""
        quoted_company = f'"{company.strip()}"' if company and company.strip() else ""
        subject = " ".join(part for part in (quoted_name, quoted_company) if part)
        queries = []
        if quoted_name and quoted_company:
            queries.append(f'{subject} email OR contact OR "adresse email"')
        queries.append(f"site:linkedin.com {subject} email")
        if options.company_website:
            queries.append(f"site:{_domain_of(options.company_website)} {quoted_name} email OR contact".replace("  ", " "))
        if quoted_name and quoted_company:
            queries.append(f'{quoted_name} AND {quoted_company} AND (email OR contact OR "nous joindre")')
        queries.append(f"(site:viadeo.com OR site:xing.com OR site:about.me) {subject}")
        queries.append(f"(site:pagesjaunes.fr OR site:societe.com) {quoted_company} {quoted_name} email".replace("  ", " "))
        return queries

    def search(self, name: str, company: str, options: EnrichmentOptions) -> EnrichmentResult:
        started = time.perf_counter()
        driver: Optional[WebDriver] = None
        try:
            driver = self._driver_factory()
            extractor = ContactExtractor(name, company)
            queries = self.build_queries(name, company, options)
            hits: List[SearchHit] = []
            metadata = {}
            for index, query in enumerate(queries):
                query_hits = self.run_query(driver, query)
                hits.extend(query_hits)
                metadata[f"query_{index}"] = {"query": query, "results_count": len(query_hits)}
                if index < len(queries) - 1 and self.config.pause_between_queries > 0:
                    time.sleep(self.config.pause_between_queries)
            contacts = extractor.contacts_from_hits(hits, weights=GOOGLE_EMAIL_WEIGHTS)
        except Exception as exc:
            LOGGER.exception("Google search failed for %s / %s", name, company)
            return EnrichmentResult.failed(name, company, self.name, str(exc), execution_time_ms=elapsed_ms(started))
        finally:
            if driver is not None:
                driver.quit()

        metadata.update({"total_queries": len(queries), "unique_contacts": len(contacts)})
        return EnrichmentResult.succeeded(
            name,
            company,
            self.name,
            contacts,
            summarise_contacts(contacts, valid_from=60.0, source=self.name),
            metadata=metadata,
            execution_time_ms=elapsed_ms(started),
        )

    def run_query(self, driver: WebDriver, query: str) -> List[SearchHit]:
        try:
            driver.get(self.BASE_URL)
            self._accept_cookies(driver)
            search_box = driver.find_element(By.NAME, "q")
            search_box.clear()
            search_box.send_keys(query)
            search_box.send_keys(Keys.RETURN)
            WebDriverWait(driver, self.config.wait_timeout_seconds).until(
                EC.presence_of_element_located((By.ID, "search"))
            )
        except TimeoutException:
            LOGGER.warning("Timed out waiting for Google results for %r", query)
            return []
        except WebDriverException as exc:
            LOGGER.warning("Google query %r failed: %s", query, exc)
            return []

        hits: List[SearchHit] = []
        for element in driver.find_elements(By.CSS_SELECTOR, "div.g"):
            try:
                title = element.find_element(By.CSS_SELECTOR, "h3").text.strip()
                url = element.find_element(By.CSS_SELECTOR, "a[href]").get_attribute("href") or ""
                text = element.text or ""
            except WebDriverException:
                continue
            snippet = " ".join(line.strip() for line in text.splitlines() if len(line.strip()) > 20)
            hits.append(SearchHit(title=title, url=url, snippet=snippet, text=text, rank=len(hits) + 1))
            if len(hits) >= self.config.max_results:
                break
        return hits

    @staticmethod
    def _accept_cookies(driver: WebDriver) -> None:
        for button in driver.find_elements(By.CSS_SELECTOR, _COOKIE_BUTTONS):
            try:
                if button.is_displayed():
                    button.click()
                    return
            except WebDriverException:
                LOGGER.debug("Cookie banner button could not be clicked")

    def is_configured(self) -> bool:
        return True

    def service_info(self) -> dict:
        return {
            "name": "Google Search (Selenium)",
            "type": "web_search_selenium",
            "available": self.is_configured(),
            "remote_url": self.config.remote_url,
            "cost": "Free",
        }


def _domain_of(url: str) -> str:
    stripped = url.split("://", 1)[-1]
    return stripped.split("/", 1)[0]


__all__ = ["GOOGLE_EMAIL_WEIGHTS", "GoogleSearchBackend", "GoogleSearchConfig"]
