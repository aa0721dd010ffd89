from __future__ import annotations

import pytest
import requests

from prospect_enricher.backends.universal_scraper import UniversalScraperBackend
from prospect_enricher.models import ContactCandidate, EnrichmentOptions

HOME_PAGE = "<html><body><p>Bienvenue chez Example Corp</p><p>Tel 01 23 45 67 89</p></body></html>"
CONTACT_PAGE = """
<html><body>
  <section class="contact">
    <p>jean.dupont@example-corp.fr</p>
    <p>01 23 45 67 89</p>
  </section>
</body></html>
"""


class FakeResponse:
    def __init__(self, text: str, status_code: int = 200) -> None:
        self.text = text
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    def __init__(self, pages) -> None:
        self.pages = pages

    def get(self, url, **kwargs):
        page = self.pages[url]
        if isinstance(page, Exception):
            raise page
        return page


def test_scrape_urls_collects_unique_contacts_and_url_metadata() -> None:
    session = FakeSession(
        {
            "https://example-corp.fr": FakeResponse(HOME_PAGE),
            "https://example-corp.fr/contact": FakeResponse(CONTACT_PAGE),
            "https://example-corp.fr/nous-contacter": FakeResponse("", status_code=404),
            "https://example-corp.fr/contact-us": requests.ConnectionError("reset"),
        }
    )
    backend = UniversalScraperBackend(session=session)
    urls = [
        "https://example-corp.fr",
        "https://example-corp.fr/contact",
        "https://example-corp.fr/contact-us",
        "https://example-corp.fr/nous-contacter",
    ]

    result = backend.scrape_urls(urls, "Jean Dupont", "Example Corp", EnrichmentOptions())

    assert result.success
    assert sorted(contact.value for contact in result.contacts) == ["0123456789", "jean.dupont@example-corp.fr"]
    assert result.metadata["total_urls"] == 4
    assert result.metadata["successful_scrapes"] == 2
    assert result.metadata["unique_contacts"] == 2
    assert result.metadata["url_0"]["contacts_found"] == 1
    assert "error" in result.metadata["url_2"]
    assert "404" in result.metadata["url_3"]["error"]
    email = next(contact for contact in result.contacts if "@" in contact.value)
    assert email.context["in_contact_section"] is True
    assert email.context["url_index"] == 1


def test_summarise_weights_quality_diversity_and_depth() -> None:
    contacts = [ContactCandidate.email("a@acme.fr", 80), ContactCandidate.phone("0123456789", 60)]

    outcome = UniversalScraperBackend.summarise(contacts)

    assert outcome.rule_scores["contact_diversity"] == 60
    assert outcome.rule_scores["scraping_depth"] == 30
    assert outcome.overall_score == pytest.approx(70 * 0.6 + 60 * 0.2 + 30 * 0.2)
    assert not UniversalScraperBackend.summarise([]).is_valid
