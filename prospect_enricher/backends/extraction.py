"""Contact extraction from HTML pages and search result snippets."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from ..models import ConfidenceLevel, ContactCandidate, ValidationOutcome
from ..validation import EMAIL_PATTERN, FREE_EMAIL_DOMAINS, PHONE_STRIP_PATTERN, ValidationContext

LOGGER = logging.getLogger(__name__)

EMAIL_SEARCH_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_SEARCH_PATTERNS = (
    re.compile(r"(?:\+33|0)[1-9](?:[0-9]{8})"),
    re.compile(r"(?:\+33\s?|0)(?:[1-9]\s?)(?:(?:[0-9]{2}\s?){4})"),
    re.compile(r"(?:\+33|0)[1-9](?:\.[0-9]{2}){4}"),
    re.compile(r"(?:\+33|0)[1-9](?:-[0-9]{2}){4}"),
)
SOCIAL_PROFILE_PATTERNS = (
    ("linkedin", re.compile(r"linkedin\.com/in/([a-zA-Z0-9-]+)")),
    ("twitter", re.compile(r"twitter\.com/([a-zA-Z0-9_]+)")),
    ("facebook", re.compile(r"facebook\.com/([a-zA-Z0-9.]+)")),
)
SOCIAL_BONUSES = {"linkedin": 25.0, "twitter": 15.0, "facebook": 10.0}
GENERIC_EMAIL_PATTERNS = tuple(
    re.compile(pattern)
    for pattern in (
        r"noreply@",
        r"no-reply@",
        r"donotreply@",
        r"postmaster@",
        r"admin@",
        r"webmaster@",
        r"info@example",
        r"test@",
        r"example@",
        r"contact@(?:test\.|demo\.|localhost|example\.)",
    )
)
RELEVANT_SITES = ("linkedin.com", "viadeo.com", "about.me", "societe.com")
WEBSITE_LINK_TEXTS = ("site web", "website", "homepage", "accueil", "www")
RELEVANT_LINK_KEYWORDS = ("site", "web", "homepage", "accueil", "contact", "about")
EXCLUDED_EXTENSIONS = (".pdf", ".doc", ".jpg", ".png", ".gif", ".zip")
CONTACT_SECTION_MARKERS = ("contact",)
TEAM_SECTION_MARKERS = ("équipe", "equipe", "team")
_SECTION_DEPTH = 3


@dataclass(frozen=True)
class SearchHit:
    """One organic result returned by a search engine."""

    title: str
    url: str
    snippet: str
    text: str = ""
    rank: int = 1


@dataclass(frozen=True)
class EmailWeights:
    """Heuristic weights used to score emails found in search results."""

    base: float = 50.0
    company_domain: float = 30.0
    business_domain: float = 20.0
    name_match: float = 25.0
    contact_keyword: float = 15.0
    linkedin_keyword: float = 0.0
    rank_bonuses: Tuple[Tuple[float, float], ...] = ()

    def rank_bonus(self, rank: int) -> float:
        for max_rank, bonus in self.rank_bonuses:
            if rank <= max_rank:
                return bonus
        return 0.0


SEARCH_EMAIL_WEIGHTS = EmailWeights()


def is_generic_email(email: str) -> bool:
    return any(pattern.search(email) for pattern in GENERIC_EMAIL_PATTERNS)


def email_domain(email: str) -> str:
    return email.rpartition("@")[2].lower()


def detect_platform(url: str) -> str:
    lowered = url.lower()
    for platform, _ in SOCIAL_PROFILE_PATTERNS:
        if f"{platform}.com" in lowered:
            return platform
    return "unknown"


def summarise_contacts(
    contacts: Sequence[ContactCandidate], *, valid_from: float = 60.0, source: str = "backend"
) -> ValidationOutcome:
    """Backend level quality summary: average of the credible scores, weighted with their count."""

    if not contacts:
        return ValidationOutcome.invalid(0.0, [f"{source}: no contacts found"])
    credible = [contact.validation_score for contact in contacts if contact.validation_score >= valid_from]
    if not credible:
        return ValidationOutcome.invalid(0.0, [f"{source}: no valid contacts found"])
    average = sum(credible) / len(credible)
    rule_scores = {"contact_quality": average, "contact_count": float(min(100, len(credible) * 20))}
    overall = average * 0.8 + rule_scores["contact_count"] * 0.2
    return ValidationOutcome.create(
        overall,
        rule_scores,
        validation_messages=[
            f"Found {len(credible)} valid contacts out of {len(contacts)} total",
            f"Average contact quality score: {average:.2f}",
        ],
    )


class ContactExtractor:
    """Find and heuristically score contacts for one prospect.

    Scores produced here are source scores set by the backend; the rule engine
    re-scores every candidate afterwards.
    """

    def __init__(self, prospect_name: Optional[str], prospect_company: Optional[str]) -> None:
        self.context = ValidationContext(prospect_name or "", prospect_company or "")
        self._name_tokens = self.context.name_tokens()
        self._company_tokens = self.context.company_tokens()

    # ------------------------------------------------------------------
    # Raw finders
    # ------------------------------------------------------------------
    def find_emails(self, text: str) -> List[str]:
        found: List[str] = []
        for match in EMAIL_SEARCH_PATTERN.findall(text or ""):
            email = match.strip().lower()
            if email in found or not EMAIL_PATTERN.match(email) or is_generic_email(email):
                continue
            found.append(email)
        return found

    def find_phones(self, text: str) -> List[str]:
        found: List[str] = []
        for pattern in PHONE_SEARCH_PATTERNS:
            for match in pattern.findall(text or ""):
                phone = PHONE_STRIP_PATTERN.sub("", match)
                if phone in found or len(phone) < 10:
                    continue
                found.append(phone)
        return found

    def find_social_profiles(self, text: str) -> List[Tuple[str, str, str]]:
        """Return ``(url, username, platform)`` tuples in order of appearance per platform."""

        found: List[Tuple[str, str, str]] = []
        seen = set()
        for platform, pattern in SOCIAL_PROFILE_PATTERNS:
            for match in pattern.finditer(text or ""):
                url = match.group(0)
                if url.lower() in seen:
                    continue
                seen.add(url.lower())
                found.append((url, match.group(1), platform))
        return found

    # ------------------------------------------------------------------
    # Heuristics
    # ------------------------------------------------------------------
    def _matches_company(self, text: str) -> bool:
        lowered = text.lower()
        return any(token in lowered for token in self._company_tokens)

    def _matches_name(self, text: str) -> bool:
        lowered = text.lower()
        return any(token in lowered for token in self._name_tokens)

    def page_relevance(self, url: str) -> float:
        relevance = 50.0
        if self._matches_company(url):
            relevance += 30.0
        if any(site in url.lower() for site in RELEVANT_SITES):
            relevance += 20.0
        return min(100.0, relevance)

    def is_company_website(self, url: str) -> bool:
        host = urlparse(url).hostname
        return bool(host) and self._matches_company(host)

    @staticmethod
    def confidence(score: float) -> ConfidenceLevel:
        return ConfidenceLevel.from_score(score)

    # ------------------------------------------------------------------
    # Search results
    # ------------------------------------------------------------------
    def score_search_email(self, email: str, hit: SearchHit, weights: EmailWeights = SEARCH_EMAIL_WEIGHTS) -> float:
        domain = email_domain(email)
        score = weights.base + weights.rank_bonus(hit.rank)
        if self._matches_company(domain):
            score += weights.company_domain
        if domain not in FREE_EMAIL_DOMAINS:
            score += weights.business_domain
        if self._matches_name(email):
            score += weights.name_match
        headline = f"{hit.title} {hit.snippet}".lower()
        if "contact" in headline:
            score += weights.contact_keyword
        if "linkedin" in headline:
            score += weights.linkedin_keyword
        return min(100.0, max(0.0, score))

    def proximity_score(self, email: str, text: str) -> float:
        lowered = text.lower()
        position = lowered.find(email.lower())
        if position < 0:
            return 0.0
        total = 0.0
        for term in (self.context.prospect_name, self.context.prospect_company, "contact", "email", "adresse"):
            if not term:
                continue
            term_position = lowered.find(term.lower())
            if term_position >= 0:
                distance = abs(position - term_position)
                if distance < 100:
                    total += (100 - distance) / 10
        return min(100.0, total)

    def contacts_from_hits(
        self, hits: Iterable[SearchHit], *, weights: EmailWeights = SEARCH_EMAIL_WEIGHTS
    ) -> List[ContactCandidate]:
        """Email candidates from search results, first occurrence wins."""

        contacts: List[ContactCandidate] = []
        seen = set()
        for hit in hits:
            haystack = f"{hit.snippet} {hit.text}"
            for email in self.find_emails(haystack):
                if email in seen:
                    continue
                seen.add(email)
                score = self.score_search_email(email, hit, weights)
                contacts.append(
                    ContactCandidate.email(
                        email,
                        score,
                        self.confidence(score),
                        context={
                            "source_url": hit.url,
                            "source_title": hit.title,
                            "found_in": "search_result",
                            "snippet": hit.snippet[:200],
                            "search_rank": hit.rank,
                        },
                        details={
                            "email_domain": email_domain(email),
                            "proximity_score": self.proximity_score(email, haystack),
                        },
                    )
                )
        return contacts

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------
    def contacts_from_page(self, html: str, source_url: str, url_index: int = 0) -> List[ContactCandidate]:
        soup = BeautifulSoup(html or "", "html.parser")
        text = soup.get_text(" ", strip=True)
        relevance = self.page_relevance(source_url)
        contacts: List[ContactCandidate] = []
        contacts.extend(self._page_emails(soup, text, source_url, url_index, relevance))
        contacts.extend(self._page_phones(text, source_url, url_index, relevance))
        contacts.extend(self._page_social_profiles(soup, text, source_url, url_index, relevance))
        contacts.extend(self._page_websites(soup, source_url, url_index, relevance))
        LOGGER.debug("Extracted %s contacts from %s", len(contacts), source_url)
        return contacts

    def _page_emails(self, soup, text: str, source_url: str, url_index: int, relevance: float) -> List[ContactCandidate]:
        mailto = " ".join(
            link.get("href", "")[len("mailto:"):].split("?")[0]
            for link in soup.select("a[href^='mailto:']")
        )
        contacts: List[ContactCandidate] = []
        for email in self.find_emails(f"{text} {mailto}"):
            section = _section_flags(soup, email)
            score = 50.0
            if section.get("in_contact_section"):
                score += 25.0
            if section.get("in_team_section"):
                score += 20.0
            if self._matches_company(email_domain(email)):
                score += 30.0
            if self._matches_name(email):
                score += 25.0
            if email_domain(email) not in FREE_EMAIL_DOMAINS:
                score += 20.0
            score = min(100.0, score + relevance * 0.3)
            context = {"source_url": source_url, "found_in": "page_content", "url_index": url_index}
            context.update(section)
            surrounding = _surrounding_text(text, email)
            if surrounding:
                context["surrounding_text"] = surrounding
            contacts.append(
                ContactCandidate.email(
                    email,
                    score,
                    self.confidence(score),
                    context=context,
                    details={"email_domain": email_domain(email), "page_relevance": relevance},
                )
            )
        return contacts

    def _page_phones(self, text: str, source_url: str, url_index: int, relevance: float) -> List[ContactCandidate]:
        contacts: List[ContactCandidate] = []
        for phone in self.find_phones(text):
            score = 60.0
            if re.match(r"^(?:\+33|0)[1-9]", phone):
                score += 20.0
            score = min(100.0, score + relevance * 0.2)
            contacts.append(
                ContactCandidate.phone(
                    phone,
                    score,
                    self.confidence(score),
                    context={"source_url": source_url, "found_in": "page_content", "url_index": url_index},
                    details={"phone_format": _phone_format(phone), "page_relevance": relevance},
                )
            )
        return contacts

    def _page_social_profiles(
        self, soup, text: str, source_url: str, url_index: int, relevance: float
    ) -> List[ContactCandidate]:
        hrefs = " ".join(link.get("href", "") for link in soup.select("a[href]"))
        contacts: List[ContactCandidate] = []
        for url, username, platform in self.find_social_profiles(f"{text} {hrefs}"):
            score = min(100.0, 45.0 + SOCIAL_BONUSES.get(platform, 0.0) + relevance * 0.2)
            contacts.append(
                ContactCandidate.website(
                    f"https://{url}" if not url.startswith("http") else url,
                    score,
                    self.confidence(score),
                    context={
                        "source_url": source_url,
                        "found_in": "social_media_link",
                        "platform": platform,
                        "url_index": url_index,
                    },
                    details={"profile_username": username, "page_relevance": relevance},
                )
            )
        return contacts

    def _page_websites(self, soup, source_url: str, url_index: int, relevance: float) -> List[ContactCandidate]:
        source_host = urlparse(source_url).hostname
        contacts: List[ContactCandidate] = []
        seen = set()
        for link in soup.select("a[href]"):
            href = urljoin(source_url, link.get("href", "").strip())
            host = urlparse(href).hostname
            if not host or host == source_host or href in seen:
                continue
            if urlparse(href).scheme not in ("http", "https"):
                continue
            if detect_platform(href) != "unknown":
                continue
            link_text = link.get_text(" ", strip=True)
            if not self._is_relevant_website(href, link_text):
                continue
            seen.add(href)
            score = 40.0
            if any(marker in link_text.lower() for marker in WEBSITE_LINK_TEXTS):
                score += 15.0
            company_site = self.is_company_website(href)
            if company_site:
                score += 30.0
            contacts.append(
                ContactCandidate.website(
                    href,
                    score,
                    self.confidence(score),
                    context={
                        "source_url": source_url,
                        "found_in": "website_link",
                        "link_text": link_text[:100],
                        "url_index": url_index,
                    },
                    details={"is_company_website": company_site, "page_relevance": relevance},
                )
            )
        return contacts

    def _is_relevant_website(self, href: str, link_text: str) -> bool:
        lowered = href.lower()
        if any(extension in lowered for extension in EXCLUDED_EXTENSIONS):
            return False
        if any(keyword in link_text.lower() for keyword in RELEVANT_LINK_KEYWORDS):
            return True
        return self.is_company_website(href)


def _section_flags(soup, email: str) -> dict:
    """Look at the closest enclosing blocks of each occurrence of ``email``."""

    flags = {}
    pattern = re.compile(re.escape(email), re.IGNORECASE)
    anchors = list(soup.find_all(string=pattern))
    anchors.extend(link for link in soup.select("a[href^='mailto:']") if pattern.search(link.get("href", "")))
    for anchor in anchors:
        node = anchor.parent
        for _ in range(_SECTION_DEPTH):
            if node is None or node.name in (None, "[document]"):
                break
            block = " ".join(
                [node.get_text(" ", strip=True), node.get("id") or "", " ".join(node.get("class") or [])]
            ).lower()
            if any(marker in block for marker in CONTACT_SECTION_MARKERS):
                flags["in_contact_section"] = True
            if any(marker in block for marker in TEAM_SECTION_MARKERS):
                flags["in_team_section"] = True
            node = node.parent
    return flags


def _surrounding_text(text: str, email: str) -> str:
    position = text.lower().find(email.lower())
    if position < 0:
        return ""
    before = text[max(0, position - 100):position]
    after = text[position + len(email):position + len(email) + 100]
    return f"{before} [EMAIL] {after}".strip()


def _phone_format(phone: str) -> str:
    if phone.startswith("+33"):
        return "international"
    if re.match(r"^0[1-9]", phone):
        return "national"
    return "unknown"


__all__ = [
    "ContactExtractor",
    "EmailWeights",
    "SEARCH_EMAIL_WEIGHTS",
    "SearchHit",
    "detect_platform",
    "email_domain",
    "is_generic_email",
    "summarise_contacts",
]
