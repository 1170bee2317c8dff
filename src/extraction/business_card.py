"""Business card detection and contact record extraction.

Decides whether recognized text looks like a business card and, if it
does, pulls out the person's name, job title, company, contact details
and social media profiles. Name detection is a cascade of independent
strategies; the first one to produce a name wins.
"""

import re
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol

import numpy as np

from src.extraction.contact_extractor import ContactExtractorProtocol, ContactInfoExtractor
from src.extraction.models import (
    BusinessCardData,
    ContactInfo,
    PersonName,
    SocialMediaInfo,
    SocialPlatform,
)
from src.utils.logger import get_logger

logger = get_logger(__name__)

TITLE_KEYWORDS = (
    "ceo", "president", "director", "manager", "vp", "vice president",
    "senior", "lead", "head", "chief", "founder", "partner",
    "consultant", "specialist", "analyst", "engineer", "developer",
    "designer", "architect", "coordinator", "supervisor", "executive",
)

COMPANY_INDICATORS = (
    "inc", "llc", "corp", "corporation", "company", "co.", "ltd",
    "limited", "group", "associates", "partners", "solutions",
    "services", "systems", "technologies", "tech", "consulting",
)

NAME_PREFIXES = {"dr", "dr.", "mr", "mr.", "mrs", "mrs.", "ms", "ms."}
NAME_SUFFIXES = {"jr", "jr.", "sr", "sr.", "ii", "iii", "phd", "md", "esq"}

SOCIAL_PLATFORMS: list[tuple[str, SocialPlatform]] = [
    ("linkedin.com", SocialPlatform.LINKEDIN),
    ("twitter.com", SocialPlatform.TWITTER),
    ("facebook.com", SocialPlatform.FACEBOOK),
    ("instagram.com", SocialPlatform.INSTAGRAM),
]

_NAME_PATTERNS = [
    re.compile(r"^([A-Z][a-z]+ [A-Z][a-z]+)$"),
    re.compile(r"^([A-Z][a-z]+ [A-Z]\. [A-Z][a-z]+)$"),
    re.compile(r"^([A-Z][a-z]+, [A-Z][a-z]+)$"),
    re.compile(r"([A-Z][A-Z]+ [A-Z][A-Z]+)"),
    re.compile(r"([A-Z][a-z]+ [A-Z][a-z]+ [A-Z][a-z]+)"),
]
_NON_NAME_INDICATORS = (
    "phone", "tel", "email", "www", ".com", "@",
    "solutions", "service", "company", "inc", "llc",
)

_SENIORITY_PATTERN = re.compile(r"\b(senior|lead|head|chief|principal)\s+\w+")
_ROLE_PATTERN = re.compile(r"\w+\s+(manager|director|officer|specialist)")

MIN_BUSINESS_CARD_SCORE = 5

NameStrategy = Callable[[str], PersonName | None]


class LinguisticTagger(Protocol):
    """Marks which tokens of a text are parts of personal names."""

    def tag_personal_names(self, text: str) -> list[tuple[str, bool]]: ...


def _contains_any(text: str, needles: tuple[str, ...] | list[str]) -> bool:
    return any(needle in text for needle in needles)


def normalize_text(text: str) -> str:
    """Collapse blank lines and runs of spaces while keeping line breaks."""
    normalized = re.sub(r"\r\n|\r", "\n", text)
    normalized = re.sub(r"\n+", "\n", normalized)
    normalized = re.sub(r"[ \t]+", " ", normalized)
    return normalized.strip()


def _clean_lines(normalized: str) -> list[str]:
    return [line.strip() for line in normalized.split("\n") if line.strip()]


def parse_person_name(full_name: str) -> PersonName:
    """Split a full name into prefix, first name, last name and suffix.

    Args:
        full_name: Name as it appears on the card, e.g. ``"Dr. Jane Doe Jr."``.

    Returns:
        Structured name. With a single remaining token only ``first_name``
        is set.
    """
    parts = full_name.split()
    prefix = suffix = first_name = last_name = None

    if parts and parts[0].lower() in NAME_PREFIXES:
        prefix = parts.pop(0)
    if parts and parts[-1].lower() in NAME_SUFFIXES:
        suffix = parts.pop()

    if parts:
        first_name = parts[0]
    if len(parts) >= 2:
        last_name = " ".join(parts[1:])

    return PersonName(
        full_name=full_name,
        first_name=first_name,
        last_name=last_name,
        prefix=prefix,
        suffix=suffix,
    )


def parse_name_line(line: str) -> PersonName | None:
    """Strict test: a short line with at least two capitalized tokens.

    Lines mentioning email, web or phone details or a company indicator
    are rejected.
    """
    lowered = line.lower()
    if _contains_any(lowered, ("@", "www", ".com", "phone")) or _contains_any(
        lowered, COMPANY_INDICATORS
    ):
        return None

    words = line.split()
    if not 2 <= len(words) <= 4:
        return None

    capitalized = [w for w in words if w[0].isalpha() and w[0].isupper()]
    if len(capitalized) >= 2:
        return parse_person_name(" ".join(capitalized))
    return None


def find_capitalized_name(line: str) -> PersonName | None:
    """Loose test: most words look like capitalized name parts."""
    lowered = line.lower()
    if _contains_any(lowered, ("@", ".com", "phone", "tel", "www", "http")):
        return None

    words = line.split()
    if not 2 <= len(words) <= 4:
        return None

    capitalized = [
        word
        for word in words
        if word[0].isupper()
        and all(ch.isalpha() or ch in ".'" for ch in word)
        and 2 <= len(word) <= 20
    ]
    if len(capitalized) >= 2 and len(capitalized) >= len(words) - 1:
        return parse_person_name(" ".join(capitalized))
    return None


def name_from_last_lines(normalized: str) -> PersonName | None:
    """Names are often printed last, so try the final three lines bottom-up."""
    for line in reversed(_clean_lines(normalized)[-3:]):
        if name := parse_name_line(line):
            return name
    return None


def name_from_first_lines(normalized: str) -> PersonName | None:
    for line in _clean_lines(normalized)[:5]:
        if name := parse_name_line(line):
            return name
    return None


def name_from_capitalized_words(normalized: str) -> PersonName | None:
    for line in _clean_lines(normalized):
        if name := find_capitalized_name(line):
            return name
    return None


def name_from_patterns(normalized: str) -> PersonName | None:
    """Try common name layouts against the whole text."""
    for pattern in _NAME_PATTERNS:
        for match in pattern.finditer(normalized):
            candidate = match.group(0)
            if not _contains_any(candidate.lower(), _NON_NAME_INDICATORS):
                return parse_person_name(candidate)
    return None


NAME_STRATEGIES: list[NameStrategy] = [
    name_from_last_lines,
    name_from_first_lines,
    name_from_capitalized_words,
    name_from_patterns,
]


def _line_contains_name(line: str, person_name: str | None) -> bool:
    if not person_name:
        return False
    lowered = line.lower()
    return all(part.lower() in lowered for part in person_name.split())


def extract_title_from_line(line: str) -> str | None:
    lowered = line.lower()
    if _contains_any(lowered, ("@", "www", ".com", "phone")):
        return None
    if _contains_any(lowered, TITLE_KEYWORDS):
        return line.strip()
    if _SENIORITY_PATTERN.search(lowered) or _ROLE_PATTERN.search(lowered):
        return line.strip()
    return None


def extract_title(text: str, person_name: str | None = None) -> str | None:
    """Find the job title, preferring the two lines below the name.

    Args:
        text: Card text.
        person_name: Full name already found on the card, if any.

    Returns:
        The title line, or ``None``.
    """
    lines = [line.strip() for line in text.splitlines()]

    for index, line in enumerate(lines):
        if _line_contains_name(line, person_name):
            for candidate in lines[index + 1 : index + 3]:
                if title := extract_title_from_line(candidate):
                    return title
        elif title := extract_title_from_line(line):
            return title
    return None


def extract_company(
    text: str, person_name: str | None = None, title: str | None = None
) -> str | None:
    """Find the company line.

    The first line naming a company indicator wins. Otherwise the longest
    line that is not contact information is used.
    """
    lines = [line.strip() for line in text.splitlines()]

    for line in lines:
        lowered = line.lower()
        if _contains_any(lowered, ("@", "phone", "mobile", "cell")):
            continue
        if _line_contains_name(line, person_name):
            continue
        if title is not None and lowered == title.lower():
            continue
        if _contains_any(lowered, COMPANY_INDICATORS):
            return line

    candidates = [
        line
        for line in lines
        if not _contains_any(line.lower(), ("@", "phone", "www")) and len(line) > 3
    ]
    if not candidates:
        return None
    return max(candidates, key=len)


def _social_handle(matched: str, platform: SocialPlatform) -> str:
    components = matched.split("/")
    if platform == SocialPlatform.LINKEDIN and "in" in components:
        index = components.index("in")
        if index + 1 < len(components):
            return components[index + 1]
    if platform == SocialPlatform.TWITTER:
        return components[-1].replace("@", "")
    return components[-1]


def extract_social_media(text: str) -> list[SocialMediaInfo]:
    """Find social media profile links.

    Args:
        text: Card text.

    Returns:
        Profiles grouped by platform, in order of appearance per platform.
    """
    profiles: list[SocialMediaInfo] = []
    lowered = text.lower()

    for domain, platform in SOCIAL_PLATFORMS:
        if domain not in lowered:
            continue
        pattern = re.compile(r"\b\w*" + re.escape(domain) + r"/?\S*", re.IGNORECASE)
        for match in pattern.finditer(text):
            matched = match.group(0)
            url = matched if matched.startswith("http") else f"https://{matched}"
            profiles.append(
                SocialMediaInfo(
                    platform=platform,
                    handle=_social_handle(matched, platform),
                    url=url,
                )
            )
    return profiles


def calculate_confidence(
    name: PersonName | None,
    title: str | None,
    company: str | None,
    contact_info: ContactInfo,
) -> float:
    """Score how complete an extracted card is, capped at 1.0."""
    confidence = 0.0

    if name is not None:
        confidence += 0.3
        if name.first_name and name.last_name:
            confidence += 0.1
    if title is not None:
        confidence += 0.2
    if company is not None:
        confidence += 0.2

    if contact_info.phone_numbers:
        confidence += 0.1 + 0.05 * len(contact_info.phone_numbers)
    if contact_info.email_addresses:
        confidence += 0.1 + 0.05 * len(contact_info.email_addresses)
    if contact_info.addresses:
        confidence += 0.1

    return min(confidence, 1.0)


class BusinessCardProcessor:
    """Detects business cards in text and extracts contact records.

    Holds no per-call state, so one instance can serve concurrent callers.

    Args:
        contact_extractor: Extractor for phones, emails, addresses and URLs.
        name_tagger: Optional tagger consulted before the text heuristics.
        acceptance_threshold: Minimum score for text to count as a card.
    """

    def __init__(
        self,
        contact_extractor: ContactExtractorProtocol | None = None,
        name_tagger: LinguisticTagger | None = None,
        acceptance_threshold: int = MIN_BUSINESS_CARD_SCORE,
    ) -> None:
        self.contact_extractor = contact_extractor or ContactInfoExtractor()
        self.name_tagger = name_tagger
        self.acceptance_threshold = acceptance_threshold

    def detect_business_card(
        self, text: str, image: np.ndarray | None = None
    ) -> BusinessCardData | None:
        """Extract a contact record if the text looks like a business card.

        Args:
            text: Recognized card text.
            image: Source image. Accepted for callers that have one; the
                text alone drives extraction.

        Returns:
            Parsed card, or ``None`` when the text is not a business card.
        """
        if not self.is_likely_business_card(text):
            logger.debug("Text rejected as a business card")
            return None

        contact_info = self.contact_extractor.extract(text)
        name = self.extract_person_name(text)
        full_name = name.full_name if name else None
        title = extract_title(text, full_name)
        company = extract_company(text, full_name, title)

        card = BusinessCardData(
            name=name,
            title=title,
            company=company,
            contact_info=contact_info,
            social_media=extract_social_media(text),
            confidence=calculate_confidence(name, title, company, contact_info),
        )
        logger.info(
            "Business card detected: name=%s, company=%s, confidence=%.2f",
            full_name,
            company,
            card.confidence,
        )
        return card

    def score_business_card(self, text: str) -> int:
        """Score how much the text resembles a business card.

        Returns 0 when the text has neither a phone number nor an email
        address.
        """
        contact_info = self.contact_extractor.extract(text)
        if not contact_info.phone_numbers and not contact_info.email_addresses:
            return 0

        lowered = text.lower()
        score = 0
        if contact_info.phone_numbers:
            score += 2
        if contact_info.email_addresses:
            score += 2
        if contact_info.addresses:
            score += 1
        if contact_info.urls:
            score += 1
        if _contains_any(lowered, TITLE_KEYWORDS):
            score += 1
        if _contains_any(lowered, COMPANY_INDICATORS):
            score += 1
        if self.extract_person_name(text) is not None:
            score += 2
        if 10 <= len(text.split()) <= 100:
            score += 1

        logger.debug("Business card score: %d", score)
        return score

    def is_likely_business_card(self, text: str) -> bool:
        """Apply the score threshold to text that has a phone or an email."""
        contact_info = self.contact_extractor.extract(text)
        if not contact_info.phone_numbers and not contact_info.email_addresses:
            return False
        return self.score_business_card(text) >= self.acceptance_threshold

    def extract_person_name(self, text: str) -> PersonName | None:
        """Run the name strategies in order and return the first hit."""
        if name := self._name_from_tagger(text):
            return name

        normalized = normalize_text(text)
        for strategy in NAME_STRATEGIES:
            if name := strategy(normalized):
                logger.debug("Name found by %s: %s", strategy.__name__, name.full_name)
                return name
        return None

    def _name_from_tagger(self, text: str) -> PersonName | None:
        if self.name_tagger is None:
            return None
        tokens = [
            token
            for token, is_name in self.name_tagger.tag_personal_names(text)
            if is_name
        ]
        if not tokens:
            return None
        return parse_person_name(" ".join(tokens))

    def generate_crm_data(
        self, card: BusinessCardData, now: datetime | None = None
    ) -> dict[str, Any]:
        """Flatten a business card into a CRM import record.

        Args:
            card: Extracted business card.
            now: Creation timestamp; the current UTC time when omitted.

        Returns:
            String-keyed record ready for JSON serialization.
        """
        crm: dict[str, Any] = {}

        if card.name is not None:
            crm["first_name"] = card.name.first_name or ""
            crm["last_name"] = card.name.last_name or ""
            crm["full_name"] = card.name.full_name
            crm["prefix"] = card.name.prefix
            crm["suffix"] = card.name.suffix

        crm["title"] = card.title or ""
        crm["company"] = card.company or ""

        info = card.contact_info
        if info.phone_numbers:
            crm["phone"] = info.phone_numbers[0].formatted
            crm["phone_numbers"] = [
                {"number": p.formatted, "type": str(p.type), "confidence": p.confidence}
                for p in info.phone_numbers
            ]

        if info.email_addresses:
            crm["email"] = info.email_addresses[0].address
            crm["emails"] = [
                {
                    "address": e.address,
                    "domain": e.domain,
                    "is_valid": e.is_valid,
                    "confidence": e.confidence,
                }
                for e in info.email_addresses
            ]

        if info.addresses:
            address = info.addresses[0]
            crm["address"] = address.raw
            crm["street"] = address.street
            crm["city"] = address.city
            crm["state"] = address.state
            crm["zip_code"] = address.zip_code
            crm["country"] = address.country

        if card.social_media:
            crm["social_media"] = [
                {"platform": str(s.platform), "handle": s.handle, "url": s.url}
                for s in card.social_media
            ]
            for social in card.social_media:
                if social.platform == SocialPlatform.TWITTER:
                    crm["twitter"] = social.handle
                elif social.platform != SocialPlatform.OTHER:
                    crm[str(social.platform)] = social.url or social.handle

        crm["source"] = "business_card_scan"
        crm["confidence"] = card.confidence
        crm["created_date"] = (now or datetime.now(UTC)).isoformat()
        return crm
