"""Contact detail extraction from OCR text using regex patterns.

Finds phone numbers, email addresses, postal addresses, URLs and dates,
scoring each match from its formatting and the words around it.
"""

import re
from datetime import datetime
from typing import Protocol
from urllib.parse import urlparse

from src.extraction.models import (
    Address,
    ContactInfo,
    DateData,
    EmailAddress,
    PhoneNumber,
    PhoneType,
    URLData,
)
from src.utils.logger import get_logger

logger = get_logger(__name__)

_PHONE_PATTERN = re.compile(
    r"(?<!\d)(\+?1?[-.\s]?)?\(?(\d{3})\)?[-.\s]?(\d{3})[-.\s]?(\d{4})"
    r"(?:\s?(?:ext|x|extension)[-.\s]?(\d+))?(?!\d)",
    re.IGNORECASE,
)
# Seven-digit local numbers such as 555-0123.
_LOCAL_PHONE_PATTERN = re.compile(r"(?<![\d-])\d{3}[-.]\d{4}(?![\d-])")

_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

_STREET_SUFFIXES = (
    "Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Drive|Dr|Lane|Ln|Way|"
    "Court|Ct|Place|Pl|Parkway|Pkwy|Highway|Hwy|Suite|Ste"
)
_ADDRESS_PATTERN = re.compile(
    rf"(?P<street>\b\d{{1,6}}[ \t]+(?:[A-Z0-9][\w.'-]*[ \t]+){{1,5}}"
    rf"(?:{_STREET_SUFFIXES})\b\.?)"
    r"(?:(?:,[ \t]*|[ \t]*\n[ \t]*)"
    r"(?P<locality>[A-Z][A-Za-z .]*,[ \t]*[A-Z]{2}[ \t]+\d{5}(?:-\d{4})?))?"
)
_ZIP_PATTERN = re.compile(r"\b\d{5}(?:-\d{4})?\b")

_URL_PATTERN = re.compile(
    r"\b(?:https?://[^\s<>\"]+|www\.[^\s<>\"]+|"
    r"[a-z0-9][a-z0-9-]*(?:\.[a-z0-9-]+)*"
    r"\.(?:com|org|net|io|co|edu|gov|biz|info|ai|dev|app|us|uk)\b(?:/[^\s<>\"]*)?)",
    re.IGNORECASE,
)

_MONTHS = (
    r"(?:Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?|"
    r"Aug(?:ust)?|Sep(?:tember)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)"
)
# (regex, strptime formats, reported format)
_DATE_PATTERNS: list[tuple[re.Pattern[str], tuple[str, ...], str]] = [
    (re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b"), ("%m/%d/%Y",), "MM/dd/yyyy"),
    (re.compile(r"\b\d{4}-\d{2}-\d{2}\b"), ("%Y-%m-%d",), "yyyy-MM-dd"),
    (
        re.compile(rf"\b{_MONTHS} \d{{1,2}}, \d{{4}}\b"),
        ("%B %d, %Y", "%b %d, %Y"),
        "MMMM dd, yyyy",
    ),
    (
        re.compile(rf"\b\d{{1,2}} {_MONTHS} \d{{4}}\b"),
        ("%d %B %Y", "%d %b %Y"),
        "dd MMMM yyyy",
    ),
]

_WEBMAIL_DOMAINS = {"gmail.com", "yahoo.com", "hotmail.com", "outlook.com", "icloud.com"}
_TOLL_FREE_PREFIXES = ("1800", "1888", "1877")


class ContactExtractorProtocol(Protocol):
    def extract(self, text: str) -> ContactInfo: ...


def _context(text: str, start: int, end: int, radius: int) -> str:
    """Lower-cased text surrounding a match."""
    return text[max(0, start - radius) : end + radius].lower()


def _overlaps(start: int, end: int, spans: list[tuple[int, int]]) -> bool:
    return any(start < span_end and end > span_start for span_start, span_end in spans)


class ContactInfoExtractor:
    """Regex-based extractor for contact details.

    Stateless; one instance can be shared across threads.
    """

    def extract(self, text: str) -> ContactInfo:
        """Extract all contact details from text.

        Args:
            text: OCR text to search.

        Returns:
            Contact details in order of appearance.
        """
        info = ContactInfo(
            phone_numbers=self.extract_phone_numbers(text),
            email_addresses=self.extract_emails(text),
            addresses=self.extract_addresses(text),
            urls=self.extract_urls(text),
            dates=self.extract_dates(text),
        )
        logger.debug(
            "Contact extraction: %d phones, %d emails, %d addresses, %d urls",
            len(info.phone_numbers),
            len(info.email_addresses),
            len(info.addresses),
            len(info.urls),
        )
        return info

    def extract_phone_numbers(self, text: str) -> list[PhoneNumber]:
        phones: list[PhoneNumber] = []
        spans: list[tuple[int, int]] = []

        for pattern in (_PHONE_PATTERN, _LOCAL_PHONE_PATTERN):
            for match in pattern.finditer(text):
                if _overlaps(match.start(), match.end(), spans):
                    continue
                raw = match.group(0).strip()
                if not raw:
                    continue
                spans.append(match.span())
                phones.append(self._build_phone(raw, text, match.start(), match.end()))

        phones.sort(key=lambda p: text.find(p.raw))
        return phones

    def _build_phone(self, raw: str, text: str, start: int, end: int) -> PhoneNumber:
        cleaned = re.sub(r"[^\d+]", "", raw)

        confidence = 0.7
        context = _context(text, start, end, 20)
        if any(word in context for word in ("phone", "tel", "mobile", "cell")):
            confidence += 0.2
        if "(" in raw and ")" in raw and "-" in raw:
            confidence += 0.1

        return PhoneNumber(
            raw=raw,
            formatted=format_phone_number(cleaned),
            type=classify_phone_number(cleaned),
            confidence=min(confidence, 1.0),
        )

    def extract_emails(self, text: str) -> list[EmailAddress]:
        emails: list[EmailAddress] = []
        seen: set[str] = set()

        for match in _EMAIL_PATTERN.finditer(text):
            address = match.group(0).lower()
            if address in seen:
                continue
            seen.add(address)

            domain = address.split("@")[-1]
            confidence = 0.8
            context = _context(text, match.start(), match.end(), 20)
            if any(word in context for word in ("email", "e-mail", "contact")):
                confidence += 0.1
            if domain in _WEBMAIL_DOMAINS:
                confidence += 0.1

            emails.append(
                EmailAddress(
                    address=address,
                    domain=domain,
                    is_valid=is_valid_email(address),
                    confidence=min(confidence, 1.0),
                )
            )
        return emails

    def extract_addresses(self, text: str) -> list[Address]:
        addresses: list[Address] = []

        for match in _ADDRESS_PATTERN.finditer(text):
            raw = match.group(0).strip()
            street = match.group("street").strip()
            city = state = zip_code = None

            locality = match.group("locality")
            if locality:
                zip_match = _ZIP_PATTERN.search(locality)
                if zip_match:
                    zip_code = zip_match.group(0)
                    parts = locality.replace(zip_code, "").split(",")
                    if len(parts) >= 2:
                        city = parts[0].strip() or None
                        state = parts[1].strip() or None

            confidence = 0.6
            context = _context(text, match.start(), match.end(), 30)
            if any(word in context for word in ("address", "location", "visit", "office")):
                confidence += 0.2
            if _ZIP_PATTERN.search(raw):
                confidence += 0.2

            addresses.append(
                Address(
                    raw=raw,
                    street=street,
                    city=city,
                    state=state,
                    zip_code=zip_code,
                    confidence=min(confidence, 1.0),
                )
            )
        return addresses

    def extract_urls(self, text: str) -> list[URLData]:
        """Extract web addresses, ignoring the domains of email addresses."""
        email_spans = [m.span() for m in _EMAIL_PATTERN.finditer(text)]
        urls: list[URLData] = []

        for match in _URL_PATTERN.finditer(text):
            if _overlaps(match.start(), match.end(), email_spans):
                continue
            display = match.group(0).rstrip(".,;:!?)'\"")
            url = display if re.match(r"https?://", display, re.I) else f"http://{display}"

            confidence = 0.8
            context = _context(text, match.start(), match.end(), 20)
            if any(word in context for word in ("website", "visit", "web", "www")):
                confidence += 0.1

            parsed = urlparse(url)
            urls.append(
                URLData(
                    url=url,
                    display_text=display,
                    is_valid=bool(parsed.netloc) and "." in parsed.netloc,
                    confidence=min(confidence, 1.0),
                )
            )
        return urls

    def extract_dates(self, text: str) -> list[DateData]:
        dates: list[DateData] = []

        for pattern, formats, label in _DATE_PATTERNS:
            for match in pattern.finditer(text):
                raw = match.group(0)
                confidence = 0.7
                context = _context(text, match.start(), match.end(), 20)
                if any(word in context for word in ("date", "when", "schedule", "due")):
                    confidence += 0.2

                dates.append(
                    DateData(
                        raw=raw,
                        parsed=_parse_date(raw, formats),
                        format=label,
                        confidence=min(confidence, 1.0),
                    )
                )
        return dates


def format_phone_number(cleaned: str) -> str:
    """Format a digits-only phone number in US style.

    Args:
        cleaned: Digits, optionally with a leading ``+``.

    Returns:
        ``(XXX) XXX-XXXX``, ``+1 (XXX) XXX-XXXX`` or ``XXX-XXXX``; other
        inputs are returned unchanged.
    """
    if cleaned.startswith("+1"):
        digits = cleaned[2:]
        if len(digits) == 10:
            return f"+1 ({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    elif cleaned.startswith("1") and len(cleaned) == 11:
        digits = cleaned[1:]
        return f"+1 ({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    elif len(cleaned) == 10:
        return f"({cleaned[:3]}) {cleaned[3:6]}-{cleaned[6:]}"
    elif len(cleaned) == 7:
        return f"{cleaned[:3]}-{cleaned[3:]}"
    return cleaned


def classify_phone_number(cleaned: str) -> PhoneType:
    if cleaned.startswith("+"):
        return PhoneType.INTERNATIONAL
    if cleaned.startswith(_TOLL_FREE_PREFIXES):
        return PhoneType.TOLL_FREE
    return PhoneType.UNKNOWN


def is_valid_email(address: str) -> bool:
    parts = address.split("@")
    if len(parts) != 2:
        return False
    return "." in parts[1] and len(parts[1]) >= 4


def _parse_date(raw: str, formats: tuple[str, ...]) -> datetime | None:
    for fmt in formats:
        try:
            return datetime.strptime(raw, fmt)
        except ValueError:
            continue
    return None
