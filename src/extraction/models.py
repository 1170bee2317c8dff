"""Data types for contact details and parsed business cards."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class PhoneType(StrEnum):
    MOBILE = "mobile"
    LANDLINE = "landline"
    TOLL_FREE = "toll_free"
    INTERNATIONAL = "international"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PhoneNumber:
    raw: str
    formatted: str
    type: PhoneType
    confidence: float


@dataclass(frozen=True)
class EmailAddress:
    address: str
    domain: str
    is_valid: bool
    confidence: float


@dataclass(frozen=True)
class Address:
    """A postal address with whichever components could be parsed."""

    raw: str
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    confidence: float = 0.0


@dataclass(frozen=True)
class URLData:
    url: str
    display_text: str
    is_valid: bool
    confidence: float


@dataclass(frozen=True)
class DateData:
    raw: str
    parsed: datetime | None
    format: str | None
    confidence: float


@dataclass(frozen=True)
class ContactInfo:
    """Contact details found in a block of text."""

    phone_numbers: list[PhoneNumber] = field(default_factory=list)
    email_addresses: list[EmailAddress] = field(default_factory=list)
    addresses: list[Address] = field(default_factory=list)
    urls: list[URLData] = field(default_factory=list)
    dates: list[DateData] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.phone_numbers or self.email_addresses or self.addresses or self.urls
        )


@dataclass(frozen=True)
class PersonName:
    """A person's name split into its structural parts."""

    full_name: str
    first_name: str | None = None
    last_name: str | None = None
    prefix: str | None = None
    suffix: str | None = None


class SocialPlatform(StrEnum):
    LINKEDIN = "linkedin"
    TWITTER = "twitter"
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    OTHER = "other"


@dataclass(frozen=True)
class SocialMediaInfo:
    platform: SocialPlatform
    handle: str
    url: str | None = None


@dataclass(frozen=True)
class BusinessCardData:
    """Contact record extracted from a business card."""

    contact_info: ContactInfo
    name: PersonName | None = None
    title: str | None = None
    company: str | None = None
    social_media: list[SocialMediaInfo] = field(default_factory=list)
    confidence: float = 0.0

    @property
    def is_complete(self) -> bool:
        """Whether the card has a name, a role or employer, and a way to reach them."""
        has_role = self.title is not None or self.company is not None
        reachable = bool(
            self.contact_info.phone_numbers or self.contact_info.email_addresses
        )
        return self.name is not None and has_role and reachable
