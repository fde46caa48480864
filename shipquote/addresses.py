"""Address model and normalization of loosely shaped address payloads."""

import re
from dataclasses import dataclass, asdict
from typing import Any, Callable, Mapping

Extractor = Callable[[Mapping[str, Any]], Any]

DEFAULT_COUNTRY = "US"

CITY_STATE_ZIP = re.compile(
    r"^(?P<city>[^,]+),\s*(?P<state>[A-Za-z]{2})\s+(?P<postal>\d{5}(?:-\d{4})?)$"
)


@dataclass
class Address:
    line1: str
    city: str
    state: str
    postal_code: str
    country: str = DEFAULT_COUNTRY
    line2: str = ""
    name: str = ""
    phone: str = ""
    email: str = ""

    def missing_fields(self) -> list[str]:
        """Return the inbound names of required fields that are blank."""
        required = [
            ("addressLine1", self.line1),
            ("city", self.city),
            ("state", self.state),
            ("postalCode", self.postal_code),
            ("country", self.country),
        ]
        return [name for name, value in required if not (value or "").strip()]

    def is_complete(self) -> bool:
        return not self.missing_fields()

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


def field(name: str) -> Extractor:
    """Build an extractor reading a single key from a mapping."""

    def extract(data: Mapping[str, Any]) -> Any:
        return data.get(name)

    extract.__name__ = f"field_{name}"
    return extract


def _clean(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        return ""
    return value.strip()


def first_non_empty(data: Mapping[str, Any], extractors: list[Extractor]) -> str:
    """Evaluate extractors in order and return the first non-blank value."""
    for extract in extractors:
        value = _clean(extract(data))
        if value:
            return value
    return ""


# Key spellings accepted for each address field, highest precedence first.
LINE1_EXTRACTORS = [field("addressLine1"), field("address_line1"), field("line1"), field("street1"), field("street")]
LINE2_EXTRACTORS = [field("addressLine2"), field("address_line2"), field("line2"), field("street2")]
CITY_EXTRACTORS = [field("city"), field("city_locality")]
STATE_EXTRACTORS = [field("state"), field("state_province")]
POSTAL_EXTRACTORS = [field("postalCode"), field("postal_code"), field("zip"), field("zipCode")]
COUNTRY_EXTRACTORS = [field("country"), field("country_code"), field("countryCode")]
NAME_EXTRACTORS = [field("name"), field("fullName")]
PHONE_EXTRACTORS = [field("phone"), field("phoneNumber")]
EMAIL_EXTRACTORS = [field("email")]


def address_from_mapping(data: Mapping[str, Any] | None) -> Address:
    """Normalize a mapping using any supported key spelling into an Address.

    Blank fields stay blank so completeness can be checked afterwards.
    Country defaults to US.
    """
    data = data or {}
    return Address(
        line1=first_non_empty(data, LINE1_EXTRACTORS),
        line2=first_non_empty(data, LINE2_EXTRACTORS),
        city=first_non_empty(data, CITY_EXTRACTORS),
        state=first_non_empty(data, STATE_EXTRACTORS),
        postal_code=first_non_empty(data, POSTAL_EXTRACTORS),
        country=first_non_empty(data, COUNTRY_EXTRACTORS) or DEFAULT_COUNTRY,
        name=first_non_empty(data, NAME_EXTRACTORS),
        phone=first_non_empty(data, PHONE_EXTRACTORS),
        email=first_non_empty(data, EMAIL_EXTRACTORS),
    )


def parse_address_string(text: str | None) -> Address:
    """Parse a free-text block like "Name\\n123 Main St\\nCity, ST 12345".

    The name line is optional. An unparseable block yields an address whose
    missing fields report what could not be found.
    """
    lines = [line.strip() for line in (text or "").splitlines() if line.strip()]
    if not lines:
        return Address(line1="", city="", state="", postal_code="")

    city = state = postal = ""
    country = DEFAULT_COUNTRY

    if len(lines) > 1 and re.fullmatch(r"[A-Za-z]{2}|USA|United States", lines[-1]):
        tail = lines.pop()
        country = "US" if tail.upper() in ("USA", "UNITED STATES") else tail.upper()

    match = CITY_STATE_ZIP.match(lines[-1])
    if match:
        lines.pop()
        city = match.group("city").strip()
        state = match.group("state").upper()
        postal = match.group("postal")

    name = ""
    if len(lines) >= 2 and not lines[0][:1].isdigit():
        name = lines.pop(0)

    line1 = lines[0] if lines else ""
    line2 = " ".join(lines[1:]) if len(lines) > 1 else ""

    return Address(
        line1=line1,
        line2=line2,
        city=city,
        state=state,
        postal_code=postal,
        country=country,
        name=name,
    )


def coerce_address(value: Any) -> Address:
    """Accept an Address, a mapping, or free text."""
    if isinstance(value, Address):
        return value
    if isinstance(value, str):
        return parse_address_string(value)
    if isinstance(value, Mapping):
        return address_from_mapping(value)
    return Address(line1="", city="", state="", postal_code="")
