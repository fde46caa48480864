"""Deterministic quote keys and a TTL'd quote cache backed by the database.

The key is a SHA-256 digest over canonical JSON built from the cart (sorted
by identifier) and a folded destination. Line and city fields are
lowercased, state, postal code and country are uppercased, and whitespace
is collapsed everywhere, so formatting differences map to the same key while
typos do not.

Cache reads fail open: a malformed record or a storage error is logged and
treated as a miss. Writes are plain upserts and a failed write never fails
the quote.
"""

import hashlib
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from shipquote.addresses import Address
from shipquote.easypost_client import Rate, parse_amount
from shipquote.metadata import CartItem
from shipquote.packages import Package
from shipquote.db.repository import QuoteCacheRepository

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_WHITESPACE = re.compile(r"\s+")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes (as stored by SQLite) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _fold(value: str | None) -> str:
    return _WHITESPACE.sub(" ", (value or "").strip())


def canonical_cart(items: list[CartItem]) -> list[dict[str, Any]]:
    # Lines sharing an identifier are summed so split lines hash like merged ones.
    totals: dict[str, int] = {}
    for item in items:
        identifier = _fold(item.identifier)
        totals[identifier] = totals.get(identifier, 0) + item.quantity
    return [
        {"identifier": identifier, "quantity": totals[identifier]}
        for identifier in sorted(totals)
    ]


def canonical_destination(address: Address) -> dict[str, str]:
    return {
        "line1": _fold(address.line1).lower(),
        "line2": _fold(address.line2).lower(),
        "city": _fold(address.city).lower(),
        "state": _fold(address.state).upper(),
        "postalCode": _fold(address.postal_code).upper(),
        "country": _fold(address.country).upper(),
    }


def _digest(payload: Any) -> str:
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def cart_fingerprint(items: list[CartItem]) -> str:
    return _digest(canonical_cart(items))


def destination_fingerprint(address: Address) -> str:
    return _digest(canonical_destination(address))


def build_quote_key(items: list[CartItem], destination: Address) -> str:
    """Stable key for a cart + destination pair."""
    return _digest({
        "cart": canonical_cart(items),
        "destination": canonical_destination(destination),
    })


@dataclass
class QuoteCacheRecord:
    quote_key: str
    destination_fingerprint: str
    cart_fingerprint: str
    rates: list[dict[str, Any]] = field(default_factory=list)
    packages: list[dict[str, Any]] = field(default_factory=list)
    provider_shipment_id: str | None = None
    created_at: datetime | None = None
    expires_at: datetime | None = None

    def is_valid(self, now: datetime) -> bool:
        return self.expires_at is None or as_utc(self.expires_at) > as_utc(now)

    @classmethod
    def from_entry(cls, entry: Any) -> "QuoteCacheRecord":
        """Build a record from a stored row, raising ValueError when malformed."""
        rates = entry.rates
        packages = entry.packages
        if not isinstance(rates, list) or not all(isinstance(r, dict) for r in rates):
            raise ValueError("cached rates are not a list of objects")
        if not isinstance(packages, list) or not all(isinstance(p, dict) for p in packages):
            raise ValueError("cached packages are not a list of objects")
        if entry.expires_at is not None and not isinstance(entry.expires_at, datetime):
            raise ValueError("cached expiry is not a datetime")
        return cls(
            quote_key=entry.quote_key,
            destination_fingerprint=entry.destination_fingerprint or "",
            cart_fingerprint=entry.cart_fingerprint or "",
            rates=rates,
            packages=packages,
            provider_shipment_id=entry.provider_shipment_id,
            created_at=as_utc(entry.created_at),
            expires_at=as_utc(entry.expires_at),
        )

    def load_rates(self) -> list[Rate]:
        """Rebuild priced rates; a rate without an id raises ValueError."""
        rates = []
        for data in self.rates:
            if not isinstance(data.get("rateId"), str) or not data["rateId"]:
                raise ValueError("cached rate has no id")
            rate = Rate.from_dict(data)
            if rate.delivery_days is not None and not isinstance(rate.delivery_days, int):
                raise ValueError("cached delivery days are not an integer")
            if parse_amount(rate.amount) is not None:
                rates.append(rate)
        return rates

    def load_packages(self) -> list[Package]:
        return [Package.from_dict(p) for p in self.packages]


@dataclass
class CachedQuote:
    record: QuoteCacheRecord
    rates: list[Rate]
    packages: list[Package]


class QuoteCache:
    """Read-through quote cache with upsert writes."""

    def __init__(
        self,
        repo: QuoteCacheRepository,
        ttl_seconds: float,
        clock: Clock = utcnow,
    ):
        self.repo = repo
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def get(self, quote_key: str) -> CachedQuote | None:
        """Return the cached quote for the key, or None on miss or expiry."""
        try:
            entry = self.repo.get_by_key(quote_key)
        except Exception:
            logger.exception("Quote cache read failed for %s", quote_key[:12])
            self._reset_session()
            return None
        if entry is None:
            return None

        try:
            record = QuoteCacheRecord.from_entry(entry)
            rates = record.load_rates()
            packages = record.load_packages()
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Ignoring malformed quote cache record %s: %s", quote_key[:12], e)
            return None

        if not rates or not packages:
            return None
        if not record.is_valid(self.clock()):
            logger.debug("Quote cache record %s expired at %s", quote_key[:12], record.expires_at)
            return None
        return CachedQuote(record=record, rates=rates, packages=packages)

    def put(self, record: QuoteCacheRecord) -> QuoteCacheRecord:
        """Stamp and upsert a record; storage failures are logged, not raised."""
        now = as_utc(self.clock())
        record.created_at = now
        record.expires_at = now + timedelta(seconds=self.ttl_seconds) if self.ttl_seconds > 0 else None

        try:
            self.repo.upsert(record.quote_key, {
                "destination_fingerprint": record.destination_fingerprint,
                "cart_fingerprint": record.cart_fingerprint,
                "rates": record.rates,
                "packages": record.packages,
                "provider_shipment_id": record.provider_shipment_id,
                # Stored naive UTC for SQLite portability.
                "created_at": now.replace(tzinfo=None),
                "expires_at": (
                    record.expires_at.astimezone(timezone.utc).replace(tzinfo=None)
                    if record.expires_at else None
                ),
            })
        except Exception:
            logger.exception("Quote cache write failed for %s", record.quote_key[:12])
            self._reset_session()
        return record

    def _reset_session(self) -> None:
        try:
            self.repo.db.rollback()
        except Exception:
            logger.exception("Quote cache session rollback failed")
