"""Pick the best rate by cost under transit, confidence and carrier constraints."""

import logging
import math
from dataclasses import dataclass, field

from shipquote.config import EngineConfig
from shipquote.easypost_client import Rate, TRANSIT_PERCENTILES

logger = logging.getLogger(__name__)


@dataclass
class SelectionOptions:
    max_transit_days: float = 5
    preferred_carrier: str | None = None
    confidence_threshold: float = 75
    excluded_carriers: list[str] = field(default_factory=list)

    @classmethod
    def from_config(cls, config: EngineConfig) -> "SelectionOptions":
        return cls(
            max_transit_days=config.max_transit_days,
            preferred_carrier=config.preferred_carrier,
            confidence_threshold=config.confidence_threshold,
            excluded_carriers=list(config.excluded_carriers),
        )


def estimated_transit_days(rate: Rate, confidence_threshold: float) -> float | None:
    """SmartRate percentile at or above the threshold, else basic delivery days."""
    if rate.time_in_transit:
        for pct in TRANSIT_PERCENTILES:
            if pct < confidence_threshold:
                continue
            days = rate.time_in_transit.get(f"percentile_{pct}")
            if days is not None:
                return days
    if rate.delivery_days is not None:
        return float(rate.delivery_days)
    return None


def _carrier_matches(rate: Rate, needle: str) -> bool:
    needle = needle.strip().lower()
    return bool(needle) and (needle in rate.carrier.lower() or needle in rate.carrier_code.lower())


def _is_priced(rate: Rate) -> bool:
    return isinstance(rate.amount, (int, float)) and math.isfinite(rate.amount) and rate.amount > 0


def rank_rates(rates: list[Rate], confidence_threshold: float = 75) -> list[Rate]:
    """Cheapest first; ties break on shorter transit, then rate id."""

    def sort_key(rate: Rate):
        days = estimated_transit_days(rate, confidence_threshold)
        return (rate.amount, days if days is not None else math.inf, rate.rate_id)

    return sorted((r for r in rates if _is_priced(r)), key=sort_key)


def is_eligible(rate: Rate, options: SelectionOptions) -> bool:
    days = estimated_transit_days(rate, options.confidence_threshold)
    if days is None:
        return False
    confidence = rate.delivery_confidence if rate.delivery_confidence is not None else 100
    return days <= options.max_transit_days and confidence >= options.confidence_threshold


def select_rate(rates: list[Rate], options: SelectionOptions | None = None) -> Rate | None:
    """Return the best rate, or None only when no priced rate exists."""
    options = options or SelectionOptions()
    ranked = rank_rates(rates, options.confidence_threshold)
    if not ranked:
        return None

    candidates = ranked
    if options.excluded_carriers:
        kept = [
            r for r in ranked
            if not any(_carrier_matches(r, excluded) for excluded in options.excluded_carriers)
        ]
        if kept:
            candidates = kept
        else:
            logger.warning("Carrier exclusions removed every rate; ignoring exclusions")

    eligible = [r for r in candidates if is_eligible(r, options)]
    if not eligible:
        logger.info("No rate within %s days; falling back to cheapest", options.max_transit_days)
        return candidates[0]

    if options.preferred_carrier:
        preferred = [r for r in eligible if _carrier_matches(r, options.preferred_carrier)]
        if preferred:
            return preferred[0]

    return eligible[0]
