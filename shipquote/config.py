"""Engine configuration resolved from the environment."""

import logging
import math
import os
from dataclasses import dataclass, field

from shipquote.addresses import Address

logger = logging.getLogger(__name__)


def is_mock_mode() -> bool:
    """Check if running in mock mode (no real provider calls)."""
    return os.getenv("MOCK_MODE", "").lower() in ("1", "true", "yes")


def _env_str(name: str, default: str = "") -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_float(name: str, default: float, allow_non_positive: bool = False) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default
    if not math.isfinite(value) or (value <= 0 and not allow_non_positive):
        logger.warning("Ignoring out-of-range %s=%r, using %s", name, raw, default)
        return default
    return value


def _env_list(name: str) -> list[str]:
    raw = os.getenv(name, "")
    return [part.strip() for part in raw.split(",") if part.strip()]


def default_origin() -> Address:
    return Address(
        name=_env_str("SHIP_FROM_NAME", "F.A.S. Motorsports LLC"),
        phone=_env_str("SHIP_FROM_PHONE", "(812) 200-9012"),
        email=_env_str("SHIP_FROM_EMAIL"),
        line1=_env_str("SHIP_FROM_ADDRESS1", "6161 Riverside Dr"),
        line2=_env_str("SHIP_FROM_ADDRESS2"),
        city=_env_str("SHIP_FROM_CITY", "Punta Gorda"),
        state=_env_str("SHIP_FROM_STATE", "FL"),
        postal_code=_env_str("SHIP_FROM_POSTAL_CODE", "33982"),
        country=_env_str("SHIP_FROM_COUNTRY", "US"),
    )


@dataclass
class EngineConfig:
    """Tunables injected into the planner, cache, selector and orchestrator."""

    default_weight_lbs: float = 5.0
    default_length_in: float = 12.0
    default_width_in: float = 9.0
    default_height_in: float = 4.0

    # Freight thresholds are inclusive.
    freight_unit_weight_lbs: float = 70.0
    freight_max_dimension_in: float = 60.0
    freight_total_weight_lbs: float = 150.0

    # <= 0 means cached quotes never expire.
    quote_ttl_seconds: float = 900.0
    currency: str = "USD"

    max_transit_days: float = 5.0
    confidence_threshold: float = 75.0
    preferred_carrier: str | None = None
    excluded_carriers: list[str] = field(default_factory=list)

    origin: Address = field(default_factory=default_origin)

    label_format: str = "PDF"
    label_size: str = "4x6"
    packing_slip_form_type: str = "return_packing_slip"
    qr_form_type: str = "label_qr_code"

    label_storage_bucket: str | None = None
    s3_region: str = "us-east-1"
    s3_endpoint: str | None = None
    s3_access_key: str | None = None
    s3_secret_key: str | None = None

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build a config from environment variables, falling back to defaults."""
        return cls(
            default_weight_lbs=_env_float("DEFAULT_PACKAGE_WEIGHT_LBS", 5.0),
            default_length_in=_env_float("DEFAULT_PACKAGE_LENGTH_IN", 12.0),
            default_width_in=_env_float("DEFAULT_PACKAGE_WIDTH_IN", 9.0),
            default_height_in=_env_float("DEFAULT_PACKAGE_HEIGHT_IN", 4.0),
            freight_unit_weight_lbs=_env_float("FREIGHT_UNIT_WEIGHT_LBS", 70.0),
            freight_max_dimension_in=_env_float("FREIGHT_MAX_DIMENSION_IN", 60.0),
            freight_total_weight_lbs=_env_float("FREIGHT_TOTAL_WEIGHT_LBS", 150.0),
            quote_ttl_seconds=_env_float("QUOTE_CACHE_TTL_SECONDS", 900.0, allow_non_positive=True),
            currency=_env_str("DEFAULT_CURRENCY", "USD").upper(),
            max_transit_days=_env_float("RATE_MAX_TRANSIT_DAYS", 5.0),
            confidence_threshold=_env_float("RATE_CONFIDENCE_THRESHOLD", 75.0),
            preferred_carrier=_env_str("PREFERRED_CARRIER") or None,
            excluded_carriers=_env_list("EXCLUDED_CARRIERS"),
            origin=default_origin(),
            label_format=_env_str("LABEL_FORMAT", "PDF"),
            label_size=_env_str("LABEL_SIZE", "4x6"),
            packing_slip_form_type=_env_str("PACKING_SLIP_FORM_TYPE", "return_packing_slip"),
            qr_form_type=_env_str("QR_FORM_TYPE", "label_qr_code"),
            label_storage_bucket=_env_str("LABEL_STORAGE_BUCKET") or None,
            s3_region=_env_str("S3_REGION", "us-east-1"),
            s3_endpoint=_env_str("S3_ENDPOINT") or None,
            s3_access_key=_env_str("S3_ACCESS_KEY") or None,
            s3_secret_key=_env_str("S3_SECRET_KEY") or None,
        )
