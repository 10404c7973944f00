"""
Shared utility functions.
"""

import logging
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def safe_error_detail(exc: Exception, fallback: str = "An internal error occurred. Please try again later.") -> str:
    """
    Return a sanitized error message safe for client consumption.
    Logs the real exception detail server-side.
    """
    logger.error(f"Operation failed: {exc}", exc_info=True)
    return fallback


def utcnow() -> datetime:
    """
    Return the current UTC time as a naive datetime (no tzinfo).
    Naive datetimes are used because our DB columns are TIMESTAMP WITHOUT TIME ZONE.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def customer_id_from_resource(resource_name: str) -> str:
    """'customers/1234567890' -> '1234567890'."""
    return resource_name.split("/")[1] if "/" in resource_name else resource_name


def normalize_customer_id(customer_id: str) -> str:
    """Google Ads UI shows ids as 123-456-7890; the API wants digits only."""
    return customer_id.replace("-", "").strip()
