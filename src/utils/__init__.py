"""Utility functions shared across the service."""

from src.utils.amount import net_of_fee, quantize_money, to_major_units, to_minor_units
from src.utils.helpers import format_utc_datetime, to_naive_utc, utc_now

__all__ = [
    "format_utc_datetime",
    "net_of_fee",
    "quantize_money",
    "to_major_units",
    "to_minor_units",
    "to_naive_utc",
    "utc_now",
]
