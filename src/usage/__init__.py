"""
Usage Accounting Module

Pricing lookup and session token/cost counters.
"""

from __future__ import annotations

from .accumulator import SessionUsage, UsageAccumulator
from .pricing import DEFAULT_PRICING_TABLE, PricePair, PricingEntry, PricingResolver

__all__ = [
    "DEFAULT_PRICING_TABLE",
    "PricePair",
    "PricingEntry",
    "PricingResolver",
    "SessionUsage",
    "UsageAccumulator",
]
