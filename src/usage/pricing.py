"""
Model pricing lookup.

Providers report model names with date or version suffixes
(``gpt-4o-2024-05-13``), so lookup is a case-insensitive substring scan over
an ordered table. The first matching entry wins; an entry must come before
any shorter key it contains.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

PricePair = tuple[Decimal, Decimal]


@dataclass(frozen=True, slots=True)
class PricingEntry:
    """USD price per 1,000 tokens for models whose name contains ``key``."""

    key: str
    input_per_1k: Decimal
    output_per_1k: Decimal

    @property
    def prices(self) -> PricePair:
        return self.input_per_1k, self.output_per_1k


# Standard pricing table (USD per 1K tokens), scanned top to bottom
# gpt-4o-mini sits above gpt-4o; in the reverse order mini models price as gpt-4o
DEFAULT_PRICING_TABLE: tuple[PricingEntry, ...] = (
    PricingEntry("gpt-4o-mini", Decimal("0.00015"), Decimal("0.0006")),
    PricingEntry("gpt-4o", Decimal("0.005"), Decimal("0.015")),
    PricingEntry("gpt-4-turbo", Decimal("0.01"), Decimal("0.03")),
    PricingEntry("gpt-3.5-turbo", Decimal("0.0005"), Decimal("0.0015")),
)


class PricingResolver:
    """Resolves a model name to its (input, output) price pair."""

    def __init__(self, table: Iterable[PricingEntry] = DEFAULT_PRICING_TABLE) -> None:
        self._table: tuple[PricingEntry, ...] = tuple(
            PricingEntry(entry.key.casefold(), entry.input_per_1k, entry.output_per_1k)
            for entry in table
        )

    @property
    def table(self) -> tuple[PricingEntry, ...]:
        return self._table

    def find(self, model_name: str | None) -> PricingEntry | None:
        """Return the first table entry whose key occurs in ``model_name``."""
        if not model_name:
            return None
        folded = model_name.casefold()
        for entry in self._table:
            if entry.key in folded:
                return entry
        return None

    def resolve(self, model_name: str | None, fallback: PricePair) -> PricePair:
        """
        Get the price pair for a model.

        Args:
            model_name: Model name reported by the provider, may be empty
            fallback: Configured price pair used when nothing matches

        Returns:
            (input price, output price) per 1,000 tokens
        """
        entry = self.find(model_name)
        if entry is None:
            return fallback
        return entry.prices
