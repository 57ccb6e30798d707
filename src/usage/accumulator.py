"""
Session usage accounting.

Counts tokens, cost, request count and latency for one conversation. Cost is
kept as a Decimal so session totals never pick up float rounding drift.
"""

from __future__ import annotations

import logging
import threading
from decimal import Decimal

from pydantic import BaseModel, computed_field

from src.chat.logging_utils import log_usage_stats
from src.chat.models import PricingSettings
from src.usage.pricing import PricingResolver

logger = logging.getLogger(__name__)

_THOUSAND = Decimal(1000)


class SessionUsage(BaseModel):
    """Point-in-time copy of the session counters."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_cost: Decimal = Decimal(0)
    request_count: int = 0
    total_duration_seconds: float = 0.0
    last_used_model: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def average_latency_seconds(self) -> float:
        if self.request_count == 0:
            return 0.0
        return self.total_duration_seconds / self.request_count


class UsageAccumulator:
    """
    Session-scoped usage counters.

    Args:
        fallback_pricing: Price pair used for models missing from the table
        resolver: Pricing table lookup
    """

    def __init__(
        self,
        fallback_pricing: PricingSettings | None = None,
        resolver: PricingResolver | None = None,
    ) -> None:
        self._fallback = fallback_pricing or PricingSettings()
        self._resolver = resolver or PricingResolver()
        self._lock = threading.Lock()
        self._input_tokens = 0
        self._output_tokens = 0
        self._total_cost = Decimal(0)
        self._request_count = 0
        self._total_duration = 0.0
        self._last_used_model: str | None = None

    @property
    def fallback_pricing(self) -> PricingSettings:
        return self._fallback

    @fallback_pricing.setter
    def fallback_pricing(self, pricing: PricingSettings) -> None:
        self._fallback = pricing

    def cost_of(self, input_tokens: int, output_tokens: int, model_name: str | None) -> Decimal:
        """Compute the cost of one request without recording it."""
        input_price, output_price = self._resolver.resolve(model_name, self._fallback.as_pair())
        return (Decimal(input_tokens) / _THOUSAND * input_price) + (
            Decimal(output_tokens) / _THOUSAND * output_price
        )

    def record(
        self,
        input_tokens: int,
        output_tokens: int,
        resolved_model: str | None,
        elapsed_seconds: float,
    ) -> Decimal:
        """
        Add one completed request to the session totals.

        Returns:
            Cost of this request
        """
        if input_tokens < 0 or output_tokens < 0:
            raise ValueError("token counts must not be negative")

        cost = self.cost_of(input_tokens, output_tokens, resolved_model)

        with self._lock:
            self._last_used_model = resolved_model
            self._input_tokens += input_tokens
            self._output_tokens += output_tokens
            self._total_cost += cost
            self._request_count += 1
            self._total_duration += max(elapsed_seconds, 0.0)
            average = self._total_duration / self._request_count
            session_cost = self._total_cost

        log_usage_stats(input_tokens, output_tokens, elapsed_seconds, cost, average, session_cost)
        return cost

    def reset(self) -> None:
        """Zero all counters."""
        with self._lock:
            self._input_tokens = 0
            self._output_tokens = 0
            self._total_cost = Decimal(0)
            self._request_count = 0
            self._total_duration = 0.0
            self._last_used_model = None
        logger.debug("Usage counters reset")

    def snapshot(self) -> SessionUsage:
        with self._lock:
            return SessionUsage(
                input_tokens=self._input_tokens,
                output_tokens=self._output_tokens,
                total_cost=self._total_cost,
                request_count=self._request_count,
                total_duration_seconds=self._total_duration,
                last_used_model=self._last_used_model,
            )

    @property
    def input_tokens(self) -> int:
        return self._input_tokens

    @property
    def output_tokens(self) -> int:
        return self._output_tokens

    @property
    def total_cost(self) -> Decimal:
        return self._total_cost

    @property
    def request_count(self) -> int:
        return self._request_count

    @property
    def total_duration_seconds(self) -> float:
        return self._total_duration

    @property
    def last_used_model(self) -> str | None:
        return self._last_used_model

    @property
    def average_latency_seconds(self) -> float:
        with self._lock:
            if self._request_count == 0:
                return 0.0
            return self._total_duration / self._request_count
