"""Tuned constants for the investment reconciliation and projection engine.

The defaults below are the values the dashboard ships with. Every operation
takes an optional ``EngineConfig``; ``EngineConfig.from_env()`` lets a
deployment override them through ``WEALTH_ENGINE_*`` environment variables.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Recurring contribution detection
# ---------------------------------------------------------------------------

# A single purchase cannot establish a cadence
MIN_PURCHASES = 2

# Round detected amounts to this unit when it stays close to the mean
ROUND_TO = 100
ROUND_TOLERANCE = 0.02

PURCHASE_TYPES = frozenset({"PURCHASE"})

# ---------------------------------------------------------------------------
# Bank reconciliation
# ---------------------------------------------------------------------------

DATE_TOLERANCE_DAYS = 3
AMOUNT_TOLERANCE = 0.10

PROVIDER_KEYWORDS = (
    "groww",
    "groww.iccl",
    "groww.brk",
    "mutual f",
    "billdesk groww",
    "razorpay groww",
    "ng-groww",
    "nextbillion groww",
)

# ---------------------------------------------------------------------------
# Projections
# ---------------------------------------------------------------------------

SAFE_WITHDRAWAL_RATE = 0.04
MAX_PROJECTION_YEARS = 100
PROJECTION_TAIL_YEARS = 5
PROJECTION_CAP_YEARS = 50
FIRE_HORIZON_YEARS = 30
EMERGENCY_FUND_MONTHS = 6

# Expected annual returns, in percent
DEFAULT_STOCK_RETURN = 15.0
DEFAULT_MF_RETURN = 12.0
DEFAULT_SIP_RETURN = 12.0
DEFAULT_PORTFOLIO_RETURN = 12.0


@dataclass(frozen=True)
class EngineConfig:
    """Immutable bundle of every tunable the engine reads."""

    min_purchases: int = MIN_PURCHASES
    round_to: int = ROUND_TO
    round_tolerance: float = ROUND_TOLERANCE
    purchase_types: frozenset[str] = PURCHASE_TYPES
    date_tolerance_days: int = DATE_TOLERANCE_DAYS
    amount_tolerance: float = AMOUNT_TOLERANCE
    provider_keywords: tuple[str, ...] = PROVIDER_KEYWORDS
    safe_withdrawal_rate: float = SAFE_WITHDRAWAL_RATE
    max_projection_years: int = MAX_PROJECTION_YEARS
    projection_tail_years: int = PROJECTION_TAIL_YEARS
    projection_cap_years: int = PROJECTION_CAP_YEARS
    fire_horizon_years: int = FIRE_HORIZON_YEARS
    emergency_fund_months: int = EMERGENCY_FUND_MONTHS
    # Read-only; excluded from the hash
    return_assumptions: Mapping[str, float] = field(
        default_factory=lambda: MappingProxyType({
            "stocks": DEFAULT_STOCK_RETURN,
            "mutual_funds": DEFAULT_MF_RETURN,
            "sips": DEFAULT_SIP_RETURN,
            "portfolio": DEFAULT_PORTFOLIO_RETURN,
        }),
        hash=False,
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "return_assumptions", MappingProxyType(dict(self.return_assumptions)))
        if self.min_purchases < 1:
            raise ValueError("min_purchases must be at least 1")
        if self.round_to <= 0:
            raise ValueError("round_to must be positive")
        if self.date_tolerance_days < 0:
            raise ValueError("date_tolerance_days must be non-negative")
        if not 0 < self.safe_withdrawal_rate < 1:
            raise ValueError("safe_withdrawal_rate must be between 0 and 1")
        if self.max_projection_years < 1:
            raise ValueError("max_projection_years must be at least 1")

    def with_overrides(self, **changes: Any) -> "EngineConfig":
        return replace(self, **changes)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "EngineConfig":
        """Build a config from ``WEALTH_ENGINE_*`` environment variables.

        Unset variables keep their defaults. A value that does not convert
        raises ``ValueError`` naming the offending variable.
        """
        env = os.environ if environ is None else environ
        changes: dict[str, Any] = {}

        for name, caster in _ENV_FIELDS.items():
            key = f"WEALTH_ENGINE_{name.upper()}"
            raw = env.get(key)
            if raw is None or raw.strip() == "":
                continue
            try:
                changes[name] = caster(raw)
            except ValueError as e:
                raise ValueError(f"Invalid value for {key}: {raw!r}") from e

        keywords = env.get("WEALTH_ENGINE_PROVIDER_KEYWORDS")
        if keywords:
            changes["provider_keywords"] = tuple(
                k.strip().lower() for k in keywords.split(",") if k.strip()
            )

        if changes:
            logger.info("Engine config overrides from environment: %s", sorted(changes))
        return cls(**changes)


_ENV_FIELDS = {
    "min_purchases": int,
    "round_to": int,
    "round_tolerance": float,
    "date_tolerance_days": int,
    "amount_tolerance": float,
    "safe_withdrawal_rate": float,
    "max_projection_years": int,
    "fire_horizon_years": int,
}

DEFAULT_CONFIG = EngineConfig()
