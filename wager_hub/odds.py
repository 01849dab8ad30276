"""
Win-rate driven odds.

The multiplier is the fair price for the player's estimated win probability
with the house edge taken off, then clamped so that neither a brand new
account nor a smurf can produce an extreme payout.
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from wager_hub.config import CurrencyMode, platform_fee, settings

CENT = Decimal("0.01")

# (lower win-rate bound, label), checked top-down.
ODDS_LABELS = [
    (Decimal("60"), "Dominant"),
    (Decimal("52"), "Favoured"),
    (Decimal("45"), "Balanced"),
    (Decimal("35"), "Underdog"),
]
UNKNOWN_LABEL = "Unknown"
LOWEST_LABEL = "High Risk"


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _clamp(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    return max(low, min(high, value))


def compute_odds(win_rate: Optional[float]) -> Decimal:
    """
    Map a cached win-rate percentage to a payout multiplier.

    No data falls back to ``settings.default_odds`` (a 50% player with the
    house edge applied).
    """
    if win_rate is None:
        return quantize_money(settings.default_odds)
    probability = _clamp(
        Decimal(str(win_rate)) / 100,
        settings.min_win_probability,
        settings.max_win_probability,
    )
    raw = (Decimal(1) / probability) * (Decimal(1) - settings.house_edge)
    return quantize_money(_clamp(raw, settings.min_odds, settings.max_odds))


def label_for(win_rate: Optional[float]) -> str:
    if win_rate is None:
        return UNKNOWN_LABEL
    rate = Decimal(str(win_rate))
    for lower, label in ODDS_LABELS:
        if rate >= lower:
            return label
    return LOWEST_LABEL


def compute_potential_payout(stake: Decimal, odds: Decimal, mode: CurrencyMode) -> Decimal:
    # Virtual payouts carry the platform fee; real-mode margin is the house edge alone.
    return quantize_money(stake * odds * (Decimal(1) - platform_fee(mode)))
