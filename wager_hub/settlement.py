"""
The single state transition for wagers.

Both the on-demand resolve and the batch resolver go through ``settle``; the
administrative refund goes through ``cancel``. Each runs in its own ledger
transaction and moves the wager out of ``pending`` with a compare-and-swap
before any balance is credited, so a wager can be paid at most once no matter
how many callers race on it.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from wager_hub.config import Currency, CurrencyMode, WagerStatus, mode_currency_map
from wager_hub.contracts.contracts import MatchResult
from wager_hub.errors import DuplicateMatch, StaleResultError, WagerNotPending
from wager_hub.ledger import LedgerStore
from wager_hub.logging_config import get_logger
from wager_hub.models import models
from wager_hub.models.models import utcnow

logger = get_logger(__name__)


@dataclass
class SettledWager:
    wager: models.Wager
    status: WagerStatus
    credits: dict[Currency, Decimal] = field(default_factory=dict)


def payout_credits(wager: models.Wager) -> dict[Currency, Decimal]:
    """
    Ledger credits for a won wager.

    Virtual wins pay the whole potential payout back to the virtual balance.
    Real wins return the stake to the real balance and pay the profit out as
    reward credits.
    """
    stake = Decimal(wager.stake)
    payout = Decimal(wager.potential_payout)
    if CurrencyMode(wager.currency_mode) == CurrencyMode.REAL:
        return {Currency.REAL: stake, Currency.REWARD: payout - stake}
    return {Currency.VIRTUAL: payout}


def _ensure_pending(wager: models.Wager) -> None:
    if wager.status != WagerStatus.PENDING.value:
        raise WagerNotPending(f"wager {wager.id} is already {wager.status}")


def settle(ledger: LedgerStore, wager: models.Wager, match: MatchResult, now: datetime | None = None) -> SettledWager:
    _ensure_pending(wager)
    if ledger.match_already_settled(wager.owner_id, match.matchId):
        raise DuplicateMatch(f"match {match.matchId} already settled a wager for {wager.owner_id}")
    if match.endTime <= wager.placed_at:
        raise StaleResultError()

    status = WagerStatus.WON if match.win else WagerStatus.LOST
    wager_id, owner_id = wager.id, wager.owner_id
    credits: dict[Currency, Decimal] = {}
    with ledger.transaction():
        if not ledger.mark_settled(wager_id, status, now or utcnow(), match.matchId, match.snapshot()):
            raise WagerNotPending(f"wager {wager_id} was settled concurrently")
        if status == WagerStatus.WON:
            credits = payout_credits(wager)
            for currency, amount in credits.items():
                ledger.credit(owner_id, currency, amount)
        # Lost: the stake was already taken at placement.
    logger.info(
        "Settled wager id=%s owner=%s match=%s status=%s credits=%s",
        wager_id,
        owner_id,
        match.matchId,
        status.value,
        {c.value: str(a) for c, a in credits.items()},
    )
    return SettledWager(wager=wager, status=status, credits=credits)


def cancel(ledger: LedgerStore, wager: models.Wager, now: datetime | None = None) -> SettledWager:
    _ensure_pending(wager)
    wager_id, owner_id = wager.id, wager.owner_id
    currency = mode_currency_map[CurrencyMode(wager.currency_mode)]
    stake = Decimal(wager.stake)
    with ledger.transaction():
        if not ledger.mark_cancelled(wager_id, now or utcnow()):
            raise WagerNotPending(f"wager {wager_id} was settled concurrently")
        ledger.credit(owner_id, currency, stake)
    logger.warning("Cancelled wager id=%s owner=%s refunded=%s %s", wager_id, owner_id, stake, currency.value)
    return SettledWager(wager=wager, status=WagerStatus.CANCELLED, credits={currency: stake})
