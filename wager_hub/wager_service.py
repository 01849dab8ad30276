from datetime import datetime
from decimal import Decimal, InvalidOperation

from wager_hub.clients.match_provider import MatchProvider
from wager_hub.config import CurrencyMode, WagerStatus, mode_currency_map, settings, stake_bounds
from wager_hub.errors import (
    ActiveWagerExists,
    AmountOutOfRange,
    ConflictError,
    InsufficientFundsError,
    NoActiveWager,
    PlayerAlreadyLinked,
    UserNotFound,
    ValidationError,
)
from wager_hub.ledger import LedgerStore
from wager_hub.logging_config import get_logger
from wager_hub.models import models
from wager_hub.models.models import utcnow
from wager_hub.odds import compute_odds, compute_potential_payout, quantize_money
from wager_hub.schemas.app_schemas import AccountOut, Leaderboard, LeaderboardEntry, NoNewGameSignal, WagerView
from wager_hub import settlement

logger = get_logger(__name__)


def _as_stake(amount) -> Decimal:
    try:
        stake = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValidationError("stake must be a number") from exc
    if not stake.is_finite() or stake != quantize_money(stake):
        raise ValidationError("stake must have at most two decimal places")
    return stake


def _as_mode(currency_mode) -> CurrencyMode:
    try:
        return CurrencyMode(currency_mode)
    except ValueError as exc:
        raise ValidationError(f"unknown currency mode {currency_mode!r}") from exc


def place_wager(
    ledger: LedgerStore,
    owner_id: str,
    amount,
    currency_mode: CurrencyMode,
    now: datetime | None = None,
) -> WagerView:
    with ledger.transaction():
        if ledger.get_pending_wager(owner_id) is not None:
            raise ActiveWagerExists()
        account = ledger.get_account(owner_id)
        if account is None:
            raise UserNotFound()
        mode = _as_mode(currency_mode)
        stake = _as_stake(amount)
        low, high = stake_bounds(mode)
        if stake < low or stake > high:
            raise AmountOutOfRange(f"{mode.value} stakes must be between {low} and {high}")
        currency = mode_currency_map[mode]
        if getattr(account, currency.value) < stake:
            raise InsufficientFundsError()

        odds = compute_odds(account.win_rate)
        payout = compute_potential_payout(stake, odds, mode)
        ledger.debit(owner_id, currency, stake)
        wager = ledger.add_wager(
            models.Wager(
                owner_id=owner_id,
                stake=stake,
                currency_mode=mode.value,
                odds=odds,
                potential_payout=payout,
                status=WagerStatus.PENDING.value,
                placed_at=now or utcnow(),
            )
        )
    logger.info(
        "Placed wager id=%s owner=%s mode=%s stake=%s odds=%s payout=%s",
        wager.id,
        owner_id,
        mode.value,
        stake,
        odds,
        payout,
    )
    return WagerView.build("placed", account, wager)


async def resolve_on_demand(
    ledger: LedgerStore,
    provider: MatchProvider,
    owner_id: str,
    now: datetime | None = None,
) -> WagerView | NoNewGameSignal:
    wager = ledger.get_pending_wager(owner_id)
    if wager is None:
        raise NoActiveWager()
    account = wager.owner
    if not account.external_player_id:
        raise ValidationError("link a game account before resolving a wager")

    match = await provider.latest_ranked_match(account.external_player_id, account.region or settings.default_region)
    if match is None or match.endTime <= wager.placed_at:
        logger.info("No new game for owner=%s wager=%s", owner_id, wager.id)
        return NoNewGameSignal(
            wagerId=wager.id,
            placedAt=wager.placed_at,
            lastMatchEnd=match.endTime if match else None,
        )
    settled = settlement.settle(ledger, wager, match, now=now)
    return WagerView.build("settled", account, settled.wager)


def cancel_wager(ledger: LedgerStore, owner_id: str, now: datetime | None = None) -> WagerView:
    wager = ledger.get_pending_wager(owner_id)
    if wager is None:
        raise NoActiveWager()
    cancelled = settlement.cancel(ledger, wager, now=now)
    return WagerView.build("cancelled", wager.owner, cancelled.wager)


async def link_player(
    ledger: LedgerStore,
    provider: MatchProvider,
    owner_id: str,
    external_player_id: str,
    region: str | None = None,
) -> AccountOut:
    region = (region or settings.default_region).lower()
    if ledger.get_account(owner_id) is None:
        raise UserNotFound()
    holder = ledger.find_account_by_player_id(external_player_id)
    if holder is not None and holder.owner_id != owner_id:
        raise PlayerAlreadyLinked()
    win_rate = await provider.fetch_win_rate(external_player_id, region)
    with ledger.transaction():
        account = ledger.link_player(owner_id, external_player_id, region, win_rate)
    logger.info("Linked owner=%s player=%s region=%s win_rate=%s", owner_id, external_player_id, region, win_rate)
    return AccountOut.from_model(account)


def unlink_player(ledger: LedgerStore, owner_id: str) -> AccountOut:
    with ledger.transaction():
        if ledger.get_pending_wager(owner_id) is not None:
            raise ConflictError("cannot unlink a game account while a wager is pending")
        account = ledger.link_player(owner_id, None, None, None)
    logger.info("Unlinked owner=%s", owner_id)
    return AccountOut.from_model(account)


def get_account_view(ledger: LedgerStore, owner_id: str) -> AccountOut:
    account = ledger.get_account(owner_id)
    if account is None:
        raise UserNotFound()
    return AccountOut.from_model(account, wagers=ledger.list_wagers(owner_id))


def get_leaderboard(ledger: LedgerStore, limit: int = 50) -> Leaderboard:
    return Leaderboard(
        users=[
            LeaderboardEntry(
                rank=position,
                ownerId=account.owner_id,
                virtualBalance=account.virtual_balance,
                externalPlayerId=account.external_player_id,
                winRate=account.win_rate,
                wins=wins,
                total=total,
            )
            for position, (account, wins, total) in enumerate(ledger.leaderboard(limit), start=1)
        ]
    )
