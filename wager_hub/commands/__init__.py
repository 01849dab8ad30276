"""
Closed set of commands the hub accepts, one handler per variant.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union, assert_never

from wager_hub import wager_service
from wager_hub.clients.match_provider import MatchProvider
from wager_hub.config import CurrencyMode
from wager_hub.ledger import LedgerStore
from wager_hub.resolver import resolve_pending_wagers


@dataclass(frozen=True)
class PlaceWager:
    owner_id: str
    amount: Decimal
    currency_mode: CurrencyMode = CurrencyMode.VIRTUAL


@dataclass(frozen=True)
class ResolveOnDemand:
    owner_id: str


@dataclass(frozen=True)
class ResolveBatch:
    now: Optional[datetime] = None


@dataclass(frozen=True)
class CancelWager:
    owner_id: str


@dataclass(frozen=True)
class LinkPlayer:
    owner_id: str
    external_player_id: str
    region: Optional[str] = None


@dataclass(frozen=True)
class UnlinkPlayer:
    owner_id: str


Command = Union[PlaceWager, ResolveOnDemand, ResolveBatch, CancelWager, LinkPlayer, UnlinkPlayer]


async def dispatch(command: Command, ledger: LedgerStore, provider: MatchProvider):
    match command:
        case PlaceWager(owner_id=owner_id, amount=amount, currency_mode=mode):
            return wager_service.place_wager(ledger, owner_id, amount, mode)
        case ResolveOnDemand(owner_id=owner_id):
            return await wager_service.resolve_on_demand(ledger, provider, owner_id)
        case ResolveBatch(now=now):
            return await resolve_pending_wagers(ledger, provider, now=now)
        case CancelWager(owner_id=owner_id):
            return wager_service.cancel_wager(ledger, owner_id)
        case LinkPlayer(owner_id=owner_id, external_player_id=player_id, region=region):
            return await wager_service.link_player(ledger, provider, owner_id, player_id, region)
        case UnlinkPlayer(owner_id=owner_id):
            return wager_service.unlink_player(ledger, owner_id)
        case _:
            assert_never(command)
