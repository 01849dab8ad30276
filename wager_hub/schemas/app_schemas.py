from datetime import datetime
from decimal import Decimal
from typing import Any, List, Literal, Optional

from pydantic import BaseModel

from wager_hub.config import CurrencyMode, WagerStatus
from wager_hub.models import models
from wager_hub.odds import label_for


class PlaceWagerRequest(BaseModel):
    amount: Decimal
    currencyMode: CurrencyMode = CurrencyMode.VIRTUAL

class LinkPlayerRequest(BaseModel):
    externalPlayerId: str
    region: Optional[str] = None

class WagerOut(BaseModel):
    id: int
    stake: Decimal
    currencyMode: CurrencyMode
    odds: Decimal
    potentialPayout: Decimal
    status: WagerStatus
    placedAt: datetime
    resolvedAt: Optional[datetime] = None
    externalMatchId: Optional[str] = None
    resultSnapshot: Optional[Any] = None

    @classmethod
    def from_model(cls, wager: models.Wager) -> "WagerOut":
        return cls(
            id=wager.id,
            stake=wager.stake,
            currencyMode=wager.currency_mode,
            odds=wager.odds,
            potentialPayout=wager.potential_payout,
            status=wager.status,
            placedAt=wager.placed_at,
            resolvedAt=wager.resolved_at,
            externalMatchId=wager.external_match_id,
            resultSnapshot=wager.result_snapshot,
        )

class AccountOut(BaseModel):
    ownerId: str
    virtualBalance: Decimal
    realBalance: Decimal
    rewardCredits: Decimal
    externalPlayerId: Optional[str] = None
    region: Optional[str] = None
    winRate: Optional[float] = None
    oddsLabel: str
    wagers: List[WagerOut] = []

    @classmethod
    def from_model(cls, account: models.Account, wagers: Optional[List[models.Wager]] = None) -> "AccountOut":
        if wagers is None:
            wagers = account.wagers
        return cls(
            ownerId=account.owner_id,
            virtualBalance=account.virtual_balance,
            realBalance=account.real_balance,
            rewardCredits=account.reward_credits,
            externalPlayerId=account.external_player_id,
            region=account.region,
            winRate=account.win_rate,
            oddsLabel=label_for(account.win_rate),
            wagers=[WagerOut.from_model(w) for w in wagers],
        )

class WagerView(BaseModel):
    status: Literal["placed", "settled", "cancelled"]
    account: AccountOut
    wager: WagerOut

    @classmethod
    def build(cls, status: str, account: models.Account, wager: models.Wager) -> "WagerView":
        return cls(status=status, account=AccountOut.from_model(account), wager=WagerOut.from_model(wager))

class NoNewGameSignal(BaseModel):
    """Benign outcome of an on-demand resolve: the player has not finished a new game yet."""
    status: Literal["no_new_game"] = "no_new_game"
    wagerId: int
    placedAt: datetime
    lastMatchEnd: Optional[datetime] = None

class OddsQuote(BaseModel):
    winRate: Optional[float] = None
    odds: Decimal
    label: str
    stake: Decimal
    virtualPayout: Decimal
    realPayout: Decimal

class ResolverReport(BaseModel):
    resolved: int = 0
    skipped: int = 0
    errors: int = 0
    log: List[str] = []

class LeaderboardEntry(BaseModel):
    rank: int
    ownerId: str
    virtualBalance: Decimal
    externalPlayerId: Optional[str] = None
    winRate: Optional[float] = None
    wins: int
    total: int

class Leaderboard(BaseModel):
    users: List[LeaderboardEntry] = []
