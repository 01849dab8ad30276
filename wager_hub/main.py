from decimal import Decimal

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from wager_hub.clients.match_provider import MatchProvider, match_provider
from wager_hub.commands import (
    CancelWager,
    LinkPlayer,
    PlaceWager,
    ResolveBatch,
    ResolveOnDemand,
    UnlinkPlayer,
    dispatch,
)
from wager_hub.config import CurrencyMode
from wager_hub.database import engine, get_db
from wager_hub.errors import WagerError
from wager_hub.ledger import LedgerStore
from wager_hub.logging_config import get_logger
from wager_hub.models import models
from wager_hub.odds import compute_odds, compute_potential_payout, label_for
from wager_hub.schemas.app_schemas import (
    AccountOut,
    Leaderboard,
    LinkPlayerRequest,
    NoNewGameSignal,
    OddsQuote,
    PlaceWagerRequest,
    ResolverReport,
    WagerView,
)
from wager_hub.security import current_owner, require_admin_token, require_cron_secret
from wager_hub.wager_service import get_account_view, get_leaderboard


logger = get_logger(__name__)

models.Base.metadata.create_all(bind=engine)
app = FastAPI(title="Wager Hub")


def get_ledger(db: Session = Depends(get_db)) -> LedgerStore:
    return LedgerStore(db)


def get_match_provider() -> MatchProvider:
    return match_provider


@app.exception_handler(WagerError)
async def wager_error_handler(request: Request, exc: WagerError):
    if exc.status_code >= 500:
        logger.warning("Upstream failure path=%s error=%s", request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "code": exc.code})


@app.post("/wagers", response_model=WagerView)
async def place_wager_route(
    request: PlaceWagerRequest,
    owner_id: str = Depends(current_owner),
    ledger: LedgerStore = Depends(get_ledger),
    provider: MatchProvider = Depends(get_match_provider),
):
    return await dispatch(PlaceWager(owner_id, request.amount, request.currencyMode), ledger, provider)


@app.post("/wagers/resolve", response_model=WagerView | NoNewGameSignal)
async def resolve_wager_route(
    owner_id: str = Depends(current_owner),
    ledger: LedgerStore = Depends(get_ledger),
    provider: MatchProvider = Depends(get_match_provider),
):
    return await dispatch(ResolveOnDemand(owner_id), ledger, provider)


@app.get("/accounts/me", response_model=AccountOut)
async def account_route(owner_id: str = Depends(current_owner), ledger: LedgerStore = Depends(get_ledger)):
    return get_account_view(ledger, owner_id)


@app.post("/accounts/me/link", response_model=AccountOut)
async def link_route(
    request: LinkPlayerRequest,
    owner_id: str = Depends(current_owner),
    ledger: LedgerStore = Depends(get_ledger),
    provider: MatchProvider = Depends(get_match_provider),
):
    return await dispatch(LinkPlayer(owner_id, request.externalPlayerId, request.region), ledger, provider)


@app.delete("/accounts/me/link", response_model=AccountOut)
async def unlink_route(
    owner_id: str = Depends(current_owner),
    ledger: LedgerStore = Depends(get_ledger),
    provider: MatchProvider = Depends(get_match_provider),
):
    return await dispatch(UnlinkPlayer(owner_id), ledger, provider)


@app.get("/odds", response_model=OddsQuote)
async def odds_route(
    win_rate: float | None = Query(None, ge=0, le=100),
    stake: Decimal = Query(Decimal("10"), gt=0),
):
    odds = compute_odds(win_rate)
    return OddsQuote(
        winRate=win_rate,
        odds=odds,
        label=label_for(win_rate),
        stake=stake,
        virtualPayout=compute_potential_payout(stake, odds, CurrencyMode.VIRTUAL),
        realPayout=compute_potential_payout(stake, odds, CurrencyMode.REAL),
    )


@app.get("/leaderboard", response_model=Leaderboard)
async def leaderboard_route(
    limit: int = Query(50, ge=1, le=200),
    ledger: LedgerStore = Depends(get_ledger),
):
    return get_leaderboard(ledger, limit)


@app.post("/cron/resolve-wagers", response_model=ResolverReport)
async def cron_resolve_route(
    _auth=Depends(require_cron_secret),
    ledger: LedgerStore = Depends(get_ledger),
    provider: MatchProvider = Depends(get_match_provider),
):
    return await dispatch(ResolveBatch(), ledger, provider)


@app.post("/admin/accounts/{owner_id}/cancel-wager", response_model=WagerView)
async def cancel_wager_route(
    owner_id: str,
    _auth=Depends(require_admin_token),
    ledger: LedgerStore = Depends(get_ledger),
    provider: MatchProvider = Depends(get_match_provider),
):
    """
    Administrative refund: cancel the owner's pending wager and return the stake.
    """
    return await dispatch(CancelWager(owner_id), ledger, provider)


@app.get("/health")
async def health():
    return {"status": "ok"}
