import asyncio
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional

from wager_hub.clients.match_provider import MatchProvider
from wager_hub.config import settings
from wager_hub.errors import ConflictError, RateLimitedError
from wager_hub.ledger import LedgerStore
from wager_hub.logging_config import get_logger
from wager_hub.models import models
from wager_hub.models.models import utcnow
from wager_hub.schemas.app_schemas import ResolverReport
from wager_hub.settlement import settle

logger = get_logger(__name__)


async def resolve_pending_wagers(
    ledger: LedgerStore,
    provider: MatchProvider,
    now: Optional[datetime] = None,
    pending: Optional[List[models.Wager]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> ResolverReport:
    """
    Drive every pending wager, oldest first, towards settlement.

    Wagers are checked one at a time with a short pause between provider calls.
    A failure on one wager is logged and counted; it never stops the run.
    """
    now = now or utcnow()
    if pending is None:
        pending = ledger.list_pending_wagers()
    report = ResolverReport()
    if not pending:
        report.log.append("No pending wagers")
        return report
    report.log.append(f"Found {len(pending)} pending wager(s)")

    min_age = timedelta(minutes=settings.min_game_minutes)
    called_provider = False
    for wager in pending:
        tag = f"[{wager.owner_id} #{wager.id}]"
        try:
            account = wager.owner
            if not account.external_player_id:
                report.skipped += 1
                report.log.append(f"  {tag} skipped, no linked player")
                continue
            age = now - wager.placed_at
            if age < min_age:
                report.skipped += 1
                report.log.append(f"  {tag} too recent ({int(age.total_seconds() // 60)}m), skipping")
                continue

            if called_provider:
                await sleep(settings.resolver_call_delay_seconds)
            called_provider = True
            match = await provider.latest_ranked_match(
                account.external_player_id, account.region or settings.default_region
            )
            if match is None:
                report.skipped += 1
                report.log.append(f"  {tag} no match data yet")
                continue
            if match.endTime <= wager.placed_at:
                report.skipped += 1
                report.log.append(f"  {tag} last game ended before the wager, waiting for a new game")
                continue
            if ledger.match_already_settled(wager.owner_id, match.matchId):
                report.skipped += 1
                report.log.append(f"  {tag} match {match.matchId} already settled, skipping duplicate")
                continue

            settled = settle(ledger, wager, match, now=now)
            report.resolved += 1
            report.log.append(f"  {tag} resolved -> {settled.status.value.upper()} ({match.describe()})")
        except ConflictError as exc:
            report.skipped += 1
            report.log.append(f"  {tag} skipped, {exc.detail}")
        except RateLimitedError as exc:
            report.errors += 1
            report.log.append(f"  {tag} error: {exc.detail}, will retry next run")
        except Exception as exc:  # noqa: BLE001
            ledger.db.rollback()
            report.errors += 1
            report.log.append(f"  {tag} error: {exc}")
            logger.warning("Resolver failed for wager %s error=%s", tag, exc)

    logger.info(
        "Resolver run complete resolved=%s skipped=%s errors=%s",
        report.resolved,
        report.skipped,
        report.errors,
    )
    return report
