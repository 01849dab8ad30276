import asyncio
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import event
from sqlalchemy.exc import OperationalError

from conftest import PLACED_AT, FakeMatchProvider, make_match
from wager_hub.config import CurrencyMode
from wager_hub.errors import RateLimitedError, UpstreamError
from wager_hub.resolver import resolve_pending_wagers
from wager_hub.wager_service import place_wager

NOW = PLACED_AT + timedelta(hours=1)


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def _seed(ledger, owner_id, minutes_after=0, player_id=None, amount="10"):
    with ledger.transaction():
        ledger.open_account(owner_id, external_player_id=player_id, win_rate=50)
    placed_at = PLACED_AT + timedelta(minutes=minutes_after)
    place_wager(ledger, owner_id, Decimal(amount), CurrencyMode.VIRTUAL, now=placed_at)
    return placed_at


def _run(ledger, provider, now=NOW, sleep=None):
    return asyncio.run(resolve_pending_wagers(ledger, provider, now=now, sleep=sleep or RecordingSleep()))


def test_empty_run(ledger, provider):
    report = _run(ledger, provider)
    assert (report.resolved, report.skipped, report.errors) == (0, 0, 0)
    assert report.log == ["No pending wagers"]


def test_match_before_wager_leaves_it_pending(ledger):
    _seed(ledger, "alice", player_id="puuid-alice")
    provider = FakeMatchProvider(matches={"puuid-alice": make_match(ended_after=timedelta(minutes=-5))})

    report = _run(ledger, provider)

    assert report.resolved == 0
    assert report.skipped == 1
    assert ledger.get_pending_wager("alice") is not None
    assert ledger.get_account("alice").virtual_balance == Decimal("490.00")


def test_upstream_failure_does_not_abort_batch(ledger):
    _seed(ledger, "alice", 0, "puuid-alice")
    _seed(ledger, "bob", 1, "puuid-bob")
    _seed(ledger, "carol", 2, "puuid-carol")
    provider = FakeMatchProvider(
        matches={
            "puuid-alice": make_match("EUW1_10", win=True),
            "puuid-bob": UpstreamError("match provider returned 503"),
            "puuid-carol": make_match("EUW1_30", win=False),
        }
    )

    report = _run(ledger, provider)

    assert provider.calls == ["puuid-alice", "puuid-bob", "puuid-carol"]
    assert (report.resolved, report.skipped, report.errors) == (2, 0, 1)
    assert ledger.list_wagers("alice")[0].status == "won"
    assert ledger.get_pending_wager("bob") is not None
    assert ledger.list_wagers("carol")[0].status == "lost"
    assert ledger.get_account("alice").virtual_balance == Decimal("506.15")
    assert any("bob" in line and "error" in line for line in report.log)


def test_oldest_wager_checked_first(ledger):
    _seed(ledger, "late", 20, "puuid-late")
    _seed(ledger, "early", 0, "puuid-early")
    provider = FakeMatchProvider()

    _run(ledger, provider)

    assert provider.calls == ["puuid-early", "puuid-late"]


def test_unlinked_and_recent_wagers_are_skipped_without_provider_calls(ledger):
    _seed(ledger, "nolink", 0)
    _seed(ledger, "fresh", 50, "puuid-fresh")
    provider = FakeMatchProvider()

    report = _run(ledger, provider)

    assert provider.calls == []
    assert report.skipped == 2
    assert any("no linked player" in line for line in report.log)
    assert any("too recent (10m)" in line for line in report.log)


def test_delay_between_provider_calls(ledger):
    for index, owner in enumerate(["a", "b", "c"]):
        _seed(ledger, owner, index, f"puuid-{owner}")
    sleep = RecordingSleep()

    _run(ledger, FakeMatchProvider(), sleep=sleep)

    assert sleep.delays == [0.15, 0.15]


def test_rate_limit_is_left_for_next_run(ledger):
    _seed(ledger, "alice", 0, "puuid-alice")
    provider = FakeMatchProvider(matches={"puuid-alice": RateLimitedError()})

    report = _run(ledger, provider)

    assert report.errors == 1
    assert provider.calls == ["puuid-alice"]
    assert any("retry next run" in line for line in report.log)
    assert ledger.get_pending_wager("alice") is not None

    provider.matches["puuid-alice"] = make_match(win=True)
    report = _run(ledger, provider)
    assert report.resolved == 1


def test_match_already_used_is_skipped(ledger):
    _seed(ledger, "alice", 0, "puuid-alice")
    provider = FakeMatchProvider(matches={"puuid-alice": make_match("EUW1_1", ended_after=timedelta(minutes=40))})
    assert _run(ledger, provider).resolved == 1

    place_wager(ledger, "alice", Decimal("10"), CurrencyMode.VIRTUAL, now=PLACED_AT + timedelta(minutes=35))
    report = _run(ledger, provider, now=PLACED_AT + timedelta(hours=2))

    assert report.resolved == 0
    assert report.skipped == 1
    assert any("already settled" in line for line in report.log)
    assert ledger.get_pending_wager("alice") is not None
    assert ledger.get_account("alice").virtual_balance == Decimal("496.15")


def test_run_overlapping_on_demand_settlement_pays_once(ledger, session_factory):
    from wager_hub.ledger import LedgerStore
    from wager_hub.settlement import settle

    _seed(ledger, "alice", 0, "puuid-alice")
    provider = FakeMatchProvider(matches={"puuid-alice": make_match("EUW1_1", win=True)})
    pending = ledger.list_pending_wagers()

    on_demand = LedgerStore(session_factory())
    try:
        settle(on_demand, on_demand.get_pending_wager("alice"), make_match("EUW1_1", win=True))
    finally:
        on_demand.db.close()

    report = asyncio.run(
        resolve_pending_wagers(ledger, provider, now=NOW, pending=pending, sleep=RecordingSleep())
    )

    assert report.resolved == 0
    ledger.db.expire_all()
    assert ledger.get_account("alice").virtual_balance == Decimal("506.15")


def test_database_failure_is_rolled_back_before_next_wager(ledger):
    _seed(ledger, "alice", 0, "puuid-alice")
    _seed(ledger, "bob", 1, "puuid-bob")
    _seed(ledger, "carol", 2, "puuid-carol")
    provider = FakeMatchProvider(
        matches={
            "puuid-alice": make_match("EUW1_10", win=True),
            "puuid-bob": OperationalError("SELECT 1", {}, Exception("server closed the connection")),
            "puuid-carol": make_match("EUW1_30", win=True),
        }
    )
    rollbacks = []
    event.listen(ledger.db, "after_soft_rollback", lambda session, previous: rollbacks.append(previous))

    report = _run(ledger, provider)

    assert (report.resolved, report.skipped, report.errors) == (2, 0, 1)
    assert len(rollbacks) == 1
    assert ledger.get_pending_wager("bob") is not None
    assert ledger.list_wagers("carol")[0].status == "won"
    assert ledger.get_account("carol").virtual_balance == Decimal("506.15")
