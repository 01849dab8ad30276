import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from wager_hub.contracts.contracts import MatchResult, MatchStats  # noqa: E402
from wager_hub.ledger import LedgerStore  # noqa: E402
from wager_hub.models import models  # noqa: E402

PLACED_AT = datetime(2026, 10, 1, 12, 0, tzinfo=UTC)


class FakeMatchProvider:
    """
    In-memory match provider. Values in ``matches`` may be a MatchResult,
    None, or an exception instance to raise.
    """

    def __init__(self, matches=None, win_rates=None):
        self.matches = matches or {}
        self.win_rates = win_rates or {}
        self.calls = []

    async def latest_ranked_match(self, external_player_id, region):
        self.calls.append(external_player_id)
        outcome = self.matches.get(external_player_id)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def fetch_win_rate(self, external_player_id, region):
        return self.win_rates.get(external_player_id)


def make_match(match_id="EUW1_1", win=True, ended_after=timedelta(minutes=30), placed_at=PLACED_AT):
    return MatchResult(
        matchId=match_id,
        win=win,
        endTime=placed_at + ended_after,
        stats=MatchStats(champion="Ahri", kills=7, deaths=2, assists=9),
    )


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'ledger.db'}", connect_args={"check_same_thread": False})
    models.Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def ledger(session_factory):
    db = session_factory()
    try:
        yield LedgerStore(db)
    finally:
        db.close()


@pytest.fixture
def provider():
    return FakeMatchProvider()
