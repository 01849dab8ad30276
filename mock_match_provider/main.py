import logging
import os
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import BigInteger, Boolean, Column, Integer, String, create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("mock-match-provider")

DB_URL = os.getenv("MOCK_PROVIDER_DB_URL", "sqlite:///./mock_provider.db")
engine = create_engine(DB_URL, connect_args={"check_same_thread": False})
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

app = FastAPI(title="Mock Match Provider")

# Flipped through /admin/rate-limit to simulate a throttled provider.
throttle = {"enabled": False}


class SeedMatch(BaseModel):
    matchId: str
    puuid: str
    win: bool
    gameEndTimestamp: int
    queueId: int = 420
    championName: str = "Ahri"
    kills: int = 0
    deaths: int = 0
    assists: int = 0


class SeedLeague(BaseModel):
    puuid: str
    wins: int
    losses: int
    queueType: str = "RANKED_SOLO_5x5"


class Match(Base):
    __tablename__ = "matches"
    id = Column(Integer, primary_key=True)
    match_id = Column(String, index=True, nullable=False)
    puuid = Column(String, index=True, nullable=False)
    win = Column(Boolean, nullable=False)
    queue_id = Column(Integer, nullable=False)
    game_end_timestamp = Column(BigInteger, nullable=False)
    champion_name = Column(String, nullable=False)
    kills = Column(Integer, nullable=False)
    deaths = Column(Integer, nullable=False)
    assists = Column(Integer, nullable=False)


class League(Base):
    __tablename__ = "league_entries"
    id = Column(Integer, primary_key=True)
    puuid = Column(String, index=True, nullable=False)
    queue_type = Column(String, nullable=False)
    wins = Column(Integer, nullable=False)
    losses = Column(Integer, nullable=False)


Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _check_throttle():
    if throttle["enabled"]:
        raise HTTPException(status_code=429, detail="Rate limit exceeded", headers={"Retry-After": "1"})


def _serialize_match(records: List[Match]) -> dict:
    first = records[0]
    return {
        "metadata": {"matchId": first.match_id, "participants": [r.puuid for r in records]},
        "info": {
            "queueId": first.queue_id,
            "gameEndTimestamp": first.game_end_timestamp,
            "participants": [
                {
                    "puuid": r.puuid,
                    "win": r.win,
                    "championName": r.champion_name,
                    "kills": r.kills,
                    "deaths": r.deaths,
                    "assists": r.assists,
                }
                for r in records
            ],
        },
    }


@app.get("/lol/match/v5/matches/by-puuid/{puuid}/ids")
async def match_ids(
    puuid: str,
    queue: int | None = None,
    start: int = 0,
    count: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    _check_throttle()
    query = db.query(Match).filter(Match.puuid == puuid)
    if queue is not None:
        query = query.filter(Match.queue_id == queue)
    records = query.order_by(Match.game_end_timestamp.desc()).offset(start).limit(count).all()
    logger.info("Listing %s match ids for puuid=%s", len(records), puuid)
    return [r.match_id for r in records]


@app.get("/lol/match/v5/matches/{match_id}")
async def match_detail(match_id: str, db: Session = Depends(get_db)):
    _check_throttle()
    records = db.query(Match).filter(Match.match_id == match_id).all()
    if not records:
        raise HTTPException(status_code=404, detail="Data not found")
    return _serialize_match(records)


@app.get("/lol/league/v4/entries/by-puuid/{puuid}")
async def league_entries(puuid: str, db: Session = Depends(get_db)):
    _check_throttle()
    records = db.query(League).filter(League.puuid == puuid).all()
    return [{"queueType": r.queue_type, "wins": r.wins, "losses": r.losses} for r in records]


@app.post("/admin/matches")
async def seed_match(body: SeedMatch, db: Session = Depends(get_db)):
    record = Match(
        match_id=body.matchId,
        puuid=body.puuid,
        win=body.win,
        queue_id=body.queueId,
        game_end_timestamp=body.gameEndTimestamp,
        champion_name=body.championName,
        kills=body.kills,
        deaths=body.deaths,
        assists=body.assists,
    )
    db.add(record)
    db.commit()
    logger.info("Seeded match=%s puuid=%s win=%s", body.matchId, body.puuid, body.win)
    return {"status": "OK", "matchId": body.matchId}


@app.post("/admin/league")
async def seed_league(body: SeedLeague, db: Session = Depends(get_db)):
    db.query(League).filter(League.puuid == body.puuid, League.queue_type == body.queueType).delete()
    db.add(League(puuid=body.puuid, queue_type=body.queueType, wins=body.wins, losses=body.losses))
    db.commit()
    return {"status": "OK"}


@app.post("/admin/rate-limit")
async def set_rate_limit(enabled: bool):
    throttle["enabled"] = enabled
    logger.warning("Mock provider throttling enabled=%s", enabled)
    return {"status": "OK", "enabled": enabled}


@app.post("/admin/clear-db")
async def clear_db(db: Session = Depends(get_db)):
    """
    Dangerous: clears all seeded matches and league entries.
    """
    db.query(Match).delete()
    db.query(League).delete()
    db.commit()
    throttle["enabled"] = False
    logger.warning("Cleared mock match provider data via admin endpoint")
    return {"status": "cleared"}
