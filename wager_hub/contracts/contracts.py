from datetime import UTC, datetime
from typing import Any, Optional

from pydantic import BaseModel


class MatchStats(BaseModel):
    champion: Optional[str] = None
    kills: int = 0
    deaths: int = 0
    assists: int = 0


class MatchResult(BaseModel):
    matchId: str
    win: bool
    endTime: datetime
    stats: MatchStats = MatchStats()

    @classmethod
    def from_riot_match(cls, match_id: str, match: dict[str, Any], puuid: str) -> Optional["MatchResult"]:
        """
        Build a result from a match-v5 payload, or None if the player did not take part.
        """
        info = match.get("info") or {}
        participant = next(
            (p for p in info.get("participants", []) if p.get("puuid") == puuid),
            None,
        )
        if participant is None:
            return None
        return cls(
            matchId=match_id,
            win=bool(participant.get("win")),
            endTime=datetime.fromtimestamp(info["gameEndTimestamp"] / 1000, tz=UTC),
            stats=MatchStats(
                champion=participant.get("championName"),
                kills=participant.get("kills", 0),
                deaths=participant.get("deaths", 0),
                assists=participant.get("assists", 0),
            ),
        )

    def snapshot(self) -> dict:
        return self.model_dump(mode="json")

    def describe(self) -> str:
        return f"{self.stats.champion} {self.stats.kills}/{self.stats.deaths}/{self.stats.assists}"


class LeagueEntry(BaseModel):
    queueType: str
    wins: int = 0
    losses: int = 0

    @property
    def win_rate(self) -> Optional[float]:
        games = self.wins + self.losses
        if games == 0:
            return None
        return round(self.wins / games * 100, 2)
