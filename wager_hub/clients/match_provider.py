from typing import Optional, Protocol

from wager_hub.config import region_routing_map, settings
from wager_hub.contracts.contracts import LeagueEntry, MatchResult
from wager_hub.helpers import RateLimitedClient
from wager_hub.logging_config import get_logger

logger = get_logger(__name__)

RANKED_SOLO_QUEUE = "RANKED_SOLO_5x5"


class MatchProvider(Protocol):
    async def latest_ranked_match(self, external_player_id: str, region: str) -> Optional[MatchResult]: ...

    async def fetch_win_rate(self, external_player_id: str, region: str) -> Optional[float]: ...


class MatchProviderClient(RateLimitedClient):
    """
    Match-history client for the League of Legends match-v5 and league-v4 APIs.
    """

    def __init__(self, base_url: str | None = None, api_key: str | None = None, **kwargs):
        super().__init__(headers={"X-Riot-Token": api_key or settings.match_provider_api_key}, **kwargs)
        if base_url is None and settings.match_provider_base_url is not None:
            base_url = str(settings.match_provider_base_url)
        self.base_url = base_url.rstrip("/") if base_url else None

    def _routing_host(self, region: str) -> str:
        if self.base_url:
            return self.base_url
        routing = region_routing_map.get(region.lower(), "europe")
        return f"https://{routing}.api.riotgames.com"

    def _platform_host(self, region: str) -> str:
        if self.base_url:
            return self.base_url
        return f"https://{region.lower()}.api.riotgames.com"

    async def latest_ranked_match(self, external_player_id: str, region: str) -> Optional[MatchResult]:
        host = self._routing_host(region)
        resp = await self._request_with_retry(
            "GET",
            f"{host}/lol/match/v5/matches/by-puuid/{external_player_id}/ids",
            params={"queue": settings.ranked_queue_id, "type": "ranked", "start": 0, "count": 1},
        )
        match_ids = resp.json()
        if not match_ids:
            return None
        match_id = match_ids[0]
        resp = await self._request_with_retry("GET", f"{host}/lol/match/v5/matches/{match_id}")
        result = MatchResult.from_riot_match(match_id, resp.json(), external_player_id)
        if result is None:
            logger.warning("Player %s missing from participants of match %s", external_player_id, match_id)
        return result

    async def fetch_win_rate(self, external_player_id: str, region: str) -> Optional[float]:
        host = self._platform_host(region)
        resp = await self._request_with_retry("GET", f"{host}/lol/league/v4/entries/by-puuid/{external_player_id}")
        for raw in resp.json():
            entry = LeagueEntry.model_validate(raw)
            if entry.queueType == RANKED_SOLO_QUEUE:
                return entry.win_rate
        return None


match_provider = MatchProviderClient()
