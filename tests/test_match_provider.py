import asyncio
from datetime import UTC, datetime

import httpx
import pytest

from wager_hub.clients.match_provider import MatchProviderClient
from wager_hub.errors import ProviderNotFoundError, RateLimitedError, UpstreamError

PUUID = "puuid-alice"
END_MS = 1_790_000_000_000


def _match_payload(win=True, puuid=PUUID):
    return {
        "metadata": {"matchId": "EUW1_42"},
        "info": {
            "gameEndTimestamp": END_MS,
            "participants": [
                {"puuid": "someone-else", "win": not win, "championName": "Zed", "kills": 1, "deaths": 5, "assists": 0},
                {"puuid": puuid, "win": win, "championName": "Ahri", "kills": 8, "deaths": 3, "assists": 11},
            ],
        },
    }


def _client(handler, **kwargs):
    kwargs.setdefault("max_retries", 2)
    kwargs.setdefault("retry_backoff_seconds", 0)
    return MatchProviderClient(
        base_url="http://provider.test",
        api_key="test-key",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_latest_ranked_match_parses_participant():
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        if request.url.path.endswith("/ids"):
            return httpx.Response(200, json=["EUW1_42"])
        return httpx.Response(200, json=_match_payload(win=True))

    result = asyncio.run(_client(handler).latest_ranked_match(PUUID, "euw1"))

    assert result.matchId == "EUW1_42"
    assert result.win is True
    assert result.endTime == datetime.fromtimestamp(END_MS / 1000, tz=UTC)
    assert result.describe() == "Ahri 8/3/11"
    ids_request = seen[0]
    assert ids_request.url.path == f"/lol/match/v5/matches/by-puuid/{PUUID}/ids"
    assert ids_request.url.params["queue"] == "420"
    assert ids_request.url.params["count"] == "1"
    assert ids_request.headers["X-Riot-Token"] == "test-key"


def test_no_matches_means_no_game_yet():
    client = _client(lambda request: httpx.Response(200, json=[]))
    assert asyncio.run(client.latest_ranked_match(PUUID, "euw1")) is None


def test_player_missing_from_participants():
    def handler(request):
        if request.url.path.endswith("/ids"):
            return httpx.Response(200, json=["EUW1_42"])
        return httpx.Response(200, json=_match_payload(puuid="another"))

    assert asyncio.run(_client(handler).latest_ranked_match(PUUID, "euw1")) is None


def test_remote_rate_limit_is_not_retried():
    calls = {"count": 0}

    def handler(request):
        calls["count"] += 1
        return httpx.Response(429, headers={"Retry-After": "10"})

    with pytest.raises(RateLimitedError):
        asyncio.run(_client(handler).latest_ranked_match(PUUID, "euw1"))
    assert calls["count"] == 1


def test_local_budget_exhaustion_raises_rate_limited():
    client = _client(lambda request: httpx.Response(200, json=[]), rate_limit_per_minute=1)
    asyncio.run(client.latest_ranked_match(PUUID, "euw1"))
    with pytest.raises(RateLimitedError):
        asyncio.run(client.latest_ranked_match(PUUID, "euw1"))


def test_server_errors_retried_then_succeed():
    statuses = [500, 503, 200]

    def handler(request):
        status = statuses.pop(0)
        return httpx.Response(status, json=[] if status == 200 else {"error": "boom"})

    assert asyncio.run(_client(handler).latest_ranked_match(PUUID, "euw1")) is None
    assert statuses == []


def test_server_errors_exhaust_retries():
    client = _client(lambda request: httpx.Response(502), max_retries=1)
    with pytest.raises(UpstreamError) as excinfo:
        asyncio.run(client.latest_ranked_match(PUUID, "euw1"))
    assert not isinstance(excinfo.value, RateLimitedError)


def test_not_found_is_distinct_from_no_game():
    client = _client(lambda request: httpx.Response(404, json={"status": {"status_code": 404}}))
    with pytest.raises(ProviderNotFoundError):
        asyncio.run(client.latest_ranked_match(PUUID, "euw1"))


def test_win_rate_from_solo_queue_entry():
    entries = [
        {"queueType": "RANKED_FLEX_SR", "wins": 1, "losses": 9},
        {"queueType": "RANKED_SOLO_5x5", "wins": 30, "losses": 20},
    ]
    client = _client(lambda request: httpx.Response(200, json=entries))
    assert asyncio.run(client.fetch_win_rate(PUUID, "euw1")) == 60.0


def test_unranked_player_has_no_win_rate():
    client = _client(lambda request: httpx.Response(200, json=[]))
    assert asyncio.run(client.fetch_win_rate(PUUID, "euw1")) is None


def test_region_routing_without_override():
    client = MatchProviderClient(api_key="k")
    client.base_url = None
    assert client._routing_host("NA1") == "https://americas.api.riotgames.com"
    assert client._routing_host("kr") == "https://asia.api.riotgames.com"
    assert client._routing_host("unknown") == "https://europe.api.riotgames.com"
    assert client._platform_host("euw1") == "https://euw1.api.riotgames.com"
