"""Tests for the football-data.org client, using httpx.MockTransport."""

import httpx
import pytest

from exceptions import MatchDataError
from services.match_data import FootballDataClient

MATCH_PAYLOAD = {
    "id": 327117,
    "utcDate": "2026-05-17T15:00:00Z",
    "status": "FINISHED",
    "homeTeam": {"id": 57, "name": "Arsenal FC"},
    "awayTeam": {"id": 61, "name": "Chelsea FC"},
    "score": {"winner": "HOME_TEAM", "fullTime": {"home": 2, "away": 1}},
}


def _client(handler):
    return FootballDataClient(
        api_key="secret",
        base_url="https://football.test/v4/",
        transport=httpx.MockTransport(handler),
    )


async def test_get_match_parses_payload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["token"] = request.headers.get("X-Auth-Token")
        return httpx.Response(200, json=MATCH_PAYLOAD)

    match = await _client(handler).get_match(327117)

    assert seen["url"] == "https://football.test/v4/matches/327117"
    assert seen["token"] == "secret"
    assert match.status == "FINISHED"
    assert match.score.full_time.home == 2
    assert match.score.full_time.away == 1
    assert match.home_team.name == "Arsenal FC"


async def test_scheduled_match_has_no_score():
    payload = dict(MATCH_PAYLOAD, status="TIMED", score={"fullTime": {"home": None, "away": None}})
    match = await _client(lambda request: httpx.Response(200, json=payload)).get_match(1)
    assert match.score.full_time.home is None


@pytest.mark.parametrize(
    "status_code, fragment", [(404, "HTTP 404"), (429, "rate limited"), (500, "HTTP 500")]
)
async def test_http_errors(status_code, fragment):
    client = _client(lambda request: httpx.Response(status_code, json={"message": "nope"}))
    with pytest.raises(MatchDataError) as exc_info:
        await client.get_match(42)
    assert fragment in str(exc_info.value)
    assert exc_info.value.match_id == 42


async def test_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(MatchDataError) as exc_info:
        await _client(handler).get_match(42)
    assert "connection refused" in str(exc_info.value)


async def test_invalid_payload():
    client = _client(lambda request: httpx.Response(200, json={"unexpected": True}))
    with pytest.raises(MatchDataError) as exc_info:
        await client.get_match(42)
    assert "invalid payload" in str(exc_info.value)
