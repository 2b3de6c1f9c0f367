"""
match_data.py — Match status/score source consumed by the automation service.

The automation service depends only on the MatchDataClient protocol:

    get_match(match_id) -> MatchData(status, score.full_time.home/away)

FootballDataClient is the production implementation against
football-data.org v4. Every failure surfaces as MatchDataError so callers
can record it per match. Rate limiting and key rotation are not handled
here.
"""

import logging
from typing import Optional, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field

from config import settings
from exceptions import MatchDataError

logger = logging.getLogger("match_data")


class FullTimeScore(BaseModel):
    home: Optional[int] = None
    away: Optional[int] = None


class Score(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    winner: Optional[str] = None
    full_time: FullTimeScore = Field(default_factory=FullTimeScore, alias="fullTime")


class Team(BaseModel):
    id: Optional[int] = None
    name: Optional[str] = None


class MatchData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    id: int
    status: str
    utc_date: Optional[str] = Field(default=None, alias="utcDate")
    home_team: Optional[Team] = Field(default=None, alias="homeTeam")
    away_team: Optional[Team] = Field(default=None, alias="awayTeam")
    score: Score = Field(default_factory=Score)


class MatchDataClient(Protocol):
    async def get_match(self, match_id: int) -> MatchData:
        ...


class FootballDataClient:
    """httpx client for GET /matches/{id}."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.FOOTBALL_DATA_API_KEY
        self.base_url = (base_url or settings.FOOTBALL_DATA_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.FOOTBALL_DATA_TIMEOUT
        self._transport = transport

    def _headers(self) -> dict:
        return {
            "X-Auth-Token": self.api_key,
            "User-Agent": "MatchdayMarkets/1.0",
        }

    async def get_match(self, match_id: int) -> MatchData:
        url = f"{self.base_url}/matches/{match_id}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.get(url, headers=self._headers())
        except httpx.HTTPError as exc:
            logger.warning("Match fetch failed for %s: %s", match_id, exc)
            raise MatchDataError(match_id, str(exc) or type(exc).__name__) from exc

        if resp.status_code == 429:
            raise MatchDataError(match_id, "rate limited")
        if resp.status_code != 200:
            raise MatchDataError(match_id, f"HTTP {resp.status_code}")

        try:
            return MatchData.model_validate(resp.json())
        except ValueError as exc:
            raise MatchDataError(match_id, f"invalid payload: {exc}") from exc
