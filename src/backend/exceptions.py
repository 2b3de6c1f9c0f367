"""
exceptions.py — Domain error taxonomy.

  - NotFoundError: a referenced market/user/participant does not exist
  - StateViolationError: a business rule rejected the request
    (market closed, duplicate prediction, prediction cap, not resolvable)
  - MatchDataError: the external match-data source failed

Routers translate these to HTTP status codes; the automation service
records them per market instead of aborting the batch.
"""


class MarketError(Exception):
    """Base class for all domain errors."""


class NotFoundError(MarketError):
    pass


class MarketNotFoundError(NotFoundError):
    def __init__(self, market_id) -> None:
        self.market_id = market_id
        super().__init__("Market not found")


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id) -> None:
        self.user_id = user_id
        super().__init__("User not found")


class StateViolationError(MarketError):
    """Business-rule rejection. ``reason`` is safe to show to end users."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class MatchDataError(MarketError):
    """Raised by a MatchDataClient when a match cannot be fetched."""

    def __init__(self, match_id: int, message: str) -> None:
        self.match_id = match_id
        super().__init__(f"Failed to get match data for {match_id}: {message}")


def error_to_http(exc: Exception) -> tuple[int, str]:
    """Map a domain exception to (status_code, detail)."""
    if isinstance(exc, NotFoundError):
        return (404, str(exc))
    if isinstance(exc, StateViolationError):
        return (409, exc.reason)
    if isinstance(exc, MatchDataError):
        return (502, str(exc))
    if isinstance(exc, ValueError):
        return (422, str(exc))
    return (500, "Internal server error")


def raise_http(exc: Exception) -> None:
    """Map a domain exception to HTTPException and raise it. Never returns."""
    from fastapi import HTTPException

    status_code, detail = error_to_http(exc)
    raise HTTPException(status_code=status_code, detail=detail) from exc
