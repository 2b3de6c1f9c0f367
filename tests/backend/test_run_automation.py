"""Tests for the automation daemon entry point."""

import uuid

import pytest

from models import MarketStatus
from scripts import run_automation
from services.automation_service import AutomationCycleResult, MarketStatusSyncResult
from services.market_service import ResolutionResult


class _StubService:
    def __init__(self, fail=False):
        self.cycles = 0
        self.fail = fail

    async def run_automation_cycle(self):
        self.cycles += 1
        if self.fail:
            raise RuntimeError("database unreachable")
        market_id = uuid.uuid4()
        return AutomationCycleResult(
            status_sync_results=[
                MarketStatusSyncResult(
                    market_id=market_id,
                    match_id=1,
                    old_status=MarketStatus.LIVE,
                    new_status=MarketStatus.FINISHED,
                    updated=True,
                )
            ],
            resolution_results=[
                ResolutionResult(market_id=market_id, outcome=None, success=False, error="no score")
            ],
        )


async def test_run_cycle_logs_summary(caplog):
    service = _StubService()
    with caplog.at_level("INFO", logger="automation_daemon"):
        await run_automation.run_cycle(service, 1)

    assert service.cycles == 1
    assert "Cycle 1 complete: 1 checked, 1 status changes" in caplog.text
    assert "not resolved: no score" in caplog.text


@pytest.mark.parametrize("fail", [False, True])
async def test_once_mode_runs_single_cycle(monkeypatch, fail):
    service = _StubService(fail=fail)
    monkeypatch.setattr(run_automation, "AutomationService", lambda *args: service)
    monkeypatch.setattr(run_automation, "FootballDataClient", lambda: None)
    monkeypatch.setattr(run_automation.signal, "signal", lambda *args: None)

    await run_automation.run_daemon(once=True)

    # A crashing cycle is logged, not raised
    assert service.cycles == 1
