#!/usr/bin/env python3
"""
run_automation.py — The Automation Daemon.

Runs one automation cycle (status sync, then auto-resolution) every
AUTOMATION_INTERVAL seconds.

Contract of Behavior:
  - Graceful shutdown on SIGINT/SIGTERM: finishes the current cycle,
    then exits cleanly. Never interrupts a resolution mid-transaction.
  - Does NOT run migrations. Assumes DB schema is ready.
  - Running two daemons at once is safe: resolution locks the market row
    and refuses markets that already carry an outcome.
  - Error boundary: per-market failures are reported inside the cycle
    results. If the whole cycle crashes, log and retry next cycle.

Environment:
  AUTOMATION_INTERVAL   — seconds between cycles (default: 60)
  DATABASE_URL          — async DSN
  FOOTBALL_DATA_API_KEY — football-data.org token

Usage:
    cd src/backend && DATABASE_URL=... python scripts/run_automation.py
    cd src/backend && python scripts/run_automation.py --once   # cron mode
"""

import asyncio
import logging
import signal
import sys
from pathlib import Path

# --- Path fixup: works from any CWD ---
_backend = str(Path(__file__).resolve().parents[1])
if _backend not in sys.path:
    sys.path.insert(0, _backend)

from config import settings
from database import async_session_maker
from services.automation_service import AutomationService
from services.match_data import FootballDataClient

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("automation_daemon")

_shutdown_requested = False


def _request_shutdown(signum, frame):
    """Signal handler: set flag, let current cycle finish."""
    global _shutdown_requested
    sig_name = signal.Signals(signum).name
    logger.info("Received %s — will shut down after current cycle completes", sig_name)
    _shutdown_requested = True


async def run_cycle(service: AutomationService, cycle: int) -> None:
    result = await service.run_automation_cycle()

    updated = [r for r in result.status_sync_results if r.updated]
    sync_errors = [r for r in result.status_sync_results if r.error]
    resolved = [r for r in result.resolution_results if r.success]
    failed = [r for r in result.resolution_results if not r.success]

    logger.info(
        "Cycle %d complete: %d checked, %d status changes, %d sync errors, "
        "%d resolved, %d resolution failures",
        cycle, len(result.status_sync_results), len(updated), len(sync_errors),
        len(resolved), len(failed),
    )
    for r in failed:
        logger.warning("Cycle %d: market %s not resolved: %s", cycle, r.market_id, r.error)


async def run_daemon(once: bool = False):
    """Main daemon loop. Runs until SIGINT/SIGTERM (or one cycle with --once)."""
    signal.signal(signal.SIGINT, _request_shutdown)
    signal.signal(signal.SIGTERM, _request_shutdown)

    service = AutomationService(async_session_maker, FootballDataClient())
    interval = settings.AUTOMATION_INTERVAL

    logger.info("AUTOMATION DAEMON ONLINE — interval=%ds once=%s", interval, once)

    cycle = 0
    while not _shutdown_requested:
        cycle += 1
        try:
            await run_cycle(service, cycle)
        except Exception as exc:
            logger.error("Cycle %d FAILED: %s — will retry next cycle", cycle, exc, exc_info=True)

        if once:
            break

        # Sleep in small increments to respond to shutdown quickly
        for _ in range(interval):
            if _shutdown_requested:
                break
            await asyncio.sleep(1.0)

    logger.info("AUTOMATION DAEMON SHUTDOWN — %d cycles", cycle)


if __name__ == "__main__":
    asyncio.run(run_daemon(once="--once" in sys.argv[1:]))
