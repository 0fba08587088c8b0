"""
Scheduler for the status reconciliation sweep.

Inside the API process the sweep runs once at startup and then every
SWEEP_INTERVAL_HOURS, as a background task owned by the app lifespan.
Deployments that prefer an external scheduler disable it with
SWEEP_ENABLED=false and run `python -m seatbook.tasks.sweep` instead.
"""

import asyncio
from typing import Optional

from seatbook.core.config import get_settings
from seatbook.core.logging import get_logger, setup_logging
from seatbook.db.session import AsyncSessionLocal, engine
from seatbook.services.sweep_service import SweepReport, run_sweep

logger = get_logger(__name__)
settings = get_settings()


async def sweep_once() -> SweepReport:
    async with AsyncSessionLocal() as session:
        return await run_sweep(session)


async def sweep_forever(interval_seconds: Optional[float] = None) -> None:
    """Run the sweep now and then on a fixed cadence until cancelled."""
    interval = interval_seconds or settings.SWEEP_INTERVAL_HOURS * 3600
    logger.info("sweep_scheduler_started", interval_seconds=interval)
    while True:
        try:
            await sweep_once()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # run_sweep already logged and counted it; try again next tick
            logger.error("sweep_tick_failed", error=str(e))
        await asyncio.sleep(interval)


def start_scheduler() -> Optional[asyncio.Task]:
    if not settings.SWEEP_ENABLED:
        logger.info("sweep_scheduler_disabled")
        return None
    return asyncio.create_task(sweep_forever(), name="status-sweep")


async def stop_scheduler(task: Optional[asyncio.Task]) -> None:
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    logger.info("sweep_scheduler_stopped")


async def _main() -> None:
    setup_logging()
    try:
        report = await sweep_once()
        logger.info("sweep_cli_finished", **report.as_dict())
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(_main())
