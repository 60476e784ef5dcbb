"""Daily expiry of trashed tasks.

Runs inside the API process (started from the app lifespan) or standalone:

    python -m app.workers.trash_sweeper --once
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.realtime.connection_manager import EventPublisher
from app.services.task_lifecycle_service import SweepResult, TrashSweepService
from app.storage.attachment_store import AttachmentStore, build_attachment_store
from app.utils.time import seconds_until_hour

logger = logging.getLogger(__name__)


class TrashSweepRunner:
    """Run the trash expiry sweep once a day at a fixed UTC hour."""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        store: AttachmentStore,
        publisher: Optional[EventPublisher] = None,
        retention_days: int = 30,
        sweep_hour_utc: int = 0,
    ) -> None:
        self.service = TrashSweepService(session_factory, store, publisher)
        self.retention_days = retention_days
        self.sweep_hour_utc = sweep_hour_utc
        self._stop_event = asyncio.Event()

    def request_stop(self) -> None:
        self._stop_event.set()

    async def run_once(self) -> SweepResult:
        return await self.service.run_expiry_sweep(retention_days=self.retention_days)

    async def run_forever(self) -> None:
        """Sleep until the next sweep hour, sweep, repeat until stopped."""
        while not self._stop_event.is_set():
            delay = seconds_until_hour(self.sweep_hour_utc)
            logger.info("Next trash sweep in %.0f seconds", delay)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.run_once()
            except Exception:  # noqa: BLE001
                # A failed run must not stop the schedule
                logger.exception("Trash sweep run failed")


def get_default_runner(
    store: Optional[AttachmentStore] = None,
    publisher: Optional[EventPublisher] = None,
) -> TrashSweepRunner:
    from app.db.session import async_session_maker

    return TrashSweepRunner(
        session_factory=async_session_maker,
        store=store or build_attachment_store(settings),
        publisher=publisher,
        retention_days=settings.TRASH_RETENTION_DAYS,
        sweep_hour_utc=settings.TRASH_SWEEP_HOUR_UTC,
    )


async def run_worker(once: bool, retention_days: Optional[int]) -> int:
    runner = get_default_runner()
    if retention_days is not None:
        runner.retention_days = retention_days
    if once:
        result = await runner.run_once()
        print(json.dumps(result.as_dict(), indent=2))
        return 1 if result.failed_count else 0
    await runner.run_forever()
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Trashed task expiry sweeper")
    parser.add_argument("--once", action="store_true", help="Run a single sweep now and exit")
    parser.add_argument(
        "--retention-days",
        type=int,
        default=None,
        help="Override TRASH_RETENTION_DAYS for this run",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(run_worker(once=args.once, retention_days=args.retention_days))


if __name__ == "__main__":
    raise SystemExit(main())
