"""
Background reminder scheduler.

Runs RecurringExpenseEngine.check_due on a fixed interval so
due recurring expenses turn into transactions without anyone
asking. Each pass runs in a worker thread with its own
database session and commits once, so a pass either lands
completely or not at all.

Stopping the scheduler cancels the waiting loop; a pass that
is already running is allowed to finish and commit first, so
no rule is left with a transaction but an old due date.
"""

import asyncio
import logging
import threading

from sqlalchemy.orm import sessionmaker

from pocket_ledger.clock import SystemClock
from pocket_ledger.services.recurring_service import RecurringExpenseEngine

log = logging.getLogger(__name__)


class ReminderScheduler:

    def __init__(
        self,
        session_factory: sessionmaker,
        clock: SystemClock | None = None,
        interval_seconds: float = 300,
    ):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None
        self._run_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> dict:
        """
        Run one check_due pass and commit it.

        Returns the ids of created transactions and the rules
        that could not be materialized.
        """
        with self._run_lock:
            today = self.clock.today()
            db = self.session_factory()
            try:
                result = RecurringExpenseEngine(db).check_due(today)
                summary = {
                    "date": today,
                    "created": [txn.id for txn in result.created],
                    "failed": dict(result.failed),
                }
                db.commit()
                return summary
            except Exception:
                db.rollback()
                log.exception(f"Recurring expense check for {today} failed")
                raise
            finally:
                db.close()

    async def _loop(self) -> None:
        while True:
            try:
                # check_due is synchronous; run it in the default thread pool
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, self.run_once)
            except asyncio.CancelledError:
                raise
            except Exception:
                log.warning(
                    f"Retrying recurring expense check in "
                    f"{self.interval_seconds}s"
                )
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        """Start the loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="reminder-scheduler")
        log.info(
            f"Reminder scheduler started (every {self.interval_seconds}s)"
        )

    async def stop(self) -> None:
        """Cancel the loop and wait for an in-flight pass to commit."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

        # A pass already handed to the executor keeps running after cancel
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._run_lock.acquire)
        self._run_lock.release()
        log.info("Reminder scheduler stopped")
