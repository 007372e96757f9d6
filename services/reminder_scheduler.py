"""
Reminder Scheduler
Background ticker that drives the reminder engine for every tenant
"""

import asyncio
import logging
import threading
from typing import Dict, List, Optional, Any, Set, Tuple

from config import DocumentKeys, engine_config
from actions.activity_log import ActivityLog
from actions.reminder_engine import ReminderLifecycleManager, TickResult
from tools.document_store import DocumentStore
from tools.meal_windows import load_meal_config, parse_hhmm
from tools.notification_service import Notifier
from tools.scheduler import Clock, circular_distance


logger = logging.getLogger(__name__)


class ReminderTicker:
    """
    Runs one engine tick per tenant every SCHEDULER_TICK_SECONDS.

    Tenants are processed concurrently in worker threads; a failure for one
    tenant is logged and the others still run.
    """

    def __init__(
        self,
        engine: ReminderLifecycleManager,
        store: DocumentStore,
        notifier: Notifier,
        activity_log: ActivityLog,
        clock: Clock,
        tick_seconds: int = 60,
        summary_time: Optional[str] = "21:00"
    ):
        self.engine = engine
        self.store = store
        self.notifier = notifier
        self.activity_log = activity_log
        self.clock = clock
        self.tick_seconds = tick_seconds
        self.summary_minutes = parse_hhmm(summary_time) if summary_time else None

        self._summaries_sent: Set[Tuple[str, str]] = set()
        self._summary_lock = threading.Lock()
        self._stopped = asyncio.Event()

    async def tick(self) -> List[TickResult]:
        """Process every known tenant once"""
        tenants = await asyncio.to_thread(self.store.tenants)
        if not tenants:
            return []

        outcomes = await asyncio.gather(
            *(asyncio.to_thread(self._process, tenant_id) for tenant_id in tenants),
            return_exceptions=True,
        )

        results: List[TickResult] = []
        for tenant_id, outcome in zip(tenants, outcomes):
            if isinstance(outcome, Exception):
                logger.error(f"Tick failed for tenant {tenant_id}: {outcome}")
                continue
            results.append(outcome)
        return results

    def _process(self, tenant_id: str) -> TickResult:
        result = self.engine.process_tenant(tenant_id)
        self._maybe_send_summary(tenant_id)
        return result

    def _maybe_send_summary(self, tenant_id: str) -> Optional[Dict[str, Any]]:
        """Send the daily summary once per tenant per local date"""
        if self.summary_minutes is None:
            return None

        config = load_meal_config(self.store.read(tenant_id, DocumentKeys.SETTINGS))
        now_local = self.clock.now(config.timezone)
        now_minutes = now_local.hour * 60 + now_local.minute
        if circular_distance(now_minutes, self.summary_minutes) > engine_config.DUE_TOLERANCE_MINUTES:
            return None

        key = (tenant_id, now_local.date().isoformat())
        with self._summary_lock:
            if key in self._summaries_sent:
                return None
            self._summaries_sent = {k for k in self._summaries_sent if k[1] >= key[1]}
            self._summaries_sent.add(key)

        summary = self.activity_log.daily_summary(tenant_id, now_local.date(), config.timezone)
        try:
            self.notifier.send_daily_summary(tenant_id, summary)
            logger.info(f"Daily summary sent for tenant {tenant_id}: {summary}")
        except Exception as e:
            logger.error(f"Error sending daily summary for tenant {tenant_id}: {e}")
        return summary

    async def run(self) -> None:
        """Tick until stop() is called"""
        self._stopped.clear()
        logger.info(f"Reminder ticker started (every {self.tick_seconds}s)")

        while not self._stopped.is_set():
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Reminder tick failed: {e}")

            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.tick_seconds)
            except asyncio.TimeoutError:
                pass

        logger.info("Reminder ticker stopped")

    def stop(self) -> None:
        self._stopped.set()
