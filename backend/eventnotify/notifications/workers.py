"""Background drivers: notification delivery workers and the reminder scheduler.

Both run as daemon threads started from the application lifespan and stop
when the shared ``threading.Event`` is set.
"""

import logging
import threading
from collections.abc import Callable

from sqlalchemy.orm import Session

from ..config import settings
from ..database.base import SessionLocal
from ..integrations.cache import CacheService
from .delivery import DeliveryWorker, EmailSender
from .reminders import enqueue_due_event_reminders

logger = logging.getLogger(__name__)


class ReminderScheduler:
    """Runs the event reminder scheduler at a fixed interval."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        base_url: str | None = None,
        interval: float | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.base_url = base_url if base_url is not None else settings.base_url
        self.interval = interval if interval is not None else settings.event_reminders_interval

    def run_once(self) -> int:
        db = self.session_factory()
        try:
            count = enqueue_due_event_reminders(db, self.base_url)
            db.commit()
            return count
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def run(self, stop: threading.Event) -> None:
        while not stop.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception("Error enqueueing due event reminders")
            stop.wait(self.interval)


class BackgroundWorkers:
    """Owns the worker threads of one process."""

    def __init__(
        self,
        email_sender: EmailSender | None,
        cache: CacheService | None = None,
        num_workers: int | None = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ) -> None:
        self.email_sender = email_sender
        self.cache = cache
        self.num_workers = num_workers if num_workers is not None else settings.notifications_workers
        self.session_factory = session_factory
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    def _spawn(self, name: str, target: Callable[[threading.Event], None]) -> None:
        thread = threading.Thread(target=target, args=(self._stop,), name=name, daemon=True)
        thread.start()
        self._threads.append(thread)

    def start(self) -> None:
        if self.email_sender is None:
            logger.warning("SMTP not configured, notification delivery workers disabled")
        else:
            for i in range(1, self.num_workers + 1):
                worker = DeliveryWorker(
                    self.email_sender,
                    session_factory=self.session_factory,
                    cache=self.cache,
                    rcpts_whitelist=settings.rcpts_whitelist,
                )
                self._spawn(f"notifications-worker-{i}", worker.run)

        scheduler = ReminderScheduler(session_factory=self.session_factory)
        self._spawn("event-reminders", scheduler.run)
        logger.info("Started %d background thread(s)", len(self._threads))

    def stop(self, timeout: float = 30.0) -> None:
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("Thread %s did not stop within %.0fs", thread.name, timeout)
        self._threads.clear()
