import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from transitops.config import settings
from transitops.notifications import Notifier
from transitops.schedules.schemas import AutoCompleteResult
from transitops.schedules.service import ScheduleLifecycleService

logger = logging.getLogger(__name__)


class CompletionSweeper:
    """Periodically completes trips whose date has passed"""
    
    def __init__(
        self,
        session_factory: Callable[[], Session],
        notifier: Optional[Notifier] = None,
        interval_seconds: Optional[int] = None
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.interval_seconds = interval_seconds or settings.AUTO_COMPLETE_INTERVAL_SECONDS
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
    
    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
    
    def run_once(self, now: Optional[datetime] = None) -> AutoCompleteResult:
        """Run a single completion sweep"""
        db = self.session_factory()
        try:
            return ScheduleLifecycleService(db, notifier=self.notifier).complete_elapsed(now)
        finally:
            db.close()
    
    def start(self):
        """Start sweeping in a background thread"""
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="completion-sweeper")
        self._thread.daemon = True
        self._thread.start()
        logger.info("Completion sweeper started, interval=%ss", self.interval_seconds)
    
    def stop(self):
        """Stop the background thread"""
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
    
    def _loop(self):
        while not self._stop.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception("Completion sweep failed")
            self._stop.wait(self.interval_seconds)
