"""
Footing Engine — Background Worker
====================================
Single daemon thread draining a FIFO task queue. Used for work that must
never block or fail the request that triggered it: drying-rate tuning after
feedback and snapshot pruning after a scoring pass.

Tasks run one at a time in submission order, so two tuner runs never
overlap inside one process.
"""

import queue
import logging
import threading

logger = logging.getLogger(__name__)


class BackgroundWorker:
    """FIFO task queue with one daemon consumer thread."""

    def __init__(self, name='footing-worker'):
        self.name = name
        self._queue = queue.Queue()
        self._thread = None
        self._lock = threading.Lock()
        self.completed = 0
        self.failed = 0

    def start(self):
        """Start the consumer thread if it isn't already running."""
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._thread = threading.Thread(target=self._run_loop, name=self.name, daemon=True)
            self._thread.start()
            logger.info(f"Background worker '{self.name}' started")

    def submit(self, task_name, fn, *args, **kwargs):
        """Queue ``fn(*args, **kwargs)``; returns immediately."""
        self.start()
        self._queue.put((task_name, fn, args, kwargs))
        logger.debug(f"Queued background task {task_name}")

    def drain(self):
        """Block until every queued task has finished."""
        self._queue.join()

    def _run_loop(self):
        while True:
            task_name, fn, args, kwargs = self._queue.get()
            try:
                fn(*args, **kwargs)
                self.completed += 1
            except Exception as e:
                self.failed += 1
                logger.error(f"Background task {task_name} failed: {e}", exc_info=True)
            finally:
                self._queue.task_done()


background = BackgroundWorker()
