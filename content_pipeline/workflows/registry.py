"""
Registry of running workflows.

Keeps a handle to every running workflow thread, keyed by subject ID, so
that at most one workflow runs per subject and shutdown can wait for the
running ones to finish.
"""
import logging
import threading
from typing import Callable, Dict, Optional

from shared.utils.exceptions import WorkflowAlreadyRunning

logger = logging.getLogger(__name__)


class WorkflowRegistry:
    """Thread-safe map of subject ID to the thread running its workflow."""

    def __init__(self):
        self._lock = threading.Lock()
        self._threads: Dict[str, threading.Thread] = {}

    def start(self, subject_id: str, target: Callable[[], None], kind: str = "workflow") -> threading.Thread:
        """
        Run target in a new thread registered under subject_id.

        The entry is removed when target returns or raises.

        Raises:
            WorkflowAlreadyRunning: If a workflow for subject_id is still running
        """
        def wrapper():
            try:
                target()
            finally:
                self._remove(subject_id, kind)

        with self._lock:
            if subject_id in self._threads:
                raise WorkflowAlreadyRunning(subject_id)
            thread = threading.Thread(target=wrapper, name=f"{kind}-{subject_id}", daemon=True)
            self._threads[subject_id] = thread
            # Start under the lock so the entry exists before the thread can remove it
            try:
                thread.start()
            except Exception:
                del self._threads[subject_id]
                raise
            active = len(self._threads)

        logger.info(f"[WorkflowRegistry] Registered {kind}: {subject_id} (total active: {active})")
        return thread

    def _remove(self, subject_id: str, kind: str):
        with self._lock:
            self._threads.pop(subject_id, None)
            active = len(self._threads)
        logger.info(f"[WorkflowRegistry] Unregistered {kind}: {subject_id} (total active: {active})")

    def active_count(self) -> int:
        with self._lock:
            return len(self._threads)

    def join_all(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for running workflows, including any they start while waiting.

        Args:
            timeout: Per-thread join timeout in seconds (None waits forever)

        Returns:
            True if no workflow is left running
        """
        while True:
            with self._lock:
                threads = list(self._threads.values())
            if not threads:
                return True
            for thread in threads:
                thread.join(timeout)
            if any(t.is_alive() for t in threads):
                logger.warning(f"[WorkflowRegistry] {self.active_count()} workflow(s) still running after join")
                return False
