"""
Shared machinery for durable workflows.

A workflow owns one subject (an outline request or a lesson). Its current
state is always derived from the status ledger, so a workflow constructed
after a restart picks up exactly where the previous one stopped.
"""
import json
import logging
from typing import Any, Callable, Dict, FrozenSet, Optional

from sqlalchemy.orm import Session as DBSession

from shared.repositories.status_ledger import StatusLedger
from shared.utils.exceptions import LessonForgeException, StageSystemError

logger = logging.getLogger(__name__)


class BaseWorkflow:
    """
    Drives one subject through a state machine, recording every transition.

    Subclasses set the class attributes below and implement `_run()`.
    """

    subject_kind: str = ""
    log_label: str = ""
    terminal_states: FrozenSet = frozenset()
    next_state: Callable = None
    to_public: Callable = None
    from_public: Callable = None
    system_error_event = None

    def __init__(self, db: DBSession, subject_id: str):
        self.db = db
        self.subject_id = subject_id
        self.ledger = StatusLedger(db)
        self.state = None

    # ─── Public entry point ───────────────────────────────────────────

    def run(self):
        """
        Run the workflow until the subject reaches a terminal state.

        System errors raised by a stage are recorded as the terminal error
        status. Returns the final state.
        """
        self.state = self.load_state()
        if self.is_terminal():
            logger.info(f"[{self.log_label} {self.subject_id}] already {self.state.value}, nothing to do")
            self._after_terminal()
            return self.state

        try:
            self._run()
        except StageSystemError as e:
            self._record_system_error(e)
        return self.state

    def load_state(self):
        """Current state from the ledger, or None if the subject has no records."""
        record = self.ledger.latest(self.subject_id)
        if record is None:
            return None
        return self.from_public(record.status)

    def is_terminal(self) -> bool:
        return self.state in self.terminal_states

    # ─── Subclass hooks ───────────────────────────────────────────────

    def _run(self):
        raise NotImplementedError

    def _after_terminal(self):
        """Hook for work that is still owed once the subject is terminal."""
        pass

    # ─── Transitions ──────────────────────────────────────────────────

    def _enter(self, state, metadata: Optional[Dict[str, Any]] = None):
        """Record the initial state of a subject that has no records yet."""
        self.ledger.append(self.subject_id, self.subject_kind, self.to_public(state), metadata)
        self.state = state
        self._log_transition(None, state)

    def _transition(self, event, metadata: Optional[Dict[str, Any]] = None):
        """
        Apply an event, append the new public status and update self.state.

        Raises:
            InvalidStateTransition: If the event is not allowed in the current state
        """
        previous = self.state
        new_state = self.next_state(previous, event)
        self.ledger.append(self.subject_id, self.subject_kind, self.to_public(new_state), metadata)
        self.state = new_state
        self._log_transition(previous, new_state, event)
        return new_state

    def _record_system_error(self, error: StageSystemError):
        logger.error(f"[{self.log_label} {self.subject_id}] {error}")
        self._transition(self.system_error_event, error.to_metadata())

    def _stage(self, stage: str, fn: Callable, *args, **kwargs):
        """
        Call a stage function, re-expressing unexpected exceptions as a
        StageSystemError for that stage.
        """
        try:
            return fn(*args, **kwargs)
        except LessonForgeException:
            raise
        except Exception as e:
            logger.error(f"[{self.log_label} {self.subject_id}] unexpected error in {stage}: {e}", exc_info=True)
            raise StageSystemError(stage, str(e), kind="unknown", original_error=e) from e

    def _log_transition(self, previous, new_state, event=None):
        logger.info(json.dumps({
            "step": "WORKFLOW_TRANSITION",
            "status": self.to_public(new_state),
            "subject_kind": self.subject_kind,
            "subject_id": self.subject_id,
            "from": previous.value if previous is not None else None,
            "event": event.value if event is not None else None
        }))
