"""
Outline and lesson state machines.

Each machine is an explicit transition table keyed by (state, event).
Pairs missing from a table are invalid and raise InvalidStateTransition.
Internal state names map one-to-one onto the public status names stored
in the status ledger.
"""
from enum import Enum
from typing import Dict, Tuple

from shared.utils import constants as c
from shared.utils.exceptions import InvalidStateTransition


class OutlineState(str, Enum):
    SUBMITTED = "submitted"
    OUTLINE_VALIDATING = "outline_validating"
    OUTLINE_VALIDATED = "outline_validated"
    OUTLINE_BLOCKS_GENERATING = "outline_blocks_generating"
    OUTLINE_BLOCKS_GENERATED = "outline_blocks_generated"
    FAILED = "failed"
    ERROR = "error"


class OutlineEvent(str, Enum):
    START = "START"
    VALIDATION_PASSED = "VALIDATION_PASSED"
    VALIDATION_REJECTED = "VALIDATION_REJECTED"
    PROCEED = "PROCEED"
    BLOCKS_GENERATED = "BLOCKS_GENERATED"
    BLOCKS_REJECTED = "BLOCKS_REJECTED"
    SYSTEM_ERROR = "SYSTEM_ERROR"


class LessonState(str, Enum):
    GENERATING = "generating"
    GENERATED = "generated"
    VALIDATING = "validating"
    COMPILED = "compiled"
    FAILED = "failed"
    ERROR = "error"


class LessonEvent(str, Enum):
    CODE_GENERATED = "CODE_GENERATED"
    BEGIN_VALIDATION = "BEGIN_VALIDATION"
    VALIDATION_RETRY = "VALIDATION_RETRY"
    VALIDATION_PASSED = "VALIDATION_PASSED"
    ATTEMPTS_EXHAUSTED = "ATTEMPTS_EXHAUSTED"
    SYSTEM_ERROR = "SYSTEM_ERROR"


OUTLINE_TERMINAL_STATES = frozenset({
    OutlineState.OUTLINE_BLOCKS_GENERATED,
    OutlineState.FAILED,
    OutlineState.ERROR,
})

LESSON_TERMINAL_STATES = frozenset({
    LessonState.COMPILED,
    LessonState.FAILED,
    LessonState.ERROR,
})


def _with_system_error(table, states, terminal, error_event, error_state):
    """Allow the system error event from every non-terminal state."""
    full = dict(table)
    for state in states:
        if state not in terminal:
            full[(state, error_event)] = error_state
    return full


OUTLINE_TRANSITIONS: Dict[Tuple[OutlineState, OutlineEvent], OutlineState] = _with_system_error(
    {
        (OutlineState.SUBMITTED, OutlineEvent.START): OutlineState.OUTLINE_VALIDATING,
        (OutlineState.OUTLINE_VALIDATING, OutlineEvent.VALIDATION_PASSED): OutlineState.OUTLINE_VALIDATED,
        (OutlineState.OUTLINE_VALIDATING, OutlineEvent.VALIDATION_REJECTED): OutlineState.FAILED,
        (OutlineState.OUTLINE_VALIDATED, OutlineEvent.PROCEED): OutlineState.OUTLINE_BLOCKS_GENERATING,
        (OutlineState.OUTLINE_BLOCKS_GENERATING, OutlineEvent.BLOCKS_GENERATED): OutlineState.OUTLINE_BLOCKS_GENERATED,
        (OutlineState.OUTLINE_BLOCKS_GENERATING, OutlineEvent.BLOCKS_REJECTED): OutlineState.FAILED,
    },
    OutlineState,
    OUTLINE_TERMINAL_STATES,
    OutlineEvent.SYSTEM_ERROR,
    OutlineState.ERROR,
)

LESSON_TRANSITIONS: Dict[Tuple[LessonState, LessonEvent], LessonState] = _with_system_error(
    {
        (LessonState.GENERATING, LessonEvent.CODE_GENERATED): LessonState.GENERATED,
        (LessonState.GENERATED, LessonEvent.BEGIN_VALIDATION): LessonState.VALIDATING,
        (LessonState.VALIDATING, LessonEvent.VALIDATION_RETRY): LessonState.VALIDATING,
        (LessonState.VALIDATING, LessonEvent.VALIDATION_PASSED): LessonState.COMPILED,
        (LessonState.VALIDATING, LessonEvent.ATTEMPTS_EXHAUSTED): LessonState.FAILED,
    },
    LessonState,
    LESSON_TERMINAL_STATES,
    LessonEvent.SYSTEM_ERROR,
    LessonState.ERROR,
)

# Internal state -> public status name
OUTLINE_PUBLIC_STATUS: Dict[OutlineState, str] = {
    OutlineState.SUBMITTED: c.STATUS_SUBMITTED,
    OutlineState.OUTLINE_VALIDATING: c.STATUS_OUTLINE_VALIDATING,
    OutlineState.OUTLINE_VALIDATED: c.STATUS_OUTLINE_VALIDATED,
    OutlineState.OUTLINE_BLOCKS_GENERATING: c.STATUS_OUTLINE_BLOCKS_GENERATING,
    OutlineState.OUTLINE_BLOCKS_GENERATED: c.STATUS_OUTLINE_BLOCKS_GENERATED,
    OutlineState.FAILED: c.STATUS_FAILED,
    OutlineState.ERROR: c.STATUS_ERROR,
}

LESSON_PUBLIC_STATUS: Dict[LessonState, str] = {
    LessonState.GENERATING: c.STATUS_LESSON_GENERATING,
    LessonState.GENERATED: c.STATUS_LESSON_GENERATED,
    LessonState.VALIDATING: c.STATUS_LESSON_VALIDATING,
    LessonState.COMPILED: c.STATUS_LESSON_COMPILED,
    LessonState.FAILED: c.STATUS_FAILED,
    LessonState.ERROR: c.STATUS_ERROR,
}

_OUTLINE_FROM_PUBLIC = {v: k for k, v in OUTLINE_PUBLIC_STATUS.items()}
_LESSON_FROM_PUBLIC = {v: k for k, v in LESSON_PUBLIC_STATUS.items()}


def next_outline_state(state: OutlineState, event: OutlineEvent) -> OutlineState:
    """Resolve an outline transition or raise InvalidStateTransition."""
    try:
        return OUTLINE_TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidStateTransition(state.value, event.value) from None


def next_lesson_state(state: LessonState, event: LessonEvent) -> LessonState:
    """Resolve a lesson transition or raise InvalidStateTransition."""
    try:
        return LESSON_TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidStateTransition(state.value, event.value) from None


def outline_public_status(state: OutlineState) -> str:
    return OUTLINE_PUBLIC_STATUS[state]


def lesson_public_status(state: LessonState) -> str:
    return LESSON_PUBLIC_STATUS[state]


def outline_state_from_public(status: str) -> OutlineState:
    """Map a stored outline status back to its state. Unknown names raise ValueError."""
    if status not in _OUTLINE_FROM_PUBLIC:
        raise ValueError(f"Unknown outline status: {status}")
    return _OUTLINE_FROM_PUBLIC[status]


def lesson_state_from_public(status: str) -> LessonState:
    """Map a stored lesson status back to its state. Unknown names raise ValueError."""
    if status not in _LESSON_FROM_PUBLIC:
        raise ValueError(f"Unknown lesson status: {status}")
    return _LESSON_FROM_PUBLIC[status]
