"""Custom exception hierarchy for better error handling."""
from typing import Any, Dict, Optional
from fastapi import HTTPException, status


class LessonForgeException(Exception):
    """Base exception for all application errors."""
    pass


class FlowFailure(LessonForgeException):
    """
    Expected negative outcome of a stage (rejected outline, unusable blocks).

    Drives the subject to the terminal `failed` status.
    """

    def __init__(self, message: str, metadata: Optional[Dict[str, Any]] = None):
        self.message = message
        self.metadata = metadata or {}
        super().__init__(message)

    def to_metadata(self) -> Dict[str, Any]:
        return {"message": self.message, **self.metadata}


class StageSystemError(LessonForgeException):
    """
    Unexpected fault inside a stage (LLM outage, compiler crash, bad response).

    Drives the subject to the terminal `error` status.
    """

    def __init__(
        self,
        stage: str,
        message: str,
        kind: str = "unknown",
        original_error: Optional[Exception] = None,
    ):
        self.stage = stage
        self.message = message
        self.kind = kind
        self.original_error = original_error
        super().__init__(f"{stage}: {message}")

    def to_metadata(self) -> Dict[str, Any]:
        metadata = {"message": self.message, "kind": self.kind, "stage": self.stage}
        if self.original_error is not None:
            metadata["error"] = str(self.original_error)
        return metadata


class InvalidStateTransition(LessonForgeException):
    """Raised when an event is not allowed from the current workflow state."""

    def __init__(self, current_state: str, event: str):
        self.current_state = current_state
        self.event = event
        super().__init__(f"Cannot apply {event} in state {current_state}")


class TerminalStateError(LessonForgeException):
    """Raised when a status is appended to a subject that already finished."""

    def __init__(self, subject_id: str, terminal_status: str):
        self.subject_id = subject_id
        self.terminal_status = terminal_status
        super().__init__(
            f"Subject {subject_id} is already in terminal status {terminal_status}"
        )


class WorkflowAlreadyRunning(LessonForgeException):
    """Raised when a second workflow is started for a busy subject."""

    def __init__(self, subject_id: str):
        self.subject_id = subject_id
        super().__init__(f"Workflow for {subject_id} is already running")


class OutlineRequestNotFoundException(LessonForgeException):
    """Raised when an outline request is not found."""

    def __init__(self, outline_request_id: str):
        self.outline_request_id = outline_request_id
        super().__init__(f"Outline request {outline_request_id} not found")

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Outline request {self.outline_request_id} not found"
        )


class LessonNotFoundException(LessonForgeException):
    """Raised when a lesson is not found."""

    def __init__(self, lesson_id: str):
        self.lesson_id = lesson_id
        super().__init__(f"Lesson {lesson_id} not found")

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Lesson {self.lesson_id} not found"
        )

