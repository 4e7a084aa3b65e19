"""Data access layer - repository pattern for database operations."""
from .status_ledger import StatusLedger
from .outline_request_repository import OutlineRequestRepository
from .lesson_repository import LessonRepository

__all__ = [
    "StatusLedger",
    "OutlineRequestRepository",
    "LessonRepository"
]
