"""Status ledger data access layer."""
import json
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy.orm import Session as DBSession

from shared.models.entities import StatusRecord
from shared.utils.constants import TERMINAL_STATUSES
from shared.utils.exceptions import TerminalStateError

logger = logging.getLogger(__name__)


class StatusLedger:
    """
    Append-only log of status transitions for outlines and lessons.

    The current status of a subject is its latest record, ordered by
    created_at with the insertion id breaking ties. Records are never
    updated, reordered or deduplicated.
    """

    def __init__(self, db: DBSession):
        self.db = db

    def append(
        self,
        subject_id: str,
        subject_kind: str,
        status: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> StatusRecord:
        """
        Append a status record and commit it.

        Args:
            subject_id: Outline request or lesson ID
            subject_kind: 'outline' or 'lesson'
            status: Public status name
            metadata: Optional JSON-serializable details

        Returns:
            Created StatusRecord

        Raises:
            TerminalStateError: If the subject already reached a terminal status
        """
        current = self.latest(subject_id)
        if current is not None and current.status in TERMINAL_STATUSES.get(current.subject_kind, ()):
            raise TerminalStateError(subject_id, current.status)

        record = StatusRecord(
            subject_id=subject_id,
            subject_kind=subject_kind,
            status=status,
            metadata_json=json.dumps(metadata) if metadata is not None else None,
            created_at=datetime.utcnow()
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        logger.debug(f"Status {status} appended for {subject_kind} {subject_id}")
        return record

    def latest(self, subject_id: str) -> Optional[StatusRecord]:
        """
        Get the current status record of a subject.

        Args:
            subject_id: Outline request or lesson ID

        Returns:
            Latest StatusRecord, or None if the subject has no records
        """
        return (
            self.db.query(StatusRecord)
            .filter(StatusRecord.subject_id == subject_id)
            .order_by(StatusRecord.created_at.desc(), StatusRecord.id.desc())
            .first()
        )

    def latest_with_status(self, subject_id: str, status: str) -> Optional[StatusRecord]:
        """Get the most recent record of a subject carrying the given status."""
        return (
            self.db.query(StatusRecord)
            .filter(StatusRecord.subject_id == subject_id, StatusRecord.status == status)
            .order_by(StatusRecord.created_at.desc(), StatusRecord.id.desc())
            .first()
        )

    def history(self, subject_id: str) -> List[StatusRecord]:
        """
        Get every record of a subject, oldest first.

        Args:
            subject_id: Outline request or lesson ID

        Returns:
            List of StatusRecord models in ledger order
        """
        return (
            self.db.query(StatusRecord)
            .filter(StatusRecord.subject_id == subject_id)
            .order_by(StatusRecord.created_at, StatusRecord.id)
            .all()
        )

    def latest_by_subject(self, subject_kind: str) -> Dict[str, StatusRecord]:
        """
        Current record of every subject of one kind.

        Args:
            subject_kind: 'outline' or 'lesson'

        Returns:
            Dict mapping subject ID to its latest StatusRecord
        """
        records = (
            self.db.query(StatusRecord)
            .filter(StatusRecord.subject_kind == subject_kind)
            .order_by(StatusRecord.created_at, StatusRecord.id)
            .all()
        )
        latest: Dict[str, StatusRecord] = {}
        for record in records:
            latest[record.subject_id] = record
        return latest

    def is_terminal(self, subject_id: str) -> bool:
        record = self.latest(subject_id)
        return record is not None and record.status in TERMINAL_STATUSES.get(record.subject_kind, ())

    @staticmethod
    def metadata_of(record: Optional[StatusRecord]) -> Optional[Dict[str, Any]]:
        """Decoded metadata of a record (None when absent)."""
        if record is None or record.metadata_json is None:
            return None
        return json.loads(record.metadata_json)

    @staticmethod
    def statuses(records: Iterable[StatusRecord]) -> List[str]:
        return [r.status for r in records]
