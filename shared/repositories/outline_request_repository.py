"""Outline request data access layer."""
import logging
from datetime import datetime
from typing import List, Optional
from uuid import uuid4
from sqlalchemy.orm import Session as DBSession

from shared.models.domain import BlocksResult
from shared.models.entities import OutlineRequest

logger = logging.getLogger(__name__)


class OutlineRequestRepository:
    """Repository for outline request operations."""

    def __init__(self, db: DBSession):
        self.db = db

    def create(self, outline: str, title: Optional[str] = None) -> OutlineRequest:
        """
        Create a new outline request.

        Args:
            outline: Trimmed outline text
            title: Display title derived from the outline

        Returns:
            Created OutlineRequest model
        """
        request = OutlineRequest(
            id=str(uuid4()),
            outline=outline,
            title=title,
            created_at=datetime.utcnow()
        )
        self.db.add(request)
        self.db.commit()
        self.db.refresh(request)
        return request

    def get_by_id(self, outline_request_id: str) -> Optional[OutlineRequest]:
        """
        Retrieve an outline request by ID.

        Args:
            outline_request_id: Outline request identifier

        Returns:
            OutlineRequest if found, None otherwise
        """
        return (
            self.db.query(OutlineRequest)
            .filter(OutlineRequest.id == outline_request_id)
            .first()
        )

    def save_content_blocks(self, outline_request_id: str, blocks: BlocksResult) -> None:
        """
        Store generated content blocks and the resulting lesson count.

        Args:
            outline_request_id: Outline request identifier
            blocks: Block generation result
        """
        request = self.get_by_id(outline_request_id)
        if request:
            request.content_blocks_json = blocks.model_dump_json()
            request.num_lessons = len(blocks.lessons)
            self.db.commit()

    def get_content_blocks(self, outline_request_id: str) -> Optional[BlocksResult]:
        """Stored block generation result, or None if blocks were not generated yet."""
        request = self.get_by_id(outline_request_id)
        if request is None or request.content_blocks_json is None:
            return None
        return BlocksResult.model_validate_json(request.content_blocks_json)

    def list_ids(self) -> List[str]:
        """IDs of all outline requests, oldest first."""
        rows = (
            self.db.query(OutlineRequest.id)
            .order_by(OutlineRequest.created_at)
            .all()
        )
        return [row.id for row in rows]
