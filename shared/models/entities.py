"""SQLAlchemy ORM database models."""
from datetime import datetime
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class OutlineRequest(Base):
    """Outline request table - one row per submitted outline."""
    __tablename__ = "outline_requests"

    id = Column(String, primary_key=True)
    outline = Column(Text, nullable=False)  # Trimmed raw outline text
    title = Column(String, nullable=True)  # Derived from the first line of the outline
    content_blocks_json = Column(Text, nullable=True)  # JSON: BlocksResult, set once blocks are generated
    num_lessons = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    lessons = relationship(
        "Lesson",
        back_populates="outline_request",
        cascade="all, delete-orphan",
        order_by="Lesson.position",
    )


class Lesson(Base):
    """
    Lesson table - one row per generated lesson.

    Code fields are overwritten on every regeneration; history lives in the
    status ledger, not here.
    """
    __tablename__ = "lessons"

    id = Column(String, primary_key=True)
    outline_request_id = Column(
        String, ForeignKey("outline_requests.id", ondelete="CASCADE"), nullable=False
    )
    position = Column(Integer, nullable=False, default=0)
    title = Column(String, nullable=False)
    blocks_json = Column(Text, nullable=False)  # JSON list of opaque content blocks
    generated_code = Column(Text, nullable=True)
    code_revision = Column(Integer, default=0, nullable=False)  # bumped on every code write
    compiled_code = Column(Text, nullable=True)
    generated_file_path = Column(String, nullable=True)
    compiled_file_path = Column(String, nullable=True)
    validation_attempts = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    outline_request = relationship("OutlineRequest", back_populates="lessons")

    __table_args__ = (
        Index("idx_lesson_outline_position", "outline_request_id", "position"),
    )


class StatusRecord(Base):
    """
    Status ledger - append-only log of status transitions.

    The integer id doubles as insertion order and breaks created_at ties.
    """
    __tablename__ = "status_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subject_id = Column(String, nullable=False)
    subject_kind = Column(String, nullable=False)  # 'outline' or 'lesson'
    status = Column(String, nullable=False)  # Public dotted status name
    metadata_json = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_status_subject_created", "subject_id", "created_at"),
        Index("idx_status_status", "status"),
    )
