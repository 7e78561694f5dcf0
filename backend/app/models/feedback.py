from __future__ import annotations

from sqlalchemy import (
    DDL,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    column,
    event,
    table,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.db import Base


class FeedbackItem(Base):
    __tablename__ = "feedback"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)  # "bug", "feature", "improvement"
    # Denormalized count of upvote rows in user_votes; only the toggle changes it.
    upvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # ISO 8601 UTC string, same convention as every other timestamp column.
    created_at: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "category IN ('bug', 'feature', 'improvement')", name="ck_feedback_category"
        ),
        CheckConstraint("upvotes >= 0", name="ck_feedback_upvotes"),
        Index("idx_feedback_category", "category"),
        Index("idx_feedback_upvotes", "upvotes"),
        Index("idx_feedback_created_at", "created_at"),
    )

    # Relationships
    votes: Mapped[list[VoteRecord]] = relationship(
        "VoteRecord",
        back_populates="feedback",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class VoteRecord(Base):
    __tablename__ = "user_votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(String, nullable=False)
    feedback_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("feedback.id", ondelete="CASCADE"), nullable=False
    )
    direction: Mapped[str] = mapped_column(String, nullable=False)  # "upvote" or "downvote"
    created_at: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        UniqueConstraint("session_id", "feedback_id", name="uq_user_votes_session_feedback"),
        CheckConstraint("direction IN ('upvote', 'downvote')", name="ck_user_votes_direction"),
        Index("idx_user_votes_session", "session_id"),
        Index("idx_user_votes_feedback", "feedback_id"),
    )

    # Relationships
    feedback: Mapped[FeedbackItem] = relationship("FeedbackItem", back_populates="votes")


# --- Full-text index ---
# External-content FTS5 table over feedback(title, description). The triggers keep
# it in sync; the update trigger ignores counter-only updates.

_SEARCH_INDEX_DDL = (
    """
    CREATE VIRTUAL TABLE IF NOT EXISTS feedback_search USING fts5(
        title, description, content='feedback', content_rowid='id'
    )
    """,
    """
    CREATE TRIGGER IF NOT EXISTS feedback_search_insert AFTER INSERT ON feedback BEGIN
        INSERT INTO feedback_search(rowid, title, description)
        VALUES (new.id, new.title, new.description);
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS feedback_search_delete AFTER DELETE ON feedback BEGIN
        INSERT INTO feedback_search(feedback_search, rowid, title, description)
        VALUES ('delete', old.id, old.title, old.description);
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS feedback_search_update
    AFTER UPDATE OF title, description ON feedback BEGIN
        INSERT INTO feedback_search(feedback_search, rowid, title, description)
        VALUES ('delete', old.id, old.title, old.description);
        INSERT INTO feedback_search(rowid, title, description)
        VALUES (new.id, new.title, new.description);
    END
    """,
)

for _statement in _SEARCH_INDEX_DDL:
    event.listen(
        FeedbackItem.__table__,
        "after_create",
        DDL(_statement).execute_if(dialect="sqlite"),
    )

event.listen(
    FeedbackItem.__table__,
    "after_drop",
    DDL("DROP TABLE IF EXISTS feedback_search").execute_if(dialect="sqlite"),
)

# Lightweight handle for joining against the index in queries.
feedback_search = table("feedback_search", column("rowid", Integer), column("rank"))
