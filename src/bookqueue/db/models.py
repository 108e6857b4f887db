"""SQLAlchemy ORM models for the backing store.

Tables:
- reading_queue: Reading-list entries per user
- user_books: Collection items (finished/kept books)
- user_recommendations: Recommendations authored by a user
- shared_recommendations: Share links, one per recommendation
- received_recommendations: Recipient inbox of shared recommendations
- dismissed_recommendations: Append-only rejection signals
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .schemas import CollectionSource, EntryStatus, ReceivedStatus


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string for primary keys."""
    return str(uuid4())


def utcnow() -> str:
    """Current UTC time as an ISO string."""
    return datetime.now(timezone.utc).isoformat()


class QueueEntry(Base):
    """Reading-list entry - one book in one user's reading lifecycle."""

    __tablename__ = "reading_queue"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    author: Mapped[str] = mapped_column(String(500), default="")
    isbn: Mapped[Optional[str]] = mapped_column(String(13), index=True)

    status: Mapped[str] = mapped_column(
        String(20), default=EntryStatus.WANT_TO_READ.value, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    rating: Mapped[Optional[int]] = mapped_column(Integer)
    owned: Mapped[bool] = mapped_column(Boolean, default=False)

    description: Mapped[Optional[str]] = mapped_column(Text)
    reputation: Mapped[Optional[str]] = mapped_column(Text)

    added_at: Mapped[str] = mapped_column(String(32), default=utcnow, index=True)
    finished_at: Mapped[Optional[str]] = mapped_column(String(32))

    created_at: Mapped[str] = mapped_column(String(32), default=utcnow)
    updated_at: Mapped[str] = mapped_column(String(32), default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<QueueEntry(id={self.id}, title='{self.title}', status={self.status})>"


class UserBookItem(Base):
    """Collection item - a book the user finished and chose to keep."""

    __tablename__ = "user_books"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    author: Mapped[str] = mapped_column(String(500), default="")
    isbn: Mapped[Optional[str]] = mapped_column(String(13))

    rating: Mapped[Optional[int]] = mapped_column(Integer)
    review: Mapped[Optional[str]] = mapped_column(Text)
    cover_image_url: Mapped[Optional[str]] = mapped_column(Text)
    added_via: Mapped[str] = mapped_column(String(20), default=CollectionSource.MANUAL.value)

    added_at: Mapped[str] = mapped_column(String(32), default=utcnow)
    updated_at: Mapped[str] = mapped_column(String(32), default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<UserBookItem(id={self.id}, title='{self.title}', author='{self.author}')>"


class Recommendation(Base):
    """A book endorsement authored by a user."""

    __tablename__ = "user_recommendations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    author: Mapped[str] = mapped_column(String(500), default="")
    isbn: Mapped[Optional[str]] = mapped_column(String(13))
    description: Mapped[Optional[str]] = mapped_column(Text)
    note: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[str] = mapped_column(String(32), default=utcnow, index=True)
    updated_at: Mapped[str] = mapped_column(String(32), default=utcnow, onupdate=utcnow)

    share_link: Mapped[Optional["ShareLink"]] = relationship(
        "ShareLink",
        back_populates="recommendation",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="joined",
    )

    def __repr__(self) -> str:
        return f"<Recommendation(id={self.id}, title='{self.title}')>"


class ShareLink(Base):
    """Durable public link to one recommendation."""

    __tablename__ = "shared_recommendations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    recommendation_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user_recommendations.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    share_token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    recommender_name: Mapped[str] = mapped_column(String(200), nullable=False)

    view_count: Mapped[int] = mapped_column(Integer, default=0)
    last_viewed_at: Mapped[Optional[str]] = mapped_column(String(32))
    accepted_at: Mapped[Optional[str]] = mapped_column(String(32))
    accepted_by: Mapped[Optional[str]] = mapped_column(String(64))

    created_at: Mapped[str] = mapped_column(String(32), default=utcnow)

    recommendation: Mapped["Recommendation"] = relationship(
        "Recommendation", back_populates="share_link"
    )

    def __repr__(self) -> str:
        return f"<ShareLink(token={self.share_token}, views={self.view_count})>"


class ReceivedRecommendation(Base):
    """Inbox entry for a recommendation received through a share link."""

    __tablename__ = "received_recommendations"
    __table_args__ = (
        UniqueConstraint("recipient_id", "share_link_id", name="uq_received_recipient_link"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    recipient_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    share_link_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("shared_recommendations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    recommender_name: Mapped[Optional[str]] = mapped_column(String(200))

    # Denormalized book fields
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    author: Mapped[str] = mapped_column(String(500), default="")
    isbn: Mapped[Optional[str]] = mapped_column(String(13))
    description: Mapped[Optional[str]] = mapped_column(Text)
    note: Mapped[Optional[str]] = mapped_column(Text)

    status: Mapped[str] = mapped_column(
        String(20), default=ReceivedStatus.PENDING.value, index=True
    )
    received_at: Mapped[str] = mapped_column(String(32), default=utcnow, index=True)
    accepted_at: Mapped[Optional[str]] = mapped_column(String(32))
    declined_at: Mapped[Optional[str]] = mapped_column(String(32))
    archived_at: Mapped[Optional[str]] = mapped_column(String(32))

    def __repr__(self) -> str:
        return f"<ReceivedRecommendation(id={self.id}, title='{self.title}', status={self.status})>"


class DismissedRecommendation(Base):
    """Rejection signal - a book the user explicitly did not want."""

    __tablename__ = "dismissed_recommendations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    author: Mapped[str] = mapped_column(String(500), default="")
    created_at: Mapped[str] = mapped_column(String(32), default=utcnow)

    def __repr__(self) -> str:
        return f"<DismissedRecommendation(user={self.user_id}, title='{self.title}')>"
