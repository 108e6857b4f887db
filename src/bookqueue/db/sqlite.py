"""SQLite database operations.

Handles database connection, session management, and CRUD operations for
the backing store. Every method accepts an optional ``session`` so callers
can group several operations into one transaction; without one, the
method opens and commits its own.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_config
from .models import (
    Base,
    DismissedRecommendation,
    QueueEntry,
    ReceivedRecommendation,
    Recommendation,
    ShareLink,
    UserBookItem,
    utcnow,
)
from .schemas import (
    BookPayload,
    EntryStatus,
    ReadingListEntry,
    ReceivedRecommendationResponse,
    ReceivedStatus,
    RecommendationCreate,
    RecommendationResponse,
    RejectionSignal,
    ShareLinkResponse,
    UserBook,
    UserBookCreate,
    merge_key,
)


class Database:
    """Database connection and operations manager."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses
                     BOOKQUEUE_DB_PATH or the default location.
        """
        if db_path is None:
            db_path = str(get_config().db_path)

        self.db_path = Path(db_path)
        self._is_memory = str(db_path) == ":memory:"

        # For in-memory databases, use StaticPool to reuse the same connection
        # so all sessions share the same in-memory database
        if self._is_memory:
            self.engine = create_engine(
                "sqlite:///:memory:",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self._ensure_directory()
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                connect_args={"check_same_thread": False},
            )
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop all database tables. Use with caution!"""
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session context manager."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ========================================================================
    # Reading Queue Operations
    # ========================================================================

    def list_entries(
        self, user_id: str, status: Optional[EntryStatus] = None, session: Optional[Session] = None
    ) -> list[ReadingListEntry]:
        """Get a user's reading-list entries, most recently added first."""

        def _list(s: Session) -> list[ReadingListEntry]:
            stmt = select(QueueEntry).where(QueueEntry.user_id == user_id)
            if status is not None:
                stmt = stmt.where(QueueEntry.status == status.value)
            stmt = stmt.order_by(QueueEntry.added_at.desc())
            return [ReadingListEntry.model_validate(e) for e in s.execute(stmt).scalars()]

        if session:
            return _list(session)
        with self.get_session() as s:
            return _list(s)

    def get_entry(self, entry_id: str, session: Optional[Session] = None) -> Optional[ReadingListEntry]:
        """Get an entry by ID."""

        def _get(s: Session) -> Optional[ReadingListEntry]:
            entry = s.get(QueueEntry, entry_id)
            return ReadingListEntry.model_validate(entry) if entry else None

        if session:
            return _get(session)
        with self.get_session() as s:
            return _get(s)

    def create_entry(
        self, user_id: str, book: BookPayload, session: Optional[Session] = None
    ) -> ReadingListEntry:
        """Insert a new reading-list entry."""

        def _create(s: Session) -> ReadingListEntry:
            entry = QueueEntry(
                user_id=user_id,
                title=book.title,
                author=book.author,
                isbn=book.isbn,
                status=book.status.value,
                rating=book.rating,
                owned=book.owned,
                description=book.description,
                reputation=book.reputation,
                finished_at=utcnow() if book.status == EntryStatus.FINISHED else None,
            )
            s.add(entry)
            s.flush()
            return ReadingListEntry.model_validate(entry)

        if session:
            return _create(session)
        with self.get_session() as s:
            return _create(s)

    def update_entry(
        self, entry_id: str, fields: dict, session: Optional[Session] = None
    ) -> Optional[ReadingListEntry]:
        """Update scalar fields on an entry. Returns None if not found."""

        def _update(s: Session) -> Optional[ReadingListEntry]:
            entry = s.get(QueueEntry, entry_id)
            if not entry:
                return None

            for field, value in fields.items():
                if field == "status":
                    status = EntryStatus(value)
                    entry.status = status.value
                    if status == EntryStatus.FINISHED and not entry.finished_at:
                        entry.finished_at = utcnow()
                    elif status != EntryStatus.FINISHED:
                        entry.finished_at = None
                else:
                    setattr(entry, field, value)

            s.flush()
            return ReadingListEntry.model_validate(entry)

        if session:
            return _update(session)
        with self.get_session() as s:
            return _update(s)

    def delete_entry(self, entry_id: str, session: Optional[Session] = None) -> bool:
        """Delete an entry."""

        def _delete(s: Session) -> bool:
            entry = s.get(QueueEntry, entry_id)
            if not entry:
                return False
            s.delete(entry)
            return True

        if session:
            return _delete(session)
        with self.get_session() as s:
            return _delete(s)

    # ========================================================================
    # Collection Operations
    # ========================================================================

    def list_user_books(self, user_id: str, session: Optional[Session] = None) -> list[UserBook]:
        """Get a user's collection, most recently added first."""

        def _list(s: Session) -> list[UserBook]:
            stmt = (
                select(UserBookItem)
                .where(UserBookItem.user_id == user_id)
                .order_by(UserBookItem.added_at.desc())
            )
            return [UserBook.model_validate(b) for b in s.execute(stmt).scalars()]

        if session:
            return _list(session)
        with self.get_session() as s:
            return _list(s)

    def find_user_book(
        self, user_id: str, title: str, author: str, session: Optional[Session] = None
    ) -> Optional[UserBook]:
        """Find a collection item by case-insensitive (title, author).

        Compared with ``merge_key`` in Python; SQLite's ``lower()`` only
        folds ASCII.
        """
        key = merge_key(title, author)

        def _find(s: Session) -> Optional[UserBook]:
            stmt = select(UserBookItem).where(UserBookItem.user_id == user_id)
            for book in s.execute(stmt).scalars():
                if merge_key(book.title, book.author) == key:
                    return UserBook.model_validate(book)
            return None

        if session:
            return _find(session)
        with self.get_session() as s:
            return _find(s)

    def create_user_book(
        self, user_id: str, book: UserBookCreate, session: Optional[Session] = None
    ) -> UserBook:
        """Insert a collection item."""

        def _create(s: Session) -> UserBook:
            item = UserBookItem(
                user_id=user_id,
                title=book.title,
                author=book.author,
                isbn=book.isbn,
                rating=book.rating,
                review=book.review,
                cover_image_url=book.cover_image_url,
                added_via=book.added_via.value,
            )
            s.add(item)
            s.flush()
            return UserBook.model_validate(item)

        if session:
            return _create(session)
        with self.get_session() as s:
            return _create(s)

    def update_user_book(
        self, book_id: str, fields: dict, session: Optional[Session] = None
    ) -> Optional[UserBook]:
        """Update a collection item. Returns None if not found."""

        def _update(s: Session) -> Optional[UserBook]:
            item = s.get(UserBookItem, book_id)
            if not item:
                return None
            for field, value in fields.items():
                setattr(item, field, value)
            s.flush()
            return UserBook.model_validate(item)

        if session:
            return _update(session)
        with self.get_session() as s:
            return _update(s)

    def delete_user_book(self, book_id: str, session: Optional[Session] = None) -> bool:
        """Delete a collection item."""

        def _delete(s: Session) -> bool:
            item = s.get(UserBookItem, book_id)
            if not item:
                return False
            s.delete(item)
            return True

        if session:
            return _delete(session)
        with self.get_session() as s:
            return _delete(s)

    # ========================================================================
    # Recommendation Operations
    # ========================================================================

    def create_recommendation(
        self, user_id: str, rec: RecommendationCreate, session: Optional[Session] = None
    ) -> RecommendationResponse:
        """Insert a recommendation."""

        def _create(s: Session) -> RecommendationResponse:
            db_rec = Recommendation(
                user_id=user_id,
                title=rec.title,
                author=rec.author,
                isbn=rec.isbn,
                description=rec.description,
                note=rec.note,
            )
            s.add(db_rec)
            s.flush()
            return RecommendationResponse.model_validate(db_rec)

        if session:
            return _create(session)
        with self.get_session() as s:
            return _create(s)

    def get_recommendation(
        self, recommendation_id: str, session: Optional[Session] = None
    ) -> Optional[RecommendationResponse]:
        """Get a recommendation (with its share link) by ID."""

        def _get(s: Session) -> Optional[RecommendationResponse]:
            rec = s.get(Recommendation, recommendation_id)
            return RecommendationResponse.model_validate(rec) if rec else None

        if session:
            return _get(session)
        with self.get_session() as s:
            return _get(s)

    def list_recommendations(
        self, user_id: str, session: Optional[Session] = None
    ) -> list[RecommendationResponse]:
        """Get a user's recommendations, newest first."""

        def _list(s: Session) -> list[RecommendationResponse]:
            stmt = (
                select(Recommendation)
                .where(Recommendation.user_id == user_id)
                .order_by(Recommendation.created_at.desc())
            )
            return [
                RecommendationResponse.model_validate(r)
                for r in s.execute(stmt).unique().scalars()
            ]

        if session:
            return _list(session)
        with self.get_session() as s:
            return _list(s)

    def update_recommendation_note(
        self, recommendation_id: str, note: Optional[str], session: Optional[Session] = None
    ) -> Optional[RecommendationResponse]:
        """Replace a recommendation's note."""

        def _update(s: Session) -> Optional[RecommendationResponse]:
            rec = s.get(Recommendation, recommendation_id)
            if not rec:
                return None
            rec.note = note
            s.flush()
            return RecommendationResponse.model_validate(rec)

        if session:
            return _update(session)
        with self.get_session() as s:
            return _update(s)

    def delete_recommendation(self, recommendation_id: str, session: Optional[Session] = None) -> bool:
        """Delete a recommendation and its share link."""

        def _delete(s: Session) -> bool:
            rec = s.get(Recommendation, recommendation_id)
            if not rec:
                return False
            s.delete(rec)
            return True

        if session:
            return _delete(session)
        with self.get_session() as s:
            return _delete(s)

    # ========================================================================
    # Share Link Operations
    # ========================================================================

    def get_share_link_for(
        self, recommendation_id: str, session: Optional[Session] = None
    ) -> Optional[ShareLinkResponse]:
        """Get the share link issued for a recommendation, if any."""

        def _get(s: Session) -> Optional[ShareLinkResponse]:
            stmt = select(ShareLink).where(ShareLink.recommendation_id == recommendation_id)
            link = s.execute(stmt).scalar_one_or_none()
            return ShareLinkResponse.model_validate(link) if link else None

        if session:
            return _get(session)
        with self.get_session() as s:
            return _get(s)

    def get_share_link_by_token(
        self, token: str, session: Optional[Session] = None
    ) -> Optional[ShareLinkResponse]:
        """Get a share link by token."""

        def _get(s: Session) -> Optional[ShareLinkResponse]:
            stmt = select(ShareLink).where(ShareLink.share_token == token)
            link = s.execute(stmt).scalar_one_or_none()
            return ShareLinkResponse.model_validate(link) if link else None

        if session:
            return _get(session)
        with self.get_session() as s:
            return _get(s)

    def create_share_link(
        self, recommendation_id: str, token: str, recommender_name: str
    ) -> ShareLinkResponse:
        """Persist a share link, or return the one that already exists.

        The unique constraint on ``recommendation_id`` makes a concurrent
        second insert fail; that case re-reads and returns the winner.
        """
        try:
            with self.get_session() as s:
                existing = self.get_share_link_for(recommendation_id, session=s)
                if existing:
                    return existing

                link = ShareLink(
                    recommendation_id=recommendation_id,
                    share_token=token,
                    recommender_name=recommender_name,
                    view_count=0,
                )
                s.add(link)
                s.flush()
                return ShareLinkResponse.model_validate(link)
        except IntegrityError:
            existing = self.get_share_link_for(recommendation_id)
            if existing is None:
                raise
            return existing

    def record_share_view(
        self, token: str, session: Optional[Session] = None
    ) -> Optional[tuple[ShareLinkResponse, RecommendationResponse]]:
        """Increment a link's view counter and return it with its recommendation."""

        def _record(s: Session) -> Optional[tuple[ShareLinkResponse, RecommendationResponse]]:
            result = s.execute(
                update(ShareLink)
                .where(ShareLink.share_token == token)
                .values(view_count=ShareLink.view_count + 1, last_viewed_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return None

            link = s.execute(
                select(ShareLink).where(ShareLink.share_token == token)
            ).scalar_one()
            s.refresh(link)
            return (
                ShareLinkResponse.model_validate(link),
                RecommendationResponse.model_validate(link.recommendation),
            )

        if session:
            return _record(session)
        with self.get_session() as s:
            return _record(s)

    def mark_share_accepted(
        self, share_link_id: str, user_id: str, session: Optional[Session] = None
    ) -> None:
        """Stamp the acceptor on a share link."""

        def _mark(s: Session) -> None:
            link = s.get(ShareLink, share_link_id)
            if link:
                link.accepted_at = utcnow()
                link.accepted_by = user_id

        if session:
            _mark(session)
        else:
            with self.get_session() as s:
                _mark(s)

    # ========================================================================
    # Received Recommendation Operations
    # ========================================================================

    def list_received(
        self,
        recipient_id: str,
        status: Optional[ReceivedStatus] = None,
        session: Optional[Session] = None,
    ) -> list[ReceivedRecommendationResponse]:
        """Get a recipient's inbox, newest first."""

        def _list(s: Session) -> list[ReceivedRecommendationResponse]:
            stmt = select(ReceivedRecommendation).where(
                ReceivedRecommendation.recipient_id == recipient_id
            )
            if status is not None:
                stmt = stmt.where(ReceivedRecommendation.status == status.value)
            stmt = stmt.order_by(ReceivedRecommendation.received_at.desc())
            return [
                ReceivedRecommendationResponse.model_validate(r) for r in s.execute(stmt).scalars()
            ]

        if session:
            return _list(session)
        with self.get_session() as s:
            return _list(s)

    def get_received(
        self, received_id: str, session: Optional[Session] = None
    ) -> Optional[ReceivedRecommendationResponse]:
        """Get an inbox entry by ID."""

        def _get(s: Session) -> Optional[ReceivedRecommendationResponse]:
            rec = s.get(ReceivedRecommendation, received_id)
            return ReceivedRecommendationResponse.model_validate(rec) if rec else None

        if session:
            return _get(session)
        with self.get_session() as s:
            return _get(s)

    def get_or_create_received(
        self,
        recipient_id: str,
        link: ShareLinkResponse,
        rec: RecommendationResponse,
        session: Optional[Session] = None,
    ) -> ReceivedRecommendationResponse:
        """Create a pending inbox entry for a recipient, once per share link."""

        def _get_or_create(s: Session) -> ReceivedRecommendationResponse:
            stmt = select(ReceivedRecommendation).where(
                ReceivedRecommendation.recipient_id == recipient_id,
                ReceivedRecommendation.share_link_id == link.id,
            )
            existing = s.execute(stmt).scalar_one_or_none()
            if existing:
                return ReceivedRecommendationResponse.model_validate(existing)

            received = ReceivedRecommendation(
                recipient_id=recipient_id,
                share_link_id=link.id,
                recommender_name=link.recommender_name,
                title=rec.title,
                author=rec.author,
                isbn=rec.isbn,
                description=rec.description,
                note=rec.note,
                status=ReceivedStatus.PENDING.value,
            )
            s.add(received)
            s.flush()
            return ReceivedRecommendationResponse.model_validate(received)

        if session:
            return _get_or_create(session)
        with self.get_session() as s:
            return _get_or_create(s)

    def update_received_status(
        self, received_id: str, status: ReceivedStatus, session: Optional[Session] = None
    ) -> Optional[ReceivedRecommendationResponse]:
        """Set an inbox entry's status and stamp the matching timestamp."""

        def _update(s: Session) -> Optional[ReceivedRecommendationResponse]:
            rec = s.get(ReceivedRecommendation, received_id)
            if not rec:
                return None
            rec.status = status.value
            stamp = {
                ReceivedStatus.ACCEPTED: "accepted_at",
                ReceivedStatus.DECLINED: "declined_at",
                ReceivedStatus.ARCHIVED: "archived_at",
            }.get(status)
            if stamp:
                setattr(rec, stamp, utcnow())
            s.flush()
            return ReceivedRecommendationResponse.model_validate(rec)

        if session:
            return _update(session)
        with self.get_session() as s:
            return _update(s)

    def delete_received(self, received_id: str, session: Optional[Session] = None) -> bool:
        """Delete an inbox entry."""

        def _delete(s: Session) -> bool:
            rec = s.get(ReceivedRecommendation, received_id)
            if not rec:
                return False
            s.delete(rec)
            return True

        if session:
            return _delete(session)
        with self.get_session() as s:
            return _delete(s)

    # ========================================================================
    # Rejection Log Operations
    # ========================================================================

    def add_dismissed(
        self, user_id: str, title: str, author: str, session: Optional[Session] = None
    ) -> RejectionSignal:
        """Append a rejection signal."""

        def _add(s: Session) -> RejectionSignal:
            signal = DismissedRecommendation(user_id=user_id, title=title, author=author or "")
            s.add(signal)
            s.flush()
            return RejectionSignal.model_validate(signal)

        if session:
            return _add(session)
        with self.get_session() as s:
            return _add(s)

    def list_dismissed(self, user_id: str, session: Optional[Session] = None) -> list[RejectionSignal]:
        """Get a user's rejection signals, oldest first."""

        def _list(s: Session) -> list[RejectionSignal]:
            stmt = (
                select(DismissedRecommendation)
                .where(DismissedRecommendation.user_id == user_id)
                .order_by(DismissedRecommendation.created_at)
            )
            return [RejectionSignal.model_validate(d) for d in s.execute(stmt).scalars()]

        if session:
            return _list(session)
        with self.get_session() as s:
            return _list(s)


# Global database instance
_db: Optional[Database] = None


def get_db(db_path: Optional[str] = None) -> Database:
    """Get or create the global database instance."""
    global _db
    if _db is None:
        _db = Database(db_path)
        _db.create_tables()
    return _db


def reset_db() -> None:
    """Reset the global database instance. Used for testing."""
    global _db
    _db = None
