"""Pydantic schemas for data validation.

These schemas describe reading-list entries, collection items,
recommendations and the records of the sharing workflow. Stores hold
response schemas in memory; create/update schemas validate input before
anything reaches the database.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class EntryStatus(str, Enum):
    """Reading-list lifecycle status."""

    WANT_TO_READ = "want_to_read"
    READING = "reading"
    FINISHED = "finished"
    ALREADY_READ = "already_read"  # Bulk-imported finished books


class ReceivedStatus(str, Enum):
    """Status of a recommendation received through a share link."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    ARCHIVED = "archived"


class CollectionSource(str, Enum):
    """How a book entered the collection."""

    MANUAL = "manual"
    QUEUE = "queue"
    IMPORT = "import"
    RECOMMENDATION = "recommendation"


def clean_isbn(value: Optional[str]) -> Optional[str]:
    """Normalize an ISBN (strip spreadsheet ="" wrapper, hyphens, spaces)."""
    if value is None:
        return None
    value = str(value).strip()
    if value.startswith('="') and value.endswith('"'):
        value = value[2:-1]
    value = value.strip('"').strip("'").replace("-", "").replace(" ", "")
    return value or None


def merge_key(title: str, author: Optional[str]) -> tuple[str, str]:
    """De-duplication key shared by queue entries and collection items."""
    return ((title or "").strip().lower(), (author or "").strip().lower())


# ============================================================================
# Book Payloads
# ============================================================================


class BookPayload(BaseModel):
    """Book identity plus optional enrichment, as passed to ``add``."""

    title: str = Field(..., description="Book title")
    author: str = Field(default="", description="Primary author")
    isbn: Optional[str] = Field(None, max_length=13)
    description: Optional[str] = None
    reputation: Optional[str] = Field(None, description="Accolades / reputation text")
    status: EntryStatus = EntryStatus.WANT_TO_READ
    rating: Optional[int] = Field(None, ge=1, le=5)
    owned: bool = False

    @field_validator("title", mode="before")
    @classmethod
    def require_title(cls, v) -> str:
        """Reject blank titles."""
        v = str(v or "").strip()
        if not v:
            raise ValueError("Title is required")
        return v

    @field_validator("author", mode="before")
    @classmethod
    def strip_author(cls, v) -> str:
        return str(v or "").strip()

    @field_validator("isbn", mode="before")
    @classmethod
    def normalize_isbn(cls, v: Optional[str]) -> Optional[str]:
        return clean_isbn(v)


class EntryUpdate(BaseModel):
    """Scalar updates to an entry. Status changes go through the engine."""

    rating: Optional[int] = Field(None, ge=1, le=5)
    owned: Optional[bool] = None
    is_active: Optional[bool] = None
    description: Optional[str] = None
    reputation: Optional[str] = None
    isbn: Optional[str] = Field(None, max_length=13)

    @field_validator("isbn", mode="before")
    @classmethod
    def normalize_isbn(cls, v: Optional[str]) -> Optional[str]:
        return clean_isbn(v)


class ReadingListEntry(BaseModel):
    """A reading-list entry as held by the store."""

    id: str
    user_id: str
    title: str
    author: str = ""
    isbn: Optional[str] = None
    status: EntryStatus = EntryStatus.WANT_TO_READ
    added_at: datetime
    rating: Optional[int] = None
    description: Optional[str] = None
    reputation: Optional[str] = None
    owned: bool = False
    is_active: bool = True
    finished_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @property
    def is_temporary(self) -> bool:
        """True while the entry only exists as an optimistic placeholder."""
        return self.id.startswith("temp-")

    @property
    def is_on_hold(self) -> bool:
        return self.status == EntryStatus.READING and not self.is_active

    @property
    def key(self) -> tuple[str, str]:
        return merge_key(self.title, self.author)


# ============================================================================
# Collection Schemas
# ============================================================================


class UserBookCreate(BaseModel):
    """Schema for adding a book to the collection."""

    title: str
    author: str = ""
    isbn: Optional[str] = Field(None, max_length=13)
    rating: Optional[int] = Field(None, ge=1, le=5)
    review: Optional[str] = None
    cover_image_url: Optional[str] = None
    added_via: CollectionSource = CollectionSource.MANUAL

    @field_validator("title", mode="before")
    @classmethod
    def require_title(cls, v) -> str:
        v = str(v or "").strip()
        if not v:
            raise ValueError("Title is required")
        return v

    @field_validator("author", mode="before")
    @classmethod
    def strip_author(cls, v) -> str:
        return str(v or "").strip()

    @field_validator("isbn", mode="before")
    @classmethod
    def normalize_isbn(cls, v: Optional[str]) -> Optional[str]:
        return clean_isbn(v)


class UserBookUpdate(BaseModel):
    """Schema for updating a collection item. All fields optional."""

    rating: Optional[int] = Field(None, ge=1, le=5)
    review: Optional[str] = None
    isbn: Optional[str] = None
    cover_image_url: Optional[str] = None


class UserBook(BaseModel):
    """A collection item as held by the store."""

    id: str
    user_id: str
    title: str
    author: str = ""
    isbn: Optional[str] = None
    rating: Optional[int] = None
    review: Optional[str] = None
    cover_image_url: Optional[str] = None
    added_via: CollectionSource = CollectionSource.MANUAL
    added_at: datetime

    model_config = {"from_attributes": True}

    @property
    def key(self) -> tuple[str, str]:
        return merge_key(self.title, self.author)


# ============================================================================
# Recommendation Schemas
# ============================================================================


class RecommendationCreate(BaseModel):
    """Schema for authoring a recommendation."""

    title: str
    author: str = ""
    isbn: Optional[str] = Field(None, max_length=13)
    description: Optional[str] = None
    note: Optional[str] = None

    @field_validator("title", mode="before")
    @classmethod
    def require_title(cls, v) -> str:
        v = str(v or "").strip()
        if not v:
            raise ValueError("Title is required")
        return v

    @field_validator("note", mode="before")
    @classmethod
    def strip_note(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("isbn", mode="before")
    @classmethod
    def normalize_isbn(cls, v: Optional[str]) -> Optional[str]:
        return clean_isbn(v)


class ShareLinkResponse(BaseModel):
    """A share link record."""

    id: str
    recommendation_id: str
    share_token: str
    recommender_name: str
    view_count: int = 0
    last_viewed_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    accepted_by: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class RecommendationResponse(BaseModel):
    """A recommendation with its share link, if one was issued."""

    id: str
    user_id: str
    title: str
    author: str = ""
    isbn: Optional[str] = None
    description: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime
    share_link: Optional[ShareLinkResponse] = None

    model_config = {"from_attributes": True}

    @property
    def view_count(self) -> int:
        return self.share_link.view_count if self.share_link else 0


class ShareLinkInfo(BaseModel):
    """Token and public URL handed back to the recommender."""

    token: str
    url: str
    recommendation_id: str
    view_count: int = 0


class RecommendationView(BaseModel):
    """Public view of a shared recommendation, visible to any visitor."""

    token: str
    recommendation_id: str
    recommender_name: str
    title: str
    author: str = ""
    isbn: Optional[str] = None
    description: Optional[str] = None
    note: Optional[str] = None
    view_count: int
    is_owner: bool = False
    received_id: Optional[str] = None

    def to_book_payload(self) -> BookPayload:
        """Book fields to add to a reading list on acceptance."""
        return BookPayload(
            title=self.title,
            author=self.author,
            isbn=self.isbn,
            description=self.description,
        )


class ReceivedRecommendationResponse(BaseModel):
    """A recommendation in a recipient's inbox."""

    id: str
    recipient_id: str
    share_link_id: str
    recommender_name: Optional[str] = None
    title: str
    author: str = ""
    isbn: Optional[str] = None
    description: Optional[str] = None
    note: Optional[str] = None
    status: ReceivedStatus = ReceivedStatus.PENDING
    received_at: datetime
    accepted_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    def to_book_payload(self) -> BookPayload:
        return BookPayload(
            title=self.title,
            author=self.author,
            isbn=self.isbn,
            description=self.description,
        )


class ReceivedCounts(BaseModel):
    """Inbox badge counts."""

    pending: int = 0
    accepted: int = 0
    declined: int = 0
    archived: int = 0
    total: int = 0


# ============================================================================
# Rejection Schemas
# ============================================================================


class RejectionSignal(BaseModel):
    """A dismissed book. Append-only negative signal."""

    id: str
    user_id: str
    title: str
    author: str = ""
    created_at: datetime

    model_config = {"from_attributes": True}
