"""ORM models for accounts and the content store.

Posts own their likes and comments: both live in child tables that are only
mutated through the collection methods on ``Post``. Comment and like author
ids are plain references (no foreign key to ``users``); the cascade engine is
what severs them when an account goes away.
"""

from __future__ import annotations

import posixpath
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    false,
)
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import Mapped, mapped_column, relationship

from uconnect.db.base import Base

ROLE_USER = "user"
ROLE_ADMIN = "admin"

CATEGORIES = ("academics", "campus event", "sports", "clubs")
DEFAULT_CATEGORY = "academics"


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class User(Base):
    """Maps to the 'users' table."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    avatar: Mapped[str] = mapped_column(Text, default="", server_default="")
    role: Mapped[str] = mapped_column(String(16), default=ROLE_USER, server_default=ROLE_USER)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    # --- Verification ---
    verified: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false())
    email_verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    email_verify_token_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    email_verify_token_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def has_pending_verification(self) -> bool:
        return self.email_verify_token_hash is not None


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


class Post(Base):
    """A post with its owned likes and comments."""

    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    owner_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    content: Mapped[str] = mapped_column(Text, default="", server_default="")
    category: Mapped[str] = mapped_column(String(32), default=DEFAULT_CATEGORY, index=True)
    media_type: Mapped[str | None] = mapped_column(String(8), nullable=True)
    media_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)

    owner: Mapped[User] = relationship("User", lazy="joined")
    likes: Mapped[list[PostLike]] = relationship(
        "PostLike",
        back_populates="post",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    comments: Mapped[list[Comment]] = relationship(
        "Comment",
        back_populates="post",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Comment.position",
        collection_class=ordering_list("position"),
    )

    @property
    def media_filename(self) -> str | None:
        """Basename of the stored media file, if any."""
        if not self.media_url:
            return None
        return posixpath.basename(self.media_url) or None

    # --- Likes ---

    @property
    def like_count(self) -> int:
        return len(self.likes)

    def has_liked(self, account_id: str) -> bool:
        return any(like.account_id == account_id for like in self.likes)

    def toggle_like(self, account_id: str) -> bool:
        """Add or remove the account's like. Returns True if the post is now liked."""
        if self.remove_like(account_id):
            return False
        self.likes.append(PostLike(account_id=account_id))
        return True

    def remove_like(self, account_id: str) -> bool:
        """Remove the account from the liker set. Returns True if it was present."""
        for like in self.likes:
            if like.account_id == account_id:
                self.likes.remove(like)
                return True
        return False

    # --- Comments ---

    def add_comment(self, author_id: str, body: str) -> Comment:
        comment = Comment(id=_new_id(), author_id=author_id, body=body, created_at=_utcnow())
        self.comments.append(comment)
        return comment

    def get_comment(self, comment_id: str) -> Comment | None:
        return next((c for c in self.comments if c.id == comment_id), None)

    def remove_comment(self, comment_id: str) -> bool:
        comment = self.get_comment(comment_id)
        if comment is None:
            return False
        self.comments.remove(comment)
        return True

    def remove_comments_by(self, author_id: str) -> int:
        """Remove every comment written by ``author_id``. Returns the number removed."""
        doomed = [c for c in self.comments if c.author_id == author_id]
        for comment in doomed:
            self.comments.remove(comment)
        return len(doomed)


class PostLike(Base):
    """One account in a post's liker set."""

    __tablename__ = "post_likes"
    __table_args__ = (UniqueConstraint("post_id", "account_id", name="uq_post_likes_post_account"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[str] = mapped_column(String(36), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    account_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)

    post: Mapped[Post] = relationship("Post", back_populates="likes")


class Comment(Base):
    """A comment embedded in a post, addressable by its own id."""

    __tablename__ = "comments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    post_id: Mapped[str] = mapped_column(String(36), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    author_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    post: Mapped[Post] = relationship("Post", back_populates="comments")
    author: Mapped[User | None] = relationship(
        "User",
        primaryjoin="foreign(Comment.author_id) == User.id",
        lazy="selectin",
        viewonly=True,
    )
