"""Response schemas for post endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from uconnect.db.models import Comment, Post, User


class AuthorSummary(BaseModel):
    id: str
    name: str
    username: str
    avatar: str

    @classmethod
    def from_user(cls, user: User | None, fallback_id: str) -> AuthorSummary:
        if user is None:
            return cls(id=fallback_id, name="", username="", avatar="")
        return cls(id=user.id, name=user.name, username=user.username, avatar=user.avatar or "")


class MediaOut(BaseModel):
    type: str
    url: str


class PostOut(BaseModel):
    id: str
    owner: AuthorSummary
    content: str
    category: str
    media: MediaOut | None = None
    like_count: int
    liked_by_me: bool
    comment_count: int
    created_at: datetime

    @classmethod
    def from_post(cls, post: Post, viewer_id: str) -> PostOut:
        media = MediaOut(type=post.media_type or "image", url=post.media_url) if post.media_url else None
        return cls(
            id=post.id,
            owner=AuthorSummary.from_user(post.owner, post.owner_id),
            content=post.content,
            category=post.category,
            media=media,
            like_count=post.like_count,
            liked_by_me=post.has_liked(viewer_id),
            comment_count=len(post.comments),
            created_at=post.created_at,
        )


class CommentOut(BaseModel):
    id: str
    author: AuthorSummary
    body: str
    created_at: datetime

    @classmethod
    def from_comment(cls, comment: Comment) -> CommentOut:
        return cls(
            id=comment.id,
            author=AuthorSummary.from_user(comment.author, comment.author_id),
            body=comment.body,
            created_at=comment.created_at,
        )


class CommentCreateRequest(BaseModel):
    body: str = Field(..., max_length=2000)


class PostResponse(BaseModel):
    ok: bool = True
    post: PostOut


class FeedResponse(BaseModel):
    ok: bool = True
    posts: list[PostOut]


class LikeResponse(BaseModel):
    ok: bool = True
    likes: int
    liked: bool


class CommentCountResponse(BaseModel):
    ok: bool = True
    comments: int
    comment_id: str


class CommentListResponse(BaseModel):
    ok: bool = True
    comments: list[CommentOut]
