"""Community feed posts, likes and comments."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from strive.db.models import CommunityPost, PostComment, PostLike, User

logger = structlog.get_logger()


class PostNotFoundError(LookupError):
    pass


class CommentNotFoundError(LookupError):
    pass


async def create_post(
    db: AsyncSession,
    user_id: int,
    content: str,
    image_url: str | None = None,
) -> CommunityPost:
    post = CommunityPost(
        user_id=user_id,
        content=content,
        image_url=image_url,
        likes_count=0,
        created_at=datetime.now(timezone.utc),
    )
    db.add(post)
    await db.flush()
    logger.info("post_created", user_id=user_id, post_id=post.id)
    return post


async def list_posts(
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
    user_id: int | None = None,
) -> tuple[list[CommunityPost], int]:
    """Newest posts first, optionally for one author."""
    conditions = [] if user_id is None else [CommunityPost.user_id == user_id]

    total = (
        await db.execute(select(func.count()).select_from(CommunityPost).where(*conditions))
    ).scalar_one()
    result = await db.execute(
        select(CommunityPost)
        .where(*conditions)
        .order_by(CommunityPost.created_at.desc(), CommunityPost.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().unique().all()), total


async def get_post(db: AsyncSession, post_id: int) -> CommunityPost:
    post = await db.get(CommunityPost, post_id)
    if post is None:
        msg = "Post not found"
        raise PostNotFoundError(msg)
    return post


async def liked_post_ids(db: AsyncSession, user_id: int, post_ids: list[int]) -> set[int]:
    """Which of ``post_ids`` the user has liked."""
    if not post_ids:
        return set()
    result = await db.execute(
        select(PostLike.post_id).where(PostLike.user_id == user_id, PostLike.post_id.in_(post_ids))
    )
    return set(result.scalars().all())


async def toggle_like(db: AsyncSession, post_id: int, user_id: int) -> tuple[bool, int]:
    """
    Like the post, or unlike it if already liked.

    likes_count moves by a relative update in the same transaction as the
    like row. Returns (liked, likes_count).
    """
    await get_post(db, post_id)

    existing = await db.execute(
        select(PostLike).where(PostLike.user_id == user_id, PostLike.post_id == post_id)
    )
    like = existing.scalar_one_or_none()
    if like is None:
        db.add(PostLike(user_id=user_id, post_id=post_id, created_at=datetime.now(timezone.utc)))
        delta = 1
    else:
        await db.delete(like)
        delta = -1
    await db.flush()

    result = await db.execute(
        update(CommunityPost)
        .where(CommunityPost.id == post_id)
        .values(likes_count=CommunityPost.likes_count + delta)
        .returning(CommunityPost.likes_count)
    )
    likes_count = result.scalar_one()
    logger.info("post_like_toggled", user_id=user_id, post_id=post_id, liked=delta > 0)
    return delta > 0, likes_count


async def add_comment(db: AsyncSession, post_id: int, author: User, content: str) -> PostComment:
    await get_post(db, post_id)
    comment = PostComment(
        user_id=author.id,
        post_id=post_id,
        content=content,
        created_at=datetime.now(timezone.utc),
    )
    comment.author = author
    db.add(comment)
    await db.flush()
    logger.info("comment_added", user_id=author.id, post_id=post_id, comment_id=comment.id)
    return comment


async def list_comments(db: AsyncSession, post_id: int) -> list[PostComment]:
    """Oldest first, conversation order."""
    result = await db.execute(
        select(PostComment)
        .where(PostComment.post_id == post_id)
        .order_by(PostComment.created_at, PostComment.id)
    )
    return list(result.scalars().unique().all())


async def delete_post(db: AsyncSession, post_id: int, user_id: int) -> None:
    """Delete your own post with its likes and comments. XP earned for it stays."""
    post = await db.get(CommunityPost, post_id)
    if post is None or post.user_id != user_id:
        msg = "Post not found or you are not authorized to delete it"
        raise PostNotFoundError(msg)

    await db.execute(delete(PostLike).where(PostLike.post_id == post_id))
    await db.execute(delete(PostComment).where(PostComment.post_id == post_id))
    await db.delete(post)
    await db.flush()
    logger.info("post_deleted", user_id=user_id, post_id=post_id)


async def delete_comment(db: AsyncSession, comment_id: int, user_id: int) -> None:
    comment = await db.get(PostComment, comment_id)
    if comment is None or comment.user_id != user_id:
        msg = "Comment not found or you are not authorized to delete it"
        raise CommentNotFoundError(msg)
    await db.delete(comment)
    await db.flush()
