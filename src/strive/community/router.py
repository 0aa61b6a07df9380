"""Community router: feed, posts, likes and comments."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from strive.auth.dependencies import get_current_user, get_optional_user
from strive.community.service import (
    CommentNotFoundError,
    PostNotFoundError,
    add_comment,
    create_post,
    delete_comment,
    delete_post,
    get_post,
    liked_post_ids,
    list_comments,
    list_posts,
    toggle_like,
)
from strive.database import get_session
from strive.db.models import CommunityPost, PostComment, User
from strive.pagination import PageParams, PaginationMeta, page_params
from strive.progression.sources import COMMUNITY_POST_XP, XPSource
from strive.progression.streak_service import touch_streak
from strive.progression.xp_service import award_xp
from strive.redis_client import get_optional_redis

router = APIRouter(prefix="/api/v1/community", tags=["Community"])


class CreatePostRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)
    image_url: str | None = Field(None, max_length=2048)


class PostResponse(BaseModel):
    id: int
    content: str
    image_url: str | None
    likes_count: int
    created_at: datetime
    user_id: int
    user_name: str
    user_title: str
    is_liked: bool = False


class CreatePostResponse(PostResponse):
    xp_earned: int
    streak_count: int


class PostListResponse(BaseModel):
    posts: list[PostResponse]
    pagination: PaginationMeta


class CommentRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)


class CommentResponse(BaseModel):
    id: int
    content: str
    created_at: datetime
    user_id: int
    user_name: str
    user_title: str


class PostDetailResponse(PostResponse):
    comments: list[CommentResponse]


class LikeResponse(BaseModel):
    liked: bool
    likes_count: int


def _post_fields(post: CommunityPost, author: User) -> dict[str, object]:
    return {
        "id": post.id,
        "content": post.content,
        "image_url": post.image_url,
        "likes_count": post.likes_count,
        "created_at": post.created_at,
        "user_id": author.id,
        "user_name": author.name,
        "user_title": author.title,
    }


def _comment(comment: PostComment) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        content=comment.content,
        created_at=comment.created_at,
        user_id=comment.author.id,
        user_name=comment.author.name,
        user_title=comment.author.title,
    )


@router.get("/posts", response_model=PostListResponse)
async def get_posts(
    params: PageParams = Depends(page_params),
    user_id: int | None = Query(None),
    viewer: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_session),
) -> PostListResponse:
    """Community feed, newest first. ?user_id= narrows it to one author."""
    posts, total = await list_posts(db, page=params.page, limit=params.limit, user_id=user_id)
    liked = set() if viewer is None else await liked_post_ids(db, viewer.id, [p.id for p in posts])
    return PostListResponse(
        posts=[
            PostResponse(**_post_fields(p, p.author), is_liked=p.id in liked)  # type: ignore[arg-type]
            for p in posts
        ],
        pagination=PaginationMeta.build(params, total),
    )


@router.post("/posts", response_model=CreatePostResponse, status_code=201)
async def new_post(
    body: CreatePostRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_optional_redis),
) -> CreatePostResponse:
    """Publish a post; awards flat XP and counts toward the streak."""
    post = await create_post(db, user.id, body.content, body.image_url)
    await db.commit()

    await award_xp(db, user.id, COMMUNITY_POST_XP, XPSource.COMMUNITY_POST, post.id, redis=redis)
    streak = await touch_streak(db, user.id, redis=redis)
    await db.refresh(user)

    return CreatePostResponse(
        **_post_fields(post, user),  # type: ignore[arg-type]
        xp_earned=COMMUNITY_POST_XP,
        streak_count=streak.streak_count,
    )


@router.get("/posts/{post_id}", response_model=PostDetailResponse)
async def get_post_detail(
    post_id: int,
    viewer: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_session),
) -> PostDetailResponse:
    """One post with its comments, oldest comment first."""
    try:
        post = await get_post(db, post_id)
    except PostNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    liked = viewer is not None and post.id in await liked_post_ids(db, viewer.id, [post.id])
    return PostDetailResponse(
        **_post_fields(post, post.author),  # type: ignore[arg-type]
        is_liked=liked,
        comments=[_comment(c) for c in await list_comments(db, post.id)],
    )


@router.post("/posts/{post_id}/like", response_model=LikeResponse)
async def like_post(
    post_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> LikeResponse:
    """Toggle your like on a post."""
    try:
        liked, likes_count = await toggle_like(db, post_id, user.id)
    except PostNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
    return LikeResponse(liked=liked, likes_count=likes_count)


@router.post("/posts/{post_id}/comments", response_model=CommentResponse, status_code=201)
async def comment_on_post(
    post_id: int,
    body: CommentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> CommentResponse:
    try:
        comment = await add_comment(db, post_id, user, body.content)
    except PostNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
    return _comment(comment)


@router.delete("/posts/{post_id}", status_code=204)
async def remove_post(
    post_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> None:
    """Delete your own post. XP earned for it is kept."""
    try:
        await delete_post(db, post_id, user.id)
    except PostNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()


@router.delete("/comments/{comment_id}", status_code=204)
async def remove_comment(
    comment_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> None:
    try:
        await delete_comment(db, comment_id, user.id)
    except CommentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
