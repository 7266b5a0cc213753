# src/hyperlocal/api/v1/endpoints/posts.py
"""Post endpoints for the Hyperlocal API."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Query, status
from sqlalchemy import select

from hyperlocal.api.v1.dependencies import (
    BroadcasterDep,
    CurrentUserDep,
    OptionalUserDep,
    PostServiceDep,
    SessionDep,
)
from hyperlocal.core.categories import CategorySnapshot, get_category_snapshot
from hyperlocal.core.errors import InvalidInput, NotFound
from hyperlocal.models.post import Post, PostCategory, PostStatus
from hyperlocal.models.user import MODERATOR_ROLES, User
from hyperlocal.schemas.common import Location
from hyperlocal.schemas.post import (
    AuthorSummary,
    DeleteResponse,
    DuplicateCheck,
    ExtensionResponse,
    NearbyPost,
    NearbyResponse,
    PostCreate,
    PostCreateResponse,
    PostResponse,
    ReactionCounts,
    ReactionCreate,
    ReactionResponse,
    ReportCreate,
    ReportResponse,
)
from hyperlocal.services.extension import extend_post
from hyperlocal.services.proximity import SortOrder
from hyperlocal.services.reactions import ReactionAggregator
from hyperlocal.services.reports import report_post
from hyperlocal.services.trust import TrustGate

router = APIRouter(prefix="/posts", tags=["posts"])


def _parse_categories(raw: str | None) -> list[PostCategory] | None:
    if not raw:
        return None
    try:
        return [PostCategory(part.strip()) for part in raw.split(",") if part.strip()]
    except ValueError as err:
        raise InvalidInput(f"Unknown category in {raw!r}", code="INVALID_CATEGORY") from err


def _can_extend(post: Post, snapshot: CategorySnapshot) -> bool:
    try:
        config = snapshot.get(post.category)
    except InvalidInput:
        return False
    return config.extensions_enabled and post.extensions_used < config.max_extensions


def _post_response(post: Post) -> PostResponse:
    return PostResponse(
        id=post.id,
        category=post.category.value,
        content=post.content,
        photo_url=post.photo_url,
        location=Location(lat=post.lat, lng=post.lng),
        status=post.status.value,
        moderation_status=post.moderation_status.value,
        reactions=ReactionCounts(**post.reaction_counts()),
        expires_at=post.expires_at,
        extensions_used=post.extensions_used,
        created_at=post.created_at,
    )


@router.get("/nearby", response_model=NearbyResponse)
def get_nearby_posts(
    service: PostServiceDep,
    db: SessionDep,
    viewer: OptionalUserDep,
    lat: float = Query(...),
    lng: float = Query(...),
    radius_km: float | None = Query(None),
    categories: str | None = Query(None, description="Comma-separated category slugs"),
    since: datetime | None = Query(None),
    sort: SortOrder = Query(SortOrder.NEAREST),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> NearbyResponse:
    """Active posts around a point, nearest first by default."""
    feed = service.nearby(
        lat,
        lng,
        radius_km=radius_km,
        categories=_parse_categories(categories),
        since=since,
        sort=sort,
        limit=limit,
        offset=offset,
        viewer_id=viewer.id if viewer is not None else None,
    )

    author_ids = {item.post.author_id for item in feed.page.items}
    authors: dict[str, User] = {}
    if author_ids:
        authors = {
            user.id: user
            for user in db.execute(select(User).where(User.id.in_(author_ids))).scalars()
        }

    snapshot = service.snapshot
    posts = []
    for item in feed.page.items:
        post = item.post
        author = authors.get(post.author_id)
        posts.append(
            NearbyPost(
                id=post.id,
                category=post.category.value,
                content=post.content,
                photo_url=post.photo_url,
                location=Location(lat=post.lat, lng=post.lng),
                distance_meters=round(item.distance_meters),
                author=AuthorSummary(
                    id=post.author_id,
                    display_name=(author.display_name if author else None) or "Neighbor",
                    trust_tier=TrustGate.tier_for_score(author.trust_score if author else 0).value,
                ),
                reactions=ReactionCounts(**post.reaction_counts()),
                user_reaction=feed.viewer_reactions.get(post.id),
                is_duplicate=post.duplicate_score >= 0.5,
                can_extend=_can_extend(post, snapshot),
                expires_at=post.expires_at,
                created_at=post.created_at,
            )
        )
    return NearbyResponse(posts=posts, total=feed.page.total, has_more=feed.has_more)


@router.post("/", response_model=PostCreateResponse, status_code=status.HTTP_201_CREATED)
def create_post(
    payload: PostCreate,
    current_user: CurrentUserDep,
    service: PostServiceDep,
) -> PostCreateResponse:
    """Submit a new post. The stored location is always fuzzed."""
    result = service.submit(
        current_user,
        content=payload.content,
        lat=payload.lat,
        lng=payload.lng,
        category=payload.category,
        photo_url=payload.photo_url,
    )
    post = result.post
    base = _post_response(post)
    return PostCreateResponse(
        **base.model_dump(),
        fuzz_radius_used=post.fuzz_radius_used,
        duplicate_check=DuplicateCheck(
            score=post.duplicate_score,
            status=result.duplicate_status,
            similar_post_id=post.linked_post_id,
        ),
    )


@router.get("/{post_id}", response_model=PostResponse)
def get_post(
    post_id: str,
    service: PostServiceDep,
    viewer: OptionalUserDep,
) -> PostResponse:
    """Fetch one post. Non-active posts are visible only to their author and moderators."""
    post = service.get(post_id)
    is_author = viewer is not None and viewer.id == post.author_id
    is_moderator = viewer is not None and viewer.role in MODERATOR_ROLES
    if post.status is not PostStatus.ACTIVE and not (is_author or is_moderator):
        raise NotFound("Post not found", code="POST_NOT_FOUND")

    if post.status is PostStatus.ACTIVE and not is_author:
        service.record_view(post.id)
        service.db.refresh(post)
    return _post_response(post)


@router.post("/{post_id}/react", response_model=ReactionResponse)
def react_to_post(
    post_id: str,
    payload: ReactionCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    broadcaster: BroadcasterDep,
) -> ReactionResponse:
    outcome = ReactionAggregator(db, broadcaster=broadcaster).apply(
        post_id, current_user, payload.reaction
    )
    return ReactionResponse(
        post_id=outcome.post_id,
        reaction=outcome.reaction,
        new_reaction_counts=ReactionCounts(**outcome.counters),
        ttl_extended=outcome.ttl_extended,
    )


@router.post("/{post_id}/extend", response_model=ExtensionResponse)
def extend(
    post_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    broadcaster: BroadcasterDep,
) -> ExtensionResponse:
    """Extend a post's lifetime near the end of its TTL (author only)."""
    result = extend_post(
        db, post_id, current_user, snapshot=get_category_snapshot(db), broadcaster=broadcaster
    )
    return ExtensionResponse(
        post_id=result.post_id,
        previous_expires_at=result.previous_expires_at,
        new_expires_at=result.new_expires_at,
        extensions_remaining=result.extensions_remaining,
    )


@router.post("/{post_id}/report", response_model=ReportResponse)
def report(
    post_id: str,
    payload: ReportCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    broadcaster: BroadcasterDep,
) -> ReportResponse:
    outcome = report_post(
        db, post_id, current_user, payload.reason, payload.details, broadcaster=broadcaster
    )
    return ReportResponse(report_count=outcome.report_count, auto_removed=outcome.auto_removed)


@router.delete("/{post_id}", response_model=DeleteResponse)
def delete_post(
    post_id: str,
    current_user: CurrentUserDep,
    service: PostServiceDep,
) -> DeleteResponse:
    service.delete_by_author(post_id, current_user)
    return DeleteResponse()
