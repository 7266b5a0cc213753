"""Reaction accounting and its side effects on post lifetime."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from hyperlocal.core.errors import PolicyRejection
from hyperlocal.core.settings import settings
from hyperlocal.db.session import commit_or_conflict
from hyperlocal.db.time import utcnow
from hyperlocal.models.post import Post
from hyperlocal.models.reaction import PostReaction, ReactionType
from hyperlocal.models.user import User
from hyperlocal.services.broadcast import Broadcaster, BroadcastEvent, NullBroadcaster
from hyperlocal.services.lifecycle import LifecycleEvent, transition
from hyperlocal.services.posts import load_post_for_update, require_active
from hyperlocal.services.proximity import ProximityIndex
from hyperlocal.services.trust import TrustGate

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


@dataclass(frozen=True)
class ReactionOutcome:
    post_id: str
    reaction: ReactionType
    counters: dict[str, int]
    ttl_extended: bool
    auto_removed: bool = False


def upsert_reaction(db: Session, post_id: str, user_id: str, reaction: ReactionType, now: datetime) -> None:
    """Insert-or-overwrite the (post, user) reaction in one statement."""
    insert = _UPSERT_DIALECTS[db.get_bind().dialect.name]
    stmt = insert(PostReaction).values(
        post_id=post_id, user_id=user_id, reaction=reaction, created_at=now
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[PostReaction.post_id, PostReaction.user_id],
        set_={"reaction": stmt.excluded.reaction, "created_at": stmt.excluded.created_at},
    )
    db.execute(stmt)


class ReactionAggregator:
    """Applies one user's reaction to a post inside a single transaction.

    The post row is locked (and version-checked) before the active guard is
    evaluated, so a post that expires concurrently rejects the reaction
    instead of silently counting it.
    """

    def __init__(
        self,
        db: Session,
        *,
        trust_gate: TrustGate | None = None,
        broadcaster: Broadcaster | None = None,
    ) -> None:
        self.db = db
        self.trust_gate = trust_gate or TrustGate()
        self.broadcaster = broadcaster or NullBroadcaster()
        self.index = ProximityIndex(db)
        self.confirm_window = timedelta(minutes=settings.confirm_extension_window_minutes)
        self.confirm_extension = timedelta(minutes=settings.confirm_extension_minutes)

    def apply(
        self,
        post_id: str,
        user: User,
        reaction: ReactionType,
        *,
        now: datetime | None = None,
    ) -> ReactionOutcome:
        """Record ``user``'s reaction and apply its side effects.

        Re-reacting moves the user's single contribution from the previous
        counter to the new one. Only a transition *into* ``confirm`` can
        extend the TTL; repeating a confirm does not.

        Raises:
            NotFound: If the post does not exist or is not active.
            PolicyRejection: ``SELF_REACTION`` when the author reacts.
            Conflict: If the post changed underneath the transaction.
        """
        now = now or utcnow()
        post = load_post_for_update(self.db, post_id)
        require_active(post)
        if post.author_id == user.id:
            raise PolicyRejection("Cannot react to your own post", code="SELF_REACTION")

        previous = self.db.execute(
            select(PostReaction.reaction).where(
                PostReaction.post_id == post.id, PostReaction.user_id == user.id
            )
        ).scalar_one_or_none()

        upsert_reaction(self.db, post.id, user.id, reaction, now)

        if previous is not reaction:
            if previous is not None:
                attr = previous.counter_attr
                setattr(post, attr, max(0, getattr(post, attr) - 1))
            setattr(post, reaction.counter_attr, getattr(post, reaction.counter_attr) + 1)
            post.updated_at = now

        ttl_extended = False
        if (
            reaction is ReactionType.CONFIRM
            and previous is not ReactionType.CONFIRM
            and self.trust_gate.can_extend_via_confirm(user.trust_score)
            and post.expires_at - now < self.confirm_window
        ):
            post.expires_at = post.expires_at + self.confirm_extension
            ttl_extended = True

        auto_removed = False
        if reaction is ReactionType.NO_LONGER_VALID:
            invalid_count = self.db.execute(
                select(func.count())
                .select_from(PostReaction)
                .where(
                    PostReaction.post_id == post.id,
                    PostReaction.reaction == ReactionType.NO_LONGER_VALID,
                )
            ).scalar_one()
            if invalid_count >= settings.auto_remove_reaction_threshold:
                transition(post, LifecycleEvent.INVALID_THRESHOLD, now=now)
                self.index.remove_from_active(post.id)
                auto_removed = True

        counters = post.reaction_counts()
        commit_or_conflict(self.db, context="applying reaction")

        self.broadcaster.publish(
            BroadcastEvent.POST_UPDATED, {"post_id": post.id, "reactions": counters}
        )
        if auto_removed:
            self.broadcaster.publish(BroadcastEvent.POST_EXPIRED, {"post_id": post.id})
            logger.info("Post %s auto-removed after %d invalid reactions", post.id, invalid_count)
        if ttl_extended:
            logger.info("Confirm from %s extended post %s to %s", user.id, post.id, post.expires_at)
        return ReactionOutcome(
            post_id=post.id,
            reaction=reaction,
            counters=counters,
            ttl_extended=ttl_extended,
            auto_removed=auto_removed,
        )
