"""
Engagement state: ledger-gated likes and follows, local-only bookmarks.

Each (wallet, target) pair runs independent state machines:

- like (post) and follow (profile owner): neutral <-> marked, moved only by a
  confirmed ledger write. The local mark changes after confirmation, never
  before, and a second toggle while a write is in flight is refused.
- bookmark (post): neutral <-> bookmarked, purely local, never touches the
  ledger.

Displayed counts always come from the ledger records; the local sets only
answer "did this wallet like / follow it".
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Tuple, Union

from sqlalchemy.orm import Session

from config import BlocksConfig, settings
from database import SessionLocal
from domain_cache import DomainCache
from errors import EngagementRejected, NotFound, WriteInFlight, WriteRejected
from instructions import Instruction, TransactionSubmitter, follow_instruction, like_instruction
from models import EngagementRecord
from pubkeys import short_key
from ratings import in_kill_zone, post_rating_from_likes
from schemas import EngagementView, Post
from telemetry import append_ledger_telemetry

logger = logging.getLogger(__name__)


@dataclass
class EngagementSets:
    liked: Set[int] = field(default_factory=set)
    bookmarked: Set[int] = field(default_factory=set)
    followed: Set[str] = field(default_factory=set)


@dataclass(frozen=True)
class LikeResult:
    post_id: int
    liked: bool
    signature: str


@dataclass(frozen=True)
class FollowResult:
    owner: str
    following: bool
    signature: str


class EngagementStore:
    """Persists one EngagementRecord row per wallet address."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def load(self, wallet: str) -> EngagementSets:
        with self.session_factory() as db:
            record = db.query(EngagementRecord).filter(EngagementRecord.wallet_address == wallet).first()
            if record is None:
                return EngagementSets()
            return EngagementSets(
                liked={int(i) for i in (record.liked_post_ids or [])},
                bookmarked={int(i) for i in (record.bookmarked_post_ids or [])},
                followed=set(record.followed_owners or []),
            )

    def save(self, wallet: str, sets: EngagementSets) -> None:
        with self.session_factory() as db:
            record = db.query(EngagementRecord).filter(EngagementRecord.wallet_address == wallet).first()
            if record is None:
                record = EngagementRecord(wallet_address=wallet)
                db.add(record)
            # Reassign so the JSON columns are flagged dirty.
            record.liked_post_ids = sorted(sets.liked)
            record.bookmarked_post_ids = sorted(sets.bookmarked)
            record.followed_owners = sorted(sets.followed)
            db.commit()

    def clear(self, wallet: str) -> None:
        with self.session_factory() as db:
            db.query(EngagementRecord).filter(EngagementRecord.wallet_address == wallet).delete()
            db.commit()


class EngagementReconciler:
    def __init__(
        self,
        store: EngagementStore,
        cache: DomainCache,
        submitter: Optional[TransactionSubmitter],
        program_id: str,
        config: BlocksConfig = settings,
    ):
        self.store = store
        self.cache = cache
        self.submitter = submitter
        self.program_id = program_id
        self.config = config
        self._records: Dict[str, EngagementSets] = {}
        self._pending: Set[Tuple[str, Union[int, str]]] = set()

    def _sets(self, user: str) -> EngagementSets:
        sets = self._records.get(user)
        if sets is None:
            sets = self.store.load(user)
            self._records[user] = sets
        return sets

    def _persist(self, user: str) -> None:
        self.store.save(user, self._sets(user))

    # --------------- reads ---------------

    def has_liked(self, user: str, post_id: int) -> bool:
        return post_id in self._sets(user).liked

    def has_bookmarked(self, user: str, post_id: int) -> bool:
        return post_id in self._sets(user).bookmarked

    def is_following(self, user: str, owner: str) -> bool:
        return owner in self._sets(user).followed

    def is_pending(self, user: str, target: Union[int, str]) -> bool:
        return (user, target) in self._pending

    def liked_post_ids(self, user: str) -> List[int]:
        return sorted(self._sets(user).liked)

    def bookmarked_post_ids(self, user: str) -> List[int]:
        return sorted(self._sets(user).bookmarked)

    def followed_owners(self, user: str) -> List[str]:
        return sorted(self._sets(user).followed)

    @staticmethod
    def reconcile_counts(post: Post) -> int:
        return post.likes

    def reconcile(self, user: Optional[str], post: Post, now: Optional[float] = None) -> EngagementView:
        return EngagementView(
            post_id=post.id,
            likes=self.reconcile_counts(post),
            liked=self.has_liked(user, post.id) if user else False,
            bookmarked=self.has_bookmarked(user, post.id) if user else False,
            rating=post_rating_from_likes(post.likes, self.config),
            in_kill_zone=in_kill_zone(post, now, self.config),
        )

    # --------------- transitions ---------------

    def _begin(self, user: str, target: Union[int, str]) -> Tuple[str, Union[int, str]]:
        key = (user, target)
        if key in self._pending:
            raise WriteInFlight(f"a write for {target} is still being confirmed")
        if self.submitter is None:
            raise WriteRejected("no transaction submitter configured")
        self._pending.add(key)
        return key

    async def _submit(self, instruction: Instruction, context: dict) -> str:
        try:
            return await self.submitter.submit_and_confirm(instruction)
        except WriteRejected as exc:
            logger.info("%s rejected: %s", instruction.variant.name.lower(), exc)
            append_ledger_telemetry(
                "write_rejected",
                {"action": instruction.variant.name.lower(), **context, "reason": str(exc)},
            )
            raise

    async def toggle_like(self, user: str, post_id: int, author: str) -> LikeResult:
        """Like or unlike ``post_id``; the local mark follows the confirmed write.

        Unliking sends UnlikePost (variant 9). Programs built before that
        variant reject it as invalid instruction data, so there a liked post
        stays liked and this raises WriteRejected.
        """
        if author == user:
            raise EngagementRejected("cannot like your own post")
        key = self._begin(user, post_id)
        try:
            currently_liked = self.has_liked(user, post_id)
            post = await self.cache.post_by_id(post_id)
            if post is None or post.author != author:
                raise NotFound(f"post {post_id} by {short_key(author)} not found")
            author_profile = await self.cache.profile_for_owner(author)
            if author_profile is None:
                raise NotFound(f"profile for {short_key(author)} not found")

            instruction = like_instruction(
                self.program_id,
                user,
                post.address,
                author_profile.address,
                post_id,
                unlike=currently_liked,
            )
            signature = await self._submit(instruction, {"post_id": post_id})

            sets = self._sets(user)
            if currently_liked:
                sets.liked.discard(post_id)
            else:
                sets.liked.add(post_id)
            self._persist(user)
            self.cache.invalidate(post.address)
            self.cache.invalidate(author_profile.address)
            append_ledger_telemetry(
                "like_confirmed",
                {"post_id": post_id, "liked": not currently_liked, "signature": signature},
            )
            return LikeResult(post_id=post_id, liked=not currently_liked, signature=signature)
        finally:
            self._pending.discard(key)

    async def toggle_follow(self, user: str, owner: str) -> FollowResult:
        """Follow or unfollow the profile owned by ``owner``.

        Both profiles must exist: the program updates the counters on each.
        """
        if owner == user:
            raise EngagementRejected("cannot follow yourself")
        key = self._begin(user, owner)
        try:
            currently_following = self.is_following(user, owner)
            target = await self.cache.profile_for_owner(owner)
            if target is None:
                raise NotFound(f"profile for {short_key(owner)} not found")
            follower = await self.cache.profile_for_owner(user)
            if follower is None:
                raise NotFound("create a profile before following others")

            instruction = follow_instruction(
                self.program_id,
                user,
                target.address,
                follower.address,
                unfollow=currently_following,
            )
            signature = await self._submit(instruction, {"owner": owner})

            sets = self._sets(user)
            if currently_following:
                sets.followed.discard(owner)
            else:
                sets.followed.add(owner)
            self._persist(user)
            self.cache.invalidate(target.address)
            self.cache.invalidate(follower.address)
            append_ledger_telemetry(
                "follow_confirmed",
                {"owner": owner, "following": not currently_following, "signature": signature},
            )
            return FollowResult(owner=owner, following=not currently_following, signature=signature)
        finally:
            self._pending.discard(key)

    def toggle_bookmark(self, user: str, post_id: int) -> bool:
        """Flip the local bookmark; returns the new state."""
        sets = self._sets(user)
        if post_id in sets.bookmarked:
            sets.bookmarked.discard(post_id)
        else:
            sets.bookmarked.add(post_id)
        self._persist(user)
        return post_id in sets.bookmarked

    def clear(self, user: str) -> None:
        self._records.pop(user, None)
        self.store.clear(user)

    async def bookmarked_posts(self, user: str) -> List[Post]:
        ids = self.bookmarked_post_ids(user)
        posts = await asyncio.gather(*(self.cache.post_by_id(i) for i in ids))
        return [p for p in posts if p is not None]
