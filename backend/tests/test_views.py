"""Tests for response builders over the cache."""

import asyncio

from config import BlocksConfig, CreditTiers
from ledger_fakes import PROGRAM_ID, key, make_comment, make_post, make_profile
from schemas import CreditTier, EntityKind
from views import comment_views, post_views

ALICE = key("alice")
BOB = key("bob")


def _seed(ledger):
    ledger.put(EntityKind.PROFILE, make_profile(ALICE, username="alice_onchain"))
    ledger.put(EntityKind.PROFILE, make_profile(BOB, username="bob_onchain"))
    ledger.put(EntityKind.POST, make_post(1, ALICE, timestamp=1_700_000_100))
    ledger.put(EntityKind.POST, make_post(2, BOB, timestamp=1_700_000_200))
    ledger.put(EntityKind.COMMENT, make_comment(10, 1, BOB))


class TestAuthors:
    def test_unreachable_author_renders_without_profile(self, ledger, cache, reconciler):
        _seed(ledger)

        async def scenario():
            bob = await cache.profile_for_owner(BOB)
            cache.invalidate(bob.address)
            ledger.failures["getAccountInfo"] = 10
            return await post_views(await cache.posts(), cache, reconciler)

        views = asyncio.run(scenario())
        by_id = {v.id: v for v in views}
        assert set(by_id) == {1, 2}
        assert by_id[1].author_profile.username == "alice_onchain"
        assert by_id[2].author_profile is None

    def test_uncached_author_resolved_once(self, ledger, cache, reconciler):
        _seed(ledger)

        async def scenario():
            alice = await cache.profile_for_owner(ALICE)
            cache.invalidate(alice.address)
            posts = await cache.posts()
            return await post_views(posts + posts, cache, reconciler)

        views = asyncio.run(scenario())
        assert all(v.author_profile is not None for v in views)
        assert ledger.calls.count("getAccountInfo") == 1


class TestCommentViews:
    def test_uses_given_config(self, ledger, cache):
        _seed(ledger)
        config = BlocksConfig(program_id=PROGRAM_ID, credit_tiers=CreditTiers(top_contributor=0.5))

        async def scenario():
            comments = await cache.comments_for(1)
            return (
                await comment_views(comments, cache, config),
                await comment_views(comments, cache),
            )

        custom, default = asyncio.run(scenario())
        assert custom[0].author_profile.username == "bob_onchain"
        assert custom[0].author_profile.credit_tier == CreditTier.TOP_CONTRIBUTOR
        assert default[0].author_profile.credit_tier == CreditTier.VALUABLE_CONTRIBUTOR
