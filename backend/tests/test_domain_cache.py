"""Tests for the read-through domain cache."""

import asyncio

from ledger_fakes import PROGRAM_ID, FOREIGN_PROGRAM_ID, key, make_comment, make_community, make_post, make_profile
from schemas import EntityKind

ALICE = key("alice")
BOB = key("bob")


def _seed(ledger):
    ledger.put(EntityKind.PROFILE, make_profile(ALICE, username="alice_onchain"))
    ledger.put(EntityKind.PROFILE, make_profile(BOB, username="bob_onchain"))
    ledger.put(EntityKind.POST, make_post(1, ALICE, timestamp=1_700_000_100))
    ledger.put(EntityKind.POST, make_post(2, BOB, timestamp=1_700_000_200))
    ledger.put(EntityKind.COMMENT, make_comment(10, 1, BOB, timestamp=1_700_000_300))
    ledger.put(EntityKind.COMMENT, make_comment(11, 1, ALICE, timestamp=1_700_000_250))
    ledger.put(EntityKind.COMMUNITY, make_community(5, ALICE))
    ledger.put(EntityKind.COMMUNITY, make_community(4, ALICE))


class TestQueries:
    def test_indexes(self, ledger, cache):
        _seed(ledger)

        async def scenario():
            return (
                await cache.profile_for_owner(BOB),
                await cache.posts(),
                await cache.posts(author=ALICE),
                await cache.comments_for(1),
                await cache.communities(),
                await cache.communities_created_by(ALICE),
            )

        profile, feed, alice_posts, comments, communities, created = asyncio.run(scenario())
        assert profile.username == "bob_onchain"
        assert [p.id for p in feed] == [2, 1]
        assert [p.id for p in alice_posts] == [1]
        assert [c.id for c in comments] == [11, 10]
        assert [c.id for c in communities] == [4, 5]
        assert created == 2
        # One scan served every query.
        assert ledger.calls.count("getProgramAccounts") == 1

    def test_unknown_ids(self, ledger, cache):
        _seed(ledger)
        assert asyncio.run(cache.post_by_id(99)) is None
        assert asyncio.run(cache.profile_for_owner(key("stranger"))) is None


class TestGet:
    def test_concurrent_gets_share_one_load(self, ledger, cache):
        address = ledger.put(EntityKind.POST, make_post(1, ALICE))

        async def scenario():
            return await asyncio.gather(*(cache.get(address) for _ in range(5)))

        results = asyncio.run(scenario())
        assert all(r is results[0] for r in results)
        assert results[0].kind == EntityKind.POST
        assert ledger.calls.count("getAccountInfo") == 1

    def test_missing_and_foreign_accounts(self, ledger, cache):
        foreign = ledger.add(key("elsewhere"), b"\x01" + bytes(100), owner=FOREIGN_PROGRAM_ID)
        assert asyncio.run(cache.get(key("nowhere"))) is None
        assert asyncio.run(cache.get(foreign)) is None


class TestRefresh:
    def test_concurrent_refreshes_share_one_scan(self, ledger, cache):
        _seed(ledger)

        async def scenario():
            await asyncio.gather(*(cache.refresh(force=True) for _ in range(3)))

        asyncio.run(scenario())
        assert ledger.calls.count("getProgramAccounts") == 1

    def test_partial_scan_is_not_fresh(self, ledger, cache):
        _seed(ledger)
        ledger.failures["getMultipleAccounts"] = 1

        async def scenario():
            first = await cache.refresh()
            second = await cache.refresh()
            return first, second

        first, second = asyncio.run(scenario())
        assert first.partial is True
        assert second.partial is False
        assert ledger.calls.count("getProgramAccounts") == 2


class TestInvalidate:
    def test_invalidated_entry_reloads(self, ledger, cache):
        address = ledger.put(EntityKind.POST, make_post(1, ALICE, likes=3))

        async def scenario():
            before = await cache.post_by_id(1)
            ledger.bump_likes(address, 1)
            cached = await cache.post_by_id(1)
            cache.invalidate(address)
            after = await cache.post_by_id(1)
            return before, cached, after

        before, cached, after = asyncio.run(scenario())
        assert before.likes == 3
        assert cached.likes == 3
        assert after.likes == 4
        assert after.address == address

    def test_invalidated_entry_still_listed(self, ledger, cache):
        address = ledger.put(EntityKind.POST, make_post(1, ALICE))

        async def scenario():
            await cache.posts()
            cache.invalidate(address)
            return await cache.posts()

        posts = asyncio.run(scenario())
        assert [p.id for p in posts] == [1]

    def test_duplicate_owner_last_write_wins(self, ledger, cache):
        ledger.put(EntityKind.PROFILE, make_profile(ALICE, username="first_profile"))
        ledger.put(EntityKind.PROFILE, make_profile(ALICE, username="second_profile"))
        profile = asyncio.run(cache.profile_for_owner(ALICE))
        assert profile.username == "second_profile"


class TestPointLookups:
    def test_rate_limited_reload_is_retried(self, ledger, cache):
        _seed(ledger)

        async def scenario():
            await cache.refresh()
            post = await cache.post_by_id(1)
            cache.invalidate(post.address)
            ledger.rate_limits["getAccountInfo"] = 1
            return await cache.posts()

        feed = asyncio.run(scenario())
        assert [p.id for p in feed] == [2, 1]
        assert ledger.calls.count("getAccountInfo") == 2

    def test_failed_reload_keeps_the_rest_of_the_feed(self, ledger, cache):
        _seed(ledger)

        async def scenario():
            await cache.refresh()
            post = await cache.post_by_id(1)
            cache.invalidate(post.address)
            ledger.failures["getAccountInfo"] = 5
            first = await cache.posts()
            ledger.failures.clear()
            return first, await cache.posts()

        degraded, recovered = asyncio.run(scenario())
        assert [p.id for p in degraded] == [2]
        assert [p.id for p in recovered] == [2, 1]

    def test_failed_profile_lookup_is_none(self, ledger, cache):
        _seed(ledger)

        async def scenario():
            profile = await cache.profile_for_owner(ALICE)
            cache.invalidate(profile.address)
            ledger.failures["getAccountInfo"] = 1
            return await cache.profile_for_owner(ALICE)

        assert asyncio.run(scenario()) is None
        assert cache.cached_profile(ALICE) is None

    def test_cached_profile_never_reads(self, ledger, cache):
        _seed(ledger)
        assert cache.cached_profile(ALICE) is None
        assert ledger.calls == []
        asyncio.run(cache.refresh())
        assert cache.cached_profile(ALICE).username == "alice_onchain"
