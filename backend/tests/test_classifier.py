"""Tests for account classification and the batched scan."""

import asyncio

from classifier import CLASSIFY_ORDER, classify, classify_accounts
from layout import encode
from ledger_fakes import PROGRAM_ID, key, make_comment, make_community, make_post, make_profile
from schemas import EntityKind


def _foreign_bytes(i: int) -> bytes:
    variant = i % 3
    if variant == 0:
        return b"\x00" + bytes(120)
    if variant == 1:
        return b"\x01" + b"\xff" * 200
    # A record cut short by a partial write.
    return encode(EntityKind.PROFILE, make_profile(key(f"cut-{i}")))[:30]


class TestClassify:
    def test_priority_order(self):
        assert list(CLASSIFY_ORDER) == [EntityKind.PROFILE, EntityKind.POST, EntityKind.COMMENT, EntityKind.COMMUNITY]

    def test_each_kind_is_recognized(self):
        author = key("author")
        samples = {
            EntityKind.PROFILE: make_profile(author),
            EntityKind.POST: make_post(1, author),
            EntityKind.COMMENT: make_comment(2, 1, author),
            EntityKind.COMMUNITY: make_community(3, author),
        }
        for kind, entity in samples.items():
            item = classify(encode(kind, entity) + bytes(16), address="addr")
            assert item is not None
            assert item.kind == kind
            assert item.entity.address == "addr"

    def test_uninitialized_and_empty(self):
        assert classify(b"") is None
        assert classify(bytes(200)) is None

    def test_garbage_never_raises(self):
        for i in range(30):
            assert classify(_foreign_bytes(i)) is None


class TestClassifyAccounts:
    def test_keeps_ledger_order(self):
        author = key("author")
        pairs = [
            ("a", encode(EntityKind.POST, make_post(1, author))),
            ("b", b"\x00"),
            ("c", encode(EntityKind.PROFILE, make_profile(author))),
        ]
        result = classify_accounts(pairs)
        assert [c.entity.address for c in result.classified] == ["a", "c"]
        assert result.unrecognized == ["b"]


class TestThousandAccountScan:
    def test_nine_hundred_classified_one_hundred_unrecognized(self, ledger, fetcher):
        authors = [key(f"user-{n}") for n in range(5)]
        for i in range(1000):
            if i % 10 == 9:
                ledger.add(key(f"foreign-{i}"), _foreign_bytes(i))
                continue
            author = authors[i % len(authors)]
            kind = i % 4
            if kind == 0:
                ledger.put(EntityKind.POST, make_post(i, author))
            elif kind == 1:
                ledger.put(EntityKind.COMMENT, make_comment(i, 0, author))
            elif kind == 2:
                ledger.put(EntityKind.COMMUNITY, make_community(i, author))
            else:
                ledger.put(EntityKind.PROFILE, make_profile(author, username=f"builder_{i:04d}"))

        result = asyncio.run(fetcher.scan(PROGRAM_ID))

        assert len(result.classified) == 900
        assert len(result.unrecognized) == 100
        assert result.partial is False
        assert ledger.calls.count("getMultipleAccounts") == 10
        counts = result.counts()
        assert sum(counts[k.value] for k in EntityKind) == 900
