"""Tests for instruction payloads and the RPC transaction submitter."""

import asyncio
import struct

import pytest

from errors import WriteRejected
from instructions import (
    InstructionVariant,
    RpcTransactionSubmitter,
    describe_transaction_error,
    follow_instruction,
    instruction_data,
    like_instruction,
)
from ledger_fakes import PROGRAM_ID, key
from pubkeys import decode_pubkey


async def _fake_signer(instruction, blockhash):
    return b"signed:" + instruction.data + blockhash.encode()


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    async def sleep(self, delay):
        self.now += delay


def _like():
    return like_instruction(PROGRAM_ID, key("alice"), key("post"), key("profile"), 12)


class TestPayloads:
    def test_variant_byte_then_fields(self):
        data = instruction_data(InstructionVariant.JOIN_COMMUNITY, community_id=9)
        assert data == bytes([8]) + struct.pack("<Q", 9)

    def test_create_post(self):
        data = instruction_data(InstructionVariant.CREATE_POST, content="gm", images=["ipfs://x"])
        assert data == bytes([2]) + struct.pack("<I", 2) + b"gm" + struct.pack("<I", 1) + struct.pack("<I", 8) + b"ipfs://x"

    def test_unlike_variant(self):
        instruction = like_instruction(PROGRAM_ID, key("alice"), key("post"), key("profile"), 12, unlike=True)
        assert instruction.data[0] == InstructionVariant.UNLIKE_POST

    def test_follow_targets_profile_account(self):
        instruction = follow_instruction(PROGRAM_ID, key("alice"), key("bob-profile"), key("alice-profile"))
        assert instruction.data == bytes([5]) + decode_pubkey(key("bob-profile"))
        assert [a.pubkey for a in instruction.accounts] == [key("alice"), key("bob-profile"), key("alice-profile")]
        assert all(a.is_writable for a in instruction.accounts)
        assert instruction.accounts[0].is_signer is True
        unfollow = follow_instruction(PROGRAM_ID, key("alice"), key("bob-profile"), key("alice-profile"), unfollow=True)
        assert unfollow.data[0] == InstructionVariant.UNFOLLOW_PROFILE

    def test_missing_field(self):
        with pytest.raises(ValueError):
            instruction_data(InstructionVariant.LIKE_POST)


class TestErrors:
    def test_custom_program_error(self):
        assert describe_transaction_error({"InstructionError": [0, {"Custom": 15}]}) == "Already Liked"

    def test_unknown_code(self):
        assert describe_transaction_error({"InstructionError": [0, {"Custom": 99}]}) == "custom program error 99"


class TestSubmitter:
    def test_confirmed(self, ledger, client):
        clock = FakeClock()
        submitter = RpcTransactionSubmitter(client, _fake_signer, sleep=clock.sleep, clock=clock)
        signature = asyncio.run(submitter.submit_and_confirm(_like()))
        assert signature == "sig-1"
        assert ledger.sent[0].startswith(b"signed:")

    def test_failed_transaction(self, ledger, client):
        ledger.statuses["sig-1"] = {"confirmationStatus": "processed", "err": {"InstructionError": [0, {"Custom": 17}]}}
        clock = FakeClock()
        submitter = RpcTransactionSubmitter(client, _fake_signer, sleep=clock.sleep, clock=clock)
        with pytest.raises(WriteRejected) as info:
            asyncio.run(submitter.submit_and_confirm(_like()))
        assert str(info.value) == "Post In Kill Zone"
        assert info.value.signature == "sig-1"

    def test_preflight_rejection(self, ledger, client):
        ledger.send_error = {
            "code": -32002,
            "message": "Transaction simulation failed",
            "data": {"err": {"InstructionError": [0, {"Custom": 2}]}},
        }
        submitter = RpcTransactionSubmitter(client, _fake_signer)
        with pytest.raises(WriteRejected) as info:
            asyncio.run(submitter.submit_and_confirm(_like()))
        assert str(info.value) == "Profile Already Exists"

    def test_confirmation_timeout(self, ledger, client):
        ledger.statuses["sig-1"] = None
        clock = FakeClock()
        submitter = RpcTransactionSubmitter(
            client, _fake_signer, confirm_timeout=3.0, poll_interval=1.0, sleep=clock.sleep, clock=clock
        )
        with pytest.raises(WriteRejected, match="timed out"):
            asyncio.run(submitter.submit_and_confirm(_like()))
