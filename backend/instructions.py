"""
Instruction payloads for the Blocks program and the write-side collaborator.

The backend never signs anything. It builds the instruction (program id,
account metas, payload bytes) and hands it to a ``TransactionSubmitter``,
which returns a confirmed signature or raises ``WriteRejected``.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Tuple

from errors import LedgerError, RpcError, WriteRejected
from layout import (
    MAX_COMMENT_LEN,
    MAX_IMAGES,
    MAX_NAME_LEN,
    MAX_POST_LEN,
    MAX_RULE_LEN,
    MAX_RULES,
    MAX_TEXT_LEN,
    MAX_URI_LEN,
    PUBKEY,
    U64,
    Layout,
    Str,
    StrVec,
    write_fields,
)
from ledger_client import LedgerClient

logger = logging.getLogger(__name__)


class InstructionVariant(IntEnum):
    CREATE_PROFILE = 0
    UPDATE_PROFILE = 1
    CREATE_POST = 2
    LIKE_POST = 3
    COMMENT_ON_POST = 4
    FOLLOW_PROFILE = 5
    UNFOLLOW_PROFILE = 6
    CREATE_COMMUNITY = 7
    JOIN_COMMUNITY = 8
    # Newer than the other variants: a program built without it answers
    # InvalidInstructionData, so unlikes fail there.
    UNLIKE_POST = 9


_PROFILE_TEXT: Layout = (
    ("bio", Str(MAX_TEXT_LEN)),
    ("profile_image", Str(MAX_URI_LEN)),
    ("cover_image", Str(MAX_URI_LEN)),
)

INSTRUCTION_LAYOUTS: Dict[InstructionVariant, Layout] = {
    InstructionVariant.CREATE_PROFILE: (("username", Str(MAX_NAME_LEN, min_len=1)),) + _PROFILE_TEXT,
    InstructionVariant.UPDATE_PROFILE: _PROFILE_TEXT,
    InstructionVariant.CREATE_POST: (
        ("content", Str(MAX_POST_LEN, min_len=1)),
        ("images", StrVec(MAX_IMAGES, Str(MAX_URI_LEN))),
    ),
    InstructionVariant.LIKE_POST: (("post_id", U64),),
    InstructionVariant.COMMENT_ON_POST: (
        ("content", Str(MAX_COMMENT_LEN, min_len=1)),
        ("parent_id", U64),
    ),
    InstructionVariant.FOLLOW_PROFILE: (("profile_id", PUBKEY),),
    InstructionVariant.UNFOLLOW_PROFILE: (("profile_id", PUBKEY),),
    InstructionVariant.CREATE_COMMUNITY: (
        ("name", Str(MAX_NAME_LEN, min_len=1)),
        ("description", Str(MAX_TEXT_LEN)),
        ("avatar", Str(MAX_URI_LEN)),
        ("rules", StrVec(MAX_RULES, Str(MAX_RULE_LEN))),
    ),
    InstructionVariant.JOIN_COMMUNITY: (("community_id", U64),),
    InstructionVariant.UNLIKE_POST: (("post_id", U64),),
}

# Program error codes, in declaration order (ProgramError::Custom(n)).
PROGRAM_ERRORS = (
    "Invalid Instruction",
    "Not Rent Exempt",
    "Profile Already Exists",
    "Profile Not Found",
    "Post Not Found",
    "Community Not Found",
    "Not Profile Owner",
    "Not Post Owner",
    "Not Community Owner",
    "Invalid Community Name",
    "Already Member",
    "Community Limit Exceeded",
    "Daily Post Limit Reached",
    "Post Time Limit",
    "Spam User",
    "Already Liked",
    "Already Disliked",
    "Post In Kill Zone",
    "Insufficient Funds",
)


def instruction_data(variant: InstructionVariant, **fields: Any) -> bytes:
    """Variant byte followed by the variant's fields."""
    return bytes([int(variant)]) + write_fields(INSTRUCTION_LAYOUTS[variant], fields)


@dataclass(frozen=True)
class AccountMeta:
    pubkey: str
    is_signer: bool = False
    is_writable: bool = False


@dataclass(frozen=True)
class Instruction:
    program_id: str
    accounts: Tuple[AccountMeta, ...]
    data: bytes
    variant: InstructionVariant


def like_instruction(
    program_id: str,
    user: str,
    post_address: str,
    author_profile_address: str,
    post_id: int,
    unlike: bool = False,
) -> Instruction:
    variant = InstructionVariant.UNLIKE_POST if unlike else InstructionVariant.LIKE_POST
    return Instruction(
        program_id=program_id,
        accounts=(
            AccountMeta(user, is_signer=True),
            AccountMeta(post_address, is_writable=True),
            AccountMeta(author_profile_address, is_writable=True),
        ),
        data=instruction_data(variant, post_id=post_id),
        variant=variant,
    )


def follow_instruction(
    program_id: str,
    user: str,
    profile_address: str,
    follower_profile_address: str,
    unfollow: bool = False,
) -> Instruction:
    """Both profiles are writable: the program bumps followers and following counts."""
    variant = InstructionVariant.UNFOLLOW_PROFILE if unfollow else InstructionVariant.FOLLOW_PROFILE
    return Instruction(
        program_id=program_id,
        accounts=(
            AccountMeta(user, is_signer=True, is_writable=True),
            AccountMeta(profile_address, is_writable=True),
            AccountMeta(follower_profile_address, is_writable=True),
        ),
        data=instruction_data(variant, profile_id=profile_address),
        variant=variant,
    )


def describe_transaction_error(err: Any) -> str:
    """Readable text for a transaction `err` value."""
    if isinstance(err, dict) and "InstructionError" in err:
        detail = err["InstructionError"]
        if isinstance(detail, list) and len(detail) == 2:
            inner = detail[1]
            if isinstance(inner, dict) and "Custom" in inner:
                code = inner["Custom"]
                if isinstance(code, int) and 0 <= code < len(PROGRAM_ERRORS):
                    return PROGRAM_ERRORS[code]
                return f"custom program error {code}"
            return str(inner)
    return str(err)


class TransactionSubmitter(Protocol):
    async def submit_and_confirm(self, instruction: Instruction) -> str:
        """Return the confirmed signature or raise WriteRejected."""
        ...


Signer = Callable[[Instruction, str], Awaitable[bytes]]


class RpcTransactionSubmitter:
    """Sends a transaction built by an external signer and waits for confirmation.

    Submission is never retried here: a duplicate like or profile edit costs
    real fees and reputation.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        signer: Signer,
        confirm_timeout: float = 60.0,
        poll_interval: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ledger = ledger
        self.signer = signer
        self.confirm_timeout = confirm_timeout
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock

    async def submit_and_confirm(self, instruction: Instruction) -> str:
        try:
            blockhash = await self.ledger.get_latest_blockhash()
            raw = await self.signer(instruction, blockhash)
            signature = await self.ledger.send_transaction(raw)
        except RpcError as exc:
            err = (exc.data or {}).get("err") if isinstance(exc.data, dict) else None
            message = describe_transaction_error(err) if err else exc.rpc_message
            raise WriteRejected(message) from exc
        except LedgerError as exc:
            raise WriteRejected(f"submission failed: {exc}") from exc

        deadline = self._clock() + self.confirm_timeout
        while True:
            try:
                status = await self.ledger.get_signature_status(signature)
            except LedgerError as exc:
                logger.info("status poll for %s failed: %s", signature[:8], exc)
                status = None
            if status:
                if status.get("err"):
                    raise WriteRejected(describe_transaction_error(status["err"]), signature)
                if status.get("confirmationStatus") in ("confirmed", "finalized"):
                    return signature
            if self._clock() >= deadline:
                raise WriteRejected("confirmation timed out", signature)
            await self._sleep(self.poll_interval)
