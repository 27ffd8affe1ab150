"""
Async Solana JSON-RPC client for the calls the Blocks backend needs.
"""

import base64
import binascii
import itertools
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

import httpx

from errors import LedgerError, RateLimited, RpcError

logger = logging.getLogger(__name__)

# Node-side throttling surfaces either as HTTP 429 or as one of these codes.
RATE_LIMIT_RPC_CODES = (429, -32005)


@dataclass(frozen=True)
class AccountInfo:
    address: str
    owner: str
    data: bytes
    lamports: int = 0
    executable: bool = False


def _account_data(account: dict) -> bytes:
    data = account.get("data")
    if isinstance(data, list) and data:
        if len(data) > 1 and data[1] != "base64":
            raise LedgerError(f"unexpected account encoding: {data[1]}")
        raw = data[0] or ""
    elif isinstance(data, str):
        raw = data
    else:
        return b""
    try:
        return base64.b64decode(raw, validate=True)
    except binascii.Error as exc:
        raise LedgerError(f"malformed account data: {exc}") from exc


def _parse_retry_after(response: httpx.Response) -> Optional[float]:
    raw = response.headers.get("retry-after", "")
    if not raw:
        return None
    try:
        return max(0.0, float(raw))
    except ValueError:
        return None


class LedgerClient:
    """Thin JSON-RPC wrapper. One instance per process, shared by reference."""

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 30.0,
        commitment: str = "confirmed",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.rpc_url = rpc_url
        self.commitment = commitment
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._ids = itertools.count(1)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "LedgerClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def call(self, method: str, params: Sequence[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": list(params),
        }
        try:
            response = await self._client.post(self.rpc_url, json=payload)
        except httpx.HTTPError as exc:
            raise LedgerError(f"{method}: {exc.__class__.__name__}: {exc}") from exc

        if response.status_code == 429:
            raise RateLimited(f"{method}: http=429", retry_after=_parse_retry_after(response))
        if response.status_code != 200:
            raise LedgerError(f"{method}: http={response.status_code}")

        try:
            body = response.json()
        except ValueError as exc:
            raise LedgerError(f"{method}: invalid json response") from exc

        error = body.get("error") if isinstance(body, dict) else None
        if error:
            code = error.get("code")
            message = str(error.get("message") or "")
            if code in RATE_LIMIT_RPC_CODES or "rate limit" in message.lower():
                raise RateLimited(f"{method}: {message or code}")
            raise RpcError(method, code, message, error.get("data"))
        return body.get("result") if isinstance(body, dict) else None

    # --------------- reads ---------------

    async def get_program_account_addresses(self, program_id: str) -> List[str]:
        """List program-owned addresses without their data (zero-length slice)."""
        result = await self.call(
            "getProgramAccounts",
            [
                program_id,
                {
                    "encoding": "base64",
                    "commitment": self.commitment,
                    "dataSlice": {"offset": 0, "length": 0},
                },
            ],
        )
        return [item["pubkey"] for item in (result or [])]

    async def get_multiple_accounts(self, addresses: Sequence[str]) -> List[Optional[AccountInfo]]:
        if not addresses:
            return []
        result = await self.call(
            "getMultipleAccounts",
            [list(addresses), {"encoding": "base64", "commitment": self.commitment}],
        )
        values = (result or {}).get("value") or []
        infos: List[Optional[AccountInfo]] = []
        for address, account in zip(addresses, values):
            infos.append(self._to_info(address, account))
        return infos

    async def get_account_info(self, address: str) -> Optional[AccountInfo]:
        result = await self.call(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": self.commitment}],
        )
        return self._to_info(address, (result or {}).get("value"))

    @staticmethod
    def _to_info(address: str, account: Optional[dict]) -> Optional[AccountInfo]:
        if not account:
            return None
        try:
            data = _account_data(account)
        except LedgerError as exc:
            # Kept with empty data so the scan reports it as unrecognized.
            logger.warning("account %s: %s", address[:8], exc)
            data = b""
        return AccountInfo(
            address=address,
            owner=account.get("owner", ""),
            data=data,
            lamports=int(account.get("lamports") or 0),
            executable=bool(account.get("executable")),
        )

    # --------------- writes ---------------

    async def get_latest_blockhash(self) -> str:
        result = await self.call("getLatestBlockhash", [{"commitment": "processed"}])
        return ((result or {}).get("value") or {}).get("blockhash", "")

    async def send_transaction(self, signed_transaction: bytes) -> str:
        encoded = base64.b64encode(signed_transaction).decode("ascii")
        return await self.call(
            "sendTransaction",
            [encoded, {"encoding": "base64", "preflightCommitment": "processed", "maxRetries": 3}],
        )

    async def get_signature_status(self, signature: str) -> Optional[dict]:
        result = await self.call("getSignatureStatuses", [[signature]])
        values = (result or {}).get("value") or [None]
        return values[0]
