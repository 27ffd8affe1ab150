"""Error taxonomy shared by the decoder, the ledger client and the engagement layer."""

from typing import Optional


class DecodeError(Exception):
    """A buffer does not hold a valid record of the requested kind.

    Returned (not raised) by ``layout.decode`` so callers can try kinds
    speculatively.
    """

    def __init__(self, kind: str, reason: str, offset: int = 0):
        super().__init__(f"{kind}: {reason} at offset {offset}")
        self.kind = kind
        self.reason = reason
        self.offset = offset


class LedgerError(Exception):
    """Base class for failures talking to the ledger."""


class RpcError(LedgerError):
    """The node answered with a JSON-RPC error object."""

    def __init__(self, method: str, code: Optional[int], message: str, data=None):
        super().__init__(f"{method}: rpc error {code}: {message}")
        self.method = method
        self.code = code
        self.rpc_message = message
        self.data = data


class RateLimited(LedgerError):
    def __init__(self, message: str = "rate limited", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class WriteRejected(LedgerError):
    """The ledger refused a state-changing write. Nothing local was mutated."""

    def __init__(self, message: str, signature: Optional[str] = None):
        super().__init__(message)
        self.signature = signature


class NotFound(LedgerError):
    """No initialized account exists for what the caller asked for."""


class EngagementRejected(Exception):
    """An engagement toggle failed a precondition before any write."""


class WriteInFlight(EngagementRejected):
    """A write for the same (user, post) pair has not resolved yet."""
