"""Structural classification of program-owned accounts.

Accounts carry no type tag. Each buffer is offered to the strict decoders in a
fixed priority order and the first clean decode wins; a buffer nothing accepts
is reported as unrecognized. Nothing raised by a decoder escapes this module.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from layout import decode, is_decode_error
from schemas import EntityKind, LedgerRecord

logger = logging.getLogger(__name__)

CLASSIFY_ORDER: Tuple[EntityKind, ...] = (
    EntityKind.PROFILE,
    EntityKind.POST,
    EntityKind.COMMENT,
    EntityKind.COMMUNITY,
)


@dataclass(frozen=True)
class Classified:
    kind: EntityKind
    entity: LedgerRecord


@dataclass
class ScanResult:
    classified: List[Classified] = field(default_factory=list)
    unrecognized: List[str] = field(default_factory=list)
    # True when the scan ended early (rate limit or ledger failure).
    partial: bool = False

    def of_kind(self, kind: EntityKind) -> List[LedgerRecord]:
        return [c.entity for c in self.classified if c.kind == kind]

    def counts(self) -> dict:
        counts = {kind.value: 0 for kind in CLASSIFY_ORDER}
        for item in self.classified:
            counts[item.kind.value] += 1
        counts["unrecognized"] = len(self.unrecognized)
        return counts


def classify(buffer: bytes, address: Optional[str] = None) -> Optional[Classified]:
    """Return the first kind that decodes cleanly, or None if none does."""
    if not buffer or buffer[0] != 1:
        return None
    for kind in CLASSIFY_ORDER:
        try:
            result = decode(kind, buffer)
        except Exception as exc:  # decoders are total; this is a bug guard
            logger.warning("decoder %s raised on %s: %s", kind.value, address, exc)
            continue
        if is_decode_error(result) or not result.is_initialized:
            continue
        if address is not None:
            result = result.model_copy(update={"address": address})
        return Classified(kind=kind, entity=result)
    return None


def classify_accounts(accounts: Iterable[Tuple[str, bytes]]) -> ScanResult:
    """Classify (address, buffer) pairs, keeping ledger order."""
    result = ScanResult()
    for address, buffer in accounts:
        item = classify(buffer, address)
        if item is None:
            result.unrecognized.append(address)
        else:
            result.classified.append(item)
    return result
