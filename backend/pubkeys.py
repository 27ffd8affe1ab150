"""Base58 public-key helpers."""

import base58

PUBKEY_LENGTH = 32


def encode_pubkey(raw: bytes) -> str:
    if len(raw) != PUBKEY_LENGTH:
        raise ValueError(f"public key must be {PUBKEY_LENGTH} bytes, got {len(raw)}")
    return base58.b58encode(bytes(raw)).decode("ascii")


def decode_pubkey(text: str) -> bytes:
    try:
        raw = base58.b58decode(text)
    except ValueError as exc:
        raise ValueError(f"invalid base58 public key: {text!r}") from exc
    if len(raw) != PUBKEY_LENGTH:
        raise ValueError(f"public key must decode to {PUBKEY_LENGTH} bytes, got {len(raw)}")
    return raw


def is_pubkey(text: str) -> bool:
    try:
        decode_pubkey(text)
    except (ValueError, TypeError):
        return False
    return True


def short_key(text: str) -> str:
    return (text or "")[:8]
