"""
Binary layouts for Blocks ledger accounts.

Every account the Blocks program owns is a Borsh-style record: a leading
``is_initialized`` byte, little-endian integers, 32-byte raw public keys and
u32-length-prefixed UTF-8 strings. Nothing in the bytes says which kind of
record it is, so each kind is described here as an ordered list of
``(field_name, field_type)`` descriptors and decoded by one cursor routine.
Fixing a field order is a reorder of the list, not a new parser.

Decoding is total: ``decode`` returns a ``DecodeError`` instead of raising,
so the classifier can try every kind against the same buffer.
"""

import struct
from typing import Any, Dict, Mapping, Sequence, Tuple, Type, Union

from pydantic import ValidationError

from errors import DecodeError
from pubkeys import PUBKEY_LENGTH, decode_pubkey, encode_pubkey
from schemas import (
    POST_RATING_ORDER,
    Comment,
    Community,
    EntityKind,
    LedgerRecord,
    Post,
    Profile,
)


class ByteCursor:
    """Left-to-right reader that refuses to read past the end of the buffer."""

    def __init__(self, label: str, buffer: bytes):
        self.label = label
        self.buffer = bytes(buffer)
        self.offset = 0

    @property
    def remaining(self) -> int:
        return len(self.buffer) - self.offset

    def error(self, reason: str) -> DecodeError:
        return DecodeError(self.label, reason, self.offset)

    def take(self, size: int, what: str = "field") -> bytes:
        if size > self.remaining:
            raise self.error(f"truncated {what}: need {size} bytes, have {self.remaining}")
        chunk = self.buffer[self.offset:self.offset + size]
        self.offset += size
        return chunk

    def unpack(self, fmt: str, what: str) -> int:
        size = struct.calcsize(fmt)
        return struct.unpack(fmt, self.take(size, what))[0]


# --------------- field types ---------------

class Bool:
    def read(self, cursor: ByteCursor, name: str) -> bool:
        value = cursor.unpack("<B", name)
        if value not in (0, 1):
            raise cursor.error(f"{name}: invalid bool byte {value}")
        return value == 1

    def write(self, out: bytearray, value: Any) -> None:
        out.append(1 if value else 0)


class UInt:
    def __init__(self, fmt: str, bits: int):
        self.fmt = fmt
        self.max_value = (1 << bits) - 1

    def read(self, cursor: ByteCursor, name: str) -> int:
        return cursor.unpack(self.fmt, name)

    def write(self, out: bytearray, value: Any) -> None:
        value = int(value)
        if not 0 <= value <= self.max_value:
            raise ValueError(f"value {value} out of range for {self.fmt}")
        out += struct.pack(self.fmt, value)


class Int64:
    def read(self, cursor: ByteCursor, name: str) -> int:
        return cursor.unpack("<q", name)

    def write(self, out: bytearray, value: Any) -> None:
        out += struct.pack("<q", int(value))


class PubKey:
    def read(self, cursor: ByteCursor, name: str) -> str:
        return encode_pubkey(cursor.take(PUBKEY_LENGTH, name))

    def write(self, out: bytearray, value: Any) -> None:
        out += decode_pubkey(value)


class Enum8:
    """One byte holding an enum discriminant below ``size``."""

    def __init__(self, size: int):
        self.size = size

    def read(self, cursor: ByteCursor, name: str) -> int:
        value = cursor.unpack("<B", name)
        if value >= self.size:
            raise cursor.error(f"{name}: discriminant {value} out of range")
        return value

    def write(self, out: bytearray, value: Any) -> None:
        value = int(value)
        if not 0 <= value < self.size:
            raise ValueError(f"discriminant {value} out of range")
        out.append(value)


class Str:
    """u32 LE length followed by that many UTF-8 bytes.

    The declared length is checked against ``max_len`` before anything is
    sliced, so an absurd length is rejected even when the buffer happens to be
    long enough.
    """

    def __init__(self, max_len: int, min_len: int = 0):
        self.max_len = max_len
        self.min_len = min_len

    def read(self, cursor: ByteCursor, name: str) -> str:
        length = cursor.unpack("<I", f"{name} length")
        if length > self.max_len:
            raise cursor.error(f"{name}: declared length {length} exceeds {self.max_len}")
        if length < self.min_len:
            raise cursor.error(f"{name}: declared length {length} below {self.min_len}")
        raw = cursor.take(length, name)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            raise cursor.error(f"{name}: invalid utf-8") from None

    def write(self, out: bytearray, value: Any) -> None:
        raw = str(value).encode("utf-8")
        if not self.min_len <= len(raw) <= self.max_len:
            raise ValueError(f"string of {len(raw)} bytes outside {self.min_len}..{self.max_len}")
        out += struct.pack("<I", len(raw))
        out += raw


class StrVec:
    """u32 LE item count followed by ``Str`` items."""

    def __init__(self, max_items: int, item: Str):
        self.max_items = max_items
        self.item = item

    def read(self, cursor: ByteCursor, name: str) -> list:
        count = cursor.unpack("<I", f"{name} count")
        if count > self.max_items:
            raise cursor.error(f"{name}: {count} items exceeds {self.max_items}")
        return [self.item.read(cursor, f"{name}[{i}]") for i in range(count)]

    def write(self, out: bytearray, value: Any) -> None:
        items = list(value or [])
        if len(items) > self.max_items:
            raise ValueError(f"{len(items)} items exceeds {self.max_items}")
        out += struct.pack("<I", len(items))
        for item in items:
            self.item.write(out, item)


BOOL = Bool()
U8 = UInt("<B", 8)
U64 = UInt("<Q", 64)
I64 = Int64()
PUBKEY = PubKey()

Layout = Sequence[Tuple[str, Any]]

MAX_NAME_LEN = 100
MAX_TEXT_LEN = 1000
MAX_URI_LEN = 500
MAX_RULE_LEN = 200
MAX_RULES = 10
MAX_POST_LEN = 10_000
MAX_COMMENT_LEN = 2_000
MAX_IMAGES = 10


# --------------- layouts ---------------

PROFILE_LAYOUT: Layout = (
    ("is_initialized", BOOL),
    ("owner", PUBKEY),
    ("username", Str(MAX_NAME_LEN, min_len=1)),
    ("bio", Str(MAX_TEXT_LEN)),
    ("profile_image", Str(MAX_URI_LEN)),
    ("cover_image", Str(MAX_URI_LEN)),
    ("created_at", U64),
    ("followers_count", U64),
    ("following_count", U64),
    ("user_credit_rating", I64),
    ("posts_count", U64),
    ("last_post_timestamp", U64),
    ("daily_post_count", U64),
    ("is_verified", BOOL),
)

POST_LAYOUT: Layout = (
    ("is_initialized", BOOL),
    ("id", U64),
    ("author", PUBKEY),
    ("content", Str(MAX_POST_LEN, min_len=1)),
    ("timestamp", U64),
    ("likes", U64),
    ("comments", U64),
    ("mirrors", U64),
    ("images", StrVec(MAX_IMAGES, Str(MAX_URI_LEN))),
    ("rating_code", Enum8(len(POST_RATING_ORDER))),
    ("in_kill_zone", BOOL),
)

COMMENT_LAYOUT: Layout = (
    ("is_initialized", BOOL),
    ("id", U64),
    ("parent_post_id", U64),
    ("author", PUBKEY),
    ("content", Str(MAX_COMMENT_LEN, min_len=1)),
    ("timestamp", U64),
    ("likes", U64),
)

# Creator comes after the three strings, as in the program's struct. An
# earlier reading placed it right after `id`.
COMMUNITY_LAYOUT: Layout = (
    ("is_initialized", BOOL),
    ("id", U64),
    ("name", Str(MAX_NAME_LEN, min_len=1)),
    ("description", Str(MAX_TEXT_LEN)),
    ("avatar", Str(MAX_URI_LEN)),
    ("creator", PUBKEY),
    ("member_count", U64),
    ("rules", StrVec(MAX_RULES, Str(MAX_RULE_LEN))),
    ("is_private", BOOL),
)

LAYOUTS: Dict[EntityKind, Tuple[Type[LedgerRecord], Layout]] = {
    EntityKind.PROFILE: (Profile, PROFILE_LAYOUT),
    EntityKind.POST: (Post, POST_LAYOUT),
    EntityKind.COMMENT: (Comment, COMMENT_LAYOUT),
    EntityKind.COMMUNITY: (Community, COMMUNITY_LAYOUT),
}


# --------------- generic routines ---------------

def read_fields(label: str, layout: Layout, buffer: bytes) -> Dict[str, Any]:
    """Read every descriptor in order. Raises DecodeError."""
    cursor = ByteCursor(label, buffer)
    return {name: field.read(cursor, name) for name, field in layout}


def write_fields(layout: Layout, values: Mapping[str, Any]) -> bytes:
    out = bytearray()
    for name, field in layout:
        if name not in values:
            raise ValueError(f"missing field {name!r}")
        field.write(out, values[name])
    return bytes(out)


def decode(kind: Union[EntityKind, str], buffer: bytes) -> Union[LedgerRecord, DecodeError]:
    """Decode ``buffer`` as ``kind``; return the entity or a DecodeError.

    Bytes after the last field are ignored: accounts are allocated with slack.
    """
    kind = EntityKind(kind)
    model, layout = LAYOUTS[kind]
    try:
        values = read_fields(kind.value, layout, buffer)
        return model(**values)
    except DecodeError as exc:
        return exc
    except ValidationError as exc:
        return DecodeError(kind.value, f"invalid field values: {exc.error_count()} errors")


def encode(kind: Union[EntityKind, str], entity: LedgerRecord) -> bytes:
    kind = EntityKind(kind)
    _, layout = LAYOUTS[kind]
    return write_fields(layout, entity.model_dump())


def is_decode_error(value: Any) -> bool:
    return isinstance(value, DecodeError)
