"""
Recursive Length Prefix (RLP) codec.

Turns a byte string into a tree of byte strings and lists and back, using the
`rlp` library. An item's length alone decides which prefix form is used:

    0x00-0x7f  single byte, encoded as itself
    0x80-0xb7  short string (0-55 bytes), prefix 0x80 + length
    0xb8-0xbf  long string, prefix 0xb7 + len(length), big-endian length
    0xc0-0xf7  short list (0-55 byte payload), prefix 0xc0 + length
    0xf8-0xff  long list, prefix 0xf7 + len(length), big-endian length

Decoding is strict. Any encoding that is not the one `encode` would produce
is rejected, so two distinct byte strings can never decode to the same tree.
Library errors surface as `MalformedEncoding`.
"""

from typing import List, Union

import rlp as pyrlp
from rlp.exceptions import DecodingError, DeserializationError
from rlp.sedes import big_endian_int

from .errors import MalformedEncoding

Item = Union[bytes, List["Item"]]

# Deeper nesting than this never occurs in headers, accounts or trie nodes.
MAX_DEPTH = 64


def encode(item) -> bytes:
    """
    Encode an item canonically.

    Accepts bytes, bytearray, non-negative int (minimal big-endian, zero is
    the empty string), and lists or tuples of those.
    """
    _check_encodable(item)
    return pyrlp.encode(item)


def _check_encodable(item) -> None:
    # The library would also encode str as UTF-8; only bytes, ints and lists are items here
    if isinstance(item, (bytes, bytearray)):
        return
    if isinstance(item, bool):
        raise TypeError("Cannot RLP-encode bool")
    if isinstance(item, int):
        if item < 0:
            raise ValueError("Cannot encode negative integer")
        return
    if isinstance(item, (list, tuple)):
        for child in item:
            _check_encodable(child)
        return
    raise TypeError(f"Cannot RLP-encode type: {type(item)}")


def decode(data: Union[bytes, bytearray]) -> Item:
    """
    Decode exactly one item.

    Raises:
        MalformedEncoding: empty input, overrun, non-canonical form, bytes
            left over after the outermost item, or nesting past MAX_DEPTH
    """
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError(f"Cannot RLP-decode type: {type(data)}")
    if not data:
        raise MalformedEncoding("Unexpected end of input", observed="0 bytes")

    try:
        item = pyrlp.decode(bytes(data), strict=True)
    except DecodingError as e:
        raise MalformedEncoding(str(e), observed=f"{len(data)} bytes") from e
    except RecursionError as e:
        raise MalformedEncoding("List nesting too deep", required=f"<= {MAX_DEPTH}") from e

    return _bounded(item, 0)


def _bounded(item, depth: int) -> Item:
    """Copy the decoded tree into plain lists, enforcing the nesting cap."""
    if isinstance(item, (list, tuple)):
        if depth >= MAX_DEPTH:
            raise MalformedEncoding("List nesting too deep", required=f"<= {MAX_DEPTH}")
        return [_bounded(child, depth + 1) for child in item]
    return bytes(item)


def encode_uint(value: int) -> bytes:
    """Minimal big-endian encoding; zero is the empty string."""
    if value < 0:
        raise ValueError("Cannot encode negative integer")
    return big_endian_int.serialize(value)


def decode_uint(data: bytes) -> int:
    """
    Decode a big-endian unsigned integer.

    Leading zero bytes are rejected, since they would give one number more
    than one encoding.
    """
    if not isinstance(data, (bytes, bytearray)):
        raise MalformedEncoding("Integer must be a byte string, not a list")
    try:
        return big_endian_int.deserialize(bytes(data))
    except DeserializationError as e:
        raise MalformedEncoding("Integer has leading zero byte", observed=bytes(data).hex()) from e
