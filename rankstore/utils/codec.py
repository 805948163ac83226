"""
Bucket payload codec.

Serializes an ordered sequence of (identity, score) pairs into a framed binary
payload and applies a reversible compression so the result can be handed to a
key/value store.

Wire layout (big-endian):
- header: magic ``RKS``, version byte, uint32 entry count
- entries: identity tag + value, score tag + value
- trailer: uint32 CRC32 of everything before it

Decoding must consume every byte; anything else is a corrupt payload.
"""

import math
import struct
import zlib
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Tuple

from rankstore.constants import CodecConstants
from rankstore.data_models import Identity, Score
from rankstore.utils import base91
from rankstore.utils.rank_exceptions import CorruptPayloadError, InvalidArgumentError

_HEADER = struct.Struct('>3sBI')
_INT64 = struct.Struct('>q')
_FLOAT64 = struct.Struct('>d')
_UINT16 = struct.Struct('>H')
_CRC = struct.Struct('>I')

Pair = Tuple[Identity, Score]


def validate_identity(identity) -> Identity:
    """Return the identity if it can be stored, else raise InvalidArgumentError."""
    if isinstance(identity, bool) or not isinstance(identity, (int, str)):
        raise InvalidArgumentError('id', f"identity must be an int or str, got {type(identity).__name__}")
    if isinstance(identity, int):
        if not CodecConstants.INT64_MIN <= identity <= CodecConstants.INT64_MAX:
            raise InvalidArgumentError('id', "integer identity must fit in 64 bits")
    elif len(identity.encode('utf-8')) > CodecConstants.MAX_IDENTITY_BYTES:
        raise InvalidArgumentError('id', "string identity is too long")
    return identity


def validate_score(score) -> Score:
    """Return the score if it is a finite number, else raise InvalidArgumentError."""
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise InvalidArgumentError('score', f"score must be a number, got {type(score).__name__}")
    if isinstance(score, float) and not math.isfinite(score):
        raise InvalidArgumentError('score', "score must be finite")
    if isinstance(score, int) and not CodecConstants.INT64_MIN <= score <= CodecConstants.INT64_MAX:
        raise InvalidArgumentError('score', "integer score must fit in 64 bits")
    return score


def serialize_entries(pairs: Iterable[Pair]) -> bytes:
    """Serialize ordered (identity, score) pairs to the canonical raw payload."""
    body = bytearray()
    count = 0
    
    for identity, score in pairs:
        validate_identity(identity)
        validate_score(score)
        
        if isinstance(identity, int):
            body += CodecConstants.TAG_INT + _INT64.pack(identity)
        else:
            encoded = identity.encode('utf-8')
            body += CodecConstants.TAG_STR + _UINT16.pack(len(encoded)) + encoded
        
        if isinstance(score, int):
            body += CodecConstants.TAG_INT + _INT64.pack(score)
        else:
            body += CodecConstants.TAG_FLOAT + _FLOAT64.pack(score)
        count += 1
    
    payload = _HEADER.pack(CodecConstants.MAGIC, CodecConstants.VERSION, count) + bytes(body)
    return payload + _CRC.pack(zlib.crc32(payload))


def deserialize_entries(payload: bytes) -> List[Pair]:
    """Parse a raw payload back into ordered (identity, score) pairs."""
    if len(payload) < _HEADER.size + _CRC.size:
        raise CorruptPayloadError(f"payload of {len(payload)} bytes is shorter than its framing")
    
    body, (checksum,) = payload[:-_CRC.size], _CRC.unpack(payload[-_CRC.size:])
    if zlib.crc32(body) != checksum:
        raise CorruptPayloadError("checksum mismatch")
    
    magic, version, count = _HEADER.unpack_from(body, 0)
    if magic != CodecConstants.MAGIC:
        raise CorruptPayloadError(f"unknown magic {magic!r}")
    if version != CodecConstants.VERSION:
        raise CorruptPayloadError(f"unsupported version {version}")
    
    pairs = []
    offset = _HEADER.size
    try:
        for _ in range(count):
            tag = body[offset:offset + 1]
            offset += 1
            if tag == CodecConstants.TAG_INT:
                (identity,) = _INT64.unpack_from(body, offset)
                offset += _INT64.size
            elif tag == CodecConstants.TAG_STR:
                (length,) = _UINT16.unpack_from(body, offset)
                offset += _UINT16.size
                raw = body[offset:offset + length]
                if len(raw) != length:
                    raise CorruptPayloadError("truncated identity")
                identity = raw.decode('utf-8')
                offset += length
            else:
                raise CorruptPayloadError(f"unknown identity tag {tag!r}")
            
            tag = body[offset:offset + 1]
            offset += 1
            if tag == CodecConstants.TAG_INT:
                (score,) = _INT64.unpack_from(body, offset)
                offset += _INT64.size
            elif tag == CodecConstants.TAG_FLOAT:
                (score,) = _FLOAT64.unpack_from(body, offset)
                offset += _FLOAT64.size
            else:
                raise CorruptPayloadError(f"unknown score tag {tag!r}")
            
            pairs.append((identity, score))
    except (struct.error, UnicodeDecodeError) as e:
        raise CorruptPayloadError(f"malformed entry {len(pairs)}: {e}") from e
    
    if offset != len(body):
        raise CorruptPayloadError(f"{len(body) - offset} trailing bytes after {count} entries")
    
    return pairs


class Compression(ABC):
    """
    Abstract base class for payload compression.
    
    Implementations must be exact inverses: ``decompress(compress(x)) == x``.
    """
    
    name: str = ''
    
    @abstractmethod
    def compress(self, payload: bytes) -> bytes:
        pass
    
    @abstractmethod
    def decompress(self, payload: bytes) -> bytes:
        pass


class NoCompression(Compression):
    """Passes payloads through unchanged."""
    
    name = 'none'
    
    def compress(self, payload: bytes) -> bytes:
        return payload
    
    def decompress(self, payload: bytes) -> bytes:
        return payload


class Base91Compression(Compression):
    """basE91 text encoding for stores that only accept printable values."""
    
    name = 'base91'
    
    def compress(self, payload: bytes) -> bytes:
        return base91.encode(payload)
    
    def decompress(self, payload: bytes) -> bytes:
        return base91.decode(payload)


_COMPRESSIONS: Dict[str, Compression] = {
    NoCompression.name: NoCompression(),
    Base91Compression.name: Base91Compression(),
}


def get_compression(name: str) -> Compression:
    """Look up a compression variant by name."""
    try:
        return _COMPRESSIONS[name]
    except KeyError:
        raise InvalidArgumentError(
            'compression', f"unknown compression '{name}', expected one of {', '.join(_COMPRESSIONS)}"
        ) from None


def encode_payload(pairs: Iterable[Pair], compression: str = 'base91') -> bytes:
    """Serialize and compress pairs for a backing store write."""
    return get_compression(compression).compress(serialize_entries(pairs))


def decode_payload(payload: bytes, compression: str = 'base91', key: Optional[str] = None) -> List[Pair]:
    """Decompress and parse a payload read from the backing store."""
    try:
        return deserialize_entries(get_compression(compression).decompress(payload))
    except CorruptPayloadError as e:
        if key is not None and e.key is None:
            raise CorruptPayloadError(e.reason, key=key) from e
        raise
