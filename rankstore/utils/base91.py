"""
basE91 binary-to-text encoding.

Packs 13 or 14 bits into every pair of output characters drawn from 91
printable ASCII characters (everything except space, dash, backslash and
single quote), so the output is roughly 23% larger than the input.
"""

from rankstore.utils.rank_exceptions import CorruptPayloadError

ALPHABET = (
    b'ABCDEFGHIJKLMNOPQRSTUVWXYZ'
    b'abcdefghijklmnopqrstuvwxyz'
    b'0123456789!#$%&()*+,./:;<=>?@[]^_`{|}~"'
)

_DECODE_TABLE = {char: index for index, char in enumerate(ALPHABET)}


def encode(data: bytes) -> bytes:
    """Encode raw bytes to basE91 ASCII bytes."""
    out = bytearray()
    queue = 0
    bits = 0
    
    for byte in data:
        queue |= byte << bits
        bits += 8
        if bits > 13:
            value = queue & 8191
            if value > 88:
                queue >>= 13
                bits -= 13
            else:
                # Low values take an extra bit so both characters stay in range
                value = queue & 16383
                queue >>= 14
                bits -= 14
            out.append(ALPHABET[value % 91])
            out.append(ALPHABET[value // 91])
    
    if bits:
        out.append(ALPHABET[queue % 91])
        if bits > 7 or queue > 90:
            out.append(ALPHABET[queue // 91])
    
    return bytes(out)


def decode(data: bytes) -> bytes:
    """Decode basE91 ASCII bytes, rejecting characters outside the alphabet."""
    out = bytearray()
    value = -1
    queue = 0
    bits = 0
    
    for position, char in enumerate(data):
        digit = _DECODE_TABLE.get(char)
        if digit is None:
            raise CorruptPayloadError(f"invalid base91 character {chr(char)!r} at offset {position}")
        
        if value < 0:
            value = digit
            continue
        
        value += digit * 91
        queue |= value << bits
        bits += 13 if (value & 8191) > 88 else 14
        while bits > 7:
            out.append(queue & 255)
            queue >>= 8
            bits -= 8
        value = -1
    
    if value >= 0:
        out.append((queue | value << bits) & 255)
    
    return bytes(out)
