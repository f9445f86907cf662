"""
QuickXorHash, the content hash the drive service reports for uploaded files.

Each input byte is XORed into a 160-bit ring at a bit offset that advances
by 11 per byte; the file length is XORed into the last 8 bytes.
"""
import base64
from pathlib import Path
from typing import Union

WIDTH_IN_BITS = 160
SHIFT = 11
# Offsets repeat every 160 bytes because 160 * 11 is a multiple of 160
LANE_COUNT = 160
READ_SIZE = LANE_COUNT * 8192

_MASK = (1 << WIDTH_IN_BITS) - 1


def _fold(data: bytes) -> int:
    """XOR 160-byte blocks of data together.

    Byte r of the result is the XOR of every byte whose index is r mod 160.
    """
    blocks = len(data) // LANE_COUNT
    padded_blocks = 1 << (blocks - 1).bit_length()
    data = data + bytes((padded_blocks - blocks) * LANE_COUNT)

    while len(data) > LANE_COUNT:
        half = len(data) // 2
        folded = int.from_bytes(data[:half], 'little') ^ int.from_bytes(data[half:], 'little')
        data = folded.to_bytes(half, 'little')
    return int.from_bytes(data, 'little')


class QuickXorHash:
    """Incremental QuickXorHash."""

    def __init__(self):
        self._lanes = 0
        self._length = 0

    def update(self, data: bytes) -> None:
        if not data:
            return
        phase = self._length % LANE_COUNT
        aligned = bytes(phase) + bytes(data)
        tail = -len(aligned) % LANE_COUNT
        self._lanes ^= _fold(aligned + bytes(tail))
        self._length += len(data)

    def digest(self) -> bytes:
        value = 0
        for lane in range(LANE_COUNT):
            b = (self._lanes >> (8 * lane)) & 0xFF
            if not b:
                continue
            offset = (lane * SHIFT) % WIDTH_IN_BITS
            value ^= b << offset
            if offset > WIDTH_IN_BITS - 8:
                value ^= b >> (WIDTH_IN_BITS - offset)

        out = bytearray((value & _MASK).to_bytes(WIDTH_IN_BITS // 8, 'little'))
        length_bytes = self._length.to_bytes(8, 'little')
        start = len(out) - len(length_bytes)
        for i, b in enumerate(length_bytes):
            out[start + i] ^= b
        return bytes(out)

    def b64digest(self) -> str:
        return base64.b64encode(self.digest()).decode('ascii')


def quick_xor_hash(path: Union[str, Path]) -> str:
    """Compute the base64 QuickXorHash of a file."""
    hasher = QuickXorHash()
    with open(path, 'rb') as f:
        while True:
            chunk = f.read(READ_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
    return hasher.b64digest()
