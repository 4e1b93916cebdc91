"""
Bounds-checked big-endian reader over a byte buffer.
"""

import struct


class DecodeError(Exception):
    """A read ran past the end of the buffer or hit an invalid value."""
    pass


class ByteCursor:
    """Sequential reader with an explicit position.

    Every read checks the remaining length first, so truncated input
    surfaces as DecodeError instead of an IndexError or struct.error.
    """

    def __init__(self, data: bytes, pos: int = 0):
        self.data = data
        self.pos = pos

    def __len__(self) -> int:
        return len(self.data)

    @property
    def remaining(self) -> int:
        return len(self.data) - self.pos

    def _require(self, size: int):
        if size < 0 or self.pos + size > len(self.data):
            raise DecodeError(
                f"Read of {size} byte(s) at offset {self.pos} exceeds buffer of {len(self.data)}")

    def _unpack(self, fmt: str, size: int) -> int:
        self._require(size)
        val = struct.unpack_from(fmt, self.data, self.pos)[0]
        self.pos += size
        return val

    def read_u1(self) -> int:
        return self._unpack(">B", 1)

    def read_u2(self) -> int:
        return self._unpack(">H", 2)

    def read_u4(self) -> int:
        return self._unpack(">I", 4)

    def read_i4(self) -> int:
        return self._unpack(">i", 4)

    def read_i8(self) -> int:
        return self._unpack(">q", 8)

    def read_f4(self) -> float:
        return self._unpack(">f", 4)

    def read_f8(self) -> float:
        return self._unpack(">d", 8)

    def read_u2_array(self, count: int) -> tuple[int, ...]:
        """Read `count` consecutive u2 values."""
        self._require(2 * count)
        values = struct.unpack_from(f">{count}H", self.data, self.pos)
        self.pos += 2 * count
        return values

    def read_bytes(self, length: int) -> bytes:
        self._require(length)
        val = bytes(self.data[self.pos:self.pos + length])
        self.pos += length
        return val

    def skip(self, length: int):
        self._require(length)
        self.pos += length

    def seek(self, pos: int):
        if not 0 <= pos <= len(self.data):
            raise DecodeError(f"Offset {pos} outside buffer of {len(self.data)}")
        self.pos = pos
