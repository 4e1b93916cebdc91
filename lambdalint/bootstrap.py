"""
Decoder for the BootstrapMethods class attribute (JVMS 4.7.23).

Layout::

    u2 num_bootstrap_methods
    {   u2 bootstrap_method_ref
        u2 num_bootstrap_arguments
        u2 bootstrap_arguments[num_bootstrap_arguments]
    } bootstrap_methods[num_bootstrap_methods]

Entries have variable width, so the offset of entry k is found by walking
entries 0..k-1.
"""

from dataclasses import dataclass
from typing import Iterator, Optional

from .bytereader import ByteCursor, DecodeError
from .classfile import ConstantPoolTag
from .constants import ConstantPool, MethodHandle


class MalformedAttributeError(DecodeError):
    """BootstrapMethods bytes are truncated or inconsistent with a lookup."""
    pass


@dataclass(frozen=True)
class BootstrapEntry:
    """One bootstrap method: its handle index and argument indices."""
    method_ref: int
    arguments: tuple[int, ...]


class BootstrapMethods:
    """View over the raw bytes of a BootstrapMethods attribute.

    The whole table is walked once on construction so that a count that
    disagrees with the bytes, or bytes left over after the last entry, is
    rejected before any entry is looked up.
    """

    ATTRIBUTE_NAME = "BootstrapMethods"

    def __init__(self, data: bytes):
        self.data = bytes(data)
        cursor = ByteCursor(self.data)
        try:
            self.count = cursor.read_u2()
        except DecodeError as e:
            raise MalformedAttributeError(f"BootstrapMethods attribute too short: {e}") from e

        self._offsets: list[int] = []
        for index in range(self.count):
            self._offsets.append(cursor.pos)
            try:
                cursor.skip(2)  # method ref
                cursor.skip(2 * cursor.read_u2())
            except DecodeError as e:
                raise MalformedAttributeError(
                    f"Truncated bootstrap entry {index} of {self.count}: {e}") from e
        if cursor.remaining:
            raise MalformedAttributeError(
                f"{cursor.remaining} trailing byte(s) after {self.count} bootstrap entries")

    def __len__(self) -> int:
        return self.count

    def entry(self, index: int) -> BootstrapEntry:
        """Decode bootstrap entry `index`."""
        if not 0 <= index < self.count:
            raise MalformedAttributeError(
                f"Bootstrap index {index} out of range for {self.count} entries")
        cursor = ByteCursor(self.data, pos=self._offsets[index])
        method_ref = cursor.read_u2()
        arguments = cursor.read_u2_array(cursor.read_u2())
        return BootstrapEntry(method_ref, arguments)

    def entries(self) -> Iterator[BootstrapEntry]:
        for index in range(self.count):
            yield self.entry(index)

    def find_method_handle(self, index: int, pool: ConstantPool) -> Optional[MethodHandle]:
        """First method-handle argument of entry `index`, or None if it has none.

        Raises MalformedAttributeError for a bad index or truncated bytes and
        ResolutionError when an argument does not resolve in `pool`.
        """
        for arg in self.entry(index).arguments:
            if pool.tag_of(arg) == ConstantPoolTag.METHOD_HANDLE:
                return pool.method_handle(arg)
        return None
