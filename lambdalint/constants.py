"""
Typed lookups over a parsed constant pool.
"""

from dataclasses import dataclass
from typing import Any, Optional, Sequence

from .classfile import ConstantPoolTag, ReferenceKind


class ResolutionError(Exception):
    """A constant pool index is out of range or names the wrong kind of entry."""
    pass


@dataclass(frozen=True)
class ConstantPoolEntry:
    """A constant pool entry."""
    tag: int
    value: Any


@dataclass(frozen=True)
class MemberRef:
    """A resolved Fieldref, Methodref or InterfaceMethodref."""
    tag: int
    class_name: str
    name: str
    descriptor: str


@dataclass(frozen=True)
class MethodHandle:
    """A resolved CONSTANT_MethodHandle."""
    kind: ReferenceKind
    reference: MemberRef


@dataclass(frozen=True)
class InvokeDynamic:
    """A resolved CONSTANT_InvokeDynamic call site."""
    bootstrap_index: int
    name: str
    descriptor: str


MEMBER_REF_TAGS = (
    ConstantPoolTag.FIELDREF,
    ConstantPoolTag.METHODREF,
    ConstantPoolTag.INTERFACE_METHODREF,
)


class ConstantPool:
    """Read-only view of a class's constant pool (1-indexed)."""

    def __init__(self, entries: Sequence[Optional[ConstantPoolEntry]]):
        self._entries = tuple(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def entry(self, index: int) -> ConstantPoolEntry:
        if not 0 < index < len(self._entries):
            raise ResolutionError(f"Constant pool index {index} out of range 1..{len(self._entries) - 1}")
        entry = self._entries[index]
        if entry is None:
            # Second slot of a Long or Double
            raise ResolutionError(f"Constant pool index {index} is an unusable slot")
        return entry

    def _expect(self, index: int, *tags: int) -> ConstantPoolEntry:
        entry = self.entry(index)
        if entry.tag not in tags:
            expected = "/".join(ConstantPoolTag(t).name for t in tags)
            raise ResolutionError(f"Expected {expected} at index {index}, got tag {entry.tag}")
        return entry

    def tag_of(self, index: int) -> int:
        return self.entry(index).tag

    def utf8(self, index: int) -> str:
        return self._expect(index, ConstantPoolTag.UTF8).value

    def class_name(self, index: int) -> str:
        """Internal class name, e.g. 'java/lang/String'."""
        return self.utf8(self._expect(index, ConstantPoolTag.CLASS).value)

    def name_and_type(self, index: int) -> tuple[str, str]:
        name_idx, desc_idx = self._expect(index, ConstantPoolTag.NAME_AND_TYPE).value
        return self.utf8(name_idx), self.utf8(desc_idx)

    def member_ref(self, index: int) -> MemberRef:
        entry = self._expect(index, *MEMBER_REF_TAGS)
        class_idx, nat_idx = entry.value
        name, descriptor = self.name_and_type(nat_idx)
        return MemberRef(entry.tag, self.class_name(class_idx), name, descriptor)

    def method_handle(self, index: int) -> MethodHandle:
        kind, ref_idx = self._expect(index, ConstantPoolTag.METHOD_HANDLE).value
        try:
            kind = ReferenceKind(kind)
        except ValueError:
            raise ResolutionError(f"Unknown method handle kind {kind} at index {index}") from None
        return MethodHandle(kind, self.member_ref(ref_idx))

    def invoke_dynamic(self, index: int) -> InvokeDynamic:
        bootstrap_idx, nat_idx = self._expect(index, ConstantPoolTag.INVOKE_DYNAMIC).value
        name, descriptor = self.name_and_type(nat_idx)
        return InvokeDynamic(bootstrap_idx, name, descriptor)
