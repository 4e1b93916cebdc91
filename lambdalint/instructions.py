"""
Instruction stream decoding for method bodies.

iter_instructions is a generator: a consumer that reaches a verdict simply
stops iterating and the rest of the method is never decoded.
"""

import struct
from dataclasses import dataclass
from typing import Iterator

from .bytereader import ByteCursor, DecodeError
from .classfile import Opcode


_OPERAND_SIZES: dict[int, int] = {}
for _op in (Opcode.BIPUSH, Opcode.LDC, Opcode.RET, Opcode.NEWARRAY,
            Opcode.ILOAD, Opcode.LLOAD, Opcode.FLOAD, Opcode.DLOAD, Opcode.ALOAD,
            Opcode.ISTORE, Opcode.LSTORE, Opcode.FSTORE, Opcode.DSTORE, Opcode.ASTORE):
    _OPERAND_SIZES[_op] = 1
for _op in range(Opcode.IFEQ, Opcode.JSR + 1):
    _OPERAND_SIZES[_op] = 2
for _op in range(Opcode.GETSTATIC, Opcode.INVOKESTATIC + 1):
    _OPERAND_SIZES[_op] = 2
for _op in (Opcode.SIPUSH, Opcode.LDC_W, Opcode.LDC2_W, Opcode.IINC, Opcode.NEW,
            Opcode.ANEWARRAY, Opcode.CHECKCAST, Opcode.INSTANCEOF,
            Opcode.IFNULL, Opcode.IFNONNULL):
    _OPERAND_SIZES[_op] = 2
_OPERAND_SIZES[Opcode.MULTIANEWARRAY] = 3
for _op in (Opcode.INVOKEINTERFACE, Opcode.INVOKEDYNAMIC, Opcode.GOTO_W, Opcode.JSR_W):
    _OPERAND_SIZES[_op] = 4
del _op

# Opcodes whose first operand is a u2 constant pool index
CP_INDEX_OPCODES = frozenset({
    Opcode.LDC_W, Opcode.LDC2_W,
    Opcode.GETSTATIC, Opcode.PUTSTATIC, Opcode.GETFIELD, Opcode.PUTFIELD,
    Opcode.INVOKEVIRTUAL, Opcode.INVOKESPECIAL, Opcode.INVOKESTATIC,
    Opcode.INVOKEINTERFACE, Opcode.INVOKEDYNAMIC,
    Opcode.NEW, Opcode.ANEWARRAY, Opcode.CHECKCAST, Opcode.INSTANCEOF,
    Opcode.MULTIANEWARRAY,
})


@dataclass(frozen=True)
class Instruction:
    """A decoded instruction: opcode plus its raw operand bytes."""
    pc: int
    opcode: Opcode
    operands: bytes = b""

    @property
    def cp_index(self) -> int:
        """Constant pool operand of LDC and the u2-indexed opcodes."""
        if self.opcode == Opcode.LDC:
            return self.operands[0]
        if self.opcode in CP_INDEX_OPCODES:
            return struct.unpack_from(">H", self.operands)[0]
        raise ValueError(f"{self.opcode.name} has no constant pool operand")

    @property
    def local_index(self) -> int:
        """Local variable slot of a load/store, including the _0.._3 short forms."""
        op = self.opcode
        if Opcode.ILOAD <= op <= Opcode.ALOAD or Opcode.ISTORE <= op <= Opcode.ASTORE:
            return self.operands[0]
        if Opcode.ILOAD_0 <= op <= Opcode.ALOAD_3:
            return (op - Opcode.ILOAD_0) % 4
        if Opcode.ISTORE_0 <= op <= Opcode.ASTORE_3:
            return (op - Opcode.ISTORE_0) % 4
        raise ValueError(f"{op.name} does not address a local variable")


def _switch_operand_size(cursor: ByteCursor, opcode: int, pc: int) -> int:
    """Width of a tableswitch/lookupswitch operand block, cursor left unchanged."""
    start = cursor.pos
    padding = (4 - (pc + 1) % 4) % 4
    cursor.skip(padding)
    cursor.skip(4)  # default
    if opcode == Opcode.TABLESWITCH:
        low = cursor.read_i4()
        high = cursor.read_i4()
        if high < low:
            raise DecodeError(f"tableswitch at pc {pc} has high {high} < low {low}")
        size = padding + 12 + 4 * (high - low + 1)
    else:
        npairs = cursor.read_i4()
        if npairs < 0:
            raise DecodeError(f"lookupswitch at pc {pc} has negative npairs")
        size = padding + 8 + 8 * npairs
    cursor.seek(start)
    return size


def iter_instructions(code: bytes) -> Iterator[Instruction]:
    """Decode `code` one instruction at a time.

    Raises DecodeError on an unknown opcode or an operand running past the end.
    """
    cursor = ByteCursor(code)
    while cursor.remaining:
        pc = cursor.pos
        raw = cursor.read_u1()
        try:
            opcode = Opcode(raw)
        except ValueError:
            raise DecodeError(f"Unknown opcode 0x{raw:02x} at pc {pc}") from None

        if opcode in (Opcode.TABLESWITCH, Opcode.LOOKUPSWITCH):
            size = _switch_operand_size(cursor, opcode, pc)
        elif opcode == Opcode.WIDE:
            # u1 opcode + u2 index, plus an s2 constant for iinc
            modified = cursor.read_u1()
            cursor.seek(cursor.pos - 1)
            size = 5 if modified == Opcode.IINC else 3
        else:
            size = _OPERAND_SIZES.get(opcode, 0)

        yield Instruction(pc, opcode, cursor.read_bytes(size))


def contains_opcode(code: bytes, opcode: Opcode) -> bool:
    """True if any instruction in `code` is `opcode`."""
    return any(ins.opcode == opcode for ins in iter_instructions(code))
