"""Tests for instruction decoding."""

import struct

import pytest

from lambdalint.bytereader import DecodeError
from lambdalint.classfile import BytecodeBuilder, ConstantPool, Opcode
from lambdalint.instructions import contains_opcode, iter_instructions


def decode(code: bytes):
    return [(ins.pc, ins.opcode) for ins in iter_instructions(code)]


class TestDecode:
    def test_simple_sequence(self):
        b = BytecodeBuilder(ConstantPool())
        b.aload(0)
        b.invokevirtual("java/lang/String", "length", "()I")
        b.ireturn()
        assert decode(bytes(b.code)) == [
            (0, Opcode.ALOAD_0), (1, Opcode.INVOKEVIRTUAL), (4, Opcode.IRETURN)]

    def test_operand_widths(self):
        b = BytecodeBuilder(ConstantPool())
        b.iconst(100)       # bipush
        b.iconst(1000)      # sipush
        b.aload(5)          # aload 5
        b.invokeinterface("java/util/List", "size", "()I")
        b.invokedynamic(0, "run", "()Ljava/lang/Runnable;")
        b.return_()
        assert decode(bytes(b.code)) == [
            (0, Opcode.BIPUSH), (2, Opcode.SIPUSH), (5, Opcode.ALOAD),
            (7, Opcode.INVOKEINTERFACE), (12, Opcode.INVOKEDYNAMIC), (17, Opcode.RETURN)]

    def test_cp_index_and_local_index(self):
        cp = ConstantPool()
        b = BytecodeBuilder(cp)
        b.aload(2)
        b.aload(7)
        b.invokevirtual("java/lang/String", "length", "()I")
        ins = list(iter_instructions(bytes(b.code)))
        assert ins[0].local_index == 2
        assert ins[1].local_index == 7
        assert ins[2].cp_index == cp.add_methodref("java/lang/String", "length", "()I")
        with pytest.raises(ValueError):
            ins[0].cp_index

    def test_ldc_cp_index(self):
        cp = ConstantPool()
        b = BytecodeBuilder(cp)
        b.ldc_string("hello")
        b.areturn()
        ins = list(iter_instructions(bytes(b.code)))
        assert [i.opcode for i in ins] == [Opcode.LDC, Opcode.ARETURN]
        assert ins[0].cp_index == cp.add_string("hello")

    def test_tableswitch_padding(self):
        # nop at pc 0, tableswitch at pc 1 -> two padding bytes
        code = bytes([Opcode.NOP, Opcode.TABLESWITCH, 0, 0])
        code += struct.pack(">iii", 20, 0, 1) + struct.pack(">ii", 20, 20)
        code += bytes([Opcode.RETURN])
        assert decode(code) == [(0, Opcode.NOP), (1, Opcode.TABLESWITCH), (24, Opcode.RETURN)]

    def test_lookupswitch(self):
        # lookupswitch at pc 0 -> three padding bytes
        code = bytes([Opcode.LOOKUPSWITCH, 0, 0, 0])
        code += struct.pack(">ii", 12, 1) + struct.pack(">ii", 5, 12)
        code += bytes([Opcode.RETURN])
        assert decode(code) == [(0, Opcode.LOOKUPSWITCH), (20, Opcode.RETURN)]

    def test_wide(self):
        code = bytes([Opcode.WIDE, Opcode.ILOAD, 1, 0,
                      Opcode.WIDE, Opcode.IINC, 1, 0, 0, 5,
                      Opcode.RETURN])
        assert decode(code) == [(0, Opcode.WIDE), (4, Opcode.WIDE), (10, Opcode.RETURN)]

    def test_contains_opcode(self):
        b = BytecodeBuilder(ConstantPool())
        b.invokedynamic(0, "run", "()Ljava/lang/Runnable;")
        b.pop()
        b.return_()
        assert contains_opcode(bytes(b.code), Opcode.INVOKEDYNAMIC)
        assert not contains_opcode(bytes(b.code), Opcode.INVOKEVIRTUAL)


class TestDecodeErrors:
    def test_unknown_opcode(self):
        with pytest.raises(DecodeError):
            list(iter_instructions(bytes([0xFE])))

    def test_truncated_operand(self):
        with pytest.raises(DecodeError):
            list(iter_instructions(bytes([Opcode.INVOKEVIRTUAL, 0])))

    def test_stops_early_without_decoding_rest(self):
        code = bytes([Opcode.ALOAD_0, 0xFE])
        first = next(iter(iter_instructions(code)))
        assert first.opcode == Opcode.ALOAD_0
