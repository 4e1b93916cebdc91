"""
Java class file constants and a small class file assembler.

The constant tables are shared by the reader side of the analyzer. The
assembler emits just enough of the format (method handles, invokedynamic,
BootstrapMethods, LineNumberTable) to build lambda-bearing classes in memory.
"""

import struct
from dataclasses import dataclass, field
from typing import Optional
from enum import IntEnum, IntFlag


class ClassFileVersion:
    JAVA_6 = (50, 0)
    JAVA_7 = (51, 0)
    JAVA_8 = (52, 0)
    JAVA_11 = (55, 0)
    JAVA_17 = (61, 0)


class AccessFlags(IntFlag):
    PUBLIC = 0x0001
    PRIVATE = 0x0002
    PROTECTED = 0x0004
    STATIC = 0x0008
    FINAL = 0x0010
    SUPER = 0x0020  # For classes (invokespecial semantics)
    SYNCHRONIZED = 0x0020  # For methods
    VOLATILE = 0x0040
    BRIDGE = 0x0040
    TRANSIENT = 0x0080
    VARARGS = 0x0080
    NATIVE = 0x0100
    INTERFACE = 0x0200
    ABSTRACT = 0x0400
    STRICT = 0x0800
    SYNTHETIC = 0x1000
    ANNOTATION = 0x2000
    ENUM = 0x4000




class Opcode(IntEnum):
    NOP = 0x00
    ACONST_NULL = 0x01
    ICONST_M1 = 0x02
    ICONST_0 = 0x03
    ICONST_1 = 0x04
    ICONST_2 = 0x05
    ICONST_3 = 0x06
    ICONST_4 = 0x07
    ICONST_5 = 0x08
    LCONST_0 = 0x09
    LCONST_1 = 0x0A
    FCONST_0 = 0x0B
    FCONST_1 = 0x0C
    FCONST_2 = 0x0D
    DCONST_0 = 0x0E
    DCONST_1 = 0x0F
    BIPUSH = 0x10
    SIPUSH = 0x11
    LDC = 0x12
    LDC_W = 0x13
    LDC2_W = 0x14
    ILOAD = 0x15
    LLOAD = 0x16
    FLOAD = 0x17
    DLOAD = 0x18
    ALOAD = 0x19
    ILOAD_0 = 0x1A
    ILOAD_1 = 0x1B
    ILOAD_2 = 0x1C
    ILOAD_3 = 0x1D
    LLOAD_0 = 0x1E
    LLOAD_1 = 0x1F
    LLOAD_2 = 0x20
    LLOAD_3 = 0x21
    FLOAD_0 = 0x22
    FLOAD_1 = 0x23
    FLOAD_2 = 0x24
    FLOAD_3 = 0x25
    DLOAD_0 = 0x26
    DLOAD_1 = 0x27
    DLOAD_2 = 0x28
    DLOAD_3 = 0x29
    ALOAD_0 = 0x2A
    ALOAD_1 = 0x2B
    ALOAD_2 = 0x2C
    ALOAD_3 = 0x2D
    IALOAD = 0x2E
    LALOAD = 0x2F
    FALOAD = 0x30
    DALOAD = 0x31
    AALOAD = 0x32
    BALOAD = 0x33
    CALOAD = 0x34
    SALOAD = 0x35
    ISTORE = 0x36
    LSTORE = 0x37
    FSTORE = 0x38
    DSTORE = 0x39
    ASTORE = 0x3A
    ISTORE_0 = 0x3B
    ISTORE_1 = 0x3C
    ISTORE_2 = 0x3D
    ISTORE_3 = 0x3E
    LSTORE_0 = 0x3F
    LSTORE_1 = 0x40
    LSTORE_2 = 0x41
    LSTORE_3 = 0x42
    FSTORE_0 = 0x43
    FSTORE_1 = 0x44
    FSTORE_2 = 0x45
    FSTORE_3 = 0x46
    DSTORE_0 = 0x47
    DSTORE_1 = 0x48
    DSTORE_2 = 0x49
    DSTORE_3 = 0x4A
    ASTORE_0 = 0x4B
    ASTORE_1 = 0x4C
    ASTORE_2 = 0x4D
    ASTORE_3 = 0x4E
    IASTORE = 0x4F
    LASTORE = 0x50
    FASTORE = 0x51
    DASTORE = 0x52
    AASTORE = 0x53
    BASTORE = 0x54
    CASTORE = 0x55
    SASTORE = 0x56
    POP = 0x57
    POP2 = 0x58
    DUP = 0x59
    DUP_X1 = 0x5A
    DUP_X2 = 0x5B
    DUP2 = 0x5C
    DUP2_X1 = 0x5D
    DUP2_X2 = 0x5E
    SWAP = 0x5F
    IADD = 0x60
    LADD = 0x61
    FADD = 0x62
    DADD = 0x63
    ISUB = 0x64
    LSUB = 0x65
    FSUB = 0x66
    DSUB = 0x67
    IMUL = 0x68
    LMUL = 0x69
    FMUL = 0x6A
    DMUL = 0x6B
    IDIV = 0x6C
    LDIV = 0x6D
    FDIV = 0x6E
    DDIV = 0x6F
    IREM = 0x70
    LREM = 0x71
    FREM = 0x72
    DREM = 0x73
    INEG = 0x74
    LNEG = 0x75
    FNEG = 0x76
    DNEG = 0x77
    ISHL = 0x78
    LSHL = 0x79
    ISHR = 0x7A
    LSHR = 0x7B
    IUSHR = 0x7C
    LUSHR = 0x7D
    IAND = 0x7E
    LAND = 0x7F
    IOR = 0x80
    LOR = 0x81
    IXOR = 0x82
    LXOR = 0x83
    IINC = 0x84
    I2L = 0x85
    I2F = 0x86
    I2D = 0x87
    L2I = 0x88
    L2F = 0x89
    L2D = 0x8A
    F2I = 0x8B
    F2L = 0x8C
    F2D = 0x8D
    D2I = 0x8E
    D2L = 0x8F
    D2F = 0x90
    I2B = 0x91
    I2C = 0x92
    I2S = 0x93
    LCMP = 0x94
    FCMPL = 0x95
    FCMPG = 0x96
    DCMPL = 0x97
    DCMPG = 0x98
    IFEQ = 0x99
    IFNE = 0x9A
    IFLT = 0x9B
    IFGE = 0x9C
    IFGT = 0x9D
    IFLE = 0x9E
    IF_ICMPEQ = 0x9F
    IF_ICMPNE = 0xA0
    IF_ICMPLT = 0xA1
    IF_ICMPGE = 0xA2
    IF_ICMPGT = 0xA3
    IF_ICMPLE = 0xA4
    IF_ACMPEQ = 0xA5
    IF_ACMPNE = 0xA6
    GOTO = 0xA7
    JSR = 0xA8
    RET = 0xA9
    TABLESWITCH = 0xAA
    LOOKUPSWITCH = 0xAB
    IRETURN = 0xAC
    LRETURN = 0xAD
    FRETURN = 0xAE
    DRETURN = 0xAF
    ARETURN = 0xB0
    RETURN = 0xB1
    GETSTATIC = 0xB2
    PUTSTATIC = 0xB3
    GETFIELD = 0xB4
    PUTFIELD = 0xB5
    INVOKEVIRTUAL = 0xB6
    INVOKESPECIAL = 0xB7
    INVOKESTATIC = 0xB8
    INVOKEINTERFACE = 0xB9
    INVOKEDYNAMIC = 0xBA
    NEW = 0xBB
    NEWARRAY = 0xBC
    ANEWARRAY = 0xBD
    ARRAYLENGTH = 0xBE
    ATHROW = 0xBF
    CHECKCAST = 0xC0
    INSTANCEOF = 0xC1
    MONITORENTER = 0xC2
    MONITOREXIT = 0xC3
    WIDE = 0xC4
    MULTIANEWARRAY = 0xC5
    IFNULL = 0xC6
    IFNONNULL = 0xC7
    GOTO_W = 0xC8
    JSR_W = 0xC9


RETURN_OPCODES = frozenset({
    Opcode.IRETURN, Opcode.LRETURN, Opcode.FRETURN,
    Opcode.DRETURN, Opcode.ARETURN, Opcode.RETURN,
})


class ConstantPoolTag(IntEnum):
    UTF8 = 1
    INTEGER = 3
    FLOAT = 4
    LONG = 5
    DOUBLE = 6
    CLASS = 7
    STRING = 8
    FIELDREF = 9
    METHODREF = 10
    INTERFACE_METHODREF = 11
    NAME_AND_TYPE = 12
    METHOD_HANDLE = 15
    METHOD_TYPE = 16
    DYNAMIC = 17
    INVOKE_DYNAMIC = 18
    MODULE = 19
    PACKAGE = 20


class ReferenceKind(IntEnum):
    """Method handle reference kinds (JVMS 4.4.8)."""
    GET_FIELD = 1
    GET_STATIC = 2
    PUT_FIELD = 3
    PUT_STATIC = 4
    INVOKE_VIRTUAL = 5
    INVOKE_STATIC = 6
    INVOKE_SPECIAL = 7
    NEW_INVOKE_SPECIAL = 8
    INVOKE_INTERFACE = 9


LAMBDA_METAFACTORY = "java/lang/invoke/LambdaMetafactory"
METAFACTORY_DESCRIPTOR = (
    "(Ljava/lang/invoke/MethodHandles$Lookup;"
    "Ljava/lang/String;"
    "Ljava/lang/invoke/MethodType;"
    "Ljava/lang/invoke/MethodType;"
    "Ljava/lang/invoke/MethodHandle;"
    "Ljava/lang/invoke/MethodType;)"
    "Ljava/lang/invoke/CallSite;"
)


class ConstantPool:
    """Manages the constant pool for a class file."""

    def __init__(self):
        self._entries: list[tuple] = [None]  # 1-indexed
        self._cache: dict = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _add(self, entry: tuple) -> int:
        if entry in self._cache:
            return self._cache[entry]
        idx = len(self._entries)
        self._entries.append(entry)
        self._cache[entry] = idx
        # Long and Double take two slots
        if entry[0] in (ConstantPoolTag.LONG, ConstantPoolTag.DOUBLE):
            self._entries.append(None)
        return idx

    def add_utf8(self, value: str) -> int:
        return self._add((ConstantPoolTag.UTF8, value))

    def add_integer(self, value: int) -> int:
        return self._add((ConstantPoolTag.INTEGER, value))

    def add_long(self, value: int) -> int:
        return self._add((ConstantPoolTag.LONG, value))

    def add_class(self, internal_name: str) -> int:
        name_idx = self.add_utf8(internal_name)
        return self._add((ConstantPoolTag.CLASS, name_idx))

    def add_string(self, value: str) -> int:
        utf8_idx = self.add_utf8(value)
        return self._add((ConstantPoolTag.STRING, utf8_idx))

    def add_name_and_type(self, name: str, descriptor: str) -> int:
        name_idx = self.add_utf8(name)
        desc_idx = self.add_utf8(descriptor)
        return self._add((ConstantPoolTag.NAME_AND_TYPE, name_idx, desc_idx))

    def add_methodref(self, class_name: str, method_name: str, descriptor: str) -> int:
        class_idx = self.add_class(class_name)
        nat_idx = self.add_name_and_type(method_name, descriptor)
        return self._add((ConstantPoolTag.METHODREF, class_idx, nat_idx))

    def add_interface_methodref(self, class_name: str, method_name: str, descriptor: str) -> int:
        class_idx = self.add_class(class_name)
        nat_idx = self.add_name_and_type(method_name, descriptor)
        return self._add((ConstantPoolTag.INTERFACE_METHODREF, class_idx, nat_idx))

    def add_method_handle(self, kind: int, reference_idx: int) -> int:
        return self._add((ConstantPoolTag.METHOD_HANDLE, kind, reference_idx))

    def add_method_type(self, descriptor: str) -> int:
        desc_idx = self.add_utf8(descriptor)
        return self._add((ConstantPoolTag.METHOD_TYPE, desc_idx))

    def add_invoke_dynamic(self, bootstrap_idx: int, name: str, descriptor: str) -> int:
        nat_idx = self.add_name_and_type(name, descriptor)
        return self._add((ConstantPoolTag.INVOKE_DYNAMIC, bootstrap_idx, nat_idx))

    def write(self, out: bytearray):
        out.extend(struct.pack(">H", len(self._entries)))
        for entry in self._entries[1:]:
            if entry is None:
                continue
            tag = entry[0]
            out.append(tag)
            if tag == ConstantPoolTag.UTF8:
                data = entry[1].encode("utf-8")
                out.extend(struct.pack(">H", len(data)))
                out.extend(data)
            elif tag == ConstantPoolTag.INTEGER:
                out.extend(struct.pack(">i", entry[1]))
            elif tag == ConstantPoolTag.LONG:
                out.extend(struct.pack(">q", entry[1]))
            elif tag in (ConstantPoolTag.CLASS, ConstantPoolTag.STRING,
                         ConstantPoolTag.METHOD_TYPE):
                out.extend(struct.pack(">H", entry[1]))
            elif tag == ConstantPoolTag.METHOD_HANDLE:
                out.extend(struct.pack(">BH", entry[1], entry[2]))
            elif tag in (ConstantPoolTag.NAME_AND_TYPE, ConstantPoolTag.FIELDREF,
                         ConstantPoolTag.METHODREF, ConstantPoolTag.INTERFACE_METHODREF,
                         ConstantPoolTag.INVOKE_DYNAMIC):
                out.extend(struct.pack(">HH", entry[1], entry[2]))
            else:
                raise ValueError(f"Cannot write constant pool tag: {tag}")


def _write_attribute(cp: ConstantPool, out: bytearray, name: str, data: bytes):
    out.extend(struct.pack(">H", cp.add_utf8(name)))
    out.extend(struct.pack(">I", len(data)))
    out.extend(data)


@dataclass
class CodeAttribute:
    """Code attribute for a method."""
    max_stack: int = 0
    max_locals: int = 0
    code: bytearray = field(default_factory=bytearray)
    line_numbers: list[tuple[int, int]] = field(default_factory=list)  # (start_pc, line)

    def write(self, cp: ConstantPool, out: bytearray):
        data = bytearray()
        data.extend(struct.pack(">HH", self.max_stack, self.max_locals))
        data.extend(struct.pack(">I", len(self.code)))
        data.extend(self.code)
        data.extend(struct.pack(">H", 0))  # exception table
        if self.line_numbers:
            table = bytearray(struct.pack(">H", len(self.line_numbers)))
            for start_pc, line in self.line_numbers:
                table.extend(struct.pack(">HH", start_pc, line))
            data.extend(struct.pack(">H", 1))
            _write_attribute(cp, data, "LineNumberTable", bytes(table))
        else:
            data.extend(struct.pack(">H", 0))
        _write_attribute(cp, out, "Code", bytes(data))


@dataclass
class FieldInfo:
    """Field in a class file."""
    access_flags: int
    name: str
    descriptor: str

    def write(self, cp: ConstantPool, out: bytearray):
        out.extend(struct.pack(">HHH", self.access_flags,
                               cp.add_utf8(self.name), cp.add_utf8(self.descriptor)))
        out.extend(struct.pack(">H", 0))


@dataclass
class MethodDef:
    """Method in a class file."""
    access_flags: int
    name: str
    descriptor: str
    code: Optional[CodeAttribute] = None

    def write(self, cp: ConstantPool, out: bytearray):
        out.extend(struct.pack(">HHH", self.access_flags,
                               cp.add_utf8(self.name), cp.add_utf8(self.descriptor)))
        out.extend(struct.pack(">H", 1 if self.code else 0))
        if self.code:
            self.code.write(cp, out)


class ClassFile:
    """Represents a Java class file."""

    MAGIC = 0xCAFEBABE

    def __init__(self, name: str, super_class: str = "java/lang/Object",
                 version: tuple[int, int] = ClassFileVersion.JAVA_8):
        self.version = version
        self.access_flags = AccessFlags.PUBLIC | AccessFlags.SUPER
        self.name = name
        self.super_class = super_class
        self.interfaces: list[str] = []
        self.fields: list[FieldInfo] = []
        self.methods: list[MethodDef] = []
        self.cp = ConstantPool()
        self.source_file: Optional[str] = None
        self.bootstrap_methods: list[tuple[int, list[int]]] = []
        # Raw (name, bytes) class attributes written verbatim after the others
        self.extra_attributes: list[tuple[str, bytes]] = []

    def add_method(self, method: MethodDef):
        self.methods.append(method)

    def add_field(self, field_info: FieldInfo):
        self.fields.append(field_info)

    def add_bootstrap_method(self, method_handle_idx: int, arguments: list[int]) -> int:
        """Append a BootstrapMethods entry and return its index."""
        self.bootstrap_methods.append((method_handle_idx, list(arguments)))
        return len(self.bootstrap_methods) - 1

    def add_lambda_bootstrap(self, impl_class: str, impl_name: str, impl_descriptor: str,
                             sam_descriptor: str, kind: int = ReferenceKind.INVOKE_STATIC) -> int:
        """Register a LambdaMetafactory bootstrap whose implementation handle targets impl_name."""
        metafactory_ref = self.cp.add_methodref(LAMBDA_METAFACTORY, "metafactory",
                                                METAFACTORY_DESCRIPTOR)
        metafactory_handle = self.cp.add_method_handle(ReferenceKind.INVOKE_STATIC, metafactory_ref)
        sam_type_idx = self.cp.add_method_type(sam_descriptor)
        impl_ref = self.cp.add_methodref(impl_class, impl_name, impl_descriptor)
        impl_handle = self.cp.add_method_handle(kind, impl_ref)
        instantiated_type_idx = self.cp.add_method_type(impl_descriptor)
        return self.add_bootstrap_method(
            metafactory_handle, [sam_type_idx, impl_handle, instantiated_type_idx])

    def bootstrap_methods_bytes(self) -> bytes:
        data = bytearray(struct.pack(">H", len(self.bootstrap_methods)))
        for method_ref, arguments in self.bootstrap_methods:
            data.extend(struct.pack(">HH", method_ref, len(arguments)))
            for arg in arguments:
                data.extend(struct.pack(">H", arg))
        return bytes(data)

    def to_bytes(self) -> bytes:
        # Everything after the constant pool is written first so that every
        # constant it references is registered before the pool is emitted.
        body = bytearray()
        body.extend(struct.pack(">H", self.access_flags))
        body.extend(struct.pack(">H", self.cp.add_class(self.name)))
        body.extend(struct.pack(">H", self.cp.add_class(self.super_class)))

        body.extend(struct.pack(">H", len(self.interfaces)))
        for iface in self.interfaces:
            body.extend(struct.pack(">H", self.cp.add_class(iface)))

        body.extend(struct.pack(">H", len(self.fields)))
        for fld in self.fields:
            fld.write(self.cp, body)

        body.extend(struct.pack(">H", len(self.methods)))
        for method in self.methods:
            method.write(self.cp, body)

        attributes = []
        if self.source_file:
            attributes.append(("SourceFile", struct.pack(">H", self.cp.add_utf8(self.source_file))))
        if self.bootstrap_methods:
            attributes.append(("BootstrapMethods", self.bootstrap_methods_bytes()))
        attributes.extend(self.extra_attributes)
        body.extend(struct.pack(">H", len(attributes)))
        for name, data in attributes:
            _write_attribute(self.cp, body, name, data)

        out = bytearray()
        out.extend(struct.pack(">I", self.MAGIC))
        out.extend(struct.pack(">HH", self.version[1], self.version[0]))
        self.cp.write(out)
        out.extend(body)
        return bytes(out)

    def write(self, path: str):
        with open(path, "wb") as f:
            f.write(self.to_bytes())


class BytecodeBuilder:
    """Helper for building bytecode."""

    def __init__(self, cp: ConstantPool, max_locals: int = 0):
        self.cp = cp
        self.code = bytearray()
        self.max_stack = 0
        self.max_locals = max_locals
        self.line_numbers: list[tuple[int, int]] = []
        self._current_stack = 0

    def _push(self, count: int = 1):
        self._current_stack += count
        self.max_stack = max(self.max_stack, self._current_stack)

    def _pop(self, count: int = 1):
        self._current_stack -= count

    def position(self) -> int:
        return len(self.code)

    def line(self, number: int):
        """Attribute the following instructions to source line `number`."""
        self.line_numbers.append((self.position(), number))

    def _emit(self, *data):
        for b in data:
            if isinstance(b, Opcode):
                self.code.append(b.value)
            else:
                self.code.append(b)

    def _emit_u2(self, value: int):
        self.code.extend(struct.pack(">H", value))

    def iconst(self, value: int):
        if value == -1:
            self._emit(Opcode.ICONST_M1)
        elif 0 <= value <= 5:
            self._emit(Opcode.ICONST_0 + value)
        elif -128 <= value <= 127:
            self._emit(Opcode.BIPUSH, value & 0xFF)
        elif -32768 <= value <= 32767:
            self._emit(Opcode.SIPUSH)
            self.code.extend(struct.pack(">h", value))
        else:
            idx = self.cp.add_integer(value)
            if idx <= 255:
                self._emit(Opcode.LDC, idx)
            else:
                self._emit(Opcode.LDC_W)
                self._emit_u2(idx)
        self._push()

    def ldc_string(self, value: str):
        idx = self.cp.add_string(value)
        if idx <= 255:
            self._emit(Opcode.LDC, idx)
        else:
            self._emit(Opcode.LDC_W)
            self._emit_u2(idx)
        self._push()

    def aload(self, slot: int):
        if slot <= 3:
            self._emit(Opcode.ALOAD_0 + slot)
        else:
            self._emit(Opcode.ALOAD, slot)
        self.max_locals = max(self.max_locals, slot + 1)
        self._push()

    def pop(self):
        self._emit(Opcode.POP)
        self._pop()

    def invokevirtual(self, class_name: str, method_name: str, descriptor: str,
                      arg_size: int = 0, ret_size: int = 1):
        idx = self.cp.add_methodref(class_name, method_name, descriptor)
        self._emit(Opcode.INVOKEVIRTUAL)
        self._emit_u2(idx)
        self._pop(1 + arg_size)
        self._push(ret_size)

    def invokespecial(self, class_name: str, method_name: str, descriptor: str,
                      arg_size: int = 0, ret_size: int = 0):
        idx = self.cp.add_methodref(class_name, method_name, descriptor)
        self._emit(Opcode.INVOKESPECIAL)
        self._emit_u2(idx)
        self._pop(1 + arg_size)
        self._push(ret_size)

    def invokestatic(self, class_name: str, method_name: str, descriptor: str,
                     arg_size: int = 0, ret_size: int = 1):
        idx = self.cp.add_methodref(class_name, method_name, descriptor)
        self._emit(Opcode.INVOKESTATIC)
        self._emit_u2(idx)
        self._pop(arg_size)
        self._push(ret_size)

    def invokeinterface(self, class_name: str, method_name: str, descriptor: str,
                        arg_size: int = 0, ret_size: int = 1):
        idx = self.cp.add_interface_methodref(class_name, method_name, descriptor)
        self._emit(Opcode.INVOKEINTERFACE)
        self._emit_u2(idx)
        self.code.append(arg_size + 1)  # count (includes 'this')
        self.code.append(0)  # reserved, must be zero
        self._pop(1 + arg_size)
        self._push(ret_size)

    def invokedynamic(self, bootstrap_idx: int, name: str, descriptor: str,
                      arg_size: int = 0, ret_size: int = 1):
        idx = self.cp.add_invoke_dynamic(bootstrap_idx, name, descriptor)
        self._emit(Opcode.INVOKEDYNAMIC)
        self._emit_u2(idx)
        self._emit(0, 0)  # reserved, must be zero
        self._pop(arg_size)
        self._push(ret_size)

    def ireturn(self):
        self._emit(Opcode.IRETURN)
        self._pop()

    def areturn(self):
        self._emit(Opcode.ARETURN)
        self._pop()

    def return_(self):
        self._emit(Opcode.RETURN)

    def build(self) -> CodeAttribute:
        return CodeAttribute(
            max_stack=self.max_stack,
            max_locals=self.max_locals,
            code=self.code,
            line_numbers=list(self.line_numbers),
        )
