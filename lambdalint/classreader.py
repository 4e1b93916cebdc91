"""
Java class file reader.

Decodes the constant pool, the methods with their Code and LineNumberTable
attributes, and keeps every class-level attribute as raw bytes so that
callers can look attributes up by name and decode them on demand.
"""

import zipfile
from dataclasses import dataclass, field
from typing import Iterator, Optional
from pathlib import Path

from .bytereader import ByteCursor, DecodeError
from .classfile import AccessFlags, ConstantPoolTag
from .constants import ConstantPool, ConstantPoolEntry


class ClassFormatError(DecodeError):
    """The bytes are not a well-formed class file."""
    pass


@dataclass(frozen=True)
class CodeInfo:
    """Parsed Code attribute."""
    max_stack: int
    max_locals: int
    code: bytes
    line_numbers: tuple[tuple[int, int], ...] = ()  # (start_pc, line), sorted by pc

    def line_for_pc(self, pc: int) -> Optional[int]:
        """Source line of the instruction at `pc`, if the table covers it."""
        line = None
        for start_pc, number in self.line_numbers:
            if start_pc > pc:
                break
            line = number
        return line


@dataclass(frozen=True)
class MethodInfo:
    """Parsed method information."""
    access_flags: int
    name: str
    descriptor: str
    code: Optional[CodeInfo] = None
    attributes: dict = field(default_factory=dict, compare=False)

    @property
    def is_synthetic(self) -> bool:
        return bool(self.access_flags & AccessFlags.SYNTHETIC)

    @property
    def is_static(self) -> bool:
        return bool(self.access_flags & AccessFlags.STATIC)


@dataclass(frozen=True)
class ClassInfo:
    """Parsed class file information."""
    version: tuple[int, int]
    access_flags: int
    name: str
    super_class: Optional[str]
    interfaces: tuple[str, ...]
    methods: tuple[MethodInfo, ...]
    constant_pool: ConstantPool = field(compare=False)
    attributes: dict = field(default_factory=dict, compare=False)
    source_file: Optional[str] = None

    @property
    def major_version(self) -> int:
        return self.version[0]

    @property
    def dotted_name(self) -> str:
        return self.name.replace("/", ".")

    def get_attribute(self, name: str) -> Optional[bytes]:
        """Raw bytes of a class attribute, or None when absent."""
        return self.attributes.get(name)


class ClassReader:
    """Reads Java class files."""

    MAGIC = 0xCAFEBABE

    def __init__(self, data: bytes):
        self._cursor = ByteCursor(data)
        self._entries: list[Optional[ConstantPoolEntry]] = [None]  # 1-indexed

    def _get_utf8(self, index: int) -> str:
        """Get UTF8 string from the constant pool read so far."""
        entry = self._entries[index] if 0 < index < len(self._entries) else None
        if entry is None or entry.tag != ConstantPoolTag.UTF8:
            raise ClassFormatError(f"Expected UTF8 at index {index}")
        return entry.value

    def _get_class_name(self, index: int) -> Optional[str]:
        if index == 0:
            return None
        entry = self._entries[index] if 0 < index < len(self._entries) else None
        if entry is None or entry.tag != ConstantPoolTag.CLASS:
            raise ClassFormatError(f"Expected CLASS at index {index}")
        return self._get_utf8(entry.value)

    def _read_constant_pool(self):
        """Read the constant pool."""
        cur = self._cursor
        count = cur.read_u2()
        i = 1
        while i < count:
            tag = cur.read_u1()

            if tag == ConstantPoolTag.UTF8:
                length = cur.read_u2()
                value = cur.read_bytes(length).decode("utf-8", errors="replace")
            elif tag == ConstantPoolTag.INTEGER:
                value = cur.read_i4()
            elif tag == ConstantPoolTag.FLOAT:
                value = cur.read_f4()
            elif tag in (ConstantPoolTag.LONG, ConstantPoolTag.DOUBLE):
                value = cur.read_i8() if tag == ConstantPoolTag.LONG else cur.read_f8()
                self._entries.append(ConstantPoolEntry(tag, value))
                self._entries.append(None)  # takes 2 slots
                i += 2
                continue
            elif tag in (ConstantPoolTag.CLASS, ConstantPoolTag.STRING,
                         ConstantPoolTag.METHOD_TYPE, ConstantPoolTag.MODULE,
                         ConstantPoolTag.PACKAGE):
                value = cur.read_u2()
            elif tag in (ConstantPoolTag.FIELDREF, ConstantPoolTag.METHODREF,
                         ConstantPoolTag.INTERFACE_METHODREF, ConstantPoolTag.NAME_AND_TYPE,
                         ConstantPoolTag.DYNAMIC, ConstantPoolTag.INVOKE_DYNAMIC):
                value = (cur.read_u2(), cur.read_u2())
            elif tag == ConstantPoolTag.METHOD_HANDLE:
                value = (cur.read_u1(), cur.read_u2())
            else:
                raise ClassFormatError(f"Unknown constant pool tag {tag} at index {i}")

            self._entries.append(ConstantPoolEntry(tag, value))
            i += 1

    def _read_attributes(self) -> dict[str, bytes]:
        """Read an attribute table into a name -> raw bytes dict."""
        cur = self._cursor
        count = cur.read_u2()
        attrs = {}
        for _ in range(count):
            name = self._get_utf8(cur.read_u2())
            length = cur.read_u4()
            attrs[name] = cur.read_bytes(length)
        return attrs

    def _read_line_numbers(self, data: bytes) -> tuple[tuple[int, int], ...]:
        cur = ByteCursor(data)
        count = cur.read_u2()
        return tuple((cur.read_u2(), cur.read_u2()) for _ in range(count))

    def _read_code(self, data: bytes) -> CodeInfo:
        cur = ByteCursor(data)
        max_stack = cur.read_u2()
        max_locals = cur.read_u2()
        code = cur.read_bytes(cur.read_u4())
        cur.skip(8 * cur.read_u2())  # exception table

        line_numbers = []
        for _ in range(cur.read_u2()):
            name = self._get_utf8(cur.read_u2())
            attr = cur.read_bytes(cur.read_u4())
            # A method may carry several LineNumberTable attributes
            if name == "LineNumberTable":
                line_numbers.extend(self._read_line_numbers(attr))

        return CodeInfo(
            max_stack=max_stack,
            max_locals=max_locals,
            code=code,
            line_numbers=tuple(sorted(line_numbers)),
        )

    def _skip_field(self):
        self._cursor.skip(6)
        self._read_attributes()

    def _read_method(self) -> MethodInfo:
        """Read a method."""
        cur = self._cursor
        access = cur.read_u2()
        name_idx = cur.read_u2()
        desc_idx = cur.read_u2()
        attrs = self._read_attributes()

        code = attrs.get("Code")
        return MethodInfo(
            access_flags=access,
            name=self._get_utf8(name_idx),
            descriptor=self._get_utf8(desc_idx),
            code=self._read_code(code) if code is not None else None,
            attributes=attrs,
        )

    def read(self) -> ClassInfo:
        """Read the class file and return ClassInfo."""
        try:
            return self._read()
        except ClassFormatError:
            raise
        except DecodeError as e:
            raise ClassFormatError(f"Truncated class file: {e}") from e

    def _read(self) -> ClassInfo:
        cur = self._cursor
        magic = cur.read_u4()
        if magic != self.MAGIC:
            raise ClassFormatError(f"Invalid class file magic: {hex(magic)}")

        minor = cur.read_u2()
        major = cur.read_u2()

        self._read_constant_pool()

        access_flags = cur.read_u2()
        this_class = self._get_class_name(cur.read_u2())
        super_class = self._get_class_name(cur.read_u2())

        interfaces_count = cur.read_u2()
        interfaces = tuple(
            self._get_class_name(cur.read_u2())
            for _ in range(interfaces_count)
        )

        for _ in range(cur.read_u2()):
            self._skip_field()

        methods_count = cur.read_u2()
        methods = tuple(self._read_method() for _ in range(methods_count))

        attrs = self._read_attributes()
        source_file = None
        if "SourceFile" in attrs:
            source_file = self._get_utf8(ByteCursor(attrs["SourceFile"]).read_u2())

        return ClassInfo(
            version=(major, minor),
            access_flags=access_flags,
            name=this_class,
            super_class=super_class,
            interfaces=interfaces,
            methods=methods,
            constant_pool=ConstantPool(self._entries),
            attributes=attrs,
            source_file=source_file,
        )


class ClassPath:
    """An ordered set of class files, directories and jar/zip archives."""

    def __init__(self):
        self.entries: list[Path | zipfile.ZipFile] = []
        self._zip_files: list[zipfile.ZipFile] = []

    def add_path(self, path: str | Path):
        """Add a path to the classpath (class file, directory or jar/zip)."""
        path = Path(path)
        if path.suffix in (".jar", ".zip") and path.is_file():
            zf = zipfile.ZipFile(path, "r")
            self._zip_files.append(zf)
            self.entries.append(zf)
        elif path.is_dir() or (path.suffix == ".class" and path.is_file()):
            self.entries.append(path)
        else:
            raise ValueError(f"Invalid classpath entry: {path}")

    def iter_classes(self) -> Iterator[tuple[str, bytes]]:
        """Yield (origin, bytes) for every class file, in a stable order."""
        for entry in self.entries:
            if isinstance(entry, zipfile.ZipFile):
                for name in sorted(entry.namelist()):
                    if name.endswith(".class"):
                        yield f"{entry.filename}!{name}", entry.read(name)
            elif entry.is_dir():
                for path in sorted(entry.rglob("*.class")):
                    yield str(path), path.read_bytes()
            else:
                yield str(entry), entry.read_bytes()

    def close(self):
        """Close all zip files."""
        for zf in self._zip_files:
            zf.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def read_class_file(path: str | Path) -> ClassInfo:
    """Read a single class file."""
    data = Path(path).read_bytes()
    reader = ClassReader(data)
    return reader.read()
