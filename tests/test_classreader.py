"""Tests for reading class files and classpaths."""

import zipfile

import pytest

from lambdalint.classfile import AccessFlags, ClassFileVersion, FieldInfo
from lambdalint.classreader import ClassFormatError, ClassPath, ClassReader, read_class_file

from builders import CLASS_NAME, LAMBDA_DESC, LAMBDA_NAME, trivial_lambda_class


class TestClassReader:
    def test_reads_structure(self):
        builder = trivial_lambda_class(line=21)
        builder.cf.interfaces.append("java/io/Serializable")
        builder.cf.add_field(FieldInfo(AccessFlags.PRIVATE, "count", "I"))
        info = builder.read()
        assert info.name == CLASS_NAME
        assert info.dotted_name == "com.example.Widgets"
        assert info.super_class == "java/lang/Object"
        assert info.interfaces == ("java/io/Serializable",)
        assert info.version == ClassFileVersion.JAVA_8
        assert info.source_file == "Widgets.java"
        assert [m.name for m in info.methods] == ["lengths", LAMBDA_NAME]

    def test_method_flags_and_code(self):
        info = trivial_lambda_class(line=21).read()
        caller, body = info.methods
        assert not caller.is_synthetic
        assert body.is_synthetic and body.is_static
        assert body.descriptor == LAMBDA_DESC
        assert caller.code.line_numbers == ((0, 21),)
        assert caller.code.line_for_pc(0) == 21
        assert body.code.line_numbers == ()
        assert body.code.line_for_pc(0) is None

    def test_attribute_lookup_by_name(self):
        info = trivial_lambda_class().read()
        assert info.get_attribute("BootstrapMethods")[:2] == b"\x00\x01"
        assert info.get_attribute("Missing") is None

    def test_line_for_pc_uses_preceding_entry(self):
        builder = trivial_lambda_class()
        builder.cf.methods[0].code.line_numbers[:] = [(0, 10), (4, 11), (9, 12)]
        code = builder.read().methods[0].code
        assert [code.line_for_pc(pc) for pc in (0, 3, 4, 8, 9, 40)] == [10, 10, 11, 11, 12, 12]


class TestClassFormatErrors:
    def test_bad_magic(self):
        with pytest.raises(ClassFormatError):
            ClassReader(b"\x00" * 16).read()

    def test_truncated(self):
        data = trivial_lambda_class().to_bytes()
        for cut in (3, 10, len(data) // 2, len(data) - 1):
            with pytest.raises(ClassFormatError):
                ClassReader(data[:cut]).read()

    def test_unknown_constant_tag(self):
        data = bytearray(trivial_lambda_class().to_bytes())
        data[10] = 2  # first constant's tag; 2 is unassigned
        with pytest.raises(ClassFormatError):
            ClassReader(bytes(data)).read()


class TestClassPath:
    def test_directory_jar_and_file(self, tmp_path):
        data = trivial_lambda_class().to_bytes()
        classes = tmp_path / "classes" / "com" / "example"
        classes.mkdir(parents=True)
        (classes / "Widgets.class").write_bytes(data)
        (classes / "notes.txt").write_text("ignored")
        jar = tmp_path / "lib.jar"
        with zipfile.ZipFile(jar, "w") as zf:
            zf.writestr("com/example/Widgets.class", data)
            zf.writestr("META-INF/MANIFEST.MF", "Manifest-Version: 1.0\n")
        single = tmp_path / "Single.class"
        single.write_bytes(data)

        with ClassPath() as classpath:
            classpath.add_path(tmp_path / "classes")
            classpath.add_path(jar)
            classpath.add_path(single)
            origins = [origin for origin, _ in classpath.iter_classes()]

        assert origins == [
            str(classes / "Widgets.class"),
            f"{jar}!com/example/Widgets.class",
            str(single),
        ]

    def test_invalid_entry(self, tmp_path):
        with pytest.raises(ValueError):
            ClassPath().add_path(tmp_path / "missing.jar")

    def test_read_class_file(self, tmp_path):
        path = tmp_path / "Widgets.class"
        trivial_lambda_class().cf.write(str(path))
        assert read_class_file(path).name == CLASS_NAME
