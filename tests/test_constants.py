"""Tests for constant pool resolution."""

import pytest

from lambdalint.classfile import ConstantPoolTag, ReferenceKind
from lambdalint.constants import ConstantPool, ConstantPoolEntry, ResolutionError

from builders import LambdaClassBuilder


@pytest.fixture
def pool_and_indices():
    builder = LambdaClassBuilder()
    cp = builder.cp
    indices = {
        "utf8": cp.add_utf8("hello"),
        "class": cp.add_class("java/lang/String"),
        "methodref": cp.add_methodref("java/lang/String", "length", "()I"),
        "iface": cp.add_interface_methodref("java/util/List", "size", "()I"),
        "long": cp.add_long(1 << 40),
        "nat": cp.add_name_and_type("length", "()I"),
    }
    indices["handle"] = cp.add_method_handle(ReferenceKind.INVOKE_STATIC, indices["methodref"])
    indices["bad_handle"] = cp.add_method_handle(42, indices["methodref"])
    indices["indy"] = cp.add_invoke_dynamic(3, "apply", "()Ljava/util/function/Function;")
    builder.add_caller([])
    return builder.read().constant_pool, indices


class TestResolve:
    def test_utf8_and_class(self, pool_and_indices):
        pool, idx = pool_and_indices
        assert pool.utf8(idx["utf8"]) == "hello"
        assert pool.class_name(idx["class"]) == "java/lang/String"

    def test_member_refs(self, pool_and_indices):
        pool, idx = pool_and_indices
        ref = pool.member_ref(idx["methodref"])
        assert (ref.class_name, ref.name, ref.descriptor) == ("java/lang/String", "length", "()I")
        assert ref.tag == ConstantPoolTag.METHODREF
        assert pool.member_ref(idx["iface"]).tag == ConstantPoolTag.INTERFACE_METHODREF

    def test_name_and_type(self, pool_and_indices):
        pool, idx = pool_and_indices
        assert pool.name_and_type(idx["nat"]) == ("length", "()I")

    def test_method_handle(self, pool_and_indices):
        pool, idx = pool_and_indices
        handle = pool.method_handle(idx["handle"])
        assert handle.kind == ReferenceKind.INVOKE_STATIC
        assert handle.reference.name == "length"

    def test_invoke_dynamic(self, pool_and_indices):
        pool, idx = pool_and_indices
        call = pool.invoke_dynamic(idx["indy"])
        assert call.bootstrap_index == 3
        assert call.name == "apply"
        assert call.descriptor == "()Ljava/util/function/Function;"


class TestResolutionErrors:
    def test_wrong_kind(self, pool_and_indices):
        pool, idx = pool_and_indices
        with pytest.raises(ResolutionError):
            pool.class_name(idx["nat"])
        with pytest.raises(ResolutionError):
            pool.method_handle(idx["methodref"])
        with pytest.raises(ResolutionError):
            pool.invoke_dynamic(idx["class"])

    @pytest.mark.parametrize("index", [0, -1, 65535])
    def test_out_of_range(self, pool_and_indices, index):
        pool, _ = pool_and_indices
        with pytest.raises(ResolutionError):
            pool.entry(index)

    def test_second_slot_of_long(self, pool_and_indices):
        pool, idx = pool_and_indices
        assert pool.entry(idx["long"]).value == 1 << 40
        with pytest.raises(ResolutionError):
            pool.entry(idx["long"] + 1)

    def test_unknown_handle_kind(self, pool_and_indices):
        pool, idx = pool_and_indices
        with pytest.raises(ResolutionError):
            pool.method_handle(idx["bad_handle"])

    def test_standalone_pool(self):
        pool = ConstantPool([None, ConstantPoolEntry(ConstantPoolTag.UTF8, "x")])
        assert len(pool) == 2
        assert pool.tag_of(1) == ConstantPoolTag.UTF8
