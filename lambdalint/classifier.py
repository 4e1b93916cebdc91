"""
First pass: find invokedynamic call sites bound to same-class lambda bodies.
"""

import logging
from dataclasses import dataclass
from typing import NamedTuple, Optional

from .bootstrap import BootstrapMethods
from .classfile import Opcode, ReferenceKind
from .classreader import ClassInfo, MethodInfo
from .constants import ConstantPool, MethodHandle, ResolutionError
from .descriptors import parse_method_descriptor
from .instructions import contains_opcode, iter_instructions


logger = logging.getLogger(__name__)


class LambdaKey(NamedTuple):
    """Identity of a synthetic lambda body within its class."""
    name: str
    descriptor: str


@dataclass(frozen=True)
class CallSite:
    """An invokedynamic instruction whose target may be a trivial lambda."""
    target: LambdaKey
    method: MethodInfo
    pc: int
    line: Optional[int]


def lambda_target(handle: MethodHandle, class_name: str) -> Optional[LambdaKey]:
    """The lambda body a bootstrap handle points at, or None if it does not qualify.

    Qualifying handles are invokestatic, owned by `class_name`, and target a
    method with a non-void return type.
    """
    if handle.kind != ReferenceKind.INVOKE_STATIC:
        return None
    ref = handle.reference
    if ref.class_name != class_name:
        return None
    if parse_method_descriptor(ref.descriptor).is_void:
        return None
    return LambdaKey(ref.name, ref.descriptor)


def _method_call_sites(info: ClassInfo, method: MethodInfo,
                       bootstrap: BootstrapMethods) -> list[CallSite]:
    pool: ConstantPool = info.constant_pool
    sites = []
    for ins in iter_instructions(method.code.code):
        if ins.opcode != Opcode.INVOKEDYNAMIC:
            continue
        try:
            call = pool.invoke_dynamic(ins.cp_index)
            handle = bootstrap.find_method_handle(call.bootstrap_index, pool)
            target = lambda_target(handle, info.name) if handle is not None else None
        except ResolutionError as e:
            logger.debug("%s.%s pc %d: unresolvable call site: %s",
                         info.dotted_name, method.name, ins.pc, e)
            continue
        if target is None:
            continue
        sites.append(CallSite(target, method, ins.pc, method.code.line_for_pc(ins.pc)))
    return sites


def classify_call_sites(info: ClassInfo, bootstrap: BootstrapMethods) -> tuple[CallSite, ...]:
    """Collect candidate call sites across all non-synthetic methods, in method then pc order.

    Raises MalformedAttributeError if a call site's bootstrap entry cannot be
    decoded; the caller abandons the whole class in that case.
    """
    sites: list[CallSite] = []
    for method in info.methods:
        if method.code is None or method.is_synthetic:
            continue
        if not contains_opcode(method.code.code, Opcode.INVOKEDYNAMIC):
            continue
        sites.extend(_method_call_sites(info, method, bootstrap))
    return tuple(sites)
