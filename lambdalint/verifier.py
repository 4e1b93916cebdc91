"""
Second pass: confirm that a synthetic lambda body only forwards to a
zero-argument method on its first local and returns the result.
"""

import logging
from enum import Enum
from typing import Iterable

from .bytereader import DecodeError
from .classfile import Opcode, RETURN_OPCODES
from .classifier import CallSite, LambdaKey
from .classreader import ClassInfo, MethodInfo
from .constants import ConstantPool, ResolutionError
from .descriptors import parse_method_descriptor
from .instructions import Instruction, iter_instructions


logger = logging.getLogger(__name__)


class VerifierState(Enum):
    START = "start"
    SEEN_RECEIVER_LOAD = "seen_receiver_load"
    SEEN_INVOKE = "seen_invoke"


class Verdict(Enum):
    CONTINUE = "continue"
    CONFIRMED = "confirmed"
    DISQUALIFIED = "disqualified"


INSTANCE_INVOKES = frozenset({Opcode.INVOKEVIRTUAL, Opcode.INVOKEINTERFACE})


class LambdaBodyVerifier:
    """Matches `aload_0; invokevirtual|invokeinterface ()X; xreturn` one instruction at a time."""

    def __init__(self, pool: ConstantPool):
        self.pool = pool
        self.state = VerifierState.START

    def _is_receiver_load(self, ins: Instruction) -> bool:
        return ins.opcode in (Opcode.ALOAD_0, Opcode.ALOAD) and ins.local_index == 0

    def _is_zero_arg_invoke(self, ins: Instruction) -> bool:
        if ins.opcode not in INSTANCE_INVOKES:
            return False
        ref = self.pool.member_ref(ins.cp_index)
        return parse_method_descriptor(ref.descriptor).arity == 0

    def step(self, ins: Instruction) -> Verdict:
        if self.state is VerifierState.START:
            if self._is_receiver_load(ins):
                self.state = VerifierState.SEEN_RECEIVER_LOAD
                return Verdict.CONTINUE
            return Verdict.DISQUALIFIED

        if self.state is VerifierState.SEEN_RECEIVER_LOAD:
            try:
                matched = self._is_zero_arg_invoke(ins)
            except ResolutionError as e:
                logger.debug("Unresolvable invoke at pc %d: %s", ins.pc, e)
                return Verdict.DISQUALIFIED
            if matched:
                self.state = VerifierState.SEEN_INVOKE
                return Verdict.CONTINUE
            return Verdict.DISQUALIFIED

        if self.state is VerifierState.SEEN_INVOKE:
            if ins.opcode in RETURN_OPCODES:
                return Verdict.CONFIRMED
            return Verdict.DISQUALIFIED

        return Verdict.DISQUALIFIED


def verify_lambda_body(method: MethodInfo, pool: ConstantPool) -> bool:
    """True only if the body reaches CONFIRMED; running out of code disqualifies."""
    if method.code is None:
        return False
    verifier = LambdaBodyVerifier(pool)
    try:
        for ins in iter_instructions(method.code.code):
            verdict = verifier.step(ins)
            if verdict is not Verdict.CONTINUE:
                return verdict is Verdict.CONFIRMED
    except DecodeError as e:
        logger.debug("Undecodable body in %s%s: %s", method.name, method.descriptor, e)
    return False


def confirm_candidates(info: ClassInfo, call_sites: Iterable[CallSite]) -> frozenset[LambdaKey]:
    """Keys of the pending lambda bodies that verify.

    A key is confirmed only when at least one synthetic method with that
    name and descriptor exists and every such method verifies.
    """
    pending = {site.target for site in call_sites}
    verified: set[LambdaKey] = set()
    failed: set[LambdaKey] = set()
    for method in info.methods:
        if not method.is_synthetic:
            continue
        key = LambdaKey(method.name, method.descriptor)
        if key not in pending or key in failed:
            continue
        if verify_lambda_body(method, info.constant_pool):
            verified.add(key)
        else:
            logger.debug("%s.%s%s is not a trivial forwarder",
                         info.dotted_name, method.name, method.descriptor)
            failed.add(key)
    return frozenset(verified - failed)
