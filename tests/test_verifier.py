"""Tests for the lambda body state machine."""

import pytest

from lambdalint.classfile import AccessFlags
from lambdalint.classifier import CallSite, LambdaKey
from lambdalint.classreader import MethodInfo
from lambdalint.instructions import iter_instructions
from lambdalint.verifier import (
    LambdaBodyVerifier, Verdict, VerifierState, confirm_candidates, verify_lambda_body,
)

from builders import (
    LAMBDA_DESC, LAMBDA_NAME, LambdaClassBuilder, trivial_lambda_class,
    emit_argument_call, emit_extra_constant, emit_second_local, emit_truncated,
    emit_unresolvable_invoke, emit_wide_receiver_load,
)


def lambda_body(**body_kwargs):
    info = trivial_lambda_class(**body_kwargs).read()
    method = next(m for m in info.methods if m.name == LAMBDA_NAME)
    return method, info.constant_pool


def run(method, pool):
    """Step until the first verdict other than CONTINUE."""
    verifier = LambdaBodyVerifier(pool)
    verdicts = []
    for ins in iter_instructions(method.code.code):
        verdicts.append(verifier.step(ins))
        if verdicts[-1] is not Verdict.CONTINUE:
            break
    return verdicts, verifier.state


class TestStep:
    def test_trivial_body_confirms_on_return(self):
        verdicts, state = run(*lambda_body())
        assert verdicts == [Verdict.CONTINUE, Verdict.CONTINUE, Verdict.CONFIRMED]
        assert state is VerifierState.SEEN_INVOKE

    def test_receiver_load_advances_state(self):
        method, pool = lambda_body()
        verifier = LambdaBodyVerifier(pool)
        assert verifier.state is VerifierState.START
        first = next(iter_instructions(method.code.code))
        assert verifier.step(first) is Verdict.CONTINUE
        assert verifier.state is VerifierState.SEEN_RECEIVER_LOAD

    def test_long_form_receiver_load(self):
        verdicts, _ = run(*lambda_body(emit=emit_wide_receiver_load))
        assert verdicts == [Verdict.CONTINUE, Verdict.CONTINUE, Verdict.CONFIRMED]

    @pytest.mark.parametrize("emit, expected", [
        (emit_second_local, [Verdict.DISQUALIFIED]),
        (emit_argument_call, [Verdict.CONTINUE, Verdict.DISQUALIFIED]),
        (emit_unresolvable_invoke, [Verdict.CONTINUE, Verdict.DISQUALIFIED]),
        (emit_extra_constant, [Verdict.CONTINUE, Verdict.CONTINUE, Verdict.DISQUALIFIED]),
    ])
    def test_disqualifying_step(self, emit, expected):
        verdicts, _ = run(*lambda_body(emit=emit))
        assert verdicts == expected

    def test_code_ends_before_verdict(self):
        verdicts, state = run(*lambda_body(emit=emit_truncated))
        assert verdicts == [Verdict.CONTINUE, Verdict.CONTINUE]
        assert state is VerifierState.SEEN_INVOKE


class TestVerifyLambdaBody:
    def test_trivial(self):
        assert verify_lambda_body(*lambda_body())

    @pytest.mark.parametrize("emit", [emit_truncated, emit_unresolvable_invoke])
    def test_rejected(self, emit):
        assert not verify_lambda_body(*lambda_body(emit=emit))

    def test_no_code(self):
        _, pool = lambda_body()
        method = MethodInfo(AccessFlags.ABSTRACT | AccessFlags.SYNTHETIC, LAMBDA_NAME, LAMBDA_DESC)
        assert not verify_lambda_body(method, pool)


class TestConfirmCandidates:
    def _sites(self, info, *keys):
        caller = info.methods[0]
        return [CallSite(key, caller, 0, None) for key in keys]

    def test_confirms_verified_key(self):
        info = trivial_lambda_class().read()
        key = LambdaKey(LAMBDA_NAME, LAMBDA_DESC)
        assert confirm_candidates(info, self._sites(info, key)) == frozenset({key})

    def test_key_without_body(self):
        info = trivial_lambda_class().read()
        missing = LambdaKey("lambda$other$1", LAMBDA_DESC)
        assert confirm_candidates(info, self._sites(info, missing)) == frozenset()

    def test_any_failing_body_drops_key(self):
        builder = LambdaClassBuilder()
        builder.add_caller([])
        builder.add_lambda_body()
        builder.add_lambda_body(emit=emit_extra_constant)
        info = builder.read()
        key = LambdaKey(LAMBDA_NAME, LAMBDA_DESC)
        assert confirm_candidates(info, self._sites(info, key)) == frozenset()
