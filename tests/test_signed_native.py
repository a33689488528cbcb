from __future__ import annotations

import itertools

import pytest

from mpc_sint.config import CoreConfigV1
from mpc_sint.core import SignedCoreV1
from mpc_sint.engine import LocalRSSEngineV1
from mpc_sint.types import NATIVE_WIDTHS, WIDTHS
from mpc_sint.unsigned import UnsignedWordOps


def _setup(legacy: bool = False, seed: int = 11):
    cfg = CoreConfigV1(log_level="quiet", legacy_native_div=legacy, seed=seed)
    engine = LocalRSSEngineV1(config=cfg)
    return engine, SignedCoreV1(engine, cfg)


def _boundary(bits: int):
    w = WIDTHS[bits]
    return [w.min_value, w.min_value + 1, -1, 0, 1, w.max_value]


def _wrap(bits: int, v: int) -> int:
    return WIDTHS[bits].to_signed(v)


def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return -q if (a < 0) != (b < 0) else q


def test_set_public_decrypt_roundtrip_all_native_widths() -> None:
    _, core = _setup()
    for bits in NATIVE_WIDTHS:
        ops = core.for_width(bits)
        for v in _boundary(bits):
            assert ops.decrypt(ops.set_public(v)) == v


def test_set_public_rejects_out_of_range() -> None:
    _, core = _setup()
    with pytest.raises(ValueError):
        core.i8.set_public(128)
    with pytest.raises(ValueError):
        core.i16.set_public(-(1 << 15) - 1)


def test_add_sub_mul_wrap_like_twos_complement() -> None:
    _, core = _setup()
    for bits in NATIVE_WIDTHS:
        ops = core.for_width(bits)
        vals = _boundary(bits)
        for x, y in itertools.product(vals, vals):
            a, b = ops.set_public(x), ops.set_public(y)
            assert ops.decrypt(ops.add(a, b)) == _wrap(bits, x + y)
            assert ops.decrypt(ops.sub(a, b)) == _wrap(bits, x - y)
            assert ops.decrypt(ops.mul(a, b)) == _wrap(bits, x * y)


def test_comparisons_agree_with_signed_order() -> None:
    engine, core = _setup()
    bit = UnsignedWordOps(engine, 1)
    for bits in NATIVE_WIDTHS:
        ops = core.for_width(bits)
        vals = _boundary(bits)
        for x, y in itertools.product(vals, vals):
            a, b = ops.set_public(x), ops.set_public(y)
            assert bit.decrypt(ops.gt(a, b)) == int(x > y), (bits, x, y)
            assert bit.decrypt(ops.lt(a, b)) == int(x < y), (bits, x, y)
            assert bit.decrypt(ops.ge(a, b)) == int(x >= y), (bits, x, y)
            assert bit.decrypt(ops.le(a, b)) == int(x <= y), (bits, x, y)
            assert bit.decrypt(ops.eq(a, b)) == int(x == y)
            assert bit.decrypt(ops.ne(a, b)) == int(x != y)


def test_comparisons_reveal_nothing() -> None:
    engine, core = _setup()
    a, b = core.i32.set_public(-5), core.i32.set_public(3)
    before = len(engine.reveal_log)
    core.i32.gt(a, b)
    core.i32.le(a, b)
    core.i32.mul(a, b)
    core.i32.div(a, b)
    assert len(engine.reveal_log) == before


def test_div_truncates_toward_zero() -> None:
    _, core = _setup()
    for bits in NATIVE_WIDTHS:
        ops = core.for_width(bits)
        for x, y in [(-7, 2), (7, -2), (-7, -2), (7, 2), (0, -3), (-1, 5)]:
            assert ops.decrypt(ops.div(ops.set_public(x), ops.set_public(y))) == _trunc_div(x, y)


def test_div_boundaries_zero_and_min_by_minus_one() -> None:
    _, core = _setup()
    for bits in NATIVE_WIDTHS:
        ops = core.for_width(bits)
        w = WIDTHS[bits]
        for x in _boundary(bits):
            assert ops.decrypt(ops.div(ops.set_public(x), ops.set_public(0))) == 0
        assert ops.decrypt(ops.div(ops.set_public(w.min_value), ops.set_public(-1))) == w.min_value
        assert ops.decrypt(ops.div(ops.set_public(w.min_value), 2)) == w.min_value // 2
        assert ops.decrypt(ops.div(ops.set_public(w.max_value), ops.set_public(w.min_value))) == 0


def test_legacy_native_div_is_raw_unsigned_for_narrow_widths() -> None:
    _, core = _setup(legacy=True)
    # -8 is the pattern 248 at 8 bits; 248 / 2 == 124.
    assert core.i8.decrypt(core.i8.div(core.i8.set_public(-8), core.i8.set_public(2))) == 124
    assert core.i8.decrypt(core.i8.div(-8, 2)) == 124
    assert core.i16.decrypt(core.i16.div(core.i16.set_public(-8), 2)) == (65536 - 8) // 2
    assert core.i32.decrypt(core.i32.div(core.i32.set_public(7), core.i32.set_public(0))) == 0
    # 64-bit division stays sign-corrected.
    assert core.i64.decrypt(core.i64.div(core.i64.set_public(-8), core.i64.set_public(2))) == -4


def test_shr_sign_extends_with_one_reveal() -> None:
    engine, core = _setup()
    x = core.i8.set_public(-8)
    before = len(engine.reveal_log)
    y = core.i8.shr(x, 1)
    assert len(engine.reveal_log) - before == 1
    assert core.i8.decrypt(y) == -4


def test_shr_matches_arithmetic_shift() -> None:
    _, core = _setup()
    for bits in NATIVE_WIDTHS:
        ops = core.for_width(bits)
        for v in _boundary(bits) + [-8, 77]:
            for n in (0, 1, 3, bits - 1, bits, bits + 5):
                assert ops.decrypt(ops.shr(ops.set_public(v), n)) == v >> n, (bits, v, n)


def test_shl_is_bit_identical_to_unsigned() -> None:
    _, core = _setup()
    for bits in NATIVE_WIDTHS:
        ops = core.for_width(bits)
        for v in (-3, 5, WIDTHS[bits].max_value):
            assert ops.decrypt(ops.shl(ops.set_public(v), 2)) == _wrap(bits, v << 2)


def test_bitwise_and_not() -> None:
    _, core = _setup()
    ops = core.i16
    a, b = ops.set_public(-2), ops.set_public(0x0F0F)
    assert ops.decrypt(ops.and_(a, b)) == -2 & 0x0F0F
    assert ops.decrypt(ops.or_(a, b)) == _wrap(16, (-2 | 0x0F0F) & 0xFFFF)
    assert ops.decrypt(ops.xor(a, b)) == _wrap(16, (-2 ^ 0x0F0F) & 0xFFFF)
    assert ops.decrypt(ops.not_(a)) == 1


def test_negate_is_involutive_except_min() -> None:
    _, core = _setup()
    for bits in NATIVE_WIDTHS:
        ops = core.for_width(bits)
        for v in _boundary(bits):
            assert ops.decrypt(ops.neg(ops.neg(ops.set_public(v)))) == v
        w = WIDTHS[bits]
        assert ops.decrypt(ops.neg(ops.set_public(w.min_value))) == w.min_value


def test_mux_selects_first_on_true() -> None:
    engine, core = _setup()
    ops = core.i64
    a, b = ops.set_public(-1), ops.set_public(1)
    assert ops.decrypt(ops.mux(ops.lt(a, b), a, b)) == -1
    assert ops.decrypt(ops.mux(ops.gt(a, b), a, b)) == 1


def test_public_operands_are_signed_ints() -> None:
    _, core = _setup()
    ops = core.i32
    a = ops.set_public(10)
    assert ops.decrypt(ops.add(a, -15)) == -5
    assert ops.decrypt(ops.sub(-15, a)) == -25
    assert ops.decrypt(ops.mul(a, -3)) == -30


def test_is_negative_and_reveal_sign() -> None:
    engine, core = _setup()
    bit = UnsignedWordOps(engine, 1)
    ops = core.i16
    assert bit.decrypt(ops.is_negative(ops.set_public(-1))) == 1
    assert bit.decrypt(ops.is_negative(ops.set_public(0))) == 0
    assert ops.reveal_sign(ops.set_public(-300)) is True
    assert ops.reveal_sign(ops.set_public(300)) is False
