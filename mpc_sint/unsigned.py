from __future__ import annotations

from typing import Tuple, Union

from .alu import (
    OP_ADD,
    OP_AND,
    OP_DIV,
    OP_EQ,
    OP_GE,
    OP_GT,
    OP_LE,
    OP_LT,
    OP_MUL,
    OP_NE,
    OP_OR,
    OP_REM,
    OP_SUB,
    OP_XOR,
    CiphertextError,
    HandleError,
    Operand,
    SecretALU,
    ValidationFailure,
    args_kind_v1,
)
from .types import (
    BOOL_BITS,
    COMPOSITE_WIDTHS,
    WORD_WIDTHS,
    CiphertextV1,
    CompositeCiphertextV1,
    CompositeInputTicketV1,
    InputTicketV1,
    LimbPair,
    SecretWord,
)


class UnsignedWordOps:
    """
    Unsigned ops at one ALU-native width. Public operands are plain ints (unsigned bit-patterns).
    """

    def __init__(self, alu: SecretALU, bits: int):
        if int(bits) not in WORD_WIDTHS:
            raise ValueError(f"unsupported word width: {bits}")
        self.alu = alu
        self.bits = int(bits)
        self.mask = (1 << self.bits) - 1

    def _bin(self, op: int, a: Operand, b: Operand) -> SecretWord:
        return self.alu.binary(op, self.bits, args_kind_v1(a, b), a, b)

    def add(self, a: Operand, b: Operand) -> SecretWord:
        return self._bin(OP_ADD, a, b)

    def sub(self, a: Operand, b: Operand) -> SecretWord:
        return self._bin(OP_SUB, a, b)

    def mul(self, a: Operand, b: Operand) -> SecretWord:
        return self._bin(OP_MUL, a, b)

    def div(self, a: Operand, b: Operand) -> SecretWord:
        return self._bin(OP_DIV, a, b)

    def rem(self, a: Operand, b: Operand) -> SecretWord:
        return self._bin(OP_REM, a, b)

    def and_(self, a: Operand, b: Operand) -> SecretWord:
        return self._bin(OP_AND, a, b)

    def or_(self, a: Operand, b: Operand) -> SecretWord:
        return self._bin(OP_OR, a, b)

    def xor(self, a: Operand, b: Operand) -> SecretWord:
        return self._bin(OP_XOR, a, b)

    def eq(self, a: Operand, b: Operand) -> SecretWord:
        return self._bin(OP_EQ, a, b)

    def ne(self, a: Operand, b: Operand) -> SecretWord:
        return self._bin(OP_NE, a, b)

    def gt(self, a: Operand, b: Operand) -> SecretWord:
        return self._bin(OP_GT, a, b)

    def lt(self, a: Operand, b: Operand) -> SecretWord:
        return self._bin(OP_LT, a, b)

    def ge(self, a: Operand, b: Operand) -> SecretWord:
        return self._bin(OP_GE, a, b)

    def le(self, a: Operand, b: Operand) -> SecretWord:
        return self._bin(OP_LE, a, b)

    def not_(self, a: SecretWord) -> SecretWord:
        return self.alu.not_(self.bits, a)

    def shl(self, a: SecretWord, n: int) -> SecretWord:
        return self.alu.shl(self.bits, a, int(n))

    def shr(self, a: SecretWord, n: int) -> SecretWord:
        return self.alu.shr(self.bits, a, int(n))

    def mux(self, pred: SecretWord, a: SecretWord, b: SecretWord) -> SecretWord:
        return self.alu.mux(pred, a, b)

    def set_public(self, value: int) -> SecretWord:
        return self.alu.set_public(self.bits, int(value))

    def zero(self) -> SecretWord:
        return self.set_public(0)

    def from_bool(self, bit: SecretWord, value: int) -> SecretWord:
        """`value` where `bit` is set, else 0."""
        return self.alu.mux(bit, self.set_public(value), self.zero())

    def decrypt(self, a: SecretWord) -> int:
        return int(self.alu.decrypt(self.bits, a))

    def release(self, a: SecretWord) -> None:
        self.alu.release(a)

    # ---- lifecycle ----

    def validate(self, ticket: InputTicketV1) -> SecretWord:
        if not isinstance(ticket, InputTicketV1):
            raise CiphertextError(f"expected a {self.bits}-bit input ticket")
        return self.alu.validate_ciphertext(self.bits, ticket.ciphertext, bytes(ticket.signature))

    def onboard(self, ct: CiphertextV1) -> SecretWord:
        return self.alu.onboard(self.bits, ct)

    def offboard(self, a: SecretWord) -> CiphertextV1:
        return self.alu.offboard(self.bits, a)

    def offboard_to_user(self, a: SecretWord, recipient20: bytes) -> CiphertextV1:
        return self.alu.offboard_to_user(self.bits, a, bytes(recipient20))

    # ---- widening ----

    def wide_mul(self, a: Operand, b: Operand) -> LimbPair:
        """Full 128-bit product of two 64-bit words from four 32-bit quarter products."""
        if self.bits != 64:
            raise ValueError("wide_mul is defined for 64-bit words only")
        a = self.set_public(a) if isinstance(a, int) else a
        b = self.set_public(b) if isinstance(b, int) else b
        h = 32
        lo_mask = (1 << h) - 1
        a_lo, a_hi = self.and_(a, lo_mask), self.shr(a, h)
        b_lo, b_hi = self.and_(b, lo_mask), self.shr(b, h)
        high, low = _combine_wide(
            self,
            h,
            p_ll=self.mul(a_lo, b_lo),
            p_lh=self.mul(a_lo, b_hi),
            p_hl=self.mul(a_hi, b_lo),
            p_hh=self.mul(a_hi, b_hi),
        )
        return LimbPair(bits=128, high=high, low=low)


Word = Union[SecretWord, LimbPair]


def _combine_wide(ops, h: int, *, p_ll, p_lh, p_hl, p_hh) -> Tuple[Word, Word]:
    """
    Fold four half products into (high, low) words of a 2W-bit product, W == 2h.

    x*y == p_hh<<2h + (p_lh + p_hl)<<h + p_ll; both partial sums can wrap W bits and their carries
    are recovered by unsigned comparison.
    """
    mid = ops.add(p_lh, p_hl)
    carry_mid = ops.lt(mid, p_lh)
    low = ops.add(p_ll, ops.shl(mid, h))
    carry_low = ops.lt(low, p_ll)
    high = ops.add(ops.add(p_hh, ops.shr(mid, h)), ops.add(ops.from_bool(carry_mid, 1 << h), ops.from_bool(carry_low, 1)))
    return high, low


class UnsignedPairOps:
    """
    Unsigned 128/256-bit words as (high, low) limb pairs.

    Limbs are 64-bit words at 128 and 128-bit pairs at 256, so every op here recurses into the
    half-width ops. Public operands are plain ints and are injected with `set_public`.
    """

    def __init__(self, alu: SecretALU, bits: int):
        if int(bits) not in COMPOSITE_WIDTHS:
            raise ValueError(f"unsupported composite width: {bits}")
        self.alu = alu
        self.bits = int(bits)
        self.half_bits = self.bits // 2
        self.mask = (1 << self.bits) - 1
        self.half_mask = (1 << self.half_bits) - 1
        self.half: Union[UnsignedWordOps, UnsignedPairOps] = (
            UnsignedWordOps(alu, 64) if self.bits == 128 else UnsignedPairOps(alu, 128)
        )
        self.bit = UnsignedWordOps(alu, BOOL_BITS)

    def _coerce(self, x: Union[LimbPair, int]) -> LimbPair:
        if isinstance(x, int) and not isinstance(x, bool):
            return self.set_public(int(x) & self.mask)
        if not isinstance(x, LimbPair) or int(x.bits) != self.bits:
            raise HandleError(f"expected {self.bits}-bit limb pair")
        return x

    def _pair(self, high: Word, low: Word) -> LimbPair:
        return LimbPair(bits=self.bits, high=high, low=low)

    def set_public(self, value: int) -> LimbPair:
        v = int(value)
        if v < 0 or v > self.mask:
            raise ValueError(f"public value does not fit {self.bits} unsigned bits")
        return self._pair(self.half.set_public(v >> self.half_bits), self.half.set_public(v & self.half_mask))

    def zero(self) -> LimbPair:
        return self.set_public(0)

    def from_bool(self, bit: SecretWord, value: int) -> LimbPair:
        return self.mux(bit, self.set_public(value), self.zero())

    def decrypt(self, a: LimbPair) -> int:
        a = self._coerce(a)
        return (self.half.decrypt(a.high) << self.half_bits) | self.half.decrypt(a.low)

    # ---- arithmetic ----

    def add(self, a, b) -> LimbPair:
        a, b = self._coerce(a), self._coerce(b)
        low = self.half.add(a.low, b.low)
        carry = self.half.lt(low, a.low)
        high = self.half.add(self.half.add(a.high, b.high), self.half.from_bool(carry, 1))
        return self._pair(high, low)

    def sub(self, a, b) -> LimbPair:
        a, b = self._coerce(a), self._coerce(b)
        borrow = self.half.lt(a.low, b.low)
        low = self.half.sub(a.low, b.low)
        high = self.half.sub(self.half.sub(a.high, b.high), self.half.from_bool(borrow, 1))
        return self._pair(high, low)

    def mul(self, a, b) -> LimbPair:
        """Product mod 2^W: full low-limb product plus both cross terms folded into the high limb."""
        a, b = self._coerce(a), self._coerce(b)
        ll = self.half.wide_mul(a.low, b.low)
        cross = self.half.add(self.half.mul(a.high, b.low), self.half.mul(a.low, b.high))
        return self._pair(self.half.add(ll.high, cross), ll.low)

    def wide_mul(self, a, b) -> LimbPair:
        if self.bits != 128:
            raise ValueError("wide_mul is defined for 128-bit pairs only")
        a, b = self._coerce(a), self._coerce(b)
        q = self.half
        high, low = _combine_wide(
            self,
            self.half_bits,
            p_ll=q.wide_mul(a.low, b.low),
            p_lh=q.wide_mul(a.low, b.high),
            p_hl=q.wide_mul(a.high, b.low),
            p_hh=q.wide_mul(a.high, b.high),
        )
        return LimbPair(bits=256, high=high, low=low)

    # ---- bitwise ----

    def and_(self, a, b) -> LimbPair:
        a, b = self._coerce(a), self._coerce(b)
        return self._pair(self.half.and_(a.high, b.high), self.half.and_(a.low, b.low))

    def or_(self, a, b) -> LimbPair:
        a, b = self._coerce(a), self._coerce(b)
        return self._pair(self.half.or_(a.high, b.high), self.half.or_(a.low, b.low))

    def xor(self, a, b) -> LimbPair:
        a, b = self._coerce(a), self._coerce(b)
        return self._pair(self.half.xor(a.high, b.high), self.half.xor(a.low, b.low))

    def not_(self, a) -> LimbPair:
        a = self._coerce(a)
        return self._pair(self.half.not_(a.high), self.half.not_(a.low))

    # ---- comparison ----

    def eq(self, a, b) -> SecretWord:
        a, b = self._coerce(a), self._coerce(b)
        return self.bit.and_(self.half.eq(a.high, b.high), self.half.eq(a.low, b.low))

    def ne(self, a, b) -> SecretWord:
        a, b = self._coerce(a), self._coerce(b)
        return self.bit.or_(self.half.ne(a.high, b.high), self.half.ne(a.low, b.low))

    def gt(self, a, b) -> SecretWord:
        a, b = self._coerce(a), self._coerce(b)
        return self.bit.mux(self.half.eq(a.high, b.high), self.half.gt(a.low, b.low), self.half.gt(a.high, b.high))

    def lt(self, a, b) -> SecretWord:
        a, b = self._coerce(a), self._coerce(b)
        return self.bit.mux(self.half.eq(a.high, b.high), self.half.lt(a.low, b.low), self.half.lt(a.high, b.high))

    def ge(self, a, b) -> SecretWord:
        return self.bit.xor(self.lt(a, b), 1)

    def le(self, a, b) -> SecretWord:
        return self.bit.xor(self.gt(a, b), 1)

    # ---- shifts / select ----

    def shl(self, a, n: int) -> LimbPair:
        a = self._coerce(a)
        k, hb = int(n), self.half_bits
        if k < 0:
            raise ValueError("shift amount must be >= 0")
        if k == 0:
            return a
        if k >= self.bits:
            return self.zero()
        if k >= hb:
            return self._pair(self.half.shl(a.low, k - hb), self.half.zero())
        high = self.half.or_(self.half.shl(a.high, k), self.half.shr(a.low, hb - k))
        return self._pair(high, self.half.shl(a.low, k))

    def shr(self, a, n: int) -> LimbPair:
        a = self._coerce(a)
        k, hb = int(n), self.half_bits
        if k < 0:
            raise ValueError("shift amount must be >= 0")
        if k == 0:
            return a
        if k >= self.bits:
            return self.zero()
        if k >= hb:
            return self._pair(self.half.zero(), self.half.shr(a.high, k - hb))
        low = self.half.or_(self.half.shr(a.low, k), self.half.shl(a.high, hb - k))
        return self._pair(self.half.shr(a.high, k), low)

    def mux(self, pred: SecretWord, a, b) -> LimbPair:
        a, b = self._coerce(a), self._coerce(b)
        return self._pair(self.half.mux(pred, a.high, b.high), self.half.mux(pred, a.low, b.low))

    # ---- lifecycle ----

    def release(self, a: LimbPair) -> None:
        self.half.release(a.high)
        self.half.release(a.low)

    def validate(self, ticket: CompositeInputTicketV1) -> LimbPair:
        """Validate both limb tickets; if either is rejected no limb stays allocated."""
        if not isinstance(ticket, CompositeInputTicketV1) or int(ticket.bits) != self.bits:
            raise CiphertextError(f"expected a {self.bits}-bit composite input ticket")
        high = self.half.validate(ticket.high)
        try:
            low = self.half.validate(ticket.low)
        except ValidationFailure:
            self.half.release(high)
            raise
        return self._pair(high, low)

    def onboard(self, ct: CompositeCiphertextV1) -> LimbPair:
        if not isinstance(ct, CompositeCiphertextV1) or int(ct.bits) != self.bits:
            raise CiphertextError(f"expected a {self.bits}-bit composite ciphertext")
        high = self.half.onboard(ct.high)
        try:
            low = self.half.onboard(ct.low)
        except ValidationFailure:
            self.half.release(high)
            raise
        return self._pair(high, low)

    def offboard(self, a) -> CompositeCiphertextV1:
        a = self._coerce(a)
        return CompositeCiphertextV1(bits=self.bits, high=self.half.offboard(a.high), low=self.half.offboard(a.low))

    def offboard_to_user(self, a, recipient20: bytes) -> CompositeCiphertextV1:
        a = self._coerce(a)
        return CompositeCiphertextV1(
            bits=self.bits,
            high=self.half.offboard_to_user(a.high, recipient20),
            low=self.half.offboard_to_user(a.low, recipient20),
        )
