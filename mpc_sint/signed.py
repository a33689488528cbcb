from __future__ import annotations

"""
Two's-complement signed ops at the ALU-native widths (8/16/32/64).

A signed word is stored in the same handle as an unsigned word of the same width. Add, sub, mul,
the bitwise ops, eq/ne and shl are bit-identical to their unsigned counterparts and delegate
straight through; comparison, division and arithmetic right shift carry the sign logic.
"""

from typing import Optional, Union

from .alu import HandleError, SecretALU
from .config import CoreConfigV1
from .types import BOOL_BITS, NATIVE_WIDTHS, WIDTHS, CiphertextV1, InputTicketV1, OutputBundleV1, SecretWord
from .unsigned import UnsignedWordOps


SignedOperand = Union[SecretWord, int]


class SignedWordOps:
    def __init__(self, alu: SecretALU, bits: int, config: Optional[CoreConfigV1] = None):
        if int(bits) not in NATIVE_WIDTHS:
            raise ValueError(f"unsupported native signed width: {bits}")
        self.alu = alu
        self.bits = int(bits)
        self.width = WIDTHS[self.bits]
        self.config = config if config is not None else CoreConfigV1()
        self.u = UnsignedWordOps(alu, self.bits)
        self.bit = UnsignedWordOps(alu, BOOL_BITS)

    def _arg(self, x: SignedOperand) -> Union[SecretWord, int]:
        # Public operands are signed ints; the ALU sees their bit-pattern.
        if isinstance(x, int) and not isinstance(x, bool):
            return self.width.to_pattern(x)
        if not isinstance(x, SecretWord) or int(x.bits) != self.bits:
            raise HandleError(f"expected {self.bits}-bit secret word")
        return x

    def _secret(self, x: SignedOperand) -> SecretWord:
        a = self._arg(x)
        return self.u.set_public(a) if isinstance(a, int) else a

    # ---- lifecycle ----

    def validate(self, ticket: InputTicketV1) -> SecretWord:
        return self.u.validate(ticket)

    def onboard(self, ct: CiphertextV1) -> SecretWord:
        return self.u.onboard(ct)

    def offboard(self, a: SecretWord) -> CiphertextV1:
        return self.u.offboard(self._secret(a))

    def offboard_to_user(self, a: SecretWord, recipient20: bytes) -> CiphertextV1:
        return self.u.offboard_to_user(self._secret(a), recipient20)

    def offboard_combined(self, a: SecretWord, recipient20: bytes) -> OutputBundleV1:
        a = self._secret(a)
        return OutputBundleV1(ciphertext=self.offboard(a), user_ciphertext=self.offboard_to_user(a, recipient20))

    def set_public(self, value: int) -> SecretWord:
        return self.u.set_public(self.width.to_pattern(value))

    def decrypt(self, a: SecretWord) -> int:
        return self.width.to_signed(self.u.decrypt(self._secret(a)))

    # ---- two's-complement identities ----

    def add(self, a: SignedOperand, b: SignedOperand) -> SecretWord:
        return self.u.add(self._arg(a), self._arg(b))

    def sub(self, a: SignedOperand, b: SignedOperand) -> SecretWord:
        return self.u.sub(self._arg(a), self._arg(b))

    def mul(self, a: SignedOperand, b: SignedOperand) -> SecretWord:
        return self.u.mul(self._arg(a), self._arg(b))

    def and_(self, a: SignedOperand, b: SignedOperand) -> SecretWord:
        return self.u.and_(self._arg(a), self._arg(b))

    def or_(self, a: SignedOperand, b: SignedOperand) -> SecretWord:
        return self.u.or_(self._arg(a), self._arg(b))

    def xor(self, a: SignedOperand, b: SignedOperand) -> SecretWord:
        return self.u.xor(self._arg(a), self._arg(b))

    def eq(self, a: SignedOperand, b: SignedOperand) -> SecretWord:
        return self.u.eq(self._arg(a), self._arg(b))

    def ne(self, a: SignedOperand, b: SignedOperand) -> SecretWord:
        return self.u.ne(self._arg(a), self._arg(b))

    def not_(self, a: SignedOperand) -> SecretWord:
        return self.u.not_(self._secret(a))

    def neg(self, a: SignedOperand) -> SecretWord:
        """0 - a mod 2^W; neg(MIN) == MIN."""
        return self.u.sub(0, self._secret(a))

    def shl(self, a: SignedOperand, n: int) -> SecretWord:
        return self.u.shl(self._secret(a), int(n))

    def mux(self, pred: SecretWord, a: SignedOperand, b: SignedOperand) -> SecretWord:
        return self.u.mux(pred, self._secret(a), self._secret(b))

    # ---- sign-aware ----

    def sign_bit(self, a: SignedOperand) -> SecretWord:
        """The sign bit as a W-bit word holding 0 or 1."""
        return self.u.shr(self._secret(a), self.width.sign_shift)

    def is_negative(self, a: SignedOperand) -> SecretWord:
        m = self.width.min_pattern
        return self.u.eq(self.u.and_(self._secret(a), m), m)

    def reveal_sign(self, a: SignedOperand) -> bool:
        """
        Decrypt the sign bit only. The magnitude never leaves the secret domain; the single revealed
        bit is recorded like any other decrypt.
        """
        return self.u.decrypt(self.sign_bit(a)) == 1

    def gt(self, a: SignedOperand, b: SignedOperand) -> SecretWord:
        a, b = self._secret(a), self._secret(b)
        sa, sb = self.sign_bit(a), self.sign_bit(b)
        # Mixed signs: the non-negative side is greater.
        return self.bit.mux(self.u.ne(sa, sb), self.u.eq(sa, 0), self.u.gt(a, b))

    def lt(self, a: SignedOperand, b: SignedOperand) -> SecretWord:
        a, b = self._secret(a), self._secret(b)
        sa, sb = self.sign_bit(a), self.sign_bit(b)
        return self.bit.mux(self.u.ne(sa, sb), self.u.eq(sa, 1), self.u.lt(a, b))

    def ge(self, a: SignedOperand, b: SignedOperand) -> SecretWord:
        a, b = self._secret(a), self._secret(b)
        return self.bit.or_(self.gt(a, b), self.eq(a, b))

    def le(self, a: SignedOperand, b: SignedOperand) -> SecretWord:
        a, b = self._secret(a), self._secret(b)
        return self.bit.or_(self.lt(a, b), self.eq(a, b))

    def abs_(self, a: SignedOperand) -> SecretWord:
        """Magnitude as an unsigned bit-pattern; abs_(MIN) is the pattern 2^(W-1)."""
        a = self._secret(a)
        return self.u.mux(self.is_negative(a), self.neg(a), a)

    def div(self, a: SignedOperand, b: SignedOperand) -> SecretWord:
        """
        Quotient truncated toward zero. x / 0 == 0 and MIN / -1 == MIN.

        Signs are recovered with `and(x, MIN) == MIN`, the magnitudes divided unsigned and the
        quotient negated under mux when exactly one operand is negative. No reveal.
        """
        if self.config.div_is_legacy(self.bits):
            return self.u.div(self._secret(a), self._arg(b))
        a, b = self._secret(a), self._secret(b)
        na, nb = self.is_negative(a), self.is_negative(b)
        q = self.u.div(self.abs_(a), self.abs_(b))
        return self.u.mux(self.bit.xor(na, nb), self.neg(q), q)

    def shr(self, a: SignedOperand, n: int) -> SecretWord:
        """
        Arithmetic right shift.

        Logical shift in the ALU, then one revealed sign bit decides whether the vacated high bits
        are filled with ones. This is the only op at native width that decrypts anything.
        """
        k = int(n)
        if k < 0:
            raise ValueError("shift amount must be >= 0")
        a = self._secret(a)
        logical = self.u.shr(a, k)
        if not self.reveal_sign(a) or k == 0:
            return logical
        mask = self.width.mask
        fill = mask if k >= self.bits else mask ^ (mask >> k)
        return self.u.or_(logical, fill)
