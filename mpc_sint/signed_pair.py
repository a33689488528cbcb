from __future__ import annotations

from typing import Optional, Union

from .alu import HandleError, SecretALU
from .config import CoreConfigV1
from .logjson import log_json
from .signed import SignedWordOps
from .types import (
    BOOL_BITS,
    COMPOSITE_WIDTHS,
    WIDTHS,
    CompositeCiphertextV1,
    CompositeInputTicketV1,
    LimbPair,
    OutputBundleV1,
    SecretWord,
)
from .unsigned import UnsignedPairOps, UnsignedWordOps


SignedPairOperand = Union[LimbPair, int]


def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return -q if (a < 0) != (b < 0) else q


class SignedPairOps:
    """
    Two's-complement signed ops on 128/256-bit limb pairs.

    `high` is read as signed and `low` as an unsigned bit-pattern. At 128 the limbs are 64-bit
    words; at 256 they are 128-bit pairs, and the signed high-limb ops recurse into
    `SignedPairOps(128)`.
    """

    def __init__(self, alu: SecretALU, bits: int, config: Optional[CoreConfigV1] = None):
        if int(bits) not in COMPOSITE_WIDTHS:
            raise ValueError(f"unsupported composite signed width: {bits}")
        self.alu = alu
        self.bits = int(bits)
        self.width = WIDTHS[self.bits]
        self.half_bits = self.bits // 2
        self.config = config if config is not None else CoreConfigV1()
        self.u = UnsignedPairOps(alu, self.bits)
        self.half_u = self.u.half
        self.half_s: Union[SignedWordOps, SignedPairOps] = (
            SignedWordOps(alu, 64, self.config) if self.bits == 128 else SignedPairOps(alu, 128, self.config)
        )
        self.word = UnsignedWordOps(alu, 64)
        self.bit = UnsignedWordOps(alu, BOOL_BITS)

    def _secret(self, x: SignedPairOperand) -> LimbPair:
        if isinstance(x, int) and not isinstance(x, bool):
            return self.set_public(x)
        if not isinstance(x, LimbPair) or int(x.bits) != self.bits:
            raise HandleError(f"expected {self.bits}-bit limb pair")
        return x

    def _top_word(self, a: LimbPair) -> SecretWord:
        # 64-bit word holding the sign bit of the whole value.
        w = a.high
        while isinstance(w, LimbPair):
            w = w.high
        return w

    def _pair(self, high, low) -> LimbPair:
        return LimbPair(bits=self.bits, high=high, low=low)

    # ---- lifecycle ----

    def validate(self, ticket: CompositeInputTicketV1) -> LimbPair:
        return self.u.validate(ticket)

    def onboard(self, ct: CompositeCiphertextV1) -> LimbPair:
        return self.u.onboard(ct)

    def offboard(self, a: SignedPairOperand) -> CompositeCiphertextV1:
        return self.u.offboard(self._secret(a))

    def offboard_to_user(self, a: SignedPairOperand, recipient20: bytes) -> CompositeCiphertextV1:
        return self.u.offboard_to_user(self._secret(a), recipient20)

    def offboard_combined(self, a: SignedPairOperand, recipient20: bytes) -> OutputBundleV1:
        a = self._secret(a)
        return OutputBundleV1(ciphertext=self.offboard(a), user_ciphertext=self.offboard_to_user(a, recipient20))

    def set_public(self, value: int) -> LimbPair:
        return self.u.set_public(self.width.to_pattern(value))

    def decrypt(self, a: SignedPairOperand) -> int:
        return self.width.to_signed(self.u.decrypt(self._secret(a)))

    # ---- arithmetic ----

    def add(self, a: SignedPairOperand, b: SignedPairOperand) -> LimbPair:
        return self.u.add(self._secret(a), self._secret(b))

    def sub(self, a: SignedPairOperand, b: SignedPairOperand) -> LimbPair:
        return self.u.sub(self._secret(a), self._secret(b))

    def neg(self, a: SignedPairOperand) -> LimbPair:
        """~a + 1. neg(MIN) == MIN."""
        return self.u.add(self.u.not_(self._secret(a)), 1)

    def is_negative(self, a: SignedPairOperand) -> SecretWord:
        return self.word.eq(self.word.shr(self._top_word(self._secret(a)), 63), 1)

    def abs_(self, a: SignedPairOperand) -> LimbPair:
        a = self._secret(a)
        return self.u.mux(self.is_negative(a), self.neg(a), a)

    def mul(self, a: SignedPairOperand, b: SignedPairOperand) -> LimbPair:
        """Unsigned product of the magnitudes, negated under mux when the operand signs differ."""
        a, b = self._secret(a), self._secret(b)
        flip = self.bit.xor(self.is_negative(a), self.is_negative(b))
        p = self.u.mul(self.abs_(a), self.abs_(b))
        return self.u.mux(flip, self.neg(p), p)

    def div(self, a: SignedPairOperand, b: SignedPairOperand) -> LimbPair:
        """
        Quotient truncated toward zero, computed in the clear.

        Both operands are decrypted in full. x / 0 == 0 and MIN / -1 == MIN.
        """
        x, y = self.decrypt(a), self.decrypt(b)
        log_json(level=str(self.config.log_level), want="debug", event="composite_div_reveal", bits=self.bits)
        if y == 0:
            q = 0
        elif x == self.width.min_value and y == -1:
            q = self.width.min_value
        else:
            q = _trunc_div(x, y)
        return self.set_public(q)

    # ---- bitwise ----

    def and_(self, a: SignedPairOperand, b: SignedPairOperand) -> LimbPair:
        return self.u.and_(self._secret(a), self._secret(b))

    def or_(self, a: SignedPairOperand, b: SignedPairOperand) -> LimbPair:
        return self.u.or_(self._secret(a), self._secret(b))

    def xor(self, a: SignedPairOperand, b: SignedPairOperand) -> LimbPair:
        return self.u.xor(self._secret(a), self._secret(b))

    def not_(self, a: SignedPairOperand) -> LimbPair:
        return self.u.not_(self._secret(a))

    # ---- comparison ----

    def eq(self, a: SignedPairOperand, b: SignedPairOperand) -> SecretWord:
        return self.u.eq(self._secret(a), self._secret(b))

    def ne(self, a: SignedPairOperand, b: SignedPairOperand) -> SecretWord:
        return self.u.ne(self._secret(a), self._secret(b))

    def gt(self, a: SignedPairOperand, b: SignedPairOperand) -> SecretWord:
        a, b = self._secret(a), self._secret(b)
        # Signed on the high limb; low limbs tie-break as unsigned patterns.
        return self.bit.mux(
            self.half_s.eq(a.high, b.high), self.half_u.gt(a.low, b.low), self.half_s.gt(a.high, b.high)
        )

    def lt(self, a: SignedPairOperand, b: SignedPairOperand) -> SecretWord:
        a, b = self._secret(a), self._secret(b)
        return self.bit.mux(
            self.half_s.eq(a.high, b.high), self.half_u.lt(a.low, b.low), self.half_s.lt(a.high, b.high)
        )

    def ge(self, a: SignedPairOperand, b: SignedPairOperand) -> SecretWord:
        a, b = self._secret(a), self._secret(b)
        return self.bit.or_(self.gt(a, b), self.eq(a, b))

    def le(self, a: SignedPairOperand, b: SignedPairOperand) -> SecretWord:
        a, b = self._secret(a), self._secret(b)
        return self.bit.or_(self.lt(a, b), self.eq(a, b))

    # ---- shifts / select ----

    def reveal_sign(self, a: SignedPairOperand) -> bool:
        return self.word.decrypt(self.word.shr(self._top_word(self._secret(a)), 63)) == 1

    def shl(self, a: SignedPairOperand, n: int) -> LimbPair:
        return self.u.shl(self._secret(a), int(n))

    def shr(self, a: SignedPairOperand, n: int) -> LimbPair:
        """
        Arithmetic right shift with one revealed sign bit.

        n >= W: all zeros or all ones. n in [W/2, W): the low limb is the shifted high limb and the
        high limb is pure sign fill. n in (0, W/2): bits cross from the bottom of the high limb into
        the low limb and the high limb is sign-extended.
        """
        k = int(n)
        if k < 0:
            raise ValueError("shift amount must be >= 0")
        a = self._secret(a)
        neg = self.reveal_sign(a)
        if k == 0:
            return a
        hb = self.half_bits
        hmask = self.u.half_mask
        fill = self.half_u.set_public(hmask if neg else 0)
        if k >= self.bits:
            return self._pair(fill, fill)
        if k >= hb:
            low = self.half_u.shr(a.high, k - hb)
            if neg and k > hb:
                low = self.half_u.or_(low, hmask ^ (hmask >> (k - hb)))
            return self._pair(fill, low)
        low = self.half_u.or_(self.half_u.shr(a.low, k), self.half_u.shl(a.high, hb - k))
        high = self.half_u.shr(a.high, k)
        if neg:
            high = self.half_u.or_(high, hmask ^ (hmask >> k))
        return self._pair(high, low)

    def mux(self, pred: SecretWord, a: SignedPairOperand, b: SignedPairOperand) -> LimbPair:
        return self.u.mux(pred, self._secret(a), self._secret(b))
