from __future__ import annotations

"""
Interface contract of the secret unsigned-word ALU.

Everything in this package talks to the secret domain through `SecretALU`. Handles go in, handles
come out; `decrypt` is the only call that returns plaintext.
"""

from abc import ABC, abstractmethod
from typing import Union

from .types import CiphertextV1, SecretWord


# Binary op codes.
OP_ADD = 0x01
OP_SUB = 0x02
OP_MUL = 0x03
OP_DIV = 0x04
OP_REM = 0x05
OP_AND = 0x10
OP_OR = 0x11
OP_XOR = 0x12
OP_EQ = 0x20
OP_NE = 0x21
OP_GT = 0x22
OP_LT = 0x23
OP_GE = 0x24
OP_LE = 0x25

ARITH_OPS = (OP_ADD, OP_SUB, OP_MUL, OP_DIV, OP_REM)
BITWISE_OPS = (OP_AND, OP_OR, OP_XOR)
COMPARE_OPS = (OP_EQ, OP_NE, OP_GT, OP_LT, OP_GE, OP_LE)
BINARY_OPS = ARITH_OPS + BITWISE_OPS + COMPARE_OPS

OP_NAMES = {
    OP_ADD: "add",
    OP_SUB: "sub",
    OP_MUL: "mul",
    OP_DIV: "div",
    OP_REM: "rem",
    OP_AND: "and",
    OP_OR: "or",
    OP_XOR: "xor",
    OP_EQ: "eq",
    OP_NE: "ne",
    OP_GT: "gt",
    OP_LT: "lt",
    OP_GE: "ge",
    OP_LE: "le",
}

# Secrecy tag of the width descriptor: which operands are public constants.
ARGS_BOTH_SECRET = 0
ARGS_LHS_PUBLIC = 1
ARGS_RHS_PUBLIC = 2

Operand = Union[SecretWord, int]


class MpcSintError(Exception):
    pass


class ValidationFailure(MpcSintError):
    """Input ticket or ciphertext rejected; no handle is produced."""


class CiphertextError(ValidationFailure):
    pass


class UnknownAccountError(MpcSintError):
    pass


class HandleError(MpcSintError):
    pass


def args_kind_v1(lhs: Operand, rhs: Operand) -> int:
    l_pub = isinstance(lhs, int) and not isinstance(lhs, bool)
    r_pub = isinstance(rhs, int) and not isinstance(rhs, bool)
    if l_pub and r_pub:
        raise TypeError("at least one operand must be a SecretWord")
    if l_pub:
        return ARGS_LHS_PUBLIC
    if r_pub:
        return ARGS_RHS_PUBLIC
    if not isinstance(lhs, SecretWord) or not isinstance(rhs, SecretWord):
        raise TypeError("operands must be SecretWord or int")
    return ARGS_BOTH_SECRET


class SecretALU(ABC):
    """
    Unsigned fixed-width secret-word engine.

    Widths are 1 (secret boolean), 8, 16, 32 and 64. All binary results are reduced mod 2^bits;
    comparisons return 1-bit handles. Division and remainder by zero yield zero.
    """

    @abstractmethod
    def validate_ciphertext(self, bits: int, ciphertext: CiphertextV1, signature: bytes) -> SecretWord:
        ...

    @abstractmethod
    def onboard(self, bits: int, ciphertext: CiphertextV1) -> SecretWord:
        ...

    @abstractmethod
    def offboard(self, bits: int, h: SecretWord) -> CiphertextV1:
        ...

    @abstractmethod
    def offboard_to_user(self, bits: int, h: SecretWord, recipient20: bytes) -> CiphertextV1:
        ...

    @abstractmethod
    def set_public(self, bits: int, value: int) -> SecretWord:
        ...

    @abstractmethod
    def binary(self, op: int, bits: int, kind: int, lhs: Operand, rhs: Operand) -> SecretWord:
        ...

    @abstractmethod
    def mux(self, pred: SecretWord, a: SecretWord, b: SecretWord) -> SecretWord:
        """Return `a` where `pred` is 1, else `b`."""

    @abstractmethod
    def shl(self, bits: int, h: SecretWord, n: int) -> SecretWord:
        ...

    @abstractmethod
    def shr(self, bits: int, h: SecretWord, n: int) -> SecretWord:
        """Logical right shift by a public amount."""

    @abstractmethod
    def not_(self, bits: int, h: SecretWord) -> SecretWord:
        ...

    @abstractmethod
    def release(self, h: SecretWord) -> None:
        """Drop the secret behind `h`. Releasing twice is a no-op; later use raises HandleError."""

    @abstractmethod
    def decrypt(self, bits: int, h: SecretWord) -> int:
        """Reveal the unsigned bit-pattern of `h`. This crosses the trust boundary."""
