from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Union


BOOL_BITS = 1
NATIVE_WIDTHS = (8, 16, 32, 64)
COMPOSITE_WIDTHS = (128, 256)
SIGNED_WIDTHS = NATIVE_WIDTHS + COMPOSITE_WIDTHS
WORD_WIDTHS = (BOOL_BITS,) + NATIVE_WIDTHS

NONCE_BYTES = 12
TAG_BYTES = 16


def word_bytes(bits: int) -> int:
    return max(1, (int(bits) + 7) // 8)


@dataclass(frozen=True)
class WidthSpecV1:
    """Per-width constants for two's-complement words."""

    bits: int

    def __post_init__(self) -> None:
        if int(self.bits) not in SIGNED_WIDTHS:
            raise ValueError(f"unsupported signed width: {self.bits}")

    @property
    def mask(self) -> int:
        return (1 << int(self.bits)) - 1

    @property
    def sign_shift(self) -> int:
        return int(self.bits) - 1

    @property
    def min_pattern(self) -> int:
        return 1 << (int(self.bits) - 1)

    @property
    def min_value(self) -> int:
        return -(1 << (int(self.bits) - 1))

    @property
    def max_value(self) -> int:
        return (1 << (int(self.bits) - 1)) - 1

    @property
    def half_bits(self) -> int:
        return int(self.bits) // 2

    def contains(self, value: int) -> bool:
        return self.min_value <= int(value) <= self.max_value

    def to_pattern(self, value: int) -> int:
        """Two's-complement bit-pattern of a signed value (range-checked)."""
        v = int(value)
        if not self.contains(v):
            raise ValueError(f"value {v} out of range for int{self.bits}")
        return v & self.mask

    def to_signed(self, pattern: int) -> int:
        p = int(pattern) & self.mask
        if p & self.min_pattern:
            return p - (1 << int(self.bits))
        return p

    def to_json_obj(self) -> Dict[str, int]:
        return {
            "bits": int(self.bits),
            "min": int(self.min_value),
            "max": int(self.max_value),
            "mask": int(self.mask),
            "sign_shift": int(self.sign_shift),
        }


WIDTHS: Dict[int, WidthSpecV1] = {b: WidthSpecV1(bits=b) for b in SIGNED_WIDTHS}


def to_signed(bits: int, pattern: int) -> int:
    return WIDTHS[int(bits)].to_signed(pattern)


def to_pattern(bits: int, value: int) -> int:
    return WIDTHS[int(bits)].to_pattern(value)


@dataclass(frozen=True)
class SecretWord:
    """
    Opaque handle to a secret word produced by an ALU.

    `bits` is the unsigned storage width (1 for secret booleans); `ref` is meaningful only to the
    engine that issued it. Signed and unsigned values share this type.
    """

    bits: int
    ref: int

    def __post_init__(self) -> None:
        if int(self.bits) not in WORD_WIDTHS:
            raise ValueError(f"bad word width: {self.bits}")
        if int(self.ref) < 0:
            raise ValueError("ref must be >= 0")

    def __repr__(self) -> str:
        return f"SecretWord(bits={self.bits}, ref={self.ref})"


Limb = Union[SecretWord, "LimbPair"]


def _limb_bits(x: object) -> int:
    if isinstance(x, (SecretWord, LimbPair)):
        return int(x.bits)
    raise TypeError("limb must be SecretWord or LimbPair")


@dataclass(frozen=True)
class LimbPair:
    """
    A 128/256-bit value as (high, low) half-width limbs: value == (high << bits/2) | low.

    Only `high` carries the sign; `low` is a plain unsigned bit-pattern.
    """

    bits: int
    high: Limb
    low: Limb

    def __post_init__(self) -> None:
        if int(self.bits) not in COMPOSITE_WIDTHS:
            raise ValueError(f"bad composite width: {self.bits}")
        h = int(self.bits) // 2
        if _limb_bits(self.high) != h or _limb_bits(self.low) != h:
            raise ValueError(f"LimbPair({self.bits}) limbs must be {h}-bit")


@dataclass(frozen=True)
class CiphertextV1:
    """Sealed native-width word: nonce12 || ChaCha20-Poly1305 ciphertext || tag16."""

    bits: int
    blob: bytes

    def __post_init__(self) -> None:
        if int(self.bits) not in WORD_WIDTHS:
            raise ValueError(f"bad ciphertext width: {self.bits}")
        if not isinstance(self.blob, (bytes, bytearray)):
            raise TypeError("blob must be bytes")
        if len(self.blob) != NONCE_BYTES + word_bytes(self.bits) + TAG_BYTES:
            raise ValueError("bad ciphertext length")

    def to_hex(self) -> str:
        return "0x" + bytes(self.blob).hex()


@dataclass(frozen=True)
class CompositeCiphertextV1:
    bits: int
    high: "AnyCiphertext"
    low: "AnyCiphertext"

    def __post_init__(self) -> None:
        if int(self.bits) not in COMPOSITE_WIDTHS:
            raise ValueError(f"bad composite width: {self.bits}")
        h = int(self.bits) // 2
        if int(self.high.bits) != h or int(self.low.bits) != h:
            raise ValueError(f"composite ciphertext({self.bits}) limbs must be {h}-bit")


AnyCiphertext = Union[CiphertextV1, CompositeCiphertextV1]


@dataclass(frozen=True)
class InputTicketV1:
    """Unverified user ciphertext plus the owner's secp256k1 signature (65 bytes)."""

    ciphertext: CiphertextV1
    signature: bytes

    @property
    def bits(self) -> int:
        return int(self.ciphertext.bits)


@dataclass(frozen=True)
class CompositeInputTicketV1:
    high: "AnyInputTicket"
    low: "AnyInputTicket"

    def __post_init__(self) -> None:
        if int(self.high.bits) != int(self.low.bits):
            raise ValueError("ticket limb widths differ")
        if 2 * int(self.high.bits) not in COMPOSITE_WIDTHS:
            raise ValueError("bad composite ticket width")

    @property
    def bits(self) -> int:
        return 2 * int(self.high.bits)

    @property
    def ciphertext(self) -> CompositeCiphertextV1:
        return CompositeCiphertextV1(bits=self.bits, high=self.high.ciphertext, low=self.low.ciphertext)


AnyInputTicket = Union[InputTicketV1, CompositeInputTicketV1]


@dataclass(frozen=True)
class OutputBundleV1:
    """A value offboarded twice: system domain and re-encrypted for one recipient."""

    ciphertext: AnyCiphertext
    user_ciphertext: AnyCiphertext

    def __post_init__(self) -> None:
        if int(self.ciphertext.bits) != int(self.user_ciphertext.bits):
            raise ValueError("bundle ciphertext widths differ")
