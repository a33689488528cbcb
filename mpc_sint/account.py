from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

from eth_keys import keys
from eth_keys.exceptions import ValidationError

from .cipher import seal_word_v1, unseal_word_v1
from .eip712 import AccountOnboardCommitV1, EIP712DomainV1, InputTicketCommitV1
from .sig import secp256k1_sign_hash
from .types import (
    COMPOSITE_WIDTHS,
    NATIVE_WIDTHS,
    NONCE_BYTES,
    SIGNED_WIDTHS,
    AnyCiphertext,
    AnyInputTicket,
    CiphertextV1,
    CompositeCiphertextV1,
    CompositeInputTicketV1,
    InputTicketV1,
    to_pattern,
    to_signed,
)


class AccountError(RuntimeError):
    pass


def _load_privkey32_hex(path: Path) -> bytes:
    raw = path.read_text(encoding="utf-8").strip()
    if raw.startswith("0x"):
        raw = raw[2:]
    b = bytes.fromhex(raw)
    if len(b) != 32:
        raise AccountError("privkey must be 32 bytes")
    keys.PrivateKey(b)
    return b


def _save_privkey32_hex(path: Path, privkey32: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text("0x" + bytes(privkey32).hex(), encoding="utf-8")
    os.chmod(tmp, 0o600)
    tmp.replace(path)
    os.chmod(path, 0o600)


def _new_privkey32() -> bytes:
    # Retry until 0 < k < curve order.
    while True:
        priv = os.urandom(32)
        try:
            keys.PrivateKey(priv)
        except ValidationError:
            continue
        return priv


class UserAccountV1:
    """
    Client side of a user identity: owns the secp256k1 key, signs input tickets and opens
    ciphertexts that were offboarded to it.

    The user key is handed out by the engine on onboarding; until then the account can sign but
    not encrypt or decrypt.
    """

    def __init__(self, privkey32: bytes, *, user_key32: Optional[bytes] = None):
        if not isinstance(privkey32, (bytes, bytearray)) or len(privkey32) != 32:
            raise AccountError("privkey32 must be 32 bytes")
        self._pk = keys.PrivateKey(bytes(privkey32))
        self.privkey32 = bytes(privkey32)
        self.user_key32 = bytes(user_key32) if user_key32 is not None else None

    @staticmethod
    def generate() -> "UserAccountV1":
        return UserAccountV1(_new_privkey32())

    @staticmethod
    def load_or_create(path: str) -> "UserAccountV1":
        p = Path(str(path)).expanduser().resolve()
        if p.exists():
            return UserAccountV1(_load_privkey32_hex(p))
        priv = _new_privkey32()
        _save_privkey32_hex(p, priv)
        return UserAccountV1(priv)

    def save(self, path: str) -> None:
        _save_privkey32_hex(Path(str(path)).expanduser().resolve(), self.privkey32)

    @property
    def address20(self) -> bytes:
        return self._pk.public_key.to_canonical_address()

    @property
    def pubkey64(self) -> bytes:
        return self._pk.public_key.to_bytes()

    def to_json_obj(self) -> Dict[str, Any]:
        return {
            "address": "0x" + self.address20.hex(),
            "pubkey64_hex": "0x" + self.pubkey64.hex(),
            "onboarded": self.user_key32 is not None,
        }

    # ---- onboarding ----

    def sign_onboarding(self, domain: EIP712DomainV1) -> bytes:
        return secp256k1_sign_hash(self.privkey32, AccountOnboardCommitV1(account20=self.address20).digest32(domain=domain))

    def onboard(self, engine: Any) -> bytes:
        """Register with an engine exposing `domain()` and `onboard_account()`; keeps the user key."""
        sig65 = self.sign_onboarding(engine.domain())
        self.user_key32 = engine.onboard_account(account20=self.address20, signature65=sig65)
        return self.user_key32

    def _require_user_key(self) -> bytes:
        if self.user_key32 is None:
            raise AccountError("account has not onboarded")
        return self.user_key32

    # ---- tickets ----

    def encrypt_pattern(self, pattern: int, bits: int, domain: EIP712DomainV1) -> AnyInputTicket:
        """Seal and sign an unsigned bit-pattern; composite widths split into limb tickets."""
        b = int(bits)
        p = int(pattern)
        if p < 0 or p >= (1 << b):
            raise ValueError(f"pattern does not fit {b} bits")
        if b in COMPOSITE_WIDTHS:
            h = b // 2
            return CompositeInputTicketV1(
                high=self.encrypt_pattern(p >> h, h, domain),
                low=self.encrypt_pattern(p & ((1 << h) - 1), h, domain),
            )
        if b not in NATIVE_WIDTHS:
            raise ValueError(f"unsupported ticket width: {bits}")
        ct = seal_word_v1(key32=self._require_user_key(), bits=b, value=p, nonce=os.urandom(NONCE_BYTES))
        digest32 = InputTicketCommitV1(width=b, ciphertext_blob=ct.blob).digest32(domain=domain)
        return InputTicketV1(ciphertext=ct, signature=secp256k1_sign_hash(self.privkey32, digest32))

    def encrypt_value(self, value: int, bits: int, domain: EIP712DomainV1) -> AnyInputTicket:
        if int(bits) not in SIGNED_WIDTHS:
            raise ValueError(f"unsupported signed width: {bits}")
        return self.encrypt_pattern(to_pattern(int(bits), int(value)), int(bits), domain)

    def _open_pattern(self, ct: AnyCiphertext) -> int:
        if isinstance(ct, CompositeCiphertextV1):
            h = int(ct.bits) // 2
            return (self._open_pattern(ct.high) << h) | self._open_pattern(ct.low)
        if isinstance(ct, CiphertextV1):
            return unseal_word_v1(key32=self._require_user_key(), bits=int(ct.bits), ciphertext=ct)
        raise TypeError("expected a ciphertext")

    def decrypt_value(self, ct: AnyCiphertext, signed: bool = True) -> int:
        """Open a ciphertext that was offboarded to this account."""
        p = self._open_pattern(ct)
        return to_signed(int(ct.bits), p) if signed else p
