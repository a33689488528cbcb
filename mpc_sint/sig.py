from __future__ import annotations

"""
secp256k1 signatures for tickets and account onboarding.

Accounts are Ethereum-compatible secp256k1 keys; tickets and onboarding requests are signed over
32-byte EIP-712 digests, and the engine identifies the signer by public-key recovery.
"""

from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError


class SigError(Exception):
    pass


def _require_len(b: bytes, n: int, name: str) -> None:
    if not isinstance(b, (bytes, bytearray)) or len(b) != n:
        raise SigError(f"{name} must be {n} bytes")


def secp256k1_address_from_privkey(privkey32: bytes) -> bytes:
    _require_len(privkey32, 32, "privkey32")
    return keys.PrivateKey(bytes(privkey32)).public_key.to_canonical_address()


def secp256k1_sign_hash(privkey32: bytes, msg_hash32: bytes) -> bytes:
    """
    Sign a 32-byte message hash. Returns 65-byte signature: r(32)||s(32)||v(1) with v in {0,1}.
    """
    _require_len(privkey32, 32, "privkey32")
    _require_len(msg_hash32, 32, "msg_hash32")
    return keys.PrivateKey(bytes(privkey32)).sign_msg_hash(bytes(msg_hash32)).to_bytes()


def secp256k1_recover_address(msg_hash32: bytes, sig65: bytes) -> bytes:
    """
    Recover the 20-byte signer address. Raises SigError for malformed or unrecoverable signatures.
    """
    _require_len(msg_hash32, 32, "msg_hash32")
    _require_len(sig65, 65, "sig65")
    try:
        pk = keys.Signature(bytes(sig65)).recover_public_key_from_msg_hash(bytes(msg_hash32))
    except (BadSignature, ValidationError, ValueError) as e:
        raise SigError(f"unrecoverable signature: {e}") from e
    return pk.to_canonical_address()
