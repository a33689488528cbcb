from __future__ import annotations

import hashlib
import hmac
import struct
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from .alu import CiphertextError
from .types import NONCE_BYTES, CiphertextV1, word_bytes


DS_CT_AAD = b"MPCSINT.ct.aad.v1\0"
DS_USER_KEY = b"MPCSINT.userkey.v1\0"


def sha256(b: bytes) -> bytes:
    return hashlib.sha256(b).digest()


def hmac_sha256(key: bytes, msg: bytes) -> bytes:
    if not isinstance(key, (bytes, bytearray)) or not isinstance(msg, (bytes, bytearray)):
        raise TypeError("key/msg must be bytes")
    return hmac.new(bytes(key), bytes(msg), hashlib.sha256).digest()


def hkdf_extract(*, salt: Optional[bytes], ikm: bytes) -> bytes:
    """
    HKDF-Extract (RFC5869) using HMAC-SHA256.
    """
    s = bytes(salt) if salt else b"\x00" * 32
    return hmac_sha256(s, bytes(ikm))


def hkdf_expand(*, prk32: bytes, info: bytes, length: int) -> bytes:
    """
    HKDF-Expand (RFC5869) using HMAC-SHA256.
    """
    prk = bytes(prk32)
    if len(prk) != 32:
        raise ValueError("prk32 must be 32 bytes")
    L = int(length)
    if L < 0:
        raise ValueError("length must be >= 0")
    n = (L + 31) // 32
    if n > 255:
        raise ValueError("length too large")
    okm = bytearray()
    t = b""
    for i in range(1, n + 1):
        t = hmac_sha256(prk, t + bytes(info) + bytes([i & 0xFF]))
        okm += t
    return bytes(okm[:L])


def derive_user_key32_v1(*, network_key32: bytes, address20: bytes) -> bytes:
    if len(network_key32) != 32:
        raise ValueError("network_key32 must be 32 bytes")
    if len(address20) != 20:
        raise ValueError("address20 must be 20 bytes")
    prk = hkdf_extract(salt=DS_USER_KEY, ikm=bytes(network_key32))
    return hkdf_expand(prk32=prk, info=bytes(address20), length=32)


def _word_aad(bits: int) -> bytes:
    return DS_CT_AAD + struct.pack("<H", int(bits) & 0xFFFF)


def _aead(key32: bytes) -> ChaCha20Poly1305:
    if not isinstance(key32, (bytes, bytearray)) or len(key32) != 32:
        raise ValueError("key32 must be 32 bytes")
    return ChaCha20Poly1305(bytes(key32))


def seal_word_v1(*, key32: bytes, bits: int, value: int, nonce: bytes) -> CiphertextV1:
    """
    Encrypt one W-bit word with ChaCha20-Poly1305: nonce12 || ciphertext || tag16.

    The width is authenticated as associated data, so a ciphertext cannot be replayed at a
    different width.
    """
    if len(nonce) != NONCE_BYTES:
        raise ValueError(f"nonce must be {NONCE_BYTES} bytes")
    v = int(value)
    if v < 0 or v >= (1 << int(bits)):
        raise ValueError("value must be an unsigned bit-pattern of the given width")
    body = _aead(key32).encrypt(bytes(nonce), v.to_bytes(word_bytes(bits), "little", signed=False), _word_aad(bits))
    return CiphertextV1(bits=int(bits), blob=bytes(nonce) + body)


def unseal_word_v1(*, key32: bytes, bits: int, ciphertext: CiphertextV1) -> int:
    if not isinstance(ciphertext, CiphertextV1):
        raise CiphertextError("expected a native-width ciphertext")
    if int(ciphertext.bits) != int(bits):
        raise CiphertextError(f"ciphertext width {ciphertext.bits} != {bits}")
    blob = bytes(ciphertext.blob)
    try:
        raw = _aead(key32).decrypt(blob[:NONCE_BYTES], blob[NONCE_BYTES:], _word_aad(bits))
    except InvalidTag as e:
        raise CiphertextError("ciphertext authentication failed") from e
    v = int.from_bytes(raw, "little", signed=False)
    if v >= (1 << int(bits)):
        raise CiphertextError("ciphertext value exceeds width")
    return v
