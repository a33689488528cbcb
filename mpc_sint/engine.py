from __future__ import annotations

import itertools
import os
import weakref
from collections import Counter
from typing import Dict, Optional, Tuple

import torch

from .alu import (
    ARGS_BOTH_SECRET,
    ARGS_LHS_PUBLIC,
    ARGS_RHS_PUBLIC,
    BINARY_OPS,
    COMPARE_OPS,
    OP_ADD,
    OP_AND,
    OP_DIV,
    OP_EQ,
    OP_GE,
    OP_GT,
    OP_LE,
    OP_LT,
    OP_MUL,
    OP_NAMES,
    OP_NE,
    OP_OR,
    OP_REM,
    OP_SUB,
    OP_XOR,
    CiphertextError,
    HandleError,
    Operand,
    SecretALU,
    UnknownAccountError,
    ValidationFailure,
    args_kind_v1,
)
from .cipher import derive_user_key32_v1, seal_word_v1, sha256, unseal_word_v1
from .config import CoreConfigV1
from .eip712 import AccountOnboardCommitV1, EIP712DomainV1, InputTicketCommitV1, keccak256
from .logjson import log_json
from .reveal_log import RevealLogV1
from .rss import RSSTriple, add_public_v1, make_rss_word_triple_v1, map_views_v1, open_word_v1, word_mask
from .sig import SigError, secp256k1_recover_address
from .types import BOOL_BITS, NONCE_BYTES, WORD_WIDTHS, CiphertextV1, SecretWord


def eval_binary_plain_v1(op: int, bits: int, a: int, b: int) -> int:
    """Reference semantics of one unsigned ALU op over Z/2^bits."""
    m = word_mask(bits)
    a &= m
    b &= m
    if op == OP_ADD:
        return (a + b) & m
    if op == OP_SUB:
        return (a - b) & m
    if op == OP_MUL:
        return (a * b) & m
    if op == OP_DIV:
        return 0 if b == 0 else a // b
    if op == OP_REM:
        return 0 if b == 0 else a % b
    if op == OP_AND:
        return a & b
    if op == OP_OR:
        return a | b
    if op == OP_XOR:
        return a ^ b
    if op == OP_EQ:
        return int(a == b)
    if op == OP_NE:
        return int(a != b)
    if op == OP_GT:
        return int(a > b)
    if op == OP_LT:
        return int(a < b)
    if op == OP_GE:
        return int(a >= b)
    if op == OP_LE:
        return int(a <= b)
    raise ValueError(f"unknown op code: {op}")


class LocalRSSEngineV1(SecretALU):
    """
    Single-process simulation of a three-party replicated-secret-sharing engine.

    Each handle is backed by the three party views of an RSS word. Additions, subtractions, public
    multiplications and NOT are evaluated share-locally; every other op goes through an in-process
    dealer that reconstructs its inputs, computes over Z/2^W and reshares a fresh output. Dealer
    reconstruction stays inside the engine; only `decrypt` hands plaintext to the caller, and each
    call is appended to `reveal_log`.
    """

    def __init__(
        self,
        *,
        config: Optional[CoreConfigV1] = None,
        network_key32: Optional[bytes] = None,
        device: Optional[torch.device] = None,
    ):
        self.config = config if config is not None else CoreConfigV1()
        self._device = device if device is not None else torch.device("cpu")
        self._gen = torch.Generator(device="cpu")
        seed = self.config.seed
        if seed is not None:
            self._gen.manual_seed(int(seed))
        else:
            self._gen.seed()
        if network_key32 is None:
            if seed is not None:
                network_key32 = sha256(b"MPCSINT.netkey.seed.v1\0" + int(seed).to_bytes(8, "little", signed=False))
            else:
                network_key32 = os.urandom(32)
        if len(network_key32) != 32:
            raise ValueError("network_key32 must be 32 bytes")
        self._network_key32 = bytes(network_key32)
        self.engine_address20 = keccak256(b"MPCSINT.engine.v1\0" + sha256(self._network_key32))[12:]
        self._domain = EIP712DomainV1(chain_id=int(self.config.chain_id), verifying_contract=self.engine_address20)
        self._handles: Dict[int, Tuple[int, RSSTriple]] = {}
        self._refs = itertools.count()
        self._accounts: Dict[bytes, bytes] = {}
        self._stats: Counter = Counter()
        self.reveal_log = RevealLogV1(salt32=sha256(b"MPCSINT.reveal.salt.v1\0" + self._network_key32))

    # ---- bookkeeping ----

    def domain(self) -> EIP712DomainV1:
        return self._domain

    def stats(self) -> Dict[str, int]:
        return dict(self._stats)

    def handle_count(self) -> int:
        return len(self._handles)

    def _log(self, want: str, event: str, **fields) -> None:
        log_json(level=str(self.config.log_level), want=want, event=event, **fields)

    @staticmethod
    def _check_bits(bits: int) -> int:
        b = int(bits)
        if b not in WORD_WIDTHS:
            raise ValueError(f"unsupported ALU width: {bits}")
        return b

    def _nonce(self) -> bytes:
        t = torch.randint(0, 256, (NONCE_BYTES,), dtype=torch.int64, generator=self._gen)
        return bytes(int(x) for x in t.tolist())

    def _new_handle(self, bits: int, views: RSSTriple) -> SecretWord:
        ref = next(self._refs)
        self._handles[ref] = (int(bits), views)
        h = SecretWord(bits=int(bits), ref=ref)
        # Shares live as long as the handle object does.
        weakref.finalize(h, self._handles.pop, ref, None)
        return h

    def release(self, h: SecretWord) -> None:
        self._handles.pop(int(h.ref), None)

    def _share(self, bits: int, value: int) -> SecretWord:
        views = make_rss_word_triple_v1(value=int(value), bits=int(bits), generator=self._gen, device=self._device)
        return self._new_handle(bits, views)

    def _views(self, h: SecretWord, bits: Optional[int] = None) -> RSSTriple:
        if not isinstance(h, SecretWord):
            raise TypeError("expected SecretWord handle")
        rec = self._handles.get(int(h.ref))
        if rec is None:
            raise HandleError(f"unknown handle ref={h.ref}")
        hb, views = rec
        if hb != int(h.bits):
            raise HandleError(f"handle ref={h.ref} width mismatch")
        if bits is not None and hb != int(bits):
            raise HandleError(f"expected {bits}-bit handle, got {hb}-bit")
        return views

    def _open(self, h: SecretWord, bits: Optional[int] = None) -> int:
        return open_word_v1(self._views(h, bits))

    # ---- accounts ----

    def onboard_account(self, *, account20: bytes, signature65: bytes) -> bytes:
        """
        Register an account and return its user key.

        The account proves control of its address by signing the AccountOnboard EIP-712 digest.
        """
        if not isinstance(account20, (bytes, bytearray)) or len(account20) != 20:
            raise ValueError("account20 must be 20 bytes")
        if not signature65:
            self._log("warn", "onboard_rejected", account="0x" + bytes(account20).hex(), reason="empty signature")
            raise ValidationFailure("empty onboarding signature")
        digest32 = AccountOnboardCommitV1(account20=bytes(account20)).digest32(domain=self._domain)
        try:
            signer = secp256k1_recover_address(digest32, bytes(signature65))
        except SigError as e:
            self._log("warn", "onboard_rejected", account="0x" + bytes(account20).hex(), reason=str(e))
            raise ValidationFailure(f"bad onboarding signature: {e}") from e
        if signer != bytes(account20):
            self._log("warn", "onboard_rejected", account="0x" + bytes(account20).hex(), reason="signer mismatch")
            raise ValidationFailure("onboarding signature does not match account")
        key32 = derive_user_key32_v1(network_key32=self._network_key32, address20=bytes(account20))
        self._accounts[bytes(account20)] = key32
        self._log("info", "account_onboarded", account="0x" + bytes(account20).hex())
        return key32

    def is_onboarded(self, account20: bytes) -> bool:
        return bytes(account20) in self._accounts

    # ---- lifecycle ----

    def validate_ciphertext(self, bits: int, ciphertext: CiphertextV1, signature: bytes) -> SecretWord:
        b = self._check_bits(bits)
        try:
            if not isinstance(ciphertext, CiphertextV1) or int(ciphertext.bits) != b:
                raise CiphertextError(f"ticket is not a {b}-bit ciphertext")
            digest32 = InputTicketCommitV1(width=b, ciphertext_blob=bytes(ciphertext.blob)).digest32(domain=self._domain)
            try:
                signer = secp256k1_recover_address(digest32, bytes(signature))
            except SigError as e:
                raise ValidationFailure(f"bad ticket signature: {e}") from e
            key32 = self._accounts.get(signer)
            if key32 is None:
                raise ValidationFailure("ticket signer has not onboarded")
            value = unseal_word_v1(key32=key32, bits=b, ciphertext=ciphertext)
        except ValidationFailure as e:
            self._log("warn", "ticket_rejected", bits=b, reason=str(e))
            raise
        self._stats["validate"] += 1
        return self._share(b, value)

    def onboard(self, bits: int, ciphertext: CiphertextV1) -> SecretWord:
        b = self._check_bits(bits)
        value = unseal_word_v1(key32=self._network_key32, bits=b, ciphertext=ciphertext)
        self._stats["onboard"] += 1
        return self._share(b, value)

    def offboard(self, bits: int, h: SecretWord) -> CiphertextV1:
        b = self._check_bits(bits)
        value = self._open(h, b)
        self._stats["offboard"] += 1
        return seal_word_v1(key32=self._network_key32, bits=b, value=value, nonce=self._nonce())

    def offboard_to_user(self, bits: int, h: SecretWord, recipient20: bytes) -> CiphertextV1:
        b = self._check_bits(bits)
        key32 = self._accounts.get(bytes(recipient20))
        if key32 is None:
            raise UnknownAccountError("recipient has not onboarded")
        value = self._open(h, b)
        self._stats["offboard_to_user"] += 1
        return seal_word_v1(key32=key32, bits=b, value=value, nonce=self._nonce())

    def set_public(self, bits: int, value: int) -> SecretWord:
        b = self._check_bits(bits)
        v = int(value)
        if v < 0 or v > word_mask(b):
            raise ValueError(f"public value does not fit {b} unsigned bits")
        self._stats["set_public"] += 1
        return self._share(b, v)

    # ---- arithmetic / logic ----

    def binary(self, op: int, bits: int, kind: int, lhs: Operand, rhs: Operand) -> SecretWord:
        b = self._check_bits(bits)
        if int(op) not in BINARY_OPS:
            raise ValueError(f"unknown op code: {op}")
        if int(kind) != args_kind_v1(lhs, rhs):
            raise ValueError("width descriptor secrecy tag does not match operands")
        self._stats[OP_NAMES[int(op)]] += 1
        m = word_mask(b)

        if op in (OP_ADD, OP_SUB):
            if kind == ARGS_BOTH_SECRET:
                la, lb = self._views(lhs, b), self._views(rhs, b)
                fn = (lambda x, y: x.add(y)) if op == OP_ADD else (lambda x, y: x.sub(y))
                return self._new_handle(b, map_views_v1(la, lb, fn))
            if kind == ARGS_RHS_PUBLIC:
                c = int(rhs) & m
                return self._new_handle(b, add_public_v1(self._views(lhs, b), c if op == OP_ADD else -c))
            c = int(lhs) & m
            views = self._views(rhs, b)
            if op == OP_SUB:
                views = (views[0].neg(), views[1].neg(), views[2].neg())
            return self._new_handle(b, add_public_v1(views, c))

        if op == OP_MUL and kind != ARGS_BOTH_SECRET:
            c, h = (int(rhs), lhs) if kind == ARGS_RHS_PUBLIC else (int(lhs), rhs)
            v = self._views(h, b)
            return self._new_handle(b, (v[0].mul_public(c & m), v[1].mul_public(c & m), v[2].mul_public(c & m)))

        a = int(lhs) & m if kind == ARGS_LHS_PUBLIC else self._open(lhs, b)
        c = int(rhs) & m if kind == ARGS_RHS_PUBLIC else self._open(rhs, b)
        out_bits = BOOL_BITS if op in COMPARE_OPS else b
        return self._share(out_bits, eval_binary_plain_v1(int(op), b, a, c))

    def mux(self, pred: SecretWord, a: SecretWord, b: SecretWord) -> SecretWord:
        if int(a.bits) != int(b.bits):
            raise HandleError("mux operands differ in width")
        p = self._open(pred, BOOL_BITS)
        chosen = a if p == 1 else b
        self._stats["mux"] += 1
        return self._share(int(chosen.bits), self._open(chosen))

    def shl(self, bits: int, h: SecretWord, n: int) -> SecretWord:
        b = self._check_bits(bits)
        k = int(n)
        if k < 0:
            raise ValueError("shift amount must be >= 0")
        self._stats["shl"] += 1
        return self._share(b, (self._open(h, b) << k) & word_mask(b) if k < b else 0)

    def shr(self, bits: int, h: SecretWord, n: int) -> SecretWord:
        b = self._check_bits(bits)
        k = int(n)
        if k < 0:
            raise ValueError("shift amount must be >= 0")
        self._stats["shr"] += 1
        return self._share(b, self._open(h, b) >> k if k < b else 0)

    def not_(self, bits: int, h: SecretWord) -> SecretWord:
        b = self._check_bits(bits)
        v = self._views(h, b)
        self._stats["not"] += 1
        # ~x == (2^W - 1) - x over Z/2^W
        return self._new_handle(b, add_public_v1((v[0].neg(), v[1].neg(), v[2].neg()), word_mask(b)))

    def decrypt(self, bits: int, h: SecretWord) -> int:
        b = self._check_bits(bits)
        value = self._open(h, b)
        rec = self.reveal_log.record(bits=b, handle_ref=int(h.ref), value=value)
        self._stats["decrypt"] += 1
        self._log("debug", "reveal", bits=b, handle_ref=int(h.ref), seq_no=int(rec.seq_no))
        return value
