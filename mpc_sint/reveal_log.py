from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass
from typing import List


DS_LEAF = b"MPCSINT.reveal.leaf.v1\0"
DS_NODE = b"MPCSINT.reveal.node.v1\0"
DS_EMPTY = b"MPCSINT.reveal.empty.v1\0"
DS_VALUE = b"MPCSINT.reveal.value.v1\0"


def sha256(b: bytes) -> bytes:
    return hashlib.sha256(b).digest()


@dataclass(frozen=True)
class RevealRecordV1:
    seq_no: int
    bits: int
    handle_ref: int
    value_hash32: bytes

    def __post_init__(self) -> None:
        if len(self.value_hash32) != 32:
            raise ValueError("value_hash32 must be 32 bytes")

    def to_bytes(self) -> bytes:
        return struct.pack(
            "<QHQ32s",
            int(self.seq_no) & 0xFFFFFFFFFFFFFFFF,
            int(self.bits) & 0xFFFF,
            int(self.handle_ref) & 0xFFFFFFFFFFFFFFFF,
            bytes(self.value_hash32),
        )

    @property
    def leaf_hash32(self) -> bytes:
        return sha256(DS_LEAF + self.to_bytes())


def merkle_root_v1(leaf_hashes: List[bytes]) -> bytes:
    if not leaf_hashes:
        return sha256(DS_EMPTY)
    level = list(leaf_hashes)
    if len(level) == 1:
        h0 = level[0]
        return sha256(DS_NODE + h0 + h0)
    while len(level) > 1:
        nxt: List[bytes] = []
        i = 0
        while i < len(level):
            left = level[i]
            right = level[i + 1] if (i + 1) < len(level) else left
            nxt.append(sha256(DS_NODE + left + right))
            i += 2
        level = nxt
    return level[0]


class RevealLogV1:
    """
    Append-only log of trust-boundary crossings.

    Every decrypt issued against an engine lands here. The plaintext itself is not stored, only a
    salted hash of it, so the log can be shared to audit *how much* was revealed.
    """

    def __init__(self, *, salt32: bytes):
        if len(salt32) != 32:
            raise ValueError("salt32 must be 32 bytes")
        self._salt32 = bytes(salt32)
        self._records: List[RevealRecordV1] = []

    def record(self, *, bits: int, handle_ref: int, value: int) -> RevealRecordV1:
        n = max(1, (int(bits) + 7) // 8)
        vh = sha256(DS_VALUE + self._salt32 + int(value).to_bytes(n, "little", signed=False))
        rec = RevealRecordV1(seq_no=len(self._records), bits=int(bits), handle_ref=int(handle_ref), value_hash32=vh)
        self._records.append(rec)
        return rec

    def __len__(self) -> int:
        return len(self._records)

    def records(self) -> List[RevealRecordV1]:
        return list(self._records)

    def since(self, seq_no: int) -> List[RevealRecordV1]:
        return [r for r in self._records if int(r.seq_no) >= int(seq_no)]

    def root(self) -> bytes:
        return merkle_root_v1([r.leaf_hash32 for r in self._records])
