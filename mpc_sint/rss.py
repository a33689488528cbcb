from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import torch


def rss_pair_share_indices_v1(party_id: int) -> Tuple[int, int]:
    """
    Party Pi holds the pair (share_i, share_{i+1}).
    """
    pid = int(party_id)
    if pid not in (0, 1, 2):
        raise ValueError("party_id must be 0..2")
    return pid, (pid + 1) % 3


def word_mask(bits: int) -> int:
    b = int(bits)
    if b < 1 or b > 64:
        raise ValueError("bits must be 1..64")
    return (1 << b) - 1


def _as_i64(u: int) -> int:
    # u64 bit-pattern -> signed int64 carrying the same bits.
    u = int(u) & 0xFFFFFFFFFFFFFFFF
    return u - (1 << 64) if u >= (1 << 63) else u


@dataclass(frozen=True)
class RSSWordV1:
    """One party's view of a replicated share of a W-bit word over Z/2^W.

    `lo`/`hi` are shape (1,) int64 tensors holding raw bit-patterns (x_i, x_{i+1}). Shares are kept
    at full 64-bit width; reduction mod 2^W happens on reconstruction.
    """

    lo: torch.Tensor
    hi: torch.Tensor
    bits: int

    def __post_init__(self) -> None:
        if not isinstance(self.lo, torch.Tensor) or not isinstance(self.hi, torch.Tensor):
            raise TypeError("lo/hi must be torch tensors")
        if self.lo.dtype != torch.int64 or self.hi.dtype != torch.int64:
            raise TypeError("RSSWordV1 requires int64 tensors (bit-patterns)")
        if self.lo.shape != self.hi.shape:
            raise ValueError("lo/hi shape mismatch")
        word_mask(self.bits)

    def add(self, other: "RSSWordV1") -> "RSSWordV1":
        if int(self.bits) != int(other.bits):
            raise ValueError("width mismatch")
        return RSSWordV1(lo=self.lo + other.lo, hi=self.hi + other.hi, bits=self.bits)

    def sub(self, other: "RSSWordV1") -> "RSSWordV1":
        if int(self.bits) != int(other.bits):
            raise ValueError("width mismatch")
        return RSSWordV1(lo=self.lo - other.lo, hi=self.hi - other.hi, bits=self.bits)

    def neg(self) -> "RSSWordV1":
        return RSSWordV1(lo=-self.lo, hi=-self.hi, bits=self.bits)

    def mul_public(self, c: int) -> "RSSWordV1":
        k = _as_i64(int(c))
        return RSSWordV1(lo=self.lo * k, hi=self.hi * k, bits=self.bits)


RSSTriple = Tuple[RSSWordV1, RSSWordV1, RSSWordV1]


def _rand_i64_bits(shape, gen: torch.Generator, device: torch.device) -> torch.Tensor:
    lo = torch.randint(0, 2**32, shape, dtype=torch.int64, generator=gen, device=device)
    hi = torch.randint(0, 2**32, shape, dtype=torch.int64, generator=gen, device=device)
    return (hi << 32) | lo


def make_rss_word_triple_v1(
    *,
    value: int,
    bits: int,
    generator: torch.Generator,
    device: torch.device,
) -> RSSTriple:
    """Create 3-party replicated shares of one public W-bit word."""

    m = word_mask(bits)
    x = torch.tensor([_as_i64(int(value) & m)], dtype=torch.int64, device=device)
    a = _rand_i64_bits(x.shape, generator, device)
    b = _rand_i64_bits(x.shape, generator, device)
    c = x - a - b

    p0 = RSSWordV1(lo=a, hi=b, bits=bits)
    p1 = RSSWordV1(lo=b, hi=c, bits=bits)
    p2 = RSSWordV1(lo=c, hi=a, bits=bits)
    return p0, p1, p2


def add_public_v1(views: RSSTriple, c: int) -> RSSTriple:
    """Add a public constant into share0 (held by P0 as lo and P2 as hi)."""
    k = _as_i64(int(c))
    p0, p1, p2 = views
    return (
        RSSWordV1(lo=p0.lo + k, hi=p0.hi, bits=p0.bits),
        p1,
        RSSWordV1(lo=p2.lo, hi=p2.hi + k, bits=p2.bits),
    )


def map_views_v1(views: RSSTriple, others: RSSTriple, fn) -> RSSTriple:
    return (fn(views[0], others[0]), fn(views[1], others[1]), fn(views[2], others[2]))


def open_word_v1(views: RSSTriple) -> int:
    """
    Reconstruct x = x0 + x1 + x2 mod 2^W from the three party views.

    Each share is held by two parties; a disagreement between the two copies means a view was
    corrupted and the word cannot be trusted.
    """
    p0, p1, p2 = views
    bits = int(p0.bits)
    if int(p1.bits) != bits or int(p2.bits) != bits:
        raise ValueError("party views disagree on width")
    if not (torch.equal(p0.hi, p1.lo) and torch.equal(p1.hi, p2.lo) and torch.equal(p2.hi, p0.lo)):
        raise RuntimeError("replicated share mismatch")
    x = p0.lo + p1.lo + p2.lo
    return int(x.view(-1)[0].item()) & word_mask(bits)
