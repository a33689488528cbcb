from __future__ import annotations

from typing import Dict, Optional, Union

from .alu import SecretALU
from .config import CoreConfigV1
from .signed import SignedWordOps
from .signed_pair import SignedPairOps
from .types import NATIVE_WIDTHS, SIGNED_WIDTHS


SignedOps = Union[SignedWordOps, SignedPairOps]


class SignedCoreV1:
    """
    Signed integer op sets for every supported width, bound to one injected ALU.

        core = SignedCoreV1(LocalRSSEngineV1())
        x = core.i32.set_public(-7)
        core.i32.decrypt(core.i32.shr(x, 1))  # -4
    """

    def __init__(self, alu: SecretALU, config: Optional[CoreConfigV1] = None):
        self.alu = alu
        self.config = config if config is not None else getattr(alu, "config", None) or CoreConfigV1()
        self._ops: Dict[int, SignedOps] = {}
        for bits in SIGNED_WIDTHS:
            if bits in NATIVE_WIDTHS:
                self._ops[bits] = SignedWordOps(alu, bits, self.config)
            else:
                self._ops[bits] = SignedPairOps(alu, bits, self.config)

    @property
    def i8(self) -> SignedWordOps:
        return self._ops[8]  # type: ignore[return-value]

    @property
    def i16(self) -> SignedWordOps:
        return self._ops[16]  # type: ignore[return-value]

    @property
    def i32(self) -> SignedWordOps:
        return self._ops[32]  # type: ignore[return-value]

    @property
    def i64(self) -> SignedWordOps:
        return self._ops[64]  # type: ignore[return-value]

    @property
    def i128(self) -> SignedPairOps:
        return self._ops[128]  # type: ignore[return-value]

    @property
    def i256(self) -> SignedPairOps:
        return self._ops[256]  # type: ignore[return-value]

    def for_width(self, bits: int) -> SignedOps:
        ops = self._ops.get(int(bits))
        if ops is None:
            raise ValueError(f"unsupported signed width: {bits}")
        return ops
