from __future__ import annotations

# Public API surface (v1): keep stable imports for tests and downstream tools.

from .account import AccountError, UserAccountV1
from .alu import (
    ARGS_BOTH_SECRET,
    ARGS_LHS_PUBLIC,
    ARGS_RHS_PUBLIC,
    CiphertextError,
    HandleError,
    MpcSintError,
    SecretALU,
    UnknownAccountError,
    ValidationFailure,
)
from .config import CoreConfigV1
from .core import SignedCoreV1
from .eip712 import EIP712DomainV1
from .engine import LocalRSSEngineV1
from .reveal_log import RevealLogV1, RevealRecordV1
from .sig import SigError
from .signed import SignedWordOps
from .signed_pair import SignedPairOps
from .types import (
    CiphertextV1,
    CompositeCiphertextV1,
    CompositeInputTicketV1,
    InputTicketV1,
    LimbPair,
    OutputBundleV1,
    SecretWord,
    WidthSpecV1,
    to_pattern,
    to_signed,
)
from .unsigned import UnsignedPairOps, UnsignedWordOps

__all__ = [
    "AccountError",
    "UserAccountV1",
    "ARGS_BOTH_SECRET",
    "ARGS_LHS_PUBLIC",
    "ARGS_RHS_PUBLIC",
    "CiphertextError",
    "HandleError",
    "MpcSintError",
    "SecretALU",
    "UnknownAccountError",
    "ValidationFailure",
    "CoreConfigV1",
    "SignedCoreV1",
    "EIP712DomainV1",
    "LocalRSSEngineV1",
    "RevealLogV1",
    "RevealRecordV1",
    "SigError",
    "SignedWordOps",
    "SignedPairOps",
    "CiphertextV1",
    "CompositeCiphertextV1",
    "CompositeInputTicketV1",
    "InputTicketV1",
    "LimbPair",
    "OutputBundleV1",
    "SecretWord",
    "WidthSpecV1",
    "to_pattern",
    "to_signed",
    "UnsignedPairOps",
    "UnsignedWordOps",
]
